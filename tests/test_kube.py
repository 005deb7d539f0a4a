import pytest

from arcontroller.kube import InMemoryClient, NotFoundError, ObjectKey


def _secret():
    return {"metadata": {"namespace": "default", "name": "sec1"}, "data": {"foo": b"bar"}}


def test_resource_reader():
    client = InMemoryClient({("Secret", ObjectKey("default", "sec1")): _secret()})
    sec = client.get("Secret", ObjectKey("default", "sec1"))
    assert sec["data"]["foo"] == b"bar"


def test_get_missing_raises():
    with pytest.raises(NotFoundError):
        InMemoryClient().get("Secret", ObjectKey("default", "nope"))


def test_create_with_generate_name_and_list():
    client = InMemoryClient()
    created = client.create("RS", {"metadata": {"namespace": "ns", "generateName": "rd-",
                                                 "labels": {"foo": "bar"},
                                                 "ownerReferences": [{"name": "rd", "controller": True}]}})
    assert created["metadata"]["name"].startswith("rd-")
    assert len(client.list("RS", "ns", {"matchLabels": {"foo": "bar"}})) == 1
    assert client.list("RS", "ns", {"matchLabels": {"foo": "baz"}}) == []
    assert len(client.list("RS", "ns", fields={".metadata.controller": "rd"})) == 1
    assert client.list("RS", "other") == []


def test_update_patch_delete():
    client = InMemoryClient()
    obj = client.create("Secret", _secret())
    obj["data"]["foo"] = b"baz"
    client.update("Secret", obj)
    assert client.get("Secret", ObjectKey("default", "sec1"))["data"]["foo"] == b"baz"
    client.patch_status("Secret", {"metadata": obj["metadata"], "status": {"replicas": 2}})
    assert client.get("Secret", ObjectKey("default", "sec1"))["status"] == {"replicas": 2}
    client.delete("Secret", obj)
    with pytest.raises(NotFoundError):
        client.delete("Secret", obj)