import logging
from datetime import timedelta

import pytest

from arcontroller.kube import InMemoryClient, NotFoundError, ObjectKey
from arcontroller.volumes import (
    KIND_PV,
    KIND_PVC,
    KIND_STATEFUL_SET,
    LABEL_KEY_CLEANUP,
    LABEL_KEY_RUNNER_STATEFUL_SET_NAME,
    sync_pv,
    sync_pvc,
    sync_volumes,
)

LOG = logging.getLogger("test-volumes")
NS = "default"


def _obj(name, labels=None, spec=None, status=None):
    obj = {"metadata": {"name": name, "namespace": NS, "labels": labels if labels is not None else {}}}
    if spec is not None:
        obj["spec"] = spec
    if status is not None:
        obj["status"] = status
    return obj


def _client(*entries):
    return InMemoryClient({(kind, ObjectKey(NS, obj["metadata"]["name"])): obj for kind, obj in entries})


RUNNER_SET = {
    "metadata": {"name": "example", "namespace": NS},
    "spec": {"volumeClaimTemplates": [{"metadata": {"name": "var-lib-docker"}}]},
}


def test_sync_volumes_labels_existing_claim():
    client = _client((KIND_PVC, _obj("var-lib-docker-sts1-0")))
    result = sync_volumes(client, LOG, NS, RUNNER_SET, [_obj("sts1")])
    assert result is None
    pvc = client.get(KIND_PVC, ObjectKey(NS, "var-lib-docker-sts1-0"))
    assert pvc["metadata"]["labels"][LABEL_KEY_RUNNER_STATEFUL_SET_NAME] == "sts1"


def test_sync_volumes_skips_missing_claims():
    client = _client()
    assert sync_volumes(client, LOG, NS, RUNNER_SET, [_obj("sts1")]) is None
    assert client.list(KIND_PVC) == []


def test_sync_volumes_keeps_existing_label():
    pvc = _obj("var-lib-docker-sts1-0", {LABEL_KEY_RUNNER_STATEFUL_SET_NAME: "other"})
    client = _client((KIND_PVC, pvc))
    sync_volumes(client, LOG, NS, RUNNER_SET, [_obj("sts1")])
    stored = client.get(KIND_PVC, ObjectKey(NS, "var-lib-docker-sts1-0"))
    assert stored["metadata"]["labels"][LABEL_KEY_RUNNER_STATEFUL_SET_NAME] == "other"


def test_sync_pvc_without_label_does_nothing():
    pvc = _obj("claim")
    client = _client((KIND_PVC, pvc))
    assert sync_pvc(client, LOG, NS, pvc) is None
    assert client.get(KIND_PVC, ObjectKey(NS, "claim"))["metadata"]["name"] == "claim"


def test_sync_pvc_requeues_while_statefulset_exists():
    pvc = _obj("claim", {LABEL_KEY_RUNNER_STATEFUL_SET_NAME: "sts1"})
    client = _client((KIND_PVC, pvc), (KIND_STATEFUL_SET, _obj("sts1")))
    result = sync_pvc(client, LOG, NS, pvc)
    assert result.requeue_after == timedelta(seconds=10)


def test_sync_pvc_marks_volume_and_deletes_claim():
    pvc = _obj("claim", {LABEL_KEY_RUNNER_STATEFUL_SET_NAME: "sts1"}, spec={"volumeName": "pv1"})
    pv = _obj("pv1", None, spec={"claimRef": {"name": "claim"}})
    pv["metadata"]["labels"] = None
    client = _client((KIND_PVC, pvc), (KIND_PV, pv))
    assert sync_pvc(client, LOG, NS, pvc) is None
    stored_pv = client.get(KIND_PV, ObjectKey(NS, "pv1"))
    assert stored_pv["metadata"]["labels"][LABEL_KEY_CLEANUP] == "sts1"
    with pytest.raises(NotFoundError):
        client.get(KIND_PVC, ObjectKey(NS, "claim"))


def test_sync_pvc_missing_volume_keeps_claim():
    pvc = _obj("claim", {LABEL_KEY_RUNNER_STATEFUL_SET_NAME: "sts1"}, spec={"volumeName": "pv1"})
    client = _client((KIND_PVC, pvc))
    assert sync_pvc(client, LOG, NS, pvc) is None
    assert client.get(KIND_PVC, ObjectKey(NS, "claim"))["spec"]["volumeName"] == "pv1"


def test_sync_pv_without_claim_ref():
    pv = _obj("pv1", spec={})
    client = _client((KIND_PV, pv))
    assert sync_pv(client, LOG, NS, pv) is None


def test_sync_pv_requeues_without_cleanup_label():
    pv = _obj("pv1", spec={"claimRef": {"name": "claim"}})
    client = _client((KIND_PV, pv))
    assert sync_pv(client, LOG, NS, pv).requeue_after == timedelta(seconds=10)


def test_sync_pv_requeues_until_released():
    pv = _obj("pv1", {LABEL_KEY_CLEANUP: "sts1"}, spec={"claimRef": {"name": "claim"}}, status={"phase": "Bound"})
    client = _client((KIND_PV, pv))
    assert sync_pv(client, LOG, NS, pv).requeue_after == timedelta(seconds=10)


def test_sync_pv_unsets_claim_ref_when_released():
    pv = _obj(
        "pv1",
        {LABEL_KEY_CLEANUP: "sts1", "keep": "yes"},
        spec={"claimRef": {"name": "claim"}},
        status={"phase": "Released"},
    )
    client = _client((KIND_PV, pv))
    assert sync_pv(client, LOG, NS, pv) is None
    stored = client.get(KIND_PV, ObjectKey(NS, "pv1"))
    assert stored["spec"]["claimRef"] is None
    assert stored["metadata"]["labels"] == {"keep": "yes"}