"""A small in-memory store of cluster objects."""

from __future__ import annotations

import copy
import itertools
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

OWNER_FIELD = ".metadata.controller"

_SUFFIX_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"


class NotFoundError(LookupError):
    """Raised when an object does not exist."""


@dataclass(frozen=True)
class ObjectKey:
    namespace: str
    name: str

    @classmethod
    def of(cls, obj: dict) -> "ObjectKey":
        meta = obj.get("metadata", {})
        return cls(meta.get("namespace", ""), meta.get("name", ""))


@dataclass(frozen=True)
class Result:
    requeue: bool = False
    requeue_after: timedelta | None = None


def _field_value(obj: dict, path: str) -> list[str]:
    meta = obj.get("metadata", {})
    if path == OWNER_FIELD:
        return [
            ref["name"]
            for ref in meta.get("ownerReferences") or []
            if ref.get("controller")
        ]
    value: Any = obj
    for part in path.strip(".").split("."):
        if not isinstance(value, dict) or part not in value:
            return []
        value = value[part]
    return [str(value)]


def _matches_selector(obj: dict, selector: dict | None) -> bool:
    if not selector:
        return True
    labels = obj.get("metadata", {}).get("labels") or {}
    for key, value in (selector.get("matchLabels") or {}).items():
        if labels.get(key) != value:
            return False
    for expr in selector.get("matchExpressions") or []:
        key, op, values = expr["key"], expr["operator"], expr.get("values") or []
        if op == "In" and labels.get(key) not in values:
            return False
        if op == "NotIn" and key in labels and labels[key] in values:
            return False
        if op == "Exists" and key not in labels:
            return False
        if op == "DoesNotExist" and key in labels:
            return False
    return True


class InMemoryClient:
    """Stores objects as dicts keyed by kind and namespaced name."""

    def __init__(self, objects: dict[tuple[str, ObjectKey], dict] | None = None) -> None:
        self._objects: dict[tuple[str, ObjectKey], dict] = {
            k: copy.deepcopy(v) for k, v in (objects or {}).items()
        }
        self._counter = itertools.count()

    def get(self, kind: str, key: ObjectKey) -> dict:
        try:
            return copy.deepcopy(self._objects[(kind, key)])
        except KeyError:
            raise NotFoundError(f"{kind} {key.namespace}/{key.name} not found") from None

    def list(self, kind: str, namespace=None, selector=None, fields=None) -> list[dict]:
        found = []
        for (k, key), obj in self._objects.items():
            if k != kind or (namespace is not None and key.namespace != namespace):
                continue
            if not _matches_selector(obj, selector):
                continue
            if fields and any(v not in _field_value(obj, f) for f, v in fields.items()):
                continue
            found.append(copy.deepcopy(obj))
        return found

    def create(self, kind: str, obj: dict) -> dict:
        stored = copy.deepcopy(obj)
        meta = stored.setdefault("metadata", {})
        count = next(self._counter)
        if not meta.get("name"):
            prefix = meta.get("generateName")
            if not prefix:
                raise ValueError("object needs a name or generateName")
            meta["name"] = prefix + "".join(
                _SUFFIX_ALPHABET[(count * 7 + i * 11) % len(_SUFFIX_ALPHABET)] for i in range(5)
            ) + str(count)
        key = ObjectKey.of(stored)
        if (kind, key) in self._objects:
            raise ValueError(f"{kind} {key.namespace}/{key.name} already exists")
        meta.setdefault(
            "creationTimestamp",
            datetime.now(timezone.utc) + timedelta(microseconds=count),
        )
        self._objects[(kind, key)] = stored
        return copy.deepcopy(stored)

    def update(self, kind: str, obj: dict) -> dict:
        key = ObjectKey.of(obj)
        if (kind, key) not in self._objects:
            raise NotFoundError(f"{kind} {key.namespace}/{key.name} not found")
        self._objects[(kind, key)] = copy.deepcopy(obj)
        return copy.deepcopy(obj)

    def delete(self, kind: str, obj: dict) -> None:
        key = ObjectKey.of(obj)
        if self._objects.pop((kind, key), None) is None:
            raise NotFoundError(f"{kind} {key.namespace}/{key.name} not found")

    def patch_status(self, kind: str, obj: dict) -> dict:
        key = ObjectKey.of(obj)
        if (kind, key) not in self._objects:
            raise NotFoundError(f"{kind} {key.namespace}/{key.name} not found")
        self._objects[(kind, key)]["status"] = copy.deepcopy(obj.get("status"))
        return copy.deepcopy(self._objects[(kind, key)])