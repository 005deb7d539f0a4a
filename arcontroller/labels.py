"""Label, selector and template-hash helpers."""

from __future__ import annotations

import copy
import json
from typing import Any

LABEL_KEY_RUNNER_TEMPLATE_HASH = "runner-template-hash"
LABEL_KEY_RUNNER_DEPLOYMENT_NAME = "runner-deployment-name"

_ALPHANUMS = "bcdfghjklmnpqrstvwxz2456789"

_FNV32_OFFSET = 2166136261
_FNV32_PRIME = 16777619


class _Fnv32a:
    """32-bit FNV-1a hash."""

    def __init__(self) -> None:
        self.value = _FNV32_OFFSET

    def reset(self) -> None:
        self.value = _FNV32_OFFSET

    def update(self, data: bytes) -> None:
        value = self.value
        for byte in data:
            value = ((value ^ byte) * _FNV32_PRIME) & 0xFFFFFFFF
        self.value = value

    def sum32(self) -> int:
        return self.value


def filter_labels(labels: dict[str, str], filter_key: str) -> dict[str, str]:
    """Return a copy of ``labels`` without ``filter_key``."""
    return {k: v for k, v in labels.items() if k != filter_key}


def clone_and_add_label(labels, label_key: str, label_value: str):
    """Return a copy of ``labels`` with the label added; unchanged if key is empty."""
    if label_key == "":
        return labels
    new_labels = dict(labels or {})
    new_labels[label_key] = label_value
    return new_labels


def clone_selector_and_add_label(selector: dict, label_key: str, label_value: str) -> dict:
    """Return a copy of a label selector with ``label_key`` added to its matchLabels."""
    if label_key == "":
        return selector
    match_labels = dict(selector.get("matchLabels") or {})
    match_labels[label_key] = label_value
    expressions = selector.get("matchExpressions")
    return {
        "matchLabels": match_labels,
        "matchExpressions": copy.deepcopy(expressions) if expressions is not None else None,
    }


def safe_encode_string(value: str) -> str:
    """Map every character onto a vowel-free alphabet."""
    return "".join(_ALPHANUMS[b % len(_ALPHANUMS)] for b in value.encode())


def _canonical(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, default=repr, separators=(",", ":"))


def deep_hash_object(hasher, obj: Any) -> None:
    """Reset ``hasher`` and feed it a canonical rendering of ``obj``."""
    hasher.reset()
    hasher.update(_canonical(obj).encode())


def compute_hash(template: Any) -> str:
    """Return a safe-encoded FNV-1a hash of ``template``."""
    hasher = _Fnv32a()
    deep_hash_object(hasher, template)
    return safe_encode_string(str(hasher.sum32()))


def fnv_hash_string_objects(*args: Any) -> str:
    """Hash objects; each object resets the hasher, so the last one decides."""
    hasher = _Fnv32a()
    for obj in args:
        deep_hash_object(hasher, obj)
    return safe_encode_string(str(hasher.sum32()))