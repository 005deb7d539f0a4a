"""Keeping runner persistent volumes and claims reusable across stateful sets."""

from __future__ import annotations

import copy
import logging
from datetime import timedelta

from .kube import InMemoryClient, NotFoundError, ObjectKey, Result
from .logsetup import verbosity

LABEL_KEY_CLEANUP = "pending-cleanup"
LABEL_KEY_RUNNER_STATEFUL_SET_NAME = "runner-statefulset-name"

KIND_PVC = "PersistentVolumeClaim"
KIND_PV = "PersistentVolume"
KIND_STATEFUL_SET = "StatefulSet"

VOLUME_RELEASED = "Released"
RETRY_DELAY = timedelta(seconds=10)


def _name(obj: dict) -> str:
    return obj.get("metadata", {}).get("name", "")


def _labels(obj: dict) -> dict:
    return obj.get("metadata", {}).get("labels") or {}


def sync_volumes(
    client: InMemoryClient,
    log: logging.Logger,
    namespace: str,
    runner_set: dict,
    statefulsets: list[dict],
) -> Result | None:
    """Label every claim made from the runner set's claim templates with its stateful set."""
    templates = runner_set.get("spec", {}).get("volumeClaimTemplates") or []
    for template in templates:
        for sts in statefulsets:
            sts_name = _name(sts)
            pvc_name = f"{_name(template)}-{sts_name}-0"
            try:
                pvc = client.get(KIND_PVC, ObjectKey(namespace, pvc_name))
            except NotFoundError:
                continue

            if _labels(pvc).get(LABEL_KEY_RUNNER_STATEFUL_SET_NAME, "") == "":
                updated = copy.deepcopy(pvc)
                labels = updated.setdefault("metadata", {}).get("labels") or {}
                labels[LABEL_KEY_RUNNER_STATEFUL_SET_NAME] = sts_name
                updated["metadata"]["labels"] = labels
                client.update(KIND_PVC, updated)
                log.log(
                    verbosity(1),
                    "Added runner-statefulset-name label to PVC ns=%s sts=%s pvc=%s",
                    namespace, sts_name, pvc_name,
                )
    return None


def sync_pvc(
    client: InMemoryClient,
    log: logging.Logger,
    namespace: str,
    pvc: dict,
) -> Result | None:
    """Release a claim whose stateful set is gone, marking its volume for cleanup first."""
    sts_name = _labels(pvc).get(LABEL_KEY_RUNNER_STATEFUL_SET_NAME, "")
    if sts_name == "":
        return None

    log.log(verbosity(2), "Reconciling runner PVC")

    try:
        client.get(KIND_STATEFUL_SET, ObjectKey(namespace, sts_name))
    except NotFoundError:
        pass
    else:
        log.log(
            verbosity(1),
            "Retrying sync until statefulset gets removed requeueAfter=%s", RETRY_DELAY,
        )
        return Result(requeue_after=RETRY_DELAY)

    pv_name = pvc.get("spec", {}).get("volumeName") or ""
    if pv_name:
        try:
            pv = client.get(KIND_PV, ObjectKey(namespace, pv_name))
        except NotFoundError:
            return None

        pv_copy = copy.deepcopy(pv)
        meta = pv_copy.setdefault("metadata", {})
        labels = meta.get("labels") or {}
        labels[LABEL_KEY_CLEANUP] = sts_name
        meta["labels"] = labels

        log.log(verbosity(2), "Scheduling to unset PV's claimRef sts=%s pv=%s", sts_name, _name(pv))
        client.update(KIND_PV, pv_copy)
        log.info("Updated PV to unset claimRef sts=%s", sts_name)

        log.log(verbosity(2), "Deleting unused PVC sts=%s", sts_name)
        client.delete(KIND_PVC, pvc)
        log.info("Deleted unused PVC sts=%s", sts_name)

    return None


def sync_pv(
    client: InMemoryClient,
    log: logging.Logger,
    namespace: str,
    pv: dict,
) -> Result | None:
    """Unset the claim reference of a released volume marked for cleanup."""
    spec = pv.get("spec", {})
    if spec.get("claimRef") is None:
        return None

    log.log(verbosity(2), "Reconciling PV")

    if _labels(pv).get(LABEL_KEY_CLEANUP, "") == "":
        log.log(
            verbosity(2),
            "Retrying sync to see if this PV needs to be managed by ARC requeueAfter=%s",
            RETRY_DELAY,
        )
        return Result(requeue_after=RETRY_DELAY)

    phase = (pv.get("status") or {}).get("phase")
    log.log(verbosity(2), "checking pv phase phase=%s", phase)

    if phase != VOLUME_RELEASED:
        log.log(verbosity(1), "Retrying sync until pvc gets released requeueAfter=%s", RETRY_DELAY)
        return Result(requeue_after=RETRY_DELAY)

    pv_copy = copy.deepcopy(pv)
    labels = pv_copy.get("metadata", {}).get("labels")
    if labels:
        labels.pop(LABEL_KEY_CLEANUP, None)
    pv_copy.setdefault("spec", {})["claimRef"] = None
    log.log(verbosity(2), "Unsetting PV's claimRef pv=%s", _name(pv))
    client.update(KIND_PV, pv_copy)

    log.info("PV should be Available now")
    return None