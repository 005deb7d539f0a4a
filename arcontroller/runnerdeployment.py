"""Reconciliation of runner deployments into runner replica sets."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from .kube import OWNER_FIELD, InMemoryClient, NotFoundError, ObjectKey, Result
from .labels import (
    LABEL_KEY_RUNNER_DEPLOYMENT_NAME,
    LABEL_KEY_RUNNER_TEMPLATE_HASH,
    clone_and_add_label,
    clone_selector_and_add_label,
    compute_hash,
)
from .logsetup import verbosity

API_VERSION = "actions.summerwind.dev/v1alpha1"
KIND_RUNNER_DEPLOYMENT = "RunnerDeployment"
KIND_RUNNER_REPLICA_SET = "RunnerReplicaSet"

EVENT_TYPE_NORMAL = "Normal"

DEFAULT_REPLICAS = 1
REQUEUE_DELAY = timedelta(seconds=5)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def get_int_or_default(value: int | None, default: int) -> int:
    """Return ``value`` unless it is None."""
    return default if value is None else value


def get_template_hash(replica_set: dict) -> str | None:
    """Return the template-hash label of a replica set, or None when it is missing."""
    labels = replica_set.get("metadata", {}).get("labels") or {}
    return labels.get(LABEL_KEY_RUNNER_TEMPLATE_HASH)


def get_selector(deployment: dict) -> dict:
    """Return the deployment's selector, defaulting to one matching its name."""
    selector = deployment.get("spec", {}).get("selector")
    if selector is None:
        name = deployment.get("metadata", {}).get("name", "")
        selector = {"matchLabels": {LABEL_KEY_RUNNER_DEPLOYMENT_NAME: name}}
    return selector


def _controller_reference(owner: dict) -> dict:
    meta = owner.get("metadata", {})
    return {
        "apiVersion": API_VERSION,
        "kind": KIND_RUNNER_DEPLOYMENT,
        "name": meta.get("name", ""),
        "uid": meta.get("uid", ""),
        "controller": True,
        "blockOwnerDeletion": True,
    }


def new_runner_replica_set(deployment: dict, common_runner_labels) -> dict:
    """Build the replica set that the deployment currently asks for."""
    meta = deployment.get("metadata", {})
    spec = deployment.get("spec", {})

    template = copy.deepcopy(spec.get("template") or {})
    template_spec = template.setdefault("spec", {})
    runner_labels = list(template_spec.get("labels") or []) + list(common_runner_labels or [])
    if runner_labels or "labels" in template_spec:
        template_spec["labels"] = runner_labels

    template_hash = compute_hash(template)

    template_meta = template.setdefault("metadata", {})
    labels = clone_and_add_label(template_meta.get("labels"), LABEL_KEY_RUNNER_TEMPLATE_HASH, template_hash)
    labels = clone_and_add_label(labels, LABEL_KEY_RUNNER_DEPLOYMENT_NAME, meta.get("name", ""))
    template_meta["labels"] = labels

    selector = clone_selector_and_add_label(
        get_selector(deployment), LABEL_KEY_RUNNER_TEMPLATE_HASH, template_hash
    )

    return {
        "metadata": {
            "generateName": meta.get("name", "") + "-",
            "namespace": meta.get("namespace", ""),
            "labels": dict(labels),
            "ownerReferences": [_controller_reference(deployment)],
        },
        "spec": {
            "replicas": spec.get("replicas"),
            "selector": selector,
            "template": template,
            "effectiveTime": spec.get("effectiveTime"),
        },
    }


def _is_owned_by(replica_set: dict, name: str) -> bool:
    for ref in replica_set.get("metadata", {}).get("ownerReferences") or []:
        if ref.get("controller"):
            return (
                ref.get("apiVersion") == API_VERSION
                and ref.get("kind") == KIND_RUNNER_DEPLOYMENT
                and ref.get("name") == name
            )
    return False


def _status_int(obj: dict, key: str) -> int:
    return (obj.get("status") or {}).get(key) or 0


@dataclass
class RunnerDeploymentReconciler:
    """Keeps the replica sets of each runner deployment in line with its spec."""

    client: InMemoryClient
    log: logging.Logger = field(default_factory=lambda: logging.getLogger("runnerdeployment"))
    common_runner_labels: list[str] = field(default_factory=list)
    name: str = "runnerdeployment-controller"
    events: list[tuple[str, str, str]] = field(default_factory=list)

    def _event(self, event_type: str, reason: str, message: str) -> None:
        self.events.append((event_type, reason, message))

    def new_runner_replica_set(self, deployment: dict) -> dict:
        return new_runner_replica_set(deployment, self.common_runner_labels)

    def reconcile(self, namespace: str, name: str) -> Result:
        """Bring the replica sets of one runner deployment up to date."""
        log = self.log
        try:
            rd = self.client.get(KIND_RUNNER_DEPLOYMENT, ObjectKey(namespace, name))
        except NotFoundError:
            return Result()

        if rd.get("metadata", {}).get("deletionTimestamp"):
            return Result()

        owned = [
            rs
            for rs in self.client.list(KIND_RUNNER_REPLICA_SET, namespace=namespace, fields={OWNER_FIELD: name})
            if _is_owned_by(rs, name)
        ]
        owned.sort(key=lambda rs: rs.get("metadata", {}).get("creationTimestamp") or _EPOCH, reverse=True)

        newest = owned[0] if owned else None
        old_sets = owned[1:]

        desired = self.new_runner_replica_set(rd)

        if newest is None:
            created = self.client.create(KIND_RUNNER_REPLICA_SET, desired)
            log.info("Created runnerreplicaset %s", created["metadata"]["name"])
            return Result()

        newest_hash = get_template_hash(newest)
        if newest_hash is None:
            log.info(
                "Failed to get template hash of newest runnerreplicaset resource. It must be in an "
                "invalid state. Please manually delete the runnerreplicaset so that it is recreated"
            )
            return Result()

        desired_hash = get_template_hash(desired)
        if desired_hash is None:
            log.info(
                "Failed to get template hash of desired runnerreplicaset resource. It must be in an "
                "invalid state. Please manually delete the runnerreplicaset so that it is recreated"
            )
            return Result()

        if newest_hash != desired_hash:
            created = self.client.create(KIND_RUNNER_REPLICA_SET, desired)
            log.info("Created runnerreplicaset %s", created["metadata"]["name"])
            return Result(requeue_after=REQUEUE_DELAY)

        if newest.get("spec", {}).get("selector") != desired["spec"]["selector"]:
            update_set = copy.deepcopy(newest)
            update_set["spec"] = copy.deepcopy(desired["spec"])
            self.client.update(KIND_RUNNER_REPLICA_SET, update_set)
            log.log(verbosity(1), "Updated runnerreplicaset due to selector change")
            return Result(requeue_after=REQUEUE_DELAY)

        newest_spec = newest.setdefault("spec", {})
        current_desired = get_int_or_default(newest_spec.get("replicas"), DEFAULT_REPLICAS)
        new_desired = get_int_or_default(desired["spec"]["replicas"], DEFAULT_REPLICAS)

        current_effective = newest_spec.get("effectiveTime")
        new_effective = rd.get("spec", {}).get("effectiveTime")
        if current_desired != new_desired or current_effective != new_effective:
            newest_spec["replicas"] = new_desired
            newest_spec["effectiveTime"] = new_effective
            self.client.update(KIND_RUNNER_REPLICA_SET, newest)
            log.log(
                verbosity(1),
                "Updated runnerreplicaset due to spec change currentDesiredReplicas=%s "
                "newDesiredReplicas=%s currentEffectiveTime=%s newEffectiveTime=%s",
                current_desired, new_desired, current_effective, new_effective,
            )
            return Result()

        if old_sets:
            ready = _status_int(newest, "readyReplicas")
            if ready < current_desired:
                log.info(
                    "Waiting until the newest runnerreplicaset to be 100%% available "
                    "ready=%s desired=%s old=%s", ready, current_desired, len(old_sets),
                )
                return Result()

            log.info("The newest runnerreplicaset is 100%% available. Deleting old runnerreplicasets")

            for rs in old_sets:
                rs_name = rs["metadata"]["name"]
                if _status_int(rs, "replicas") > 0:
                    if rs.get("spec", {}).get("replicas") == 0:
                        log.log(verbosity(2), "Waiting for runnerreplicaset %s to scale to zero", rs_name)
                        continue
                    updated = copy.deepcopy(rs)
                    updated.setdefault("spec", {})["replicas"] = 0
                    self.client.update(KIND_RUNNER_REPLICA_SET, updated)
                    log.info("Scaled runnerreplicaset %s to zero", rs_name)
                    continue

                self.client.delete(KIND_RUNNER_REPLICA_SET, rs)
                self._event(EVENT_TYPE_NORMAL, "RunnerReplicaSetDeleted", f"Deleted runnerreplicaset '{rs_name}'")
                log.info("Deleted runnerreplicaset %s", rs_name)

        replica_sets = [newest, *old_sets]
        total_current = sum(_status_int(rs, "replicas") for rs in replica_sets)
        total_available = sum(_status_int(rs, "availableReplicas") for rs in replica_sets)
        updated_replicas = _status_int(newest, "replicas")

        status = {
            "availableReplicas": total_available,
            "readyReplicas": total_available,
            "desiredReplicas": new_desired,
            "replicas": total_current,
            "updatedReplicas": updated_replicas,
        }

        if rd.get("status") != status:
            updated_rd = copy.deepcopy(rd)
            updated_rd["status"] = status
            try:
                self.client.patch_status(KIND_RUNNER_DEPLOYMENT, updated_rd)
            except (LookupError, ValueError) as err:
                log.info("Failed to patch runnerdeployment status. Retrying immediately error=%s", err)
                return Result(requeue=True)

        return Result()