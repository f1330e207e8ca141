"""kopf handlers that trigger scheduling cycles.

A Scanner custom resource marks a namespace for scanning. A cycle runs for
that namespace when the Scanner is created or resumed, periodically on a
timer, and whenever a pod or a managed scan job in the namespace changes.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any

import kopf

from scanner_operator.cluster import (
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    KubernetesCluster,
    load_kube_config,
    owner_reference,
)
from scanner_operator.config import Settings
from scanner_operator.once import Once
from scanner_operator.runtime import get_runtime
from scanner_operator.scheduler import OutcomeKind, ScanScheduler, SchedulingOutcome

logger = logging.getLogger(__name__)

GROUP = "scanner.zoltankerezsi.xyz"
VERSION = "v1"
PLURAL = "scanners"

REQUEUE_INTERVAL = Settings().requeue_after_seconds

_cluster: Once[KubernetesCluster] = Once()

# kopf runs handlers for different objects concurrently; cycles for the
# same namespace must not overlap.
_scope_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
_scope_locks_guard = threading.Lock()


def _scope_lock(namespace: str) -> threading.Lock:
    with _scope_locks_guard:
        return _scope_locks[namespace]


def _kubernetes_cluster() -> KubernetesCluster:
    def init() -> KubernetesCluster:
        load_kube_config()
        return KubernetesCluster(scan_label=get_runtime().settings.scan_label)

    return _cluster.do(init)


def reconcile(namespace: str, owner: dict[str, Any]) -> SchedulingOutcome:
    """Run one scheduling cycle for the Scanner identified by owner."""
    runtime = get_runtime()
    scheduler = ScanScheduler(
        cluster=_kubernetes_cluster().with_owner(owner),
        store=runtime.store,
        jobs=runtime.jobs,
    )
    with _scope_lock(namespace):
        return scheduler.on_trigger(namespace)


def _reconcile_indexed(namespace: str | None, scanners: kopf.Index) -> None:
    """Reconcile the first Scanner registered in namespace, if any."""
    if namespace is None or namespace not in scanners:
        return
    for owner in scanners[namespace]:
        reconcile(namespace, owner)
        return


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Build process singletons before any handler runs."""
    settings.posting.level = logging.WARNING
    settings.watching.server_timeout = 60
    get_runtime()
    _kubernetes_cluster()
    logger.info("Scanner operator started")


@kopf.index(GROUP, VERSION, PLURAL)
def scanners_by_namespace(namespace: str, body: kopf.Body, **_: Any) -> dict[str, dict[str, Any]]:
    return {namespace: owner_reference(dict(body))}


@kopf.on.resume(GROUP, VERSION, PLURAL)
@kopf.on.create(GROUP, VERSION, PLURAL)
def scanner_changed(namespace: str, body: kopf.Body, **_: Any) -> dict[str, str]:
    outcome = reconcile(namespace, owner_reference(dict(body)))
    return {"outcome": outcome.kind.value}


@kopf.timer(GROUP, VERSION, PLURAL, interval=REQUEUE_INTERVAL, initial_delay=REQUEUE_INTERVAL)
def scanner_tick(namespace: str, body: kopf.Body, patch: kopf.Patch, **_: Any) -> None:
    outcome = reconcile(namespace, owner_reference(dict(body)))
    patch.status["lastOutcome"] = outcome.kind.value
    if outcome.kind is OutcomeKind.JOB_SUBMITTED:
        patch.status["lastImageId"] = outcome.image_id


@kopf.on.event("", "v1", "pods")
def pod_event(namespace: str | None, scanners_by_namespace: kopf.Index, **_: Any) -> None:
    _reconcile_indexed(namespace, scanners_by_namespace)


@kopf.on.event("batch", "v1", "jobs", labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE})
def job_event(namespace: str | None, scanners_by_namespace: kopf.Index, **_: Any) -> None:
    _reconcile_indexed(namespace, scanners_by_namespace)
