"""Read pod images and scan jobs from the Kubernetes API, and submit jobs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from scanner_operator.errors import JobCreationError, TransientClusterError
from scanner_operator.jobs import ScanJobRequest

logger = logging.getLogger(__name__)

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "scanner-operator"


@dataclass(frozen=True)
class JobState:
    """What the scheduler needs to know about a scan job."""

    name: str
    succeeded: bool


@runtime_checkable
class ClusterInspector(Protocol):
    """Cluster reads and writes used by the scheduler."""

    def list_images(self, namespace: str) -> list[str]:
        """Image ids of running containers in namespace, in API order."""
        ...

    def list_jobs(self, namespace: str) -> list[JobState]:
        """Scan jobs owned by the operator in namespace."""
        ...

    def submit_job(self, request: ScanJobRequest) -> None:
        """Create the job described by request."""
        ...


def load_kube_config() -> None:
    """Prefer in-cluster credentials, fall back to the local kubeconfig."""
    try:
        config.load_incluster_config()
        logger.info("Using in-cluster Kubernetes config")
    except config.ConfigException:
        config.load_kube_config()
        logger.info("Using local kubeconfig")


def pod_image_ids(pod: Any) -> list[str]:
    """Image ids reported in a pod's container statuses.

    Init containers come first, matching the order the kubelet starts them.
    Containers that have not pulled their image yet report an empty id and
    are skipped.
    """
    status = pod.status
    if status is None:
        return []
    statuses = list(status.init_container_statuses or []) + list(status.container_statuses or [])
    return [s.image_id for s in statuses if s.image_id]


class KubernetesCluster:
    """ClusterInspector backed by the official Kubernetes client."""

    def __init__(
        self,
        core: client.CoreV1Api | None = None,
        batch: client.BatchV1Api | None = None,
        scan_label: str = "security-scan",
        owner: dict[str, Any] | None = None,
    ) -> None:
        self._core = core or client.CoreV1Api()
        self._batch = batch or client.BatchV1Api()
        self._scan_label = scan_label
        self._owner = owner

    def with_owner(self, owner: dict[str, Any]) -> KubernetesCluster:
        """Copy that stamps submitted jobs with an owner reference to owner."""
        return KubernetesCluster(self._core, self._batch, self._scan_label, owner)

    def list_images(self, namespace: str) -> list[str]:
        try:
            pods = self._core.list_namespaced_pod(
                namespace, label_selector=f"{self._scan_label}!=false"
            )
        except (ApiException, HTTPError) as e:
            raise TransientClusterError(f"failed to list pods in {namespace}: {e}") from e

        images: list[str] = []
        for pod in pods.items:
            images.extend(pod_image_ids(pod))
        return images

    def list_jobs(self, namespace: str) -> list[JobState]:
        try:
            jobs = self._batch.list_namespaced_job(
                namespace, label_selector=f"{MANAGED_BY_LABEL}={MANAGED_BY_VALUE}"
            )
        except (ApiException, HTTPError) as e:
            raise TransientClusterError(f"failed to list jobs in {namespace}: {e}") from e

        return [
            JobState(
                name=job.metadata.name,
                succeeded=bool(job.status and job.status.succeeded),
            )
            for job in jobs.items
        ]

    def submit_job(self, request: ScanJobRequest) -> None:
        body = dict(request.manifest)
        if self._owner is not None:
            metadata = dict(body.get("metadata") or {})
            metadata["ownerReferences"] = [self._owner]
            body["metadata"] = metadata
        try:
            self._batch.create_namespaced_job(request.namespace, body)
        except (ApiException, HTTPError) as e:
            raise JobCreationError(f"failed to create job {request.job_name}: {e}") from e


def owner_reference(body: dict[str, Any]) -> dict[str, Any]:
    """Controller owner reference pointing at a custom resource body."""
    metadata = body["metadata"]
    return {
        "apiVersion": body["apiVersion"],
        "kind": body["kind"],
        "name": metadata["name"],
        "uid": metadata["uid"],
        "controller": True,
        "blockOwnerDeletion": True,
    }
