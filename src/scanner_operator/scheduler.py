"""Decide which image to scan next, one job at a time per namespace.

The scheduler keeps no state between cycles. Each trigger re-reads the
running images, the recorded results, and the live job list, so missed or
duplicated triggers are harmless: the job list is the only record of a scan
in progress.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from scanner_operator.cluster import ClusterInspector
from scanner_operator.errors import JobCreationError, ScannerError, TransientClusterError
from scanner_operator.jobs import JobFactory
from scanner_operator.store import ResultStore

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    ALL_SCANNED = "all_scanned"
    JOB_IN_FLIGHT = "job_in_flight"
    JOB_SUBMITTED = "job_submitted"
    TRANSIENT_ERROR = "transient_error"


@dataclass(frozen=True)
class SchedulingOutcome:
    """Result of one scheduling cycle.

    Attributes:
        kind: What the cycle did.
        image_id: The image a job was submitted for (JOB_SUBMITTED only).
        job_name: Name of the submitted job (JOB_SUBMITTED only).
        error: Why the cycle was aborted (TRANSIENT_ERROR only).
    """

    kind: OutcomeKind
    image_id: str | None = None
    job_name: str | None = None
    error: str | None = None

    @classmethod
    def all_scanned(cls) -> SchedulingOutcome:
        return cls(OutcomeKind.ALL_SCANNED)

    @classmethod
    def job_in_flight(cls) -> SchedulingOutcome:
        return cls(OutcomeKind.JOB_IN_FLIGHT)

    @classmethod
    def job_submitted(cls, image_id: str, job_name: str) -> SchedulingOutcome:
        return cls(OutcomeKind.JOB_SUBMITTED, image_id=image_id, job_name=job_name)

    @classmethod
    def transient_error(cls, error: str) -> SchedulingOutcome:
        return cls(OutcomeKind.TRANSIENT_ERROR, error=error)


def unscanned_images(observed: list[str], recorded: set[str]) -> list[str]:
    """Observed images without a stored result, in observation order, deduplicated."""
    candidates: list[str] = []
    seen: set[str] = set()
    for image_id in observed:
        if image_id in recorded or image_id in seen:
            continue
        seen.add(image_id)
        candidates.append(image_id)
    return candidates


class ScanScheduler:
    """Reconciliation logic for one scan job at a time per namespace.

    Args:
        cluster: Source of running images and scan jobs, and job sink.
        store: Result store; only list() is used here.
        jobs: Factory rendering the job for a chosen image.
    """

    def __init__(
        self,
        cluster: ClusterInspector,
        store: ResultStore,
        jobs: JobFactory,
    ) -> None:
        self.cluster = cluster
        self.store = store
        self.jobs = jobs

    def on_trigger(self, namespace: str) -> SchedulingOutcome:
        """Run one scheduling cycle for namespace.

        Never raises for cluster, storage, or job-creation failures; those
        end the cycle with a TRANSIENT_ERROR outcome and are retried by the
        next trigger.
        """
        try:
            observed = self.cluster.list_images(namespace)
            recorded = {result.image_id for result in self.store.list()}
        except ScannerError as e:
            logger.error("Failed to collect images for %s: %s", namespace, e)
            return SchedulingOutcome.transient_error(str(e))

        candidates = unscanned_images(observed, recorded)
        if not candidates:
            logger.info("All images in %s scanned", namespace)
            return SchedulingOutcome.all_scanned()

        try:
            jobs = self.cluster.list_jobs(namespace)
        except TransientClusterError as e:
            logger.error("Failed to list jobs in %s: %s", namespace, e)
            return SchedulingOutcome.transient_error(str(e))

        running = [job.name for job in jobs if not job.succeeded]
        if running:
            logger.info(
                "Job %s still in progress in %s, %d image(s) waiting",
                running[0],
                namespace,
                len(candidates),
            )
            return SchedulingOutcome.job_in_flight()

        image_id = candidates[0]
        try:
            request = self.jobs.create(image_id, namespace)
            self.cluster.submit_job(request)
        except JobCreationError as e:
            logger.error("Failed to create scan job for %s: %s", image_id, e)
            return SchedulingOutcome.transient_error(str(e))

        logger.info("Created job %s to scan %s", request.job_name, image_id)
        return SchedulingOutcome.job_submitted(image_id, request.job_name)

