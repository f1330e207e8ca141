"""Pytest configuration and fixtures."""

from __future__ import annotations

import json

import pytest

from scanner_operator.cluster import JobState
from scanner_operator.errors import TransientClusterError
from scanner_operator.jobs import ScanJobRequest

SAMPLE_BOM = {
    "bomFormat": "CycloneDX",
    "specVersion": "1.5",
    "serialNumber": "urn:uuid:3e671687-395b-41f5-a30f-a58921a69b79",
    "version": 1,
    "metadata": {
        "timestamp": "2024-05-01T12:00:00+00:00",
        "tools": {"components": [{"type": "application", "name": "trivy", "version": "0.51.1"}]},
        "component": {
            "type": "container",
            "name": "docker.io/library/nginx",
            "bom-ref": "pkg:oci/nginx@sha256%3Aabc",
        },
    },
    "components": [
        {
            "type": "library",
            "name": "openssl",
            "version": "3.0.11-1",
            "purl": "pkg:deb/debian/openssl@3.0.11-1",
            "bom-ref": "pkg:deb/debian/openssl@3.0.11-1",
        }
    ],
    "dependencies": [
        {"ref": "pkg:oci/nginx@sha256%3Aabc", "dependsOn": ["pkg:deb/debian/openssl@3.0.11-1"]}
    ],
    "vulnerabilities": [
        {
            "id": "CVE-2024-0727",
            "ratings": [{"severity": "medium", "score": 5.5, "method": "CVSSv31"}],
            "affects": [{"ref": "pkg:deb/debian/openssl@3.0.11-1"}],
        }
    ],
}


@pytest.fixture
def sample_bom() -> dict:
    """A CycloneDX BOM as produced by trivy, decoded."""
    return json.loads(json.dumps(SAMPLE_BOM))


@pytest.fixture
def valid_report() -> str:
    """CycloneDX BOM text with formatting that a re-serialization would change."""
    return json.dumps(SAMPLE_BOM, indent=4) + "\n"


@pytest.fixture
def store():
    """SqlResultStore over a private in-memory SQLite database."""
    from scanner_operator.store import SqlResultStore, connect

    engine = connect("sqlite", ":memory:")
    yield SqlResultStore(engine)
    engine.dispose()


class FakeCluster:
    """In-memory ClusterInspector. Submitted jobs show up as running."""

    def __init__(self, images=None, jobs=None, fail_on=None):
        self.images = list(images or [])
        self.jobs = list(jobs or [])
        self.submitted: list[ScanJobRequest] = []
        self.fail_on = fail_on

    def list_images(self, namespace):
        if self.fail_on == "images":
            raise TransientClusterError("pods unavailable")
        return list(self.images)

    def list_jobs(self, namespace):
        if self.fail_on == "jobs":
            raise TransientClusterError("jobs unavailable")
        return list(self.jobs)

    def submit_job(self, request):
        self.submitted.append(request)
        self.jobs.append(JobState(name=request.job_name, succeeded=False))

    def finish_all(self):
        self.jobs = [JobState(name=j.name, succeeded=True) for j in self.jobs]


@pytest.fixture
def make_cluster():
    """Factory for FakeCluster instances."""
    return FakeCluster
