"""Render Kubernetes scan Jobs from the job template."""

from __future__ import annotations

import json
import logging
import secrets
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

from scanner_operator.errors import ConfigurationError, DecodeError, TemplateError

logger = logging.getLogger(__name__)

ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 10


def generate_id(length: int = ID_LENGTH) -> str:
    """Random lowercase alphanumeric identifier (36**10 ~ 3.6e15 values)."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class ScanJobRequest:
    """A rendered scan job, ready to be submitted to the cluster.

    Attributes:
        image_id: Image the job will scan.
        namespace: Namespace the job runs in.
        job_name: Generated, unique Job name ("scan-<id>").
        manifest: Decoded batch/v1 Job document.
    """

    image_id: str
    namespace: str
    job_name: str
    manifest: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class JobFactory(Protocol):
    """Produces one ScanJobRequest per scheduling decision."""

    def create(self, image_id: str, namespace: str) -> ScanJobRequest:
        """Render a job for image_id. Raises JobCreationError on failure."""
        ...


class TemplateJobFactory:
    """JobFactory that fills a YAML template and decodes the result.

    The template uses string.Template placeholders: ${scan_name},
    ${image_id}, ${namespace} and ${report_url}. Values are substituted as
    quoted YAML scalars, so image ids containing ':' or '@' are safe.
    """

    def __init__(self, template: str, report_url: str) -> None:
        self._template = string.Template(template)
        self._report_url = report_url

    @classmethod
    def from_path(cls, path: Path, report_url: str) -> TemplateJobFactory:
        """Load the template file.

        Raises:
            ConfigurationError: If the template cannot be read.
        """
        try:
            template = Path(path).read_text()
        except OSError as e:
            raise ConfigurationError(f"failed to read job template {path}: {e}") from e
        return cls(template, report_url)

    def create(self, image_id: str, namespace: str) -> ScanJobRequest:
        job_name = f"scan-{generate_id()}"
        variables = {
            "scan_name": job_name,
            "image_id": image_id,
            "namespace": namespace,
            "report_url": self._report_url,
        }

        try:
            rendered = self._template.substitute(
                {key: json.dumps(value) for key, value in variables.items()}
            )
        except (KeyError, ValueError) as e:
            raise TemplateError(f"failed to substitute variables in job template: {e}") from e

        try:
            manifest = yaml.safe_load(rendered)
        except yaml.YAMLError as e:
            raise DecodeError(f"rendered job template is not valid YAML: {e}") from e

        _check_manifest(manifest, job_name, namespace)
        logger.debug("Rendered job %s for image %s", job_name, image_id)
        return ScanJobRequest(
            image_id=image_id,
            namespace=namespace,
            job_name=job_name,
            manifest=manifest,
        )


def _check_manifest(manifest: Any, job_name: str, namespace: str) -> None:
    """Reject anything that is not the batch/v1 Job we meant to render."""
    if not isinstance(manifest, dict):
        raise DecodeError("rendered job template is not a mapping")
    if manifest.get("apiVersion") != "batch/v1" or manifest.get("kind") != "Job":
        raise DecodeError(
            f"rendered job template has kind {manifest.get('apiVersion')}/{manifest.get('kind')}, "
            "expected batch/v1/Job"
        )
    metadata = manifest.get("metadata")
    if not isinstance(metadata, dict) or metadata.get("name") != job_name:
        raise DecodeError("rendered job template does not carry the generated job name")
    if metadata.get("namespace", namespace) != namespace:
        raise DecodeError("rendered job template targets the wrong namespace")
    spec = manifest.get("spec")
    if not isinstance(spec, dict) or not isinstance(spec.get("template"), dict):
        raise DecodeError("rendered job template has no pod template")
