"""Exception hierarchy shared by the store, scheduler, and API layers."""

from __future__ import annotations


class ScannerError(Exception):
    """Base class for every error raised by scanner-operator."""


class ConfigurationError(ScannerError):
    """Settings are unusable (unknown database type, unreadable template)."""


class NotFoundError(ScannerError):
    """No scan result is stored under the requested image id."""

    def __init__(self, image_id: str) -> None:
        super().__init__(f"no scan result for image {image_id!r}")
        self.image_id = image_id


class ReportValidationError(ScannerError):
    """The submitted report is not a well-formed CycloneDX BOM."""


class StorageError(ScannerError):
    """The persistence layer failed to complete an operation."""


class TransientClusterError(ScannerError):
    """Listing pods, jobs, or results failed during a scheduling cycle.

    The next trigger re-attempts from scratch, so callers only log it.
    """


class JobCreationError(ScannerError):
    """A scan job description could not be produced or submitted."""


class TemplateError(JobCreationError):
    """Variable substitution into the job template failed."""


class DecodeError(JobCreationError):
    """The rendered template is not a valid Job document."""
