"""CycloneDX BOM validation for submitted scan reports.

Only the structure is checked. The caller keeps the original text; nothing
here normalizes or re-serializes the report.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from scanner_operator.errors import ReportValidationError


class _BomModel(BaseModel):
    # CycloneDX documents carry many optional vendor fields; keep them.
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Tool(_BomModel):
    vendor: str | None = None
    name: str | None = None
    version: str | None = None


class Metadata(_BomModel):
    timestamp: str | None = None
    tools: list[Tool] | dict[str, Any] | None = None
    component: Component | None = None


class Component(_BomModel):
    type: str
    name: str
    bom_ref: str | None = Field(default=None, alias="bom-ref")
    group: str | None = None
    version: str | None = None
    purl: str | None = None
    components: list[Component] | None = None


class Dependency(_BomModel):
    ref: str
    depends_on: list[str] | None = Field(default=None, alias="dependsOn")


class Rating(_BomModel):
    severity: str | None = None
    score: float | None = None
    method: str | None = None


class Affect(_BomModel):
    ref: str


class Vulnerability(_BomModel):
    id: str | None = None
    bom_ref: str | None = Field(default=None, alias="bom-ref")
    ratings: list[Rating] | None = None
    affects: list[Affect] | None = None
    description: str | None = None


class Bom(_BomModel):
    """Top-level CycloneDX JSON document."""

    bom_format: Literal["CycloneDX"] = Field(alias="bomFormat")
    spec_version: str = Field(alias="specVersion")
    serial_number: str | None = Field(default=None, alias="serialNumber")
    version: int = 1
    metadata: Metadata | None = None
    components: list[Component] | None = None
    dependencies: list[Dependency] | None = None
    vulnerabilities: list[Vulnerability] | None = None


Metadata.model_rebuild()


def _reject_constant(token: str) -> Any:
    # json.loads accepts these JavaScript literals; JSON does not.
    raise ValueError(f"{token} is not a JSON value")


def validate_report(raw_report: str | bytes) -> Bom:
    """Parse a raw report and check that it is a CycloneDX BOM.

    Args:
        raw_report: JSON text exactly as submitted by the scan job.

    Returns:
        The parsed Bom. Callers that persist the report must store
        raw_report, not a re-serialized Bom.

    Raises:
        ReportValidationError: If the text is not JSON or violates the schema.
    """
    try:
        document = json.loads(raw_report, parse_constant=_reject_constant)
    except ValueError as e:
        raise ReportValidationError(f"report is not valid JSON: {e}") from e
    try:
        return Bom.model_validate(document)
    except PydanticValidationError as e:
        raise ReportValidationError(f"invalid CycloneDX BOM: {e}") from e
