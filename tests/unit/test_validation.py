"""Tests for CycloneDX report validation."""

import json

import pytest

from scanner_operator.errors import ReportValidationError
from scanner_operator.validation import Bom, validate_report


class TestValidateReport:
    """Tests for validate_report."""

    def test_accepts_trivy_bom(self, valid_report):
        """A trivy CycloneDX document parses."""
        bom = validate_report(valid_report)

        assert isinstance(bom, Bom)
        assert bom.spec_version == "1.5"
        assert bom.components[0].name == "openssl"
        assert bom.vulnerabilities[0].affects[0].ref == "pkg:deb/debian/openssl@3.0.11-1"

    def test_accepts_bytes(self, valid_report):
        """Raw bytes are accepted as well as text."""
        assert validate_report(valid_report.encode()).bom_format == "CycloneDX"

    def test_minimal_bom(self):
        """Only bomFormat and specVersion are required."""
        bom = validate_report('{"bomFormat":"CycloneDX","specVersion":"1.4"}')

        assert bom.version == 1
        assert bom.components is None

    def test_keeps_unknown_fields(self, sample_bom):
        """Vendor extensions do not fail validation."""
        sample_bom["properties"] = [{"name": "aquasecurity:trivy:SchemaVersion", "value": "2"}]

        validate_report(json.dumps(sample_bom))

    def test_does_not_modify_input(self, valid_report):
        """Validation leaves the caller's text untouched."""
        original = str(valid_report)

        validate_report(valid_report)

        assert valid_report == original

    @pytest.mark.parametrize(
        "raw",
        [
            "{not valid json}",
            "",
            "[]",
            '"a string"',
            "null",
        ],
    )
    def test_rejects_non_documents(self, raw):
        """Anything that is not a JSON object is rejected."""
        with pytest.raises(ReportValidationError):
            validate_report(raw)

    def test_rejects_truncated(self, valid_report):
        """A report cut off mid-stream is rejected."""
        with pytest.raises(ReportValidationError):
            validate_report(valid_report[: len(valid_report) // 2])

    def test_rejects_other_formats(self, sample_bom):
        """SPDX or other documents are not CycloneDX BOMs."""
        sample_bom["bomFormat"] = "SPDX"

        with pytest.raises(ReportValidationError):
            validate_report(json.dumps(sample_bom))

    def test_rejects_missing_spec_version(self, sample_bom):
        """specVersion is required."""
        del sample_bom["specVersion"]

        with pytest.raises(ReportValidationError):
            validate_report(json.dumps(sample_bom))

    def test_rejects_component_without_name(self, sample_bom):
        """Components must carry a name."""
        del sample_bom["components"][0]["name"]

        with pytest.raises(ReportValidationError):
            validate_report(json.dumps(sample_bom))

    def test_rejects_wrong_types(self, sample_bom):
        """A components value that is not a list is a schema violation."""
        sample_bom["components"] = {"name": "openssl"}

        with pytest.raises(ReportValidationError):
            validate_report(json.dumps(sample_bom))

    @pytest.mark.parametrize("token", ["NaN", "Infinity", "-Infinity"])
    def test_rejects_non_json_constants(self, token):
        """JavaScript number literals are not JSON, even where any value is allowed."""
        raw = '{"bomFormat":"CycloneDX","specVersion":"1.5","x":%s}' % token

        with pytest.raises(ReportValidationError):
            validate_report(raw)

    def test_accepts_large_exponent(self):
        """1e400 is valid JSON text; it is kept as submitted by the store."""
        validate_report('{"bomFormat":"CycloneDX","specVersion":"1.5","x":1e400}')
