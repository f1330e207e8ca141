"""Pydantic models and JSON helpers for API request and response bodies."""

from __future__ import annotations

import json
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from scanner_operator.store import ScanResult

_WHITESPACE = re.compile(r"[ \t\n\r]*")
_decoder = json.JSONDecoder()


class ScanResultBody(BaseModel):
    """Request body for PUT /scan-results and the shape of every scan result response.

    The report is any JSON value on the wire. It is validated as a
    CycloneDX BOM only once it reaches the store, and it is stored as the
    exact text the client sent (see raw_member).
    """

    model_config = ConfigDict(populate_by_name=True)

    image_id: str = Field(alias="imageId")
    report: Any


def _skip_whitespace(text: str, pos: int) -> int:
    return _WHITESPACE.match(text, pos).end()


def raw_member(document: str | bytes, name: str) -> str | None:
    """Source text of a top-level member of a JSON object, without decoding it.

    Numbers, spacing and key order inside the member are kept as sent. As
    with json.loads, the last occurrence wins when a key repeats.

    Args:
        document: JSON text of an object, e.g. a request body.
        name: Member to extract.

    Returns:
        The member's value exactly as it appears in document, or None if
        the object has no such member.

    Raises:
        ValueError: If document is not a JSON object.
    """
    text = document.decode("utf-8") if isinstance(document, bytes) else document

    pos = _skip_whitespace(text, 0)
    if text[pos : pos + 1] != "{":
        raise ValueError("expected a JSON object")
    pos = _skip_whitespace(text, pos + 1)
    if text[pos : pos + 1] == "}":
        return None

    found = None
    while True:
        key, pos = _decoder.raw_decode(text, pos)
        if not isinstance(key, str):
            raise ValueError(f"object key at offset {pos} is not a string")
        pos = _skip_whitespace(text, pos)
        if text[pos : pos + 1] != ":":
            raise ValueError(f"expected ':' at offset {pos}")

        start = _skip_whitespace(text, pos + 1)
        _, end = _decoder.raw_decode(text, start)
        if key == name:
            found = text[start:end]

        pos = _skip_whitespace(text, end)
        separator = text[pos : pos + 1]
        if separator == "}":
            return found
        if separator != ",":
            raise ValueError(f"expected ',' or '}}' at offset {pos}")
        pos = _skip_whitespace(text, pos + 1)


def result_json(result: ScanResult) -> str:
    """Response body for one result, embedding the stored report text verbatim."""
    return f'{{"imageId":{json.dumps(result.image_id)},"report":{result.report}}}'


def results_json(results: list[ScanResult]) -> str:
    return "[" + ",".join(result_json(result) for result in results) + "]"
