"""Upstream response envelope parsing.

The tourism API wraps every payload as

    {"response": {"header": {"resultCode", "resultMsg"},
                  "body": {"items": {"item": T | [T, ...]}, "totalCount", ...}}}

and encodes the item list three ways: missing (or an empty string) for
zero rows, a bare object for one row, a list for many. parse_envelope()
resolves that once so nothing downstream sees the ambiguous shape.

Errors are sometimes returned as an XML document even when JSON was
requested (bad service key, quota exhaustion); those are decoded into the
same result-code failure as a JSON header.
"""

import json
import logging
import re
from dataclasses import dataclass, field

from tourgate.core.errors import SUCCESS_RESULT_CODES, UpstreamResultError

logger = logging.getLogger(__name__)

_XML_CODE_PATTERNS = (
    re.compile(r"<returnReasonCode>\s*([^<\s]+)\s*</returnReasonCode>"),
    re.compile(r"<resultCode>\s*([^<\s]+)\s*</resultCode>"),
)
_XML_MSG_PATTERNS = (
    re.compile(r"<returnAuthMsg>\s*([^<]+?)\s*</returnAuthMsg>"),
    re.compile(r"<errMsg>\s*([^<]+?)\s*</errMsg>"),
    re.compile(r"<resultMsg>\s*([^<]+?)\s*</resultMsg>"),
)


@dataclass
class Envelope:
    """A decoded upstream response with items normalized to a list."""

    result_code: str
    result_msg: str
    items: list[dict] = field(default_factory=list)
    total_count: int = 0
    page_no: int | None = None
    num_of_rows: int | None = None


def normalize_items(body: dict | None) -> list[dict]:
    """Return body.items.item as a list, whatever shape upstream used."""
    if not isinstance(body, dict):
        return []
    items = body.get("items")
    if not isinstance(items, dict):
        # Zero rows arrive as a missing field or as "items": ""
        return []
    item = items.get("item")
    if item is None:
        return []
    if isinstance(item, list):
        return [i for i in item if isinstance(i, dict)]
    if isinstance(item, dict):
        return [item]
    logger.warning("Unexpected item type in envelope: %s", type(item).__name__)
    return []


def _to_int(value, default: int | None = 0) -> int | None:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _xml_field(text: str, patterns: tuple[re.Pattern, ...]) -> str:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return ""


def decode_payload(text: str, *, endpoint: str | None = None) -> dict:
    """Decode a 2xx response body to JSON, translating XML error pages."""
    try:
        payload = json.loads(text)
    except ValueError:
        code = _xml_field(text, _XML_CODE_PATTERNS)
        if code:
            raise UpstreamResultError(code, _xml_field(text, _XML_MSG_PATTERNS), endpoint=endpoint)
        raise UpstreamResultError("99", "Unparseable upstream response", endpoint=endpoint)

    if not isinstance(payload, dict) or not isinstance(payload.get("response"), dict):
        raise UpstreamResultError("99", "Response envelope missing", endpoint=endpoint)
    return payload


def raise_for_result_code(payload: dict, *, endpoint: str | None = None) -> None:
    """Raise UpstreamResultError unless the envelope header reports success."""
    header = payload.get("response", {}).get("header") or {}
    code = str(header.get("resultCode", "")).strip()
    if code not in SUCCESS_RESULT_CODES:
        raise UpstreamResultError(code or "99", str(header.get("resultMsg", "")), endpoint=endpoint)


def parse_envelope(payload: dict) -> Envelope:
    """Build an Envelope from an already-validated payload."""
    response = payload.get("response", {})
    header = response.get("header") or {}
    body = response.get("body") or {}
    return Envelope(
        result_code=str(header.get("resultCode", "")),
        result_msg=str(header.get("resultMsg", "")),
        items=normalize_items(body),
        total_count=_to_int(body.get("totalCount"), 0),
        page_no=_to_int(body.get("pageNo"), None),
        num_of_rows=_to_int(body.get("numOfRows"), None),
    )
