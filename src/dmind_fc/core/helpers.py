"""
Helper functions shared by the parser, validator and interop layers.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

from pydantic import BaseModel

from dmind_fc.core.datamodels import ParseErrorResult
from dmind_fc.core.exceptions import ErrorCode

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_BASE58_ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")
_DECIMAL_RE = re.compile(r"^-?\d+(\.\d+)?$")

# Order matters: &amp; is decoded last and encoded first.
_XML_DECODE = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&apos;", "'"),
    ("&amp;", "&"),
)
_XML_ENCODE = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def make_parse_error(code: ErrorCode, message: str, raw: str) -> ParseErrorResult:
    """Build a parse_error result."""
    return ParseErrorResult(code=code, message=message, raw=raw)


def is_plain_object(value: Any) -> bool:
    return isinstance(value, dict)


def is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and len(value.strip()) > 0


def is_finite_number(value: Any) -> bool:
    """True for int/float values that are finite. Booleans are not numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_likely_token_address(value: str) -> bool:
    """Heuristic check for an EVM (0x + 40 hex) or Solana (base58) address."""
    trimmed = value.strip()
    if not trimmed:
        return False
    if _EVM_ADDRESS_RE.match(trimmed):
        return True
    if _BASE58_ADDRESS_RE.match(trimmed):
        return True
    return False


def decode_xml(value: str) -> str:
    for entity, char in _XML_DECODE:
        value = value.replace(entity, char)
    return value


def encode_xml(value: str) -> str:
    for char, entity in _XML_ENCODE:
        value = value.replace(char, entity)
    return value


def parse_loose_xml_value(raw: str) -> Any:
    """Coerce the text of an untyped XML parameter.

    Recognizes ``true``/``false``/``null``, decimal numbers and embedded
    JSON objects or arrays. Anything else is returned as the decoded,
    trimmed string.
    """
    value = decode_xml(raw).strip()
    if not value:
        return ""

    if value == "true":
        return True
    if value == "false":
        return False
    if value == "null":
        return None

    if _DECIMAL_RE.match(value):
        return float(value) if "." in value else int(value)

    if (value.startswith("{") and value.endswith("}")) or (
        value.startswith("[") and value.endswith("]")
    ):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value

    return value


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dump_json(value: Any) -> str:
    """Serialize compactly, the way the wire protocol expects."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_json_default)
