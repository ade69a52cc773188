"""
Tool call parsing module.

Extracts a single tool invocation (or plain text) from raw model output in
one of the two text encodings:
- Official: <start_function_call>call:TOOL_NAME{...json...}<end_function_call>
- Legacy:   <function_calls><invoke name="TOOL_NAME">
                <parameter name="p">value</parameter>
            </invoke></function_calls>

Also provides the encoders for both wrappers and for function-response
feedback.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from typing import Any, Collection

from dmind_fc.core.datamodels import (
    LegacyXmlResult,
    ParsedResult,
    ParseErrorResult,
    TextResult,
    ToolCallResult,
)
from dmind_fc.core.exceptions import ErrorCode
from dmind_fc.core.helpers import (
    dump_json,
    encode_xml,
    is_plain_object,
    make_parse_error,
    parse_loose_xml_value,
)

logger = logging.getLogger(__name__)

OFFICIAL_START = "<start_function_call>"
OFFICIAL_END = "<end_function_call>"
OFFICIAL_CALL_PREFIX = "call:"
LEGACY_START = "<function_calls>"
LEGACY_END = "</function_calls>"
LEGACY_INVOKE = "<invoke"
FUNCTION_RESPONSE_START = "<function_response>"
FUNCTION_RESPONSE_END = "<function_response_end>"


class ProtocolMode(str, Enum):
    """Which encodings the parser accepts."""

    OFFICIAL = "official"
    DUAL = "dual"
    LEGACY = "legacy"


class ProtocolParser:
    """Parse a single tool call from raw assistant output."""

    OFFICIAL_BLOCK_RE = re.compile(
        re.escape(OFFICIAL_START) + r"(.*?)" + re.escape(OFFICIAL_END), re.DOTALL
    )
    LEGACY_BLOCK_RE = re.compile(
        re.escape(LEGACY_START) + r"(.*?)" + re.escape(LEGACY_END), re.DOTALL
    )
    LEGACY_INVOKE_RE = re.compile(
        r"""<invoke\s+name=(?:"([^"]+)"|'([^']+)')\s*>(.*?)</invoke>""", re.DOTALL
    )
    LEGACY_PARAM_RE = re.compile(
        r"""<parameter\s+name=(?:"([^"]+)"|'([^']+)')\s*>(.*?)</parameter>""", re.DOTALL
    )

    def parse(
        self,
        raw: str,
        mode: ProtocolMode | str = ProtocolMode.OFFICIAL,
        allowed_tools: Collection[str] | None = None,
    ) -> ParsedResult:
        """Parse raw model output.

        Args:
            raw: Raw assistant text.
            mode: ``official`` and ``legacy`` accept one encoding and reject
                any trace of the other; ``dual`` tries official, then legacy.
            allowed_tools: Optional allow-list of tool names.

        Returns:
            A text, tool_call or parse_error result. Never raises for
            malformed input.
        """
        mode = ProtocolMode(mode)

        if mode is ProtocolMode.OFFICIAL:
            if self.has_legacy_markers(raw):
                return make_parse_error(
                    ErrorCode.WRONG_PROTOCOL,
                    "Legacy protocol tags detected in official mode.",
                    raw,
                )
            return self._parse_official(raw, allowed_tools)

        if mode is ProtocolMode.LEGACY:
            if self.has_official_markers(raw):
                return make_parse_error(
                    ErrorCode.WRONG_PROTOCOL,
                    "Official protocol tags detected in legacy mode.",
                    raw,
                )
            return self._parse_legacy(raw, allowed_tools)

        return self._parse_dual(raw, allowed_tools)

    @staticmethod
    def has_official_markers(raw: str) -> bool:
        return OFFICIAL_START in raw or OFFICIAL_END in raw or OFFICIAL_CALL_PREFIX in raw

    @staticmethod
    def has_legacy_markers(raw: str) -> bool:
        return LEGACY_START in raw or LEGACY_END in raw or LEGACY_INVOKE in raw

    def _parse_dual(self, raw: str, allowed_tools: Collection[str] | None) -> ParsedResult:
        official = self._parse_official(raw, allowed_tools)
        if not _is_no_wrapper(official) and not isinstance(official, TextResult):
            return official

        legacy = self._parse_legacy(raw, allowed_tools)
        if not _is_no_wrapper(legacy) and not isinstance(legacy, TextResult):
            return legacy

        if self.has_official_markers(raw) or self.has_legacy_markers(raw):
            return make_parse_error(
                ErrorCode.NO_WRAPPER,
                "Function call-like content detected but no valid wrapper found.",
                raw,
            )
        return TextResult(text=raw, raw=raw)

    def _parse_official(self, raw: str, allowed_tools: Collection[str] | None) -> ParsedResult:
        matches = list(self.OFFICIAL_BLOCK_RE.finditer(raw))
        if not matches:
            if self.has_official_markers(raw):
                return make_parse_error(
                    ErrorCode.NO_WRAPPER,
                    "Function call content detected but official wrapper is missing.",
                    raw,
                )
            return TextResult(text=raw, raw=raw)

        if len(matches) != 1:
            return make_parse_error(
                ErrorCode.INVOKE_COUNT,
                f"Official mode expects exactly 1 function call block, got {len(matches)}.",
                raw,
            )

        match = matches[0]
        if _outside_text(raw, match):
            return make_parse_error(
                ErrorCode.WRONG_PROTOCOL,
                "Official function-call output cannot mix wrapper with extra text.",
                raw,
            )

        return self._parse_official_payload(match.group(1), raw, allowed_tools)

    def _parse_official_payload(
        self, payload: str, raw: str, allowed_tools: Collection[str] | None
    ) -> ParsedResult:
        trimmed = payload.strip()
        if not trimmed.startswith(OFFICIAL_CALL_PREFIX):
            return make_parse_error(
                ErrorCode.JSON_INVALID,
                "Official function call must start with `call:`.",
                raw,
            )

        body = trimmed[len(OFFICIAL_CALL_PREFIX):]
        json_index = body.find("{")
        if json_index < 0:
            return make_parse_error(
                ErrorCode.JSON_INVALID,
                "Official function call payload is missing JSON args.",
                raw,
            )

        tool = body[:json_index].strip()
        args_text = body[json_index:].strip()

        if not tool:
            return make_parse_error(ErrorCode.PARAM_MISSING, "Tool name is missing.", raw)
        if allowed_tools is not None and tool not in allowed_tools:
            return make_parse_error(ErrorCode.TOOL_UNKNOWN, f"Unknown tool: {tool}.", raw)

        try:
            args = json.loads(args_text)
        except json.JSONDecodeError as e:
            return make_parse_error(
                ErrorCode.JSON_INVALID, f"Failed to parse tool args JSON: {e}", raw
            )

        if not is_plain_object(args):
            return make_parse_error(ErrorCode.JSON_INVALID, "Tool args must be a JSON object.", raw)

        logger.debug("Parsed official tool call: %s", tool)
        return ToolCallResult(tool=tool, args=args, raw=raw, protocol="official")

    def _parse_legacy(self, raw: str, allowed_tools: Collection[str] | None) -> ParsedResult:
        matches = list(self.LEGACY_BLOCK_RE.finditer(raw))
        if not matches:
            if self.has_legacy_markers(raw):
                return make_parse_error(
                    ErrorCode.NO_WRAPPER,
                    "Legacy function call tags detected but wrapper is incomplete.",
                    raw,
                )
            return TextResult(text=raw, raw=raw)

        if len(matches) != 1:
            return make_parse_error(
                ErrorCode.INVOKE_COUNT,
                f"Legacy mode expects exactly 1 function_calls block, got {len(matches)}.",
                raw,
            )

        match = matches[0]
        if _outside_text(raw, match):
            return make_parse_error(
                ErrorCode.WRONG_PROTOCOL,
                "Legacy function-call output cannot mix wrapper with extra text.",
                raw,
            )

        return self._parse_legacy_payload(match.group(1), raw, allowed_tools)

    def _parse_legacy_payload(
        self, payload: str, raw: str, allowed_tools: Collection[str] | None
    ) -> ParsedResult:
        invokes = list(self.LEGACY_INVOKE_RE.finditer(payload))
        if len(invokes) != 1:
            return make_parse_error(
                ErrorCode.INVOKE_COUNT,
                f"Legacy payload must contain exactly 1 invoke node, got {len(invokes)}.",
                raw,
            )

        dq_name, sq_name, invoke_body = invokes[0].groups()
        tool = (dq_name or sq_name or "").strip()
        if not tool:
            return make_parse_error(ErrorCode.PARAM_MISSING, "Tool name is missing.", raw)
        if allowed_tools is not None and tool not in allowed_tools:
            return make_parse_error(ErrorCode.TOOL_UNKNOWN, f"Unknown tool: {tool}.", raw)

        args: dict[str, Any] = {}
        for param in self.LEGACY_PARAM_RE.finditer(invoke_body):
            dq_key, sq_key, value = param.groups()
            key = (dq_key or sq_key or "").strip()
            if not key:
                continue
            args[key] = parse_loose_xml_value(value)

        logger.debug("Parsed legacy tool call: %s", tool)
        return ToolCallResult(tool=tool, args=args, raw=raw, protocol="legacy")


def _is_no_wrapper(result: ParsedResult) -> bool:
    return isinstance(result, ParseErrorResult) and result.code is ErrorCode.NO_WRAPPER


def _outside_text(raw: str, match: re.Match) -> bool:
    """True when non-whitespace text surrounds the matched block."""
    outside = raw[:match.start()] + raw[match.end():]
    return bool(outside.strip())


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------

def format_official(tool: str, args: dict[str, Any]) -> str:
    """Encode a call with the official wrapper."""
    return f"{OFFICIAL_START}{OFFICIAL_CALL_PREFIX}{tool}{dump_json(args)}{OFFICIAL_END}"


def _serialize_xml_value(value: Any) -> str:
    if isinstance(value, str):
        return encode_xml(value)
    if value is None or isinstance(value, (bool, int, float)):
        return dump_json(value)
    return encode_xml(dump_json(value))


def tool_call_to_legacy_xml(call: ToolCallResult) -> str:
    """Encode a call as legacy pseudo-XML."""
    params = "".join(
        f'<parameter name="{encode_xml(name)}">{_serialize_xml_value(value)}</parameter>'
        for name, value in call.args.items()
    )
    return f'{LEGACY_START}<invoke name="{call.tool}">{params}</invoke>{LEGACY_END}'


def convert_official_to_legacy_xml(
    raw: str,
    allowed_tools: Collection[str] | None = None,
) -> LegacyXmlResult | ParseErrorResult:
    """Re-encode an official-wrapper call as legacy XML."""
    parsed = parse_assistant_output(raw, ProtocolMode.OFFICIAL, allowed_tools)
    if isinstance(parsed, ParseErrorResult):
        return parsed
    if isinstance(parsed, TextResult):
        return make_parse_error(
            ErrorCode.NO_WRAPPER,
            "Input is text; no official function call found.",
            raw,
        )
    return LegacyXmlResult(xml=tool_call_to_legacy_xml(parsed))


def wrap_function_response(payload: Any) -> str:
    """Bracket a JSON payload in the function-response markers."""
    return f"{FUNCTION_RESPONSE_START}{dump_json(payload)}{FUNCTION_RESPONSE_END}"


_parser = ProtocolParser()


def parse_assistant_output(
    raw: str,
    mode: ProtocolMode | str = ProtocolMode.OFFICIAL,
    allowed_tools: Collection[str] | None = None,
) -> ParsedResult:
    """Parse raw model output with the shared (stateless) parser."""
    return _parser.parse(raw, mode, allowed_tools)
