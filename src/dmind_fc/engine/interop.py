"""
Conversion between the text protocol and OpenAI-style structured messages.

Direction A turns raw model text into an assistant message carrying at most
one ``tool_calls`` entry. Direction B encodes such a message back into the
official or legacy text protocol. The text protocol has no way to express
parallel calls, so exactly one tool call is accepted.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Collection, Literal, Union

from pydantic import BaseModel, Field

from dmind_fc.core.datamodels import ParseErrorResult, TextResult, ToolCallResult
from dmind_fc.core.exceptions import ErrorCode
from dmind_fc.core.helpers import dump_json, is_plain_object, make_parse_error
from dmind_fc.engine.toolcall import (
    ProtocolMode,
    format_official,
    parse_assistant_output,
    tool_call_to_legacy_xml,
)

logger = logging.getLogger(__name__)

InteropProtocol = Literal["dmind_official", "dmind_legacy", "openai"]


# ============================================================================
# Models
# ============================================================================

class FunctionCall(BaseModel):
    name: str
    arguments: str


class OpenAIToolCall(BaseModel):
    """Structured tool call as emitted by chat-completions APIs."""
    id: str
    type: Literal["function"] = "function"
    function: FunctionCall


class OpenAIAssistantMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str | None = None
    tool_calls: list[OpenAIToolCall] | None = None


class OpenAIToolMessage(BaseModel):
    role: Literal["tool"] = "tool"
    tool_call_id: str
    content: str


class AssistantMessageResult(BaseModel):
    """Successful Direction A (or normalization) result."""
    type: Literal["assistant_message"] = "assistant_message"
    message: dict[str, Any] | OpenAIAssistantMessage = Field(union_mode="left_to_right")
    protocol: InteropProtocol
    raw: Any = None


class RawResult(BaseModel):
    """Successful Direction B result: text in the requested encoding."""
    type: Literal["raw"] = "raw"
    raw: str


InteropResult = Union[AssistantMessageResult, ParseErrorResult]


# ============================================================================
# Helpers
# ============================================================================

def build_tool_call_id(tool: str, arguments: str) -> str:
    """Deterministic id for a call: same tool and arguments, same id."""
    digest = hashlib.sha256(f"{tool}:{arguments}".encode("utf-8")).hexdigest()[:16]
    return f"call_{tool.lower()}_{digest}"


def _dump_raw(value: Any) -> str:
    if isinstance(value, BaseModel):
        return value.model_dump_json(exclude_none=True)
    try:
        return dump_json(value)
    except TypeError:
        return repr(value)


def _as_dict(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_none=True)
    return value


def _is_assistant_message_shape(message: Any) -> bool:
    if not is_plain_object(message):
        return False
    if message.get("role") != "assistant":
        return False
    content = message.get("content")
    if content is not None and not isinstance(content, str):
        return False
    tool_calls = message.get("tool_calls")
    if tool_calls is not None and not isinstance(tool_calls, list):
        return False
    return True


def _parse_tool_args(arguments: Any, raw: str) -> dict[str, Any] | ParseErrorResult:
    if is_plain_object(arguments):
        return arguments

    if not isinstance(arguments, str):
        return make_parse_error(
            ErrorCode.JSON_INVALID,
            "OpenAI tool call `function.arguments` must be a JSON string.",
            _dump_raw(arguments),
        )

    text = arguments.strip()
    if not text:
        return {}

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        return make_parse_error(
            ErrorCode.JSON_INVALID,
            f"OpenAI tool call arguments JSON parse failed: {e}",
            arguments,
        )

    if not is_plain_object(parsed):
        return make_parse_error(
            ErrorCode.JSON_INVALID,
            "OpenAI tool call arguments must decode to a JSON object.",
            arguments,
        )
    return parsed


def _tool_call_from_openai(
    call: Any,
    raw: str,
    allowed_tools: Collection[str] | None,
) -> ToolCallResult | ParseErrorResult:
    function = call.get("function") if is_plain_object(call) else None
    if not is_plain_object(call) or call.get("type") != "function" or not is_plain_object(function):
        return make_parse_error(
            ErrorCode.PARAM_INVALID,
            "OpenAI tool call must be type=function with function payload.",
            raw,
        )

    name = function.get("name")
    if not isinstance(name, str) or not name.strip():
        return make_parse_error(ErrorCode.PARAM_MISSING, "OpenAI tool call missing function.name.", raw)
    if allowed_tools is not None and name not in allowed_tools:
        return make_parse_error(ErrorCode.TOOL_UNKNOWN, f"Unknown tool: {name}.", raw)

    args = _parse_tool_args(function.get("arguments"), raw)
    if isinstance(args, ParseErrorResult):
        return args
    return ToolCallResult(tool=name, args=args, raw=raw, protocol="official")


# ============================================================================
# Direction A: text protocol -> structured message
# ============================================================================

def tool_call_to_openai_message(call: ToolCallResult) -> OpenAIAssistantMessage:
    arguments = dump_json(call.args)
    return OpenAIAssistantMessage(
        content=None,
        tool_calls=[OpenAIToolCall(
            id=build_tool_call_id(call.tool, arguments),
            function=FunctionCall(name=call.tool, arguments=arguments),
        )],
    )


def raw_to_openai_message(
    raw: str,
    mode: ProtocolMode | str = ProtocolMode.OFFICIAL,
    allowed_tools: Collection[str] | None = None,
) -> InteropResult:
    """Parse raw model text into an OpenAI-style assistant message.

    Parse errors are returned unchanged.
    """
    parsed = parse_assistant_output(raw, mode, allowed_tools)

    if isinstance(parsed, ParseErrorResult):
        return parsed

    if isinstance(parsed, TextResult):
        return AssistantMessageResult(
            message=OpenAIAssistantMessage(content=parsed.text),
            protocol="dmind_official",
            raw=raw,
        )

    return AssistantMessageResult(
        message=tool_call_to_openai_message(parsed),
        protocol="dmind_official" if parsed.protocol == "official" else "dmind_legacy",
        raw=raw,
    )


def normalize_assistant_output(
    output: Any,
    mode: ProtocolMode | str = ProtocolMode.OFFICIAL,
    allowed_tools: Collection[str] | None = None,
) -> InteropResult:
    """Normalize raw text, an assistant message or a completion payload.

    Args:
        output: Raw model text, an assistant message (dict or model), or a
            completion-like payload with a ``choices`` list.
        mode: Parse mode used when *output* is raw text.
        allowed_tools: Optional allow-list used when *output* is raw text.

    Returns:
        AssistantMessageResult, or a parse_error when the input has the wrong
        shape. Structured input is kept as given (``protocol="openai"``).
    """
    if isinstance(output, str):
        return raw_to_openai_message(output, mode, allowed_tools)

    output = _as_dict(output)

    if is_plain_object(output) and isinstance(output.get("choices"), list):
        choices = output["choices"]
        message = choices[0].get("message") if choices and is_plain_object(choices[0]) else None
        if not message:
            return make_parse_error(
                ErrorCode.PARAM_MISSING,
                "OpenAI completion choices[0].message is missing.",
                _dump_raw(output),
            )
        output = _as_dict(message)

    if not _is_assistant_message_shape(output):
        return make_parse_error(
            ErrorCode.PARAM_INVALID,
            "Input does not match OpenAI assistant message shape.",
            _dump_raw(output),
        )

    return AssistantMessageResult(message=output, protocol="openai", raw=output)


# ============================================================================
# Direction B: structured message -> text protocol
# ============================================================================

def openai_message_to_raw(
    message: Any,
    protocol: Literal["official", "legacy"] = "official",
    allowed_tools: Collection[str] | None = None,
) -> RawResult | ParseErrorResult:
    """Encode an OpenAI-style assistant message in the text protocol.

    A message without ``tool_calls`` becomes its content verbatim. A message
    with ``tool_calls`` must carry exactly one call and no text content.
    """
    if isinstance(message, str):
        return make_parse_error(
            ErrorCode.PARAM_INVALID,
            "Input does not match OpenAI assistant message shape.",
            message,
        )

    normalized = normalize_assistant_output(message, ProtocolMode.OFFICIAL, allowed_tools)
    if isinstance(normalized, ParseErrorResult):
        return normalized

    body = _as_dict(normalized.message)
    raw = _dump_raw(body)
    tool_calls = body.get("tool_calls")
    content = body.get("content") or ""

    if tool_calls is None:
        return RawResult(raw=content)

    if len(tool_calls) != 1:
        return make_parse_error(
            ErrorCode.INVOKE_COUNT,
            f"DMind protocol only supports exactly 1 tool call, got {len(tool_calls)}.",
            raw,
        )

    if content.strip():
        return make_parse_error(
            ErrorCode.WRONG_PROTOCOL,
            "DMind tool-call output cannot mix text content with tool_calls.",
            raw,
        )

    call = _tool_call_from_openai(tool_calls[0], raw, allowed_tools)
    if isinstance(call, ParseErrorResult):
        return call

    logger.debug("Encoding OpenAI tool call %s as %s", call.tool, protocol)
    if protocol == "official":
        return RawResult(raw=format_official(call.tool, call.args))
    return RawResult(raw=tool_call_to_legacy_xml(call))


def tool_result_message(tool_call_id: str, payload: Any) -> OpenAIToolMessage:
    """Build the ``role="tool"`` message answering a structured tool call."""
    return OpenAIToolMessage(tool_call_id=tool_call_id, content=dump_json(payload))

