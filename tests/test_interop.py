#!/usr/bin/env python3
"""
Tests for OpenAI-style message interop.
"""

import json

import pytest

from dmind_fc.core import ErrorCode, ParseErrorResult, ToolCallResult
from dmind_fc.engine.interop import (
    AssistantMessageResult,
    OpenAIAssistantMessage,
    RawResult,
    build_tool_call_id,
    normalize_assistant_output,
    openai_message_to_raw,
    raw_to_openai_message,
    tool_call_to_openai_message,
    tool_result_message,
)

ALLOWED = {"SEARCH_TOKEN", "EXECUTE_SWAP"}
OFFICIAL_CALL = '<start_function_call>call:SEARCH_TOKEN{"symbol":"USDC","chain":"solana"}<end_function_call>'


def tool_call(name="SEARCH_TOKEN", arguments='{"symbol":"USDC"}', call_id="call_1"):
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}


def assistant(content=None, tool_calls=None):
    message = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return message


# ============================================================================
# Direction A Tests
# ============================================================================

class TestRawToOpenAI:
    """Tests for raw text -> assistant message."""

    def test_plain_text(self):
        """Test plain text becomes content with no tool calls."""
        result = raw_to_openai_message("Hello there.", allowed_tools=ALLOWED)
        assert isinstance(result, AssistantMessageResult)
        assert result.protocol == "dmind_official"
        assert result.message.content == "Hello there."
        assert result.message.tool_calls is None

    def test_tool_call(self):
        """Test an official call becomes exactly one tool_calls entry."""
        result = raw_to_openai_message(OFFICIAL_CALL, allowed_tools=ALLOWED)
        assert isinstance(result, AssistantMessageResult)
        assert result.raw == OFFICIAL_CALL
        message = result.message
        assert message.content is None
        assert len(message.tool_calls) == 1
        call = message.tool_calls[0]
        assert call.type == "function"
        assert call.function.name == "SEARCH_TOKEN"
        assert call.function.arguments == '{"symbol":"USDC","chain":"solana"}'
        assert call.id.startswith("call_search_token_")

    def test_deterministic_id(self):
        """Test the same call always gets the same id."""
        first = raw_to_openai_message(OFFICIAL_CALL, allowed_tools=ALLOWED)
        second = raw_to_openai_message(OFFICIAL_CALL, allowed_tools=ALLOWED)
        assert first.message.tool_calls[0].id == second.message.tool_calls[0].id

    def test_id_depends_on_arguments(self):
        """Test different arguments give different ids."""
        assert build_tool_call_id("T", '{"a":1}') != build_tool_call_id("T", '{"a":2}')
        assert build_tool_call_id("T", "{}") == build_tool_call_id("T", "{}")

    def test_legacy_protocol(self):
        """Test legacy calls are tagged dmind_legacy."""
        raw = '<function_calls><invoke name="SEARCH_TOKEN"><parameter name="symbol">USDC</parameter></invoke></function_calls>'
        result = raw_to_openai_message(raw, mode="legacy", allowed_tools=ALLOWED)
        assert result.protocol == "dmind_legacy"
        assert json.loads(result.message.tool_calls[0].function.arguments) == {"symbol": "USDC"}

    def test_parse_error_passthrough(self):
        """Test parse errors are returned unchanged."""
        result = raw_to_openai_message(
            '<start_function_call>call:NOPE{}<end_function_call>', allowed_tools=ALLOWED
        )
        assert isinstance(result, ParseErrorResult)
        assert result.code == ErrorCode.TOOL_UNKNOWN

    def test_non_ascii_arguments(self):
        """Test arguments keep non-ASCII characters unescaped."""
        message = tool_call_to_openai_message(ToolCallResult(tool="SEARCH_TOKEN", args={"keyword": "币安"}))
        assert message.tool_calls[0].function.arguments == '{"keyword":"币安"}'


# ============================================================================
# Normalization Tests
# ============================================================================

class TestNormalize:
    """Tests for normalize_assistant_output."""

    def test_string_is_parsed(self):
        """Test strings go through Direction A."""
        result = normalize_assistant_output(OFFICIAL_CALL, allowed_tools=ALLOWED)
        assert result.protocol == "dmind_official"

    def test_assistant_dict(self):
        """Test an assistant dict is kept as-is."""
        message = assistant("hi")
        result = normalize_assistant_output(message)
        assert isinstance(result, AssistantMessageResult)
        assert result.protocol == "openai"
        assert result.message == message

    def test_assistant_model(self):
        """Test an assistant model is accepted."""
        result = normalize_assistant_output(OpenAIAssistantMessage(content="hi"))
        assert result.message == {"role": "assistant", "content": "hi"}

    def test_completion_payload(self):
        """Test choices[0].message is extracted from completions."""
        payload = {"id": "x", "choices": [{"index": 0, "message": assistant("done")}]}
        result = normalize_assistant_output(payload)
        assert result.message["content"] == "done"

    def test_completion_missing_message(self):
        """Test an empty choices list is E_PARAM_MISSING."""
        result = normalize_assistant_output({"choices": []})
        assert isinstance(result, ParseErrorResult)
        assert result.code == ErrorCode.PARAM_MISSING
        assert result.message == "OpenAI completion choices[0].message is missing."

    @pytest.mark.parametrize("value", [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": 5},
        {"role": "assistant", "tool_calls": {}},
        42,
    ])
    def test_bad_shape(self, value):
        """Test non-assistant shapes are E_PARAM_INVALID."""
        result = normalize_assistant_output(value)
        assert isinstance(result, ParseErrorResult)
        assert result.code == ErrorCode.PARAM_INVALID


# ============================================================================
# Direction B Tests
# ============================================================================

class TestOpenAIToRaw:
    """Tests for assistant message -> raw text."""

    def test_official_encoding(self):
        """Test a single call encodes to the official wrapper."""
        result = openai_message_to_raw(assistant(tool_calls=[tool_call()]))
        assert isinstance(result, RawResult)
        assert result.raw == '<start_function_call>call:SEARCH_TOKEN{"symbol":"USDC"}<end_function_call>'

    def test_legacy_encoding(self):
        """Test a single call encodes to legacy XML."""
        result = openai_message_to_raw(
            assistant(tool_calls=[tool_call(arguments='{"symbol":"A&B","limit":2}')]), "legacy"
        )
        assert result.raw == (
            '<function_calls><invoke name="SEARCH_TOKEN">'
            '<parameter name="symbol">A&amp;B</parameter>'
            '<parameter name="limit">2</parameter>'
            '</invoke></function_calls>'
        )

    def test_text_only(self):
        """Test a message without tool_calls returns its content."""
        assert openai_message_to_raw(assistant("plain answer")).raw == "plain answer"
        assert openai_message_to_raw(assistant(None)).raw == ""

    def test_completion_payload_input(self):
        """Test a whole completion payload encodes its first choice."""
        payload = {"choices": [{"index": 0, "message": assistant(tool_calls=[tool_call()])}]}
        result = openai_message_to_raw(payload)
        assert isinstance(result, RawResult)
        assert result.raw == '<start_function_call>call:SEARCH_TOKEN{"symbol":"USDC"}<end_function_call>'

    def test_structured_message_stays_a_dict(self):
        """Test normalized structured input is kept as a plain dict."""
        message = assistant(tool_calls=[tool_call()])
        normalized = normalize_assistant_output(message)
        assert type(normalized.message) is dict
        assert normalized.message["tool_calls"][0]["id"] == "call_1"
        assert isinstance(raw_to_openai_message(OFFICIAL_CALL).message, OpenAIAssistantMessage)

    @pytest.mark.parametrize("count", [0, 2, 3])
    def test_invoke_count(self, count):
        """Test anything but exactly one tool call is E_INVOKE_COUNT."""
        calls = [tool_call(call_id=f"call_{i}") for i in range(count)]
        result = openai_message_to_raw(assistant(tool_calls=calls))
        assert isinstance(result, ParseErrorResult)
        assert result.code == ErrorCode.INVOKE_COUNT
        assert result.message == f"DMind protocol only supports exactly 1 tool call, got {count}."

    def test_content_with_call(self):
        """Test mixing text and a tool call is E_WRONG_PROTOCOL."""
        result = openai_message_to_raw(assistant("Sure!", [tool_call()]))
        assert result.code == ErrorCode.WRONG_PROTOCOL

    def test_whitespace_content_allowed(self):
        """Test blank content alongside a call is ignored."""
        assert isinstance(openai_message_to_raw(assistant("  \n", [tool_call()])), RawResult)

    def test_string_input(self):
        """Test raw strings are rejected."""
        result = openai_message_to_raw(OFFICIAL_CALL)
        assert result.code == ErrorCode.PARAM_INVALID

    def test_wrong_call_type(self):
        """Test non-function tool calls are E_PARAM_INVALID."""
        call = tool_call()
        call["type"] = "retrieval"
        assert openai_message_to_raw(assistant(tool_calls=[call])).code == ErrorCode.PARAM_INVALID

    def test_missing_name(self):
        """Test a blank function name is E_PARAM_MISSING."""
        result = openai_message_to_raw(assistant(tool_calls=[tool_call(name=" ")]))
        assert result.code == ErrorCode.PARAM_MISSING

    def test_unknown_tool(self):
        """Test the allow-list is enforced."""
        result = openai_message_to_raw(assistant(tool_calls=[tool_call(name="NOPE")]), allowed_tools=ALLOWED)
        assert result.code == ErrorCode.TOOL_UNKNOWN

    def test_dict_arguments(self):
        """Test already-decoded arguments are accepted."""
        result = openai_message_to_raw(assistant(tool_calls=[tool_call(arguments={"symbol": "SOL"})]))
        assert result.raw == '<start_function_call>call:SEARCH_TOKEN{"symbol":"SOL"}<end_function_call>'

    def test_blank_arguments(self):
        """Test blank argument strings decode to an empty object."""
        result = openai_message_to_raw(assistant(tool_calls=[tool_call(arguments="  ")]))
        assert result.raw == "<start_function_call>call:SEARCH_TOKEN{}<end_function_call>"

    @pytest.mark.parametrize("arguments", ["{bad", "[1, 2]", 7])
    def test_bad_arguments(self, arguments):
        """Test undecodable or non-object arguments are E_JSON_INVALID."""
        result = openai_message_to_raw(assistant(tool_calls=[tool_call(arguments=arguments)]))
        assert isinstance(result, ParseErrorResult)
        assert result.code == ErrorCode.JSON_INVALID

    def test_round_trip_through_direction_a(self):
        """Test Direction B accepts what Direction A produces."""
        forward = raw_to_openai_message(OFFICIAL_CALL, allowed_tools=ALLOWED)
        back = openai_message_to_raw(forward.message, allowed_tools=ALLOWED)
        assert back.raw == OFFICIAL_CALL


# ============================================================================
# Tool Result Message Tests
# ============================================================================

class TestToolResultMessage:
    """Tests for tool_result_message."""

    def test_payload_serialized(self):
        """Test the payload is serialized compactly."""
        message = tool_result_message("call_1", {"price": 1.0, "ok": True})
        assert message.role == "tool"
        assert message.tool_call_id == "call_1"
        assert message.content == '{"price":1.0,"ok":true}'


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
