"""
Engine module for the dmind_fc package.

Provides the protocol parser, schema validator, developer-prompt gate,
OpenAI interop, streaming reassembly and the FunctionCallEngine run loop.
"""

from dmind_fc.engine.chat import FunctionCallEngine
from dmind_fc.engine.contract import (
    DEFAULT_REQUIRED_SNIPPETS,
    enforce_developer_prompt,
    is_developer_prompt_compliant,
    normalize_prompt_text,
)
from dmind_fc.engine.interop import (
    AssistantMessageResult,
    FunctionCall,
    OpenAIAssistantMessage,
    OpenAIToolCall,
    OpenAIToolMessage,
    RawResult,
    build_tool_call_id,
    normalize_assistant_output,
    openai_message_to_raw,
    raw_to_openai_message,
    tool_result_message,
)
from dmind_fc.engine.profiles import (
    BUILTIN_VALIDATORS,
    DMIND_3_NANO_DEVELOPER_PROMPT,
    DMIND_3_NANO_PROFILE,
    DeveloperPromptPolicy,
    ModelProfile,
    ParameterSchema,
    ParameterType,
    ToolSchema,
    load_profile,
    tool_name_set,
)
from dmind_fc.engine.runtime import run_loop
from dmind_fc.engine.streaming import (
    ChatStreamingChunk,
    ChatStreamingChoice,
    ChatStreamingDelta,
    ChatStreamingToolCall,
    SSEDecoder,
    TokenUsage,
    ToolCallAccumulator,
    parse_sse_stream,
    parse_streaming_chunk,
)
from dmind_fc.engine.toolcall import (
    FUNCTION_RESPONSE_END,
    FUNCTION_RESPONSE_START,
    ProtocolMode,
    ProtocolParser,
    convert_official_to_legacy_xml,
    format_official,
    parse_assistant_output,
    tool_call_to_legacy_xml,
    wrap_function_response,
)
from dmind_fc.engine.validator import validate, validate_detailed

__all__ = [
    "FunctionCallEngine",
    "run_loop",
    # Parser
    "ProtocolMode",
    "ProtocolParser",
    "parse_assistant_output",
    "format_official",
    "tool_call_to_legacy_xml",
    "convert_official_to_legacy_xml",
    "wrap_function_response",
    "FUNCTION_RESPONSE_START",
    "FUNCTION_RESPONSE_END",
    # Profiles and validation
    "ModelProfile",
    "ToolSchema",
    "ParameterSchema",
    "ParameterType",
    "DeveloperPromptPolicy",
    "DMIND_3_NANO_PROFILE",
    "DMIND_3_NANO_DEVELOPER_PROMPT",
    "BUILTIN_VALIDATORS",
    "load_profile",
    "tool_name_set",
    "validate",
    "validate_detailed",
    # Developer prompt
    "DEFAULT_REQUIRED_SNIPPETS",
    "enforce_developer_prompt",
    "is_developer_prompt_compliant",
    "normalize_prompt_text",
    # Interop
    "AssistantMessageResult",
    "FunctionCall",
    "OpenAIAssistantMessage",
    "OpenAIToolCall",
    "OpenAIToolMessage",
    "RawResult",
    "build_tool_call_id",
    "normalize_assistant_output",
    "openai_message_to_raw",
    "raw_to_openai_message",
    "tool_result_message",
    # Streaming
    "ChatStreamingChunk",
    "ChatStreamingChoice",
    "ChatStreamingDelta",
    "ChatStreamingToolCall",
    "SSEDecoder",
    "TokenUsage",
    "ToolCallAccumulator",
    "parse_sse_stream",
    "parse_streaming_chunk",
]
