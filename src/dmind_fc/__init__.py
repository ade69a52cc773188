"""
dmind_fc - Function-calling protocol engine for DMind models

Lets an application exchange tool-calling turns with a text-completion model
that writes its tool calls inline, either in the official
``<start_function_call>call:NAME{...}<end_function_call>`` form or the legacy
``<function_calls>`` pseudo-XML form.

Example usage:
    from dmind_fc import FunctionCallEngine, Message, ToolRegistry

    tools = ToolRegistry()

    @tools.register
    async def SEARCH_TOKEN(args: dict) -> dict:
        return {"symbol": args.get("symbol"), "price": 1.0}

    # Use with ChatClient (or any async messages -> text callable)
    from dmind_fc import ChatClient

    client = ChatClient(api_key="...", base_url="https://example.invalid/v1")
    engine = FunctionCallEngine(generate=client.as_generate(), tools=tools)
    result = await engine.run([Message(role="user", content="Find USDC on ethereum")])
"""

__version__ = "0.1.0"

# Core exports
from dmind_fc.core import (
    BasicValidationResult,
    ChatAPIError,
    ConfigError,
    ErrorCode,
    LegacyXmlResult,
    Message,
    ParsedResult,
    ParseErrorResult,
    RunLoopResult,
    SDKError,
    TextResult,
    ToolCallResult,
    ToolNotFoundError,
    ToolRegistry,
    ValidationIssue,
    ValidationResult,
    ValidatorRegistry,
)

# Engine exports
from dmind_fc.engine import (
    DMIND_3_NANO_PROFILE,
    FunctionCallEngine,
    ModelProfile,
    ProtocolMode,
    enforce_developer_prompt,
    load_profile,
    normalize_assistant_output,
    openai_message_to_raw,
    parse_assistant_output,
    raw_to_openai_message,
    run_loop,
    validate,
    validate_detailed,
)


# Lazy import for ChatClient (pulls in httpx)
def __getattr__(name):
    if name == "ChatClient":
        from dmind_fc.client import ChatClient
        return ChatClient
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    # Version
    "__version__",
    # Core
    "ToolRegistry",
    "ValidatorRegistry",
    "Message",
    "ParsedResult",
    "TextResult",
    "ToolCallResult",
    "ParseErrorResult",
    "ValidationIssue",
    "ValidationResult",
    "BasicValidationResult",
    "LegacyXmlResult",
    "RunLoopResult",
    "ErrorCode",
    "SDKError",
    "ToolNotFoundError",
    "ChatAPIError",
    "ConfigError",
    # Engine
    "FunctionCallEngine",
    "ModelProfile",
    "DMIND_3_NANO_PROFILE",
    "ProtocolMode",
    "load_profile",
    "parse_assistant_output",
    "validate",
    "validate_detailed",
    "enforce_developer_prompt",
    "raw_to_openai_message",
    "normalize_assistant_output",
    "openai_message_to_raw",
    "run_loop",
    # Client (lazy loaded)
    "ChatClient",
]
