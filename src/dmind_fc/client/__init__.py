"""
Chat-completions client for the dmind_fc package.
"""

from dmind_fc.client.chat import ChatClient
from dmind_fc.client.types import (
    ChatAssistantMessage,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ChatResponseChoice,
    ContentPartImage,
    ContentPartText,
    ImageURL,
    NamedToolChoice,
    ResponseFormat,
    ToolDefinition,
    ToolFunctionDefinition,
    parse_chat_response,
)

__all__ = [
    "ChatClient",
    # Request
    "ChatRequest",
    "ChatMessage",
    "ContentPartText",
    "ContentPartImage",
    "ImageURL",
    "ToolDefinition",
    "ToolFunctionDefinition",
    "NamedToolChoice",
    "ResponseFormat",
    # Response
    "ChatResponse",
    "ChatResponseChoice",
    "ChatAssistantMessage",
    "parse_chat_response",
]
