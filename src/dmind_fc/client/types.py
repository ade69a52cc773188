"""
Request and response models for the chat-completions API.

Field names follow the wire format (snake_case) so requests serialize with a
plain ``model_dump``; unset optional fields are dropped from the body.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, Field

from dmind_fc.engine.interop import OpenAIToolCall
from dmind_fc.engine.streaming import TokenUsage

ChatRole = Literal["developer", "system", "user", "assistant", "tool"]


# ============================================================================
# Messages
# ============================================================================

class ContentPartText(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageURL(BaseModel):
    url: str
    detail: Literal["auto", "low", "high"] | None = None


class ContentPartImage(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageURL


ContentPart = Union[ContentPartText, ContentPartImage]


class ChatMessage(BaseModel):
    """One conversation turn in wire shape.

    ``tool_calls``, ``reasoning`` and ``refusal`` apply to assistant turns and
    ``tool_call_id`` to tool turns.
    """
    role: ChatRole
    content: str | list[ContentPart] | None = None
    name: str | None = None
    tool_calls: list[OpenAIToolCall] | None = None
    tool_call_id: str | None = None
    reasoning: str | None = None
    refusal: str | None = None


# ============================================================================
# Tools
# ============================================================================

class ToolFunctionDefinition(BaseModel):
    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None
    strict: bool | None = None


class ToolDefinition(BaseModel):
    type: Literal["function"] = "function"
    function: ToolFunctionDefinition


class NamedFunction(BaseModel):
    name: str


class NamedToolChoice(BaseModel):
    type: Literal["function"] = "function"
    function: NamedFunction


ToolChoiceOption = Union[Literal["auto", "none", "required"], NamedToolChoice]


class ResponseFormat(BaseModel):
    type: Literal["text", "json_object"]


# ============================================================================
# Request
# ============================================================================

class ChatRequest(BaseModel):
    """Chat-completions request."""
    messages: list[ChatMessage]
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    max_completion_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop: str | list[str] | None = None
    seed: int | None = None
    tools: list[ToolDefinition] | None = None
    tool_choice: ToolChoiceOption | None = None
    parallel_tool_calls: bool | None = None
    response_format: ResponseFormat | None = None

    def to_body(self, default_model: str | None = None) -> dict[str, Any]:
        """Serialize to a JSON body, without messages (the client adds them)."""
        body = self.model_dump(exclude_none=True, exclude={"messages"})
        if not body.get("tools"):
            body.pop("tools", None)
        model = self.model or default_model
        if model:
            body["model"] = model
        return body


# ============================================================================
# Response
# ============================================================================

class ChatAssistantMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str | None = None
    tool_calls: list[OpenAIToolCall] | None = None
    reasoning: str | None = None
    refusal: str | None = None


class ChatResponseChoice(BaseModel):
    index: int = 0
    message: ChatAssistantMessage = Field(default_factory=ChatAssistantMessage)
    finish_reason: str | None = None


class ChatResponse(BaseModel):
    id: str = ""
    object: Literal["chat.completion"] = "chat.completion"
    created: int = 0
    model: str = ""
    choices: list[ChatResponseChoice] = Field(default_factory=list)
    usage: TokenUsage | None = None


def parse_chat_response(data: dict[str, Any]) -> ChatResponse:
    """Map a decoded response body onto ChatResponse, filling defaults."""
    choices = []
    for choice in data.get("choices") or []:
        message = dict(choice.get("message") or {})
        message["role"] = "assistant"
        if not message.get("tool_calls"):
            message.pop("tool_calls", None)
        choices.append({
            "index": choice.get("index") or 0,
            "message": message,
            "finish_reason": choice.get("finish_reason"),
        })

    return ChatResponse.model_validate({
        "id": data.get("id") or "",
        "created": data.get("created") or 0,
        "model": data.get("model") or "",
        "choices": choices,
        "usage": data.get("usage"),
    })
