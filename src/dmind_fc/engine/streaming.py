"""
Streaming support: SSE framing, chunk decoding and tool-call reassembly.

A chat-completions stream is a sequence of ``data: <json>`` lines terminated
by ``data: [DONE]``. parse_sse_stream() turns an async iterator of text or
byte pieces into ChatStreamingChunk objects; ToolCallAccumulator concatenates
the argument fragments of streamed tool calls by index.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterator, Literal

from pydantic import BaseModel, Field

from dmind_fc.engine.interop import FunctionCall, OpenAIToolCall, build_tool_call_id

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
DATA_PREFIX = "data:"


# ============================================================================
# Chunk models
# ============================================================================

class TokenUsage(BaseModel):
    completion_tokens: int = 0
    prompt_tokens: int = 0
    total_tokens: int = 0


class StreamingFunction(BaseModel):
    name: str | None = None
    arguments: str | None = None


class ChatStreamingToolCall(BaseModel):
    """Fragment of a tool call; ``arguments`` is appended, never replaced."""
    index: int = 0
    id: str | None = None
    type: Literal["function"] | None = None
    function: StreamingFunction | None = None


class ChatStreamingDelta(BaseModel):
    role: str | None = None
    content: str | None = None
    tool_calls: list[ChatStreamingToolCall] | None = None
    reasoning: str | None = None
    refusal: str | None = None


class ChatStreamingChoice(BaseModel):
    index: int = 0
    delta: ChatStreamingDelta = Field(default_factory=ChatStreamingDelta)
    finish_reason: str | None = None


class ChatStreamingChunk(BaseModel):
    id: str = ""
    object: Literal["chat.completion.chunk"] = "chat.completion.chunk"
    created: int = 0
    model: str = ""
    choices: list[ChatStreamingChoice] = Field(default_factory=list)
    usage: TokenUsage | None = None


def parse_streaming_chunk(data: dict[str, Any]) -> ChatStreamingChunk:
    """Map a decoded ``data:`` payload onto ChatStreamingChunk.

    Missing or null fields take their defaults; unknown fields are dropped.

    Raises:
        ValidationError: If the payload does not have the chunk shape.
    """
    choices = []
    for choice in data.get("choices") or []:
        delta = dict(choice.get("delta") or {})
        if delta.get("tool_calls"):
            delta["tool_calls"] = [
                {**fragment, "index": fragment.get("index") or 0}
                for fragment in delta["tool_calls"]
            ]
        else:
            delta.pop("tool_calls", None)
        choices.append({
            "index": choice.get("index") or 0,
            "delta": delta,
            "finish_reason": choice.get("finish_reason"),
        })

    return ChatStreamingChunk.model_validate({
        "id": data.get("id") or "",
        "created": data.get("created") or 0,
        "model": data.get("model") or "",
        "choices": choices,
        "usage": data.get("usage"),
    })


# ============================================================================
# SSE framing
# ============================================================================

def _data_payload(line: str) -> str | None:
    trimmed = line.strip()
    if not trimmed or trimmed.startswith(":"):
        return None
    if not trimmed.startswith(DATA_PREFIX):
        return None
    return trimmed[len(DATA_PREFIX):].strip()


class SSEDecoder:
    """Incremental decoder for ``data:`` lines.

    Text may be fed in pieces that do not align with line boundaries; partial
    lines are buffered until the next newline or flush().
    """

    def __init__(self):
        self._buffer = ""
        self.done = False

    def feed(self, text: str) -> list[str]:
        """Feed a piece of text, returning the complete payloads it finishes."""
        if self.done:
            return []

        self._buffer += text
        *lines, self._buffer = self._buffer.split("\n")

        payloads: list[str] = []
        for line in lines:
            payload = _data_payload(line)
            if payload is None:
                continue
            if payload == DONE_SENTINEL:
                self.done = True
                self._buffer = ""
                break
            payloads.append(payload)
        return payloads

    def flush(self) -> list[str]:
        """Return a trailing unterminated payload, if any."""
        if self.done:
            return []

        payload = _data_payload(self._buffer)
        self._buffer = ""
        if payload == DONE_SENTINEL:
            self.done = True
            return []
        if not payload:
            return []
        return [payload]


def _decode_chunk(payload: str) -> ChatStreamingChunk | None:
    try:
        return parse_streaming_chunk(json.loads(payload))
    # JSONDecodeError and ValidationError are both ValueErrors.
    except (ValueError, AttributeError, TypeError) as e:
        logger.debug("Skipping malformed stream frame: %s", e)
        return None


async def parse_sse_stream(source: AsyncIterator[str | bytes]) -> AsyncIterator[ChatStreamingChunk]:
    """Yield streaming chunks from an SSE body.

    Args:
        source: Async iterator of text or UTF-8 byte pieces, such as
            ``httpx.Response.aiter_text()``.

    Yields:
        One ChatStreamingChunk per well-formed ``data:`` frame. Iteration ends
        at ``data: [DONE]`` or when the source is exhausted.

    The source is closed (``aclose``) on every exit path, including when the
    consumer stops early and closes this generator.
    """
    decoder = SSEDecoder()
    utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    try:
        async for piece in source:
            text = utf8.decode(piece) if isinstance(piece, bytes) else piece
            for payload in decoder.feed(text):
                chunk = _decode_chunk(payload)
                if chunk is not None:
                    yield chunk
            if decoder.done:
                return

        for payload in decoder.feed(utf8.decode(b"", final=True)) + decoder.flush():
            chunk = _decode_chunk(payload)
            if chunk is not None:
                yield chunk
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()


# ============================================================================
# Tool-call reassembly
# ============================================================================

class ToolCallAccumulator:
    """Reassemble streamed tool calls and content for one response.

    Usage:
        acc = ToolCallAccumulator()
        async for chunk in parse_sse_stream(source):
            acc.add(chunk)
        if acc.finished:
            calls = acc.tool_calls()
    """

    def __init__(self):
        self._calls: dict[int, dict[str, Any]] = {}
        self.content = ""
        self.role: str | None = None
        self.finish_reason: str | None = None

    @property
    def finished(self) -> bool:
        return self.finish_reason is not None

    def add(self, chunk: ChatStreamingChunk) -> None:
        for choice in chunk.choices:
            delta = choice.delta
            if delta.role and self.role is None:
                self.role = delta.role
            if delta.content:
                self.content += delta.content

            for fragment in delta.tool_calls or []:
                call = self._calls.setdefault(
                    fragment.index, {"id": None, "type": None, "name": "", "arguments": ""}
                )
                if fragment.id:
                    call["id"] = fragment.id
                if fragment.type:
                    call["type"] = fragment.type
                if fragment.function is not None:
                    if fragment.function.name:
                        call["name"] = fragment.function.name
                    if fragment.function.arguments:
                        call["arguments"] += fragment.function.arguments

            if choice.finish_reason is not None:
                self.finish_reason = choice.finish_reason

    def arguments(self, index: int) -> str:
        """Concatenated argument text for the call at *index*."""
        call = self._calls.get(index)
        return call["arguments"] if call else ""

    def tool_calls(self) -> list[OpenAIToolCall]:
        """Tool calls reassembled so far, ordered by index.

        Calls whose fragments never carried an id get a deterministic one.
        """
        calls = []
        for index in sorted(self._calls):
            call = self._calls[index]
            calls.append(OpenAIToolCall(
                id=call["id"] or build_tool_call_id(call["name"], call["arguments"]),
                function=FunctionCall(name=call["name"], arguments=call["arguments"]),
            ))
        return calls
