"""
Async HTTP client for an OpenAI-compatible chat-completions endpoint.

The client applies the profile's developer-prompt gate to every request, so
conversations sent through it get the same contract as those driven directly
by FunctionCallEngine.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Mapping, Sequence

import httpx
from pydantic import BaseModel

from dmind_fc.client.types import ChatMessage, ChatRequest, ChatResponse, parse_chat_response
from dmind_fc.core.datamodels import Message, ParseErrorResult
from dmind_fc.core.exceptions import ChatAPIError, ErrorCode, SDKError
from dmind_fc.engine.contract import enforce_developer_prompt
from dmind_fc.engine.interop import openai_message_to_raw
from dmind_fc.engine.profiles import DMIND_3_NANO_PROFILE, ModelProfile
from dmind_fc.engine.streaming import ChatStreamingChunk, parse_sse_stream

if TYPE_CHECKING:
    from dmind_fc.config import Config

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(30.0, read=300.0)


def _dump_message(message: Any) -> dict[str, Any]:
    if isinstance(message, BaseModel):
        return message.model_dump(exclude_none=True)
    return dict(message)


class ChatClient:
    """Chat-completions client built on httpx.AsyncClient.

    Args:
        api_key: Sent as ``Authorization: Bearer <api_key>``.
        base_url: API root; ``/chat/completions`` is appended.
        default_model: Used when a request does not name a model.
        default_headers: Extra headers sent with every request.
        profile: Profile whose developer-prompt policy gates each request.
        timeout: Seconds, or an httpx.Timeout.
        transport: Optional httpx transport (e.g. httpx.MockTransport).
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str | None = None,
        default_headers: Mapping[str, str] | None = None,
        profile: ModelProfile = DMIND_3_NANO_PROFILE,
        timeout: float | httpx.Timeout | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key or ""
        self.base_url = (base_url or "").rstrip("/")
        self.default_model = default_model
        self.default_headers = dict(default_headers or {})
        self.profile = profile
        self._client = httpx.AsyncClient(
            timeout=timeout or DEFAULT_TIMEOUT,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: Config, **kwargs: Any) -> ChatClient:
        """Build a client from a Config; keyword arguments override it."""
        options = {
            "api_key": config.get("api_key"),
            "base_url": config.get("base_url"),
            "default_model": config.get("default_model"),
            "timeout": config.get("timeout"),
        }
        options.update(kwargs)
        return cls(**options)

    @property
    def url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            **self.default_headers,
        }

    def _build_body(self, request: ChatRequest) -> dict[str, Any]:
        body = request.to_body(self.default_model)
        messages = enforce_developer_prompt(
            list(request.messages), self.profile.developer_prompt_policy
        )
        body["messages"] = [_dump_message(msg) for msg in messages]
        return body

    @staticmethod
    async def _api_error(response: httpx.Response) -> ChatAPIError:
        await response.aread()
        try:
            detail = response.json()
        except ValueError:
            detail = response.text
        return ChatAPIError(
            response.status_code,
            f"Chat API returned {response.status_code}: {response.reason_phrase}",
            detail,
        )

    async def send(self, request: ChatRequest) -> ChatResponse:
        """POST a non-streaming request.

        Raises:
            ChatAPIError: On a non-2xx response.
            SDKError: E_RUNTIME on a transport failure.
        """
        body = self._build_body(request)
        logger.debug("POST %s (model=%s, %d messages)", self.url, body.get("model"), len(body["messages"]))
        try:
            response = await self._client.post(self.url, headers=self._headers(), json=body)
        except httpx.HTTPError as e:
            raise SDKError(ErrorCode.RUNTIME, f"Chat API request failed: {e}") from e

        if response.is_error:
            raise await self._api_error(response)
        return parse_chat_response(response.json())

    async def stream(self, request: ChatRequest) -> AsyncIterator[ChatStreamingChunk]:
        """POST a streaming request and yield chunks as they arrive.

        The HTTP response is closed when iteration ends, fails, or the caller
        closes the generator early.

        Raises:
            ChatAPIError: On a non-2xx response.
            SDKError: E_RUNTIME on a transport failure.
        """
        body = self._build_body(request)
        body["stream"] = True
        http_request = self._client.build_request("POST", self.url, headers=self._headers(), json=body)
        try:
            response = await self._client.send(http_request, stream=True)
        except httpx.HTTPError as e:
            raise SDKError(ErrorCode.RUNTIME, f"Chat API request failed: {e}") from e

        try:
            if response.is_error:
                raise await self._api_error(response)

            chunks = parse_sse_stream(response.aiter_text())
            try:
                async for chunk in chunks:
                    yield chunk
            finally:
                await chunks.aclose()
        finally:
            await response.aclose()

    def as_generate(self, **request_options: Any):
        """Adapt this client to FunctionCallEngine's ``generate`` collaborator.

        Native structured tool calls in the response are encoded back into
        the official text protocol so the engine can parse them.
        """
        async def generate(messages: Sequence[Message]) -> str:
            request = ChatRequest(
                messages=[ChatMessage(role=msg.role, content=msg.content) for msg in messages],
                **request_options,
            )
            response = await self.send(request)
            if not response.choices:
                raise SDKError(ErrorCode.RUNTIME, "Chat API returned no choices.")

            message = response.choices[0].message
            if not message.tool_calls:
                return message.content or ""

            encoded = openai_message_to_raw(message.model_dump(include={"role", "content", "tool_calls"}))
            if isinstance(encoded, ParseErrorResult):
                raise SDKError(encoded.code, encoded.message, encoded.raw)
            return encoded.raw

        return generate

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ChatClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
