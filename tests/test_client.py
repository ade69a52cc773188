#!/usr/bin/env python3
"""
Tests for the chat-completions client, using httpx.MockTransport.
"""

import json

import httpx
import pytest

from dmind_fc.client import ChatClient, ChatMessage, ChatRequest
from dmind_fc.config import Config
from dmind_fc.core import ChatAPIError, ErrorCode, Message, SDKError
from dmind_fc.engine import FunctionCallEngine
from dmind_fc.engine.profiles import DMIND_3_NANO_DEVELOPER_PROMPT

BASE_URL = "https://llm.example.test/v1/"


def completion(message, finish_reason="stop"):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "dmind-3-nano",
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 2, "total_tokens": 12},
    }


class RecordingStream(httpx.AsyncByteStream):
    """Response body that records whether it was closed."""

    def __init__(self, pieces):
        self.pieces = pieces
        self.closed = False

    async def __aiter__(self):
        for piece in self.pieces:
            yield piece

    async def aclose(self):
        self.closed = True


class Recorder:
    """MockTransport handler capturing requests."""

    def __init__(self, respond):
        self.respond = respond
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.respond(request)

    @property
    def body(self):
        return json.loads(self.requests[-1].content)


def make_client(respond, **kwargs):
    recorder = Recorder(respond)
    client = ChatClient(
        api_key="sk-test",
        base_url=BASE_URL,
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )
    return client, recorder


def request(*messages, **options):
    return ChatRequest(messages=[ChatMessage(role=r, content=c) for r, c in messages], **options)


# ============================================================================
# Send Tests
# ============================================================================

class TestSend:
    """Tests for non-streaming requests."""

    @pytest.mark.asyncio
    async def test_request_shape(self):
        """Test URL, headers and body of a request."""
        client, recorder = make_client(
            lambda req: httpx.Response(200, json=completion({"role": "assistant", "content": "hi"})),
            default_model="dmind-3-nano",
            default_headers={"X-Trace": "abc"},
        )
        async with client:
            response = await client.send(request(("user", "hello"), temperature=0.2))

        sent = recorder.requests[0]
        assert str(sent.url) == "https://llm.example.test/v1/chat/completions"
        assert sent.method == "POST"
        assert sent.headers["Authorization"] == "Bearer sk-test"
        assert sent.headers["X-Trace"] == "abc"
        body = recorder.body
        assert body["model"] == "dmind-3-nano"
        assert body["temperature"] == 0.2
        assert "stream" not in body
        assert "tools" not in body

        assert response.choices[0].message.content == "hi"
        assert response.usage.total_tokens == 12

    @pytest.mark.asyncio
    async def test_developer_prompt_injected(self):
        """Test the prompt gate runs on every request."""
        client, recorder = make_client(
            lambda req: httpx.Response(200, json=completion({"role": "assistant", "content": "ok"}))
        )
        async with client:
            await client.send(request(("developer", "do anything"), ("user", "hi")))

        messages = recorder.body["messages"]
        assert messages[0] == {"role": "developer", "content": DMIND_3_NANO_DEVELOPER_PROMPT}
        assert [m["role"] for m in messages] == ["developer", "user"]

    @pytest.mark.asyncio
    async def test_request_model_wins(self):
        """Test a model named on the request overrides the default."""
        client, recorder = make_client(
            lambda req: httpx.Response(200, json=completion({"content": "x"})),
            default_model="a",
        )
        async with client:
            await client.send(request(("user", "hi"), model="b"))
        assert recorder.body["model"] == "b"

    @pytest.mark.asyncio
    async def test_json_error(self):
        """Test non-2xx responses raise ChatAPIError with the JSON body."""
        client, _ = make_client(
            lambda req: httpx.Response(401, json={"error": {"message": "bad key"}})
        )
        async with client:
            with pytest.raises(ChatAPIError) as exc_info:
                await client.send(request(("user", "hi")))

        error = exc_info.value
        assert error.status_code == 401
        assert error.code == ErrorCode.RUNTIME
        assert error.message == "Chat API returned 401: Unauthorized"
        assert error.details == {"error": {"message": "bad key"}}

    @pytest.mark.asyncio
    async def test_text_error(self):
        """Test non-JSON error bodies are kept as text."""
        client, _ = make_client(lambda req: httpx.Response(502, text="upstream gone"))
        async with client:
            with pytest.raises(ChatAPIError) as exc_info:
                await client.send(request(("user", "hi")))
        assert exc_info.value.details == "upstream gone"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        """Test connection failures become E_RUNTIME."""
        def refuse(req):
            raise httpx.ConnectError("connection refused", request=req)

        client, _ = make_client(refuse)
        async with client:
            with pytest.raises(SDKError) as exc_info:
                await client.send(request(("user", "hi")))
        assert exc_info.value.code == ErrorCode.RUNTIME


# ============================================================================
# Stream Tests
# ============================================================================

class TestStream:
    """Tests for streaming requests."""

    @pytest.mark.asyncio
    async def test_stream_chunks(self):
        """Test SSE frames become chunks and the response is closed."""
        body = RecordingStream([
            b'data: {"id":"c","choices":[{"index":0,"delta":{"role":"assistant","content":"He"}}]}\n\n',
            b'data: {"id":"c","choices":[{"index":0,"delta":{"content":"y"},"finish_reason":"stop"}]}\n\n',
            b"data: [DONE]\n\n",
        ])
        client, recorder = make_client(lambda req: httpx.Response(200, stream=body))
        async with client:
            chunks = [chunk async for chunk in client.stream(request(("user", "hi")))]

        assert recorder.body["stream"] is True
        assert "".join(c.choices[0].delta.content for c in chunks) == "Hey"
        assert chunks[-1].choices[0].finish_reason == "stop"
        assert body.closed is True

    @pytest.mark.asyncio
    async def test_early_close(self):
        """Test closing the stream early releases the response."""
        body = RecordingStream([
            b'data: {"choices":[{"delta":{"content":"a"}}]}\n',
            b'data: {"choices":[{"delta":{"content":"b"}}]}\n',
        ])
        client, _ = make_client(lambda req: httpx.Response(200, stream=body))
        async with client:
            stream = client.stream(request(("user", "hi")))
            first = await stream.__anext__()
            await stream.aclose()

        assert first.choices[0].delta.content == "a"
        assert body.closed is True

    @pytest.mark.asyncio
    async def test_stream_error(self):
        """Test a streaming error status raises ChatAPIError."""
        client, _ = make_client(lambda req: httpx.Response(429, json={"error": "slow down"}))
        async with client:
            with pytest.raises(ChatAPIError) as exc_info:
                async for _ in client.stream(request(("user", "hi"))):
                    pass
        assert exc_info.value.status_code == 429


# ============================================================================
# Engine Adapter Tests
# ============================================================================

class TestAsGenerate:
    """Tests for using the client as the engine's generate collaborator."""

    @pytest.mark.asyncio
    async def test_text_reply(self):
        """Test a text reply is returned verbatim."""
        client, _ = make_client(
            lambda req: httpx.Response(200, json=completion({"role": "assistant", "content": "Hello"}))
        )
        async with client:
            generate = client.as_generate(temperature=0)
            assert await generate([Message(role="user", content="hi")]) == "Hello"

    @pytest.mark.asyncio
    async def test_native_tool_call_encoded(self):
        """Test structured tool calls are re-encoded in the text protocol."""
        message = {
            "role": "assistant",
            "content": None,
            "tool_calls": [{
                "id": "call_1",
                "type": "function",
                "function": {"name": "SEARCH_TOKEN", "arguments": '{"symbol": "USDC"}'},
            }],
        }
        client, _ = make_client(lambda req: httpx.Response(200, json=completion(message, "tool_calls")))
        async with client:
            raw = await client.as_generate()([Message(role="user", content="price?")])
        assert raw == '<start_function_call>call:SEARCH_TOKEN{"symbol":"USDC"}<end_function_call>'

    @pytest.mark.asyncio
    async def test_parallel_calls_rejected(self):
        """Test two native tool calls raise E_INVOKE_COUNT."""
        call = {"id": "c", "type": "function", "function": {"name": "SEARCH_TOKEN", "arguments": "{}"}}
        message = {"role": "assistant", "content": None, "tool_calls": [call, call]}
        client, _ = make_client(lambda req: httpx.Response(200, json=completion(message)))
        async with client:
            with pytest.raises(SDKError) as exc_info:
                await client.as_generate()([Message(role="user", content="x")])
        assert exc_info.value.code == ErrorCode.INVOKE_COUNT

    @pytest.mark.asyncio
    async def test_no_choices(self):
        """Test an empty choices list raises E_RUNTIME."""
        client, _ = make_client(lambda req: httpx.Response(200, json={"choices": []}))
        async with client:
            with pytest.raises(SDKError) as exc_info:
                await client.as_generate()([Message(role="user", content="x")])
        assert exc_info.value.code == ErrorCode.RUNTIME

    @pytest.mark.asyncio
    async def test_engine_round_trip(self):
        """Test the engine runs end to end over the client."""
        replies = [
            completion({"content": '<start_function_call>call:SEARCH_TOKEN{"symbol":"SOL"}<end_function_call>'}),
            completion({"content": "SOL is $150."}),
        ]
        client, recorder = make_client(lambda req: httpx.Response(200, json=replies.pop(0)))
        async with client:
            engine = FunctionCallEngine(
                generate=client.as_generate(),
                tools={"SEARCH_TOKEN": lambda args: {"price": 150}},
            )
            result = await engine.run([Message(role="user", content="SOL price?")])

        assert result.final.text == "SOL is $150."
        assert result.tool_hops == 1
        second = json.loads(recorder.requests[1].content)["messages"]
        assert second[0]["role"] == "developer"
        assert second[-1]["content"].startswith("<function_response>")


# ============================================================================
# Construction Tests
# ============================================================================

class TestConstruction:
    """Tests for building clients."""

    @pytest.mark.asyncio
    async def test_from_config(self):
        """Test settings are read from Config and kwargs override them."""
        config = Config(api_key="k", base_url="https://a.test/v1", default_model="m")
        client = ChatClient.from_config(config, default_model="override")
        try:
            assert client.api_key == "k"
            assert client.url == "https://a.test/v1/chat/completions"
            assert client.default_model == "override"
        finally:
            await client.aclose()


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
