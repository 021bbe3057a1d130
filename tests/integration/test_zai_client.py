"""Integration tests for ZaiClient against a mocked HTTP transport."""

import json
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

from zai_cli import USER_AGENT
from zai_cli.core.client import (
    AuthenticationError,
    ConfigurationError,
    Message,
    ModelUnavailableError,
    NetworkError,
    QuotaExceededError,
    RetryConfig,
    ServerError,
    StreamError,
    StreamEvent,
    ZaiClient,
    ZaiClientConfig,
    ZaiError,
)

pytestmark = pytest.mark.integration

API_KEY = "sk-integration-key"


def message_reply(text: str = "OK", model: str = "glm-4.6") -> dict:
    return {
        "id": "msg_01",
        "type": "message",
        "role": "assistant",
        "model": model,
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 11, "output_tokens": 2},
    }


def sse_body(*texts: str) -> bytes:
    events = [
        ("message_start", {"type": "message_start", "message": {
            "model": "glm-4.6", "usage": {"input_tokens": 9, "output_tokens": 0}}}),
        ("ping", {"type": "ping"}),
    ]
    for text in texts:
        events.append(("content_block_delta", {
            "type": "content_block_delta", "index": 0,
            "delta": {"type": "text_delta", "text": text},
        }))
    events.append(("message_delta", {
        "type": "message_delta", "delta": {"stop_reason": "end_turn"}, "usage": {"output_tokens": 4},
    }))
    events.append(("message_stop", {"type": "message_stop"}))
    return "".join(f"event: {name}\ndata: {json.dumps(data)}\n\n" for name, data in events).encode()


class RecordingTransport:
    """Build a MockTransport that answers from a list of handlers and keeps the requests."""

    def __init__(self, *responders: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []
        self._responders = list(responders)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self._responders.pop(0) if len(self._responders) > 1 else self._responders[0]
        return responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def make_client(recorder: RecordingTransport, **kwargs) -> ZaiClient:
    config = ZaiClientConfig(
        api_key=kwargs.pop("api_key", API_KEY),
        retry_config=RetryConfig(initial_delay_ms=0, jitter=False),
        **kwargs,
    )
    return ZaiClient(config, transport=recorder.transport)


class TestGenerate:
    """Test cases for non-streaming requests."""

    @pytest.mark.asyncio
    async def test_request_shape(self) -> None:
        recorder = RecordingTransport(lambda request: httpx.Response(200, json=message_reply("Hi!")))

        async with make_client(recorder, max_tokens=1024, temperature=0.2) as client:
            response = await client.generate(
                [Message.user("Hello"), Message.assistant("Hey"), Message.user("How are you?")],
                system="Be brief.",
            )

        request = recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.z.ai/api/anthropic/v1/messages"
        assert request.headers["x-api-key"] == API_KEY
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["user-agent"] == USER_AGENT
        assert "authorization" not in request.headers

        body = json.loads(request.content)
        assert body["model"] == "glm-4.6"
        assert body["max_tokens"] == 1024
        assert body["temperature"] == 0.2
        assert body["system"] == "Be brief."
        assert body["stream"] is False
        assert body["messages"] == [
            {"role": "user", "content": [{"type": "text", "text": "Hello"}]},
            {"role": "assistant", "content": [{"type": "text", "text": "Hey"}]},
            {"role": "user", "content": [{"type": "text", "text": "How are you?"}]},
        ]

        assert response.text == "Hi!"
        assert response.model == "glm-4.6"
        assert response.stop_reason == "end_turn"
        assert response.usage.total_tokens == 13

    @pytest.mark.asyncio
    async def test_custom_host_and_model_override(self) -> None:
        recorder = RecordingTransport(lambda request: httpx.Response(200, json=message_reply(model="glm-4.5-air")))

        async with make_client(recorder, host="https://proxy.test") as client:
            response = await client.generate([Message.user("hi")], model="glm-4.5-air")

        request = recorder.requests[0]
        assert str(request.url) == "https://proxy.test/api/anthropic/v1/messages"
        assert json.loads(request.content)["model"] == "glm-4.5-air"
        assert "system" not in json.loads(request.content)
        assert response.model == "glm-4.5-air"

    @pytest.mark.asyncio
    async def test_multiple_text_blocks_are_joined(self) -> None:
        reply = message_reply()
        reply["content"] = [
            {"type": "thinking", "thinking": "..."},
            {"type": "text", "text": "Part one. "},
            {"type": "text", "text": "Part two."},
        ]
        recorder = RecordingTransport(lambda request: httpx.Response(200, json=reply))

        async with make_client(recorder) as client:
            response = await client.generate([Message.user("hi")])

        assert response.text == "Part one. Part two."

    @pytest.mark.asyncio
    async def test_missing_api_key(self) -> None:
        recorder = RecordingTransport(lambda request: httpx.Response(200, json=message_reply()))
        client = make_client(recorder, api_key=None)

        with pytest.raises(ConfigurationError):
            await client.generate([Message.user("hi")])
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_empty_conversation_rejected(self) -> None:
        recorder = RecordingTransport(lambda request: httpx.Response(200, json=message_reply()))

        async with make_client(recorder) as client:
            with pytest.raises(ZaiError, match="empty conversation"):
                await client.generate([Message.user("   ")])

    @pytest.mark.asyncio
    async def test_authentication_error_not_retried(self) -> None:
        body = {"type": "error", "error": {"type": "authentication_error", "message": "invalid x-api-key"}}
        recorder = RecordingTransport(lambda request: httpx.Response(401, json=body))

        async with make_client(recorder) as client:
            with pytest.raises(AuthenticationError) as exc_info:
                await client.generate([Message.user("hi")])

        assert len(recorder.requests) == 1
        assert "invalid x-api-key" in exc_info.value.message
        assert exc_info.value.status == 401

    @pytest.mark.asyncio
    async def test_unknown_model_error(self) -> None:
        recorder = RecordingTransport(lambda request: httpx.Response(404, json={"message": "Not Found"}))

        async with make_client(recorder) as client:
            with pytest.raises(ModelUnavailableError) as exc_info:
                await client.generate([Message.user("hi")], model="glm-4.5")

        assert exc_info.value.details["model"] == "glm-4.5"

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self) -> None:
        recorder = RecordingTransport(
            lambda request: httpx.Response(529, json={"type": "error", "error": {"message": "Overloaded"}}),
            lambda request: httpx.Response(500, text="oops"),
            lambda request: httpx.Response(200, json=message_reply("finally")),
        )

        async with make_client(recorder) as client:
            response = await client.generate([Message.user("hi")])

        assert response.text == "finally"
        assert len(recorder.requests) == 3
        assert client.retry_manager.last_stats.failed_attempts == 2

    @pytest.mark.asyncio
    async def test_server_error_after_retries(self) -> None:
        recorder = RecordingTransport(lambda request: httpx.Response(503, text="unavailable"))

        async with make_client(recorder) as client:
            with pytest.raises(ServerError):
                await client.generate([Message.user("hi")])

        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self) -> None:
        recorder = RecordingTransport(lambda request: httpx.Response(429, headers={"retry-after": "0"}, json={}))
        client = make_client(recorder)
        client.retry_manager.config.max_attempts = 1

        async with client:
            with pytest.raises(QuotaExceededError):
                await client.generate([Message.user("hi")])

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        recorder = RecordingTransport(refuse)

        async with make_client(recorder) as client:
            with pytest.raises(NetworkError):
                await client.generate([Message.user("hi")])

        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_invalid_json_response(self) -> None:
        recorder = RecordingTransport(lambda request: httpx.Response(200, text="<html>"))

        async with make_client(recorder) as client:
            with pytest.raises(ZaiError, match="Failed to parse response"):
                await client.generate([Message.user("hi")])

    @pytest.mark.asyncio
    async def test_connection_test_message(self) -> None:
        recorder = RecordingTransport(lambda request: httpx.Response(200, json=message_reply("OK")))

        async with make_client(recorder) as client:
            response = await client.test_connection()

        body = json.loads(recorder.requests[0].content)
        assert body["system"] == "You are a helpful assistant."
        assert body["messages"][0]["content"][0]["text"] == "Hello, can you respond with just 'OK'?"
        assert response.text == "OK"

    @pytest.mark.asyncio
    async def test_request_log(self, tmp_path: Path) -> None:
        log_path = tmp_path / "requests.jsonl"
        recorder = RecordingTransport(lambda request: httpx.Response(200, json=message_reply("logged")))

        async with make_client(recorder, request_log_path=log_path) as client:
            await client.generate([Message.user("hi")])

        entries = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
        assert [entry["event"] for entry in entries] == ["request", "response"]
        assert API_KEY not in log_path.read_text(encoding="utf-8")
        assert entries[1]["usage"]["output_tokens"] == 2


class TestGenerateStream:
    """Test cases for streaming requests."""

    @pytest.mark.asyncio
    async def test_stream_events(self) -> None:
        recorder = RecordingTransport(
            lambda request: httpx.Response(
                200, headers={"content-type": "text/event-stream"}, content=sse_body("Hel", "lo")
            )
        )

        async with make_client(recorder) as client:
            events = [event async for event in client.generate_stream([Message.user("hi")])]

        assert json.loads(recorder.requests[0].content)["stream"] is True
        assert [event.value for event in events if event.type == StreamEvent.CONTENT] == ["Hel", "lo"]

        usage = next(event.value for event in events if event.type == StreamEvent.USAGE)
        assert (usage.input_tokens, usage.output_tokens) == (9, 4)
        assert events[-1].type == StreamEvent.FINISHED
        assert events[-1].value["stop_reason"] == "end_turn"

    @pytest.mark.asyncio
    async def test_stream_open_is_retried(self) -> None:
        recorder = RecordingTransport(
            lambda request: httpx.Response(502, text="bad gateway"),
            lambda request: httpx.Response(200, content=sse_body("after retry")),
        )

        async with make_client(recorder) as client:
            events = [event async for event in client.generate_stream([Message.user("hi")])]

        assert len(recorder.requests) == 2
        assert events[0].value == "after retry"

    @pytest.mark.asyncio
    async def test_stream_http_error(self) -> None:
        recorder = RecordingTransport(lambda request: httpx.Response(401, json={"error": {"message": "bad key"}}))

        async with make_client(recorder) as client:
            with pytest.raises(AuthenticationError, match="bad key"):
                async for _ in client.generate_stream([Message.user("hi")]):
                    pass

    @pytest.mark.asyncio
    async def test_stream_error_event(self) -> None:
        body = (
            b'event: error\n'
            b'data: {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}\n\n'
        )
        recorder = RecordingTransport(lambda request: httpx.Response(200, content=body))

        async with make_client(recorder) as client:
            with pytest.raises(StreamError, match="Overloaded"):
                async for _ in client.generate_stream([Message.user("hi")]):
                    pass
