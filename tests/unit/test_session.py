"""Tests for ChatSession history handling."""

from unittest.mock import AsyncMock

import pytest

from zai_cli.core.client import (
    ChatResponse,
    ContentStreamEvent,
    FinishedStreamEvent,
    MessageRole,
    ServerError,
    Usage,
    UsageStreamEvent,
    ZaiClientConfig,
)
from zai_cli.core.session import ChatSession, estimate_tokens


class FakeClient:
    """Stand-in for ZaiClient that records the conversations it is sent."""

    def __init__(self, replies=None, max_tokens: int = 8192):
        self.config = ZaiClientConfig(api_key="sk-test", max_tokens=max_tokens)
        self.model = self.config.model
        self.sent = []
        self.generate = AsyncMock(side_effect=self._generate)
        self._replies = list(replies or [])

    async def _generate(self, messages, system=None, model=None):
        self.sent.append((list(messages), system, model))
        text = self._replies.pop(0) if self._replies else "reply"
        return ChatResponse(text=text, model=model, usage=Usage(input_tokens=10, output_tokens=5))

    async def generate_stream(self, messages, system=None, model=None):
        self.sent.append((list(messages), system, model))
        for chunk in ("str", "eamed"):
            yield ContentStreamEvent(value=chunk)
        yield UsageStreamEvent(value=Usage(input_tokens=3, output_tokens=2))
        yield FinishedStreamEvent(value={"stop_reason": "end_turn", "model": model})


class TestEstimateTokens:

    def test_rounds_up(self) -> None:
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2


class TestChatSession:
    """Test cases for ChatSession."""

    @pytest.mark.asyncio
    async def test_send_records_exchange(self) -> None:
        client = FakeClient(replies=["Hi there"])
        session = ChatSession(client, system_prompt="be brief")

        response = await session.send("  Hello  ")

        assert response.text == "Hi there"
        messages, system, model = client.sent[0]
        assert [m.content for m in messages] == ["Hello"]
        assert system == "be brief"
        assert model == "glm-4.6"

        history = session.history
        assert [m.role for m in history] == [MessageRole.USER, MessageRole.ASSISTANT]
        assert [m.content for m in history] == ["Hello", "Hi there"]
        assert session.usage.total_tokens == 15

    @pytest.mark.asyncio
    async def test_history_is_sent_with_next_turn(self) -> None:
        client = FakeClient(replies=["one", "two"])
        session = ChatSession(client)

        await session.send("first")
        await session.send("second")

        messages, _, _ = client.sent[1]
        assert [m.content for m in messages] == ["first", "one", "second"]
        assert session.statistics()["turn_count"] == 2

    @pytest.mark.asyncio
    async def test_failed_turn_is_not_recorded(self) -> None:
        client = FakeClient()
        client.generate.side_effect = ServerError("busy")
        session = ChatSession(client)

        with pytest.raises(ServerError):
            await session.send("hello")

        assert session.history == []
        assert session.statistics()["turn_count"] == 0

    @pytest.mark.asyncio
    async def test_empty_reply_is_not_recorded(self) -> None:
        session = ChatSession(FakeClient(replies=["   "]))

        await session.send("hello")

        assert session.history == []
        assert session.statistics()["turn_count"] == 1

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self) -> None:
        session = ChatSession(FakeClient())

        with pytest.raises(ValueError):
            await session.send("   ")

    @pytest.mark.asyncio
    async def test_send_stream_commits_after_completion(self) -> None:
        client = FakeClient()
        session = ChatSession(client)

        chunks = [chunk async for chunk in session.send_stream("stream please")]

        assert chunks == ["str", "eamed"]
        assert [m.content for m in session.history] == ["stream please", "streamed"]
        assert session.usage == Usage(input_tokens=3, output_tokens=2)

    @pytest.mark.asyncio
    async def test_clear_keeps_usage(self) -> None:
        session = ChatSession(FakeClient())
        await session.send("hello")

        session.clear()

        assert session.history == []
        assert session.usage.total_tokens == 15

    @pytest.mark.asyncio
    async def test_model_switch(self) -> None:
        client = FakeClient()
        session = ChatSession(client)

        session.model = "GLM-4.5-Air"
        await session.send("hi")

        assert session.model == "glm-4.5-air"
        assert client.sent[0][2] == "glm-4.5-air"

        with pytest.raises(ValueError):
            session.model = "gpt-4"

    @pytest.mark.asyncio
    async def test_trims_oldest_exchanges_to_fit_context(self) -> None:
        # glm-4.5 has 128K context; leave room for ~1000 tokens of input
        client = FakeClient(max_tokens=127_000)
        session = ChatSession(client, model="glm-4.5")
        big = "x" * 1600  # ~400 tokens

        await session.send(big + "1")
        await session.send(big + "2")
        await session.send(big + "3")

        messages, _, _ = client.sent[-1]
        assert messages[0].role == MessageRole.USER
        assert messages[-1].content == big + "3"
        assert len(messages) < 5
        assert session.statistics()["trimmed_messages"] >= 2

    @pytest.mark.asyncio
    async def test_trims_to_max_history_messages(self) -> None:
        client = FakeClient()
        session = ChatSession(client, max_history_messages=4)

        for index in range(5):
            await session.send(f"message {index}")

        messages, _, _ = client.sent[-1]
        assert len(messages) <= 4
        assert messages[0].role == MessageRole.USER
        assert messages[-1].content == "message 4"

    def test_statistics(self) -> None:
        session = ChatSession(FakeClient(), system_prompt="abcd")
        stats = session.statistics()

        assert stats["model"] == "glm-4.6"
        assert stats["context_limit"] == 200_000
        assert stats["estimated_context_tokens"] == 1
        assert stats["history_messages"] == 0
