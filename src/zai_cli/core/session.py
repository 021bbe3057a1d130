"""
Chat session management for Zai CLI.

A ChatSession keeps the history of an interactive conversation, sends each
new user turn together with that history, and trims the oldest exchanges
when the conversation would no longer fit the model's context window.
"""

import logging
import time
import uuid
from typing import Any, AsyncGenerator, Dict, List, Optional

from .client import (
    ChatResponse,
    Message,
    StreamEvent,
    Usage,
    ZaiClient,
    get_context_limit,
    normalize_model_name,
)

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 characters per token)."""
    return (len(text) + CHARS_PER_TOKEN - 1) // CHARS_PER_TOKEN


class ChatSession:
    """
    A multi-turn conversation with one client.

    History only ever holds complete user/assistant exchanges: a turn whose
    request fails is not recorded, so a retry starts from the same state.
    """

    def __init__(
        self,
        client: ZaiClient,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_history_messages: int = 200,
    ):
        self.client = client
        self.system_prompt = system_prompt
        self.session_id = uuid.uuid4().hex[:8]
        self.max_history_messages = max_history_messages
        self._model = normalize_model_name(model) if model else client.model
        self._history: List[Message] = []
        self._usage = Usage()
        self._turn_count = 0
        self._trimmed_messages = 0
        self._started_at = time.time()

    @property
    def model(self) -> str:
        return self._model

    @model.setter
    def model(self, value: str) -> None:
        self._model = normalize_model_name(value)
        logger.info(f"Session {self.session_id} switched to model {self._model}")

    @property
    def history(self) -> List[Message]:
        return list(self._history)

    @property
    def usage(self) -> Usage:
        return self._usage

    def clear(self) -> None:
        """Forget the conversation history (usage totals are kept)."""
        self._history.clear()
        logger.debug(f"Cleared history of session {self.session_id}")

    async def send(self, text: str) -> ChatResponse:
        """Send a user message and wait for the full reply."""
        messages = self._prepare_messages(text)
        response = await self.client.generate(messages, system=self.system_prompt, model=self._model)
        self._commit(text, response.text, response.usage)
        return response

    async def send_stream(self, text: str) -> AsyncGenerator[str, None]:
        """
        Send a user message and yield the reply text as it arrives.

        The exchange is committed to history only after the stream has
        finished.
        """
        messages = self._prepare_messages(text)
        parts: List[str] = []
        usage = Usage()

        async for event in self.client.generate_stream(messages, system=self.system_prompt, model=self._model):
            if event.type == StreamEvent.CONTENT:
                parts.append(event.value)
                yield event.value
            elif event.type == StreamEvent.USAGE:
                usage = event.value

        self._commit(text, "".join(parts), usage)

    def statistics(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "model": self._model,
            "turn_count": self._turn_count,
            "history_messages": len(self._history),
            "trimmed_messages": self._trimmed_messages,
            "input_tokens": self._usage.input_tokens,
            "output_tokens": self._usage.output_tokens,
            "total_tokens": self._usage.total_tokens,
            "estimated_context_tokens": self.estimate_context_tokens(),
            "context_limit": get_context_limit(self._model),
            "duration_minutes": (time.time() - self._started_at) / 60,
        }

    def estimate_context_tokens(self, extra: str = "") -> int:
        text = (self.system_prompt or "") + "".join(m.content for m in self._history) + extra
        return estimate_tokens(text)

    def _prepare_messages(self, text: str) -> List[Message]:
        text = text.strip()
        if not text:
            raise ValueError("Message cannot be empty")

        self._trim_history(text)
        return self._history + [Message.user(text)]

    def _trim_history(self, pending: str) -> None:
        """Drop the oldest exchanges until the request fits the context window."""
        budget = get_context_limit(self._model) - self.client.config.max_tokens

        while self._history and (
            self.estimate_context_tokens(pending) > budget
            or len(self._history) + 1 > self.max_history_messages
        ):
            # Remove a whole user/assistant pair to keep roles alternating
            del self._history[:2]
            self._trimmed_messages += 2
            logger.info(f"Trimmed oldest exchange from session {self.session_id}")

    def _commit(self, user_text: str, reply: str, usage: Usage) -> None:
        self._usage = self._usage + usage
        self._turn_count += 1

        # An empty reply would leave two user messages in a row
        if not reply.strip():
            logger.warning("Model returned an empty reply; exchange not added to history")
            return

        self._history.append(Message.user(user_text.strip()))
        self._history.append(Message.assistant(reply))
