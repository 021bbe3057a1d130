"""
Event-driven streaming for Zai CLI.

Z.ai streams replies from its Anthropic-compatible endpoint as server-sent
events. This module decodes the raw ``event:``/``data:`` lines and turns the
protocol events (``message_start``, ``content_block_delta``,
``message_delta``, ``message_stop``, ``ping``, ``error``) into the small set
of stream events the CLI renders.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional
import json
import logging

from pydantic import BaseModel, Field

from .errors import StreamError
from .messages import Usage

logger = logging.getLogger(__name__)


class StreamEvent(Enum):
    """Types of streaming events."""
    CONTENT = "content"
    USAGE = "usage"
    FINISHED = "finished"


class ZaiStreamEvent(BaseModel):
    """Base class for all streaming events."""
    type: StreamEvent
    value: Optional[Any] = None


class ContentStreamEvent(ZaiStreamEvent):
    """Event containing a chunk of generated text."""
    type: StreamEvent = StreamEvent.CONTENT
    value: str = Field(description="Generated content text")


class UsageStreamEvent(ZaiStreamEvent):
    """Event carrying the final token usage of the reply."""
    type: StreamEvent = StreamEvent.USAGE
    value: Usage


class FinishedStreamEvent(ZaiStreamEvent):
    """Event indicating streaming has finished."""
    type: StreamEvent = StreamEvent.FINISHED
    value: Dict[str, Any] = Field(default_factory=dict, description="Final metadata")


@dataclass
class ServerSentEvent:
    """One decoded server-sent event."""
    event: Optional[str]
    data: str


class SSEDecoder:
    """
    Incremental decoder for the server-sent events line protocol.

    Feed it one line at a time (without the trailing newline); it returns a
    ServerSentEvent whenever a blank line completes one.
    """

    def __init__(self):
        self._event: Optional[str] = None
        self._data: List[str] = []

    def feed_line(self, line: str) -> Optional[ServerSentEvent]:
        line = line.rstrip("\r")

        if not line:
            return self.flush()

        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        # "id" and "retry" carry nothing we use

        return None

    def flush(self) -> Optional[ServerSentEvent]:
        """Emit the pending event, if any."""
        if self._event is None and not self._data:
            return None
        sse = ServerSentEvent(event=self._event, data="\n".join(self._data))
        self._event = None
        self._data = []
        return sse


async def iter_sse(lines: AsyncIterator[str]) -> AsyncIterator[ServerSentEvent]:
    """Decode an async iterator of lines into server-sent events."""
    decoder = SSEDecoder()
    async for line in lines:
        sse = decoder.feed_line(line)
        if sse is not None:
            yield sse
    sse = decoder.flush()
    if sse is not None:
        yield sse


async def iter_stream_events(lines: AsyncIterator[str]) -> AsyncIterator[ZaiStreamEvent]:
    """
    Convert a messages-API event stream into stream events.

    Yields CONTENT events for every text delta, then exactly one USAGE and
    one FINISHED event when the message ends (or the stream closes early).

    Raises:
        StreamError: If the server sends an ``error`` event
    """
    usage = Usage()
    metadata: Dict[str, Any] = {"stop_reason": None, "model": None}

    async for sse in iter_sse(lines):
        if sse.data.strip() == "[DONE]":
            break

        try:
            payload = json.loads(sse.data) if sse.data else {}
        except json.JSONDecodeError:
            logger.warning(f"Skipping undecodable stream data: {sse.data[:200]}")
            continue

        if not isinstance(payload, dict):
            logger.warning(f"Skipping stream data that is not an object: {sse.data[:200]}")
            continue

        event_type = sse.event or payload.get("type")

        if event_type == "message_start":
            message = payload.get("message") or {}
            metadata["model"] = message.get("model")
            usage = _merge_usage(usage, message.get("usage"))

        elif event_type == "content_block_delta":
            delta = payload.get("delta") or {}
            if delta.get("type") == "text_delta" and delta.get("text"):
                yield ContentStreamEvent(value=delta["text"])
            else:
                logger.debug(f"Ignoring delta of type {delta.get('type')}")

        elif event_type == "message_delta":
            delta = payload.get("delta") or {}
            if delta.get("stop_reason"):
                metadata["stop_reason"] = delta["stop_reason"]
            usage = _merge_usage(usage, payload.get("usage"))

        elif event_type == "message_stop":
            break

        elif event_type == "error":
            error = payload.get("error") or {}
            raise StreamError(
                error.get("message") or "Stream error",
                error_type=error.get("type"),
            )

        # ping, content_block_start and content_block_stop carry no text

    yield UsageStreamEvent(value=usage)
    yield FinishedStreamEvent(value=metadata)


def _merge_usage(current: Usage, reported: Optional[Dict[str, Any]]) -> Usage:
    """Reported counts are cumulative, so later values replace earlier ones."""
    if not reported:
        return current
    return Usage(
        input_tokens=reported.get("input_tokens") or current.input_tokens,
        output_tokens=reported.get("output_tokens") or current.output_tokens,
    )
