"""
Z.ai content client for Zai CLI.

Z.ai exposes its GLM models through an Anthropic-compatible messages
endpoint (``POST /api/anthropic/v1/messages``) authenticated with an
``x-api-key`` header. This module sends conversations to that endpoint,
either as one blocking request or as a server-sent event stream.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from zai_cli import USER_AGENT

from .errors import (
    ZaiError,
    ConfigurationError,
    classify_error,
    error_from_status,
    parse_retry_after,
)
from .messages import ChatResponse, Message, Usage, to_api_messages
from .models import DEFAULT_MODEL
from .request_log import RequestLog
from .retry import RetryConfig, RetryManager
from .streaming import StreamEvent, ZaiStreamEvent, iter_stream_events

logger = logging.getLogger(__name__)

DEFAULT_HOST = "https://api.z.ai"
MESSAGES_PATH = "/api/anthropic/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

TEST_SYSTEM_PROMPT = "You are a helpful assistant."
TEST_MESSAGE = "Hello, can you respond with just 'OK'?"


@dataclass
class ZaiClientConfig:
    """Configuration for the Z.ai client."""
    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    host: str = DEFAULT_HOST
    timeout_seconds: float = 600.0
    max_tokens: int = 8192
    temperature: Optional[float] = 0.7
    retry_config: Optional[RetryConfig] = None
    request_log_path: Optional[Path] = None


class MessagesRequest(BaseModel):
    """Messages API request body."""
    model: str
    max_tokens: int
    messages: List[Dict[str, Any]]
    system: Optional[str] = None
    temperature: Optional[float] = None
    stream: bool = False


class ContentBlock(BaseModel):
    """One block of a messages API reply."""
    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[str] = None


class MessagesResponse(BaseModel):
    """Messages API response body."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    model: Optional[str] = None
    content: List[ContentBlock] = Field(default_factory=list)
    stop_reason: Optional[str] = None
    usage: Optional[Usage] = None

    @property
    def text(self) -> str:
        return "".join(block.text or "" for block in self.content if block.type == "text")


class ZaiClient:
    """Client for Z.ai GLM models over the messages API."""

    def __init__(
        self,
        config: ZaiClientConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.retry_manager = RetryManager(config.retry_config or RetryConfig())
        self.request_log = RequestLog(config.request_log_path)

    @property
    def model(self) -> str:
        return self.config.model

    async def initialize(self) -> None:
        """Create the HTTP client.

        Raises:
            ConfigurationError: If no API key is configured
        """
        if self._client is not None:
            return

        if not self.config.api_key:
            raise ConfigurationError(
                "No Z.ai API key configured. Run 'zai config' or set ZAI_API_KEY.",
                config_field="api_key",
            )

        headers = {
            "x-api-key": self.config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }

        self._client = httpx.AsyncClient(
            base_url=self.config.host,
            headers=headers,
            timeout=httpx.Timeout(self.config.timeout_seconds),
            transport=self._transport,
        )
        logger.debug(f"Initialized Z.ai client for {self.config.host} with model {self.config.model}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ZaiClient":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def generate(
        self,
        messages: List[Message],
        system: Optional[str] = None,
        model: Optional[str] = None,
    ) -> ChatResponse:
        """
        Send a conversation and wait for the complete reply.

        Args:
            messages: Conversation so far, ending with the user turn
            system: Optional system prompt
            model: Model override for this request

        Returns:
            The model's reply with usage

        Raises:
            ZaiError: On any API, network or configuration failure
        """
        await self.initialize()
        request = self._create_request(messages, system, model, stream=False)
        payload = request.model_dump(exclude_none=True)
        request_id = self.request_log.start(request.model, payload)

        try:
            data = await self.retry_manager.retry(lambda: self._post(payload, request.model))
            response = MessagesResponse.model_validate(data)
        except ZaiError as e:
            self.request_log.error(request_id, e)
            raise
        except ValueError as e:
            error = ZaiError(f"Failed to parse response: {e}", original_error=e)
            self.request_log.error(request_id, error)
            raise error from e

        usage = response.usage or Usage()
        self.request_log.write(request_id, data, usage)

        return ChatResponse(
            text=response.text,
            model=response.model or request.model,
            stop_reason=response.stop_reason,
            usage=usage,
        )

    async def generate_stream(
        self,
        messages: List[Message],
        system: Optional[str] = None,
        model: Optional[str] = None,
    ) -> AsyncGenerator[ZaiStreamEvent, None]:
        """
        Send a conversation and stream the reply.

        Opening the stream is retried like a normal request; once the
        server has accepted it, failures are raised to the caller.

        Yields:
            CONTENT events with text deltas, then USAGE and FINISHED
        """
        await self.initialize()
        request = self._create_request(messages, system, model, stream=True)
        payload = request.model_dump(exclude_none=True)
        request_id = self.request_log.start(request.model, payload)

        try:
            response = await self.retry_manager.retry(lambda: self._open_stream(payload, request.model))
        except ZaiError as e:
            self.request_log.error(request_id, e)
            raise

        text_parts: List[str] = []
        try:
            async for event in iter_stream_events(response.aiter_lines()):
                if event.type == StreamEvent.CONTENT:
                    text_parts.append(event.value)
                elif event.type == StreamEvent.USAGE:
                    self.request_log.write(request_id, {"text": "".join(text_parts)}, event.value)
                yield event
        except ZaiError as e:
            self.request_log.error(request_id, e)
            raise
        except httpx.HTTPError as e:
            error = classify_error(e)
            self.request_log.error(request_id, error)
            raise error from e
        finally:
            await response.aclose()

    async def test_connection(self) -> ChatResponse:
        """Send a tiny prompt to verify the key and model work."""
        response = await self.generate(
            [Message.user(TEST_MESSAGE)],
            system=TEST_SYSTEM_PROMPT,
        )
        logger.info(f"Configuration test succeeded with model {response.model}")
        return response

    def _create_request(
        self,
        messages: List[Message],
        system: Optional[str],
        model: Optional[str],
        stream: bool,
    ) -> MessagesRequest:
        api_messages = to_api_messages(messages)
        if not api_messages:
            raise ZaiError("Cannot send an empty conversation")

        return MessagesRequest(
            model=model or self.config.model,
            max_tokens=self.config.max_tokens,
            messages=api_messages,
            system=system or None,
            temperature=self.config.temperature,
            stream=stream,
        )

    async def _post(self, payload: Dict[str, Any], model: str) -> Dict[str, Any]:
        try:
            response = await self._client.post(MESSAGES_PATH, json=payload)
        except httpx.HTTPError as e:
            raise classify_error(e) from e

        if not response.is_success:
            raise self._map_http_error(response, model)

        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise ZaiError(f"Failed to parse response: {e}", original_error=e) from e

    async def _open_stream(self, payload: Dict[str, Any], model: str) -> httpx.Response:
        request = self._client.build_request("POST", MESSAGES_PATH, json=payload)
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise classify_error(e) from e

        if not response.is_success:
            await response.aread()
            await response.aclose()
            raise self._map_http_error(response, model)

        return response

    def _map_http_error(self, response: httpx.Response, model: str) -> ZaiError:
        """Map HTTP error responses to ZaiError types."""
        error = error_from_status(
            response.status_code,
            response.text,
            retry_after=parse_retry_after(response.headers.get("retry-after")),
            model=model,
        )
        logger.debug(f"Z.ai request failed: {error}")
        return error
