"""
Z.ai API client for Zai CLI.

This package provides the messages API client, streaming, retry logic,
structured errors and the known model table.
"""

from .models import (
    ModelInfo,
    KNOWN_MODELS,
    DEFAULT_MODEL,
    FAST_MODEL,
    get_available_models,
    get_context_limit,
    get_model_info,
    is_model_supported,
    normalize_model_name,
)
from .messages import (
    ChatResponse,
    Message,
    MessageRole,
    Usage,
)
from .streaming import (
    StreamEvent,
    ZaiStreamEvent,
    ContentStreamEvent,
    UsageStreamEvent,
    FinishedStreamEvent,
    iter_stream_events,
)
from .errors import (
    ZaiError,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    InvalidRequestError,
    ModelUnavailableError,
    NetworkError,
    QuotaExceededError,
    ServerError,
    StreamError,
    TimeoutError,
    classify_error,
    create_user_friendly_message,
)
from .retry import (
    RetryConfig,
    RetryManager,
    RetryStats,
)
from .request_log import RequestLog
from .zai_client import (
    ZaiClient,
    ZaiClientConfig,
)

__all__ = [
    # Models
    "ModelInfo",
    "KNOWN_MODELS",
    "DEFAULT_MODEL",
    "FAST_MODEL",
    "get_available_models",
    "get_context_limit",
    "get_model_info",
    "is_model_supported",
    "normalize_model_name",
    # Messages
    "ChatResponse",
    "Message",
    "MessageRole",
    "Usage",
    # Streaming
    "StreamEvent",
    "ZaiStreamEvent",
    "ContentStreamEvent",
    "UsageStreamEvent",
    "FinishedStreamEvent",
    "iter_stream_events",
    # Errors
    "ZaiError",
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "InvalidRequestError",
    "ModelUnavailableError",
    "NetworkError",
    "QuotaExceededError",
    "ServerError",
    "StreamError",
    "TimeoutError",
    "classify_error",
    "create_user_friendly_message",
    # Retry Logic
    "RetryConfig",
    "RetryManager",
    "RetryStats",
    # Client
    "RequestLog",
    "ZaiClient",
    "ZaiClientConfig",
]
