"""
Structured error system for the Z.ai API client.

Every failure surfaced by the client is a ``ZaiError`` subclass so the CLI
can print one friendly line per error type and decide whether to retry.
"""

import json
from typing import Any, Dict, Optional, Tuple, Type
import logging

import httpx

logger = logging.getLogger(__name__)


class ZaiError(Exception):
    """Base exception for all Z.ai API related errors."""

    default_message = "Z.ai request failed"
    default_status: Optional[int] = None
    error_code: Optional[str] = None

    def __init__(
        self,
        message: Optional[str] = None,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.status = status if status is not None else self.default_status
        self.code = code or self.error_code
        self.details = dict(details) if details else {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "status": self.status,
            "code": self.code,
            "details": self.details,
        }

    def __str__(self) -> str:
        text = self.message
        if self.status:
            text += f" (Status: {self.status})"
        if self.code:
            text += f" (Code: {self.code})"
        return text


class AuthenticationError(ZaiError):
    """The API key was missing or rejected (401)."""
    default_message = "Authentication failed"
    default_status = 401
    error_code = "AUTHENTICATION_ERROR"


class AuthorizationError(ZaiError):
    """The key is valid but not allowed to use the resource (403)."""
    default_message = "Authorization failed"
    default_status = 403
    error_code = "AUTHORIZATION_ERROR"


class QuotaExceededError(ZaiError):
    """Rate limit or plan quota hit (429)."""
    default_message = "API quota exceeded"
    default_status = 429
    error_code = "QUOTA_EXCEEDED"

    def __init__(self, message: Optional[str] = None, retry_after: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        if retry_after:
            self.details["retry_after"] = retry_after


class ModelUnavailableError(ZaiError):
    """Unknown model or endpoint (404)."""
    default_message = "Model unavailable"
    default_status = 404
    error_code = "MODEL_UNAVAILABLE"

    def __init__(self, message: Optional[str] = None, model: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if model:
            self.details["model"] = model


class InvalidRequestError(ZaiError):
    """The API refused the request body (other 4xx)."""
    default_message = "Invalid request"
    default_status = 400
    error_code = "INVALID_REQUEST"


class ServerError(ZaiError):
    """5xx responses, including 529 overloaded."""
    default_message = "Server error"
    default_status = 500
    error_code = "SERVER_ERROR"


class NetworkError(ZaiError):
    """Connection could not be made or was dropped."""
    default_message = "Network error"
    error_code = "NETWORK_ERROR"


class TimeoutError(ZaiError):
    """No response within the configured timeout."""
    default_message = "Request timeout"
    error_code = "TIMEOUT_ERROR"

    def __init__(self, message: Optional[str] = None, timeout_seconds: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        if timeout_seconds:
            self.details["timeout_seconds"] = timeout_seconds


class StreamError(ZaiError):
    """Error reported inside a server-sent event stream."""
    default_message = "Stream error"
    error_code = "STREAM_ERROR"

    def __init__(self, message: Optional[str] = None, error_type: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if error_type:
            self.details["error_type"] = error_type


class ConfigurationError(ZaiError):
    """Missing or invalid local configuration (no HTTP request was made)."""
    default_message = "Configuration error"
    error_code = "CONFIGURATION_ERROR"

    def __init__(self, message: Optional[str] = None, config_field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if config_field:
            self.details["config_field"] = config_field


RETRYABLE_ERRORS: Tuple[Type[ZaiError], ...] = (QuotaExceededError, ServerError, NetworkError, TimeoutError)

# Substrings checked against messages of exceptions that are not httpx errors
MESSAGE_HINTS: Tuple[Tuple[Tuple[str, ...], Type[ZaiError]], ...] = (
    (("unauthorized", "api key"), AuthenticationError),
    (("rate limit", "quota"), QuotaExceededError),
    (("timeout", "timed out"), TimeoutError),
    (("connection", "network"), NetworkError),
)


def extract_api_error_message(body: str) -> Optional[str]:
    """
    Pull the human message out of an API error body.

    Z.ai answers errors in the Anthropic shape
    ``{"type": "error", "error": {"type": "...", "message": "..."}}``; some
    gateway errors use ``{"error": {"code": ..., "message": ...}}`` or
    ``{"message": ...}`` instead.
    """
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return None

    if not isinstance(data, dict):
        return None

    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    if data.get("message"):
        return str(data["message"])
    return None


def error_from_status(
    status: int,
    body: str = "",
    retry_after: Optional[int] = None,
    model: Optional[str] = None,
) -> ZaiError:
    """
    Build the error matching an HTTP status code.

    Args:
        status: HTTP status code of the failed response
        body: Raw response body
        retry_after: Parsed Retry-After header, if any
        model: Model the request was made for

    Returns:
        Classified ZaiError instance
    """
    api_message = extract_api_error_message(body) or body.strip() or "no response body"
    message = f"API request failed with status {status}: {api_message}"
    details = {"body": body} if body else {}

    if status == 401:
        return AuthenticationError(message, details=details)
    elif status == 403:
        return AuthorizationError(message, details=details)
    elif status == 404:
        return ModelUnavailableError(message, model=model, details=details)
    elif status == 429:
        return QuotaExceededError(message, retry_after=retry_after, details=details)
    elif 400 <= status < 500:
        return InvalidRequestError(message, status=status, details=details)
    elif status >= 500:
        return ServerError(message, status=status, details=details)
    return ZaiError(message, status=status, details=details)


def classify_error(error: Exception) -> ZaiError:
    """Map any exception raised while talking to the API onto a ZaiError."""
    if isinstance(error, ZaiError):
        return error

    if isinstance(error, httpx.TimeoutException):
        return TimeoutError(f"Request timed out: {error}", original_error=error)
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        return error_from_status(
            response.status_code,
            response.text,
            retry_after=parse_retry_after(response.headers.get("retry-after")),
        )
    if isinstance(error, httpx.TransportError):
        return NetworkError(f"Network error: {error}", original_error=error)

    error_message = str(error) or type(error).__name__
    lowered = error_message.lower()
    for hints, error_class in MESSAGE_HINTS:
        if any(hint in lowered for hint in hints):
            return error_class(error_message, original_error=error)

    return ZaiError(error_message, original_error=error)


def is_retryable_error(error: Exception) -> bool:
    """Rate limits, 5xx, network errors and timeouts are worth another attempt."""
    if isinstance(error, RETRYABLE_ERRORS):
        return True

    status = getattr(error, "status", None)
    return bool(status) and (status == 429 or status >= 500)


def parse_retry_after(value: Optional[str]) -> Optional[int]:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        seconds = int(float(value))
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def get_retry_delay(error: Exception) -> Optional[int]:
    """Seconds the server asked us to wait, if it said."""
    details = getattr(error, "details", None)
    if isinstance(details, dict):
        return details.get("retry_after") or None
    return None


def create_user_friendly_message(error: ZaiError) -> str:
    """One line suitable for printing after ``Error:``."""
    if isinstance(error, QuotaExceededError):
        retry_after = error.details.get("retry_after")
        if retry_after:
            return f"Rate limit exceeded. Please try again in {retry_after} seconds."
        return "Rate limit exceeded. Please try again later or check your plan limits."

    if isinstance(error, ModelUnavailableError):
        model = error.details.get("model")
        target = f"The model '{model}'" if model else "The requested model"
        return f"{target} is not available. Try another one with 'zai config --model'."

    if isinstance(error, ConfigurationError):
        return error.message

    for error_class, text in FRIENDLY_MESSAGES.items():
        if isinstance(error, error_class):
            return text

    return f"An error occurred: {error.message}"


FRIENDLY_MESSAGES: Dict[Type[ZaiError], str] = {
    AuthenticationError: "Authentication failed. Please check your API key with 'zai config --key'.",
    AuthorizationError: "Your API key is not allowed to use this resource. Please check your Z.ai subscription.",
    NetworkError: "Could not reach Z.ai. Please check your internet connection and try again.",
    TimeoutError: "The request timed out. Please try again.",
    ServerError: "The Z.ai service returned an error. Please try again later.",
    StreamError: "The response stream was interrupted by the server. Please try again.",
}
