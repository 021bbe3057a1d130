"""
Retry with backoff for the Z.ai API client.

Transient failures (rate limits, 5xx, network errors, timeouts) are retried
with exponential backoff and jitter; a ``Retry-After`` header sent with a
429 takes precedence over the computed delay.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .errors import ZaiError, classify_error, get_retry_delay, is_retryable_error

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 30000
    jitter: bool = True
    jitter_range: float = 0.1
    backoff_multiplier: float = 2.0
    respect_retry_after: bool = True

    should_retry_func: Optional[Callable[[ZaiError], bool]] = None
    on_retry_func: Optional[Callable[[ZaiError, int], Awaitable[None]]] = None

    def base_delay_ms(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based), without jitter or cap."""
        return self.initial_delay_ms * (self.backoff_multiplier ** attempt)


@dataclass
class RetryStats:
    """What happened during one ``RetryManager.retry`` call."""
    total_attempts: int = 0
    failed_attempts: int = 0
    total_delay_ms: int = 0
    error_counts: Dict[str, int] = field(default_factory=dict)
    started_at: float = field(default_factory=time.monotonic)
    finished_at: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.finished_at is not None

    @property
    def total_duration_ms(self) -> float:
        if self.finished_at is None:
            return 0
        return (self.finished_at - self.started_at) * 1000

    def record_failure(self, error: ZaiError) -> None:
        self.total_attempts += 1
        self.failed_attempts += 1
        name = type(error).__name__
        self.error_counts[name] = self.error_counts.get(name, 0) + 1

    def record_success(self) -> None:
        self.total_attempts += 1
        self.finished_at = time.monotonic()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_attempts": self.total_attempts,
            "failed_attempts": self.failed_attempts,
            "total_delay_ms": self.total_delay_ms,
            "total_duration_ms": self.total_duration_ms,
            "error_counts": dict(self.error_counts),
        }


class RetryManager:
    """Runs an async call, retrying transient ZaiErrors."""

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()
        self.last_stats: Optional[RetryStats] = None

    async def retry(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Await ``func()`` until it succeeds or retrying is pointless.

        Raises:
            ZaiError: The classified error of the last attempt
        """
        stats = RetryStats()
        self.last_stats = stats
        attempts = max(1, self.config.max_attempts)

        for attempt in range(attempts):
            try:
                result = await func()
            except Exception as e:
                error = classify_error(e)
                stats.record_failure(error)
                is_last = attempt == attempts - 1

                if is_last or not self._is_retryable(error):
                    logger.debug(f"Giving up after attempt {attempt + 1}/{attempts}: {error}")
                    if error is e:
                        raise
                    raise error from e

                delay_ms = self.get_delay_ms(error, attempt)
                logger.warning(
                    f"Attempt {attempt + 1}/{attempts} failed ({type(error).__name__}), "
                    f"retrying in {delay_ms}ms: {error}"
                )

                if self.config.on_retry_func:
                    await self.config.on_retry_func(error, attempt + 1)

                if delay_ms > 0:
                    stats.total_delay_ms += delay_ms
                    await asyncio.sleep(delay_ms / 1000.0)
                continue

            stats.record_success()
            if attempt:
                logger.info(f"Request succeeded on attempt {attempt + 1}: {stats.to_dict()}")
            return result

        raise ZaiError("Retry loop ended without a result")

    def get_delay_ms(self, error: ZaiError, attempt: int) -> int:
        """Milliseconds to wait before the next attempt."""
        cap = self.config.max_delay_ms

        if self.config.respect_retry_after:
            retry_after = get_retry_delay(error)
            if retry_after:
                return int(min(retry_after * 1000, cap))

        delay = self.config.base_delay_ms(attempt)
        if self.config.jitter:
            spread = delay * self.config.jitter_range
            delay += random.uniform(-spread, spread)

        return int(max(0, min(delay, cap)))

    def _is_retryable(self, error: ZaiError) -> bool:
        if self.config.should_retry_func:
            return self.config.should_retry_func(error)
        return is_retryable_error(error)
