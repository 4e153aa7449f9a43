"""Classification-aware retry for provider calls.

Every failure is classified before retrying:
- Caller mistakes (4xx other than 429, context-length overflow, invalid key)
  fail immediately.
- 429 honours the provider's Retry-After (seconds or HTTP-date) plus a buffer.
- Everything else (5xx, timeouts, connection drops) backs off exponentially
  with random jitter.

The sleep function and random source are injectable so tests never wait.
"""

import asyncio
import random
import re
from collections.abc import Awaitable, Callable, Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar

import httpx

from article_pipeline.core.config import get_settings
from article_pipeline.core.logging import ai_logger

T = TypeVar("T")

# "[429 Too Many Requests]" style markers embedded in SDK error messages
_STATUS_IN_MESSAGE = re.compile(r"\[(\d{3})[^\]]*\]")

NON_RETRIABLE_MESSAGES = (
    "context length",
    "context_length",
    "token limit",
    "maximum context",
    "api key not valid",
    "invalid api key",
    "invalid x-api-key",
    "incorrect api key",
)


def get_status_code(error: BaseException) -> int | None:
    """Read an HTTP status from an exception, if one is available."""
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    match = _STATUS_IN_MESSAGE.search(str(error))
    if match:
        return int(match.group(1))
    return None


def get_retry_after_header(error: BaseException) -> str | None:
    """Read a raw Retry-After value from an exception, if one is available."""
    retry_after = getattr(error, "retry_after", None)
    if retry_after is not None:
        return str(retry_after)
    headers: Mapping[str, str] | None = getattr(error, "headers", None)
    if headers is None and isinstance(error, httpx.HTTPStatusError):
        headers = error.response.headers
    if headers:
        for key, value in headers.items():
            if key.lower() == "retry-after":
                return value
    return None


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Parse a Retry-After value into seconds.

    Accepts delta-seconds ("2", "1.5") or an HTTP-date. Returns None when
    absent or unparsable. Dates in the past yield 0.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        seconds = None
    if seconds is not None:
        return max(0.0, seconds)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    now = now or datetime.now(UTC)
    return max(0.0, (when - now).total_seconds())


def is_retriable(error: BaseException) -> bool:
    """Classify an error: True for transient failures worth retrying."""
    message = str(error).lower()
    if any(marker in message for marker in NON_RETRIABLE_MESSAGES):
        return False
    status = get_status_code(error)
    if status is not None and 400 <= status < 500 and status != 429:
        return False
    return True


class RetryingInvoker:
    """Wraps an async call with classification-aware retry and backoff."""

    def __init__(
        self,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        retry_after_buffer: float | None = None,
        max_jitter: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
        rng: Callable[[], float] | None = None,
    ) -> None:
        settings = get_settings()
        self.max_attempts = max_attempts or settings.retry_max_attempts
        self.base_delay = base_delay if base_delay is not None else settings.retry_base_delay
        self.retry_after_buffer = (
            retry_after_buffer
            if retry_after_buffer is not None
            else settings.retry_after_buffer
        )
        self.max_jitter = max_jitter if max_jitter is not None else settings.retry_max_jitter
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.random

    def compute_delay(self, error: BaseException, attempt: int) -> float:
        """Seconds to wait before the next attempt (attempt is 0-based)."""
        if get_status_code(error) == 429:
            retry_after = parse_retry_after(get_retry_after_header(error))
            if retry_after is not None:
                return retry_after + self.retry_after_buffer
        return self.base_delay * (2**attempt) + self._rng() * self.max_jitter

    async def invoke(self, call: Callable[[], Awaitable[T]]) -> T:
        """Run call, retrying transient failures until attempts are exhausted."""
        last_error: BaseException | None = None
        for attempt in range(self.max_attempts):
            try:
                return await call()
            except Exception as e:
                last_error = e
                status = get_status_code(e)
                if not is_retriable(e):
                    ai_logger.non_retriable(status, str(e))
                    raise
                if status == 429:
                    ai_logger.rate_limit(
                        "provider", parse_retry_after(get_retry_after_header(e))
                    )
                if attempt >= self.max_attempts - 1:
                    break
                delay = self.compute_delay(e, attempt)
                ai_logger.retry_scheduled(
                    attempt + 1, self.max_attempts, delay, status, str(e)
                )
                await self._sleep(delay)

        assert last_error is not None
        ai_logger.retries_exhausted(self.max_attempts, str(last_error))
        raise last_error
