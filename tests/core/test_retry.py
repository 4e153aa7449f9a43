"""Tests for the classification-aware retrying invoker.

Tests cover:
- Non-retriable failures (401, context length, invalid key) fail on the first call
- 429 honours Retry-After (seconds and HTTP-date) plus the buffer
- 5xx and timeouts back off exponentially until attempts are exhausted
- Retry-After parsing
"""

from datetime import UTC, datetime

import httpx
import pytest

from article_pipeline.core.retry import (
    RetryingInvoker,
    get_status_code,
    is_retriable,
    parse_retry_after,
)
from article_pipeline.integrations.base import ProviderError, error_for_status


class _ScriptedCall:
    """Async callable that raises scripted errors, then returns a value."""

    def __init__(self, errors: list[Exception], result: str = "ok") -> None:
        self._errors = list(errors)
        self._result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self._errors:
            raise self._errors.pop(0)
        return self._result


def _invoker(fake_sleep, **kwargs) -> RetryingInvoker:
    return RetryingInvoker(
        max_attempts=kwargs.get("max_attempts", 5),
        base_delay=kwargs.get("base_delay", 5.0),
        retry_after_buffer=0.5,
        max_jitter=1.0,
        sleep=fake_sleep,
        rng=lambda: 0.0,
    )


class TestClassification:
    """Tests for error classification."""

    def test_auth_error_is_not_retriable(self) -> None:
        assert is_retriable(error_for_status("claude", 401, "unauthorized")) is False

    def test_bad_request_is_not_retriable(self) -> None:
        assert is_retriable(ProviderError("bad", status_code=400)) is False

    def test_rate_limit_is_retriable(self) -> None:
        assert is_retriable(error_for_status("claude", 429, "slow down")) is True

    def test_server_error_is_retriable(self) -> None:
        assert is_retriable(ProviderError("boom", status_code=503)) is True

    def test_context_length_message_is_not_retriable(self) -> None:
        assert is_retriable(ProviderError("maximum context length exceeded", 500)) is False

    def test_invalid_api_key_message_is_not_retriable(self) -> None:
        assert is_retriable(Exception("API key not valid. Please pass a valid key")) is False

    def test_timeout_without_status_is_retriable(self) -> None:
        assert is_retriable(httpx.ReadTimeout("timed out")) is True

    def test_status_read_from_message_marker(self) -> None:
        assert get_status_code(Exception("[429 Too Many Requests] quota")) == 429

    def test_status_read_from_http_status_error(self) -> None:
        request = httpx.Request("GET", "https://api.example.com")
        response = httpx.Response(502, request=request)
        error = httpx.HTTPStatusError("bad gateway", request=request, response=response)
        assert get_status_code(error) == 502


class TestParseRetryAfter:
    """Tests for Retry-After parsing."""

    def test_delta_seconds(self) -> None:
        assert parse_retry_after("2") == 2.0

    def test_fractional_seconds(self) -> None:
        assert parse_retry_after("1.5") == 1.5

    def test_http_date(self) -> None:
        now = datetime(2024, 1, 15, 12, 0, 0, tzinfo=UTC)
        assert parse_retry_after("Mon, 15 Jan 2024 12:00:10 GMT", now=now) == 10.0

    def test_past_date_is_zero(self) -> None:
        now = datetime(2024, 1, 15, 12, 0, 0, tzinfo=UTC)
        assert parse_retry_after("Mon, 15 Jan 2024 11:00:00 GMT", now=now) == 0.0

    def test_missing_or_garbage(self) -> None:
        assert parse_retry_after(None) is None
        assert parse_retry_after("") is None
        assert parse_retry_after("soon") is None


class TestRetryingInvoker:
    """Tests for RetryingInvoker.invoke."""

    @pytest.mark.asyncio
    async def test_success_needs_one_call(self, fake_sleep) -> None:
        call = _ScriptedCall([])
        assert await _invoker(fake_sleep).invoke(call) == "ok"
        assert call.calls == 1
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_401_fails_after_exactly_one_call(self, fake_sleep) -> None:
        call = _ScriptedCall([error_for_status("claude", 401, "invalid x-api-key")])
        with pytest.raises(ProviderError):
            await _invoker(fake_sleep).invoke(call)
        assert call.calls == 1
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_429_waits_at_least_retry_after_plus_buffer(self, fake_sleep) -> None:
        call = _ScriptedCall([error_for_status("claude", 429, "rate limited", retry_after="2")])
        assert await _invoker(fake_sleep).invoke(call) == "ok"
        assert call.calls == 2
        assert len(fake_sleep.delays) == 1
        assert fake_sleep.delays[0] >= 2.5

    @pytest.mark.asyncio
    async def test_429_without_retry_after_uses_backoff(self, fake_sleep) -> None:
        call = _ScriptedCall([error_for_status("claude", 429, "rate limited")])
        await _invoker(fake_sleep).invoke(call)
        assert fake_sleep.delays == [5.0]

    @pytest.mark.asyncio
    async def test_500_exhausts_all_attempts(self, fake_sleep) -> None:
        errors = [ProviderError(f"[500] attempt {i}", status_code=500) for i in range(5)]
        call = _ScriptedCall(errors)
        with pytest.raises(ProviderError, match="attempt 4"):
            await _invoker(fake_sleep).invoke(call)
        assert call.calls == 5
        # No sleep after the final attempt
        assert fake_sleep.delays == [5.0, 10.0, 20.0, 40.0]

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, fake_sleep) -> None:
        call = _ScriptedCall(
            [httpx.ConnectError("reset"), ProviderError("[503] unavailable", status_code=503)]
        )
        assert await _invoker(fake_sleep).invoke(call) == "ok"
        assert call.calls == 3

    def test_jitter_is_bounded(self) -> None:
        invoker = RetryingInvoker(base_delay=1.0, max_jitter=1.0, rng=lambda: 0.999)
        delay = invoker.compute_delay(ProviderError("boom", 500), attempt=2)
        assert 4.0 <= delay < 5.0
