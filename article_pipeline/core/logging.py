"""Structured logging configuration.

All logs go to stdout. JSON format in production, plain text for local
development.

ERROR LOGGING REQUIREMENTS:
- Outbound AI calls with provider, model, timing and retry attempt
- Rate limits (429) and auth failures (401/403) at WARNING
- Relay fallbacks and exhausted fetches with the attempted URL
- Pipeline stage transitions per item at INFO
- Quality gate shortfalls at WARNING (never raised unless the gate is hard)
- API keys never appear in any log record
"""

import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

from pythonjsonlogger import jsonlogger

from article_pipeline.core.config import get_settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined]
    """Custom JSON formatter with additional fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(UTC).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


_KEY_PATTERN = re.compile(r"((?:key|token|password|secret)=)[^&\s]+", re.IGNORECASE)


def mask_secrets(text: str) -> str:
    """Mask credential-looking query parameters in a URL or message."""
    if not text:
        return ""
    return _KEY_PATTERN.sub(r"\1****", text)


def setup_logging() -> None:
    """Configure application logging.

    Uses JSON format when LOG_FORMAT=json, text format otherwise.
    """
    settings = get_settings()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    formatter: logging.Formatter
    if settings.log_format == "json":
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Set log levels for noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)


def _truncate_text(text: str, max_length: int = 500) -> str:
    """Truncate text for logging."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + f"... (truncated, {len(text)} chars)"


class AILogger:
    """Logger for text and image provider calls.

    Logs every outbound call with provider, model and timing.
    Request/response bodies only at DEBUG, truncated.
    Includes the retry attempt number on every failure.
    """

    def __init__(self) -> None:
        self.logger = get_logger("ai")

    def api_call_start(
        self,
        provider: str,
        model: str,
        prompt_length: int,
        retry_attempt: int = 0,
    ) -> None:
        """Log outbound API call start at DEBUG level."""
        self.logger.debug(
            f"{provider} API call: {model}",
            extra={
                "provider": provider,
                "model": model,
                "prompt_length": prompt_length,
                "retry_attempt": retry_attempt,
            },
        )

    def api_call_success(
        self,
        provider: str,
        model: str,
        duration_ms: float,
        input_tokens: int | None = None,
        output_tokens: int | None = None,
    ) -> None:
        """Log successful API call at DEBUG level with token usage."""
        self.logger.debug(
            f"{provider} API call completed: {model}",
            extra={
                "provider": provider,
                "model": model,
                "duration_ms": round(duration_ms, 2),
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "success": True,
            },
        )

    def api_call_error(
        self,
        provider: str,
        model: str,
        duration_ms: float,
        status_code: int | None,
        error: str,
        error_type: str,
    ) -> None:
        """Log failed API call at WARNING or ERROR level based on status."""
        level = logging.WARNING if status_code and 400 <= status_code < 500 else logging.ERROR
        self.logger.log(
            level,
            f"{provider} API call failed: {model}",
            extra={
                "provider": provider,
                "model": model,
                "duration_ms": round(duration_ms, 2),
                "status_code": status_code,
                "error": error,
                "error_type": error_type,
                "success": False,
            },
        )

    def timeout(self, provider: str, model: str, timeout_seconds: float) -> None:
        """Log request timeout at WARNING level."""
        self.logger.warning(
            f"{provider} API request timeout",
            extra={
                "provider": provider,
                "model": model,
                "timeout_seconds": timeout_seconds,
            },
        )

    def rate_limit(self, provider: str, retry_after: float | None = None) -> None:
        """Log rate limit (429) at WARNING level."""
        self.logger.warning(
            f"{provider} API rate limit hit (429)",
            extra={
                "provider": provider,
                "retry_after_seconds": retry_after,
            },
        )

    def auth_failure(self, provider: str, status_code: int) -> None:
        """Log authentication failure (401/403) at WARNING level."""
        self.logger.warning(
            f"{provider} API authentication failed ({status_code})",
            extra={
                "provider": provider,
                "status_code": status_code,
            },
        )

    def response_body(self, provider: str, model: str, response_text: str) -> None:
        """Log response body at DEBUG level (truncated)."""
        self.logger.debug(
            f"{provider} API response body",
            extra={
                "provider": provider,
                "model": model,
                "response_text": _truncate_text(response_text, 500),
            },
        )

    def token_usage(
        self, provider: str, model: str, input_tokens: int, output_tokens: int
    ) -> None:
        """Log API quota usage at INFO level."""
        self.logger.info(
            f"{provider} API token usage",
            extra={
                "provider": provider,
                "model": model,
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "total_tokens": input_tokens + output_tokens,
            },
        )

    def retry_scheduled(
        self,
        attempt: int,
        max_attempts: int,
        delay_seconds: float,
        status_code: int | None,
        error: str,
    ) -> None:
        """Log a scheduled retry at WARNING level."""
        self.logger.warning(
            f"Provider call attempt {attempt} failed, retrying in {delay_seconds:.2f}s",
            extra={
                "attempt": attempt,
                "max_attempts": max_attempts,
                "delay_seconds": round(delay_seconds, 3),
                "status_code": status_code,
                "error": _truncate_text(error, 300),
            },
        )

    def non_retriable(self, status_code: int | None, error: str) -> None:
        """Log a fail-fast classification at WARNING level."""
        self.logger.warning(
            "Non-retriable provider error",
            extra={
                "status_code": status_code,
                "error": _truncate_text(error, 300),
            },
        )

    def retries_exhausted(self, attempts: int, error: str) -> None:
        """Log retry exhaustion at ERROR level."""
        self.logger.error(
            "Provider call failed after all retries",
            extra={
                "attempts": attempts,
                "error": _truncate_text(error, 300),
            },
        )

    def provider_fallback(self, failed_provider: str, error: str) -> None:
        """Log switching to the next provider in a fallback chain."""
        self.logger.warning(
            f"Provider {failed_provider} failed, falling back",
            extra={
                "provider": failed_provider,
                "error": _truncate_text(error, 300),
            },
        )


# Singleton AI logger
ai_logger = AILogger()


class FetchLogger:
    """Logger for resilient fetch attempts (direct and relay)."""

    def __init__(self) -> None:
        self.logger = get_logger("fetch")

    def attempt(self, url: str, via: str, timeout_seconds: float) -> None:
        """Log a fetch attempt at DEBUG level."""
        self.logger.debug(
            f"Fetch attempt via {via}",
            extra={
                "url": mask_secrets(url)[:300],
                "via": via,
                "timeout_seconds": timeout_seconds,
            },
        )

    def attempt_failed(self, url: str, via: str, error: str) -> None:
        """Log a failed attempt at INFO level; relays fail routinely."""
        self.logger.info(
            f"Fetch via {via} failed",
            extra={
                "url": mask_secrets(url)[:300],
                "via": via,
                "error": _truncate_text(error, 300),
            },
        )

    def succeeded(self, url: str, via: str, status_code: int, duration_ms: float) -> None:
        """Log a successful fetch at DEBUG level."""
        self.logger.debug(
            f"Fetch via {via} succeeded",
            extra={
                "url": mask_secrets(url)[:300],
                "via": via,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

    def exhausted(self, url: str, attempts: int, last_error: str) -> None:
        """Log exhaustion of every fetch route at ERROR level."""
        self.logger.error(
            "All fetch attempts failed",
            extra={
                "url": mask_secrets(url)[:300],
                "attempts": attempts,
                "last_error": _truncate_text(last_error, 300),
            },
        )


# Singleton fetch logger
fetch_logger = FetchLogger()


class PipelineLogger:
    """Logger for pipeline orchestration and quality gates."""

    def __init__(self) -> None:
        self.logger = get_logger("pipeline")

    def stage_transition(
        self, item_id: str, from_stage: str, to_stage: str, status_text: str
    ) -> None:
        """Log stage transition at INFO level."""
        self.logger.info(
            f"Pipeline stage: {from_stage} -> {to_stage}",
            extra={
                "item_id": item_id,
                "from_stage": from_stage,
                "to_stage": to_stage,
                "status_text": status_text,
            },
        )

    def item_completed(self, item_id: str, word_count: int, duration_ms: float) -> None:
        """Log item completion at INFO level."""
        self.logger.info(
            "Pipeline item completed",
            extra={
                "item_id": item_id,
                "word_count": word_count,
                "duration_ms": round(duration_ms, 2),
            },
        )

    def item_failed(self, item_id: str, error: Exception, stage: str) -> None:
        """Log item failure with stack trace at ERROR level."""
        self.logger.error(
            "Pipeline item failed",
            extra={
                "item_id": item_id,
                "stage": stage,
                "error_type": type(error).__name__,
                "error_message": str(error)[:500],
            },
            exc_info=True,
        )

    def item_stopped(self, item_id: str, stage: str) -> None:
        """Log a cooperative stop at INFO level."""
        self.logger.info(
            "Pipeline item stopped by user",
            extra={"item_id": item_id, "stage": stage},
        )

    def quality_warning(self, check: str, message: str, **details: Any) -> None:
        """Log an advisory quality shortfall at WARNING level."""
        self.logger.warning(
            f"Quality check: {check}",
            extra={"check": check, "detail": message, **details},
        )

    def link_quota(self, found: int, required: int, added: int) -> None:
        """Log link quota enforcement; WARNING when still under quota."""
        level = logging.WARNING if found < required else logging.INFO
        self.logger.log(
            level,
            "Internal link quota enforced",
            extra={
                "links_found": found,
                "links_required": required,
                "links_added": added,
                "quota_met": found >= required,
            },
        )


# Singleton pipeline logger
pipeline_logger = PipelineLogger()
