"""Claude/Anthropic text-completion client.

Features:
- Async HTTP client using httpx (direct API calls to /v1/messages)
- One attempt per call; retries belong to RetryingInvoker, which reads the
  status_code / retry_after carried by the raised ProviderError
- Handles timeouts, rate limits (429), auth failures (401/403)
- Optional web-search grounding through the server-side web_search tool
- Token usage logging for quota tracking
- API keys never logged

ERROR LOGGING REQUIREMENTS:
- Log all outbound API calls with model and timing
- Log response bodies at DEBUG level (truncated)
- Log and handle: timeouts, rate limits (429), auth failures (401/403)
- Log API quota/credit usage if available
"""

import time
from typing import Any

import httpx

from article_pipeline.core.config import get_settings
from article_pipeline.core.logging import ai_logger, get_logger
from article_pipeline.integrations.base import (
    ProviderError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
    error_for_status,
)

logger = get_logger(__name__)

# Anthropic API base URL
ANTHROPIC_API_URL = "https://api.anthropic.com"
ANTHROPIC_API_VERSION = "2023-06-01"

PROVIDER_NAME = "Claude"

JSON_MODE_INSTRUCTION = (
    "\n\nRespond ONLY with a single valid JSON value. "
    "No markdown code fences, no text before or after the JSON."
)

WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 5}


class ClaudeClient:
    """Async client for the Anthropic Messages API."""

    name = "claude"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        max_tokens: int | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize Claude client.

        Args:
            api_key: Anthropic API key. Defaults to settings.
            model: Model to use. Defaults to settings.
            timeout: Request timeout in seconds. Defaults to settings.
            max_tokens: Maximum response tokens. Defaults to settings.
            client: Pre-built httpx client (tests inject a MockTransport).
        """
        settings = get_settings()

        self._api_key = api_key or settings.anthropic_api_key
        self._model = model or settings.claude_model
        self._timeout = timeout or settings.claude_timeout
        self._max_tokens = max_tokens or settings.claude_max_tokens
        self._client = client
        self._available = bool(self._api_key)

    @property
    def available(self) -> bool:
        """Check if Claude is configured and available."""
        return self._available

    @property
    def model(self) -> str:
        """Get the model being used."""
        return self._model

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers: dict[str, str] = {
                "Content-Type": "application/json",
                "Accept": "application/json",
                "anthropic-version": ANTHROPIC_API_VERSION,
            }
            if self._api_key:
                headers["x-api-key"] = self._api_key

            self._client = httpx.AsyncClient(
                base_url=ANTHROPIC_API_URL,
                headers=headers,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("Claude client closed")

    async def complete(
        self,
        system_instruction: str,
        user_prompt: str,
        json_mode: bool = False,
        grounding: bool = False,
    ) -> str:
        """Send one completion request and return the response text.

        Raises:
            ProviderNotConfiguredError: No API key configured.
            ProviderError: Any non-2xx response (status_code set) or transport
                failure (status_code None).
        """
        if not self._available:
            raise ProviderNotConfiguredError(
                "Claude not configured (missing API key)", provider=PROVIDER_NAME
            )

        system = system_instruction + (JSON_MODE_INSTRUCTION if json_mode else "")
        request_body: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "system": system,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if grounding:
            request_body["tools"] = [WEB_SEARCH_TOOL]

        client = await self._get_client()
        ai_logger.api_call_start(PROVIDER_NAME, self._model, len(user_prompt))
        start_time = time.monotonic()

        try:
            response = await client.post("/v1/messages", json=request_body)
        except httpx.TimeoutException as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            ai_logger.timeout(PROVIDER_NAME, self._model, self._timeout)
            ai_logger.api_call_error(
                PROVIDER_NAME, self._model, duration_ms, None, "Request timed out", "TimeoutError"
            )
            raise ProviderTimeoutError(
                f"Claude request timed out after {self._timeout}s", provider=PROVIDER_NAME
            ) from e
        except httpx.RequestError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            ai_logger.api_call_error(
                PROVIDER_NAME, self._model, duration_ms, None, str(e), type(e).__name__
            )
            raise ProviderError(
                f"Claude request failed: {e}", provider=PROVIDER_NAME
            ) from e

        duration_ms = (time.monotonic() - start_time) * 1000

        if response.status_code >= 400:
            body = _safe_json(response)
            message = response.text[:200]
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                message = body["error"].get("message", message)
            if response.status_code in (401, 403):
                ai_logger.auth_failure(PROVIDER_NAME, response.status_code)
            ai_logger.api_call_error(
                PROVIDER_NAME,
                self._model,
                duration_ms,
                response.status_code,
                message,
                "HTTPError",
            )
            raise error_for_status(
                PROVIDER_NAME,
                response.status_code,
                message,
                retry_after=response.headers.get("retry-after"),
                response_body=body,
            )

        data = response.json()
        text = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )
        usage = data.get("usage", {})
        input_tokens = usage.get("input_tokens")
        output_tokens = usage.get("output_tokens")

        ai_logger.api_call_success(
            PROVIDER_NAME, self._model, duration_ms, input_tokens, output_tokens
        )
        ai_logger.response_body(PROVIDER_NAME, self._model, text)
        if input_tokens and output_tokens:
            ai_logger.token_usage(PROVIDER_NAME, self._model, input_tokens, output_tokens)

        return text


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
