"""OpenAI-compatible chat-completions client.

One client class serves OpenAI, OpenRouter and Groq, which share the
/chat/completions wire format and differ only in base URL and model ids.
JSON mode maps to response_format={"type": "json_object"}.
"""

import time
from typing import Any

import httpx

from article_pipeline.core.config import Settings, get_settings
from article_pipeline.core.logging import ai_logger, get_logger
from article_pipeline.integrations.base import (
    ProviderError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
    error_for_status,
)

logger = get_logger(__name__)

OPENAI_API_URL = "https://api.openai.com/v1"
OPENROUTER_API_URL = "https://openrouter.ai/api/v1"
GROQ_API_URL = "https://api.groq.com/openai/v1"


class OpenAIChatClient:
    """Async chat-completions client for OpenAI-compatible APIs."""

    def __init__(
        self,
        api_key: str | None,
        model: str,
        base_url: str = OPENAI_API_URL,
        name: str = "openai",
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        self.name = name
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout or get_settings().chat_timeout
        self._client = client
        self._extra_headers = extra_headers or {}

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    @property
    def model(self) -> str:
        return self._model

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
                **self._extra_headers,
            }
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def complete(
        self,
        system_instruction: str,
        user_prompt: str,
        json_mode: bool = False,
        grounding: bool = False,
    ) -> str:
        """Send one chat completion and return the assistant text.

        Grounding has no equivalent on these APIs and is ignored.
        """
        if not self.available:
            raise ProviderNotConfiguredError(
                f"{self.name} not configured (missing API key)", provider=self.name
            )

        request_body: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": user_prompt},
            ],
        }
        if json_mode:
            request_body["response_format"] = {"type": "json_object"}

        client = await self._get_client()
        ai_logger.api_call_start(self.name, self._model, len(user_prompt))
        start_time = time.monotonic()

        try:
            response = await client.post("/chat/completions", json=request_body)
        except httpx.TimeoutException as e:
            ai_logger.timeout(self.name, self._model, self._timeout)
            raise ProviderTimeoutError(
                f"{self.name} request timed out after {self._timeout}s",
                provider=self.name,
            ) from e
        except httpx.RequestError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            ai_logger.api_call_error(
                self.name, self._model, duration_ms, None, str(e), type(e).__name__
            )
            raise ProviderError(f"{self.name} request failed: {e}", provider=self.name) from e

        duration_ms = (time.monotonic() - start_time) * 1000

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            message = response.text[:200]
            if isinstance(body, dict) and isinstance(body.get("error"), dict):
                message = body["error"].get("message", message)
            if response.status_code in (401, 403):
                ai_logger.auth_failure(self.name, response.status_code)
            ai_logger.api_call_error(
                self.name, self._model, duration_ms, response.status_code, message, "HTTPError"
            )
            raise error_for_status(
                self.name,
                response.status_code,
                message,
                retry_after=response.headers.get("retry-after"),
                response_body=body,
            )

        data = response.json()
        choices = data.get("choices") or []
        text = ""
        if choices:
            text = choices[0].get("message", {}).get("content") or ""
        usage = data.get("usage") or {}

        ai_logger.api_call_success(
            self.name,
            self._model,
            duration_ms,
            usage.get("prompt_tokens"),
            usage.get("completion_tokens"),
        )
        ai_logger.response_body(self.name, self._model, text)
        return text


def build_chat_providers(settings: Settings | None = None) -> list[OpenAIChatClient]:
    """Build every configured OpenAI-compatible provider, in fallback order."""
    settings = settings or get_settings()
    providers: list[OpenAIChatClient] = []
    if settings.openai_api_key:
        providers.append(
            OpenAIChatClient(settings.openai_api_key, settings.openai_model, name="openai")
        )
    if settings.openrouter_api_key:
        providers.append(
            OpenAIChatClient(
                settings.openrouter_api_key,
                settings.openrouter_model,
                base_url=OPENROUTER_API_URL,
                name="openrouter",
                extra_headers={"X-Title": settings.app_name},
            )
        )
    if settings.groq_api_key:
        providers.append(
            OpenAIChatClient(
                settings.groq_api_key,
                settings.groq_model,
                base_url=GROQ_API_URL,
                name="groq",
            )
        )
    return providers
