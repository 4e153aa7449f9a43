"""OpenAI image-generation client (base64 output)."""

import time

import httpx

from article_pipeline.core.config import get_settings
from article_pipeline.core.logging import ai_logger, get_logger
from article_pipeline.integrations.base import (
    ProviderError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
    error_for_status,
)
from article_pipeline.integrations.openai_chat import OPENAI_API_URL

logger = get_logger(__name__)

# Closest supported size per aspect ratio
ASPECT_RATIO_SIZES = {
    "16:9": "1792x1024",
    "9:16": "1024x1792",
    "1:1": "1024x1024",
}


class OpenAIImageClient:
    """Async client for the OpenAI images endpoint."""

    name = "openai-images"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key or settings.openai_api_key
        self._model = model or settings.openai_image_model
        self._timeout = timeout or settings.image_generation_timeout
        self._client = client

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=OPENAI_API_URL,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self._api_key}",
                },
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def generate(
        self, prompt: str, count: int = 1, aspect_ratio: str = "16:9"
    ) -> list[str]:
        """Generate images and return them as base64 strings."""
        if not self.available:
            raise ProviderNotConfiguredError(
                "OpenAI images not configured (missing API key)", provider=self.name
            )

        client = await self._get_client()
        ai_logger.api_call_start(self.name, self._model, len(prompt))
        start_time = time.monotonic()
        try:
            response = await client.post(
                "/images/generations",
                json={
                    "model": self._model,
                    "prompt": prompt,
                    "n": count,
                    "size": ASPECT_RATIO_SIZES.get(aspect_ratio, "1024x1024"),
                    "response_format": "b64_json",
                },
            )
        except httpx.TimeoutException as e:
            ai_logger.timeout(self.name, self._model, self._timeout)
            raise ProviderTimeoutError(
                f"Image generation timed out after {self._timeout}s", provider=self.name
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(
                f"Image generation request failed: {e}", provider=self.name
            ) from e

        duration_ms = (time.monotonic() - start_time) * 1000
        if response.status_code >= 400:
            ai_logger.api_call_error(
                self.name,
                self._model,
                duration_ms,
                response.status_code,
                response.text[:200],
                "HTTPError",
            )
            raise error_for_status(
                self.name,
                response.status_code,
                response.text[:200],
                retry_after=response.headers.get("retry-after"),
            )

        images = [
            item["b64_json"]
            for item in response.json().get("data", [])
            if item.get("b64_json")
        ]
        ai_logger.api_call_success(self.name, self._model, duration_ms)
        return images
