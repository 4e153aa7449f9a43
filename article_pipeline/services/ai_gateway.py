"""Single entry point for text completions.

ContentAI renders a named prompt template, sends it through the configured
provider chain with RetryingInvoker, and cleans the response for its format:
JSON responses go through extract_json, HTML responses through
sanitize_html_response. When a provider fails after its retries the next
provider in the chain is tried.
"""

import time
from collections.abc import Sequence
from typing import Any, Literal

from article_pipeline.core.config import Settings, get_settings
from article_pipeline.core.logging import ai_logger, get_logger
from article_pipeline.core.retry import RetryingInvoker
from article_pipeline.integrations.base import ProviderError, TextCompletionProvider
from article_pipeline.integrations.claude import ClaudeClient
from article_pipeline.integrations.openai_chat import build_chat_providers
from article_pipeline.services.prompts import get_template
from article_pipeline.utils.text_repair import extract_json, parse_json_response, sanitize_html_response

logger = get_logger(__name__)

ResponseFormat = Literal["json", "html"]

# Threshold for logging slow operations (in milliseconds)
SLOW_OPERATION_THRESHOLD_MS = 30_000


class EmptyResponseError(ProviderError):
    """Raised when a provider returns no text. Retriable."""


class NoProvidersConfiguredError(Exception):
    """Raised when no text-completion provider has credentials."""


class ContentAI:
    """Prompt-template driven completion gateway.

    Args:
        providers: Providers in fallback order.
        invoker: Retry wrapper applied to each provider call.
        geo_location: Optional location appended to planning prompts.
    """

    def __init__(
        self,
        providers: Sequence[TextCompletionProvider],
        invoker: RetryingInvoker | None = None,
        geo_location: str | None = None,
    ) -> None:
        self._providers = list(providers)
        self._invoker = invoker or RetryingInvoker()
        self.geo_location = geo_location

    @property
    def providers(self) -> list[TextCompletionProvider]:
        return list(self._providers)

    @property
    def available(self) -> bool:
        return bool(self._providers)

    def _system_instruction(self, template_name: str, base: str) -> str:
        if template_name == "cluster_planner" and self.geo_location:
            return f'{base}\n\nAll titles must be geo-targeted for "{self.geo_location}".'
        return base

    async def _complete_with(
        self,
        provider: TextCompletionProvider,
        template_name: str,
        system_instruction: str,
        user_prompt: str,
        json_mode: bool,
        grounding: bool,
    ) -> str:
        async def attempt() -> str:
            text = await provider.complete(
                system_instruction, user_prompt, json_mode=json_mode, grounding=grounding
            )
            if not text or not text.strip():
                raise EmptyResponseError(
                    f"AI returned an empty response for the '{template_name}' stage.",
                    provider=provider.name,
                )
            return text

        return await self._invoker.invoke(attempt)

    async def call(
        self,
        template_name: str,
        *args: Any,
        response_format: ResponseFormat = "json",
        grounding: bool = False,
    ) -> str:
        """Render template_name with args and return the cleaned response text.

        JSON responses are returned as a parseable JSON string.

        Raises:
            NoProvidersConfiguredError: If the chain is empty.
            ProviderError: The last provider's error when every provider fails.
            JSONExtractionError: If a JSON response cannot be repaired.
        """
        if not self._providers:
            raise NoProvidersConfiguredError(
                "No AI provider configured. Set ANTHROPIC_API_KEY or an OpenAI-compatible key."
            )

        template = get_template(template_name)
        system_instruction = self._system_instruction(template_name, template.system_instruction)
        user_prompt = template.build_user_prompt(*args)
        json_mode = response_format == "json"

        start_time = time.monotonic()
        last_error: Exception | None = None
        for provider in self._providers:
            try:
                raw = await self._complete_with(
                    provider, template_name, system_instruction, user_prompt, json_mode, grounding
                )
            except Exception as e:
                last_error = e
                ai_logger.provider_fallback(provider.name, str(e))
                continue

            duration_ms = (time.monotonic() - start_time) * 1000
            log_extra = {
                "template": template_name,
                "provider": provider.name,
                "duration_ms": round(duration_ms, 2),
                "response_length": len(raw),
            }
            if duration_ms > SLOW_OPERATION_THRESHOLD_MS:
                logger.warning("Slow AI completion", extra=log_extra)
            else:
                logger.debug("AI completion finished", extra=log_extra)

            if json_mode:
                return extract_json(raw)
            return sanitize_html_response(raw)

        assert last_error is not None
        raise last_error

    async def call_json(self, template_name: str, *args: Any, grounding: bool = False) -> Any:
        """Like call() with JSON format, returning the parsed value."""
        text = await self.call(template_name, *args, response_format="json", grounding=grounding)
        return parse_json_response(text)

    async def call_html(self, template_name: str, *args: Any) -> str:
        return await self.call(template_name, *args, response_format="html")

    async def close(self) -> None:
        """Close every provider that holds an HTTP client."""
        for provider in self._providers:
            close = getattr(provider, "close", None)
            if close is not None:
                await close()


def build_text_providers(settings: Settings | None = None) -> list[TextCompletionProvider]:
    """Configured providers in fallback order: Claude first, then OpenAI-compatible."""
    settings = settings or get_settings()
    providers: list[TextCompletionProvider] = []
    if settings.anthropic_api_key:
        providers.append(ClaudeClient())
    providers.extend(build_chat_providers(settings))
    return providers


def build_content_ai(
    settings: Settings | None = None, geo_location: str | None = None
) -> ContentAI:
    """Build a gateway from settings."""
    settings = settings or get_settings()
    providers = build_text_providers(settings)
    if not providers:
        logger.warning("No text-completion provider configured")
    return ContentAI(providers, RetryingInvoker(), geo_location=geo_location)
