"""Capability interfaces and the shared provider error hierarchy.

The pipeline depends only on these protocols. Concrete clients (Claude,
OpenAI-compatible chat, OpenAI images, Serper, WordPress) implement them, and
tests substitute in-memory fakes.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


class ProviderError(Exception):
    """Base exception for external provider errors.

    Carries the HTTP status and Retry-After value (when the provider sent
    one) so RetryingInvoker can classify the failure.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: str | None = None,
        provider: str | None = None,
        response_body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
        self.provider = provider
        self.response_body = response_body


class ProviderTimeoutError(ProviderError):
    """Raised when a provider request times out."""

    pass


class ProviderRateLimitError(ProviderError):
    """Raised when rate limited (429)."""

    pass


class ProviderAuthError(ProviderError):
    """Raised when authentication fails (401/403)."""

    pass


class ProviderNotConfiguredError(ProviderError):
    """Raised when a provider is called without credentials."""

    pass


def error_for_status(
    provider: str,
    status_code: int,
    message: str,
    retry_after: str | None = None,
    response_body: Any = None,
) -> ProviderError:
    """Build the most specific ProviderError for an HTTP status."""
    text = f"[{status_code}] {provider}: {message}"
    if status_code == 429:
        return ProviderRateLimitError(
            text, status_code, retry_after, provider, response_body
        )
    if status_code in (401, 403):
        return ProviderAuthError(text, status_code, None, provider, response_body)
    return ProviderError(text, status_code, retry_after, provider, response_body)


@dataclass
class SearchResponse:
    """Normalized search-results payload."""

    organic: list[dict[str, Any]] = field(default_factory=list)
    people_also_ask: list[str] = field(default_factory=list)
    related_searches: list[str] = field(default_factory=list)


@dataclass
class PublishedPost:
    """Result of creating or updating a CMS post."""

    id: int
    link: str


@dataclass
class UploadedMedia:
    """Result of uploading media to the CMS."""

    id: int
    source_url: str
    width: int | None = None
    height: int | None = None


@runtime_checkable
class TextCompletionProvider(Protocol):
    """A text-completion capability with a system/user split."""

    name: str

    async def complete(
        self,
        system_instruction: str,
        user_prompt: str,
        json_mode: bool = False,
        grounding: bool = False,
    ) -> str: ...


@runtime_checkable
class ImageGenerationProvider(Protocol):
    """An image-generation capability returning base64 images."""

    name: str

    async def generate(
        self, prompt: str, count: int = 1, aspect_ratio: str = "16:9"
    ) -> list[str]: ...


@runtime_checkable
class SearchProvider(Protocol):
    """A search-results capability."""

    async def search(
        self, query: str, num: int = 10, locale: str = "us"
    ) -> SearchResponse: ...

    async def videos(self, query: str, num: int = 10) -> list[dict[str, Any]]: ...


@runtime_checkable
class CmsPublisher(Protocol):
    """A CMS publishing capability."""

    base_url: str

    async def find_post_id_by_slug(self, slug: str) -> int | None: ...

    async def create_or_update_post(
        self,
        title: str,
        slug: str | None,
        content: str,
        status: str,
        meta: dict[str, Any],
        post_id: int | None = None,
    ) -> PublishedPost: ...

    async def upload_media(
        self, data: bytes, mime_type: str, filename: str, alt_text: str = ""
    ) -> UploadedMedia: ...
