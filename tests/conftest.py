"""Pytest configuration and fixtures.

Provides:
- Settings override for testing
- In-memory fakes for every provider capability (text, images, search, CMS)
- A fake completion gateway scripted per prompt template
"""

import base64
import io
from collections.abc import Callable
from typing import Any

import pytest
from PIL import Image

from article_pipeline.core.config import Settings
from article_pipeline.integrations.base import PublishedPost, SearchResponse, UploadedMedia
from article_pipeline.schemas.content import SitemapPage

# ---------------------------------------------------------------------------
# Settings Fixtures
# ---------------------------------------------------------------------------


def get_test_settings(**overrides: Any) -> Settings:
    """Get test settings with no provider credentials."""
    values: dict[str, Any] = {
        "app_name": "Test App",
        "app_version": "0.0.1",
        "debug": True,
        "environment": "test",
        "log_level": "DEBUG",
        "log_format": "text",
        "anthropic_api_key": None,
        "openai_api_key": None,
        "openrouter_api_key": None,
        "groq_api_key": None,
        "serper_api_key": None,
        "wp_url": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def test_settings() -> Settings:
    """Test settings."""
    return get_test_settings()


# ---------------------------------------------------------------------------
# Async helpers
# ---------------------------------------------------------------------------


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Provider Fakes
# ---------------------------------------------------------------------------


class FakeTextProvider:
    """Text completion provider returning scripted responses in order.

    Each scripted entry is either a string or an exception to raise.
    """

    def __init__(self, responses: list[Any], name: str = "fake-text") -> None:
        self.name = name
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        system_instruction: str,
        user_prompt: str,
        json_mode: bool = False,
        grounding: bool = False,
    ) -> str:
        self.calls.append(
            {
                "system_instruction": system_instruction,
                "user_prompt": user_prompt,
                "json_mode": json_mode,
                "grounding": grounding,
            }
        )
        response = self._responses.pop(0) if self._responses else ""
        if isinstance(response, BaseException):
            raise response
        return response


class FakeImageProvider:
    """Image provider returning a fixed base64 PNG, or raising."""

    def __init__(self, images: list[str] | None = None, error: Exception | None = None) -> None:
        self.name = "fake-images"
        self._images = images if images is not None else [make_png_base64()]
        self._error = error
        self.prompts: list[str] = []

    async def generate(self, prompt: str, count: int = 1, aspect_ratio: str = "16:9") -> list[str]:
        self.prompts.append(prompt)
        if self._error is not None:
            raise self._error
        return list(self._images)


class FakeSearchProvider:
    """Search provider backed by dictionaries keyed by query."""

    def __init__(
        self,
        responses: dict[str, SearchResponse] | None = None,
        videos: dict[str, list[dict[str, Any]]] | None = None,
        default: SearchResponse | None = None,
    ) -> None:
        self.available = True
        self._responses = responses or {}
        self._videos = videos or {}
        self._default = default or SearchResponse()
        self.queries: list[str] = []

    async def search(self, query: str, num: int = 10, locale: str = "us") -> SearchResponse:
        self.queries.append(query)
        return self._responses.get(query, self._default)

    async def videos(self, query: str, num: int = 10) -> list[dict[str, Any]]:
        self.queries.append(query)
        return self._videos.get(query, [])


class FakePublisher:
    """In-memory CMS publisher."""

    def __init__(
        self,
        base_url: str = "https://example.com",
        existing_slugs: dict[str, int] | None = None,
        upload_error: Exception | None = None,
        publish_error: Exception | None = None,
    ) -> None:
        self.base_url = base_url
        self.existing_slugs = existing_slugs or {}
        self.upload_error = upload_error
        self.publish_error = publish_error
        self.posts: list[dict[str, Any]] = []
        self.uploads: list[dict[str, Any]] = []
        self._next_id = 100

    async def find_post_id_by_slug(self, slug: str) -> int | None:
        return self.existing_slugs.get(slug)

    async def create_or_update_post(
        self,
        title: str,
        slug: str | None,
        content: str,
        status: str = "draft",
        meta: dict[str, str] | None = None,
        post_id: int | None = None,
    ) -> PublishedPost:
        if self.publish_error is not None:
            raise self.publish_error
        if post_id is None:
            self._next_id += 1
            post_id = self._next_id
        self.posts.append(
            {
                "title": title,
                "slug": slug,
                "content": content,
                "status": status,
                "meta": meta,
                "post_id": post_id,
            }
        )
        return PublishedPost(id=post_id, link=f"https://example.com/?p={post_id}")

    async def upload_media(
        self,
        data: bytes,
        mime_type: str,
        filename: str,
        alt_text: str = "",
    ) -> UploadedMedia:
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append(
            {"filename": filename, "mime_type": mime_type, "size": len(data), "alt_text": alt_text}
        )
        return UploadedMedia(
            id=len(self.uploads),
            source_url=f"https://example.com/wp-content/uploads/{filename}",
            width=1024,
            height=576,
        )


class FakeContentAI:
    """Completion gateway double scripted by template name.

    Handlers are strings, callables taking the template args, or exceptions.
    """

    def __init__(self, handlers: dict[str, Any] | None = None) -> None:
        self.handlers = handlers or {}
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.providers: list[Any] = []

    @property
    def available(self) -> bool:
        return True

    def _respond(self, template_name: str, args: tuple[Any, ...]) -> Any:
        self.calls.append((template_name, args))
        handler = self.handlers.get(template_name)
        if isinstance(handler, BaseException):
            raise handler
        if callable(handler):
            return handler(*args)
        if handler is None:
            raise AssertionError(f"Unexpected template: {template_name}")
        return handler

    async def call_json(self, template_name: str, *args: Any, grounding: bool = False) -> Any:
        return self._respond(template_name, args)

    async def call_html(self, template_name: str, *args: Any) -> str:
        return self._respond(template_name, args)

    def count(self, template_name: str) -> int:
        return sum(1 for name, _ in self.calls if name == template_name)

    async def close(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------


def make_png_bytes(size: tuple[int, int] = (64, 36), color: str = "teal") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_png_base64(size: tuple[int, int] = (64, 36)) -> str:
    return base64.b64encode(make_png_bytes(size)).decode()


def make_pages(titles: list[str], base_url: str = "https://example.com") -> list[SitemapPage]:
    """Sitemap pages whose slug is the hyphenated title."""
    pages = []
    for title in titles:
        slug = title.lower().replace(" ", "-")
        url = f"{base_url}/{slug}/"
        pages.append(SitemapPage(id=url, title=title, slug=slug, url=url))
    return pages


def words(count: int, word: str = "panel") -> str:
    """count words of filler prose split into short sentences."""
    tokens = [word] * count
    sentences = [" ".join(tokens[i : i + 8]) + "." for i in range(0, count, 8)]
    return " ".join(sentences)


@pytest.fixture
def page_factory() -> Callable[[list[str]], list[SitemapPage]]:
    return make_pages
