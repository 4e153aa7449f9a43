"""Unit tests for the WordPress REST client."""

import base64
import json

import httpx
import pytest

from article_pipeline.integrations.fetcher import ResilientFetcher
from article_pipeline.integrations.wordpress import (
    WordPressClient,
    WordPressError,
    basic_auth_header,
)

SITE = "https://blog.example.com"
API = f"{SITE}/wp-json/wp/v2"


class FakeWordPress:
    """Minimal in-process WordPress REST API."""

    def __init__(self, posts_by_slug: dict[str, int] | None = None, fail_publish: bool = False):
        self.posts_by_slug = posts_by_slug or {}
        self.fail_publish = fail_publish
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/wp-json/wp/v2/posts" and request.method == "GET":
            slug = request.url.params.get("slug")
            post_id = self.posts_by_slug.get(slug)
            return httpx.Response(200, json=[{"id": post_id}] if post_id else [])
        if path.startswith("/wp-json/wp/v2/posts") and request.method == "POST":
            if self.fail_publish:
                body = {"code": "rest_forbidden", "message": "Sorry, you are not allowed."}
                return httpx.Response(403, json=body)
            post_id = int(path.rsplit("/", 1)[-1]) if path.rsplit("/", 1)[-1].isdigit() else 77
            return httpx.Response(201, json={"id": post_id, "link": f"{SITE}/?p={post_id}"})
        if path == "/wp-json/wp/v2/media":
            return httpx.Response(
                201,
                json={
                    "id": 9,
                    "source_url": f"{SITE}/wp-content/uploads/image.webp",
                    "media_details": {"width": 1792, "height": 1024},
                },
            )
        if path == "/wp-json/wp/v2/media/9":
            return httpx.Response(200, json={"id": 9})
        return httpx.Response(404)


def make_client(api: FakeWordPress) -> WordPressClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(api))
    fetcher = ResilientFetcher(client=client, relay_templates=["https://relay.test/{url}"])
    return WordPressClient(SITE, "editor", "abcd efgh ijkl", fetcher)


class TestWordPressClient:
    """Tests for WordPressClient requests."""

    def test_basic_auth_header(self) -> None:
        header = basic_auth_header("editor", "abcd efgh")
        assert base64.b64decode(header.removeprefix("Basic ")).decode() == "editor:abcd efgh"

    @pytest.mark.asyncio
    async def test_create_post(self) -> None:
        api = FakeWordPress()
        post = await make_client(api).create_or_update_post(
            "Solar ROI", "solar-roi", "<p>Body</p>", "draft", {"_yoast_wpseo_focuskw": "solar"}
        )

        assert post.id == 77
        assert post.link == f"{SITE}/?p=77"
        request = api.requests[0]
        assert str(request.url) == f"{API}/posts"
        assert request.headers["Authorization"].startswith("Basic ")
        payload = json.loads(request.content)
        assert payload["slug"] == "solar-roi"
        assert payload["meta"] == {"_yoast_wpseo_focuskw": "solar"}

    @pytest.mark.asyncio
    async def test_update_keeps_slug(self) -> None:
        api = FakeWordPress()
        post = await make_client(api).create_or_update_post(
            "Solar ROI", None, "<p>Body</p>", "publish", {}, post_id=42
        )
        assert post.id == 42
        assert str(api.requests[0].url) == f"{API}/posts/42"
        assert "slug" not in json.loads(api.requests[0].content)

    @pytest.mark.asyncio
    async def test_find_post_by_slug(self) -> None:
        client = make_client(FakeWordPress(posts_by_slug={"solar-roi": 42}))
        assert await client.find_post_id_by_slug("solar-roi") == 42
        assert await client.find_post_id_by_slug("missing") is None

    @pytest.mark.asyncio
    async def test_rejected_publish_raises_and_is_not_relayed(self) -> None:
        api = FakeWordPress(fail_publish=True)
        with pytest.raises(WordPressError) as exc_info:
            await make_client(api).create_or_update_post("T", "t", "c", "draft", {})

        assert exc_info.value.status_code == 403
        assert "Sorry, you are not allowed." in str(exc_info.value)
        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_upload_media_sets_alt_text(self) -> None:
        api = FakeWordPress()
        media = await make_client(api).upload_media(
            b"RIFF....WEBP", "image/webp", "solar-roi-image-1.webp", alt_text="Panels"
        )

        assert media.id == 9
        assert media.width == 1792
        upload, alt = api.requests
        assert upload.headers["Content-Type"] == "image/webp"
        assert 'filename="solar-roi-image-1.webp"' in upload.headers["Content-Disposition"]
        assert json.loads(alt.content) == {"alt_text": "Panels"}
