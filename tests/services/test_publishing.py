"""Tests for publishing finished articles."""

import pytest

from article_pipeline.integrations.fetcher import FetchError
from article_pipeline.schemas.content import ContentItem, GeneratedContent
from article_pipeline.services.publishing import PublishingService, build_yoast_meta
from tests.conftest import FakePublisher


def make_item(item_id: str = "solar roi", original_url: str | None = None) -> ContentItem:
    return ContentItem(
        id=item_id,
        title="Solar ROI",
        original_url=original_url,
        generated_content=GeneratedContent(
            title="Solar Panel ROI",
            slug="solar-panel-roi",
            meta_description="How fast panels pay back.",
            primary_keyword="solar roi",
            semantic_keywords=["payback", "net metering"],
            content="<p>Body</p>",
        ),
    )


class TestPublishItem:
    """Tests for PublishingService.publish_item."""

    @pytest.mark.asyncio
    async def test_new_article_is_drafted(self) -> None:
        publisher = FakePublisher()
        result = await PublishingService(publisher).publish_item(make_item())

        assert result.success is True
        assert result.message == "Drafted successfully!"
        assert result.link == "https://example.com/?p=101"
        post = publisher.posts[0]
        assert post["status"] == "draft"
        assert post["slug"] == "solar-panel-roi"
        assert post["meta"]["_yoast_wpseo_focuskw"] == "solar roi"

    @pytest.mark.asyncio
    async def test_publish_status(self) -> None:
        result = await PublishingService(FakePublisher()).publish_item(make_item(), "publish")
        assert result.message == "Published successfully!"

    @pytest.mark.asyncio
    async def test_rewrite_updates_existing_post(self) -> None:
        publisher = FakePublisher(existing_slugs={"solar-panel-roi": 42})
        item = make_item(original_url="https://example.com/solar-panel-roi/")

        result = await PublishingService(publisher).publish_item(item, "draft")

        assert result.success is True
        assert result.message == "Updated successfully!"
        assert result.post_id == 42
        assert publisher.posts[0]["status"] == "publish"
        assert publisher.posts[0]["slug"] is None

    @pytest.mark.asyncio
    async def test_rewrite_without_existing_post_fails(self) -> None:
        item = make_item(original_url="https://example.com/solar-panel-roi/")
        result = await PublishingService(FakePublisher()).publish_item(item)
        assert result.success is False
        assert 'Could not find existing post with slug "solar-panel-roi"' in result.message

    @pytest.mark.asyncio
    async def test_no_content(self) -> None:
        item = ContentItem(id="x", title="X")
        result = await PublishingService(FakePublisher()).publish_item(item)
        assert result.success is False
        assert result.message == "No content to publish."

    @pytest.mark.asyncio
    async def test_network_error_message(self) -> None:
        publisher = FakePublisher(publish_error=FetchError("unreachable", "https://example.com"))
        result = await PublishingService(publisher).publish_item(make_item())
        assert result.success is False
        assert result.message.startswith("A network error occurred.")


class TestPublishMany:
    @pytest.mark.asyncio
    async def test_failures_do_not_stop_the_batch(self) -> None:
        items = [
            make_item("a"),
            make_item("b", original_url="https://example.com/missing/"),
            make_item("c"),
        ]
        bulk = await PublishingService(FakePublisher()).publish_many(items, concurrency=2)

        assert bulk.total == 3
        assert bulk.succeeded == 2
        assert bulk.failed == 1
        assert {r.item_id for r in bulk.results if not r.success} == {"b"}


def test_yoast_meta() -> None:
    meta = build_yoast_meta(make_item().generated_content)
    assert meta == {
        "_yoast_wpseo_title": "Solar Panel ROI",
        "_yoast_wpseo_metadesc": "How fast panels pay back.",
        "_yoast_wpseo_focuskw": "solar roi",
        "_yoast_wpseo_metakeywords": "payback, net metering",
    }
