"""Publishing finished articles to WordPress.

New articles are created with the requested status. Rewrites (items with an
original URL) look up the existing post by slug and update it in place,
always as published. SEO fields are written to the Yoast meta keys.

Bulk publishing runs through the batch runner; one failed post never stops
the batch.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from article_pipeline.core.batch import BatchProgress, BatchRunner
from article_pipeline.core.config import get_settings
from article_pipeline.core.logging import get_logger
from article_pipeline.integrations.base import CmsPublisher
from article_pipeline.integrations.fetcher import FetchError
from article_pipeline.schemas.content import ContentItem, GeneratedContent

logger = get_logger(__name__)

PostStatus = Literal["publish", "draft"]


class PublishError(Exception):
    """Raised when an item cannot be published."""


@dataclass
class PublishResult:
    """Outcome of publishing one item."""

    item_id: str
    success: bool
    message: str
    link: str | None = None
    post_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "success": self.success,
            "message": self.message,
            "link": self.link,
            "post_id": self.post_id,
        }


@dataclass
class BulkPublishResult:
    """Outcome of a bulk publish."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    results: list[PublishResult] = field(default_factory=list)


def build_yoast_meta(content: GeneratedContent) -> dict[str, str]:
    return {
        "_yoast_wpseo_title": content.title,
        "_yoast_wpseo_metadesc": content.meta_description,
        "_yoast_wpseo_focuskw": content.primary_keyword,
        "_yoast_wpseo_metakeywords": ", ".join(content.semantic_keywords),
    }


class PublishingService:
    """Publishes generated content through a CMS publisher."""

    def __init__(self, publisher: CmsPublisher) -> None:
        self._publisher = publisher

    async def _existing_post_id(self, slug: str) -> int:
        """Id of the post a rewrite should update.

        Raises:
            PublishError: The lookup failed or no post has this slug.
        """
        try:
            post_id = await self._publisher.find_post_id_by_slug(slug)
        except Exception as e:
            raise PublishError(str(e)) from e
        if post_id is None:
            raise PublishError(f'Could not find existing post with slug "{slug}".')
        return post_id

    async def publish_item(self, item: ContentItem, status: PostStatus = "draft") -> PublishResult:
        """Publish or update one item. Never raises; failures are in the result."""
        content = item.generated_content
        if content is None:
            return PublishResult(item.id, False, "No content to publish.")

        is_update = bool(item.original_url)
        post_id: int | None = None
        if is_update:
            try:
                post_id = await self._existing_post_id(content.slug)
            except PublishError as e:
                logger.warning(
                    "Post lookup failed",
                    extra={"item_id": item.id, "slug": content.slug, "error": str(e)},
                )
                return PublishResult(item.id, False, f"Error finding post to update: {e}")

        try:
            post = await self._publisher.create_or_update_post(
                title=content.title,
                slug=None if is_update else content.slug,
                content=content.content,
                status="publish" if is_update else status,
                meta=build_yoast_meta(content),
                post_id=post_id,
            )
        except FetchError as e:
            logger.error(
                "Publishing failed on the network",
                extra={"item_id": item.id, "error": str(e)},
                exc_info=True,
            )
            return PublishResult(
                item.id,
                False,
                f"A network error occurred. Ensure your WordPress site is accessible. Details: {e}",
            )
        except Exception as e:
            logger.error(
                "Publishing failed",
                extra={"item_id": item.id, "error": str(e)},
                exc_info=True,
            )
            return PublishResult(item.id, False, f"Error: {e}")

        verb = "Updated" if is_update else ("Published" if status == "publish" else "Drafted")
        logger.info(
            "Item published",
            extra={"item_id": item.id, "post_id": post.id, "action": verb.lower()},
        )
        return PublishResult(item.id, True, f"{verb} successfully!", post.link, post.id)

    async def publish_many(
        self,
        items: Iterable[ContentItem],
        status: PostStatus = "draft",
        concurrency: int | None = None,
        on_progress: Callable[[BatchProgress], None] | None = None,
    ) -> BulkPublishResult:
        """Publish items with bounded concurrency."""
        bulk = BulkPublishResult()

        async def publish(item: ContentItem) -> None:
            result = await self.publish_item(item, status)
            bulk.results.append(result)
            if result.success:
                bulk.succeeded += 1
            else:
                bulk.failed += 1

        items = list(items)
        bulk.total = len(items)
        runner: BatchRunner[ContentItem] = BatchRunner(
            publish,
            concurrency=concurrency or get_settings().batch_concurrency,
            on_progress=on_progress,
        )
        await runner.run(items)
        return bulk
