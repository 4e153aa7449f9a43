"""Turns user input into content items.

Three entry points:
- a broad topic becomes a pillar plus cluster items through the cluster planner
- a keyword list becomes one standard item per keyword
- selected sitemap pages become rewrite, pillar or link-optimizer items
"""

from collections.abc import Iterable
from typing import Any
from urllib.parse import unquote, urlparse

from article_pipeline.core.logging import get_logger
from article_pipeline.schemas.content import ClusterPlan, ContentItem, ContentType, SitemapPage
from article_pipeline.services.ai_gateway import ContentAI
from article_pipeline.services.normalization import as_str_list

logger = get_logger(__name__)

UNTITLED = "Untitled Article"
READY_TO_GENERATE = "Ready to Generate"
READY_TO_REWRITE = "Ready to Rewrite"
READY_TO_OPTIMIZE = "Ready to Optimize"


class PlanningError(Exception):
    """Raised when the cluster planner returns an unusable plan."""


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


def title_from_slug(slug: str) -> str:
    return unquote(slug).replace("-", " ").title()


def sanitize_title(title: str | None, slug: str) -> str:
    """Readable title for a page whose title may be missing or still a URL."""
    if not title or _is_url(title):
        return title_from_slug(slug) if slug else UNTITLED
    return title


def parse_cluster_plan(data: Any) -> ClusterPlan:
    if not isinstance(data, dict):
        raise PlanningError("Cluster planner returned no plan object")
    pillar = str(data.get("pillarTitle") or data.get("pillar_title") or "").strip()
    if not pillar:
        raise PlanningError("Cluster planner returned no pillar title")
    clusters = as_str_list(data.get("clusterTitles") or data.get("cluster_titles"))
    return ClusterPlan(pillar_title=pillar, cluster_titles=clusters)


def items_from_cluster_plan(plan: ClusterPlan) -> list[ContentItem]:
    items = [
        ContentItem(
            id=plan.pillar_title,
            title=plan.pillar_title,
            type=ContentType.PILLAR,
            status_text=READY_TO_GENERATE,
        )
    ]
    items.extend(
        ContentItem(id=title, title=title, type=ContentType.CLUSTER, status_text=READY_TO_GENERATE)
        for title in plan.cluster_titles
        if title != plan.pillar_title
    )
    return items


def items_from_keywords(keywords: Iterable[str]) -> list[ContentItem]:
    """One standard item per unique non-blank keyword."""
    unique = dict.fromkeys(k.strip() for k in keywords if k and k.strip())
    return [
        ContentItem(id=k, title=k, type=ContentType.STANDARD, status_text=READY_TO_GENERATE)
        for k in unique
    ]


def items_from_pages(
    pages: Iterable[SitemapPage], content_type: ContentType = ContentType.STANDARD
) -> list[ContentItem]:
    """Items for selected site pages.

    Standard items are rewrites and need a completed analysis; pages without
    one are skipped. Link-optimizer titles are prefixed with "Optimize Links:".
    """
    items: list[ContentItem] = []
    for page in pages:
        title = sanitize_title(page.title, page.slug)
        original_url = page.url or page.id
        if content_type == ContentType.LINK_OPTIMIZER:
            items.append(
                ContentItem(
                    id=page.id,
                    title=f"Optimize Links: {title}",
                    type=content_type,
                    status_text=READY_TO_OPTIMIZE,
                    original_url=original_url,
                    crawled_content=page.crawled_content,
                )
            )
        elif content_type == ContentType.STANDARD:
            if page.analysis is None:
                logger.info("Skipping page without analysis", extra={"page_id": page.id})
                continue
            items.append(
                ContentItem(
                    id=page.id,
                    title=title,
                    type=content_type,
                    status_text=READY_TO_REWRITE,
                    original_url=original_url,
                    crawled_content=page.crawled_content,
                    analysis=page.analysis,
                )
            )
        else:
            items.append(
                ContentItem(
                    id=page.id,
                    title=title,
                    type=content_type,
                    status_text=READY_TO_GENERATE,
                    original_url=original_url,
                    crawled_content=page.crawled_content,
                )
            )
    return items


async def plan_cluster(ai: ContentAI, topic: str) -> list[ContentItem]:
    """Ask the cluster planner for a pillar and its clusters.

    Raises:
        PlanningError: If the response has no pillar title.
    """
    data = await ai.call_json("cluster_planner", topic)
    plan = parse_cluster_plan(data)
    logger.info(
        "Cluster plan generated",
        extra={"topic": topic, "pillar": plan.pillar_title, "clusters": len(plan.cluster_titles)},
    )
    return items_from_cluster_plan(plan)
