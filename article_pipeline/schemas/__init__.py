"""Schemas layer - Pydantic models for pipeline data and API validation."""

from article_pipeline.schemas.content import (
    ArticlePlan,
    ClusterPlan,
    ContentItem,
    ContentType,
    GeneratedContent,
    ItemStatus,
    PageAnalysis,
    SiteInfo,
    SitemapPage,
)
from article_pipeline.schemas.generation import (
    AnalyzeAcceptedResponse,
    AnalyzeRequest,
    CrawlRequest,
    ItemsResponse,
    PagesResponse,
    PlanRequest,
    PublishItemResult,
    PublishRequest,
    PublishResponse,
    RunAcceptedResponse,
    RunRequest,
    StopRequest,
    StopResponse,
)

__all__ = [
    # Content
    "ArticlePlan",
    "ClusterPlan",
    "ContentItem",
    "ContentType",
    "GeneratedContent",
    "ItemStatus",
    "PageAnalysis",
    "SiteInfo",
    "SitemapPage",
    # Generation API
    "ItemsResponse",
    "PlanRequest",
    "PublishItemResult",
    "PublishRequest",
    "PublishResponse",
    "RunAcceptedResponse",
    "RunRequest",
    "StopRequest",
    "StopResponse",
    # Site API
    "AnalyzeAcceptedResponse",
    "AnalyzeRequest",
    "CrawlRequest",
    "PagesResponse",
]
