"""Pydantic v2 schemas for the generation and site API endpoints.

Request bodies are snake_case. Responses embed the content models, which
serialize camelCase.
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from article_pipeline.schemas.content import ContentItem, ContentType, SitemapPage


# =============================================================================
# PLANNING
# =============================================================================


class PlanRequest(BaseModel):
    """Request to replace the work queue with newly planned items.

    Exactly one source is used: a topic for the cluster planner, a keyword
    list, or page ids from the last sitemap crawl.
    """

    topic: str | None = Field(None, description="Broad topic for pillar + cluster planning")
    keywords: list[str] = Field(default_factory=list, description="One standard item per keyword")
    page_ids: list[str] = Field(default_factory=list, description="Crawled page ids to rewrite")
    content_type: ContentType = Field(
        ContentType.STANDARD,
        description="Item type for page-based plans (standard, pillar or link-optimizer)",
    )

    @field_validator("keywords", "page_ids")
    @classmethod
    def strip_blank(cls, v: list[str]) -> list[str]:
        return [s.strip() for s in v if s.strip()]

    @model_validator(mode="after")
    def exactly_one_source(self) -> "PlanRequest":
        sources = [bool(self.topic and self.topic.strip()), bool(self.keywords), bool(self.page_ids)]
        if sum(sources) != 1:
            raise ValueError("Provide exactly one of topic, keywords or page_ids")
        return self


class ItemsResponse(BaseModel):
    """Current work queue."""

    items: list[ContentItem]
    running: bool = Field(False, description="Whether a generation run is in progress")


# =============================================================================
# RUN CONTROL
# =============================================================================


class RunRequest(BaseModel):
    """Request to generate items in the background."""

    item_ids: list[str] | None = Field(
        None, description="Items to process in order; every queued item when omitted"
    )


class RunAcceptedResponse(BaseModel):
    """Response for an accepted generation run."""

    accepted: int = Field(..., description="Number of items queued for this run")


class StopRequest(BaseModel):
    """Request a cooperative stop."""

    item_id: str | None = Field(None, description="Item to stop; every item when omitted")


class StopResponse(BaseModel):
    stopped: str = Field(..., description="Stopped item id, or 'all'")


# =============================================================================
# PUBLISHING
# =============================================================================


class PublishRequest(BaseModel):
    """Request to publish finished items to WordPress."""

    item_ids: list[str] = Field(..., min_length=1, description="Items to publish")
    status: Literal["publish", "draft"] = Field("draft", description="Status for new posts")


class PublishItemResult(BaseModel):
    item_id: str
    success: bool
    message: str
    link: str | None = None
    post_id: int | None = None


class PublishResponse(BaseModel):
    """Outcome of a bulk publish."""

    total: int
    succeeded: int
    failed: int
    results: list[PublishItemResult]


# =============================================================================
# SITE
# =============================================================================


class CrawlRequest(BaseModel):
    """Request to discover pages from a sitemap."""

    sitemap_url: str = Field(
        ...,
        min_length=1,
        max_length=2048,
        description="Sitemap or sitemap index URL",
        examples=["https://example.com/sitemap.xml"],
    )

    @field_validator("sitemap_url")
    @classmethod
    def validate_sitemap_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("sitemap_url must start with http:// or https://")
        return v


class PagesResponse(BaseModel):
    """Pages discovered on the target site."""

    pages: list[SitemapPage]
    total: int


class AnalyzeRequest(BaseModel):
    """Request to run content health analysis in the background."""

    page_ids: list[str] | None = Field(
        None, description="Pages to analyze; every crawled page when omitted"
    )


class AnalyzeAcceptedResponse(BaseModel):
    accepted: int = Field(..., description="Number of pages queued for analysis")
