"""Pydantic schemas for pipeline data.

Field names are snake_case in Python and camelCase on the wire, which is the
shape completion providers are prompted to return. Every model accepts either
form (populate_by_name) so raw provider dicts validate directly.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting camelCase or snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# ENUMS
# =============================================================================


class ContentType(str, Enum):
    """Kind of content an item produces."""

    PILLAR = "pillar"
    CLUSTER = "cluster"
    STANDARD = "standard"
    LINK_OPTIMIZER = "link-optimizer"


class ItemStatus(str, Enum):
    """Lifecycle status of a content item."""

    IDLE = "idle"
    GENERATING = "generating"
    DONE = "done"
    ERROR = "error"


SEARCH_INTENTS = ("informational", "commercial", "transactional", "navigational")


# =============================================================================
# KEYWORDS AND SERP
# =============================================================================


class KeywordMetric(CamelModel):
    """Scored keyword produced by keyword research."""

    keyword: str
    demand_score: int = Field(default=50, ge=0, le=100)
    competition_score: int = Field(default=50, ge=0, le=100)
    relevance_score: int = Field(default=50, ge=0, le=100)
    serp_features: list[str] = Field(default_factory=list)
    intent: str = Field(default="informational")

    @property
    def is_priority(self) -> bool:
        """High demand with low competition."""
        return self.demand_score > 70 and self.competition_score < 30


class SerpResult(CamelModel):
    """One organic search result."""

    title: str = ""
    link: str = ""
    snippet: str = ""


class VideoResult(CamelModel):
    """One video search result."""

    title: str = ""
    link: str = ""
    video_id: str | None = None
    channel: str | None = None


class SerpData(CamelModel):
    """Search data gathered during the research stage."""

    organic: list[SerpResult] = Field(default_factory=list)
    people_also_ask: list[str] = Field(default_factory=list)
    videos: list[VideoResult] = Field(default_factory=list)


class Reference(CamelModel):
    """External reference cited at the end of an article."""

    title: str
    url: str
    source: str = ""
    year: int | str | None = None
    relevance_score: int | None = None


# =============================================================================
# GENERATED CONTENT
# =============================================================================


class ImageDetail(CamelModel):
    """Planned or generated article image."""

    prompt: str = ""
    alt_text: str = ""
    title: str = ""
    placeholder: str = ""
    generated_image_src: str | None = None


class ContentStrategy(CamelModel):
    """Strategy notes returned with the outline."""

    target_audience: str = "General audience"
    search_intent: str = "Informational"
    competitor_analysis: str = "Not available"
    content_angle: str = "Comprehensive guide"
    keyword_strategy: str = "Default keyword strategy applied"


class SocialMediaCopy(CamelModel):
    """Short promotional copy for social channels."""

    twitter: str = ""
    linked_in: str = ""


class FaqEntry(CamelModel):
    """One FAQ question with its written answer."""

    question: str
    answer: str = ""


class GeneratedContent(CamelModel):
    """Finished article produced by one pipeline run."""

    title: str
    slug: str
    meta_description: str = ""
    primary_keyword: str = ""
    semantic_keywords: list[str] = Field(default_factory=list)
    semantic_keyword_metrics: list[KeywordMetric] = Field(default_factory=list)
    content: str = ""
    image_details: list[ImageDetail] = Field(default_factory=list)
    strategy: ContentStrategy = Field(default_factory=ContentStrategy)
    json_ld_schema: dict[str, Any] = Field(default_factory=dict)
    social_media_copy: SocialMediaCopy = Field(default_factory=SocialMediaCopy)
    faq: list[FaqEntry] = Field(default_factory=list)
    key_takeaways: list[str] = Field(default_factory=list)
    outline: list[str] = Field(default_factory=list)
    serp_data: list[SerpResult] = Field(default_factory=list)
    word_count: int = 0
    readability_score: float | None = None
    human_score: int | None = None


# =============================================================================
# SITE INVENTORY
# =============================================================================


class AnalysisSuggestions(CamelModel):
    """Rewrite recommendations from content health analysis."""

    title: str = ""
    content_gaps: list[str] = Field(default_factory=list)
    freshness_updates: str = ""
    eeat_improvements: list[str] = Field(default_factory=list)


class PageAnalysis(CamelModel):
    """Prior analysis attached to a page selected for rewrite."""

    critique: str = ""
    suggestions: AnalysisSuggestions = Field(default_factory=AnalysisSuggestions)


class SitemapPage(CamelModel):
    """Page discovered on the target site."""

    id: str
    title: str = ""
    slug: str = ""
    url: str = ""
    last_mod: str | None = None
    word_count: int | None = None
    crawled_content: str | None = None
    health_score: int | None = None
    update_priority: str | None = None
    justification: str | None = None
    days_old: int | None = None
    is_stale: bool = False
    status: str = "idle"
    analysis: PageAnalysis | None = None


class SiteInfo(CamelModel):
    """Publisher details used for structured data."""

    org_name: str = "Your Company Name"
    org_url: str | None = None
    logo_url: str | None = None
    org_same_as: list[str] = Field(default_factory=list)
    author_name: str = "Expert Author"
    author_url: str | None = None
    author_same_as: list[str] = Field(default_factory=list)


# =============================================================================
# WORK ITEMS
# =============================================================================


class ContentItem(CamelModel):
    """Unit of work for the pipeline."""

    id: str
    title: str
    type: ContentType = ContentType.STANDARD
    status: ItemStatus = ItemStatus.IDLE
    status_text: str = "Not Started"
    original_url: str | None = None
    crawled_content: str | None = None
    analysis: PageAnalysis | None = None
    generated_content: GeneratedContent | None = None


# =============================================================================
# PROVIDER RESPONSES
# =============================================================================


class ArticlePlan(CamelModel):
    """Normalized metadata and outline returned by the planning completion."""

    title: str
    slug: str
    meta_description: str = ""
    primary_keyword: str
    semantic_keywords: list[str] = Field(default_factory=list)
    strategy: ContentStrategy = Field(default_factory=ContentStrategy)
    key_takeaways: list[str] = Field(default_factory=list)
    outline: list[str] = Field(default_factory=list)
    introduction: str = ""
    conclusion: str = ""
    faq_section: list[FaqEntry] = Field(default_factory=list)
    image_details: list[ImageDetail] = Field(default_factory=list)
    social_media_copy: SocialMediaCopy = Field(default_factory=SocialMediaCopy)


class ClusterPlan(CamelModel):
    """Pillar title with its supporting cluster titles."""

    pillar_title: str
    cluster_titles: list[str] = Field(default_factory=list)
