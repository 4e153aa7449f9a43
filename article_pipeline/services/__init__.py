"""Services layer - Pipeline stages, quality gates and orchestration.

Services implement the pipeline on top of the integrations layer. They never
talk HTTP directly; provider access goes through the capability interfaces in
article_pipeline.integrations.base.
"""

from article_pipeline.services.ai_gateway import (
    ContentAI,
    EmptyResponseError,
    NoProvidersConfiguredError,
    build_content_ai,
)
from article_pipeline.services.content_health import ContentHealthService, ContentTooThinError
from article_pipeline.services.content_quality import (
    ContentTooShortError,
    calculate_flesch_readability,
    check_human_writing_score,
    count_words,
    enforce_word_count,
    get_readability_verdict,
    validate_keyword_placement,
)
from article_pipeline.services.images import ImageService, convert_to_webp
from article_pipeline.services.items_store import ItemNotFoundError, ItemsStore
from article_pipeline.services.keyword_research import KeywordResearchService, ResearchResult
from article_pipeline.services.link_integrity import (
    enforce_internal_link_quota,
    finalize_internal_links,
    process_internal_links,
    sanitize_broken_placeholders,
    validate_and_repair_internal_links,
)
from article_pipeline.services.orchestrator import (
    PipelineOrchestrator,
    PipelineRunResult,
    PipelineSession,
    PipelineStage,
    PipelineStoppedError,
)
from article_pipeline.services.planner import (
    PlanningError,
    items_from_keywords,
    items_from_pages,
    plan_cluster,
)
from article_pipeline.services.publishing import PublishError, PublishingService, PublishResult
from article_pipeline.services.references import ReferencePolicy, ReferenceService
from article_pipeline.services.sitemap import SitemapCrawler
from article_pipeline.services.structured_data import (
    generate_full_schema,
    generate_schema_markup,
)
from article_pipeline.services.video_embeds import (
    enforce_unique_video_embeds,
    get_unique_youtube_videos,
)

__all__ = [
    # AI gateway
    "ContentAI",
    "EmptyResponseError",
    "NoProvidersConfiguredError",
    "build_content_ai",
    # Quality gates
    "ContentTooShortError",
    "calculate_flesch_readability",
    "check_human_writing_score",
    "count_words",
    "enforce_word_count",
    "get_readability_verdict",
    "validate_keyword_placement",
    "enforce_unique_video_embeds",
    "get_unique_youtube_videos",
    # Link integrity
    "enforce_internal_link_quota",
    "finalize_internal_links",
    "process_internal_links",
    "sanitize_broken_placeholders",
    "validate_and_repair_internal_links",
    # Stages
    "ImageService",
    "convert_to_webp",
    "KeywordResearchService",
    "ResearchResult",
    "ReferencePolicy",
    "ReferenceService",
    "generate_full_schema",
    "generate_schema_markup",
    # Orchestration
    "ItemNotFoundError",
    "ItemsStore",
    "PipelineOrchestrator",
    "PipelineRunResult",
    "PipelineSession",
    "PipelineStage",
    "PipelineStoppedError",
    # Site and planning
    "ContentHealthService",
    "ContentTooThinError",
    "PlanningError",
    "SitemapCrawler",
    "items_from_keywords",
    "items_from_pages",
    "plan_cluster",
    # Publishing
    "PublishError",
    "PublishResult",
    "PublishingService",
]
