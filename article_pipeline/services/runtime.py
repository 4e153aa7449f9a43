"""Process-wide pipeline runtime.

One runtime owns the HTTP clients, the items store, the orchestration
session and every service built on top of them. The API layer receives it
through the get_runtime dependency; the application lifespan initializes and
closes it.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from article_pipeline.core.config import Settings, get_settings
from article_pipeline.core.logging import get_logger
from article_pipeline.integrations.fetcher import ResilientFetcher
from article_pipeline.integrations.openai_images import OpenAIImageClient
from article_pipeline.integrations.serper import SerperClient
from article_pipeline.integrations.wordpress import WordPressClient
from article_pipeline.schemas.content import SiteInfo, SitemapPage
from article_pipeline.services.ai_gateway import ContentAI, build_content_ai
from article_pipeline.services.content_health import ContentHealthService
from article_pipeline.services.images import ImageService
from article_pipeline.services.items_store import ItemsStore
from article_pipeline.services.keyword_research import KeywordResearchService
from article_pipeline.services.orchestrator import PipelineOrchestrator, PipelineSession
from article_pipeline.services.publishing import PublishingService
from article_pipeline.services.references import ReferencePolicy, ReferenceService
from article_pipeline.services.sitemap import SitemapCrawler

logger = get_logger(__name__)


@dataclass
class PipelineRuntime:
    """Everything one API process needs to plan, run and publish items."""

    settings: Settings
    ai: ContentAI
    store: ItemsStore
    session: PipelineSession
    orchestrator: PipelineOrchestrator
    crawler: SitemapCrawler
    health: ContentHealthService
    publishing: PublishingService | None = None
    # Set when a run is accepted, before its background task starts
    run_pending: bool = False
    closers: list[Callable[[], Awaitable[None]]] = field(default_factory=list)

    @property
    def is_busy(self) -> bool:
        return self.run_pending or self.orchestrator.is_running

    @property
    def pages(self) -> list[SitemapPage]:
        return self.session.pages

    def find_pages(self, page_ids: list[str]) -> list[SitemapPage]:
        """Crawled pages with the given ids, in request order; unknown ids are skipped."""
        by_id = {p.id: p for p in self.session.pages}
        return [by_id[i] for i in page_ids if i in by_id]

    async def close(self) -> None:
        for close in self.closers:
            try:
                await close()
            except Exception as e:
                logger.warning("Failed to close client", extra={"error": str(e)})
        self.closers.clear()


def site_info_from_settings(settings: Settings) -> SiteInfo:
    return SiteInfo(
        org_name=settings.org_name,
        org_url=settings.org_url or settings.wp_url,
        logo_url=settings.logo_url,
        org_same_as=list(settings.org_same_as),
        author_name=settings.author_name,
        author_url=settings.author_url,
        author_same_as=list(settings.author_same_as),
    )


def build_runtime(settings: Settings | None = None) -> PipelineRuntime:
    """Wire real provider clients from settings."""
    settings = settings or get_settings()
    fetcher = ResilientFetcher()
    ai = build_content_ai(settings, geo_location=settings.geo_location)

    serper = SerperClient(fetcher)
    search = serper if serper.available else None
    if search is None:
        logger.warning("Serper not configured (missing SERPER_API_KEY)")

    publisher: WordPressClient | None = None
    if settings.wp_url and settings.wp_username and settings.wp_app_password:
        publisher = WordPressClient(
            settings.wp_url, settings.wp_username, settings.wp_app_password, fetcher
        )
    else:
        logger.warning("WordPress not configured (missing WP_URL or credentials)")

    image_client = OpenAIImageClient()
    image_providers = [image_client] if image_client.available else []

    session = PipelineSession(
        site_info=site_info_from_settings(settings),
        site_url=settings.wp_url or "",
        geo_location=settings.geo_location,
    )
    store = ItemsStore()
    references = ReferenceService(
        ai,
        search,
        policy=ReferencePolicy.from_settings(settings),
        own_site_url=settings.wp_url,
    )
    orchestrator = PipelineOrchestrator(
        store=store,
        session=session,
        ai=ai,
        research=KeywordResearchService(ai, session.cache, search),
        references=references,
        images=ImageService(image_providers, publisher),
        fetcher=fetcher,
        settings=settings,
    )

    return PipelineRuntime(
        settings=settings,
        ai=ai,
        store=store,
        session=session,
        orchestrator=orchestrator,
        crawler=SitemapCrawler(fetcher),
        health=ContentHealthService(ai, fetcher, use_grounding=settings.use_grounding),
        publishing=PublishingService(publisher) if publisher is not None else None,
        closers=[ai.close, references.close, image_client.close, fetcher.close],
    )


# Global runtime instance
pipeline_runtime: PipelineRuntime | None = None


async def init_runtime() -> PipelineRuntime:
    """Initialize the global runtime."""
    global pipeline_runtime
    if pipeline_runtime is None:
        pipeline_runtime = build_runtime()
        logger.info(
            "Pipeline runtime initialized",
            extra={
                "text_providers": len(pipeline_runtime.ai.providers),
                "publishing": pipeline_runtime.publishing is not None,
            },
        )
    return pipeline_runtime


async def close_runtime() -> None:
    """Close the global runtime and its clients."""
    global pipeline_runtime
    if pipeline_runtime:
        await pipeline_runtime.close()
        pipeline_runtime = None


async def get_runtime() -> PipelineRuntime:
    """Dependency for getting the pipeline runtime."""
    global pipeline_runtime
    if pipeline_runtime is None:
        await init_runtime()
    return pipeline_runtime  # type: ignore[return-value]
