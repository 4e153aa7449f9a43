"""Bulk content health analysis for existing site pages.

Each selected page is fetched (unless its HTML was already crawled), reduced
to readable body text and sent to the rewrite analyzer. The resulting
PageAnalysis is attached to the page and later feeds the outline prompt when
the page is rewritten.

Page status moves idle -> analyzing -> analyzed | error. One failing page
never stops the batch.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from article_pipeline.core.batch import BatchProgress, BatchResult, BatchRunner
from article_pipeline.core.config import get_settings
from article_pipeline.core.logging import get_logger
from article_pipeline.integrations.fetcher import ResilientFetcher
from article_pipeline.schemas.content import SitemapPage
from article_pipeline.services.ai_gateway import ContentAI
from article_pipeline.services.normalization import normalize_page_analysis
from article_pipeline.utils.html import extract_readable_text, extract_title

logger = get_logger(__name__)

MIN_ANALYSIS_TEXT_LENGTH = 100
MAX_ANALYSIS_TEXT_LENGTH = 12000
MAX_JUSTIFICATION_LENGTH = 100


class ContentTooThinError(Exception):
    """Raised when a page has too little text to analyze."""


@dataclass
class HealthAnalysisResult:
    """Counts for one bulk analysis run."""

    total: int
    analyzed: int
    failed: int
    stopped: bool


class ContentHealthService:
    """Analyzes existing pages and records rewrite suggestions on them."""

    def __init__(
        self,
        ai: ContentAI,
        fetcher: ResilientFetcher,
        use_grounding: bool = False,
    ) -> None:
        self._ai = ai
        self._fetcher = fetcher
        self._use_grounding = use_grounding
        self._stop_requested = False

    def stop(self) -> None:
        self._stop_requested = True

    async def _page_html(self, page: SitemapPage) -> str:
        if page.crawled_content:
            return page.crawled_content
        url = page.url or page.id
        try:
            response = await self._fetcher.fetch(url)
        except Exception as e:
            raise RuntimeError(f"Fetch failed: {e}") from e
        return response.text

    async def analyze_page(self, page: SitemapPage) -> SitemapPage:
        """Analyze one page in place; failures set status "error" with a justification."""
        page.status = "analyzing"
        try:
            html = await self._page_html(page)
            title = extract_title(html) or page.title
            text = extract_readable_text(html)
            page.title = title
            page.crawled_content = text

            if len(text) < MIN_ANALYSIS_TEXT_LENGTH:
                raise ContentTooThinError("Content is too thin for analysis.")

            data = await self._ai.call_json(
                "content_rewrite_analyzer",
                title,
                text[:MAX_ANALYSIS_TEXT_LENGTH],
                grounding=self._use_grounding,
            )
            page.analysis = normalize_page_analysis(data)
            page.status = "analyzed"
            logger.info("Page analyzed", extra={"page_id": page.id, "title": title})
        except Exception as e:
            logger.error(
                "Failed to analyze page",
                extra={"page_id": page.id, "error": str(e)},
                exc_info=True,
            )
            page.status = "error"
            page.analysis = None
            page.justification = str(e)[:MAX_JUSTIFICATION_LENGTH]
        return page

    async def analyze_pages(
        self,
        pages: Iterable[SitemapPage],
        concurrency: int | None = None,
        on_progress: Callable[[BatchProgress], None] | None = None,
    ) -> HealthAnalysisResult:
        """Analyze pages with bounded concurrency until done or stopped."""
        self._stop_requested = False
        pages = list(pages)
        runner: BatchRunner[SitemapPage] = BatchRunner(
            self.analyze_page,
            concurrency=concurrency or get_settings().analysis_concurrency,
            on_progress=on_progress,
            should_stop=lambda: self._stop_requested,
        )
        batch: BatchResult = await runner.run(pages)
        return HealthAnalysisResult(
            total=len(pages),
            analyzed=sum(1 for p in pages if p.status == "analyzed"),
            failed=sum(1 for p in pages if p.status == "error"),
            stopped=batch.stopped,
        )
