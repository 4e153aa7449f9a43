"""Site API router: sitemap discovery and content health analysis."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from article_pipeline.core.logging import get_logger
from article_pipeline.integrations.fetcher import FetchError
from article_pipeline.schemas.content import SitemapPage
from article_pipeline.schemas.generation import (
    AnalyzeAcceptedResponse,
    AnalyzeRequest,
    CrawlRequest,
    PagesResponse,
)
from article_pipeline.services.content_health import ContentHealthService
from article_pipeline.services.runtime import PipelineRuntime, get_runtime

logger = get_logger(__name__)

router = APIRouter(prefix="/site", tags=["Site"])


async def _analyze_background(health: ContentHealthService, pages: list[SitemapPage]) -> None:
    try:
        result = await health.analyze_pages(pages)
        logger.info(
            "Content health analysis finished",
            extra={
                "total": result.total,
                "analyzed": result.analyzed,
                "failed": result.failed,
                "stopped": result.stopped,
            },
        )
    except Exception as e:
        logger.error(
            "Background analysis failed",
            extra={"error_type": type(e).__name__, "error_message": str(e)},
            exc_info=True,
        )


@router.post("/crawl", response_model=PagesResponse)
async def crawl(
    body: CrawlRequest,
    runtime: PipelineRuntime = Depends(get_runtime),
) -> PagesResponse:
    """Discover every page reachable from a sitemap and keep them for planning."""
    try:
        pages = await runtime.crawler.crawl(body.sitemap_url)
    except FetchError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    runtime.session.pages = pages
    return PagesResponse(pages=pages, total=len(pages))


@router.get("/pages", response_model=PagesResponse)
async def list_pages(runtime: PipelineRuntime = Depends(get_runtime)) -> PagesResponse:
    pages = runtime.pages
    return PagesResponse(pages=pages, total=len(pages))


@router.post(
    "/analyze",
    response_model=AnalyzeAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def analyze(
    body: AnalyzeRequest,
    background_tasks: BackgroundTasks,
    runtime: PipelineRuntime = Depends(get_runtime),
) -> AnalyzeAcceptedResponse:
    """Analyze crawled pages in the background; poll GET /pages for results."""
    pages = runtime.pages if body.page_ids is None else runtime.find_pages(body.page_ids)
    if not pages:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No crawled pages to analyze",
        )
    background_tasks.add_task(_analyze_background, runtime.health, pages)
    return AnalyzeAcceptedResponse(accepted=len(pages))


@router.post("/analyze/stop", status_code=status.HTTP_204_NO_CONTENT)
async def stop_analysis(runtime: PipelineRuntime = Depends(get_runtime)) -> None:
    runtime.health.stop()
