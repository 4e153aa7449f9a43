"""Generation API router.

Plan the work queue, run it in the background, stop items and publish the
finished ones:
- POST /api/v1/generation/plan
- POST /api/v1/generation/run
- POST /api/v1/generation/stop
- GET /api/v1/generation/items
- GET /api/v1/generation/items/{item_id}
- POST /api/v1/generation/publish
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from article_pipeline.core.logging import get_logger
from article_pipeline.schemas.content import ContentItem
from article_pipeline.schemas.generation import (
    ItemsResponse,
    PlanRequest,
    PublishItemResult,
    PublishRequest,
    PublishResponse,
    RunAcceptedResponse,
    RunRequest,
    StopRequest,
    StopResponse,
)
from article_pipeline.services.items_store import ItemNotFoundError
from article_pipeline.services.planner import (
    PlanningError,
    items_from_keywords,
    items_from_pages,
    plan_cluster,
)
from article_pipeline.services.runtime import PipelineRuntime, get_runtime

logger = get_logger(__name__)

router = APIRouter(prefix="/generation", tags=["Generation"])


def _items_response(runtime: PipelineRuntime) -> ItemsResponse:
    return ItemsResponse(items=runtime.store.all(), running=runtime.is_busy)


async def _run_pipeline_background(
    runtime: PipelineRuntime, item_ids: list[str] | None
) -> None:
    """Background task running the orchestrator after the endpoint returns."""
    try:
        await runtime.orchestrator.run(item_ids)
    except Exception as e:
        logger.error(
            "Background generation run failed",
            extra={"error_type": type(e).__name__, "error_message": str(e)},
            exc_info=True,
        )
    finally:
        runtime.run_pending = False


# =============================================================================
# PLAN
# =============================================================================


@router.post("/plan", response_model=ItemsResponse)
async def plan(
    body: PlanRequest,
    runtime: PipelineRuntime = Depends(get_runtime),
) -> ItemsResponse:
    """Replace the work queue with items planned from a topic, keywords or pages."""
    if runtime.is_busy:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A generation run is in progress",
        )

    if body.topic:
        try:
            items = await plan_cluster(runtime.ai, body.topic.strip())
        except PlanningError as e:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    elif body.keywords:
        items = items_from_keywords(body.keywords)
    else:
        pages = runtime.find_pages(body.page_ids)
        if not pages:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="None of the requested pages have been crawled",
            )
        items = items_from_pages(pages, body.content_type)

    runtime.store.set_items(items)
    logger.info("Work queue planned", extra={"items": len(items)})
    return _items_response(runtime)


# =============================================================================
# RUN CONTROL
# =============================================================================


@router.post("/run", response_model=RunAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def run(
    body: RunRequest,
    background_tasks: BackgroundTasks,
    runtime: PipelineRuntime = Depends(get_runtime),
) -> RunAcceptedResponse:
    """Start generating items in the background."""
    if runtime.is_busy:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A generation run is already in progress",
        )

    item_ids = body.item_ids
    if item_ids is not None:
        unknown = [i for i in item_ids if i not in runtime.store]
        if unknown:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Unknown item ids: {', '.join(unknown)}",
            )
    accepted = len(item_ids) if item_ids is not None else len(runtime.store)
    if accepted == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No items to generate",
        )

    runtime.run_pending = True
    background_tasks.add_task(_run_pipeline_background, runtime, item_ids)
    logger.info("Generation run accepted", extra={"items": accepted})
    return RunAcceptedResponse(accepted=accepted)


@router.post("/stop", response_model=StopResponse)
async def stop(
    body: StopRequest,
    runtime: PipelineRuntime = Depends(get_runtime),
) -> StopResponse:
    """Request a cooperative stop for one item or for the whole run."""
    if body.item_id is not None and body.item_id not in runtime.store:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Item {body.item_id} not found",
        )
    runtime.orchestrator.stop(body.item_id)
    return StopResponse(stopped=body.item_id or "all")


# =============================================================================
# ITEMS
# =============================================================================


@router.get("/items", response_model=ItemsResponse)
async def list_items(runtime: PipelineRuntime = Depends(get_runtime)) -> ItemsResponse:
    """Current work queue with statuses and any generated content."""
    return _items_response(runtime)


@router.get("/items/{item_id}", response_model=ContentItem)
async def get_item(
    item_id: str,
    runtime: PipelineRuntime = Depends(get_runtime),
) -> ContentItem:
    try:
        return runtime.store.get(item_id)
    except ItemNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Item {item_id} not found",
        ) from e


# =============================================================================
# PUBLISH
# =============================================================================


@router.post("/publish", response_model=PublishResponse)
async def publish(
    body: PublishRequest,
    runtime: PipelineRuntime = Depends(get_runtime),
) -> PublishResponse:
    """Publish finished items to WordPress. Per-item failures are reported, not raised."""
    if runtime.publishing is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="WordPress is not configured",
        )

    items = []
    for item_id in body.item_ids:
        try:
            items.append(runtime.store.get(item_id))
        except ItemNotFoundError as e:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Item {item_id} not found",
            ) from e

    bulk = await runtime.publishing.publish_many(items, body.status)
    return PublishResponse(
        total=bulk.total,
        succeeded=bulk.succeeded,
        failed=bulk.failed,
        results=[PublishItemResult(**r.to_dict()) for r in bulk.results],
    )
