"""API v1 router and endpoint organization."""

from fastapi import APIRouter

from article_pipeline.api.v1 import generation, site

router = APIRouter(prefix="/api/v1", tags=["v1"])

router.include_router(generation.router)
router.include_router(site.router)
