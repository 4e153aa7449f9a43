"""Core utilities and configuration."""

from article_pipeline.core.batch import BatchProgress, BatchResult, BatchRunner, process_concurrently
from article_pipeline.core.cache import CacheStats, ResponseCache, build_cache_key
from article_pipeline.core.config import Settings, get_settings
from article_pipeline.core.logging import (
    ai_logger,
    fetch_logger,
    get_logger,
    pipeline_logger,
    setup_logging,
)
from article_pipeline.core.retry import RetryingInvoker, is_retriable, parse_retry_after

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Logging
    "ai_logger",
    "fetch_logger",
    "get_logger",
    "pipeline_logger",
    "setup_logging",
    # Retry
    "RetryingInvoker",
    "is_retriable",
    "parse_retry_after",
    # Cache
    "CacheStats",
    "ResponseCache",
    "build_cache_key",
    # Batch
    "BatchProgress",
    "BatchResult",
    "BatchRunner",
    "process_concurrently",
]
