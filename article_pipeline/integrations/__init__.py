"""Integrations layer - External service clients.

Integrations handle communication with external APIs and services.
They abstract the details of external service protocols.
"""

from article_pipeline.integrations.base import (
    CmsPublisher,
    ImageGenerationProvider,
    ProviderAuthError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    PublishedPost,
    SearchProvider,
    SearchResponse,
    TextCompletionProvider,
    UploadedMedia,
)
from article_pipeline.integrations.claude import ClaudeClient
from article_pipeline.integrations.fetcher import FetchError, ResilientFetcher
from article_pipeline.integrations.openai_chat import OpenAIChatClient, build_chat_providers
from article_pipeline.integrations.openai_images import OpenAIImageClient
from article_pipeline.integrations.serper import SerperClient
from article_pipeline.integrations.wordpress import WordPressClient, WordPressError

__all__ = [
    # Interfaces
    "CmsPublisher",
    "ImageGenerationProvider",
    "SearchProvider",
    "TextCompletionProvider",
    "SearchResponse",
    "PublishedPost",
    "UploadedMedia",
    # Errors
    "FetchError",
    "ProviderAuthError",
    "ProviderError",
    "ProviderNotConfiguredError",
    "ProviderRateLimitError",
    "ProviderTimeoutError",
    "WordPressError",
    # Clients
    "ClaudeClient",
    "OpenAIChatClient",
    "OpenAIImageClient",
    "ResilientFetcher",
    "SerperClient",
    "WordPressClient",
    "build_chat_providers",
]
