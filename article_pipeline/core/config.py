"""Application configuration loaded from environment variables.

All provider credentials, pipeline thresholds and network policies are
configured here. Nothing is read from browser storage or hardcoded in the
services; services receive a Settings instance (or call get_settings()).
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Article Pipeline")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Server
    port: int = Field(default=8000, description="Port to bind to")
    host: str = Field(default="0.0.0.0", description="Host to bind to")
    frontend_url: str | None = Field(
        default=None, description="Allowed CORS origin (all origins when unset)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format: json or text")

    # Claude/Anthropic LLM
    anthropic_api_key: str | None = Field(
        default=None,
        description="Anthropic API key for Claude models",
    )
    claude_model: str = Field(
        default="claude-3-haiku-20240307",
        description="Claude model used for text completion",
    )
    claude_max_tokens: int = Field(
        default=4096, description="Maximum tokens in Claude response"
    )
    claude_timeout: float = Field(
        default=120.0, description="Claude API request timeout in seconds"
    )

    # OpenAI-compatible chat providers (OpenAI, OpenRouter, Groq)
    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    openai_model: str = Field(default="gpt-4o", description="OpenAI chat model")
    openai_image_model: str = Field(
        default="dall-e-3", description="OpenAI image generation model"
    )
    openrouter_api_key: str | None = Field(
        default=None, description="OpenRouter API key"
    )
    openrouter_model: str = Field(
        default="anthropic/claude-3-haiku", description="OpenRouter model id"
    )
    groq_api_key: str | None = Field(default=None, description="Groq API key")
    groq_model: str = Field(default="llama3-70b-8192", description="Groq model id")
    chat_timeout: float = Field(
        default=120.0, description="Chat completion request timeout in seconds"
    )

    # Serper (search results)
    serper_api_key: str | None = Field(default=None, description="Serper API key")
    serper_api_url: str = Field(
        default="https://google.serper.dev", description="Serper API base URL"
    )
    serper_timeout: float = Field(
        default=20.0, description="Serper request timeout in seconds"
    )

    # WordPress
    wp_url: str | None = Field(default=None, description="WordPress site base URL")
    wp_username: str | None = Field(default=None, description="WordPress username")
    wp_app_password: str | None = Field(
        default=None, description="WordPress application password"
    )

    # Site info (structured data)
    org_name: str = Field(default="Your Company Name")
    org_url: str | None = Field(default=None)
    logo_url: str | None = Field(default=None)
    org_same_as: list[str] = Field(default_factory=list)
    author_name: str = Field(default="Expert Author")
    author_url: str | None = Field(default=None)
    author_same_as: list[str] = Field(default_factory=list)

    # Retry policy for AI and image calls
    retry_max_attempts: int = Field(
        default=5, description="Maximum attempts for retriable provider calls"
    )
    retry_base_delay: float = Field(
        default=5.0, description="Base delay in seconds for exponential backoff"
    )
    retry_after_buffer: float = Field(
        default=0.5, description="Seconds added on top of a Retry-After value"
    )
    retry_max_jitter: float = Field(
        default=1.0, description="Upper bound of random jitter in seconds"
    )

    # Resilient fetch
    fetch_timeout: float = Field(
        default=20.0, description="Timeout for general fetches in seconds"
    )
    fetch_auth_timeout: float = Field(
        default=30.0, description="Timeout for authenticated API calls in seconds"
    )
    fetch_relay_templates: list[str] = Field(
        default_factory=lambda: [
            "https://corsproxy.io/?{url}",
            "https://api.allorigins.win/raw?url={encoded}",
            "https://thingproxy.freeboard.io/fetch/{url}",
            "https://api.codetabs.com/v1/proxy?quest={encoded}",
            "https://cors-proxy.fringe.zone/{url}",
        ],
        description="Ordered relay URL templates ({url} raw, {encoded} quoted)",
    )

    # Cache
    cache_ttl_seconds: int = Field(
        default=3600, description="Response cache time-to-live in seconds"
    )

    # Batch processing
    batch_concurrency: int = Field(
        default=5, description="Default worker count for batch operations"
    )
    analysis_concurrency: int = Field(
        default=3, description="Worker count for content health analysis"
    )

    # Content targets
    min_internal_links: int = Field(default=8, description="Internal link quota")
    max_internal_links: int = Field(default=15, description="Internal link ceiling")
    target_min_words: int = Field(default=2200, description="Minimum words (standard)")
    target_max_words: int = Field(default=2800, description="Maximum words (standard)")
    target_min_words_pillar: int = Field(
        default=3500, description="Minimum words (pillar)"
    )
    target_max_words_pillar: int = Field(
        default=4500, description="Maximum words (pillar)"
    )
    youtube_embed_count: int = Field(default=2, description="Videos embedded per article")
    faq_count: int = Field(default=8, description="FAQ entries per article")
    image_generation_timeout: float = Field(
        default=30.0, description="Timeout for one image generation in seconds"
    )

    # Reference discovery policy
    reference_spam_domains: list[str] = Field(
        default_factory=lambda: [
            "pinterest.com",
            "facebook.com",
            "twitter.com",
            "reddit.com",
            "forum",
        ],
        description="Substrings that disqualify a reference URL",
    )
    reference_min_relevance: int = Field(
        default=5, description="Minimum relevance points for a reference"
    )
    reference_min_valid: int = Field(
        default=5, description="Minimum valid references to render a reference list"
    )
    reference_check_timeout: float = Field(
        default=5.0, description="HEAD request timeout for reference validation"
    )

    # Internal link attribution
    utm_source: str = Field(default="wp-content-optimizer")
    utm_medium: str = Field(default="internal-link")
    utm_campaign: str = Field(default="content-hub-automation")

    # Generation
    use_grounding: bool = Field(
        default=False, description="Let the outline completion use web search"
    )
    geo_location: str | None = Field(
        default=None, description="Location that planning and schema target"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
