"""Serper search-results client.

Requests go through ResilientFetcher. Serper authenticates with an X-API-KEY
header, not Authorization, so relays remain available as a fallback.
"""

import json
from typing import Any

from article_pipeline.core.config import get_settings
from article_pipeline.core.logging import get_logger
from article_pipeline.integrations.base import (
    ProviderNotConfiguredError,
    SearchResponse,
    error_for_status,
)
from article_pipeline.integrations.fetcher import ResilientFetcher

logger = get_logger(__name__)

PROVIDER_NAME = "Serper"


class SerperClient:
    """Async client for google.serper.dev."""

    def __init__(
        self,
        fetcher: ResilientFetcher,
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        settings = get_settings()
        self._fetcher = fetcher
        self._api_key = api_key or settings.serper_api_key
        self._base_url = (base_url or settings.serper_api_url).rstrip("/")

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.available:
            raise ProviderNotConfiguredError(
                "Serper not configured (missing API key)", provider=PROVIDER_NAME
            )
        response = await self._fetcher.fetch(
            f"{self._base_url}/{endpoint}",
            method="POST",
            headers={
                "X-API-KEY": self._api_key or "",
                "Content-Type": "application/json",
            },
            content=json.dumps(payload),
            accept_client_errors=True,
        )
        if response.status_code >= 400:
            raise error_for_status(
                PROVIDER_NAME,
                response.status_code,
                response.text[:200],
                retry_after=response.headers.get("retry-after"),
            )
        data = response.json()
        return data if isinstance(data, dict) else {}

    async def search(
        self, query: str, num: int = 10, locale: str = "us"
    ) -> SearchResponse:
        """Run a web search and normalize the payload."""
        data = await self._post("search", {"q": query, "num": num, "gl": locale})
        logger.debug(
            "Serper search completed",
            extra={"query": query, "organic_count": len(data.get("organic", []))},
        )
        return SearchResponse(
            organic=[r for r in data.get("organic", []) if isinstance(r, dict)],
            people_also_ask=[
                q["question"]
                for q in data.get("peopleAlsoAsk", [])
                if isinstance(q, dict) and q.get("question")
            ],
            related_searches=[
                r["query"]
                for r in data.get("relatedSearches", [])
                if isinstance(r, dict) and r.get("query")
            ],
        )

    async def videos(self, query: str, num: int = 10) -> list[dict[str, Any]]:
        """Run a video search."""
        data = await self._post("videos", {"q": query, "num": num})
        return [v for v in data.get("videos", []) if isinstance(v, dict)]
