"""Keyword research and SERP data for the research stage.

Keyword metrics are scored from one Serper search: People Also Ask questions,
related searches and words from the top organic results each get a demand,
competition and relevance score. SERP data (organic results, PAA questions,
video candidates) and AI-generated semantic keywords are fetched once per
title and kept in the session cache.

Research is best effort: a missing or failing search provider yields empty
metrics and SERP data, never a failed item.
"""

from dataclasses import dataclass, field

from article_pipeline.core.cache import ResponseCache, build_cache_key
from article_pipeline.core.logging import get_logger
from article_pipeline.integrations.base import SearchProvider, SearchResponse
from article_pipeline.schemas.content import KeywordMetric, SerpData, SerpResult, VideoResult
from article_pipeline.services.ai_gateway import ContentAI
from article_pipeline.services.normalization import as_str_list
from article_pipeline.services.video_embeds import get_video_id

logger = get_logger(__name__)

MAX_PAA_KEYWORDS = 10
MAX_RELATED_KEYWORDS = 10
MAX_ORGANIC_RESULTS = 10
MAX_KEYWORDS = 30
MAX_PRIORITY_KEYWORDS = 10
MAX_VIDEO_CANDIDATES = 10
MIN_ORGANIC_WORD_LENGTH = 5
KEYWORD_SEARCH_RESULTS = 20


@dataclass
class ResearchResult:
    """Everything the research stage hands to the outline stage."""

    keyword_metrics: list[KeywordMetric] = field(default_factory=list)
    serp_data: SerpData = field(default_factory=SerpData)
    semantic_keywords: list[str] = field(default_factory=list)

    @property
    def priority_keywords(self) -> list[KeywordMetric]:
        return priority_keywords(self.keyword_metrics)


def score_search_response(primary_keyword: str, response: SearchResponse) -> list[KeywordMetric]:
    """Turn one search response into ranked keyword metrics.

    PAA questions score demand 90-2i, competition 35, relevance 95. Related
    searches score demand 75-3i, competition 40, relevance 85. Words over
    four characters from organic titles and snippets score demand
    max(30, 80-5i) and competition min(100, 20+8i)+10 by result rank. The
    result is deduplicated, ordered by demand/competition, capped at 30 and
    led by the primary keyword.
    """
    candidates: list[KeywordMetric] = []

    for i, question in enumerate(response.people_also_ask[:MAX_PAA_KEYWORDS]):
        candidates.append(
            KeywordMetric(
                keyword=question,
                demand_score=90 - i * 2,
                competition_score=35,
                relevance_score=95,
                serp_features=["People Also Ask"],
            )
        )

    for i, query in enumerate(response.related_searches[:MAX_RELATED_KEYWORDS]):
        candidates.append(
            KeywordMetric(
                keyword=query,
                demand_score=75 - i * 3,
                competition_score=40,
                relevance_score=85,
                serp_features=["Related Searches"],
            )
        )

    primary_lower = primary_keyword.lower()
    for i, result in enumerate(response.organic[:MAX_ORGANIC_RESULTS]):
        words = f"{result.get('title') or ''} {result.get('snippet') or ''}".lower().split()
        demand = max(30, 100 - i * 5 - 20)
        competition = min(100, 20 + i * 8) + 10
        for word in dict.fromkeys(words):
            if len(word) < MIN_ORGANIC_WORD_LENGTH or word in primary_lower:
                continue
            candidates.append(
                KeywordMetric(
                    keyword=word,
                    demand_score=demand,
                    competition_score=min(100, competition),
                    relevance_score=70,
                )
            )

    unique: dict[str, KeywordMetric] = {}
    for metric in candidates:
        unique.setdefault(metric.keyword, metric)

    ranked = sorted(
        unique.values(),
        key=lambda m: m.demand_score / max(m.competition_score, 1),
        reverse=True,
    )[:MAX_KEYWORDS]

    if not any(m.keyword.lower() == primary_lower for m in ranked):
        ranked.insert(
            0,
            KeywordMetric(
                keyword=primary_keyword,
                demand_score=100,
                competition_score=50,
                relevance_score=100,
                serp_features=["Main Keyword"],
            ),
        )
    return ranked


def priority_keywords(
    metrics: list[KeywordMetric], limit: int = MAX_PRIORITY_KEYWORDS
) -> list[KeywordMetric]:
    """High-demand, low-competition keywords in research order."""
    return [m for m in metrics if m.is_priority][:limit]


def video_queries(title: str) -> list[str]:
    return [f'"{title}" tutorial', f"how to {title}", title]


class KeywordResearchService:
    """Research stage backed by a search provider, the AI gateway and the session cache."""

    def __init__(
        self,
        ai: ContentAI,
        cache: ResponseCache,
        search: SearchProvider | None = None,
        locale: str = "us",
    ) -> None:
        self._ai = ai
        self._cache = cache
        self._search = search
        self._locale = locale

    @property
    def search_available(self) -> bool:
        return self._search is not None and bool(getattr(self._search, "available", True))

    async def research_keywords(self, primary_keyword: str) -> list[KeywordMetric]:
        """Scored keyword metrics for primary_keyword, empty when search is unavailable."""
        if not self.search_available:
            return []
        assert self._search is not None
        search = self._search

        async def compute() -> list[KeywordMetric]:
            response = await search.search(
                primary_keyword, num=KEYWORD_SEARCH_RESULTS, locale=self._locale
            )
            metrics = score_search_response(primary_keyword, response)
            logger.info(
                "Keyword research complete",
                extra={"primary_keyword": primary_keyword, "keyword_count": len(metrics)},
            )
            return metrics

        try:
            return await self._cache.get_or_set(
                build_cache_key("serper-keywords", primary_keyword), compute
            )
        except Exception as e:
            logger.error(
                "Keyword research failed",
                extra={"primary_keyword": primary_keyword, "error": str(e)},
                exc_info=True,
            )
            return []

    async def _collect_videos(self, title: str) -> list[VideoResult]:
        assert self._search is not None
        candidates: dict[str, VideoResult] = {}
        for query in video_queries(title):
            if len(candidates) >= MAX_VIDEO_CANDIDATES:
                break
            try:
                videos = await self._search.videos(query)
            except Exception as e:
                logger.warning("Video search failed", extra={"query": query, "error": str(e)})
                continue
            for video in videos:
                video_id = get_video_id(video)
                if video_id and video_id not in candidates:
                    candidates[video_id] = VideoResult(
                        title=str(video.get("title") or ""),
                        link=str(video.get("link") or ""),
                        video_id=video_id,
                        channel=video.get("channel"),
                    )
        return list(candidates.values())[:MAX_VIDEO_CANDIDATES]

    async def fetch_serp_data(self, title: str) -> SerpData:
        """Organic results, PAA questions and video candidates for title."""
        if not self.search_available:
            return SerpData()
        assert self._search is not None
        search = self._search

        async def compute() -> SerpData:
            response = await search.search(title, locale=self._locale)
            organic = [
                SerpResult.model_validate(r) for r in response.organic[:MAX_ORGANIC_RESULTS]
            ]
            videos = await self._collect_videos(title)
            return SerpData(
                organic=organic, people_also_ask=response.people_also_ask, videos=videos
            )

        try:
            return await self._cache.get_or_set(build_cache_key("serp", title), compute)
        except Exception as e:
            logger.error(
                "Failed to fetch SERP data",
                extra={"title": title, "error": str(e)},
                exc_info=True,
            )
            return SerpData()

    async def semantic_keywords(self, title: str) -> list[str]:
        """AI-generated semantic keywords for title."""

        async def compute() -> list[str]:
            data = await self._ai.call_json("semantic_keyword_generator", title)
            if isinstance(data, dict):
                return as_str_list(data.get("semanticKeywords") or data.get("semantic_keywords"))
            return as_str_list(data)

        return await self._cache.get_or_set(build_cache_key("sk", title), compute)

    async def research(self, title: str) -> ResearchResult:
        """Run keyword metrics, SERP data and semantic keywords for one title."""
        metrics = await self.research_keywords(title)
        serp = await self.fetch_serp_data(title)
        semantic = await self.semantic_keywords(title)
        return ResearchResult(keyword_metrics=metrics, serp_data=serp, semantic_keywords=semantic)
