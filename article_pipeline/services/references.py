"""Reference discovery for the references stage.

Flow:
1. Run eight searches around the primary keyword and title
2. Deduplicate results and drop the publisher's own domain
3. Ask the completion provider to pick relevant sources (5-point cutoff)
4. Validate every pick: spam-domain filter plus a HEAD request
5. Render one of three outcomes:
   - at least N valid references: an ordered reference list
   - otherwise, usable search results: a suggested-reading box
   - otherwise: an action-required box asking for manual references

ERROR LOGGING REQUIREMENTS:
- Failed searches and HEAD checks are logged at WARNING and skipped
- AI selection failure falls back to the top search results
- The stage never fails the item
"""

import asyncio
import html
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from article_pipeline.core.config import Settings, get_settings
from article_pipeline.core.logging import get_logger
from article_pipeline.integrations.base import SearchProvider
from article_pipeline.schemas.content import Reference
from article_pipeline.services.ai_gateway import ContentAI
from article_pipeline.utils.url import get_hostname

logger = get_logger(__name__)

REFERENCE_QUERY_SUFFIXES = (
    "",
    " guide",
    " tutorial",
    " best practices",
    " research",
    " statistics",
    " case study",
)
RESULTS_PER_QUERY = 15
MAX_RESULTS_FOR_SELECTION = 20
MAX_FALLBACK_REFERENCES = 8
MAX_SUGGESTED_READING = 10

# Never suitable as suggested reading, independent of the reference spam policy
SUGGESTED_READING_EXCLUDED = (
    "pinterest.com",
    "youtube.com",
    "facebook.com",
    "twitter.com",
    "forum",
    ".quora.com",
)

VALIDATOR_HEADERS = {"User-Agent": "Mozilla/5.0 (compatible; ContentValidator/1.0)"}

_BOOK_ICON = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="24" height="24" viewBox="0 0 24 24" '
    'fill="none" stroke="currentColor" stroke-width="2" stroke-linecap="round" '
    'stroke-linejoin="round" style="width: 1.2em; height: 1.2em; margin-right: 0.5em;">'
    '<path d="M2 3h6a4 4 0 0 1 4 4v14a3 3 0 0 0-3-3H2z"/>'
    '<path d="M22 3h-6a4 4 0 0 0-4 4v14a3 3 0 0 1 3-3h7z"/></svg>'
)
WARNING_ICON = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="24" height="24" viewBox="0 0 24 24" '
    'fill="none" stroke="currentColor" stroke-width="2" stroke-linecap="round" '
    'stroke-linejoin="round" style="width: 1.2em; height: 1.2em; margin-right: 0.5em;">'
    '<path d="M10.29 3.86L1.82 18a2 2 0 0 0 1.71 3h16.94a2 2 0 0 0 1.71-3L13.71 3.86a2 2 0 0 0-3.42 0z"></path>'
    '<line x1="12" y1="9" x2="12" y2="13"></line><line x1="12" y1="17" x2="12.01" y2="17"></line></svg>'
)


@dataclass
class ReferencePolicy:
    """Tunable thresholds for reference selection."""

    spam_domains: list[str] = field(default_factory=list)
    min_relevance: int = 5
    min_valid: int = 5
    check_timeout: float = 5.0

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ReferencePolicy":
        settings = settings or get_settings()
        return cls(
            spam_domains=list(settings.reference_spam_domains),
            min_relevance=settings.reference_min_relevance,
            min_valid=settings.reference_min_valid,
            check_timeout=settings.reference_check_timeout,
        )


@dataclass
class ReferenceOutcome:
    """Rendered references section and how it was produced."""

    html: str
    kind: str  # "references", "suggested_reading" or "action_required"
    references: list[Reference] = field(default_factory=list)


def build_reference_queries(primary_keyword: str, title: str) -> list[str]:
    """Seven keyword-anchored queries plus the quoted title."""
    queries = [f'"{primary_keyword}"{suffix}' for suffix in REFERENCE_QUERY_SUFFIXES]
    queries.append(f'"{title}"')
    return queries


def dedupe_results(results: list[dict[str, Any]], own_hostname: str = "") -> list[dict[str, Any]]:
    """Unique results by link, excluding links on the publisher's own host."""
    seen: set[str] = set()
    unique: list[dict[str, Any]] = []
    for result in results:
        link = result.get("link") or ""
        if not link or link in seen:
            continue
        if own_hostname and own_hostname in link:
            continue
        seen.add(link)
        unique.append(result)
    return unique


def render_reference_list(references: list[Reference]) -> str:
    items = []
    for ref in references:
        if not (ref.title and ref.url and ref.source and ref.year):
            continue
        if not str(ref.url).startswith("http"):
            continue
        items.append(
            f'<li><a href="{html.escape(ref.url, quote=True)}" target="_blank" '
            f'rel="noopener noreferrer">{html.escape(ref.title, quote=False)}</a> '
            f"({html.escape(ref.source, quote=False)}, {ref.year})</li>"
        )
    return "<h2>References &amp; Further Reading</h2>\n<ol>\n" + "\n".join(items) + "\n</ol>"


def render_suggested_reading(results: list[dict[str, Any]]) -> str:
    items = "\n".join(
        f'<li><a href="{html.escape(r["link"], quote=True)}" target="_blank" '
        f'rel="noopener noreferrer">{html.escape(str(r.get("title") or r["link"]), quote=False)}</a></li>'
        for r in results
    )
    return (
        '<div class="manual-action-required-box warning-box">\n'
        f"<h3>{_BOOK_ICON} Suggested Reading &amp; Further Research</h3>\n"
        f"<ul>{items}</ul>\n</div>"
    )


def render_references_action_required() -> str:
    return (
        '<div class="manual-action-required-box error-box">\n'
        f"<h3>{WARNING_ICON} Action Required: Add References</h3>\n"
        "<p>Our automated reference finder could not locate credible sources for this topic. "
        "Please manually research and add a list of 8-12 authoritative references in this section.</p>\n"
        "</div>"
    )


class ReferenceService:
    """Finds, selects and validates external references."""

    def __init__(
        self,
        ai: ContentAI,
        search: SearchProvider | None = None,
        policy: ReferencePolicy | None = None,
        own_site_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._ai = ai
        self._search = search
        self._policy = policy or ReferencePolicy.from_settings()
        self._own_hostname = get_hostname(own_site_url) if own_site_url else ""
        self._client = client

    @property
    def policy(self) -> ReferencePolicy:
        return self._policy

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._policy.check_timeout),
                headers=VALIDATOR_HEADERS,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def gather_search_results(self, primary_keyword: str, title: str) -> list[dict[str, Any]]:
        """Run every reference query and return unique results."""
        if self._search is None:
            return []
        results: list[dict[str, Any]] = []
        for query in build_reference_queries(primary_keyword, title):
            try:
                response = await self._search.search(query, num=RESULTS_PER_QUERY)
            except Exception as e:
                logger.warning("Reference search failed", extra={"query": query, "error": str(e)})
                continue
            for r in response.organic:
                link = r.get("link") or ""
                results.append(
                    {
                        "title": r.get("title") or "",
                        "link": link,
                        "snippet": r.get("snippet") or "",
                        "source": get_hostname(link) or "Unknown",
                    }
                )
        return dedupe_results(results, self._own_hostname)

    async def select_references(
        self,
        title: str,
        summary: str,
        results: list[dict[str, Any]],
        primary_keyword: str,
    ) -> list[Reference]:
        """Let the completion provider pick relevant sources.

        Falls back to the top search results when selection fails.
        """
        try:
            data = await self._ai.call_json(
                "find_real_references_with_context",
                title,
                summary,
                results[:MAX_RESULTS_FOR_SELECTION],
                primary_keyword,
            )
        except Exception as e:
            logger.warning(
                "AI reference selection failed, using top results", extra={"error": str(e)}
            )
            year = datetime.now(UTC).year
            return [
                Reference(title=r["title"], url=r["link"], source=r["source"], year=year)
                for r in results[:MAX_FALLBACK_REFERENCES]
            ]

        if isinstance(data, dict):
            data = data.get("references") or data.get("sources") or []
        references: list[Reference] = []
        for entry in data if isinstance(data, list) else []:
            if not isinstance(entry, dict) or not entry.get("url") or not entry.get("title"):
                continue
            ref = Reference.model_validate(entry)
            if ref.relevance_score is not None and ref.relevance_score < self._policy.min_relevance:
                continue
            references.append(ref)
        return references

    def is_spam(self, url: str) -> bool:
        hostname = get_hostname(url)
        return any(domain in hostname for domain in self._policy.spam_domains)

    async def _check_reference(self, ref: Reference) -> Reference | None:
        if not get_hostname(ref.url):
            logger.warning("Rejected malformed reference URL", extra={"url": ref.url})
            return None
        if self.is_spam(ref.url):
            logger.warning("Rejected spam reference domain", extra={"url": ref.url})
            return None
        client = await self._get_client()
        try:
            response = await client.head(ref.url)
        except httpx.HTTPError as e:
            logger.warning(
                "Rejected inaccessible reference", extra={"url": ref.url, "error": str(e)}
            )
            return None
        if response.status_code >= 400:
            logger.warning(
                "Rejected inaccessible reference",
                extra={"url": ref.url, "status_code": response.status_code},
            )
            return None
        return ref

    async def validate_references(self, references: list[Reference]) -> list[Reference]:
        """Keep references that pass the spam filter and answer a HEAD request."""
        if not references:
            return []
        checked = await asyncio.gather(*(self._check_reference(r) for r in references))
        valid = [r for r in checked if r is not None]
        logger.info(
            "Reference validation complete",
            extra={"candidates": len(references), "valid": len(valid)},
        )
        return valid

    def suggested_reading(self, results: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [
            r
            for r in results
            if r.get("link") and not any(d in r["link"] for d in SUGGESTED_READING_EXCLUDED)
        ][:MAX_SUGGESTED_READING]

    async def build_references_section(
        self, title: str, primary_keyword: str, summary: str
    ) -> ReferenceOutcome:
        """Run the full reference flow and render its HTML section."""
        results = await self.gather_search_results(primary_keyword, title)
        references: list[Reference] = []
        if results:
            selected = await self.select_references(title, summary, results, primary_keyword)
            references = await self.validate_references(selected)

        if len(references) >= self._policy.min_valid:
            return ReferenceOutcome(render_reference_list(references), "references", references)

        logger.warning(
            "Too few valid references, using fallback",
            extra={"valid": len(references), "required": self._policy.min_valid},
        )
        reading = self.suggested_reading(results)
        if reading:
            return ReferenceOutcome(render_suggested_reading(reading), "suggested_reading")
        return ReferenceOutcome(render_references_action_required(), "action_required")
