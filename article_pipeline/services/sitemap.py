"""Sitemap crawling: discover every page of the target site.

Sitemap indexes are followed breadth first; each sitemap URL is fetched once.
<url> blocks yield a page with its optional <lastmod>. When a document is
neither an index nor a urlset with entries, every http(s) <loc> is used.

Discovered pages carry the URL as id and title until content analysis
replaces the title with the page's real <title>.
"""

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from bs4 import BeautifulSoup, Tag

from article_pipeline.core.logging import get_logger
from article_pipeline.integrations.fetcher import ResilientFetcher
from article_pipeline.schemas.content import SitemapPage
from article_pipeline.utils.url import extract_slug_from_url

logger = get_logger(__name__)

STALE_AFTER_DAYS = 365
SECONDS_PER_DAY = 86_400


@dataclass
class SitemapDocument:
    """Parsed contents of one sitemap document."""

    child_sitemaps: list[str] = field(default_factory=list)
    pages: dict[str, str | None] = field(default_factory=dict)  # url -> lastmod


def _loc_text(element: Tag) -> str:
    loc = element.find("loc")
    return loc.get_text(strip=True) if loc is not None else ""


def parse_sitemap(text: str) -> SitemapDocument:
    """Parse a sitemap or sitemap index."""
    soup = BeautifulSoup(text, "html.parser")
    document = SitemapDocument()

    for sitemap in soup.find_all("sitemap"):
        loc = _loc_text(sitemap)
        if loc:
            document.child_sitemaps.append(loc)

    for url_block in soup.find_all("url"):
        loc = _loc_text(url_block)
        if not loc or loc in document.pages:
            continue
        lastmod = url_block.find("lastmod")
        document.pages[loc] = lastmod.get_text(strip=True) if lastmod is not None else None

    if not document.child_sitemaps and not document.pages:
        for loc in soup.find_all("loc"):
            url = loc.get_text(strip=True)
            if url.startswith("http") and url not in document.pages:
                document.pages[url] = None
    return document


def parse_lastmod(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def days_since(lastmod: str | None, now: datetime | None = None) -> int | None:
    """Whole days between lastmod and now, or None when lastmod is unparseable."""
    parsed = parse_lastmod(lastmod)
    if parsed is None:
        return None
    now = now or datetime.now(UTC)
    return round((now - parsed).total_seconds() / SECONDS_PER_DAY)


def build_page(url: str, lastmod: str | None, now: datetime | None = None) -> SitemapPage:
    days_old = days_since(lastmod, now)
    return SitemapPage(
        id=url,
        title=url,
        slug=extract_slug_from_url(url),
        url=url,
        last_mod=lastmod,
        days_old=days_old,
        is_stale=days_old is not None and days_old > STALE_AFTER_DAYS,
    )


class SitemapCrawler:
    """Discovers pages from a sitemap URL through the resilient fetcher."""

    def __init__(self, fetcher: ResilientFetcher) -> None:
        self._fetcher = fetcher

    async def crawl(
        self,
        sitemap_url: str,
        on_progress: Callable[[str], None] | None = None,
    ) -> list[SitemapPage]:
        """Return every page reachable from sitemap_url.

        Raises:
            FetchError: If a sitemap cannot be fetched by any route.
        """

        def report(message: str) -> None:
            if on_progress is not None:
                on_progress(message)

        report("Discovering all pages from sitemap(s)...")
        queue: deque[str] = deque([sitemap_url])
        crawled: set[str] = set()
        pages: dict[str, str | None] = {}

        while queue:
            current = queue.popleft()
            if current in crawled:
                continue
            crawled.add(current)

            response = await self._fetcher.fetch(current, on_progress=on_progress)
            document = parse_sitemap(response.text)
            queue.extend(document.child_sitemaps)
            for url, lastmod in document.pages.items():
                pages.setdefault(url, lastmod)

            logger.info(
                "Sitemap parsed",
                extra={
                    "sitemap_url": current,
                    "child_sitemaps": len(document.child_sitemaps),
                    "pages": len(document.pages),
                },
            )

        now = datetime.now(UTC)
        discovered = [build_page(url, lastmod, now) for url, lastmod in pages.items()]
        if discovered:
            report(f"Discovery successful! Found {len(discovered)} pages.")
        else:
            report("Crawl complete, but no page URLs were found.")
        logger.info(
            "Sitemap crawl complete",
            extra={"sitemap_url": sitemap_url, "sitemaps": len(crawled), "pages": len(discovered)},
        )
        return discovered
