"""Internal link integrity: repair, quota, resolution and sanitization.

Generated HTML refers to internal pages through placeholder tokens of the form
[INTERNAL_LINK slug="S" text="T"]. Before an article is published every token
is either resolved to a real anchor or degraded to its anchor text.

The finalize order is fixed:
1. sanitize_broken_placeholders  - malformed tokens degrade to text
2. validate_and_repair_internal_links - invented slugs are re-targeted by title
3. enforce_internal_link_quota - new tokens are wrapped around title phrases
4. process_internal_links - tokens become <a> tags with UTM parameters

Quota enforcement scans the raw markup for text outside tags, existing links,
headings and scripts, and splices placeholders into the original string so
the rest of the article is never re-serialized.
"""

import re
from collections.abc import Callable, Iterable, Iterator, Sequence

from article_pipeline.core.logging import get_logger, pipeline_logger
from article_pipeline.schemas.content import SitemapPage
from article_pipeline.utils.url import add_query_params

logger = get_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r'\[INTERNAL_LINK\s+slug="([^"]+)"\s+text="([^"]+)"\]')

# Any token that starts like a placeholder; stops before tags and nested brackets
_ANY_PLACEHOLDER = re.compile(r"\[INTERNAL_LINK[^\]\[<>]*\]?")
_TEXT_ATTRIBUTE = re.compile(r'text="([^"]*)"')

PLACEHOLDER_MARKER = "[INTERNAL_LINK"

DEFAULT_UTM_PARAMS = {
    "utm_source": "wp-content-optimizer",
    "utm_medium": "internal-link",
    "utm_campaign": "content-hub-automation",
}

# Repair
REPAIR_SCORE_THRESHOLD = 50
MIN_MEANINGFUL_WORD_LENGTH = 3

# Quota
DEFAULT_MIN_LINKS = 8
MIN_SEARCH_TERM_LENGTH = 10
FORBIDDEN_PARENTS = {"a", "h1", "h2", "h3", "h4", "h5", "h6", "script", "style", "title"}
_RAW_TEXT_ELEMENTS = {"script", "style"}

# Comments, CDATA, declarations and tags; group 1 marks a closing tag
_MARKUP = re.compile(
    r"<!--.*?(?:-->|\Z)|<!\[CDATA\[.*?(?:\]\]>|\Z)|<[!?][^>]*>"
    r"|<(/?)([A-Za-z][\w:-]*)(?:[^>\"']|\"[^\"]*\"|'[^']*')*>",
    re.DOTALL,
)


def make_placeholder(slug: str, text: str) -> str:
    """Build a canonical placeholder token."""
    return f'[INTERNAL_LINK slug="{slug}" text="{text.replace(chr(34), "&quot;")}"]'


def count_placeholders(content: str, valid_slugs: Iterable[str] | None = None) -> int:
    """Count canonical placeholders, optionally only those with a known slug."""
    if valid_slugs is None:
        return len(PLACEHOLDER_PATTERN.findall(content))
    known = set(valid_slugs)
    return sum(1 for m in PLACEHOLDER_PATTERN.finditer(content) if m.group(1) in known)


def _page_url(page: SitemapPage) -> str:
    if page.url:
        return page.url
    return page.id if page.id.startswith("http") else ""


def _meaningful_words(text: str) -> set[str]:
    return {w for w in text.split() if len(w) >= MIN_MEANINGFUL_WORD_LENGTH}


# =============================================================================
# 1. SANITIZE
# =============================================================================


def sanitize_broken_placeholders(content: str) -> str:
    """Degrade every malformed placeholder to its anchor text.

    Canonical tokens with a non-empty slug and text are kept. Anything else
    that starts with [INTERNAL_LINK (missing attributes, empty values,
    unterminated) is replaced by its text attribute, or removed when it has
    none. Runs to a fixed point so nested fragments cannot survive.
    """
    if not content or PLACEHOLDER_MARKER not in content:
        return content

    def replace(match: re.Match[str]) -> str:
        token = match.group(0)
        if PLACEHOLDER_PATTERN.fullmatch(token):
            return token
        text_match = _TEXT_ATTRIBUTE.search(token)
        logger.debug("Sanitizing broken placeholder", extra={"token": token[:200]})
        return text_match.group(1) if text_match else ""

    return _to_fixed_point(content, lambda c: _ANY_PLACEHOLDER.sub(replace, c))


def strip_all_placeholders(content: str) -> str:
    """Degrade every placeholder, valid or not, to its anchor text."""
    if not content or PLACEHOLDER_MARKER not in content:
        return content

    def replace(match: re.Match[str]) -> str:
        text_match = _TEXT_ATTRIBUTE.search(match.group(0))
        return text_match.group(1) if text_match else ""

    return _to_fixed_point(content, lambda c: _ANY_PLACEHOLDER.sub(replace, c))


def _to_fixed_point(content: str, step: Callable[[str], str]) -> str:
    previous = None
    while previous != content:
        previous = content
        content = step(content)
    return content


# =============================================================================
# 2. REPAIR
# =============================================================================


def score_page_for_anchor(anchor_text: str, title: str) -> float:
    """Score how well a page title matches a placeholder's anchor text.

    Exact match 100, anchor inside title 60, title inside anchor 50, plus the
    mean of the two word-overlap percentages.
    """
    anchor = anchor_text.lower()
    title_lower = title.lower()
    score = 0.0
    if title_lower == anchor:
        score += 100
    if anchor in title_lower:
        score += 60
    if title_lower in anchor:
        score += 50

    anchor_words = _meaningful_words(anchor)
    title_words = _meaningful_words(title_lower)
    if anchor_words and title_words:
        intersection = anchor_words & title_words
        if intersection:
            anchor_pct = len(intersection) / len(anchor_words) * 100
            title_pct = len(intersection) / len(title_words) * 100
            score += (anchor_pct + title_pct) / 2
    return score


def find_best_page(
    anchor_text: str, pages: Sequence[SitemapPage]
) -> tuple[SitemapPage | None, float]:
    """Return the highest-scoring page for anchor_text and its score."""
    best: SitemapPage | None = None
    best_score = -1.0
    for page in pages:
        if not page.slug or not page.title:
            continue
        score = score_page_for_anchor(anchor_text, page.title)
        if score > best_score:
            best, best_score = page, score
    return best, best_score


def validate_and_repair_internal_links(
    content: str, pages: Sequence[SitemapPage]
) -> str:
    """Re-target placeholders whose slug is not a known page.

    A placeholder with a known slug is left alone. Otherwise the best page by
    anchor-text score replaces the slug when the score exceeds 50; if nothing
    qualifies the placeholder degrades to its anchor text. Running this twice
    yields the same output as running it once.
    """
    if not content or not pages:
        return content

    known = {page.slug for page in pages if page.slug}

    def repair(match: re.Match[str]) -> str:
        slug, text = match.group(1), match.group(2)
        if slug in known:
            return match.group(0)

        best, score = find_best_page(text, pages)
        if best is not None and score > REPAIR_SCORE_THRESHOLD:
            logger.info(
                "Repaired invented internal link slug",
                extra={
                    "invented_slug": slug,
                    "repaired_slug": best.slug,
                    "anchor_text": text,
                    "score": round(score, 2),
                },
            )
            return make_placeholder(best.slug, text)

        logger.warning(
            "No page matches invented slug, keeping anchor text",
            extra={"invented_slug": slug, "anchor_text": text, "best_score": round(score, 2)},
        )
        return text

    return PLACEHOLDER_PATTERN.sub(repair, content)


# =============================================================================
# 3. QUOTA
# =============================================================================


def build_search_terms(title: str) -> list[str]:
    """Search phrases for a page title, longest first.

    Full title; title minus its last word (titles over 4 words); title minus
    its first word (titles over 3 words). Phrases under 10 characters are
    too generic to anchor a link and are dropped.
    """
    words = title.split()
    terms = [title.strip()]
    if len(words) > 4:
        terms.append(" ".join(words[:-1]))
    if len(words) > 3:
        terms.append(" ".join(words[1:]))

    unique: list[str] = []
    for term in terms:
        if len(term) >= MIN_SEARCH_TERM_LENGTH and term not in unique:
            unique.append(term)
    return sorted(unique, key=len, reverse=True)


def rank_candidate_pages(
    pages: Sequence[SitemapPage],
    linked_slugs: set[str],
    primary_title: str = "",
) -> list[tuple[SitemapPage, list[str]]]:
    """Pages eligible for a new link with their search terms.

    Pages already linked, the article's own page and pages without a usable
    search term are excluded. Titles with more than two words come first.
    """
    own_title = primary_title.strip().lower()
    candidates: list[tuple[SitemapPage, list[str]]] = []
    seen: set[str] = set()
    for page in pages:
        if not page.slug or not page.title or page.slug in linked_slugs:
            continue
        if page.slug in seen or (own_title and page.title.strip().lower() == own_title):
            continue
        terms = build_search_terms(page.title)
        if terms:
            candidates.append((page, terms))
            seen.add(page.slug)
    # Stable sort keeps sitemap order within each group
    candidates.sort(key=lambda c: 0 if len(c[0].title.split()) > 2 else 1)
    return candidates


def _phrase_pattern(term: str) -> re.Pattern[str]:
    # Preceded by start, whitespace or "("; followed by end, whitespace or .,!?)
    return re.compile(
        r"(?<![^\s(])(" + re.escape(term) + r")(?![^\s.,!?)])", re.IGNORECASE
    )


def _eligible_text_spans(content: str) -> Iterator[tuple[int, int]]:
    """Raw offsets of text that is not markup and not inside a forbidden element.

    Script and style bodies are skipped as raw text. Unclosed forbidden
    elements swallow the rest of the document.
    """
    open_forbidden: list[str] = []
    position = 0
    while position < len(content):
        match = _MARKUP.search(content, position)
        text_end = match.start() if match else len(content)
        if text_end > position and not open_forbidden:
            yield position, text_end
        if match is None:
            return
        position = match.end()
        name = (match.group(2) or "").lower()
        if name not in FORBIDDEN_PARENTS:
            continue
        if match.group(1):
            while name in open_forbidden:
                if open_forbidden.pop() == name:
                    break
        elif name in _RAW_TEXT_ELEMENTS:
            closing = re.compile(rf"</{name}\s*>", re.IGNORECASE).search(content, position)
            position = closing.end() if closing else len(content)
        elif not match.group(0).endswith("/>"):
            open_forbidden.append(name)


def _unlinked_spans(content: str, start: int, end: int) -> Iterator[tuple[int, int]]:
    """Sub-spans of content[start:end] that are not inside an existing placeholder."""
    position = start
    for match in PLACEHOLDER_PATTERN.finditer(content, start, end):
        if match.start() > position:
            yield position, match.start()
        position = match.end()
    if position < end:
        yield position, end


def _place_link(content: str, slug: str, pattern: re.Pattern[str]) -> tuple[str, str] | None:
    """Wrap the first eligible match of pattern in a placeholder for slug.

    Returns the updated content and the anchor text. Only the matched phrase
    is rewritten; the rest of the markup is kept byte for byte.
    """
    for text_start, text_end in _eligible_text_spans(content):
        for start, end in _unlinked_spans(content, text_start, text_end):
            # Searched as a slice so tag edges count as phrase boundaries
            match = pattern.search(content[start:end])
            if match is None:
                continue
            anchor = match.group(1)
            updated = (
                content[: start + match.start()]
                + make_placeholder(slug, anchor)
                + content[start + match.end() :]
            )
            return updated, anchor
    return None


def enforce_internal_link_quota(
    content: str,
    pages: Sequence[SitemapPage],
    primary_title: str = "",
    min_links: int = DEFAULT_MIN_LINKS,
) -> str:
    """Top up internal links until min_links valid placeholders exist.

    For each candidate page in rank order, the first untagged occurrence of
    one of its search phrases is wrapped in a placeholder. Stops when the
    quota is met or candidates run out; falling short is logged, not raised.
    """
    if not content or not pages:
        return content

    known = {page.slug for page in pages if page.slug}
    linked = {m.group(1) for m in PLACEHOLDER_PATTERN.finditer(content) if m.group(1) in known}
    existing = count_placeholders(content, known)
    deficit = min_links - existing
    if deficit <= 0:
        return content

    logger.info(
        "Internal link deficit detected",
        extra={"existing_links": existing, "required": min_links, "deficit": deficit},
    )

    added = 0
    for page, terms in rank_candidate_pages(pages, linked, primary_title):
        if added >= deficit:
            break
        for term in terms:
            placed = _place_link(content, page.slug, _phrase_pattern(term))
            if placed is not None:
                content, anchor = placed
                logger.debug(
                    "Injected internal link placeholder",
                    extra={"slug": page.slug, "anchor_text": anchor},
                )
                added += 1
                break

    pipeline_logger.link_quota(existing + added, min_links, added)
    return content


# =============================================================================
# 4. RESOLVE
# =============================================================================


def process_internal_links(
    content: str,
    pages: Sequence[SitemapPage],
    utm_params: dict[str, str] | None = None,
) -> str:
    """Replace placeholders with anchors to the page URL plus UTM parameters.

    Placeholders whose slug has no page with a URL degrade to plain text,
    including when the page list is empty.
    """
    if not content or PLACEHOLDER_MARKER not in content:
        return content

    params = utm_params or DEFAULT_UTM_PARAMS
    urls_by_slug = {page.slug: _page_url(page) for page in pages if page.slug}

    def resolve(match: re.Match[str]) -> str:
        slug, text = match.group(1), match.group(2)
        url = urls_by_slug.get(slug)
        if not url:
            logger.warning(
                "Unresolvable internal link, keeping anchor text",
                extra={"slug": slug, "anchor_text": text},
            )
            return text
        href = add_query_params(url, params)
        return f'<a href="{href}">{text.replace(chr(34), "&quot;")}</a>'

    return PLACEHOLDER_PATTERN.sub(resolve, content)


def finalize_internal_links(
    content: str,
    pages: Sequence[SitemapPage],
    primary_title: str = "",
    min_links: int = DEFAULT_MIN_LINKS,
    utm_params: dict[str, str] | None = None,
) -> str:
    """Run sanitize, repair, quota and resolve in order.

    The output never contains an [INTERNAL_LINK token.
    """
    content = sanitize_broken_placeholders(content)
    content = validate_and_repair_internal_links(content, pages)
    content = enforce_internal_link_quota(content, pages, primary_title, min_links)
    content = process_internal_links(content, pages, utm_params)
    return strip_all_placeholders(content)


def count_resolved_links(content: str, utm_source: str | None = None) -> int:
    """Count anchors carrying the internal-link utm_source."""
    source = utm_source or DEFAULT_UTM_PARAMS["utm_source"]
    return len(re.findall(r'<a href="[^"]*utm_source=' + re.escape(source), content))
