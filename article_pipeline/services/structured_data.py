"""Schema.org JSON-LD for finished articles.

generate_full_schema() builds one @graph holding the publisher, author,
website, article, breadcrumbs and, where the content supports them, FAQ,
HowTo and embedded video nodes. generate_schema_markup() wraps the graph in
a Gutenberg custom-HTML block because the WordPress REST API strips bare
<script> tags from post content.
"""

import json
import math
import re
from datetime import UTC, datetime
from typing import Any

from article_pipeline.core.logging import get_logger
from article_pipeline.schemas.content import FaqEntry, GeneratedContent, SiteInfo
from article_pipeline.utils.html import strip_tags

logger = get_logger(__name__)

SCHEMA_CONTEXT = "https://schema.org"
WORDS_PER_MINUTE = 200
MAX_HOWTO_STEPS = 8
MIN_HOWTO_HEADINGS = 3
LOGO_WIDTH = 600
LOGO_HEIGHT = 60

_H2_PATTERN = re.compile(r"<h2[^>]*>(.*?)</h2>", re.DOTALL)
_ORDERED_LIST_PATTERN = re.compile(r"<ol>.*?</ol>", re.DOTALL)
_YOUTUBE_EMBED_PATTERN = re.compile(r"youtube\.com/embed/([^\"?]+)")


def _drop_empty(node: dict[str, Any]) -> dict[str, Any]:
    """Remove keys whose value is None or an empty list."""
    return {k: v for k, v in node.items() if v is not None and v != []}


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _headings(content: str) -> list[str]:
    return [strip_tags(h).strip() for h in _H2_PATTERN.findall(content)]


def _reading_minutes(word_count: int) -> int:
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def article_url_for(site_url: str, slug: str) -> str:
    return f"{site_url.rstrip('/')}/{slug}"


# =============================================================================
# GRAPH NODES
# =============================================================================


def organization_node(site_info: SiteInfo, site_url: str) -> dict[str, Any]:
    logo = None
    if site_info.logo_url:
        logo = {
            "@type": "ImageObject",
            "@id": f"{site_url}#logo",
            "url": site_info.logo_url,
            "width": LOGO_WIDTH,
            "height": LOGO_HEIGHT,
        }
    return _drop_empty(
        {
            "@type": "Organization",
            "@id": f"{site_url}#organization",
            "name": site_info.org_name,
            "url": site_info.org_url or site_url,
            "logo": logo,
            "sameAs": site_info.org_same_as,
        }
    )


def person_node(site_info: SiteInfo, primary_keyword: str, site_url: str) -> dict[str, Any]:
    author_base = site_info.author_url or site_url
    return _drop_empty(
        {
            "@type": "Person",
            "@id": f"{author_base}#person",
            "name": site_info.author_name,
            "url": site_info.author_url,
            "sameAs": site_info.author_same_as,
            "description": f"Expert content creator specializing in {primary_keyword}",
            "knowsAbout": [primary_keyword],
        }
    )


def website_node(site_url: str, org_name: str) -> dict[str, Any]:
    return {
        "@type": "WebSite",
        "@id": f"{site_url}#website",
        "url": site_url,
        "name": org_name,
        "publisher": {"@id": f"{site_url}#organization"},
        "potentialAction": {
            "@type": "SearchAction",
            "target": {
                "@type": "EntryPoint",
                "urlTemplate": f"{site_url}/?s={{search_term_string}}",
            },
            "query-input": "required name=search_term_string",
        },
    }


def article_node(
    content: GeneratedContent,
    article_url: str,
    organization: dict[str, Any],
    person: dict[str, Any],
    geo_location: str | None = None,
) -> dict[str, Any]:
    word_count = len(strip_tags(content.content).split())
    now = _now_iso()
    node: dict[str, Any] = {
        "@type": "NewsArticle",
        "@id": f"{article_url}#article",
        "mainEntityOfPage": {"@type": "WebPage", "@id": article_url},
        "headline": content.title,
        "description": content.meta_description,
        "image": [
            {"@type": "ImageObject", "url": img.generated_image_src, "caption": img.alt_text}
            for img in content.image_details
            if img.generated_image_src and not img.generated_image_src.startswith("data:")
        ],
        "datePublished": now,
        "dateModified": now,
        "author": person,
        "publisher": organization,
        "keywords": ", ".join([content.primary_keyword, *content.semantic_keywords]),
        "articleSection": content.primary_keyword,
        "wordCount": word_count,
        "timeRequired": f"PT{_reading_minutes(word_count)}M",
        "inLanguage": "en-US",
        "isAccessibleForFree": True,
        "speakable": {"@type": "SpeakableSpecification", "cssSelector": ["h1", "h2", "h3"]},
    }

    headings = _headings(content.content)
    if headings:
        node["hasPart"] = [
            {"@type": "WebPageElement", "@id": f"{article_url}#section-{i}", "name": heading}
            for i, heading in enumerate(headings, start=1)
        ]
    if geo_location:
        node["contentLocation"] = {"@type": "Place", "name": geo_location}
        node["spatialCoverage"] = {"@type": "Place", "name": geo_location}
    return node


def breadcrumb_node(content: GeneratedContent, site_url: str, article_url: str) -> dict[str, Any]:
    category = re.sub(r"\s+", "-", content.primary_keyword.lower())
    return {
        "@type": "BreadcrumbList",
        "@id": f"{article_url}#breadcrumb",
        "itemListElement": [
            {"@type": "ListItem", "position": 1, "name": "Home", "item": site_url},
            {
                "@type": "ListItem",
                "position": 2,
                "name": content.primary_keyword,
                "item": f"{site_url}/category/{category}",
            },
            {"@type": "ListItem", "position": 3, "name": content.title, "item": article_url},
        ],
    }


def faq_node(faq: list[FaqEntry]) -> dict[str, Any] | None:
    """FAQPage node for answered questions, or None when there are none."""
    entities = [
        {
            "@type": "Question",
            "name": entry.question,
            "acceptedAnswer": {"@type": "Answer", "text": strip_tags(entry.answer).strip()},
        }
        for entry in faq
        if entry.question and entry.answer
    ]
    if not entities:
        return None
    return {"@type": "FAQPage", "mainEntity": entities}


def is_instructional(content: str, headings: list[str]) -> bool:
    if len(headings) < MIN_HOWTO_HEADINGS:
        return False
    if _ORDERED_LIST_PATTERN.search(content):
        return True
    return any("step" in h.lower() or "how to" in h.lower() for h in headings)


def howto_node(content: GeneratedContent, article_url: str) -> dict[str, Any] | None:
    """HowTo node for step-based content, or None."""
    headings = _headings(content.content)
    if not is_instructional(content.content, headings):
        return None
    word_count = len(strip_tags(content.content).split())
    return {
        "@type": "HowTo",
        "@id": f"{article_url}#howto",
        "name": content.title,
        "description": content.meta_description,
        "totalTime": f"PT{_reading_minutes(word_count)}M",
        "step": [
            {
                "@type": "HowToStep",
                "position": i,
                "name": heading,
                "text": heading,
                "url": f"{article_url}#section-{i}",
            }
            for i, heading in enumerate(headings[:MAX_HOWTO_STEPS], start=1)
        ],
    }


def video_nodes(content: GeneratedContent, article_url: str) -> list[dict[str, Any]]:
    now = _now_iso()
    return [
        {
            "@type": "VideoObject",
            "@id": f"{article_url}#video-{i}",
            "name": f"Video: {content.title} - Part {i}",
            "description": content.meta_description,
            "thumbnailUrl": f"https://i.ytimg.com/vi/{video_id}/maxresdefault.jpg",
            "uploadDate": now,
            "contentUrl": f"https://www.youtube.com/watch?v={video_id}",
            "embedUrl": f"https://www.youtube.com/embed/{video_id}",
            "inLanguage": "en-US",
        }
        for i, video_id in enumerate(_YOUTUBE_EMBED_PATTERN.findall(content.content), start=1)
    ]


# =============================================================================
# PUBLIC API
# =============================================================================


def generate_full_schema(
    content: GeneratedContent,
    site_url: str,
    site_info: SiteInfo | None = None,
    faq: list[FaqEntry] | None = None,
    geo_location: str | None = None,
) -> dict[str, Any]:
    """Build the JSON-LD @graph for an article.

    Args:
        content: Finished article; its HTML is scanned for headings and embeds.
        site_url: Base URL of the publishing site.
        site_info: Publisher and author details.
        faq: Answered FAQ entries; defaults to content.faq.
        geo_location: Location the article targets, if any.
    """
    site_info = site_info or SiteInfo()
    site_url = site_url.rstrip("/")
    article_url = article_url_for(site_url, content.slug)

    organization = organization_node(site_info, site_url)
    person = person_node(site_info, content.primary_keyword, site_url)
    graph: list[dict[str, Any]] = [
        organization,
        person,
        website_node(site_url, organization["name"]),
        article_node(content, article_url, organization, person, geo_location),
        breadcrumb_node(content, site_url, article_url),
    ]

    faq_schema = faq_node(faq if faq is not None else content.faq)
    if faq_schema:
        graph.append(faq_schema)
    howto = howto_node(content, article_url)
    if howto:
        graph.append(howto)
    graph.extend(video_nodes(content, article_url))

    logger.debug(
        "Structured data generated",
        extra={"slug": content.slug, "node_types": [n["@type"] for n in graph]},
    )
    return {"@context": SCHEMA_CONTEXT, "@graph": graph}


def generate_schema_markup(schema: dict[str, Any]) -> str:
    """Wrap a JSON-LD graph in a WordPress custom-HTML block.

    Returns an empty string when the graph is missing or empty.
    """
    if not schema or not schema.get("@graph"):
        return ""
    script = f'<script type="application/ld+json">\n{json.dumps(schema, indent=2)}\n</script>'
    return f"\n\n<!-- wp:html -->\n{script}\n<!-- /wp:html -->\n\n"
