"""HTML helpers built on BeautifulSoup.

- Main-content extraction for pages rewritten by the link optimizer
- Readable text extraction for content health analysis
- Tag stripping for word counts
"""

import re

from bs4 import BeautifulSoup

_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")

# Candidate containers for the article body, most specific first
MAIN_CONTENT_SELECTORS = [
    "main",
    "article",
    ".main-content",
    "#main",
    "#content",
    ".post-content",
    "[role='main']",
]

# Elements that never belong to the article body
BOILERPLATE_SELECTORS = [
    "script",
    "style",
    "nav",
    "footer",
    "header",
    "aside",
    "noscript",
]


def strip_tags(html: str) -> str:
    """Replace tags with spaces and collapse whitespace."""
    if not html:
        return ""
    return _WHITESPACE.sub(" ", _TAG.sub(" ", html)).strip()


def extract_main_content_html(html: str) -> str:
    """Return the inner HTML of the page's main content container.

    Falls back to <body> with header, footer and navigation removed.
    """
    soup = BeautifulSoup(html, "html.parser")

    for selector in MAIN_CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is not None and element.get_text(strip=True):
            return element.decode_contents().strip()

    body = soup.body or soup
    for selector in ("header", "footer", "nav"):
        for element in body.select(selector):
            element.decompose()
    return body.decode_contents().strip()


def extract_readable_text(html: str) -> str:
    """Return visible body text with scripts and page chrome removed."""
    soup = BeautifulSoup(html, "html.parser")
    for selector in BOILERPLATE_SELECTORS:
        for element in soup.select(selector):
            element.decompose()
    root = soup.body or soup
    text = root.get_text(separator=" ", strip=True)
    return _WHITESPACE.sub(" ", text).strip()


def extract_title(html: str) -> str | None:
    """Return the page <title> text, if any."""
    soup = BeautifulSoup(html, "html.parser")
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    return None


def extract_meta_description(html: str) -> str | None:
    """Return the content of <meta name="description">, if any."""
    soup = BeautifulSoup(html, "html.parser")
    meta = soup.find("meta", attrs={"name": "description"})
    if meta is None:
        return None
    content = meta.get("content")
    return content.strip() if isinstance(content, str) and content.strip() else None
