"""URL helpers: slugs, YouTube IDs, hostnames and query parameters."""

import re
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

_FILE_EXTENSION = re.compile(r"\.[a-zA-Z0-9]{2,5}$")
_YOUTUBE_ID = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")
_NON_SLUG_CHARS = re.compile(r"[^\w-]+")
_WHITESPACE = re.compile(r"\s+")

YOUTUBE_ID_LENGTH = 11


def extract_slug_from_url(url: str | None) -> str:
    """Return the last path segment of a URL without a file extension.

    Matches how WordPress stores a post slug, so a crawled URL can be
    compared against slugs produced by the completion provider.
    """
    if not url or not isinstance(url, str):
        return ""
    parsed = urlparse(url)
    if parsed.scheme and parsed.netloc:
        path = parsed.path
        if path.endswith("/") and len(path) > 1:
            path = path[:-1]
        last_segment = path[path.rfind("/") + 1 :]
        return _FILE_EXTENSION.sub("", last_segment)
    parts = [part for part in url.split("/") if part]
    return parts[-1] if parts else ""


def extract_youtube_id(url: str | None) -> str | None:
    """Extract an 11-character YouTube video id from embed, watch or short links."""
    if not url:
        return None
    match = _YOUTUBE_ID.match(url)
    if match and len(match.group(2)) == YOUTUBE_ID_LENGTH:
        return match.group(2)
    return None


def slugify(text: str) -> str:
    """Lowercase, hyphenate whitespace and drop anything outside [\\w-]."""
    slug = _WHITESPACE.sub("-", text.strip().lower())
    return _NON_SLUG_CHARS.sub("", slug)


def get_hostname(url: str) -> str:
    """Return the hostname of url, or an empty string when it cannot be parsed."""
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def add_query_params(url: str, params: dict[str, str]) -> str:
    """Append params to url, keeping any query string already present."""
    parsed = urlparse(url)
    query = parse_qsl(parsed.query, keep_blank_values=True)
    existing = {key for key, _ in query}
    query.extend((key, value) for key, value in params.items() if key not in existing)
    return urlunparse(parsed._replace(query=urlencode(query)))
