"""Repair helpers for model output that is "almost" JSON or HTML.

Completion providers regularly wrap JSON in Markdown fences, prepend a line of
conversation, leave trailing commas or stop mid-object when they hit the token
limit. These functions recover a parseable value before anything downstream
sees the text.
"""

import json
import re
from typing import Any

from article_pipeline.core.logging import get_logger

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"```(?:json|JSON)?\s*")
_CLOSING_FENCE = re.compile(r"\s*```\s*$")
_TRAILING_COMMA_AT_END = re.compile(r",\s*$")
_HTML_FENCE_OPEN = re.compile(r"^```(?:html)?\s*", re.IGNORECASE)
_HTML_FENCE_CLOSE = re.compile(r"\s*```$")

# Pretext at or above this length is treated as real content, not boilerplate
MAX_HTML_PRETEXT_LENGTH = 100

_CLOSERS = {"{": "}", "[": "]"}


class JSONExtractionError(ValueError):
    """Raised when no parseable JSON value can be recovered from text."""

    def __init__(self, message: str, text: str = "") -> None:
        super().__init__(message)
        self.text = text


def _is_valid_json(text: str) -> bool:
    try:
        json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return False
    return True


def _remove_trailing_commas(text: str) -> str:
    """Drop commas directly before a closing bracket, outside string literals."""
    out: list[str] = []
    in_string = False
    escaped = False
    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char in ("}", "]"):
            index = len(out) - 1
            while index >= 0 and out[index].isspace():
                index -= 1
            if index >= 0 and out[index] == ",":
                del out[index]
        out.append(char)
    return "".join(out)


def _balance_from(text: str, start: int) -> str:
    """Return the balanced JSON candidate beginning at start.

    Scans forward tracking string-literal state (with backslash escapes) and a
    stack of open brackets. If the text ends before every bracket closes, the
    missing closers are synthesized in the right order.
    """
    stack: list[str] = []
    in_string = False
    escaped = False

    for index in range(start, len(text)):
        char = text[index]
        if escaped:
            escaped = False
            continue
        if in_string:
            if char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in ("}", "]"):
            if stack and stack[-1] == char:
                stack.pop()
                if not stack:
                    return text[start : index + 1]

    # Truncated: close any open string, drop a dangling comma, close brackets
    candidate = text[start:].rstrip()
    if in_string:
        candidate += '"'
    candidate = _TRAILING_COMMA_AT_END.sub("", candidate)
    logger.debug(
        "Auto-closing truncated JSON",
        extra={"missing_closers": len(stack), "unterminated_string": in_string},
    )
    return candidate + "".join(reversed(stack))


def extract_json(text: str) -> str:
    """Recover a valid JSON document from noisy model output.

    Returns the JSON text (not the parsed value). Raises JSONExtractionError
    only after every repair strategy has failed.
    """
    if not text or not text.strip():
        raise JSONExtractionError("Cannot extract JSON from empty response", text or "")

    if _is_valid_json(text):
        return text

    # Only the opening fence is skipped; the balanced scan stops at the
    # closing bracket, so fences inside string values are left alone
    text = _CLOSING_FENCE.sub("", text)
    fence = _CODE_FENCE.search(text)
    search_from = [fence.end()] if fence else []
    search_from.append(0)

    found = False
    for offset in search_from:
        starts = [i for i in (text.find("{", offset), text.find("[", offset)) if i != -1]
        if not starts:
            continue
        found = True
        candidate = _balance_from(text, min(starts))
        if _is_valid_json(candidate):
            return candidate
        repaired = _remove_trailing_commas(candidate)
        if _is_valid_json(repaired):
            return repaired

    if not found:
        raise JSONExtractionError(
            "Could not find a JSON object or array in the response", text
        )

    logger.warning(
        "JSON extraction failed",
        extra={"response_length": len(text), "response_preview": text[:200]},
    )
    raise JSONExtractionError(
        f"Could not parse JSON from response. Preview: {text[:120]!r}", text
    )


def parse_json_response(text: str) -> Any:
    """Extract and parse JSON from model output in one step."""
    return json.loads(extract_json(text))


def sanitize_html_response(text: str | None) -> str:
    """Strip code fences and short conversational preamble from HTML output."""
    if not text or not isinstance(text, str):
        return ""

    cleaned = _HTML_FENCE_OPEN.sub("", text.strip())
    cleaned = _HTML_FENCE_CLOSE.sub("", cleaned).strip()

    first_tag = cleaned.find("<")
    if first_tag > 0:
        pretext = cleaned[:first_tag].strip()
        if 0 < len(pretext) < MAX_HTML_PRETEXT_LENGTH:
            logger.debug(
                "Stripping HTML preamble", extra={"pretext": pretext[:100]}
            )
            cleaned = cleaned[first_tag:]

    return cleaned
