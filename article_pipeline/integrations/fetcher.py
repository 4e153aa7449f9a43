"""Resilient HTTP fetcher: direct connection first, public relays second.

Every network-touching component goes through ResilientFetcher.fetch():
- A direct request is tried first with a bounded timeout (20s general, 30s
  for authenticated API calls).
- Requests carrying an Authorization header never go through a relay. Relays
  strip credentials, so a network failure there is terminal and reported as a
  CORS/network diagnostic.
- Unauthenticated requests fall back to an ordered list of relay endpoints,
  each with its own timeout. The first successful response wins (any non-5xx
  for API-aware callers).
- If every route fails, FetchError carries the last failure plus likely causes.

The optional on_progress callback receives a human-readable line after every
attempt.
"""

import time
from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import quote

import httpx

from article_pipeline.core.config import get_settings
from article_pipeline.core.logging import fetch_logger, get_logger

logger = get_logger(__name__)

# Headers that make direct requests look like an ordinary browser visit
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

ProgressCallback = Callable[[str], None]


class FetchError(Exception):
    """Raised when a URL could not be fetched by any route."""

    def __init__(
        self,
        message: str,
        url: str,
        attempts: list[str] | None = None,
        last_error: str | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.attempts = attempts or []
        self.last_error = last_error


def has_authorization(headers: Mapping[str, str] | None) -> bool:
    """True when the request carries an Authorization header."""
    if not headers:
        return False
    return any(key.lower() == "authorization" for key in headers)


def build_relay_url(template: str, url: str) -> str:
    """Fill a relay template with the raw ({url}) or quoted ({encoded}) target."""
    return template.format(url=url, encoded=quote(url, safe=""))


def _exhausted_message(url: str, attempt_count: int, last_error: str) -> str:
    return (
        f"Failed to fetch {url} after {attempt_count} attempts (direct and relays). "
        "Likely causes: a firewall or security plugin (e.g. Cloudflare, Wordfence) "
        "is blocking automated requests; the sitemap is private or behind a login; "
        "or the URL is malformed or does not exist. "
        f"Last Error: {last_error}"
    )


def _auth_failure_message(url: str, error: str) -> str:
    return (
        f"Could not reach {url}. Authenticated requests cannot be routed through "
        "public relays, so the server must accept direct connections. Check the "
        "site URL and make sure the REST API accepts cross-origin requests. "
        f"Underlying error: {error}"
    )


class ResilientFetcher:
    """Async fetcher with direct-first, relay-fallback behaviour."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        auth_timeout: float | None = None,
        relay_templates: list[str] | None = None,
    ) -> None:
        settings = get_settings()
        self._timeout = timeout or settings.fetch_timeout
        self._auth_timeout = auth_timeout or settings.fetch_auth_timeout
        self._relay_templates = (
            relay_templates
            if relay_templates is not None
            else list(settings.fetch_relay_templates)
        )
        self._client = client
        self._owns_client = client is None

    @property
    def relay_templates(self) -> list[str]:
        return list(self._relay_templates)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ResilientFetcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None,
        content: bytes | str | None,
        json: Any,
        timeout: float,
        via: str,
    ) -> httpx.Response:
        client = await self._get_client()
        fetch_logger.attempt(url, via, timeout)
        start_time = time.monotonic()
        response = await client.request(
            method,
            url,
            headers=dict(headers) if headers else None,
            content=content,
            json=json,
            timeout=httpx.Timeout(timeout),
        )
        fetch_logger.succeeded(
            url, via, response.status_code, (time.monotonic() - start_time) * 1000
        )
        return response

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        content: bytes | str | None = None,
        json: Any = None,
        on_progress: ProgressCallback | None = None,
        accept_client_errors: bool = False,
    ) -> httpx.Response:
        """Fetch url, falling back to relays for unauthenticated requests.

        Args:
            url: Target URL.
            method: HTTP method.
            headers: Request headers. An Authorization header forces direct-only.
            content: Raw request body.
            json: JSON request body.
            on_progress: Receives a status line after each attempt.
            accept_client_errors: Treat any non-5xx response as a success.

        Returns:
            The first acceptable httpx.Response. For authenticated requests,
            whatever the server answered.

        Raises:
            FetchError: Every route failed.
        """

        def report(message: str) -> None:
            if on_progress is not None:
                on_progress(message)

        if has_authorization(headers):
            try:
                report(f"Connecting directly to {url}...")
                return await self._send(
                    method, url, headers, content, json, self._auth_timeout, "direct"
                )
            except httpx.TimeoutException as e:
                error = f"Request timed out after {self._auth_timeout}s"
                fetch_logger.attempt_failed(url, "direct", error)
                raise FetchError(
                    _auth_failure_message(url, error), url, ["direct"], error
                ) from e
            except httpx.RequestError as e:
                error = f"{type(e).__name__}: {e}"
                fetch_logger.attempt_failed(url, "direct", error)
                raise FetchError(
                    _auth_failure_message(url, error), url, ["direct"], error
                ) from e

        request_headers: dict[str, str] = dict(BROWSER_HEADERS)
        if headers:
            request_headers.update(headers)

        routes: list[tuple[str, str]] = [("direct", url)]
        routes.extend(
            (f"relay {index + 1}", build_relay_url(template, url))
            for index, template in enumerate(self._relay_templates)
        )

        attempts: list[str] = []
        last_error = "no attempts made"
        for via, target in routes:
            attempts.append(via)
            try:
                response = await self._send(
                    method, target, request_headers, content, json, self._timeout, via
                )
            except httpx.TimeoutException:
                last_error = f"{via}: timed out after {self._timeout}s"
                fetch_logger.attempt_failed(target, via, last_error)
                report(f"{via.capitalize()} timed out, trying next route...")
                continue
            except httpx.RequestError as e:
                last_error = f"{via}: {type(e).__name__}: {e}"
                fetch_logger.attempt_failed(target, via, last_error)
                report(f"{via.capitalize()} failed, trying next route...")
                continue

            if response.is_success or (
                accept_client_errors and response.status_code < 500
            ):
                report(f"Fetched via {via} ({response.status_code})")
                if via != "direct":
                    logger.info(
                        "Fetch succeeded through relay",
                        extra={"via": via, "status_code": response.status_code},
                    )
                return response

            last_error = f"{via}: HTTP {response.status_code}"
            fetch_logger.attempt_failed(target, via, last_error)
            report(f"{via.capitalize()} returned {response.status_code}, trying next route...")

        fetch_logger.exhausted(url, len(attempts), last_error)
        raise FetchError(
            _exhausted_message(url, len(attempts), last_error), url, attempts, last_error
        )
