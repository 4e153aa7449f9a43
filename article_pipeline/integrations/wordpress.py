"""WordPress REST API client for publishing posts and uploading media.

Credentials travel as an explicit HTTP Basic Authorization header (application
passwords). Every request goes through ResilientFetcher, which keeps
authenticated calls on the direct route with the 30s timeout.
"""

import base64
import json
from typing import Any

import httpx

from article_pipeline.core.logging import get_logger
from article_pipeline.integrations.base import PublishedPost, UploadedMedia
from article_pipeline.integrations.fetcher import ResilientFetcher

logger = get_logger(__name__)


class WordPressError(Exception):
    """Raised when the WordPress API rejects a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def basic_auth_header(username: str, app_password: str) -> str:
    """Build the Authorization header value for an application password."""
    token = base64.b64encode(f"{username}:{app_password}".encode()).decode()
    return f"Basic {token}"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or "Unknown error"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("code") or body)[:200]
    return str(body)[:200]


class WordPressClient:
    """WordPress REST API client.

    Args:
        site_url: The WordPress site URL (e.g. https://example.com).
        username: WordPress username.
        app_password: WordPress application password.
        fetcher: Resilient fetcher used for every request.
    """

    def __init__(
        self,
        site_url: str,
        username: str,
        app_password: str,
        fetcher: ResilientFetcher,
    ) -> None:
        self.base_url = site_url.rstrip("/")
        self._api_base = f"{self.base_url}/wp-json/wp/v2"
        self._auth_header = basic_auth_header(username, app_password)
        self._fetcher = fetcher

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {"Authorization": self._auth_header}
        if extra:
            headers.update(extra)
        return headers

    async def find_post_id_by_slug(self, slug: str) -> int | None:
        """Return the id of the post with slug, or None if there is none."""
        response = await self._fetcher.fetch(
            f"{self._api_base}/posts?slug={slug}&_fields=id", headers=self._headers()
        )
        if not response.is_success:
            raise WordPressError(
                f"Post lookup failed: {response.status_code} - {_error_message(response)}",
                response.status_code,
            )
        posts = response.json()
        if isinstance(posts, list) and posts:
            return int(posts[0]["id"])
        return None

    async def create_or_update_post(
        self,
        title: str,
        slug: str | None,
        content: str,
        status: str,
        meta: dict[str, Any],
        post_id: int | None = None,
    ) -> PublishedPost:
        """Create a post, or update post_id when given. WordPress uses POST for both.

        A None slug leaves the existing slug untouched.
        """
        target = f"{self._api_base}/posts"
        if post_id is not None:
            target = f"{target}/{post_id}"
        payload: dict[str, Any] = {
            "title": title,
            "content": content,
            "status": status,
            "meta": meta,
        }
        if slug is not None:
            payload["slug"] = slug

        response = await self._fetcher.fetch(
            target,
            method="POST",
            headers=self._headers({"Content-Type": "application/json"}),
            content=json.dumps(payload),
        )
        if not response.is_success:
            raise WordPressError(
                f"WordPress publish failed: {response.status_code} - {_error_message(response)}",
                response.status_code,
            )
        data = response.json()
        logger.info(
            "WordPress post saved",
            extra={"post_id": data.get("id"), "slug": slug, "status": status},
        )
        return PublishedPost(id=int(data["id"]), link=data.get("link", ""))

    async def upload_media(
        self, data: bytes, mime_type: str, filename: str, alt_text: str = ""
    ) -> UploadedMedia:
        """Upload an image to the media library."""
        response = await self._fetcher.fetch(
            f"{self._api_base}/media",
            method="POST",
            headers=self._headers(
                {
                    "Content-Type": mime_type,
                    "Content-Disposition": f'attachment; filename="{filename}"',
                }
            ),
            content=data,
        )
        if not response.is_success:
            raise WordPressError(
                f"WordPress upload failed: {response.status_code} - {_error_message(response)}",
                response.status_code,
            )
        media = response.json()
        details = media.get("media_details") or {}

        if alt_text:
            # Alt text cannot be set in the upload request itself
            await self._fetcher.fetch(
                f"{self._api_base}/media/{media['id']}",
                method="POST",
                headers=self._headers({"Content-Type": "application/json"}),
                content=json.dumps({"alt_text": alt_text}),
            )

        return UploadedMedia(
            id=int(media["id"]),
            source_url=media.get("source_url", ""),
            width=details.get("width"),
            height=details.get("height"),
        )
