"""Image generation, WebP conversion and upload for the images stage.

Each planned image resolves its placeholder to exactly one of:
- an uploaded <figure> (generation and upload succeeded)
- an inline data-URI <figure> (upload failed or no CMS configured)
- an action-required box (every image provider failed)
- an HTML comment (unexpected error while processing)

Placeholders that survive the stage (for example after a stop) are stripped
during finalization.
"""

import asyncio
import base64
import html
import io
import re

from PIL import Image

from article_pipeline.core.config import get_settings
from article_pipeline.core.logging import get_logger
from article_pipeline.core.retry import RetryingInvoker
from article_pipeline.integrations.base import CmsPublisher, ImageGenerationProvider, UploadedMedia
from article_pipeline.schemas.content import ImageDetail
from article_pipeline.services.references import WARNING_ICON

logger = get_logger(__name__)

IMAGE_PLACEHOLDER_PATTERN = re.compile(r"\[IMAGE_\d+_PLACEHOLDER\]")
_DATA_URI = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)

MAX_IMAGE_DIMENSION = 2048
WEBP_QUALITY = 85
WEBP_MIME_TYPE = "image/webp"
DEFAULT_ASPECT_RATIO = "16:9"


class ImageConversionError(Exception):
    """Raised when generated image bytes cannot be decoded or converted."""


def decode_image_data(data: str) -> bytes:
    """Decode a data URI or bare base64 string into bytes."""
    match = _DATA_URI.match(data.strip())
    payload = match.group("data") if match else data.strip()
    try:
        return base64.b64decode(payload, validate=False)
    except ValueError as e:
        raise ImageConversionError(f"Invalid base64 image data: {e}") from e


def convert_to_webp(data: str | bytes) -> bytes:
    """Convert image data to WebP, capping each side at 2048 px.

    Raises:
        ImageConversionError: If the bytes are not a readable image.
    """
    raw = decode_image_data(data) if isinstance(data, str) else data
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
            img.thumbnail((MAX_IMAGE_DIMENSION, MAX_IMAGE_DIMENSION))
            output = io.BytesIO()
            img.save(output, format="WEBP", quality=WEBP_QUALITY)
            return output.getvalue()
    except (OSError, ValueError) as e:
        raise ImageConversionError(f"Failed to convert image to WebP: {e}") from e


def render_uploaded_figure(media: UploadedMedia, detail: ImageDetail) -> str:
    alt = html.escape(detail.alt_text, quote=True)
    size = ""
    if media.width and media.height:
        size = f' width="{media.width}" height="{media.height}"'
    return (
        '<figure class="wp-block-image size-large">'
        f'<img src="{media.source_url}" alt="{alt}" title="{html.escape(detail.title, quote=True)}"'
        f'{size} class="wp-image-{media.id}" loading="lazy" />'
        f"<figcaption>{html.escape(detail.alt_text, quote=False)}</figcaption></figure>"
    )


def render_inline_figure(data_uri: str, detail: ImageDetail) -> str:
    alt = html.escape(detail.alt_text, quote=True)
    return (
        '<figure class="wp-block-image size-large">'
        f'<img src="{data_uri}" alt="{alt}" title="{html.escape(detail.title, quote=True)}" loading="lazy" />'
        f"<figcaption>{html.escape(detail.alt_text, quote=False)}</figcaption></figure>"
    )


def render_image_action_required(detail: ImageDetail) -> str:
    return (
        '<div class="manual-action-required-box error-box">\n'
        f"<h3>{WARNING_ICON} Action Required: Add Image</h3>\n"
        "<p>The AI image generator failed for this placeholder. Please manually create and "
        "upload an image with the following details:</p>\n<ul>\n"
        f"<li><strong>Suggested Alt Text:</strong> {html.escape(detail.alt_text, quote=False)}</li>\n"
        f"<li><strong>Original Prompt:</strong> <em>{html.escape(detail.prompt, quote=False)}</em></li>\n"
        "</ul>\n</div>"
    )


def render_image_failure_comment(placeholder: str, error: Exception) -> str:
    message = str(error).replace("--", "- -")
    return f"<!-- Image generation failed for placeholder {placeholder}: {message} -->"


def strip_image_placeholders(content: str) -> str:
    """Remove any image placeholder token left in content."""
    return IMAGE_PLACEHOLDER_PATTERN.sub("", content)


class ImageService:
    """Generates images through a provider chain and uploads them to the CMS."""

    def __init__(
        self,
        providers: list[ImageGenerationProvider],
        publisher: CmsPublisher | None = None,
        invoker: RetryingInvoker | None = None,
        timeout: float | None = None,
    ) -> None:
        self._providers = providers
        self._publisher = publisher
        self._invoker = invoker or RetryingInvoker()
        self._timeout = timeout or get_settings().image_generation_timeout

    async def generate_image(self, prompt: str) -> str | None:
        """Return a PNG data URI from the first provider that succeeds, else None."""
        for provider in self._providers:
            try:
                images = await asyncio.wait_for(
                    self._invoker.invoke(
                        lambda p=provider: p.generate(prompt, count=1, aspect_ratio=DEFAULT_ASPECT_RATIO)
                    ),
                    timeout=self._timeout,
                )
            except TimeoutError:
                logger.warning(
                    "Image generation timed out",
                    extra={"provider": provider.name, "timeout_seconds": self._timeout},
                )
                continue
            except Exception as e:
                logger.warning(
                    "Image provider failed", extra={"provider": provider.name, "error": str(e)}
                )
                continue
            if images:
                logger.info("Image generated", extra={"provider": provider.name})
                return f"data:image/png;base64,{images[0]}"

        logger.error("All image generation providers failed or are unavailable")
        return None

    async def _upload(self, webp: bytes, filename: str, detail: ImageDetail) -> UploadedMedia | None:
        if self._publisher is None:
            return None
        try:
            return await self._publisher.upload_media(
                webp, WEBP_MIME_TYPE, filename, alt_text=detail.alt_text
            )
        except Exception as e:
            logger.warning(
                "Image upload failed, using inline fallback",
                extra={"filename": filename, "error": str(e)},
            )
            return None

    async def process_image(
        self, content: str, index: int, detail: ImageDetail, keyword_slug: str
    ) -> str:
        """Resolve the placeholder for one image and return the updated content.

        detail.generated_image_src is set to the uploaded URL or data URI.
        """
        placeholder = detail.placeholder or f"[IMAGE_{index}_PLACEHOLDER]"
        try:
            data_uri = await self.generate_image(detail.prompt)
            if data_uri is None:
                return content.replace(placeholder, render_image_action_required(detail), 1)

            detail.generated_image_src = data_uri
            webp = await asyncio.to_thread(convert_to_webp, data_uri)
            filename = f"{keyword_slug}-image-{index}.webp"
            media = await self._upload(webp, filename, detail)
            if media is not None:
                detail.generated_image_src = media.source_url
                figure = render_uploaded_figure(media, detail)
            else:
                inline_uri = f"data:{WEBP_MIME_TYPE};base64,{base64.b64encode(webp).decode()}"
                figure = render_inline_figure(inline_uri, detail)
            return content.replace(placeholder, figure, 1)
        except Exception as e:
            logger.error(
                "Image processing failed",
                extra={"placeholder": placeholder, "error": str(e)},
                exc_info=True,
            )
            return content.replace(placeholder, render_image_failure_comment(placeholder, e), 1)
