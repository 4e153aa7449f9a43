"""YouTube video selection and duplicate-embed repair."""

import re
from collections.abc import Iterable, Mapping
from typing import Any

from article_pipeline.core.logging import get_logger, pipeline_logger
from article_pipeline.schemas.content import VideoResult

logger = get_logger(__name__)

_EMBED_PATH = re.compile(r"embed/([^?&\"/]+)")
_WATCH_PARAM = re.compile(r"[?&]v=([^&]+)")
_SHORT_LINK = re.compile(r"youtu\.be/([^?&]+)")
_YOUTUBE_IFRAME = re.compile(
    r'<iframe[^>]+src="https://www\.youtube\.com/embed/([^"?&]+)[^>]*></iframe>'
)

EMBED_URL = "https://www.youtube.com/embed/{video_id}"


def get_video_id(video: Mapping[str, Any] | VideoResult) -> str | None:
    """Extract a video id from the shapes search providers return.

    Checks an explicit videoId, then embed URLs, watch URLs (v=) and
    youtu.be short links.
    """
    if isinstance(video, VideoResult):
        data: Mapping[str, Any] = video.model_dump(by_alias=True)
    else:
        data = video

    if data.get("videoId") or data.get("video_id"):
        return str(data.get("videoId") or data.get("video_id"))
    candidates = (
        (data.get("embedUrl"), _EMBED_PATH),
        (data.get("url") or data.get("link"), _WATCH_PARAM),
        (data.get("url") or data.get("link"), _SHORT_LINK),
        (data.get("url") or data.get("link"), _EMBED_PATH),
    )
    for value, pattern in candidates:
        if isinstance(value, str):
            match = pattern.search(value)
            if match:
                return match.group(1)
    return None


def get_unique_youtube_videos(
    videos: Iterable[Mapping[str, Any] | VideoResult],
    count: int = 2,
    exclude: Iterable[str] = (),
) -> list[VideoResult]:
    """Return the first count videos with distinct ids not in exclude."""
    used = set(exclude)
    selected: list[VideoResult] = []
    for video in videos:
        if len(selected) >= count:
            break
        video_id = get_video_id(video)
        if not video_id:
            continue
        if video_id in used:
            logger.debug("Duplicate video skipped", extra={"video_id": video_id})
            continue
        used.add(video_id)
        if isinstance(video, VideoResult):
            title, link, channel = video.title, video.link, video.channel
        else:
            title = str(video.get("title") or "")
            link = str(video.get("link") or video.get("url") or "")
            channel = video.get("channel")
        selected.append(
            VideoResult(
                title=title,
                link=link or EMBED_URL.format(video_id=video_id),
                video_id=video_id,
                channel=channel,
            )
        )

    if len(selected) < count:
        pipeline_logger.quality_warning(
            "video_selection",
            f"Only {len(selected)} unique video(s) found, {count} wanted",
            found=len(selected),
            required=count,
        )
    return selected


def embed_iframe(video: VideoResult) -> str:
    """Responsive iframe markup for a YouTube video."""
    return (
        '<div class="video-container">'
        f'<iframe width="560" height="315" src="{EMBED_URL.format(video_id=video.video_id)}" '
        f'title="{video.title.replace(chr(34), "&quot;")}" frameborder="0" '
        'allow="accelerometer; autoplay; clipboard-write; encrypted-media; gyroscope; '
        'picture-in-picture" allowfullscreen></iframe></div>'
    )


def enforce_unique_video_embeds(content: str, videos: list[VideoResult]) -> str:
    """Replace the second embed when every embed shows the same video.

    Only applies when there are at least two embeds and two candidate
    videos; the second iframe is rewritten to the first candidate whose id
    differs from the duplicated one.
    """
    if not content or len(videos) < 2:
        return content

    matches = list(_YOUTUBE_IFRAME.finditer(content))
    if len(matches) < 2:
        return content

    duplicate_id = matches[0].group(1)
    if any(m.group(1) != duplicate_id for m in matches):
        return content

    alternate = next(
        (v.video_id for v in videos if v.video_id and v.video_id != duplicate_id), None
    )
    if alternate is None:
        logger.warning(
            "Duplicate video embeds detected but no alternate video available",
            extra={"video_id": duplicate_id},
        )
        return content

    second = matches[1]
    corrected = second.group(0).replace(duplicate_id, alternate)
    logger.info(
        "Replaced duplicate video embed",
        extra={"duplicate_id": duplicate_id, "replacement_id": alternate},
    )
    return content[: second.start()] + corrected + content[second.end() :]
