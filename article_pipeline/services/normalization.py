"""Normalization of provider JSON into strict schemas.

Completion providers drift from the requested shape: fields go missing,
lists arrive as strings, FAQ entries arrive as bare questions. Every
provider response passes through here before the pipeline reads it, so
downstream code can rely on every field being present.
"""

from typing import Any

from article_pipeline.core.logging import get_logger
from article_pipeline.schemas.content import (
    AnalysisSuggestions,
    ArticlePlan,
    ContentStrategy,
    FaqEntry,
    GeneratedContent,
    ImageDetail,
    KeywordMetric,
    PageAnalysis,
    SocialMediaCopy,
)
from article_pipeline.utils.url import slugify

logger = get_logger(__name__)

IMAGE_PLACEHOLDER = "[IMAGE_{index}_PLACEHOLDER]"
DEFAULT_KEYWORD_STRATEGY = "Default keyword strategy applied"

# Paragraph index after which each default image placeholder is inserted
_PLACEHOLDER_PARAGRAPH_SLOTS = {1: 2, 2: 5}


def image_placeholder(index: int) -> str:
    """Placeholder token for the 1-based image index."""
    return IMAGE_PLACEHOLDER.format(index=index)


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def as_str_list(value: Any) -> list[str]:
    """Coerce a provider value into a list of non-empty strings."""
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    items: list[str] = []
    for entry in value:
        if isinstance(entry, str):
            text = entry
        elif isinstance(entry, dict):
            text = str(
                entry.get("heading") or entry.get("title") or entry.get("text") or entry.get("keyword") or ""
            )
        else:
            text = str(entry) if entry is not None else ""
        if text.strip():
            items.append(text.strip())
    return items


def _faq_entries(value: Any) -> list[FaqEntry]:
    entries: list[FaqEntry] = []
    if not isinstance(value, list):
        return entries
    for entry in value:
        if isinstance(entry, str) and entry.strip():
            entries.append(FaqEntry(question=entry.strip()))
        elif isinstance(entry, dict) and entry.get("question"):
            entries.append(FaqEntry(question=str(entry["question"]), answer=str(entry.get("answer") or "")))
    return entries


def default_image_details(title: str, slug: str) -> list[ImageDetail]:
    """Two generic image plans used when the provider supplies none."""
    return [
        ImageDetail(
            prompt=(
                f'A high-quality, photorealistic image representing the concept of: "{title}". '
                "Cinematic, professional blog post header image, 16:9 aspect ratio."
            ),
            alt_text=f'A conceptual image for "{title}"',
            title=f"{slug}-feature-image",
            placeholder=image_placeholder(1),
        ),
        ImageDetail(
            prompt=(
                f'An infographic or diagram illustrating a key point from the article: "{title}". '
                "Clean, modern design with clear labels. 16:9 aspect ratio."
            ),
            alt_text=f'Infographic explaining a key concept from "{title}"',
            title=f"{slug}-infographic",
            placeholder=image_placeholder(2),
        ),
    ]


def _image_details(value: Any, title: str, slug: str) -> list[ImageDetail]:
    details: list[ImageDetail] = []
    if isinstance(value, list):
        for index, entry in enumerate(value, start=1):
            if not isinstance(entry, dict):
                continue
            detail = ImageDetail.model_validate(entry)
            if not detail.prompt:
                continue
            if not detail.placeholder:
                detail.placeholder = image_placeholder(index)
            if not detail.alt_text:
                detail.alt_text = title
            if not detail.title:
                detail.title = f"{slug}-image-{index}"
            details.append(detail)
    if not details:
        logger.warning(
            "Image details missing or invalid, using defaults", extra={"title": title}
        )
        return default_image_details(title, slug)
    return details


def ensure_image_placeholders(content: str, image_details: list[ImageDetail]) -> str:
    """Insert any image placeholder missing from content.

    The first goes after the second paragraph and the second after the fifth
    block, counting the first placeholder. When the content is shorter the
    placeholder is appended.
    """
    if not content:
        return content
    for index, detail in enumerate(image_details, start=1):
        placeholder = detail.placeholder or image_placeholder(index)
        if placeholder in content:
            continue
        paragraphs = content.split("</p>")
        slot = _PLACEHOLDER_PARAGRAPH_SLOTS.get(index)
        if slot is not None and len(paragraphs) > slot:
            paragraphs.insert(slot, f"<p>{placeholder}")
            content = "</p>".join(paragraphs)
        else:
            content += f"<p>{placeholder}</p>"
    return content


def _strategy(value: Any) -> ContentStrategy:
    data = {k: v for k, v in _as_dict(value).items() if isinstance(v, str) and v.strip()}
    strategy = ContentStrategy.model_validate(data)
    if not strategy.keyword_strategy:
        strategy.keyword_strategy = DEFAULT_KEYWORD_STRATEGY
    return strategy


def _social_copy(value: Any) -> SocialMediaCopy:
    data = {k: v for k, v in _as_dict(value).items() if isinstance(v, str)}
    return SocialMediaCopy.model_validate(data)


def normalize_article_plan(data: Any, item_title: str) -> ArticlePlan:
    """Build an ArticlePlan from the planning response, filling every default."""
    raw = _as_dict(data)
    title = str(raw.get("title") or item_title)
    slug = str(raw.get("slug") or "") or slugify(title)
    faq = _faq_entries(raw.get("faqSection") or raw.get("faq_section") or raw.get("faq"))

    return ArticlePlan(
        title=title,
        slug=slug,
        meta_description=str(raw.get("metaDescription") or raw.get("meta_description") or ""),
        primary_keyword=str(raw.get("primaryKeyword") or raw.get("primary_keyword") or item_title),
        semantic_keywords=as_str_list(raw.get("semanticKeywords") or raw.get("semantic_keywords")),
        strategy=_strategy(raw.get("strategy")),
        key_takeaways=as_str_list(raw.get("keyTakeaways") or raw.get("key_takeaways")),
        outline=as_str_list(raw.get("outline")),
        introduction=str(raw.get("introduction") or ""),
        conclusion=str(raw.get("conclusion") or ""),
        faq_section=faq,
        image_details=_image_details(
            raw.get("imageDetails") or raw.get("image_details"), title, slug
        ),
        social_media_copy=_social_copy(raw.get("socialMediaCopy") or raw.get("social_media_copy")),
    )


def metrics_from_keywords(keywords: list[str]) -> list[KeywordMetric]:
    """Neutral 50/50/50 informational metrics for bare keywords."""
    return [KeywordMetric(keyword=k) for k in keywords if k]


def normalize_generated_content(
    data: dict[str, Any], item_title: str, default_images: bool = True
) -> GeneratedContent:
    """Fill defaults on an assembled article so every field is present.

    Missing image details are replaced by defaults and their placeholders are
    inserted into the content, unless default_images is False.
    """
    values = dict(data)
    title = str(values.get("title") or item_title)
    slug = str(values.get("slug") or "") or slugify(item_title)
    content = values.get("content")
    if not isinstance(content, str):
        logger.warning("Content field missing, defaulting to empty", extra={"title": item_title})
        content = ""

    images = values.get("image_details")
    if images:
        image_details = [
            d if isinstance(d, ImageDetail) else ImageDetail.model_validate(d) for d in images
        ]
    elif default_images:
        image_details = default_image_details(title, slug)
        content = ensure_image_placeholders(content, image_details)
    else:
        image_details = []

    semantic = as_str_list(values.get("semantic_keywords"))
    metrics = values.get("semantic_keyword_metrics")
    if not isinstance(metrics, list):
        metrics = metrics_from_keywords(semantic)

    strategy = values.get("strategy")
    if not isinstance(strategy, ContentStrategy):
        strategy = _strategy(strategy)

    social = values.get("social_media_copy")
    if not isinstance(social, SocialMediaCopy):
        social = _social_copy(social)

    values.update(
        title=title,
        slug=slug,
        content=content,
        primary_keyword=values.get("primary_keyword") or item_title,
        semantic_keywords=semantic,
        semantic_keyword_metrics=metrics,
        image_details=image_details,
        strategy=strategy,
        social_media_copy=social,
        json_ld_schema=values.get("json_ld_schema") or {},
    )
    return GeneratedContent.model_validate(values)


def normalize_page_analysis(data: Any) -> PageAnalysis:
    """Build a PageAnalysis from the rewrite-analysis response.

    Accepts "freshness" or "freshnessUpdates", and "eeat" as a string or list.
    """
    raw = _as_dict(data)
    suggestions = _as_dict(raw.get("suggestions"))
    freshness = suggestions.get("freshnessUpdates") or suggestions.get("freshness") or ""
    return PageAnalysis(
        critique=str(raw.get("critique") or ""),
        suggestions=AnalysisSuggestions(
            title=str(suggestions.get("title") or ""),
            content_gaps=as_str_list(suggestions.get("contentGaps") or suggestions.get("content_gaps")),
            freshness_updates=str(freshness),
            eeat_improvements=as_str_list(
                suggestions.get("eeatImprovements") or suggestions.get("eeat")
            ),
        ),
    )
