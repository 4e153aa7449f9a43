"""Pipeline orchestrator: turns content items into finished articles.

Each item moves through an explicit stage machine. Article items
(pillar, cluster, standard):

    IDLE -> RESEARCH -> OUTLINE -> SECTIONS -> FAQ -> REFERENCES
         -> IMAGES -> FINALIZE -> DONE

Link-optimizer items:

    IDLE -> FETCH_PAGE -> OPTIMIZE_LINKS -> FINALIZE -> DONE

Any working stage may go to ERROR, or back to IDLE when the user stops the
item. Every transition publishes a status string through the ItemsStore.

Items are processed one at a time. A failure aborts only the current item:
- ContentTooShortError keeps the short article attached for review
- PipelineStoppedError returns the item to idle with "Stopped by user"
- anything else marks the item as errored with a truncated message

ERROR LOGGING REQUIREMENTS:
- Every stage transition is logged with item id, from and to stage
- Item failures are logged with stack trace and the stage they failed in
- Quality shortfalls (word count, links, videos) are logged as warnings
- Slow items (>5 minutes) are logged at WARNING
"""

import re
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum

from article_pipeline.core.batch import BatchProgress
from article_pipeline.core.cache import ResponseCache
from article_pipeline.core.config import Settings, get_settings
from article_pipeline.core.logging import get_logger, pipeline_logger
from article_pipeline.integrations.fetcher import ResilientFetcher
from article_pipeline.schemas.content import (
    ArticlePlan,
    ContentItem,
    ContentType,
    FaqEntry,
    GeneratedContent,
    ItemStatus,
    SiteInfo,
    SitemapPage,
    VideoResult,
)
from article_pipeline.services.ai_gateway import ContentAI
from article_pipeline.services.content_quality import (
    ContentTooShortError,
    calculate_flesch_readability,
    check_human_writing_score,
    enforce_word_count,
    validate_keyword_placement,
    word_targets,
)
from article_pipeline.services.images import ImageService, strip_image_placeholders
from article_pipeline.services.items_store import ItemsStore
from article_pipeline.services.keyword_research import KeywordResearchService, ResearchResult
from article_pipeline.services.link_integrity import finalize_internal_links
from article_pipeline.services.normalization import (
    ensure_image_placeholders,
    metrics_from_keywords,
    normalize_article_plan,
    normalize_generated_content,
)
from article_pipeline.services.references import ReferenceService
from article_pipeline.services.structured_data import generate_full_schema, generate_schema_markup
from article_pipeline.services.video_embeds import (
    embed_iframe,
    enforce_unique_video_embeds,
    get_unique_youtube_videos,
)
from article_pipeline.utils.html import (
    extract_main_content_html,
    extract_meta_description,
    extract_title,
    strip_tags,
)
from article_pipeline.utils.text_repair import sanitize_html_response
from article_pipeline.utils.url import extract_slug_from_url, slugify

logger = get_logger(__name__)

# Threshold for logging slow items (in milliseconds)
SLOW_OPERATION_THRESHOLD_MS = 300_000

MAX_ERROR_TEXT_LENGTH = 100
REFERENCE_SUMMARY_LENGTH = 2000
SHORT_CONTENT_META_DESCRIPTION = "Generated content was too short to meet quality standards."
STOPPED_STATUS_TEXT = "Stopped by user"

_WRAPPING_PARAGRAPH = re.compile(r"^\s*<p>|</p>\s*$")


class PipelineStage(str, Enum):
    """Stages of the per-item state machine."""

    IDLE = "idle"
    RESEARCH = "research"
    OUTLINE = "outline"
    SECTIONS = "sections"
    FAQ = "faq"
    REFERENCES = "references"
    IMAGES = "images"
    FINALIZE = "finalize"
    DONE = "done"
    ERROR = "error"
    FETCH_PAGE = "fetch_page"
    OPTIMIZE_LINKS = "optimize_links"


TERMINAL_STAGES = frozenset({PipelineStage.DONE, PipelineStage.ERROR})


def _linear(*stages: PipelineStage) -> dict[PipelineStage, frozenset[PipelineStage]]:
    """Build a transition table for a linear sequence of stages.

    Every working stage may additionally fail (ERROR) or stop (IDLE).
    """
    table: dict[PipelineStage, frozenset[PipelineStage]] = {}
    for current, following in zip(stages, stages[1:]):
        allowed = {following, PipelineStage.ERROR}
        if current is not PipelineStage.IDLE:
            allowed.add(PipelineStage.IDLE)
        table[current] = frozenset(allowed)
    return table


ARTICLE_TRANSITIONS = _linear(
    PipelineStage.IDLE,
    PipelineStage.RESEARCH,
    PipelineStage.OUTLINE,
    PipelineStage.SECTIONS,
    PipelineStage.FAQ,
    PipelineStage.REFERENCES,
    PipelineStage.IMAGES,
    PipelineStage.FINALIZE,
    PipelineStage.DONE,
)

LINK_OPTIMIZER_TRANSITIONS = _linear(
    PipelineStage.IDLE,
    PipelineStage.FETCH_PAGE,
    PipelineStage.OPTIMIZE_LINKS,
    PipelineStage.FINALIZE,
    PipelineStage.DONE,
)

TRANSITIONS: dict[ContentType, dict[PipelineStage, frozenset[PipelineStage]]] = {
    ContentType.PILLAR: ARTICLE_TRANSITIONS,
    ContentType.CLUSTER: ARTICLE_TRANSITIONS,
    ContentType.STANDARD: ARTICLE_TRANSITIONS,
    ContentType.LINK_OPTIMIZER: LINK_OPTIMIZER_TRANSITIONS,
}


class InvalidTransitionError(Exception):
    """Raised when a stage change is not in the item's transition table."""

    def __init__(self, item_id: str, from_stage: PipelineStage, to_stage: PipelineStage) -> None:
        super().__init__(f"Invalid stage transition for {item_id}: {from_stage.value} -> {to_stage.value}")
        self.item_id = item_id
        self.from_stage = from_stage
        self.to_stage = to_stage


class PipelineStoppedError(Exception):
    """Raised at a checkpoint when the user has stopped the item."""


@dataclass
class PipelineSession:
    """State shared by every item in one orchestration session."""

    cache: ResponseCache = field(default_factory=ResponseCache)
    used_video_ids: set[str] = field(default_factory=set)
    pages: list[SitemapPage] = field(default_factory=list)
    site_info: SiteInfo = field(default_factory=SiteInfo)
    site_url: str = ""
    geo_location: str | None = None


@dataclass
class PipelineRunResult:
    """Outcome of one run() call."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    stopped: int = 0
    skipped: int = 0
    duration_ms: float = 0.0


@dataclass
class _ItemRun:
    """Stage tracking for the item currently being processed."""

    item: ContentItem
    stage: PipelineStage = PipelineStage.IDLE
    started_at: float = field(default_factory=time.monotonic)

    @property
    def transitions(self) -> dict[PipelineStage, frozenset[PipelineStage]]:
        return TRANSITIONS[ContentType(self.item.type)]


def error_status_text(error: Exception) -> str:
    return f"Error: {str(error)[:MAX_ERROR_TEXT_LENGTH]}..."


def short_content_status_text(word_count: int) -> str:
    return f"⚠️ Content too short ({word_count} words). Review required."


def render_key_takeaways(takeaways: list[str]) -> str:
    items = "\n".join(f"<li>{t}</li>" for t in takeaways)
    return f"<h3>Key Takeaways</h3>\n<ul>\n{items}\n</ul>"


def render_faq_entry(entry: FaqEntry) -> str:
    return f"<h3>{entry.question}</h3>\n<p>{entry.answer}</p>"


def clean_faq_answer(html: str) -> str:
    """Drop the paragraph wrapper the provider puts around an answer."""
    return _WRAPPING_PARAGRAPH.sub("", sanitize_html_response(html)).strip()


class PipelineOrchestrator:
    """Runs content items through research, writing, quality gates and finalization.

    Args:
        store: Items store; the only place item state is mutated.
        session: Session-scoped cache, video set, site pages and site info.
        ai: Completion gateway.
        research: Keyword and SERP research service.
        references: Reference discovery service.
        images: Image generation and upload service.
        fetcher: Fetcher for link-optimizer pages.
        settings: Pipeline thresholds.
    """

    def __init__(
        self,
        store: ItemsStore,
        session: PipelineSession,
        ai: ContentAI,
        research: KeywordResearchService,
        references: ReferenceService,
        images: ImageService,
        fetcher: ResilientFetcher | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._session = session
        self._ai = ai
        self._research = research
        self._references = references
        self._images = images
        self._fetcher = fetcher
        self._settings = settings or get_settings()
        self._stopped_ids: set[str] = set()
        self._stop_all = False
        self._running = False

    @property
    def session(self) -> PipelineSession:
        return self._session

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def utm_params(self) -> dict[str, str]:
        return {
            "utm_source": self._settings.utm_source,
            "utm_medium": self._settings.utm_medium,
            "utm_campaign": self._settings.utm_campaign,
        }

    # =========================================================================
    # CANCELLATION
    # =========================================================================

    def stop(self, item_id: str | None = None) -> None:
        """Request a cooperative stop for one item, or for every item."""
        if item_id is None:
            self._stop_all = True
            logger.info("Stop requested for all items")
        else:
            self._stopped_ids.add(item_id)
            logger.info("Stop requested", extra={"item_id": item_id})

    def is_stopped(self, item_id: str) -> bool:
        return self._stop_all or item_id in self._stopped_ids

    def _checkpoint(self, run: _ItemRun) -> None:
        if self.is_stopped(run.item.id):
            raise PipelineStoppedError(STOPPED_STATUS_TEXT)

    # =========================================================================
    # STAGE MACHINE
    # =========================================================================

    def _advance(self, run: _ItemRun, to_stage: PipelineStage, status_text: str) -> None:
        """Move run to to_stage and publish status_text."""
        allowed = run.transitions.get(run.stage, frozenset())
        if to_stage not in allowed:
            raise InvalidTransitionError(run.item.id, run.stage, to_stage)
        pipeline_logger.stage_transition(run.item.id, run.stage.value, to_stage.value, status_text)
        run.stage = to_stage
        self._store.update_status(run.item.id, ItemStatus.GENERATING, status_text)

    def _update_progress(self, run: _ItemRun, status_text: str) -> None:
        """Publish a status within the current stage."""
        self._store.update_status(run.item.id, ItemStatus.GENERATING, status_text)

    # =========================================================================
    # RUN LOOP
    # =========================================================================

    async def run(
        self,
        item_ids: Iterable[str] | None = None,
        on_progress: Callable[[BatchProgress], None] | None = None,
    ) -> PipelineRunResult:
        """Process items sequentially; all items in the store when item_ids is None.

        Stop flags are cleared when a run starts.
        """
        ids = list(item_ids) if item_ids is not None else [i.id for i in self._store.all()]
        self._stopped_ids.clear()
        self._stop_all = False
        self._running = True
        result = PipelineRunResult(total=len(ids))
        completed = 0
        start_time = time.monotonic()

        logger.info("Pipeline run started", extra={"total": result.total})
        try:
            for item_id in ids:
                item = self._store.get(item_id)
                if self.is_stopped(item_id):
                    result.skipped += 1
                    completed += 1
                    continue
                try:
                    outcome = await self.process_item(item)
                    if outcome is ItemStatus.DONE:
                        result.succeeded += 1
                    elif outcome is ItemStatus.IDLE:
                        result.stopped += 1
                    else:
                        result.failed += 1
                finally:
                    completed += 1
                    if on_progress is not None:
                        on_progress(BatchProgress(completed=completed, total=result.total))
        finally:
            self._running = False
            result.duration_ms = (time.monotonic() - start_time) * 1000

        logger.info(
            "Pipeline run finished",
            extra={
                "total": result.total,
                "succeeded": result.succeeded,
                "failed": result.failed,
                "stopped": result.stopped,
                "skipped": result.skipped,
                "duration_ms": round(result.duration_ms, 2),
            },
        )
        return result

    async def process_item(self, item: ContentItem) -> ItemStatus:
        """Run one item to a terminal or stopped state and return its final status."""
        run = _ItemRun(item=item)
        self._store.update_status(item.id, ItemStatus.GENERATING, "Initializing...")
        try:
            if ContentType(item.type) == ContentType.LINK_OPTIMIZER:
                content = await self._optimize_links(run)
            else:
                content = await self._generate_article(run)
        except PipelineStoppedError:
            pipeline_logger.item_stopped(item.id, run.stage.value)
            run.stage = PipelineStage.IDLE
            self._store.update_status(item.id, ItemStatus.IDLE, STOPPED_STATUS_TEXT)
            return ItemStatus.IDLE
        except ContentTooShortError as e:
            pipeline_logger.item_failed(item.id, e, run.stage.value)
            run.stage = PipelineStage.ERROR
            self._store.attach_content(item.id, self._review_content(item, e))
            self._store.update_status(
                item.id, ItemStatus.ERROR, short_content_status_text(e.word_count)
            )
            return ItemStatus.ERROR
        except Exception as e:
            pipeline_logger.item_failed(item.id, e, run.stage.value)
            run.stage = PipelineStage.ERROR
            self._store.update_status(item.id, ItemStatus.ERROR, error_status_text(e))
            return ItemStatus.ERROR

        self._advance(run, PipelineStage.DONE, "Completed")
        self._store.set_content(item.id, content)
        duration_ms = (time.monotonic() - run.started_at) * 1000
        pipeline_logger.item_completed(item.id, content.word_count, duration_ms)
        if duration_ms > SLOW_OPERATION_THRESHOLD_MS:
            logger.warning(
                "Slow pipeline item",
                extra={
                    "item_id": item.id,
                    "duration_ms": round(duration_ms, 2),
                    "threshold_ms": SLOW_OPERATION_THRESHOLD_MS,
                },
            )
        return ItemStatus.DONE

    def _review_content(self, item: ContentItem, error: ContentTooShortError) -> GeneratedContent:
        """Short article kept on the item so a person can review it."""
        return GeneratedContent(
            title=item.title,
            slug=slugify(item.title),
            meta_description=SHORT_CONTENT_META_DESCRIPTION,
            primary_keyword=item.title,
            content=error.content,
            word_count=error.word_count,
        )

    # =========================================================================
    # ARTICLE GENERATION
    # =========================================================================

    async def _generate_article(self, run: _ItemRun) -> GeneratedContent:
        item = run.item

        self._advance(run, PipelineStage.RESEARCH, "Stage 1/7: Researching keywords and SERP data...")
        research = await self._research.research(item.title)
        self._checkpoint(run)

        self._advance(run, PipelineStage.OUTLINE, "Stage 2/7: Generating article outline...")
        plan = await self._build_plan(item, research)
        videos = self._select_videos(research.serp_data.videos)
        self._checkpoint(run)

        parts = [plan.introduction, render_key_takeaways(plan.key_takeaways)]
        await self._write_sections(run, plan, research, videos, parts)
        parts.append(plan.conclusion)
        faq = await self._answer_faqs(run, plan, parts)
        self._checkpoint(run)

        self._advance(run, PipelineStage.REFERENCES, "Stage 5/7: Researching credible sources...")
        summary = strip_tags(" ".join(parts))[:REFERENCE_SUMMARY_LENGTH]
        outcome = await self._references.build_references_section(
            plan.title, plan.primary_keyword, summary
        )
        parts.append(outcome.html)
        self._checkpoint(run)

        content = ensure_image_placeholders("\n\n".join(parts), plan.image_details)
        content = await self._process_images(run, plan, content)

        self._advance(run, PipelineStage.FINALIZE, "Stage 7/7: Finalizing content...")
        return self._finalize_article(item, plan, research, videos, faq, content)

    async def _build_plan(self, item: ContentItem, research: ResearchResult) -> ArticlePlan:
        keywords = [m.keyword for m in research.keyword_metrics] or research.semantic_keywords
        data = await self._ai.call_json(
            "content_meta_and_outline",
            item.title,
            keywords,
            research.serp_data.organic,
            research.serp_data.people_also_ask,
            self._session.pages,
            item.crawled_content,
            item.analysis,
            grounding=self._settings.use_grounding,
        )
        plan = normalize_article_plan(data, item.title)
        plan.introduction = sanitize_html_response(plan.introduction)
        plan.conclusion = sanitize_html_response(plan.conclusion)
        plan.faq_section = plan.faq_section[: self._settings.faq_count]
        if not plan.semantic_keywords:
            plan.semantic_keywords = research.semantic_keywords
        plan.strategy.keyword_strategy = (
            f"Strategic focus on {len(research.priority_keywords)} high-value keywords "
            "with demand >70 and competition <30"
        )
        return plan

    def _select_videos(self, candidates: list[VideoResult]) -> list[VideoResult]:
        """Pick embed videos not used elsewhere in this session."""
        videos = get_unique_youtube_videos(
            candidates,
            count=self._settings.youtube_embed_count,
            exclude=self._session.used_video_ids,
        )
        self._session.used_video_ids.update(v.video_id for v in videos if v.video_id)
        return videos

    async def _write_sections(
        self,
        run: _ItemRun,
        plan: ArticlePlan,
        research: ResearchResult,
        videos: list[VideoResult],
        parts: list[str],
    ) -> None:
        self._advance(run, PipelineStage.SECTIONS, "Stage 3/7: Writing sections...")
        sections = plan.outline
        keywords = [m.keyword for m in research.keyword_metrics] or plan.semantic_keywords
        midpoint = len(sections) // 2
        for i, heading in enumerate(sections):
            self._checkpoint(run)
            self._update_progress(run, f"Stage 3/7: Writing section {i + 1} of {len(sections)}...")
            section_html = await self._ai.call_html(
                "write_article_section",
                run.item.title,
                plan.title,
                heading,
                self._session.pages,
                keywords,
                research.priority_keywords,
            )
            parts.append(f"<h2>{heading}</h2>{section_html}")
            if i == 1 and len(videos) > 0:
                parts.append(embed_iframe(videos[0]))
            if i == midpoint and len(videos) > 1:
                parts.append(embed_iframe(videos[1]))

    async def _answer_faqs(
        self, run: _ItemRun, plan: ArticlePlan, parts: list[str]
    ) -> list[FaqEntry]:
        self._advance(run, PipelineStage.FAQ, "Stage 4/7: Answering FAQs...")
        answered: list[FaqEntry] = []
        parts.append('<div class="faq-section"><h2>Frequently Asked Questions</h2>')
        for i, entry in enumerate(plan.faq_section):
            self._checkpoint(run)
            self._update_progress(
                run, f"Stage 4/7: Answering FAQ {i + 1} of {len(plan.faq_section)}..."
            )
            answer_html = await self._ai.call_html("write_faq_answer", entry.question)
            faq = FaqEntry(question=entry.question, answer=clean_faq_answer(answer_html))
            parts.append(render_faq_entry(faq))
            answered.append(faq)
        parts.append("</div>")
        return answered

    async def _process_images(self, run: _ItemRun, plan: ArticlePlan, content: str) -> str:
        details = plan.image_details
        self._advance(run, PipelineStage.IMAGES, f"Stage 6/7: Processing {len(details)} images...")
        keyword_slug = re.sub(r"\s+", "-", plan.primary_keyword.strip().lower())
        for i, detail in enumerate(details, start=1):
            self._checkpoint(run)
            self._update_progress(run, f"Stage 6/7: Processing image {i} of {len(details)}...")
            content = await self._images.process_image(content, i, detail, keyword_slug)
        return content

    def _finalize_article(
        self,
        item: ContentItem,
        plan: ArticlePlan,
        research: ResearchResult,
        videos: list[VideoResult],
        faq: list[FaqEntry],
        content: str,
    ) -> GeneratedContent:
        pages = self._session.pages
        content = finalize_internal_links(
            content, pages, item.title, self._settings.min_internal_links, self.utm_params
        )
        if len(videos) > 1:
            content = enforce_unique_video_embeds(content, videos)
        content = strip_image_placeholders(content)

        min_words, max_words = word_targets(item.type)
        word_count = enforce_word_count(content, min_words, max_words)
        human_score = check_human_writing_score(content)
        readability = calculate_flesch_readability(strip_tags(content))

        metrics = research.keyword_metrics or metrics_from_keywords(plan.semantic_keywords)
        generated = normalize_generated_content(
            {
                **plan.model_dump(exclude={"faq_section", "introduction", "conclusion"}),
                "slug": plan.slug or slugify(item.title),
                "content": content,
                "semantic_keyword_metrics": metrics,
                "image_details": plan.image_details,
                "strategy": plan.strategy,
                "social_media_copy": plan.social_media_copy,
                "faq": faq,
                "serp_data": research.serp_data.organic,
                "word_count": word_count,
                "readability_score": readability,
                "human_score": human_score,
            },
            item.title,
        )
        generated.json_ld_schema = generate_full_schema(
            generated,
            self._session.site_url,
            self._session.site_info,
            faq,
            self._session.geo_location,
        )
        generated.content += generate_schema_markup(generated.json_ld_schema)
        validate_keyword_placement(generated.content, generated.semantic_keyword_metrics)
        return generated

    # =========================================================================
    # LINK OPTIMIZER
    # =========================================================================

    async def _optimize_links(self, run: _ItemRun) -> GeneratedContent:
        item = run.item
        self._advance(run, PipelineStage.FETCH_PAGE, "Stage 1/2: Fetching original content...")
        if not item.original_url:
            raise ValueError("Original URL is missing for link optimization.")
        if self._fetcher is None:
            raise ValueError("No fetcher configured for link optimization.")

        response = await self._fetcher.fetch(item.original_url)
        page_html = response.text
        main_html = extract_main_content_html(page_html)
        if not main_html:
            raise ValueError("Could not extract main content from the page to optimize.")
        self._checkpoint(run)

        self._advance(run, PipelineStage.OPTIMIZE_LINKS, "Stage 2/2: Optimizing internal links...")
        optimized = await self._ai.call_html(
            "internal_link_optimizer", main_html, self._session.pages
        )
        self._checkpoint(run)

        self._advance(run, PipelineStage.FINALIZE, "Finalizing content...")
        title = extract_title(page_html) or item.title
        content = finalize_internal_links(
            optimized,
            self._session.pages,
            title,
            self._settings.min_internal_links,
            self.utm_params,
        )
        generated = normalize_generated_content(
            {
                "title": title,
                "slug": extract_slug_from_url(item.original_url),
                "meta_description": extract_meta_description(page_html)
                or f"Updated content for {title}",
                "content": content,
                "primary_keyword": title,
                "word_count": len(strip_tags(content).split()),
            },
            item.title,
            default_images=False,
        )
        generated.json_ld_schema = generate_full_schema(
            generated,
            self._session.site_url,
            self._session.site_info,
            [],
            self._session.geo_location,
        )
        generated.content += generate_schema_markup(generated.json_ld_schema)
        return generated
