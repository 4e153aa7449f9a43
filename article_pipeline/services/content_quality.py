"""Quality gates applied to finished article HTML.

Only the word-count minimum is a hard gate. Readability, human-writing score
and keyword placement are advisory: they are logged and stored on the
generated content but never fail an item.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from article_pipeline.core.config import get_settings
from article_pipeline.core.logging import get_logger, pipeline_logger
from article_pipeline.schemas.content import ContentType, KeywordMetric
from article_pipeline.utils.html import strip_tags

logger = get_logger(__name__)

_WORD = re.compile(r"\b\w+\b")
_SENTENCE = re.compile(r"[^.!?]+[.!?]+")
_SENTENCE_END = re.compile(r"[.!?]+")
_SILENT_ENDING = re.compile(r"(?:[^laeiouy]es|ed|[^laeiouy]e)$")
_VOWEL_GROUP = re.compile(r"[aeiouy]{1,2}")

MAX_AVERAGE_SENTENCE_WORDS = 25
AI_PHRASE_PENALTY = 10
LONG_SENTENCE_PENALTY = 15
MAX_KEYWORD_DENSITY = 2.5
MIN_READABILITY_WORDS = 100

# Phrases that read as machine-written; each occurrence costs 10 points
AI_PHRASES = (
    "delve into", "in today's digital landscape", "revolutionize", "game-changer",
    "unlock", "leverage", "robust", "seamless", "cutting-edge", "elevate", "empower",
    "it's important to note", "it's worth mentioning", "needless to say",
    "in conclusion", "to summarize", "in summary", "holistic", "paradigm shift",
    "utilize", "commence", "endeavor", "facilitate", "implement", "demonstrate",
    "ascertain", "procure", "terminate", "disseminate", "expedite",
    "in order to", "due to the fact that", "for the purpose of", "with regard to",
    "in the event that", "at this point in time", "for all intents and purposes",
    "furthermore", "moreover", "additionally", "consequently", "nevertheless",
    "notwithstanding", "aforementioned", "heretofore", "whereby", "wherein",
    "landscape", "realm", "sphere", "domain", "ecosystem", "framework",
    "navigate", "embark", "journey", "transform", "transition",
    "plethora", "myriad", "multitude", "abundance", "copious",
    "crucial", "vital", "essential", "imperative", "paramount",
    "optimize", "maximize", "enhance", "augment", "amplify",
    "intricate", "nuanced", "sophisticated", "elaborate", "comprehensive",
    "comprehensive guide", "ultimate guide", "complete guide",
    "dive deep", "take a deep dive", "let's explore", "let's dive in",
)

# (minimum score, verdict, advice), highest band first
READABILITY_BANDS = (
    (90, "Very Easy", "Easily readable by an average 11-year-old student. Excellent."),
    (70, "Easy", "Easily understood by 13- to 15-year-old students. Great for most audiences."),
    (60, "Standard", "Easily understood by 13- to 15-year-old students. Good."),
    (50, "Fairly Difficult", "Can be understood by high school seniors. Consider simplifying."),
    (30, "Difficult", "Best understood by college graduates. Too complex for a general audience."),
    (0, "Very Confusing", "Best understood by university graduates. Very difficult to read."),
)


class ContentTooShortError(Exception):
    """Raised when finished content is below the minimum word count.

    The deficient content travels with the error so it can be attached to the
    item for manual review.
    """

    def __init__(self, message: str, content: str, word_count: int) -> None:
        super().__init__(message)
        self.content = content
        self.word_count = word_count


@dataclass
class ReadabilityVerdict:
    score: int
    verdict: str
    advice: str


@dataclass
class KeywordPlacementReport:
    """Semantic keyword usage in the finished text."""

    used_keywords: list[str] = field(default_factory=list)
    total_keywords: int = 0
    high_value_used: list[str] = field(default_factory=list)
    density: float = 0.0

    @property
    def density_too_high(self) -> bool:
        return self.density > MAX_KEYWORD_DENSITY

    def to_dict(self) -> dict[str, Any]:
        return {
            "used_keywords": self.used_keywords,
            "total_keywords": self.total_keywords,
            "high_value_used": self.high_value_used,
            "density": round(self.density, 2),
        }


# =============================================================================
# WORD COUNT
# =============================================================================


def count_words(html: str) -> int:
    """Count whitespace-separated words in HTML after stripping tags."""
    text = strip_tags(html)
    return len(text.split()) if text else 0


def word_targets(content_type: ContentType | str) -> tuple[int, int]:
    """Return (min_words, max_words) for a content kind."""
    settings = get_settings()
    if ContentType(content_type) == ContentType.PILLAR:
        return settings.target_min_words_pillar, settings.target_max_words_pillar
    return settings.target_min_words, settings.target_max_words


def enforce_word_count(html: str, min_words: int, max_words: int) -> int:
    """Return the word count of html, raising when it is below min_words.

    Exceeding max_words only logs a warning.

    Raises:
        ContentTooShortError: If the content is missing or too short.
    """
    if not isinstance(html, str) or not html:
        raise ContentTooShortError("Content is empty", "", 0)

    word_count = count_words(html)
    logger.info(
        "Word count measured",
        extra={"word_count": word_count, "min_words": min_words, "max_words": max_words},
    )

    if word_count < min_words:
        raise ContentTooShortError(
            f"Content is too short ({word_count} words). Target: {min_words}-{max_words}.",
            html,
            word_count,
        )
    if word_count > max_words:
        pipeline_logger.quality_warning(
            "word_count",
            f"Content is {word_count - max_words} words over target",
            word_count=word_count,
            max_words=max_words,
        )
    return word_count


# =============================================================================
# READABILITY
# =============================================================================


def count_syllables(word: str) -> int:
    """Approximate the syllable count of an English word."""
    if not word:
        return 0
    word = word.lower().strip()
    if len(word) <= 3:
        return 1
    word = _SILENT_ENDING.sub("", word)
    if word.startswith("y"):
        word = word[1:]
    return len(_VOWEL_GROUP.findall(word))


def calculate_flesch_readability(text: str) -> int:
    """Flesch reading-ease score clamped to 0-100.

    Returns 0 when the text has fewer than 100 words.
    """
    words = len(_WORD.findall(text))
    if words < MIN_READABILITY_WORDS:
        return 0
    sentences = len(_SENTENCE_END.findall(text)) or 1
    syllables = sum(count_syllables(w) for w in text.split())

    score = 206.835 - 1.015 * (words / sentences) - 84.6 * (syllables / words)
    return round(min(100, max(0, score)))


def get_readability_verdict(score: int) -> ReadabilityVerdict:
    if score == 0:
        return ReadabilityVerdict(0, "N/A", "Not enough content to calculate a score.")
    for threshold, verdict, advice in READABILITY_BANDS:
        if score >= threshold:
            return ReadabilityVerdict(score, verdict, advice)
    return ReadabilityVerdict(score, "Very Confusing", READABILITY_BANDS[-1][2])


# =============================================================================
# HUMAN WRITING SCORE
# =============================================================================


def check_human_writing_score(html: str) -> int:
    """Score 0-100 estimating how human the prose reads.

    Each occurrence of a stock AI phrase costs 10 points. An average sentence
    longer than 25 words costs 15 more.
    """
    if not isinstance(html, str) or not html:
        return 100

    text = strip_tags(html)
    lower = text.lower()
    penalty = 0
    detected: dict[str, int] = {}
    for phrase in AI_PHRASES:
        occurrences = lower.count(phrase)
        if occurrences:
            detected[phrase] = occurrences
            penalty += occurrences * AI_PHRASE_PENALTY

    sentences = _SENTENCE.findall(text)
    average_length = 0.0
    if sentences:
        average_length = sum(len(s.split()) for s in sentences) / len(sentences)
        if average_length > MAX_AVERAGE_SENTENCE_WORDS:
            penalty += LONG_SENTENCE_PENALTY

    score = max(0, 100 - penalty)
    if detected or average_length > MAX_AVERAGE_SENTENCE_WORDS:
        pipeline_logger.quality_warning(
            "human_writing",
            f"Human writing score {score}%",
            score=score,
            ai_phrases=detected,
            average_sentence_length=round(average_length, 1),
        )
    return score


# =============================================================================
# KEYWORD PLACEMENT
# =============================================================================


def validate_keyword_placement(
    html: str, keyword_metrics: list[KeywordMetric]
) -> KeywordPlacementReport:
    """Measure semantic keyword coverage and density. Advisory only."""
    text = strip_tags(html).lower()
    report = KeywordPlacementReport(total_keywords=len(keyword_metrics))
    if not text or not keyword_metrics:
        return report

    occurrences = 0
    for metric in keyword_metrics:
        keyword = metric.keyword.lower()
        if not keyword:
            continue
        count = text.count(keyword)
        occurrences += count
        if count:
            report.used_keywords.append(metric.keyword)
            if metric.is_priority:
                report.high_value_used.append(metric.keyword)

    total_words = len(_WORD.findall(text))
    report.density = occurrences / total_words * 100 if total_words else 0.0

    logger.info("Keyword placement measured", extra=report.to_dict())
    if report.density_too_high:
        pipeline_logger.quality_warning(
            "keyword_density",
            f"Keyword density too high: {report.density:.2f}% (target: 1-2.5%)",
            density=round(report.density, 2),
        )
    return report
