"""Tests for quality gates: word count, readability, human score, keywords, videos."""

import pytest

from article_pipeline.schemas.content import ContentType, KeywordMetric, VideoResult
from article_pipeline.services.content_quality import (
    ContentTooShortError,
    calculate_flesch_readability,
    check_human_writing_score,
    count_syllables,
    count_words,
    enforce_word_count,
    get_readability_verdict,
    validate_keyword_placement,
    word_targets,
)
from article_pipeline.services.video_embeds import (
    embed_iframe,
    enforce_unique_video_embeds,
    get_unique_youtube_videos,
    get_video_id,
)
from tests.conftest import words


class TestWordCount:
    """Tests for the hard word-count gate."""

    def test_count_ignores_tags(self) -> None:
        assert count_words("<h2>Title here</h2><p>one two <b>three</b></p>") == 5

    def test_one_word_short_raises_with_content(self) -> None:
        html = f"<p>{words(1499)}</p>"
        with pytest.raises(ContentTooShortError) as exc_info:
            enforce_word_count(html, 1500, 2500)
        assert exc_info.value.word_count == 1499
        assert exc_info.value.content == html

    def test_exact_minimum_passes(self) -> None:
        assert enforce_word_count(f"<p>{words(1500)}</p>", 1500, 2500) == 1500

    def test_over_maximum_only_warns(self) -> None:
        assert enforce_word_count(f"<p>{words(30)}</p>", 10, 20) == 30

    def test_empty_content_raises(self) -> None:
        with pytest.raises(ContentTooShortError):
            enforce_word_count("", 10, 20)

    def test_pillar_targets_are_larger(self) -> None:
        assert word_targets(ContentType.PILLAR)[0] > word_targets(ContentType.STANDARD)[0]
        assert word_targets("cluster") == word_targets(ContentType.STANDARD)


class TestReadability:
    """Tests for the Flesch reading-ease score."""

    def test_under_100_words_scores_zero(self) -> None:
        assert calculate_flesch_readability("Short text. Very short.") == 0

    def test_simple_prose_scores_high(self) -> None:
        text = " ".join(["The cat sat on the mat."] * 30)
        assert calculate_flesch_readability(text) >= 90

    def test_score_is_clamped(self) -> None:
        text = " ".join(["Incomprehensibilities"] * 120) + "."
        assert calculate_flesch_readability(text) == 0

    def test_syllables(self) -> None:
        assert count_syllables("cat") == 1
        assert count_syllables("panel") == 2

    def test_verdicts(self) -> None:
        assert get_readability_verdict(0).verdict == "N/A"
        assert get_readability_verdict(95).verdict == "Very Easy"
        assert get_readability_verdict(65).verdict == "Standard"
        assert get_readability_verdict(10).verdict == "Very Confusing"


class TestHumanWritingScore:
    """Tests for check_human_writing_score."""

    def test_clean_prose_scores_100(self) -> None:
        assert check_human_writing_score("<p>Panels cut bills. Most homes save money.</p>") == 100

    def test_each_ai_phrase_costs_ten(self) -> None:
        html = "<p>We delve into costs. Then we delve into savings.</p>"
        assert check_human_writing_score(html) == 80

    def test_long_sentences_cost_fifteen(self) -> None:
        sentence = " ".join(["panel"] * 30) + "."
        assert check_human_writing_score(f"<p>{sentence}</p>") == 85

    def test_score_floor_is_zero(self) -> None:
        assert check_human_writing_score("<p>" + "Moreover. " * 20 + "</p>") == 0


class TestKeywordPlacement:
    """Tests for validate_keyword_placement."""

    def test_used_and_priority_keywords(self) -> None:
        metrics = [
            KeywordMetric(keyword="solar roi", demand_score=90, competition_score=20),
            KeywordMetric(keyword="battery", demand_score=40, competition_score=60),
            KeywordMetric(keyword="geothermal", demand_score=80, competition_score=10),
        ]
        html = "<p>Solar ROI depends on sun. A battery helps. " + words(100, "sun") + "</p>"
        report = validate_keyword_placement(html, metrics)
        assert report.used_keywords == ["solar roi", "battery"]
        assert report.high_value_used == ["solar roi"]
        assert report.total_keywords == 3
        assert report.density_too_high is False

    def test_density_too_high(self) -> None:
        metrics = [KeywordMetric(keyword="solar")]
        report = validate_keyword_placement("<p>solar solar solar panel</p>", metrics)
        assert report.density_too_high is True


class TestVideoSelection:
    """Tests for YouTube video selection and duplicate repair."""

    def test_video_id_shapes(self) -> None:
        assert get_video_id({"videoId": "abc"}) == "abc"
        assert get_video_id({"link": "https://www.youtube.com/watch?v=AAAAAAAAAAA"}) == "AAAAAAAAAAA"
        assert get_video_id({"link": "https://youtu.be/BBBBBBBBBBB"}) == "BBBBBBBBBBB"
        assert get_video_id({"embedUrl": "https://www.youtube.com/embed/CCCCCCCCCCC"}) == "CCCCCCCCCCC"
        assert get_video_id({"title": "no link"}) is None

    def test_duplicates_and_excluded_are_skipped(self) -> None:
        videos = [
            {"title": "A", "link": "https://www.youtube.com/watch?v=AAAAAAAAAAA"},
            {"title": "A again", "link": "https://youtu.be/AAAAAAAAAAA"},
            {"title": "B", "link": "https://www.youtube.com/watch?v=BBBBBBBBBBB"},
            {"title": "C", "link": "https://www.youtube.com/watch?v=CCCCCCCCCCC"},
        ]
        selected = get_unique_youtube_videos(videos, count=2, exclude={"BBBBBBBBBBB"})
        assert [v.video_id for v in selected] == ["AAAAAAAAAAA", "CCCCCCCCCCC"]

    def test_duplicate_second_embed_is_replaced(self) -> None:
        a = VideoResult(title="A", link="", video_id="AAAAAAAAAAA")
        b = VideoResult(title="B", link="", video_id="BBBBBBBBBBB")
        content = f"<p>x</p>{embed_iframe(a)}<p>y</p>{embed_iframe(a)}"

        result = enforce_unique_video_embeds(content, [a, b])

        assert result.count("embed/AAAAAAAAAAA") == 1
        assert result.count("embed/BBBBBBBBBBB") == 1
        assert result.index("embed/AAAAAAAAAAA") < result.index("embed/BBBBBBBBBBB")

    def test_distinct_embeds_are_untouched(self) -> None:
        a = VideoResult(title="A", link="", video_id="AAAAAAAAAAA")
        b = VideoResult(title="B", link="", video_id="BBBBBBBBBBB")
        content = embed_iframe(a) + embed_iframe(b)
        assert enforce_unique_video_embeds(content, [a, b]) == content

    def test_single_candidate_is_untouched(self) -> None:
        a = VideoResult(title="A", link="", video_id="AAAAAAAAAAA")
        content = embed_iframe(a) + embed_iframe(a)
        assert enforce_unique_video_embeds(content, [a]) == content
