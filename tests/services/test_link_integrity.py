"""Tests for internal link integrity.

Tests cover:
1. sanitize: malformed placeholders degrade to their text
2. repair: invented slugs are re-targeted by title score; idempotent
3. quota: phrases are wrapped until the minimum is met, never inside tags
4. resolve: placeholders become anchors with UTM parameters
5. finalize: no placeholder survives
"""

from urllib.parse import parse_qs, urlparse

from article_pipeline.services.link_integrity import (
    PLACEHOLDER_MARKER,
    build_search_terms,
    count_placeholders,
    count_resolved_links,
    enforce_internal_link_quota,
    finalize_internal_links,
    make_placeholder,
    process_internal_links,
    rank_candidate_pages,
    sanitize_broken_placeholders,
    score_page_for_anchor,
    validate_and_repair_internal_links,
)
from tests.conftest import make_pages

PAGES = make_pages(
    [
        "Solar Panel Installation Cost",
        "Best Home Battery Storage Options",
        "Net Metering Explained Simply",
        "Federal Solar Tax Credit Guide",
    ]
)


class TestSanitize:
    """Tests for sanitize_broken_placeholders."""

    def test_valid_placeholder_is_kept(self) -> None:
        token = make_placeholder("net-metering-explained-simply", "net metering")
        assert sanitize_broken_placeholders(f"<p>See {token}.</p>") == f"<p>See {token}.</p>"

    def test_missing_slug_degrades_to_text(self) -> None:
        html = '<p>Read [INTERNAL_LINK text="our guide"] today.</p>'
        assert sanitize_broken_placeholders(html) == "<p>Read our guide today.</p>"

    def test_empty_slug_degrades_to_text(self) -> None:
        html = '<p>[INTERNAL_LINK slug="" text="battery options"]</p>'
        assert sanitize_broken_placeholders(html) == "<p>battery options</p>"

    def test_unterminated_token_stops_at_tag(self) -> None:
        html = '<p>Try [INTERNAL_LINK slug="x" text="tax credit"</p><p>Next</p>'
        result = sanitize_broken_placeholders(html)
        assert PLACEHOLDER_MARKER not in result
        assert "<p>Next</p>" in result
        assert "tax credit" in result

    def test_token_without_text_is_removed(self) -> None:
        assert sanitize_broken_placeholders("<p>A [INTERNAL_LINK] B</p>") == "<p>A  B</p>"


class TestRepair:
    """Tests for validate_and_repair_internal_links."""

    def test_known_slug_is_untouched(self) -> None:
        token = make_placeholder("federal-solar-tax-credit-guide", "tax credit")
        assert validate_and_repair_internal_links(token, PAGES) == token

    def test_invented_slug_is_retargeted(self) -> None:
        html = make_placeholder("battery-guide", "home battery storage options")
        repaired = validate_and_repair_internal_links(html, PAGES)
        assert repaired == make_placeholder(
            "best-home-battery-storage-options", "home battery storage options"
        )

    def test_unmatched_slug_degrades_to_text(self) -> None:
        html = "<p>" + make_placeholder("gardening", "tomato growing tips") + "</p>"
        assert validate_and_repair_internal_links(html, PAGES) == "<p>tomato growing tips</p>"

    def test_repair_is_idempotent(self) -> None:
        html = (
            "<p>"
            + make_placeholder("battery-guide", "home battery storage options")
            + " and "
            + make_placeholder("gardening", "tomato growing tips")
            + "</p>"
        )
        once = validate_and_repair_internal_links(html, PAGES)
        assert validate_and_repair_internal_links(once, PAGES) == once

    def test_score_exact_match(self) -> None:
        assert score_page_for_anchor("Net Metering Explained Simply", "Net Metering Explained Simply") > 200


class TestQuota:
    """Tests for enforce_internal_link_quota."""

    def test_search_terms(self) -> None:
        assert build_search_terms("Best Home Battery Storage Options") == [
            "Best Home Battery Storage Options",
            "Home Battery Storage Options",
            "Best Home Battery Storage",
        ]

    def test_short_phrases_are_dropped(self) -> None:
        assert build_search_terms("Solar") == []

    def test_candidates_exclude_linked_and_own_page(self) -> None:
        ranked = rank_candidate_pages(
            PAGES, {"net-metering-explained-simply"}, primary_title="Solar Panel Installation Cost"
        )
        slugs = [page.slug for page, _ in ranked]
        assert "net-metering-explained-simply" not in slugs
        assert "solar-panel-installation-cost" not in slugs

    def test_deficit_is_filled_from_text(self) -> None:
        html = (
            "<p>Start with net metering explained simply before anything else.</p>"
            "<p>Many owners add best home battery storage options later.</p>"
            "<p>Do not forget the federal solar tax credit guide either.</p>"
        )
        result = enforce_internal_link_quota(html, PAGES, min_links=3)
        assert count_placeholders(result, {p.slug for p in PAGES}) == 3

    def test_headings_and_existing_links_are_not_touched(self) -> None:
        html = (
            "<h2>Net Metering Explained Simply</h2>"
            '<p><a href="/x">net metering explained simply</a></p>'
        )
        assert enforce_internal_link_quota(html, PAGES, min_links=2) == html

    def test_met_quota_returns_input(self) -> None:
        html = "".join(make_placeholder(p.slug, p.title) for p in PAGES)
        assert enforce_internal_link_quota(html, PAGES, min_links=4) == html

    def test_untouched_markup_is_preserved_exactly(self) -> None:
        """Void tags, entities and boolean attributes survive a link insertion."""
        html = (
            "<p>Line one<br>line&nbsp;two</p>"
            '<iframe src="https://www.youtube.com/embed/x" allowfullscreen></iframe>'
            "<p>Read net metering explained simply first.</p>"
            "<!-- net metering explained simply -->"
        )

        result = enforce_internal_link_quota(html, PAGES, min_links=1)

        placeholder = make_placeholder(
            "net-metering-explained-simply", "net metering explained simply"
        )
        assert result == html.replace(
            "Read net metering explained simply first",
            f"Read {placeholder} first",
        )

    def test_phrase_at_tag_edge_is_linked(self) -> None:
        html = '<p class="a>b"><strong>Federal Solar Tax Credit Guide</strong> applies.</p>'
        result = enforce_internal_link_quota(html, PAGES, min_links=1)
        assert result.startswith('<p class="a>b"><strong>[INTERNAL_LINK slug=')
        assert result.endswith("</strong> applies.</p>")

    def test_script_and_title_text_is_skipped(self) -> None:
        html = (
            "<title>Net Metering Explained Simply</title>"
            "<script>var t = 'net metering explained simply';</script>"
            "<p>Plain text only.</p>"
        )
        assert enforce_internal_link_quota(html, PAGES, min_links=1) == html

    def test_phrase_must_stand_alone(self) -> None:
        html = "<p>Xnet metering explained simplyX is not a match.</p>"
        assert enforce_internal_link_quota(html, PAGES, min_links=1) == html


class TestResolve:
    """Tests for process_internal_links."""

    def test_anchor_with_utm(self) -> None:
        html = make_placeholder("net-metering-explained-simply", "net metering")
        result = process_internal_links(html, PAGES, {"utm_source": "s", "utm_medium": "m"})
        assert result.startswith('<a href="https://example.com/net-metering-explained-simply/?')
        href = result.split('"')[1]
        assert parse_qs(urlparse(href).query) == {"utm_source": ["s"], "utm_medium": ["m"]}
        assert result.endswith(">net metering</a>")

    def test_unknown_slug_degrades(self) -> None:
        assert process_internal_links(make_placeholder("nope", "text"), PAGES) == "text"

    def test_empty_page_list_degrades(self) -> None:
        assert process_internal_links(make_placeholder("nope", "text"), []) == "text"


class TestFinalize:
    """Tests for finalize_internal_links."""

    def test_no_placeholder_survives(self) -> None:
        html = (
            "<p>"
            + make_placeholder("battery-guide", "home battery storage options")
            + ' and [INTERNAL_LINK slug="" text="broken"] and '
            + make_placeholder("gardening", "tomato growing tips")
            + " plus the federal solar tax credit guide.</p>"
        )
        result = finalize_internal_links(html, PAGES, "Solar ROI", min_links=3)
        assert PLACEHOLDER_MARKER not in result
        assert count_resolved_links(result) == 2
        assert "tomato growing tips" in result
        assert "broken" in result

    def test_finalize_without_pages_strips_everything(self) -> None:
        html = make_placeholder("a-page", "some text")
        assert finalize_internal_links(html, [], "Title") == "some text"
