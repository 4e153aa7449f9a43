"""Tests for turning topics, keywords and pages into content items."""

import pytest

from article_pipeline.schemas.content import ContentType, PageAnalysis, SitemapPage
from article_pipeline.services.planner import (
    PlanningError,
    items_from_keywords,
    items_from_pages,
    parse_cluster_plan,
    plan_cluster,
    sanitize_title,
)
from tests.conftest import FakeContentAI


class TestClusterPlanning:
    """Tests for plan_cluster and parse_cluster_plan."""

    @pytest.mark.asyncio
    async def test_pillar_then_clusters(self) -> None:
        ai = FakeContentAI(
            {
                "cluster_planner": {
                    "pillarTitle": "The Complete Guide to Home Solar",
                    "clusterTitles": ["Solar Panel ROI", "Net Metering Explained"],
                }
            }
        )

        items = await plan_cluster(ai, "home solar")

        assert [i.title for i in items] == [
            "The Complete Guide to Home Solar",
            "Solar Panel ROI",
            "Net Metering Explained",
        ]
        assert items[0].type == ContentType.PILLAR
        assert {i.type for i in items[1:]} == {ContentType.CLUSTER}
        assert all(i.status_text == "Ready to Generate" for i in items)
        assert ai.calls == [("cluster_planner", ("home solar",))]

    def test_missing_pillar_raises(self) -> None:
        with pytest.raises(PlanningError):
            parse_cluster_plan({"clusterTitles": ["a"]})

    def test_non_object_raises(self) -> None:
        with pytest.raises(PlanningError):
            parse_cluster_plan(["a", "b"])

    def test_snake_case_and_dict_clusters(self) -> None:
        plan = parse_cluster_plan(
            {"pillar_title": "Pillar", "cluster_titles": [{"title": "One"}, "Two"]}
        )
        assert plan.cluster_titles == ["One", "Two"]


class TestKeywordItems:
    def test_one_item_per_unique_keyword(self) -> None:
        items = items_from_keywords(["solar roi", " solar roi ", "", "net metering"])
        assert [i.id for i in items] == ["solar roi", "net metering"]
        assert all(i.type == ContentType.STANDARD for i in items)


class TestPageItems:
    """Tests for items_from_pages."""

    ANALYSED = SitemapPage(
        id="https://example.com/solar-roi/",
        title="https://example.com/solar-roi/",
        slug="solar-roi",
        url="https://example.com/solar-roi/",
        crawled_content="Old text",
        analysis=PageAnalysis(critique="Outdated"),
    )
    RAW = SitemapPage(
        id="https://example.com/net-metering/",
        title="Net Metering Basics",
        slug="net-metering",
        url="https://example.com/net-metering/",
    )

    def test_rewrites_need_analysis(self) -> None:
        items = items_from_pages([self.ANALYSED, self.RAW])
        assert len(items) == 1
        assert items[0].title == "Solar Roi"
        assert items[0].status_text == "Ready to Rewrite"
        assert items[0].original_url == "https://example.com/solar-roi/"
        assert items[0].analysis is not None

    def test_link_optimizer_titles(self) -> None:
        items = items_from_pages([self.RAW], ContentType.LINK_OPTIMIZER)
        assert items[0].title == "Optimize Links: Net Metering Basics"
        assert items[0].status_text == "Ready to Optimize"

    def test_pillar_from_page(self) -> None:
        items = items_from_pages([self.RAW], ContentType.PILLAR)
        assert items[0].type == ContentType.PILLAR
        assert items[0].status_text == "Ready to Generate"

    def test_sanitize_title(self) -> None:
        assert sanitize_title(None, "") == "Untitled Article"
        assert sanitize_title("https://x.com/a", "battery%20storage-tips") == "Battery Storage Tips"
        assert sanitize_title("Kept", "slug") == "Kept"
