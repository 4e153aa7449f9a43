"""Tests for JSON-LD structured data."""

import json

from article_pipeline.schemas.content import FaqEntry, GeneratedContent, ImageDetail, SiteInfo
from article_pipeline.services.structured_data import (
    faq_node,
    generate_full_schema,
    generate_schema_markup,
    howto_node,
)

SITE_INFO = SiteInfo(
    org_name="Sunny Roofs",
    logo_url="https://example.com/logo.png",
    org_same_as=["https://twitter.com/sunnyroofs"],
    author_name="Dana Reyes",
    author_url="https://example.com/about",
)


def make_content(body: str = "<h2>Costs</h2><p>Panels cost money.</p>") -> GeneratedContent:
    return GeneratedContent(
        title="Solar Panel ROI",
        slug="solar-panel-roi",
        meta_description="How fast panels pay back.",
        primary_keyword="solar panel roi",
        semantic_keywords=["payback period"],
        content=body,
        image_details=[
            ImageDetail(prompt="p", alt_text="Roof", generated_image_src="https://example.com/a.webp"),
            ImageDetail(prompt="p", alt_text="Inline", generated_image_src="data:image/webp;base64,AA"),
        ],
    )


def nodes_by_type(schema: dict) -> dict[str, dict]:
    return {node["@type"]: node for node in schema["@graph"]}


class TestGenerateFullSchema:
    """Tests for the @graph contents."""

    def test_core_nodes(self) -> None:
        schema = generate_full_schema(make_content(), "https://example.com/", SITE_INFO)
        nodes = nodes_by_type(schema)

        assert schema["@context"] == "https://schema.org"
        assert {"Organization", "Person", "WebSite", "NewsArticle", "BreadcrumbList"} <= set(nodes)
        article = nodes["NewsArticle"]
        assert article["@id"] == "https://example.com/solar-panel-roi#article"
        assert article["keywords"] == "solar panel roi, payback period"
        assert article["hasPart"][0]["name"] == "Costs"
        assert nodes["Organization"]["logo"]["url"] == "https://example.com/logo.png"
        assert nodes["Person"]["name"] == "Dana Reyes"

    def test_data_uri_images_are_excluded(self) -> None:
        nodes = nodes_by_type(generate_full_schema(make_content(), "https://example.com", SITE_INFO))
        assert [img["url"] for img in nodes["NewsArticle"]["image"]] == ["https://example.com/a.webp"]

    def test_missing_logo_is_dropped(self) -> None:
        nodes = nodes_by_type(generate_full_schema(make_content(), "https://example.com"))
        assert "logo" not in nodes["Organization"]
        assert "sameAs" not in nodes["Organization"]

    def test_geo_location(self) -> None:
        schema = generate_full_schema(
            make_content(), "https://example.com", SITE_INFO, geo_location="Austin, TX"
        )
        assert nodes_by_type(schema)["NewsArticle"]["contentLocation"]["name"] == "Austin, TX"

    def test_faq_and_video_nodes(self) -> None:
        body = (
            "<h2>Intro</h2><p>x</p>"
            '<iframe src="https://www.youtube.com/embed/AAAAAAAAAAA" title="v"></iframe>'
        )
        faq = [FaqEntry(question="Do panels work in winter?", answer="<p>Yes, at lower output.</p>")]

        nodes = nodes_by_type(generate_full_schema(make_content(body), "https://example.com", faq=faq))

        assert nodes["FAQPage"]["mainEntity"][0]["acceptedAnswer"]["text"] == "Yes, at lower output."
        assert nodes["VideoObject"]["embedUrl"] == "https://www.youtube.com/embed/AAAAAAAAAAA"


class TestOptionalNodes:
    def test_unanswered_faq_is_skipped(self) -> None:
        assert faq_node([FaqEntry(question="Why?")]) is None

    def test_howto_needs_steps(self) -> None:
        steps = "".join(f"<h2>Step {i}: Do thing</h2><p>x</p>" for i in range(1, 4))
        node = howto_node(make_content(steps), "https://example.com/solar-panel-roi")
        assert node is not None
        assert len(node["step"]) == 3

    def test_non_instructional_content_has_no_howto(self) -> None:
        body = "<h2>Costs</h2><h2>Savings</h2><h2>Risks</h2>"
        assert howto_node(make_content(body), "https://example.com/x") is None


class TestSchemaMarkup:
    def test_wrapped_in_custom_html_block(self) -> None:
        schema = generate_full_schema(make_content(), "https://example.com")
        markup = generate_schema_markup(schema)

        assert "<!-- wp:html -->" in markup
        assert "<!-- /wp:html -->" in markup
        payload = markup.split('<script type="application/ld+json">')[1].split("</script>")[0]
        assert json.loads(payload)["@context"] == "https://schema.org"

    def test_empty_graph_gives_empty_markup(self) -> None:
        assert generate_schema_markup({}) == ""
        assert generate_schema_markup({"@context": "https://schema.org", "@graph": []}) == ""
