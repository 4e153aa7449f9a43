"""Prompt templates for every completion the pipeline requests.

Each template pairs a system prompt constant with a function building the
user prompt from typed arguments. Templates are looked up by name through
PROMPT_TEMPLATES so the gateway can cache and log per template.
"""

import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from article_pipeline.schemas.content import KeywordMetric, PageAnalysis, SerpResult, SitemapPage

MAX_CONTENT_CHARS = 8000
MAX_LINKING_PAGES = 50
MAX_SERP_SNIPPET_LENGTH = 200
MAX_REFERENCE_SNIPPET_LENGTH = 200
MAX_HEALTH_CONTENT_CHARS = 12000

JSON_ONLY_FOOTER = (
    "Your ENTIRE response MUST be ONLY the JSON, starting with { or [ and ending "
    "with } or ]. No introductory text, closing remarks or markdown code fences."
)

WRITING_STYLE_RULES = """- Short, direct sentences. Average 10 words, maximum 15.
- Paragraphs of 2-3 sentences.
- Aim for a Flesch reading-ease score of 80 or higher.
- Use contractions and the active voice. No filler words.
- Never use: 'delve into', 'in today's digital landscape', 'revolutionize', 'game-changer', 'unlock', 'leverage', 'in conclusion', 'to summarize', 'utilize', 'furthermore', 'moreover', 'landscape', 'realm', 'dive deep'."""


@dataclass(frozen=True)
class PromptTemplate:
    """A named system prompt with its user-prompt builder."""

    name: str
    system_instruction: str
    build_user_prompt: Callable[..., str]


def _pages_for_prompt(pages: Sequence[SitemapPage] | None) -> list[dict[str, str]]:
    if not pages:
        return []
    return [
        {"slug": p.slug, "title": p.title}
        for p in pages[:MAX_LINKING_PAGES]
        if p.slug and p.title
    ]


# =============================================================================
# PLANNING
# =============================================================================

CLUSTER_PLANNER_SYSTEM_PROMPT = f"""You are a master SEO strategist who builds topical authority with pillar-and-cluster content models. Turn a broad topic into a complete content plan.

## Rules
1. The pillarTitle is a broad, definitive-guide title that promises real value.
2. clusterTitles holds 5 to 7 distinct titles. Each is a question or long-tail phrase a real person would search for, covering a sub-topic that links back to the pillar.
   - Good: "How Much Does Professional Landscaping Cost in 2025?"
   - Bad: "Landscaping Costs"
3. Titles are current and forward-looking.

## Response Format
{{"pillarTitle": "...", "clusterTitles": ["...", "..."]}}

{JSON_ONLY_FOOTER}"""


def build_cluster_planner_prompt(topic: str) -> str:
    return f'Generate a pillar-and-cluster content plan for the topic: "{topic}".'


# =============================================================================
# KEYWORDS
# =============================================================================

SEMANTIC_KEYWORD_SYSTEM_PROMPT = f"""You are a world-class SEO analyst. Generate semantic and LSI keywords for a primary topic, covering sub-topics, intent variations and related entities.

## Rules
1. Generate between 15 and 25 keywords.
2. Keywords are relevant for the current year and beyond.

## Response Format
{{"semanticKeywords": ["keyword one", "a long-tail question keyword", "..."]}}

{JSON_ONLY_FOOTER}"""


def build_semantic_keyword_prompt(primary_keyword: str) -> str:
    return f'Generate semantic keywords for the primary topic: "{primary_keyword}".'


# =============================================================================
# OUTLINE
# =============================================================================

CONTENT_META_AND_OUTLINE_SYSTEM_PROMPT = f"""You are an elite content strategist and SEO expert who plans content that wins featured snippets and voice search. Produce ALL metadata and the structural plan for one article.

## Rules
1. Plan, do not write the body. The outline is a list of H2 headings only. The introduction and conclusion are fully written HTML paragraphs.
2. Outline headings are phrased as direct user questions. When People Also Ask questions are provided, use them first.
3. When a rewrite analysis is provided, apply ALL of its recommendations. This overrides every other rule.
4. Introduction and conclusion style:
{WRITING_STYLE_RULES}
   The primary keyword appears in the first 1-2 sentences of the introduction.
5. Structure:
   - keyTakeaways: exactly 8 bullet points.
   - outline: 10-15 H2 headings phrased as questions.
   - faqSection: exactly 8 objects of the form {{"question": "..."}}.
   - imageDetails: exactly 2 objects with prompt, altText, title and placeholder. Placeholders are [IMAGE_1_PLACEHOLDER] and [IMAGE_2_PLACEHOLDER], placed inside the introduction or conclusion where they fit best.
6. title is under 60 characters and contains the exact primary keyword. metaDescription is 120-155 characters and contains the exact primary keyword.

## Response Format
{{
  "title": "...",
  "slug": "...",
  "metaDescription": "...",
  "primaryKeyword": "...",
  "semanticKeywords": ["..."],
  "strategy": {{"targetAudience": "...", "searchIntent": "...", "competitorAnalysis": "...", "contentAngle": "..."}},
  "keyTakeaways": ["..."],
  "outline": ["..."],
  "introduction": "<p>...</p>",
  "conclusion": "<p>...</p>",
  "faqSection": [{{"question": "..."}}],
  "imageDetails": [{{"prompt": "...", "altText": "...", "title": "...", "placeholder": "[IMAGE_1_PLACEHOLDER]"}}],
  "socialMediaCopy": {{"twitter": "...", "linkedIn": "..."}}
}}

{JSON_ONLY_FOOTER}"""


def build_content_meta_and_outline_prompt(
    primary_keyword: str,
    semantic_keywords: Sequence[str] | None = None,
    serp_data: Sequence[SerpResult] | None = None,
    people_also_ask: Sequence[str] | None = None,
    existing_pages: Sequence[SitemapPage] | None = None,
    original_content: str | None = None,
    analysis: PageAnalysis | None = None,
) -> str:
    parts = [f'**PRIMARY KEYWORD:** "{primary_keyword}"']

    if analysis is not None:
        parts.append(
            "**REWRITE ANALYSIS:** Follow these recommendations. This is your highest priority.\n"
            f"<rewrite_plan>\n{json.dumps(analysis.model_dump(by_alias=True), indent=2)}\n</rewrite_plan>"
        )
    if original_content:
        parts.append(
            "**REWRITE MANDATE:** Deconstruct this outdated article and rebuild its plan.\n"
            f"<original_content_to_rewrite>\n{original_content[:MAX_CONTENT_CHARS]}\n"
            "</original_content_to_rewrite>"
        )
    if semantic_keywords:
        parts.append(
            "**SEMANTIC KEYWORDS:** Integrate these into the outline headings: "
            f"<semantic_keywords>{json.dumps(list(semantic_keywords))}</semantic_keywords>"
        )
    if people_also_ask:
        parts.append(
            "**PEOPLE ALSO ASK:** Real user questions. Use them as H2 headings. "
            f"<people_also_ask>{json.dumps(list(people_also_ask))}</people_also_ask>"
        )
    if serp_data:
        competitors = [
            {"title": r.title, "link": r.link, "snippet": r.snippet[:MAX_SERP_SNIPPET_LENGTH]}
            for r in serp_data
        ]
        parts.append(
            f"**SERP COMPETITOR DATA:** Analyze for gaps. <serp_data>{json.dumps(competitors)}</serp_data>"
        )
    linking = _pages_for_prompt(existing_pages)
    if linking:
        parts.append(
            "**INTERNAL LINKING TARGETS (for context):** "
            f"<existing_articles_for_linking>{json.dumps(linking)}</existing_articles_for_linking>"
        )
    parts.append("Generate the complete JSON plan.")
    return "\n\n".join(parts)


# =============================================================================
# SECTIONS AND FAQ
# =============================================================================

WRITE_ARTICLE_SECTION_SYSTEM_PROMPT = f"""You are an elite content writer. Write the content for ONE section of a larger article, based on its heading.

## Rules
1. Respond with raw HTML only. No JSON, no markdown, no explanations. Start with a <p> tag and do not repeat the <h2> heading.
2. The first paragraph is a direct 40-55 word answer to the heading's question.
3. The section is 250-300 words.
4. Style:
{WRITING_STYLE_RULES}
5. Use every priority keyword naturally. Keep keyword density below 2%.
6. You may use <h3> sub-headings. Include a table, list or blockquote where relevant.
7. Include 1-2 internal link placeholders where they fit, using this exact format:
   [INTERNAL_LINK slug="exact-slug-from-the-list" text="anchor text"]
   Only use slugs from the provided page list."""


def build_write_article_section_prompt(
    primary_keyword: str,
    article_title: str,
    section_heading: str,
    existing_pages: Sequence[SitemapPage] | None,
    semantic_keywords: Sequence[str],
    priority_keywords: Sequence[KeywordMetric],
) -> str:
    priority = [
        {"keyword": k.keyword, "demandScore": k.demand_score, "competitionScore": k.competition_score}
        for k in priority_keywords
    ]
    prompt = (
        f'**Primary Keyword:** "{primary_keyword}"\n'
        f'**Main Article Title:** "{article_title}"\n'
        f'**Section to Write:** "{section_heading}"\n'
        f"**Priority Keywords (Use These First):** {json.dumps(priority)}\n"
        f"**All Semantic Keywords:** {json.dumps(list(semantic_keywords))}\n"
    )
    linking = _pages_for_prompt(existing_pages)
    if linking:
        prompt += f"\n**Available Internal Links:**\n<pages>{json.dumps(linking)}</pages>\n"
    prompt += "\nWrite the HTML content for this section now."
    return prompt


WRITE_FAQ_ANSWER_SYSTEM_PROMPT = """You are an expert content writer. Answer a single FAQ question clearly and helpfully.

## Rules
1. Respond with ONLY the answer wrapped in a single <p> tag. Do not repeat the question.
2. 2-4 sentences, simple words, active voice, current information."""


def build_write_faq_answer_prompt(question: str) -> str:
    return f'Question: "{question}"'


# =============================================================================
# REFERENCES
# =============================================================================

FIND_REFERENCES_SYSTEM_PROMPT = """You are a research validator. Select references from the search results that are DIRECTLY about the article's topic.

## Scoring
1. Topic match (5 points, required): the title and snippet contain the primary keyword or at least 2 semantic keywords.
2. Credibility (+2): .edu, .gov, peer-reviewed journals or authoritative publications.
3. Recency (+1): published 2023 or later.
4. Depth (+1): long-form article or research paper.
5. Spam (-10): jobs, real estate, business trends, market analysis, news, forum, pinterest or youtube pages unless directly relevant.

Reject anything under 5 points, duplicates and malformed URLs.

## Response Format
[{"title": "...", "url": "...", "source": "...", "year": 2024, "relevanceScore": 7}]

Return ONLY a JSON array. Return [] when nothing qualifies."""


def build_find_references_prompt(
    article_title: str,
    content_summary: str,
    search_results: Sequence[dict[str, Any]],
    primary_keyword: str,
) -> str:
    title = article_title or primary_keyword or "Untitled Article"
    semantic = [w for w in title.lower().split() if len(w) > 4][:8]
    results = [
        {
            "title": r.get("title", ""),
            "link": r.get("link", ""),
            "snippet": (r.get("snippet") or "")[:MAX_REFERENCE_SNIPPET_LENGTH],
        }
        for r in search_results
    ]
    return (
        f'**TOPIC:** "{title}"\n'
        f'**PRIMARY KEYWORD:** "{primary_keyword}"\n'
        f"**SEMANTIC KEYWORDS:** {json.dumps(semantic)}\n"
        f"**SUMMARY:** {(content_summary or '')[:300]}\n\n"
        f"**SEARCH RESULTS:**\n{json.dumps(results, indent=2)}\n\n"
        "**TASK:** Score each result. Return ONLY sources with 5+ points."
    )


# =============================================================================
# LINK OPTIMIZER
# =============================================================================

INTERNAL_LINK_OPTIMIZER_SYSTEM_PROMPT = """You are an expert SEO content strategist. Enrich the article by inserting relevant internal links from the supplied page list.

## Rules
1. Do NOT change existing text, headings or structure. Only add link placeholders.
2. Placeholder format: [INTERNAL_LINK slug="exact-slug-from-the-list" text="anchor text from the content"]
3. Only link where it helps the reader, using natural anchor text already in the content.
4. Add between 5 and 10 links when suitable opportunities exist.
5. Respond with raw HTML only. No JSON, no markdown, no explanations."""


def build_internal_link_optimizer_prompt(
    content: str, available_pages: Sequence[SitemapPage]
) -> str:
    pages = [{"slug": p.slug, "title": p.title} for p in available_pages if p.slug]
    return (
        f"**Article Content to Analyze:**\n<content>\n{content}\n</content>\n\n"
        "**Available Pages for Linking (use these exact slugs):**\n"
        f"<pages>\n{json.dumps(pages)}\n</pages>\n\n"
        "Return the complete article content with the new internal link placeholders now."
    )


# =============================================================================
# CONTENT HEALTH
# =============================================================================

CONTENT_REWRITE_ANALYZER_SYSTEM_PROMPT = f"""You are an SEO and content strategist. Critically analyze an existing blog post and give a concrete plan to make it rank first.

## Rules
1. No generic advice. Every point refers to the provided text.
2. Every suggestion must improve rankings, traffic or helpfulness.

## Response Format
{{
  "critique": "2-3 sentence critique of strengths and weaknesses.",
  "suggestions": {{
    "title": "New SEO title, max 60 characters.",
    "contentGaps": ["Missing topic or question", "..."],
    "freshness": "Outdated facts and their current replacements, or 'Content appears fresh.'",
    "eeat": ["Specific experience, expertise, authority or trust improvement", "..."]
  }}
}}

{JSON_ONLY_FOOTER}"""


def build_content_rewrite_analyzer_prompt(title: str, content: str) -> str:
    return (
        f'Analyze the following blog post.\n\n**Title:** "{title}"\n\n'
        f"**Content:**\n<content>\n{content[:MAX_HEALTH_CONTENT_CHARS]}\n</content>"
    )


# =============================================================================
# KEYWORD PLACEMENT
# =============================================================================

KEYWORD_PLACEMENT_VALIDATOR_SYSTEM_PROMPT = f"""You are an SEO content auditor. Analyze HTML content and verify keyword placement.

## Rules
1. Count each keyword's usage and density.
2. List high-value keywords (demand > 70, competition < 30) used less than once.
3. Suggest a section for each underused keyword.

## Response Format
{{"totalKeywords": 30, "usedKeywords": 22, "underusedKeywords": [{{"keyword": "...", "currentCount": 0, "suggestedSection": "..."}}], "overallDensity": 1.2}}

{JSON_ONLY_FOOTER}"""


def build_keyword_placement_validator_prompt(
    content: str, keyword_metrics: Sequence[KeywordMetric]
) -> str:
    metrics = [m.model_dump(by_alias=True) for m in keyword_metrics]
    return (
        f"**Content:** {content[:10000]}\n"
        f"**Keyword Metrics:** {json.dumps(metrics)}\n\n"
        "Analyze keyword placement and return JSON."
    )


PROMPT_TEMPLATES: dict[str, PromptTemplate] = {
    template.name: template
    for template in (
        PromptTemplate("cluster_planner", CLUSTER_PLANNER_SYSTEM_PROMPT, build_cluster_planner_prompt),
        PromptTemplate(
            "semantic_keyword_generator",
            SEMANTIC_KEYWORD_SYSTEM_PROMPT,
            build_semantic_keyword_prompt,
        ),
        PromptTemplate(
            "content_meta_and_outline",
            CONTENT_META_AND_OUTLINE_SYSTEM_PROMPT,
            build_content_meta_and_outline_prompt,
        ),
        PromptTemplate(
            "write_article_section",
            WRITE_ARTICLE_SECTION_SYSTEM_PROMPT,
            build_write_article_section_prompt,
        ),
        PromptTemplate("write_faq_answer", WRITE_FAQ_ANSWER_SYSTEM_PROMPT, build_write_faq_answer_prompt),
        PromptTemplate(
            "find_real_references_with_context",
            FIND_REFERENCES_SYSTEM_PROMPT,
            build_find_references_prompt,
        ),
        PromptTemplate(
            "internal_link_optimizer",
            INTERNAL_LINK_OPTIMIZER_SYSTEM_PROMPT,
            build_internal_link_optimizer_prompt,
        ),
        PromptTemplate(
            "content_rewrite_analyzer",
            CONTENT_REWRITE_ANALYZER_SYSTEM_PROMPT,
            build_content_rewrite_analyzer_prompt,
        ),
        PromptTemplate(
            "keyword_placement_validator",
            KEYWORD_PLACEMENT_VALIDATOR_SYSTEM_PROMPT,
            build_keyword_placement_validator_prompt,
        ),
    )
}


def get_template(name: str) -> PromptTemplate:
    """Look up a template by name.

    Raises:
        KeyError: If no template has that name.
    """
    try:
        return PROMPT_TEMPLATES[name]
    except KeyError:
        raise KeyError(f"Unknown prompt template: {name}") from None
