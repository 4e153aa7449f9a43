"""Unit tests for the text and image generation clients.

Tests cover:
1. Claude request body (JSON instruction, web-search tool) and text joining
2. Status mapping to ProviderRateLimitError / ProviderAuthError
3. OpenAI-compatible chat JSON mode and provider assembly from settings
4. OpenAI image size mapping and base64 extraction

Each client receives an httpx.AsyncClient backed by MockTransport.
"""

import json
from collections.abc import Callable

import httpx
import pytest

from article_pipeline.integrations.base import (
    ProviderAuthError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from article_pipeline.integrations.claude import (
    ANTHROPIC_API_URL,
    JSON_MODE_INSTRUCTION,
    WEB_SEARCH_TOOL,
    ClaudeClient,
)
from article_pipeline.integrations.openai_chat import (
    OPENAI_API_URL,
    OpenAIChatClient,
    build_chat_providers,
)
from article_pipeline.integrations.openai_images import OpenAIImageClient
from tests.conftest import get_test_settings

Handler = Callable[[httpx.Request], httpx.Response]


def mock_client(handler: Handler, base_url: str) -> tuple[httpx.AsyncClient, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(recording), base_url=base_url), requests


def claude_reply(*texts: str) -> httpx.Response:
    blocks = [{"type": "text", "text": t} for t in texts]
    blocks.insert(1, {"type": "server_tool_use", "name": "web_search"})
    return httpx.Response(
        200,
        json={"content": blocks, "usage": {"input_tokens": 12, "output_tokens": 34}},
    )


# ---------------------------------------------------------------------------
# Claude
# ---------------------------------------------------------------------------


class TestClaudeClient:
    """Tests for ClaudeClient.complete."""

    @pytest.mark.asyncio
    async def test_text_blocks_are_joined(self) -> None:
        http, requests = mock_client(lambda r: claude_reply("Hello ", "world"), ANTHROPIC_API_URL)
        claude = ClaudeClient(api_key="sk-test", model="claude-test", client=http)

        text = await claude.complete("Be brief.", "Say hello")

        assert text == "Hello world"
        body = json.loads(requests[0].content)
        assert requests[0].url.path == "/v1/messages"
        assert body["model"] == "claude-test"
        assert body["system"] == "Be brief."
        assert body["messages"] == [{"role": "user", "content": "Say hello"}]
        assert "tools" not in body

    @pytest.mark.asyncio
    async def test_json_mode_and_grounding(self) -> None:
        http, requests = mock_client(lambda r: claude_reply("{}"), ANTHROPIC_API_URL)
        claude = ClaudeClient(api_key="sk-test", client=http)

        await claude.complete("Plan.", "solar", json_mode=True, grounding=True)

        body = json.loads(requests[0].content)
        assert body["system"] == "Plan." + JSON_MODE_INSTRUCTION
        assert body["tools"] == [WEB_SEARCH_TOOL]

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                429,
                headers={"retry-after": "7"},
                json={"error": {"type": "rate_limit_error", "message": "Slow down"}},
            )

        http, _ = mock_client(handler, ANTHROPIC_API_URL)
        with pytest.raises(ProviderRateLimitError) as exc_info:
            await ClaudeClient(api_key="sk-test", client=http).complete("s", "u")

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == "7"
        assert "Slow down" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_auth_failure(self) -> None:
        http, _ = mock_client(
            lambda r: httpx.Response(401, json={"error": {"message": "invalid x-api-key"}}),
            ANTHROPIC_API_URL,
        )
        with pytest.raises(ProviderAuthError) as exc_info:
            await ClaudeClient(api_key="sk-bad", client=http).complete("s", "u")
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_string_error_body(self) -> None:
        """A gateway that returns error as a plain string still maps by status."""
        http, _ = mock_client(
            lambda r: httpx.Response(401, json={"error": "invalid key"}),
            ANTHROPIC_API_URL,
        )
        with pytest.raises(ProviderAuthError) as exc_info:
            await ClaudeClient(api_key="sk-bad", client=http).complete("s", "u")
        assert exc_info.value.status_code == 401
        assert "invalid key" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_server_error_is_plain_provider_error(self) -> None:
        http, _ = mock_client(lambda r: httpx.Response(529, text="overloaded"), ANTHROPIC_API_URL)
        with pytest.raises(ProviderError) as exc_info:
            await ClaudeClient(api_key="sk-test", client=http).complete("s", "u")
        assert type(exc_info.value) is ProviderError
        assert exc_info.value.status_code == 529

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        http, _ = mock_client(handler, ANTHROPIC_API_URL)
        with pytest.raises(ProviderTimeoutError):
            await ClaudeClient(api_key="sk-test", timeout=3.0, client=http).complete("s", "u")


# ---------------------------------------------------------------------------
# OpenAI-compatible chat
# ---------------------------------------------------------------------------


class TestOpenAIChatClient:
    """Tests for OpenAIChatClient.complete."""

    @pytest.mark.asyncio
    async def test_json_mode_request(self) -> None:
        reply = {
            "choices": [{"message": {"role": "assistant", "content": '{"ok": true}'}}],
            "usage": {"prompt_tokens": 5, "completion_tokens": 3},
        }
        http, requests = mock_client(lambda r: httpx.Response(200, json=reply), OPENAI_API_URL)
        chat = OpenAIChatClient("sk-test", "gpt-test", client=http, timeout=5.0)

        text = await chat.complete("System", "User", json_mode=True, grounding=True)

        assert text == '{"ok": true}'
        body = json.loads(requests[0].content)
        assert requests[0].url.path == "/v1/chat/completions"
        assert body["response_format"] == {"type": "json_object"}
        assert [m["role"] for m in body["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_empty_choices_is_empty_text(self) -> None:
        http, _ = mock_client(lambda r: httpx.Response(200, json={"choices": []}), OPENAI_API_URL)
        chat = OpenAIChatClient("sk-test", "gpt-test", client=http, timeout=5.0)
        assert await chat.complete("s", "u") == ""

    @pytest.mark.asyncio
    async def test_missing_key(self) -> None:
        chat = OpenAIChatClient(None, "gpt-test", name="groq", timeout=5.0)
        assert chat.available is False
        with pytest.raises(ProviderNotConfiguredError):
            await chat.complete("s", "u")

    def test_providers_built_in_fallback_order(self) -> None:
        settings = get_test_settings(openai_api_key="a", groq_api_key="c", openrouter_api_key="b")
        providers = build_chat_providers(settings)
        assert [p.name for p in providers] == ["openai", "openrouter", "groq"]

    def test_no_providers_without_keys(self) -> None:
        assert build_chat_providers(get_test_settings()) == []


# ---------------------------------------------------------------------------
# OpenAI images
# ---------------------------------------------------------------------------


class TestOpenAIImageClient:
    """Tests for OpenAIImageClient.generate."""

    @pytest.mark.asyncio
    async def test_generate_returns_base64(self) -> None:
        reply = {"data": [{"b64_json": "aW1hZ2U="}, {"url": "https://ignored"}]}
        http, requests = mock_client(lambda r: httpx.Response(200, json=reply), OPENAI_API_URL)
        images = OpenAIImageClient(api_key="sk-test", model="img-test", client=http, timeout=5.0)

        result = await images.generate("Solar panels on a roof", aspect_ratio="16:9")

        assert result == ["aW1hZ2U="]
        body = json.loads(requests[0].content)
        assert requests[0].url.path == "/v1/images/generations"
        assert body["size"] == "1792x1024"
        assert body["response_format"] == "b64_json"
        assert body["n"] == 1

    @pytest.mark.asyncio
    async def test_unknown_aspect_ratio_is_square(self) -> None:
        http, requests = mock_client(
            lambda r: httpx.Response(200, json={"data": []}), OPENAI_API_URL
        )
        images = OpenAIImageClient(api_key="sk-test", client=http, timeout=5.0)

        assert await images.generate("prompt", aspect_ratio="4:3") == []
        assert json.loads(requests[0].content)["size"] == "1024x1024"

    @pytest.mark.asyncio
    async def test_content_policy_rejection(self) -> None:
        http, _ = mock_client(
            lambda r: httpx.Response(400, text="content_policy_violation"), OPENAI_API_URL
        )
        images = OpenAIImageClient(api_key="sk-test", client=http, timeout=5.0)
        with pytest.raises(ProviderError) as exc_info:
            await images.generate("prompt")
        assert exc_info.value.status_code == 400
