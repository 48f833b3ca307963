"""
LLM Client Tests
================

Provider calls are served by httpx.MockTransport; no network access.
"""

import json

import httpx
import pytest

from adjudicator.config import Settings
from adjudicator.errors import ReasoningEngineError, ReasoningEngineUnavailable
from adjudicator.llm_client import LLMClient, find_first_json_object, parse_json_object, safe_log_content


def _client(handler, **overrides):
    settings = Settings(_env_file=None, **overrides)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return LLMClient(settings, http_client=http_client)


# =============================================================================
# JSON extraction
# =============================================================================

class TestJsonExtraction:

    def test_object_inside_prose_and_fences(self):
        content = 'Here is my ruling:\n```json\n{"decision": "favor_side_b", "confidence": 0.7}\n```\nThanks.'
        data, ok, error = parse_json_object(content)
        assert ok
        assert error == ""
        assert data == {"decision": "favor_side_b", "confidence": 0.7}

    def test_braces_inside_strings_are_ignored(self):
        content = 'x {"reasoning": "clause {4} applies", "n": {"a": 1}} y {"second": true}'
        assert find_first_json_object(content) == '{"reasoning": "clause {4} applies", "n": {"a": 1}}'

    def test_unclosed_brace_before_object_is_skipped(self):
        content = 'Note { draft ruling.\n{"decision": "favor_side_a", "confidence": 0.9}'
        data, ok, _ = parse_json_object(content)
        assert ok
        assert data == {"decision": "favor_side_a", "confidence": 0.9}

    def test_failures(self):
        assert parse_json_object("")[1] is False
        assert parse_json_object("no braces here") == (None, False, "No JSON object found")
        data, ok, _ = parse_json_object('{"unterminated": ')
        assert data is None and not ok
        data, ok, _ = parse_json_object("{'single': 'quotes'}")
        assert not ok

    def test_safe_log_content_hides_body(self):
        text = "x" * 500
        logged = safe_log_content(text, max_chars=10)
        assert "len=500" in logged
        assert "x" * 11 not in logged
        assert safe_log_content("") == "(empty)"


# =============================================================================
# Providers
# =============================================================================

class TestProviders:

    @pytest.mark.asyncio
    async def test_gemini_request_and_response(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "candidates": [{"content": {"parts": [{"text": "ruling text"}]}}],
                "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 3},
            })

        client = _client(handler, llm_mode="gemini", gemini_api_key="g-key")
        response = await client.generate_response("Render a verdict", system_prompt="You are a judge")
        await client.close()

        assert response.content == "ruling text"
        assert response.usage == {"input_tokens": 12, "output_tokens": 3}
        assert ":generateContent" in seen["url"]
        assert "key=g-key" in seen["url"]
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "You are a judge\n\nRender a verdict"
        assert seen["body"]["generationConfig"]["maxOutputTokens"] == 8192

    @pytest.mark.asyncio
    async def test_openrouter_chat_completions(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "choices": [{"message": {"content": "argument reply"}}],
                "usage": {"prompt_tokens": 5, "completion_tokens": 2},
            })

        client = _client(handler, llm_mode="openrouter", openrouter_api_key="or-key")
        text = await client.generate("Respond to the argument")

        assert text == "argument reply"
        assert seen["url"] == "https://openrouter.ai/api/v1/chat/completions"
        assert seen["auth"] == "Bearer or-key"
        assert seen["body"]["model"] == "anthropic/claude-3-haiku"
        assert seen["body"]["messages"] == [{"role": "user", "content": "Respond to the argument"}]

    @pytest.mark.asyncio
    async def test_deepseek_null_content_is_empty_text(self):
        def handler(request: httpx.Request):
            assert str(request.url).startswith("https://api.deepseek.com/v1/")
            return httpx.Response(200, json={"choices": [{"message": {"content": None}}]})

        client = _client(handler, llm_mode="deepseek", deepseek_api_key="ds-key")
        assert await client.generate("prompt") == ""


# =============================================================================
# Failures
# =============================================================================

class TestFailures:

    @pytest.mark.asyncio
    async def test_unconfigured_provider(self):
        def handler(request):
            raise AssertionError("no request expected")

        client = _client(handler, llm_mode="gemini", gemini_api_key=None)
        assert client.is_configured() is False
        with pytest.raises(ReasoningEngineUnavailable):
            await client.generate("prompt")

    @pytest.mark.asyncio
    async def test_mode_none_is_never_configured(self):
        client = _client(lambda request: httpx.Response(200), llm_mode="none", gemini_api_key="g-key")
        assert client.is_configured() is False

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        client = _client(
            lambda request: httpx.Response(503, text="overloaded"),
            llm_mode="gemini",
            gemini_api_key="g-key",
        )
        with pytest.raises(ReasoningEngineError) as exc_info:
            await client.generate("prompt")
        assert "503" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler, llm_mode="deepseek", deepseek_api_key="ds-key")
        with pytest.raises(ReasoningEngineError):
            await client.generate("prompt")

    @pytest.mark.asyncio
    async def test_blocked_gemini_response(self):
        client = _client(
            lambda request: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}),
            llm_mode="gemini",
            gemini_api_key="g-key",
        )
        with pytest.raises(ReasoningEngineError):
            await client.generate("prompt")

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client = _client(
            lambda request: httpx.Response(200, text="<html>gateway</html>"),
            llm_mode="openrouter",
            openrouter_api_key="or-key",
        )
        with pytest.raises(ReasoningEngineError):
            await client.generate("prompt")
