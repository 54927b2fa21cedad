"""Tests for the generation/analysis gateways and their HTTP client."""
from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from talkstudio.analyzer import analyze_speech, clamp_score, overall_score, parse_analysis
from talkstudio.errors import (
    AuthenticationRequired, GatewayError, LLMCallError, LLMConfigError, RateLimited, UpstreamMalformed,
    ValidationError,
)
from talkstudio.gateways import GatewayClient, LocalGateway
from talkstudio.llm import LLMClient
from talkstudio.schemas import AnalysisResult, SpeechBrief
from talkstudio.writer import (
    MAX_GENERATION_TOKENS, build_generation_prompt, generate_speech, strip_markup, target_word_count,
)

BRIEF = SpeechBrief(
    title="T", topic="X", key_message="Keep going", audience_demographics="Students",
    speaker_background="Coach", duration_minutes=5, tone="humorous",
)

ANALYSIS_REPLY = {
    "logos": 72, "pathos": 64, "ethos": 80,
    "logos_description": "Clear structure.",
    "pathos_description": "Some warmth.",
    "ethos_description": "Credible voice.",
}


def _llm(reply: str = "", error: Exception | None = None) -> MagicMock:
    client = MagicMock(spec=LLMClient)
    client.complete = AsyncMock(return_value=reply, side_effect=error)
    return client


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


class TestGeneration:
    def test_target_words_use_speaking_rate(self):
        assert target_word_count(5) == 650
        assert target_word_count(18) == 2340

    def test_prompt_mentions_brief(self):
        prompt = build_generation_prompt(BRIEF)
        assert "5-minute" in prompt
        assert "Key Message: Keep going" in prompt
        assert "Tone: humorous" in prompt
        assert "approximately 650 words" in prompt

    def test_prompt_omits_empty_key_message(self):
        prompt = build_generation_prompt(SpeechBrief(title="T", topic="X"))
        assert "Key Message" not in prompt

    def test_strip_markup(self):
        raw = "# Opening\n\n**Imagine** a *quiet* room.\n\n\n\n- First\n- Second"
        assert strip_markup(raw) == "Opening\n\nImagine a quiet room.\n\nFirst\nSecond"

    def test_strip_markup_keeps_plain_text(self):
        text = "Two times three is six. snake_case stays."
        assert strip_markup(text) == text

    @pytest.mark.asyncio
    async def test_generate_returns_plain_text(self):
        client = _llm("**Hello** everyone.")
        assert await generate_speech(BRIEF, client) == "Hello everyone."
        kwargs = client.complete.await_args.kwargs
        assert kwargs["max_tokens"] == 975
        assert kwargs["temperature"] == 0.8

    @pytest.mark.asyncio
    async def test_long_talks_cap_tokens(self):
        client = _llm("Hello.")
        await generate_speech(BRIEF.model_copy(update={"duration_minutes": 18}), client)
        assert client.complete.await_args.kwargs["max_tokens"] == MAX_GENERATION_TOKENS

    @pytest.mark.asyncio
    async def test_missing_title_rejected_before_call(self):
        client = _llm("Hello.")
        with pytest.raises(ValidationError):
            await generate_speech(SpeechBrief(title=" ", topic="X"), client)
        client.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_rate_limit_maps_to_rate_limited(self):
        client = _llm(error=LLMCallError("429", retryable=True, status_code=429))
        with pytest.raises(RateLimited, match="Rate limit exceeded"):
            await generate_speech(BRIEF, client)

    @pytest.mark.asyncio
    async def test_other_upstream_error(self):
        client = _llm(error=LLMCallError("boom", status_code=500))
        with pytest.raises(GatewayError):
            await generate_speech(BRIEF, client)

    @pytest.mark.asyncio
    async def test_empty_reply_is_malformed(self):
        with pytest.raises(UpstreamMalformed):
            await generate_speech(BRIEF, _llm("   "))


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


class TestScores:
    @pytest.mark.parametrize("raw,expected", [
        (133.7, 100), (-5, 0), (105, 100), (-3, 0), (50, 50), (49.5, 50), (72.4, 72), (0, 0), (100, 100),
    ])
    def test_clamp_score(self, raw, expected):
        assert clamp_score(raw) == expected

    def test_overall_is_rounded_mean(self):
        assert overall_score(100, 0, 50) == 50
        assert overall_score(70, 71, 71) == 71

    def test_parse_clamps_out_of_range(self):
        result = parse_analysis({"logos": 105, "pathos": -3, "ethos": 50})
        assert (result.logos, result.pathos, result.ethos) == (100, 0, 50)
        assert result.logos_description is None

    @pytest.mark.parametrize("raw", [
        {"logos": "90", "pathos": 1, "ethos": 1},
        {"logos": True, "pathos": 1, "ethos": 1},
        {"pathos": 1, "ethos": 1},
        {"logos": float("nan"), "pathos": 1, "ethos": 1},
    ])
    def test_parse_rejects_non_numbers(self, raw):
        with pytest.raises(UpstreamMalformed):
            parse_analysis(raw)


class TestAnalyzeSpeech:
    @pytest.mark.asyncio
    async def test_extracts_json_from_chatter(self):
        reply = "Here you go:\n```json\n" + json.dumps(ANALYSIS_REPLY) + "\n```"
        result = await analyze_speech("A speech.", _llm(reply))
        assert result == AnalysisResult(**ANALYSIS_REPLY)

    @pytest.mark.asyncio
    async def test_empty_text_rejected_before_call(self):
        client = _llm("{}")
        with pytest.raises(ValidationError, match="Speech content is required"):
            await analyze_speech("   \n", client)
        client.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_reply_without_json(self):
        with pytest.raises(UpstreamMalformed, match="Failed to parse AI response"):
            await analyze_speech("A speech.", _llm("I cannot score this."))

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        client = _llm(error=LLMCallError("slow down", retryable=True, status_code=429))
        with pytest.raises(RateLimited):
            await analyze_speech("A speech.", client)


class TestLLMClientErrors:
    @pytest.mark.asyncio
    async def test_status_code_carried_on_failure(self):
        client = LLMClient(provider="openai", api_key="sk-test")
        err = Exception("Too many requests")
        err.status_code = 429
        client._client = MagicMock()
        client._client.chat.completions.create = AsyncMock(side_effect=err)
        with pytest.raises(LLMCallError) as info:
            await client.complete("sys", "user")
        assert info.value.status_code == 429
        assert info.value.retryable

    def test_unknown_provider(self):
        with pytest.raises(LLMConfigError):
            LLMClient(provider="carrier-pigeon")

    @pytest.mark.parametrize("provider,env", [("openai", "OPENAI_API_KEY"), ("anthropic", "ANTHROPIC_API_KEY")])
    def test_missing_key(self, monkeypatch, provider, env):
        monkeypatch.delenv(env, raising=False)
        monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
        with pytest.raises(LLMConfigError) as info:
            LLMClient(provider=provider, model="m")
        assert str(info.value) == f"{env} is not configured"

    @pytest.mark.asyncio
    async def test_missing_key_becomes_gateway_error(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("OPENAI_BASE_URL", raising=False)

        def unconfigured():
            return LLMClient(provider="openai", model="m")

        with patch("talkstudio.writer.generation_client", unconfigured):
            with pytest.raises(GatewayError) as info:
                await generate_speech(BRIEF)
        assert info.value.message == "OPENAI_API_KEY is not configured"
        with patch("talkstudio.analyzer.analysis_client", unconfigured):
            with pytest.raises(GatewayError) as info:
                await analyze_speech("A speech.")
        assert info.value.message == "OPENAI_API_KEY is not configured"


# ---------------------------------------------------------------------------
# Local gateway
# ---------------------------------------------------------------------------


class TestLocalGateway:
    @pytest.mark.asyncio
    async def test_delegates_to_writer_and_analyzer(self):
        gen = _llm("Plain prose.")
        ana = _llm(json.dumps(ANALYSIS_REPLY))
        gateway = LocalGateway(generation_client=gen, analysis_client=ana)
        assert await gateway.generate(BRIEF) == "Plain prose."
        assert (await gateway.analyze("Plain prose.")).ethos == 80

    @pytest.mark.asyncio
    async def test_builds_clients_from_settings(self):
        with patch("talkstudio.writer.generation_client", return_value=_llm("Built.")) as factory:
            assert await LocalGateway().generate(BRIEF) == "Built."
        factory.assert_called_once()


# ---------------------------------------------------------------------------
# HTTP gateway client
# ---------------------------------------------------------------------------


def _client(handler, token: str = "tok") -> GatewayClient:
    return GatewayClient(token, base_url="http://talkstudio.test", transport=httpx.MockTransport(handler))


class TestGatewayClient:
    @pytest.mark.asyncio
    async def test_generate_posts_camel_case_brief(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"content": "Hello world."})

        async with _client(handler) as client:
            assert await client.generate(BRIEF) == "Hello world."
        assert seen["path"] == "/api/generate-speech"
        assert seen["auth"] == "Bearer tok"
        assert seen["body"]["keyMessage"] == "Keep going"
        assert seen["body"]["durationMinutes"] == 5

    @pytest.mark.asyncio
    async def test_generate_missing_content(self):
        async with _client(lambda r: httpx.Response(200, json={"text": "oops"})) as client:
            with pytest.raises(UpstreamMalformed):
                await client.generate(BRIEF)

    @pytest.mark.asyncio
    async def test_generate_validates_before_network(self):
        handler = MagicMock()
        async with _client(handler) as client:
            with pytest.raises(ValidationError):
                await client.generate(SpeechBrief(title="T"))
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_token_is_authentication_required(self):
        handler = MagicMock()
        async with _client(handler, token="") as client:
            with pytest.raises(AuthenticationRequired):
                await client.generate(BRIEF)
        handler.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [
        (401, AuthenticationRequired), (429, RateLimited), (500, GatewayError),
    ])
    async def test_error_statuses(self, status, error):
        async with _client(lambda r: httpx.Response(status, json={"error": "nope"})) as client:
            with pytest.raises(error, match="nope"):
                await client.analyze("Some speech.")

    @pytest.mark.asyncio
    async def test_connection_error_is_gateway_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(GatewayError):
                await client.generate(BRIEF)

    @pytest.mark.asyncio
    async def test_analyze_clamps_scores(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"logos": 105, "pathos": -3, "ethos": 50})

        async with _client(handler) as client:
            result = await client.analyze("Some speech.")
        assert seen["body"] == {"speechContent": "Some speech."}
        assert (result.logos, result.pathos, result.ethos) == (100, 0, 50)

    @pytest.mark.asyncio
    async def test_analyze_rejects_empty_text(self):
        handler = MagicMock()
        async with _client(handler) as client:
            with pytest.raises(ValidationError):
                await client.analyze("  ")
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_json_success_is_malformed(self):
        async with _client(lambda r: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(UpstreamMalformed):
                await client.analyze("Some speech.")
