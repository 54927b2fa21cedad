"""Client side of the generation and analysis gateways.

Two interchangeable implementations expose ``generate(brief)`` and
``analyze(text)``:

- :class:`GatewayClient` talks to a deployed Talk Studio over HTTP.
- :class:`LocalGateway` calls :mod:`talkstudio.writer` and
  :mod:`talkstudio.analyzer` in process (used by the server-hosted editor).

Input is validated before any network call, and every HTTP failure is
mapped onto the error taxonomy. Nothing is retried.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from talkstudio.analyzer import analyze_speech, parse_analysis, validate_speech_content
from talkstudio.config import get_settings
from talkstudio.errors import AuthenticationRequired, GatewayError, RateLimited, UpstreamMalformed
from talkstudio.llm import LLMClient
from talkstudio.schemas import AnalysisResult, SpeechBrief
from talkstudio.utils import json_parse
from talkstudio.writer import ensure_generatable, generate_speech

log = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate-speech"
ANALYZE_PATH = "/api/analyze-speech"


class SpeechGateway(Protocol):
    async def generate(self, brief: SpeechBrief) -> str: ...

    async def analyze(self, text: str) -> AnalysisResult: ...


class LocalGateway:
    """In-process gateway; ``None`` clients are built from settings per call."""

    def __init__(self, generation_client: LLMClient | None = None, analysis_client: LLMClient | None = None):
        self._generation_client = generation_client
        self._analysis_client = analysis_client

    async def generate(self, brief: SpeechBrief) -> str:
        return await generate_speech(brief, self._generation_client)

    async def analyze(self, text: str) -> AnalysisResult:
        return await analyze_speech(text, self._analysis_client)


class GatewayClient:
    """HTTP client for the ``/api/generate-speech`` and ``/api/analyze-speech`` endpoints."""

    def __init__(
        self,
        access_token: str,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.access_token = access_token
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.gateway_url,
            timeout=timeout if timeout is not None else settings.gateway_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> GatewayClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def generate(self, brief: SpeechBrief) -> str:
        ensure_generatable(brief)
        data = await self._post(GENERATE_PATH, brief.model_dump(by_alias=True))
        content = data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise UpstreamMalformed("Response did not contain speech content")
        return content

    async def analyze(self, text: str) -> AnalysisResult:
        validate_speech_content(text)
        data = await self._post(ANALYZE_PATH, {"speechContent": text})
        return parse_analysis(data)

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        if not self.access_token:
            raise AuthenticationRequired("Please log in to continue.")
        try:
            response = await self._client.post(
                path, json=body, headers={"Authorization": f"Bearer {self.access_token}"},
            )
        except httpx.HTTPError as exc:
            log.warning("Gateway request to %s failed: %s", path, exc)
            raise GatewayError("Could not reach the speech service. Please try again later.") from exc

        payload = json_parse(response.text, None)
        error = payload.get("error") if isinstance(payload, dict) else None
        if response.status_code == 401:
            raise AuthenticationRequired(error or "Please log in to continue.")
        if response.status_code == 429:
            raise RateLimited(error or "Rate limit exceeded. Please try again in a moment.")
        if response.is_error:
            log.warning("Gateway %s returned %s: %s", path, response.status_code, response.text[:200])
            raise GatewayError(error or f"Request failed with status {response.status_code}")
        if not isinstance(payload, dict):
            raise UpstreamMalformed("Invalid response format from server")
        return payload
