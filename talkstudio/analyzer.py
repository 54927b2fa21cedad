"""Analysis gateway: score a speech on the three rhetorical appeals.

Each appeal gets an integer score in [0, 100] plus a short rationale:

- **Logos**: logic, reasoning, evidence and argument structure.
- **Pathos**: emotion, storytelling and audience connection.
- **Ethos**: credibility, authority and authenticity of the speaker.

Raw model numbers are never trusted: they are rounded half-up and clamped
before they leave this module, so ``133.7`` becomes ``100`` and ``-5``
becomes ``0``. ``overall_score`` is the rounded mean of the three.
"""
from __future__ import annotations

import logging
import math
from typing import Any

from talkstudio.config import get_settings
from talkstudio.errors import (
    GatewayError, LLMCallError, LLMConfigError, RateLimited, UpstreamMalformed, ValidationError,
)
from talkstudio.llm import LLMClient
from talkstudio.schemas import AnalysisResult
from talkstudio.utils import extract_json_object

log = logging.getLogger(__name__)

APPEALS = ("logos", "pathos", "ethos")

ANALYSIS_PROMPT = """\
Analyze the following speech for rhetorical effectiveness. Provide a JSON \
response with numerical scores (0-100) and detailed descriptions for each of \
the three rhetorical appeals:

1. Logos (Logical Appeal): Evaluate the use of logic, reasoning, evidence, and structured arguments
2. Pathos (Emotional Appeal): Evaluate the use of emotion, storytelling, personal connections, and audience engagement
3. Ethos (Credibility Appeal): Evaluate the speaker's credibility, authority, trustworthiness, and authenticity

You must respond with ONLY valid JSON in this exact format (no markdown, no code blocks, just the JSON):
{{
  "logos": <number 0-100>,
  "pathos": <number 0-100>,
  "ethos": <number 0-100>,
  "logos_description": "<detailed explanation of the logos score>",
  "pathos_description": "<detailed explanation of the pathos score>",
  "ethos_description": "<detailed explanation of the ethos score>"
}}

Speech to analyze:
{speech}\
"""

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a moment."


def validate_speech_content(text: str | None) -> str:
    if not text or not text.strip():
        raise ValidationError("Speech content is required")
    return text


def clamp_score(value: float) -> int:
    """Round half-up and clamp into [0, 100]."""
    return max(0, min(100, math.floor(value + 0.5)))


def overall_score(logos: int, pathos: int, ethos: int) -> int:
    return clamp_score((logos + pathos + ethos) / 3)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _description(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_analysis(raw: dict[str, Any]) -> AnalysisResult:
    """Validate an upstream analysis payload and normalize its scores."""
    if not all(_is_number(raw.get(k)) for k in APPEALS):
        raise UpstreamMalformed("Invalid analysis format received")
    return AnalysisResult(
        **{k: clamp_score(raw[k]) for k in APPEALS},
        **{f"{k}_description": _description(raw.get(f"{k}_description")) for k in APPEALS},
    )


def analysis_client() -> LLMClient:
    settings = get_settings()
    return LLMClient(model=settings.analysis_model or None)


async def analyze_speech(text: str, client: LLMClient | None = None) -> AnalysisResult:
    """Score *text* on logos, pathos and ethos. Raises a TalkStudioError on failure."""
    validate_speech_content(text)
    try:
        if client is None:
            client = analysis_client()
        reply = await client.complete("", ANALYSIS_PROMPT.format(speech=text), json_mode=True)
    except LLMConfigError as exc:
        log.warning("Analysis is not configured: %s", exc)
        raise GatewayError(str(exc)) from exc
    except LLMCallError as exc:
        if exc.status_code == 429:
            raise RateLimited(RATE_LIMIT_MESSAGE) from exc
        raise GatewayError("AI analysis failed") from exc

    raw = extract_json_object(reply)
    if raw is None:
        log.warning("Failed to parse analysis reply: %s", (reply or "")[:200])
        raise UpstreamMalformed("Failed to parse AI response")
    return parse_analysis(raw)
