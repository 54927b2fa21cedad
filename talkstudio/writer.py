"""Generation gateway: turn a speech brief into plain-text prose.

One upstream LLM call per request. No retries and no caching; a rate-limited
upstream surfaces as :class:`RateLimited` so the caller can ask the user to
try again shortly.
"""
from __future__ import annotations

import logging
import re

from talkstudio.config import get_settings
from talkstudio.errors import (
    GatewayError, LLMCallError, LLMConfigError, RateLimited, UpstreamMalformed, ValidationError,
)
from talkstudio.llm import LLMClient
from talkstudio.schemas import SpeechBrief
from talkstudio.utils import WORDS_PER_MINUTE

log = logging.getLogger(__name__)

MAX_GENERATION_TOKENS = 2000
GENERATION_TEMPERATURE = 0.8

SYSTEM_PROMPT = """\
You are an expert TED talk speechwriter. Create compelling, authentic speeches \
that inspire audiences. Structure with a strong hook, clear narrative arc, and \
memorable conclusion. Use storytelling, rhetorical devices, and emotional \
connection. Match the requested tone and duration.\
"""

USER_PROMPT = """\
Write a {minutes}-minute TED-style speech with the following details:

Title: {title}
Topic: {topic}
{key_message_line}Target Audience: {audience}
Speaker Background: {background}
Tone: {tone}

Create a complete speech draft with:
1. A captivating opening hook
2. Personal stories or examples
3. Clear main points with transitions
4. A powerful, memorable conclusion

IMPORTANT FORMATTING REQUIREMENTS:
- Do NOT use any text styling (no markdown, no bold, no italics, no asterisks, no underscores)
- Use blank lines (double line breaks) to separate sections
- Write in plain text only - the speech will be copied and pasted, so avoid any formatting characters
- Write naturally as if the speaker is delivering it live
- Aim for approximately {words} words\
"""

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a moment."


def ensure_generatable(brief: SpeechBrief) -> None:
    """Raise ValidationError unless title and topic are both filled in."""
    if not brief.title.strip() or not brief.topic.strip():
        raise ValidationError("Title and topic are required")


def target_word_count(duration_minutes: int) -> int:
    return duration_minutes * WORDS_PER_MINUTE


def build_generation_prompt(brief: SpeechBrief) -> str:
    key_message = brief.key_message.strip()
    return USER_PROMPT.format(
        minutes=brief.duration_minutes,
        title=brief.title,
        topic=brief.topic,
        key_message_line=f"Key Message: {key_message}\n" if key_message else "",
        audience=brief.audience_demographics,
        background=brief.speaker_background,
        tone=brief.tone,
        words=target_word_count(brief.duration_minutes),
    )


_HEADING_RE = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+", re.MULTILINE)
_BULLET_RE = re.compile(r"^[ \t]*[-*•][ \t]+", re.MULTILINE)
_STRONG_RE = re.compile(r"(\*\*|__)(.+?)\1", re.DOTALL)
_EMPHASIS_RE = re.compile(r"(?<![\w*])([*_])(?!\s)([^*_\n]+?)(?<!\s)\1(?![\w*])")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def strip_markup(text: str) -> str:
    """Remove markdown styling so the speech can be pasted verbatim."""
    text = text.replace("\r\n", "\n")
    text = _STRONG_RE.sub(r"\2", text)
    text = _EMPHASIS_RE.sub(r"\2", text)
    text = _HEADING_RE.sub("", text)
    text = _BULLET_RE.sub("", text)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def generation_client() -> LLMClient:
    settings = get_settings()
    return LLMClient(model=settings.generation_model or None)


async def generate_speech(brief: SpeechBrief, client: LLMClient | None = None) -> str:
    """Generate a plain-text speech for *brief*. Raises a TalkStudioError on failure."""
    ensure_generatable(brief)
    words = target_word_count(brief.duration_minutes)
    try:
        if client is None:
            client = generation_client()
        raw = await client.complete(
            SYSTEM_PROMPT,
            build_generation_prompt(brief),
            max_tokens=min(int(words * 1.5), MAX_GENERATION_TOKENS),
            temperature=GENERATION_TEMPERATURE,
        )
    except LLMConfigError as exc:
        log.warning("Generation is not configured: %s", exc)
        raise GatewayError(str(exc)) from exc
    except LLMCallError as exc:
        if exc.status_code == 429:
            raise RateLimited(RATE_LIMIT_MESSAGE) from exc
        raise GatewayError("AI generation failed") from exc

    content = strip_markup(raw or "")
    if not content:
        log.warning("Generation for %r returned no content", brief.title)
        raise UpstreamMalformed("Response did not contain speech content")
    return content
