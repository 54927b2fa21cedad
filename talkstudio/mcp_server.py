from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager

from mcp.server.fastmcp import FastMCP

from talkstudio import demo, services
from talkstudio.config import get_settings
from talkstudio.db import init_db, session_scope
from talkstudio.errors import AuthenticationRequired, TalkStudioError
from talkstudio.gateways import LocalGateway
from talkstudio.store import SpeechStore

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def talkstudio_lifespan(server: FastMCP) -> AsyncIterator[None]:
    init_db()
    yield


mcp = FastMCP(
    "Talk Studio",
    instructions=(
        "Talk Studio holds a speaker's speeches and their rhetorical analyses. "
        "Start with get_stats() for an overview, then list_speeches() to browse, "
        "then get_speech(id) for the full text. analyze_speech_tool(id) scores a speech."
    ),
    lifespan=talkstudio_lifespan,
    json_response=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _store() -> Iterator[SpeechStore]:
    user_id = get_settings().mcp_user
    if not user_id:
        raise AuthenticationRequired("TALKSTUDIO_MCP_USER is not set")
    with session_scope() as session:
        yield SpeechStore(session, user_id)


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@mcp.resource("talkstudio://overview")
def talkstudio_overview() -> str:
    """Overview of Talk Studio: data model, workflow and analysis scores."""
    return json.dumps({
        "system": "Talk Studio: speech writing and rhetorical analysis",
        "data_model": {
            "speech": "Title, brief (topic, key message, audience, speaker background, duration, tone), "
                      "plain-text content and a draft/completed status.",
            "analysis": "One per speech: logos, pathos and ethos scores (0-100) with short "
                        "descriptions and their rounded mean as overall_score.",
            "demo_speech": "Read-only examples with ids starting 'demo-speech-'.",
        },
        "workflow": [
            "1. get_stats() - how many speeches exist, drafts vs completed.",
            "2. list_speeches() - browse, optionally filtered by search text or status.",
            "3. get_speech(id) - full text, brief and word count.",
            "4. analyze_speech_tool(id) - score the speech and store the analysis.",
        ],
        "durations_minutes": [5, 10, 15, 18],
        "tones": ["inspiring", "educational", "storytelling", "persuasive", "humorous"],
    }, indent=2)


# ---------------------------------------------------------------------------
# Tools: Speeches
# ---------------------------------------------------------------------------


@mcp.tool()
def list_speeches(search: str | None = None, status: str = "all") -> list[dict] | dict:
    """List speeches, most recently updated first.

    Args:
        search: Case-insensitive match on title or topic.
        status: all, draft or completed.
    """
    try:
        with _store() as store:
            return [services.speech_summary(s) for s in store.list_speeches(search=search, status=status)]
    except TalkStudioError as exc:
        return {"error": exc.message}


@mcp.tool()
def get_speech(speech_id: str) -> dict:
    """Get a speech (or demo speech) with its brief, text and stored analysis."""
    try:
        with _store() as store:
            detail = services.speech_detail(services.load_speech(store, speech_id))
            detail["analysis"] = services.analysis_dict(services.stored_analysis(store, speech_id))
            return detail
    except TalkStudioError as exc:
        return {"error": exc.message}


@mcp.tool()
def list_demo_speeches() -> list[dict]:
    """List the read-only demo speeches."""
    return [services.demo_summary(d) for d in demo.list_demo_speeches()]


# ---------------------------------------------------------------------------
# Tools: Stats & Analysis
# ---------------------------------------------------------------------------


@mcp.tool()
def get_stats() -> dict:
    """Count speeches in total, in draft and completed."""
    try:
        with _store() as store:
            return store.stats()
    except TalkStudioError as exc:
        return {"error": exc.message}


@mcp.tool()
async def analyze_speech_tool(speech_id: str) -> dict:
    """Score a speech on logos, pathos and ethos and store the result. Requires an LLM API key."""
    try:
        with _store() as store:
            analysis = await services.run_analysis(store, speech_id, LocalGateway())
            return services.analysis_dict(analysis) or {}
    except TalkStudioError as exc:
        return {"error": f"Analysis failed: {exc.message}"}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the Talk Studio MCP server over stdio."""
    mcp.run()


if __name__ == "__main__":
    main()
