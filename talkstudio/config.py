from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _default_db_path() -> Path:
    override = _env("TALKSTUDIO_DB_PATH")
    if override:
        return Path(override).expanduser().resolve()
    return Path(__file__).parent / "data" / "talkstudio.db"


class Settings(BaseModel):
    db_path: Path = Field(default_factory=_default_db_path)

    # Bearer tokens are issued by the identity provider; we only verify them.
    jwt_secret: str = Field(default_factory=lambda: _env("TALKSTUDIO_JWT_SECRET"))
    jwt_audience: str = Field(default_factory=lambda: _env("TALKSTUDIO_JWT_AUDIENCE", "authenticated"))

    llm_provider: str = Field(default_factory=lambda: _env("LLM_PROVIDER", "openai"))
    llm_model: str = Field(default_factory=lambda: _env("LLM_MODEL"))
    generation_model: str = Field(default_factory=lambda: _env("GENERATION_MODEL"))
    analysis_model: str = Field(default_factory=lambda: _env("ANALYSIS_MODEL"))

    gateway_url: str = Field(default_factory=lambda: _env("TALKSTUDIO_GATEWAY_URL", "http://127.0.0.1:8002"))
    gateway_timeout_seconds: float = Field(
        default_factory=lambda: float(_env("TALKSTUDIO_GATEWAY_TIMEOUT", "120")),
    )

    max_reanalyses: int = Field(default_factory=lambda: int(_env("TALKSTUDIO_MAX_REANALYSES", "3")))
    # Editor sessions live in process memory; idle ones expire, and each user keeps at most N.
    editor_idle_seconds: float = Field(
        default_factory=lambda: float(_env("TALKSTUDIO_EDITOR_IDLE_SECONDS", "3600")),
    )
    max_editor_sessions: int = Field(default_factory=lambda: int(_env("TALKSTUDIO_MAX_EDITOR_SESSIONS", "10")))
    mcp_user: str = Field(default_factory=lambda: _env("TALKSTUDIO_MCP_USER"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
