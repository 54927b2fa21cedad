"""Pydantic request/response schemas for the Talk Studio API."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from talkstudio.errors import ValidationError

Tone = Literal["inspiring", "educational", "storytelling", "persuasive", "humorous"]
Duration = Literal[5, 10, 15, 18]
Status = Literal["draft", "completed"]

# Brief fields whose change should offer a regeneration. Title is not one.
DIVERGENCE_FIELDS: tuple[str, ...] = (
    "topic", "key_message", "audience_demographics", "speaker_background",
    "duration_minutes", "tone",
)
BRIEF_FIELDS: tuple[str, ...] = ("title", *DIVERGENCE_FIELDS)


class SpeechBrief(BaseModel):
    """Structured description of a talk, distinct from its prose.

    Accepts both the camelCase gateway wire names (``keyMessage``) and the
    snake_case store names (``key_message``).
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = ""
    topic: str = ""
    key_message: str = ""
    audience_demographics: str = ""
    speaker_background: str = ""
    duration_minutes: Duration = 15
    tone: Tone = "inspiring"

    @field_validator("title", "topic", "key_message", "audience_demographics", "speaker_background",
                     mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v


def with_field(brief: SpeechBrief, field: str, value: Any) -> SpeechBrief:
    """Return a copy of *brief* with one field replaced, validated."""
    if field not in BRIEF_FIELDS:
        raise ValidationError(f"Unknown brief field: {field}")
    try:
        return SpeechBrief.model_validate({**brief.model_dump(), field: value})
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid value for {field}") from exc


def brief_record_fields(brief: SpeechBrief) -> dict[str, Any]:
    """Store column values for *brief*; empty optional text is stored as null."""
    return {
        "title": brief.title,
        "topic": brief.topic,
        "key_message": brief.key_message or None,
        "audience_demographics": brief.audience_demographics or None,
        "speaker_background": brief.speaker_background or None,
        "duration_minutes": brief.duration_minutes,
        "tone": brief.tone,
    }


class SpeechSummary(BaseModel):
    id: str
    title: str
    topic: str
    status: Status
    duration_minutes: int
    created_at: str
    updated_at: str


class SpeechOut(SpeechSummary):
    key_message: str | None = None
    audience_demographics: str | None = None
    speaker_background: str | None = None
    tone: str
    content: str | None = None
    is_demo: bool = False
    word_count: int = 0
    estimated_minutes: int = 0


class SpeechUpdate(BaseModel):
    title: str | None = None
    content: str | None = None
    status: Status | None = None


class SpeechUpload(BaseModel):
    content: str
    title: str = ""
    topic: str = ""
    key_message: str = ""
    audience_demographics: str = ""
    speaker_background: str = ""
    duration_minutes: Duration = 15
    tone: Tone = "inspiring"


class GenerateResponse(BaseModel):
    content: str


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    speech_content: str = Field("", alias="speechContent")


class AnalysisResult(BaseModel):
    logos: int = Field(ge=0, le=100)
    pathos: int = Field(ge=0, le=100)
    ethos: int = Field(ge=0, le=100)
    logos_description: str | None = None
    pathos_description: str | None = None
    ethos_description: str | None = None


class AnalysisOut(AnalysisResult):
    id: str
    speech_id: str
    overall_score: int
    updated_at: str


class StatsOut(BaseModel):
    total: int
    drafts: int
    completed: int


class DemoSpeechOut(BaseModel):
    id: str
    title: str
    topic: str
    duration_minutes: int
    tone: str


class WizardStepOut(BaseModel):
    id: int
    title: str
    description: str
    field_names: list[str]
    complete: bool


class WizardProgressOut(BaseModel):
    step: int
    ready: bool
    steps: list[WizardStepOut]


# ---------------------------------------------------------------------------
# Editor sessions
# ---------------------------------------------------------------------------


class EditorOpen(BaseModel):
    speech_id: str


class EditorSave(BaseModel):
    mark_complete: bool = False


class EditorResolve(BaseModel):
    regenerate: bool
    mark_complete: bool = False


class EditorStateOut(BaseModel):
    session_id: str
    speech_id: str
    is_demo: bool
    state: str
    busy: bool
    awaiting_decision: bool = False
    diverged: bool
    status: Status
    brief: SpeechBrief
    content: str
    last_error: str | None = None
    reanalyses_remaining: int
    analysis: AnalysisOut | None = None
    notice: str | None = None


class EditorEdit(BaseModel):
    """Field changes keyed by brief field name, ``title`` or ``content``."""
    changes: dict[str, Any]
