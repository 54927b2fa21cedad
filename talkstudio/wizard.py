"""Multi-step brief wizards for the create and upload flows."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from talkstudio.errors import ValidationError
from talkstudio.models import STATUS_DRAFT
from talkstudio.schemas import SpeechBrief, brief_record_fields, with_field
from talkstudio.writer import ensure_generatable

UNTITLED = "Untitled Speech"
GENERAL_TOPIC = "General"


@dataclass(frozen=True)
class WizardStep:
    id: int
    title: str
    description: str
    fields: tuple[str, ...]


STEPS: tuple[WizardStep, ...] = (
    WizardStep(1, "Topic & Message", "What's your talk about?", ("title", "topic", "key_message")),
    WizardStep(2, "Your Audience", "Who will be listening?", ("audience_demographics",)),
    WizardStep(3, "Your Story", "What makes you the right speaker?", ("speaker_background",)),
    WizardStep(4, "Duration & Tone", "How should it feel?", ("duration_minutes", "tone")),
)
STEP_IDS = tuple(s.id for s in STEPS)


def get_step(step_id: int) -> WizardStep:
    for step in STEPS:
        if step.id == step_id:
            return step
    raise ValidationError(f"Unknown wizard step: {step_id}")


def can_proceed(brief: SpeechBrief, step_id: int) -> bool:
    if step_id == 1:
        return bool(brief.title.strip() and brief.topic.strip())
    if step_id == 2:
        return bool(brief.audience_demographics.strip())
    if step_id == 3:
        return bool(brief.speaker_background.strip())
    return step_id == 4


def _require_step_complete(brief: SpeechBrief, step_id: int) -> None:
    if not can_proceed(brief, step_id):
        raise ValidationError(f"Please complete '{get_step(step_id).title}' before continuing.")


class BriefWizard:
    """Create flow: walk steps 1 through 4, then generate."""

    def __init__(self, brief: SpeechBrief | None = None):
        self.brief = brief or SpeechBrief()
        self.step = STEP_IDS[0]

    def update(self, field: str, value: Any) -> None:
        self.brief = with_field(self.brief, field, value)

    @property
    def is_last(self) -> bool:
        return self.step == STEP_IDS[-1]

    def next(self) -> int:
        _require_step_complete(self.brief, self.step)
        if not self.is_last:
            self.step += 1
        return self.step

    def back(self) -> int:
        if self.step > STEP_IDS[0]:
            self.step -= 1
        return self.step

    def finish(self) -> SpeechBrief:
        """Return the brief once every step is satisfied and it can be generated."""
        for step_id in STEP_IDS:
            _require_step_complete(self.brief, step_id)
        ensure_generatable(self.brief)
        return self.brief


class UploadWizard:
    """Upload flow: paste text, pick which steps to fill in, visit only those.

    Phases are ``"upload"``, ``"select"``, then the selected step ids in
    ascending order, then ``"done"``.
    """

    def __init__(self):
        self.content = ""
        self.brief = SpeechBrief()
        self.selected: set[int] = set()
        self.phase: str | int = "upload"

    def set_content(self, text: str) -> None:
        self.content = text or ""

    def continue_to_select(self) -> None:
        if not self.content.strip():
            raise ValidationError("Please upload or paste your speech content first.")
        self.phase = "select"

    def toggle_step(self, step_id: int) -> None:
        get_step(step_id)
        self.selected ^= {step_id}

    @property
    def ordered_steps(self) -> list[int]:
        return sorted(self.selected)

    def start_editing(self) -> int:
        if not self.selected:
            raise ValidationError("Please select at least one section to edit.")
        self.phase = self.ordered_steps[0]
        return self.phase

    def update(self, field: str, value: Any) -> None:
        self.brief = with_field(self.brief, field, value)

    def next_step(self) -> int | None:
        if not isinstance(self.phase, int):
            return None
        steps = self.ordered_steps
        idx = steps.index(self.phase)
        return steps[idx + 1] if idx < len(steps) - 1 else None

    def advance(self) -> str | int:
        if not isinstance(self.phase, int):
            raise ValidationError("Select the sections to edit first.")
        _require_step_complete(self.brief, self.phase)
        nxt = self.next_step()
        self.phase = nxt if nxt is not None else "done"
        return self.phase

    def to_record(self) -> dict[str, Any]:
        """Store fields for the uploaded speech, with defaults for skipped steps."""
        if not self.content.strip():
            raise ValidationError("Speech content is required")
        fields = brief_record_fields(self.brief)
        fields["title"] = self.brief.title.strip() or UNTITLED
        fields["topic"] = self.brief.topic.strip() or GENERAL_TOPIC
        fields["content"] = self.content
        fields["status"] = STATUS_DRAFT
        return fields
