"""Shared business logic for the Talk Studio API and MCP server."""
from __future__ import annotations

import logging
from typing import Any

from talkstudio.demo import Demo, DemoSpeech, get_demo_speech, resolve_ref
from talkstudio.drafts import AWAITING_REGENERATION_DECISION
from talkstudio.editor import EditorSession
from talkstudio.errors import ReadOnlyRecord, ValidationError
from talkstudio.gateways import SpeechGateway
from talkstudio.models import STATUS_DRAFT, Analysis, Speech
from talkstudio.schemas import SpeechBrief, SpeechUpload, brief_record_fields
from talkstudio.store import SpeechStore
from talkstudio.utils import estimate_minutes, iso, word_count
from talkstudio.wizard import STEPS, BriefWizard, UploadWizard, can_proceed
from talkstudio.writer import ensure_generatable

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Shared field tuples
# ---------------------------------------------------------------------------

SUMMARY_FIELDS = ("id", "title", "topic", "status", "duration_minutes")

DETAIL_FIELDS = ("key_message", "audience_demographics", "speaker_background", "tone", "content")

ANALYSIS_FIELDS = (
    "id", "speech_id", "logos", "pathos", "ethos", "logos_description",
    "pathos_description", "ethos_description", "overall_score",
)

UPDATABLE_FIELDS = ("title", "content", "status")

# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def speech_summary(speech: Speech | DemoSpeech) -> dict:
    return {
        **{f: getattr(speech, f) for f in SUMMARY_FIELDS},
        "created_at": iso(speech.created_at),
        "updated_at": iso(speech.updated_at),
    }


def speech_detail(speech: Speech | DemoSpeech) -> dict:
    base = speech_summary(speech)
    base.update({f: getattr(speech, f) for f in DETAIL_FIELDS})
    base["is_demo"] = isinstance(speech, DemoSpeech)
    base["word_count"] = word_count(speech.content)
    base["estimated_minutes"] = estimate_minutes(speech.content)
    return base


def analysis_dict(analysis: Analysis | None) -> dict | None:
    if analysis is None:
        return None
    return {**{f: getattr(analysis, f) for f in ANALYSIS_FIELDS}, "updated_at": iso(analysis.updated_at)}


def demo_summary(demo: DemoSpeech) -> dict:
    return {
        "id": demo.id, "title": demo.title, "topic": demo.topic,
        "duration_minutes": demo.duration_minutes, "tone": demo.tone,
    }


def editor_state(editor: EditorSession, notice: str | None = None) -> dict:
    draft = editor.draft
    return {
        "session_id": editor.id,
        "speech_id": draft.ref.id if draft.ref else "",
        "is_demo": draft.is_demo,
        "state": draft.state,
        "busy": draft.busy or editor.analyzing,
        "diverged": draft.has_diverged(),
        "status": draft.status,
        "brief": draft.brief,
        "content": draft.content,
        "last_error": draft.last_error,
        "reanalyses_remaining": editor.quota.remaining,
        "analysis": analysis_dict(editor.analysis),
        "awaiting_decision": draft.state == AWAITING_REGENERATION_DECISION,
        "notice": notice,
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def load_speech(store: SpeechStore, raw_id: str) -> Speech | DemoSpeech:
    """Resolve *raw_id* to a demo record or the caller's own speech."""
    ref = resolve_ref(raw_id)
    if isinstance(ref, Demo):
        return get_demo_speech(ref.id)
    return store.get(ref.id)


def stored_analysis(store: SpeechStore, raw_id: str) -> Analysis | None:
    """Demo speeches are never analyzed, so they have no stored analysis."""
    ref = resolve_ref(raw_id)
    if isinstance(ref, Demo):
        return None
    return store.get_analysis(ref.id)


def require_persisted(raw_id: str) -> str:
    ref = resolve_ref(raw_id)
    if isinstance(ref, Demo):
        raise ReadOnlyRecord("Demo speeches are read-only. Changes are not saved.")
    return ref.id


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


async def create_generated_speech(store: SpeechStore, brief: SpeechBrief, gateway: SpeechGateway) -> Speech:
    """Generate prose for *brief* and insert it as a new draft."""
    ensure_generatable(brief)
    content = await gateway.generate(brief)
    speech = store.create({**brief_record_fields(brief), "content": content, "status": STATUS_DRAFT})
    log.info("Generated speech %s (%d words)", speech.id, word_count(content))
    return speech


def create_uploaded_speech(store: SpeechStore, body: SpeechUpload) -> Speech:
    """Store uploaded text as a draft, with wizard defaults for skipped brief fields."""
    wizard = UploadWizard()
    wizard.set_content(body.content)
    for field, value in body.model_dump(exclude={"content"}).items():
        wizard.update(field, value)
    return store.create(wizard.to_record())


def wizard_progress(brief: SpeechBrief) -> dict:
    """Walk the create wizard as far as *brief* allows and report where it stops."""
    wizard = BriefWizard(brief)
    while not wizard.is_last and can_proceed(wizard.brief, wizard.step):
        wizard.next()
    try:
        wizard.finish()
        ready = True
    except ValidationError:
        ready = False
    return {
        "step": wizard.step,
        "ready": ready,
        "steps": [
            {"id": s.id, "title": s.title, "description": s.description,
             "field_names": list(s.fields), "complete": can_proceed(brief, s.id)}
            for s in STEPS
        ],
    }


def update_speech(store: SpeechStore, raw_id: str, updates: dict[str, Any]) -> Speech:
    """Partial update of title, content or status; null values are ignored."""
    speech_id = require_persisted(raw_id)
    fields = {f: updates[f] for f in UPDATABLE_FIELDS if updates.get(f) is not None}
    return store.save(speech_id, fields)


def delete_speech(store: SpeechStore, raw_id: str) -> None:
    store.delete(require_persisted(raw_id))


async def run_analysis(store: SpeechStore, raw_id: str, gateway: SpeechGateway) -> Analysis:
    """Analyze a stored speech and upsert the result. No quota applies here."""
    speech = store.get(require_persisted(raw_id))
    result = await gateway.analyze(speech.content or "")
    return store.upsert_analysis(speech.id, result)
