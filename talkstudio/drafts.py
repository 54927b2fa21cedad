"""Draft reconciliation: decide between saving edits and regenerating prose.

A :class:`DraftSession` owns one speech-in-progress for the length of an
editing session. It keeps a snapshot of the structural brief fields taken at
load time and after every successful save; when those fields have moved, a
save does not persist but asks the caller whether to regenerate first.

States::

    clean --edit--> dirty --request_save (no divergence)--> clean
    dirty --request_save (divergence)--> awaiting_regeneration_decision
    awaiting_regeneration_decision --resolve--> clean | error_retained
    error_retained --resolve--> clean | error_retained

Title and content never count as divergence. A failed save or regeneration
leaves brief and content exactly as they were, so resubmitting is safe.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from talkstudio.demo import Demo, RecordRef, get_demo_speech
from talkstudio.errors import (
    InvalidTransition, OperationInProgress, ReadOnlyRecord, SessionClosed, TalkStudioError, ValidationError,
)
from talkstudio.gateways import SpeechGateway
from talkstudio.models import STATUS_COMPLETED, STATUS_DRAFT
from talkstudio.schemas import SpeechBrief, brief_record_fields, with_field

log = logging.getLogger(__name__)

CLEAN = "clean"
DIRTY = "dirty"
AWAITING_REGENERATION_DECISION = "awaiting_regeneration_decision"
ERROR_RETAINED = "error_retained"

READ_ONLY_MESSAGE = "Demo speeches are read-only. Changes are not saved."


class RecordStore(Protocol):
    def get(self, speech_id: str) -> Any: ...

    def save(self, speech_id: str, fields: dict[str, Any]) -> Any: ...


@dataclass(frozen=True)
class BriefSnapshot:
    topic: str
    key_message: str
    audience_demographics: str
    speaker_background: str
    duration_minutes: int
    tone: str

    @classmethod
    def of(cls, brief: SpeechBrief) -> BriefSnapshot:
        return cls(
            topic=brief.topic,
            key_message=brief.key_message,
            audience_demographics=brief.audience_demographics,
            speaker_background=brief.speaker_background,
            duration_minutes=brief.duration_minutes,
            tone=brief.tone,
        )


def brief_from_record(record: Any) -> SpeechBrief:
    return SpeechBrief(
        title=record.title,
        topic=record.topic,
        key_message=record.key_message,
        audience_demographics=record.audience_demographics,
        speaker_background=record.speaker_background,
        duration_minutes=record.duration_minutes,
        tone=record.tone,
    )


class DraftSession:
    """In-memory state of one speech being edited."""

    def __init__(self, store: RecordStore | None, gateway: SpeechGateway):
        self.store = store
        self.gateway = gateway
        self.ref: RecordRef | None = None
        self.brief = SpeechBrief()
        self.content = ""
        self.status = STATUS_DRAFT
        self.snapshot = BriefSnapshot.of(self.brief)
        self.state = CLEAN
        self.busy = False
        self.closed = False
        self.last_error: str | None = None

    # -- loading ------------------------------------------------------------

    def load(self, ref: RecordRef) -> None:
        """Initialise from a persisted or demo record. Raises NotFound."""
        if isinstance(ref, Demo):
            record = get_demo_speech(ref.id)
            ref = Demo(record.id)
        else:
            record = self._require_store().get(ref.id)
        self.ref = ref
        self.brief = brief_from_record(record)
        self.content = record.content or ""
        self.status = record.status
        self.snapshot = BriefSnapshot.of(self.brief)
        self.state = CLEAN
        self.last_error = None

    @property
    def is_demo(self) -> bool:
        return isinstance(self.ref, Demo)

    # -- editing ------------------------------------------------------------

    def edit(self, field: str, value: Any) -> None:
        """Change one brief field, the title or the content. Never touches the snapshot."""
        self.edit_many({field: value})

    def edit_many(self, changes: dict[str, Any]) -> None:
        """Apply several edits at once; if any is invalid, none is applied."""
        brief, content = self.brief, self.content
        for field, value in changes.items():
            if field == "content":
                if value is not None and not isinstance(value, str):
                    raise ValidationError("Speech content must be text")
                content = value or ""
            else:
                brief = with_field(brief, field, value)
        self.brief, self.content = brief, content
        if changes and self.state == CLEAN:
            self.state = DIRTY

    def has_diverged(self) -> bool:
        return BriefSnapshot.of(self.brief) != self.snapshot

    # -- saving -------------------------------------------------------------

    def request_save(self, mark_complete: bool = False) -> str:
        """Save now, or park in awaiting_regeneration_decision when the brief moved."""
        self._ensure_writable()
        if self.has_diverged():
            self.state = AWAITING_REGENERATION_DECISION
            return self.state
        self._commit(self.brief, self.content, mark_complete)
        return self.state

    def commit(self, mark_complete: bool = False) -> str:
        """Persist the full record as currently edited."""
        self._ensure_writable()
        self._commit(self.brief, self.content, mark_complete)
        return self.state

    async def resolve_regeneration_prompt(self, regenerate: bool, mark_complete: bool = False) -> str:
        """Answer the regeneration prompt raised by :meth:`request_save`."""
        self._ensure_writable()
        if self.state not in (AWAITING_REGENERATION_DECISION, ERROR_RETAINED):
            raise InvalidTransition("There is no pending regeneration decision")

        brief = self.brief
        if not regenerate:
            try:
                self._commit(brief, self.content, mark_complete)
            except TalkStudioError as exc:
                self._retain_error(exc)
                raise
            return self.state

        self.busy = True
        try:
            content = await self.gateway.generate(brief)
        except TalkStudioError as exc:
            if not self.closed:
                self._retain_error(exc)
            raise
        finally:
            self.busy = False

        if self.closed:
            log.info("Discarding regenerated content for %s: editor closed", self.ref)
            raise SessionClosed("The editor was closed before regeneration finished")

        try:
            self._commit(brief, content, mark_complete)
        except TalkStudioError as exc:
            self._retain_error(exc)
            raise
        return self.state

    def close(self) -> None:
        """Stop applying results; anything still in flight is discarded when it returns."""
        self.closed = True

    # -- internals ----------------------------------------------------------

    def _require_store(self) -> RecordStore:
        if self.store is None:
            raise RuntimeError("DraftSession has no store bound")
        return self.store

    def _ensure_writable(self) -> None:
        if self.closed:
            raise SessionClosed("This editing session has been closed")
        if self.busy:
            raise OperationInProgress("A save is already in progress")
        if self.ref is None:
            raise InvalidTransition("No speech is loaded")
        if self.is_demo:
            raise ReadOnlyRecord(READ_ONLY_MESSAGE)

    def _retain_error(self, exc: TalkStudioError) -> None:
        self.state = ERROR_RETAINED
        self.last_error = exc.message

    def _commit(self, brief: SpeechBrief, content: str, mark_complete: bool) -> None:
        status = STATUS_COMPLETED if mark_complete else self.status
        fields = {**brief_record_fields(brief), "content": content, "status": status}
        self.busy = True
        try:
            self._require_store().save(self.ref.id, fields)
        finally:
            self.busy = False
        # Only applied once the store accepted the write.
        self.content = content
        self.status = status
        self.snapshot = BriefSnapshot.of(brief)
        self.state = CLEAN if brief == self.brief else DIRTY
        self.last_error = None
        log.info("Saved speech %s (status=%s)", self.ref.id, self.status)
