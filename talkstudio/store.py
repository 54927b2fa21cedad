"""Content store: owner-scoped access to speeches and their analyses.

Every write commits on its own and is treated as atomic. A rejected write is
rolled back and surfaced as :class:`StoreFailure`; the caller's in-memory
state is never touched here.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from talkstudio.analyzer import overall_score
from talkstudio.errors import NotFound, StoreFailure
from talkstudio.models import STATUS_COMPLETED, STATUS_DRAFT, Analysis, Speech
from talkstudio.schemas import AnalysisResult

log = logging.getLogger(__name__)

RECORD_FIELDS = (
    "title", "topic", "key_message", "audience_demographics", "speaker_background",
    "duration_minutes", "tone", "content", "status",
)

_ANALYSIS_UPDATE_FIELDS = (
    "logos", "pathos", "ethos", "logos_description", "pathos_description",
    "ethos_description", "overall_score", "updated_at",
)


class SpeechStore:
    """Speech and analysis persistence for a single account."""

    def __init__(self, session: Session, user_id: str):
        self.session = session
        self.user_id = user_id

    # -- internals ----------------------------------------------------------

    def _commit(self, action: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            log.warning("Store %s failed for user %s: %s", action, self.user_id, exc)
            raise StoreFailure(f"Could not {action} speech. Please try again.") from exc

    # -- speeches -----------------------------------------------------------

    def get(self, speech_id: str) -> Speech:
        speech = self.session.execute(
            select(Speech).where(Speech.id == speech_id, Speech.user_id == self.user_id)
        ).scalars().first()
        if speech is None:
            raise NotFound("Speech not found")
        return speech

    def list_speeches(self, search: str | None = None, status: str | None = None) -> list[Speech]:
        query = select(Speech).where(Speech.user_id == self.user_id)
        if status and status != "all":
            query = query.where(Speech.status == status)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(or_(Speech.title.ilike(pattern), Speech.topic.ilike(pattern)))
        query = query.order_by(Speech.updated_at.desc())
        return list(self.session.execute(query).scalars().all())

    def create(self, fields: dict[str, Any]) -> Speech:
        speech = Speech(user_id=self.user_id, **{k: v for k, v in fields.items() if k in RECORD_FIELDS})
        self.session.add(speech)
        self._commit("create")
        log.info("Created speech %s for user %s", speech.id, self.user_id)
        return speech

    def save(self, speech_id: str, fields: dict[str, Any]) -> Speech:
        """Write *fields* onto an existing speech. ``completed`` never reverts to ``draft``."""
        speech = self.get(speech_id)
        was_completed = speech.status == STATUS_COMPLETED
        for key, value in fields.items():
            if key not in RECORD_FIELDS:
                continue
            if key == "status" and was_completed:
                continue
            setattr(speech, key, value)
        self._commit("save")
        return speech

    def delete(self, speech_id: str) -> None:
        speech = self.get(speech_id)
        self.session.delete(speech)
        self._commit("delete")

    def stats(self) -> dict[str, int]:
        statuses = Counter(
            self.session.execute(select(Speech.status).where(Speech.user_id == self.user_id)).scalars()
        )
        return {
            "total": sum(statuses.values()),
            "drafts": statuses[STATUS_DRAFT],
            "completed": statuses[STATUS_COMPLETED],
        }

    # -- analyses -----------------------------------------------------------

    def get_analysis(self, speech_id: str) -> Analysis | None:
        self.get(speech_id)
        return self.session.execute(
            select(Analysis).where(Analysis.speech_id == speech_id)
            .execution_options(populate_existing=True)
        ).scalars().first()

    def upsert_analysis(self, speech_id: str, result: AnalysisResult) -> Analysis:
        """Insert or replace the one analysis row for *speech_id*."""
        self.get(speech_id)
        now = datetime.now(UTC)
        values = result.model_dump()
        values["overall_score"] = overall_score(result.logos, result.pathos, result.ethos)
        stmt = sqlite_insert(Analysis).values(speech_id=speech_id, created_at=now, updated_at=now, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Analysis.speech_id],
            set_={k: stmt.excluded[k] for k in _ANALYSIS_UPDATE_FIELDS},
        )
        try:
            self.session.execute(stmt)
        except SQLAlchemyError as exc:
            self.session.rollback()
            log.warning("Analysis upsert failed for speech %s: %s", speech_id, exc)
            raise StoreFailure("Could not save analysis. Please try again.") from exc
        self._commit("analyze")
        return self.get_analysis(speech_id)  # type: ignore[return-value]
