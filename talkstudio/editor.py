"""Editor host view: one draft, its analysis panel and the re-analysis quota.

The quota is a soft per-session limit. It lives only in memory, so opening a
new editor session on the same speech starts from zero again.
"""
from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable

from talkstudio.analyzer import validate_speech_content
from talkstudio.config import get_settings
from talkstudio.demo import RecordRef, resolve_ref
from talkstudio.drafts import DraftSession
from talkstudio.errors import NotFound, OperationInProgress, QuotaExceeded, ReadOnlyRecord, SessionClosed
from talkstudio.gateways import SpeechGateway
from talkstudio.models import Analysis
from talkstudio.store import SpeechStore

log = logging.getLogger(__name__)


class ReanalysisQuota:
    def __init__(self, limit: int = 3):
        self.limit = limit
        self.used = 0

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    def check(self) -> None:
        if self.used >= self.limit:
            raise QuotaExceeded(f"You can re-analyze a speech {self.limit} times per editing session.")

    def consume(self) -> None:
        self.used += 1


class EditorSession:
    def __init__(self, draft: DraftSession, quota: ReanalysisQuota, owner_id: str):
        self.id = uuid.uuid4().hex
        self.draft = draft
        self.quota = quota
        self.owner_id = owner_id
        self.analysis: Analysis | None = None
        self.analyzing = False
        self.touched_at = 0.0

    @classmethod
    def open(
        cls,
        ref: RecordRef,
        store: SpeechStore,
        gateway: SpeechGateway,
        max_reanalyses: int | None = None,
    ) -> EditorSession:
        draft = DraftSession(store, gateway)
        draft.load(ref)
        if max_reanalyses is None:
            max_reanalyses = get_settings().max_reanalyses
        editor = cls(draft, ReanalysisQuota(max_reanalyses), store.user_id)
        if not draft.is_demo:
            editor.analysis = store.get_analysis(ref.id)
        return editor

    @property
    def store(self) -> SpeechStore:
        return self.draft.store  # type: ignore[return-value]

    def bind(self, store: SpeechStore) -> None:
        """Attach the request-scoped store before operating on the session."""
        self.draft.store = store

    async def analyze(self) -> Analysis:
        """Analyze the current content and upsert the result.

        The first analysis of a speech is free; each later one consumes quota,
        and an exhausted quota is refused before any network call.
        """
        draft = self.draft
        if draft.closed:
            raise SessionClosed("This editing session has been closed")
        if draft.is_demo or draft.ref is None:
            raise ReadOnlyRecord("Demo speeches cannot be analyzed.")
        if self.analyzing:
            raise OperationInProgress("An analysis is already in progress")
        text = validate_speech_content(draft.content)
        is_reanalysis = self.analysis is not None
        if is_reanalysis:
            self.quota.check()

        self.analyzing = True
        try:
            result = await draft.gateway.analyze(text)
        finally:
            self.analyzing = False
        if draft.closed:
            log.info("Discarding analysis for %s: editor closed", draft.ref)
            raise SessionClosed("The editor was closed before analysis finished")

        self.analysis = self.store.upsert_analysis(draft.ref.id, result)
        if is_reanalysis:
            self.quota.consume()
        return self.analysis

    def close(self) -> None:
        self.draft.close()


class EditorRegistry:
    """In-memory editor sessions keyed by id, visible only to their owner.

    Sessions untouched for ``idle_seconds`` are closed and dropped, and an
    owner opening more than ``max_per_owner`` sessions loses the least
    recently used one.
    """

    def __init__(
        self,
        idle_seconds: float | None = None,
        max_per_owner: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self.idle_seconds = idle_seconds if idle_seconds is not None else settings.editor_idle_seconds
        self.max_per_owner = max_per_owner if max_per_owner is not None else settings.max_editor_sessions
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, EditorSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def open(self, raw_id: str, store: SpeechStore, gateway: SpeechGateway) -> EditorSession:
        editor = EditorSession.open(resolve_ref(raw_id), store, gateway)
        now = self._clock()
        editor.touched_at = now
        with self._lock:
            self._expire(now)
            owned = sorted(
                (e for e in self._sessions.values() if e.owner_id == editor.owner_id),
                key=lambda e: e.touched_at,
            )
            for old in owned[:max(0, len(owned) - self.max_per_owner + 1)]:
                log.info("Evicting editor session %s for user %s", old.id, old.owner_id)
                self._drop(old)
            self._sessions[editor.id] = editor
        return editor

    def get(self, session_id: str, user_id: str, store: SpeechStore | None = None) -> EditorSession:
        now = self._clock()
        with self._lock:
            self._expire(now)
            editor = self._sessions.get(session_id)
            if editor is not None and editor.owner_id == user_id:
                editor.touched_at = now
        if editor is None or editor.owner_id != user_id:
            raise NotFound("Editor session not found")
        if store is not None:
            editor.bind(store)
        return editor

    def _expire(self, now: float) -> None:
        for editor in list(self._sessions.values()):
            if now - editor.touched_at > self.idle_seconds:
                log.info("Expiring idle editor session %s", editor.id)
                self._drop(editor)

    def _drop(self, editor: EditorSession) -> None:
        editor.close()
        self._sessions.pop(editor.id, None)

    def close(self, session_id: str, user_id: str) -> None:
        editor = self.get(session_id, user_id)
        editor.close()
        with self._lock:
            self._sessions.pop(session_id, None)

    def clear(self) -> None:
        with self._lock:
            for editor in self._sessions.values():
                editor.close()
            self._sessions.clear()
