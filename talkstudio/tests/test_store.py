"""Tests for the owner-scoped content store and the database helpers."""
from __future__ import annotations

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from talkstudio.errors import NotFound, StoreFailure
from talkstudio.models import Analysis, Base, Speech
from talkstudio.schemas import AnalysisResult
from talkstudio.store import SpeechStore

# ---------------------------------------------------------------------------
# Fixtures: in-memory SQLite database
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine():
    eng = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture()
def session(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    sess = SessionLocal()
    try:
        yield sess
    finally:
        sess.close()


@pytest.fixture()
def store(session: Session) -> SpeechStore:
    return SpeechStore(session, "user-a")


@pytest.fixture()
def sample_speech(store: SpeechStore) -> Speech:
    return store.create({
        "title": "The Courage to Listen", "topic": "Leadership", "key_message": None,
        "duration_minutes": 10, "tone": "educational", "content": "Listen first.", "status": "draft",
    })


def _result(logos=70, pathos=60, ethos=80, **descriptions) -> AnalysisResult:
    return AnalysisResult(logos=logos, pathos=pathos, ethos=ethos, **descriptions)


# ---------------------------------------------------------------------------
# Speeches
# ---------------------------------------------------------------------------


class TestSpeeches:
    def test_create_assigns_owner_and_id(self, sample_speech):
        assert sample_speech.user_id == "user-a"
        assert len(sample_speech.id) == 32
        assert sample_speech.created_at is not None

    def test_create_ignores_unknown_fields(self, store):
        speech = store.create({"title": "T", "topic": "X", "user_id": "intruder", "id": "chosen"})
        assert speech.user_id == "user-a"
        assert speech.id != "chosen"

    def test_get_other_owner_is_not_found(self, session, sample_speech):
        with pytest.raises(NotFound):
            SpeechStore(session, "user-b").get(sample_speech.id)

    def test_save_applies_fields(self, store, sample_speech):
        store.save(sample_speech.id, {"title": "Renamed", "duration_minutes": 18})
        speech = store.get(sample_speech.id)
        assert speech.title == "Renamed"
        assert speech.duration_minutes == 18

    def test_save_never_reverts_completed(self, store, sample_speech):
        store.save(sample_speech.id, {"status": "completed"})
        store.save(sample_speech.id, {"status": "draft", "content": "Edited."})
        speech = store.get(sample_speech.id)
        assert speech.status == "completed"
        assert speech.content == "Edited."

    def test_delete_cascades_analysis(self, store, session, sample_speech):
        store.upsert_analysis(sample_speech.id, _result())
        store.delete(sample_speech.id)
        assert session.execute(select(func.count()).select_from(Analysis)).scalar() == 0
        with pytest.raises(NotFound):
            store.get(sample_speech.id)

    def test_delete_other_owner(self, session, sample_speech):
        with pytest.raises(NotFound):
            SpeechStore(session, "user-b").delete(sample_speech.id)

    def test_commit_failure_is_store_failure(self, store, sample_speech):
        with patch.object(store.session, "commit", side_effect=OperationalError("UPDATE", {}, Exception("locked"))):
            with pytest.raises(StoreFailure):
                store.save(sample_speech.id, {"title": "Nope"})


class TestListAndStats:
    @pytest.fixture()
    def speeches(self, store, session):
        base = datetime(2024, 6, 1, tzinfo=UTC)
        rows = [
            ("Climate Hope", "Environment", "draft", 1),
            ("Open Source Lessons", "Software", "completed", 2),
            ("Why We Sleep", "Health and climate of the mind", "draft", 3),
        ]
        for title, topic, status, offset in rows:
            speech = store.create({"title": title, "topic": topic, "status": status})
            speech.updated_at = base + timedelta(days=offset)
        session.commit()
        SpeechStore(session, "user-b").create({"title": "Climate Secret", "topic": "Other"})

    def test_newest_first(self, store, speeches):
        assert [s.title for s in store.list_speeches()] == [
            "Why We Sleep", "Open Source Lessons", "Climate Hope",
        ]

    def test_search_title_and_topic_case_insensitive(self, store, speeches):
        assert [s.title for s in store.list_speeches(search="CLIMATE")] == ["Why We Sleep", "Climate Hope"]

    @pytest.mark.parametrize("status,count", [("all", 3), ("draft", 2), ("completed", 1), (None, 3)])
    def test_status_filter(self, store, speeches, status, count):
        assert len(store.list_speeches(status=status)) == count

    def test_stats_are_owner_scoped(self, store, speeches):
        assert store.stats() == {"total": 3, "drafts": 2, "completed": 1}

    def test_empty_stats(self, session):
        assert SpeechStore(session, "nobody").stats() == {"total": 0, "drafts": 0, "completed": 0}


# ---------------------------------------------------------------------------
# Analyses
# ---------------------------------------------------------------------------


class TestAnalysisUpsert:
    def test_insert_computes_overall(self, store, sample_speech):
        analysis = store.upsert_analysis(sample_speech.id, _result(100, 0, 50, logos_description="Tight."))
        assert (analysis.logos, analysis.pathos, analysis.ethos) == (100, 0, 50)
        assert analysis.overall_score == 50
        assert analysis.logos_description == "Tight."

    def test_second_upsert_replaces_single_row(self, store, session, sample_speech):
        first = store.upsert_analysis(sample_speech.id, _result(10, 10, 10))
        second = store.upsert_analysis(sample_speech.id, _result(90, 90, 90))
        assert session.execute(select(func.count()).select_from(Analysis)).scalar() == 1
        assert second.id == first.id
        assert second.logos == 90
        assert second.overall_score == 90
        assert store.get_analysis(sample_speech.id).ethos == 90

    def test_missing_analysis_is_none(self, store, sample_speech):
        assert store.get_analysis(sample_speech.id) is None

    def test_other_owner_cannot_analyze(self, session, sample_speech):
        with pytest.raises(NotFound):
            SpeechStore(session, "user-b").upsert_analysis(sample_speech.id, _result())


# ---------------------------------------------------------------------------
# Session management in db.py
# ---------------------------------------------------------------------------


class TestSessionManagement:
    def test_init_db_and_session_scope(self, tmp_path):
        import talkstudio.db as db_mod
        orig_engine, orig_session = db_mod._engine, db_mod._SessionLocal
        try:
            db_mod._engine = None
            db_mod.init_db(tmp_path / "nested" / "talks.db")
            assert (tmp_path / "nested" / "talks.db").exists()
            with db_mod.session_scope() as sess:
                SpeechStore(sess, "u").create({"title": "Scoped", "topic": "T"})
            with db_mod.session_scope() as sess:
                assert SpeechStore(sess, "u").stats()["total"] == 1
        finally:
            if db_mod._engine is not None:
                db_mod._engine.dispose()
            db_mod._engine, db_mod._SessionLocal = orig_engine, orig_session

    def test_session_scope_rollback(self, engine):
        import talkstudio.db as db_mod
        orig_engine, orig_session = db_mod._engine, db_mod._SessionLocal
        try:
            db_mod._engine = engine
            db_mod._SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
            with pytest.raises(ValueError):
                with db_mod.session_scope() as sess:
                    sess.add(Speech(user_id="u", title="WillFail", topic="X"))
                    sess.flush()
                    raise ValueError("boom")
            with db_mod.session_scope() as sess:
                assert sess.execute(select(func.count()).select_from(Speech)).scalar() == 0
        finally:
            db_mod._engine, db_mod._SessionLocal = orig_engine, orig_session
