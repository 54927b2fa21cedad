from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Generator

from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from talkstudio import services
from talkstudio.db import get_session, init_db
from talkstudio.demo import list_demo_speeches
from talkstudio.editor import EditorRegistry
from talkstudio.errors import ReadOnlyRecord, TalkStudioError, ValidationError
from talkstudio.gateways import LocalGateway, SpeechGateway
from talkstudio.identity import AuthContext, current_user
from talkstudio.schemas import (
    AnalysisOut,
    AnalysisResult,
    AnalyzeRequest,
    DemoSpeechOut,
    EditorEdit,
    EditorOpen,
    EditorResolve,
    EditorSave,
    EditorStateOut,
    GenerateResponse,
    SpeechBrief,
    SpeechOut,
    SpeechSummary,
    SpeechUpdate,
    SpeechUpload,
    StatsOut,
    WizardProgressOut,
)
from talkstudio.store import SpeechStore

log = logging.getLogger(__name__)

editors = EditorRegistry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield
    editors.clear()


app = FastAPI(
    title="Talk Studio",
    version="0.1.0",
    description=(
        "Write, refine and analyze talks. Generate a speech from a structured brief, "
        "edit it with regeneration prompts when the brief changes, and score it on "
        "logos, pathos and ethos. All endpoints return JSON and require a bearer token."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Speeches", "description": "Create, browse, update and delete your speeches."},
        {"name": "Gateways", "description": "LLM-backed speech generation and rhetorical analysis."},
        {"name": "Editor", "description": "Server-held editing sessions with draft reconciliation."},
        {"name": "Demo", "description": "Read-only example speeches."},
        {"name": "Wizard", "description": "Step-by-step brief completion for the create flow."},
        {"name": "Stats", "description": "Dashboard counts."},
    ],
)


@app.exception_handler(TalkStudioError)
async def talkstudio_error_handler(request: Request, exc: TalkStudioError):
    if exc.status_code >= 500:
        log.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def speech_store(
    session: Session = Depends(db_session), user: AuthContext = Depends(current_user),
) -> SpeechStore:
    return SpeechStore(session, user.user_id)


def get_gateway() -> SpeechGateway:
    return LocalGateway()


def get_editors() -> EditorRegistry:
    return editors


# ---------------------------------------------------------------------------
# Routes: Speeches
# ---------------------------------------------------------------------------


@app.get("/api/speeches", response_model=list[SpeechSummary],
         tags=["Speeches"], summary="List your speeches, newest first")
async def list_speeches(
    search: str | None = Query(None, description="Case-insensitive match on title or topic"),
    status: str = Query("all", description="all, draft or completed"),
    store: SpeechStore = Depends(speech_store),
):
    return [services.speech_summary(s) for s in store.list_speeches(search=search, status=status)]


@app.post("/api/speeches/generate", response_model=SpeechOut, status_code=201,
          tags=["Speeches", "Gateways"], summary="Generate a speech from a brief and save it as a draft")
async def generate_and_store(
    body: SpeechBrief,
    store: SpeechStore = Depends(speech_store),
    gateway: SpeechGateway = Depends(get_gateway),
):
    speech = await services.create_generated_speech(store, body, gateway)
    return services.speech_detail(speech)


@app.post("/api/speeches/upload", response_model=SpeechOut, status_code=201,
          tags=["Speeches"], summary="Save an existing speech text as a new draft")
async def upload_speech(body: SpeechUpload, store: SpeechStore = Depends(speech_store)):
    return services.speech_detail(services.create_uploaded_speech(store, body))


@app.post("/api/speeches/upload-file", response_model=SpeechOut, status_code=201,
          tags=["Speeches"], summary="Upload a plain-text speech file")
async def upload_speech_file(
    file: UploadFile = File(...),
    title: str = Form(""),
    topic: str = Form(""),
    store: SpeechStore = Depends(speech_store),
):
    raw = await file.read()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError("Only plain-text UTF-8 files are supported") from exc
    body = SpeechUpload(content=text, title=title, topic=topic)
    return services.speech_detail(services.create_uploaded_speech(store, body))


@app.get("/api/speeches/{speech_id}", response_model=SpeechOut,
         tags=["Speeches", "Demo"], summary="Get one of your speeches or a demo speech")
async def get_speech(speech_id: str, store: SpeechStore = Depends(speech_store)):
    return services.speech_detail(services.load_speech(store, speech_id))


@app.put("/api/speeches/{speech_id}", response_model=SpeechOut,
         tags=["Speeches"], summary="Update title, content or status (completed never reverts)")
async def update_speech(speech_id: str, body: SpeechUpdate, store: SpeechStore = Depends(speech_store)):
    return services.speech_detail(services.update_speech(store, speech_id, body.model_dump()))


@app.delete("/api/speeches/{speech_id}", tags=["Speeches"], summary="Delete a speech and its analysis")
async def delete_speech(speech_id: str, store: SpeechStore = Depends(speech_store)):
    services.delete_speech(store, speech_id)
    return {"ok": True}


@app.get("/api/speeches/{speech_id}/analysis", response_model=AnalysisOut | None,
         tags=["Speeches"], summary="Get the stored analysis for a speech")
async def get_speech_analysis(speech_id: str, store: SpeechStore = Depends(speech_store)):
    return services.analysis_dict(services.stored_analysis(store, speech_id))


@app.get("/api/stats", response_model=StatsOut, tags=["Stats"], summary="Count your speeches by status")
async def get_stats(store: SpeechStore = Depends(speech_store)):
    return store.stats()


@app.get("/api/demo-speeches", response_model=list[DemoSpeechOut],
         tags=["Demo"], summary="List the read-only demo speeches")
async def demo_speeches():
    return [services.demo_summary(d) for d in list_demo_speeches()]


# ---------------------------------------------------------------------------
# Routes: Gateways
# ---------------------------------------------------------------------------


@app.post("/api/generate-speech", response_model=GenerateResponse,
          tags=["Gateways"], summary="Generate plain speech text from a brief")
async def generate_speech_route(
    body: SpeechBrief,
    user: AuthContext = Depends(current_user),
    gateway: SpeechGateway = Depends(get_gateway),
):
    return {"content": await gateway.generate(body)}


@app.post("/api/analyze-speech", response_model=AnalysisResult,
          tags=["Gateways"], summary="Score speech text on logos, pathos and ethos")
async def analyze_speech_route(
    body: AnalyzeRequest,
    user: AuthContext = Depends(current_user),
    gateway: SpeechGateway = Depends(get_gateway),
):
    return await gateway.analyze(body.speech_content)


# ---------------------------------------------------------------------------
# Routes: Wizard
# ---------------------------------------------------------------------------


@app.post("/api/wizard/progress", response_model=WizardProgressOut,
          tags=["Wizard"], summary="Report which create-wizard step a brief has reached")
async def wizard_progress(body: SpeechBrief, user: AuthContext = Depends(current_user)):
    return services.wizard_progress(body)


# ---------------------------------------------------------------------------
# Routes: Editor sessions
# ---------------------------------------------------------------------------


@app.post("/api/editor/sessions", response_model=EditorStateOut, status_code=201,
          tags=["Editor"], summary="Open an editing session for a speech or demo")
async def open_editor(
    body: EditorOpen,
    store: SpeechStore = Depends(speech_store),
    gateway: SpeechGateway = Depends(get_gateway),
    registry: EditorRegistry = Depends(get_editors),
):
    return services.editor_state(registry.open(body.speech_id, store, gateway))


@app.get("/api/editor/sessions/{session_id}", response_model=EditorStateOut,
         tags=["Editor"], summary="Current state of an editing session")
async def get_editor(
    session_id: str,
    user: AuthContext = Depends(current_user),
    registry: EditorRegistry = Depends(get_editors),
):
    return services.editor_state(registry.get(session_id, user.user_id))


@app.patch("/api/editor/sessions/{session_id}", response_model=EditorStateOut,
           tags=["Editor"], summary="Edit brief fields, title or content")
async def edit_editor(
    session_id: str,
    body: EditorEdit,
    store: SpeechStore = Depends(speech_store),
    registry: EditorRegistry = Depends(get_editors),
):
    editor = registry.get(session_id, store.user_id, store)
    editor.draft.edit_many(body.changes)
    return services.editor_state(editor)


@app.post("/api/editor/sessions/{session_id}/save", response_model=EditorStateOut,
          tags=["Editor"], summary="Save, or ask whether to regenerate when the brief changed")
async def save_editor(
    session_id: str,
    body: EditorSave | None = None,
    store: SpeechStore = Depends(speech_store),
    registry: EditorRegistry = Depends(get_editors),
):
    editor = registry.get(session_id, store.user_id, store)
    try:
        editor.draft.request_save(mark_complete=body.mark_complete if body else False)
    except ReadOnlyRecord as exc:
        # Demo saves are informational: nothing is written and the edits stay in the session.
        return services.editor_state(editor, notice=exc.message)
    return services.editor_state(editor)


@app.post("/api/editor/sessions/{session_id}/resolve", response_model=EditorStateOut,
          tags=["Editor"], summary="Answer the regeneration prompt")
async def resolve_editor(
    session_id: str,
    body: EditorResolve,
    store: SpeechStore = Depends(speech_store),
    registry: EditorRegistry = Depends(get_editors),
):
    editor = registry.get(session_id, store.user_id, store)
    await editor.draft.resolve_regeneration_prompt(body.regenerate, mark_complete=body.mark_complete)
    return services.editor_state(editor)


@app.post("/api/editor/sessions/{session_id}/analyze", response_model=EditorStateOut,
          tags=["Editor", "Gateways"], summary="Analyze the current content (re-analysis is rationed)")
async def analyze_editor(
    session_id: str,
    store: SpeechStore = Depends(speech_store),
    registry: EditorRegistry = Depends(get_editors),
):
    editor = registry.get(session_id, store.user_id, store)
    await editor.analyze()
    return services.editor_state(editor)


@app.delete("/api/editor/sessions/{session_id}", tags=["Editor"], summary="Close an editing session")
async def close_editor(
    session_id: str,
    user: AuthContext = Depends(current_user),
    registry: EditorRegistry = Depends(get_editors),
):
    registry.close(session_id, user.user_id)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    uvicorn.run("talkstudio.app:app", host="127.0.0.1", port=8002, reload=True)


if __name__ == "__main__":
    main()
