"""FastAPI application for the session notes editor.

Endpoints:
  POST   /editors                                         — Open an editor for a live session
  DELETE /editors/{id}                                    — Close an editor
  GET    /editors/{id}/notes                              — Current-session notes, display order
  POST   /editors/{id}/notes                              — Save a new note (optimistic)
  PUT    /editors/{id}/notes/{note_id}/content            — Replace note content
  POST   /editors/{id}/notes/{note_id}/pin                — Toggle pin
  POST   /editors/{id}/notes/{note_id}/lines/{i}/toggle   — Toggle a checklist line
  GET    /editors/{id}/notes/{note_id}/tags               — Tag buffer and suggestions
  PUT    /editors/{id}/notes/{note_id}/tags               — Commit tags
  GET    /editors/{id}/notes/{note_id}/lock               — Save-lock seconds remaining
  GET    /editors/{id}/thread                             — Notes from other sessions of the subject
  GET    /editors/{id}/search                             — Search current and thread notes
  GET    /editors/{id}/todos                              — Checklist progress
  GET    /editors/{id}/notifications                      — Drain pending toasts
  GET    /images/fallback                                 — Next URL for a broken image
  GET    /health                                          — Service health
  GET    /metrics                                         — Prometheus metrics
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware

from session_notes.checklist import progress
from session_notes.config import settings
from session_notes.editor import NoteEditor
from session_notes.errors import (
    NotFoundError,
    PersistenceError,
    PinLimitError,
    SaveLockedError,
    SessionNotesError,
    ValidationError,
)
from session_notes.gateway import HttpNotesGateway
from session_notes.images import ImageFallback
from session_notes.metrics import HTTP_DURATION, HTTP_REQUESTS, OPEN_EDITORS
from session_notes.models import NoteCard, NoteDraft, SessionContext
from session_notes.richtext import RichText
from session_notes.save_lock import SaveLockCountdown
from session_notes.students import resolve_student
from session_notes.tags import PREDEFINED_TAGS, buffer_from

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger(__name__)

# --- Global instances ---
gateway = HttpNotesGateway(settings.notes_backend_url, settings.backend_timeout)
save_locks = SaveLockCountdown(settings.redis_url)
image_fallback = ImageFallback(settings.image_placeholder_url)
editors: dict[str, NoteEditor] = {}

# Endpoints excluded from HTTP metrics to avoid cardinality explosion
_METRICS_EXCLUDE = {"/metrics", "/openapi.json", "/docs", "/redoc"}

_ERROR_STATUS: dict[type[SessionNotesError], int] = {
    ValidationError: 422,
    NotFoundError: 404,
    SaveLockedError: 409,
    PinLimitError: 409,
    PersistenceError: 502,
}


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record HTTP request count and duration for Prometheus."""

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in _METRICS_EXCLUDE:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        # route template, not the raw path, keeps note ids out of the labels
        route = request.scope.get("route")
        endpoint = getattr(route, "path", path)
        HTTP_REQUESTS.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        HTTP_DURATION.labels(endpoint=endpoint).observe(elapsed)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: connect the save-lock store. Shutdown: flush editors."""
    logger.info("Connecting to Redis save-lock store...")
    await save_locks.connect()
    logger.info("Notes backend: %s", settings.notes_backend_url)
    yield
    for editor_id in list(editors):
        await _close_editor(editor_id)
    await gateway.close()
    await save_locks.close()
    logger.info("Session notes service shut down.")


app = FastAPI(title="Session Notes", version="1.0.0", lifespan=lifespan)

app.add_middleware(MetricsMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SessionNotesError)
async def notes_error_handler(request: Request, exc: SessionNotesError) -> JSONResponse:
    status = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 500
    )
    body: dict[str, Any] = {"error": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, SaveLockedError):
        body["remaining"] = exc.remaining
    return JSONResponse(status_code=status, content=body)


# --- Request models ---


class OpenEditorRequest(BaseModel):
    """Opening an editor: the live session plus whatever identity the host knows."""

    session: SessionContext
    email: Optional[str] = None
    name: Optional[str] = None


class ContentRequest(BaseModel):
    content: str


class TagsRequest(BaseModel):
    tags: list[str] = Field(default_factory=list)


# --- Helpers ---


def _card(note: NoteCard) -> dict[str, Any]:
    return note.model_dump(mode="json", by_alias=True)


def _editor(editor_id: str) -> NoteEditor:
    editor = editors.get(editor_id)
    if editor is None:
        raise NotFoundError(f"Editor {editor_id} not found")
    return editor


async def _close_editor(editor_id: str) -> None:
    editor = editors.pop(editor_id, None)
    if editor is None:
        return
    await editor.close()
    OPEN_EDITORS.dec()
    logger.info("Editor %s closed", editor_id)


# --- Editor endpoints ---


@app.post("/editors", status_code=201)
async def open_editor(request: OpenEditorRequest) -> dict[str, Any]:
    """Resolve the student, load the session's notes and start the thread load."""
    student = await resolve_student(
        gateway, request.session.batch, email=request.email, name=request.name
    )
    editor = NoteEditor(request.session, student, gateway, save_locks)
    await editor.start()

    editor_id = uuid.uuid4().hex
    editors[editor_id] = editor
    OPEN_EDITORS.inc()
    logger.info("Editor %s opened for %s in %s", editor_id, student.email, request.session.session_id)
    return {
        "editorId": editor_id,
        "student": student.model_dump(by_alias=True),
        "notes": [_card(n) for n in editor.list_notes()],
    }


@app.delete("/editors/{editor_id}", status_code=204)
async def close_editor(editor_id: str) -> Response:
    _editor(editor_id)
    await _close_editor(editor_id)
    return Response(status_code=204)


@app.get("/editors/{editor_id}/notes")
async def list_notes(editor_id: str, reload: bool = False) -> list[dict[str, Any]]:
    """Current-session notes, pinned first then newest first."""
    editor = _editor(editor_id)
    notes = await editor.reload_notes() if reload else editor.list_notes()
    return [_card(n) for n in notes]


@app.post("/editors/{editor_id}/notes", status_code=201)
async def save_note(editor_id: str, draft: NoteDraft, wait: bool = False) -> dict[str, Any]:
    """Insert the note immediately; the backend save runs in the background."""
    note = await _editor(editor_id).save_note(draft, wait=wait)
    return _card(note)


@app.put("/editors/{editor_id}/notes/{note_id}/content")
async def update_content(
    editor_id: str, note_id: str, request: ContentRequest, wait: bool = False
) -> dict[str, Any]:
    note = await _editor(editor_id).update_content(
        note_id, RichText.from_html(request.content), wait=wait
    )
    return _card(note)


@app.post("/editors/{editor_id}/notes/{note_id}/pin")
async def toggle_pin(editor_id: str, note_id: str, wait: bool = False) -> dict[str, Any]:
    note = await _editor(editor_id).toggle_pin(note_id, wait=wait)
    return _card(note)


@app.post("/editors/{editor_id}/notes/{note_id}/lines/{line_index}/toggle")
async def toggle_line(
    editor_id: str, note_id: str, line_index: int, wait: bool = False
) -> dict[str, Any]:
    note = await _editor(editor_id).toggle_line(note_id, line_index, wait=wait)
    return _card(note)


@app.get("/editors/{editor_id}/notes/{note_id}/tags")
async def get_tags(editor_id: str, note_id: str) -> dict[str, Any]:
    buffer = _editor(editor_id).open_tags(note_id)
    return {
        "noteId": note_id,
        "tags": list(buffer.tags),
        "suggestions": buffer.suggestions(),
        "predefined": list(PREDEFINED_TAGS),
    }


@app.put("/editors/{editor_id}/notes/{note_id}/tags")
async def commit_tags(
    editor_id: str, note_id: str, request: TagsRequest, wait: bool = False
) -> dict[str, Any]:
    """Commit 1 to 3 tags to a current-session or thread note."""
    buffer = buffer_from(note_id, request.tags)
    note = await _editor(editor_id).commit_tags(note_id, buffer, wait=wait)
    return _card(note)


@app.get("/editors/{editor_id}/notes/{note_id}/lock")
async def lock_remaining(editor_id: str, note_id: str) -> dict[str, Any]:
    remaining = await _editor(editor_id).lock_remaining(note_id)
    return {"noteId": note_id, "remaining": remaining, "locked": remaining > 0}


@app.get("/editors/{editor_id}/thread")
async def thread(editor_id: str) -> list[dict[str, Any]]:
    """Notes from the subject's other sessions; empty until the background load lands."""
    editor = _editor(editor_id)
    return [s.model_dump(mode="json", by_alias=True) for s in editor.thread_sessions]


@app.get("/editors/{editor_id}/search")
async def search(editor_id: str, q: str = "") -> list[dict[str, Any]]:
    return [_card(n) for n in _editor(editor_id).search(q)]


@app.get("/editors/{editor_id}/todos")
async def todos(editor_id: str) -> list[dict[str, Any]]:
    results = []
    for note in _editor(editor_id).todo_notes():
        done, total = progress(note.note_content)
        results.append({"noteId": note.note_id, "title": note.note_title, "done": done, "total": total})
    return results


@app.get("/editors/{editor_id}/notifications")
async def notifications(editor_id: str) -> list[dict[str, Any]]:
    return [
        {"level": n.level, "message": n.message, "createdAt": n.created_at.isoformat()}
        for n in _editor(editor_id).notifier.drain()
    ]


# --- Service endpoints ---


@app.get("/images/fallback")
async def next_image_source(url: str) -> dict[str, Any]:
    """The next URL shape to try after ``url`` failed to render."""
    return {"url": url, "next": image_fallback.next_source(url)}


@app.get("/health")
async def health() -> dict[str, Any]:
    return {
        "service": "healthy",
        "save_locks": "redis" if save_locks.available else "memory",
        "open_editors": len(editors),
    }


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
