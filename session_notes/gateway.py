"""Persistence gateway: the only component that talks to the notes backend.

The backend is an action-dispatched RPC endpoint.  Every call POSTs a JSON
body ``{"action": ..., **params}`` and receives an envelope
``{"success": bool, "data": ..., "error": str}``.  Transport failures, HTTP
errors, malformed bodies and ``success: false`` all surface as
:class:`PersistenceError`.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from session_notes.errors import PersistenceError
from session_notes.images import image_upload_payloads
from session_notes.metrics import GATEWAY_CALLS, GATEWAY_DURATION
from session_notes.models import (
    NoteRecord,
    PinState,
    SavedNote,
    SessionContext,
    StudentProfile,
    ThreadSessionRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30  # seconds


class NotesGateway(ABC):
    """Remote operations consumed by the note editor."""

    @abstractmethod
    async def save_note(
        self,
        student_id: str,
        session: SessionContext,
        encoded_title: str,
        encoded_content: str,
        images: list[str],
        student_name: str = "",
    ) -> SavedNote:
        """Create a note; returns the server id and timestamp."""

    @abstractmethod
    async def list_notes(self, student_id: str, session_id: str) -> list[NoteRecord]:
        """Notes of one session, content still encoded."""

    @abstractmethod
    async def list_notes_by_subject(
        self, student_id: str, batch: str, term: str, domain: str, subject: str
    ) -> list[ThreadSessionRecord]:
        """Every session of a subject with the student's notes in each."""

    @abstractmethod
    async def toggle_pin(self, student_id: str, note_id: str) -> PinState:
        """Flip the pin flag server-side; returns the new state."""

    @abstractmethod
    async def update_tags(self, student_id: str, note_id: str, tags: list[str]) -> list[str]:
        """Replace the tag set; returns the stored tags."""

    @abstractmethod
    async def update_content(self, student_id: str, note_id: str, encoded_content: str) -> str:
        """Replace the note content; returns the stored (encoded) content."""

    @abstractmethod
    async def get_student_profile(self, email: str) -> StudentProfile:
        """Look up a student profile by authenticated email."""

    async def close(self) -> None:
        """Release transport resources."""


class HttpNotesGateway(NotesGateway):
    """httpx implementation of :class:`NotesGateway`."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _call(self, action: str, **params: Any) -> Any:
        """POST one action and unwrap the response envelope."""
        payload = {"action": action}
        payload.update({k: v for k, v in params.items() if v is not None and v != ""})
        start = time.perf_counter()
        status = "error"
        try:
            try:
                # text/plain keeps the request "simple" for script-hosted backends
                resp = await self._get_client().post(
                    self._base_url,
                    content=json.dumps(payload),
                    headers={"Content-Type": "text/plain;charset=utf-8"},
                )
                resp.raise_for_status()
                body = resp.json()
            except httpx.HTTPStatusError as exc:
                logger.error("Backend %s returned HTTP %d", action, exc.response.status_code)
                raise PersistenceError(
                    f"{action} failed: HTTP {exc.response.status_code}"
                ) from exc
            except httpx.HTTPError as exc:
                logger.error("Backend %s request failed: %s", action, exc)
                raise PersistenceError(f"{action} failed: {exc}") from exc
            except ValueError as exc:
                logger.error("Backend %s returned invalid JSON", action)
                raise PersistenceError(f"{action} failed: invalid response body") from exc
            finally:
                GATEWAY_DURATION.labels(action=action).observe(time.perf_counter() - start)

            if not isinstance(body, dict) or not body.get("success"):
                error = body.get("error") if isinstance(body, dict) else None
                raise PersistenceError(error or f"{action} failed")
            status = "success"
            return body.get("data")
        finally:
            GATEWAY_CALLS.labels(action=action, status=status).inc()

    @staticmethod
    def _parse(action: str, model: Any, data: Any) -> Any:
        try:
            return model.model_validate(data)
        except PydanticValidationError as exc:
            raise PersistenceError(f"{action} returned malformed data: {exc}") from exc

    @staticmethod
    def _records(data: Any, key: str) -> list[Any]:
        """Accept a bare list or a ``{key: [...]}`` wrapper."""
        if isinstance(data, dict):
            data = data.get(key)
        return data if isinstance(data, list) else []

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def save_note(
        self,
        student_id: str,
        session: SessionContext,
        encoded_title: str,
        encoded_content: str,
        images: list[str],
        student_name: str = "",
    ) -> SavedNote:
        data = await self._call(
            "saveSessionNote",
            studentId=student_id,
            studentName=student_name,
            noteTitle=encoded_title,
            noteContent=encoded_content,
            images=image_upload_payloads(images),
            **session.model_dump(by_alias=True),
        )
        saved = self._parse("saveSessionNote", SavedNote, data)
        logger.info("Saved note %s for session %s", saved.note_id, session.session_id)
        return saved

    async def list_notes(self, student_id: str, session_id: str) -> list[NoteRecord]:
        data = await self._call(
            "getSessionNotes", studentEmail=student_id, sessionId=session_id
        )
        return [
            self._parse("getSessionNotes", NoteRecord, item)
            for item in self._records(data, "notes")
        ]

    async def list_notes_by_subject(
        self, student_id: str, batch: str, term: str, domain: str, subject: str
    ) -> list[ThreadSessionRecord]:
        data = await self._call(
            "getSessionNotesBySubject",
            studentEmail=student_id,
            batch=batch,
            term=term,
            domain=domain,
            subject=subject,
        )
        return [
            self._parse("getSessionNotesBySubject", ThreadSessionRecord, item)
            for item in self._records(data, "sessions")
        ]

    async def toggle_pin(self, student_id: str, note_id: str) -> PinState:
        data = await self._call("togglePinNote", noteId=note_id, studentId=student_id)
        if not isinstance(data, dict) or "isPinned" not in data:
            raise PersistenceError("togglePinNote returned no pin state")
        value = data["isPinned"]
        if isinstance(value, bool):
            return PinState.YES if value else PinState.NO
        try:
            return PinState(value)
        except ValueError as exc:
            raise PersistenceError(f"togglePinNote returned {value!r}") from exc

    async def update_tags(self, student_id: str, note_id: str, tags: list[str]) -> list[str]:
        data = await self._call(
            "updateNoteTags", noteId=note_id, studentId=student_id, tags=",".join(tags)
        )
        stored = data.get("tags") if isinstance(data, dict) else None
        if stored is None:
            return list(tags)
        if isinstance(stored, str):
            stored = stored.split(",")
        return [t.strip() for t in stored if t and t.strip()]

    async def update_content(self, student_id: str, note_id: str, encoded_content: str) -> str:
        data = await self._call(
            "updateNoteContent",
            noteId=note_id,
            studentId=student_id,
            noteContent=encoded_content,
        )
        if isinstance(data, dict) and isinstance(data.get("content"), str):
            return data["content"]
        return encoded_content

    async def get_student_profile(self, email: str) -> StudentProfile:
        data = await self._call("getStudentProfile", studentEmail=email)
        return self._parse("getStudentProfile", StudentProfile, data)
