"""Shared fixtures: an in-memory notes backend and a controllable clock."""

from __future__ import annotations

import asyncio
import itertools
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

import pytest

from session_notes.errors import PersistenceError
from session_notes.gateway import NotesGateway
from session_notes.models import (
    NoteRecord,
    PinState,
    SavedNote,
    SessionContext,
    Student,
    StudentProfile,
    ThreadSessionRecord,
)
from session_notes.save_lock import SaveLockCountdown

BASE_TIME = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)


class FakeClock:
    """Callable wall clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway(NotesGateway):
    """In-memory backend with the same observable behaviour as the real one.

    ``fail`` holds action names that should raise :class:`PersistenceError`;
    setting ``hold`` to an unset event parks every call until it is set.
    """

    def __init__(self) -> None:
        self.records: dict[str, tuple[str, NoteRecord]] = {}
        self.subject_sessions: list[ThreadSessionRecord] = []
        self.profiles: dict[str, StudentProfile] = {}
        self.fail: set[str] = set()
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.hold: Optional[asyncio.Event] = None
        self._ids = itertools.count(1)
        self._minutes = itertools.count(1)

    async def _record(self, action: str, **params: Any) -> None:
        self.calls.append((action, params))
        if self.hold is not None:
            await self.hold.wait()
        if action in self.fail:
            raise PersistenceError(f"{action} failed")

    def actions(self) -> list[str]:
        return [action for action, _ in self.calls]

    def add_record(self, session_id: str, record: NoteRecord) -> NoteRecord:
        self.records[record.note_id] = (session_id, record)
        return record

    # --- NotesGateway ---

    async def save_note(
        self,
        student_id: str,
        session: SessionContext,
        encoded_title: str,
        encoded_content: str,
        images: list[str],
        student_name: str = "",
    ) -> SavedNote:
        await self._record(
            "saveSessionNote",
            student_id=student_id,
            session_id=session.session_id,
            title=encoded_title,
            content=encoded_content,
        )
        note_id = f"N{next(self._ids)}"
        timestamp = BASE_TIME + timedelta(minutes=next(self._minutes))
        self.add_record(
            session.session_id,
            NoteRecord(
                note_id=note_id,
                note_title=encoded_title,
                note_content=encoded_content,
                images=images,
                timestamp=timestamp,
            ),
        )
        return SavedNote(note_id=note_id, timestamp=timestamp)

    async def list_notes(self, student_id: str, session_id: str) -> list[NoteRecord]:
        await self._record("getSessionNotes", student_id=student_id, session_id=session_id)
        return [
            record.model_copy(deep=True)
            for owner, record in self.records.values()
            if owner == session_id
        ]

    async def list_notes_by_subject(
        self, student_id: str, batch: str, term: str, domain: str, subject: str
    ) -> list[ThreadSessionRecord]:
        await self._record(
            "getSessionNotesBySubject",
            batch=batch,
            term=term,
            domain=domain,
            subject=subject,
        )
        return [s.model_copy(deep=True) for s in self.subject_sessions]

    async def toggle_pin(self, student_id: str, note_id: str) -> PinState:
        await self._record("togglePinNote", note_id=note_id)
        _, record = self.records[note_id]
        record.is_pinned = record.is_pinned.flipped()
        return record.is_pinned

    async def update_tags(self, student_id: str, note_id: str, tags: list[str]) -> list[str]:
        await self._record("updateNoteTags", note_id=note_id, tags=list(tags))
        _, record = self.records[note_id]
        record.tags = list(tags)
        return list(tags)

    async def update_content(self, student_id: str, note_id: str, encoded_content: str) -> str:
        await self._record("updateNoteContent", note_id=note_id, content=encoded_content)
        if note_id in self.records:
            self.records[note_id][1].note_content = encoded_content
        return encoded_content

    async def get_student_profile(self, email: str) -> StudentProfile:
        await self._record("getStudentProfile", email=email)
        if email not in self.profiles:
            raise PersistenceError("Student not found")
        return self.profiles[email]


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def save_lock(clock: FakeClock) -> SaveLockCountdown:
    """A save-lock store that never connected to Redis (in-memory only)."""
    return SaveLockCountdown("redis://localhost:6379", clock=clock)


@pytest.fixture()
def session() -> SessionContext:
    return SessionContext(
        session_id="S2",
        session_name="Valuation Basics",
        batch="PGP-25",
        term="Term 2",
        domain="Finance",
        subject="Corporate Finance",
    )


@pytest.fixture()
def student() -> Student:
    return Student(email="asha@example.edu", name="Asha", student_id="asha", batch="PGP-25")
