"""Unit tests for session_notes.thread — the subject thread view."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from session_notes import codec
from session_notes.models import NoteRecord, ThreadSessionRecord
from session_notes.richtext import RichText
from session_notes.thread import ThreadAggregator, find_in_thread


def _session_record(session_id: str, *note_ids: str) -> ThreadSessionRecord:
    return ThreadSessionRecord(
        session_id=session_id,
        session_name=f"Session {session_id}",
        notes=[
            NoteRecord(
                note_id=note_id,
                note_title=codec.encode_text(f"Topic: {note_id}"),
                note_content=codec.encode(RichText.from_html(f"<p>{note_id} body</p>")),
            )
            for note_id in note_ids
        ],
    )


class TestLoad:
    @pytest.mark.asyncio
    async def test_excludes_current_session(self, gateway):
        gateway.subject_sessions = [
            _session_record("S1", "N1", "N2"),
            _session_record("S2", "N3"),
            _session_record("S3", "N4"),
        ]
        sessions = await ThreadAggregator(gateway).load("asha@example.edu", "S2", "B", "T", "D", "X")

        assert [s.session_id for s in sessions] == ["S1", "S3"]
        assert all(s.session_id != "S2" for s in sessions)
        assert sessions[0].notes[1].note_content.to_html() == "<p>N2 body</p>"
        assert sessions[0].notes[0].note_title == "Topic: N1"

    @pytest.mark.asyncio
    async def test_passes_subject_scope(self, gateway):
        await ThreadAggregator(gateway).load("asha@example.edu", "S2", "B", "T", "D", "X")
        action, params = gateway.calls[0]
        assert action == "getSessionNotesBySubject"
        assert params == {"batch": "B", "term": "T", "domain": "D", "subject": "X"}

    @pytest.mark.asyncio
    async def test_backend_failure_is_silent(self, gateway):
        gateway.fail.add("getSessionNotesBySubject")
        sessions = await ThreadAggregator(gateway).load("asha@example.edu", "S2", "B", "T", "D", "X")
        assert sessions == []

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_silent(self):
        gateway = MagicMock()
        gateway.list_notes_by_subject = AsyncMock(side_effect=RuntimeError("boom"))
        assert await ThreadAggregator(gateway).load("e", "S", "B", "T", "D", "X") == []


class TestFind:
    @pytest.mark.asyncio
    async def test_find_in_thread(self, gateway):
        gateway.subject_sessions = [_session_record("S1", "N1"), _session_record("S3", "N4")]
        sessions = await ThreadAggregator(gateway).load("e", "S2", "B", "T", "D", "X")

        session, note = find_in_thread(sessions, "N4")
        assert session.session_id == "S3"
        assert note.note_id == "N4"
        assert find_in_thread(sessions, "N404") is None
