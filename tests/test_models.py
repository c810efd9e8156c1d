"""Unit tests for session_notes.models — wire records and note cards."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from session_notes import codec
from session_notes.models import (
    NoteCard,
    NoteDraft,
    NoteRecord,
    NoteType,
    PinState,
    SavedNote,
    SessionContext,
    ThreadSession,
    ThreadSessionRecord,
)
from session_notes.richtext import RichText


class TestNoteType:
    def test_hyphenated_checklist_spelling(self):
        assert NoteType.parse("To-Do List") is NoteType.TODO_LIST
        assert NoteType.parse("To Do List") is NoteType.TODO_LIST

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            NoteType.parse("Shopping")

    def test_from_title(self):
        assert NoteType.from_title("Question: why?") is NoteType.QUESTION
        assert NoteType.from_title("To-Do List: chores") is NoteType.TODO_LIST
        assert NoteType.from_title("random") is NoteType.TOPIC

    def test_format_title(self):
        assert NoteType.IMPORTANT.format_title("  exam date ") == "Important: exam date"
        assert NoteType.IMPORTANT.format_title("") == "Important"

    def test_every_type_has_style(self):
        for note_type in NoteType:
            assert note_type.color
            assert note_type.icon


class TestNoteRecord:
    def test_csv_fields_split(self):
        record = NoteRecord.model_validate(
            {"noteId": "N1", "images": "a.png, ,b.png", "tags": "Exam,Important", "isPinned": "Yes"}
        )
        assert record.images == ["a.png", "b.png"]
        assert record.tags == ["Exam", "Important"]
        assert record.is_pinned is PinState.YES

    def test_boolean_and_missing_pin(self):
        assert NoteRecord.model_validate({"noteId": "N1", "isPinned": True}).is_pinned is PinState.YES
        assert NoteRecord.model_validate({"noteId": "N1", "isPinned": ""}).is_pinned is PinState.NO

    def test_naive_timestamp_made_aware(self):
        record = NoteRecord.model_validate({"noteId": "N1", "timestamp": "2025-03-01T10:00:00"})
        assert record.timestamp.tzinfo is not None

    def test_missing_id_rejected(self):
        with pytest.raises(ValidationError):
            NoteRecord.model_validate({"noteTitle": "x"})


class TestNoteCard:
    def test_from_record_decodes(self):
        record = NoteRecord(
            note_id="N7",
            note_title=codec.encode_text("To Do List: prep"),
            note_content=codec.encode(RichText.from_html("<ol><li>read</li></ol>")),
            images=["https://drive.google.com/file/d/F1/view"],
            timestamp=datetime(2025, 3, 1, tzinfo=UTC),
            tags=["Exam"],
        )
        card = NoteCard.from_record(record)

        assert card.note_type is NoteType.TODO_LIST
        assert card.note_title == "To Do List: prep"
        assert card.note_content.to_html() == "<ol><li>read</li></ol>"
        assert card.images == ["https://drive.google.com/thumbnail?id=F1&sz=w2000"]
        assert card.tags == ["Exam"]
        assert not card.is_provisional

    def test_from_legacy_record(self):
        record = NoteRecord(note_id="N1", note_title="Topic%3A+Intro", note_content="%3Cp%3Ehi+there%3C%2Fp%3E")
        card = NoteCard.from_record(record)
        assert card.note_title == "Topic: Intro"
        assert card.note_content.text_content() == "hi there"

    def test_content_accepts_markup(self):
        card = NoteCard(note_id="N1", note_content="<p>x</p>")
        assert isinstance(card.note_content, RichText)

    def test_content_instance_kept(self):
        content = RichText.from_html("<p>x</p>")
        card = NoteCard(note_id="N1", note_content=content)
        assert card.note_content is content

    def test_json_dump_uses_markup_and_aliases(self):
        card = NoteCard(note_id="temp-1", note_content="<p>x</p>", is_pinned=True)
        data = card.model_dump(mode="json", by_alias=True)
        assert data["noteContent"] == "<p>x</p>"
        assert data["isPinned"] == "Yes"
        assert card.is_provisional
        assert card.pinned


class TestDraft:
    def test_empty_draft(self):
        assert NoteDraft(title="  ", content="<p> </p>").is_empty()

    def test_title_only_is_not_empty(self):
        assert not NoteDraft(title="x").is_empty()

    def test_formatted_title(self):
        draft = NoteDraft.model_validate({"noteType": "To-Do List", "title": "week 3"})
        assert draft.formatted_title == "To Do List: week 3"


class TestSessions:
    def test_subject_context(self):
        assert not SessionContext(session_id="S1").has_subject_context
        full = SessionContext(session_id="S1", batch="B", term="T", domain="D", subject="X")
        assert full.has_subject_context

    def test_session_dump_uses_camel_case(self):
        data = SessionContext(session_id="S1", start_time="10:00").model_dump(by_alias=True)
        assert data["sessionId"] == "S1"
        assert data["startTime"] == "10:00"

    def test_thread_session_from_record(self):
        record = ThreadSessionRecord.model_validate(
            {
                "sessionId": "S1",
                "sessionName": "Intro",
                "notes": [{"noteId": "N1", "noteTitle": "Topic%3A%20a", "noteContent": ""}],
            }
        )
        thread = ThreadSession.from_record(record)
        assert thread.session_name == "Intro"
        assert thread.find("N1").note_title == "Topic: a"
        assert thread.find("missing") is None

    def test_saved_note_images_optional(self):
        assert SavedNote(note_id="N1").images is None
        assert SavedNote.model_validate({"noteId": "N1", "images": "a,b"}).images == ["a", "b"]
