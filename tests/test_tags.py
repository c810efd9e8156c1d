"""Unit tests for session_notes.tags — tag edit buffers."""

from __future__ import annotations

import pytest

from session_notes.errors import ValidationError
from session_notes.tags import (
    MAX_TAGS,
    PREDEFINED_TAGS,
    TagBuffer,
    add_tag,
    buffer_from,
    remove_tag,
    validate_for_commit,
)


class TestBuffer:
    def test_add_trims_and_dedupes(self):
        buffer = add_tag(TagBuffer("N1"), "  Exam ")
        buffer = add_tag(buffer, "Exam")
        assert buffer.tags == ("Exam",)

    def test_blank_ignored(self):
        assert add_tag(TagBuffer("N1"), "   ").tags == ()

    def test_never_exceeds_max(self):
        buffer = TagBuffer("N1")
        for tag in ["a", "b", "c", "d", "e"]:
            buffer = add_tag(buffer, tag)
            assert len(buffer.tags) <= MAX_TAGS
        assert buffer.tags == ("a", "b", "c")
        assert buffer.is_full

    def test_remove(self):
        buffer = TagBuffer("N1", ("a", "b"))
        assert remove_tag(buffer, "a").tags == ("b",)
        assert remove_tag(buffer, "zzz") is buffer

    def test_buffers_are_immutable_values(self):
        buffer = TagBuffer("N1", ("a",))
        add_tag(buffer, "b")
        assert buffer.tags == ("a",)

    def test_suggestions(self):
        buffer = TagBuffer("N1", ("Exam",))
        suggestions = buffer.suggestions()
        assert "Exam" not in suggestions
        assert len(suggestions) == len(PREDEFINED_TAGS) - 1
        assert TagBuffer("N1", ("a", "b", "c")).suggestions() == []


class TestCommit:
    def test_empty_buffer_blocked(self):
        with pytest.raises(ValidationError, match="at least 1 tag"):
            validate_for_commit(TagBuffer("N1"))

    def test_valid_buffer(self):
        assert validate_for_commit(TagBuffer("N1", ("Exam", "Important"))) == ["Exam", "Important"]

    def test_oversized_buffer_blocked(self):
        with pytest.raises(ValidationError):
            validate_for_commit(TagBuffer("N1", ("a", "b", "c", "d")))

    def test_buffer_from_request(self):
        assert buffer_from("N1", ["Exam", " Exam", "Quiz"]).tags == ("Exam", "Quiz")

    def test_buffer_from_too_many(self):
        with pytest.raises(ValidationError):
            buffer_from("N1", ["a", "b", "c", "d"])
