"""Tag edit buffers.

A buffer holds at most three tags while the user edits; it may be empty, but
an empty buffer can never be committed.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from session_notes.errors import ValidationError

MAX_TAGS = 3

PREDEFINED_TAGS = (
    "Important",
    "Quiz",
    "Mid-Term",
    "End-Term",
    "Revisit / Revise",
    "Exam",
    "Assignment",
    "Group Activity",
    "Practice",
    "Article",
    "Case",
    "URL(s)",
)


@dataclass(frozen=True)
class TagBuffer:
    """Unsaved tag set for one note."""

    note_id: str
    tags: tuple[str, ...] = ()

    @property
    def is_full(self) -> bool:
        return len(self.tags) >= MAX_TAGS

    def suggestions(self) -> list[str]:
        """Predefined tags that can still be added."""
        if self.is_full:
            return []
        return [t for t in PREDEFINED_TAGS if t not in self.tags]


def add_tag(buffer: TagBuffer, tag: str) -> TagBuffer:
    """Append ``tag``; unchanged when full, blank or already present."""
    tag = tag.strip()
    if not tag or buffer.is_full or tag in buffer.tags:
        return buffer
    return replace(buffer, tags=buffer.tags + (tag,))


def remove_tag(buffer: TagBuffer, tag: str) -> TagBuffer:
    """Drop one matching entry."""
    if tag not in buffer.tags:
        return buffer
    tags = list(buffer.tags)
    tags.remove(tag)
    return replace(buffer, tags=tuple(tags))


def buffer_from(note_id: str, tags: list[str]) -> TagBuffer:
    """Build a buffer from a requested tag list, rejecting oversized sets."""
    buffer = TagBuffer(note_id)
    for tag in tags:
        if buffer.is_full and tag.strip() and tag.strip() not in buffer.tags:
            raise ValidationError(f"A note can have at most {MAX_TAGS} tags")
        buffer = add_tag(buffer, tag)
    return buffer


def validate_for_commit(buffer: TagBuffer) -> list[str]:
    """The tags to persist; raises when the count is outside 1..3."""
    if not buffer.tags:
        raise ValidationError("Please add at least 1 tag")
    if len(buffer.tags) > MAX_TAGS:
        raise ValidationError(f"A note can have at most {MAX_TAGS} tags")
    return list(buffer.tags)
