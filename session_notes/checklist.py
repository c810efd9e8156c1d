"""Checklist line toggling for To Do List notes.

A line is one ``<li>`` of the note content, addressed by its ordinal in
document order (the same order a renderer walks).  Done lines carry a
strike-through in a distinct color; pending lines carry no style at all.
"""

from __future__ import annotations

from session_notes.errors import ValidationError
from session_notes.models import NoteCard, NoteType
from session_notes.richtext import Element, RichText, Text

DONE_STYLE = "text-decoration: line-through; color: green;"


def list_items(content: RichText) -> list[Element]:
    return list(content.iter("li"))


def is_done(item: Element) -> bool:
    return "line-through" in item.style.get("text-decoration", "")


def ensure_list(content: RichText) -> RichText:
    """Turn plain-text content into an ordered list of pending lines.

    Content that already holds list items is returned unchanged.
    """
    if list_items(content):
        return content
    lines = content.text_lines()
    if not lines:
        return content
    return RichText([Element("ol", children=[Element("li", children=[Text(line)]) for line in lines])])


def toggle_line(content: RichText, line_index: int) -> RichText:
    """Return a copy of ``content`` with one line flipped between done and pending."""
    updated = ensure_list(content.copy())
    items = list_items(updated)
    if not 0 <= line_index < len(items):
        raise ValidationError(f"Checklist line {line_index} does not exist")
    item = items[line_index]
    if is_done(item):
        item.attrs.pop("style", None)
    else:
        item.attrs["style"] = DONE_STYLE
    return updated


def toggle_note_line(note: NoteCard, line_index: int) -> RichText:
    """Toggle a line of a To Do List note; other note types are rejected."""
    if note.note_type is not NoteType.TODO_LIST:
        raise ValidationError(f"Note {note.note_id} is not a to-do list")
    return toggle_line(note.note_content, line_index)


def progress(content: RichText) -> tuple[int, int]:
    """``(done, total)`` line counts."""
    items = list_items(content)
    return sum(1 for item in items if is_done(item)), len(items)
