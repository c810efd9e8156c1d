"""In-memory note collection for the active session.

Notes live in an arena ordered newest-insert first.  A provisional note keeps
its object identity when it is confirmed: only its identifier field and the
server-owned fields are rewritten in place.
"""

from __future__ import annotations

import itertools
import logging
import time
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any, Optional, Union

from session_notes.errors import NotFoundError
from session_notes.models import TEMP_PREFIX, NoteCard, NoteDraft, PinState
from session_notes.richtext import RichText

logger = logging.getLogger(__name__)


class NoteStore:
    """Current-session notes with optimistic insert, confirm and rollback."""

    def __init__(self) -> None:
        self._notes: list[NoteCard] = []
        self._counter = itertools.count(1)

    def __len__(self) -> int:
        return len(self._notes)

    def __contains__(self, note_id: object) -> bool:
        return any(n.note_id == note_id for n in self._notes)

    # ------------------------------------------------------------------
    # Optimistic lifecycle
    # ------------------------------------------------------------------

    def new_temp_id(self) -> str:
        """A temporary identifier unique within this store."""
        return f"{TEMP_PREFIX}{int(time.time() * 1000)}-{next(self._counter)}"

    def create_provisional(self, draft: NoteDraft) -> NoteCard:
        """Insert a provisional note at the head. No I/O."""
        note = NoteCard(
            note_id=self.new_temp_id(),
            note_type=draft.note_type,
            note_title=draft.formatted_title,
            note_content=draft.content.copy(),
            images=list(draft.images),
            timestamp=datetime.now(UTC),
            is_pinned=PinState.NO,
        )
        self._notes.insert(0, note)
        logger.info("Provisional note %s created", note.note_id)
        return note

    def confirm(
        self,
        temp_id: str,
        server_id: str,
        server_fields: Union[NoteCard, Mapping[str, Any], None] = None,
    ) -> Optional[NoteCard]:
        """Rehome ``temp_id`` to ``server_id`` and apply the server copy.

        A listing copy of ``server_id`` that a reload brought in first is
        dropped, so the provisional object stays the single holder of the id.
        Returns None when the provisional note is already gone.
        """
        note = self.get(temp_id)
        if note is None:
            logger.info("Confirm for %s ignored: note no longer present", temp_id)
            return None

        duplicates = [n for n in self._notes if n.note_id == server_id and n is not note]
        for duplicate in duplicates:
            self._notes.remove(duplicate)
        if duplicates:
            logger.info("Dropped listed copy of %s superseded by %s", server_id, temp_id)

        if isinstance(server_fields, NoteCard):
            fields = {name: getattr(server_fields, name) for name in NoteCard.model_fields}
        else:
            fields = dict(server_fields or {})
        for name, value in fields.items():
            if name in NoteCard.model_fields and name != "note_id":
                setattr(note, name, value)
        note.note_id = server_id
        logger.info("Note %s confirmed as %s", temp_id, server_id)
        return note

    def rollback(self, temp_id: str) -> Optional[NoteCard]:
        """Remove the provisional note; a missing note is a no-op."""
        note = self.get(temp_id)
        if note is None:
            logger.info("Rollback for %s ignored: note no longer present", temp_id)
            return None
        self._notes.remove(note)
        logger.info("Provisional note %s rolled back", temp_id)
        return note

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, note_id: str) -> Optional[NoteCard]:
        return next((n for n in self._notes if n.note_id == note_id), None)

    def require(self, note_id: str) -> NoteCard:
        note = self.get(note_id)
        if note is None:
            raise NotFoundError(f"Note {note_id} not found")
        return note

    def list_for_display(self) -> list[NoteCard]:
        """Pinned notes first, then newest first."""
        by_time = sorted(self._notes, key=lambda n: n.timestamp, reverse=True)
        return sorted(by_time, key=lambda n: not n.pinned)

    def pinned_count(self) -> int:
        return sum(1 for n in self._notes if n.pinned)

    def all_tags(self) -> list[str]:
        """Distinct tags across the session, in first-seen order."""
        seen: dict[str, None] = {}
        for note in self._notes:
            for tag in note.tags:
                seen.setdefault(tag, None)
        return list(seen)

    # ------------------------------------------------------------------
    # Field updates
    # ------------------------------------------------------------------

    def replace_all(self, notes: Iterable[NoteCard]) -> None:
        """Swap in a fresh server listing, keeping unsaved provisional notes."""
        pending = [n for n in self._notes if n.is_provisional]
        self._notes = pending + list(notes)
        logger.info("Loaded %d notes (%d pending)", len(self._notes), len(pending))

    def set_pinned(self, note_id: str, state: PinState) -> NoteCard:
        note = self.require(note_id)
        note.is_pinned = state
        return note

    def set_tags(self, note_id: str, tags: list[str]) -> NoteCard:
        note = self.require(note_id)
        note.tags = tags
        return note

    def set_content(self, note_id: str, content: RichText) -> NoteCard:
        note = self.require(note_id)
        note.note_content = content
        return note
