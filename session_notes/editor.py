"""Note editor: optimistic state synchronization for one student session.

Every mutating entry point applies its change to local state before any
network call starts, then hands the backend write to a tracked background
task.  A failed write reverts only the value that write introduced, so a
later successful action on the same note is never undone.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, Optional

from session_notes import codec
from session_notes.checklist import toggle_note_line
from session_notes.config import settings
from session_notes.errors import (
    NotFoundError,
    PersistenceError,
    PinLimitError,
    SaveLockedError,
    ValidationError,
)
from session_notes.gateway import NotesGateway
from session_notes.images import resolve_all
from session_notes.metrics import OPTIMISTIC_ROLLBACKS
from session_notes.models import (
    NoteCard,
    NoteDraft,
    NoteType,
    PinState,
    SavedNote,
    SessionContext,
    Student,
    ThreadSession,
)
from session_notes.notifications import Notifier
from session_notes.richtext import RichText
from session_notes.save_lock import SaveLockCountdown
from session_notes.store import NoteStore
from session_notes.tags import TagBuffer, validate_for_commit
from session_notes.thread import ThreadAggregator, find_in_thread

logger = logging.getLogger(__name__)


class NoteEditor:
    """State owner for the floating note editor of one live session."""

    def __init__(
        self,
        session: SessionContext,
        student: Student,
        gateway: NotesGateway,
        save_lock: SaveLockCountdown,
        notifier: Optional[Notifier] = None,
        lock_seconds: int = settings.save_lock_seconds,
        max_pinned: int = settings.max_pinned_notes,
    ) -> None:
        self.session = session
        self.student = student
        self.store = NoteStore()
        self.thread_sessions: list[ThreadSession] = []
        self.notifier = notifier or Notifier()
        self._gateway = gateway
        self._save_lock = save_lock
        self._aggregator = ThreadAggregator(gateway)
        self._lock_seconds = lock_seconds
        self._max_pinned = max_pinned
        self._tasks: set[asyncio.Task] = set()

    @property
    def student_id(self) -> str:
        """Identity sent to the backend (the student's email)."""
        return self.student.email

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load the session's notes and start the thread load in background."""
        await self.reload_notes()
        if self.session.has_subject_context:
            self._spawn(self._load_thread())
        else:
            logger.info(
                "Session %s lacks subject context, thread view skipped",
                self.session.session_id,
            )

    async def reload_notes(self) -> list[NoteCard]:
        """Replace the confirmed notes with a fresh server listing."""
        try:
            records = await self._gateway.list_notes(self.student_id, self.session.session_id)
        except PersistenceError as e:
            logger.error("Loading notes for %s failed: %s", self.session.session_id, e)
            self.notifier.error("Failed to load notes")
            return self.store.list_for_display()
        self.store.replace_all(NoteCard.from_record(r) for r in records)
        return self.store.list_for_display()

    async def wait_idle(self) -> None:
        """Wait until every background write has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.wait_idle()

    def list_notes(self) -> list[NoteCard]:
        return self.store.list_for_display()

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def save_note(self, draft: NoteDraft, wait: bool = False) -> NoteCard:
        """Create a note optimistically and persist it in the background."""
        if draft.is_empty():
            raise ValidationError("Please add a title or content")

        note = self.store.create_provisional(draft)
        await self._save_lock.start(note.note_id, self._lock_seconds)
        self.notifier.success("Note saved!")
        await self._dispatch(self._persist_new_note(note.note_id, note), wait)
        return note

    async def _persist_new_note(self, temp_id: str, note: NoteCard) -> None:
        try:
            saved = await self._gateway.save_note(
                self.student_id,
                self.session,
                codec.encode_text(note.note_title),
                codec.encode(note.note_content),
                note.images,
                student_name=self.student.name,
            )
        except PersistenceError as e:
            logger.error("Saving note %s failed: %s", temp_id, e)
            self.store.rollback(temp_id)
            await self._save_lock.clear(temp_id)
            OPTIMISTIC_ROLLBACKS.labels(action="save").inc()
            self.notifier.error("Failed to save note")
            raise

        self.store.confirm(temp_id, saved.note_id, self._server_fields(saved))
        await self._save_lock.rehome(temp_id, saved.note_id)

    @staticmethod
    def _server_fields(saved: SavedNote) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if saved.timestamp is not None:
            fields["timestamp"] = saved.timestamp
        if saved.images is not None:
            fields["images"] = resolve_all(saved.images)
        return fields

    # ------------------------------------------------------------------
    # Pin
    # ------------------------------------------------------------------

    async def toggle_pin(self, note_id: str, wait: bool = False) -> NoteCard:
        """Flip a current-session note's pin flag."""
        note = self.store.require(note_id)
        self._require_durable(note)
        await self._require_unlocked(note_id)

        target = note.is_pinned.flipped()
        if target is PinState.YES and self.store.pinned_count() >= self._max_pinned:
            raise PinLimitError(f"At most {self._max_pinned} notes can be pinned")

        self.store.set_pinned(note_id, target)
        self.notifier.success("Note pinned!" if target is PinState.YES else "Note unpinned!")
        await self._dispatch(self._persist_pin(note_id, target), wait)
        return note

    async def _persist_pin(self, note_id: str, target: PinState) -> None:
        try:
            state = await self._gateway.toggle_pin(self.student_id, note_id)
        except PersistenceError as e:
            logger.error("Toggling pin on %s failed: %s", note_id, e)
            note = self.store.get(note_id)
            if note is not None and note.is_pinned is target:
                note.is_pinned = target.flipped()
            OPTIMISTIC_ROLLBACKS.labels(action="pin").inc()
            self.notifier.error("Failed to toggle pin")
            raise

        note = self.store.get(note_id)
        if note is not None and note.is_pinned is target and state is not target:
            logger.warning("Backend reports %s pinned=%s, adopting", note_id, state.value)
            note.is_pinned = state

    # ------------------------------------------------------------------
    # Checklist lines and content
    # ------------------------------------------------------------------

    async def toggle_line(self, note_id: str, line_index: int, wait: bool = False) -> NoteCard:
        """Flip one checklist line of a To Do List note.

        Works for current-session and thread notes alike.
        """
        note = self._locate(note_id)
        self._require_durable(note)
        updated = toggle_note_line(note, line_index)
        original = note.note_content
        note.note_content = updated
        await self._dispatch(
            self._persist_content(note_id, original, updated, action="checklist"), wait
        )
        return note

    async def update_content(self, note_id: str, content: RichText, wait: bool = False) -> NoteCard:
        """Replace a current-session note's content."""
        note = self.store.require(note_id)
        self._require_durable(note)
        original = note.note_content
        self.store.set_content(note_id, content)
        await self._dispatch(
            self._persist_content(note_id, original, content, action="content"), wait
        )
        return note

    async def _persist_content(
        self, note_id: str, original: RichText, updated: RichText, action: str
    ) -> None:
        try:
            await self._gateway.update_content(self.student_id, note_id, codec.encode(updated))
        except PersistenceError as e:
            logger.error("Updating content of %s failed: %s", note_id, e)
            note = self._find(note_id)
            if note is not None and note.note_content is updated:
                note.note_content = original
            OPTIMISTIC_ROLLBACKS.labels(action=action).inc()
            self.notifier.error("Failed to save")
            raise

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def open_tags(self, note_id: str) -> TagBuffer:
        """Start a tag edit buffer seeded with the note's tags."""
        note = self._locate(note_id)
        return TagBuffer(note_id, tuple(note.tags))

    async def commit_tags(self, note_id: str, buffer: TagBuffer, wait: bool = False) -> NoteCard:
        """Persist a tag buffer (1 to 3 tags) for a current or thread note."""
        tags = validate_for_commit(buffer)
        note = self._locate(note_id)
        self._require_durable(note)
        await self._require_unlocked(note_id)

        original = note.tags
        note.tags = tags
        self.notifier.success("Tags updated!")
        await self._dispatch(self._persist_tags(note_id, original, tags), wait)
        return note

    async def _persist_tags(self, note_id: str, original: list[str], tags: list[str]) -> None:
        try:
            stored = await self._gateway.update_tags(self.student_id, note_id, tags)
        except PersistenceError as e:
            logger.error("Updating tags of %s failed: %s", note_id, e)
            note = self._find(note_id)
            if note is not None and note.tags is tags:
                note.tags = original
            OPTIMISTIC_ROLLBACKS.labels(action="tags").inc()
            self.notifier.error("Failed to save tags")
            raise

        note = self._find(note_id)
        if note is not None and note.tags is tags and stored != tags:
            note.tags = stored

    async def lock_remaining(self, note_id: str) -> int:
        return await self._save_lock.remaining(note_id)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: str) -> list[NoteCard]:
        """Case-insensitive match over titles, content text and tags.

        Current-session matches come first, in display order, followed by
        thread matches.
        """
        needle = query.strip().lower()
        if not needle:
            return self.store.list_for_display()

        def matches(note: NoteCard, extra: str = "") -> bool:
            haystack = " ".join(
                [note.note_title, note.note_content.text_content(), " ".join(note.tags), extra]
            )
            return needle in haystack.lower()

        found = [n for n in self.store.list_for_display() if matches(n)]
        for session in self.thread_sessions:
            found.extend(n for n in session.notes if matches(n, session.session_name))
        return found

    def todo_notes(self) -> list[NoteCard]:
        """Every To Do List note, current session first."""
        notes = [n for n in self.store.list_for_display() if n.note_type is NoteType.TODO_LIST]
        for session in self.thread_sessions:
            notes.extend(n for n in session.notes if n.note_type is NoteType.TODO_LIST)
        return notes

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _load_thread(self) -> None:
        self.thread_sessions = await self._aggregator.load(
            self.student_id,
            self.session.session_id,
            self.session.batch,
            self.session.term or "",
            self.session.domain or "",
            self.session.subject or "",
        )

    def _find(self, note_id: str) -> Optional[NoteCard]:
        note = self.store.get(note_id)
        if note is not None:
            return note
        located = find_in_thread(self.thread_sessions, note_id)
        return located[1] if located else None

    def _locate(self, note_id: str) -> NoteCard:
        note = self._find(note_id)
        if note is None:
            raise NotFoundError(f"Note {note_id} not found")
        return note

    @staticmethod
    def _require_durable(note: NoteCard) -> None:
        if note.is_provisional:
            raise ValidationError("Note is still being saved")

    async def _require_unlocked(self, note_id: str) -> None:
        remaining = await self._save_lock.remaining(note_id)
        if remaining > 0:
            raise SaveLockedError(note_id, remaining)

    async def _dispatch(self, coro: Coroutine[Any, Any, None], wait: bool) -> None:
        """Run a backend write inline (``wait``) or as a tracked task."""
        if wait:
            await coro
            return
        self._spawn(coro)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        # PersistenceError has already been rolled back and surfaced
        if exc is not None and not isinstance(exc, PersistenceError):
            logger.error("Background note task failed", exc_info=exc)
