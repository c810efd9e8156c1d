"""Thread view: the student's notes from every other session of a subject."""

from __future__ import annotations

import logging
from typing import Optional

from session_notes.gateway import NotesGateway
from session_notes.metrics import THREAD_LOADS
from session_notes.models import NoteCard, ThreadSession

logger = logging.getLogger(__name__)


class ThreadAggregator:
    """Loads and assembles read-only thread sessions."""

    def __init__(self, gateway: NotesGateway) -> None:
        self._gateway = gateway

    async def load(
        self,
        student_id: str,
        exclude_session_id: str,
        batch: str,
        term: str,
        domain: str,
        subject: str,
    ) -> list[ThreadSession]:
        """Fetch, decode and group notes, excluding ``exclude_session_id``.

        The thread view is supplementary, so any failure is logged and an
        empty list is returned.
        """
        try:
            records = await self._gateway.list_notes_by_subject(
                student_id, batch, term, domain, subject
            )
            sessions = [
                ThreadSession.from_record(record)
                for record in records
                if record.session_id != exclude_session_id
            ]
        except Exception as e:
            logger.warning(
                "Thread load failed for %s/%s/%s/%s: %s", batch, term, domain, subject, e
            )
            THREAD_LOADS.labels(status="error").inc()
            return []

        THREAD_LOADS.labels(status="success").inc()
        logger.info(
            "Thread loaded: %d sessions, %d notes",
            len(sessions),
            sum(len(s.notes) for s in sessions),
        )
        return sessions


def find_in_thread(
    sessions: list[ThreadSession], note_id: str
) -> Optional[tuple[ThreadSession, NoteCard]]:
    """Locate a note and its owning thread session."""
    for session in sessions:
        note = session.find(note_id)
        if note is not None:
            return session, note
    return None
