"""Exceptions raised by the session notes engine."""


class SessionNotesError(Exception):
    """Base class for every error raised by the notes engine."""


class ValidationError(SessionNotesError):
    """A local check rejected the action before any network call."""


class PersistenceError(SessionNotesError):
    """The notes backend call failed or reported an error."""


class NotFoundError(SessionNotesError):
    """The targeted note is no longer present."""


class SaveLockedError(SessionNotesError):
    """The note is still inside its post-creation save-lock window."""

    def __init__(self, note_id: str, remaining: int) -> None:
        super().__init__(f"Wait {remaining}s before changing note {note_id}")
        self.note_id = note_id
        self.remaining = remaining


class PinLimitError(SessionNotesError):
    """Pinning would exceed the per-session pin ceiling."""
