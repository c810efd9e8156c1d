"""Pydantic models for the session notes engine.

Wire records mirror the backend's camelCase JSON; domain models hold decoded
content and resolved image URLs.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from session_notes import codec, images
from session_notes.richtext import RichText

TEMP_PREFIX = "temp-"

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NoteType(str, Enum):
    """The fixed set of note card kinds."""

    TOPIC = "Topic"
    QUESTION = "Question"
    POINTERS = "Pointers"
    TODO_LIST = "To Do List"
    KEYWORDS = "Keywords"
    IMPORTANT = "Important"

    @property
    def color(self) -> str:
        return _NOTE_TYPE_STYLE[self][0]

    @property
    def icon(self) -> str:
        return _NOTE_TYPE_STYLE[self][1]

    @classmethod
    def parse(cls, value: str) -> NoteType:
        """Parse a type name, accepting the hyphenated checklist spelling."""
        if value.strip() == "To-Do List":
            return cls.TODO_LIST
        return cls(value.strip())

    @classmethod
    def from_title(cls, title: str) -> NoteType:
        """Recover the type from a ``"<type>: <text>"`` title by prefix."""
        for note_type in cls:
            if title.startswith(note_type.value):
                return note_type
        if title.startswith("To-Do List"):
            return cls.TODO_LIST
        return cls.TOPIC

    def format_title(self, text: str) -> str:
        """Build the composite title stored with the note."""
        text = text.strip()
        return f"{self.value}: {text}" if text else self.value


_NOTE_TYPE_STYLE: dict[NoteType, tuple[str, str]] = {
    NoteType.TOPIC: ("purple", "book-open"),
    NoteType.QUESTION: ("blue", "help-circle"),
    NoteType.POINTERS: ("green", "file-text"),
    NoteType.TODO_LIST: ("orange", "check-square"),
    NoteType.KEYWORDS: ("yellow", "key"),
    NoteType.IMPORTANT: ("red", "alert-circle"),
}


class PinState(str, Enum):
    YES = "Yes"
    NO = "No"

    def flipped(self) -> PinState:
        return PinState.NO if self is PinState.YES else PinState.YES


def _split_csv(value: Any) -> Any:
    """Accept ``"a,b"`` as well as ``["a", "b"]``; drop blank entries."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, list):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return value


def _pin_state(value: Any) -> Any:
    if isinstance(value, bool):
        return PinState.YES if value else PinState.NO
    if value is None or value == "":
        return PinState.NO
    return value


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


class SessionContext(BaseModel):
    """The live session the editor was opened for."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    session_id: str = Field(..., min_length=1)
    session_name: str = ""
    batch: str = ""
    term: Optional[str] = None
    domain: Optional[str] = None
    subject: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None

    @property
    def has_subject_context(self) -> bool:
        """Whether the thread view can be scoped for this session."""
        return all((self.batch, self.term, self.domain, self.subject))


class Student(BaseModel):
    model_config = _CAMEL

    email: str
    name: str
    student_id: str
    batch: str = ""


class StudentProfile(BaseModel):
    """Profile record returned by the backend lookup."""

    model_config = _CAMEL

    email: str
    full_name: str = ""
    batch: str = ""


# ---------------------------------------------------------------------------
# Wire records
# ---------------------------------------------------------------------------


class NoteRecord(BaseModel):
    """A note as the backend returns it (encoded title and content)."""

    model_config = _CAMEL

    note_id: str
    note_title: str = ""
    note_content: str = ""
    images: list[str] = Field(default_factory=list)
    timestamp: Optional[datetime] = None
    is_pinned: PinState = PinState.NO
    tags: list[str] = Field(default_factory=list)

    @field_validator("images", "tags", mode="before")
    @classmethod
    def split_lists(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("is_pinned", mode="before")
    @classmethod
    def coerce_pin(cls, value: Any) -> Any:
        return _pin_state(value)

    @field_validator("timestamp")
    @classmethod
    def ensure_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _aware(value)


class ThreadSessionRecord(BaseModel):
    model_config = _CAMEL

    session_id: str
    session_name: str = ""
    date: str = ""
    start_time: str = ""
    batch: str = ""
    term: str = ""
    domain: str = ""
    subject: str = ""
    notes: list[NoteRecord] = Field(default_factory=list)


class SavedNote(BaseModel):
    """Result of a successful save: the durable id and server fields."""

    model_config = _CAMEL

    note_id: str
    timestamp: Optional[datetime] = None
    images: Optional[list[str]] = None

    @field_validator("images", mode="before")
    @classmethod
    def split_images(cls, value: Any) -> Any:
        return None if value is None else _split_csv(value)

    @field_validator("timestamp")
    @classmethod
    def ensure_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _aware(value)


# ---------------------------------------------------------------------------
# Domain models
# ---------------------------------------------------------------------------


class NoteDraft(BaseModel):
    """What the user typed before pressing save."""

    model_config = _CAMEL

    note_type: NoteType = NoteType.TOPIC
    title: str = ""
    content: RichText = Field(default_factory=RichText)
    images: list[str] = Field(default_factory=list)

    @field_validator("note_type", mode="before")
    @classmethod
    def parse_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return NoteType.parse(value)
        return value

    @property
    def formatted_title(self) -> str:
        return self.note_type.format_title(self.title)

    def is_empty(self) -> bool:
        return not self.title.strip() and self.content.is_blank()


class NoteCard(BaseModel):
    """One typed, timestamped note with decoded content."""

    model_config = _CAMEL

    note_id: str
    note_type: NoteType = NoteType.TOPIC
    note_title: str = ""
    note_content: RichText = Field(default_factory=RichText)
    images: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    is_pinned: PinState = PinState.NO
    tags: list[str] = Field(default_factory=list)

    @field_validator("is_pinned", mode="before")
    @classmethod
    def coerce_pin(cls, value: Any) -> Any:
        return _pin_state(value)

    @field_validator("note_type", mode="before")
    @classmethod
    def parse_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return NoteType.parse(value)
        return value

    @field_validator("timestamp")
    @classmethod
    def ensure_aware(cls, value: datetime) -> datetime:
        return _aware(value)

    @property
    def is_provisional(self) -> bool:
        return self.note_id.startswith(TEMP_PREFIX)

    @property
    def pinned(self) -> bool:
        return self.is_pinned is PinState.YES

    @classmethod
    def from_record(cls, record: NoteRecord) -> NoteCard:
        """Decode a backend record for display."""
        title = codec.decode_text(record.note_title)
        return cls(
            note_id=record.note_id,
            note_type=NoteType.from_title(title),
            note_title=title,
            note_content=codec.decode(record.note_content),
            images=images.resolve_all(record.images),
            timestamp=record.timestamp or datetime.now(UTC),
            is_pinned=record.is_pinned,
            tags=list(record.tags),
        )


class ThreadSession(BaseModel):
    """Read-only group of notes from another session of the same subject."""

    model_config = _CAMEL

    session_id: str
    session_name: str = ""
    date: str = ""
    start_time: str = ""
    batch: str = ""
    term: str = ""
    domain: str = ""
    subject: str = ""
    notes: list[NoteCard] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: ThreadSessionRecord) -> ThreadSession:
        return cls(
            **record.model_dump(exclude={"notes"}),
            notes=[NoteCard.from_record(note) for note in record.notes],
        )

    def find(self, note_id: str) -> Optional[NoteCard]:
        return next((n for n in self.notes if n.note_id == note_id), None)
