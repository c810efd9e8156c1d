"""Transient user notifications (toasts) raised by editor actions."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime

MAX_PENDING = 50


@dataclass
class Notification:
    level: str  # success | error
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class Notifier:
    """Queue of notifications waiting to be shown."""

    def __init__(self, max_pending: int = MAX_PENDING) -> None:
        self._pending: deque[Notification] = deque(maxlen=max_pending)

    def success(self, message: str) -> None:
        self._pending.append(Notification("success", message))

    def error(self, message: str) -> None:
        self._pending.append(Notification("error", message))

    def drain(self) -> list[Notification]:
        """Return and clear everything queued so far."""
        items = list(self._pending)
        self._pending.clear()
        return items

    def peek(self) -> list[Notification]:
        return list(self._pending)
