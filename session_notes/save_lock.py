"""Post-creation save-lock countdown.

A freshly created note is locked against pin and tag changes for a short
window while the backend assigns its durable id.  Expiry timestamps are kept
in Redis so a lock outlives a page reload; a process-local mirror keeps the
lock working when Redis is unavailable.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

LOCK_PREFIX = "notes_save_lock:"
DEFAULT_LOCK_SECONDS = 10


class SaveLockCountdown:
    """Timed locks keyed by note id, with absolute expiry."""

    def __init__(self, redis_url: str, clock: Callable[[], float] = time.time) -> None:
        self._redis_url = redis_url
        self._clock = clock
        self._client: Optional[aioredis.Redis] = None
        self._local: dict[str, float] = {}

    @property
    def available(self) -> bool:
        """Whether the Redis connection is active."""
        return self._client is not None

    async def connect(self) -> None:
        """Connect to Redis. Non-fatal if Redis is unavailable."""
        try:
            self._client = aioredis.from_url(self._redis_url, decode_responses=True)
            await self._client.ping()
            logger.info("Save-lock store connected: %s", self._redis_url)
        except Exception as e:
            logger.warning("Redis unavailable, save locks kept in memory: %s", e)
            self._client = None

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Lock operations
    # ------------------------------------------------------------------

    async def start(self, note_id: str, duration_seconds: int = DEFAULT_LOCK_SECONDS) -> float:
        """Lock ``note_id`` for ``duration_seconds``; returns the expiry."""
        expires_at = self._clock() + duration_seconds
        await self._store(note_id, expires_at)
        return expires_at

    async def remaining(self, note_id: str) -> int:
        """Whole seconds left on the lock (rounded up), 0 when unlocked."""
        expires_at = await self._expiry(note_id)
        if expires_at is None:
            return 0
        left = expires_at - self._clock()
        if left <= 0:
            await self.clear(note_id)
            return 0
        return math.ceil(left)

    async def rehome(self, old_id: str, new_id: str) -> None:
        """Move a lock to a new id without touching its expiry."""
        expires_at = await self._expiry(old_id)
        await self.clear(old_id)
        if expires_at is None or expires_at <= self._clock():
            return
        await self._store(new_id, expires_at)
        logger.info("Save lock moved %s -> %s", old_id, new_id)

    async def clear(self, note_id: str) -> None:
        self._local.pop(note_id, None)
        if not self._client:
            return
        try:
            await self._client.delete(self._make_key(note_id))
        except Exception as e:
            logger.warning("Redis delete failed: %s", e)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _store(self, note_id: str, expires_at: float) -> None:
        self._local[note_id] = expires_at
        if not self._client:
            return
        try:
            await self._client.set(
                self._make_key(note_id), repr(expires_at), pxat=int(expires_at * 1000)
            )
        except Exception as e:
            logger.warning("Redis set failed: %s", e)

    async def _expiry(self, note_id: str) -> Optional[float]:
        if self._client:
            try:
                value = await self._client.get(self._make_key(note_id))
                if value is not None:
                    return float(value)
            except Exception as e:
                logger.warning("Redis get failed: %s", e)
        return self._local.get(note_id)

    @staticmethod
    def _make_key(note_id: str) -> str:
        return f"{LOCK_PREFIX}{note_id}"
