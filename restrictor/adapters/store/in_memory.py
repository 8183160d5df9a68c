"""In-memory limiter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Windows are stored as serialized snapshots, so every load returns a fresh
  copy the same way a network store would.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from restrictor.adapters.store.base import AbstractLimiterStore, StoredWindow
from restrictor.limiter.window import BucketedWindow

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    payload: dict[str, Any]
    expires_at: float


@dataclass
class _LockState:
    token: str
    expires_at: float


class InMemoryLimiterStore(AbstractLimiterStore):
    """Limiter store backed by process-local dictionaries.

    Locks expire after ``lock_timeout_seconds`` so a caller that dies while
    holding one cannot block a key forever. Entries expire after the TTL given
    to ``save``; expired entries are dropped on access and swept on every
    ``save``.
    """

    def __init__(
        self,
        *,
        lock_timeout_seconds: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            lock_timeout_seconds: Lifetime of an acquired lock.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If lock_timeout_seconds is not positive.
        """
        if lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be > 0")

        self._lock_timeout = lock_timeout_seconds
        self._clock = clock
        self._mutex = threading.RLock()
        self._entries: dict[str, _Entry] = {}
        self._locks: dict[str, _LockState] = {}

    def try_lock(self, key: str, token: str) -> bool:
        now = self._clock()
        with self._mutex:
            held = self._locks.get(key)
            if held is not None and held.expires_at > now:
                return False
            if held is not None:
                logger.debug("store.memory.lock_expired", extra={"previous_expires_at": held.expires_at})
            self._locks[key] = _LockState(token=token, expires_at=now + self._lock_timeout)
            return True

    def unlock(self, key: str, token: str) -> None:
        with self._mutex:
            held = self._locks.get(key)
            if held is None or held.token != token:
                logger.debug("store.memory.unlock_stale")
                return
            del self._locks[key]

    def load(self, storage_key: str) -> StoredWindow | None:
        now = self._clock()
        with self._mutex:
            entry = self._entries.get(storage_key)
            if entry is None:
                return None
            if entry.expires_at <= now:
                del self._entries[storage_key]
                return None
            return StoredWindow(
                window=BucketedWindow.from_dict(entry.payload),
                expires_at=entry.expires_at,
            )

    def save(self, storage_key: str, window: BucketedWindow, ttl_seconds: int) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        now = self._clock()
        with self._mutex:
            self._evict_expired_locked(now)
            self._entries[storage_key] = _Entry(payload=window.to_dict(), expires_at=now + ttl_seconds)

    def _evict_expired_locked(self, now: float) -> None:
        expired_keys = [k for k, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired_keys:
            del self._entries[key]
        if expired_keys:
            logger.debug("store.memory.evicted", extra={"evicted": len(expired_keys)})

    def clear(self) -> None:
        """Drop all entries and locks."""

        with self._mutex:
            self._entries.clear()
            self._locks.clear()

    def stats(self) -> dict[str, int]:
        """Return entry/lock counts without exposing stored values."""

        with self._mutex:
            return {"entries": len(self._entries), "locks": len(self._locks)}
