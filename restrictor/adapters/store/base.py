"""Limiter store interfaces.

The coordinator depends on this abstraction (not a concrete backend) so the
same limiter runs against per-process memory in tests and a shared Redis
instance in production.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from restrictor.limiter.window import BucketedWindow


@dataclass(frozen=True)
class StoredWindow:
    """A persisted window together with its expiry.

    Attributes:
        window: Deserialized copy of the stored window.
        expires_at: UNIX epoch seconds when the entry expires.
    """

    window: BucketedWindow
    expires_at: float


class AbstractLimiterStore(ABC):
    """Key-value persistence plus a per-key exclusive lock.

    Implementations raise ``StoreError`` for backend failures. A lock that is
    simply held by someone else is reported by ``try_lock`` returning False.
    """

    @abstractmethod
    def try_lock(self, key: str, token: str) -> bool:
        """Try to take the lock for ``key`` without blocking.

        Args:
            key: Caller key the lock protects.
            token: Unique value identifying this holder.

        Returns:
            True if the lock was acquired, False if another holder has it.
        """
        raise NotImplementedError

    @abstractmethod
    def unlock(self, key: str, token: str) -> None:
        """Release the lock for ``key`` if ``token`` still owns it.

        A stale token (expired or taken over) is a no-op.
        """
        raise NotImplementedError

    @abstractmethod
    def load(self, storage_key: str) -> StoredWindow | None:
        """Return the stored window and its expiry, or None if absent/expired."""
        raise NotImplementedError

    @abstractmethod
    def save(self, storage_key: str, window: BucketedWindow, ttl_seconds: int) -> None:
        """Persist ``window`` under ``storage_key`` for ``ttl_seconds`` seconds."""
        raise NotImplementedError
