"""Redis-backed limiter store shared by every worker and host.

Windows are stored as JSON strings with a native Redis expiry. Locks are
plain keys set with ``NX``/``PX`` holding the caller's token; release goes
through a Lua script so only the current holder can delete the key.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

import redis

from restrictor.adapters.store.base import AbstractLimiterStore, StoredWindow
from restrictor.core.errors import StoreError
from restrictor.limiter.window import BucketedWindow

logger = logging.getLogger(__name__)

# Delete the lock only when it still holds our token
UNLOCK_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


class RedisLimiterStore(AbstractLimiterStore):
    """Limiter store using a ``redis.Redis`` client.

    Attributes:
        key_prefix: Namespace for every key this store writes.
        lock_timeout_ms: Lifetime of a lock before Redis expires it.
    """

    def __init__(
        self,
        client: "redis.Redis[Any]",
        *,
        key_prefix: str = "restrictor:",
        lock_timeout_ms: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if lock_timeout_ms < 1:
            raise ValueError("lock_timeout_ms must be >= 1")

        self._client = client
        self.key_prefix = key_prefix
        self.lock_timeout_ms = lock_timeout_ms
        self._clock = clock
        self._unlock_script = client.register_script(UNLOCK_SCRIPT)

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisLimiterStore":
        """Build a store with a fresh client for ``url``."""

        client = redis.Redis.from_url(url, decode_responses=True)
        return cls(client, **kwargs)

    def _lock_key(self, key: str) -> str:
        return f"{self.key_prefix}lock:{key}"

    def _window_key(self, storage_key: str) -> str:
        return f"{self.key_prefix}window:{storage_key}"

    def _wrap(self, exc: Exception, operation: str) -> StoreError:
        logger.warning(
            "store.redis.error",
            extra={
                "operation": operation,
                "error_type": type(exc).__name__,
                "error_msg": str(exc),
            },
        )
        return StoreError(
            code="store_unavailable",
            message=f"Redis {operation} failed",
            details={"backend": "redis", "operation": operation},
        )

    def try_lock(self, key: str, token: str) -> bool:
        try:
            acquired = self._client.set(self._lock_key(key), token, nx=True, px=self.lock_timeout_ms)
        except redis.RedisError as exc:
            raise self._wrap(exc, "try_lock") from exc
        return bool(acquired)

    def unlock(self, key: str, token: str) -> None:
        try:
            released = self._unlock_script(keys=[self._lock_key(key)], args=[token])
        except redis.RedisError as exc:
            raise self._wrap(exc, "unlock") from exc
        if not released:
            logger.debug("store.redis.unlock_stale")

    def load(self, storage_key: str) -> StoredWindow | None:
        name = self._window_key(storage_key)
        try:
            with self._client.pipeline() as pipe:
                pipe.get(name)
                pipe.pttl(name)
                raw, pttl = pipe.execute()
        except redis.RedisError as exc:
            raise self._wrap(exc, "load") from exc

        if raw is None:
            return None

        try:
            window = BucketedWindow.from_dict(json.loads(raw))
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError subclass
            logger.error(
                "store.redis.corrupt_payload",
                extra={"error_msg": str(exc)},
            )
            raise StoreError(
                code="store_corrupt_payload",
                message="Stored limiter window could not be decoded",
                details={"backend": "redis", "operation": "load"},
            ) from exc

        now = self._clock()
        if pttl is None or pttl < 0:
            # Key without expiry; make the preserved TTL collapse to the minimum
            logger.warning("store.redis.missing_ttl")
            expires_at = now
        else:
            expires_at = now + pttl / 1000.0
        return StoredWindow(window=window, expires_at=expires_at)

    def save(self, storage_key: str, window: BucketedWindow, ttl_seconds: int) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        payload = json.dumps(window.to_dict(), separators=(",", ":"))
        try:
            self._client.set(self._window_key(storage_key), payload, ex=ttl_seconds)
        except redis.RedisError as exc:
            raise self._wrap(exc, "save") from exc
