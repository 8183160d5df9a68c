"""Rate limit coordinator.

Turns a (window, limit, number of buckets) configuration into decisions for
caller keys by driving one lock -> load -> evaluate -> persist -> unlock
cycle per call against a shared store.

Policy notes:
- Fail-closed: if the per-key lock cannot be taken, the call is treated as
  rate limited. There is no retry or backoff.
- Correctness across processes rests entirely on the store lock; the
  coordinator holds no in-process state besides its configuration.
"""

from __future__ import annotations

import logging
import math
import random
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Callable

from restrictor.core.errors import LimiterConfigError, LockUnavailableError, StoreError
from restrictor.limiter.window import BucketedWindow

if TYPE_CHECKING:
    from restrictor.adapters.store.base import AbstractLimiterStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of ``RateLimitCoordinator.decide``.

    Attributes:
        reached: Whether the limit is reached (the event must be rejected).
        count: Events in the window after this call (0 when the store was
            never consulted).
        error: Store failure encountered while deciding, if any. The
            decision is still usable: it is fail-closed when the failure
            happened before evaluation.
    """

    reached: bool
    count: int
    error: StoreError | None = None


def _to_seconds(window: float | timedelta) -> int:
    if isinstance(window, timedelta):
        return int(window.total_seconds())
    return int(window)


def _default_prefix() -> str:
    return f"{time.time_ns()}_{random.randrange(100):02d}_"


def _new_lock_token() -> str:
    return uuid.uuid4().hex


class RateLimitCoordinator:
    """Sliding-window rate limiter coordinated through a shared store.

    One instance holds one configuration. Several coordinators may share a
    store; each gets its own key prefix so their windows never collide.
    """

    def __init__(
        self,
        window: float | timedelta,
        limit: int,
        number_of_buckets: int,
        store: AbstractLimiterStore,
        *,
        clock: Callable[[], float] = time.time,
        prefix: str | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            window: Window length as seconds or timedelta; truncated to whole seconds.
            limit: Maximum admitted events per window. 0 rejects everything.
            number_of_buckets: Buckets the window is split into, usually ~100.
            store: Shared store holding windows and locks.
            clock: Time source function returning UNIX time in seconds.
            prefix: Fixed key namespace; generated from time and randomness when omitted.

        Raises:
            LimiterConfigError: If any numeric argument is out of range.
        """
        window_seconds = _to_seconds(window)
        if window_seconds < 1:
            raise LimiterConfigError(
                code="invalid_window",
                message="window must be at least one second",
                details={"window_seconds": window_seconds},
            )
        if limit < 0:
            raise LimiterConfigError(code="invalid_limit", message="limit must be >= 0")
        if number_of_buckets < 1:
            raise LimiterConfigError(code="invalid_buckets", message="number_of_buckets must be >= 1")

        self._window = window_seconds
        self._limit = limit
        self._bucket_span = max(1, math.ceil(window_seconds / number_of_buckets))
        self._prefix = prefix if prefix is not None else _default_prefix()
        self._store = store
        self._clock = clock

    @property
    def window(self) -> int:
        return self._window

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def bucket_span(self) -> int:
        return self._bucket_span

    @property
    def prefix(self) -> str:
        return self._prefix

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"RateLimitCoordinator(window={self._window}, limit={self._limit}, "
            f"bucket_span={self._bucket_span}, prefix={self._prefix!r})"
        )

    def decide(self, key: str, now: float | None = None) -> RateLimitDecision:
        """Record an event for ``key`` and decide whether it exceeds the limit.

        Never raises for store failures: they are attached to the returned
        decision. Once the lock is held it is always released.

        Args:
            key: Caller key (user id, API key, client IP...).
            now: Evaluation time as UNIX seconds; defaults to the clock.

        Returns:
            RateLimitDecision with the verdict, current count and any store error.
        """

        if now is None:
            now = self._clock()

        token = _new_lock_token()
        try:
            acquired = self._store.try_lock(key, token)
        except StoreError as exc:
            logger.warning("limiter.lock_error", extra={"error_code": exc.code})
            return RateLimitDecision(reached=True, count=0, error=exc)

        if not acquired:
            logger.info("limiter.lock_unavailable")
            return RateLimitDecision(reached=True, count=0)

        error: StoreError | None = None
        decision = RateLimitDecision(reached=True, count=0)
        storage_key = self._prefix + key
        try:
            stored = self._store.load(storage_key)
            window = stored.window if stored is not None else BucketedWindow()

            result = window.evaluate(self._window, self._limit, self._bucket_span, now)
            decision = RateLimitDecision(reached=result.reached, count=result.count)

            if result.changed:
                if result.ttl_should_reset or stored is None:
                    ttl = self._window
                else:
                    # Second clock read: the stored expiry is measured from
                    # the time of persisting, not from ``now``.
                    ttl = max(1, int(stored.expires_at - self._clock()))
                self._store.save(storage_key, window, ttl)
        except StoreError as exc:
            logger.warning("limiter.store_error", extra={"error_code": exc.code})
            error = exc
        finally:
            try:
                self._store.unlock(key, token)
            except StoreError as exc:
                logger.warning("limiter.unlock_error", extra={"error_code": exc.code})
                if error is None:
                    error = exc

        logger.debug(
            "limiter.decide",
            extra={"reached": decision.reached, "count": decision.count, "limit": self._limit},
        )
        return RateLimitDecision(reached=decision.reached, count=decision.count, error=error)

    def count(self, key: str, window_seconds: float | timedelta, *, now: float | None = None) -> int:
        """Return the number of admitted events for ``key`` in the last ``window_seconds``.

        Does not record an event or create state for unknown keys.

        Raises:
            LimiterConfigError: If ``window_seconds`` exceeds the configured window.
            LockUnavailableError: If another caller holds the key's lock.
            StoreError: If the store fails.
        """

        sub_window = _to_seconds(window_seconds)
        if sub_window > self._window:
            raise LimiterConfigError(
                code="window_too_large",
                message="window value can't be bigger than the coordinator window",
                details={"window_seconds": sub_window, "max_window_seconds": self._window},
            )

        token = _new_lock_token()
        if not self._store.try_lock(key, token):
            raise LockUnavailableError(
                code="lock_unavailable",
                message="Limiter state is locked by another caller",
            )

        try:
            stored = self._store.load(self._prefix + key)
        finally:
            self._store.unlock(key, token)

        if stored is None:
            return 0
        return stored.window.count(sub_window, now if now is not None else self._clock())

    def limit_reached(self, key: str) -> bool:
        """Record an event now and return whether the limit is reached."""

        return self.limit_reached_at(self._clock(), key)

    def limit_reached_with_count(self, key: str) -> tuple[bool, int]:
        """Record an event now and return ``(reached, count)``."""

        decision = self._raise_for_error(self.decide(key))
        return decision.reached, decision.count

    def limit_reached_at(self, now: float, key: str) -> bool:
        """Record an event at ``now`` and return whether the limit is reached."""

        return self._raise_for_error(self.decide(key, now)).reached

    @staticmethod
    def _raise_for_error(decision: RateLimitDecision) -> RateLimitDecision:
        if decision.error is not None:
            raise decision.error
        return decision
