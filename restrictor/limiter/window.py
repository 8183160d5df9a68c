"""Bucketed sliding-window counter.

A window keeps one counter per bucket instead of one timestamp per event.
Buckets are keyed by epoch seconds aligned to the bucket span, so the same
instant always maps to the same bucket regardless of when the window was
created. Memory is bounded by ``window / bucket_span`` entries.

The window knows nothing about storage or locking. It is loaded, mutated by
a single ``evaluate`` call and persisted whole by the coordinator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class WindowEvaluation:
    """Outcome of a single ``BucketedWindow.evaluate`` call.

    Attributes:
        reached: Whether the event was rejected because the window is full.
        count: Events counted in the window, including this one when admitted.
        changed: Whether the window was mutated and must be persisted.
        ttl_should_reset: Whether the stored TTL should restart at the full window.
    """

    reached: bool
    count: int
    changed: bool
    ttl_should_reset: bool


@dataclass
class BucketedWindow:
    """Per-key sliding-window state.

    Attributes:
        full_until: Epoch second before which the window is known to be full
            (0 disables the shortcut).
        buckets: Normalized epoch second -> number of events in that bucket.
    """

    full_until: int = 0
    buckets: dict[int, int] = field(default_factory=dict)

    def evaluate(self, window: int, limit: int, bucket_span: int, now: float) -> WindowEvaluation:
        """Record one event at ``now`` unless the window is already full.

        Expired buckets (timestamp <= ``now - window``) are dropped while the
        remaining ones are summed. When the limit is hit, ``full_until`` is set
        to the moment the oldest surviving bucket leaves the window so later
        calls can answer without scanning.

        Args:
            window: Window length in seconds.
            limit: Maximum admitted events per window.
            bucket_span: Bucket width in seconds (>= 1).
            now: Current epoch time; truncated to whole seconds.

        Returns:
            WindowEvaluation describing the decision and required persistence.
        """

        if limit == 0:
            return WindowEvaluation(reached=True, count=0, changed=False, ttl_should_reset=False)

        ts = int(now)
        if ts < self.full_until:
            return WindowEvaluation(reached=True, count=limit, changed=False, ttl_should_reset=False)

        boundary = ts - window
        total = 0
        oldest: int | None = None
        for bucket_ts, bucket_count in list(self.buckets.items()):
            if bucket_ts <= boundary:
                del self.buckets[bucket_ts]
                continue
            total += bucket_count
            if oldest is None or bucket_ts < oldest:
                oldest = bucket_ts

        if total < limit:
            self.full_until = 0
            normalized = ts - (ts % bucket_span)
            self.buckets[normalized] = self.buckets.get(normalized, 0) + 1
            return WindowEvaluation(reached=False, count=total + 1, changed=True, ttl_should_reset=True)

        # total >= limit > 0 guarantees at least one surviving bucket
        self.full_until = oldest + window
        return WindowEvaluation(reached=True, count=limit, changed=True, ttl_should_reset=False)

    def count(self, window: int, now: float) -> int:
        """Return the number of events within ``window`` seconds of ``now``.

        Read-only: expired buckets are skipped, not removed.
        """

        boundary = int(now) - window
        return sum(c for ts, c in self.buckets.items() if ts > boundary)

    def to_dict(self) -> dict[str, Any]:
        """Serialize into JSON-compatible primitives (bucket keys become strings)."""

        return {
            "full_until": self.full_until,
            "buckets": {str(ts): c for ts, c in self.buckets.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BucketedWindow":
        """Rebuild a window from ``to_dict`` output.

        Raises:
            ValueError: If the payload has the wrong shape or negative counts.
        """

        try:
            full_until = int(data.get("full_until", 0))
            buckets = {int(ts): int(c) for ts, c in dict(data.get("buckets") or {}).items()}
        except (TypeError, ValueError, AttributeError) as exc:
            raise ValueError(f"malformed window payload: {exc}") from exc

        if any(c < 0 for c in buckets.values()):
            raise ValueError("malformed window payload: negative bucket count")
        return cls(full_until=full_until, buckets=buckets)
