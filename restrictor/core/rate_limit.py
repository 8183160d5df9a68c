"""Rate limiting dependency for FastAPI routes.

This module wires the sliding-window coordinator into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the store backend is chosen by settings behind an
  abstract interface.
- Fail-closed: when the per-key lock is unavailable the request is throttled.

Rate limiting strategy:
- Sliding window per API key.
- If the API key header is missing, fall back to client IP.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Annotated

from fastapi import Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from restrictor.adapters.store.factory import create_coordinator
from restrictor.core.config import LimiterSettings, settings
from restrictor.limiter.coordinator import RateLimitCoordinator, RateLimitDecision

logger = logging.getLogger(__name__)


# role -> (settings snapshot, coordinator)
_coordinators: dict[str, tuple[LimiterSettings, RateLimitCoordinator]] = {}


def _cached_coordinator(role: str, config: LimiterSettings) -> RateLimitCoordinator:
    """Return the cached coordinator for ``role``, rebuilding it when ``config`` changed.

    The instance is cached in-module so the in-memory store keeps its state
    across requests. If configuration changes (primarily in tests), the
    coordinator is rebuilt.
    """

    cached = _coordinators.get(role)
    if cached is not None and cached[0] == config:
        return cached[1]

    coordinator = create_coordinator(config)
    _coordinators[role] = (config.model_copy(), coordinator)
    logger.info(
        "rate_limit.coordinator_created",
        extra={
            "role": role,
            "window_s": coordinator.window,
            "limit": coordinator.limit,
            "bucket_span_s": coordinator.bucket_span,
            "backend": config.store_backend,
        },
    )
    return coordinator


def get_coordinator() -> RateLimitCoordinator:
    """Return the coordinator counting events for ``/v1/limits`` path keys."""

    return _cached_coordinator("limits", settings.limiter)


def caller_limiter_settings() -> LimiterSettings:
    """Limiter settings for throttling API callers.

    Store settings come from ``settings.limiter``; window, limit and buckets
    come from the ``APP_RATE_LIMIT_*`` fields so callers that record hits for
    many keys are not throttled by the per-key limit.
    """

    base = settings.limiter
    app = settings.app
    return base.model_copy(
        update={
            "window_seconds": app.rate_limit_window_seconds,
            "limit": app.rate_limit_limit,
            "buckets": app.rate_limit_buckets,
            "key_prefix": f"{base.key_prefix}caller_" if base.key_prefix else None,
        }
    )


def get_caller_coordinator() -> RateLimitCoordinator:
    """Return the coordinator used by :func:`enforce_rate_limit`."""

    return _cached_coordinator("caller", caller_limiter_settings())


def reset_coordinator() -> None:
    """Forget the cached coordinators so the next request builds new ones."""

    _coordinators.clear()


def build_client_key(request: Request, x_api_key: str | None) -> str:
    """Build the limiter key identifying the caller of the current request."""

    if x_api_key:
        return f"api_key:{x_api_key}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


def hash_limiter_key(key: str) -> str:
    """Hash a limiter key for logging without exposing secrets."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def rate_limit_headers(coordinator: RateLimitCoordinator, decision: RateLimitDecision) -> dict[str, str]:
    """Headers describing the caller's budget after ``decision``.

    ``Retry-After`` is the bucket span: the soonest an old bucket can leave
    the window and free capacity. A fail-closed rejection reports count 0, so
    any rejection advertises no remaining budget.
    """

    remaining = 0 if decision.reached else max(0, coordinator.limit - decision.count)
    return {
        "Retry-After": str(coordinator.bucket_span),
        "X-RateLimit-Limit": str(coordinator.limit),
        "X-RateLimit-Remaining": str(remaining),
    }


async def enforce_rate_limit(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency enforcing the sliding-window limit.

    When enabled, records one event for the requester. If the limit is
    reached (or the limiter lock is contended) raises HTTP 429.

    Raises:
        HTTPException: 429 Too Many Requests when the limit is reached.
    """

    if not settings.app.rate_limit_enabled:
        return

    coordinator = get_caller_coordinator()
    key = build_client_key(request, x_api_key)
    key_hash = hash_limiter_key(key)
    key_type = "api_key" if x_api_key else "ip"

    decision = await run_in_threadpool(coordinator.decide, key)

    if decision.error is not None:
        logger.warning(
            "rate_limit.store_error",
            extra={
                "key_type": key_type,
                "key_hash": key_hash,
                "error_code": decision.error.code,
                "reached": decision.reached,
            },
        )

    if not decision.reached:
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": key_hash,
                "limit": coordinator.limit,
                "count": decision.count,
                "window_s": coordinator.window,
            },
        )
        return

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": key_hash,
            "limit": coordinator.limit,
            "count": decision.count,
            "window_s": coordinator.window,
        },
    )

    headers = rate_limit_headers(coordinator, decision) if settings.app.rate_limit_include_headers else None

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers,
    )
