"""Factory functions for limiter stores and coordinators."""

from __future__ import annotations

import logging

from restrictor.adapters.store.base import AbstractLimiterStore
from restrictor.adapters.store.in_memory import InMemoryLimiterStore
from restrictor.adapters.store.redis_store import RedisLimiterStore
from restrictor.core.config import LimiterSettings, settings
from restrictor.core.errors import LimiterConfigError
from restrictor.limiter.coordinator import RateLimitCoordinator

logger = logging.getLogger(__name__)


def create_store(limiter_settings: LimiterSettings | None = None) -> AbstractLimiterStore:
    """Instantiate the store backend selected in settings.

    Args:
        limiter_settings: Limiter settings; defaults to the global settings.

    Returns:
        AbstractLimiterStore: Configured store instance.

    Raises:
        LimiterConfigError: If backend-specific requirements are not met.
    """
    cfg = limiter_settings or settings.limiter
    backend = cfg.store_backend.lower()

    if backend == "memory":
        logger.info("store.created", extra={"backend": backend})
        return InMemoryLimiterStore(lock_timeout_seconds=cfg.lock_timeout_ms / 1000.0)

    if backend == "redis":
        if not cfg.redis_url:
            raise LimiterConfigError(
                code="redis_missing_url",
                message="Redis store requires LIMITER_REDIS_URL environment variable",
                details={"backend": backend},
            )
        logger.info("store.created", extra={"backend": backend})
        return RedisLimiterStore.from_url(
            cfg.redis_url,
            key_prefix=cfg.redis_key_prefix,
            lock_timeout_ms=cfg.lock_timeout_ms,
        )

    raise LimiterConfigError(
        code="unknown_store_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: memory, redis",
        details={"backend": backend},
    )


def create_coordinator(
    limiter_settings: LimiterSettings | None = None,
    store: AbstractLimiterStore | None = None,
) -> RateLimitCoordinator:
    """Build a coordinator from settings, creating the store when not given."""

    cfg = limiter_settings or settings.limiter
    return RateLimitCoordinator(
        cfg.window_seconds,
        cfg.limit,
        cfg.buckets,
        store if store is not None else create_store(cfg),
        prefix=cfg.key_prefix,
    )
