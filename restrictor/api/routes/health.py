from __future__ import annotations

from fastapi import APIRouter

from restrictor.core.config import settings
from restrictor.core.rate_limit import get_coordinator

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Reports liveness plus the active limiter configuration so operators can
    confirm every worker runs with the same window, limit and backend. Does
    not touch the store.

    Returns:
        dict: ``status`` plus a ``limiter`` summary.
    """

    coordinator = get_coordinator()
    return {
        "status": "ok",
        "limiter": {
            "window_seconds": coordinator.window,
            "limit": coordinator.limit,
            "bucket_span_seconds": coordinator.bucket_span,
            "store_backend": settings.limiter.store_backend,
        },
    }
