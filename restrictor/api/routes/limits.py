from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from restrictor.core.rate_limit import (
    enforce_rate_limit,
    get_coordinator,
    hash_limiter_key,
    rate_limit_headers,
)
from restrictor.schemas.limits import CountResponse, HitResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Limits"])


def _limiter_key(key: str) -> str:
    # Keeps path keys apart from the api_key:/ip: caller keys
    return f"key:{key}"


@router.post(
    "/limits/{key}/hits",
    response_model=HitResponse,
    responses={429: {"model": HitResponse, "description": "Limit reached"}},
    dependencies=[Depends(enforce_rate_limit)],
)
async def record_hit(key: str):
    """Record one event for ``key`` and return the limiter decision.

    Returns 200 when the event is admitted and 429 (same body) when the
    limit is reached. Store failures that prevent a decision surface as 503
    through the global exception handlers.
    """
    coordinator = get_coordinator()
    decision = await run_in_threadpool(coordinator.decide, _limiter_key(key))

    if decision.error is not None:
        if decision.reached and decision.count == 0:
            raise decision.error
        logger.warning(
            "limits.hit_persist_failed",
            extra={"key_hash": hash_limiter_key(key), "error_code": decision.error.code},
        )

    body = HitResponse(
        key=key,
        reached=decision.reached,
        count=decision.count,
        limit=coordinator.limit,
        window_seconds=coordinator.window,
    )
    if decision.reached:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=body.model_dump(),
            headers=rate_limit_headers(coordinator, decision),
        )
    return body


@router.get(
    "/limits/{key}",
    response_model=CountResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def get_count(
    key: str,
    window_seconds: int | None = Query(
        default=None,
        ge=1,
        description="Sub-window to count over; defaults to the full limiter window",
    ),
) -> CountResponse:
    """Return how many events were admitted for ``key`` without recording one."""
    coordinator = get_coordinator()
    window = window_seconds if window_seconds is not None else coordinator.window
    count = await run_in_threadpool(coordinator.count, _limiter_key(key), window)
    return CountResponse(key=key, count=count, window_seconds=window)
