"""Pydantic schemas for limiter API responses."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HitResponse(BaseModel):
    """Decision recorded for one event on a limiter key."""

    key: str = Field(..., description="Limiter key the event was recorded for")
    reached: bool = Field(..., description="Whether the limit is reached and the event was rejected")
    count: int = Field(..., ge=0, description="Events in the current window after this call")
    limit: int = Field(..., ge=0, description="Maximum admitted events per window")
    window_seconds: int = Field(..., ge=1, description="Sliding window length in seconds")


class CountResponse(BaseModel):
    """Read-only event count for a limiter key."""

    key: str = Field(..., description="Limiter key that was inspected")
    count: int = Field(..., ge=0, description="Admitted events within the requested window")
    window_seconds: int = Field(..., ge=1, description="Window the count covers, in seconds")
