"""Application-level exception types.

This module defines domain errors used across the limiter, store adapters
and HTTP layer, enabling consistent error handling, logging, and API
responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what it knows.
    """

    window_seconds: int
    max_window_seconds: int
    backend: str
    operation: str


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class LimiterConfigError(ValidationAppError):
    """Raised when a coordinator is misconfigured or queried out of range."""


class StoreError(AppError):
    """Raised when a limiter store backend fails or returns garbage."""


class LockUnavailableError(StoreError):
    """Raised when the per-key lock is held by another caller."""
