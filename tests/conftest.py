"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment before any import loads settings, so tests never
pick up a developer's .env file or a real Redis URL.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["LIMITER_STORE_BACKEND"] = "memory"
os.environ["LIMITER_WINDOW_SECONDS"] = "60"
os.environ["LIMITER_LIMIT"] = "3"
os.environ["LIMITER_BUCKETS"] = "60"
os.environ["APP_RATE_LIMIT_LIMIT"] = "10"
os.environ["APP_RATE_LIMIT_WINDOW_SECONDS"] = "60"
os.environ["APP_RATE_LIMIT_BUCKETS"] = "60"
os.environ.pop("LIMITER_REDIS_URL", None)
os.environ.pop("LIMITER_KEY_PREFIX", None)
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from restrictor.core import rate_limit


class FakeClock:
    """Deterministic, manually advanced UNIX clock."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _fresh_coordinator():
    """Drop the process-wide coordinator between tests."""
    rate_limit.reset_coordinator()
    yield
    rate_limit.reset_coordinator()
