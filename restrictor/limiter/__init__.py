"""Sliding-window algorithm and its store coordination."""

from restrictor.limiter.coordinator import RateLimitCoordinator, RateLimitDecision
from restrictor.limiter.window import BucketedWindow, WindowEvaluation

__all__ = [
    "BucketedWindow",
    "RateLimitCoordinator",
    "RateLimitDecision",
    "WindowEvaluation",
]
