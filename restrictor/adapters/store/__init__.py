"""Limiter store adapters.

The coordinator only sees ``AbstractLimiterStore``; the factory picks the
in-memory backend for single-process use or Redis for shared state.
"""
