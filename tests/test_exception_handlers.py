"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from restrictor.core.errors import (
    AppError,
    ErrorDetails,
    LimiterConfigError,
    LockUnavailableError,
    StoreError,
    ValidationAppError,
)
from restrictor.core.exception_handlers import (
    general_exception_handler,
    setup_exception_handlers,
    status_code_for,
)


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


class TestStatusMapping:
    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (ValidationAppError(code="v", message="v"), 400),
            (LimiterConfigError(code="c", message="c"), 400),
            (StoreError(code="s", message="s"), 503),
            (LockUnavailableError(code="l", message="l"), 503),
            (AppError(code="a", message="a"), 500),
        ],
    )
    def test_status_code_for(self, error: AppError, status: int) -> None:
        assert status_code_for(error) == status


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_config_error_returns_400_with_details(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-config")
        async def test_endpoint():
            raise LimiterConfigError(
                code="window_too_large",
                message="window value can't be bigger than the coordinator window",
                details={"window_seconds": 120, "max_window_seconds": 60},
            )

        response = client.get("/test-config")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "window_too_large"
        assert data["error"]["details"] == {"window_seconds": 120, "max_window_seconds": 60}
        assert "request_id" in data["error"]

    def test_store_error_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-store")
        async def test_endpoint():
            raise StoreError(code="store_unavailable", message="Redis load failed")

        response = client.get("/test-store")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "store_unavailable"
        assert "Retry-After" not in response.headers

    def test_lock_unavailable_suggests_retry(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-lock")
        async def test_endpoint():
            raise LockUnavailableError(code="lock_unavailable", message="locked")

        response = client.get("/test-lock")

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "1"

    def test_details_omitted_when_absent(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise ValidationAppError(code="test", message="test")

        data = client.get("/test-format").json()

        assert set(data["error"]) == {"code", "message", "request_id"}


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        assert Exception in app_with_handlers.exception_handlers

    def test_general_exception_handler_hides_internals(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = RuntimeError("redis://:hunter2@cache:6379 refused connection")
        response = asyncio.run(general_exception_handler(request, exc))

        body = bytes(response.body).decode()
        data = json.loads(body)
        assert response.status_code == 500
        assert data["error"]["code"] == "internal_server_error"
        assert "hunter2" not in body
        assert "RuntimeError" not in body
        assert "Traceback" not in body


def test_multiple_handler_setups_does_not_fail():
    app = FastAPI()

    setup_exception_handlers(app)
    setup_exception_handlers(app)

    assert AppError in app.exception_handlers


def test_error_details_lists_only_emitted_keys():
    assert set(ErrorDetails.__annotations__) == {
        "window_seconds",
        "max_window_seconds",
        "backend",
        "operation",
    }
