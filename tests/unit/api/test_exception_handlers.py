"""Tests for the domain exception → HTTP status mapping."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from soundkeep.api.exception_handlers import register_exception_handlers
from soundkeep.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    EntityNotFoundException,
    InvalidPathError,
    NotReadyError,
    StorageUnavailableError,
)

_ERRORS = {
    "not-found": EntityNotFoundException("Track", 42),
    "not-ready": NotReadyError("t42_1_1.flac"),
    "invalid-path": InvalidPathError("invalid path component", "../x"),
    "unauthenticated": AuthenticationError("Missing X-User-Id header"),
    "forbidden": AuthorizationError("admins only"),
    "storage": StorageUnavailableError("Job store enqueue failed"),
    "config": ConfigurationError("bad db path"),
}


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/raise/{name}")
    async def raise_error(name: str):
        raise _ERRORS[name]

    return TestClient(app)


class TestExceptionHandlers:
    @pytest.mark.parametrize(
        ("name", "status_code"),
        [
            ("not-found", 404),
            ("not-ready", 404),
            ("invalid-path", 400),
            ("unauthenticated", 401),
            ("forbidden", 403),
            ("storage", 503),
            ("config", 503),
        ],
    )
    def test_status_codes(self, client: TestClient, name: str, status_code: int) -> None:
        response = client.get(f"/raise/{name}")

        assert response.status_code == status_code
        assert response.json()["detail"] == _ERRORS[name].message

    def test_not_ready_is_distinguishable_from_not_found(self, client: TestClient) -> None:
        assert client.get("/raise/not-ready").json()["error"] == "not_ready"
        assert "error" not in client.get("/raise/not-found").json()

    def test_unknown_route_uses_http_handler(self, client: TestClient) -> None:
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json() == {"detail": "Not Found"}
