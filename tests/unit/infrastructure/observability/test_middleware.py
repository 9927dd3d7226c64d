"""Unit tests for RequestLoggingMiddleware."""

import logging
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from soundkeep.infrastructure.observability.middleware import RequestLoggingMiddleware


class TestRequestLoggingMiddleware:
    """Test suite for RequestLoggingMiddleware."""

    @pytest.fixture
    def app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware)

        @app.get("/test")
        async def test_endpoint():
            return {"message": "test"}

        @app.get("/api/hls/{track_id}/seg/{segment}")
        async def segment(track_id: int, segment: str):
            return {"segment": segment}

        return app

    @pytest.fixture
    def client(self, app: FastAPI) -> TestClient:
        return TestClient(app)

    def test_echoes_incoming_correlation_id(self, client: TestClient):
        response = client.get("/test", headers={"X-Correlation-ID": "abc-123"})

        assert response.status_code == 200
        assert response.headers["X-Correlation-ID"] == "abc-123"

    def test_generates_correlation_id(self, client: TestClient):
        response = client.get("/test")

        assert len(response.headers["X-Correlation-ID"]) == 36

    def test_segment_requests_log_at_debug(self, client: TestClient):
        with patch("soundkeep.infrastructure.observability.middleware.logger") as logger:
            client.get("/api/hls/1/seg/seg_00003.ts")

        levels = {call.args[0] for call in logger.log.call_args_list}
        assert levels == {logging.DEBUG}

    def test_regular_requests_log_at_info(self, client: TestClient):
        with patch("soundkeep.infrastructure.observability.middleware.logger") as logger:
            client.get("/test")

        levels = {call.args[0] for call in logger.log.call_args_list}
        assert levels == {logging.INFO}
