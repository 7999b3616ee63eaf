"""Unit tests for signet.infra.fastapi.middleware.request_id."""

from __future__ import annotations

import uuid
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from signet.infra.fastapi.middleware.request_id import (
    REQUEST_ID_HEADER,
    RequestLoggingMiddleware,
    _is_valid_uuid,
    get_request_id,
    request_id_ctx,
)

_LOGGER = "signet.infra.fastapi.middleware.request_id.logger"


def _make_app() -> FastAPI:
    """Create a minimal app with RequestLoggingMiddleware."""
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/test")
    def test_endpoint() -> dict[str, str]:
        return {"request_id": get_request_id()}

    @app.get("/missing", status_code=404)
    def missing() -> dict[str, str]:
        return {}

    return app


class TestIsValidUUID:
    @pytest.mark.unit
    def test_valid_uuid4(self) -> None:
        assert _is_valid_uuid(str(uuid.uuid4())) is True

    @pytest.mark.unit
    def test_none(self) -> None:
        assert _is_valid_uuid(None) is False

    @pytest.mark.unit
    def test_invalid_format(self) -> None:
        assert _is_valid_uuid("not-a-uuid") is False


class TestRequestLoggingMiddleware:
    @pytest.mark.unit
    def test_generates_uuid_when_no_header(self) -> None:
        client = TestClient(_make_app())
        resp = client.get("/test")
        assert resp.status_code == 200
        response_id = resp.headers[REQUEST_ID_HEADER]
        assert _is_valid_uuid(response_id)
        assert resp.json()["request_id"] == response_id

    @pytest.mark.unit
    def test_extracts_valid_uuid_from_header(self) -> None:
        client = TestClient(_make_app())
        expected_id = str(uuid.uuid4())
        resp = client.get("/test", headers={REQUEST_ID_HEADER: expected_id})
        assert resp.headers[REQUEST_ID_HEADER] == expected_id
        assert resp.json()["request_id"] == expected_id

    @pytest.mark.unit
    def test_replaces_invalid_uuid_with_generated(self) -> None:
        client = TestClient(_make_app())
        resp = client.get("/test", headers={REQUEST_ID_HEADER: "not-a-uuid"})
        response_id = resp.headers[REQUEST_ID_HEADER]
        assert _is_valid_uuid(response_id)
        assert response_id != "not-a-uuid"

    @pytest.mark.unit
    def test_context_var_reset_after_request(self) -> None:
        client = TestClient(_make_app())
        client.get("/test")
        assert request_id_ctx.get() == ""

    @pytest.mark.unit
    def test_logs_request_completed(self) -> None:
        client = TestClient(_make_app())
        with patch(_LOGGER) as mock_logger:
            resp = client.get("/missing")

        mock_logger.info.assert_called_once()
        args, kwargs = mock_logger.info.call_args
        assert args == ("request_completed",)
        assert kwargs["method"] == "GET"
        assert kwargs["path"] == "/missing"
        assert kwargs["status"] == resp.status_code == 404
        assert kwargs["duration_ms"] >= 0

    @pytest.mark.unit
    def test_get_request_id_outside_context(self) -> None:
        assert get_request_id() == ""
