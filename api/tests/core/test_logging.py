"""Tests for structlog processors and request logging context."""

from uuid import uuid4

from fastapi.testclient import TestClient

from skillpath.core.context import LedgerContext, clear_context, set_request_id
from skillpath.core.logging import add_context_processor, filter_sensitive_data


class TestFilterSensitiveData:
    def test_masks_secret_keys(self):
        event = filter_sensitive_data(
            None,
            "info",
            {
                "event": "renderer_configured",
                "api_key": "abcdefgh1234",
                "auth_token": "xyz",
                "student_id": "not-secret",
            },
        )

        assert event["api_key"] == "ab********34"
        assert event["auth_token"] == "***"
        assert event["student_id"] == "not-secret"
        assert event["event"] == "renderer_configured"

    def test_masks_nested_values(self):
        event = filter_sensitive_data(
            None, "info", {"event": "x", "headers": {"Authorization": "Bearer 123456"}}
        )

        assert event["headers"]["Authorization"].startswith("Be")
        assert "123" not in event["headers"]["Authorization"]

    def test_leaves_non_strings(self):
        event = filter_sensitive_data(None, "info", {"event": "x", "token": 42})
        assert event["token"] == 42


class TestAddContextProcessor:
    def test_adds_ledger_context(self):
        clear_context()
        student_id, course_id = uuid4(), uuid4()
        set_request_id("req-9")

        with LedgerContext(student_id, course_id):
            event = add_context_processor(None, "info", {"event": "ledger_saved"})

        assert event["request_id"] == "req-9"
        assert event["student_id"] == str(student_id)
        assert event["course_id"] == str(course_id)
        clear_context()

    def test_explicit_values_win(self):
        clear_context()
        set_request_id("req-9")

        event = add_context_processor(None, "info", {"event": "x", "request_id": "own"})

        assert event["request_id"] == "own"
        clear_context()


class TestRequestContextMiddleware:
    def test_echoes_request_id(self, client: TestClient):
        response = client.get("/", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

    def test_generates_request_id(self, client: TestClient):
        response = client.get("/")
        assert response.headers["X-Request-ID"]

    def test_error_body_carries_request_id(self, client: TestClient):
        response = client.get(
            "/v1/certificates/verify/SL-2026-000000",
            headers={"X-Request-ID": "trace-me"},
        )
        assert response.json()["request_id"] == "trace-me"
