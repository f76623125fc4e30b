"""Tests for the FastAPI endpoints."""

from __future__ import annotations

import json
from datetime import datetime
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from retell_calcom.server import create_app
from retell_calcom.services.booking import BookingService

WEBHOOK = "/webhook/retell-function"


@pytest.fixture
def app(settings, booking_service):
    """Application with the booking service attached (mirrors the lifespan)."""
    application = create_app(settings)
    application.state.booking_service = booking_service
    return application


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


def _function_call(arguments, name="book_calcom_appointment_custom") -> dict:
    return {"function_call": {"name": name, "arguments": arguments}}


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_health_ignores_calcom_outage(self, client, calcom_stub):
        calcom_stub.error = httpx.ConnectError("unreachable")
        response = client.get("/health")
        assert response.status_code == 200
        assert calcom_stub.requests == []


class TestRootEndpoint:
    def test_root_returns_service_info(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Retell Cal.com Booking API is running!"
        assert data["status"] == "healthy"
        assert data["environment"] == "test"
        datetime.fromisoformat(data["timestamp"])


class TestWebhookSuccess:
    def test_function_call_convention(self, client, jane_doe):
        response = client.post(WEBHOOK, json=_function_call(jane_doe))
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "result": {
                "success": True,
                "bookingId": 42,
                "bookingReference": "abc123",
                "message": "Appointment booked successfully for Jane Doe on 2025-01-01T10:00:00Z",
            },
        }

    def test_arguments_as_json_string(self, client, calcom_stub, jane_doe):
        response = client.post(WEBHOOK, json=_function_call(json.dumps(jane_doe)))
        assert response.status_code == 200
        assert len(calcom_stub.requests) == 1

    def test_retell_args_convention(self, client, calcom_stub, jane_doe):
        payload = {
            "name": "book_calcom_appointment_custom",
            "call": {"call_id": "call_123", "from_number": "+15551234567"},
            "args": jane_doe,
        }
        response = client.post(WEBHOOK, json=payload)
        assert response.status_code == 200
        assert response.json()["result"]["bookingReference"] == "abc123"
        sent = json.loads(calcom_stub.requests[0].content)
        assert sent["attendee"]["name"] == "Jane Doe"

    def test_top_level_arguments(self, client, calcom_stub, jane_doe):
        response = client.post(WEBHOOK, json=jane_doe)
        assert response.status_code == 200
        assert len(calcom_stub.requests) == 1

    def test_forwarded_body_matches_arguments(self, client, calcom_stub, jane_doe):
        client.post(WEBHOOK, json=_function_call(jane_doe))
        sent = json.loads(calcom_stub.requests[0].content)
        assert sent["attendee"]["phoneNumber"] == "+15551234567"
        assert sent["eventTypeId"] == 2905891


class TestWebhookClientErrors:
    @pytest.mark.parametrize(
        "raw",
        ["null", "[1, 2, 3]", "\"just a string\"", "", "{not json"],
    )
    def test_body_must_be_json_object(self, client, calcom_stub, raw):
        response = client.post(
            WEBHOOK, content=raw, headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Request body must be a JSON object",
        }
        assert calcom_stub.requests == []

    def test_unknown_function(self, client, calcom_stub, jane_doe):
        response = client.post(WEBHOOK, json=_function_call(jane_doe, name="cancel_appointment"))
        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Unknown function: cancel_appointment",
        }
        assert calcom_stub.requests == []

    @pytest.mark.parametrize("field", ["start", "name", "phone"])
    def test_missing_field(self, client, calcom_stub, jane_doe, field):
        arguments = {k: v for k, v in jane_doe.items() if k != field}
        response = client.post(WEBHOOK, json=_function_call(arguments))
        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert field in data["error"]
        assert calcom_stub.requests == []

    def test_function_call_must_be_object(self, client):
        response = client.post(WEBHOOK, json={"function_call": None})
        assert response.status_code == 400
        assert response.json()["error"] == "function_call must be a JSON object"

    def test_function_call_with_list_arguments_names_the_field(self, client, calcom_stub):
        response = client.post(WEBHOOK, json=_function_call([1, 2, 3]))
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid function_call: function_call.arguments"
        assert calcom_stub.requests == []

    def test_function_call_with_numeric_name_names_the_field(self, client, jane_doe):
        response = client.post(WEBHOOK, json=_function_call(jane_doe, name=7))
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid function_call: function_call.name"

    def test_malformed_arguments_string(self, client):
        response = client.post(WEBHOOK, json=_function_call("{start: oops"))
        assert response.status_code == 400
        assert response.json()["error"] == "function_call.arguments is not valid JSON"

    def test_non_object_args(self, client):
        response = client.post(WEBHOOK, json={"name": "book_calcom_appointment_custom", "args": [1]})
        assert response.status_code == 400
        assert response.json()["error"] == "args must be a JSON object"


class TestWebhookServerErrors:
    def test_upstream_failure_returns_500(self, client, calcom_stub, jane_doe):
        calcom_stub.error = httpx.ReadTimeout("timed out")
        response = client.post(WEBHOOK, json=_function_call(jane_doe))
        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert "Cal.com booking failed" in data["error"]

    def test_upstream_message_is_passed_through(self, client, calcom_stub, jane_doe):
        calcom_stub.response = httpx.Response(
            400, json={"status": "error", "error": {"message": "Invalid event type"}},
        )
        response = client.post(WEBHOOK, json=_function_call(jane_doe))
        assert response.status_code == 500
        assert response.json()["error"] == "Cal.com booking failed: Invalid event type"

    def test_unexpected_error_is_not_leaked(self, app, client, jane_doe):
        async def explode(params):
            raise RuntimeError("secret internals")

        app.state.booking_service.book_appointment = explode
        response = client.post(WEBHOOK, json=_function_call(jane_doe))
        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Internal server error"}

    def test_unexpected_error_keeps_request_id(self, app, client, jane_doe):
        async def explode(params):
            raise RuntimeError("secret internals")

        app.state.booking_service.book_appointment = explode
        response = client.post(
            WEBHOOK, json=_function_call(jane_doe), headers={"X-Request-ID": "trace-1"},
        )
        assert response.status_code == 500
        assert response.headers["X-Request-ID"] == "trace-1"

    def test_returns_503_when_service_not_ready(self, app, client, jane_doe):
        app.state.booking_service = None
        response = client.post(WEBHOOK, json=_function_call(jane_doe))
        assert response.status_code == 503
        data = response.json()
        assert data["success"] is False
        assert "starting up" in data["error"]


class TestRouting:
    def test_unknown_path_returns_404_envelope(self, client):
        response = client.get("/unknown-path")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Route not found"}

    def test_unknown_path_any_method(self, client):
        response = client.post("/webhook/other", json={})
        assert response.status_code == 404
        assert response.json()["error"] == "Route not found"

    def test_wrong_method_uses_error_envelope(self, client):
        response = client.get(WEBHOOK)
        assert response.status_code == 405
        assert response.json() == {"success": False, "error": "Method Not Allowed"}


class TestRequestId:
    def test_response_includes_request_id_header(self, client):
        response = client.get("/health")
        assert "X-Request-ID" in response.headers

    def test_client_supplied_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "my-trace-id-123"})
        assert response.headers["X-Request-ID"] == "my-trace-id-123"


class TestLifespan:
    def test_lifespan_builds_and_releases_booking_service(self, settings):
        application = create_app(settings)
        with TestClient(application) as tc:
            assert isinstance(application.state.booking_service, BookingService)
            assert tc.get("/health").status_code == 200
        assert application.state.booking_service is None

    def test_shutdown_closes_calcom_client_and_flushes_metrics(self, settings):
        application = create_app(settings)
        with patch("retell_calcom.server.metrics") as mock_metrics:
            with TestClient(application):
                calcom_client = application.state.booking_service._client
                assert not calcom_client._client.is_closed
                mock_metrics.flush.assert_not_called()

        assert calcom_client._client.is_closed
        mock_metrics.flush.assert_called_once()

    def test_startup_passes_metrics_switch(self, settings):
        application = create_app(settings.model_copy(update={"metrics_enabled": True}))
        with patch("retell_calcom.server.metrics") as mock_metrics:
            with TestClient(application):
                pass
        mock_metrics.start.assert_called_once_with(enabled=True)
