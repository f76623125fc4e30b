"""Shared test fixtures for the Retell → Cal.com test suite."""

from __future__ import annotations

import os

import httpx
import pytest

from retell_calcom.config import Settings
from retell_calcom.services.booking import BookingService
from retell_calcom.services.calcom_client import CalcomClient
from retell_calcom.services.metrics import MetricsClient


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts."""
    os.environ.setdefault("CALCOM_API_KEY", "test-calcom-key-123")


class CalcomStub:
    """Stands in for the Cal.com API behind an ``httpx.MockTransport``.

    Every request is recorded.  Set ``response`` to change the answer or
    ``error`` to an httpx exception to simulate a transport failure.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.response = httpx.Response(
            201,
            json={"status": "success", "data": {"id": 42, "uid": "abc123"}},
        )
        self.error: Exception | None = None

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        calcom_api_key="test-key",
        calcom_base_url="https://cal.test/v2",
        environment="test",
    )


@pytest.fixture
def calcom_stub() -> CalcomStub:
    return CalcomStub()


@pytest.fixture
def metrics_client() -> MetricsClient:
    return MetricsClient()


@pytest.fixture
def calcom_client(settings, calcom_stub, metrics_client) -> CalcomClient:
    return CalcomClient(settings, transport=calcom_stub.transport, metrics_client=metrics_client)


@pytest.fixture
def booking_service(settings, calcom_client) -> BookingService:
    return BookingService(settings, calcom_client)


@pytest.fixture
def jane_doe() -> dict:
    return {
        "start": "2025-01-01T10:00:00Z",
        "name": "Jane Doe",
        "phone": "+15551234567",
    }
