"""Async HTTP client for the Cal.com API v2.

Cal.com API docs: https://cal.com/docs/api-reference/v2
Every request carries the API key as a Bearer token and the
``cal-api-version`` header that pins the response schema.

Calls are made exactly once.  A failed booking attempt is terminal for
the webhook call that triggered it.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from retell_calcom.config import Settings
from retell_calcom.services.metrics import MetricsClient, metrics

logger = logging.getLogger(__name__)

SERVICE_NAME = "calcom"


class CalcomAPIError(Exception):
    """Raised when a Cal.com call fails at the transport or HTTP level."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


def _upstream_message(response: httpx.Response) -> str | None:
    """Pull the human-readable error out of a Cal.com error body.

    Cal.com v2 answers with ``{"status": "error", "error": {"message": ...}}``;
    older endpoints use a top-level ``message``.
    """
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None

    message = body.get("message")
    if isinstance(message, str) and message:
        return message

    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
    elif isinstance(error, str) and error:
        return error
    return None


class CalcomClient:
    """Thin async wrapper around the Cal.com REST API v2.

    One instance is shared by all requests for the lifetime of the server;
    it holds only the connection pool and static headers.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        metrics_client: MetricsClient | None = None,
    ):
        self._timeout = settings.calcom_timeout_seconds
        self._client = httpx.AsyncClient(
            base_url=settings.calcom_base_url,
            headers={
                "Authorization": f"Bearer {settings.calcom_api_key}",
                "Content-Type": "application/json",
                "cal-api-version": settings.calcom_api_version,
            },
            timeout=settings.calcom_timeout_seconds,
            transport=transport,
        )
        self._metrics = metrics_client or metrics

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Internal helpers ─────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Execute a single HTTP request and return the decoded JSON body."""
        operation = f"{method} {path}"
        started = time.perf_counter()

        def _elapsed_ms() -> float:
            return (time.perf_counter() - started) * 1000

        try:
            response = await self._client.request(method, path, json=json_body)
        except httpx.TimeoutException as exc:
            self._metrics.record_failure(SERVICE_NAME, operation, "timeout", _elapsed_ms())
            raise CalcomAPIError(
                str(exc) or f"Request timed out after {self._timeout:g}s"
            ) from exc
        except httpx.HTTPError as exc:
            self._metrics.record_failure(SERVICE_NAME, operation, "network", _elapsed_ms())
            raise CalcomAPIError(str(exc) or type(exc).__name__) from exc

        if response.status_code >= 400:
            error_type = "5xx" if response.status_code >= 500 else "4xx"
            self._metrics.record_failure(SERVICE_NAME, operation, error_type, _elapsed_ms())
            logger.warning(
                "Cal.com %s returned %d: %s", operation, response.status_code, response.text,
            )
            raise CalcomAPIError(
                _upstream_message(response)
                or f"Request failed with status code {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            self._metrics.record_failure(SERVICE_NAME, operation, "invalid_json", _elapsed_ms())
            raise CalcomAPIError(
                "Cal.com returned a non-JSON response", status_code=response.status_code,
            ) from exc

        self._metrics.record_success(SERVICE_NAME, operation, _elapsed_ms())
        return data

    # ── Public API methods ───────────────────────────────────────────

    async def create_booking(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a booking via ``POST /bookings``.

        Args:
            payload: The request body, already in Cal.com's schema.

        Returns:
            The booking resource.  The v2 ``{"status", "data"}`` envelope is
            unwrapped; a bare resource body is returned unchanged.
        """
        body = await self._request("POST", "/bookings", json_body=payload)
        if not isinstance(body, dict):
            raise CalcomAPIError("Unexpected Cal.com response shape")
        data = body.get("data")
        if isinstance(data, dict):
            return data
        return body
