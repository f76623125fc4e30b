"""FastAPI route definitions for the Retell webhook."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from retell_calcom.api.schemas import (
    ErrorResponse,
    FunctionCall,
    HealthResponse,
    WebhookResponse,
)
from retell_calcom.errors import AdapterError, BookingValidationError, UnknownFunctionError
from retell_calcom.services.booking import BOOKING_FUNCTION_NAME, BookingService

logger = logging.getLogger(__name__)

router = APIRouter()


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


def _get_booking_service(request: Request) -> BookingService:
    """Retrieve the booking service built by the lifespan (see ``server.py``)."""
    service = getattr(request.app.state, "booking_service", None)
    if service is None:
        raise HTTPException(
            status_code=503,
            detail="The booking service is still starting up. Please try again in a moment.",
        )
    return service


def _decode_arguments(raw: Any, where: str) -> dict[str, Any]:
    """Accept arguments as an object or as a JSON-encoded object string."""
    if raw is None:
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise BookingValidationError(f"{where} is not valid JSON") from None
    if not isinstance(raw, dict):
        raise BookingValidationError(f"{where} must be a JSON object")
    return raw


def extract_function_call(body: dict[str, Any]) -> tuple[str | None, dict[str, Any]]:
    """Return ``(function_name, arguments)`` from a webhook body.

    Supported shapes, checked in order:

    * ``{"function_call": {"name": ..., "arguments": {...}}}``
    * ``{"name": ..., "args": {...}, "call": {...}}`` (Retell custom function)
    * the booking arguments themselves at the top level (no function name)
    """
    if "function_call" in body:
        raw_call = body["function_call"]
        if not isinstance(raw_call, dict):
            raise BookingValidationError("function_call must be a JSON object")
        try:
            call = FunctionCall.model_validate(raw_call)
        except PydanticValidationError as exc:
            # Union members add their own loc entries; report the top-level field once
            fields = ", ".join(
                dict.fromkeys(f"function_call.{err['loc'][0]}" for err in exc.errors())
            )
            raise BookingValidationError(f"Invalid function_call: {fields}") from None
        return call.name, _decode_arguments(call.arguments, "function_call.arguments")

    if "args" in body:
        name = body.get("name")
        return (
            name if isinstance(name, str) else None,
            _decode_arguments(body["args"], "args"),
        )

    return None, body


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness check.  Never touches Cal.com."""
    return HealthResponse()


@router.post(
    "/webhook/retell-function",
    response_model=WebhookResponse,
    responses={
        400: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def retell_function(http_request: Request):
    """Handle a Retell function call and book the appointment in Cal.com.

    The body is parsed by hand: malformed input answers 400 with the
    ``{success, error}`` envelope, never FastAPI's 422 format.
    """
    request_id = getattr(http_request.state, "request_id", "?")

    try:
        body = await http_request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        logger.warning("[%s] Rejected webhook: body is not a JSON object", request_id)
        return error_response(400, "Request body must be a JSON object")

    logger.info("[%s] Received function call: %s", request_id, body)
    service = _get_booking_service(http_request)

    try:
        function_name, arguments = extract_function_call(body)
        if function_name is not None and function_name != BOOKING_FUNCTION_NAME:
            raise UnknownFunctionError(function_name)
        result = await service.book_appointment(arguments)
    except AdapterError as exc:
        logger.warning(
            "[%s] %s (HTTP %d): %s",
            request_id, type(exc).__name__, exc.status_code, exc.message,
        )
        return error_response(exc.status_code, exc.message)

    logger.info("[%s] Booking %s created", request_id, result.booking_reference)
    return WebhookResponse(result=result)
