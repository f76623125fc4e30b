"""Translate Retell booking requests into Cal.com bookings.

Flow for one call: validate ``start``/``name``/``phone`` → build the
Cal.com body from the arguments plus static settings → ``POST /bookings``
→ normalize the answer.  Validation failures never reach the network.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from retell_calcom.config import Settings
from retell_calcom.errors import BookingError, BookingValidationError
from retell_calcom.models import (
    Attendee,
    BookingArguments,
    BookingResult,
    CalcomBookingRequest,
)
from retell_calcom.services.calcom_client import CalcomAPIError, CalcomClient

logger = logging.getLogger(__name__)

BOOKING_FUNCTION_NAME = "book_calcom_appointment_custom"
REQUIRED_FIELDS = ("start", "name", "phone")
ATTENDEE_LANGUAGE = "en"


def _is_missing(value: str | None) -> bool:
    return value is None or not value.strip()


def validate_arguments(params: BookingArguments | Mapping[str, Any]) -> BookingArguments:
    """Parse *params* and check the required fields in order.

    Raises:
        BookingValidationError: naming the first missing field, or
            describing why the arguments could not be parsed.
    """
    if isinstance(params, BookingArguments):
        args = params
    else:
        try:
            args = BookingArguments.model_validate(params)
        except PydanticValidationError as exc:
            fields = ", ".join(
                ".".join(str(part) for part in err["loc"]) or "arguments"
                for err in exc.errors()
            )
            raise BookingValidationError(f"Invalid booking arguments: {fields}") from exc

    for field in REQUIRED_FIELDS:
        if _is_missing(getattr(args, field)):
            raise BookingValidationError(f"Missing required field: {field}")
    return args


def build_booking_request(args: BookingArguments, settings: Settings) -> CalcomBookingRequest:
    """Map validated arguments onto Cal.com's booking schema."""
    return CalcomBookingRequest(
        start=args.start,
        attendee=Attendee(
            name=args.name,
            phone_number=args.phone,
            time_zone=settings.default_time_zone,
            language=ATTENDEE_LANGUAGE,
        ),
        event_type_id=settings.event_type_id,
        event_type_slug=settings.event_type_slug,
    )


class BookingService:
    """Books appointments in Cal.com on behalf of the voice agent."""

    def __init__(self, settings: Settings, client: CalcomClient):
        self._settings = settings
        self._client = client

    async def book_appointment(
        self, params: BookingArguments | Mapping[str, Any],
    ) -> BookingResult:
        """Validate *params*, create the booking and normalize the result.

        Each call is one independent booking attempt; identical calls
        create duplicate bookings.

        Raises:
            BookingValidationError: a required field is missing.
            BookingError: the Cal.com call failed.
        """
        args = validate_arguments(params)
        payload = build_booking_request(args, self._settings).to_payload()
        logger.info("Sending booking request to Cal.com: %s", payload)

        try:
            booking = await self._client.create_booking(payload)
        except CalcomAPIError as exc:
            logger.error("Cal.com booking error (status=%s): %s", exc.status_code, exc)
            raise BookingError(f"Cal.com booking failed: {exc}") from exc

        logger.info("Cal.com booking successful: id=%s uid=%s", booking.get("id"), booking.get("uid"))
        return BookingResult(
            booking_id=booking.get("id"),
            booking_reference=booking.get("uid"),
            message=f"Appointment booked successfully for {args.name} on {args.start}",
        )
