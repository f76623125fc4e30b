"""Request-scoped data shapes for a single booking.

Nothing here outlives one webhook call.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class BookingArguments(BaseModel):
    """Arguments of a ``book_calcom_appointment_custom`` function call.

    Every field is optional at parse time; presence of the required ones is
    checked by the booking service so that the first missing field can be
    reported by name.  Unknown fields sent by the voice agent are ignored.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    start: str | None = Field(None, description="ISO-8601 appointment start time")
    name: str | None = Field(None, description="Attendee display name")
    phone: str | None = Field(None, description="Attendee phone number")


class Attendee(BaseModel):
    name: str
    phone_number: str = Field(..., serialization_alias="phoneNumber")
    time_zone: str = Field(..., serialization_alias="timeZone")
    language: str = "en"


class CalcomBookingRequest(BaseModel):
    """Body of ``POST /bookings``."""

    start: str
    attendee: Attendee
    event_type_id: int = Field(..., serialization_alias="eventTypeId")
    event_type_slug: str = Field(..., serialization_alias="eventTypeSlug")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class BookingResult(BaseModel):
    """Normalized outcome of a successful booking."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    booking_id: int | str | None = Field(None, alias="bookingId")
    booking_reference: str | None = Field(None, alias="bookingReference")
    message: str
