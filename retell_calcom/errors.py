"""Exception hierarchy for the Retell → Cal.com booking adapter.

Every error raised while handling a webhook maps to one HTTP status so the
API layer can render it without inspecting messages.

Usage:
    from retell_calcom.errors import BookingValidationError

    raise BookingValidationError("Missing required field: start")
"""

from __future__ import annotations


class AdapterError(Exception):
    """Base class for all adapter errors."""

    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(AdapterError):
    """Required configuration is missing or malformed. Fatal at startup."""


class BookingValidationError(AdapterError):
    """The inbound function-call arguments are incomplete or malformed."""

    status_code = 400


class UnknownFunctionError(BookingValidationError):
    """The caller asked for a function this adapter does not implement."""

    def __init__(self, function_name: str):
        self.function_name = function_name
        super().__init__(f"Unknown function: {function_name}")


class BookingError(AdapterError):
    """The Cal.com booking call failed (network, timeout or non-2xx)."""

    status_code = 500
