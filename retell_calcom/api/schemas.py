"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from retell_calcom.models import BookingResult


class FunctionCall(BaseModel):
    """``function_call`` object of the original webhook convention."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    arguments: dict[str, Any] | str | None = None


class WebhookResponse(BaseModel):
    """Successful webhook reply."""

    success: bool = True
    result: BookingResult


class ErrorResponse(BaseModel):
    """Envelope for every error the service returns."""

    success: bool = False
    error: str = Field(..., description="Human-readable error message")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"


class RootResponse(BaseModel):
    """Service banner returned by ``GET /``."""

    message: str
    status: str = "healthy"
    timestamp: str
    environment: str
