"""FastAPI server for the Retell → Cal.com booking adapter.

Run with:
    python -m retell_calcom.server
or:
    uvicorn retell_calcom.server:create_app --factory --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from retell_calcom.api.routes import error_response, router
from retell_calcom.api.schemas import RootResponse
from retell_calcom.config import Settings, load_settings
from retell_calcom.errors import ConfigurationError
from retell_calcom.services.booking import BookingService
from retell_calcom.services.calcom_client import CalcomClient
from retell_calcom.services.metrics import metrics

logger = logging.getLogger(__name__)

SERVICE_NAME = "Retell Cal.com Booking API"


def _configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    # Silence chatty HTTP loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Open the Cal.com client once and expose the booking service on app state."""
    settings: Settings = application.state.settings
    client = CalcomClient(settings)
    application.state.booking_service = BookingService(settings, client)
    metrics.start(enabled=settings.metrics_enabled)
    logger.info(
        "Booking service ready (Cal.com %s, event type %d/%s)",
        settings.calcom_base_url, settings.event_type_id, settings.event_type_slug,
    )
    yield
    logger.info("Shutting down: closing Cal.com client")
    application.state.booking_service = None
    await client.aclose()
    metrics.flush()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application.

    Raises:
        ConfigurationError: when *settings* is omitted and the environment
            lacks required values.
    """
    if settings is None:
        settings = load_settings()
    _configure_logging(settings.log_level)

    application = FastAPI(
        title=SERVICE_NAME,
        description="Books Cal.com appointments from Retell voice-agent function calls.",
        version="1.0.0",
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.booking_service = None

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Request-ID middleware ────────────────────────────────────────
    @application.middleware("http")
    async def add_request_id(request: Request, call_next) -> Response:
        """Tag the request with an ``X-Request-ID`` for log correlation.

        A client-supplied ID is echoed back; otherwise a UUID4 is generated.
        Unhandled errors are turned into the 500 envelope here so that the
        header is present on those responses too.
        """
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        logger.info("[%s] %s %s", request_id, request.method, request.url.path)
        try:
            response = await call_next(request)
        except Exception:
            # Full traceback stays in the logs; the client gets a generic message
            logger.exception("[%s] Unhandled error on %s", request_id, request.url.path)
            response = error_response(500, "Internal server error")
        response.headers["X-Request-ID"] = request_id
        return response

    # ── Error envelopes ──────────────────────────────────────────────
    @application.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(404, "Route not found")
        return error_response(exc.status_code, str(exc.detail))

    # Last resort for errors raised outside the request-ID middleware
    @application.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", "?")
        logger.exception("[%s] Unhandled error on %s", request_id, request.url.path)
        return error_response(500, "Internal server error")

    # ── Routes ───────────────────────────────────────────────────────
    application.include_router(router)

    @application.get("/", response_model=RootResponse)
    async def root():
        """Service banner."""
        return RootResponse(
            message=f"{SERVICE_NAME} is running!",
            timestamp=datetime.now(UTC).isoformat(),
            environment=settings.environment,
        )

    return application


# ── CLI entry point ──────────────────────────────────────────────────

def main() -> None:
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        _configure_logging()
        logger.critical("Refusing to start: %s", exc)
        sys.exit(1)

    application = create_app(settings)
    logger.info("Starting %s on %s:%d", SERVICE_NAME, settings.server_host, settings.port)
    logger.info("Webhook endpoint: /webhook/retell-function")
    uvicorn.run(
        application,
        host=settings.server_host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
