"""Centralized configuration for the Retell → Cal.com booking adapter.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/retell-calcom/<VARIABLE_NAME>``.

Settings are loaded once by :func:`load_settings` into a frozen model and
handed to whatever needs them; nothing reads the environment at request time.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from retell_calcom.errors import ConfigurationError

logger = logging.getLogger(__name__)

SSM_PREFIX = "/retell-calcom"

# ── Deployment defaults ──────────────────────────────────────────────
DEFAULT_CALCOM_BASE_URL = "https://api.cal.com/v2"
DEFAULT_CALCOM_API_VERSION = "2024-08-13"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_EVENT_TYPE_ID = 2905891
DEFAULT_EVENT_TYPE_SLUG = "advanced"
DEFAULT_TIME_ZONE = "Asia/Kolkata"
DEFAULT_PORT = 3000


class Settings(BaseModel):
    """Read-only process configuration."""

    model_config = ConfigDict(frozen=True)

    calcom_api_key: str
    calcom_base_url: str = DEFAULT_CALCOM_BASE_URL
    calcom_api_version: str = DEFAULT_CALCOM_API_VERSION
    calcom_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    event_type_id: int = DEFAULT_EVENT_TYPE_ID
    event_type_slug: str = DEFAULT_EVENT_TYPE_SLUG
    default_time_zone: str = DEFAULT_TIME_ZONE
    cors_origins: list[str] = ["*"]
    server_host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    environment: str = "development"
    log_level: str = "INFO"
    metrics_enabled: bool = False


# ── Secret resolution ────────────────────────────────────────────────

def _on_aws() -> bool:
    return bool(os.getenv("AWS_EXECUTION_ENV"))


def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"{SSM_PREFIX}/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    # 1. Env var / .env (always wins)
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    # 2. SSM Parameter Store (only on AWS)
    if _on_aws():
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise ConfigurationError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store {SSM_PREFIX}/{name} (AWS)."
    )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if not raw:
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{name} must be true or false, got {raw!r}")


def _list_env(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_settings() -> Settings:
    """Build :class:`Settings` from the environment (and ``.env``)."""
    load_dotenv()

    return Settings(
        # ── Cal.com ──────────────────────────────────────────────────
        calcom_api_key=_require_env("CALCOM_API_KEY"),
        calcom_base_url=os.getenv("CALCOM_BASE_URL", DEFAULT_CALCOM_BASE_URL).rstrip("/"),
        calcom_api_version=os.getenv("CALCOM_API_VERSION", DEFAULT_CALCOM_API_VERSION),
        calcom_timeout_seconds=_float_env("CALCOM_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        event_type_id=_int_env("CALCOM_EVENT_TYPE_ID", DEFAULT_EVENT_TYPE_ID),
        event_type_slug=os.getenv("CALCOM_EVENT_TYPE_SLUG", DEFAULT_EVENT_TYPE_SLUG),
        default_time_zone=os.getenv("DEFAULT_TIME_ZONE", DEFAULT_TIME_ZONE),
        # ── Server ───────────────────────────────────────────────────
        cors_origins=_list_env("CORS_ORIGINS", "*"),
        server_host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=_int_env("PORT", DEFAULT_PORT),
        environment=os.getenv("ENVIRONMENT", "development"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        metrics_enabled=_bool_env("METRICS_ENABLED", False),
    )
