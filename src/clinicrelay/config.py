"""Startup configuration.

Settings come from environment variables (``.env`` is loaded by the server
entry point). Missing provider credentials do not stop the server: they
disable outbound calling, are logged as errors, and every other route keeps
working.
"""

import os
import logging
from dataclasses import dataclass

from clinicrelay.pending import PENDING_TIMEOUT_S
from clinicrelay.poller import POLL_INTERVAL_S
from clinicrelay.provider import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

REQUIRED_CALL_VARS = {
    "ELEVENLABS_API_KEY": "elevenlabs_api_key",
    "ELEVENLABS_AGENT_ID": "elevenlabs_agent_id",
    "ELEVENLABS_PHONE_NUMBER_ID": "elevenlabs_phone_number_id",
}

OPTIONAL_VARS = [
    "EMERGENCY_PHONE_NUMBER",
    "ELEVENLABS_BASE_URL",
    "PENDING_TIMEOUT_S",
    "TRANSCRIPT_POLLING",
    "LOG_LEVEL",
]

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Settings:
    elevenlabs_api_key: str = ""
    elevenlabs_agent_id: str = ""
    elevenlabs_phone_number_id: str = ""
    elevenlabs_base_url: str = DEFAULT_BASE_URL
    emergency_phone_number: str = ""
    pending_timeout_s: float = PENDING_TIMEOUT_S
    transcript_polling: bool = True
    transcript_poll_interval_s: float = POLL_INTERVAL_S
    log_level: str = "INFO"
    port: int = 3001

    @property
    def calls_enabled(self) -> bool:
        return bool(
            self.elevenlabs_api_key
            and self.elevenlabs_agent_id
            and self.elevenlabs_phone_number_id
        )


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", name, raw, default)
        return default


def load_settings() -> Settings:
    return Settings(
        elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY", ""),
        elevenlabs_agent_id=os.getenv("ELEVENLABS_AGENT_ID", ""),
        elevenlabs_phone_number_id=os.getenv("ELEVENLABS_PHONE_NUMBER_ID", ""),
        elevenlabs_base_url=os.getenv("ELEVENLABS_BASE_URL", DEFAULT_BASE_URL),
        emergency_phone_number=os.getenv("EMERGENCY_PHONE_NUMBER", ""),
        pending_timeout_s=_float_env("PENDING_TIMEOUT_S", PENDING_TIMEOUT_S),
        transcript_polling=os.getenv("TRANSCRIPT_POLLING", "true").strip().lower() in _TRUTHY,
        transcript_poll_interval_s=_float_env("TRANSCRIPT_POLL_INTERVAL_S", POLL_INTERVAL_S),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        port=int(_float_env("PORT", 3001)),
    )


def validate_config(settings: Settings) -> bool:
    """Check provider configuration. Returns True when calls can be placed.

    Missing required variables disable the calling feature and are logged
    as errors. Missing optional variables are logged as warnings.
    """
    missing = [var for var, attr in REQUIRED_CALL_VARS.items() if not getattr(settings, attr)]
    if missing:
        logger.error(
            "Outbound calling disabled, missing environment variables: %s",
            ", ".join(missing),
        )

    for var in OPTIONAL_VARS:
        if not os.getenv(var):
            logger.warning("Optional env var %s is not set", var)

    return settings.calls_enabled
