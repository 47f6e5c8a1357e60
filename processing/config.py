"""
Tracker configuration from environment variables.
"""

import logging
import os
from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from contracts.constants import MIN_POLL_INTERVAL_SECONDS

logger = logging.getLogger(__name__)

DEFAULT_AIRPLANES_LIVE_BASE_URL = "https://api.airplanes.live/v2/"
DEFAULT_ANTHROPIC_MODEL = "claude-haiku-4-5"


class ConfigError(Exception):
    """Missing or invalid configuration; fatal at startup."""


class TrackerSettings(BaseModel):
    home_latitude: float = Field(ge=-90, le=90)
    home_longitude: float = Field(ge=-180, le=180)
    bounding_box_degrees: float = Field(1.0, gt=0)
    visual_range_km: float = Field(50.0, ge=0, description="0 disables the range filter")
    poll_interval_seconds: int = 30
    notify_max_altitude_m: float = Field(3000.0, gt=0)
    error_snooze_minutes: float = Field(30.0, ge=0)
    database_path: str = "data/flight_stats.db"
    airplanes_live_base_url: str = DEFAULT_AIRPLANES_LIVE_BASE_URL

    telegram_enabled: bool = False
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    anthropic_enabled: bool = False
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL
    anthropic_max_tokens: int = Field(200, gt=0)

    mapbox_access_token: Optional[str] = None
    mapbox_style: Optional[str] = None

    metrics_port: int = Field(8001, ge=0, description="0 disables the exporter")
    log_level: str = "INFO"

    @model_validator(mode="after")
    def clamp_poll_interval(self):
        if self.poll_interval_seconds < MIN_POLL_INTERVAL_SECONDS:
            logger.warning(
                f"POLL_INTERVAL_SECONDS={self.poll_interval_seconds} is below the feed refresh rate; "
                f"using {MIN_POLL_INTERVAL_SECONDS}s"
            )
            self.poll_interval_seconds = MIN_POLL_INTERVAL_SECONDS
        return self

    @property
    def error_snooze(self) -> timedelta:
        return timedelta(minutes=self.error_snooze_minutes)

    @property
    def telegram_configured(self) -> bool:
        return self.telegram_enabled and bool(self.telegram_bot_token) and bool(self.telegram_chat_id)

    @property
    def anthropic_configured(self) -> bool:
        return self.anthropic_enabled and bool(self.anthropic_api_key)

    @property
    def mapbox_configured(self) -> bool:
        return bool(self.mapbox_access_token)


def env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> TrackerSettings:
    """Build TrackerSettings from the environment; raises ConfigError on bad values."""
    home_lat = os.getenv("HOME_LATITUDE")
    home_lon = os.getenv("HOME_LONGITUDE")
    if not home_lat or not home_lon:
        raise ConfigError("HOME_LATITUDE and HOME_LONGITUDE must be set")

    try:
        return TrackerSettings(
            home_latitude=home_lat,
            home_longitude=home_lon,
            bounding_box_degrees=os.getenv("BOUNDING_BOX_DEGREES", "1.0"),
            visual_range_km=os.getenv("VISUAL_RANGE_KM", "50"),
            poll_interval_seconds=os.getenv("POLL_INTERVAL_SECONDS", "30"),
            notify_max_altitude_m=os.getenv("NOTIFY_MAX_ALTITUDE_M", "3000"),
            error_snooze_minutes=os.getenv("ERROR_SNOOZE_MINUTES", "30"),
            database_path=os.getenv("DATABASE_PATH", "data/flight_stats.db"),
            airplanes_live_base_url=os.getenv("AIRPLANES_LIVE_BASE_URL", DEFAULT_AIRPLANES_LIVE_BASE_URL),
            telegram_enabled=env_flag("TELEGRAM_ENABLED"),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
            telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID") or None,
            anthropic_enabled=env_flag("ANTHROPIC_ENABLED"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
            anthropic_model=os.getenv("ANTHROPIC_MODEL", DEFAULT_ANTHROPIC_MODEL),
            anthropic_max_tokens=os.getenv("ANTHROPIC_MAX_TOKENS", "200"),
            mapbox_access_token=os.getenv("MAPBOX_TOKEN") or None,
            mapbox_style=os.getenv("MAPBOX_STYLE") or None,
            metrics_port=os.getenv("METRICS_PORT", "8001"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
    except ValueError as e:
        # pydantic.ValidationError is a ValueError
        raise ConfigError(f"Invalid configuration: {e}") from e
