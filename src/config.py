"""
Logbook Configuration Module.

Centralized configuration management using environment variables.
Supports .env files for local development.

Usage:
    from src.config import settings

    print(settings.report_interval_hours)
    print(settings.email.recipients)
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

from dotenv import load_dotenv

# Load .env file if present
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

logger = logging.getLogger(__name__)

TIMEZONE_MODES = ("gps", "fixed", "local")
DATA_SOURCES = ("signalk", "simulator")

DEFAULT_DATA_PATHS = (
    "environment.wind.speedApparent=Wind Speed,"
    "environment.wind.angleApparent=Wind Direction,"
    "environment.outside.temperature=Air Temperature,"
    "environment.water.temperature=Sea Temperature,"
    "environment.outside.pressure=Barometric Pressure"
)


def get_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def get_float(key: str, default: float) -> float:
    """Get float from environment variable."""
    try:
        return float(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def get_int(key: str, default: int) -> int:
    """Get int from environment variable."""
    try:
        return int(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def get_list(key: str, default: str = "") -> List[str]:
    """Get list from comma-separated environment variable."""
    value = os.getenv(key, default)
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def get_data_paths(key: str, default: str = DEFAULT_DATA_PATHS) -> List[Dict[str, str]]:
    """
    Get sensor paths from a comma-separated "path=Label" environment variable.

    A bare path is labelled with itself.
    """
    paths = []
    for item in get_list(key, default):
        path, _, label = item.partition("=")
        path = path.strip()
        if path:
            paths.append({"path": path, "label": label.strip() or path})
    return paths


@dataclass
class EmailSettings:
    """SMTP settings for report delivery."""

    enabled: bool = field(default_factory=lambda: get_bool("EMAIL_ENABLED", False))
    recipients: List[str] = field(default_factory=lambda: get_list("EMAIL_RECIPIENTS", ""))
    smtp_host: str = field(default_factory=lambda: os.getenv("SMTP_HOST", "smtp.gmail.com"))
    smtp_port: int = field(default_factory=lambda: get_int("SMTP_PORT", 587))
    smtp_secure: bool = field(default_factory=lambda: get_bool("SMTP_SECURE", True))
    smtp_user: str = field(default_factory=lambda: os.getenv("SMTP_USER", ""))
    smtp_pass: str = field(default_factory=lambda: os.getenv("SMTP_PASS", ""))
    from_email: str = field(default_factory=lambda: os.getenv("EMAIL_FROM", ""))
    subject_prefix: str = field(default_factory=lambda: os.getenv("EMAIL_SUBJECT_PREFIX", "Log Report"))

    @property
    def is_configured(self) -> bool:
        """Enabled with a host and at least one recipient."""
        return self.enabled and bool(self.smtp_host) and bool(self.recipients)


@dataclass
class PositionTrackingSettings:
    """Auto-track sampler settings."""

    enabled: bool = field(default_factory=lambda: get_bool("POSITION_TRACKING_ENABLED", False))
    interval_minutes: int = field(
        default_factory=lambda: get_int("POSITION_TRACKING_INTERVAL_MINUTES", 60)
    )


@dataclass
class TrackSyncSettings:
    """Chart plotter (Freeboard-SK) track sync; runs at the position tracking interval."""

    enabled: bool = field(default_factory=lambda: get_bool("TRACK_SYNC_ENABLED", False))
    resources_url: str = field(
        default_factory=lambda: os.getenv(
            "SIGNALK_RESOURCES_URL", "http://localhost:3000/signalk/v2/api/resources"
        )
    )


@dataclass
class LogbookConfig:
    """Logbook settings loaded from environment."""

    # Schedule
    report_interval_hours: int = field(default_factory=lambda: get_int("REPORT_INTERVAL_HOURS", 24))
    first_report_time: str = field(default_factory=lambda: os.getenv("FIRST_REPORT_TIME", "12:00"))
    timezone_mode: str = field(default_factory=lambda: os.getenv("TIMEZONE_MODE", "gps"))
    timezone_offset: str = field(default_factory=lambda: os.getenv("TIMEZONE_OFFSET", "+00:00"))

    # Display
    vessel_name: str = field(default_factory=lambda: os.getenv("VESSEL_NAME", "Unknown Vessel"))
    use_metric_units: bool = field(default_factory=lambda: get_bool("USE_METRIC_UNITS", False))

    # Data source
    data_source: str = field(default_factory=lambda: os.getenv("DATA_SOURCE", "simulator"))
    signalk_url: str = field(
        default_factory=lambda: os.getenv("SIGNALK_URL", "http://localhost:3000/signalk/v1/api")
    )
    signalk_timeout_s: float = field(default_factory=lambda: get_float("SIGNALK_TIMEOUT_S", 5.0))
    position_path: str = field(default_factory=lambda: os.getenv("POSITION_PATH", "navigation.position"))
    custom_data_paths: List[Dict[str, str]] = field(
        default_factory=lambda: get_data_paths("CUSTOM_DATA_PATHS")
    )

    # Simulator (DATA_SOURCE=simulator)
    sim_start_lat: float = field(default_factory=lambda: get_float("SIM_START_LAT", 38.53))
    sim_start_lon: float = field(default_factory=lambda: get_float("SIM_START_LON", -28.63))
    sim_speed_kts: float = field(default_factory=lambda: get_float("SIM_SPEED_KTS", 6.0))
    sim_heading_deg: float = field(default_factory=lambda: get_float("SIM_HEADING_DEG", 75.0))

    # Startup
    fix_wait_attempts: int = field(default_factory=lambda: get_int("FIX_WAIT_ATTEMPTS", 24))
    fix_wait_interval_s: float = field(default_factory=lambda: get_float("FIX_WAIT_INTERVAL_S", 5.0))

    position_tracking: PositionTrackingSettings = field(default_factory=PositionTrackingSettings)
    track_sync: TrackSyncSettings = field(default_factory=TrackSyncSettings)
    email: EmailSettings = field(default_factory=EmailSettings)

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(
        default_factory=lambda: os.getenv(
            "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )

    def __post_init__(self):
        """Validate settings after initialization."""
        if not 1 <= self.report_interval_hours <= 168:
            clamped = min(168, max(1, self.report_interval_hours))
            logger.warning(
                f"Report interval {self.report_interval_hours}h outside [1, 168], using {clamped}h"
            )
            self.report_interval_hours = clamped

        self.timezone_mode = (self.timezone_mode or "").lower()
        if self.timezone_mode not in TIMEZONE_MODES:
            logger.warning(f"Unknown timezone mode '{self.timezone_mode}', using gps")
            self.timezone_mode = "gps"

        if self.data_source not in DATA_SOURCES:
            logger.warning(f"Unknown data source '{self.data_source}', using simulator")
            self.data_source = "simulator"

        if self.position_tracking.interval_minutes < 1:
            logger.warning(
                f"Position tracking interval {self.position_tracking.interval_minutes} min "
                f"is invalid, using 60"
            )
            self.position_tracking.interval_minutes = 60

        if self.track_sync.enabled and not self.position_tracking.enabled:
            logger.warning("Track sync needs position tracking, disabling it")
            self.track_sync.enabled = False

        if self.email.enabled and not self.email.is_configured:
            logger.warning(
                "Email enabled but SMTP_HOST or EMAIL_RECIPIENTS is empty, "
                "reports are only sent once recipients are added through the API"
            )

    def configure_logging(self):
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        logging.basicConfig(level=level, format=self.log_format)


# Singleton instance
settings = LogbookConfig()
