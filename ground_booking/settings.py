"""Runtime configuration loaded from the environment.

Values may also come from a ``.env`` file in the working directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Callable, Mapping, Optional

import pytz
from dotenv import load_dotenv


@dataclass(frozen=True)
class AppSettings:
    """Immutable snapshot of configuration values."""

    data_dir: str
    timezone: str
    booking_ref_prefix: str
    booking_ref_max_attempts: int
    cancellation_lead_hours: int
    notification_url: str
    notification_timeout: float
    log_level: str
    host: str
    port: int


def load_settings(env: Optional[Mapping[str, str]] = None) -> AppSettings:
    """Load configuration from the environment and fall back to defaults."""
    if env is None:
        load_dotenv(override=False)
        env = os.environ

    timezone = env.get("GROUND_BOOKING_TIMEZONE", "Asia/Karachi")
    try:
        pytz.timezone(timezone)
    except pytz.UnknownTimeZoneError as error:
        raise ValueError(f"Unknown timezone: {timezone}") from error

    max_attempts = int(env.get("BOOKING_REF_MAX_ATTEMPTS", "5"))
    if max_attempts <= 0:
        raise ValueError("BOOKING_REF_MAX_ATTEMPTS must be greater than zero")

    return AppSettings(
        data_dir=env.get("GROUND_BOOKING_DATA_DIR", "data"),
        timezone=timezone,
        booking_ref_prefix=env.get("BOOKING_REF_PREFIX", "GS"),
        booking_ref_max_attempts=max_attempts,
        cancellation_lead_hours=int(env.get("CANCELLATION_LEAD_HOURS", "24")),
        notification_url=env.get("NOTIFICATION_URL", "").strip(),
        notification_timeout=float(env.get("NOTIFICATION_TIMEOUT", "5")),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        host=env.get("HOST", "127.0.0.1"),
        port=int(env.get("PORT", "5000")),
    )


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached :class:`AppSettings` instance."""
    return load_settings()


def local_clock(timezone: str) -> Callable[[], datetime]:
    """Return a clock giving naive wall-clock time in ``timezone``.

    Booking dates and times are stored as plain local values, so the
    current time is resolved once here and the core stays timezone-free.
    """
    tz = pytz.timezone(timezone)

    def now() -> datetime:
        return datetime.now(tz).replace(tzinfo=None)

    return now
