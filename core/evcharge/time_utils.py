"""Time utilities for 15-minute price interval handling.

KEY PRINCIPLE: all instants inside the core are timezone-aware datetimes.
Naive values coming from callers are interpreted as UTC, never as local time,
so calendar-day classification does not depend on the host's zone.
"""

import logging
import os
from datetime import date, datetime, timedelta, timezone

logger = logging.getLogger(__name__)

# Constants - NOT configurable
UTC = timezone.utc
INTERVAL_MINUTES = 15
INTERVAL_DURATION = timedelta(minutes=INTERVAL_MINUTES)
ONE_DAY = timedelta(days=1)


def now_utc() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(tz=UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Return dt as an aware datetime in UTC.

    Naive datetimes are taken to already be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def utc_date(dt: datetime) -> date:
    """Full UTC calendar date (year, month, day) of an instant."""
    return ensure_utc(dt).date()


def to_epoch_ms(dt: datetime) -> int:
    """Convert an instant to integer epoch milliseconds."""
    return int(ensure_utc(dt).timestamp() * 1000)


def from_epoch_ms(value: float) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def seconds_until_next_boundary(
    now: datetime | None = None, minutes: int = INTERVAL_MINUTES
) -> float:
    """Seconds until the next :00/:15/:30/:45 style boundary.

    Always moves to the next boundary, even when called exactly on one.

    Example:
        >>> seconds_until_next_boundary(datetime(2025, 1, 1, 10, 7, tzinfo=UTC))
        480.0
        >>> seconds_until_next_boundary(datetime(2025, 1, 1, 10, 15, tzinfo=UTC))
        900.0
    """
    if now is None:
        now = now_utc()

    hour_start = now.replace(minute=0, second=0, microsecond=0)
    current_block = now.minute // minutes
    target = hour_start + timedelta(minutes=(current_block + 1) * minutes)

    delay = (target - now).total_seconds()
    return delay if delay > 0 else delay + minutes * 60


def system_timezone_name() -> str:
    """IANA zone of the host, taken from TZ (set by Home Assistant add-ons)."""
    return os.environ.get("TZ") or "UTC"
