"""Manual override timing.

After the user switches charging on or off by hand, automation stays out of
the way for a fixed duration. These helpers answer timing questions only;
the controller owns the timestamps and decides what to log.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from .time_utils import ensure_utc

MANUAL_OVERRIDE_DURATION = timedelta(minutes=15)
LOG_INTERVAL = timedelta(minutes=5)


@dataclass(frozen=True)
class ManualOverrideState:
    is_active: bool
    remaining_minutes: int
    time_since_manual: timedelta
    expiration_time: datetime | None


def is_manual_override_active(
    override_timestamp: datetime | None,
    now: datetime,
    duration: timedelta = MANUAL_OVERRIDE_DURATION,
) -> bool:
    """True while less than `duration` has passed since the manual action."""
    if override_timestamp is None:
        return False
    return ensure_utc(now) - ensure_utc(override_timestamp) < duration


def calculate_remaining_minutes(
    override_timestamp: datetime | None,
    now: datetime,
    duration: timedelta = MANUAL_OVERRIDE_DURATION,
) -> int:
    """Whole minutes left, rounded up; 0 when expired or never set."""
    if override_timestamp is None:
        return 0
    elapsed = ensure_utc(now) - ensure_utc(override_timestamp)
    if elapsed >= duration:
        return 0
    return math.ceil((duration - elapsed).total_seconds() / 60)


def calculate_expiration_time(
    override_timestamp: datetime | None,
    duration: timedelta = MANUAL_OVERRIDE_DURATION,
) -> datetime | None:
    if override_timestamp is None:
        return None
    return ensure_utc(override_timestamp) + duration


def should_log_remaining_time(
    last_log_time: datetime | None,
    now: datetime,
    interval: timedelta = LOG_INTERVAL,
) -> bool:
    """Throttle the "minutes remaining" message to once per interval."""
    if last_log_time is None:
        return True
    return ensure_utc(now) - ensure_utc(last_log_time) >= interval


def should_log_expiration(
    last_expiration_log: datetime | None, expiration_time: datetime
) -> bool:
    """Log each expiration once: only if the last log predates this expiry."""
    if last_expiration_log is None:
        return True
    return ensure_utc(last_expiration_log) < ensure_utc(expiration_time)


def get_manual_override_state(
    override_timestamp: datetime | None,
    now: datetime,
    duration: timedelta = MANUAL_OVERRIDE_DURATION,
) -> ManualOverrideState:
    if override_timestamp is None:
        return ManualOverrideState(
            is_active=False,
            remaining_minutes=0,
            time_since_manual=timedelta(0),
            expiration_time=None,
        )

    return ManualOverrideState(
        is_active=is_manual_override_active(override_timestamp, now, duration),
        remaining_minutes=calculate_remaining_minutes(
            override_timestamp, now, duration
        ),
        time_since_manual=ensure_utc(now) - ensure_utc(override_timestamp),
        expiration_time=calculate_expiration_time(override_timestamp, duration),
    )
