"""Human-readable summary of upcoming cheap charging windows.

Consecutive 15-minute intervals are grouped into ranges, e.g. 11:00, 11:15
and 11:30 become "11:00–11:45". The window that contains now is shown with a
"Now: " prefix, using the same half-open membership test as the decision
engine.

Times are rendered with Babel's locale-aware short time pattern. Locale and
timezone lookups never raise: unknown values resolve to a neutral fallback.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from babel import Locale, UnknownLocaleError
from babel.dates import format_time as babel_format_time

from .time_utils import UTC, ensure_utc

UNKNOWN_TEXT = "Unknown"
CURRENT_PREFIX = "Now: "
RANGE_SEPARATOR = "–"
GROUP_SEPARATOR = ", "

FALLBACK_LOCALE = "en_GB"

_TRAILING_ZERO_MINUTES = re.compile(r":00(?=\s|$)")


def resolve_locale(name: str | None) -> Locale:
    """Parse a locale name like "de-DE" or "en_US", falling back to en_GB."""
    if not name:
        return Locale.parse(FALLBACK_LOCALE)
    try:
        return Locale.parse(str(name).replace("-", "_"))
    except (UnknownLocaleError, ValueError, TypeError):
        return Locale.parse(FALLBACK_LOCALE)


def resolve_timezone(name: str | None) -> tzinfo:
    """Look up an IANA zone like "Europe/Berlin", falling back to UTC."""
    if not name:
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        return UTC


def format_time(
    moment: datetime,
    locale: str | None,
    timezone: str | None,
    ignore_zero_minutes: bool = False,
) -> str:
    """Format an instant as hour:minute in the given locale and timezone.

    With ignore_zero_minutes, a ":00" at the end of the text or before a
    space is dropped, e.g. "11:00" -> "11" and "11:00 PM" -> "11 PM".
    """
    text = babel_format_time(
        ensure_utc(moment),
        format="short",
        tzinfo=resolve_timezone(timezone),
        locale=resolve_locale(locale),
    )

    if not ignore_zero_minutes:
        return text

    return _TRAILING_ZERO_MINUTES.sub("", text, count=1)


@dataclass
class ChargingWindow:
    """Contiguous run of selected intervals."""

    start: datetime
    end: datetime
    intervals: list = field(default_factory=list)

    @property
    def is_single_interval(self) -> bool:
        return len(self.intervals) == 1

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


def group_intervals(cheapest, now: datetime) -> list[ChargingWindow]:
    """Group intervals still relevant at now into contiguous windows.

    Intervals that have fully ended are dropped; the one in progress stays.
    An interval joins the current window only if it starts exactly at the
    window's end.
    """
    now = ensure_utc(now)
    relevant = sorted(
        (interval for interval in cheapest if interval.end > now),
        key=lambda interval: interval.start,
    )

    windows: list[ChargingWindow] = []
    for interval in relevant:
        if windows and interval.start == windows[-1].end:
            windows[-1].end = interval.end
            windows[-1].intervals.append(interval)
        else:
            windows.append(
                ChargingWindow(
                    start=interval.start, end=interval.end, intervals=[interval]
                )
            )
    return windows


def format_next_charging_times(
    cheapest, now: datetime, locale: str | None, timezone: str | None
) -> str:
    """Render the upcoming cheap charging windows.

    Args:
        cheapest: Selected cheapest intervals
        now: Reference instant
        locale: Display locale, e.g. "de-DE"
        timezone: IANA timezone name, e.g. "Europe/Berlin"

    Returns:
        e.g. "Now: 11:00–11:30, 14:15" or "Unknown" when nothing is left
    """
    now = ensure_utc(now)
    windows = group_intervals(cheapest, now)
    if not windows:
        return UNKNOWN_TEXT

    parts = []
    for window in windows:
        start_text = format_time(window.start, locale, timezone)
        if window.is_single_interval:
            text = start_text
        else:
            end_text = format_time(window.end, locale, timezone)
            text = f"{start_text}{RANGE_SEPARATOR}{end_text}"

        if window.contains(now):
            text = CURRENT_PREFIX + text
        parts.append(text)

    return GROUP_SEPARATOR.join(parts)
