"""Cheapest-interval selection over the price store.

Finds the price intervals that low-price charging should run in. The result
is always recomputed from the raw store with the current count; nothing about
the selection is cached.

Day classification compares full UTC calendar dates (year, month, day), not
just the day-of-month number, so intervals from another month that happen to
carry the same day number are never treated as today or tomorrow.
"""

from datetime import datetime
from enum import Enum

from .models import PriceInterval
from .time_utils import ONE_DAY, ensure_utc, now_utc, utc_date


class SelectionMode(Enum):
    """How cheap intervals are picked."""

    INDIVIDUAL = "individual"  # cheapest N intervals, not necessarily adjacent
    CONTIGUOUS = "contiguous"  # cheapest run of N adjacent intervals, today only


class FallbackPolicy(Enum):
    """When to draw the schedule from tomorrow instead of today."""

    # Tomorrow is used only once today's cheapest intervals have all ended.
    WHEN_TODAY_EXHAUSTED = "when_today_exhausted"
    # Additionally skip today when tomorrow's cheapest are cheaper on average,
    # taking twice the count from tomorrow.
    PREFER_CHEAPER_TOMORROW = "prefer_cheaper_tomorrow"


def _cheapest(intervals: list[PriceInterval], count: int) -> list[PriceInterval]:
    """Stable sort by price and take the first count."""
    return sorted(intervals, key=lambda interval: interval.price)[:count]


def _average_price(intervals: list[PriceInterval]) -> float:
    return sum(interval.price for interval in intervals) / len(intervals)


def split_today_tomorrow(
    store: dict, now: datetime
) -> tuple[list[PriceInterval], list[PriceInterval]]:
    """Split the store into today's and tomorrow's intervals (UTC dates).

    Intervals on any other date are dropped. Store order is preserved.
    """
    today = utc_date(now)
    tomorrow = utc_date(now + ONE_DAY)

    today_intervals = []
    tomorrow_intervals = []
    for interval in store.values():
        day = utc_date(interval.start)
        if day == today:
            today_intervals.append(interval)
        elif day == tomorrow:
            tomorrow_intervals.append(interval)
    return today_intervals, tomorrow_intervals


def find_cheapest_intervals(
    store: dict,
    count: int,
    now: datetime | None = None,
    policy: FallbackPolicy = FallbackPolicy.WHEN_TODAY_EXHAUSTED,
) -> list[PriceInterval]:
    """Find the cheapest individual intervals relevant to now.

    Today's cheapest `count` intervals are used while at least one of them has
    not ended yet (an interval in progress still counts). Once all of them are
    in the past, tomorrow's cheapest `count` intervals starting after now are
    used instead.

    Args:
        store: Interval store (key -> PriceInterval)
        count: Number of cheapest intervals wanted
        now: Reference instant, defaults to the current time
        policy: Today/tomorrow fallback policy

    Returns:
        Selected intervals sorted by start time

    Example:
        8 intervals today at 0.5 and 20 tomorrow at 0.1, all in the future:
        count=4 returns 4 of today's intervals under WHEN_TODAY_EXHAUSTED and
        8 of tomorrow's under PREFER_CHEAPER_TOMORROW.
    """
    now = now_utc() if now is None else ensure_utc(now)
    count = int(count)

    if count <= 0 or not store:
        return []

    today_intervals, tomorrow_intervals = split_today_tomorrow(store, now)

    cheapest_today_future = [
        interval
        for interval in _cheapest(today_intervals, count)
        if interval.end > now
    ]
    tomorrow_candidates = [
        interval for interval in tomorrow_intervals if interval.start > now
    ]

    if not cheapest_today_future:
        selected = _cheapest(tomorrow_candidates, count)
    elif policy is FallbackPolicy.PREFER_CHEAPER_TOMORROW and tomorrow_candidates:
        cheapest_tomorrow = _cheapest(tomorrow_candidates, count)
        if _average_price(cheapest_today_future) > _average_price(cheapest_tomorrow):
            selected = _cheapest(tomorrow_candidates, count * 2)
        else:
            selected = cheapest_today_future
    else:
        selected = cheapest_today_future

    return sorted(selected, key=lambda interval: interval.start)


def find_cheapest_contiguous_block(
    store: dict, count: int, now: datetime | None = None
) -> list[PriceInterval]:
    """Find today's cheapest run of `count` adjacent intervals.

    A run qualifies only if each interval starts exactly where the previous
    one ends and none of its intervals has ended yet (the first may be in
    progress). Ties go to the earliest run. Returns an empty list when no
    run qualifies.
    """
    now = now_utc() if now is None else ensure_utc(now)
    count = int(count)

    if count <= 0 or not store:
        return []

    today_intervals, _ = split_today_tomorrow(store, now)
    ordered = sorted(today_intervals, key=lambda interval: interval.start)
    if len(ordered) < count:
        return []

    best_start = None
    best_sum = None

    for first in range(len(ordered) - count + 1):
        window = ordered[first : first + count]
        if window[0].end <= now:
            continue
        if any(
            current.start != previous.end
            for previous, current in zip(window, window[1:])
        ):
            continue
        window_sum = sum(interval.price for interval in window)
        if best_sum is None or window_sum < best_sum:
            best_sum = window_sum
            best_start = first

    if best_start is None:
        return []
    return ordered[best_start : best_start + count]


def select_cheapest(
    store: dict,
    count: int,
    now: datetime | None = None,
    mode: SelectionMode = SelectionMode.INDIVIDUAL,
    policy: FallbackPolicy = FallbackPolicy.WHEN_TODAY_EXHAUSTED,
) -> list[PriceInterval]:
    """Dispatch to the configured selection mode."""
    if mode is SelectionMode.CONTIGUOUS:
        return find_cheapest_contiguous_block(store, count, now)
    return find_cheapest_intervals(store, count, now, policy)
