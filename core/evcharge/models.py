# core/evcharge/models.py
"""
Data models for the EV charge manager.

Price intervals are the atomic unit shared by the selector, the decision
engine and the formatter. The interval store is a plain dict keyed by a
string derived from the interval start; later writes win.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from .time_utils import INTERVAL_DURATION, ensure_utc, from_epoch_ms, to_epoch_ms

__all__ = [
    "PriceEntry",
    "PriceInterval",
    "PriceStore",
    "build_store",
    "interval_key",
]


@dataclass(frozen=True)
class PriceInterval:
    """A priced half-open time span [start, end).

    end > start is expected but not enforced; malformed intervals are carried
    through the algorithms without raising.
    """

    start: datetime
    end: datetime
    price: float

    def __post_init__(self):
        object.__setattr__(self, "start", ensure_utc(self.start))
        object.__setattr__(self, "end", ensure_utc(self.end))

    def contains(self, moment: datetime) -> bool:
        """True if moment falls inside [start, end)."""
        return self.start <= ensure_utc(moment) < self.end

    def to_dict(self) -> dict:
        return {
            "start": to_epoch_ms(self.start),
            "end": to_epoch_ms(self.end),
            "price": self.price,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PriceInterval":
        return cls(
            start=from_epoch_ms(data["start"]),
            end=from_epoch_ms(data["end"]),
            price=float(data["price"]),
        )


@dataclass(frozen=True)
class PriceEntry:
    """One raw price point as delivered by a price source (EUR/kWh)."""

    start: datetime
    price: float
    duration: timedelta = INTERVAL_DURATION

    def to_interval(self) -> PriceInterval:
        return PriceInterval(
            start=self.start, end=self.start + self.duration, price=self.price
        )


PriceStore = dict[str, PriceInterval]


def interval_key(start: datetime) -> str:
    """Store key for an interval: its start in epoch milliseconds."""
    return str(to_epoch_ms(start))


def build_store(intervals) -> PriceStore:
    """Build a store from intervals, later duplicates overwrite earlier ones."""
    store: PriceStore = {}
    for interval in intervals:
        store[interval_key(interval.start)] = interval
    return store
