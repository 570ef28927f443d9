"""
PriceManager for EV charging.

Fetches 15-minute electricity prices from a configurable source, merges them
into the interval store, persists the store as a JSON cache and exposes the
cheapest-interval selection with diagnostic logging.

The store is shared between the scheduler's worker threads and the API, so
every read or write of it happens under the manager's lock. Fetching runs
outside the lock.
"""

import json
import logging
import math
import os
from datetime import datetime
from threading import RLock

from .cheapest_intervals import (
    FallbackPolicy,
    SelectionMode,
    select_cheapest,
    split_today_tomorrow,
)
from .exceptions import extract_error_message
from .models import PriceEntry, PriceInterval, PriceStore, interval_key
from .time_utils import ensure_utc, now_utc

logger = logging.getLogger(__name__)


def format_price(price: float, decimals: int = 5) -> str:
    """Format a EUR/kWh price with a fixed number of decimals.

    Never uses scientific notation, rounds half away from zero.

    Example:
        >>> format_price(0.000012)
        '0.00001 €/kWh'
        >>> format_price(-0.1234567, 4)
        '-0.1235 €/kWh'
    """
    if not math.isfinite(price):
        return f"{price} €/kWh"
    if price == 0:
        return f"0.{'0' * decimals} €/kWh"

    sign = "-" if price < 0 else ""
    scaled = math.floor(abs(price) * 10**decimals + 0.5)
    integer_part, fraction_part = divmod(scaled, 10**decimals)
    if decimals == 0:
        return f"{sign}{integer_part} €/kWh"
    return f"{sign}{integer_part}.{fraction_part:0{decimals}d} €/kWh"


class PriceSource:
    """Abstract base class for price sources.

    This defines the interface that all price sources must implement.
    """

    name = "PriceSource"

    def fetch(self) -> list[PriceEntry]:
        """Fetch available 15-minute prices in EUR/kWh.

        Returns:
            List of price entries, typically today and tomorrow

        Raises:
            PriceDataUnavailableError: If prices cannot be fetched
        """
        raise NotImplementedError("Price sources must implement fetch")

    def perform_health_check(self) -> dict:
        """Perform health check on the price source.

        Returns:
            dict: Health check result with status and checks
        """
        try:
            entries = self.fetch()
        except Exception as e:
            return {
                "status": "ERROR",
                "checks": [
                    {
                        "component": self.name,
                        "status": "ERROR",
                        "message": f"Failed to fetch prices: {extract_error_message(e)}",
                    }
                ],
            }

        if not entries:
            return {
                "status": "WARNING",
                "checks": [
                    {
                        "component": self.name,
                        "status": "WARNING",
                        "message": "Price source returned no data",
                    }
                ],
            }

        return {
            "status": "OK",
            "checks": [
                {
                    "component": self.name,
                    "status": "OK",
                    "message": f"Successfully fetched {len(entries)} prices",
                }
            ],
        }


class MockSource(PriceSource):
    """Mock price source for testing."""

    name = "MockSource"

    def __init__(self, entries: list[PriceEntry] | None = None) -> None:
        self.entries = list(entries or [])
        self.fetch_count = 0

    def fetch(self) -> list[PriceEntry]:
        self.fetch_count += 1
        return list(self.entries)


class PriceManager:
    """Owns the interval store and keeps it fresh.

    The store is keyed by interval start; merging a fetch overwrites existing
    intervals, so the latest price for a start time always wins.
    """

    def __init__(
        self,
        price_source: PriceSource,
        fallback_source: PriceSource | None = None,
        cache_file: str | None = None,
    ) -> None:
        """Initialize the price manager.

        Args:
            price_source: Primary source of 15-minute prices
            fallback_source: Used for a fetch when the primary source fails
            cache_file: Optional JSON file the store is persisted to
        """
        self.price_source = price_source
        self.fallback_source = fallback_source
        self.cache_file = cache_file
        self._store: PriceStore = {}
        self._lock = RLock()
        self.last_update: datetime | None = None
        self.last_error: str | None = None

        if self.cache_file:
            self.load_cache()

    @property
    def store(self) -> PriceStore:
        """Copy of the current interval store."""
        with self._lock:
            return dict(self._store)

    def load_cache(self) -> PriceStore:
        """Load the store from the cache file, starting fresh on any problem."""
        if not self.cache_file or not os.path.exists(self.cache_file):
            return self.store

        with self._lock:
            try:
                with open(self.cache_file) as f:
                    raw = json.load(f)
                self._store = {
                    key: PriceInterval.from_dict(value) for key, value in raw.items()
                }
                logger.info(
                    f"Loaded {len(self._store)} cached price intervals from {self.cache_file}"
                )
            except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning(
                    f"Could not load price cache from {self.cache_file}, starting fresh: {e}"
                )
                self._store = {}
            return dict(self._store)

    def save_cache(self) -> None:
        if not self.cache_file:
            return

        with self._lock:
            try:
                with open(self.cache_file, "w") as f:
                    json.dump(
                        {key: interval.to_dict() for key, interval in self._store.items()},
                        f,
                    )
            except OSError as e:
                logger.error(f"Failed to save price cache to {self.cache_file}: {e}")

    def _fetch_entries(self) -> list[PriceEntry]:
        try:
            return self.price_source.fetch()
        except Exception as e:
            if self.fallback_source is None:
                raise
            logger.warning(
                f"{self.price_source.name} API failed ({extract_error_message(e)}), "
                f"falling back to {self.fallback_source.name}"
            )
            return self.fallback_source.fetch()

    def merge_entries(self, entries: list[PriceEntry]) -> dict:
        """Merge fetched entries into the store.

        Returns:
            Counts of new, updated and price-changed intervals
        """
        new_blocks = 0
        updated_blocks = 0
        price_changes = 0

        with self._lock:
            for entry in entries:
                interval = entry.to_interval()
                key = interval_key(interval.start)
                existing = self._store.get(key)
                self._store[key] = interval

                if existing is None:
                    new_blocks += 1
                    continue

                updated_blocks += 1
                if existing.price != interval.price:
                    price_changes += 1
                    logger.debug(
                        f"Price updated for {interval.start.isoformat()}: "
                        f"{format_price(existing.price, 4)} -> {format_price(interval.price, 4)}"
                    )

        return {
            "new": new_blocks,
            "updated": updated_blocks,
            "price_changes": price_changes,
            "total": len(entries),
        }

    def update_prices(self) -> PriceStore:
        """Fetch prices and merge them into the store.

        Fetch failures are logged and leave the existing store untouched.

        Returns:
            Copy of the (possibly unchanged) store
        """
        try:
            entries = self._fetch_entries()
        except Exception as e:
            self.last_error = extract_error_message(e)
            logger.error(f"Failed to fetch prices: {self.last_error}")
            return self.store

        if entries:
            logger.debug(
                f"Price data range: {entries[0].start.isoformat()} to {entries[-1].start.isoformat()}"
            )

        with self._lock:
            counts = self.merge_entries(entries)
            self.save_cache()
            self.last_update = now_utc()
            self.last_error = None

        logger.info(
            f"Updated price cache: {counts['new']} new blocks, {counts['updated']} existing "
            f"blocks updated ({counts['price_changes']} with price changes), "
            f"total {counts['total']} blocks (15-minute intervals)"
        )
        return self.store

    def prune(self, before: datetime) -> int:
        """Drop intervals that ended at or before `before`.

        Returns:
            Number of intervals removed
        """
        cutoff = ensure_utc(before)
        with self._lock:
            stale = [key for key, interval in self._store.items() if interval.end <= cutoff]
            for key in stale:
                del self._store[key]

            if stale:
                logger.debug(f"Pruned {len(stale)} expired price intervals")
                self.save_cache()
        return len(stale)

    def find_cheapest(
        self,
        count: int,
        now: datetime | None = None,
        mode: SelectionMode = SelectionMode.INDIVIDUAL,
        policy: FallbackPolicy = FallbackPolicy.WHEN_TODAY_EXHAUSTED,
    ) -> list[PriceInterval]:
        """Select the cheapest intervals with cache statistics in the log."""
        now = now_utc() if now is None else ensure_utc(now)
        store = self.store

        today, tomorrow = split_today_tomorrow(store, now)
        relevant = today + tomorrow
        past = sum(1 for interval in relevant if interval.start <= now)
        logger.debug(
            f"Cache stats: {len(store)} total blocks, {len(relevant)} relevant "
            f"(today/tomorrow), {past} past, {len(relevant) - past} future"
        )
        if relevant:
            top5 = sorted(relevant, key=lambda interval: interval.price)[:5]
            logger.debug(
                "Top 5 cheapest relevant blocks: "
                + ", ".join(
                    f"{interval.start.isoformat()} ({format_price(interval.price)})"
                    f"{' [PAST]' if interval.start <= now else ' [FUTURE]'}"
                    for interval in top5
                )
            )

        cheapest = select_cheapest(store, count, now, mode, policy)

        if cheapest:
            total = sum(interval.price for interval in cheapest)
            logger.info(
                f"Computed cheapest blocks for count={count}: {len(cheapest)} blocks "
                f"(total: {format_price(total, 4)}), first {cheapest[0].start.isoformat()}"
            )
        return cheapest

    def check_health(self) -> list:
        """Check price source and cache state.

        Returns:
            list: Component health results
        """
        result = {
            "name": "Electricity Price",
            "description": "Provides 15-minute prices for low-price charging",
            "required": True,
            "status": "UNKNOWN",
            "checks": [],
        }

        source_result = self.price_source.perform_health_check()
        result["checks"].extend(source_result.get("checks", []))

        cached = len(self.store)
        cache_check = {
            "component": "Price Cache",
            "status": "OK" if cached else "WARNING",
            "message": f"{cached} intervals cached",
        }
        result["checks"].append(cache_check)

        if all(check["status"] == "OK" for check in result["checks"]):
            result["status"] = "OK"
        elif any(check["status"] == "ERROR" for check in result["checks"]):
            result["status"] = "ERROR"
        else:
            result["status"] = "WARNING"

        return [result]


def create_price_source(settings) -> tuple[PriceSource, PriceSource | None]:
    """Build the configured price source and its fallback.

    Tibber falls back to SMARD (DE-LU); other sources have no fallback.

    Args:
        settings: PriceSourceSettings

    Returns:
        Tuple of (primary, fallback or None)
    """
    from .smard_source import SmardSource
    from .smartenergy_source import SmartEnergySource
    from .tibber_source import TibberSource

    if settings.source == "tibber":
        return (
            TibberSource(token=settings.tibber_token, timeout=settings.request_timeout),
            SmardSource("DE-LU", timeout=settings.request_timeout),
        )
    if settings.source == "smartenergy":
        return SmartEnergySource(timeout=settings.request_timeout), None
    return (
        SmardSource(settings.smard_market_area, timeout=settings.request_timeout),
        None,
    )
