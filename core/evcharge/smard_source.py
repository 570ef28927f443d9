"""
SMARD.de day-ahead price source.

SMARD publishes wholesale prices in weekly series files. The index lists the
series start timestamps; the last two series are fetched because a new one
begins every Sunday and may still be sparse.
"""

import logging
from datetime import datetime

import requests

from .exceptions import PriceDataUnavailableError, extract_error_message
from .models import PriceEntry
from .price_manager import PriceSource
from .time_utils import INTERVAL_MINUTES, from_epoch_ms, now_utc, utc_date

logger = logging.getLogger(__name__)

SMARD_BASE_URL = "https://www.smard.de/app/chart_data"
SMARD_RESOLUTION = "quarterhour"

MARKET_AREA_MAP = {
    "DE-LU": 4169,
    "Anrainer DE-LU": 5078,
    "BE": 4996,
    "NO2": 4997,
    "AT": 4170,
    "DK1": 252,
    "DK2": 253,
    "FR": 254,
    "IT (North)": 255,
    "NL": 256,
    "PL": 257,
    "CH": 259,
    "SI": 260,
    "CZ": 261,
    "HU": 262,
}

ENTRIES_PER_DAY = 24 * 60 // INTERVAL_MINUTES


def filter_recent_entries(entries: list[PriceEntry], now: datetime) -> list[PriceEntry]:
    """Sort entries and keep the trailing two or three days.

    Two days when the newest entry is from today, three when tomorrow's
    prices are already published.
    """
    if not entries:
        return []

    ordered = sorted(entries, key=lambda entry: entry.start)
    if utc_date(ordered[-1].start) == utc_date(now):
        return ordered[-2 * ENTRIES_PER_DAY :]
    return ordered[-3 * ENTRIES_PER_DAY :]


class SmardSource(PriceSource):
    """Price source backed by the public SMARD.de chart data."""

    name = "SMARD"

    def __init__(self, market_area: str = "DE-LU", timeout: float = 30) -> None:
        if market_area not in MARKET_AREA_MAP:
            raise PriceDataUnavailableError(
                source=self.name,
                message=(
                    f"Invalid market area: {market_area}. "
                    f"Supported areas: {', '.join(MARKET_AREA_MAP)}"
                ),
            )
        self.market_area = market_area
        self.market_filter = MARKET_AREA_MAP[market_area]
        self.timeout = timeout

    def _url(self, filename: str) -> str:
        return f"{SMARD_BASE_URL}/{self.market_filter}/{self.market_area}/{filename}"

    @property
    def index_url(self) -> str:
        return self._url(f"index_{SMARD_RESOLUTION}.json")

    def series_url(self, timestamp: int) -> str:
        return self._url(
            f"{self.market_filter}_{self.market_area}_{SMARD_RESOLUTION}_{timestamp}.json"
        )

    def _get_json(self, url: str) -> dict:
        response = requests.get(url, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def fetch(self) -> list[PriceEntry]:
        """Fetch the latest quarter-hourly prices in EUR/kWh.

        Raises:
            PriceDataUnavailableError: If the index cannot be read
        """
        try:
            index = self._get_json(self.index_url)
        except (requests.RequestException, ValueError) as e:
            raise PriceDataUnavailableError(
                source=self.name,
                message=f"SMARD API index failed: {extract_error_message(e)}",
            ) from e

        timestamps = index.get("timestamps") or []
        if not timestamps:
            raise PriceDataUnavailableError(
                source=self.name, message="SMARD API: No timestamps available"
            )

        entries = []
        for timestamp in timestamps[-2:]:
            try:
                data = self._get_json(self.series_url(timestamp))
            except (requests.RequestException, ValueError) as e:
                logger.warning(
                    f"Failed to fetch SMARD series {timestamp}: {extract_error_message(e)}"
                )
                continue

            series = data.get("series")
            if not series:
                logger.warning(f"No series data for SMARD timestamp {timestamp}")
                continue

            for timestamp_ms, price_mwh in series:
                if price_mwh is None:
                    continue
                # EUR/MWh -> EUR/kWh
                entries.append(
                    PriceEntry(start=from_epoch_ms(timestamp_ms), price=price_mwh / 1000)
                )

        result = filter_recent_entries(entries, now_utc())
        logger.info(f"Fetched {len(result)} prices from SMARD ({self.market_area})")
        return result
