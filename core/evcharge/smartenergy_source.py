"""smartENERGY (Austria) spot price source."""

import logging
from datetime import datetime

import requests

from .exceptions import PriceDataUnavailableError, extract_error_message
from .models import PriceEntry
from .price_manager import PriceSource
from .time_utils import INTERVAL_MINUTES

logger = logging.getLogger(__name__)

SMARTENERGY_API_URL = "https://apis.smartenergy.at/market/v1/price"


class SmartEnergySource(PriceSource):
    """Price source backed by the smartENERGY market API (ct/kWh)."""

    name = "SmartEnergy"

    def __init__(self, timeout: float = 30) -> None:
        self.timeout = timeout

    def fetch(self) -> list[PriceEntry]:
        try:
            response = requests.get(SMARTENERGY_API_URL, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise PriceDataUnavailableError(
                source=self.name,
                message=f"Smart Energy API failed: {extract_error_message(e)}",
            ) from e

        interval = payload.get("interval")
        if interval != INTERVAL_MINUTES:
            raise PriceDataUnavailableError(
                source=self.name,
                message=f"Smart Energy API returned interval of {interval} minutes, expected {INTERVAL_MINUTES}",
            )

        # ct/kWh -> EUR/kWh
        entries = [
            PriceEntry(
                start=datetime.fromisoformat(item["date"]),
                price=item["value"] / 100,
            )
            for item in payload.get("data", [])
        ]
        logger.info(f"Fetched {len(entries)} prices from Smart Energy")
        return entries
