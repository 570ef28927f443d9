"""
Tibber GraphQL price source.

Quarter-hourly total prices (EUR/kWh, including taxes) for today and, once
published, tomorrow. The market area is determined by the account behind the
token and is stored for reference only.
"""

import logging
from datetime import datetime

import requests

from .exceptions import PriceDataUnavailableError, extract_error_message
from .models import PriceEntry
from .price_manager import PriceSource

logger = logging.getLogger(__name__)

TIBBER_API_URL = "https://api.tibber.com/v1-beta/gql"
# Public demo account published by Tibber
TIBBER_DEMO_TOKEN = "3A77EECF61BD445F47241A5A36202185C35AF3AF58609E19B53F3A8872AD7BE1-1"

PRICE_QUERY = """
{
  viewer {
    homes {
      currentSubscription {
        priceInfo(resolution: QUARTER_HOURLY) {
          today {
            total
            startsAt
            currency
          }
          tomorrow {
            total
            startsAt
            currency
          }
        }
      }
    }
  }
}
"""


class TibberSource(PriceSource):
    """Price source backed by the Tibber API."""

    name = "Tibber"

    def __init__(
        self, token: str | None = None, market_area: str = "de", timeout: float = 30
    ) -> None:
        """Initialize the source.

        Args:
            token: Tibber API token, the demo token is used when missing or "demo"
            market_area: Market area (de, nl, no, se), informational only
            timeout: Request timeout in seconds
        """
        self.token = token if token and token != "demo" else TIBBER_DEMO_TOKEN
        self.market_area = market_area.lower()
        self.timeout = timeout

    @property
    def uses_demo_token(self) -> bool:
        return self.token == TIBBER_DEMO_TOKEN

    def fetch(self) -> list[PriceEntry]:
        """Fetch today's and tomorrow's quarter-hourly prices.

        Raises:
            PriceDataUnavailableError: On HTTP, GraphQL or structure errors
        """
        try:
            response = requests.post(
                TIBBER_API_URL,
                json={"query": PRICE_QUERY},
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.token}",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise PriceDataUnavailableError(
                source=self.name,
                message=f"Tibber API failed: {extract_error_message(e)}",
            ) from e

        errors = payload.get("errors") or []
        if errors:
            messages = ", ".join(error.get("message", "") for error in errors)
            raise PriceDataUnavailableError(
                source=self.name, message=f"Tibber API errors: {messages}"
            )

        price_info = self._extract_price_info(payload)
        if price_info is None:
            raise PriceDataUnavailableError(
                source=self.name, message="Tibber API: Invalid response structure"
            )

        entries = []
        for day in ("today", "tomorrow"):
            day_prices = price_info.get(day) or []
            if day_prices:
                logger.debug(
                    f"Tibber {day}: {len(day_prices)} entries, "
                    f"first {day_prices[0].get('startsAt')}, last {day_prices[-1].get('startsAt')}"
                )
            for item in day_prices:
                entries.append(
                    PriceEntry(
                        start=datetime.fromisoformat(item["startsAt"]),
                        price=float(item["total"]),
                    )
                )

        logger.info(f"Fetched {len(entries)} prices from Tibber")
        return entries

    @staticmethod
    def _extract_price_info(payload: dict) -> dict | None:
        try:
            homes = payload["data"]["viewer"]["homes"]
            return homes[0]["currentSubscription"]["priceInfo"] or None
        except (KeyError, IndexError, TypeError):
            return None
