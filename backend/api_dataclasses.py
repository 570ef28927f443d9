"""API DataClasses with canonical camelCase field names."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.evcharge.price_manager import format_price

logger = logging.getLogger(__name__)


@dataclass
class APIChargingSettings:
    """Charging settings as exposed to the frontend."""

    enableLowPriceCharging: bool
    lowPriceBlocksCount: int  # number of 15-minute intervals
    lowBatteryThreshold: float | None  # % - None disables low battery charging
    manualOverrideMinutes: int
    selectionMode: str  # "individual" | "contiguous"
    fallbackPolicy: str  # "when_today_exhausted" | "prefer_cheaper_tomorrow"
    priceTimezone: str | None
    locale: str

    @classmethod
    def from_internal(cls, settings) -> APIChargingSettings:
        """Convert from internal snake_case to canonical camelCase."""
        return cls(
            enableLowPriceCharging=settings.enable_low_price_charging,
            lowPriceBlocksCount=settings.low_price_blocks_count,
            lowBatteryThreshold=settings.low_battery_threshold,
            manualOverrideMinutes=settings.manual_override_minutes,
            selectionMode=settings.selection_mode.value,
            fallbackPolicy=settings.fallback_policy.value,
            priceTimezone=settings.price_timezone,
            locale=settings.locale,
        )

    def to_internal_update(self) -> dict:
        """Convert API updates back to internal snake_case."""
        return {
            "enable_low_price_charging": self.enableLowPriceCharging,
            "low_price_blocks_count": self.lowPriceBlocksCount,
            "low_battery_threshold": self.lowBatteryThreshold,
            "manual_override_minutes": self.manualOverrideMinutes,
            "selection_mode": self.selectionMode,
            "fallback_policy": self.fallbackPolicy,
            "price_timezone": self.priceTimezone,
            "locale": self.locale,
        }


@dataclass
class APIPriceInterval:
    """One 15-minute price interval for charts and tables."""

    start: str
    end: str
    price: float
    priceText: str
    isCheapest: bool

    @classmethod
    def from_internal(cls, interval, is_cheapest: bool = False) -> APIPriceInterval:
        return cls(
            start=interval.start.isoformat(),
            end=interval.end.isoformat(),
            price=interval.price,
            priceText=format_price(interval.price),
            isCheapest=is_cheapest,
        )
