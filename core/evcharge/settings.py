"""Core configuration values and types for EV charging using dataclasses."""

from dataclasses import dataclass
from typing import Any

from .cheapest_intervals import FallbackPolicy, SelectionMode
from .exceptions import SystemConfigurationError

# Charging settings defaults
ENABLE_LOW_PRICE_CHARGING = False
LOW_PRICE_BLOCKS_COUNT = 8  # 8 x 15 min = 2 hours
LOW_BATTERY_THRESHOLD = None  # percentage, None = disabled
MANUAL_OVERRIDE_MINUTES = 15
DEFAULT_LOCALE = "en-GB"

# Price source defaults
DEFAULT_PRICE_SOURCE = "smard"
DEFAULT_MARKET_AREA = "DE-LU"
REQUEST_TIMEOUT_SECONDS = 30

# Vehicle defaults
STATUS_POLL_INTERVAL_SECONDS = 60

PRICE_SOURCES = ["smard", "tibber", "smartenergy"]


def _parse_enum(enum_type, value, component: str):
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).lower())
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_type)
        raise SystemConfigurationError(
            component=component,
            message=f"Invalid {component} '{value}', expected one of: {allowed}",
        ) from e


def _parse_number(
    value, component: str, cast=int, minimum=None, maximum=None
):
    """Coerce a numeric setting and check its range."""
    try:
        if isinstance(value, bool):
            raise TypeError("boolean is not a number")
        number = cast(value)
    except (TypeError, ValueError) as e:
        raise SystemConfigurationError(
            component=component,
            message=f"{component} must be a number, got {value!r}",
        ) from e

    if (minimum is not None and not number >= minimum) or (
        maximum is not None and not number <= maximum
    ):
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        raise SystemConfigurationError(
            component=component,
            message=f"{component} must be {bounds}, got {value}",
        )
    return number


@dataclass
class ChargingSettings:
    """Low-price and low-battery charging settings."""

    enable_low_price_charging: bool = ENABLE_LOW_PRICE_CHARGING
    low_price_blocks_count: int = LOW_PRICE_BLOCKS_COUNT
    low_battery_threshold: float | None = LOW_BATTERY_THRESHOLD
    manual_override_minutes: int = MANUAL_OVERRIDE_MINUTES
    selection_mode: SelectionMode = SelectionMode.INDIVIDUAL
    fallback_policy: FallbackPolicy = FallbackPolicy.WHEN_TODAY_EXHAUSTED
    price_timezone: str | None = None  # None = system zone
    locale: str = DEFAULT_LOCALE

    def __post_init__(self):
        self.selection_mode = _parse_enum(
            SelectionMode, self.selection_mode, "selection_mode"
        )
        self.fallback_policy = _parse_enum(
            FallbackPolicy, self.fallback_policy, "fallback_policy"
        )
        self.low_price_blocks_count = _parse_number(
            self.low_price_blocks_count, "low_price_blocks_count", minimum=0
        )
        self.manual_override_minutes = _parse_number(
            self.manual_override_minutes, "manual_override_minutes", minimum=1
        )
        if self.low_battery_threshold is not None:
            self.low_battery_threshold = _parse_number(
                self.low_battery_threshold,
                "low_battery_threshold",
                cast=float,
                minimum=0,
                maximum=100,
            )

    def update(self, **kwargs: Any) -> None:
        """Update settings from dict."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

        self.__post_init__()

    def from_config(self, config: dict) -> "ChargingSettings":
        """Apply the `charging` section of the add-on options."""
        if "charging" in config:
            charging_config = config["charging"] or {}
            self.enable_low_price_charging = bool(
                charging_config.get(
                    "enable_low_price_charging", ENABLE_LOW_PRICE_CHARGING
                )
            )
            self.low_price_blocks_count = charging_config.get(
                "low_price_blocks_count", LOW_PRICE_BLOCKS_COUNT
            )
            self.low_battery_threshold = charging_config.get(
                "low_battery_threshold", LOW_BATTERY_THRESHOLD
            )
            self.manual_override_minutes = charging_config.get(
                "manual_override_minutes", MANUAL_OVERRIDE_MINUTES
            )
            self.selection_mode = charging_config.get(
                "selection_mode", SelectionMode.INDIVIDUAL.value
            )
            self.fallback_policy = charging_config.get(
                "fallback_policy", FallbackPolicy.WHEN_TODAY_EXHAUSTED.value
            )
            self.price_timezone = charging_config.get("price_timezone")
            self.locale = charging_config.get("locale", DEFAULT_LOCALE)
            self.__post_init__()
        return self


@dataclass
class PriceSourceSettings:
    """Where electricity prices come from."""

    source: str = DEFAULT_PRICE_SOURCE
    tibber_token: str | None = None
    smard_market_area: str = DEFAULT_MARKET_AREA
    request_timeout: float = REQUEST_TIMEOUT_SECONDS

    def __post_init__(self):
        self.source = str(self.source).lower()
        if self.source not in PRICE_SOURCES:
            raise SystemConfigurationError(
                component="price_source",
                message=f"Unknown price source '{self.source}', expected one of: {', '.join(PRICE_SOURCES)}",
            )

    def update(self, **kwargs: Any) -> None:
        """Update settings from dict."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

        self.__post_init__()

    def from_config(self, config: dict) -> "PriceSourceSettings":
        if "price" in config:
            price_config = config["price"] or {}
            self.source = price_config.get("source", DEFAULT_PRICE_SOURCE)
            self.tibber_token = price_config.get("tibber_token", self.tibber_token)
            self.smard_market_area = price_config.get(
                "market_area", DEFAULT_MARKET_AREA
            )
            self.request_timeout = price_config.get(
                "request_timeout", REQUEST_TIMEOUT_SECONDS
            )
            self.__post_init__()
        return self


@dataclass
class VehicleSettings:
    """Vehicle cloud access."""

    vin: str | None = None
    access_token: str | None = None
    poll_interval_seconds: int = STATUS_POLL_INTERVAL_SECONDS

    def update(self, **kwargs: Any) -> None:
        """Update settings from dict."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def from_config(self, config: dict) -> "VehicleSettings":
        if "vehicle" in config:
            vehicle_config = config["vehicle"] or {}
            self.vin = vehicle_config.get("vin", self.vin)
            self.access_token = vehicle_config.get("access_token", self.access_token)
            self.poll_interval_seconds = int(
                vehicle_config.get(
                    "poll_interval_seconds", STATUS_POLL_INTERVAL_SECONDS
                )
            )
        return self
