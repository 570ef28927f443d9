"""EV charge manager: price-aware charging for an electric vehicle."""

# Define public API - only include what users should directly access
__all__ = [
    "ChargingContext",
    "ChargingController",
    "ChargingDecision",
    "ChargingSettings",
    "FallbackPolicy",
    "PriceInterval",
    "PriceManager",
    "PriceSourceSettings",
    "SelectionMode",
    "VehicleSettings",
    "decide_low_price_charging",
    "find_cheapest_intervals",
    "format_next_charging_times",
]

from .models import PriceInterval  # noqa: I001
from .cheapest_intervals import (
    FallbackPolicy,
    SelectionMode,
    find_cheapest_intervals,
)
from .charging_decision import (
    ChargingContext,
    ChargingDecision,
    decide_low_price_charging,
)
from .charging_times import format_next_charging_times
from .settings import ChargingSettings, PriceSourceSettings, VehicleSettings

# Import main facade classes
from .price_manager import PriceManager
from .charging_controller import ChargingController
