"""Low-price charging decision.

A pure function of its inputs: no I/O, no state. The only state carried from
one tick to the next is `was_on_due_to_price`, which the caller persists after
actually applying the previous decision.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .time_utils import ensure_utc


class ChargingDecision(Enum):
    """Outcome of one evaluation tick."""

    START = "start"
    STOP = "stop"
    NO_CHANGE = "no_change"


@dataclass(frozen=True)
class ChargingContext:
    """Per-tick inputs rebuilt by the caller from settings and device state."""

    enable_low_price: bool
    battery_level: float | None = None
    low_battery_threshold: float | None = None
    manual_override_active: bool = False
    was_on_due_to_price: bool = False

    @property
    def is_low_battery(self) -> bool:
        """Battery strictly below a positive threshold; unknowns never count."""
        if self.low_battery_threshold is None or self.battery_level is None:
            return False
        return (
            self.low_battery_threshold > 0
            and self.battery_level < self.low_battery_threshold
        )


def is_in_cheap_period(cheapest, now: datetime) -> bool:
    """True if now lies in [start, end) of any selected interval."""
    now = ensure_utc(now)
    return any(interval.start <= now < interval.end for interval in cheapest)


def decide_low_price_charging(
    cheapest, now: datetime, context: ChargingContext
) -> ChargingDecision:
    """Decide whether price-driven automation should start or stop charging.

    Rules are evaluated in priority order, first match wins:

    1. Feature disabled -> NO_CHANGE
    2. Low battery -> NO_CHANGE (never a reason to stop charging)
    3. Manual override active -> NO_CHANGE
    4. Now inside a cheap interval -> START
    5. Charging was started by price automation -> STOP
    6. Otherwise -> NO_CHANGE

    Args:
        cheapest: Selected cheapest intervals (any order)
        now: Evaluation instant
        context: Override flags and battery state

    Returns:
        The charging decision
    """
    if not context.enable_low_price:
        return ChargingDecision.NO_CHANGE

    cheap_now = is_in_cheap_period(cheapest, now)

    if context.is_low_battery:
        return ChargingDecision.NO_CHANGE

    if context.manual_override_active:
        return ChargingDecision.NO_CHANGE

    if cheap_now:
        return ChargingDecision.START

    # Only stop what price automation started
    if context.was_on_due_to_price:
        return ChargingDecision.STOP

    return ChargingDecision.NO_CHANGE
