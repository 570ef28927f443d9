"""
ChargingController - orchestrates price-driven and low-battery charging.

The controller owns everything that persists between ticks: the interval
store (through the PriceManager), the automation flags and manual override
timestamps (through ChargingStateStore) and the last vehicle status. The
decision itself is delegated to the pure decide_low_price_charging function.

Two entry points are driven by the scheduler:

- update_prices_and_check_charging(): every 15 minutes, refreshes prices and
  the next-charging-times text, then applies the low-price decision.
- refresh_status(): on the vehicle poll interval, maps the vehicle status
  and runs check_charging_control() with the fresh battery level.

Automation flags are only written after the charger switch call succeeded.

Scheduler jobs and API requests run on different threads. Every public
method holds the controller lock while it reads or writes the control state,
so a manual action waits for an in-flight tick to finish applying its
decision and then takes precedence over it. Network fetches run outside the
lock.
"""

import logging
from datetime import datetime, timedelta
from threading import RLock

from .charger_switch import ChargerSwitch
from .charging_decision import (
    ChargingContext,
    ChargingDecision,
    decide_low_price_charging,
)
from .charging_state import ChargingControlState, ChargingStateStore
from .charging_times import UNKNOWN_TEXT, format_next_charging_times
from .exceptions import VehicleApiError, extract_error_message
from .manual_override import (
    calculate_expiration_time,
    calculate_remaining_minutes,
    get_manual_override_state,
    is_manual_override_active,
    should_log_expiration,
    should_log_remaining_time,
)
from .models import PriceInterval
from .price_manager import PriceManager
from .settings import ChargingSettings, VehicleSettings
from .time_utils import ensure_utc, now_utc, system_timezone_name
from .vehicle_status import VehicleStatus, map_vehicle_status_to_capabilities

logger = logging.getLogger(__name__)


class ChargingController:
    """Applies charging decisions to a charger switch."""

    def __init__(
        self,
        price_manager: PriceManager,
        switch: ChargerSwitch,
        charging_settings: ChargingSettings | None = None,
        vehicle_client=None,
        vehicle_settings: VehicleSettings | None = None,
        state_store: ChargingStateStore | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            price_manager: Owner of the interval store
            switch: Charger actuation
            charging_settings: Low-price/low-battery settings
            vehicle_client: Object with fetch_vehicle_status(vin), optional
            vehicle_settings: VIN and polling settings
            state_store: Persistence for ChargingControlState
        """
        self.price_manager = price_manager
        self.switch = switch
        self.settings = charging_settings or ChargingSettings()
        self.vehicle_client = vehicle_client
        self.vehicle_settings = vehicle_settings or VehicleSettings()
        self.state_store = state_store or ChargingStateStore()
        self.state: ChargingControlState = self.state_store.load()
        self._lock = RLock()

        self.cheapest: list[PriceInterval] = []
        self.vehicle_status: VehicleStatus | None = None
        self.capabilities: dict = {}
        self.last_status_update: datetime | None = None
        self.last_status_error: str | None = None
        self.vehicle_info: dict | None = None

    # Settings helpers

    @property
    def override_duration(self) -> timedelta:
        return timedelta(minutes=self.settings.manual_override_minutes)

    @property
    def timezone(self) -> str:
        return self.settings.price_timezone or system_timezone_name()

    def _now(self, now: datetime | None) -> datetime:
        return now_utc() if now is None else ensure_utc(now)

    def update_settings(self, **kwargs) -> None:
        """Apply validated settings between ticks."""
        with self._lock:
            self.settings.update(**kwargs)

    # Actuation

    def _turn_on(self, due_to_low_battery: bool) -> bool:
        """Switch charging on and record why. Returns False if actuation failed."""
        reason = "low battery" if due_to_low_battery else "low price"
        try:
            self.switch.set_charging(True)
        except Exception as e:
            logger.error(f"Failed to turn on charging ({reason}): {extract_error_message(e)}")
            return False

        if due_to_low_battery:
            self.state.low_battery_enabled = True
        else:
            self.state.low_price_enabled = True
        self.state.charging_on = True
        self.state_store.save(self.state)
        logger.info(f"Charging turned ON ({reason})")
        return True

    def _turn_off(self) -> bool:
        """Switch charging off and clear both automation flags."""
        try:
            self.switch.set_charging(False)
        except Exception as e:
            logger.error(f"Failed to turn off charging: {extract_error_message(e)}")
            return False

        self.state.clear_automation_flags()
        self.state.charging_on = False
        self.state_store.save(self.state)
        logger.info("Charging turned OFF")
        return True

    def _apply(self, decision: ChargingDecision) -> None:
        if decision is ChargingDecision.START:
            logger.info("Current time is in cheapest period, turning ON charging")
            self._turn_on(due_to_low_battery=False)
        elif decision is ChargingDecision.STOP:
            logger.info("Current time is NOT in cheapest period, turning OFF charging")
            self._turn_off()

    # Manual override

    def is_manual_override_active(self, now: datetime | None = None) -> bool:
        """Check the override window, logging remaining time and expiry sparingly."""
        now = self._now(now)
        with self._lock:
            timestamp = self.state.manual_override_timestamp
            active = is_manual_override_active(timestamp, now, self.override_duration)

            if active:
                if should_log_remaining_time(self.state.last_override_log_time, now):
                    remaining = calculate_remaining_minutes(
                        timestamp, now, self.override_duration
                    )
                    logger.info(f"Manual override active, {remaining} minute(s) remaining")
                    self.state.last_override_log_time = now
                    self.state_store.save(self.state)
            else:
                expiration = calculate_expiration_time(timestamp, self.override_duration)
                if expiration and should_log_expiration(
                    self.state.last_expiration_log_time, expiration
                ):
                    logger.info("Manual override expired, automation can take control")
                    self.state.last_expiration_log_time = now
                    self.state_store.save(self.state)

            return active

    def handle_manual_control(self, on: bool, now: datetime | None = None) -> bool:
        """Apply a manual on/off from the user and start the override window.

        A tick that is still applying its decision finishes first; the manual
        action is then applied on top of it.

        Returns:
            True if the charger was switched
        """
        now = self._now(now)
        logger.info(f"Manual control: {'ON' if on else 'OFF'}")

        with self._lock:
            try:
                self.switch.set_charging(on)
            except Exception as e:
                logger.error(f"Manual control failed: {extract_error_message(e)}")
                return False

            self.state.charging_on = on
            self.state.manual_override_timestamp = now
            self.state.last_override_log_time = now
            self.state.last_expiration_log_time = None
            if not on:
                self.state.clear_automation_flags()
                logger.info("Cleared automatic control flags due to manual off")
            self.state_store.save(self.state)

        logger.info(
            f"Manual override set, will remain active for {self.settings.manual_override_minutes} minutes"
        )
        return True

    # Price-driven charging

    def _select_cheapest(self, now: datetime) -> list[PriceInterval]:
        self.cheapest = self.price_manager.find_cheapest(
            self.settings.low_price_blocks_count,
            now,
            self.settings.selection_mode,
            self.settings.fallback_policy,
        )
        return self.cheapest

    def _build_context(self, now: datetime, enable_low_price: bool) -> ChargingContext:
        return ChargingContext(
            enable_low_price=enable_low_price,
            battery_level=self.state.battery_level,
            low_battery_threshold=self.settings.low_battery_threshold,
            manual_override_active=self.is_manual_override_active(now),
            was_on_due_to_price=self.state.low_price_enabled,
        )

    def get_next_charging_times(self, now: datetime | None = None) -> str:
        now = self._now(now)
        with self._lock:
            return format_next_charging_times(
                self.cheapest, now, self.settings.locale, self.timezone
            )

    def update_next_charging_times(self, now: datetime | None = None) -> str:
        with self._lock:
            try:
                text = self.get_next_charging_times(now)
            except Exception as e:
                logger.error(f"Failed to update next charging times: {extract_error_message(e)}")
                text = UNKNOWN_TEXT
            self.state.next_charging_times = text
            self.state_store.save(self.state)
        logger.info(f"Next charging times: {text}")
        return text

    def update_prices_and_check_charging(
        self, now: datetime | None = None
    ) -> ChargingDecision:
        """Refresh prices and the display, then apply the low-price decision.

        Returns:
            The decision that was applied
        """
        now = self._now(now)
        logger.info("Updating prices from price data source")

        self.price_manager.update_prices()

        with self._lock:
            self._select_cheapest(now)
            self.update_next_charging_times(now)

            if not self.settings.enable_low_price_charging:
                logger.info("Low price charging is disabled, prices updated for display only")
                return ChargingDecision.NO_CHANGE

            decision = decide_low_price_charging(
                self.cheapest, now, self._build_context(now, enable_low_price=True)
            )
            self._apply(decision)
            return decision

    def check_low_price_charging(self, now: datetime | None = None) -> ChargingDecision:
        """Decide on cached prices without fetching."""
        now = self._now(now)
        with self._lock:
            if self.is_manual_override_active(now):
                logger.info("Skipping low price automation - manual override still active")
                return ChargingDecision.NO_CHANGE

            logger.debug(
                f"Checking low price charging (cheapest {self.settings.low_price_blocks_count} blocks)"
            )
            self._select_cheapest(now)
            decision = decide_low_price_charging(
                self.cheapest, now, self._build_context(now, enable_low_price=True)
            )
            self._apply(decision)
            return decision

    def prune_prices(self, before: datetime) -> int:
        """Drop expired intervals from the store."""
        with self._lock:
            return self.price_manager.prune(before)

    # Low-battery charging

    def check_low_battery_control(
        self, battery_level: float, now: datetime | None = None
    ) -> None:
        """Turn charging on below the threshold and off again once recovered."""
        now = self._now(now)
        with self._lock:
            threshold = self.settings.low_battery_threshold
            if not threshold:
                return

            # Low battery overrides manual control; recovery does not
            if battery_level >= threshold and self.is_manual_override_active(now):
                logger.info("Skipping low battery turn-off - manual override still active")
                return

            logger.debug(f"Checking battery: {battery_level}% (threshold: {threshold}%)")

            if battery_level < threshold:
                if not self.state.low_battery_enabled:
                    logger.info(
                        f"Battery below threshold ({battery_level}% < {threshold}%), turning ON charging"
                    )
                    self._turn_on(due_to_low_battery=True)
                else:
                    logger.debug("Charging already enabled due to low battery")
            elif self.state.low_battery_enabled:
                logger.info(
                    f"Battery above threshold ({battery_level}% >= {threshold}%), turning OFF charging"
                )
                self._turn_off()

    def check_charging_control(
        self, battery_level: float | None, now: datetime | None = None
    ) -> None:
        """Run low-battery then low-price control with the given battery level."""
        now = self._now(now)
        with self._lock:
            if battery_level is not None:
                self.state.battery_level = battery_level

            if self.is_manual_override_active(now):
                logger.info("Skipping charging automation - manual override still active")
                return

            threshold = self.settings.low_battery_threshold
            if threshold and battery_level is not None and battery_level < threshold:
                self.check_low_battery_control(battery_level, now)
                return

            if self.state.low_battery_enabled:
                logger.info("Battery recovered, turning off low battery charging")
                self._turn_off()

            if self.settings.enable_low_price_charging:
                self.check_low_price_charging(now)
            elif self.state.low_price_enabled:
                logger.info("Low price charging disabled, turning off price-started charging")
                self._turn_off()

    # Vehicle status

    def refresh_vehicle_info(self) -> dict | None:
        """Fetch the vehicle's name and plate once for display.

        Also confirms that the configured VIN is in the account's garage.
        """
        if self.vehicle_client is None or not self.vehicle_settings.vin:
            return None

        vin = self.vehicle_settings.vin
        try:
            garage = self.vehicle_client.fetch_vehicles()
            info = self.vehicle_client.fetch_vehicle_info(vin)
        except VehicleApiError as e:
            logger.warning(f"Could not fetch vehicle info: {e}")
            return None

        if not any(vehicle.get("vin") == vin for vehicle in garage):
            logger.warning(f"Vehicle {vin} is not listed in the account's garage")

        with self._lock:
            self.vehicle_info = info
        logger.info(f"Vehicle: {info['name'] or vin} ({info['license_plate'] or 'no plate'})")
        return info

    def refresh_status(self, now: datetime | None = None) -> VehicleStatus | None:
        """Poll the vehicle, update device values and re-run charging control.

        Returns:
            The mapped status, or None if no client is configured or the poll failed
        """
        now = self._now(now)
        if self.vehicle_client is None or not self.vehicle_settings.vin:
            logger.debug("No vehicle client configured, skipping status refresh")
            return None

        try:
            payload = self.vehicle_client.fetch_vehicle_status(self.vehicle_settings.vin)
            status = VehicleStatus.from_api(payload)
            capabilities = map_vehicle_status_to_capabilities(payload)
        except VehicleApiError as e:
            with self._lock:
                self.last_status_error = str(e)
            logger.error(f"Error fetching vehicle status: {e}")
            if e.is_auth_error:
                logger.error("Vehicle API rejected the access token")
            return None
        except (KeyError, TypeError) as e:
            with self._lock:
                self.last_status_error = f"Unexpected status payload: {e}"
            logger.error(f"Unexpected status payload: {e}")
            return None

        with self._lock:
            self.vehicle_status = status
            self.capabilities = capabilities
            self.last_status_update = now
            self.last_status_error = None
            self.state.battery_level = status.battery_level
            logger.debug(f"Current charging power: {status.charging_power_kw} kW")

            manual_active = self.is_manual_override_active(now)
            if not manual_active and not self.state.is_automatic_control_active:
                self.state.charging_on = status.is_charging
                logger.debug(
                    f"Charging state updated from API: {'ON' if status.is_charging else 'OFF'} "
                    f"(charging state: {status.charging_state})"
                )
            elif manual_active:
                logger.debug("Skipping API charging state update (manual override active)")
            else:
                logger.debug("Skipping API charging state update (automatic control active)")
            self.state_store.save(self.state)

            self.check_charging_control(status.battery_level, now)
        return status

    def get_status(self, now: datetime | None = None) -> dict:
        """Snapshot for the API."""
        now = self._now(now)
        with self._lock:
            override = get_manual_override_state(
                self.state.manual_override_timestamp, now, self.override_duration
            )
            return {
                "charging_on": self.state.charging_on,
                "low_price_enabled": self.state.low_price_enabled,
                "low_battery_enabled": self.state.low_battery_enabled,
                "manual_override_active": override.is_active,
                "manual_override_remaining_minutes": override.remaining_minutes,
                "manual_override_expires": override.expiration_time,
                "battery_level": self.state.battery_level,
                "next_charging_times": self.state.next_charging_times,
                "cheapest_intervals": [
                    interval.to_dict() for interval in self.cheapest
                ],
                "vehicle": self.vehicle_status.to_dict() if self.vehicle_status else None,
                "vehicle_info": self.vehicle_info,
                "last_status_update": self.last_status_update,
                "last_status_error": self.last_status_error,
                "last_price_update": self.price_manager.last_update,
                "last_price_error": self.price_manager.last_error,
            }
