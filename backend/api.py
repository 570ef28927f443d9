"""
API endpoints for charging status, prices, manual control, settings and health.

"""

from dataclasses import replace

from api_conversion import convert_keys_to_camel_case
from api_dataclasses import APIChargingSettings, APIPriceInterval
from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from core.evcharge.charging_controller import ChargingController
from core.evcharge.cheapest_intervals import FallbackPolicy, SelectionMode
from core.evcharge.exceptions import SystemConfigurationError
from core.evcharge.health_check import run_system_health_checks
from core.evcharge.models import interval_key
from core.evcharge.time_utils import now_utc

router = APIRouter()


def get_controller() -> ChargingController:
    """Resolve the running controller; overridden in tests."""
    from app import charging_service

    return charging_service.controller


@router.get("/api/status")
async def get_status(controller: ChargingController = Depends(get_controller)):
    """Charging flags, override state, battery and next charging times."""
    try:
        return convert_keys_to_camel_case(controller.get_status())
    except Exception as e:
        logger.error(f"Error getting status: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.get("/api/prices")
async def get_prices(controller: ChargingController = Depends(get_controller)):
    """All cached 15-minute prices, cheapest ones flagged."""
    try:
        cheapest_keys = {interval_key(interval.start) for interval in controller.cheapest}
        store = controller.price_manager.store
        intervals = [
            APIPriceInterval.from_internal(interval, key in cheapest_keys)
            for key, interval in sorted(store.items(), key=lambda item: item[1].start)
        ]
        return {
            "intervals": [interval.__dict__ for interval in intervals],
            "source": controller.price_manager.price_source.name,
            "lastUpdate": (
                controller.price_manager.last_update.isoformat()
                if controller.price_manager.last_update
                else None
            ),
            "lastError": controller.price_manager.last_error,
        }
    except Exception as e:
        logger.error(f"Error getting prices: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.get("/api/cheapest")
async def get_cheapest(
    count: int = Query(None, ge=0),
    mode: str = Query(None),
    policy: str = Query(None),
    controller: ChargingController = Depends(get_controller),
):
    """Cheapest intervals for the given (or configured) count, mode and policy."""
    try:
        selection_mode = SelectionMode(mode) if mode else controller.settings.selection_mode
        fallback_policy = (
            FallbackPolicy(policy) if policy else controller.settings.fallback_policy
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    try:
        block_count = controller.settings.low_price_blocks_count if count is None else count
        cheapest = controller.price_manager.find_cheapest(
            block_count, now_utc(), selection_mode, fallback_policy
        )
        total = sum(interval.price for interval in cheapest)
        return {
            "count": block_count,
            "selectionMode": selection_mode.value,
            "fallbackPolicy": fallback_policy.value,
            "intervals": [
                APIPriceInterval.from_internal(interval, True).__dict__
                for interval in cheapest
            ],
            "averagePrice": total / len(cheapest) if cheapest else None,
        }
    except Exception as e:
        logger.error(f"Error computing cheapest intervals: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.get("/api/next-charging-times")
async def get_next_charging_times(
    controller: ChargingController = Depends(get_controller),
):
    """Human-readable upcoming charging windows."""
    try:
        return {
            "text": controller.get_next_charging_times(),
            "locale": controller.settings.locale,
            "timezone": controller.timezone,
        }
    except Exception as e:
        logger.error(f"Error formatting next charging times: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e


@router.post("/api/charging/manual")
async def set_manual_charging(
    request: dict, controller: ChargingController = Depends(get_controller)
):
    """Switch charging on or off by hand and start the manual override window."""
    on = request.get("on")
    if not isinstance(on, bool):
        raise HTTPException(status_code=400, detail="'on' must be true or false")

    if not controller.handle_manual_control(on):
        raise HTTPException(status_code=500, detail="Failed to switch charger")

    logger.info(f"Manual charging {'ON' if on else 'OFF'} requested via API")
    return convert_keys_to_camel_case(controller.get_status())


@router.get("/api/settings/charging")
async def get_charging_settings(
    controller: ChargingController = Depends(get_controller),
):
    """Get current charging settings in canonical camelCase format."""
    return APIChargingSettings.from_internal(controller.settings).__dict__


@router.post("/api/settings/charging")
async def update_charging_settings(
    settings: dict, controller: ChargingController = Depends(get_controller)
):
    """Update charging settings from (partial) camelCase input."""
    current = APIChargingSettings.from_internal(controller.settings).__dict__
    try:
        api_settings = APIChargingSettings(**{**current, **settings})
        internal_updates = api_settings.to_internal_update()
        # Validate on a copy so a bad value leaves the live settings untouched
        replace(controller.settings, **internal_updates)
    except (TypeError, ValueError, SystemConfigurationError) as e:
        logger.warning(f"Rejected charging settings update: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e

    controller.update_settings(**internal_updates)
    logger.info("Charging settings updated")
    return {"message": "Charging settings updated successfully"}


@router.get("/api/health")
async def get_system_health(controller: ChargingController = Depends(get_controller)):
    """Health of the price source and vehicle API."""
    try:
        test_mode = getattr(controller.switch, "test_mode", False)
        return convert_keys_to_camel_case(run_system_health_checks(controller, test_mode))
    except Exception as e:
        logger.error(f"Error getting system health: {e}")
        return convert_keys_to_camel_case(
            {
                "timestamp": now_utc().isoformat(),
                "system_mode": "unknown",
                "checks": [],
            }
        )
