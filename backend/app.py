import json
import os
import traceback
from contextlib import asynccontextmanager
from datetime import timedelta

import log_config  # noqa: F401
import yaml

# Import endpoints router
from api import router as endpoints_router
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from core.evcharge.charger_switch import HomeAssistantSwitch, MockSwitch
from core.evcharge.charging_controller import ChargingController
from core.evcharge.charging_state import ChargingStateStore
from core.evcharge.price_manager import PriceManager, create_price_source
from core.evcharge.settings import ChargingSettings, PriceSourceSettings, VehicleSettings
from core.evcharge.skoda_api import SkodaApiClient
from core.evcharge.time_utils import now_utc

# Get ingress prefix from environment variable
INGRESS_PREFIX = os.environ.get("INGRESS_PREFIX", "")

DATA_DIR = os.environ.get("DATA_DIR", "/data")
OPTIONS_JSON = os.path.join(DATA_DIR, "options.json")
CONFIG_YAML = os.environ.get("CONFIG_YAML", "/app/config.yaml")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan manager for FastAPI app."""
    routes = [
        f"{getattr(route, 'path', 'Unknown path')} - {getattr(route, 'methods', None)}"
        for route in app.routes
    ]
    logger.info(f"Registered routes: {routes}")

    yield

    charging_service.stop()


app = FastAPI(root_path=INGRESS_PREFIX, lifespan=lifespan)


# Keep the server running on unexpected errors
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    error_msg = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    logger.error(f"Unhandled exception: {exc!s}")
    logger.error(f"Request path: {request.url.path}")
    logger.error(f"Stack trace:\n{error_msg}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "type": str(type(exc).__name__),
            "message": "The server encountered an internal error but is still running.",
        },
    )


logger.info(f"Ingress prefix: {INGRESS_PREFIX}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(endpoints_router)


class ChargingService:
    def __init__(self):
        """Build settings, price sources, switch, vehicle client and controller."""
        load_dotenv()
        load_dotenv(os.path.join(DATA_DIR, "options.env"))

        options = self._load_options()
        if not options:
            logger.warning("No configuration options found, using defaults")
            options = {}

        charging_settings = ChargingSettings().from_config(options)
        price_settings = PriceSourceSettings().from_config(options)
        vehicle_settings = VehicleSettings().from_config(options)

        # Secrets may come from the environment instead of the options file
        price_settings.tibber_token = price_settings.tibber_token or os.environ.get(
            "TIBBER_TOKEN"
        )
        vehicle_settings.access_token = vehicle_settings.access_token or os.environ.get(
            "SKODA_ACCESS_TOKEN"
        )
        vehicle_settings.vin = vehicle_settings.vin or os.environ.get("SKODA_VIN")

        primary, fallback = create_price_source(price_settings)
        logger.info(
            f"Using price source {primary.name}"
            + (f" with fallback {fallback.name}" if fallback else "")
        )

        data_dir = DATA_DIR if os.path.isdir(DATA_DIR) else None
        if data_dir is None:
            logger.warning(f"{DATA_DIR} does not exist, state will not be persisted")

        self.price_manager = PriceManager(
            primary,
            fallback_source=fallback,
            cache_file=os.path.join(data_dir, "price_cache.json") if data_dir else None,
        )

        self.test_mode = os.environ.get("HA_TEST_MODE", "false").lower() in (
            "true",
            "1",
            "yes",
        )
        self.switch = self._init_switch(options.get("charger", {}) or {})

        vehicle_client = None
        if vehicle_settings.vin and vehicle_settings.access_token:
            vehicle_client = SkodaApiClient(vehicle_settings.access_token)
        else:
            logger.warning("No vehicle VIN or access token configured, status polling disabled")

        self.controller = ChargingController(
            price_manager=self.price_manager,
            switch=self.switch,
            charging_settings=charging_settings,
            vehicle_client=vehicle_client,
            vehicle_settings=vehicle_settings,
            state_store=ChargingStateStore(
                os.path.join(data_dir, "charging_state.json") if data_dir else None
            ),
        )

        self.scheduler = BackgroundScheduler(
            {
                "apscheduler.executors.default": {
                    "class": "apscheduler.executors.pool:ThreadPoolExecutor",
                    "max_workers": "4",
                },
                "apscheduler.job_defaults": {
                    "misfire_grace_time": 30,
                    "coalesce": True,
                    "max_instances": 1,
                },
            }
        )

        logger.info("Charging service initialized")

    def _init_switch(self, charger_config: dict):
        """Create the Home Assistant charger switch, or a mock without an entity."""
        entity_id = charger_config.get("switch_entity")
        if not entity_id:
            logger.warning("No charger switch entity configured, using mock switch")
            return MockSwitch()

        ha_token = os.getenv("HASSIO_TOKEN")
        if ha_token:
            ha_url = "http://supervisor/core"
        else:
            ha_token = os.environ.get("HA_TOKEN", "")
            ha_url = os.environ.get("HA_URL", "http://supervisor/core")

        switch = HomeAssistantSwitch(ha_url=ha_url, token=ha_token, entity_id=entity_id)
        if self.test_mode:
            logger.info("Enabling test mode - charger writes will be simulated")
        switch.set_test_mode(self.test_mode)
        return switch

    def _load_options(self):
        """Load options from Home Assistant add-on config or config.yaml."""
        # First try the standard options.json (production)
        if os.path.exists(OPTIONS_JSON):
            try:
                with open(OPTIONS_JSON) as f:
                    options = json.load(f)
                    logger.info(f"Loaded options from {OPTIONS_JSON}")
                    return options
            except (OSError, ValueError) as e:
                logger.error(f"Error loading options from {OPTIONS_JSON}: {e!s}")

        # If not available, try config.yaml directly (development)
        if os.path.exists(CONFIG_YAML):
            try:
                with open(CONFIG_YAML) as f:
                    config = yaml.safe_load(f) or {}

                if "options" in config:
                    logger.info(f"Loaded options from {CONFIG_YAML} (options section)")
                    return config["options"]

                logger.warning(
                    f"No 'options' section found in {CONFIG_YAML}, using entire file"
                )
                return config
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Error loading from {CONFIG_YAML}: {e!s}")

        return None

    def _init_scheduler_jobs(self):
        """Configure scheduler jobs."""
        # Prices and low-price decision on every 15-minute boundary
        self.scheduler.add_job(
            self.controller.update_prices_and_check_charging,
            CronTrigger(minute="*/15"),
            id="price_update",
        )

        # Vehicle status and low-battery control
        if self.controller.vehicle_client is not None:
            self.scheduler.add_job(
                self.controller.refresh_status,
                IntervalTrigger(
                    seconds=self.controller.vehicle_settings.poll_interval_seconds
                ),
                id="status_poll",
            )

        # Drop intervals older than yesterday shortly after midnight
        self.scheduler.add_job(
            lambda: self.controller.prune_prices(now_utc() - timedelta(days=1)),
            CronTrigger(hour=0, minute=5),
            id="price_prune",
        )

        self.scheduler.start()

    def start(self):
        """Run the first evaluation and start the scheduler."""
        self.controller.refresh_vehicle_info()
        self.controller.update_prices_and_check_charging()
        self.controller.refresh_status()
        self._init_scheduler_jobs()
        logger.info("Scheduler started successfully")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")


# Global charging service instance
charging_service = ChargingService()
charging_service.start()
