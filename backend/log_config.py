import logging
import os
import sys
from pathlib import Path

from loguru import logger

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Loggers that stay quieter than the rest of the service
QUIET_LOGGERS = {
    "apscheduler.executors.default": logging.ERROR,
    "apscheduler.scheduler": logging.WARNING,
    "urllib3.connectionpool": logging.WARNING,
}


def add_module_name(record):
    """Ensure every record has module_name in extra."""
    if "module_name" not in record["extra"]:
        record["extra"]["module_name"] = f"{record['name']}:{record['line']}"
    return True


class InterceptHandler(logging.Handler):
    """Route standard logging records (core.evcharge, uvicorn, apscheduler) into loguru."""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        if record.name == "root":
            module_name = record.module
        elif "." in record.name:
            module_name = record.name
        else:
            module_name = Path(record.pathname).stem

        logger.bind(module_name=f"{module_name}:{record.lineno}").opt(
            exception=record.exc_info
        ).log(level, record.getMessage())


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Install the loguru sink and send all standard logging through it."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <5}</level> | <cyan>{extra[module_name]}</cyan> - {message}",
        level=level,
        colorize=True,
        filter=add_module_name,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    # Drop handlers other libraries installed so records reach loguru once
    for name in logging.root.manager.loggerDict:
        if name not in QUIET_LOGGERS:
            logging.getLogger(name).handlers = []
            logging.getLogger(name).propagate = True


setup_logging()
