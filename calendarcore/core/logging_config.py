"""
Central logging configuration for calendarcore.

The library itself only creates module loggers; applications embedding the
controller call ``configure_logging`` once to get a colorized console handler
and consistent levels for the calendarcore module loggers.
"""

import logging
import sys
from typing import Optional

from colorlog import ColoredFormatter

from calendarcore.core.config_manager import CalendarCoreSettings, get_settings

CALENDARCORE_MODULES = [
    "calendarcore",
    "calendarcore.core.config_manager",
    "calendarcore.core.date_utils",
    "calendarcore.calendar.decoding",
    "calendarcore.calendar.models",
    "calendarcore.calendar.recurrence",
    "calendarcore.calendar.rrule_expander",
    "calendarcore.domain.calendar_config",
    "calendarcore.domain.controller",
]

# HH:MM:SS  LEVEL   logger.name: message (only the level is colorized)
CONSOLE_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


def _build_console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS))
    return handler


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    level: Optional[str] = None,
    *,
    settings: Optional[CalendarCoreSettings] = None,
) -> None:
    """
    Configure logging levels for calendarcore.

    Args:
        debug_mode: Whether to enable debug logging for calendarcore modules
        force_debug: Override debug mode setting (None to use the settings value)
        level: Explicit root level name (DEBUG, INFO, WARNING, ERROR)
        settings: Settings to read ``debug`` and ``log_level`` from; defaults to get_settings()

    Precedence for the root level: ``level``, then debug mode, then
    ``settings.log_level``. ``CALENDARCORE_DEBUG`` and ``CALENDARCORE_LOG_LEVEL``
    (environment or .env) reach this function through the settings.
    """
    settings = settings or get_settings()

    if force_debug is not None:
        final_debug = force_debug
    else:
        final_debug = debug_mode or settings.debug

    if level is None:
        level = "DEBUG" if final_debug else settings.log_level

    root_level = logging.DEBUG if final_debug else logging.INFO
    if level.upper() in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        root_level = getattr(logging, level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a handler if none exist, so host applications keep their own setup
    if not root_logger.handlers:
        root_logger.addHandler(_build_console_handler(root_level))

    module_level = logging.DEBUG if final_debug else logging.INFO
    for module in CALENDARCORE_MODULES:
        logging.getLogger(module).setLevel(module_level)

    if final_debug:
        root_logger.info("Debug logging enabled for calendarcore modules")
    else:
        logging.getLogger(__name__).debug(
            "Logging configured at level %s", logging.getLevelName(root_level)
        )


def reset_logging_to_debug() -> None:
    """
    Reset calendarcore loggers and the root logger to DEBUG for troubleshooting.
    """
    logging.getLogger().setLevel(logging.DEBUG)
    for module in CALENDARCORE_MODULES:
        logging.getLogger(module).setLevel(logging.DEBUG)

    logging.getLogger().info("All calendarcore loggers reset to DEBUG level for troubleshooting")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}

    for logger_name in CALENDARCORE_MODULES:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)

    return status
