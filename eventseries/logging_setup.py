"""
Central logging configuration for eventseries.

Keeps package diagnostics at the requested verbosity while holding noisy
third-party loggers at WARNING, and stamps every record with the current
request correlation ID.
"""

import logging
import os
from typing import Optional

from eventseries.core.request_context import get_request_id

LOG_FORMAT = "[%(asctime)s] [%(request_id)s] %(levelname)s - %(name)s - %(message)s"

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Third-party loggers held at WARNING unless debugging everything
_SUPPRESSED_LOGGERS = ["asyncio", "dateutil"]

_PACKAGE_LOGGERS = [
    "eventseries",
    "eventseries.recurrence.evaluator",
    "eventseries.recurrence.rrule_text",
    "eventseries.series.materializer",
    "eventseries.series.memory_store",
]


class CorrelationIdFilter(logging.Filter):
    """Add correlation ID to all log records for request tracing."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation ID to log record.

        Args:
            record: Log record to enhance

        Returns:
            True to allow record to be logged
        """
        record.request_id = get_request_id()
        return True


def _env_debug() -> bool:
    return os.getenv("EVENTSERIES_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    log_level: Optional[str] = None,
) -> int:
    """
    Configure logging for eventseries.

    Args:
        debug_mode: Whether to enable debug logging for eventseries modules
        force_debug: Override debug mode setting (None to use env var detection)
        log_level: Root level name from configuration, applied unless the
            environment overrides it

    Returns:
        The root log level that was applied

    Environment Variables:
        EVENTSERIES_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        EVENTSERIES_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_log_level = os.getenv("EVENTSERIES_LOG_LEVEL", "").strip().upper()

    # Determine final debug mode
    if force_debug is not None:
        final_debug = force_debug
    elif _env_debug():
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if log_level and log_level.upper() in _VALID_LEVELS and not final_debug:
        root_level = getattr(logging, log_level.upper())
    if env_log_level in _VALID_LEVELS:
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    correlation_filter = CorrelationIdFilter()

    # Only add a handler if none exist; otherwise decorate the existing ones
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(correlation_filter)
        root_logger.addHandler(handler)
    else:
        for existing_handler in root_logger.handlers:
            if not any(isinstance(f, CorrelationIdFilter) for f in existing_handler.filters):
                existing_handler.addFilter(correlation_filter)

    logger_config: dict[str, int] = {name: logging.WARNING for name in _SUPPRESSED_LOGGERS}
    package_level = logging.DEBUG if final_debug else root_level
    for module in _PACKAGE_LOGGERS:
        logger_config[module] = package_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for eventseries modules.")
    else:
        root_logger.debug("Logging configured at %s", logging.getLevelName(root_level))

    return root_level


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["eventseries", *_SUPPRESSED_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
