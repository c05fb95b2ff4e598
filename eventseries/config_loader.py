"""eventseries.config_loader

Engine configuration for eventseries.

- Reads YAML (PyYAML) or JSON by file suffix.
- Applies EVENTSERIES_* environment overrides on top of the file values.
- Exposes a typed dataclass `EngineConfig` and a `load_config()` helper that
  accepts an optional path override.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from eventseries.core.timezone_utils import DEFAULT_TIME_ZONE, resolve_zone
from eventseries.exceptions import InvalidTimezoneError
from eventseries.recurrence.evaluator import ABSOLUTE_MAX_OCCURRENCES, DEFAULT_MAX_OCCURRENCES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("eventseries.yaml")

# Environment variable -> (config key, type)
ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "EVENTSERIES_DEFAULT_TIMEZONE": ("default_time_zone", str),
    "EVENTSERIES_MAX_OCCURRENCES": ("max_occurrences", int),
    "EVENTSERIES_UPCOMING_TIMEOUT": ("upcoming_timeout_seconds", float),
    "EVENTSERIES_MAX_UPCOMING": ("max_upcoming", int),
    "EVENTSERIES_PAST_LOOKBACK_MONTHS": ("past_lookback_months", int),
    "EVENTSERIES_EXTERNAL_FEED_COUNT": ("external_feed_count", int),
    "EVENTSERIES_DEFAULT_LOOKAHEAD": ("default_lookahead_count", int),
    "EVENTSERIES_EXTERNAL_SOURCE_TYPE": ("external_source_type", str),
    "EVENTSERIES_BUFFER_SERIES_LIMIT": ("buffer_series_limit", int),
    "EVENTSERIES_BUFFER_PAUSE": ("buffer_pause_seconds", float),
    "EVENTSERIES_LOG_LEVEL": ("log_level", str),
}


@dataclass
class EngineConfig:
    """Typed configuration for the recurrence engine.

    Fields:
        default_time_zone: zone used when a series has none
        max_occurrences: evaluator cap for rules without COUNT/UNTIL (1..1000)
        upcoming_timeout_seconds: budget for the upcoming-occurrences view
        max_upcoming: hard cap on the upcoming count (1..500)
        past_lookback_months: how far include_past looks back
        external_feed_count: look-ahead for externally sourced series
        default_lookahead_count: look-ahead for native series
        external_source_type: source_type buffered at login
        buffer_series_limit: series processed per login buffer run
        buffer_pause_seconds: pause between buffered series
        log_level: logging level name
    """

    default_time_zone: str = DEFAULT_TIME_ZONE
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES
    upcoming_timeout_seconds: float = 10.0
    max_upcoming: int = 50
    past_lookback_months: int = 3
    external_feed_count: int = 2
    default_lookahead_count: int = 2
    external_source_type: str = "bluesky"
    buffer_series_limit: int = 2
    buffer_pause_seconds: float = 0.1
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EngineConfig:
        """Create EngineConfig from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced; out-of-range values are clamped and
        invalid ones replaced by defaults, logging a warning in both cases.
        """
        if data is None:
            data = {}
        defaults = cls()

        def _coerce(key: str, kind: type, default: Any) -> Any:
            raw = data.get(key, default)
            if raw is None:
                return default
            try:
                return kind(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not a %s; using default %r", key, raw, kind.__name__, default)
                return default

        def _bounded(key: str, value: Any, low: Any, high: Any | None = None) -> Any:
            if value < low:
                logger.warning("%s %r below minimum; coercing to %r", key, value, low)
                return low
            if high is not None and value > high:
                logger.warning("%s %r above maximum; coercing to %r", key, value, high)
                return high
            return value

        tz_name = str(data.get("default_time_zone") or defaults.default_time_zone)
        try:
            resolve_zone(tz_name)
        except InvalidTimezoneError:
            logger.warning("Config default_time_zone=%r is unknown; using %s", tz_name, DEFAULT_TIME_ZONE)
            tz_name = DEFAULT_TIME_ZONE

        log_level = data.get("log_level", defaults.log_level)
        log_level = str(log_level).upper() if log_level is not None else defaults.log_level

        return cls(
            default_time_zone=tz_name,
            max_occurrences=_bounded(
                "max_occurrences",
                _coerce("max_occurrences", int, defaults.max_occurrences),
                1,
                ABSOLUTE_MAX_OCCURRENCES,
            ),
            upcoming_timeout_seconds=_bounded(
                "upcoming_timeout_seconds",
                _coerce("upcoming_timeout_seconds", float, defaults.upcoming_timeout_seconds),
                0.01,
            ),
            max_upcoming=_bounded(
                "max_upcoming", _coerce("max_upcoming", int, defaults.max_upcoming), 1, 500
            ),
            past_lookback_months=_bounded(
                "past_lookback_months",
                _coerce("past_lookback_months", int, defaults.past_lookback_months),
                0,
                120,
            ),
            external_feed_count=_bounded(
                "external_feed_count", _coerce("external_feed_count", int, defaults.external_feed_count), 0
            ),
            default_lookahead_count=_bounded(
                "default_lookahead_count",
                _coerce("default_lookahead_count", int, defaults.default_lookahead_count),
                0,
            ),
            external_source_type=str(data.get("external_source_type") or defaults.external_source_type),
            buffer_series_limit=_bounded(
                "buffer_series_limit", _coerce("buffer_series_limit", int, defaults.buffer_series_limit), 0
            ),
            buffer_pause_seconds=_bounded(
                "buffer_pause_seconds",
                _coerce("buffer_pause_seconds", float, defaults.buffer_pause_seconds),
                0.0,
            ),
            log_level=log_level,
        )


def build_config_from_env(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Build a configuration mapping from EVENTSERIES_* environment variables.

    Values that cannot be converted are ignored with a warning.
    """
    env = os.environ if environ is None else environ
    cfg: dict[str, Any] = {}
    for var, (key, kind) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if not raw:
            continue
        try:
            cfg[key] = kind(raw)
        except ValueError:
            logger.warning("Invalid %s=%r; ignoring", var, raw)
    return cfg


def _load_mapping(path: Path) -> Any:
    """Load a YAML or JSON document; JSON is chosen by the .json suffix."""
    text = path.read_text()
    if path.suffix.lower() == ".json":
        return json.loads(text)
    loaded = yaml.safe_load(text)
    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def load_config(path: str | Path | None = None, environ: dict[str, str] | None = None) -> EngineConfig:
    """Load configuration from a YAML/JSON file plus environment overrides.

    Args:
        path: Optional path to the config file; defaults to ./eventseries.yaml
        environ: Environment mapping, os.environ when None

    Returns:
        EngineConfig with values from file, environment or defaults

    Behavior:
    - If the file is missing: defaults (plus environment overrides).
    - If the file exists but top-level is not a mapping: raises ValueError.
    """
    p = Path(path) if path else Path.cwd() / DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)

    raw: dict[str, Any] = {}
    if p.exists():
        loaded = _load_mapping(p)
        if not isinstance(loaded, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, loaded)
            raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
        raw = loaded
        logger.info("Loaded configuration from %s", p)
    else:
        logger.info("Config file %s not found; using defaults", p)

    env_values = build_config_from_env(environ)
    if env_values:
        logger.debug("Environment overrides for keys: %s", ", ".join(sorted(env_values)))

    cfg = EngineConfig.from_dict({**raw, **env_values})
    logger.debug("Configuration values: %s", cfg)
    return cfg
