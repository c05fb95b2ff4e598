"""Timezone conversion utilities for eventseries.

The engine keeps the *local wall-clock* time of an occurrence invariant and lets
the UTC instant absorb DST offset changes. Every helper here converts one value
with the zone's offset for that specific date; an offset is never reused across
dates.
"""

from __future__ import annotations

import datetime
import logging
import os
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

from eventseries.exceptions import InvalidTimezoneError

logger = logging.getLogger(__name__)

DEFAULT_TIME_ZONE = "UTC"

TEST_TIME_ENV_VAR = "EVENTSERIES_TEST_TIME"


@lru_cache(maxsize=128)
def resolve_zone(tz_name: str | None) -> ZoneInfo:
    """Return the ZoneInfo for an IANA identifier.

    Args:
        tz_name: IANA timezone identifier; None or empty means UTC

    Returns:
        ZoneInfo instance

    Raises:
        InvalidTimezoneError: If the identifier is unknown
    """
    name = (tz_name or DEFAULT_TIME_ZONE).strip()
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(f"Unknown timezone: {tz_name!r}") from e


class TimeProvider:
    """Provides current time with test time override support."""

    def now_utc(self) -> datetime.datetime:
        """Get current time in UTC.

        Can be overridden for testing via EVENTSERIES_TEST_TIME environment variable.
        Format: ISO 8601 datetime string (e.g., "2025-10-27T08:20:00-07:00")

        Returns:
            Current time in UTC with timezone info
        """
        test_time = os.environ.get(TEST_TIME_ENV_VAR)
        if test_time:
            try:
                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    return dt.astimezone(datetime.UTC)
                # Assume naive datetime is already UTC
                return dt.replace(tzinfo=datetime.UTC)
            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV_VAR, test_time, e)

        return datetime.datetime.now(datetime.UTC)

    def __call__(self) -> datetime.datetime:
        return self.now_utc()


_time_provider = TimeProvider()


def now_utc() -> datetime.datetime:
    """Current UTC time, honouring EVENTSERIES_TEST_TIME."""
    return _time_provider.now_utc()


def ensure_utc(value: datetime.datetime) -> datetime.datetime:
    """Return an aware UTC datetime; naive values are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC)


def parse_instant(value: datetime.datetime | datetime.date | str) -> datetime.datetime:
    """Coerce a datetime, date or ISO 8601 string into an aware UTC datetime.

    Dates become midnight UTC. Strings without an offset are read as UTC.
    """
    if isinstance(value, str):
        value = date_parser.isoparse(value.strip())
    if isinstance(value, datetime.datetime):
        return ensure_utc(value)
    return datetime.datetime.combine(value, datetime.time(), tzinfo=datetime.UTC)


def to_wall_clock(instant: datetime.datetime, tz_name: str | None) -> datetime.datetime:
    """Express an instant as a naive local wall-clock datetime in tz_name."""
    return ensure_utc(instant).astimezone(resolve_zone(tz_name)).replace(tzinfo=None)


def wall_clock_to_utc(wall_clock: datetime.datetime, tz_name: str | None) -> datetime.datetime:
    """Convert a naive local wall-clock datetime into a UTC instant.

    The offset used is the one valid in tz_name on that date. Ambiguous times
    (DST fall-back) resolve to the first occurrence; nonexistent times (DST
    spring-forward) land after the gap.
    """
    zone = resolve_zone(tz_name)
    local = wall_clock.replace(tzinfo=zone, fold=0)
    return local.astimezone(datetime.UTC)


def combine_local(day: datetime.date, time_of_day: datetime.time, tz_name: str | None) -> datetime.datetime:
    """Combine a local calendar day and time-of-day into a UTC instant."""
    wall_clock = datetime.datetime.combine(day, time_of_day.replace(tzinfo=None))
    return wall_clock_to_utc(wall_clock, tz_name)


def local_date(instant: datetime.datetime, tz_name: str | None) -> datetime.date:
    """Local calendar day of an instant in tz_name."""
    return to_wall_clock(instant, tz_name).date()


def to_local_day(value: datetime.datetime | datetime.date | str, tz_name: str | None) -> datetime.date:
    """Resolve a caller-supplied occurrence date to a local calendar day.

    Plain dates and date-only strings ("2025-11-05") are already calendar days.
    Instants are projected into tz_name.
    """
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10 and "T" not in text:
            return datetime.date.fromisoformat(text)
        value = date_parser.isoparse(text)
    if isinstance(value, datetime.datetime):
        return local_date(value, tz_name)
    return value


def is_same_local_day(
    first: datetime.datetime | datetime.date | str,
    second: datetime.datetime | datetime.date | str,
    tz_name: str | None,
) -> bool:
    """Check whether two values fall on the same calendar day in tz_name."""
    return to_local_day(first, tz_name) == to_local_day(second, tz_name)


def format_local(instant: datetime.datetime, tz_name: str | None, fmt: str = "%Y-%m-%d %H:%M %Z") -> str:
    """Format an instant in tz_name."""
    return ensure_utc(instant).astimezone(resolve_zone(tz_name)).strftime(fmt)


def format_iso_utc(instant: datetime.datetime) -> str:
    """Serialize an instant as YYYY-MM-DDTHH:MM:SS.mmmZ."""
    utc = ensure_utc(instant)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"
