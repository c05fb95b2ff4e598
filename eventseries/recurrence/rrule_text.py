"""RFC 5545 RRULE text handling and human readable rule descriptions."""

from __future__ import annotations

import calendar
import logging
from datetime import datetime
from typing import Any, Optional

from dateutil import parser as date_parser

from eventseries.core.timezone_utils import DEFAULT_TIME_ZONE, ensure_utc, to_wall_clock
from eventseries.exceptions import InvalidRuleError

from .models import WEEKDAY_PATTERN, RecurrenceRule

logger = logging.getLogger(__name__)

WEEKDAY_NAMES: dict[str, str] = {
    "MO": "Monday",
    "TU": "Tuesday",
    "WE": "Wednesday",
    "TH": "Thursday",
    "FR": "Friday",
    "SA": "Saturday",
    "SU": "Sunday",
}

# RRULE parts the engine ignores (BYHOUR, BYWEEKNO, BYYEARDAY, ...)
_SUPPORTED_PARTS = frozenset(
    {"FREQ", "INTERVAL", "COUNT", "UNTIL", "BYDAY", "BYMONTHDAY", "BYMONTH", "BYSETPOS", "WKST"}
)


def _int_list(value: str) -> list[int]:
    return [int(item) for item in value.split(",") if item.strip()]


def _parse_until(value: str) -> datetime:
    """Parse an UNTIL value; basic (20250131T235959Z) and date-only forms allowed."""
    return ensure_utc(date_parser.isoparse(value))


def parse_rrule_string(rrule_string: str) -> RecurrenceRule:
    """Parse an RRULE value into a RecurrenceRule.

    Args:
        rrule_string: RRULE string (e.g. "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO"),
            optionally prefixed with "RRULE:"

    Returns:
        Parsed rule

    Raises:
        InvalidRuleError: If the string is empty, lacks FREQ or has malformed values
    """
    if not rrule_string or not rrule_string.strip():
        raise InvalidRuleError("Empty RRULE string")

    text = rrule_string.strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:") :]

    fields: dict[str, Any] = {}
    try:
        for part in text.split(";"):
            if "=" not in part:
                if part.strip():
                    logger.debug("Ignoring malformed RRULE part %r", part)
                continue
            key, value = part.split("=", 1)
            key = key.strip().upper()
            value = value.strip()

            if key not in _SUPPORTED_PARTS:
                logger.debug("Ignoring unsupported RRULE part %s=%s", key, value)
                continue

            if key == "FREQ":
                fields["frequency"] = value.upper()
            elif key == "INTERVAL":
                fields["interval"] = int(value)
            elif key == "COUNT":
                fields["count"] = int(value)
            elif key == "UNTIL":
                fields["until"] = _parse_until(value)
            elif key == "BYDAY":
                fields["by_weekday"] = [day.strip().upper() for day in value.split(",") if day.strip()]
            elif key == "BYMONTHDAY":
                fields["by_month_day"] = _int_list(value)
            elif key == "BYMONTH":
                fields["by_month"] = _int_list(value)
            elif key == "BYSETPOS":
                fields["by_set_position"] = _int_list(value)
            elif key == "WKST":
                fields["week_start"] = value.upper()
    except (ValueError, OverflowError) as e:
        raise InvalidRuleError(f"Invalid RRULE format: {rrule_string}") from e

    if not fields.get("frequency"):
        raise InvalidRuleError("RRULE missing required FREQ parameter")

    return RecurrenceRule(**fields)


def build_rrule_string(rule: RecurrenceRule) -> str:
    """Render a rule as an RRULE value (without the "RRULE:" prefix)."""
    parts = [f"FREQ={rule.frequency}"]
    if rule.interval and rule.interval > 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.by_weekday:
        parts.append("BYDAY=" + ",".join(rule.by_weekday))
    if rule.by_month_day:
        parts.append("BYMONTHDAY=" + ",".join(str(d) for d in rule.by_month_day))
    if rule.by_month:
        parts.append("BYMONTH=" + ",".join(str(m) for m in rule.by_month))
    if rule.by_set_position:
        parts.append("BYSETPOS=" + ",".join(str(p) for p in rule.by_set_position))
    if rule.count is not None:
        parts.append(f"COUNT={rule.count}")
    if rule.until is not None:
        parts.append("UNTIL=" + ensure_utc(rule.until).strftime("%Y%m%dT%H%M%SZ"))
    if rule.week_start and rule.week_start != "MO":
        parts.append(f"WKST={rule.week_start}")
    return ";".join(parts)


def ordinal_suffix(n: int) -> str:
    if 10 <= n % 100 <= 20:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")


def _weekday_label(code: str) -> str:
    match = WEEKDAY_PATTERN.match(code)
    if not match or match.group(2) not in WEEKDAY_NAMES:
        return code
    ordinal, day = match.groups()
    name = WEEKDAY_NAMES[day]
    if not ordinal:
        return name
    n = int(ordinal)
    if n == -1:
        return f"last {name}"
    if n < 0:
        return f"{abs(n)}{ordinal_suffix(abs(n))} to last {name}"
    return f"{n}{ordinal_suffix(n)} {name}"


def _periodic(interval: int, unit: str, single: str) -> str:
    return f"Every {interval} {unit}s" if interval > 1 else single


def describe_rule(rule: Optional[RecurrenceRule], time_zone: str = DEFAULT_TIME_ZONE) -> str:
    """Human readable description, e.g. "Every 2 weeks on Monday, Wednesday, 5 times".

    UNTIL is rendered as a calendar day in time_zone.
    """
    if rule is None or not rule.frequency:
        return "No recurrence"

    interval = rule.interval or 1
    frequency = rule.frequency

    if frequency == "DAILY":
        description = _periodic(interval, "day", "Daily")
    elif frequency == "WEEKLY":
        description = _periodic(interval, "week", "Weekly")
    elif frequency == "MONTHLY":
        description = _periodic(interval, "month", "Monthly")
        if rule.by_month_day:
            days = ", ".join(
                f"{d}{ordinal_suffix(d)}" if d > 0 else f"{abs(d)}{ordinal_suffix(abs(d))} from end"
                for d in rule.by_month_day
            )
            description += f" on the {days} day"
    elif frequency == "YEARLY":
        description = _periodic(interval, "year", "Yearly")
        if rule.by_month:
            months = ", ".join(calendar.month_name[m] for m in rule.by_month if 1 <= m <= 12)
            description += f" in {months}"
    else:
        description = _periodic(interval, frequency.lower(), f"Every {frequency.lower()}")

    if rule.by_weekday and frequency != "DAILY":
        description += " on " + ", ".join(_weekday_label(code) for code in rule.by_weekday)

    if rule.count:
        description += f", {rule.count} times"
    elif rule.until is not None:
        until_local = to_wall_clock(rule.until, time_zone)
        description += f", until {until_local:%b} {until_local.day}, {until_local.year}"

    return description
