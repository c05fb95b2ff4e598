"""Data models for recurrence rule evaluation."""

from __future__ import annotations

import re
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from eventseries.core.timezone_utils import (
    DEFAULT_TIME_ZONE,
    ensure_utc,
    format_iso_utc,
    resolve_zone,
)


class Frequency(str, Enum):
    """Supported recurrence frequencies."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


WEEKDAY_CODES: tuple[str, ...] = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")

# Optional signed ordinal followed by a two-letter weekday code: "MO", "2MO", "-1FR"
WEEKDAY_PATTERN = re.compile(r"^([+-]?\d{1,2})?([A-Z]{2})$")


def _as_int_tuple(value: Any) -> Optional[tuple[int, ...]]:
    if value is None:
        return None
    if isinstance(value, (int, str)):
        value = [value]
    return tuple(int(v) for v in value)


class RecurrenceRule(BaseModel):
    """Abstract recurrence rule supplied by the caller.

    The frequency is kept as a normalized string so that an unknown value is
    reported by the evaluator as InvalidRuleError rather than failing model
    construction.
    """

    model_config = ConfigDict(frozen=True)

    frequency: str = Field(..., description="DAILY, WEEKLY, MONTHLY or YEARLY")
    interval: int = Field(default=1, description="Step between periods, >= 1")
    count: Optional[int] = Field(default=None, description="Maximum number of occurrences")
    until: Optional[datetime] = Field(default=None, description="Last allowed instant (UTC)")
    by_weekday: Optional[tuple[str, ...]] = Field(
        default=None, description="Weekday codes, optionally ordinal-prefixed (2MO, -1FR)"
    )
    by_month_day: Optional[tuple[int, ...]] = None
    by_month: Optional[tuple[int, ...]] = None
    by_set_position: Optional[tuple[int, ...]] = None
    week_start: str = "MO"

    @field_validator("frequency", "week_start", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> Any:
        if isinstance(value, Enum):
            value = value.value
        return str(value).strip().upper() if value is not None else value

    @field_validator("by_weekday", mode="before")
    @classmethod
    def _weekday_codes(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            value = value.split(",")
        return tuple(str(code).strip().upper() for code in value)

    @field_validator("by_month_day", "by_month", "by_set_position", mode="before")
    @classmethod
    def _int_tuples(cls, value: Any) -> Any:
        return _as_int_tuple(value)

    @field_validator("until")
    @classmethod
    def _until_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @classmethod
    def from_rrule_string(cls, text: str) -> RecurrenceRule:
        """Parse an RFC 5545 RRULE value ("FREQ=WEEKLY;BYDAY=MO,WE")."""
        from .rrule_text import parse_rrule_string  # noqa: PLC0415

        return parse_rrule_string(text)

    def to_rrule_string(self) -> str:
        """Render the rule as an RFC 5545 RRULE value."""
        from .rrule_text import build_rrule_string  # noqa: PLC0415

        return build_rrule_string(self)


class EvaluationOptions(BaseModel):
    """Per-call tuning for rule evaluation.

    excluded_dates accepts instants, calendar dates or ISO strings; they are
    compared by local calendar day in time_zone.
    """

    time_zone: str = DEFAULT_TIME_ZONE
    max_occurrences: Optional[int] = Field(default=None, ge=0)
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    excluded_dates: list[Any] = Field(default_factory=list)
    include_excluded: bool = False

    @field_validator("window_start", "window_end")
    @classmethod
    def _window_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class Occurrence(BaseModel):
    """A computed occurrence instant plus its local-time label. Never persisted."""

    model_config = ConfigDict(frozen=True)

    instant_utc: datetime
    local_date: date
    local_time: time
    time_zone: str = DEFAULT_TIME_ZONE

    @property
    def local_datetime(self) -> datetime:
        """The occurrence as an aware datetime in its evaluation zone."""
        return self.instant_utc.astimezone(resolve_zone(self.time_zone))

    @property
    def iso_utc(self) -> str:
        """UTC instant as YYYY-MM-DDTHH:MM:SS.mmmZ."""
        return format_iso_utc(self.instant_utc)
