"""Recurrence rule evaluation with wall-clock (floating time) semantics.

The rule is expanded by dateutil.rrule on *naive* local wall-clock datetimes:
the anchor's local date and time-of-day in the evaluation zone, with no offset
attached. Each retained candidate is then converted to a real UTC instant with
the zone's offset for that candidate's own date. Expanding a tz-aware dtstart
instead would carry the anchor's offset to every candidate and shift the local
time by an hour on the far side of a DST transition.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from typing import Any, Optional

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, FR, MO, MONTHLY, SA, SU, TH, TU, WE, WEEKLY, YEARLY, rrule, weekday

from eventseries.core.timezone_utils import (
    DEFAULT_TIME_ZONE,
    resolve_zone,
    to_local_day,
    to_wall_clock,
    wall_clock_to_utc,
)
from eventseries.exceptions import InvalidRuleError

from .models import WEEKDAY_PATTERN, EvaluationOptions, Frequency, Occurrence, RecurrenceRule

logger = logging.getLogger(__name__)

# Engine default when the rule has neither COUNT nor UNTIL
DEFAULT_MAX_OCCURRENCES = 100
# Ceiling applied to every evaluation regardless of rule bounds
ABSOLUTE_MAX_OCCURRENCES = 1000
# Generation stops this many years past the anchor (or window start)
MAX_HORIZON_YEARS = 50

_FREQUENCY_MAP: dict[Frequency, int] = {
    Frequency.DAILY: DAILY,
    Frequency.WEEKLY: WEEKLY,
    Frequency.MONTHLY: MONTHLY,
    Frequency.YEARLY: YEARLY,
}

_WEEKDAY_MAP: dict[str, weekday] = {
    "MO": MO,
    "TU": TU,
    "WE": WE,
    "TH": TH,
    "FR": FR,
    "SA": SA,
    "SU": SU,
}


def map_weekdays(codes: Iterable[str]) -> list[weekday]:
    """Map weekday codes to dateutil weekdays, dropping invalid codes.

    "2MO" becomes MO(+2), "-1FR" becomes FR(-1). Ordinals are only meaningful
    for MONTHLY and YEARLY rules; dateutil ignores them otherwise.
    """
    mapped: list[weekday] = []
    for code in codes:
        match = WEEKDAY_PATTERN.match(str(code).strip().upper())
        if not match or match.group(2) not in _WEEKDAY_MAP:
            logger.debug("Ignoring invalid weekday code %r", code)
            continue
        ordinal, day = match.groups()
        base = _WEEKDAY_MAP[day]
        if ordinal:
            n = int(ordinal)
            if n == 0 or abs(n) > 53:
                logger.debug("Ignoring weekday code %r with out-of-range ordinal", code)
                continue
            mapped.append(base(n))
        else:
            mapped.append(base)
    return mapped


def validate_rule(rule: RecurrenceRule) -> Frequency:
    """Check rule structure and return its frequency.

    Raises:
        InvalidRuleError: If frequency is unknown or any component is out of range
    """
    try:
        frequency = Frequency(rule.frequency)
    except ValueError as e:
        raise InvalidRuleError(f"Unknown frequency: {rule.frequency!r}") from e

    if rule.interval is None or rule.interval < 1:
        raise InvalidRuleError(f"Interval must be >= 1, got {rule.interval!r}")
    if rule.count is not None and rule.count < 0:
        raise InvalidRuleError(f"Count must be >= 0, got {rule.count!r}")
    if rule.week_start not in _WEEKDAY_MAP:
        raise InvalidRuleError(f"Unknown week start: {rule.week_start!r}")
    for day in rule.by_month_day or ():
        if day == 0 or not -31 <= day <= 31:
            raise InvalidRuleError(f"Month day out of range: {day}")
    for month in rule.by_month or ():
        if not 1 <= month <= 12:
            raise InvalidRuleError(f"Month out of range: {month}")
    for position in rule.by_set_position or ():
        if position == 0 or not -366 <= position <= 366:
            raise InvalidRuleError(f"Set position out of range: {position}")

    return frequency


class RecurrenceEvaluator:
    """Pure, stateless recurrence expander. Safe to share between callers."""

    def __init__(
        self,
        default_max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
        horizon_years: int = MAX_HORIZON_YEARS,
    ):
        self.default_max_occurrences = default_max_occurrences
        self.horizon_years = horizon_years

    def _effective_cap(self, rule: RecurrenceRule, options: EvaluationOptions) -> int:
        """Maximum number of occurrences returned for this evaluation."""
        if rule.count is None and rule.until is None:
            cap = self.default_max_occurrences
        elif rule.count is not None:
            cap = rule.count
        else:
            cap = ABSOLUTE_MAX_OCCURRENCES

        if options.max_occurrences is not None:
            cap = min(cap, options.max_occurrences)
        return min(cap, ABSOLUTE_MAX_OCCURRENCES)

    def _excluded_days(self, options: EvaluationOptions, tz_name: str) -> set[datetime.date]:
        if options.include_excluded or not options.excluded_dates:
            return set()

        days: set[datetime.date] = set()
        for value in options.excluded_dates:
            try:
                days.add(to_local_day(value, tz_name))
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning("Ignoring unparseable excluded date %r: %s", value, e)
        return days

    def _build_rrule(
        self,
        frequency: Frequency,
        rule: RecurrenceRule,
        anchor_wall: datetime.datetime,
        until_wall: datetime.datetime,
        byweekday: Optional[list[weekday]],
    ) -> rrule:
        try:
            return rrule(
                _FREQUENCY_MAP[frequency],
                dtstart=anchor_wall,
                interval=rule.interval,
                wkst=_WEEKDAY_MAP[rule.week_start],
                byweekday=byweekday,
                bymonthday=rule.by_month_day,
                bymonth=rule.by_month,
                bysetpos=rule.by_set_position,
                until=until_wall,
                cache=False,
            )
        except ValueError as e:
            raise InvalidRuleError(f"Invalid recurrence rule: {e}") from e

    def generate(
        self,
        anchor_start: datetime.datetime,
        rule: RecurrenceRule,
        options: Optional[EvaluationOptions] = None,
    ) -> list[Occurrence]:
        """Expand a rule into ordered, deduplicated occurrences.

        Args:
            anchor_start: First occurrence instant; its local time-of-day in
                options.time_zone is kept for every occurrence
            rule: Recurrence rule
            options: Evaluation options (zone, caps, window, exclusions)

        Returns:
            Occurrences in ascending order

        Raises:
            InvalidRuleError: If the rule is malformed
            InvalidTimezoneError: If options.time_zone is unknown
        """
        options = options or EvaluationOptions()
        frequency = validate_rule(rule)
        tz_name = options.time_zone or DEFAULT_TIME_ZONE
        zone = resolve_zone(tz_name)

        byweekday: Optional[list[weekday]] = None
        if rule.by_weekday:
            byweekday = map_weekdays(rule.by_weekday)
            if not byweekday:
                logger.debug("No valid weekday codes in %r; rule yields no occurrences", rule.by_weekday)
                return []

        cap = self._effective_cap(rule, options)
        if cap <= 0:
            return []

        anchor_wall = to_wall_clock(anchor_start, tz_name).replace(microsecond=0)
        local_time_of_day = anchor_wall.time()

        horizon_base = anchor_wall
        if options.window_start is not None:
            horizon_base = max(horizon_base, to_wall_clock(options.window_start, tz_name))
        until_wall = horizon_base + relativedelta(years=self.horizon_years)
        if rule.until is not None:
            until_wall = min(until_wall, to_wall_clock(rule.until, tz_name))

        excluded_days = self._excluded_days(options, tz_name)
        candidates = self._build_rrule(frequency, rule, anchor_wall, until_wall, byweekday)

        occurrences: list[Occurrence] = []
        seen: set[datetime.datetime] = set()
        produced = 0
        for candidate in candidates:
            produced += 1
            if rule.count is not None and produced > rule.count:
                break

            # Re-attach the anchor's time-of-day so filters can never drift it
            wall_clock = datetime.datetime.combine(candidate.date(), local_time_of_day)
            instant = wall_clock_to_utc(wall_clock, tz_name)

            if options.window_end is not None and instant > options.window_end:
                break
            if options.window_start is not None and instant < options.window_start:
                continue
            if wall_clock.date() in excluded_days:
                logger.debug("Skipping excluded occurrence on %s", wall_clock.date())
                continue
            if instant in seen:
                continue

            seen.add(instant)
            local = instant.astimezone(zone)
            occurrences.append(
                Occurrence(
                    instant_utc=instant,
                    local_date=local.date(),
                    local_time=local.time().replace(tzinfo=None),
                    time_zone=tz_name,
                )
            )
            if len(occurrences) >= cap:
                break

        logger.debug(
            "Generated %d occurrences for %s rule in %s (cap=%d)",
            len(occurrences),
            frequency.value,
            tz_name,
            cap,
        )
        return occurrences

    def is_date_in_pattern(
        self,
        date: Any,
        anchor_start: datetime.datetime,
        rule: RecurrenceRule,
        time_zone: str = DEFAULT_TIME_ZONE,
        excluded_dates: Optional[list[Any]] = None,
    ) -> bool:
        """Check whether some occurrence falls on the local calendar day of date."""
        target_day = to_local_day(date, time_zone)
        day_start = wall_clock_to_utc(datetime.datetime.combine(target_day, datetime.time.min), time_zone)
        day_end = wall_clock_to_utc(
            datetime.datetime.combine(target_day + datetime.timedelta(days=1), datetime.time.min),
            time_zone,
        ) - datetime.timedelta(microseconds=1)

        occurrences = self.generate(
            anchor_start,
            rule,
            EvaluationOptions(
                time_zone=time_zone,
                window_start=day_start,
                window_end=day_end,
                excluded_dates=excluded_dates or [],
                max_occurrences=1,
            ),
        )
        return any(occ.local_date == target_day for occ in occurrences)


_default_evaluator = RecurrenceEvaluator()


def generate_occurrences(
    anchor_start: datetime.datetime,
    rule: RecurrenceRule,
    options: Optional[EvaluationOptions] = None,
) -> list[Occurrence]:
    """Expand a rule with the default evaluator. See RecurrenceEvaluator.generate."""
    return _default_evaluator.generate(anchor_start, rule, options)


def is_date_in_pattern(
    date: Any,
    anchor_start: datetime.datetime,
    rule: RecurrenceRule,
    time_zone: str = DEFAULT_TIME_ZONE,
    excluded_dates: Optional[list[Any]] = None,
) -> bool:
    """Check pattern membership with the default evaluator."""
    return _default_evaluator.is_date_in_pattern(date, anchor_start, rule, time_zone, excluded_dates)
