"""Template resolution helpers: field cloning, overrides and update normalization."""

from __future__ import annotations

import datetime
import logging
import re
from typing import Any

from eventseries.core.timezone_utils import combine_local, to_wall_clock
from eventseries.exceptions import BadRequestError

from .models import Event, EventSeries, EventType

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DURATION = datetime.timedelta(hours=1)

# Display/business fields copied from the template onto a new occurrence
CLONED_FIELDS: tuple[str, ...] = (
    "name",
    "description",
    "type",
    "location",
    "location_online",
    "lat",
    "lon",
    "max_attendees",
    "require_approval",
    "approval_question",
    "allow_waitlist",
    "categories",
    "visibility",
    "status",
    "image_id",
    "source_type",
    "source_id",
    "source_data",
)

# Series-level settings that win over the template when set on the series
SERIES_OVERRIDE_FIELDS: tuple[str, ...] = (
    "location",
    "location_online",
    "max_attendees",
    "require_approval",
    "approval_question",
    "allow_waitlist",
)

# Fields pushed from the template to existing future occurrences
PROPAGATED_FIELDS: tuple[str, ...] = (
    "description",
    "location",
    "location_online",
    "max_attendees",
    "require_approval",
    "approval_question",
    "allow_waitlist",
    "categories",
)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def apply_series_overrides(template: Event, series: EventSeries) -> Event:
    """Return a copy of template with the series' non-null override fields applied."""
    overrides = {
        field: getattr(series, field)
        for field in SERIES_OVERRIDE_FIELDS
        if getattr(series, field) is not None
    }
    if not overrides:
        return template
    logger.debug("Applying series overrides %s to template %s", sorted(overrides), template.slug)
    return template.model_copy(update=overrides)


def default_template_fields(series: EventSeries, start: datetime.datetime) -> dict[str, Any]:
    """Fields for a template synthesized from the series itself (1 hour long)."""
    return {
        "name": series.name,
        "description": series.description or "",
        "start_date": start,
        "end_date": start + DEFAULT_TEMPLATE_DURATION,
        "time_zone": series.effective_time_zone,
        "type": EventType.IN_PERSON.value,
        "location": None,
        "location_online": "",
        "max_attendees": 0,
        "require_approval": False,
        "approval_question": "",
        "allow_waitlist": False,
        "categories": [],
        "series_slug": series.slug,
        "source_type": series.source_type,
    }


def occurrence_start(template: Event, occurrence_day: datetime.date, tz_name: str) -> datetime.datetime:
    """Occurrence day combined with the template's local time-of-day in tz_name."""
    template_local = to_wall_clock(template.start_date, tz_name)
    return combine_local(occurrence_day, template_local.time(), tz_name)


def occurrence_fields(
    series: EventSeries,
    template: Event,
    occurrence_day: datetime.date,
) -> dict[str, Any]:
    """Build creation fields for the occurrence of series on occurrence_day.

    The end is start plus the template's duration, carried over verbatim so DST
    shifts between template and occurrence never change the length.
    """
    tz_name = series.effective_time_zone
    start = occurrence_start(template, occurrence_day, tz_name)
    duration = template.duration

    fields: dict[str, Any] = {name: getattr(template, name) for name in CLONED_FIELDS}
    fields["categories"] = list(template.categories)
    fields.update(
        {
            "start_date": start,
            "end_date": start + duration if duration is not None else None,
            "time_zone": tz_name,
            "series_slug": series.slug,
        }
    )
    return fields


def propagation_fields(template: Event, series_slug: str) -> dict[str, Any]:
    """Current template values to push onto future occurrences."""
    fields: dict[str, Any] = {name: getattr(template, name) for name in PROPAGATED_FIELDS}
    fields["categories"] = list(template.categories)
    fields["series_slug"] = series_slug
    return fields


def normalize_field_updates(updates: dict[str, Any]) -> dict[str, Any]:
    """Map caller updates onto propagated field names.

    Direct names win. Legacy template-prefixed keys ("template_location",
    "templateLocation") are accepted with a warning.

    Raises:
        BadRequestError: If a key names no propagated field
    """
    normalized: dict[str, Any] = {}
    legacy: dict[str, Any] = {}
    unknown: list[str] = []

    for key, value in updates.items():
        name = _snake_case(key)
        if name in PROPAGATED_FIELDS:
            normalized[name] = value
            continue
        if name.startswith("template_") and name[len("template_") :] in PROPAGATED_FIELDS:
            legacy[name[len("template_") :]] = (key, value)
            continue
        unknown.append(key)

    if unknown:
        raise BadRequestError(f"Cannot propagate unknown fields: {', '.join(sorted(unknown))}")

    for name, (key, value) in legacy.items():
        if name in normalized:
            continue
        logger.warning("Using deprecated %r property; use %r directly", key, name)
        normalized[name] = value

    return normalized
