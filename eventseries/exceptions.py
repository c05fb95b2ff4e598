"""Exception hierarchy for the recurrence evaluator and occurrence materializer.

Every error raised by the package derives from EventSeriesError so callers can
catch the whole family at the boundary where they translate errors into their
own transport (HTTP status codes, job results, ...).
"""

from __future__ import annotations

from typing import Any


class EventSeriesError(Exception):
    """Base exception for all eventseries errors."""


class InvalidRuleError(EventSeriesError, ValueError):
    """Recurrence rule is malformed.

    Raised when:
    - frequency is missing or unknown
    - interval is lower than 1
    - an RRULE string cannot be parsed

    Should result in HTTP 400 Bad Request response.
    """


class InvalidTimezoneError(InvalidRuleError):
    """Timezone string is not a valid IANA timezone identifier."""


class NotFoundError(EventSeriesError):
    """Series, template or occurrence is absent.

    Should result in HTTP 404 Not Found response.
    """


class BadRequestError(EventSeriesError):
    """Caller supplied data that cannot be honoured.

    Raised when:
    - the acting user does not exist
    - an occurrence date is not part of the recurrence pattern
    - an update names fields that cannot be propagated
    """


class IntegrityError(EventSeriesError):
    """A materialized event lost or mismatched its series linkage.

    Carries the context needed to diagnose the downstream defect.
    """

    def __init__(
        self,
        message: str,
        *,
        event_slug: str | None = None,
        expected_series_slug: str | None = None,
        actual_series_slug: str | None = None,
    ) -> None:
        super().__init__(message)
        self.event_slug = event_slug
        self.expected_series_slug = expected_series_slug
        self.actual_series_slug = actual_series_slug


class DuplicateOccurrenceError(EventSeriesError):
    """Storage rejected a second event for the same series and local day."""

    def __init__(self, series_slug: str, local_day: Any, existing_slug: str | None = None) -> None:
        super().__init__(
            f"Series {series_slug} already has an occurrence on {local_day}"
            + (f" ({existing_slug})" if existing_slug else "")
        )
        self.series_slug = series_slug
        self.local_day = local_day
        self.existing_slug = existing_slug


class OccurrenceTimeoutError(EventSeriesError):
    """Aggregation exceeded its wall-clock budget."""


class PartialBatchFailure(EventSeriesError):
    """One or more items in a batch materialization failed.

    Not raised by the batch itself; BatchResult.raise_for_failures() raises it
    for callers that want all-or-nothing semantics.
    """

    def __init__(self, message: str, failures: list[Any]) -> None:
        super().__init__(message)
        self.failures = failures
