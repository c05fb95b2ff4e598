"""Data models for event series and materialized occurrences."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from eventseries.core.timezone_utils import DEFAULT_TIME_ZONE, ensure_utc, format_iso_utc, now_utc
from eventseries.exceptions import PartialBatchFailure
from eventseries.recurrence.models import RecurrenceRule


class EventType(str, Enum):
    """How attendees join an event."""

    IN_PERSON = "in-person"
    ONLINE = "online"
    HYBRID = "hybrid"


class EventStatus(str, Enum):
    """Publication status of an event."""

    DRAFT = "draft"
    PENDING = "pending"
    PUBLISHED = "published"
    CANCELLED = "cancelled"


class EventVisibility(str, Enum):
    """Who can see an event."""

    PUBLIC = "public"
    AUTHENTICATED = "authenticated"
    PRIVATE = "private"


class Event(BaseModel):
    """Persisted event record: a template or a materialized occurrence."""

    # Identity
    slug: str = Field(..., description="Stable external identifier")
    name: str = Field(..., description="Event title")
    description: str = Field(default="", description="Event description")

    # Time information
    start_date: datetime = Field(..., description="Start instant (UTC)")
    end_date: Optional[datetime] = Field(default=None, description="End instant (UTC)")
    time_zone: str = Field(default=DEFAULT_TIME_ZONE, description="IANA time zone")

    # Series linkage
    series_slug: Optional[str] = Field(default=None, description="Back-reference to the owning series")
    user_id: Optional[int] = Field(default=None, description="Creating user")

    # Display and business fields cloned from the template
    type: EventType = Field(default=EventType.IN_PERSON)
    location: Optional[str] = None
    location_online: str = ""
    lat: Optional[float] = None
    lon: Optional[float] = None
    max_attendees: int = 0
    require_approval: bool = False
    approval_question: str = ""
    allow_waitlist: bool = False
    categories: list[int] = Field(default_factory=list)
    visibility: EventVisibility = Field(default=EventVisibility.PUBLIC)
    status: EventStatus = Field(default=EventStatus.PUBLISHED)
    image_id: Optional[int] = None

    # External source tracking (e.g. events imported from a feed)
    source_type: Optional[str] = None
    source_id: Optional[str] = None
    source_data: Optional[dict[str, Any]] = None

    created_at: datetime = Field(default_factory=now_utc)

    model_config = ConfigDict(use_enum_values=True)

    @field_validator("start_date", "end_date", "created_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @property
    def duration(self) -> Optional[timedelta]:
        """end_date - start_date, or None when the event has no end."""
        if self.end_date is None:
            return None
        return self.end_date - self.start_date

    @field_serializer("start_date", "end_date", "created_at", when_used="unless-none")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields as UTC ISO strings with milliseconds."""
        return format_iso_utc(dt)


class EventSeries(BaseModel):
    """Persisted recurring series. Owns the rule, never the occurrence instants."""

    slug: str = Field(..., description="Stable external identifier")
    name: str = Field(..., description="Series title")
    description: str = ""
    time_zone: str = Field(default=DEFAULT_TIME_ZONE, description="IANA time zone of the series")
    recurrence_rule: RecurrenceRule = Field(..., description="Rule generating the occurrences")
    template_event_slug: Optional[str] = Field(
        default=None, description="Event supplying default field values"
    )
    created_at: datetime = Field(default_factory=now_utc)
    user_id: Optional[int] = None
    source_type: Optional[str] = Field(
        default=None, description="External feed type (e.g. 'bluesky'); None for native series"
    )

    # Series-level overrides; when set they win over the template
    location: Optional[str] = None
    location_online: Optional[str] = None
    max_attendees: Optional[int] = None
    require_approval: Optional[bool] = None
    approval_question: Optional[str] = None
    allow_waitlist: Optional[bool] = None

    @field_validator("created_at")
    @classmethod
    def _created_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def effective_time_zone(self) -> str:
        return self.time_zone or DEFAULT_TIME_ZONE

    @property
    def is_external(self) -> bool:
        return bool(self.source_type)


class OccurrenceResult(BaseModel):
    """One entry of the upcoming-occurrences projection."""

    date: datetime = Field(..., description="Occurrence instant (UTC)")
    materialized: bool = False
    event: Optional[Event] = None

    @field_validator("date")
    @classmethod
    def _date_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_serializer("date")
    def serialize_date(self, dt: datetime) -> str:
        return format_iso_utc(dt)


class UpcomingOccurrences(BaseModel):
    """Result of the read-only upcoming-occurrences view.

    error is set and partial is True when the aggregation degraded (timeout or
    collaborator failure); occurrences then holds whatever could be computed.
    """

    occurrences: list[OccurrenceResult] = Field(default_factory=list)
    error: Optional[str] = None
    partial: bool = False


class MaterializationFailure(BaseModel):
    """A batch item that could not be materialized."""

    date: datetime
    error: str


class IntegrityWarning(BaseModel):
    """Series linkage fault detected on a freshly created event."""

    event_slug: str
    expected_series_slug: str
    actual_series_slug: Optional[str] = None

    @property
    def message(self) -> str:
        return (
            f"Event {self.event_slug} has series_slug={self.actual_series_slug!r}, "
            f"expected {self.expected_series_slug!r}"
        )


class MaterializedOccurrence(BaseModel):
    """A created occurrence plus any integrity warnings raised while creating it."""

    event: Event
    warnings: list[IntegrityWarning] = Field(default_factory=list)


class BatchResult(BaseModel):
    """Outcome of a best-effort batch materialization.

    warnings collects the integrity warnings of the successfully created events.
    """

    events: list[Event] = Field(default_factory=list)
    failures: list[MaterializationFailure] = Field(default_factory=list)
    warnings: list[IntegrityWarning] = Field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    def raise_for_failures(self) -> None:
        """Raise PartialBatchFailure when any item failed."""
        if self.failures:
            raise PartialBatchFailure(
                f"{len(self.failures)} of {len(self.failures) + len(self.events)} occurrences failed",
                self.failures,
            )
