"""Occurrence materialization for recurring event series."""

from .materializer import MaterializationConfig, OccurrenceMaterializer
from .memory_store import InMemoryEventService, InMemorySeriesRepository, InMemoryUserRepository
from .models import (
    BatchResult,
    Event,
    EventSeries,
    EventStatus,
    EventType,
    EventVisibility,
    IntegrityWarning,
    MaterializationFailure,
    MaterializedOccurrence,
    OccurrenceResult,
    UpcomingOccurrences,
)
from .protocols import EventService, SeriesRepository, TenantContext, UserRepository

__all__ = [
    "BatchResult",
    "Event",
    "EventSeries",
    "EventService",
    "EventStatus",
    "EventType",
    "EventVisibility",
    "InMemoryEventService",
    "InMemorySeriesRepository",
    "InMemoryUserRepository",
    "IntegrityWarning",
    "MaterializationConfig",
    "MaterializationFailure",
    "MaterializedOccurrence",
    "OccurrenceMaterializer",
    "OccurrenceResult",
    "SeriesRepository",
    "TenantContext",
    "UpcomingOccurrences",
    "UserRepository",
]
