"""Shared fixtures for the eventseries test-suite.

Fixtures are deliberately small: in-memory collaborators, a frozen clock and a
materializer wired to both. Tests build their own series with series_factory.
"""

import logging
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

import pytest

from eventseries.recurrence.models import RecurrenceRule
from eventseries.series.materializer import MaterializationConfig, OccurrenceMaterializer
from eventseries.series.memory_store import (
    InMemoryEventService,
    InMemorySeriesRepository,
    InMemoryUserRepository,
)
from eventseries.series.models import Event, EventSeries
from eventseries.series.protocols import TenantContext

VANCOUVER = "America/Vancouver"
ACTOR_ID = 1

# 2025-10-01 05:00 in Vancouver (PDT)
FIXED_NOW = datetime(2025, 10, 1, 12, 0, tzinfo=UTC)

# Loggers whose level configure_logging() changes
_TOUCHED_LOGGERS = (
    "asyncio",
    "dateutil",
    "eventseries",
    "eventseries.recurrence.evaluator",
    "eventseries.recurrence.rrule_text",
    "eventseries.series.materializer",
    "eventseries.series.memory_store",
)


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast, isolated unit tests")
    config.addinivalue_line("markers", "dst: tests crossing daylight saving transitions")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear EVENTSERIES_* variables that would leak configuration between tests."""
    for var in (
        "EVENTSERIES_TEST_TIME",
        "EVENTSERIES_DEBUG",
        "EVENTSERIES_LOG_LEVEL",
        "EVENTSERIES_DEFAULT_TIMEZONE",
        "EVENTSERIES_MAX_OCCURRENCES",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def restore_root_logging() -> Generator[None, Any, None]:
    """Undo logging configuration done by a test (configure_logging, CLI runs)."""
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    filters = {id(h): list(h.filters) for h in handlers}
    named = {name: logging.getLogger(name).level for name in _TOUCHED_LOGGERS}
    yield
    root.setLevel(level)
    for name, named_level in named.items():
        logging.getLogger(name).setLevel(named_level)
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        handler.filters = filters[id(handler)]


class FrozenClock:
    """Callable time provider whose current time can be moved by tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(FIXED_NOW)


@pytest.fixture
def series_repo() -> InMemorySeriesRepository:
    return InMemorySeriesRepository()


@pytest.fixture
def event_service() -> InMemoryEventService:
    return InMemoryEventService()


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository({ACTOR_ID: {"id": ACTOR_ID, "slug": "organizer"}})


@pytest.fixture
def tenant(
    series_repo: InMemorySeriesRepository,
    event_service: InMemoryEventService,
    user_repo: InMemoryUserRepository,
) -> TenantContext:
    return TenantContext(tenant_id="tenant-a", series=series_repo, events=event_service, users=user_repo)


@pytest.fixture
def materializer_config() -> MaterializationConfig:
    return MaterializationConfig(buffer_pause_seconds=0.0)


@pytest.fixture
def materializer(materializer_config: MaterializationConfig, clock: FrozenClock) -> OccurrenceMaterializer:
    return OccurrenceMaterializer(config=materializer_config, time_provider=clock)


def make_series(
    series_repo: InMemorySeriesRepository,
    event_service: InMemoryEventService,
    slug: str = "evening-run",
    rule: Optional[RecurrenceRule] = None,
    template_start: Optional[datetime] = datetime(2025, 10, 16, 2, 0, tzinfo=UTC),
    duration: timedelta = timedelta(hours=2),
    time_zone: str = VANCOUVER,
    **series_fields: Any,
) -> tuple[EventSeries, Optional[Event]]:
    """Store a series and (unless template_start is None) its template event.

    The default template starts 2025-10-15 19:00 PDT and lasts two hours.
    """
    template = None
    if template_start is not None:
        template = event_service.add(
            Event(
                slug=f"{slug}-template",
                name="Evening Run",
                description="Weekly club run",
                start_date=template_start,
                end_date=template_start + duration,
                time_zone=time_zone,
                series_slug=slug,
                user_id=ACTOR_ID,
                location="Stanley Park",
                max_attendees=40,
                categories=[3, 7],
                visibility="private",
            )
        )
    series = EventSeries(
        slug=slug,
        name="Evening Run",
        description="Weekly club run",
        time_zone=time_zone,
        recurrence_rule=rule or RecurrenceRule(frequency="DAILY"),
        template_event_slug=series_fields.pop("template_event_slug", template.slug if template else None),
        created_at=series_fields.pop("created_at", datetime(2025, 10, 1, 2, 0, tzinfo=UTC)),
        user_id=series_fields.pop("user_id", ACTOR_ID),
        **series_fields,
    )
    series_repo.add(series)
    return series, template


@pytest.fixture
def series_factory(series_repo: InMemorySeriesRepository, event_service: InMemoryEventService) -> Any:
    """make_series bound to the test's in-memory stores."""

    def factory(**kwargs: Any) -> tuple[EventSeries, Optional[Event]]:
        return make_series(series_repo, event_service, **kwargs)

    return factory
