"""Tests for the in-memory series, event and user stores."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from eventseries.exceptions import DuplicateOccurrenceError, NotFoundError
from eventseries.recurrence.models import RecurrenceRule
from eventseries.series.memory_store import (
    InMemoryEventService,
    InMemorySeriesRepository,
    InMemoryUserRepository,
)
from eventseries.series.models import EventSeries

pytestmark = pytest.mark.unit

VANCOUVER = "America/Vancouver"


def _fields(start: datetime, series_slug: str = "evening-run") -> dict:
    return {
        "name": "Evening Run",
        "start_date": start,
        "end_date": start + timedelta(hours=2),
        "time_zone": VANCOUVER,
        "series_slug": series_slug,
    }


class TestInMemoryEventService:
    """Creation, uniqueness and lookups."""

    @pytest.mark.asyncio
    async def test_create_assigns_slug_and_owner(self):
        service = InMemoryEventService()

        event = await service.create(_fields(datetime(2025, 10, 16, 2, 0, tzinfo=UTC)), actor_user_id=7)

        assert event.slug.startswith("evening-run-")
        assert event.user_id == 7
        assert service.create_calls == 1

    @pytest.mark.asyncio
    async def test_same_local_day_is_rejected(self):
        """02:00Z and 06:00Z on Oct 16 are both Oct 15 in Vancouver."""
        service = InMemoryEventService()
        first = await service.create(_fields(datetime(2025, 10, 16, 2, 0, tzinfo=UTC)), 1)

        with pytest.raises(DuplicateOccurrenceError) as exc_info:
            await service.create(_fields(datetime(2025, 10, 16, 6, 0, tzinfo=UTC)), 1)

        assert exc_info.value.existing_slug == first.slug
        assert str(exc_info.value.local_day) == "2025-10-15"

    @pytest.mark.asyncio
    async def test_other_series_may_share_a_day(self):
        service = InMemoryEventService()
        start = datetime(2025, 10, 16, 2, 0, tzinfo=UTC)

        await service.create(_fields(start, "evening-run"), 1)
        await service.create(_fields(start, "morning-swim"), 1)

        assert len(service.all_events()) == 2

    @pytest.mark.asyncio
    async def test_concurrent_creates_leave_one_event(self):
        service = InMemoryEventService(latency=0.01)
        start = datetime(2025, 10, 16, 2, 0, tzinfo=UTC)

        results = await asyncio.gather(
            *(service.create(_fields(start), 1) for _ in range(3)),
            return_exceptions=True,
        )

        assert sum(isinstance(r, DuplicateOccurrenceError) for r in results) == 2
        assert len(service.all_events()) == 1

    @pytest.mark.asyncio
    async def test_update_and_missing_event(self):
        service = InMemoryEventService()
        event = await service.create(_fields(datetime(2025, 10, 16, 2, 0, tzinfo=UTC)), 1)

        updated = await service.update(event.slug, {"location": "Jericho Beach"}, 1)

        assert updated.location == "Jericho Beach"
        assert updated.start_date == event.start_date
        with pytest.raises(NotFoundError):
            await service.update("missing", {"location": "x"}, 1)

    @pytest.mark.asyncio
    async def test_find_by_series_slug_paginates_in_start_order(self):
        service = InMemoryEventService()
        base = datetime(2025, 10, 16, 2, 0, tzinfo=UTC)
        for offset in (2, 0, 1):
            await service.create(_fields(base + timedelta(days=offset)), 1)

        page, total = await service.find_by_series_slug("evening-run", page=2, limit=2)

        assert total == 3
        assert [e.start_date for e in page] == [base + timedelta(days=2)]

    @pytest.mark.asyncio
    async def test_returned_events_are_copies(self):
        service = InMemoryEventService()
        event = await service.create(_fields(datetime(2025, 10, 16, 2, 0, tzinfo=UTC)), 1)

        event.categories.append(99)

        stored = await service.find_by_slug(event.slug)
        assert stored.categories == []


class TestInMemorySeriesRepository:
    def _series(self, slug: str, created_day: int, source_type=None) -> EventSeries:
        return EventSeries(
            slug=slug,
            name=slug,
            recurrence_rule=RecurrenceRule(frequency="WEEKLY"),
            created_at=datetime(2025, 9, created_day, tzinfo=UTC),
            user_id=1,
            source_type=source_type,
        )

    @pytest.mark.asyncio
    async def test_find_by_user_filters_and_sorts_newest_first(self):
        repo = InMemorySeriesRepository(
            [
                self._series("old-feed", 1, "bluesky"),
                self._series("native", 2),
                self._series("new-feed", 3, "bluesky"),
            ]
        )

        found, total = await repo.find_by_user(1, source_type="bluesky")

        assert total == 2
        assert [s.slug for s in found] == ["new-feed", "old-feed"]

    @pytest.mark.asyncio
    async def test_update(self):
        repo = InMemorySeriesRepository([self._series("native", 2)])

        updated = await repo.update("native", {"template_event_slug": "native-template"})

        assert updated.template_event_slug == "native-template"
        assert (await repo.find_by_slug("native")).template_event_slug == "native-template"
        with pytest.raises(NotFoundError):
            await repo.update("missing", {})


@pytest.mark.asyncio
async def test_user_repository():
    users = InMemoryUserRepository({1: {"id": 1}})
    users.add(2)

    assert await users.find_by_id(2) == {"id": 2}
    assert await users.find_by_id(3) is None
