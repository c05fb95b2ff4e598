"""In-memory collaborator implementations.

Used by the test-suite and local tooling. InMemoryEventService enforces the
one-event-per-series-per-local-day constraint at the storage boundary, the way
a unique index would in a real database.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import uuid
from typing import Any, Optional

from eventseries.core.timezone_utils import local_date
from eventseries.exceptions import DuplicateOccurrenceError, NotFoundError

from .models import Event, EventSeries

logger = logging.getLogger(__name__)


def _paginate(items: list[Any], page: int, limit: int) -> list[Any]:
    page = max(page, 1)
    start = (page - 1) * limit
    return items[start : start + limit]


class InMemorySeriesRepository:
    """Series storage backed by a dict."""

    def __init__(self, series: Optional[list[EventSeries]] = None, latency: float = 0.0):
        self._series: dict[str, EventSeries] = {}
        self.latency = latency
        for item in series or []:
            self.add(item)

    def add(self, series: EventSeries) -> EventSeries:
        self._series[series.slug] = series.model_copy(deep=True)
        return series

    async def _io(self) -> None:
        await asyncio.sleep(self.latency)

    async def find_by_slug(self, slug: str) -> Optional[EventSeries]:
        await self._io()
        series = self._series.get(slug)
        return series.model_copy(deep=True) if series else None

    async def find_by_user(
        self,
        user_id: int,
        source_type: Optional[str] = None,
        page: int = 1,
        limit: int = 100,
    ) -> tuple[list[EventSeries], int]:
        await self._io()
        matches = [
            s
            for s in self._series.values()
            if s.user_id == user_id and (source_type is None or s.source_type == source_type)
        ]
        matches.sort(key=lambda s: s.created_at, reverse=True)
        return [s.model_copy(deep=True) for s in _paginate(matches, page, limit)], len(matches)

    async def update(self, slug: str, fields: dict[str, Any]) -> EventSeries:
        await self._io()
        current = self._series.get(slug)
        if current is None:
            raise NotFoundError(f"Series {slug} not found")
        updated = EventSeries.model_validate({**current.model_dump(), **fields})
        self._series[slug] = updated
        return updated.model_copy(deep=True)


class InMemoryEventService:
    """Event storage backed by a dict, unique per (series_slug, local day)."""

    def __init__(self, latency: float = 0.0):
        self._events: dict[str, Event] = {}
        self.latency = latency
        self.create_calls = 0
        self.update_calls = 0

    async def _io(self) -> None:
        await asyncio.sleep(self.latency)

    def _occupied_day(self, event: Event) -> Optional[tuple[str, datetime.date]]:
        if not event.series_slug:
            return None
        return event.series_slug, local_date(event.start_date, event.time_zone)

    def _find_same_day(self, candidate: Event) -> Optional[Event]:
        key = self._occupied_day(candidate)
        if key is None:
            return None
        for event in self._events.values():
            if event.slug != candidate.slug and self._occupied_day(event) == key:
                return event
        return None

    def add(self, event: Event) -> Event:
        """Insert an event directly, bypassing the uniqueness check (test setup)."""
        self._events[event.slug] = event.model_copy(deep=True)
        return event

    async def create(self, fields: dict[str, Any], actor_user_id: int) -> Event:
        await self._io()
        self.create_calls += 1
        data = dict(fields)
        data.setdefault("slug", f"{data.get('series_slug') or 'event'}-{uuid.uuid4().hex[:8]}")
        data.setdefault("user_id", actor_user_id)
        event = Event.model_validate(data)

        # Check and insert without yielding to the event loop
        existing = self._find_same_day(event)
        if existing is not None:
            key = self._occupied_day(event)
            raise DuplicateOccurrenceError(event.series_slug or "", key[1] if key else None, existing.slug)

        self._events[event.slug] = event
        logger.debug("Created event %s (series=%s, start=%s)", event.slug, event.series_slug, event.start_date)
        return event.model_copy(deep=True)

    async def update(self, slug: str, fields: dict[str, Any], actor_user_id: int) -> Event:
        await self._io()
        self.update_calls += 1
        current = self._events.get(slug)
        if current is None:
            raise NotFoundError(f"Event {slug} not found")
        updated = Event.model_validate({**current.model_dump(), **fields, "slug": slug})
        self._events[slug] = updated
        return updated.model_copy(deep=True)

    async def find_by_slug(self, slug: str) -> Optional[Event]:
        await self._io()
        event = self._events.get(slug)
        return event.model_copy(deep=True) if event else None

    async def find_by_series_slug(
        self,
        series_slug: str,
        page: int = 1,
        limit: int = 100,
    ) -> tuple[list[Event], int]:
        await self._io()
        matches = sorted(
            (e for e in self._events.values() if e.series_slug == series_slug),
            key=lambda e: e.start_date,
        )
        return [e.model_copy(deep=True) for e in _paginate(matches, page, limit)], len(matches)

    def all_events(self) -> list[Event]:
        return sorted(self._events.values(), key=lambda e: e.start_date)


class InMemoryUserRepository:
    """User lookup backed by a dict of id to user record."""

    def __init__(self, users: Optional[dict[int, Any]] = None):
        self._users: dict[int, Any] = dict(users or {})

    def add(self, user_id: int, user: Any = None) -> None:
        self._users[user_id] = user if user is not None else {"id": user_id}

    async def find_by_id(self, user_id: int) -> Optional[Any]:
        return self._users.get(user_id)
