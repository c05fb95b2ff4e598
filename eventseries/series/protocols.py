"""Protocol definitions for the materializer's external collaborators.

Storage, tenant routing and user management live outside this package. The
materializer only depends on these interface contracts, supplied per call via
TenantContext.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from .models import Event, EventSeries


class TimeProvider(Protocol):
    """Protocol for time provider callables."""

    def __call__(self) -> datetime.datetime:
        """Return current UTC time.

        Returns:
            Current UTC datetime
        """
        ...


class SeriesRepository(Protocol):
    """Protocol for event series storage."""

    async def find_by_slug(self, slug: str) -> Optional[EventSeries]:
        """Find a series by slug.

        Args:
            slug: Series slug

        Returns:
            The series, or None if it does not exist
        """
        ...

    async def find_by_user(
        self,
        user_id: int,
        source_type: Optional[str] = None,
        page: int = 1,
        limit: int = 100,
    ) -> tuple[list[EventSeries], int]:
        """List series owned by a user, most recently created first.

        Args:
            user_id: Owning user
            source_type: Only series from this external source when set
            page: 1-based page number
            limit: Page size

        Returns:
            Tuple of (page of series, total matching count)
        """
        ...

    async def update(self, slug: str, fields: dict[str, Any]) -> EventSeries:
        """Apply field updates to a series and return its latest state."""
        ...


class EventService(Protocol):
    """Protocol for event storage.

    Implementations should reject a second event for the same series and local
    day with DuplicateOccurrenceError; the materializer's pre-check alone does
    not hold under concurrent callers.
    """

    async def create(self, fields: dict[str, Any], actor_user_id: int) -> Event:
        """Create an event and return it as stored."""
        ...

    async def update(self, slug: str, fields: dict[str, Any], actor_user_id: int) -> Event:
        """Apply field updates to an event and return its latest state."""
        ...

    async def find_by_slug(self, slug: str) -> Optional[Event]:
        """Find an event by slug, or None."""
        ...

    async def find_by_series_slug(
        self,
        series_slug: str,
        page: int = 1,
        limit: int = 100,
    ) -> tuple[list[Event], int]:
        """List events of a series.

        Returns:
            Tuple of (page of events, total matching count)
        """
        ...


class UserRepository(Protocol):
    """Protocol for user lookup."""

    async def find_by_id(self, user_id: int) -> Optional[Any]:
        """Find a user by id, or None."""
        ...


@dataclass(frozen=True)
class TenantContext:
    """Collaborators for one tenant, passed explicitly into every operation.

    Attributes:
        tenant_id: Tenant identifier, used for logging only
        series: Series repository bound to the tenant's storage
        events: Event service bound to the tenant's storage
        users: Optional user lookup; actor validation is skipped when None
    """

    tenant_id: str
    series: SeriesRepository
    events: EventService
    users: Optional[UserRepository] = None
