"""Occurrence materialization for recurring event series.

The materializer turns evaluator candidates into persisted events: find-or-create
by local day, template cloning, bounded look-ahead and propagation of template
edits. All collaborators arrive per call through TenantContext; the instance
itself only holds configuration and is safe to share.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from dateutil.relativedelta import relativedelta

from eventseries.core.async_utils import run_in_executor, run_with_timeout
from eventseries.core.request_context import bind_request_id
from eventseries.core.timezone_utils import (
    TimeProvider,
    combine_local,
    local_date,
    parse_instant,
    to_local_day,
    to_wall_clock,
)
from eventseries.exceptions import (
    BadRequestError,
    DuplicateOccurrenceError,
    IntegrityError,
    InvalidRuleError,
    NotFoundError,
    OccurrenceTimeoutError,
)
from eventseries.recurrence.evaluator import DEFAULT_MAX_OCCURRENCES, RecurrenceEvaluator
from eventseries.recurrence.models import EvaluationOptions

from .models import (
    BatchResult,
    Event,
    EventSeries,
    IntegrityWarning,
    MaterializationFailure,
    MaterializedOccurrence,
    OccurrenceResult,
    UpcomingOccurrences,
)
from .protocols import TenantContext
from .protocols import TimeProvider as TimeProviderProtocol
from .templates import (
    apply_series_overrides,
    default_template_fields,
    normalize_field_updates,
    occurrence_fields,
    propagation_fields,
)

logger = logging.getLogger(__name__)

# Page size used when walking all events of a series
_EVENT_PAGE_SIZE = 100


@dataclass
class MaterializationConfig:
    """Configuration for occurrence materialization.

    Consolidates look-ahead, timeout and buffering settings with explicit defaults.
    """

    # Read-only upcoming view
    max_upcoming: int = 50
    upcoming_timeout_seconds: float = 10.0
    past_lookback_months: int = 3

    # Batch look-ahead
    external_feed_count: int = 2
    default_lookahead_count: int = 2

    # Login-triggered buffering of externally sourced series
    external_source_type: str = "bluesky"
    buffer_series_limit: int = 2
    buffer_pause_seconds: float = 0.1

    # Evaluator cap for rules without COUNT/UNTIL
    max_occurrences: int = DEFAULT_MAX_OCCURRENCES

    @classmethod
    def from_settings(cls, settings: Any) -> MaterializationConfig:
        """Extract materialization configuration from a settings object.

        Args:
            settings: Configuration object (e.g. EngineConfig) with materialization settings

        Returns:
            MaterializationConfig with values from settings or defaults
        """
        defaults = cls()
        return cls(
            max_upcoming=getattr(settings, "max_upcoming", defaults.max_upcoming),
            upcoming_timeout_seconds=getattr(
                settings, "upcoming_timeout_seconds", defaults.upcoming_timeout_seconds
            ),
            past_lookback_months=getattr(settings, "past_lookback_months", defaults.past_lookback_months),
            external_feed_count=getattr(settings, "external_feed_count", defaults.external_feed_count),
            default_lookahead_count=getattr(
                settings, "default_lookahead_count", defaults.default_lookahead_count
            ),
            external_source_type=getattr(settings, "external_source_type", defaults.external_source_type),
            buffer_series_limit=getattr(settings, "buffer_series_limit", defaults.buffer_series_limit),
            buffer_pause_seconds=getattr(settings, "buffer_pause_seconds", defaults.buffer_pause_seconds),
            max_occurrences=getattr(settings, "max_occurrences", defaults.max_occurrences),
        )


@dataclass
class _UpcomingState:
    """Work done so far by an upcoming-occurrences aggregation."""

    series: Optional[EventSeries] = None
    existing: list[Event] = field(default_factory=list)
    window_start: Optional[datetime.datetime] = None


class OccurrenceMaterializer:
    """Find-or-create, look-ahead and propagation for recurring series."""

    def __init__(
        self,
        config: Optional[MaterializationConfig] = None,
        time_provider: Optional[TimeProviderProtocol] = None,
        evaluator: Optional[RecurrenceEvaluator] = None,
    ):
        self.config = config or MaterializationConfig()
        self.time_provider = time_provider or TimeProvider()
        self.evaluator = evaluator or RecurrenceEvaluator(default_max_occurrences=self.config.max_occurrences)

    # ------------------------------------------------------------------
    # Collaborator helpers
    # ------------------------------------------------------------------

    async def _get_series(self, ctx: TenantContext, series_slug: str) -> EventSeries:
        series = await ctx.series.find_by_slug(series_slug)
        if series is None:
            raise NotFoundError(f"Series {series_slug} not found")
        return series

    async def _series_events(self, ctx: TenantContext, series_slug: str) -> list[Event]:
        """All events of a series, ascending by start."""
        events: list[Event] = []
        page = 1
        while True:
            batch, total = await ctx.events.find_by_series_slug(series_slug, page=page, limit=_EVENT_PAGE_SIZE)
            events.extend(batch)
            if not batch or len(events) >= total:
                break
            page += 1
        events.sort(key=lambda e: e.start_date)
        return events

    async def _validate_actor(self, ctx: TenantContext, actor_user_id: int) -> None:
        if ctx.users is None:
            return
        user = await ctx.users.find_by_id(actor_user_id)
        if user is None:
            raise BadRequestError(f"User with ID {actor_user_id} not found")

    async def _find_template(
        self,
        ctx: TenantContext,
        series: EventSeries,
        events: list[Event],
    ) -> Optional[Event]:
        """Template by slug, else the most recently started event of the series."""
        if series.template_event_slug:
            template = await ctx.events.find_by_slug(series.template_event_slug)
            if template is not None:
                return template
            logger.debug("Template event %s of series %s not found", series.template_event_slug, series.slug)

        if events:
            latest = max(events, key=lambda e: e.start_date)
            logger.info("Using most recent event %s as template for series %s", latest.slug, series.slug)
            return latest
        return None

    def _pattern_anchor(
        self,
        series: EventSeries,
        template: Optional[Event],
        events: list[Event],
    ) -> datetime.datetime:
        """First known occurrence day at the template's local time-of-day.

        Falls back to the series creation instant when there is no template.
        """
        if template is None:
            return series.created_at
        tz_name = series.effective_time_zone
        time_of_day = to_wall_clock(template.start_date, tz_name).time()
        days = [local_date(e.start_date, tz_name) for e in events]
        days.append(local_date(template.start_date, tz_name))
        return combine_local(min(days), time_of_day, tz_name)

    def _ensure_in_pattern(
        self,
        series: EventSeries,
        occurrence_day: datetime.date,
        anchor: datetime.datetime,
    ) -> None:
        if not self.evaluator.is_date_in_pattern(
            occurrence_day, anchor, series.recurrence_rule, series.effective_time_zone
        ):
            raise BadRequestError(
                f"Invalid occurrence date: {occurrence_day} is not part of the recurrence pattern "
                f"of series {series.slug}"
            )

    def _check_linkage(self, ctx: TenantContext, event: Event, series_slug: str) -> list[IntegrityWarning]:
        """Report (never patch) a created event whose series back-reference is wrong."""
        if event.series_slug == series_slug:
            return []
        warning = IntegrityWarning(
            event_slug=event.slug,
            expected_series_slug=series_slug,
            actual_series_slug=event.series_slug,
        )
        logger.error(
            "Integrity fault in tenant %s: event %s has series_slug=%r, expected %r",
            ctx.tenant_id,
            event.slug,
            event.series_slug,
            series_slug,
        )
        return [warning]

    def _today(self, tz_name: str) -> datetime.date:
        return local_date(self.time_provider(), tz_name)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def find_occurrence(
        self,
        ctx: TenantContext,
        series_slug: str,
        occurrence_date: Any,
    ) -> Optional[Event]:
        """Find the persisted event of a series on the local day of occurrence_date.

        Returns:
            The event, or None when that day is not materialized

        Raises:
            NotFoundError: If the series does not exist
        """
        with bind_request_id():
            series = await self._get_series(ctx, series_slug)
            tz_name = series.effective_time_zone
            target_day = to_local_day(occurrence_date, tz_name)
            events = await self._series_events(ctx, series_slug)
            for event in events:
                if local_date(event.start_date, tz_name) == target_day:
                    return event
            logger.debug("No occurrence of series %s on %s", series_slug, target_day)
            return None

    async def find_events_for_series(
        self,
        ctx: TenantContext,
        series_slug: str,
        include_past: bool = False,
        only_past: bool = False,
    ) -> list[Event]:
        """Events of a series sorted by start.

        Only future events by default; include_past returns all of them and
        only_past returns those that started before now.
        """
        with bind_request_id():
            events = await self._series_events(ctx, series_slug)
            now = self.time_provider()
            if only_past:
                events = [e for e in events if e.start_date < now]
            elif not include_past:
                events = [e for e in events if e.start_date >= now]
            return events

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def materialize_occurrence(
        self,
        ctx: TenantContext,
        series_slug: str,
        occurrence_date: Any,
        actor_user_id: int,
    ) -> MaterializedOccurrence:
        """Create the event for one occurrence day, unconditionally.

        Args:
            ctx: Tenant collaborators
            series_slug: Series slug
            occurrence_date: Instant, date or ISO string; resolved to a local
                day in the series time zone
            actor_user_id: Acting user

        Returns:
            The created event plus any integrity warnings

        Raises:
            NotFoundError: If the series does not exist
            BadRequestError: If the actor is unknown or the date is not in the pattern
            DuplicateOccurrenceError: If storage already holds an event for that day
        """
        with bind_request_id():
            series = await self._get_series(ctx, series_slug)
            tz_name = series.effective_time_zone
            await self._validate_actor(ctx, actor_user_id)

            occurrence_day = to_local_day(occurrence_date, tz_name)
            logger.debug(
                "Materializing occurrence of series %s on %s (tenant=%s)",
                series_slug,
                occurrence_day,
                ctx.tenant_id,
            )

            events = await self._series_events(ctx, series_slug)
            template = await self._find_template(ctx, series, events)
            anchor = self._pattern_anchor(series, template, events)
            self._ensure_in_pattern(series, occurrence_day, anchor)

            if template is None:
                # The synthesized template is itself the occurrence for this day
                created = await self._create_default_template(ctx, series, occurrence_day, anchor, actor_user_id)
                return MaterializedOccurrence(
                    event=created,
                    warnings=self._check_linkage(ctx, created, series.slug),
                )

            template = apply_series_overrides(template, series)
            fields = occurrence_fields(series, template, occurrence_day)
            if template.source_type:
                logger.info(
                    "Materializing %s occurrence from template %s (source_id=%s)",
                    template.source_type,
                    template.slug,
                    template.source_id,
                )

            created = await ctx.events.create(fields, actor_user_id)
            logger.debug(
                "Created occurrence %s of series %s starting %s",
                created.slug,
                series.slug,
                created.start_date,
            )
            return MaterializedOccurrence(
                event=created,
                warnings=self._check_linkage(ctx, created, series.slug),
            )

    async def _create_default_template(
        self,
        ctx: TenantContext,
        series: EventSeries,
        occurrence_day: datetime.date,
        anchor: datetime.datetime,
        actor_user_id: int,
    ) -> Event:
        """Persist a template built from the series fields and point the series at it."""
        tz_name = series.effective_time_zone
        start = combine_local(occurrence_day, to_wall_clock(anchor, tz_name).time(), tz_name)
        logger.warning(
            "No template or events found for series %s. Creating a new template event.",
            series.slug,
        )
        template = await ctx.events.create(default_template_fields(series, start), actor_user_id)
        await ctx.series.update(series.slug, {"template_event_slug": template.slug})
        return template

    async def get_or_create_occurrence(
        self,
        ctx: TenantContext,
        series_slug: str,
        occurrence_date: Any,
        actor_user_id: int,
    ) -> Event:
        """Return the event for an occurrence day, creating it when missing.

        Idempotent: when a concurrent caller wins the race the storage layer
        rejects the duplicate and the winner's event is returned. Integrity
        warnings of a fresh creation are only logged here; callers that need
        them use materialize_occurrence.
        """
        with bind_request_id():
            existing = await self.find_occurrence(ctx, series_slug, occurrence_date)
            if existing is not None:
                return existing

            try:
                result = await self.materialize_occurrence(ctx, series_slug, occurrence_date, actor_user_id)
            except DuplicateOccurrenceError as e:
                logger.info("Occurrence of %s on %s created concurrently; re-reading", series_slug, e.local_day)
                existing = await self.find_occurrence(ctx, series_slug, occurrence_date)
                if existing is None and e.existing_slug:
                    existing = await ctx.events.find_by_slug(e.existing_slug)
                if existing is None:
                    raise
                return existing

            return result.event

    # ------------------------------------------------------------------
    # Upcoming view (read-only)
    # ------------------------------------------------------------------

    async def get_upcoming_occurrences(
        self,
        ctx: TenantContext,
        series_slug: str,
        count: int = 10,
        include_past: bool = False,
    ) -> UpcomingOccurrences:
        """Merge template, existing events and computed candidates. Never creates events.

        The whole aggregation, series lookup included, is raced against
        upcoming_timeout_seconds; on timeout or collaborator failure the result
        carries error and partial=True instead of raising.

        Raises:
            NotFoundError: If the series does not exist
            InvalidRuleError: If the series rule is malformed
        """
        with bind_request_id():
            state = _UpcomingState()
            try:
                occurrences = await run_with_timeout(
                    self._collect_upcoming(ctx, series_slug, count, include_past, state),
                    self.config.upcoming_timeout_seconds,
                    f"get_upcoming_occurrences({series_slug})",
                )
            except OccurrenceTimeoutError as e:
                return UpcomingOccurrences(
                    occurrences=self._partial_upcoming(state, count),
                    error=str(e),
                    partial=True,
                )
            except (InvalidRuleError, NotFoundError):
                raise
            except Exception as e:
                logger.exception("Upcoming occurrences for series %s failed", series_slug)
                return UpcomingOccurrences(
                    occurrences=self._partial_upcoming(state, count),
                    error=f"Failed to generate occurrences: {e}",
                    partial=True,
                )

            return UpcomingOccurrences(occurrences=occurrences)

    def _effective_count(self, series: EventSeries, count: int) -> int:
        effective = min(count, self.config.max_upcoming)
        rule_count = series.recurrence_rule.count
        if rule_count is not None and rule_count < effective:
            effective = rule_count
        return max(effective, 0)

    def _window_start(self, tz_name: str, include_past: bool) -> datetime.datetime:
        start_day = self._today(tz_name)
        if include_past:
            start_day = start_day - relativedelta(months=self.config.past_lookback_months)
        return combine_local(start_day, datetime.time.min, tz_name)

    async def _collect_upcoming(
        self,
        ctx: TenantContext,
        series_slug: str,
        count: int,
        include_past: bool,
        state: _UpcomingState,
    ) -> list[OccurrenceResult]:
        series = await self._get_series(ctx, series_slug)
        state.series = series
        tz_name = series.effective_time_zone
        effective_count = self._effective_count(series, count)
        if effective_count == 0:
            return []

        state.window_start = self._window_start(tz_name, include_past)
        events = await self._series_events(ctx, series.slug)
        state.existing = events
        template = await self._find_template(ctx, series, events)
        anchor = self._pattern_anchor(series, template, events)

        # Expansion is CPU bound; off the loop so the timeout race can still fire
        candidates = await run_in_executor(
            self.evaluator.generate,
            anchor,
            series.recurrence_rule,
            EvaluationOptions(
                time_zone=tz_name,
                window_start=state.window_start,
                max_occurrences=effective_count,
            ),
        )

        events_by_day: dict[datetime.date, Event] = {}
        for event in events:
            events_by_day.setdefault(local_date(event.start_date, tz_name), event)

        results: list[OccurrenceResult] = []
        seen_days: set[datetime.date] = set()
        seen_slugs: set[str] = set()

        def add(result: OccurrenceResult) -> None:
            day = local_date(result.date, tz_name)
            if day in seen_days or (result.event is not None and result.event.slug in seen_slugs):
                return
            seen_days.add(day)
            if result.event is not None:
                seen_slugs.add(result.event.slug)
            results.append(result)

        for occurrence in candidates:
            existing = events_by_day.get(occurrence.local_date)
            if existing is not None:
                add(OccurrenceResult(date=existing.start_date, materialized=True, event=existing))
            else:
                add(OccurrenceResult(date=occurrence.instant_utc, materialized=False))

        for event in events:
            if event.start_date >= state.window_start:
                add(OccurrenceResult(date=event.start_date, materialized=True, event=event))

        if template is not None and len(results) < effective_count:
            add(OccurrenceResult(date=template.start_date, materialized=True, event=template))

        results.sort(key=lambda r: r.date)
        logger.debug(
            "Upcoming occurrences for series %s: %d candidates, %d existing, returning %d",
            series.slug,
            len(candidates),
            len(events),
            min(len(results), effective_count),
        )
        return results[:effective_count]

    def _partial_upcoming(self, state: _UpcomingState, count: int) -> list[OccurrenceResult]:
        """Best-effort result from the events loaded before the aggregation stopped.

        Empty when the series itself never loaded.
        """
        series = state.series
        if series is None:
            return []
        events = state.existing
        if state.window_start is not None:
            events = [e for e in events if e.start_date >= state.window_start]
        return [
            OccurrenceResult(date=e.start_date, materialized=True, event=e)
            for e in events[: self._effective_count(series, count)]
        ]

    # ------------------------------------------------------------------
    # Batch look-ahead
    # ------------------------------------------------------------------

    async def materialize_next_n_occurrences(
        self,
        ctx: TenantContext,
        series_slug: str,
        actor_user_id: int,
        count: Optional[int] = None,
        external_source: Optional[bool] = None,
    ) -> BatchResult:
        """Materialize the next unmaterialized occurrences, one at a time.

        Without an explicit count, externally sourced series get
        external_feed_count and others default_lookahead_count; a larger rule
        COUNT overrides that default. Failures are recorded per date and never
        abort the batch.
        """
        with bind_request_id():
            series = await self._get_series(ctx, series_slug)
            external = series.is_external if external_source is None else external_source

            if count is None:
                count = self.config.external_feed_count if external else self.config.default_lookahead_count
                rule_count = series.recurrence_rule.count
                if rule_count is not None and rule_count > count:
                    count = rule_count
            count = min(count, self.config.max_upcoming)

            logger.debug(
                "Materializing next %d occurrences of series %s (external=%s)",
                count,
                series_slug,
                external,
            )
            result = BatchResult()
            if count <= 0:
                return result

            upcoming = await self.get_upcoming_occurrences(ctx, series_slug, count=count * 2)
            if upcoming.error:
                logger.warning("Look-ahead for series %s uses degraded view: %s", series_slug, upcoming.error)

            pending = sorted(
                (o for o in upcoming.occurrences if not o.materialized),
                key=lambda o: o.date,
            )[:count]

            for occurrence in pending:
                try:
                    created = await self.materialize_occurrence(ctx, series_slug, occurrence.date, actor_user_id)
                except DuplicateOccurrenceError:
                    logger.info(
                        "Occurrence of series %s on %s already materialized; skipping",
                        series_slug,
                        occurrence.date,
                    )
                    continue
                except Exception as e:
                    logger.error(
                        "Error materializing occurrence of series %s for date %s: %s",
                        series_slug,
                        occurrence.date,
                        e,
                    )
                    result.failures.append(MaterializationFailure(date=occurrence.date, error=str(e)))
                    continue
                result.events.append(created.event)
                result.warnings.extend(created.warnings)

            logger.debug(
                "Materialized %d occurrences of series %s (%d failed)",
                len(result.events),
                series_slug,
                len(result.failures),
            )
            return result

    async def materialize_next_occurrence(
        self,
        ctx: TenantContext,
        series_slug: str,
        actor_user_id: int,
    ) -> Optional[Event]:
        """Materialize the first upcoming occurrence that is not yet persisted.

        A series without any event is backfilled with the default look-ahead.
        Integrity warnings are only logged on this path.
        """
        with bind_request_id():
            _, total = await ctx.events.find_by_series_slug(series_slug, page=1, limit=1)
            if total == 0:
                logger.warning("Series %s has no materialized events. Auto-materializing...", series_slug)
                batch = await self.materialize_next_n_occurrences(
                    ctx, series_slug, actor_user_id, external_source=False
                )
                return batch.events[0] if batch.events else None

            upcoming = await self.get_upcoming_occurrences(ctx, series_slug, count=5)
            next_to_create = next((o for o in upcoming.occurrences if not o.materialized), None)
            if next_to_create is None:
                return None

            created = await self.materialize_occurrence(ctx, series_slug, next_to_create.date, actor_user_id)
            return created.event

    async def buffer_external_materialization(self, ctx: TenantContext, user_id: int) -> int:
        """Top up look-ahead for a user's externally sourced series (run at login).

        Processes at most buffer_series_limit series, pausing between them.
        Failures are logged and skipped; this never raises.

        Returns:
            Number of events created
        """
        with bind_request_id():
            try:
                user_series, _ = await ctx.series.find_by_user(
                    user_id,
                    source_type=self.config.external_source_type,
                    page=1,
                    limit=100,
                )
            except Exception:
                logger.exception("Failed to list %s series for user %s", self.config.external_source_type, user_id)
                return 0

            if not user_series:
                logger.debug("No %s series found for user %s", self.config.external_source_type, user_id)
                return 0

            total = 0
            for series in user_series[: self.config.buffer_series_limit]:
                try:
                    batch = await self.materialize_next_n_occurrences(
                        ctx, series.slug, user_id, external_source=True
                    )
                    total += len(batch.events)
                except Exception as e:
                    logger.error("Error materializing series %s: %s", series.slug, e)
                await asyncio.sleep(self.config.buffer_pause_seconds)

            logger.debug("Completed buffered materialization for user %s: %d created", user_id, total)
            return total

    # ------------------------------------------------------------------
    # Propagation and effective view
    # ------------------------------------------------------------------

    def _from_instant(self, from_date: Any, tz_name: str) -> datetime.datetime:
        """Start of the local day for date-only input, else the instant itself."""
        if isinstance(from_date, datetime.datetime):
            return parse_instant(from_date)
        if isinstance(from_date, str) and "T" in from_date:
            return parse_instant(from_date)
        return combine_local(to_local_day(from_date, tz_name), datetime.time.min, tz_name)

    async def update_future_occurrences(
        self,
        ctx: TenantContext,
        series_slug: str,
        from_date: Any,
        field_updates: dict[str, Any],
        actor_user_id: int,
    ) -> int:
        """Update the template, then push its current values to future occurrences.

        Every materialized event starting on or after from_date (inclusive) is
        updated from the re-read template, not from the raw field_updates.

        Returns:
            Number of occurrences updated (the template itself is not counted)

        Raises:
            NotFoundError: If the series or its template does not exist
            BadRequestError: If field_updates names unknown fields
            IntegrityError: If an updated event cannot be re-read
        """
        with bind_request_id():
            series = await self._get_series(ctx, series_slug)
            template = (
                await ctx.events.find_by_slug(series.template_event_slug) if series.template_event_slug else None
            )
            if template is None:
                raise NotFoundError(f"No template event found for series {series_slug}")

            updates = normalize_field_updates(field_updates)
            if not updates:
                logger.debug("No properties to update in template or occurrences of %s", series_slug)
                return 0

            from_instant = self._from_instant(from_date, series.effective_time_zone)
            events = await self._series_events(ctx, series_slug)
            future = [e for e in events if e.start_date >= from_instant and e.slug != template.slug]

            await ctx.events.update(template.slug, {**updates, "series_slug": series_slug}, actor_user_id)
            refreshed = await ctx.events.find_by_slug(template.slug)
            if refreshed is None:
                raise IntegrityError(
                    f"Template {template.slug} vanished after update",
                    event_slug=template.slug,
                    expected_series_slug=series_slug,
                )

            propagated = propagation_fields(refreshed, series_slug)
            updated = 0
            for occurrence in future:
                logger.debug("Updating occurrence %s (%s)", occurrence.slug, occurrence.start_date)
                await ctx.events.update(occurrence.slug, propagated, actor_user_id)
                verified = await ctx.events.find_by_slug(occurrence.slug)
                if verified is None:
                    raise IntegrityError(
                        f"Failed to verify update for occurrence {occurrence.slug}",
                        event_slug=occurrence.slug,
                        expected_series_slug=series_slug,
                    )
                updated += 1

            logger.info(
                "Propagated %s from template %s to %d occurrences of series %s",
                sorted(updates),
                template.slug,
                updated,
                series_slug,
            )
            return updated

    async def get_effective_event_for_date(
        self,
        ctx: TenantContext,
        series_slug: str,
        date: Any,
    ) -> Event:
        """The materialized event for a day, else the template if the day is in the pattern.

        Raises:
            NotFoundError: If the series does not exist
            BadRequestError: If the date is not in the pattern or no template exists
        """
        with bind_request_id():
            existing = await self.find_occurrence(ctx, series_slug, date)
            if existing is not None:
                return existing

            series = await self._get_series(ctx, series_slug)
            events = await self._series_events(ctx, series_slug)
            template = await self._find_template(ctx, series, events)
            anchor = self._pattern_anchor(series, template, events)
            self._ensure_in_pattern(series, to_local_day(date, series.effective_time_zone), anchor)

            if template is None:
                raise BadRequestError(f"No template event found for series {series_slug}")
            return apply_series_overrides(template, series)
