"""
Schedule Materializer

Turns a recurrence pattern and ride template into persisted rides over a
rolling horizon. When recurrence storage is missing the request degrades to
a single standalone ride, so posting a ride never silently fails.
"""

import asyncio
import functools
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple, TypeVar

import pytz

from ride_scheduler.config import (
    DEFAULT_HORIZON_DAYS,
    PERSISTENCE_TIMEOUT_SECONDS,
    RIDE_TIMEZONE,
)
from ride_scheduler.models.recurrence import (
    AfterCount,
    Never,
    PatternInput,
    RecurrencePattern,
    RideTemplate,
)
from ride_scheduler.services import pattern_calculator
from ride_scheduler.services.errors import (
    DuplicateOccurrence,
    SchedulerError,
    StoreUnavailable,
    TransientPersistenceError,
)
from ride_scheduler.services.pattern_store import RidePatternStore, StoredPattern
from ride_scheduler.services.recurrence_validator import RecurrenceValidator
from ride_scheduler.utils.logger import get_logger
from ride_scheduler.utils.metrics import MetricsCollector, metrics_collector, time_operation

logger = get_logger(__name__)

T = TypeVar("T")


def local_today(timezone: str = RIDE_TIMEZONE, now: Optional[datetime] = None) -> date:
    """Current calendar date in the zone rides depart in."""
    now = now or datetime.now(pytz.utc)
    return now.astimezone(pytz.timezone(timezone)).date()


@dataclass(frozen=True)
class ScheduleResult:
    """Outcome of create_recurring_schedule."""
    pattern_id: Optional[str]
    created_count: int
    fallback: bool = False
    failed_count: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class ExtendResult:
    """Outcome of extend_horizon."""
    pattern_id: str
    created_count: int
    failed_count: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class PatternSummary:
    """A stored pattern with its display text and next ride date."""
    stored: StoredPattern
    description: str
    next_occurrence: Optional[date]


class ScheduleMaterializer:
    """Create and extend recurring ride schedules."""

    def __init__(
        self,
        store: RidePatternStore,
        clock: Optional[Callable[[], date]] = None,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        timeout: float = PERSISTENCE_TIMEOUT_SECONDS,
        timezone: str = RIDE_TIMEZONE,
        metrics: MetricsCollector = metrics_collector,
    ):
        """
        Initialize the materializer.

        Args:
            store: Persistence boundary for patterns and rides
            clock: Source of "today", defaults to the current date in `timezone`
            horizon_days: Default materialization window in days
            timeout: Upper bound in seconds for each persistence call
            timezone: Zone the pattern's wall-clock departure time is in
            metrics: Metrics collector
        """
        self.store = store
        self.horizon_days = horizon_days
        self.timeout = timeout
        self.tz = pytz.timezone(timezone)
        self.clock = clock or functools.partial(local_today, timezone)
        self.metrics = metrics

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except asyncio.TimeoutError:
            raise TransientPersistenceError(f"Persistence call timed out after {self.timeout}s")

    def _resolve_horizon(self, horizon_days: Optional[int]) -> int:
        if horizon_days is None:
            horizon_days = self.horizon_days
        return RecurrenceValidator.validate_horizon(horizon_days)

    def departure_for(self, day: date, departure_time: time) -> datetime:
        """Combine an occurrence date with the pattern's wall-clock time."""
        return self.tz.localize(datetime.combine(day, departure_time))

    @staticmethod
    def _window(today: date, horizon_days: int) -> Tuple[date, date]:
        # A horizon of N days covers today and the N - 1 days after it
        return today, today + timedelta(days=horizon_days - 1)

    @staticmethod
    def _pending_dates(
        pattern: RecurrencePattern, existing: Set[date], start: date, end: date
    ) -> List[date]:
        """Occurrence dates in [start, end] not yet materialized, capped by the remaining count."""
        candidates_from = pattern
        if isinstance(pattern.end_condition, AfterCount):
            # Already-materialized dates must not use up the remaining allowance
            candidates_from = replace(pattern, end_condition=Never())

        pending = [
            day for day in pattern_calculator.occurrences_in_range(candidates_from, start, end)
            if day not in existing
        ]
        remaining = pattern.remaining_occurrences
        if remaining is not None:
            pending = pending[:remaining]
        return pending

    async def _materialize(
        self, pattern_id: str, pattern: RecurrencePattern, template: RideTemplate, dates: Iterable[date]
    ) -> Tuple[int, int]:
        """Persist one ride per date; returns (created, failed). Failures are logged, not raised."""
        created = 0
        failed = 0
        for day in dates:
            departure = self.departure_for(day, pattern.departure_time)
            try:
                await self._bounded(self.store.persist_occurrence(pattern_id, template, departure))
                created += 1
            except DuplicateOccurrence:
                logger.info("Ride already materialized, skipping", pattern_id=pattern_id, date=day)
            except TransientPersistenceError as e:
                failed += 1
                self.metrics.materialization_failed()
                logger.error("Failed to materialize ride", pattern_id=pattern_id, date=day, error=e.message)
            except Exception as e:
                failed += 1
                self.metrics.materialization_failed()
                logger.exception("Unexpected error materializing ride", pattern_id=pattern_id, date=day, error=str(e))

        if created:
            self.metrics.rides_materialized(created)
        return created, failed

    async def _record_progress(
        self, pattern_id: str, pattern: RecurrencePattern, created: int, failed: int, window_end: date
    ) -> RecurrencePattern:
        """Advance the occurrence counter and deactivate the pattern once it has ended."""
        updated = replace(pattern, occurrences_created=pattern.occurrences_created + created)

        if updated.remaining_occurrences == 0:
            ended = True
        elif updated.end_date is not None:
            # A date-bound pattern ends once the window covers its end date and nothing needs a retry
            ended = failed == 0 and window_end >= updated.end_date
        else:
            ended = False
        updated = replace(updated, is_active=not ended)

        if created or ended:
            try:
                await self._bounded(
                    self.store.update_pattern_progress(pattern_id, updated.occurrences_created, updated.is_active)
                )
            except SchedulerError as e:
                logger.error("Failed to record pattern progress", pattern_id=pattern_id, error=e.message)

        if ended:
            self.metrics.pattern_deactivated()
            logger.info("Recurring pattern reached its end condition", pattern_id=pattern_id,
                        occurrences_created=updated.occurrences_created)
        return updated

    async def _create_single_ride(
        self, pattern: RecurrencePattern, template: RideTemplate, today: date
    ) -> ScheduleResult:
        """Fallback: post one standalone ride on the first occurrence date."""
        earliest = max(today, pattern.start_date)
        first = pattern_calculator.next_occurrence(pattern, earliest) or earliest
        departure = self.departure_for(first, pattern.departure_time)

        await self._bounded(self.store.persist_occurrence(None, template, departure))

        self.metrics.schedule_fallback()
        self.metrics.rides_materialized(1)
        logger.warning(
            "Recurring storage unavailable; created a single ride instead",
            driver_id=template.driver_id, date=first, fallback=True,
        )
        return ScheduleResult(pattern_id=None, created_count=1, fallback=True, is_active=False)

    @time_operation("create_recurring_schedule_seconds")
    async def create_recurring_schedule(
        self, pattern_input: PatternInput, horizon_days: Optional[int] = None
    ) -> ScheduleResult:
        """
        Validate a recurring ride, persist it and materialize the first horizon.

        Args:
            pattern_input: Raw pattern and ride template fields
            horizon_days: Window to materialize, defaults to the configured horizon

        Returns:
            ScheduleResult with the pattern id (None on fallback) and rides created

        Raises:
            ValidationError: If the input is invalid
            TransientPersistenceError: If neither the pattern nor the fallback ride could be stored
        """
        horizon = self._resolve_horizon(horizon_days)
        today = self.clock()
        pattern, template = RecurrenceValidator.validate_pattern_input(pattern_input, today)

        try:
            pattern_id = await self._bounded(self.store.persist_pattern(pattern, template))
        except StoreUnavailable:
            return await self._create_single_ride(pattern, template, today)

        self.metrics.pattern_created()
        logger.info("Created recurring pattern", pattern_id=pattern_id, driver_id=template.driver_id,
                    pattern_type=pattern.pattern_type.value)

        try:
            start, end = self._window(today, horizon)
            dates = self._pending_dates(pattern, set(), start, end)
            created, failed = await self._materialize(pattern_id, pattern, template, dates)
            updated = await self._record_progress(pattern_id, pattern, created, failed, end)
        except asyncio.CancelledError:
            # The pattern row exists; extend_horizon is the recovery path
            logger.warning("Schedule creation cancelled after pattern was persisted", pattern_id=pattern_id)
            raise

        return ScheduleResult(
            pattern_id=pattern_id,
            created_count=created,
            failed_count=failed,
            is_active=updated.is_active,
        )

    @time_operation("extend_horizon_seconds")
    async def extend_horizon(self, pattern_id: str, horizon_days: Optional[int] = None) -> ExtendResult:
        """
        Materialize any missing rides of a pattern from today to the horizon.

        Safe to call repeatedly: dates that already have a ride are skipped, so
        a repeat call with the same horizon creates nothing.
        """
        horizon = self._resolve_horizon(horizon_days)
        stored = await self._bounded(self.store.get_pattern(pattern_id))
        pattern = stored.pattern

        if not pattern.is_active:
            return ExtendResult(pattern_id=pattern_id, created_count=0, is_active=False)

        existing = await self._bounded(self.store.list_materialized_dates(pattern_id))

        # Rides that exist but were never counted (lost progress update) still count
        counted = max(pattern.occurrences_created, len(existing))
        if isinstance(pattern.end_condition, AfterCount):
            counted = min(counted, pattern.end_condition.max_occurrences)
        pattern = replace(pattern, occurrences_created=counted)

        today = self.clock()
        start, end = self._window(today, horizon)
        dates = self._pending_dates(pattern, existing, start, end)
        created, failed = await self._materialize(pattern_id, pattern, stored.template, dates)
        updated = await self._record_progress(pattern_id, pattern, created, failed, end)

        if created:
            logger.info("Extended recurring pattern horizon", pattern_id=pattern_id, created_count=created)
        return ExtendResult(
            pattern_id=pattern_id,
            created_count=created,
            failed_count=failed,
            is_active=updated.is_active,
        )

    async def cancel_pattern(self, pattern_id: str) -> StoredPattern:
        """Deactivate a pattern. Already-created rides are left untouched."""
        stored = await self._bounded(self.store.get_pattern(pattern_id))
        if not stored.pattern.is_active:
            return stored

        await self._bounded(
            self.store.update_pattern_progress(pattern_id, stored.pattern.occurrences_created, False)
        )
        self.metrics.pattern_deactivated()
        logger.info("Recurring pattern cancelled", pattern_id=pattern_id)
        return replace(stored, pattern=replace(stored.pattern, is_active=False))

    async def extend_all_active(self, horizon_days: Optional[int] = None) -> Dict[str, int]:
        """
        Periodic job: extend every active pattern.

        Returns:
            Mapping of pattern id to rides created; a failing pattern maps to 0
        """
        self._resolve_horizon(horizon_days)
        results: Dict[str, int] = {}
        for pattern_id in await self._bounded(self.store.list_active_pattern_ids()):
            try:
                result = await self.extend_horizon(pattern_id, horizon_days)
                results[pattern_id] = result.created_count
            except SchedulerError as e:
                results[pattern_id] = 0
                logger.error("Failed to extend recurring pattern", pattern_id=pattern_id, error=e.message)
        return results

    def summarize_stored(self, stored: StoredPattern) -> PatternSummary:
        pattern = stored.pattern
        return PatternSummary(
            stored=stored,
            description=pattern_calculator.describe(pattern),
            next_occurrence=pattern_calculator.next_occurrence(pattern, max(self.clock(), pattern.start_date)),
        )

    async def summarize(self, pattern_id: str) -> PatternSummary:
        """Describe a pattern and report its next ride date from today."""
        stored = await self._bounded(self.store.get_pattern(pattern_id))
        return self.summarize_stored(stored)

    async def list_for_driver(self, driver_id: str) -> List[PatternSummary]:
        patterns = await self._bounded(self.store.list_patterns_for_driver(driver_id))
        return [self.summarize_stored(stored) for stored in patterns]
