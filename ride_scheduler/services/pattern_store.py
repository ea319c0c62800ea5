"""
Pattern Store

Narrow persistence boundary used by the schedule materializer. The abstract
store fixes the contract; SQLModelPatternStore implements it on the
recurring_ride_patterns and rides tables.
"""

from abc import ABC, abstractmethod
import asyncio
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Set
import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from ride_scheduler.models.recurrence import RecurrencePattern, RideTemplate, utc_now
from ride_scheduler.models.recurring_pattern import RecurringRidePattern
from ride_scheduler.models.ride import Ride
from ride_scheduler.services.errors import (
    DuplicateOccurrence,
    PatternNotFound,
    StoreUnavailable,
    TransientPersistenceError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredPattern:
    """A persisted pattern with its identity and ride template."""
    pattern_id: str
    pattern: RecurrencePattern
    template: RideTemplate
    created_at: Optional[datetime] = None


class RidePatternStore(ABC):
    """Persistence operations the scheduler depends on."""

    @abstractmethod
    async def persist_pattern(self, pattern: RecurrencePattern, template: RideTemplate) -> str:
        """
        Persist a new pattern and return its id.

        Raises:
            StoreUnavailable: If recurrence storage does not exist
            TransientPersistenceError: On any other storage failure
        """

    @abstractmethod
    async def persist_occurrence(
        self, pattern_id: Optional[str], template: RideTemplate, departure: datetime
    ) -> str:
        """
        Persist one ride and return its id.

        Raises:
            DuplicateOccurrence: If the pattern already has a ride that day
            TransientPersistenceError: On any other storage failure
        """

    @abstractmethod
    async def list_materialized_dates(self, pattern_id: str) -> Set[date]:
        """Return every departure date already materialized for a pattern."""

    @abstractmethod
    async def get_pattern(self, pattern_id: str) -> StoredPattern:
        """Load a pattern, raising PatternNotFound when absent."""

    @abstractmethod
    async def update_pattern_progress(self, pattern_id: str, occurrences_created: int, is_active: bool) -> None:
        """Record the running occurrence counter and active flag."""

    @abstractmethod
    async def list_active_pattern_ids(self) -> List[str]:
        """Ids of every pattern still generating rides."""

    @abstractmethod
    async def list_patterns_for_driver(self, driver_id: str) -> List[StoredPattern]:
        """All patterns owned by a driver, newest first."""


class SQLModelPatternStore(RidePatternStore):
    """
    RidePatternStore backed by SQLModel tables.

    Session work is blocking, so every operation runs in a worker thread.
    That keeps the event loop free and lets the caller's timeout fire while
    a statement is still in flight.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def _pattern_table_exists(self) -> bool:
        return inspect(self.engine).has_table(RecurringRidePattern.__tablename__)

    @staticmethod
    def _to_stored(row: RecurringRidePattern) -> StoredPattern:
        return StoredPattern(
            pattern_id=row.id,
            pattern=row.to_pattern(),
            template=row.to_template(),
            created_at=row.created_at,
        )

    def _persist_pattern_sync(self, pattern: RecurrencePattern, template: RideTemplate) -> str:
        if not self._pattern_table_exists():
            raise StoreUnavailable(
                "Recurring pattern storage is not available",
                details={"table": RecurringRidePattern.__tablename__},
            )
        row = RecurringRidePattern.from_domain(pattern, template)
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            logger.info(f"Persisted recurring pattern {row.id} for driver {row.driver_id}")
            return row.id

    async def persist_pattern(self, pattern: RecurrencePattern, template: RideTemplate) -> str:
        try:
            return await asyncio.to_thread(self._persist_pattern_sync, pattern, template)
        except SQLAlchemyError as e:
            raise TransientPersistenceError(f"Failed to persist recurring pattern: {str(e)}")

    def _ride_exists(self, pattern_id: str, day: date) -> bool:
        with Session(self.engine) as session:
            statement = select(Ride.id).where(
                Ride.recurring_pattern_id == pattern_id,
                Ride.departure_date == day,
            )
            return session.exec(statement).first() is not None

    def _persist_occurrence_sync(
        self, pattern_id: Optional[str], template: RideTemplate, departure: datetime
    ) -> str:
        day = departure.date()
        ride = Ride(
            driver_id=template.driver_id,
            vehicle_id=template.vehicle_id,
            origin=template.origin,
            destination=template.destination,
            departure_time=departure,
            departure_date=day,
            available_seats=template.available_seats,
            total_seats=template.available_seats,
            notes=template.notes,
            recurring_pattern_id=pattern_id,
            is_recurring_instance=pattern_id is not None,
        )
        try:
            with Session(self.engine) as session:
                session.add(ride)
                session.commit()
                session.refresh(ride)
                return ride.id
        except IntegrityError as e:
            # Only the (pattern, date) constraint means the ride is already there
            if pattern_id is not None and self._ride_exists(pattern_id, day):
                raise DuplicateOccurrence(
                    f"Ride for pattern {pattern_id} on {day.isoformat()} already exists",
                    details={"pattern_id": pattern_id, "date": day.isoformat()},
                )
            raise TransientPersistenceError(
                f"Ride for pattern {pattern_id} on {day.isoformat()} was rejected: {str(e.orig)}",
                details={"pattern_id": pattern_id, "date": day.isoformat()},
            )

    async def persist_occurrence(
        self, pattern_id: Optional[str], template: RideTemplate, departure: datetime
    ) -> str:
        try:
            return await asyncio.to_thread(self._persist_occurrence_sync, pattern_id, template, departure)
        except SQLAlchemyError as e:
            raise TransientPersistenceError(f"Failed to persist ride: {str(e)}")

    def _list_materialized_dates_sync(self, pattern_id: str) -> Set[date]:
        with Session(self.engine) as session:
            statement = select(Ride.departure_date).where(Ride.recurring_pattern_id == pattern_id)
            return set(session.exec(statement).all())

    async def list_materialized_dates(self, pattern_id: str) -> Set[date]:
        try:
            return await asyncio.to_thread(self._list_materialized_dates_sync, pattern_id)
        except SQLAlchemyError as e:
            raise TransientPersistenceError(f"Failed to list rides for pattern {pattern_id}: {str(e)}")

    def _get_pattern_sync(self, pattern_id: str) -> StoredPattern:
        with Session(self.engine) as session:
            row = session.get(RecurringRidePattern, pattern_id)
            if row is None:
                raise PatternNotFound(pattern_id)
            return self._to_stored(row)

    async def get_pattern(self, pattern_id: str) -> StoredPattern:
        try:
            return await asyncio.to_thread(self._get_pattern_sync, pattern_id)
        except SQLAlchemyError as e:
            raise TransientPersistenceError(f"Failed to load pattern {pattern_id}: {str(e)}")

    def _update_pattern_progress_sync(self, pattern_id: str, occurrences_created: int, is_active: bool) -> None:
        with Session(self.engine) as session:
            row = session.get(RecurringRidePattern, pattern_id)
            if row is None:
                raise PatternNotFound(pattern_id)
            row.occurrences_created = occurrences_created
            row.is_active = is_active
            row.updated_at = utc_now()
            session.add(row)
            session.commit()

    async def update_pattern_progress(self, pattern_id: str, occurrences_created: int, is_active: bool) -> None:
        try:
            await asyncio.to_thread(self._update_pattern_progress_sync, pattern_id, occurrences_created, is_active)
        except SQLAlchemyError as e:
            raise TransientPersistenceError(f"Failed to update pattern {pattern_id}: {str(e)}")

    def _list_active_pattern_ids_sync(self) -> List[str]:
        with Session(self.engine) as session:
            statement = (
                select(RecurringRidePattern.id)
                .where(RecurringRidePattern.is_active == True)  # noqa: E712
                .order_by(RecurringRidePattern.created_at.asc())
            )
            return list(session.exec(statement).all())

    async def list_active_pattern_ids(self) -> List[str]:
        try:
            return await asyncio.to_thread(self._list_active_pattern_ids_sync)
        except SQLAlchemyError as e:
            raise TransientPersistenceError(f"Failed to list active patterns: {str(e)}")

    def _list_patterns_for_driver_sync(self, driver_id: str) -> List[StoredPattern]:
        with Session(self.engine) as session:
            statement = (
                select(RecurringRidePattern)
                .where(RecurringRidePattern.driver_id == driver_id)
                .order_by(RecurringRidePattern.created_at.desc())
            )
            return [self._to_stored(row) for row in session.exec(statement).all()]

    async def list_patterns_for_driver(self, driver_id: str) -> List[StoredPattern]:
        try:
            return await asyncio.to_thread(self._list_patterns_for_driver_sync, driver_id)
        except SQLAlchemyError as e:
            raise TransientPersistenceError(f"Failed to list patterns for driver {driver_id}: {str(e)}")
