"""Shared fixtures for the ride scheduler tests."""
import asyncio
import itertools
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Set

import pytest
from sqlmodel import SQLModel, create_engine

from ride_scheduler.db.config import enable_sqlite_foreign_keys
from ride_scheduler.models.recurrence import PatternInput, PatternType, RecurrencePattern, RideTemplate
from ride_scheduler.models.recurring_pattern import RecurringRidePattern  # noqa: F401
from ride_scheduler.models.ride import Ride
from ride_scheduler.services.errors import (
    DuplicateOccurrence,
    PatternNotFound,
    StoreUnavailable,
    TransientPersistenceError,
)
from ride_scheduler.services.pattern_store import RidePatternStore, StoredPattern
from ride_scheduler.services.schedule_materializer import ScheduleMaterializer
from ride_scheduler.utils.metrics import MetricsCollector


class FixedClock:
    """Injectable clock returning a settable date."""

    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int):
        self.today += timedelta(days=days)


class InMemoryPatternStore(RidePatternStore):
    """Dict-backed store with failure injection hooks."""

    def __init__(self):
        self.available = True
        self.patterns: Dict[str, StoredPattern] = {}
        self.rides: List[dict] = []
        self.fail_dates: Set[date] = set()
        self.slow_dates: Set[date] = set()
        self.progress_failures = 0
        self._ids = itertools.count(1)

    async def persist_pattern(self, pattern: RecurrencePattern, template: RideTemplate) -> str:
        if not self.available:
            raise StoreUnavailable("recurring_ride_patterns does not exist")
        pattern_id = f"pattern-{next(self._ids)}"
        self.patterns[pattern_id] = StoredPattern(pattern_id, pattern, template)
        return pattern_id

    async def persist_occurrence(self, pattern_id: Optional[str], template: RideTemplate, departure: datetime) -> str:
        day = departure.date()
        if day in self.slow_dates:
            await asyncio.sleep(5)
        if day in self.fail_dates:
            raise TransientPersistenceError(f"write failed for {day}")
        if pattern_id is not None and day in await self.list_materialized_dates(pattern_id):
            raise DuplicateOccurrence(f"{pattern_id} already has a ride on {day}")
        ride_id = f"ride-{next(self._ids)}"
        self.rides.append({
            "id": ride_id,
            "pattern_id": pattern_id,
            "date": day,
            "departure": departure,
            "template": template,
        })
        return ride_id

    async def list_materialized_dates(self, pattern_id: str) -> Set[date]:
        return {ride["date"] for ride in self.rides if ride["pattern_id"] == pattern_id}

    async def get_pattern(self, pattern_id: str) -> StoredPattern:
        try:
            return self.patterns[pattern_id]
        except KeyError:
            raise PatternNotFound(pattern_id)

    async def update_pattern_progress(self, pattern_id: str, occurrences_created: int, is_active: bool) -> None:
        if self.progress_failures:
            self.progress_failures -= 1
            raise TransientPersistenceError("progress update failed")
        stored = await self.get_pattern(pattern_id)
        pattern = replace(stored.pattern, occurrences_created=occurrences_created, is_active=is_active)
        self.patterns[pattern_id] = replace(stored, pattern=pattern)

    async def list_active_pattern_ids(self) -> List[str]:
        return [pid for pid, stored in self.patterns.items() if stored.pattern.is_active]

    async def list_patterns_for_driver(self, driver_id: str) -> List[StoredPattern]:
        return [s for s in self.patterns.values() if s.template.driver_id == driver_id]

    def ride_dates(self, pattern_id: Optional[str]) -> List[date]:
        return sorted(ride["date"] for ride in self.rides if ride["pattern_id"] == pattern_id)


@pytest.fixture
def clock() -> FixedClock:
    # 2025-01-01 is a Wednesday
    return FixedClock(date(2025, 1, 1))


@pytest.fixture
def store() -> InMemoryPatternStore:
    return InMemoryPatternStore()


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def materializer(store, clock, metrics) -> ScheduleMaterializer:
    return ScheduleMaterializer(store, clock=clock, horizon_days=30, timeout=1.0, metrics=metrics)


@pytest.fixture
def make_input():
    """Factory for PatternInput with sensible defaults."""
    def _make(**overrides) -> PatternInput:
        values = dict(
            driver_id="driver-1",
            origin="Leeds Station",
            destination="Bradford Interchange",
            departure_time="08:30",
            available_seats=3,
            pattern_type="daily",
            start_date="2025-01-01",
            notes="Quiet car",
        )
        values.update(overrides)
        return PatternInput(**values)
    return _make


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine with all tables and foreign keys enforced."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'rides.db'}",
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def rides_only_engine(tmp_path):
    """File-backed SQLite engine missing the recurring pattern table."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'rides_only.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine, tables=[Ride.__table__])
    yield engine
    engine.dispose()


@pytest.fixture
def weekly_pattern() -> RecurrencePattern:
    return RecurrencePattern(
        pattern_type=PatternType.WEEKLY,
        start_date=date(2025, 1, 1),
        departure_time=time(8, 30),
        days_of_week=frozenset({1, 3, 5}),
    )
