"""Immutable recurrence domain types."""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import FrozenSet, List, Optional, Union


class PatternType(str, Enum):
    """How often a recurring ride repeats."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class EndType(str, Enum):
    """Which end condition a driver picked."""
    NEVER = "never"
    DATE = "date"
    OCCURRENCES = "occurrences"


@dataclass(frozen=True)
class Never:
    """Pattern keeps generating rides indefinitely."""


@dataclass(frozen=True)
class OnDate:
    """Pattern stops after end_date (inclusive)."""
    end_date: date


@dataclass(frozen=True)
class AfterCount:
    """Pattern stops once max_occurrences rides have been created."""
    max_occurrences: int


EndCondition = Union[Never, OnDate, AfterCount]


@dataclass(frozen=True)
class RecurrencePattern:
    """A driver's recurrence rule plus its running progress."""
    pattern_type: PatternType
    start_date: date
    departure_time: time
    days_of_week: FrozenSet[int] = frozenset()  # 0=Sunday..6=Saturday
    day_of_month: Optional[int] = None  # 1-28
    end_condition: EndCondition = field(default_factory=Never)
    occurrences_created: int = 0
    is_active: bool = True

    @property
    def remaining_occurrences(self) -> Optional[int]:
        """Rides left before a count-bound pattern ends, None when unbounded."""
        if isinstance(self.end_condition, AfterCount):
            return max(self.end_condition.max_occurrences - self.occurrences_created, 0)
        return None

    @property
    def end_date(self) -> Optional[date]:
        if isinstance(self.end_condition, OnDate):
            return self.end_condition.end_date
        return None


@dataclass(frozen=True)
class RideTemplate:
    """Ride fields copied onto every generated occurrence."""
    driver_id: str
    origin: str
    destination: str
    available_seats: int
    notes: Optional[str] = None
    vehicle_id: Optional[str] = None


@dataclass
class PatternInput:
    """Raw, unvalidated request to create a recurring ride."""
    driver_id: str
    origin: str
    destination: str
    departure_time: Union[str, time]
    available_seats: int
    pattern_type: str
    start_date: Union[str, date]
    days_of_week: List[int] = field(default_factory=list)
    day_of_month: Optional[int] = None
    end_type: str = EndType.NEVER.value
    end_date: Optional[Union[str, date]] = None
    max_occurrences: Optional[int] = None
    notes: Optional[str] = None
    vehicle_id: Optional[str] = None


def utc_now() -> datetime:
    """Timezone-aware current UTC time for row timestamps."""
    return datetime.now(timezone.utc)
