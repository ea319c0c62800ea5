"""Recurring ride schemas."""
from pydantic import BaseModel, Field
from datetime import date, datetime, time
from typing import Optional, List

from ride_scheduler.models.recurrence import AfterCount, OnDate, PatternInput
from ride_scheduler.services.schedule_materializer import PatternSummary


class RecurringRideCreate(BaseModel):
    """Schema for creating a recurring ride.

    Dates and times stay strings here; the recurrence validator parses them
    so errors name the offending field.
    """
    driver_id: str = Field(..., min_length=1, max_length=100)
    vehicle_id: Optional[str] = Field(None, max_length=100)
    origin: str = Field(..., max_length=500)
    destination: str = Field(..., max_length=500)
    departure_time: str = Field(..., description="Wall-clock time, HH:MM")
    available_seats: int
    notes: Optional[str] = Field(None, max_length=1000)
    pattern_type: str = Field(..., description="daily, weekly or monthly")
    days_of_week: List[int] = Field(default_factory=list, description="0=Sunday..6=Saturday")
    day_of_month: Optional[int] = Field(None, description="1-28")
    start_date: str = Field(..., description="ISO date, YYYY-MM-DD")
    end_type: str = Field("never", description="never, date or occurrences")
    end_date: Optional[str] = Field(None, description="ISO date, YYYY-MM-DD")
    max_occurrences: Optional[int] = Field(None, description="1-100")
    horizon_days: Optional[int] = Field(None, description="Days of rides to create up front")

    def to_pattern_input(self) -> PatternInput:
        return PatternInput(
            driver_id=self.driver_id,
            vehicle_id=self.vehicle_id,
            origin=self.origin,
            destination=self.destination,
            departure_time=self.departure_time,
            available_seats=self.available_seats,
            notes=self.notes,
            pattern_type=self.pattern_type,
            days_of_week=list(self.days_of_week),
            day_of_month=self.day_of_month,
            start_date=self.start_date,
            end_type=self.end_type,
            end_date=self.end_date,
            max_occurrences=self.max_occurrences,
        )


class RecurringScheduleResponse(BaseModel):
    """Schema for the result of creating a recurring ride."""
    pattern_id: Optional[str] = None  # None when a single ride was posted instead
    created_count: int
    fallback: bool = False
    failed_count: int = 0
    is_active: bool = True


class ExtendHorizonResponse(BaseModel):
    pattern_id: str
    created_count: int
    failed_count: int = 0
    is_active: bool = True


class RecurringPatternResponse(BaseModel):
    """Schema for recurring pattern API responses."""
    id: str
    driver_id: str
    vehicle_id: Optional[str] = None
    origin: str
    destination: str
    departure_time: time
    available_seats: int
    notes: Optional[str] = None
    pattern_type: str
    days_of_week: List[int] = []
    day_of_month: Optional[int] = None
    start_date: date
    end_type: str
    end_date: Optional[date] = None
    max_occurrences: Optional[int] = None
    occurrences_created: int
    is_active: bool
    created_at: Optional[datetime] = None
    description: str
    next_occurrence: Optional[date] = None

    @classmethod
    def from_summary(cls, summary: PatternSummary) -> "RecurringPatternResponse":
        stored = summary.stored
        pattern, template = stored.pattern, stored.template
        end = pattern.end_condition
        if isinstance(end, OnDate):
            end_type = "date"
        elif isinstance(end, AfterCount):
            end_type = "occurrences"
        else:
            end_type = "never"

        return cls(
            id=stored.pattern_id,
            driver_id=template.driver_id,
            vehicle_id=template.vehicle_id,
            origin=template.origin,
            destination=template.destination,
            departure_time=pattern.departure_time,
            available_seats=template.available_seats,
            notes=template.notes,
            pattern_type=pattern.pattern_type.value,
            days_of_week=sorted(pattern.days_of_week),
            day_of_month=pattern.day_of_month,
            start_date=pattern.start_date,
            end_type=end_type,
            end_date=pattern.end_date,
            max_occurrences=end.max_occurrences if isinstance(end, AfterCount) else None,
            occurrences_created=pattern.occurrences_created,
            is_active=pattern.is_active,
            created_at=stored.created_at,
            description=summary.description,
            next_occurrence=summary.next_occurrence,
        )
