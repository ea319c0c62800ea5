"""Recurring ride pattern model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON, Text
from datetime import date, datetime, time
from typing import List, Optional
from uuid import uuid4

from ride_scheduler.models.recurrence import (
    AfterCount,
    EndType,
    Never,
    OnDate,
    PatternType,
    RecurrencePattern,
    RideTemplate,
    utc_now,
)


class RecurringRidePattern(SQLModel, table=True):
    """A driver's recurring ride: template fields plus the recurrence rule."""

    __tablename__ = "recurring_ride_patterns"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    driver_id: str = Field(index=True, max_length=100)
    vehicle_id: Optional[str] = Field(default=None, max_length=100)
    origin: str = Field(max_length=500)
    destination: str = Field(max_length=500)
    departure_time: time
    available_seats: int
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))

    pattern_type: str = Field(max_length=20)  # daily, weekly, monthly
    days_of_week: Optional[List[int]] = Field(default=None, sa_column=Column(JSON))  # 0-6 for Sunday-Saturday
    day_of_month: Optional[int] = Field(default=None)  # 1-28
    start_date: date
    end_type: str = Field(default=EndType.NEVER.value, max_length=20)
    end_date: Optional[date] = Field(default=None)
    max_occurrences: Optional[int] = Field(default=None)
    occurrences_created: int = Field(default=0)
    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False)
    )

    @classmethod
    def from_domain(cls, pattern: RecurrencePattern, template: RideTemplate) -> "RecurringRidePattern":
        """Build a row from a validated pattern and its ride template."""
        end = pattern.end_condition
        if isinstance(end, OnDate):
            end_type, end_date, max_occurrences = EndType.DATE.value, end.end_date, None
        elif isinstance(end, AfterCount):
            end_type, end_date, max_occurrences = EndType.OCCURRENCES.value, None, end.max_occurrences
        else:
            end_type, end_date, max_occurrences = EndType.NEVER.value, None, None

        return cls(
            driver_id=template.driver_id,
            vehicle_id=template.vehicle_id,
            origin=template.origin,
            destination=template.destination,
            departure_time=pattern.departure_time,
            available_seats=template.available_seats,
            notes=template.notes,
            pattern_type=pattern.pattern_type.value,
            days_of_week=sorted(pattern.days_of_week) or None,
            day_of_month=pattern.day_of_month,
            start_date=pattern.start_date,
            end_type=end_type,
            end_date=end_date,
            max_occurrences=max_occurrences,
            occurrences_created=pattern.occurrences_created,
            is_active=pattern.is_active,
        )

    def to_pattern(self) -> RecurrencePattern:
        if self.end_type == EndType.DATE.value and self.end_date is not None:
            end_condition = OnDate(self.end_date)
        elif self.end_type == EndType.OCCURRENCES.value and self.max_occurrences is not None:
            end_condition = AfterCount(self.max_occurrences)
        else:
            end_condition = Never()

        return RecurrencePattern(
            pattern_type=PatternType(self.pattern_type),
            start_date=self.start_date,
            departure_time=self.departure_time,
            days_of_week=frozenset(self.days_of_week or []),
            day_of_month=self.day_of_month,
            end_condition=end_condition,
            occurrences_created=self.occurrences_created,
            is_active=self.is_active,
        )

    def to_template(self) -> RideTemplate:
        return RideTemplate(
            driver_id=self.driver_id,
            origin=self.origin,
            destination=self.destination,
            available_seats=self.available_seats,
            notes=self.notes,
            vehicle_id=self.vehicle_id,
        )
