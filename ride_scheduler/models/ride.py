"""Ride model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, Text, UniqueConstraint
from datetime import date, datetime
from typing import Optional
from uuid import uuid4

from ride_scheduler.models.recurrence import utc_now


class Ride(SQLModel, table=True):
    """A single concrete ride, either standalone or generated from a pattern."""

    __tablename__ = "rides"
    # One ride per pattern per day; standalone rides have a NULL pattern id
    __table_args__ = (
        UniqueConstraint("recurring_pattern_id", "departure_date", name="uq_rides_pattern_date"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    driver_id: str = Field(index=True, max_length=100)
    vehicle_id: Optional[str] = Field(default=None, max_length=100)
    origin: str = Field(max_length=500)
    destination: str = Field(max_length=500)
    departure_time: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    departure_date: date = Field(index=True)
    available_seats: int
    total_seats: int
    notes: Optional[str] = Field(default=None, sa_column=Column(Text))
    status: str = Field(default="scheduled", max_length=20)

    recurring_pattern_id: Optional[str] = Field(
        default=None, foreign_key="recurring_ride_patterns.id", index=True
    )
    is_recurring_instance: bool = Field(default=False)

    created_at: datetime = Field(
        default_factory=utc_now, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
