"""Database models and recurrence domain types."""
from ride_scheduler.models.recurring_pattern import RecurringRidePattern
from ride_scheduler.models.ride import Ride

__all__ = ["RecurringRidePattern", "Ride"]
