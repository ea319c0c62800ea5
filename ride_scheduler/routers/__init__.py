"""API routers for the ride scheduler."""
from ride_scheduler.routers import recurring_rides

__all__ = ["recurring_rides"]
