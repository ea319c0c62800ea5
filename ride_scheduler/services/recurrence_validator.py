"""Recurrence Validator."""
from datetime import date, datetime, time
from typing import Any, Optional, Tuple, Union
import logging

from ride_scheduler.config import MAX_DAY_OF_MONTH, MAX_HORIZON_DAYS, MAX_OCCURRENCES
from ride_scheduler.models.recurrence import (
    AfterCount,
    EndCondition,
    EndType,
    Never,
    OnDate,
    PatternInput,
    PatternType,
    RecurrencePattern,
    RideTemplate,
)
from ride_scheduler.services.errors import ValidationError

logger = logging.getLogger(__name__)


def _is_int(value: Any) -> bool:
    # bool is an int subclass; reject it explicitly
    return isinstance(value, int) and not isinstance(value, bool)


class RecurrenceValidator:
    """Validate recurring ride input before anything is persisted."""

    @staticmethod
    def parse_date(value: Union[str, date, None], field: str) -> date:
        """
        Parse an ISO date (YYYY-MM-DD) or pass a date through.

        Raises:
            ValidationError: If the value is missing or not a calendar date
        """
        if isinstance(value, datetime):
            raise ValidationError(field, f"{field} must be a date without a time component")
        if isinstance(value, date):
            return value
        if not value or not isinstance(value, str):
            raise ValidationError(field, f"{field} is required")
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise ValidationError(field, f"Invalid date format for {field}: {value}. Use YYYY-MM-DD")

    @staticmethod
    def parse_time(value: Union[str, time, None], field: str = "departure_time") -> time:
        """Parse a wall-clock time in HH:MM (or HH:MM:SS) form."""
        if isinstance(value, time):
            return value.replace(second=0, microsecond=0, tzinfo=None)
        if not value or not isinstance(value, str):
            raise ValidationError(field, f"{field} is required")
        for fmt in ("%H:%M", "%H:%M:%S"):
            try:
                return datetime.strptime(value.strip(), fmt).time().replace(second=0)
            except ValueError:
                continue
        raise ValidationError(field, f"Invalid time format for {field}: {value}. Use HH:MM")

    @staticmethod
    def validate_horizon(horizon_days: Any) -> int:
        if not _is_int(horizon_days) or not 1 <= horizon_days <= MAX_HORIZON_DAYS:
            raise ValidationError(
                "horizon_days",
                f"horizon_days must be an integer between 1 and {MAX_HORIZON_DAYS}",
            )
        return horizon_days

    @staticmethod
    def validate_end_condition(data: PatternInput, start_date: date, today: date) -> EndCondition:
        """
        Validate the end condition of a pattern.

        A date-bound end must not lie before today or before the start date.
        A count-bound end must be within 1..MAX_OCCURRENCES.
        """
        try:
            end_type = EndType(data.end_type)
        except ValueError:
            raise ValidationError("end_type", "end_type must be one of: never, date, occurrences")

        if end_type == EndType.DATE:
            end_date = RecurrenceValidator.parse_date(data.end_date, "end_date")
            if end_date < today:
                raise ValidationError("end_date", "end_date cannot be in the past")
            if end_date < start_date:
                raise ValidationError("end_date", "end_date cannot be before start_date")
            return OnDate(end_date)

        if end_type == EndType.OCCURRENCES:
            count = data.max_occurrences
            if not _is_int(count) or not 1 <= count <= MAX_OCCURRENCES:
                raise ValidationError(
                    "max_occurrences",
                    f"max_occurrences must be an integer between 1 and {MAX_OCCURRENCES}",
                )
            return AfterCount(count)

        return Never()

    @staticmethod
    def validate_template(data: PatternInput) -> RideTemplate:
        """Validate the ride fields copied onto each occurrence."""
        if not data.driver_id or not isinstance(data.driver_id, str):
            raise ValidationError("driver_id", "driver_id is required")
        for field in ("origin", "destination"):
            value = getattr(data, field)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(field, f"{field} is required")
        if not _is_int(data.available_seats) or data.available_seats < 1:
            raise ValidationError("available_seats", "available_seats must be a positive integer")

        return RideTemplate(
            driver_id=data.driver_id,
            origin=data.origin.strip(),
            destination=data.destination.strip(),
            available_seats=data.available_seats,
            notes=data.notes,
            vehicle_id=data.vehicle_id,
        )

    @staticmethod
    def validate_pattern_input(data: PatternInput, today: date) -> Tuple[RecurrencePattern, RideTemplate]:
        """
        Validate a recurring ride request.

        Args:
            data: Raw pattern input
            today: Reference date from the injected clock

        Returns:
            Tuple of (pattern, template) ready to persist

        Raises:
            ValidationError: Naming the first offending field
        """
        template = RecurrenceValidator.validate_template(data)

        try:
            pattern_type = PatternType(data.pattern_type)
        except ValueError:
            raise ValidationError("pattern_type", "pattern_type must be one of: daily, weekly, monthly")

        days_of_week = frozenset()
        day_of_month: Optional[int] = None

        if pattern_type == PatternType.WEEKLY:
            days = data.days_of_week or []
            if not days:
                raise ValidationError("days_of_week", "Select at least one day of the week")
            if not all(_is_int(d) and 0 <= d <= 6 for d in days):
                raise ValidationError("days_of_week", "days_of_week values must be integers 0 (Sunday) to 6 (Saturday)")
            days_of_week = frozenset(days)

        if pattern_type == PatternType.MONTHLY:
            dom = data.day_of_month
            if not _is_int(dom) or not 1 <= dom <= MAX_DAY_OF_MONTH:
                raise ValidationError(
                    "day_of_month",
                    f"day_of_month must be an integer between 1 and {MAX_DAY_OF_MONTH}",
                )
            day_of_month = dom

        start_date = RecurrenceValidator.parse_date(data.start_date, "start_date")
        departure_time = RecurrenceValidator.parse_time(data.departure_time)
        end_condition = RecurrenceValidator.validate_end_condition(data, start_date, today)

        pattern = RecurrencePattern(
            pattern_type=pattern_type,
            start_date=start_date,
            departure_time=departure_time,
            days_of_week=days_of_week,
            day_of_month=day_of_month,
            end_condition=end_condition,
        )
        logger.debug(f"Validated {pattern_type.value} pattern for driver {template.driver_id}")
        return pattern, template
