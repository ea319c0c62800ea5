"""
Pattern Calculator

Pure date computation for recurring ride patterns. Nothing here reads the
system clock or touches storage: every function takes an explicit reference
date and returns plain values. "No more occurrences" is reported as None or
an empty list, never as an exception.
"""

import calendar
from datetime import date, timedelta
from typing import List, Optional

from ride_scheduler.config import LOOKAHEAD_DAYS
from ride_scheduler.models.recurrence import (
    AfterCount,
    OnDate,
    PatternType,
    RecurrencePattern,
)

DAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
WEEKDAYS = frozenset({1, 2, 3, 4, 5})


def weekday_index(day: date) -> int:
    """Return the weekday of `day` with 0=Sunday..6=Saturday."""
    return day.isoweekday() % 7


def is_exhausted(pattern: RecurrencePattern) -> bool:
    """True when the pattern can never produce another occurrence."""
    if not pattern.is_active:
        return True
    remaining = pattern.remaining_occurrences
    return remaining is not None and remaining <= 0


def _in_window(pattern: RecurrencePattern, day: date) -> bool:
    if day < pattern.start_date:
        return False
    end = pattern.end_date
    return end is None or day <= end


def _valid_days_of_week(pattern: RecurrencePattern) -> List[int]:
    return sorted(d for d in pattern.days_of_week if isinstance(d, int) and 0 <= d <= 6)


def occurs_on(pattern: RecurrencePattern, day: date) -> bool:
    """
    Check whether the pattern schedules a ride on `day`.

    Args:
        pattern: Recurrence pattern
        day: Calendar date to test

    Returns:
        True if an occurrence falls on that date
    """
    if is_exhausted(pattern) or not _in_window(pattern, day):
        return False

    if pattern.pattern_type == PatternType.DAILY:
        return True
    if pattern.pattern_type == PatternType.WEEKLY:
        return weekday_index(day) in _valid_days_of_week(pattern)
    if pattern.pattern_type == PatternType.MONTHLY:
        return pattern.day_of_month is not None and day.day == pattern.day_of_month
    return False


def _next_weekly(pattern: RecurrencePattern, candidate: date) -> Optional[date]:
    days = _valid_days_of_week(pattern)
    if not days:
        return None
    current = weekday_index(candidate)
    offset = min((d - current) % 7 for d in days)
    return candidate + timedelta(days=offset)


def _next_monthly(pattern: RecurrencePattern, candidate: date) -> Optional[date]:
    target = pattern.day_of_month
    if not isinstance(target, int) or target < 1:
        return None

    year, month = candidate.year, candidate.month
    # A month is skipped when it is too short for the target day
    for _ in range(LOOKAHEAD_DAYS // 28 + 1):
        if target <= calendar.monthrange(year, month)[1]:
            hit = date(year, month, target)
            if hit >= candidate:
                return hit
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return None


def next_occurrence(pattern: RecurrencePattern, from_date: date) -> Optional[date]:
    """
    Return the earliest occurrence on or after `from_date`.

    `from_date` itself is eligible. Returns None when the pattern has ended,
    its end date is passed, or nothing matches within the lookahead bound.
    """
    if is_exhausted(pattern):
        return None

    candidate = max(from_date, pattern.start_date)

    if pattern.pattern_type == PatternType.DAILY:
        found = candidate
    elif pattern.pattern_type == PatternType.WEEKLY:
        found = _next_weekly(pattern, candidate)
    elif pattern.pattern_type == PatternType.MONTHLY:
        found = _next_monthly(pattern, candidate)
    else:
        found = None

    if found is None:
        return None
    if (found - from_date).days > LOOKAHEAD_DAYS:
        return None
    if pattern.end_date is not None and found > pattern.end_date:
        return None
    return found


def occurrences_in_range(pattern: RecurrencePattern, from_date: date, to_date: date) -> List[date]:
    """
    List occurrence dates in [from_date, to_date], ascending and distinct.

    Count-bound patterns stop once their remaining allowance is used, so
    occurrences_created plus the result never exceeds max_occurrences.
    """
    result: List[date] = []
    remaining = pattern.remaining_occurrences
    cursor = from_date

    while cursor <= to_date:
        if remaining is not None and len(result) >= remaining:
            break
        found = next_occurrence(pattern, cursor)
        if found is None or found > to_date:
            break
        result.append(found)
        cursor = found + timedelta(days=1)

    return result


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _format_day(day: date) -> str:
    return f"{day.day} {day.strftime('%b %Y')}"


def describe(pattern: RecurrencePattern) -> str:
    """Render a human-readable summary, e.g. "Repeats on Mon, Wed, Fri until 12 Dec 2025"."""
    if pattern.pattern_type == PatternType.DAILY:
        text = "Repeats every day"
    elif pattern.pattern_type == PatternType.WEEKLY:
        days = _valid_days_of_week(pattern)
        if frozenset(days) == WEEKDAYS:
            text = "Repeats on weekdays"
        elif len(days) == 7:
            text = "Repeats every day"
        else:
            text = "Repeats on " + ", ".join(DAY_LABELS[d] for d in days)
    elif pattern.pattern_type == PatternType.MONTHLY:
        text = f"Repeats monthly on the {_ordinal(pattern.day_of_month or 0)}"
    else:
        text = "Custom schedule"

    end = pattern.end_condition
    if isinstance(end, OnDate):
        text += f" until {_format_day(end.end_date)}"
    elif isinstance(end, AfterCount):
        noun = "ride" if end.max_occurrences == 1 else "rides"
        text += f" for {end.max_occurrences} {noun}"

    if not pattern.is_active:
        text += " (ended)"
    return text
