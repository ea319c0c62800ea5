"""Tests for recurring schedule creation and horizon extension."""
import asyncio
from datetime import date, datetime, timedelta

import pytest
import pytz

from ride_scheduler.routers.recurring_rides import get_clock
from ride_scheduler.services.errors import PatternNotFound, TransientPersistenceError, ValidationError
from ride_scheduler.services.schedule_materializer import ScheduleMaterializer, local_today


def _range(start: date, count: int):
    return [start + timedelta(days=i) for i in range(count)]


async def test_weekly_scenario_creates_expected_rides(materializer, store, make_input):
    result = await materializer.create_recurring_schedule(
        make_input(pattern_type="weekly", days_of_week=[1, 3, 5]), horizon_days=14
    )

    assert result.pattern_id is not None
    assert not result.fallback
    assert result.created_count == 6
    assert store.ride_dates(result.pattern_id) == [
        date(2025, 1, 1),
        date(2025, 1, 3),
        date(2025, 1, 6),
        date(2025, 1, 8),
        date(2025, 1, 10),
        date(2025, 1, 13),
    ]
    assert store.patterns[result.pattern_id].pattern.occurrences_created == 6


async def test_rides_copy_template_and_departure_time(materializer, store, make_input):
    result = await materializer.create_recurring_schedule(make_input(), horizon_days=2)

    ride = store.rides[0]
    assert ride["pattern_id"] == result.pattern_id
    assert ride["template"].notes == "Quiet car"
    assert ride["departure"].hour == 8
    assert ride["departure"].minute == 30
    assert ride["departure"].utcoffset() == timedelta(0)


async def test_default_horizon_is_used(materializer, store, make_input):
    result = await materializer.create_recurring_schedule(make_input())

    assert result.created_count == 30
    assert result.is_active
    assert store.ride_dates(result.pattern_id) == _range(date(2025, 1, 1), 30)


async def test_monthly_day_31_is_rejected_before_persisting(materializer, store, make_input):
    with pytest.raises(ValidationError) as exc_info:
        await materializer.create_recurring_schedule(make_input(pattern_type="monthly", day_of_month=31))

    assert exc_info.value.field == "day_of_month"
    assert store.patterns == {}
    assert store.rides == []


async def test_invalid_horizon_is_rejected(materializer, make_input):
    with pytest.raises(ValidationError) as exc_info:
        await materializer.create_recurring_schedule(make_input(), horizon_days=0)

    assert exc_info.value.field == "horizon_days"


async def test_store_unavailable_falls_back_to_single_ride(materializer, store, metrics, make_input):
    store.available = False

    result = await materializer.create_recurring_schedule(
        make_input(pattern_type="weekly", days_of_week=[1])
    )

    assert result.pattern_id is None
    assert result.created_count == 1
    assert result.fallback
    assert store.patterns == {}
    # First Monday on or after 2025-01-01
    assert store.ride_dates(None) == [date(2025, 1, 6)]
    assert metrics.get_metrics()["counters"]["schedule_fallbacks_total"] == 1


async def test_fallback_ride_failure_is_reported(materializer, store, make_input):
    store.available = False
    store.fail_dates = {date(2025, 1, 1)}

    with pytest.raises(TransientPersistenceError):
        await materializer.create_recurring_schedule(make_input())


async def test_count_bound_pattern_deactivates_after_max(materializer, store, make_input):
    result = await materializer.create_recurring_schedule(
        make_input(end_type="occurrences", max_occurrences=3), horizon_days=30
    )

    assert result.created_count == 3
    assert not result.is_active
    stored = store.patterns[result.pattern_id].pattern
    assert stored.occurrences_created == 3
    assert not stored.is_active

    again = await materializer.extend_horizon(result.pattern_id, 60)
    assert again.created_count == 0


async def test_count_bound_pattern_across_repeated_extensions(materializer, store, make_input):
    result = await materializer.create_recurring_schedule(
        make_input(end_type="occurrences", max_occurrences=3), horizon_days=1
    )
    pattern_id = result.pattern_id
    assert result.created_count == 1
    assert result.is_active

    assert (await materializer.extend_horizon(pattern_id, 2)).created_count == 1
    third = await materializer.extend_horizon(pattern_id, 3)
    assert third.created_count == 1
    assert not third.is_active

    fourth = await materializer.extend_horizon(pattern_id, 30)
    assert fourth.created_count == 0
    assert len(store.ride_dates(pattern_id)) == 3


async def test_extend_horizon_is_idempotent(materializer, store, make_input):
    result = await materializer.create_recurring_schedule(make_input(), horizon_days=7)

    first = await materializer.extend_horizon(result.pattern_id, 7)
    second = await materializer.extend_horizon(result.pattern_id, 14)
    third = await materializer.extend_horizon(result.pattern_id, 14)

    assert first.created_count == 0
    assert second.created_count == 7
    assert third.created_count == 0
    assert store.ride_dates(result.pattern_id) == _range(date(2025, 1, 1), 14)


async def test_extend_horizon_follows_the_clock(materializer, store, clock, make_input):
    result = await materializer.create_recurring_schedule(make_input(), horizon_days=7)
    clock.advance(4)

    extended = await materializer.extend_horizon(result.pattern_id, 7)

    assert extended.created_count == 4
    assert store.ride_dates(result.pattern_id) == _range(date(2025, 1, 1), 11)


async def test_concurrent_extends_converge(materializer, store, make_input):
    result = await materializer.create_recurring_schedule(make_input(), horizon_days=1)

    outcomes = await asyncio.gather(
        materializer.extend_horizon(result.pattern_id, 10),
        materializer.extend_horizon(result.pattern_id, 10),
    )

    assert sum(o.created_count for o in outcomes) == 9
    assert store.ride_dates(result.pattern_id) == _range(date(2025, 1, 1), 10)


async def test_partial_failure_is_contained_and_retried(materializer, store, metrics, make_input):
    store.fail_dates = {date(2025, 1, 3)}

    result = await materializer.create_recurring_schedule(make_input(), horizon_days=5)

    assert result.created_count == 4
    assert result.failed_count == 1
    assert store.patterns[result.pattern_id].pattern.occurrences_created == 4
    assert metrics.get_metrics()["counters"]["ride_materialization_failures_total"] == 1

    store.fail_dates.clear()
    retried = await materializer.extend_horizon(result.pattern_id, 5)

    assert retried.created_count == 1
    assert store.ride_dates(result.pattern_id) == _range(date(2025, 1, 1), 5)


async def test_slow_writes_time_out_without_aborting_batch(store, clock, metrics, make_input):
    materializer = ScheduleMaterializer(store, clock=clock, timeout=0.05, metrics=metrics)
    store.slow_dates = {date(2025, 1, 2)}

    result = await materializer.create_recurring_schedule(make_input(), horizon_days=3)

    assert result.created_count == 2
    assert result.failed_count == 1
    assert store.ride_dates(result.pattern_id) == [date(2025, 1, 1), date(2025, 1, 3)]


async def test_date_bound_pattern_deactivates_when_end_is_materialized(materializer, store, make_input):
    result = await materializer.create_recurring_schedule(
        make_input(end_type="date", end_date="2025-01-10"), horizon_days=30
    )

    assert result.created_count == 10
    assert not result.is_active
    assert not store.patterns[result.pattern_id].pattern.is_active


async def test_date_bound_pattern_stays_active_while_rides_are_missing(materializer, store, make_input):
    store.fail_dates = {date(2025, 1, 5)}

    result = await materializer.create_recurring_schedule(
        make_input(end_type="date", end_date="2025-01-10"), horizon_days=30
    )
    assert result.is_active

    store.fail_dates.clear()
    retried = await materializer.extend_horizon(result.pattern_id, 30)

    assert retried.created_count == 1
    assert not retried.is_active


async def test_lost_progress_update_does_not_exceed_max(materializer, store, make_input):
    store.progress_failures = 1

    result = await materializer.create_recurring_schedule(
        make_input(end_type="occurrences", max_occurrences=3), horizon_days=2
    )
    assert result.created_count == 2
    assert store.patterns[result.pattern_id].pattern.occurrences_created == 0

    extended = await materializer.extend_horizon(result.pattern_id, 10)

    assert extended.created_count == 1
    assert len(store.ride_dates(result.pattern_id)) == 3
    assert not store.patterns[result.pattern_id].pattern.is_active


async def test_cancel_pattern_stops_generation(materializer, store, make_input):
    result = await materializer.create_recurring_schedule(make_input(), horizon_days=3)

    cancelled = await materializer.cancel_pattern(result.pattern_id)

    assert not cancelled.pattern.is_active
    assert (await materializer.extend_horizon(result.pattern_id, 30)).created_count == 0
    assert len(store.ride_dates(result.pattern_id)) == 3
    # Cancelling twice is harmless
    assert not (await materializer.cancel_pattern(result.pattern_id)).pattern.is_active


async def test_extend_unknown_pattern(materializer):
    with pytest.raises(PatternNotFound):
        await materializer.extend_horizon("missing")


async def test_extend_all_active_skips_inactive(materializer, store, make_input):
    active = await materializer.create_recurring_schedule(make_input(), horizon_days=2)
    stopped = await materializer.create_recurring_schedule(make_input(driver_id="driver-2"), horizon_days=2)
    await materializer.cancel_pattern(stopped.pattern_id)

    results = await materializer.extend_all_active(horizon_days=5)

    assert results == {active.pattern_id: 3}
    assert len(store.ride_dates(stopped.pattern_id)) == 2


async def test_cancellation_after_persist_is_recoverable(store, clock, metrics, make_input):
    materializer = ScheduleMaterializer(store, clock=clock, timeout=30, metrics=metrics)
    store.slow_dates = {date(2025, 1, 2)}

    task = asyncio.create_task(materializer.create_recurring_schedule(make_input(), horizon_days=5))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(store.patterns) == 1
    pattern_id = next(iter(store.patterns))
    assert store.ride_dates(pattern_id) == [date(2025, 1, 1)]

    store.slow_dates.clear()
    recovered = await materializer.extend_horizon(pattern_id, 5)

    assert recovered.created_count == 4
    assert store.ride_dates(pattern_id) == _range(date(2025, 1, 1), 5)


async def test_departure_is_localized_to_configured_timezone(store, clock, metrics, make_input):
    clock.today = date(2025, 7, 1)
    materializer = ScheduleMaterializer(store, clock=clock, timezone="Europe/London", metrics=metrics)

    await materializer.create_recurring_schedule(make_input(start_date="2025-07-01"), horizon_days=1)

    departure = store.rides[0]["departure"]
    assert departure.utcoffset() == timedelta(hours=1)
    assert (departure.hour, departure.minute) == (8, 30)


async def test_summarize_reports_description_and_next_ride(materializer, make_input):
    result = await materializer.create_recurring_schedule(
        make_input(pattern_type="weekly", days_of_week=[1, 3, 5]), horizon_days=7
    )

    summary = await materializer.summarize(result.pattern_id)

    assert summary.description == "Repeats on Mon, Wed, Fri"
    assert summary.next_occurrence == date(2025, 1, 1)


async def test_far_future_pattern_stays_active_until_it_starts(materializer, store, clock, make_input):
    result = await materializer.create_recurring_schedule(
        make_input(pattern_type="weekly", days_of_week=[1], start_date="2028-01-03")
    )

    assert result.created_count == 0
    assert result.is_active
    assert store.patterns[result.pattern_id].pattern.is_active
    assert (await materializer.summarize(result.pattern_id)).next_occurrence == date(2028, 1, 3)

    clock.today = date(2028, 1, 1)
    extended = await materializer.extend_horizon(result.pattern_id, 7)

    assert extended.created_count == 1
    assert store.ride_dates(result.pattern_id) == [date(2028, 1, 3)]


async def test_fallback_ride_for_far_future_pattern_lands_on_first_occurrence(materializer, store, make_input):
    store.available = False

    await materializer.create_recurring_schedule(
        make_input(pattern_type="weekly", days_of_week=[1], start_date="2028-01-01")
    )

    # 2028-01-01 is a Saturday
    assert store.ride_dates(None) == [date(2028, 1, 3)]


async def test_date_bound_pattern_stays_active_before_window_reaches_end(materializer, store, make_input):
    result = await materializer.create_recurring_schedule(
        make_input(pattern_type="monthly", day_of_month=15, end_type="date", end_date="2025-03-20"),
        horizon_days=30,
    )

    assert result.created_count == 1
    assert result.is_active


def test_local_today_follows_ride_timezone():
    evening_utc = pytz.utc.localize(datetime(2025, 1, 1, 20, 0))
    early_utc = pytz.utc.localize(datetime(2025, 1, 1, 3, 0))

    assert local_today("UTC", evening_utc) == date(2025, 1, 1)
    assert local_today("Pacific/Auckland", evening_utc) == date(2025, 1, 2)
    assert local_today("America/Los_Angeles", early_utc) == date(2024, 12, 31)


def test_default_clock_uses_ride_timezone(store, metrics):
    materializer = ScheduleMaterializer(store, timezone="Pacific/Auckland", metrics=metrics)

    assert materializer.clock() == local_today("Pacific/Auckland")
    assert get_clock() is local_today


async def test_timers_are_recorded_on_injected_collector(materializer, metrics, make_input):
    result = await materializer.create_recurring_schedule(make_input(), horizon_days=2)
    await materializer.extend_horizon(result.pattern_id, 2)

    timers = metrics.get_metrics()["timers"]
    assert "create_recurring_schedule_seconds" in timers
    assert "extend_horizon_seconds" in timers
