"""Recurring ride router."""
from datetime import date
from typing import Callable, List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from ride_scheduler.db.config import get_engine
from ride_scheduler.schemas.recurring import (
    ExtendHorizonResponse,
    RecurringPatternResponse,
    RecurringRideCreate,
    RecurringScheduleResponse,
)
from ride_scheduler.services.errors import (
    PatternNotFound,
    SchedulerError,
    ValidationError,
)
from ride_scheduler.services.pattern_store import RidePatternStore, SQLModelPatternStore
from ride_scheduler.services.schedule_materializer import ScheduleMaterializer, local_today

router = APIRouter(tags=["Recurring Rides"])  # No prefix since main.py adds /api prefix


def get_clock() -> Callable[[], date]:
    """Dependency for the scheduler's notion of today, in the ride timezone."""
    return local_today


def get_pattern_store(engine: Engine = Depends(get_engine)) -> RidePatternStore:
    return SQLModelPatternStore(engine)


def get_schedule_materializer(
    store: RidePatternStore = Depends(get_pattern_store),
    clock: Callable[[], date] = Depends(get_clock),
) -> ScheduleMaterializer:
    """Dependency for getting ScheduleMaterializer instance."""
    return ScheduleMaterializer(store, clock=clock)


def _raise_http(error: SchedulerError) -> NoReturn:
    if isinstance(error, ValidationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(error, PatternNotFound):
        code = status.HTTP_404_NOT_FOUND
    else:
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    raise HTTPException(status_code=code, detail=error.to_dict())


@router.post("/recurring-rides", response_model=RecurringScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_ride(
    ride_data: RecurringRideCreate,
    materializer: ScheduleMaterializer = Depends(get_schedule_materializer),
):
    """Create a recurring ride and its first horizon of rides.

    Falls back to a single ride when recurrence storage is unavailable.
    """
    try:
        result = await materializer.create_recurring_schedule(
            ride_data.to_pattern_input(), horizon_days=ride_data.horizon_days
        )
    except SchedulerError as e:
        _raise_http(e)

    return RecurringScheduleResponse(
        pattern_id=result.pattern_id,
        created_count=result.created_count,
        fallback=result.fallback,
        failed_count=result.failed_count,
        is_active=result.is_active,
    )


@router.post("/recurring-rides/{pattern_id}/extend", response_model=ExtendHorizonResponse)
async def extend_recurring_ride(
    pattern_id: str,
    horizon_days: Optional[int] = Query(None, description="Days ahead to materialize"),
    materializer: ScheduleMaterializer = Depends(get_schedule_materializer),
):
    """Create any missing rides of a pattern up to the horizon."""
    try:
        result = await materializer.extend_horizon(pattern_id, horizon_days)
    except SchedulerError as e:
        _raise_http(e)

    return ExtendHorizonResponse(
        pattern_id=result.pattern_id,
        created_count=result.created_count,
        failed_count=result.failed_count,
        is_active=result.is_active,
    )


@router.post("/recurring-rides/{pattern_id}/cancel", response_model=RecurringPatternResponse)
async def cancel_recurring_ride(
    pattern_id: str,
    materializer: ScheduleMaterializer = Depends(get_schedule_materializer),
):
    """Stop a pattern from generating further rides."""
    try:
        stored = await materializer.cancel_pattern(pattern_id)
    except SchedulerError as e:
        _raise_http(e)
    return RecurringPatternResponse.from_summary(materializer.summarize_stored(stored))


@router.get("/recurring-rides/{pattern_id}", response_model=RecurringPatternResponse)
async def get_recurring_ride(
    pattern_id: str,
    materializer: ScheduleMaterializer = Depends(get_schedule_materializer),
):
    """Get a recurring pattern with its description and next ride date."""
    try:
        summary = await materializer.summarize(pattern_id)
    except SchedulerError as e:
        _raise_http(e)
    return RecurringPatternResponse.from_summary(summary)


@router.get("/drivers/{driver_id}/recurring-rides", response_model=List[RecurringPatternResponse])
async def list_recurring_rides(
    driver_id: str,
    materializer: ScheduleMaterializer = Depends(get_schedule_materializer),
):
    """List all recurring patterns of a driver."""
    try:
        summaries = await materializer.list_for_driver(driver_id)
    except SchedulerError as e:
        _raise_http(e)
    return [RecurringPatternResponse.from_summary(summary) for summary in summaries]
