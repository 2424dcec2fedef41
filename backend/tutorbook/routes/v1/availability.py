# backend/tutorbook/routes/v1/availability.py
"""
Tutor availability routes.

GET returns the bookable calendar over a rolling window; PUT replaces the
weekly template (the only way the template changes).
"""

import asyncio
from datetime import date, time
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_availability_service
from ...core.exceptions import DomainException
from ...schemas.availability import DurationOptionsResponse, SlotQueryResult, WeeklyAvailability
from ...services.availability_service import AvailabilityService
from ._common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability-v1"])


@router.get("/{tutor_id}/availability", response_model=SlotQueryResult)
async def get_bookable_slots(
    tutor_id: str,
    start: Optional[date] = Query(None, description="First date of the window (system timezone)"),
    days: Optional[int] = Query(None, ge=1, description="Window length in days"),
    granularity: Optional[int] = Query(None, ge=1, le=240, description="Slot length in minutes"),
    require_open: bool = Query(
        False, description="Return 404/409 instead of an empty calendar when nothing is bookable"
    ),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> SlotQueryResult:
    try:
        result = await asyncio.to_thread(
            availability_service.get_bookable_slots,
            tutor_id,
            window_start=start,
            window_days=days,
            granularity_minutes=granularity,
        )
        if require_open:
            result.raise_for_status()
        return result
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{tutor_id}/availability/weekly", response_model=WeeklyAvailability)
async def get_weekly_availability(
    tutor_id: str,
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> WeeklyAvailability:
    try:
        return await asyncio.to_thread(availability_service.get_weekly_availability, tutor_id)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/{tutor_id}/availability", response_model=WeeklyAvailability)
async def update_weekly_availability(
    tutor_id: str,
    template: WeeklyAvailability,
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> WeeklyAvailability:
    try:
        return await asyncio.to_thread(
            availability_service.update_weekly_availability, tutor_id, template
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{tutor_id}/availability/durations", response_model=DurationOptionsResponse)
async def get_valid_durations(
    tutor_id: str,
    on: date = Query(..., alias="date"),
    start: time = Query(...),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> DurationOptionsResponse:
    try:
        return await asyncio.to_thread(
            availability_service.get_valid_durations, tutor_id, on, start
        )
    except DomainException as e:
        handle_domain_exception(e)
