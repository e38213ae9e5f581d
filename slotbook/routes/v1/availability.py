# slotbook/routes/v1/availability.py
"""
Availability routes - API v1

Endpoints:
    GET /{year}/{month} - Per-day, per-slot availability for a month
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from ...api.dependencies import get_availability_service
from ...core.exceptions import DomainException, ValidationException
from ...domain.value_objects import Month
from ...schemas.availability import DayAvailabilityResponse, MonthAvailabilityResponse, SlotInfo
from ...services.availability_service import AvailabilityEngine, AvailabilityService
from ._errors import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability-v1"])


@router.get("/{year}/{month}", response_model=MonthAvailabilityResponse)
async def get_month_availability(
    year: int = Path(..., ge=1, le=9999),
    month: int = Path(..., ge=1, le=12),
    location_id: Optional[str] = Query(None, max_length=64),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> MonthAvailabilityResponse:
    """Availability of every configured slot on every day of the month."""
    try:
        target = Month(year=year, month=month)
    except ValueError as exc:
        handle_domain_exception(ValidationException(str(exc), code="INVALID_MONTH"))

    try:
        result = await asyncio.to_thread(availability_service.availability, target, location_id)
    except DomainException as exc:
        handle_domain_exception(exc)

    summary = AvailabilityEngine.summarize(result)
    return MonthAvailabilityResponse(
        month=str(target),
        location_id=location_id or availability_service.config.default_location_id,
        slots=[
            SlotInfo(
                code=slot.code,
                label=slot.label,
                start=slot.start.strftime("%H:%M"),
                end=slot.end.strftime("%H:%M"),
                credits=slot.credits,
            )
            for slot in availability_service.engine.catalog
        ],
        days=[
            DayAvailabilityResponse(
                day=day,
                slots=slots,
                free=summary[day].free,
                booked=summary[day].booked,
            )
            for day, slots in result.items()
        ],
    )
