# slotbook/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to ReservationScheduler.

Endpoints:
    POST / - Book a slot
    GET /{session_id} - Session details
    POST /{session_id}/cancel - Cancel a session
    POST /{session_id}/approve - Confirm a session awaiting manual approval
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, status

from ...api.dependencies import get_reservation_scheduler, get_session_registry
from ...core.exceptions import DomainException
from ...schemas.booking import BookingCancel, BookingCreate, CancelResponse, SessionResponse
from ...services.reservation_scheduler import ReservationScheduler
from ...services.session_registry import SessionRegistry
from ._errors import handle_domain_exception, raise_booking_error

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    scheduler: ReservationScheduler = Depends(get_reservation_scheduler),
) -> SessionResponse:
    """Book one slot; business rejections map to 400/402/404/409."""
    result = await asyncio.to_thread(
        scheduler.book,
        booking_data.member_id,
        booking_data.day,
        booking_data.slot_code,
        booking_data.location_id,
    )
    if result.error is not None:
        raise_booking_error(
            result.error,
            result.message,
            correlation_id=result.correlation_id,
            details=result.details,
        )
    return SessionResponse.model_validate(result.session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionResponse:
    try:
        session = await asyncio.to_thread(registry.get, session_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return SessionResponse.model_validate(session)


@router.post("/{session_id}/cancel", response_model=CancelResponse)
async def cancel_booking(
    session_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    cancel_data: Optional[BookingCancel] = Body(None),
    scheduler: ReservationScheduler = Depends(get_reservation_scheduler),
) -> CancelResponse:
    """Cancel a pending or confirmed session and return its credit."""
    reason = cancel_data.reason if cancel_data else None
    result = await asyncio.to_thread(scheduler.cancel, session_id, reason)
    if result.error is not None:
        raise_booking_error(result.error, result.message, details={"session_id": session_id})
    return CancelResponse(session=SessionResponse.model_validate(result.session), refunded=result.refunded)


@router.post("/{session_id}/approve", response_model=SessionResponse)
async def approve_booking(
    session_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    scheduler: ReservationScheduler = Depends(get_reservation_scheduler),
) -> SessionResponse:
    result = await asyncio.to_thread(scheduler.approve, session_id)
    if result.error is not None:
        raise_booking_error(result.error, result.message, details={"session_id": session_id})
    return SessionResponse.model_validate(result.session)
