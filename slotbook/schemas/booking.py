"""Booking and session schemas."""

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from ..core.enums import BookingErrorCode, SessionStatus
from .base import StandardizedModel, StrictRequestModel


class BookingCreate(StrictRequestModel):
    """Request to book one slot on one day."""

    member_id: str = Field(..., min_length=1, max_length=64, description="Member making the booking")
    day: date = Field(..., description="Day of the session")
    slot_code: str = Field(..., min_length=1, max_length=32, description="Configured slot code, e.g. AM1")
    location_id: Optional[str] = Field(None, max_length=64, description="Gym location; defaults to the main site")


class BookingCancel(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")


class SessionResponse(StandardizedModel):
    id: str
    member_id: str
    location_id: str
    session_date: date
    slot_code: str
    start_time: time
    end_time: time
    credits_used: int
    status: SessionStatus
    refund_issued: bool = False
    block_booking_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class SessionListResponse(StandardizedModel):
    member_id: str
    sessions: List[SessionResponse]
    total: int


class CancelResponse(StandardizedModel):
    session: SessionResponse
    refunded: bool


class BookingErrorDetail(StandardizedModel):
    """Body of a rejected booking or cancellation."""

    message: str
    code: BookingErrorCode
    correlation_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
