"""Block booking schemas."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import ConfigDict, Field, model_validator

from ..core.enums import BlockBookingStatus, BookingErrorCode
from .base import StandardizedModel, StrictRequestModel


class BlockBookingPattern(StrictRequestModel):
    """One slot on one weekday, every week from start_date to end_date inclusive."""

    member_id: str = Field(..., min_length=1, max_length=64)
    weekday: int = Field(..., ge=1, le=7, description="ISO weekday, 1=Monday")
    slot_code: str = Field(..., min_length=1, max_length=32)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def _validate_range(self) -> "BlockBookingPattern":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class BlockBookingCreate(BlockBookingPattern):
    location_id: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = Field(None, max_length=500)


class BlockBookingExtend(StrictRequestModel):
    end_date: date


class BlockPreviewResponse(StandardizedModel):
    days: List[date]
    sessions: int
    credits_required: int
    balance: int
    sessions_covered: int
    sessions_needing_payment: int
    credits_needed: int


class BlockBookingResponse(StandardizedModel):
    id: str
    member_id: str
    location_id: str
    weekday: int
    slot_code: str
    start_date: date
    end_date: date
    status: BlockBookingStatus
    booked_through: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class BlockOccurrenceResponse(StandardizedModel):
    day: date
    session_id: Optional[str] = None
    error: Optional[BookingErrorCode] = None
    message: Optional[str] = None


class BlockBookingOutcomeResponse(StandardizedModel):
    block: BlockBookingResponse
    occurrences: List[BlockOccurrenceResponse]
    booked: int
    failed: int


class BlockBookingListResponse(StandardizedModel):
    member_id: str
    blocks: List[BlockBookingResponse]


class BlockBookingDeleteResponse(StandardizedModel):
    id: str
    sessions_kept: int
