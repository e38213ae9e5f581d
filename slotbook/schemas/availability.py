"""Availability schemas."""

from datetime import date
from typing import Dict, List

from pydantic import Field

from ..core.enums import SlotAvailability
from .base import StandardizedModel


class SlotInfo(StandardizedModel):
    code: str
    label: str
    start: str = Field(description="HH:MM local start")
    end: str = Field(description="HH:MM local end")
    credits: int


class DayAvailabilityResponse(StandardizedModel):
    day: date
    slots: Dict[str, SlotAvailability]
    free: int
    booked: int


class MonthAvailabilityResponse(StandardizedModel):
    month: str = Field(description="YYYY-MM")
    location_id: str
    slots: List[SlotInfo]
    days: List[DayAvailabilityResponse]
