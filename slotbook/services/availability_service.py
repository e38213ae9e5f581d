# slotbook/services/availability_service.py
"""
Availability for a gym location.

``AvailabilityEngine`` is a pure function of (month, reservations): it reads
no clock and no database. ``AvailabilityService`` loads the reservations for a
month and hands them to the engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
from typing import Dict, Iterable, Optional, Protocol, Set, Tuple

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.enums import SessionStatus, SlotAvailability
from ..domain.slots import SlotCatalog
from ..domain.value_objects import Month, MonthRange
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

DayAvailability = Dict[str, SlotAvailability]
MonthAvailability = Dict[date, DayAvailability]


class ReservationLike(Protocol):
    session_date: date
    slot_code: str


@dataclass(frozen=True)
class DaySummary:
    day: date
    free: int
    booked: int
    operating: bool

    @property
    def total(self) -> int:
        return self.free + self.booked


def _occupied(reservations: Iterable[ReservationLike]) -> Set[Tuple[date, str]]:
    occupied: Set[Tuple[date, str]] = set()
    for reservation in reservations:
        status = getattr(reservation, "status", None)
        if status is not None and SessionStatus(status) == SessionStatus.CANCELLED:
            continue
        occupied.add((reservation.session_date, reservation.slot_code))
    return occupied


class AvailabilityEngine:
    """Per-day, per-slot availability from a slot catalogue and reservations."""

    def __init__(self, catalog: SlotCatalog, operating_range: Optional[MonthRange] = None) -> None:
        self.catalog = catalog
        self.operating_range = operating_range or MonthRange()

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "AvailabilityEngine":
        cfg = config or default_settings
        return cls(
            SlotCatalog.from_settings(cfg),
            MonthRange.from_strings(cfg.operating_start, cfg.operating_end),
        )

    def is_operating_month(self, month: Month) -> bool:
        return month in self.operating_range

    def availability(
        self, month: Month, reservations: Iterable[ReservationLike]
    ) -> MonthAvailability:
        """
        Every day of ``month`` mapped to every catalogue slot.

        A slot is ``unavailable`` when the month is outside the operating
        range or the slot is not offered on that ISO weekday; otherwise it is
        ``booked`` iff a non-cancelled reservation holds it, else ``free``.
        Reservations outside the month are ignored.
        """
        operating = self.is_operating_month(month)
        occupied = _occupied(reservations) if operating else set()
        result: MonthAvailability = {}
        for day in month.days():
            day_map: DayAvailability = {}
            for slot in self.catalog:
                if not operating or not slot.offered_on(day):
                    day_map[slot.code] = SlotAvailability.UNAVAILABLE
                elif (day, slot.code) in occupied:
                    day_map[slot.code] = SlotAvailability.BOOKED
                else:
                    day_map[slot.code] = SlotAvailability.FREE
            result[day] = day_map
        return result

    def slot_status(
        self, day: date, slot_code: str, reservations: Iterable[ReservationLike]
    ) -> SlotAvailability:
        """Availability restricted to a single (day, slot)."""
        slot = self.catalog.get(slot_code)
        if slot is None or not self.is_operating_month(Month.of(day)) or not slot.offered_on(day):
            return SlotAvailability.UNAVAILABLE
        if (day, slot_code) in _occupied(reservations):
            return SlotAvailability.BOOKED
        return SlotAvailability.FREE

    @staticmethod
    def summarize(month_availability: MonthAvailability) -> Dict[date, DaySummary]:
        """Free/booked counts per day; unavailable slots are not counted."""
        summary: Dict[date, DaySummary] = {}
        for day, slots in month_availability.items():
            free = sum(1 for value in slots.values() if value == SlotAvailability.FREE)
            booked = sum(1 for value in slots.values() if value == SlotAvailability.BOOKED)
            summary[day] = DaySummary(day=day, free=free, booked=booked, operating=(free + booked) > 0)
        return summary


class AvailabilityService(BaseService):
    """Loads reservations and answers availability queries for a location."""

    def __init__(
        self,
        db: Session,
        engine: Optional[AvailabilityEngine] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.engine = engine or AvailabilityEngine.from_settings(self.config)
        self.session_repository = RepositoryFactory.create_training_session_repository(db)

    @BaseService.measure_operation("month_availability")
    def availability(self, month: Month, location_id: Optional[str] = None) -> MonthAvailability:
        location = location_id or self.config.default_location_id
        reservations = self.session_repository.get_reservations_in_range(
            location, month.first_day, month.last_day
        )
        return self.engine.availability(month, reservations)

    @BaseService.measure_operation("slot_status")
    def slot_status(self, day: date, slot_code: str, location_id: Optional[str] = None) -> SlotAvailability:
        location = location_id or self.config.default_location_id
        holder = self.session_repository.get_active_for_slot(location, day, slot_code)
        return self.engine.slot_status(day, slot_code, [holder] if holder else [])
