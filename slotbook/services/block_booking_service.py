# slotbook/services/block_booking_service.py
"""
Block Booking Service for slotbook

Staff book a member into the same slot every week across a date range. The
pattern is stored; occurrences inside the booking horizon are booked straight
away through the ReservationScheduler and the rest are booked by the fill
task as they come into range. Pausing stops further occurrences being
booked, extending pushes the end date out, and deleting removes the pattern
while leaving the sessions it already created.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.clock import Clock
from ..core.config import Settings
from ..core.enums import BlockBookingStatus
from ..core.exceptions import MemberNotFoundException, NotFoundException, ValidationException
from ..models.block_booking import BlockBooking
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .reservation_scheduler import BlockBookingResult, ReservationScheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockPreview:
    """How far a member's current balance goes towards a block."""

    days: List[date]
    credits_per_session: int
    balance: int

    @property
    def sessions(self) -> int:
        return len(self.days)

    @property
    def credits_required(self) -> int:
        return self.sessions * self.credits_per_session

    @property
    def sessions_covered(self) -> int:
        return min(self.sessions, max(self.balance, 0) // self.credits_per_session)

    @property
    def sessions_needing_payment(self) -> int:
        return self.sessions - self.sessions_covered

    @property
    def credits_needed(self) -> int:
        return max(0, self.credits_required - self.balance)


@dataclass(frozen=True)
class BlockBookingOutcome:
    block: Optional[BlockBooking]
    result: BlockBookingResult = field(default_factory=BlockBookingResult)


class BlockBookingService(BaseService):
    def __init__(
        self,
        db: Session,
        *,
        scheduler: Optional[ReservationScheduler] = None,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.scheduler = scheduler or ReservationScheduler(db, clock=clock, config=config)
        self.config = self.scheduler.config
        self.clock = self.scheduler.clock
        self.block_repository = RepositoryFactory.create_block_booking_repository(db)
        self.session_repository = RepositoryFactory.create_training_session_repository(db)

    def _today(self, now: Optional[datetime] = None) -> date:
        return (now or self.clock.now()).astimezone(self.scheduler.tz).date()

    def _validate_pattern(self, weekday: int, slot_code: str, start: date, end: date) -> None:
        if not 1 <= weekday <= 7:
            raise ValidationException("weekday must be an ISO weekday (1-7)", code="INVALID_WEEKDAY")
        if end < start:
            raise ValidationException("Block end must not be before its start", code="INVALID_DATE_RANGE")
        slot = self.scheduler.catalog.require(slot_code)
        if weekday not in slot.weekdays:
            raise ValidationException(
                f"Slot {slot_code} is not offered on weekday {weekday}",
                code="SLOT_NOT_OFFERED",
                details={"slot_code": slot_code, "weekday": weekday},
            )

    def get(self, block_id: str) -> BlockBooking:
        block = self.block_repository.get_by_id(block_id)
        if block is None:
            raise NotFoundException(
                "Block booking not found",
                code="BLOCK_BOOKING_NOT_FOUND",
                details={"block_booking_id": block_id},
            )
        return block

    def list_for_member(self, member_id: str) -> List[BlockBooking]:
        return self.block_repository.list_for_member(member_id)

    def preview(self, member_id: str, weekday: int, slot_code: str, start: date, end: date) -> BlockPreview:
        self._validate_pattern(weekday, slot_code, start, end)
        slot = self.scheduler.catalog.require(slot_code)
        return BlockPreview(
            days=self.scheduler.catalog.occurrences(slot_code, weekday, start, end),
            credits_per_session=slot.credits,
            balance=self.scheduler.ledger.balance(member_id),
        )

    @BaseService.measure_operation("create_block_booking")
    def create(
        self,
        member_id: str,
        weekday: int,
        slot_code: str,
        start: date,
        end: date,
        *,
        location_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> BlockBookingOutcome:
        """Store the pattern and book every occurrence already inside the horizon."""
        if not self.scheduler.member_directory.exists(member_id):
            raise MemberNotFoundException(member_id)
        self._validate_pattern(weekday, slot_code, start, end)
        if end < self._today():
            raise ValidationException("Block ends in the past", code="INVALID_DATE_RANGE")

        with self.transaction():
            block = self.block_repository.create(
                member_id=member_id,
                location_id=location_id or self.config.default_location_id,
                weekday=weekday,
                slot_code=slot_code,
                start_date=start,
                end_date=end,
                status=BlockBookingStatus.ACTIVE.value,
                notes=notes,
            )
        result = self._book_due(block)
        self.log_operation(
            "create_block_booking",
            block_booking_id=block.id,
            member_id=member_id,
            booked=len(result.booked),
            failed=len(result.failed),
        )
        return BlockBookingOutcome(block=block, result=result)

    def _book_due(self, block: BlockBooking, now: Optional[datetime] = None) -> BlockBookingResult:
        """Book occurrences between the last booked day and the horizon."""
        today = self._today(now)
        horizon = today + timedelta(days=self.config.booking_horizon_days)
        first = max(block.start_date, today)
        if block.booked_through is not None:
            first = max(first, block.booked_through + timedelta(days=1))
        last = min(block.end_date, horizon)
        if first > last:
            return BlockBookingResult()

        block_id = block.id
        result = self.scheduler.book_block(
            block.member_id,
            block.weekday,
            block.slot_code,
            first,
            last,
            location_id=block.location_id,
            block_booking_id=block_id,
        )
        for day, failure in result.failed.items():
            self.logger.warning(
                f"Block booking {block_id} could not book {day.isoformat()}: {failure.error.value}",
                extra={"block_booking_id": block_id, "code": failure.error.value},
            )
        with self.transaction():
            self.block_repository.set_booked_through(block, last)
        return result

    @BaseService.measure_operation("pause_block_booking")
    def pause(self, block_id: str) -> BlockBooking:
        block = self.get(block_id)
        with self.transaction():
            self.block_repository.update(block, status=BlockBookingStatus.PAUSED.value)
        self.log_operation("pause_block_booking", block_booking_id=block_id)
        return block

    @BaseService.measure_operation("resume_block_booking")
    def resume(self, block_id: str) -> BlockBookingOutcome:
        """Reactivate a paused pattern and book whatever has come into range."""
        block = self.get(block_id)
        with self.transaction():
            self.block_repository.update(block, status=BlockBookingStatus.ACTIVE.value)
        result = self._book_due(block)
        self.log_operation("resume_block_booking", block_booking_id=block_id, booked=len(result.booked))
        return BlockBookingOutcome(block=block, result=result)

    @BaseService.measure_operation("extend_block_booking")
    def extend(self, block_id: str, new_end: date) -> BlockBookingOutcome:
        block = self.get(block_id)
        if new_end <= block.end_date:
            raise ValidationException(
                "New end date must be after the current end date",
                code="INVALID_DATE_RANGE",
                details={"end_date": block.end_date.isoformat()},
            )
        with self.transaction():
            self.block_repository.update(block, end_date=new_end)
        result = self._book_due(block) if block.is_active else BlockBookingResult()
        self.log_operation("extend_block_booking", block_booking_id=block_id, end_date=new_end.isoformat())
        return BlockBookingOutcome(block=block, result=result)

    @BaseService.measure_operation("delete_block_booking")
    def delete(self, block_id: str) -> int:
        """
        Remove the pattern. Sessions it already created are kept.

        Returns how many sessions the pattern had created.
        """
        block = self.get(block_id)
        created = len(self.session_repository.list_for_block(block_id))
        with self.transaction():
            self.block_repository.delete(block)
        self.log_operation("delete_block_booking", block_booking_id=block_id, sessions_kept=created)
        return created

    @BaseService.measure_operation("fill_block_bookings")
    def fill_due(self, now: Optional[datetime] = None) -> Dict[str, BlockBookingResult]:
        """Book occurrences of every active pattern that have come into the horizon."""
        filled: Dict[str, BlockBookingResult] = {}
        for block in self.block_repository.list_due():
            filled[block.id] = self._book_due(block, now)
        return filled


__all__ = ["BlockBookingOutcome", "BlockBookingService", "BlockPreview"]
