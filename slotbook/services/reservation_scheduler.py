# slotbook/services/reservation_scheduler.py
"""
Reservation Scheduler for slotbook

The booking state machine. A booking attempt moves through

    Requested -> SlotChecked -> CreditReserved -> Committed

and runs as a saga across the credit ledger and the session table: the credit
debit commits first, then the reservation commits under the slot lock. If the
reservation cannot be committed (slot taken meanwhile, database failure, or
the attempt ran past its deadline) the debit is compensated with a refund
before the result is returned, so the ledger is never left debited without a
session.

Expected business outcomes are returned as ``BookingResult``/``CancelResult``
values carrying a ``BookingErrorCode``; only a failed compensation raises.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
import logging
import time
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.booking_lock import slot_lock
from ..core.clock import Clock, SystemClock, get_gym_timezone
from ..core.config import Settings, settings as default_settings
from ..core.enums import ACTIVE_SESSION_STATUSES, BookingErrorCode, SessionStatus, SlotAvailability
from ..core.exceptions import (
    AlreadyRefundedException,
    BookingTimeoutException,
    CompensationFailedException,
    InsufficientCreditsException,
    InvalidDateException,
    NotFoundException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.ulid_helper import generate_ulid
from ..domain.slots import Slot, SlotCatalog
from ..domain.value_objects import Month
from ..models.training_session import TrainingSession
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .alert_service import AlertService
from .availability_service import AvailabilityEngine
from .base import BaseService
from .credit_ledger_service import CreditLedgerService
from .member_directory import MemberDirectory, StaticMemberDirectory

logger = logging.getLogger(__name__)

COMPENSATION_ATTEMPTS = 3


@dataclass(frozen=True)
class BookingResult:
    session: Optional[TrainingSession] = None
    error: Optional[BookingErrorCode] = None
    message: Optional[str] = None
    correlation_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, session: TrainingSession) -> "BookingResult":
        return cls(session=session)

    @classmethod
    def failure(
        cls,
        error: BookingErrorCode,
        message: str,
        *,
        correlation_id: Optional[str] = None,
        **details: Any,
    ) -> "BookingResult":
        return cls(error=error, message=message, correlation_id=correlation_id, details=details)


@dataclass(frozen=True)
class CancelResult:
    session: Optional[TrainingSession] = None
    error: Optional[BookingErrorCode] = None
    message: Optional[str] = None
    refunded: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BlockBookingResult:
    """Per-day outcomes of booking one slot on one weekday across a range, in day order."""

    results: Dict[date, BookingResult] = field(default_factory=dict)

    @property
    def booked(self) -> List[TrainingSession]:
        return [r.session for r in self.results.values() if r.ok and r.session is not None]

    @property
    def failed(self) -> Dict[date, BookingResult]:
        return {day: r for day, r in self.results.items() if not r.ok}


@dataclass(frozen=True)
class SweepResult:
    as_of: datetime
    examined: int
    completed_ids: List[str]

    @property
    def completed(self) -> int:
        return len(self.completed_ids)


class ReservationScheduler(BaseService):
    """Books, cancels and completes training sessions."""

    def __init__(
        self,
        db: Session,
        *,
        clock: Optional[Clock] = None,
        member_directory: Optional[MemberDirectory] = None,
        ledger: Optional[CreditLedgerService] = None,
        availability_engine: Optional[AvailabilityEngine] = None,
        alert_service: Optional[AlertService] = None,
        config: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.clock = clock or SystemClock(self.config.timezone)
        self.tz = get_gym_timezone(self.config.timezone)
        self.member_directory = member_directory or StaticMemberDirectory(allow_any=True)
        self.ledger = ledger or CreditLedgerService(db, clock=self.clock, config=self.config)
        self.availability_engine = availability_engine or AvailabilityEngine.from_settings(self.config)
        self.alert_service = alert_service or AlertService(db)
        self.session_repository = RepositoryFactory.create_training_session_repository(db)

    @property
    def catalog(self) -> SlotCatalog:
        return self.availability_engine.catalog

    def _local_now(self) -> datetime:
        return self.clock.now().astimezone(self.tz)

    def _validate_day(self, day: date, slot: Slot, now: datetime) -> None:
        today = now.date()
        if day < today:
            raise InvalidDateException(day, "date is in the past")
        if day > today + timedelta(days=self.config.booking_horizon_days):
            raise InvalidDateException(
                day, f"date is more than {self.config.booking_horizon_days} days ahead"
            )
        if not self.availability_engine.is_operating_month(Month.of(day)):
            raise InvalidDateException(day, "the gym is not operating in this month")
        if not slot.offered_on(day):
            raise InvalidDateException(day, f"slot {slot.code} is not offered on this weekday")
        if slot.starts_at(day, self.tz) <= now:
            raise InvalidDateException(day, f"slot {slot.code} has already started")

    def _failure(self, error: BookingErrorCode, message: str, **kwargs: Any) -> BookingResult:
        prometheus_metrics.record_booking_outcome(error.value.lower())
        return BookingResult.failure(error, message, **kwargs)

    @BaseService.measure_operation("book")
    def book(
        self,
        member_id: str,
        day: date,
        slot_code: str,
        location_id: Optional[str] = None,
        *,
        block_booking_id: Optional[str] = None,
    ) -> BookingResult:
        """
        Book ``slot_code`` on ``day`` for ``member_id``.

        Returns a successful result holding the new session, or a failure
        result. No failure leaves a session or an uncompensated debit behind.
        """
        deadline = time.monotonic() + self.config.booking_timeout_seconds
        location = location_id or self.config.default_location_id

        if not self.member_directory.exists(member_id):
            return self._failure(BookingErrorCode.MEMBER_NOT_FOUND, "Member not found")

        slot = self.catalog.get(slot_code)
        if slot is None:
            return self._failure(
                BookingErrorCode.SLOT_UNAVAILABLE, f"Unknown slot {slot_code}", slot_code=slot_code
            )

        now = self._local_now()
        try:
            self._validate_day(day, slot, now)
        except InvalidDateException as exc:
            return self._failure(BookingErrorCode.INVALID_DATE, exc.message, **exc.details)

        # SlotChecked
        holder = self.session_repository.get_active_for_slot(location, day, slot.code)
        if self.availability_engine.slot_status(day, slot.code, [holder] if holder else []) != SlotAvailability.FREE:
            return self._failure(
                BookingErrorCode.SLOT_UNAVAILABLE,
                f"Slot {slot.code} on {day.isoformat()} is already booked",
                day=day.isoformat(),
                slot_code=slot.code,
            )
        self.db.rollback()

        # CreditReserved
        booking_id = generate_ulid()
        try:
            self.ledger.reserve_credits(
                member_id,
                booking_id,
                slot.credits,
                timeout=deadline - time.monotonic(),
            )
        except InsufficientCreditsException as exc:
            return self._failure(BookingErrorCode.INSUFFICIENT_CREDITS, exc.message, **exc.details)
        except Exception as exc:
            correlation_id = generate_ulid()
            self.logger.error(
                f"Ledger debit failed for booking {booking_id}: {str(exc)}",
                extra={"correlation_id": correlation_id, "member_id": member_id, "error_type": type(exc).__name__},
            )
            return self._failure(
                BookingErrorCode.BOOKING_FAILED,
                "Booking could not be completed",
                correlation_id=correlation_id,
            )

        # Committed
        try:
            session = self._commit_reservation(
                booking_id, member_id, location, day, slot, deadline, block_booking_id
            )
        except SlotUnavailableException as exc:
            self._compensate(member_id, booking_id, generate_ulid(), exc)
            return self._failure(BookingErrorCode.SLOT_UNAVAILABLE, exc.message, **exc.details)
        except Exception as exc:
            correlation_id = generate_ulid()
            self.logger.error(
                f"Reservation commit failed for booking {booking_id}: {str(exc)}",
                extra={"correlation_id": correlation_id, "member_id": member_id, "error_type": type(exc).__name__},
            )
            self._compensate(member_id, booking_id, correlation_id, exc)
            return self._failure(
                BookingErrorCode.BOOKING_FAILED,
                "Booking could not be completed",
                correlation_id=correlation_id,
            )

        prometheus_metrics.record_booking_outcome(session.status.lower())
        self.log_operation(
            "book",
            member_id=member_id,
            session_id=session.id,
            session_date=day.isoformat(),
            slot_code=slot.code,
        )
        return BookingResult.success(session)

    @BaseService.measure_operation("book_block")
    def book_block(
        self,
        member_id: str,
        weekday: int,
        slot_code: str,
        start: date,
        end: date,
        *,
        location_id: Optional[str] = None,
        block_booking_id: Optional[str] = None,
    ) -> BlockBookingResult:
        """
        Book ``slot_code`` on every ISO ``weekday`` from ``start`` to ``end``.

        Each occurrence is an independent ``book`` call, so one day failing
        (slot taken, credits exhausted, beyond the horizon) does not undo the
        others.
        """
        if not 1 <= weekday <= 7:
            raise ValidationException("weekday must be an ISO weekday (1-7)", code="INVALID_WEEKDAY")
        if end < start:
            raise ValidationException("Block end must not be before its start", code="INVALID_DATE_RANGE")

        results: Dict[date, BookingResult] = {}
        for day in self.catalog.occurrences(slot_code, weekday, start, end):
            results[day] = self.book(
                member_id, day, slot_code, location_id, block_booking_id=block_booking_id
            )
        block = BlockBookingResult(results=results)
        self.log_operation(
            "book_block",
            member_id=member_id,
            slot_code=slot_code,
            booked=len(block.booked),
            failed=len(block.failed),
        )
        return block

    def _commit_reservation(
        self,
        booking_id: str,
        member_id: str,
        location_id: str,
        day: date,
        slot: Slot,
        deadline: float,
        block_booking_id: Optional[str] = None,
    ) -> TrainingSession:
        timeout = self.config.booking_timeout_seconds
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise BookingTimeoutException("slot lock", timeout)

        with slot_lock(location_id, day, slot.code, timeout=remaining) as acquired:
            if not acquired:
                raise BookingTimeoutException("slot lock", timeout)
            with self.transaction():
                if self.session_repository.get_active_for_slot(location_id, day, slot.code) is not None:
                    raise SlotUnavailableException(day, slot.code, location_id)

                now = self.clock.now()
                pending = self.config.require_manual_approval
                try:
                    session = self.session_repository.create(
                        id=booking_id,
                        member_id=member_id,
                        location_id=location_id,
                        session_date=day,
                        slot_code=slot.code,
                        start_time=slot.start,
                        end_time=slot.end,
                        credits_used=slot.credits,
                        block_booking_id=block_booking_id,
                        status=(SessionStatus.PENDING if pending else SessionStatus.CONFIRMED).value,
                        confirmed_at=None if pending else now,
                    )
                except IntegrityError as exc:
                    raise SlotUnavailableException(day, slot.code, location_id) from exc

                if time.monotonic() > deadline:
                    raise BookingTimeoutException("commit", timeout)
        return session

    def _compensate(
        self, member_id: str, booking_id: str, correlation_id: str, cause: BaseException
    ) -> None:
        """Refund the debit for a booking that did not commit."""
        self._refund_or_alert(
            member_id,
            booking_id,
            correlation_id,
            reason="Booking could not be completed",
            stage="book",
            cause=cause,
        )

    def _refund_or_alert(
        self,
        member_id: str,
        booking_id: str,
        correlation_id: str,
        *,
        reason: str,
        stage: str,
        cause: Optional[BaseException] = None,
    ) -> bool:
        """
        Refund ``booking_id``, retrying transient ledger failures.

        Returns False when the ledger holds no debit for the booking. When
        every attempt fails an operator alert is recorded and
        CompensationFailedException is raised.
        """
        last_error: Optional[BaseException] = None
        for attempt in range(1, COMPENSATION_ATTEMPTS + 1):
            try:
                self.db.rollback()
                self.ledger.refund(booking_id, reason=reason)
                self.logger.info(
                    f"Refunded booking {booking_id}",
                    extra={"correlation_id": correlation_id, "stage": stage},
                )
                return True
            except AlreadyRefundedException:
                return True
            except NotFoundException:
                self.logger.warning(f"No ledger debit found for booking {booking_id}")
                return False
            except Exception as exc:
                last_error = exc
                self.logger.warning(
                    f"Compensation attempt {attempt} for booking {booking_id} failed: {str(exc)}",
                    extra={"correlation_id": correlation_id},
                )

        context: Dict[str, Any] = {"stage": stage}
        if cause is not None:
            context.update(cause=str(cause), cause_type=type(cause).__name__)
        alert_id = self.alert_service.record_compensation_failure(
            member_id=member_id,
            booking_id=booking_id,
            correlation_id=correlation_id,
            error=last_error or cause,
            context=context,
        )
        raise CompensationFailedException(booking_id, correlation_id, alert_id) from last_error

    def _is_late_cancel(self, session: TrainingSession, now: datetime) -> bool:
        cutoff = self.config.late_cancel_cutoff_hours
        if cutoff is None:
            return False
        starts_at = self.tz.localize(datetime.combine(session.session_date, session.start_time))
        return starts_at - now < timedelta(hours=cutoff)

    @BaseService.measure_operation("cancel")
    def cancel(self, session_id: str, reason: Optional[str] = None) -> CancelResult:
        """
        Cancel a pending or confirmed session, free its slot and refund it.

        Inside the late-cancellation window the slot is freed but the credit
        is kept.
        """
        session = self.session_repository.get_by_id(session_id)
        if session is None:
            return CancelResult(error=BookingErrorCode.SESSION_NOT_FOUND, message="Session not found")
        if not session.is_cancellable:
            return CancelResult(
                session=session,
                error=BookingErrorCode.ALREADY_TERMINAL,
                message=f"Session is already {session.status.lower()}",
            )

        now = self.clock.now()
        forfeit = self._is_late_cancel(session, now)
        with self.transaction():
            changed = self.session_repository.transition_status(
                session_id,
                from_statuses=ACTIVE_SESSION_STATUSES,
                to_status=SessionStatus.CANCELLED,
                cancelled_at=now,
                cancellation_reason=reason,
            )
        if not changed:
            # Lost a race with another cancel or the sweep
            self.db.refresh(session)
            return CancelResult(
                session=session,
                error=BookingErrorCode.ALREADY_TERMINAL,
                message=f"Session is already {session.status.lower()}",
            )

        refunded = False
        if forfeit:
            self.logger.info(f"Late cancellation of session {session_id}; credit forfeited")
        else:
            refunded = self._refund_or_alert(
                session.member_id,
                session_id,
                generate_ulid(),
                reason="Session cancelled",
                stage="cancel",
            )
            if refunded:
                with self.transaction():
                    self.session_repository.mark_refund_issued(session_id)

        self.db.refresh(session)
        self.log_operation("cancel", session_id=session_id, refunded=refunded, late=forfeit)
        return CancelResult(session=session, refunded=refunded)

    @BaseService.measure_operation("approve")
    def approve(self, session_id: str) -> CancelResult:
        """Confirm a session that was booked pending manual approval."""
        session = self.session_repository.get_by_id(session_id)
        if session is None:
            return CancelResult(error=BookingErrorCode.SESSION_NOT_FOUND, message="Session not found")
        with self.transaction():
            changed = self.session_repository.transition_status(
                session_id,
                from_statuses=[SessionStatus.PENDING],
                to_status=SessionStatus.CONFIRMED,
                confirmed_at=self.clock.now(),
            )
        self.db.refresh(session)
        if not changed:
            return CancelResult(
                session=session,
                error=BookingErrorCode.ALREADY_TERMINAL,
                message=f"Session is {session.status.lower()}, not pending",
            )
        return CancelResult(session=session)

    @BaseService.measure_operation("sweep_completions")
    def sweep_completions(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Complete every confirmed session whose slot ended before ``now``.

        Each transition is conditional on the row still being confirmed, so
        repeated or concurrent sweeps and cancels never double-apply.
        """
        as_of = now or self.clock.now()
        local = as_of.astimezone(self.tz)
        candidates = self.session_repository.get_confirmed_ended_before(
            local.date(), local.time().replace(tzinfo=None)
        )
        completed: List[str] = []
        with self.transaction():
            for candidate in candidates:
                if self.session_repository.transition_status(
                    candidate.id,
                    from_statuses=[SessionStatus.CONFIRMED],
                    to_status=SessionStatus.COMPLETED,
                    completed_at=as_of,
                ):
                    completed.append(candidate.id)
        if completed:
            self.log_operation("sweep_completions", completed=len(completed), as_of=as_of.isoformat())
        return SweepResult(as_of=as_of, examined=len(candidates), completed_ids=completed)
