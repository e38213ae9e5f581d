# slotbook/repositories/training_session_repository.py
"""
Training Session Repository for slotbook

All reads and writes of reservation/session rows. Status transitions are
issued as conditional UPDATEs guarded by the expected current status so that
concurrent cancel and sweep calls cannot both apply.
"""

from datetime import date, time
import logging
from typing import Any, List, Optional, Sequence, cast

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ACTIVE_SESSION_STATUSES, SessionStatus
from ..core.exceptions import RepositoryException
from ..models.training_session import TrainingSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_ACTIVE_VALUES = [status.value for status in ACTIVE_SESSION_STATUSES]


class TrainingSessionRepository(BaseRepository[TrainingSession]):
    """Repository for training session data access."""

    def __init__(self, db: Session):
        super().__init__(db, TrainingSession)
        self.logger = logging.getLogger(__name__)

    def create(self, **kwargs: Any) -> TrainingSession:
        """Create a session, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def get_active_for_slot(
        self, location_id: str, session_date: date, slot_code: str
    ) -> Optional[TrainingSession]:
        """The non-cancelled session holding (location, day, slot), if any."""
        try:
            return (
                self.db.query(TrainingSession)
                .filter(
                    TrainingSession.location_id == location_id,
                    TrainingSession.session_date == session_date,
                    TrainingSession.slot_code == slot_code,
                    TrainingSession.status != SessionStatus.CANCELLED.value,
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking slot occupancy: {str(e)}")
            raise RepositoryException(f"Failed to check slot occupancy: {str(e)}") from e

    def get_reservations_in_range(
        self, location_id: str, start_date: date, end_date: date
    ) -> List[TrainingSession]:
        """Non-cancelled sessions for a location between two days, inclusive."""
        query = self.db.query(TrainingSession).filter(
            TrainingSession.location_id == location_id,
            TrainingSession.session_date >= start_date,
            TrainingSession.session_date <= end_date,
            TrainingSession.status != SessionStatus.CANCELLED.value,
        )
        return self._execute_query(query)

    def list_for_day(self, location_id: str, session_date: date) -> List[TrainingSession]:
        query = (
            self.db.query(TrainingSession)
            .filter(
                TrainingSession.location_id == location_id,
                TrainingSession.session_date == session_date,
            )
            .order_by(TrainingSession.start_time.asc(), TrainingSession.created_at.asc())
        )
        return self._execute_query(query)

    def list_for_block(self, block_booking_id: str) -> List[TrainingSession]:
        query = (
            self.db.query(TrainingSession)
            .filter(TrainingSession.block_booking_id == block_booking_id)
            .order_by(TrainingSession.session_date.asc())
        )
        return self._execute_query(query)

    def list_upcoming(self, member_id: str, today: date) -> List[TrainingSession]:
        """Pending/confirmed sessions on or after ``today``, soonest first."""
        query = (
            self.db.query(TrainingSession)
            .filter(
                TrainingSession.member_id == member_id,
                TrainingSession.status.in_(_ACTIVE_VALUES),
                TrainingSession.session_date >= today,
            )
            .order_by(
                TrainingSession.session_date.asc(),
                TrainingSession.start_time.asc(),
                TrainingSession.id.asc(),
            )
        )
        return self._execute_query(query)

    def list_past(self, member_id: str, today: date) -> List[TrainingSession]:
        """
        Completed sessions, plus cancelled sessions dated before ``today``,
        most recent first.
        """
        query = (
            self.db.query(TrainingSession)
            .filter(
                TrainingSession.member_id == member_id,
                or_(
                    TrainingSession.status == SessionStatus.COMPLETED.value,
                    and_(
                        TrainingSession.status == SessionStatus.CANCELLED.value,
                        TrainingSession.session_date < today,
                    ),
                ),
            )
            .order_by(
                TrainingSession.session_date.desc(),
                TrainingSession.start_time.desc(),
                TrainingSession.id.desc(),
            )
        )
        return self._execute_query(query)

    def get_confirmed_ended_before(self, as_of_date: date, as_of_time: time) -> List[TrainingSession]:
        """Confirmed sessions whose (day, end time) precedes the given local instant."""
        query = self.db.query(TrainingSession).filter(
            TrainingSession.status == SessionStatus.CONFIRMED.value,
            or_(
                TrainingSession.session_date < as_of_date,
                and_(
                    TrainingSession.session_date == as_of_date,
                    TrainingSession.end_time < as_of_time,
                ),
            ),
        )
        return self._execute_query(query)

    def transition_status(
        self,
        session_id: str,
        *,
        from_statuses: Sequence[SessionStatus],
        to_status: SessionStatus,
        **fields: Any,
    ) -> bool:
        """
        Move a session to ``to_status`` only if it is currently in one of
        ``from_statuses``. Returns whether the row changed.
        """
        values = {TrainingSession.status: to_status.value}
        for key, value in fields.items():
            values[getattr(TrainingSession, key)] = value
        try:
            updated = (
                self.db.query(TrainingSession)
                .filter(
                    TrainingSession.id == session_id,
                    TrainingSession.status.in_([s.value for s in from_statuses]),
                )
                .update(values, synchronize_session="fetch")
            )
            return cast(int, updated) > 0
        except SQLAlchemyError as e:
            self.logger.error(f"Error transitioning session {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to update session status: {str(e)}") from e

    def mark_refund_issued(self, session_id: str) -> None:
        try:
            self.db.query(TrainingSession).filter(TrainingSession.id == session_id).update(
                {TrainingSession.refund_issued: True}, synchronize_session="fetch"
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error flagging refund for session {session_id}: {str(e)}")
            raise RepositoryException(f"Failed to flag refund: {str(e)}") from e


__all__ = ["TrainingSessionRepository"]
