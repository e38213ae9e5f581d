# slotbook/models/training_session.py
"""
TrainingSession model for slotbook.

One row is both the Reservation (the binding of a member to a day and slot)
and the member-facing Session record with its lifecycle status. Rows are
created only by the ReservationScheduler.

Exclusivity: a partial unique index over (location, day, slot) that ignores
cancelled rows allows at most one active reservation per slot while letting a
cancelled slot be booked again.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.sql import func
import ulid

from ..core.enums import SessionStatus
from ..database import Base

ACTIVE_SLOT_INDEX_NAME = "uq_training_sessions_active_slot"


class TrainingSession(Base):
    """A member's reserved place in one slot on one day."""

    __tablename__ = "training_sessions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))

    member_id = Column(String(64), nullable=False, index=True)
    location_id = Column(String(64), nullable=False)

    # Snapshot of the slot at booking time
    session_date = Column(Date, nullable=False, index=True)
    slot_code = Column(String(32), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    credits_used = Column(Integer, nullable=False, default=1)
    block_booking_id = Column(String(26), nullable=True, index=True)

    status = Column(String(20), nullable=False, default=SessionStatus.CONFIRMED.value, index=True)
    refund_issued = Column(Boolean, nullable=False, default=False)
    cancellation_reason = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'COMPLETED', 'CANCELLED')",
            name="ck_training_sessions_status",
        ),
        CheckConstraint("credits_used >= 0", name="ck_training_sessions_credits_non_negative"),
        CheckConstraint("start_time < end_time", name="ck_training_sessions_time_order"),
        Index(
            ACTIVE_SLOT_INDEX_NAME,
            "location_id",
            "session_date",
            "slot_code",
            unique=True,
            sqlite_where=text("status <> 'CANCELLED'"),
            postgresql_where=text("status <> 'CANCELLED'"),
        ),
        Index("ix_training_sessions_member_date", "member_id", "session_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<TrainingSession {self.id}: member={self.member_id}, "
            f"date={self.session_date}, slot={self.slot_code}, status={self.status}>"
        )

    @property
    def status_enum(self) -> SessionStatus:
        return SessionStatus(self.status)

    @property
    def is_cancellable(self) -> bool:
        return self.status_enum.is_active
