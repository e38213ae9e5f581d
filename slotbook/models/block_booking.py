"""
Recurring block bookings.

A block books one slot on one weekday for a member across a date range. The
sessions it creates are ordinary training sessions; deleting the pattern
leaves them in place. Occurrences beyond the booking horizon are booked by the
fill task as they come into range, tracked by ``booked_through``.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Date, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..core.enums import BlockBookingStatus
from ..database import Base


class BlockBooking(Base):
    __tablename__ = "block_bookings"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    member_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    weekday: Mapped[int] = mapped_column(Integer, nullable=False, comment="ISO weekday, 1=Monday")
    slot_code: Mapped[str] = mapped_column(String(32), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=BlockBookingStatus.ACTIVE.value)
    booked_through: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("weekday BETWEEN 1 AND 7", name="ck_block_bookings_weekday"),
        CheckConstraint("start_date <= end_date", name="ck_block_bookings_date_order"),
        CheckConstraint("status IN ('ACTIVE', 'PAUSED')", name="ck_block_bookings_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<BlockBooking {self.id}: member={self.member_id}, weekday={self.weekday}, "
            f"slot={self.slot_code}, {self.start_date}..{self.end_date}, status={self.status}>"
        )

    @property
    def is_active(self) -> bool:
        return self.status == BlockBookingStatus.ACTIVE.value
