# slotbook/repositories/block_booking_repository.py
"""
Block Booking Repository for slotbook

Persistence for recurring booking patterns. The sessions a pattern creates
live in the training session table and are not touched here.
"""

from datetime import date
import logging
from typing import Any, List

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import BlockBookingStatus
from ..core.exceptions import RepositoryException
from ..models.block_booking import BlockBooking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BlockBookingRepository(BaseRepository[BlockBooking]):
    def __init__(self, db: Session):
        super().__init__(db, BlockBooking)
        self.logger = logging.getLogger(__name__)

    def list_for_member(self, member_id: str) -> List[BlockBooking]:
        query = (
            self.db.query(BlockBooking)
            .filter(BlockBooking.member_id == member_id)
            .order_by(BlockBooking.start_date.asc(), BlockBooking.id.asc())
        )
        return self._execute_query(query)

    def list_due(self) -> List[BlockBooking]:
        """Active patterns with occurrences not yet booked."""
        query = (
            self.db.query(BlockBooking)
            .filter(
                BlockBooking.status == BlockBookingStatus.ACTIVE.value,
                or_(
                    BlockBooking.booked_through.is_(None),
                    BlockBooking.booked_through < BlockBooking.end_date,
                ),
            )
            .order_by(BlockBooking.start_date.asc(), BlockBooking.id.asc())
        )
        return self._execute_query(query)

    def update(self, block: BlockBooking, **changes: Any) -> BlockBooking:
        try:
            for key, value in changes.items():
                setattr(block, key, value)
            self.db.flush()
            return block
        except SQLAlchemyError as exc:
            self.logger.error("Failed to update block booking %s: %s", block.id, str(exc))
            raise RepositoryException(f"Failed to update block booking: {str(exc)}") from exc

    def set_booked_through(self, block: BlockBooking, through: date) -> BlockBooking:
        return self.update(block, booked_through=through)

    def delete(self, block: BlockBooking) -> None:
        try:
            self.db.delete(block)
            self.db.flush()
        except SQLAlchemyError as exc:
            self.logger.error("Failed to delete block booking %s: %s", block.id, str(exc))
            raise RepositoryException(f"Failed to delete block booking: {str(exc)}") from exc


__all__ = ["BlockBookingRepository"]
