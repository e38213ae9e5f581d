# slotbook/repositories/credit_ledger_repository.py
"""
Credit Ledger Repository for slotbook

Append-only access to ledger entries plus the per-member account row used
as the lock anchor for every balance check-and-write.
"""

from __future__ import annotations

import logging
from typing import List, Optional, cast

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import LedgerEntryType
from ..core.exceptions import RepositoryException
from ..models.ledger import CreditAccount, CreditLedgerEntry
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CreditLedgerRepository(BaseRepository[CreditLedgerEntry]):
    """Repository for credit ledger entries and accounts."""

    def __init__(self, db: Session):
        super().__init__(db, CreditLedgerEntry)
        self.logger = logging.getLogger(__name__)

    # Accounts

    def get_account(self, member_id: str) -> Optional[CreditAccount]:
        try:
            return self.db.get(CreditAccount, member_id)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load credit account %s: %s", member_id, str(exc))
            raise RepositoryException("Failed to load credit account") from exc

    def get_or_create_account(self, member_id: str) -> CreditAccount:
        """
        Return the member's account row, creating it on first use.

        Must be the first write of its transaction: a creation race rolls
        the session back before re-reading the winner's row.
        """
        account = self.get_account(member_id)
        if account is not None:
            return account
        try:
            account = CreditAccount(member_id=member_id, version=0)
            self.db.add(account)
            self.db.flush()
            return account
        except IntegrityError:
            # Created concurrently by another writer
            self.db.rollback()
            account = self.get_account(member_id)
            if account is None:
                raise RepositoryException(f"Credit account for {member_id} vanished after conflict")
            return account
        except SQLAlchemyError as exc:
            self.logger.error("Failed to create credit account %s: %s", member_id, str(exc))
            raise RepositoryException("Failed to create credit account") from exc

    def lock_account(self, member_id: str) -> CreditAccount:
        """
        Take the member's row lock for the rest of the transaction.

        PostgreSQL uses SELECT ... FOR UPDATE; every backend also bumps the
        version so that the write lock is held until commit.
        """
        self.get_or_create_account(member_id)
        try:
            query = self.db.query(CreditAccount).filter(CreditAccount.member_id == member_id)
            if self.supports_row_locks:
                query = query.with_for_update()
            account = cast(CreditAccount, query.one())
            account.version = (account.version or 0) + 1
            self.db.flush()
            return account
        except SQLAlchemyError as exc:
            self.logger.error("Failed to lock credit account %s: %s", member_id, str(exc))
            raise RepositoryException("Failed to lock credit account") from exc

    # Entries

    def get_balance(self, member_id: str) -> int:
        """Sum of all signed entry amounts for the member."""
        try:
            result = (
                self.db.query(func.coalesce(func.sum(CreditLedgerEntry.amount), 0))
                .filter(CreditLedgerEntry.member_id == member_id)
                .scalar()
            )
            return int(result or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to total ledger for %s: %s", member_id, str(exc))
            raise RepositoryException("Failed to compute credit balance") from exc

    def append(
        self,
        *,
        member_id: str,
        entry_type: LedgerEntryType,
        amount: int,
        booking_id: Optional[str] = None,
        unit_price_minor: Optional[int] = None,
        charge_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> CreditLedgerEntry:
        """
        Append one entry and flush it.

        IntegrityError propagates untouched so callers can map per-booking
        uniqueness violations to domain errors; the caller rolls back.
        """
        entry = CreditLedgerEntry(
            member_id=member_id,
            entry_type=entry_type.value,
            amount=amount,
            booking_id=booking_id,
            unit_price_minor=unit_price_minor,
            charge_id=charge_id,
            description=description,
        )
        try:
            self.db.add(entry)
            self.db.flush()
            return entry
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            self.logger.error("Failed to append %s entry for %s: %s", entry_type.value, member_id, str(exc))
            raise RepositoryException("Failed to append ledger entry") from exc

    def get_entry_for_booking(
        self, booking_id: str, entry_type: LedgerEntryType
    ) -> Optional[CreditLedgerEntry]:
        try:
            return (
                self.db.query(CreditLedgerEntry)
                .filter(
                    CreditLedgerEntry.booking_id == booking_id,
                    CreditLedgerEntry.entry_type == entry_type.value,
                )
                .first()
            )
        except SQLAlchemyError as exc:
            self.logger.error(
                "Failed to load %s entry for booking %s: %s", entry_type.value, booking_id, str(exc)
            )
            raise RepositoryException("Failed to load ledger entry for booking") from exc

    def get_consume_for_booking(self, booking_id: str) -> Optional[CreditLedgerEntry]:
        return self.get_entry_for_booking(booking_id, LedgerEntryType.CONSUME)

    def get_refund_for_booking(self, booking_id: str) -> Optional[CreditLedgerEntry]:
        return self.get_entry_for_booking(booking_id, LedgerEntryType.REFUND)

    def list_entries(self, member_id: str, *, limit: Optional[int] = None) -> List[CreditLedgerEntry]:
        """Entries newest first; ULIDs break ties within the same timestamp."""
        query = (
            self.db.query(CreditLedgerEntry)
            .filter(CreditLedgerEntry.member_id == member_id)
            .order_by(CreditLedgerEntry.created_at.desc(), CreditLedgerEntry.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return self._execute_query(query)


__all__ = ["CreditLedgerRepository"]
