"""
Credit ledger models.

Each member has one CreditAccount row which is locked around every balance
check-and-debit, and an append-only list of CreditLedgerEntry rows whose
signed amounts sum to the balance.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, event, func, text
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..core.exceptions import RepositoryException
from ..database import Base


class CreditAccount(Base):
    """Per-member lock anchor for ledger writes."""

    __tablename__ = "credit_accounts"

    member_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Bumped on every debit/refund so concurrent writers contend on this row
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<CreditAccount(member_id={self.member_id}, version={self.version})>"


class CreditLedgerEntry(Base):
    """Immutable credit transaction. Balance is the sum of ``amount``."""

    __tablename__ = "credit_ledger_entries"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    member_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("credit_accounts.member_id"), nullable=False, index=True
    )
    entry_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, comment="Signed credit delta")
    unit_price_minor: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    booking_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True, index=True)
    charge_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "entry_type IN ('purchase', 'consume', 'refund', 'comp')",
            name="ck_credit_ledger_entry_type",
        ),
        CheckConstraint(
            "(entry_type = 'consume' AND amount < 0) OR (entry_type <> 'consume' AND amount > 0)",
            name="ck_credit_ledger_amount_sign",
        ),
        Index(
            "uq_credit_ledger_consume_per_booking",
            "booking_id",
            unique=True,
            sqlite_where=text("entry_type = 'consume'"),
            postgresql_where=text("entry_type = 'consume'"),
        ),
        Index(
            "uq_credit_ledger_refund_per_booking",
            "booking_id",
            unique=True,
            sqlite_where=text("entry_type = 'refund'"),
            postgresql_where=text("entry_type = 'refund'"),
        ),
        Index("ix_credit_ledger_member_created", "member_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<CreditLedgerEntry({self.entry_type} {self.amount} "
            f"member={self.member_id}, booking={self.booking_id})>"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "member_id": self.member_id,
            "entry_type": self.entry_type,
            "amount": self.amount,
            "unit_price_minor": self.unit_price_minor,
            "booking_id": self.booking_id,
            "charge_id": self.charge_id,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@event.listens_for(CreditLedgerEntry, "before_update")
def _reject_ledger_update(_mapper: Any, _connection: Any, target: CreditLedgerEntry) -> None:
    raise RepositoryException(f"Ledger entry {target.id} is append-only and cannot be modified")


@event.listens_for(CreditLedgerEntry, "before_delete")
def _reject_ledger_delete(_mapper: Any, _connection: Any, target: CreditLedgerEntry) -> None:
    raise RepositoryException(f"Ledger entry {target.id} is append-only and cannot be deleted")
