"""
Credit pack purchase records.

A purchase row is written before the payment provider is called and settles
to COMPLETED (with the ledger entry it produced) or FAILED. A charge that
succeeded without its credits being added is left NEEDS_RECONCILIATION for an
operator. Only completed purchases ever reach the ledger.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column
import ulid

from ..core.enums import PurchaseStatus
from ..database import Base


class CreditPurchase(Base):
    """A member's attempt to buy a credit pack."""

    __tablename__ = "credit_purchases"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    member_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    pack_code: Mapped[str] = mapped_column(String(32), nullable=False)
    credits: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_minor: Mapped[int] = mapped_column(Integer, nullable=False, comment="Total charged in minor units")
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    payment_method: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    payer_ref: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PurchaseStatus.PENDING.value)
    charge_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    ledger_entry_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    settled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'COMPLETED', 'FAILED', 'NEEDS_RECONCILIATION')",
            name="ck_credit_purchases_status",
        ),
        CheckConstraint("credits > 0", name="ck_credit_purchases_credits_positive"),
        CheckConstraint("amount_minor >= 0", name="ck_credit_purchases_amount_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<CreditPurchase(member_id={self.member_id}, pack={self.pack_code}, status={self.status})>"
