# slotbook/repositories/credit_purchase_repository.py
"""
Credit Purchase Repository for slotbook

Tracks pack purchases from the moment a charge is attempted until it settles.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import PurchaseStatus
from ..core.exceptions import RepositoryException
from ..models.payment import CreditPurchase
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CreditPurchaseRepository(BaseRepository[CreditPurchase]):
    def __init__(self, db: Session):
        super().__init__(db, CreditPurchase)
        self.logger = logging.getLogger(__name__)

    def get_by_charge_id(self, charge_id: str) -> Optional[CreditPurchase]:
        return self.find_one_by(charge_id=charge_id)

    def list_for_member(self, member_id: str) -> List[CreditPurchase]:
        query = (
            self.db.query(CreditPurchase)
            .filter(CreditPurchase.member_id == member_id)
            .order_by(CreditPurchase.created_at.desc(), CreditPurchase.id.desc())
        )
        return self._execute_query(query)

    def mark_completed(
        self, purchase: CreditPurchase, *, charge_id: str, ledger_entry_id: str, at: datetime
    ) -> CreditPurchase:
        try:
            purchase.status = PurchaseStatus.COMPLETED.value
            purchase.charge_id = charge_id
            purchase.ledger_entry_id = ledger_entry_id
            purchase.settled_at = at
            self.db.flush()
            return purchase
        except SQLAlchemyError as exc:
            self.logger.error("Failed to settle purchase %s: %s", purchase.id, str(exc))
            raise RepositoryException("Failed to settle purchase") from exc

    def mark_failed(self, purchase: CreditPurchase, *, reason: str, at: datetime) -> CreditPurchase:
        try:
            purchase.status = PurchaseStatus.FAILED.value
            purchase.failure_reason = reason[:500]
            purchase.settled_at = at
            self.db.flush()
            return purchase
        except SQLAlchemyError as exc:
            self.logger.error("Failed to mark purchase %s failed: %s", purchase.id, str(exc))
            raise RepositoryException("Failed to record purchase failure") from exc

    def mark_needs_reconciliation(
        self, purchase: CreditPurchase, *, charge_id: str, reason: str, at: datetime
    ) -> CreditPurchase:
        try:
            purchase.status = PurchaseStatus.NEEDS_RECONCILIATION.value
            purchase.charge_id = charge_id
            purchase.failure_reason = reason[:500]
            purchase.settled_at = at
            self.db.flush()
            return purchase
        except SQLAlchemyError as exc:
            self.logger.error("Failed to flag purchase %s for reconciliation: %s", purchase.id, str(exc))
            raise RepositoryException("Failed to flag purchase for reconciliation") from exc


__all__ = ["CreditPurchaseRepository"]
