# slotbook/repositories/operator_alert_repository.py
"""Operator alert persistence."""

import logging
from typing import List

from sqlalchemy.orm import Session

from ..models.monitoring import OperatorAlert
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class OperatorAlertRepository(BaseRepository[OperatorAlert]):
    def __init__(self, db: Session):
        super().__init__(db, OperatorAlert)

    def list_unresolved(self, *, alert_type: str | None = None) -> List[OperatorAlert]:
        query = self.db.query(OperatorAlert).filter(OperatorAlert.resolved_at.is_(None))
        if alert_type:
            query = query.filter(OperatorAlert.alert_type == alert_type)
        return self._execute_query(query.order_by(OperatorAlert.created_at.desc()))

    def list_for_correlation(self, correlation_id: str) -> List[OperatorAlert]:
        return self.find_by(correlation_id=correlation_id)


__all__ = ["OperatorAlertRepository"]
