# slotbook/services/alert_service.py
"""
Operator alerts.

Compensation failures leave a member's ledger debited without a session, and a
failed purchase settlement leaves a captured charge without credits. Neither
has an automatic recovery. They are persisted as critical alerts carrying the
member's full ledger history so that an operator can reconcile by hand.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import AlertSeverity
from ..core.exceptions import RepositoryException, ServiceException
from ..models.monitoring import OperatorAlert
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

COMPENSATION_FAILED_ALERT = "compensation_failed"
PURCHASE_SETTLEMENT_FAILED_ALERT = "purchase_settlement_failed"

_COMPENSATION_MESSAGES = {
    "book": "after the booking could not be committed",
    "cancel": "after the session was cancelled",
}


class AlertService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.alert_repository = RepositoryFactory.create_operator_alert_repository(db)
        self.ledger_repository = RepositoryFactory.create_credit_ledger_repository(db)

    def _ledger_history(self, member_id: str) -> List[Dict[str, Any]]:
        # Oldest first reads naturally when reconciling
        entries = self.ledger_repository.list_entries(member_id)
        return [entry.to_dict() for entry in reversed(entries)]

    @BaseService.measure_operation("record_compensation_failure")
    def record_compensation_failure(
        self,
        *,
        member_id: str,
        booking_id: str,
        correlation_id: str,
        error: BaseException,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        """
        Persist a critical alert for a refund that could not be applied.

        Returns the alert id, or None when the alert itself could not be
        stored (the failure is still logged at CRITICAL).
        """
        prometheus_metrics.record_compensation_failure()
        details: Dict[str, Any] = {"booking_id": booking_id}
        details.update(context or {})
        situation = _COMPENSATION_MESSAGES.get(details.get("stage", "book"), "")
        return self._record_critical(
            alert_type=COMPENSATION_FAILED_ALERT,
            title="Booking compensation failed",
            message=(
                f"Refund for booking {booking_id} (member {member_id}) failed {situation}. "
                "Manual reconciliation required."
            ),
            member_id=member_id,
            correlation_id=correlation_id,
            error=error,
            details=details,
        )

    @BaseService.measure_operation("record_purchase_settlement_failure")
    def record_purchase_settlement_failure(
        self,
        *,
        member_id: str,
        purchase_id: str,
        charge_id: str,
        correlation_id: str,
        error: BaseException,
    ) -> Optional[str]:
        """Persist a critical alert for a captured charge whose credits were never added."""
        return self._record_critical(
            alert_type=PURCHASE_SETTLEMENT_FAILED_ALERT,
            title="Credit purchase settlement failed",
            message=(
                f"Charge {charge_id} for purchase {purchase_id} (member {member_id}) succeeded "
                "but the credits could not be added. Manual reconciliation required."
            ),
            member_id=member_id,
            correlation_id=correlation_id,
            error=error,
            details={"purchase_id": purchase_id, "charge_id": charge_id},
        )

    def _record_critical(
        self,
        *,
        alert_type: str,
        title: str,
        message: str,
        member_id: str,
        correlation_id: str,
        error: BaseException,
        details: Dict[str, Any],
    ) -> Optional[str]:
        self.logger.critical(
            message,
            extra={
                "alert_type": alert_type,
                "member_id": member_id,
                "correlation_id": correlation_id,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
        try:
            self.db.rollback()
            payload: Dict[str, Any] = {
                **details,
                "error": str(error),
                "error_type": type(error).__name__,
                "ledger_history": self._ledger_history(member_id),
            }
            with self.transaction():
                alert = self.alert_repository.create(
                    alert_type=alert_type,
                    severity=AlertSeverity.CRITICAL.value,
                    title=title,
                    message=message,
                    member_id=member_id,
                    correlation_id=correlation_id,
                    details=payload,
                )
            return alert.id
        except (RepositoryException, ServiceException) as exc:
            self.logger.critical(
                f"Unable to persist {alert_type} alert: {str(exc)}",
                extra={"correlation_id": correlation_id},
            )
            return None

    def list_open_alerts(self, alert_type: Optional[str] = None) -> List[OperatorAlert]:
        return self.alert_repository.list_unresolved(alert_type=alert_type)

    def alerts_for_correlation(self, correlation_id: str) -> List[OperatorAlert]:
        """Alerts raised for the failure a client was given ``correlation_id`` for."""
        return self.alert_repository.list_for_correlation(correlation_id)
