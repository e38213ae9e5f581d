# slotbook/repositories/factory.py
"""
Repository Factory for slotbook

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .block_booking_repository import BlockBookingRepository
    from .credit_ledger_repository import CreditLedgerRepository
    from .credit_purchase_repository import CreditPurchaseRepository
    from .operator_alert_repository import OperatorAlertRepository
    from .training_session_repository import TrainingSessionRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_training_session_repository(db: Session) -> "TrainingSessionRepository":
        """Create repository for reservation/session rows."""
        from .training_session_repository import TrainingSessionRepository

        return TrainingSessionRepository(db)

    @staticmethod
    def create_credit_ledger_repository(db: Session) -> "CreditLedgerRepository":
        """Create repository for ledger entries and accounts."""
        from .credit_ledger_repository import CreditLedgerRepository

        return CreditLedgerRepository(db)

    @staticmethod
    def create_credit_purchase_repository(db: Session) -> "CreditPurchaseRepository":
        from .credit_purchase_repository import CreditPurchaseRepository

        return CreditPurchaseRepository(db)

    @staticmethod
    def create_operator_alert_repository(db: Session) -> "OperatorAlertRepository":
        from .operator_alert_repository import OperatorAlertRepository

        return OperatorAlertRepository(db)

    @staticmethod
    def create_block_booking_repository(db: Session) -> "BlockBookingRepository":
        """Create repository for recurring booking patterns."""
        from .block_booking_repository import BlockBookingRepository

        return BlockBookingRepository(db)
