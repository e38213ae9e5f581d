# slotbook/repositories/__init__.py
"""
Repository Pattern Implementation for slotbook

This package provides the repository layer for data access,
separating business logic from database queries.

Usage:
    from slotbook.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_training_session_repository(db)
    sessions = repository.list_upcoming(member_id, today)
"""

from .base_repository import BaseRepository
from .block_booking_repository import BlockBookingRepository
from .credit_ledger_repository import CreditLedgerRepository
from .credit_purchase_repository import CreditPurchaseRepository
from .factory import RepositoryFactory
from .operator_alert_repository import OperatorAlertRepository
from .training_session_repository import TrainingSessionRepository

__all__ = [
    "BaseRepository",
    "BlockBookingRepository",
    "CreditLedgerRepository",
    "CreditPurchaseRepository",
    "OperatorAlertRepository",
    "RepositoryFactory",
    "TrainingSessionRepository",
]
