# slotbook/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .collaborators import get_clock, get_member_directory, get_payment_provider
from .database import get_db
from .services import (
    get_alert_service,
    get_availability_service,
    get_block_booking_service,
    get_credit_ledger_service,
    get_reservation_scheduler,
    get_session_registry,
)

__all__ = [
    # Database
    "get_db",
    # Collaborators
    "get_clock",
    "get_member_directory",
    "get_payment_provider",
    # Services
    "get_alert_service",
    "get_availability_service",
    "get_block_booking_service",
    "get_credit_ledger_service",
    "get_reservation_scheduler",
    "get_session_registry",
]
