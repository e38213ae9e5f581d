# slotbook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.clock import Clock
from ...services.alert_service import AlertService
from ...services.availability_service import AvailabilityService
from ...services.block_booking_service import BlockBookingService
from ...services.credit_ledger_service import CreditLedgerService
from ...services.member_directory import MemberDirectory
from ...services.payment_provider import PaymentProvider
from ...services.reservation_scheduler import ReservationScheduler
from ...services.session_registry import SessionRegistry
from .collaborators import get_clock, get_member_directory, get_payment_provider
from .database import get_db

logger = logging.getLogger(__name__)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_alert_service(db: Session = Depends(get_db)) -> AlertService:
    return AlertService(db)


def get_credit_ledger_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    payment_provider: PaymentProvider = Depends(get_payment_provider),
) -> CreditLedgerService:
    """Get CreditLedgerService instance with proper dependencies."""
    return CreditLedgerService(db, clock=clock, payment_provider=payment_provider)


def get_reservation_scheduler(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    member_directory: MemberDirectory = Depends(get_member_directory),
    ledger: CreditLedgerService = Depends(get_credit_ledger_service),
) -> ReservationScheduler:
    """
    Get ReservationScheduler instance.

    The scheduler shares the request's database session with its ledger.
    """
    return ReservationScheduler(db, clock=clock, member_directory=member_directory, ledger=ledger)


def get_session_registry(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> SessionRegistry:
    return SessionRegistry(db, clock=clock)


def get_block_booking_service(
    db: Session = Depends(get_db),
    scheduler: ReservationScheduler = Depends(get_reservation_scheduler),
) -> BlockBookingService:
    return BlockBookingService(db, scheduler=scheduler)
