# slotbook/services/credit_ledger_service.py
"""
Credit Ledger Service for slotbook

Owns each member's credit balance. The balance is always the sum of the
member's append-only ledger entries and is recomputed on every read.

Every write that depends on the balance runs inside the member's keyed lock
and under the member's account row lock, and commits before returning, so a
balance check-and-debit is a single atomic unit.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import logging
from typing import Iterator, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.booking_lock import member_lock
from ..core.clock import Clock, SystemClock
from ..core.config import Settings, settings as default_settings
from ..core.enums import LedgerEntryType, StatusBand
from ..core.exceptions import (
    AlreadyRefundedException,
    ConflictException,
    InsufficientCreditsException,
    NotFoundException,
    PaymentException,
    PurchaseSettlementException,
    RepositoryException,
    ServiceException,
    ValidationException,
)
from ..core.ulid_helper import generate_ulid
from ..domain.slots import CreditPack, credit_packs_from_settings
from ..models.ledger import CreditLedgerEntry
from ..models.payment import CreditPurchase
from ..repositories.factory import RepositoryFactory
from .alert_service import AlertService
from .base import BaseService
from .payment_provider import PaymentProvider

logger = logging.getLogger(__name__)

SETTLE_ATTEMPTS = 3


def status_band_for(balance: int, warning_threshold: int = 2) -> StatusBand:
    """Project a balance onto the ok/warning/critical bands."""
    if balance <= 0:
        return StatusBand.CRITICAL
    if balance <= warning_threshold:
        return StatusBand.WARNING
    return StatusBand.OK


@dataclass(frozen=True)
class PurchaseResult:
    purchase_id: str
    transaction_id: str
    charge_id: str
    credits: int
    amount_minor: int
    balance: int


class CreditLedgerService(BaseService):
    """Purchases, consumption, refunds and grants of session credits."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        payment_provider: Optional[PaymentProvider] = None,
        config: Optional[Settings] = None,
        alert_service: Optional[AlertService] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.clock = clock or SystemClock(self.config.timezone)
        self.payment_provider = payment_provider
        self.alert_service = alert_service or AlertService(db)
        self.ledger_repository = RepositoryFactory.create_credit_ledger_repository(db)
        self.purchase_repository = RepositoryFactory.create_credit_purchase_repository(db)

    @contextmanager
    def _member_write(self, member_id: str, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the member's keyed lock and account row lock until commit."""
        wait = self.config.booking_timeout_seconds if timeout is None else max(timeout, 0.0)
        with member_lock(member_id, timeout=wait) as acquired:
            if not acquired:
                raise ServiceException(
                    "Credit ledger is busy for this member",
                    code="LEDGER_BUSY",
                    details={"member_id": member_id},
                )
            with self.transaction():
                self.ledger_repository.lock_account(member_id)
                yield

    # Reads

    @BaseService.measure_operation("credit_balance")
    def balance(self, member_id: str) -> int:
        return self.ledger_repository.get_balance(member_id)

    def status_band(self, member_id: str) -> StatusBand:
        return status_band_for(self.balance(member_id), self.config.status_warning_threshold)

    @BaseService.measure_operation("credit_history")
    def history(self, member_id: str, limit: Optional[int] = 50) -> List[CreditLedgerEntry]:
        """Most recent entries first."""
        return self.ledger_repository.list_entries(member_id, limit=limit)

    # Writes

    @BaseService.measure_operation("credit_purchase")
    def purchase(
        self,
        member_id: str,
        amount: int,
        unit_price_minor: int,
        *,
        charge_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> str:
        """
        Append a purchase entry for an already-confirmed payment.

        Returns the ledger transaction id.
        """
        if amount <= 0:
            raise ValidationException("Purchase amount must be positive", code="INVALID_AMOUNT")
        if unit_price_minor < 0:
            raise ValidationException("Unit price must not be negative", code="INVALID_PRICE")

        with self._member_write(member_id):
            entry = self.ledger_repository.append(
                member_id=member_id,
                entry_type=LedgerEntryType.PURCHASE,
                amount=amount,
                unit_price_minor=unit_price_minor,
                charge_id=charge_id,
                description=description or f"Purchased {amount} credit(s)",
            )
        self.log_operation("credit_purchase", member_id=member_id, amount=amount, entry_id=entry.id)
        return entry.id

    @BaseService.measure_operation("credit_purchase_pack")
    def purchase_pack(
        self,
        member_id: str,
        pack_code: str,
        *,
        payment_method: str,
        payer_ref: str,
    ) -> PurchaseResult:
        """
        Charge the payment provider for a credit pack and credit the ledger.

        A purchase row is committed before the charge. A failed charge marks
        it FAILED and appends nothing to the ledger. If the charge succeeds
        but the credits cannot be added, the purchase is flagged
        NEEDS_RECONCILIATION, an operator alert is recorded and
        PurchaseSettlementException is raised.
        """
        if self.payment_provider is None:
            raise ServiceException("No payment provider configured", code="PAYMENT_PROVIDER_MISSING")

        pack = self._require_pack(pack_code)
        with self.transaction():
            purchase = self.purchase_repository.create(
                member_id=member_id,
                pack_code=pack.code,
                credits=pack.credits,
                amount_minor=pack.price_minor,
                currency=self.config.currency,
                payment_method=payment_method,
                payer_ref=payer_ref,
            )

        try:
            charge = self.payment_provider.charge(
                pack.price_minor,
                currency=self.config.currency,
                method=payment_method,
                payer_ref=payer_ref,
                idempotency_key=f"credit_purchase_{purchase.id}",
            )
        except PaymentException as exc:
            with self.transaction():
                self.purchase_repository.mark_failed(purchase, reason=exc.message, at=self.clock.now())
            self.logger.warning(
                "Credit pack charge failed",
                extra={"member_id": member_id, "purchase_id": purchase.id, "provider_code": exc.provider_code},
            )
            raise

        transaction_id = self._settle_with_retry(purchase, pack, charge.charge_id)
        balance = self.balance(member_id)
        self.log_operation(
            "credit_purchase_pack",
            member_id=member_id,
            pack_code=pack.code,
            purchase_id=purchase.id,
            charge_id=charge.charge_id,
        )
        return PurchaseResult(
            purchase_id=purchase.id,
            transaction_id=transaction_id,
            charge_id=charge.charge_id,
            credits=pack.credits,
            amount_minor=pack.price_minor,
            balance=balance,
        )

    def _settle_with_retry(self, purchase: CreditPurchase, pack: CreditPack, charge_id: str) -> str:
        purchase_id = purchase.id
        member_id = purchase.member_id
        last_error: Optional[BaseException] = None
        for attempt in range(1, SETTLE_ATTEMPTS + 1):
            try:
                return self._settle_purchase(purchase, pack, charge_id)
            except Exception as exc:
                last_error = exc
                self.logger.warning(
                    f"Settlement attempt {attempt} for purchase {purchase_id} failed: {str(exc)}",
                    extra={"member_id": member_id, "charge_id": charge_id},
                )

        correlation_id = generate_ulid()
        try:
            with self.transaction():
                self.purchase_repository.mark_needs_reconciliation(
                    purchase, charge_id=charge_id, reason=str(last_error), at=self.clock.now()
                )
        except (RepositoryException, ServiceException) as exc:
            self.logger.critical(
                f"Unable to flag purchase {purchase_id} for reconciliation: {str(exc)}",
                extra={"correlation_id": correlation_id},
            )
        alert_id = self.alert_service.record_purchase_settlement_failure(
            member_id=member_id,
            purchase_id=purchase_id,
            charge_id=charge_id,
            correlation_id=correlation_id,
            error=last_error,
        )
        raise PurchaseSettlementException(purchase_id, charge_id, correlation_id, alert_id) from last_error

    def _settle_purchase(self, purchase: CreditPurchase, pack: CreditPack, charge_id: str) -> str:
        with self._member_write(purchase.member_id):
            entry = self.ledger_repository.append(
                member_id=purchase.member_id,
                entry_type=LedgerEntryType.PURCHASE,
                amount=pack.credits,
                unit_price_minor=pack.unit_price_minor,
                charge_id=charge_id,
                description=f"Purchased {pack.name}",
            )
            self.purchase_repository.mark_completed(
                purchase, charge_id=charge_id, ledger_entry_id=entry.id, at=self.clock.now()
            )
        return entry.id

    def _require_pack(self, pack_code: str) -> CreditPack:
        pack = credit_packs_from_settings(self.config).get(pack_code)
        if pack is None:
            raise NotFoundException(
                f"Unknown credit pack {pack_code}",
                code="CREDIT_PACK_NOT_FOUND",
                details={"pack_code": pack_code},
            )
        return pack

    @BaseService.measure_operation("credit_grant")
    def grant(self, member_id: str, amount: int, reason: str) -> str:
        """Complimentary credits added by staff."""
        if amount <= 0:
            raise ValidationException("Granted amount must be positive", code="INVALID_AMOUNT")
        with self._member_write(member_id):
            entry = self.ledger_repository.append(
                member_id=member_id,
                entry_type=LedgerEntryType.COMP,
                amount=amount,
                description=reason[:255],
            )
        self.log_operation("credit_grant", member_id=member_id, amount=amount, entry_id=entry.id)
        return entry.id

    @BaseService.measure_operation("credit_reserve")
    def reserve_credits(
        self,
        member_id: str,
        booking_id: str,
        amount: int = 1,
        *,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Debit ``amount`` credits for ``booking_id``.

        Raises InsufficientCreditsException, leaving the balance unchanged,
        when the debit would take the balance below zero.
        """
        if amount <= 0:
            raise ValidationException("Debit amount must be positive", code="INVALID_AMOUNT")

        with self._member_write(member_id, timeout):
            current = self.ledger_repository.get_balance(member_id)
            if current < amount:
                raise InsufficientCreditsException(member_id, current, amount)
            try:
                entry = self.ledger_repository.append(
                    member_id=member_id,
                    entry_type=LedgerEntryType.CONSUME,
                    amount=-amount,
                    booking_id=booking_id,
                    description="Session booking",
                )
            except IntegrityError as exc:
                raise ConflictException(
                    "Booking has already been debited",
                    code="DUPLICATE_DEBIT",
                    details={"booking_id": booking_id},
                ) from exc
        self.log_operation("credit_reserve", member_id=member_id, booking_id=booking_id, amount=amount)
        return entry.id

    def reserve_one_credit(self, member_id: str, booking_id: str) -> str:
        return self.reserve_credits(member_id, booking_id, 1)

    @BaseService.measure_operation("credit_refund")
    def refund(self, booking_id: str, *, reason: Optional[str] = None) -> str:
        """
        Return the credits consumed by ``booking_id``.

        At most one refund exists per booking; a repeat raises
        AlreadyRefundedException and leaves the balance unchanged.
        """
        consume = self.ledger_repository.get_consume_for_booking(booking_id)
        if consume is None:
            raise NotFoundException(
                "No debit recorded for this booking",
                code="DEBIT_NOT_FOUND",
                details={"booking_id": booking_id},
            )
        member_id = consume.member_id
        with self._member_write(member_id):
            if self.ledger_repository.get_refund_for_booking(booking_id) is not None:
                raise AlreadyRefundedException(booking_id)
            try:
                entry = self.ledger_repository.append(
                    member_id=member_id,
                    entry_type=LedgerEntryType.REFUND,
                    amount=abs(consume.amount),
                    booking_id=booking_id,
                    description=reason or "Session credit returned",
                )
            except IntegrityError as exc:
                raise AlreadyRefundedException(booking_id) from exc
        self.log_operation("credit_refund", member_id=member_id, booking_id=booking_id)
        return entry.id

    def purchases(self, member_id: str) -> List[CreditPurchase]:
        """Pack purchases, newest first, including failed and unreconciled ones."""
        return self.purchase_repository.list_for_member(member_id)

    def is_refunded(self, booking_id: str) -> bool:
        return self.ledger_repository.get_refund_for_booking(booking_id) is not None


__all__ = ["CreditLedgerService", "PurchaseResult", "status_band_for"]
