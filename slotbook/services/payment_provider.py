# slotbook/services/payment_provider.py
"""
Payment provider abstraction for credit pack purchases.

Supports Stripe (production) and a fake provider (development and tests).
A provider either returns a settled charge or raises PaymentException; it
never leaves a charge half-confirmed from the ledger's point of view.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Dict, List, Optional, Protocol

import stripe

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import PaymentException
from ..core.ulid_helper import generate_ulid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeResult:
    charge_id: str
    amount_minor: int
    currency: str
    provider: str


class PaymentProvider(Protocol):
    """Interface for payment providers - enables easy swapping."""

    def charge(
        self,
        amount_minor: int,
        *,
        currency: str,
        method: str,
        payer_ref: str,
        idempotency_key: Optional[str] = None,
    ) -> ChargeResult:
        """Charge the payer; raise PaymentException on any failure."""
        ...


@dataclass
class FakePaymentProvider:
    """
    In-memory provider.

    Methods listed in ``declined_methods`` fail with a non-retryable decline;
    setting ``fail_next`` makes the next charge fail with a retryable error.
    """

    declined_methods: List[str] = field(default_factory=lambda: ["pm_card_declined"])
    fail_next: bool = False
    charges: Dict[str, ChargeResult] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def charge(
        self,
        amount_minor: int,
        *,
        currency: str,
        method: str,
        payer_ref: str,
        idempotency_key: Optional[str] = None,
    ) -> ChargeResult:
        with self._lock:
            if self.fail_next:
                self.fail_next = False
                raise PaymentException("Payment provider unavailable", provider_code="unavailable")
            if method in self.declined_methods:
                raise PaymentException("Card declined", provider_code="card_declined", retryable=False)
            if idempotency_key and idempotency_key in self.charges:
                return self.charges[idempotency_key]
            result = ChargeResult(
                charge_id=f"ch_fake_{generate_ulid()}",
                amount_minor=amount_minor,
                currency=currency,
                provider="fake",
            )
            self.charges[idempotency_key or result.charge_id] = result
            logger.info("Fake charge %s for %s %s by %s", result.charge_id, amount_minor, currency, payer_ref)
            return result


class StripePaymentProvider:
    """Production provider: an immediately confirmed Stripe PaymentIntent."""

    def __init__(self, api_key: Optional[str] = None) -> None:
        if api_key:
            stripe.api_key = api_key

    def charge(
        self,
        amount_minor: int,
        *,
        currency: str,
        method: str,
        payer_ref: str,
        idempotency_key: Optional[str] = None,
    ) -> ChargeResult:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_minor,
                currency=currency.lower(),
                customer=payer_ref,
                payment_method=method,
                confirm=True,
                off_session=True,
                metadata={"platform": "slotbook"},
                idempotency_key=idempotency_key,
            )
        except stripe.error.CardError as e:
            logger.warning("Stripe card error for %s: %s", payer_ref, str(e))
            raise PaymentException(
                str(getattr(e, "user_message", None) or e),
                provider_code=getattr(e, "code", None),
                retryable=False,
            ) from e
        except stripe.StripeError as e:
            logger.error("Stripe error charging %s: %s", payer_ref, str(e))
            raise PaymentException(f"Payment failed: {str(e)}", provider_code=getattr(e, "code", None)) from e

        status = getattr(intent, "status", "")
        if status != "succeeded":
            raise PaymentException(
                f"Payment not completed (status {status})",
                provider_code=status or None,
                retryable=status != "requires_action",
            )
        return ChargeResult(
            charge_id=intent.id,
            amount_minor=amount_minor,
            currency=currency,
            provider="stripe",
        )


def build_payment_provider(config: Optional[Settings] = None) -> PaymentProvider:
    cfg = config or default_settings
    if cfg.payment_provider == "stripe":
        key = cfg.stripe_secret_key.get_secret_value() if cfg.stripe_secret_key else None
        return StripePaymentProvider(api_key=key)
    return FakePaymentProvider()
