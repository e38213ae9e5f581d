from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from slotbook.core.config import Settings
from slotbook.core.exceptions import PaymentException
from slotbook.services.payment_provider import (
    FakePaymentProvider,
    StripePaymentProvider,
    build_payment_provider,
)


class TestFakePaymentProvider:
    def test_charge_succeeds(self):
        provider = FakePaymentProvider()
        charge = provider.charge(2500, currency="GBP", method="pm_card_visa", payer_ref="cus_1")
        assert charge.charge_id.startswith("ch_fake_")
        assert charge.amount_minor == 2500

    def test_idempotency_key_returns_same_charge(self):
        provider = FakePaymentProvider()
        first = provider.charge(2500, currency="GBP", method="pm", payer_ref="cus_1", idempotency_key="k1")
        second = provider.charge(2500, currency="GBP", method="pm", payer_ref="cus_1", idempotency_key="k1")
        assert first == second
        assert len(provider.charges) == 1

    def test_declined_method(self):
        with pytest.raises(PaymentException) as exc_info:
            FakePaymentProvider().charge(2500, currency="GBP", method="pm_card_declined", payer_ref="cus_1")
        assert exc_info.value.provider_code == "card_declined"

    def test_fail_next_only_once(self):
        provider = FakePaymentProvider(fail_next=True)
        with pytest.raises(PaymentException):
            provider.charge(2500, currency="GBP", method="pm", payer_ref="cus_1")
        assert provider.charge(2500, currency="GBP", method="pm", payer_ref="cus_1").amount_minor == 2500


class TestStripePaymentProvider:
    def test_succeeded_intent(self):
        intent = SimpleNamespace(id="pi_123", status="succeeded")
        with patch.object(stripe.PaymentIntent, "create", return_value=intent) as create:
            charge = StripePaymentProvider().charge(
                11875, currency="GBP", method="pm_1", payer_ref="cus_1", idempotency_key="credit_purchase_x"
            )

        assert charge.charge_id == "pi_123"
        assert charge.provider == "stripe"
        kwargs = create.call_args.kwargs
        assert kwargs["currency"] == "gbp"
        assert kwargs["confirm"] is True
        assert kwargs["idempotency_key"] == "credit_purchase_x"

    def test_intent_needing_action_is_a_failure(self):
        intent = SimpleNamespace(id="pi_123", status="requires_action")
        with patch.object(stripe.PaymentIntent, "create", return_value=intent):
            with pytest.raises(PaymentException) as exc_info:
                StripePaymentProvider().charge(2500, currency="GBP", method="pm_1", payer_ref="cus_1")
        assert exc_info.value.retryable is False

    def test_stripe_error_maps_to_payment_exception(self):
        with patch.object(stripe.PaymentIntent, "create", side_effect=stripe.StripeError("boom")):
            with pytest.raises(PaymentException):
                StripePaymentProvider().charge(2500, currency="GBP", method="pm_1", payer_ref="cus_1")


def test_build_payment_provider_defaults_to_fake():
    assert isinstance(build_payment_provider(Settings(_env_file=None)), FakePaymentProvider)
    assert isinstance(
        build_payment_provider(Settings(_env_file=None, payment_provider="stripe", stripe_secret_key="sk_test")),
        StripePaymentProvider,
    )
