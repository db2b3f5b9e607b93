"""Tests for the Stripe payment gateway adapter.

Run with: pytest tests/test_payments.py -v
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest import mock

import pytest
import stripe

from tickets.domain import Money, PaymentStatus
from tickets.domain.errors import DependencyFailureError
from tickets.payments.interfaces import PaymentIntent, PaymentRequest
from tickets.payments.stripe_gateway import StripePaymentGateway, map_status, to_minor_units


@pytest.fixture
def payment_request() -> PaymentRequest:
    return PaymentRequest(
        price=Money(Decimal("500.00"), "PHP"),
        customer_id="42",
        customer_email="maria@example.com",
        metadata={"ticket_id": "t-1"},
    )


class TestStripePaymentGateway:
    def test_create_payment_returns_intent_handle(self, payment_request):
        """Only the intent id and status reach the service."""
        created = SimpleNamespace(
            id="pi_123", status="requires_payment_method", client_secret="pi_123_secret"
        )
        with mock.patch.object(stripe.PaymentIntent, "create", return_value=created) as create:
            intent = StripePaymentGateway("sk_test").create_payment(payment_request)

        assert intent == PaymentIntent(id="pi_123", status=PaymentStatus.PENDING)
        kwargs = create.call_args.kwargs
        assert kwargs["amount"] == 50000
        assert kwargs["currency"] == "php"
        assert kwargs["metadata"] == {"ticket_id": "t-1", "customer_id": "42"}

    def test_stripe_error_becomes_dependency_failure(self, payment_request):
        failure = stripe.APIConnectionError("network down")
        with mock.patch.object(stripe.PaymentIntent, "create", side_effect=failure):
            with pytest.raises(DependencyFailureError) as exc_info:
                StripePaymentGateway("sk_test").create_payment(payment_request)
        assert exc_info.value.cause is failure

    def test_minor_units_round_half_up(self):
        assert to_minor_units(Decimal("10.005")) == 1001

    def test_unknown_status_maps_to_failed(self):
        assert map_status("succeeded") is PaymentStatus.COMPLETED
        assert map_status("mystery") is PaymentStatus.FAILED
