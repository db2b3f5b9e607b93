"""Stripe implementation of the payment gateway, using PaymentIntents."""

import logging
from decimal import ROUND_HALF_UP, Decimal

import stripe

from tickets.domain import PaymentStatus
from tickets.domain.errors import DependencyFailureError
from tickets.payments.interfaces import PaymentGateway, PaymentIntent, PaymentRequest

logger = logging.getLogger(__name__)

# Stripe's PaymentIntent.status values.
_STATUS_MAP = {
    "requires_payment_method": PaymentStatus.PENDING,
    "requires_confirmation": PaymentStatus.PENDING,
    "requires_action": PaymentStatus.PENDING,
    "processing": PaymentStatus.PROCESSING,
    "requires_capture": PaymentStatus.PROCESSING,
    "succeeded": PaymentStatus.COMPLETED,
    "canceled": PaymentStatus.CANCELLED,
}

# Webhook event types that finalize a payment.
WEBHOOK_EVENT_STATUSES = {
    "payment_intent.succeeded": PaymentStatus.COMPLETED,
    "payment_intent.payment_failed": PaymentStatus.FAILED,
    "payment_intent.canceled": PaymentStatus.CANCELLED,
}


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def map_status(stripe_status: str) -> PaymentStatus:
    return _STATUS_MAP.get(stripe_status, PaymentStatus.FAILED)


class StripePaymentGateway(PaymentGateway):
    def __init__(self, api_key: str) -> None:
        self._api_key = api_key

    def create_payment(self, request: PaymentRequest) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self._api_key,
                amount=to_minor_units(request.price.amount),
                currency=request.price.currency.lower(),
                receipt_email=request.customer_email,
                metadata={**request.metadata, "customer_id": request.customer_id},
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe PaymentIntent creation failed")
            raise DependencyFailureError("payment gateway", exc) from exc
        return PaymentIntent(
            id=intent.id,
            status=map_status(intent.status),
        )


def construct_webhook_event(payload: bytes, signature: str, secret: str):
    """Verify and parse a Stripe webhook payload.

    Raises ``ValueError`` for malformed payloads and
    ``stripe.SignatureVerificationError`` for bad signatures.
    """
    return stripe.Webhook.construct_event(
        payload=payload, sig_header=signature, secret=secret
    )
