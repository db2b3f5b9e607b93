"""Pytest configuration and shared fixtures."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from tickets import models as orm
from tickets.conf import InventorySettings
from tickets.domain import PaymentStatus
from tickets.domain.errors import DependencyFailureError
from tickets.payments.interfaces import PaymentGateway, PaymentIntent, PaymentRequest
from tickets.services import build_ticket_service


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingPaymentGateway(PaymentGateway):
    """Payment gateway fake that records requests and hands out sequential ids."""

    def __init__(self) -> None:
        self.requests: list[PaymentRequest] = []
        self.fail = False

    def create_payment(self, request: PaymentRequest) -> PaymentIntent:
        if self.fail:
            raise DependencyFailureError("payment gateway")
        self.requests.append(request)
        return PaymentIntent(
            id=f"pi_test_{len(self.requests)}",
            status=PaymentStatus.PENDING,
        )


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(timezone.now().replace(microsecond=0))


@pytest.fixture
def payment_gateway() -> RecordingPaymentGateway:
    return RecordingPaymentGateway()


@pytest.fixture
def conf() -> InventorySettings:
    """Thresholds high enough that abuse checks stay out of the way."""
    return InventorySettings(
        RESERVATIONS_PER_HOUR=1000,
        PURCHASES_PER_DAY=1000,
        ORGANIZER_OPS_PER_HOUR=1000,
        SUSPICIOUS_IP_THRESHOLD=1000,
        MAX_HIGH_VALUE_PER_DAY=1000,
    )


@pytest.fixture
def service(payment_gateway, clock, conf):
    return build_ticket_service(payment_gateway=payment_gateway, clock=clock, conf=conf)


@pytest.fixture
def organizer(db):
    return orm.Organizer.objects.create(
        email="organizer@example.com", is_enabled=True, email_verified=True
    )


@pytest.fixture
def make_event(organizer, clock):
    def make(**overrides):
        values = {
            "organizer": organizer,
            "name": "Manila Tech Summit",
            "starts_at": clock() + timedelta(days=30),
            "ends_at": clock() + timedelta(days=31),
            "visibility": orm.Event.Visibility.PUBLIC,
            "is_published": True,
        }
        values.update(overrides)
        return orm.Event.objects.create(**values)

    return make


@pytest.fixture
def event(make_event):
    return make_event()


@pytest.fixture
def make_ticket_type(event, clock):
    def make(**overrides):
        values = {
            "event": event,
            "name": "General Admission",
            "price_amount": Decimal("0.00"),
            "price_currency": "PHP",
            "quantity": 10,
            "max_per_customer": 4,
            "created_at": clock(),
            "updated_at": clock(),
        }
        values.update(overrides)
        return orm.TicketType.objects.create(**values)

    return make


@pytest.fixture
def free_type(make_ticket_type):
    return make_ticket_type()


@pytest.fixture
def paid_type(make_ticket_type):
    return make_ticket_type(name="VIP", price_amount=Decimal("500.00"))


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(username="juan", password="secret")
