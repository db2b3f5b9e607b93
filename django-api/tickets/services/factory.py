"""Wires TicketService to the Django-backed collaborators."""

from django.conf import settings
from django.core.cache import caches
from django.core.cache.backends.dummy import DummyCache
from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone

from tickets.cache import CacheClient, TicketCache
from tickets.conf import InventorySettings
from tickets.payments.interfaces import PaymentGateway
from tickets.payments.stripe_gateway import StripePaymentGateway
from tickets.services.guard import FraudGuard, OrganizerGuard, RateLimiter
from tickets.services.ticket_service import Clock, TicketService
from tickets.stores.django_store import DjangoEventDirectory, DjangoInventoryStore


def build_ticket_service(
    payment_gateway: PaymentGateway | None = None,
    clock: Clock = timezone.now,
    conf: InventorySettings | None = None,
) -> TicketService:
    conf = conf or InventorySettings.from_django()
    if isinstance(caches[conf.RATELIMIT_CACHE_ALIAS], DummyCache):
        raise ImproperlyConfigured(
            f"RATELIMIT_CACHE_ALIAS '{conf.RATELIMIT_CACHE_ALIAS}' must not use DummyCache; "
            "rate-limit and fraud counters need a backend that stores values"
        )
    store = DjangoInventoryStore()
    counters = CacheClient.for_alias(conf.RATELIMIT_CACHE_ALIAS)
    rate_limiter = RateLimiter(counters, conf)
    fraud_guard = FraudGuard(counters, conf)
    organizer_guard = OrganizerGuard(
        DjangoEventDirectory(), store, rate_limiter, fraud_guard, clock
    )
    if payment_gateway is None:
        payment_gateway = StripePaymentGateway(settings.STRIPE_SECRET_KEY)
    return TicketService(
        store=store,
        cache=TicketCache.from_settings(conf),
        rate_limiter=rate_limiter,
        fraud_guard=fraud_guard,
        organizer_guard=organizer_guard,
        payment_gateway=payment_gateway,
        conf=conf,
        clock=clock,
    )
