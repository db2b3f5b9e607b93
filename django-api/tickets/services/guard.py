"""Rate limiting, fraud heuristics and organizer authorization.

All counters are fixed windows kept in the cache: the first increment opens
the window, later increments inside it are single atomic round trips. These
checks run before any inventory read or write. They are best-effort abuse
detection and fail closed: a tripped check denies the operation.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from tickets.cache import CacheClient
from tickets.conf import InventorySettings
from tickets.domain import EventId, EventSnapshot, EventVisibility, Money
from tickets.domain.errors import (
    ErrorCode,
    EventLifecycleViolationError,
    EventNotFoundError,
    FraudDetectedError,
    RateLimitExceededError,
    UnauthorizedError,
)
from tickets.stores.interfaces import EventDirectory, InventoryStore

logger = logging.getLogger(__name__)

HOUR = 60 * 60
DAY = 24 * HOUR
PAYMENT_METHOD_WINDOW = 30 * DAY


class Action(Enum):
    """Rate-limited action classes."""

    RESERVATION = "reservations"
    PURCHASE = "purchases"
    ORGANIZER = "organizer-ops"


@dataclass(frozen=True)
class Window:
    limit: int
    seconds: int


class RateLimiter:
    """Fixed-window counters keyed by (action, actor, IP)."""

    def __init__(self, client: CacheClient, conf: InventorySettings) -> None:
        self._client = client
        self._windows = {
            Action.RESERVATION: Window(conf.RESERVATIONS_PER_HOUR, HOUR),
            Action.PURCHASE: Window(conf.PURCHASES_PER_DAY, DAY),
            Action.ORGANIZER: Window(conf.ORGANIZER_OPS_PER_HOUR, HOUR),
        }

    def hit(self, action: Action, actor_id: str, ip: str) -> int:
        """Count one attempt and return the count inside the current window.

        Raises:
            RateLimitExceededError: If the attempt exceeds the action's ceiling.
        """
        window = self._windows[action]
        count = self._client.increment_with_expiry(
            f"{action.value}:{actor_id}:{ip}", window.seconds
        )
        if count > window.limit:
            logger.warning(
                "Rate limit exceeded for %s by %s from %s (%d/%d)",
                action.value, actor_id, ip, count, window.limit,
            )
            raise RateLimitExceededError(action.value)
        return count


class FraudGuard:
    """Additive fraud signals; any single one aborts the operation."""

    def __init__(self, client: CacheClient, conf: InventorySettings) -> None:
        self._client = client
        self._conf = conf

    def check(self, customer_id: str, ip: str, price: Money) -> None:
        """Raises:
            FraudDetectedError: If the IP, payment-method or high-value signal trips.
        """
        ip_count = self._client.increment_with_expiry(f"suspicious:ip:{ip}:count", DAY)
        if ip_count > self._conf.SUSPICIOUS_IP_THRESHOLD:
            self._deny("ip-activity", customer_id, ip)

        methods = self._client.get(f"payment-methods:{customer_id}:count") or 0
        if int(methods) > self._conf.MAX_PAYMENT_METHODS:
            self._deny("payment-methods", customer_id, ip)

        if price.amount > self._conf.HIGH_VALUE_AMOUNT:
            high_value = self._client.increment_with_expiry(
                f"high-value:{customer_id}:count", DAY
            )
            if high_value > self._conf.MAX_HIGH_VALUE_PER_DAY:
                self._deny("high-value", customer_id, ip)

    def record_payment_method(self, customer_id: str, fingerprint: str) -> int:
        """Record a payment method seen for a customer; returns the distinct count."""
        seen = self._client.increment_with_expiry(
            f"payment-methods:{customer_id}:{fingerprint}", PAYMENT_METHOD_WINDOW
        )
        count_key = f"payment-methods:{customer_id}:count"
        if seen == 1:
            return self._client.increment_with_expiry(count_key, PAYMENT_METHOD_WINDOW)
        return int(self._client.get(count_key) or 0)

    def flag_organizer(self, organizer_id: str) -> int:
        return self._client.increment_with_expiry(
            f"suspicious:organizer:{organizer_id}:count", DAY
        )

    def is_suspicious_organizer(self, organizer_id: str) -> bool:
        count = self._client.get(f"suspicious:organizer:{organizer_id}:count") or 0
        return int(count) > self._conf.SUSPICIOUS_ORGANIZER_THRESHOLD

    def _deny(self, reason: str, customer_id: str, ip: str) -> None:
        logger.warning("Fraud check %s tripped for %s from %s", reason, customer_id, ip)
        raise FraudDetectedError(reason)


class OrganizerGuard:
    """Checks that an organizer may manage inventory for an event."""

    def __init__(
        self,
        directory: EventDirectory,
        store: InventoryStore,
        rate_limiter: RateLimiter,
        fraud_guard: FraudGuard,
        clock: Callable[[], datetime],
    ) -> None:
        self._directory = directory
        self._store = store
        self._rate_limiter = rate_limiter
        self._fraud_guard = fraud_guard
        self._clock = clock

    def verify_organizer_owns_event(
        self, organizer_id: str, event_id: EventId, ip: str | None = None
    ) -> EventSnapshot:
        """Run the ownership and lifecycle checks, cheapest first.

        Raises:
            RateLimitExceededError: If the organizer exceeds their ceiling.
            EventNotFoundError: If the event does not exist.
            UnauthorizedError: If the organizer does not own the event or the
                account is missing, disabled or unverified.
            EventLifecycleViolationError: If the event ended, started, is not
                published or is full.
            FraudDetectedError: If the organizer has too many suspicious flags.
        """
        if ip:
            try:
                self._rate_limiter.hit(Action.ORGANIZER, organizer_id, ip)
            except RateLimitExceededError:
                self._fraud_guard.flag_organizer(organizer_id)
                raise

        event = self._directory.get_event(event_id)
        if event is None:
            raise EventNotFoundError(str(event_id))
        if event.organizer_id != str(organizer_id):
            raise UnauthorizedError("Not the event organizer")

        now = self._clock()
        if event.ends_at is not None and event.ends_at < now:
            raise EventLifecycleViolationError(ErrorCode.EVENT_ENDED, "Event has ended")
        if event.visibility is EventVisibility.PRIVATE and not event.is_published:
            raise EventLifecycleViolationError(
                ErrorCode.EVENT_NOT_PUBLISHED, "Event is not published"
            )
        if event.starts_at is not None and event.starts_at < now:
            raise EventLifecycleViolationError(
                ErrorCode.EVENT_STARTED, "Event has already started"
            )
        if event.capacity > 0 and self._store.count_sold_for_event(event.id) >= event.capacity:
            raise EventLifecycleViolationError(
                ErrorCode.EVENT_FULL, "Event has reached capacity"
            )

        organizer = self._directory.get_organizer(organizer_id)
        if organizer is None:
            raise UnauthorizedError(
                "Organizer account not found", code=ErrorCode.ORGANIZER_INACTIVE
            )
        if not organizer.is_enabled or not organizer.email_verified:
            raise UnauthorizedError(
                "Organizer account is not active", code=ErrorCode.ORGANIZER_INACTIVE
            )

        if self._fraud_guard.is_suspicious_organizer(organizer_id):
            logger.warning("Suspicious organizer %s blocked", organizer_id)
            raise FraudDetectedError("organizer-activity")
        return event
