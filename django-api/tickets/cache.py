"""Cache layer.

``CacheClient`` narrows a Django cache backend to the four calls the app
needs and turns backend transport errors into ``DependencyFailureError``.
``TicketCache`` owns the key scheme and read-through helpers.

The cache is an optimization only. Availability math never reads it; every
write deletes the keys whose query results it could have changed. Set
``CACHE_TTL_SECONDS`` to 0 (or point ``CACHE_ALIAS`` at ``DummyCache``) to run
uncached. Rate-limit and fraud counters need a real backend and are configured
separately through ``RATELIMIT_CACHE_ALIAS``.
"""

import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from django.core.cache import BaseCache, caches

from tickets.conf import InventorySettings
from tickets.domain import Ticket, TicketType
from tickets.domain.errors import DependencyFailureError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheClient:
    """Thin wrapper over a Django cache backend."""

    def __init__(self, backend: BaseCache) -> None:
        self._backend = backend

    @classmethod
    def for_alias(cls, alias: str) -> "CacheClient":
        return cls(caches[alias])

    def get(self, key: str) -> Any | None:
        return self._call(self._backend.get, key)

    def set_with_ttl(self, key: str, value: Any, seconds: int) -> None:
        self._call(self._backend.set, key, value, timeout=seconds)

    def increment_with_expiry(self, key: str, window_seconds: int) -> int:
        """Atomically increment ``key``; the first hit opens a window of ``window_seconds``."""
        self._call(self._backend.add, key, 0, timeout=window_seconds)
        try:
            return self._call(self._backend.incr, key)
        except ValueError:
            # Window expired between add and incr.
            self._call(self._backend.add, key, 0, timeout=window_seconds)
            return self._call(self._backend.incr, key)

    def delete_many(self, keys: Iterable[str]) -> None:
        keys = list(dict.fromkeys(keys))
        if keys:
            self._call(self._backend.delete_many, keys)

    def _call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        try:
            return fn(*args, **kwargs)
        except ValueError:
            raise
        except Exception as exc:
            logger.exception("Cache call %s failed", getattr(fn, "__name__", fn))
            raise DependencyFailureError("cache", exc) from exc


def ticket_type_key(ticket_type_id: object) -> str:
    return f"ticketType:{ticket_type_id}"


def ticket_key(ticket_id: object) -> str:
    return f"ticket:{ticket_id}"


def event_ticket_types_key(event_id: object) -> str:
    return f"event:{event_id}:ticketTypes"


def event_tickets_key(event_id: object) -> str:
    return f"event:{event_id}:tickets"


def customer_tickets_key(customer_id: object) -> str:
    return f"customer:{customer_id}:tickets"


def ticket_type_keys(ticket_type: TicketType) -> list[str]:
    return [
        ticket_type_key(ticket_type.id),
        event_ticket_types_key(ticket_type.event_id),
    ]


def ticket_keys(ticket: Ticket) -> list[str]:
    return [
        ticket_key(ticket.id),
        event_tickets_key(ticket.event_id),
        customer_tickets_key(ticket.customer_id),
    ]


class TicketCache:
    """Read-through cache for ticket types, tickets and their lists.

    With no client every read is a miss and writes are skipped.
    """

    def __init__(self, client: CacheClient | None, ttl_seconds: int) -> None:
        self._client = client
        self._ttl = ttl_seconds

    @classmethod
    def from_settings(cls, conf: InventorySettings) -> "TicketCache":
        if conf.CACHE_TTL_SECONDS <= 0:
            return cls(None, 0)
        return cls(CacheClient.for_alias(conf.CACHE_ALIAS), conf.CACHE_TTL_SECONDS)

    def get_or_load(self, key: str, loader: Callable[[], T]) -> T:
        """Return the cached value for ``key``, loading and caching it on a miss.

        ``None`` results are not cached so that a later create is visible at once.
        """
        if self._client is None:
            return loader()
        cached = self._client.get(key)
        if cached is not None:
            return cached
        value = loader()
        if value is not None:
            self._client.set_with_ttl(key, value, self._ttl)
        return value

    def invalidate(self, keys: Iterable[str]) -> None:
        if self._client is not None:
            self._client.delete_many(keys)

    def invalidate_ticket_type(self, ticket_type: TicketType) -> None:
        self.invalidate(ticket_type_keys(ticket_type))

    def invalidate_tickets(self, tickets: Iterable[Ticket]) -> None:
        self.invalidate(key for ticket in tickets for key in ticket_keys(ticket))
