"""Settings for the tickets app.

Read from ``settings.TICKET_INVENTORY``; any key left out falls back to the
defaults below. Thresholds are business tuning values, not protocol constants.
"""

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Self

from django.conf import settings


@dataclass(frozen=True)
class InventorySettings:
    RESERVATION_TTL_SECONDS: int = 15 * 60
    CACHE_TTL_SECONDS: int = 60 * 60
    CACHE_ALIAS: str = "default"
    RATELIMIT_CACHE_ALIAS: str = "default"

    RESERVATIONS_PER_HOUR: int = 10
    PURCHASES_PER_DAY: int = 20
    ORGANIZER_OPS_PER_HOUR: int = 100

    SUSPICIOUS_IP_THRESHOLD: int = 5
    MAX_PAYMENT_METHODS: int = 3
    HIGH_VALUE_AMOUNT: Decimal = Decimal("1000")
    MAX_HIGH_VALUE_PER_DAY: int = 2
    SUSPICIOUS_ORGANIZER_THRESHOLD: int = 10

    @classmethod
    def from_django(cls) -> Self:
        overrides = getattr(settings, "TICKET_INVENTORY", {}) or {}
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown TICKET_INVENTORY keys: {sorted(unknown)}")
        values = dict(overrides)
        if "HIGH_VALUE_AMOUNT" in values:
            values["HIGH_VALUE_AMOUNT"] = Decimal(str(values["HIGH_VALUE_AMOUNT"]))
        return cls(**values)
