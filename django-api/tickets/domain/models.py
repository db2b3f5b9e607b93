"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in tickets/models.py (persistence layer).
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from tickets.domain.value_objects import EventId, Money, Quantity, TicketId, TicketTypeId


class TicketStatus(Enum):
    """Lifecycle of a claimed unit. SOLD and CANCELLED are terminal."""

    RESERVED = "RESERVED"
    SOLD = "SOLD"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not TicketStatus.RESERVED


LIVE_STATUSES = frozenset({TicketStatus.RESERVED, TicketStatus.SOLD})


class ApprovalStatus(Enum):
    """Organizer approval sub-state for ticket types that require approval."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PaymentStatus(Enum):
    """Payment states reported by the gateway."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"


class EventVisibility(Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"


@dataclass(frozen=True)
class TicketType:
    """Domain representation of a TicketType."""

    id: TicketTypeId
    event_id: EventId
    name: str
    price: Money
    quantity: Quantity
    max_per_customer: int
    require_approval: bool
    created_at: datetime
    updated_at: datetime
    description: str = ""
    sale_start: datetime | None = None
    sale_end: datetime | None = None


@dataclass(frozen=True)
class Ticket:
    """Domain representation of a Ticket.

    ``expires_at`` is only meaningful while the ticket is RESERVED; use
    ``is_expired`` rather than reading it directly.
    """

    id: TicketId
    event_id: EventId
    ticket_type_id: TicketTypeId
    customer_id: str
    status: TicketStatus
    price: Money
    customer_name: str
    customer_email: str
    reserved_at: datetime
    created_at: datetime
    updated_at: datetime
    approval_status: ApprovalStatus | None = None
    payment_id: str | None = None
    payment_status: PaymentStatus | None = None
    expires_at: datetime | None = None
    purchased_at: datetime | None = None
    cancelled_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return (
            self.status is TicketStatus.RESERVED
            and self.expires_at is not None
            and self.expires_at <= now
        )


@dataclass(frozen=True)
class TicketTypeStats:
    """Live inventory counts for one ticket type."""

    total: int
    available: int
    reserved: int
    sold: int
    cancelled: int


@dataclass(frozen=True)
class EventSnapshot:
    """Read-only view of an event, used for organizer checks."""

    id: EventId
    organizer_id: str
    starts_at: datetime | None
    ends_at: datetime | None
    capacity: int
    visibility: EventVisibility
    is_published: bool


@dataclass(frozen=True)
class OrganizerAccount:
    """Read-only view of an organizer's account state."""

    id: str
    is_enabled: bool
    email_verified: bool
