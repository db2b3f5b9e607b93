"""Input and update structs.

Each struct enumerates exactly the fields an operation may write, so no
operation can set a field it does not own.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import ClassVar

from tickets.domain.models import ApprovalStatus, PaymentStatus, TicketStatus
from tickets.domain.value_objects import EventId, Money


@dataclass(frozen=True)
class TicketTypeDraft:
    """Fields for creating a ticket type."""

    event_id: EventId
    name: str
    price: Money
    quantity: int
    max_per_customer: int = 1
    require_approval: bool = False
    description: str = ""
    sale_start: datetime | None = None
    sale_end: datetime | None = None


@dataclass(frozen=True)
class TicketTypeChanges:
    """Partial update of a ticket type. ``None`` means unchanged.

    A sale window bound can be moved but not cleared; recreate the type for that.
    """

    name: str | None = None
    description: str | None = None
    price: Money | None = None
    quantity: int | None = None
    max_per_customer: int | None = None
    require_approval: bool | None = None
    sale_start: datetime | None = None
    sale_end: datetime | None = None

    def provided(self) -> dict:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


@dataclass(frozen=True)
class ReservationRequest:
    ticket_type_id: str
    quantity: int
    customer_name: str
    customer_email: str


@dataclass(frozen=True)
class MarkSold:
    """RESERVED -> SOLD."""

    target_status: ClassVar[TicketStatus] = TicketStatus.SOLD

    purchased_at: datetime
    payment_status: PaymentStatus | None = None


@dataclass(frozen=True)
class MarkCancelled:
    """RESERVED -> CANCELLED, optionally recording rejection or payment outcome."""

    target_status: ClassVar[TicketStatus] = TicketStatus.CANCELLED

    cancelled_at: datetime
    approval_status: ApprovalStatus | None = None
    payment_status: PaymentStatus | None = None


@dataclass(frozen=True)
class AttachPayment:
    """Record the gateway payment on a reservation without changing status."""

    target_status: ClassVar[TicketStatus | None] = None

    payment_id: str
    payment_status: PaymentStatus


@dataclass(frozen=True)
class RecordPaymentStatus:
    target_status: ClassVar[TicketStatus | None] = None

    payment_status: PaymentStatus


@dataclass(frozen=True)
class SetApproval:
    target_status: ClassVar[TicketStatus | None] = None

    approval_status: ApprovalStatus


TicketUpdate = MarkSold | MarkCancelled | AttachPayment | RecordPaymentStatus | SetApproval


@dataclass(frozen=True)
class TicketFilter:
    """Query over tickets. Unset fields do not constrain the result."""

    event_id: str | None = None
    ticket_type_id: str | None = None
    customer_id: str | None = None
    payment_id: str | None = None
    statuses: frozenset[TicketStatus] = field(default_factory=frozenset)
    approval_status: ApprovalStatus | None = None
