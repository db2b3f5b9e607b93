from tickets.domain.models import (
    LIVE_STATUSES,
    ApprovalStatus,
    EventSnapshot,
    EventVisibility,
    OrganizerAccount,
    PaymentStatus,
    Ticket,
    TicketStatus,
    TicketType,
    TicketTypeStats,
)
from tickets.domain.value_objects import EventId, Money, Quantity, TicketId, TicketTypeId

__all__ = [
    "LIVE_STATUSES",
    "ApprovalStatus",
    "EventSnapshot",
    "EventVisibility",
    "OrganizerAccount",
    "PaymentStatus",
    "Ticket",
    "TicketStatus",
    "TicketType",
    "TicketTypeStats",
    "EventId",
    "TicketId",
    "TicketTypeId",
    "Money",
    "Quantity",
]
