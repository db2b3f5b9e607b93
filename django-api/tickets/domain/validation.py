"""Availability and limit checks.

Pure functions over freshly computed counts. They never read the cache and
have no side effects.
"""

from collections.abc import Iterable
from datetime import datetime

from tickets.domain.errors import (
    ErrorCode,
    EventLifecycleViolationError,
    InvalidRequestError,
    MaxPerCustomerExceededError,
    SoldOutError,
)
from tickets.domain.models import TicketStatus, TicketType, TicketTypeStats


def classify(quantity: int, statuses: Iterable[TicketStatus]) -> TicketTypeStats:
    """Count tickets by status and derive the available units."""
    reserved = sold = cancelled = 0
    for status in statuses:
        if status is TicketStatus.RESERVED:
            reserved += 1
        elif status is TicketStatus.SOLD:
            sold += 1
        elif status is TicketStatus.CANCELLED:
            cancelled += 1
    return TicketTypeStats(
        total=quantity,
        available=max(quantity - reserved - sold, 0),
        reserved=reserved,
        sold=sold,
        cancelled=cancelled,
    )


def ensure_positive_quantity(requested: int) -> None:
    if requested < 1:
        raise InvalidRequestError("Quantity must be at least 1")


def ensure_available(ticket_type_id: str, available: int, requested: int) -> None:
    """Raises:
        SoldOutError: If fewer than ``requested`` units remain.
    """
    if available < requested:
        raise SoldOutError(ticket_type_id)


def ensure_within_customer_limit(
    ticket_type_id: str, existing: int, requested: int, max_per_customer: int
) -> None:
    """Raises:
        MaxPerCustomerExceededError: If the customer would hold more than the cap.
    """
    if existing + requested > max_per_customer:
        raise MaxPerCustomerExceededError(ticket_type_id, max_per_customer)


def ensure_sale_window_open(ticket_type: TicketType, now: datetime) -> None:
    if ticket_type.sale_start is not None and now < ticket_type.sale_start:
        raise EventLifecycleViolationError(
            ErrorCode.SALES_NOT_OPEN, "Ticket sales have not started"
        )
    if ticket_type.sale_end is not None and now > ticket_type.sale_end:
        raise EventLifecycleViolationError(
            ErrorCode.SALES_CLOSED, "Ticket sales have ended"
        )


def ensure_valid_settings(
    quantity: int,
    max_per_customer: int,
    sale_start: datetime | None,
    sale_end: datetime | None,
) -> None:
    """Validate ticket type settings shared by create and update."""
    if quantity <= 0:
        raise InvalidRequestError("Quantity must be positive")
    if max_per_customer <= 0:
        raise InvalidRequestError("Max per customer must be positive")
    if sale_start is not None and sale_end is not None and sale_start >= sale_end:
        raise InvalidRequestError("Sale start must be before sale end")
