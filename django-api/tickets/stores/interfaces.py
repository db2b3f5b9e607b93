"""Store interfaces (repository pattern).

Stores must be swappable and return domain models. Implementations wrap
transport failures in ``DependencyFailureError``; domain rules enforced at
commit time (capacity, per-customer caps) raise the matching domain error.
"""

from abc import ABC, abstractmethod
from collections.abc import Collection
from datetime import datetime

from tickets.domain import (
    EventId,
    EventSnapshot,
    OrganizerAccount,
    Ticket,
    TicketId,
    TicketStatus,
    TicketType,
    TicketTypeId,
)
from tickets.domain.requests import TicketFilter, TicketTypeChanges, TicketTypeDraft, TicketUpdate


class InventoryStore(ABC):
    """Interface for ticket type and ticket persistence."""

    @abstractmethod
    def get_ticket_type(self, ticket_type_id: TicketTypeId) -> TicketType | None:
        """Return a ticket type by ID, or None if not found."""
        ...

    @abstractmethod
    def list_ticket_types(self, event_id: EventId) -> list[TicketType]:
        """Return all ticket types for an event, ordered by created_at ascending."""
        ...

    @abstractmethod
    def create_ticket_type(self, draft: TicketTypeDraft, now: datetime) -> TicketType:
        ...

    @abstractmethod
    def update_ticket_type(
        self, ticket_type_id: TicketTypeId, changes: TicketTypeChanges, now: datetime
    ) -> TicketType:
        """Apply ``changes`` and return the updated ticket type.

        A lowered quantity is re-validated against the live count under lock.
        """
        ...

    @abstractmethod
    def delete_ticket_type(self, ticket_type_id: TicketTypeId) -> None:
        """Delete a ticket type that has no tickets."""
        ...

    @abstractmethod
    def get_ticket(self, ticket_id: TicketId) -> Ticket | None:
        """Return a ticket by ID, or None if not found."""
        ...

    @abstractmethod
    def find_tickets(self, query: TicketFilter) -> list[Ticket]:
        """Return tickets matching ``query``, ordered by created_at ascending."""
        ...

    @abstractmethod
    def count_tickets(self, query: TicketFilter) -> int:
        ...

    @abstractmethod
    def ticket_statuses(self, ticket_type_id: TicketTypeId) -> list[TicketStatus]:
        """Return the status of every ticket of a type, for stats classification."""
        ...

    @abstractmethod
    def create_reservation(
        self,
        ticket_type_id: TicketTypeId,
        customer_id: str,
        quantity: int,
        customer_name: str,
        customer_email: str,
        reserved_at: datetime,
        expires_at: datetime,
    ) -> list[Ticket]:
        """Create ``quantity`` RESERVED tickets as one atomic batch.

        Capacity and the per-customer cap are re-validated inside the same
        transaction that writes the rows, so concurrent reservations can never
        jointly exceed the ticket type's quantity.

        Raises:
            TicketTypeNotFoundError: If the ticket type does not exist.
            SoldOutError: If capacity is exhausted at commit time.
            MaxPerCustomerExceededError: If the customer cap is hit at commit time.
        """
        ...

    @abstractmethod
    def update_ticket(
        self,
        ticket_id: TicketId,
        update: TicketUpdate,
        expected: Collection[TicketStatus],
        now: datetime,
    ) -> Ticket | None:
        """Apply ``update`` only if the ticket's status is in ``expected``.

        Returns the updated ticket, or None when the condition did not hold.
        The check and the write are a single atomic statement.
        """
        ...

    @abstractmethod
    def cancel_expired_reservations(self, now: datetime) -> list[Ticket]:
        """Cancel every RESERVED ticket with ``expires_at <= now`` as one batch.

        Tickets that left RESERVED concurrently are skipped, never overwritten.
        """
        ...

    @abstractmethod
    def count_sold_for_event(self, event_id: EventId) -> int:
        ...


class EventDirectory(ABC):
    """Read-only access to events and organizer accounts."""

    @abstractmethod
    def get_event(self, event_id: EventId) -> EventSnapshot | None:
        ...

    @abstractmethod
    def get_organizer(self, organizer_id: str) -> OrganizerAccount | None:
        ...

