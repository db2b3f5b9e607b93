"""Ticket service - all business logic lives here.

Services:
- Depend only on interfaces (stores, cache, gateway)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or raise domain errors

A ticket moves RESERVED -> SOLD or RESERVED -> CANCELLED and never back.
Every transition is a conditional update on the current status, so the
expiry sweep, webhooks and purchases can race without clobbering each other.
"""

import logging
from collections.abc import Callable, Collection
from datetime import datetime, timedelta

from django.utils import timezone

from tickets.cache import (
    TicketCache,
    customer_tickets_key,
    event_ticket_types_key,
    event_tickets_key,
    ticket_key,
    ticket_type_key,
)
from tickets.conf import InventorySettings
from tickets.domain import (
    LIVE_STATUSES,
    ApprovalStatus,
    EventId,
    PaymentStatus,
    Ticket,
    TicketId,
    TicketStatus,
    TicketType,
    TicketTypeId,
    TicketTypeStats,
)
from tickets.domain.errors import (
    ErrorCode,
    InvalidIdError,
    InvalidRequestError,
    InvalidStatusError,
    TicketNotFoundError,
    TicketTypeNotFoundError,
    UnauthorizedError,
)
from tickets.domain.requests import (
    AttachPayment,
    MarkCancelled,
    MarkSold,
    RecordPaymentStatus,
    ReservationRequest,
    SetApproval,
    TicketFilter,
    TicketTypeChanges,
    TicketTypeDraft,
    TicketUpdate,
)
from tickets.domain.validation import (
    classify,
    ensure_available,
    ensure_positive_quantity,
    ensure_sale_window_open,
    ensure_valid_settings,
    ensure_within_customer_limit,
)
from tickets.payments.interfaces import PaymentGateway, PaymentRequest
from tickets.services.guard import Action, FraudGuard, OrganizerGuard, RateLimiter
from tickets.stores.interfaces import InventoryStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_RESERVED = frozenset({TicketStatus.RESERVED})


def parse_ticket_type_id(value: str) -> TicketTypeId:
    try:
        return TicketTypeId.from_string(value)
    except ValueError:
        raise InvalidIdError("ticket type ID") from None


def parse_ticket_id(value: str) -> TicketId:
    try:
        return TicketId.from_string(value)
    except ValueError:
        raise InvalidIdError("ticket ID") from None


def parse_event_id(value: str) -> EventId:
    try:
        return EventId.from_string(value)
    except ValueError:
        raise InvalidIdError("event ID") from None


class TicketService:
    """Service for ticket inventory operations."""

    def __init__(
        self,
        store: InventoryStore,
        cache: TicketCache,
        rate_limiter: RateLimiter,
        fraud_guard: FraudGuard,
        organizer_guard: OrganizerGuard,
        payment_gateway: PaymentGateway,
        conf: InventorySettings,
        clock: Clock = timezone.now,
    ) -> None:
        self._store = store
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._fraud_guard = fraud_guard
        self._organizer_guard = organizer_guard
        self._payment_gateway = payment_gateway
        self._conf = conf
        self._clock = clock

    # Ticket types

    def get_ticket_type(self, ticket_type_id: str) -> TicketType:
        """Return a ticket type by ID.

        Raises:
            InvalidIdError: If the ticket_type_id is not a valid UUID.
            TicketTypeNotFoundError: If the ticket type does not exist.
        """
        tt_id = parse_ticket_type_id(ticket_type_id)
        ticket_type = self._cache.get_or_load(
            ticket_type_key(tt_id), lambda: self._store.get_ticket_type(tt_id)
        )
        if ticket_type is None:
            raise TicketTypeNotFoundError(ticket_type_id)
        return ticket_type

    def list_event_ticket_types(self, event_id: str) -> list[TicketType]:
        ev_id = parse_event_id(event_id)
        return self._cache.get_or_load(
            event_ticket_types_key(ev_id), lambda: self._store.list_ticket_types(ev_id)
        )

    def create_ticket_type(
        self, organizer_id: str, draft: TicketTypeDraft, ip: str | None = None
    ) -> TicketType:
        """Create a ticket type for an event the organizer owns.

        Raises:
            InvalidRequestError: If the draft's settings are invalid.
            Any error from ``OrganizerGuard.verify_organizer_owns_event``.
        """
        if not draft.name.strip():
            raise InvalidRequestError("Name is required")
        ensure_valid_settings(
            draft.quantity, draft.max_per_customer, draft.sale_start, draft.sale_end
        )
        self._organizer_guard.verify_organizer_owns_event(organizer_id, draft.event_id, ip)

        ticket_type = self._store.create_ticket_type(draft, self._clock())
        self._cache.invalidate_ticket_type(ticket_type)
        logger.info("Created ticket type %s for event %s", ticket_type.id, ticket_type.event_id)
        return ticket_type

    def update_ticket_type(
        self,
        organizer_id: str,
        ticket_type_id: str,
        changes: TicketTypeChanges,
        ip: str | None = None,
    ) -> TicketType:
        """Apply a partial update.

        Quantity may not drop below the number of live tickets.
        """
        tt_id = parse_ticket_type_id(ticket_type_id)
        current = self._require_ticket_type(tt_id)
        self._organizer_guard.verify_organizer_owns_event(organizer_id, current.event_id, ip)

        if changes.name is not None and not changes.name.strip():
            raise InvalidRequestError("Name is required")
        ensure_valid_settings(
            _pick(changes.quantity, current.quantity.value),
            _pick(changes.max_per_customer, current.max_per_customer),
            _pick(changes.sale_start, current.sale_start),
            _pick(changes.sale_end, current.sale_end),
        )

        updated = self._store.update_ticket_type(tt_id, changes, self._clock())
        self._cache.invalidate_ticket_type(updated)
        logger.info("Updated ticket type %s", updated.id)
        return updated

    def delete_ticket_type(
        self, organizer_id: str, ticket_type_id: str, ip: str | None = None
    ) -> None:
        """Delete a ticket type that has never had tickets claimed.

        Raises:
            InvalidStatusError: If any ticket references the ticket type.
        """
        tt_id = parse_ticket_type_id(ticket_type_id)
        current = self._require_ticket_type(tt_id)
        self._organizer_guard.verify_organizer_owns_event(organizer_id, current.event_id, ip)

        self._store.delete_ticket_type(tt_id)
        self._cache.invalidate_ticket_type(current)
        logger.info("Deleted ticket type %s", tt_id)

    # Reservation and purchase

    def reserve_tickets(
        self, customer_id: str, request: ReservationRequest, ip: str
    ) -> list[Ticket]:
        """Reserve ``request.quantity`` units for a customer.

        The availability and per-customer checks here are the fast path; the
        store repeats both inside the transaction that writes the tickets, so
        concurrent reservations can never oversell.

        Raises:
            RateLimitExceededError: Before anything else is read.
            FraudDetectedError: If a fraud heuristic trips.
            TicketTypeNotFoundError: If the ticket type does not exist.
            EventLifecycleViolationError: If the sale window is closed.
            SoldOutError: If capacity cannot cover the request.
            MaxPerCustomerExceededError: If the customer cap would be exceeded.
        """
        self._rate_limiter.hit(Action.RESERVATION, customer_id, ip)
        tt_id = parse_ticket_type_id(request.ticket_type_id)
        ensure_positive_quantity(request.quantity)

        ticket_type = self.get_ticket_type(str(tt_id))
        self._fraud_guard.check(customer_id, ip, ticket_type.price)

        now = self._clock()
        ensure_sale_window_open(ticket_type, now)
        self.validate_ticket_availability(str(tt_id), request.quantity)
        self.validate_customer_ticket_limit(customer_id, str(tt_id), request.quantity)

        tickets = self._store.create_reservation(
            ticket_type_id=tt_id,
            customer_id=customer_id,
            quantity=request.quantity,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            reserved_at=now,
            expires_at=now + timedelta(seconds=self._conf.RESERVATION_TTL_SECONDS),
        )
        self._cache.invalidate_tickets(tickets)
        logger.info(
            "Reserved %d ticket(s) of type %s for customer %s",
            len(tickets), tt_id, customer_id,
        )
        return tickets

    def purchase_tickets(
        self, customer_id: str, reservation_id: str, ip: str
    ) -> list[Ticket]:
        """Purchase a reserved ticket.

        Free tickets become SOLD in this call. Priced tickets get a gateway
        payment attached and stay RESERVED until the payment webhook arrives.

        Raises:
            RateLimitExceededError, FraudDetectedError: From the guards.
            TicketNotFoundError: If the reservation does not exist.
            InvalidStatusError: If the ticket is not RESERVED, the reservation
                has expired, or a payment is already in progress.
            UnauthorizedError: If the ticket belongs to another customer.
            DependencyFailureError: If the payment gateway fails.
        """
        self._rate_limiter.hit(Action.PURCHASE, customer_id, ip)
        ticket_id = parse_ticket_id(reservation_id)
        ticket = self._require_ticket(ticket_id)
        self._fraud_guard.check(customer_id, ip, ticket.price)

        if ticket.status is not TicketStatus.RESERVED:
            raise InvalidStatusError("Ticket is not reserved")
        if ticket.customer_id != str(customer_id):
            raise UnauthorizedError("Not the ticket owner")
        now = self._clock()
        if ticket.is_expired(now):
            raise InvalidStatusError(
                "Reservation has expired", code=ErrorCode.RESERVATION_EXPIRED
            )
        if ticket.payment_id is not None:
            raise InvalidStatusError("Payment already in progress for this reservation")

        if ticket.price.is_free:
            sold = self._transition(ticket_id, MarkSold(purchased_at=now), _RESERVED, now)
            if sold is None:
                raise InvalidStatusError("Ticket is not reserved")
            logger.info("Ticket %s sold (free)", ticket_id)
            return [sold]

        intent = self._payment_gateway.create_payment(
            PaymentRequest(
                price=ticket.price,
                customer_id=ticket.customer_id,
                customer_email=ticket.customer_email,
                metadata={
                    "ticket_id": str(ticket.id),
                    "event_id": str(ticket.event_id),
                    "ticket_type_id": str(ticket.ticket_type_id),
                },
            )
        )
        pending = self._transition(
            ticket_id, AttachPayment(payment_id=intent.id, payment_status=intent.status),
            _RESERVED, now,
        )
        if pending is None:
            logger.warning(
                "Ticket %s left RESERVED while payment %s was created", ticket_id, intent.id
            )
            raise InvalidStatusError("Ticket is not reserved")
        logger.info("Ticket %s awaiting payment %s", ticket_id, intent.id)
        return [pending]

    def cancel_reservation(self, customer_id: str, reservation_id: str) -> None:
        """Customer-initiated cancellation of their own reservation.

        Raises:
            TicketNotFoundError: If the reservation does not exist.
            UnauthorizedError: If the ticket belongs to another customer.
            InvalidStatusError: If the ticket is not RESERVED.
        """
        ticket_id = parse_ticket_id(reservation_id)
        ticket = self._require_ticket(ticket_id)
        if ticket.customer_id != str(customer_id):
            raise UnauthorizedError("Not the ticket owner")
        if ticket.status is not TicketStatus.RESERVED:
            raise InvalidStatusError("Ticket is not reserved")

        now = self._clock()
        if self._transition(ticket_id, MarkCancelled(cancelled_at=now), _RESERVED, now) is None:
            raise InvalidStatusError("Ticket is not reserved")
        logger.info("Reservation %s cancelled by customer %s", ticket_id, customer_id)

    # Ticket management

    def get_ticket(self, ticket_id: str) -> Ticket:
        t_id = parse_ticket_id(ticket_id)
        ticket = self._cache.get_or_load(ticket_key(t_id), lambda: self._store.get_ticket(t_id))
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        return ticket

    def list_customer_tickets(self, customer_id: str) -> list[Ticket]:
        return self._cache.get_or_load(
            customer_tickets_key(customer_id),
            lambda: self._store.find_tickets(TicketFilter(customer_id=str(customer_id))),
        )

    def list_event_tickets(self, event_id: str) -> list[Ticket]:
        ev_id = parse_event_id(event_id)
        return self._cache.get_or_load(
            event_tickets_key(ev_id),
            lambda: self._store.find_tickets(TicketFilter(event_id=str(ev_id))),
        )

    def cancel_ticket(self, ticket_id: str) -> Ticket:
        """Operator-initiated cancellation of a reservation.

        Raises:
            InvalidStatusError: ``ALREADY_CANCELLED`` for cancelled tickets,
                ``INVALID_STATUS`` for sold ones.
        """
        t_id = parse_ticket_id(ticket_id)
        ticket = self._require_ticket(t_id)
        if ticket.status is TicketStatus.CANCELLED:
            raise InvalidStatusError(
                "Ticket is already cancelled", code=ErrorCode.ALREADY_CANCELLED
            )
        if ticket.status is TicketStatus.SOLD:
            raise InvalidStatusError("Sold tickets cannot be cancelled")

        now = self._clock()
        cancelled = self._transition(t_id, MarkCancelled(cancelled_at=now), _RESERVED, now)
        if cancelled is None:
            raise InvalidStatusError("Ticket is not reserved")
        logger.info("Ticket %s cancelled by operator", t_id)
        return cancelled

    def approve_ticket(
        self, organizer_id: str, ticket_id: str, ip: str | None = None
    ) -> Ticket:
        t_id = parse_ticket_id(ticket_id)
        ticket = self._require_ticket(t_id)
        self._organizer_guard.verify_organizer_owns_event(organizer_id, ticket.event_id, ip)
        self._ensure_pending_approval(ticket)

        now = self._clock()
        approved = self._transition(
            t_id, SetApproval(ApprovalStatus.APPROVED), LIVE_STATUSES, now
        )
        if approved is None:
            raise InvalidStatusError("Ticket is cancelled")
        logger.info("Ticket %s approved by %s", t_id, organizer_id)
        return approved

    def reject_ticket(
        self, organizer_id: str, ticket_id: str, ip: str | None = None
    ) -> Ticket:
        """Reject a pending ticket; rejection also cancels it."""
        t_id = parse_ticket_id(ticket_id)
        ticket = self._require_ticket(t_id)
        self._organizer_guard.verify_organizer_owns_event(organizer_id, ticket.event_id, ip)
        self._ensure_pending_approval(ticket)
        if ticket.status is not TicketStatus.RESERVED:
            raise InvalidStatusError("Only reserved tickets can be rejected")

        now = self._clock()
        rejected = self._transition(
            t_id,
            MarkCancelled(cancelled_at=now, approval_status=ApprovalStatus.REJECTED),
            _RESERVED,
            now,
        )
        if rejected is None:
            raise InvalidStatusError("Ticket is not reserved")
        logger.info("Ticket %s rejected by %s", t_id, organizer_id)
        return rejected

    def list_pending_approvals(self, event_id: str) -> list[Ticket]:
        ev_id = parse_event_id(event_id)
        return self._store.find_tickets(
            TicketFilter(
                event_id=str(ev_id),
                approval_status=ApprovalStatus.PENDING,
                statuses=LIVE_STATUSES,
            )
        )

    # Stats and validation

    def get_ticket_type_stats(self, ticket_type_id: str) -> TicketTypeStats:
        """Classify every ticket of the type; never reads a cached count."""
        ticket_type = self.get_ticket_type(ticket_type_id)
        statuses = self._store.ticket_statuses(ticket_type.id)
        return classify(ticket_type.quantity.value, statuses)

    def validate_ticket_availability(self, ticket_type_id: str, quantity: int) -> None:
        """Raises:
            SoldOutError: If fewer than ``quantity`` units are available.
        """
        stats = self.get_ticket_type_stats(ticket_type_id)
        ensure_available(ticket_type_id, stats.available, quantity)

    def validate_customer_ticket_limit(
        self, customer_id: str, ticket_type_id: str, quantity: int
    ) -> None:
        """Raises:
            MaxPerCustomerExceededError: If the customer would exceed the cap.
        """
        ticket_type = self.get_ticket_type(ticket_type_id)
        existing = self._store.count_tickets(
            TicketFilter(
                ticket_type_id=str(ticket_type.id),
                customer_id=str(customer_id),
                statuses=LIVE_STATUSES,
            )
        )
        ensure_within_customer_limit(
            ticket_type_id, existing, quantity, ticket_type.max_per_customer
        )

    # Expiry and payments

    def cleanup_expired_reservations(self) -> list[Ticket]:
        """Cancel every reservation past its expiry and return the cancelled tickets.

        Safe to run concurrently with itself and with purchases: a ticket that
        became SOLD before the sweep commits is left untouched.
        """
        cancelled = self._store.cancel_expired_reservations(self._clock())
        if cancelled:
            self._cache.invalidate_tickets(cancelled)
            logger.info("Cancelled %d expired reservation(s)", len(cancelled))
        return cancelled

    def handle_payment_webhook(
        self,
        payment_id: str,
        status: PaymentStatus,
        payment_method: str | None = None,
    ) -> Ticket | None:
        """Reconcile a gateway notification with the ticket holding ``payment_id``.

        Idempotent: a ticket that is already SOLD or CANCELLED is returned
        unchanged. Returns None when no ticket carries the payment id.
        """
        matches = self._store.find_tickets(TicketFilter(payment_id=payment_id))
        if not matches:
            logger.warning("Webhook for unknown payment %s", payment_id)
            return None
        ticket = matches[0]

        if payment_method:
            self._fraud_guard.record_payment_method(ticket.customer_id, payment_method)

        if ticket.status.is_terminal:
            if status is PaymentStatus.COMPLETED and ticket.status is TicketStatus.CANCELLED:
                logger.warning(
                    "Payment %s completed for cancelled ticket %s", payment_id, ticket.id
                )
            return ticket

        now = self._clock()
        update: TicketUpdate
        if status is PaymentStatus.COMPLETED:
            update = MarkSold(purchased_at=now, payment_status=status)
        elif status in (PaymentStatus.FAILED, PaymentStatus.CANCELLED):
            update = MarkCancelled(cancelled_at=now, payment_status=status)
        else:
            update = RecordPaymentStatus(payment_status=status)

        updated = self._transition(ticket.id, update, _RESERVED, now)
        if updated is None:
            return self._store.get_ticket(ticket.id)
        logger.info("Payment %s is %s; ticket %s is %s",
                    payment_id, status.value, ticket.id, updated.status.value)
        return updated

    # Helpers

    def _require_ticket_type(self, ticket_type_id: TicketTypeId) -> TicketType:
        ticket_type = self._store.get_ticket_type(ticket_type_id)
        if ticket_type is None:
            raise TicketTypeNotFoundError(str(ticket_type_id))
        return ticket_type

    def _require_ticket(self, ticket_id: TicketId) -> Ticket:
        ticket = self._store.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(str(ticket_id))
        return ticket

    def _ensure_pending_approval(self, ticket: Ticket) -> None:
        if ticket.approval_status is not ApprovalStatus.PENDING:
            raise InvalidStatusError("Ticket is not pending approval")

    def _transition(
        self,
        ticket_id: TicketId,
        update: TicketUpdate,
        expected: Collection[TicketStatus],
        now: datetime,
    ) -> Ticket | None:
        ticket = self._store.update_ticket(ticket_id, update, expected, now)
        if ticket is not None:
            self._cache.invalidate_tickets([ticket])
        return ticket


def _pick(value, fallback):
    return fallback if value is None else value
