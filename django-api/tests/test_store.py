"""Tests for the Django inventory store.

Run with: pytest tests/test_store.py -v
"""

import uuid
from datetime import timedelta

import pytest
from django.db import OperationalError

from tickets.domain import EventId, PaymentStatus, TicketId, TicketStatus, TicketTypeId
from tickets.domain.errors import (
    DependencyFailureError,
    MaxPerCustomerExceededError,
    SoldOutError,
    TicketTypeNotFoundError,
)
from tickets.domain.requests import AttachPayment, MarkCancelled, MarkSold, TicketFilter
from tickets.stores.django_store import DjangoInventoryStore, translate_db_errors


@pytest.fixture
def store() -> DjangoInventoryStore:
    return DjangoInventoryStore()


def reserve(store, ticket_type, clock, quantity=1, customer="42"):
    return store.create_reservation(
        ticket_type_id=TicketTypeId(ticket_type.id),
        customer_id=customer,
        quantity=quantity,
        customer_name="Maria Santos",
        customer_email="maria@example.com",
        reserved_at=clock(),
        expires_at=clock() + timedelta(minutes=15),
    )


@pytest.mark.django_db
class TestCreateReservation:
    """Capacity and caps are re-checked inside the writing transaction."""

    def test_rechecks_capacity_at_commit(self, store, make_ticket_type, clock):
        ticket_type = make_ticket_type(quantity=2)
        reserve(store, ticket_type, clock, quantity=2, customer="1")
        with pytest.raises(SoldOutError):
            reserve(store, ticket_type, clock, quantity=1, customer="2")
        assert store.count_tickets(TicketFilter(ticket_type_id=str(ticket_type.id))) == 2

    def test_rechecks_customer_cap_at_commit(self, store, make_ticket_type, clock):
        ticket_type = make_ticket_type(max_per_customer=1)
        reserve(store, ticket_type, clock)
        with pytest.raises(MaxPerCustomerExceededError):
            reserve(store, ticket_type, clock)

    def test_batch_is_all_or_nothing(self, store, make_ticket_type, clock):
        """A batch that does not fit creates no tickets at all."""
        ticket_type = make_ticket_type(quantity=3, max_per_customer=5)
        with pytest.raises(SoldOutError):
            reserve(store, ticket_type, clock, quantity=4)
        assert store.ticket_statuses(TicketTypeId(ticket_type.id)) == []

    def test_unknown_ticket_type(self, store, clock, db):
        with pytest.raises(TicketTypeNotFoundError):
            store.create_reservation(
                TicketTypeId(uuid.uuid4()), "42", 1, "Maria Santos",
                "maria@example.com", clock(), clock(),
            )


@pytest.mark.django_db
class TestUpdateTicket:
    """Conditional transitions never overwrite a ticket that already moved."""

    def test_transition_applies_when_expected(self, store, free_type, clock):
        ticket = reserve(store, free_type, clock)[0]
        sold = store.update_ticket(
            ticket.id, MarkSold(purchased_at=clock()), {TicketStatus.RESERVED}, clock()
        )
        assert sold.status is TicketStatus.SOLD
        assert sold.expires_at is None

    def test_transition_skipped_when_status_moved(self, store, free_type, clock):
        ticket = reserve(store, free_type, clock)[0]
        store.update_ticket(
            ticket.id, MarkSold(purchased_at=clock()), {TicketStatus.RESERVED}, clock()
        )
        result = store.update_ticket(
            ticket.id, MarkCancelled(cancelled_at=clock()), {TicketStatus.RESERVED}, clock()
        )
        assert result is None
        assert store.get_ticket(ticket.id).status is TicketStatus.SOLD

    def test_attach_payment_keeps_status(self, store, paid_type, clock):
        ticket = reserve(store, paid_type, clock)[0]
        updated = store.update_ticket(
            ticket.id,
            AttachPayment(payment_id="pi_1", payment_status=PaymentStatus.PENDING),
            {TicketStatus.RESERVED},
            clock(),
        )
        assert updated.status is TicketStatus.RESERVED
        assert updated.expires_at == ticket.expires_at
        found = store.find_tickets(TicketFilter(payment_id="pi_1"))
        assert [t.id for t in found] == [ticket.id]


@pytest.mark.django_db
class TestCancelExpiredReservations:
    def test_only_expired_reserved_rows(self, store, free_type, clock):
        stale = reserve(store, free_type, clock, customer="1")[0]
        sold = reserve(store, free_type, clock, customer="2")[0]
        store.update_ticket(
            sold.id, MarkSold(purchased_at=clock()), {TicketStatus.RESERVED}, clock()
        )
        later = clock() + timedelta(minutes=30)
        cancelled = store.cancel_expired_reservations(later)
        assert [t.id for t in cancelled] == [stale.id]
        assert cancelled[0].cancelled_at == later
        assert store.count_sold_for_event(EventId(free_type.event_id)) == 1


class TestTranslateDbErrors:
    def test_database_error_becomes_dependency_failure(self):
        @translate_db_errors
        def broken():
            raise OperationalError("connection refused")

        with pytest.raises(DependencyFailureError) as exc_info:
            broken()
        assert exc_info.value.retryable
        assert isinstance(exc_info.value.cause, OperationalError)

    def test_domain_errors_pass_through(self):
        @translate_db_errors
        def sold_out():
            raise SoldOutError("abc")

        with pytest.raises(SoldOutError):
            sold_out()


@pytest.mark.django_db
def test_get_ticket_missing(store):
    assert store.get_ticket(TicketId(uuid.uuid4())) is None
