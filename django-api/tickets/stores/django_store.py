"""Django ORM implementation of the inventory stores.

Concurrency: reservations lock the TicketType row with ``select_for_update``
and re-count live tickets inside the same transaction that inserts the new
rows. On PostgreSQL this serializes reservations per ticket type, so the
capacity check and the insert behave as one unit. Ticket transitions are
conditional ``UPDATE ... WHERE status IN (...)`` statements; a ticket that
already left the expected state is never overwritten.
"""

import functools
import logging
import uuid
from collections.abc import Collection
from dataclasses import fields
from datetime import datetime
from enum import Enum

from django.db import DatabaseError, transaction
from django.db.models import Q

from tickets import models as orm
from tickets.domain import (
    LIVE_STATUSES,
    ApprovalStatus,
    EventId,
    EventSnapshot,
    EventVisibility,
    Money,
    OrganizerAccount,
    PaymentStatus,
    Quantity,
    Ticket,
    TicketId,
    TicketStatus,
    TicketType,
    TicketTypeId,
)
from tickets.domain.errors import (
    DependencyFailureError,
    ErrorCode,
    InvalidRequestError,
    InvalidStatusError,
    TicketTypeNotFoundError,
)
from tickets.domain.requests import TicketFilter, TicketTypeChanges, TicketTypeDraft, TicketUpdate
from tickets.domain.validation import ensure_available, ensure_within_customer_limit
from tickets.stores.interfaces import EventDirectory, InventoryStore

logger = logging.getLogger(__name__)

_LIVE = [status.value for status in LIVE_STATUSES]


def translate_db_errors(fn):
    """Wrap database transport errors in DependencyFailureError."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except DatabaseError as exc:
            logger.exception("Inventory store call %s failed", fn.__name__)
            raise DependencyFailureError("inventory store", exc) from exc

    return wrapper


def to_ticket_type(row: orm.TicketType) -> TicketType:
    return TicketType(
        id=TicketTypeId(row.id),
        event_id=EventId(row.event_id),
        name=row.name,
        description=row.description,
        price=Money(amount=row.price_amount, currency=row.price_currency),
        quantity=Quantity(row.quantity),
        max_per_customer=row.max_per_customer,
        require_approval=row.require_approval,
        sale_start=row.sale_start,
        sale_end=row.sale_end,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def to_ticket(row: orm.Ticket) -> Ticket:
    return Ticket(
        id=TicketId(row.id),
        event_id=EventId(row.event_id),
        ticket_type_id=TicketTypeId(row.ticket_type_id),
        customer_id=row.customer_id,
        status=TicketStatus(row.status),
        approval_status=ApprovalStatus(row.approval_status) if row.approval_status else None,
        price=Money(amount=row.price_amount, currency=row.price_currency),
        customer_name=row.customer_name,
        customer_email=row.customer_email,
        payment_id=row.payment_id,
        payment_status=PaymentStatus(row.payment_status) if row.payment_status else None,
        reserved_at=row.reserved_at,
        expires_at=row.expires_at,
        purchased_at=row.purchased_at,
        cancelled_at=row.cancelled_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _column_values(update: TicketUpdate, now: datetime) -> dict:
    values = {}
    for field in fields(update):
        value = getattr(update, field.name)
        if value is None:
            continue
        values[field.name] = value.value if isinstance(value, Enum) else value
    if update.target_status is not None:
        values["status"] = update.target_status.value
        values["expires_at"] = None
    values["updated_at"] = now
    return values


def _ticket_q(query: TicketFilter) -> Q:
    q = Q()
    if query.event_id is not None:
        q &= Q(event_id=query.event_id)
    if query.ticket_type_id is not None:
        q &= Q(ticket_type_id=query.ticket_type_id)
    if query.customer_id is not None:
        q &= Q(customer_id=query.customer_id)
    if query.payment_id is not None:
        q &= Q(payment_id=query.payment_id)
    if query.statuses:
        q &= Q(status__in=[status.value for status in query.statuses])
    if query.approval_status is not None:
        q &= Q(approval_status=query.approval_status.value)
    return q


class DjangoInventoryStore(InventoryStore):
    """PostgreSQL-backed inventory store using Django ORM."""

    @translate_db_errors
    def get_ticket_type(self, ticket_type_id: TicketTypeId) -> TicketType | None:
        row = orm.TicketType.objects.filter(pk=ticket_type_id.value).first()
        return to_ticket_type(row) if row else None

    @translate_db_errors
    def list_ticket_types(self, event_id: EventId) -> list[TicketType]:
        rows = orm.TicketType.objects.filter(event_id=event_id.value).order_by("created_at")
        return [to_ticket_type(row) for row in rows]

    @translate_db_errors
    def create_ticket_type(self, draft: TicketTypeDraft, now: datetime) -> TicketType:
        row = orm.TicketType.objects.create(
            event_id=draft.event_id.value,
            name=draft.name,
            description=draft.description,
            price_amount=draft.price.amount,
            price_currency=draft.price.currency,
            quantity=draft.quantity,
            max_per_customer=draft.max_per_customer,
            require_approval=draft.require_approval,
            sale_start=draft.sale_start,
            sale_end=draft.sale_end,
            created_at=now,
            updated_at=now,
        )
        return to_ticket_type(row)

    @translate_db_errors
    def update_ticket_type(
        self, ticket_type_id: TicketTypeId, changes: TicketTypeChanges, now: datetime
    ) -> TicketType:
        with transaction.atomic():
            row = self._lock_ticket_type(ticket_type_id)
            provided = changes.provided()
            new_quantity = provided.get("quantity")
            if new_quantity is not None and new_quantity < row.quantity:
                claimed = orm.Ticket.objects.filter(
                    ticket_type_id=row.id, status__in=_LIVE
                ).count()
                if new_quantity < claimed:
                    raise InvalidRequestError(
                        "Quantity cannot be lower than tickets already claimed"
                    )
            price = provided.pop("price", None)
            if price is not None:
                row.price_amount = price.amount
                row.price_currency = price.currency
            for name, value in provided.items():
                setattr(row, name, value)
            row.updated_at = now
            row.save()
        return to_ticket_type(row)

    @translate_db_errors
    def delete_ticket_type(self, ticket_type_id: TicketTypeId) -> None:
        with transaction.atomic():
            row = self._lock_ticket_type(ticket_type_id)
            if orm.Ticket.objects.filter(ticket_type_id=row.id).exists():
                raise InvalidStatusError(
                    "Ticket type has tickets and cannot be deleted",
                    code=ErrorCode.TICKET_TYPE_IN_USE,
                )
            row.delete()

    @translate_db_errors
    def get_ticket(self, ticket_id: TicketId) -> Ticket | None:
        row = orm.Ticket.objects.filter(pk=ticket_id.value).first()
        return to_ticket(row) if row else None

    @translate_db_errors
    def find_tickets(self, query: TicketFilter) -> list[Ticket]:
        rows = orm.Ticket.objects.filter(_ticket_q(query)).order_by("created_at", "id")
        return [to_ticket(row) for row in rows]

    @translate_db_errors
    def count_tickets(self, query: TicketFilter) -> int:
        return orm.Ticket.objects.filter(_ticket_q(query)).count()

    @translate_db_errors
    def ticket_statuses(self, ticket_type_id: TicketTypeId) -> list[TicketStatus]:
        statuses = orm.Ticket.objects.filter(ticket_type_id=ticket_type_id.value).values_list(
            "status", flat=True
        )
        return [TicketStatus(status) for status in statuses]

    @translate_db_errors
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
        with transaction.atomic():
            ticket_type = self._lock_ticket_type(ticket_type_id)
            live = orm.Ticket.objects.filter(ticket_type_id=ticket_type.id, status__in=_LIVE)
            ensure_available(str(ticket_type_id), ticket_type.quantity - live.count(), quantity)
            ensure_within_customer_limit(
                str(ticket_type_id),
                live.filter(customer_id=customer_id).count(),
                quantity,
                ticket_type.max_per_customer,
            )
            approval = orm.Ticket.Approval.PENDING if ticket_type.require_approval else None
            rows = [
                orm.Ticket(
                    id=uuid.uuid4(),
                    event_id=ticket_type.event_id,
                    ticket_type=ticket_type,
                    customer_id=customer_id,
                    status=orm.Ticket.Status.RESERVED,
                    approval_status=approval,
                    price_amount=ticket_type.price_amount,
                    price_currency=ticket_type.price_currency,
                    customer_name=customer_name,
                    customer_email=customer_email,
                    reserved_at=reserved_at,
                    expires_at=expires_at,
                    created_at=reserved_at,
                    updated_at=reserved_at,
                )
                for _ in range(quantity)
            ]
            orm.Ticket.objects.bulk_create(rows)
        return [to_ticket(row) for row in rows]

    @translate_db_errors
    def update_ticket(
        self,
        ticket_id: TicketId,
        update: TicketUpdate,
        expected: Collection[TicketStatus],
        now: datetime,
    ) -> Ticket | None:
        with transaction.atomic():
            updated = orm.Ticket.objects.filter(
                pk=ticket_id.value, status__in=[status.value for status in expected]
            ).update(**_column_values(update, now))
            if not updated:
                return None
            return to_ticket(orm.Ticket.objects.get(pk=ticket_id.value))

    @translate_db_errors
    def cancel_expired_reservations(self, now: datetime) -> list[Ticket]:
        with transaction.atomic():
            expired_ids = list(
                orm.Ticket.objects.select_for_update(skip_locked=True)
                .filter(status=orm.Ticket.Status.RESERVED, expires_at__lte=now)
                .values_list("id", flat=True)
            )
            if not expired_ids:
                return []
            orm.Ticket.objects.filter(
                id__in=expired_ids, status=orm.Ticket.Status.RESERVED
            ).update(
                status=orm.Ticket.Status.CANCELLED,
                cancelled_at=now,
                expires_at=None,
                updated_at=now,
            )
            rows = orm.Ticket.objects.filter(
                id__in=expired_ids, status=orm.Ticket.Status.CANCELLED
            )
            return [to_ticket(row) for row in rows]

    @translate_db_errors
    def count_sold_for_event(self, event_id: EventId) -> int:
        return orm.Ticket.objects.filter(
            event_id=event_id.value, status=orm.Ticket.Status.SOLD
        ).count()

    def _lock_ticket_type(self, ticket_type_id: TicketTypeId) -> orm.TicketType:
        try:
            return orm.TicketType.objects.select_for_update().get(pk=ticket_type_id.value)
        except orm.TicketType.DoesNotExist:
            raise TicketTypeNotFoundError(str(ticket_type_id)) from None


class DjangoEventDirectory(EventDirectory):
    """Reads events and organizers from the catalog tables."""

    @translate_db_errors
    def get_event(self, event_id: EventId) -> EventSnapshot | None:
        row = orm.Event.objects.filter(pk=event_id.value).first()
        if row is None:
            return None
        return EventSnapshot(
            id=EventId(row.id),
            organizer_id=str(row.organizer_id),
            starts_at=row.starts_at,
            ends_at=row.ends_at,
            capacity=row.capacity,
            visibility=EventVisibility(row.visibility),
            is_published=row.is_published,
        )

    @translate_db_errors
    def get_organizer(self, organizer_id: str) -> OrganizerAccount | None:
        try:
            pk = uuid.UUID(str(organizer_id))
        except ValueError:
            return None
        row = orm.Organizer.objects.filter(pk=pk).first()
        if row is None:
            return None
        return OrganizerAccount(
            id=str(row.id),
            is_enabled=row.is_enabled,
            email_verified=row.email_verified,
        )
