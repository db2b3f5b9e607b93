"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
Organizer and Event are owned by the event catalog; the tickets app only
reads them for ownership and lifecycle checks.
"""

import uuid

from django.db import models


class Organizer(models.Model):
    """Persistence model for organizer accounts."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    is_enabled = models.BooleanField(default=True)
    email_verified = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.email


class Event(models.Model):
    """Persistence model for events."""

    class Visibility(models.TextChoices):
        PUBLIC = "PUBLIC"
        PRIVATE = "PRIVATE"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organizer = models.ForeignKey(
        Organizer, on_delete=models.PROTECT, related_name="events"
    )
    name = models.CharField(max_length=255)
    starts_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)
    capacity = models.PositiveIntegerField(default=0)
    visibility = models.CharField(
        max_length=16, choices=Visibility.choices, default=Visibility.PUBLIC
    )
    is_published = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.name


class TicketType(models.Model):
    """Persistence model for ticket types."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(
        Event, on_delete=models.CASCADE, related_name="ticket_types"
    )
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")
    price_amount = models.DecimalField(max_digits=10, decimal_places=2)
    price_currency = models.CharField(max_length=3)
    quantity = models.PositiveIntegerField()
    max_per_customer = models.PositiveIntegerField(default=1)
    require_approval = models.BooleanField(default=False)
    sale_start = models.DateTimeField(null=True, blank=True)
    sale_end = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["event"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} - {self.price_amount} {self.price_currency}"


class Ticket(models.Model):
    """Persistence model for tickets. Rows are never deleted."""

    class Status(models.TextChoices):
        RESERVED = "RESERVED"
        SOLD = "SOLD"
        CANCELLED = "CANCELLED"

    class Approval(models.TextChoices):
        PENDING = "PENDING"
        APPROVED = "APPROVED"
        REJECTED = "REJECTED"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="tickets")
    ticket_type = models.ForeignKey(
        TicketType, on_delete=models.PROTECT, related_name="tickets"
    )
    customer_id = models.CharField(max_length=128)
    status = models.CharField(max_length=16, choices=Status.choices)
    approval_status = models.CharField(
        max_length=16, choices=Approval.choices, null=True, blank=True
    )
    price_amount = models.DecimalField(max_digits=10, decimal_places=2)
    price_currency = models.CharField(max_length=3)
    customer_name = models.CharField(max_length=255)
    customer_email = models.EmailField()
    payment_id = models.CharField(max_length=255, null=True, blank=True)
    payment_status = models.CharField(max_length=16, null=True, blank=True)
    reserved_at = models.DateTimeField()
    expires_at = models.DateTimeField(null=True, blank=True)
    purchased_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["ticket_type", "status"]),
            models.Index(fields=["ticket_type", "customer_id", "status"]),
            models.Index(fields=["event", "approval_status"]),
            models.Index(fields=["customer_id"]),
            models.Index(fields=["payment_id"]),
            models.Index(fields=["status", "expires_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.ticket_type_id} - {self.customer_id} - {self.status}"
