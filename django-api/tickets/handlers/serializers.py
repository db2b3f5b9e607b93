"""Serializers for transforming domain models to API responses."""

from rest_framework import serializers


class MoneySerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    currency = serializers.CharField()


class TicketTypeSerializer(serializers.Serializer):
    """Serializer for TicketType domain model."""

    id = serializers.CharField()
    event_id = serializers.CharField()
    name = serializers.CharField()
    description = serializers.CharField()
    price = MoneySerializer()
    quantity = serializers.IntegerField(source="quantity.value")
    max_per_customer = serializers.IntegerField()
    require_approval = serializers.BooleanField()
    sale_start = serializers.DateTimeField()
    sale_end = serializers.DateTimeField()


class TicketSerializer(serializers.Serializer):
    """Serializer for Ticket domain model."""

    id = serializers.CharField()
    event_id = serializers.CharField()
    ticket_type_id = serializers.CharField()
    status = serializers.CharField(source="status.value")
    approval_status = serializers.CharField(source="approval_status.value", allow_null=True)
    price = MoneySerializer()
    customer_name = serializers.CharField()
    customer_email = serializers.EmailField()
    payment_id = serializers.CharField()
    payment_status = serializers.CharField(source="payment_status.value", allow_null=True)
    reserved_at = serializers.DateTimeField()
    expires_at = serializers.SerializerMethodField()
    purchased_at = serializers.DateTimeField()
    cancelled_at = serializers.DateTimeField()

    def get_expires_at(self, ticket):
        if ticket.expires_at is None or ticket.status.is_terminal:
            return None
        return serializers.DateTimeField().to_representation(ticket.expires_at)


class TicketTypeStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    available = serializers.IntegerField()
    reserved = serializers.IntegerField()
    sold = serializers.IntegerField()
    cancelled = serializers.IntegerField()


class ReservationInputSerializer(serializers.Serializer):
    """Validates the body of a reservation request."""

    quantity = serializers.IntegerField(min_value=1)
    customer_name = serializers.CharField(max_length=255)
    customer_email = serializers.EmailField()
