"""Django signals for cache invalidation.

The service invalidates explicitly after its own writes. These receivers cover
writes made through the ORM directly, such as Django admin. Bulk inserts and
queryset updates do not send signals; those paths go through the service.
"""

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from tickets.cache import (
    TicketCache,
    customer_tickets_key,
    event_ticket_types_key,
    event_tickets_key,
    ticket_key,
    ticket_type_key,
)
from tickets.conf import InventorySettings
from tickets.models import Ticket, TicketType


def _cache() -> TicketCache:
    return TicketCache.from_settings(InventorySettings.from_django())


@receiver([post_save, post_delete], sender=TicketType)
def invalidate_ticket_type_cache(sender, instance, **kwargs):
    """Invalidate caches when a ticket type is saved or deleted."""
    _cache().invalidate([ticket_type_key(instance.id), event_ticket_types_key(instance.event_id)])


@receiver([post_save, post_delete], sender=Ticket)
def invalidate_ticket_cache(sender, instance, **kwargs):
    """Invalidate caches when a ticket is saved or deleted."""
    _cache().invalidate(
        [
            ticket_key(instance.id),
            event_tickets_key(instance.event_id),
            customer_tickets_key(instance.customer_id),
        ]
    )
