from django.contrib import admin

from tickets.models import Event, Organizer, Ticket, TicketType


class TicketTypeInline(admin.TabularInline):
    model = TicketType
    extra = 1


@admin.register(Organizer)
class OrganizerAdmin(admin.ModelAdmin):
    list_display = ["email", "is_enabled", "email_verified"]
    list_filter = ["is_enabled", "email_verified"]
    search_fields = ["email"]


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ["name", "organizer", "starts_at", "capacity", "is_published"]
    search_fields = ["name"]
    inlines = [TicketTypeInline]


@admin.register(TicketType)
class TicketTypeAdmin(admin.ModelAdmin):
    list_display = ["name", "event", "price_amount", "price_currency", "quantity"]
    list_filter = ["event"]


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ["id", "ticket_type", "customer_id", "status", "approval_status", "expires_at"]
    list_filter = ["status", "approval_status", "event"]
    search_fields = ["customer_id", "customer_email", "payment_id"]
    readonly_fields = ["reserved_at", "purchased_at", "cancelled_at", "created_at", "updated_at"]

    def has_delete_permission(self, request, obj=None):
        return False
