from tickets.handlers.views import (
    MyTicketListView,
    PaymentWebhookView,
    PurchaseView,
    ReservationCreateView,
    ReservationDetailView,
    TicketDetailView,
    TicketTypeDetailView,
    TicketTypeListView,
    TicketTypeStatsView,
)

__all__ = [
    "MyTicketListView",
    "PaymentWebhookView",
    "PurchaseView",
    "ReservationCreateView",
    "ReservationDetailView",
    "TicketDetailView",
    "TicketTypeDetailView",
    "TicketTypeListView",
    "TicketTypeStatsView",
]
