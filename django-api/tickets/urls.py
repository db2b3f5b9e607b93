from django.urls import path

from tickets.handlers import (
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

urlpatterns = [
    path(
        "events/<str:event_id>/ticket-types",
        TicketTypeListView.as_view(),
        name="ticket-type-list",
    ),
    path(
        "ticket-types/<str:ticket_type_id>",
        TicketTypeDetailView.as_view(),
        name="ticket-type-detail",
    ),
    path(
        "ticket-types/<str:ticket_type_id>/stats",
        TicketTypeStatsView.as_view(),
        name="ticket-type-stats",
    ),
    path(
        "ticket-types/<str:ticket_type_id>/reservations",
        ReservationCreateView.as_view(),
        name="reservation-create",
    ),
    path(
        "reservations/<str:reservation_id>",
        ReservationDetailView.as_view(),
        name="reservation-detail",
    ),
    path(
        "reservations/<str:reservation_id>/purchase",
        PurchaseView.as_view(),
        name="reservation-purchase",
    ),
    path("me/tickets", MyTicketListView.as_view(), name="my-tickets"),
    path("tickets/<str:ticket_id>", TicketDetailView.as_view(), name="ticket-detail"),
    path("payments/webhook", PaymentWebhookView.as_view(), name="payment-webhook"),
]
