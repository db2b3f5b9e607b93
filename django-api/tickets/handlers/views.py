"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

import logging

import stripe
from django.conf import settings
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from tickets.domain.errors import DomainError, ErrorKind, TicketNotFoundError
from tickets.domain.requests import ReservationRequest
from tickets.handlers.serializers import (
    ReservationInputSerializer,
    TicketSerializer,
    TicketTypeSerializer,
    TicketTypeStatsSerializer,
)
from tickets.payments.stripe_gateway import WEBHOOK_EVENT_STATUSES, construct_webhook_event
from tickets.services import TicketService, build_ticket_service

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.SOLD_OUT: status.HTTP_409_CONFLICT,
    ErrorKind.MAX_PER_CUSTOMER_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_STATUS: status.HTTP_409_CONFLICT,
    ErrorKind.EVENT_LIFECYCLE_VIOLATION: status.HTTP_409_CONFLICT,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.FRAUD_DETECTED: status.HTTP_403_FORBIDDEN,
    ErrorKind.RATE_LIMIT_EXCEEDED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.DEPENDENCY_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_service() -> TicketService:
    return build_ticket_service()


def client_ip(request: Request) -> str:
    return request.META.get("REMOTE_ADDR") or "unknown"


class ServiceView(APIView):
    """Base view that maps domain errors to stable JSON error bodies."""

    def handle_exception(self, exc):
        if isinstance(exc, DomainError):
            return Response(
                {"code": exc.code.value, "message": exc.message},
                status=STATUS_BY_KIND[exc.kind],
            )
        return super().handle_exception(exc)


class TicketTypeListView(ServiceView):
    """Handler for GET /api/events/{event_id}/ticket-types"""

    permission_classes = [AllowAny]

    def get(self, request: Request, event_id: str) -> Response:
        ticket_types = get_service().list_event_ticket_types(event_id)
        return Response(TicketTypeSerializer(ticket_types, many=True).data)


class TicketTypeDetailView(ServiceView):
    """Handler for GET /api/ticket-types/{ticket_type_id}"""

    permission_classes = [AllowAny]

    def get(self, request: Request, ticket_type_id: str) -> Response:
        ticket_type = get_service().get_ticket_type(ticket_type_id)
        return Response(TicketTypeSerializer(ticket_type).data)


class TicketTypeStatsView(ServiceView):
    """Handler for GET /api/ticket-types/{ticket_type_id}/stats"""

    permission_classes = [AllowAny]

    def get(self, request: Request, ticket_type_id: str) -> Response:
        stats = get_service().get_ticket_type_stats(ticket_type_id)
        return Response(TicketTypeStatsSerializer(stats).data)


class ReservationCreateView(ServiceView):
    """Handler for POST /api/ticket-types/{ticket_type_id}/reservations"""

    permission_classes = [IsAuthenticated]

    def post(self, request: Request, ticket_type_id: str) -> Response:
        body = ReservationInputSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        tickets = get_service().reserve_tickets(
            str(request.user.pk),
            ReservationRequest(ticket_type_id=ticket_type_id, **body.validated_data),
            client_ip(request),
        )
        return Response(
            TicketSerializer(tickets, many=True).data, status=status.HTTP_201_CREATED
        )


class ReservationDetailView(ServiceView):
    """Handler for DELETE /api/reservations/{reservation_id}"""

    permission_classes = [IsAuthenticated]

    def delete(self, request: Request, reservation_id: str) -> Response:
        get_service().cancel_reservation(str(request.user.pk), reservation_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class PurchaseView(ServiceView):
    """Handler for POST /api/reservations/{reservation_id}/purchase"""

    permission_classes = [IsAuthenticated]

    def post(self, request: Request, reservation_id: str) -> Response:
        tickets = get_service().purchase_tickets(
            str(request.user.pk), reservation_id, client_ip(request)
        )
        return Response(TicketSerializer(tickets, many=True).data)


class MyTicketListView(ServiceView):
    """Handler for GET /api/me/tickets"""

    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        tickets = get_service().list_customer_tickets(str(request.user.pk))
        return Response(TicketSerializer(tickets, many=True).data)


class TicketDetailView(ServiceView):
    """Handler for GET /api/tickets/{ticket_id}"""

    permission_classes = [IsAuthenticated]

    def get(self, request: Request, ticket_id: str) -> Response:
        ticket = get_service().get_ticket(ticket_id)
        if ticket.customer_id != str(request.user.pk):
            raise TicketNotFoundError(ticket_id)
        return Response(TicketSerializer(ticket).data)


class PaymentWebhookView(ServiceView):
    """Handler for POST /api/payments/webhook (Stripe)."""

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        try:
            event = construct_webhook_event(
                request.body,
                request.META.get("HTTP_STRIPE_SIGNATURE", ""),
                settings.STRIPE_WEBHOOK_SECRET,
            )
        except ValueError:
            logger.warning("Payment webhook: invalid payload")
            return Response({"error": "Invalid payload"}, status=status.HTTP_400_BAD_REQUEST)
        except stripe.SignatureVerificationError:
            logger.warning("Payment webhook: signature verification failed")
            return Response({"error": "Invalid signature"}, status=status.HTTP_400_BAD_REQUEST)

        payment_status = WEBHOOK_EVENT_STATUSES.get(event.type)
        if payment_status is None:
            return Response({"received": True})

        intent = event.data.object
        get_service().handle_payment_webhook(
            intent.id, payment_status, getattr(intent, "payment_method", None)
        )
        return Response({"received": True})
