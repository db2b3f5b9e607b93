"""Integration tests for the ticket HTTP API.

Run with: pytest tests/test_api.py -v
"""

import hashlib
import hmac
import json
import time
import uuid

import pytest
from rest_framework.test import APIClient

from tickets.domain import TicketStatus
from tickets.domain.requests import ReservationRequest
from tickets.handlers import views

WEBHOOK_SECRET = "whsec_test"


@pytest.fixture(autouse=True)
def use_test_service(monkeypatch, service):
    monkeypatch.setattr(views, "get_service", lambda: service)


@pytest.fixture
def customer_client(api_client: APIClient, user) -> APIClient:
    api_client.force_authenticate(user=user)
    return api_client


def reservation_body(quantity=1):
    return {
        "quantity": quantity,
        "customer_name": "Maria Santos",
        "customer_email": "maria@example.com",
    }


def signed_webhook(api_client, payload: dict):
    body = json.dumps(payload)
    timestamp = int(time.time())
    signature = hmac.new(
        WEBHOOK_SECRET.encode(), f"{timestamp}.{body}".encode(), hashlib.sha256
    ).hexdigest()
    return api_client.post(
        "/api/payments/webhook",
        data=body,
        content_type="application/json",
        HTTP_STRIPE_SIGNATURE=f"t={timestamp},v1={signature}",
    )


def intent_event(event_type: str, payment_id: str) -> dict:
    return {
        "id": "evt_test",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": payment_id,
                "object": "payment_intent",
                "payment_method": "pm_card_visa",
            }
        },
    }


@pytest.mark.django_db
class TestTicketTypeEndpoints:
    """Tests for the public ticket type endpoints."""

    def test_list_ticket_types(self, api_client, free_type, event):
        response = api_client.get(f"/api/events/{event.id}/ticket-types")
        assert response.status_code == 200
        assert [row["id"] for row in response.data] == [str(free_type.id)]
        assert response.data[0]["quantity"] == 10

    def test_detail_invalid_id(self, api_client):
        response = api_client.get("/api/ticket-types/not-a-uuid")
        assert response.status_code == 400
        assert response.data["code"] == "INVALID_ID"

    def test_detail_not_found(self, api_client):
        response = api_client.get(f"/api/ticket-types/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.data["code"] == "TICKET_TYPE_NOT_FOUND"

    def test_stats(self, api_client, free_type):
        response = api_client.get(f"/api/ticket-types/{free_type.id}/stats")
        assert response.status_code == 200
        assert response.data["available"] == 10


@pytest.mark.django_db
class TestReservationEndpoints:
    """Tests for reserve, purchase and cancel."""

    def test_reserve_requires_authentication(self, api_client, free_type):
        response = api_client.post(
            f"/api/ticket-types/{free_type.id}/reservations", reservation_body(), format="json"
        )
        assert response.status_code == 403

    def test_reserve(self, customer_client, free_type):
        response = customer_client.post(
            f"/api/ticket-types/{free_type.id}/reservations",
            reservation_body(quantity=2),
            format="json",
        )
        assert response.status_code == 201
        assert len(response.data) == 2
        assert response.data[0]["status"] == "RESERVED"
        assert response.data[0]["expires_at"] is not None
        assert response.data[0]["payment_id"] is None

    def test_reserve_validates_body(self, customer_client, free_type):
        response = customer_client.post(
            f"/api/ticket-types/{free_type.id}/reservations",
            reservation_body(quantity=0),
            format="json",
        )
        assert response.status_code == 400

    def test_reserve_sold_out_is_conflict(self, customer_client, make_ticket_type):
        ticket_type = make_ticket_type(quantity=1)
        response = customer_client.post(
            f"/api/ticket-types/{ticket_type.id}/reservations",
            reservation_body(quantity=2),
            format="json",
        )
        assert response.status_code == 409
        assert response.data["code"] == "SOLD_OUT"

    def test_purchase_free_ticket(self, customer_client, free_type):
        reserved = customer_client.post(
            f"/api/ticket-types/{free_type.id}/reservations", reservation_body(), format="json"
        ).data[0]
        response = customer_client.post(f"/api/reservations/{reserved['id']}/purchase")
        assert response.status_code == 200
        assert response.data[0]["status"] == "SOLD"
        assert response.data[0]["expires_at"] is None

    def test_purchase_gateway_down_is_503(
        self, customer_client, paid_type, payment_gateway
    ):
        reserved = customer_client.post(
            f"/api/ticket-types/{paid_type.id}/reservations", reservation_body(), format="json"
        ).data[0]
        payment_gateway.fail = True
        response = customer_client.post(f"/api/reservations/{reserved['id']}/purchase")
        assert response.status_code == 503
        assert response.data["code"] == "DEPENDENCY_FAILURE"

    def test_cancel_reservation(self, customer_client, free_type):
        reserved = customer_client.post(
            f"/api/ticket-types/{free_type.id}/reservations", reservation_body(), format="json"
        ).data[0]
        response = customer_client.delete(f"/api/reservations/{reserved['id']}")
        assert response.status_code == 204
        mine = customer_client.get("/api/me/tickets")
        assert mine.data[0]["status"] == "CANCELLED"

    def test_ticket_detail_hidden_from_other_customers(
        self, customer_client, service, free_type
    ):
        other = service.reserve_tickets(
            "someone-else",
            ReservationRequest(str(free_type.id), 1, "Jose Rizal", "jose@example.com"),
            "10.0.0.2",
        )[0]
        response = customer_client.get(f"/api/tickets/{other.id}")
        assert response.status_code == 404
        assert response.data == {"code": "TICKET_NOT_FOUND", "message": "Ticket not found"}


@pytest.mark.django_db
class TestPaymentWebhook:
    """Tests for POST /api/payments/webhook"""

    @pytest.fixture(autouse=True)
    def webhook_secret(self, settings):
        settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET

    @pytest.fixture
    def pending_ticket(self, customer_client, paid_type):
        reserved = customer_client.post(
            f"/api/ticket-types/{paid_type.id}/reservations", reservation_body(), format="json"
        ).data[0]
        return customer_client.post(f"/api/reservations/{reserved['id']}/purchase").data[0]

    def test_bad_signature_rejected(self, api_client, pending_ticket):
        response = api_client.post(
            "/api/payments/webhook",
            data=json.dumps(intent_event("payment_intent.succeeded", "pi_test_1")),
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE="t=1,v1=deadbeef",
        )
        assert response.status_code == 400

    def test_succeeded_marks_ticket_sold(self, api_client, service, pending_ticket):
        response = signed_webhook(
            api_client, intent_event("payment_intent.succeeded", pending_ticket["payment_id"])
        )
        assert response.status_code == 200
        ticket = service.get_ticket(pending_ticket["id"])
        assert ticket.status is TicketStatus.SOLD

    def test_redelivery_is_idempotent(self, api_client, service, pending_ticket):
        event = intent_event("payment_intent.succeeded", pending_ticket["payment_id"])
        signed_webhook(api_client, event)
        response = signed_webhook(api_client, event)
        assert response.status_code == 200
        assert service.get_ticket(pending_ticket["id"]).status is TicketStatus.SOLD

    def test_payment_failed_cancels(self, api_client, service, pending_ticket):
        signed_webhook(
            api_client,
            intent_event("payment_intent.payment_failed", pending_ticket["payment_id"]),
        )
        assert service.get_ticket(pending_ticket["id"]).status is TicketStatus.CANCELLED

    def test_unrelated_event_acknowledged(self, api_client, service, pending_ticket):
        response = signed_webhook(
            api_client, intent_event("payment_intent.created", pending_ticket["payment_id"])
        )
        assert response.status_code == 200
        assert service.get_ticket(pending_ticket["id"]).status is TicketStatus.RESERVED
