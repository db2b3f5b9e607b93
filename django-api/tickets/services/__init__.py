from tickets.services.factory import build_ticket_service
from tickets.services.ticket_service import TicketService

__all__ = ["TicketService", "build_ticket_service"]
