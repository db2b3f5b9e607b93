"""Payment gateway port."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from tickets.domain import Money, PaymentStatus


@dataclass(frozen=True)
class PaymentRequest:
    price: Money
    customer_id: str
    customer_email: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentIntent:
    """The gateway's handle on a created payment."""

    id: str
    status: PaymentStatus


class PaymentGateway(ABC):
    """Creates payments; completion arrives later through the webhook."""

    @abstractmethod
    def create_payment(self, request: PaymentRequest) -> PaymentIntent:
        """Create a payment for ``request.price``.

        Raises:
            DependencyFailureError: If the gateway call fails.
        """
        ...
