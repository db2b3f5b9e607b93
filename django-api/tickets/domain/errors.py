"""Domain error codes for the tickets module.

Every error carries a stable machine-readable code. ``kind`` groups codes
into the small set of categories handlers map onto HTTP statuses. Only
``DependencyFailureError`` is retryable.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Error categories surfaced to callers."""

    NOT_FOUND = "NOT_FOUND"
    SOLD_OUT = "SOLD_OUT"
    MAX_PER_CUSTOMER_EXCEEDED = "MAX_PER_CUSTOMER_EXCEEDED"
    INVALID_STATUS = "INVALID_STATUS"
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    FRAUD_DETECTED = "FRAUD_DETECTED"
    EVENT_LIFECYCLE_VIOLATION = "EVENT_LIFECYCLE_VIOLATION"
    INVALID_REQUEST = "INVALID_REQUEST"
    DEPENDENCY_FAILURE = "DEPENDENCY_FAILURE"


class ErrorCode(Enum):
    """Domain error codes."""

    TICKET_TYPE_NOT_FOUND = "TICKET_TYPE_NOT_FOUND"
    TICKET_NOT_FOUND = "TICKET_NOT_FOUND"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    SOLD_OUT = "SOLD_OUT"
    MAX_PER_CUSTOMER_EXCEEDED = "MAX_PER_CUSTOMER_EXCEEDED"
    INVALID_STATUS = "INVALID_STATUS"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    RESERVATION_EXPIRED = "RESERVATION_EXPIRED"
    TICKET_TYPE_IN_USE = "TICKET_TYPE_IN_USE"
    UNAUTHORIZED = "UNAUTHORIZED"
    ORGANIZER_INACTIVE = "ORGANIZER_INACTIVE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    FRAUD_DETECTED = "FRAUD_DETECTED"
    EVENT_ENDED = "EVENT_ENDED"
    EVENT_STARTED = "EVENT_STARTED"
    EVENT_NOT_PUBLISHED = "EVENT_NOT_PUBLISHED"
    EVENT_FULL = "EVENT_FULL"
    SALES_NOT_OPEN = "SALES_NOT_OPEN"
    SALES_CLOSED = "SALES_CLOSED"
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_ID = "INVALID_ID"
    DEPENDENCY_FAILURE = "DEPENDENCY_FAILURE"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    kind = ErrorKind.INVALID_REQUEST
    retryable = False

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class TicketTypeNotFoundError(DomainError):
    """Raised when a ticket type is not found."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, ticket_type_id: str) -> None:
        super().__init__(
            code=ErrorCode.TICKET_TYPE_NOT_FOUND,
            message="Ticket type not found",
        )
        object.__setattr__(self, "ticket_type_id", str(ticket_type_id))


class TicketNotFoundError(DomainError):
    """Raised when a ticket is not found."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, ticket_id: str) -> None:
        super().__init__(
            code=ErrorCode.TICKET_NOT_FOUND,
            message="Ticket not found",
        )
        object.__setattr__(self, "ticket_id", str(ticket_id))


class EventNotFoundError(DomainError):
    """Raised when an event is not found."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, event_id: str) -> None:
        super().__init__(
            code=ErrorCode.EVENT_NOT_FOUND,
            message="Event not found",
        )
        object.__setattr__(self, "event_id", str(event_id))


class SoldOutError(DomainError):
    """Raised when a ticket type cannot cover the requested quantity."""

    kind = ErrorKind.SOLD_OUT

    def __init__(self, ticket_type_id: str) -> None:
        super().__init__(
            code=ErrorCode.SOLD_OUT,
            message="Tickets of this type are sold out",
        )
        object.__setattr__(self, "ticket_type_id", str(ticket_type_id))


class MaxPerCustomerExceededError(DomainError):
    """Raised when a customer would exceed the per-customer cap."""

    kind = ErrorKind.MAX_PER_CUSTOMER_EXCEEDED

    def __init__(self, ticket_type_id: str, max_allowed: int) -> None:
        super().__init__(
            code=ErrorCode.MAX_PER_CUSTOMER_EXCEEDED,
            message=f"Cannot hold more than {max_allowed} tickets of this type",
        )
        object.__setattr__(self, "ticket_type_id", str(ticket_type_id))
        object.__setattr__(self, "max_allowed", max_allowed)


class InvalidStatusError(DomainError):
    """Raised when an operation is not valid for the ticket's lifecycle state."""

    kind = ErrorKind.INVALID_STATUS

    def __init__(
        self, message: str, code: ErrorCode = ErrorCode.INVALID_STATUS
    ) -> None:
        super().__init__(code=code, message=message)


class UnauthorizedError(DomainError):
    """Raised when the actor does not own the resource."""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(
        self, message: str = "Not allowed", code: ErrorCode = ErrorCode.UNAUTHORIZED
    ) -> None:
        super().__init__(code=code, message=message)


class RateLimitExceededError(DomainError):
    """Raised when an actor exceeds the ceiling for an action class."""

    kind = ErrorKind.RATE_LIMIT_EXCEEDED

    def __init__(self, action: str) -> None:
        super().__init__(
            code=ErrorCode.RATE_LIMIT_EXCEEDED,
            message=f"Too many {action} attempts",
        )
        object.__setattr__(self, "action", action)


class FraudDetectedError(DomainError):
    """Raised when a fraud heuristic trips."""

    kind = ErrorKind.FRAUD_DETECTED

    def __init__(self, reason: str) -> None:
        super().__init__(
            code=ErrorCode.FRAUD_DETECTED,
            message="Suspicious activity detected",
        )
        object.__setattr__(self, "reason", reason)


class EventLifecycleViolationError(DomainError):
    """Raised when the event or sale window does not allow the operation."""

    kind = ErrorKind.EVENT_LIFECYCLE_VIOLATION

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(code=code, message=message)


class InvalidRequestError(DomainError):
    """Raised when input fails validation."""

    kind = ErrorKind.INVALID_REQUEST

    def __init__(
        self, message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST
    ) -> None:
        super().__init__(code=code, message=message)


class InvalidIdError(InvalidRequestError):
    """Raised when an ID is not a valid UUID."""

    def __init__(self, label: str = "ID") -> None:
        super().__init__(message=f"Invalid {label} format", code=ErrorCode.INVALID_ID)


class DependencyFailureError(DomainError):
    """Raised when the store, cache or payment gateway fails.

    The original exception is kept on ``cause`` (and ``__cause__``) for logging.
    """

    kind = ErrorKind.DEPENDENCY_FAILURE
    retryable = True

    def __init__(self, dependency: str, cause: BaseException | None = None) -> None:
        super().__init__(
            code=ErrorCode.DEPENDENCY_FAILURE,
            message=f"{dependency} is unavailable",
        )
        object.__setattr__(self, "dependency", dependency)
        object.__setattr__(self, "cause", cause)
