from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ApiError(Exception):
    code: str
    message: str
    details: object | None
    trace_id: str | None
    status_code: int
    raw_payload: object | None = None

    def __str__(self) -> str:
        trace = f" trace_id={self.trace_id}" if self.trace_id else ""
        return f"[{self.status_code}] {self.code}: {self.message}{trace}"


class UnauthorizedError(ApiError):
    pass


class ForbiddenError(ApiError):
    pass


class NotFoundError(ApiError):
    pass


class ValidationError(ApiError):
    pass


class ConflictError(ApiError):
    """409 or conflict-style errors."""


class RateLimitError(ApiError):
    """429 throttling error."""


class ServerError(ApiError):
    """5xx server-side failures."""


class TransportError(ApiError):
    """Network/transport failure before an HTTP response was returned."""


class CheckoutError(Exception):
    """Base class for checkout failures raised by the POS engine."""

    def __init__(self, message: str, *, details: str | None = None, trace_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.trace_id = trace_id

    def __str__(self) -> str:
        return self.message


class CheckoutValidationError(CheckoutError):
    """Rejected before any network call; the cart is unaffected."""


class InsufficientCashError(CheckoutValidationError):
    pass


class CheckoutInProgressError(CheckoutError):
    pass


class OrderSubmissionError(CheckoutError):
    """Order creation failed or returned no identifiable order code."""


class PaymentStateError(CheckoutError):
    """A payment transition was requested from a state that does not allow it."""


class PaymentSessionActiveError(PaymentStateError):
    pass
