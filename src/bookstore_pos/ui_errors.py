from __future__ import annotations

from dataclasses import dataclass

from .exceptions import ApiError, CheckoutError, TransportError


@dataclass(frozen=True)
class UserFacingError:
    message: str
    details: str | None = None
    trace_id: str | None = None

    @property
    def technical_details(self) -> str | None:
        if self.details:
            return self.details
        return None


def to_user_facing_error(exc: Exception) -> UserFacingError:
    if isinstance(exc, TransportError):
        return UserFacingError(
            message="Cannot reach the store server. Check the connection and try again.",
            details=f"{exc.code}: {exc.message}",
            trace_id=exc.trace_id,
        )
    if isinstance(exc, ApiError):
        primary = exc.message.strip() or "Request failed"
        details = f"{exc.code} (HTTP {exc.status_code})"
        if exc.details:
            details = f"{details}: {exc.details}"
        return UserFacingError(message=primary, details=details, trace_id=exc.trace_id)
    if isinstance(exc, CheckoutError):
        return UserFacingError(message=exc.message, details=exc.details, trace_id=exc.trace_id)
    return UserFacingError(message=str(exc) or "Unexpected error")
