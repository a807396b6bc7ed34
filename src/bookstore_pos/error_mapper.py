"""Backend error envelopes to :class:`ApiError` subclasses.

The bookstore backend answers with ``{"success": bool, "message": str,
"data": ...}``. Failures usually come with a non-2xx status, but some
endpoints answer 200 with ``success: false``; both end up here.
"""

from __future__ import annotations

from typing import Any, Mapping

from .exceptions import (
    ApiError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ServerError,
    UnauthorizedError,
    ValidationError,
)

_STATUS_ERRORS: dict[int, tuple[type[ApiError], str]] = {
    400: (ValidationError, "BAD_REQUEST"),
    401: (UnauthorizedError, "UNAUTHORIZED"),
    403: (ForbiddenError, "FORBIDDEN"),
    404: (NotFoundError, "NOT_FOUND"),
    409: (ConflictError, "CONFLICT"),
    422: (ValidationError, "UNPROCESSABLE"),
    429: (RateLimitError, "RATE_LIMITED"),
}
REJECTED_CODE = "REQUEST_REJECTED"


def _error_class(status_code: int) -> tuple[type[ApiError], str]:
    if status_code in _STATUS_ERRORS:
        return _STATUS_ERRORS[status_code]
    if status_code >= 500:
        return ServerError, "SERVER_ERROR"
    return ApiError, "HTTP_ERROR"


def _message(envelope: Mapping[str, Any]) -> str | None:
    for candidate in (envelope.get("message"), envelope.get("error")):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    data = envelope.get("data")
    if isinstance(data, Mapping) and isinstance(data.get("message"), str) and data["message"].strip():
        return data["message"].strip()
    return None


def _details(envelope: Mapping[str, Any], context: Mapping[str, Any] | None) -> Any:
    details = envelope.get("details") or envelope.get("errors") or envelope.get("data")
    if not context:
        return details
    merged: dict[str, Any] = dict(context)
    if details is not None:
        merged["response"] = details
    return merged


def map_error(
    status_code: int,
    payload: Any,
    trace_id: str | None,
    *,
    context: Mapping[str, Any] | None = None,
) -> ApiError:
    """Build the exception for a failed response.

    ``context`` names what was being requested (e.g. the order code) and is
    folded into ``details`` so a 404 says which record was missing.
    """
    envelope: Mapping[str, Any] = payload if isinstance(payload, Mapping) else {}
    mapped, default_code = _error_class(status_code)
    code = envelope.get("code")
    if not isinstance(code, str) or not code:
        code = default_code
    message = _message(envelope)
    if message is None and isinstance(payload, str) and payload.strip():
        message = payload.strip()[:200]
    if message is None and status_code == 404 and context:
        subject = ", ".join(f"{key}={value}" for key, value in context.items())
        message = f"Not found: {subject}"
    payload_trace_id = envelope.get("trace_id") or envelope.get("traceId")
    return mapped(
        code=code,
        message=message or "Request failed",
        details=_details(envelope, context),
        trace_id=str(payload_trace_id) if payload_trace_id else trace_id,
        status_code=status_code,
        raw_payload=dict(envelope) if payload is None or isinstance(payload, Mapping) else payload,
    )


def envelope_rejection(
    status_code: int,
    payload: Any,
    trace_id: str | None,
    *,
    context: Mapping[str, Any] | None = None,
) -> ApiError | None:
    """A 2xx body that still reports ``success: false``."""
    if not isinstance(payload, Mapping) or payload.get("success") is not False:
        return None
    error = map_error(status_code, payload, trace_id, context=context)
    if error.code == "HTTP_ERROR":
        error.code = REJECTED_CODE
    return error
