from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Mapping

TRACE_HEADER = "X-Trace-ID"
_RESPONSE_TRACE_HEADERS = ("x-trace-id", "x-request-id")
_PAYLOAD_TRACE_KEYS = ("trace_id", "traceId")


@dataclass
class TraceContext:
    """Trace id shared by every request a terminal session makes.

    When the backend answers with its own id, that id replaces ours for the
    requests that follow, so both sides log the same value.
    """

    trace_id: str | None = None

    def ensure(self) -> str:
        if not self.trace_id:
            self.trace_id = uuid.uuid4().hex
        return self.trace_id

    def adopt(self, headers: Mapping[str, str], payload: Any = None) -> str | None:
        candidate = _payload_trace_id(payload) or _header_trace_id(headers)
        if candidate:
            self.trace_id = candidate
        return self.trace_id


def _header_trace_id(headers: Mapping[str, str]) -> str | None:
    lowered = {str(key).lower(): value for key, value in headers.items()}
    for key in _RESPONSE_TRACE_HEADERS:
        if lowered.get(key):
            return str(lowered[key])
    return None


def _payload_trace_id(payload: Any) -> str | None:
    if not isinstance(payload, Mapping):
        return None
    for key in _PAYLOAD_TRACE_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None
