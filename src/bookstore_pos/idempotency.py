from __future__ import annotations

import time
import uuid
from dataclasses import dataclass

ORDER_CODE_PREFIX = "HD"


@dataclass(frozen=True)
class SubmissionKeys:
    order_code: str
    idempotency_key: str


def new_order_code(now: float | None = None) -> str:
    """Client-side order code, used only until the backend assigns its own."""
    stamp = time.time() if now is None else now
    return f"{ORDER_CODE_PREFIX}{int(stamp * 1000)}"


def new_submission_keys(now: float | None = None) -> SubmissionKeys:
    return SubmissionKeys(order_code=new_order_code(now), idempotency_key=str(uuid.uuid4()))
