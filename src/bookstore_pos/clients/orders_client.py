from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from ..models import Order, OrderDraft
from ..normalizers import normalize_order, transfers_detected
from .base import BaseClient


@dataclass
class OrdersClient(BaseClient):
    def create_order(
        self,
        draft: OrderDraft,
        idempotency_key: str | None = None,
    ) -> dict[str, Any] | list[Any] | None:
        """POST the draft and return the raw body; callers normalize it."""
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else {}
        return self._request(
            "POST",
            "/orders",
            headers=headers,
            json_body=draft.to_payload(),
            module="orders",
            operation="create_order",
            invalidate_paths=["/orders"],
        )

    def get_order(self, order_code: str, *, fallback: Order | None = None) -> Order:
        data = self._request(
            "GET",
            f"/orders/{quote(order_code, safe='')}",
            module="orders",
            operation="get_order",
            use_get_cache=False,
            error_context={"order_code": order_code},
        )
        order = normalize_order(data, fallback=fallback)
        if order is None:
            raise ValueError("Expected order response to contain an order code")
        return order

    def list_transfers(self, order_code: str) -> dict[str, Any] | list[Any] | None:
        return self._request(
            "GET",
            f"/orders/{quote(order_code, safe='')}/transfers",
            module="orders",
            operation="list_transfers",
            use_get_cache=False,
            allow_retry=False,
            error_context={"order_code": order_code},
        )

    def has_transfer(self, order_code: str) -> bool:
        return transfers_detected(self.list_transfers(order_code))
