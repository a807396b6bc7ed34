"""Response-shape adapters for the bookstore backend.

The backend wraps payloads inconsistently: the record may be the body itself,
``body["data"]`` or ``body["data"]["data"]``. Field names also drift between
endpoints. Every caller goes through the functions here and only ever sees the
canonical models from :mod:`bookstore_pos.models`.

Precedence lists:

* payload root: ``data.data``, ``data``, raw body
* line items: ``details``, ``items``
* unit price: ``importPrice``, ``unitPrice``, ``price``
* gross total: ``totalAmount``, ``total``
* net total: ``finalAmount``, ``total``
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from .models import MemberInfo, Order, OrderLine, Promotion

LINE_LIST_KEYS = ("details", "items")
PRICE_KEYS = ("importPrice", "unitPrice", "price")
TOTAL_KEYS = ("totalAmount", "total")
FINAL_KEYS = ("finalAmount", "total")
_MAX_DEPTH = 2


def unwrap_payload(body: Any) -> Any:
    node = body
    for _ in range(_MAX_DEPTH):
        if isinstance(node, Mapping) and isinstance(node.get("data"), (Mapping, list)):
            node = node["data"]
        else:
            break
    return node


def first_present(record: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return None


def to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def _to_int(value: Any) -> int | None:
    number = to_decimal(value)
    if number is None:
        return None
    return int(number)


def line_items(record: Mapping[str, Any]) -> list[Any]:
    for key in LINE_LIST_KEYS:
        value = record.get(key)
        if isinstance(value, list):
            return value
    return []


def normalize_order_line(raw: Mapping[str, Any]) -> OrderLine:
    product = raw.get("product") if isinstance(raw.get("product"), Mapping) else {}
    return OrderLine(
        product_code=_text(raw.get("productCode") or product.get("productCode")),
        product_name=_text(raw.get("productName") or product.get("productName")),
        quantity=_to_int(raw.get("quantity")) or 0,
        unit_price=to_decimal(first_present(raw, PRICE_KEYS)) or Decimal("0"),
    )


def extract_order_code(record: Mapping[str, Any]) -> str | None:
    code = record.get("orderCode")
    if code is None or code == "":
        return None
    return str(code)


def normalize_order(body: Any, *, fallback: Order | None = None) -> Order | None:
    """Map a create/fetch order response to the canonical :class:`Order`.

    Values the response omits are taken from ``fallback`` (the locally computed
    order). Returns ``None`` when no order identifier can be found at all.
    """
    record = unwrap_payload(body)
    if not isinstance(record, Mapping):
        return None
    order_code = extract_order_code(record)
    if order_code is None:
        if record.get("id") in (None, "") or fallback is None:
            return None
        order_code = fallback.order_code

    raw_lines = line_items(record)
    items = [normalize_order_line(line) for line in raw_lines if isinstance(line, Mapping)]
    if not items and fallback is not None:
        items = list(fallback.items)

    total_amount = to_decimal(first_present(record, TOTAL_KEYS))
    final_amount = to_decimal(first_present(record, FINAL_KEYS))
    discount = to_decimal(record.get("discount"))
    created_at = record.get("createdAt") or record.get("orderDate")

    return Order(
        order_code=order_code,
        payment_method=_text(record.get("paymentMethod")) or (fallback.payment_method if fallback else None),
        total_amount=_pick(total_amount, fallback.total_amount if fallback else None),
        final_amount=_pick(final_amount, fallback.final_amount if fallback else None),
        discount=_pick(discount, fallback.discount if fallback else None),
        items=items,
        received_amount=fallback.received_amount if fallback else None,
        change=fallback.change if fallback else None,
        status=_text(first_present(record, ("status", "orderStatus"))) or (fallback.status if fallback else None),
        created_at=_parse_datetime(created_at) or (fallback.created_at if fallback else None),
    )


def transfers_detected(body: Any) -> bool:
    """A non-empty transfer listing means a matching bank transfer was recorded."""
    if isinstance(body, Mapping) and "data" in body:
        return transfers_detected(body["data"])
    return bool(body)


def normalize_member(body: Any, *, phone: str | None = None) -> MemberInfo | None:
    record = unwrap_payload(body)
    if not isinstance(record, Mapping) or not record:
        return None
    customer = record.get("customer") if isinstance(record.get("customer"), Mapping) else {}
    points = to_decimal(record.get("points")) or Decimal("0")
    return MemberInfo(
        customer_code=_text(first_present(record, ("customerCode",)) or customer.get("customerCode") or record.get("code")),
        name=_text(first_present(record, ("customerName", "username"))) or "",
        role=_text(first_present(record, ("customerTypeName", "roleCode", "customerTypeCode", "role"))) or "",
        discount_rate=to_decimal(record.get("memberDiscount")) or Decimal("0"),
        loyalty_points=math.floor(points),
        linked_promotion_code=_text(first_present(record, ("promotion_code", "promotionCode"))),
        phone=_text(record.get("phone")) or phone,
        email=_text(record.get("email")),
        address=_text(first_present(record, ("address", "customerAddress"))),
    )


def normalize_promotions(body: Any) -> list[Promotion]:
    rows = unwrap_payload(body)
    if isinstance(rows, Mapping):
        rows = line_items(rows)
    if not isinstance(rows, list):
        return []
    promotions: list[Promotion] = []
    for row in rows:
        if not isinstance(row, Mapping) or not row.get("promotionCode"):
            continue
        promotions.append(
            Promotion(
                promotion_code=str(row["promotionCode"]),
                value=to_decimal(row.get("value")),
                status=bool(row.get("status")),
                end_date=_parse_datetime(row.get("endDate")),
            )
        )
    return promotions


def active_promotion_values(promotions: Iterable[Promotion], *, now: datetime | None = None) -> dict[str, Decimal]:
    """Active promotions keyed by code: status set and not past their end date."""
    moment = _as_aware(now) if now is not None else datetime.now(timezone.utc)
    active: dict[str, Decimal] = {}
    for promotion in promotions:
        if not promotion.status or promotion.value is None:
            continue
        if promotion.end_date is not None and _as_aware(promotion.end_date) <= moment:
            continue
        active[promotion.promotion_code] = promotion.value
    return active


def _text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _pick(value: Decimal | None, fallback: Decimal | None) -> Decimal:
    if value is not None:
        return value
    if fallback is not None:
        return fallback
    return Decimal("0")


def _parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
