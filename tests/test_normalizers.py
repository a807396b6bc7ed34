from __future__ import annotations

from decimal import Decimal

import pytest

from bookstore_pos.models import Order, OrderLine
from bookstore_pos.normalizers import (
    normalize_member,
    normalize_order,
    normalize_order_line,
    transfers_detected,
    unwrap_payload,
)


def _fallback() -> Order:
    return Order(
        order_code="HD1700000000000",
        payment_method="qr",
        total_amount=Decimal("180000"),
        final_amount=Decimal("153900"),
        discount=Decimal("17100"),
        items=[OrderLine(product_code="BOOK-1", quantity=2, unit_price=Decimal("90000"))],
        status="pending",
    )


@pytest.mark.parametrize(
    "body",
    [
        {"orderCode": "HD9"},
        {"data": {"orderCode": "HD9"}},
        {"data": {"data": {"orderCode": "HD9"}}},
    ],
)
def test_unwrap_payload_accepts_all_wrappings(body) -> None:
    assert unwrap_payload(body) == {"orderCode": "HD9"}


def test_unit_price_precedence() -> None:
    line = normalize_order_line({"productCode": "B1", "quantity": "3", "price": 10, "unitPrice": 20, "importPrice": 30})
    assert line.unit_price == Decimal("30")
    assert line.quantity == 3
    assert normalize_order_line({"productCode": "B1", "price": 10, "unitPrice": 20}).unit_price == Decimal("20")
    assert normalize_order_line({"productCode": "B1", "price": 10}).unit_price == Decimal("10")


def test_normalize_order_reads_items_and_total_aliases() -> None:
    order = normalize_order(
        {
            "data": {
                "orderCode": "HD9",
                "total": 99000,
                "items": [{"product": {"productCode": "B2", "productName": "Atlas"}, "quantity": 1, "price": 99000}],
            }
        }
    )
    assert order is not None
    assert order.total_amount == Decimal("99000")
    assert order.final_amount == Decimal("99000")
    assert order.items[0].product_code == "B2"
    assert order.items[0].product_name == "Atlas"


def test_normalize_order_fills_gaps_from_fallback() -> None:
    order = normalize_order({"data": {"orderCode": "SRV-1", "status": "created"}}, fallback=_fallback())
    assert order is not None
    assert order.order_code == "SRV-1"
    assert order.final_amount == Decimal("153900")
    assert order.items[0].product_code == "BOOK-1"
    assert order.status == "created"


def test_normalize_order_id_without_code_keeps_client_code() -> None:
    order = normalize_order({"data": {"id": 17}}, fallback=_fallback())
    assert order is not None
    assert order.order_code == "HD1700000000000"


@pytest.mark.parametrize("body", [None, "ok", [], {"data": {"status": "created"}}, {"id": 3}])
def test_normalize_order_without_identifier_returns_none(body) -> None:
    fallback = _fallback() if body != {"id": 3} else None
    assert normalize_order(body, fallback=fallback) is None


@pytest.mark.parametrize(
    ("body", "expected"),
    [
        (None, False),
        ([], False),
        ({"data": []}, False),
        ({"data": None}, False),
        ([{"amount": 1}], True),
        ({"data": [{"amount": 1}]}, True),
        ({"data": {"data": [{"amount": 1}]}}, True),
    ],
)
def test_transfers_detected(body, expected: bool) -> None:
    assert transfers_detected(body) is expected


def test_normalize_member_empty_payload_is_none() -> None:
    assert normalize_member({"data": {}}) is None
    assert normalize_member(None) is None


def test_normalize_member_field_aliases() -> None:
    member = normalize_member(
        {"customerCode": "KH7", "customerName": "Lan", "roleCode": "SILVER", "memberDiscount": "0.03", "points": 9.99},
        phone="0911",
    )
    assert member is not None
    assert member.customer_code == "KH7"
    assert member.name == "Lan"
    assert member.role == "SILVER"
    assert member.discount_rate == Decimal("0.03")
    assert member.loyalty_points == 9
    assert member.phone == "0911"
