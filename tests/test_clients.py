from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import responses

from bookstore_pos import load_config
from bookstore_pos.clients import AccountsClient, OrdersClient, PromotionsClient
from bookstore_pos.exceptions import ApiError, NotFoundError, ServerError, UnauthorizedError
from bookstore_pos.http_client import HttpClient
from bookstore_pos.models import Order, OrderDraft, OrderDraftLine
from bookstore_pos.tracing import TraceContext


def _client(base_url: str) -> HttpClient:
    cfg = load_config()
    object.__setattr__(cfg, "api_base_url", base_url)
    return HttpClient(cfg, trace=TraceContext())


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BOOKSTORE_POS_API_BASE_URL", "https://api.example.com")
    monkeypatch.setenv("BOOKSTORE_POS_RETRY_BACKOFF_SECONDS", "0")


def _draft() -> OrderDraft:
    return OrderDraft(
        order_code="HD1700000000000",
        customer_code="KH_DEMO",
        employee_code="NV_MPOS1",
        payment_method="Cash",
        discount=Decimal("17100"),
        details=(OrderDraftLine(product_code="BOOK-1", quantity=2, promotion_code="SALE10"),),
    )


@responses.activate
def test_create_order_posts_camel_case_payload() -> None:
    http = _client("https://api.example.com")
    responses.add(
        responses.POST,
        "https://api.example.com/orders",
        json={"data": {"orderCode": "HD1700000000000"}},
        status=201,
    )
    client = OrdersClient(http=http, access_token="token", terminal_id="POS-1")

    body = client.create_order(_draft(), idempotency_key="idem-1")

    assert body == {"data": {"orderCode": "HD1700000000000"}}
    request = responses.calls[0].request
    assert request.headers["Idempotency-Key"] == "idem-1"
    assert request.headers["Authorization"] == "Bearer token"
    assert request.headers["X-Terminal-ID"] == "POS-1"
    sent = json.loads(request.body.decode("utf-8"))
    assert sent["customerCode"] == "KH_DEMO"
    assert sent["employeeCode"] == "NV_MPOS1"
    assert sent["paymentMethod"] == "Cash"
    assert sent["orderType"] == "Offline"
    assert sent["discount"] == 17100
    assert sent["couponCode"] is None
    assert sent["details"] == [{"productCode": "BOOK-1", "quantity": 2, "promotionCode": "SALE10"}]
    assert "orderCode" not in sent


@responses.activate
def test_get_order_unwraps_nested_data() -> None:
    http = _client("https://api.example.com")
    responses.add(
        responses.GET,
        "https://api.example.com/orders/HD1",
        json={
            "data": {
                "data": {
                    "orderCode": "HD1",
                    "totalAmount": 180000,
                    "finalAmount": 153900,
                    "paymentMethod": "Card",
                    "details": [{"productCode": "BOOK-1", "quantity": 2, "unitPrice": 90000}],
                }
            }
        },
        status=200,
    )
    order = OrdersClient(http=http).get_order("HD1")

    assert order.order_code == "HD1"
    assert order.final_amount == Decimal("153900")
    assert order.items[0].unit_price == Decimal("90000")


@responses.activate
def test_get_order_without_identifier_raises_value_error() -> None:
    http = _client("https://api.example.com")
    responses.add(responses.GET, "https://api.example.com/orders/HD1", json={"data": {}}, status=200)

    with pytest.raises(ValueError):
        OrdersClient(http=http).get_order("HD1")


@responses.activate
def test_get_order_id_only_keeps_fallback_code() -> None:
    http = _client("https://api.example.com")
    responses.add(responses.GET, "https://api.example.com/orders/HD1", json={"id": 42}, status=200)
    fallback = Order(order_code="HD1", final_amount=Decimal("50000"))

    order = OrdersClient(http=http).get_order("HD1", fallback=fallback)

    assert order.order_code == "HD1"
    assert order.final_amount == Decimal("50000")


@responses.activate
def test_has_transfer_polls_without_cache() -> None:
    http = _client("https://api.example.com")
    url = "https://api.example.com/orders/HD1/transfers"
    responses.add(responses.GET, url, json={"data": []}, status=200)
    responses.add(responses.GET, url, json={"data": [{"amount": 153900}]}, status=200)
    client = OrdersClient(http=http)

    assert client.has_transfer("HD1") is False
    assert client.has_transfer("HD1") is True
    assert len(responses.calls) == 2


@responses.activate
def test_has_transfer_errors_are_not_retried() -> None:
    http = _client("https://api.example.com")
    responses.add(responses.GET, "https://api.example.com/orders/HD1/transfers", json={}, status=502)

    with pytest.raises(ServerError):
        OrdersClient(http=http).has_transfer("HD1")
    assert len(responses.calls) == 1


@responses.activate
def test_find_by_phone_maps_member_fields() -> None:
    http = _client("https://api.example.com")
    responses.add(
        responses.GET,
        "https://api.example.com/account/phone/0901234567",
        json={
            "data": {
                "customer": {"customerCode": "KH001"},
                "username": "Mai",
                "customerTypeName": "Gold",
                "memberDiscount": 5,
                "points": 120.9,
                "promotionCode": "GOLD5",
            }
        },
        status=200,
    )
    member = AccountsClient(http=http).find_by_phone("0901234567")

    assert member is not None
    assert member.customer_code == "KH001"
    assert member.name == "Mai"
    assert member.role == "Gold"
    assert member.discount_rate == Decimal("5")
    assert member.loyalty_points == 120
    assert member.linked_promotion_code == "GOLD5"
    assert member.phone == "0901234567"


@responses.activate
def test_find_by_phone_not_found_and_unauthorized() -> None:
    http = _client("https://api.example.com")
    responses.add(responses.GET, "https://api.example.com/account/phone/000", json={"message": "none"}, status=404)
    responses.add(responses.GET, "https://api.example.com/account/phone/111", json={"message": "auth"}, status=401)
    client = AccountsClient(http=http)

    with pytest.raises(NotFoundError):
        client.find_by_phone("000")
    with pytest.raises(UnauthorizedError):
        client.find_by_phone("111")


@responses.activate
def test_active_promotion_values_filters_inactive_and_expired() -> None:
    http = _client("https://api.example.com")
    responses.add(
        responses.GET,
        "https://api.example.com/promotions",
        json={
            "data": [
                {"promotionCode": "SALE10", "value": 0.1, "status": True, "endDate": "2030-01-01T00:00:00Z"},
                {"promotionCode": "OFF5K", "value": 5000, "status": 1},
                {"promotionCode": "OLD", "value": 0.2, "status": True, "endDate": "2020-01-01T00:00:00Z"},
                {"promotionCode": "PAUSED", "value": 0.3, "status": False},
            ]
        },
        status=200,
    )
    values = PromotionsClient(http=http).active_values(now=datetime(2025, 6, 1, tzinfo=timezone.utc))

    assert values == {"SALE10": Decimal("0.1"), "OFF5K": Decimal("5000")}


@responses.activate
def test_missing_order_error_names_the_order_code() -> None:
    http = _client("https://api.example.com")
    responses.add(
        responses.GET,
        "https://api.example.com/orders/HD404",
        json={"success": False, "message": None, "data": None},
        status=404,
    )

    with pytest.raises(NotFoundError) as excinfo:
        OrdersClient(http=http).get_order("HD404")

    assert excinfo.value.message == "Not found: order_code=HD404"
    assert excinfo.value.details == {"order_code": "HD404"}


@responses.activate
def test_create_order_rejected_in_ok_envelope() -> None:
    http = _client("https://api.example.com")
    responses.add(
        responses.POST,
        "https://api.example.com/orders",
        json={"success": False, "message": "Product BOOK-1 is out of stock", "data": None},
        status=200,
    )

    with pytest.raises(ApiError) as excinfo:
        OrdersClient(http=http).create_order(_draft(), idempotency_key="idem-2")

    assert excinfo.value.code == "REQUEST_REJECTED"
    assert excinfo.value.message == "Product BOOK-1 is out of stock"
    assert http.last_operation is not None
    assert http.last_operation.result == "error"
