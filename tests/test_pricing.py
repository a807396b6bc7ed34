from __future__ import annotations

from decimal import Decimal

import pytest

from bookstore_pos.models import CartLineItem, ManualDiscount, MemberInfo
from bookstore_pos.pricing import (
    compute_breakdown,
    discounted_unit_price,
    manual_discount_amount,
    normalize_rate,
)


def _line(code: str = "BOOK-1", price: str = "100000", quantity: int = 2, **extra) -> CartLineItem:
    return CartLineItem(product_code=code, unit_price_original=Decimal(price), quantity=quantity, **extra)


def _promoted_cart() -> list[CartLineItem]:
    return [_line(promotion_code="SALE10", discount_value=Decimal("0.1"))]


def test_product_promotion_layer() -> None:
    result = compute_breakdown(_promoted_cart())

    assert result.original_subtotal == Decimal("200000")
    assert result.discounted_subtotal == Decimal("180000")
    assert result.product_promotion_discount == Decimal("20000")
    assert result.final_total == Decimal("180000")


def test_member_layer_applies_after_promotion() -> None:
    member = MemberInfo(customer_code="KH001", discount_rate=Decimal("0.05"))
    result = compute_breakdown(_promoted_cart(), member=member)

    assert result.member_discount_amount == Decimal("9000")
    assert result.after_member == Decimal("171000")


def test_manual_layer_applies_after_member() -> None:
    member = MemberInfo(customer_code="KH001", discount_rate=Decimal("0.05"))
    manual = ManualDiscount(type="percent", value=Decimal("10"))
    result = compute_breakdown(_promoted_cart(), member=member, manual=manual)

    assert result.manual_discount_amount == Decimal("17100")
    assert result.final_total == Decimal("153900")
    assert result.change(Decimal("200000")) == Decimal("46100")
    assert result.change(100000) == Decimal("-53900")


def test_active_promotion_map_overrides_line_value() -> None:
    result = compute_breakdown(_promoted_cart(), promotions={"SALE10": Decimal("0.25")})

    assert result.discounted_subtotal == Decimal("150000")


def test_fixed_amount_promotion_never_goes_negative() -> None:
    assert discounted_unit_price(Decimal("30000"), Decimal("5000")) == Decimal("25000")
    assert discounted_unit_price(Decimal("3000"), Decimal("5000")) == Decimal("0")


@pytest.mark.parametrize("value", [None, Decimal("0"), Decimal("-0.2")])
def test_missing_or_invalid_promotion_leaves_price(value) -> None:
    assert discounted_unit_price(Decimal("45000"), value) == Decimal("45000")


def test_promoted_unit_price_rounds_half_up() -> None:
    assert discounted_unit_price(Decimal("12345"), Decimal("0.1")) == Decimal("11111")
    assert discounted_unit_price(Decimal("15"), Decimal("0.5")) == Decimal("8")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, Decimal("0")),
        (Decimal("-1"), Decimal("0")),
        (Decimal("0.05"), Decimal("0.05")),
        (Decimal("5"), Decimal("0.05")),
        (Decimal("1"), Decimal("1")),
        ("150", Decimal("1")),
    ],
)
def test_normalize_rate(raw, expected: Decimal) -> None:
    assert normalize_rate(raw) == expected


def test_member_rate_as_whole_percent() -> None:
    member = MemberInfo(discount_rate=Decimal("5"))
    result = compute_breakdown(_promoted_cart(), member=member)

    assert result.member_rate == Decimal("0.05")
    assert result.member_discount_amount == Decimal("9000")


def test_manual_discount_is_capped_by_post_member_amount() -> None:
    base = Decimal("171000")
    assert manual_discount_amount(base, ManualDiscount(type="fixed", value=Decimal("500000"))) == base
    assert manual_discount_amount(base, ManualDiscount(type="percent", value=Decimal("150"))) == base
    assert manual_discount_amount(base, ManualDiscount(type="fixed", value=Decimal("0"))) == Decimal("0")
    assert manual_discount_amount(base, None) == Decimal("0")


def test_empty_cart_is_all_zero() -> None:
    result = compute_breakdown([], member=MemberInfo(discount_rate=Decimal("0.1")))

    assert result.original_subtotal == result.final_total == Decimal("0")
    assert result.member_discount_amount == Decimal("0")
    assert result.lines == ()


@pytest.mark.parametrize(
    ("lines", "rate", "manual"),
    [
        ([_line(quantity=1)], "0", None),
        ([_line(price="99999", quantity=3, discount_value=Decimal("0.33"))], "0.07", ManualDiscount(value=Decimal("12.5"))),
        (
            [_line(price="20000", discount_value=Decimal("25000")), _line("BOOK-2", "1", 7)],
            "12",
            ManualDiscount(type="fixed", value=Decimal("999999")),
        ),
        ([_line(price="333", quantity=9, discount_value=Decimal("1"))], "1", ManualDiscount(value=Decimal("50"))),
    ],
)
def test_breakdown_invariants(lines, rate: str, manual) -> None:
    result = compute_breakdown(lines, member=MemberInfo(discount_rate=Decimal(rate)), manual=manual)

    assert Decimal("0") <= result.discounted_subtotal <= result.original_subtotal
    assert result.member_discount_amount <= result.discounted_subtotal
    expected = max(
        Decimal("0"),
        result.discounted_subtotal - result.member_discount_amount - result.manual_discount_amount,
    )
    assert result.final_total == expected
    assert result.final_total >= 0
