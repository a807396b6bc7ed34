"""Layered discount math for the POS cart.

Layers always run in the same order and each one works on the previous
layer's output:

1. product promotions, per line
2. member discount, on the promoted subtotal
3. manual (invoice) discount, on the post-member amount

Amounts are rounded half-up to whole currency units after every layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping

from .models import CartLineItem, ManualDiscount, MemberInfo

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LinePricing:
    product_code: str
    quantity: int
    original_unit_price: Decimal
    discounted_unit_price: Decimal

    @property
    def original_total(self) -> Decimal:
        return self.original_unit_price * self.quantity

    @property
    def discounted_total(self) -> Decimal:
        return self.discounted_unit_price * self.quantity


@dataclass(frozen=True)
class PricingBreakdown:
    lines: tuple[LinePricing, ...]
    original_subtotal: Decimal
    discounted_subtotal: Decimal
    product_promotion_discount: Decimal
    member_rate: Decimal
    member_discount_amount: Decimal
    after_member: Decimal
    manual_discount_amount: Decimal
    final_total: Decimal

    def change(self, received: Decimal | int | float | str) -> Decimal:
        return Decimal(str(received)) - self.final_total


def round_amount(value: Decimal) -> Decimal:
    return value.quantize(ONE, rounding=ROUND_HALF_UP)


def normalize_rate(rate: Decimal | int | float | str | None) -> Decimal:
    """Rates above 1 are whole percentages (``5`` means ``0.05``)."""
    if rate is None:
        return ZERO
    value = Decimal(str(rate))
    if not value.is_finite() or value <= 0:
        return ZERO
    if value > 1:
        value = value / HUNDRED
    return min(value, ONE)


def discounted_unit_price(price: Decimal, promotion_value: Decimal | None) -> Decimal:
    if promotion_value is None or not promotion_value.is_finite() or promotion_value <= 0:
        return price
    if promotion_value <= 1:
        return max(ZERO, round_amount(price * (ONE - promotion_value)))
    return max(ZERO, price - promotion_value)


def promotion_value_for(line: CartLineItem, promotions: Mapping[str, Decimal] | None) -> Decimal | None:
    if promotions and line.promotion_code and line.promotion_code in promotions:
        return promotions[line.promotion_code]
    return line.discount_value


def price_lines(
    lines: Iterable[CartLineItem],
    promotions: Mapping[str, Decimal] | None = None,
) -> tuple[LinePricing, ...]:
    priced: list[LinePricing] = []
    for line in lines:
        original = Decimal(str(line.unit_price_original))
        priced.append(
            LinePricing(
                product_code=line.product_code,
                quantity=line.quantity,
                original_unit_price=original,
                discounted_unit_price=discounted_unit_price(original, promotion_value_for(line, promotions)),
            )
        )
    return tuple(priced)


def member_discount(base: Decimal, rate: Decimal) -> Decimal:
    if base <= 0 or rate <= 0:
        return ZERO
    return round_amount(min(base, base * rate))


def manual_discount_amount(base: Decimal, manual: ManualDiscount | None) -> Decimal:
    if manual is None or manual.value <= 0 or base <= 0:
        return ZERO
    if manual.type == "percent":
        return round_amount(min(base, base * manual.value / HUNDRED))
    return round_amount(min(base, manual.value))


def compute_breakdown(
    lines: Iterable[CartLineItem],
    *,
    member: MemberInfo | None = None,
    manual: ManualDiscount | None = None,
    promotions: Mapping[str, Decimal] | None = None,
) -> PricingBreakdown:
    priced = price_lines(lines, promotions)
    original_subtotal = sum((line.original_total for line in priced), ZERO)
    discounted_subtotal = sum((line.discounted_total for line in priced), ZERO)
    product_promotion_discount = max(ZERO, original_subtotal - discounted_subtotal)

    rate = normalize_rate(member.discount_rate if member else None)
    member_amount = member_discount(discounted_subtotal, rate)
    after_member = max(ZERO, discounted_subtotal - member_amount)

    manual_amount = manual_discount_amount(after_member, manual)
    final_total = max(ZERO, round_amount(after_member - manual_amount))

    return PricingBreakdown(
        lines=priced,
        original_subtotal=original_subtotal,
        discounted_subtotal=discounted_subtotal,
        product_promotion_discount=product_promotion_discount,
        member_rate=rate,
        member_discount_amount=member_amount,
        after_member=after_member,
        manual_discount_amount=manual_amount,
        final_total=final_total,
    )
