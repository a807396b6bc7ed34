from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Protocol

from .exceptions import ApiError, OrderSubmissionError
from .idempotency import SubmissionKeys, new_submission_keys
from .models import (
    CartLineItem,
    MemberInfo,
    Order,
    OrderDraft,
    OrderDraftLine,
    OrderLine,
    PaymentMethod,
    RecentOrder,
)
from .normalizers import normalize_order
from .pricing import PricingBreakdown
from .ui_errors import to_user_facing_error

logger = logging.getLogger(__name__)

PAYMENT_METHOD_WIRE: dict[str, str] = {"cash": "Cash", "qr": "Card"}
DEFAULT_EMPLOYEE_CODE = "NV_MPOS1"


class OrderCreator(Protocol):
    def create_order(self, draft: OrderDraft, idempotency_key: str | None = None) -> Any: ...


@dataclass(frozen=True)
class SubmissionResult:
    draft: OrderDraft
    order: Order


def build_draft(
    lines: Iterable[CartLineItem],
    pricing: PricingBreakdown,
    *,
    customer_code: str,
    payment_method: PaymentMethod,
    order_code: str,
    employee_code: str = DEFAULT_EMPLOYEE_CODE,
    member: MemberInfo | None = None,
    note: str | None = None,
    address: str | None = None,
) -> OrderDraft:
    details = tuple(
        OrderDraftLine(
            product_code=line.product_code,
            quantity=line.quantity,
            promotion_code=line.promotion_code or None,
        )
        for line in lines
    )
    member_value = member.discount_rate if member is not None and member.discount_rate else None
    return OrderDraft(
        order_code=order_code,
        customer_code=customer_code,
        employee_code=employee_code,
        payment_method=PAYMENT_METHOD_WIRE[payment_method],
        promotion_customer_code=member.linked_promotion_code if member is not None else None,
        promotion_customer_value=member_value,
        discount=pricing.manual_discount_amount,
        note=note,
        address=address,
        details=details,
    )


def local_order(
    draft: OrderDraft,
    lines: Iterable[CartLineItem],
    pricing: PricingBreakdown,
    *,
    payment_method: PaymentMethod,
) -> Order:
    """The order as computed on the terminal, used wherever the backend is silent."""
    names = {line.product_code: line.product_name for line in lines}
    return Order(
        order_code=draft.order_code,
        payment_method=payment_method,
        total_amount=pricing.discounted_subtotal,
        final_amount=pricing.final_total,
        discount=pricing.manual_discount_amount,
        items=[
            OrderLine(
                product_code=line.product_code,
                product_name=names.get(line.product_code),
                quantity=line.quantity,
                unit_price=line.discounted_unit_price,
            )
            for line in pricing.lines
        ],
        status="pending",
    )


@dataclass
class OrderSubmitter:
    orders: OrderCreator
    employee_code: str = DEFAULT_EMPLOYEE_CODE

    def submit(
        self,
        lines: Iterable[CartLineItem],
        pricing: PricingBreakdown,
        *,
        customer_code: str,
        payment_method: PaymentMethod,
        member: MemberInfo | None = None,
        note: str | None = None,
        address: str | None = None,
        keys: SubmissionKeys | None = None,
    ) -> SubmissionResult:
        snapshot = tuple(lines)
        submission_keys = keys or new_submission_keys()
        draft = build_draft(
            snapshot,
            pricing,
            customer_code=customer_code,
            payment_method=payment_method,
            order_code=submission_keys.order_code,
            employee_code=self.employee_code,
            member=member,
            note=note,
            address=address,
        )
        fallback = local_order(draft, snapshot, pricing, payment_method=payment_method)
        logger.info(
            "order_submit_attempt",
            extra={"order_code": draft.order_code, "payment_method": payment_method, "lines": len(snapshot)},
        )
        try:
            body = self.orders.create_order(draft, idempotency_key=submission_keys.idempotency_key)
        except ApiError as exc:
            logger.exception("order_submit_failure", extra={"order_code": draft.order_code})
            facing = to_user_facing_error(exc)
            raise OrderSubmissionError(
                facing.message,
                details=facing.technical_details,
                trace_id=facing.trace_id,
            ) from exc
        except ValueError as exc:
            logger.exception("order_submit_failure", extra={"order_code": draft.order_code})
            raise OrderSubmissionError("Order service returned an unreadable response") from exc

        order = normalize_order(body, fallback=fallback)
        if order is None:
            logger.error("order_submit_unidentified", extra={"order_code": draft.order_code})
            raise OrderSubmissionError("Order service response did not include an order code")
        # Payment method stays in the terminal's vocabulary for the reconciler.
        order = order.model_copy(update={"payment_method": payment_method})
        logger.info("order_submit_success", extra={"order_code": order.order_code})
        return SubmissionResult(draft=draft, order=order)


def recent_order_of(order: Order) -> RecentOrder:
    return RecentOrder(order_code=order.order_code, final_amount=order.final_amount)


def with_cash_settlement(order: Order, received: Decimal) -> Order:
    return order.model_copy(update={"received_amount": received, "change": received - order.final_amount})
