from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterator, Mapping, Protocol

from pydantic import ValidationError as PydanticValidationError

from .cart import CartLedger
from .config import ClientConfig
from .customer_resolver import CustomerResolver, PhoneLookup
from .exceptions import (
    ApiError,
    CheckoutError,
    CheckoutInProgressError,
    CheckoutValidationError,
    PaymentSessionActiveError,
)
from .idempotency import SubmissionKeys, new_submission_keys
from .models import CartLineItem, ManualDiscount, ManualDiscountType, MemberInfo, Order, Product, RecentOrder
from .order_submitter import OrderCreator, OrderSubmitter, recent_order_of, with_cash_settlement
from .payment_reconciler import PaymentReconciler, PaymentSession, PaymentState, TransferStatusSource
from .pricing import PricingBreakdown, compute_breakdown
from .qr import build_qr_image_url
from .recent_order_store import RecentOrderStore
from .scheduling import Scheduler
from .telemetry import TelemetryLogger, build_event

logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]
PAYMENT_WINDOW_EXPIRED = "payment window expired"


class OrdersGateway(OrderCreator, TransferStatusSource, Protocol):
    pass


class PromotionSource(Protocol):
    def active_values(self, *, now: datetime | None = None) -> dict[str, Decimal]: ...


@dataclass(frozen=True)
class QrCheckout:
    order: Order
    qr_image_url: str
    session: PaymentSession


class CheckoutController:
    """One POS terminal's sale in progress, from cart to confirmed payment.

    Edits to the cart, member and manual discount are refused while a
    checkout is being submitted or a payment is outstanding. A QR checkout
    returns as soon as polling starts; confirmation, expiry and cancellation
    arrive later through the reconciler callbacks.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        orders: OrdersGateway,
        accounts: PhoneLookup,
        promotions: PromotionSource | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
        recent_orders: RecentOrderStore | None = None,
        telemetry: TelemetryLogger | None = None,
        notify: Notifier | None = None,
        keys_factory: Callable[[], SubmissionKeys] = new_submission_keys,
    ) -> None:
        self.config = config
        self.cart = CartLedger()
        self.resolver = CustomerResolver(accounts, guest_customer_code=config.guest_customer_code)
        self.submitter = OrderSubmitter(orders, employee_code=config.employee_code)
        self.promotion_source = promotions
        self.recent_orders = recent_orders or RecentOrderStore()
        if telemetry is None:
            telemetry = TelemetryLogger(app_name="bookstore-pos", enabled=config.telemetry_enabled)
        self.telemetry = telemetry
        self.notify = notify
        self.keys_factory = keys_factory
        self.reconciler = PaymentReconciler(
            orders,
            scheduler=scheduler,
            clock=clock,
            poll_interval_seconds=config.poll_interval_seconds,
            payment_window_seconds=config.payment_window_seconds,
            on_confirmed=self._handle_confirmed,
            on_expired=self._handle_expired,
            on_cancelled=self._handle_cancelled,
        )
        self.member: MemberInfo | None = None
        self.entered_phone: str | None = None
        self.manual_discount: ManualDiscount | None = None
        self.promotions: dict[str, Decimal] = {}
        self.last_confirmed_order: Order | None = None
        self._lock = threading.RLock()
        self._in_flight = False

    @property
    def payment_state(self) -> PaymentState:
        return self.reconciler.state

    @property
    def checkout_in_flight(self) -> bool:
        return self._in_flight

    def add_product(self, product: Product | Mapping[str, Any]) -> CartLineItem:
        with self._lock:
            self._ensure_editable()
            return self.cart.add_item(product)

    def update_quantity(self, product_code: str, quantity: int) -> None:
        with self._lock:
            self._ensure_editable()
            self.cart.update_quantity(product_code, quantity)

    def remove_item(self, product_code: str) -> None:
        with self._lock:
            self._ensure_editable()
            self.cart.remove_item(product_code)

    def clear_all(self) -> None:
        with self._lock:
            self._ensure_editable()
            self._reset_sale()

    def lookup_member(self, phone: str | None) -> MemberInfo | None:
        with self._lock:
            self._ensure_editable()
            self.entered_phone = (phone or "").strip() or None
            self.member = self.resolver.lookup_member(self.entered_phone)
            return self.member

    def set_manual_discount(self, discount_type: ManualDiscountType, value: Decimal | int | str | None) -> None:
        with self._lock:
            self._ensure_editable()
            if value is None or value == "":
                self.manual_discount = None
                return
            try:
                self.manual_discount = ManualDiscount(type=discount_type, value=Decimal(str(value)))
            except (PydanticValidationError, InvalidOperation) as exc:
                raise CheckoutValidationError("Invalid manual discount", details=str(exc)) from exc

    def load_promotions(self) -> dict[str, Decimal]:
        if self.promotion_source is None:
            return dict(self.promotions)
        try:
            values = self.promotion_source.active_values()
        except (ApiError, ValueError):
            logger.warning("promotions_load_failed", exc_info=True)
            return dict(self.promotions)
        with self._lock:
            self.promotions = dict(values)
            logger.info("promotions_loaded", extra={"count": len(self.promotions)})
            return dict(self.promotions)

    def breakdown(self) -> PricingBreakdown:
        with self._lock:
            return compute_breakdown(
                self.cart.lines,
                member=self.member,
                manual=self.manual_discount,
                promotions=self.promotions,
            )

    def change(self, received: Decimal | int | str) -> Decimal:
        return self.breakdown().change(received)

    def checkout_cash(self, received: Decimal | int | str) -> Order:
        with self._checkout_guard("cash"):
            lines, pricing = self._snapshot()
            amount = _to_amount(received)
            self.reconciler.begin_cash(pricing.final_total, amount)
            try:
                customer_code = self.resolver.resolve(self.member, self.entered_phone)
                result = self.submitter.submit(
                    lines,
                    pricing,
                    customer_code=customer_code,
                    payment_method="cash",
                    member=self.member,
                    keys=self.keys_factory(),
                )
            except Exception:
                self.reconciler.abandon()
                raise
            order = with_cash_settlement(result.order, amount)
            return self.reconciler.confirm_cash(order)

    def start_qr_checkout(self) -> QrCheckout:
        with self._checkout_guard("qr"):
            lines, pricing = self._snapshot()
            if self.reconciler.state.is_awaiting:
                raise PaymentSessionActiveError(f"A payment is already in progress ({self.reconciler.state.value})")
            customer_code = self.resolver.resolve(self.member, self.entered_phone)
            result = self.submitter.submit(
                lines,
                pricing,
                customer_code=customer_code,
                payment_method="qr",
                member=self.member,
                keys=self.keys_factory(),
            )
            order = result.order
            qr_image_url = build_qr_image_url(self.config, order.final_amount, order.order_code)
            session = self.reconciler.begin_qr(order)
            self._emit("payment", "qr_payment_started", "begin", context={"order_code": order.order_code})
            return QrCheckout(order=order, qr_image_url=qr_image_url, session=session)

    def cancel_qr(self) -> bool:
        return self.reconciler.cancel()

    def recent_order(self) -> RecentOrder | None:
        return self.recent_orders.load()

    def close(self) -> None:
        self.reconciler.close()

    @contextmanager
    def _checkout_guard(self, method: str) -> Iterator[None]:
        with self._lock:
            if self._in_flight:
                raise CheckoutInProgressError("A checkout is already being submitted")
            self._in_flight = True
        started = time.monotonic()
        try:
            yield
        except CheckoutError as exc:
            self._emit(
                "checkout",
                f"checkout_{method}",
                "submit",
                success=False,
                error_code=type(exc).__name__,
                duration_ms=_elapsed_ms(started),
            )
            self._notify("error", exc.message)
            raise
        else:
            self._emit("checkout", f"checkout_{method}", "submit", success=True, duration_ms=_elapsed_ms(started))
        finally:
            with self._lock:
                self._in_flight = False

    def _snapshot(self) -> tuple[tuple[CartLineItem, ...], PricingBreakdown]:
        with self._lock:
            lines = self.cart.lines
            if not lines:
                raise CheckoutValidationError("Cart is empty")
            pricing = compute_breakdown(
                lines,
                member=self.member,
                manual=self.manual_discount,
                promotions=self.promotions,
            )
            return lines, pricing

    def _ensure_editable(self) -> None:
        if self._in_flight:
            raise CheckoutInProgressError("Sale is locked while a checkout is being submitted")
        if self.reconciler.state.is_awaiting:
            raise PaymentSessionActiveError("Cart is locked while a payment is outstanding")

    def _reset_sale(self) -> None:
        self.cart.clear()
        self.member = None
        self.entered_phone = None
        self.manual_discount = None

    def _handle_confirmed(self, order: Order) -> None:
        with self._lock:
            self._reset_sale()
            self.last_confirmed_order = order
        try:
            self.recent_orders.save(recent_order_of(order))
        except OSError:
            logger.exception("recent_order_save_failed", extra={"order_code": order.order_code})
        self._emit(
            "payment",
            "payment_confirmed",
            "confirm",
            success=True,
            context={"order_code": order.order_code, "payment_method": order.payment_method},
        )
        self._notify("success", f"Payment confirmed for order {order.order_code}")

    def _handle_expired(self, session: PaymentSession) -> None:
        self._emit(
            "payment",
            "payment_expired",
            "expire",
            success=False,
            error_code="PAYMENT_WINDOW_EXPIRED",
            context={"order_code": session.order_code},
        )
        self._notify("warning", PAYMENT_WINDOW_EXPIRED)

    def _handle_cancelled(self, session: PaymentSession) -> None:
        self._emit("payment", "payment_cancelled", "cancel", context={"order_code": session.order_code})

    def _notify(self, level: str, message: str) -> None:
        if self.notify:
            self.notify(level, message)

    def _emit(self, category: str, name: str, action: str, **fields: Any) -> None:
        event = build_event(category=category, name=name, module="checkout", action=action, **fields)
        try:
            self.telemetry.emit(event)
        except OSError:
            logger.warning("telemetry_write_failed", extra={"event": name}, exc_info=True)


def _to_amount(value: Decimal | int | str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise CheckoutValidationError("Received amount is not a number", details=repr(value)) from exc
    if not amount.is_finite() or amount < 0:
        raise CheckoutValidationError("Received amount must be a non-negative number", details=repr(value))
    return amount


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
