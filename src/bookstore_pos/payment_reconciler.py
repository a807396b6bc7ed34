"""Payment state machine for a single POS terminal.

::

    IDLE --begin_cash--> AWAITING_CASH_CONFIRMATION --confirm_cash--> CONFIRMED
    IDLE --begin_qr----> AWAITING_QR_PAYMENT --transfer seen--> CONFIRMED
                                             --deadline passed--> EXPIRED
                                             --cancel/close-----> CANCELLED

Only one session is open at a time. The QR session owns exactly one polling
task, and every exit from ``AWAITING_QR_PAYMENT`` cancels it before the
session is dropped.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Callable, Protocol

from .exceptions import ApiError, InsufficientCashError, PaymentSessionActiveError, PaymentStateError
from .models import Order, PaymentMethod
from .scheduling import ScheduledTask, Scheduler, ThreadingScheduler

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 3.0
DEFAULT_PAYMENT_WINDOW_SECONDS = 300.0


class PaymentState(str, Enum):
    IDLE = "idle"
    AWAITING_CASH_CONFIRMATION = "awaiting_cash_confirmation"
    AWAITING_QR_PAYMENT = "awaiting_qr_payment"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @property
    def is_awaiting(self) -> bool:
        return self in {PaymentState.AWAITING_CASH_CONFIRMATION, PaymentState.AWAITING_QR_PAYMENT}


@dataclass(frozen=True)
class PaymentSession:
    method: PaymentMethod
    started_at: float
    state: PaymentState
    order_code: str | None = None
    deadline: float | None = None


class TransferStatusSource(Protocol):
    def has_transfer(self, order_code: str) -> bool: ...

    def get_order(self, order_code: str, *, fallback: Order | None = None) -> Order: ...


OrderListener = Callable[[Order], None]
SessionListener = Callable[[PaymentSession], None]


class PaymentReconciler:
    def __init__(
        self,
        orders: TransferStatusSource,
        *,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        payment_window_seconds: float = DEFAULT_PAYMENT_WINDOW_SECONDS,
        on_confirmed: OrderListener | None = None,
        on_expired: SessionListener | None = None,
        on_cancelled: SessionListener | None = None,
    ) -> None:
        self.orders = orders
        self.scheduler = scheduler or ThreadingScheduler()
        self.clock = clock
        self.poll_interval_seconds = poll_interval_seconds
        self.payment_window_seconds = payment_window_seconds
        self.on_confirmed = on_confirmed
        self.on_expired = on_expired
        self.on_cancelled = on_cancelled
        self._lock = threading.RLock()
        self._state = PaymentState.IDLE
        self._session: PaymentSession | None = None
        self._pending_order: Order | None = None
        self._task: ScheduledTask | None = None
        self.confirmed_order: Order | None = None
        self.poll_count = 0

    @property
    def state(self) -> PaymentState:
        return self._state

    @property
    def session(self) -> PaymentSession | None:
        return self._session

    @property
    def has_armed_timer(self) -> bool:
        return self._task is not None and not self._task.cancelled

    def begin_cash(self, final_total: Decimal, received: Decimal) -> PaymentSession:
        with self._lock:
            self._ensure_no_open_session()
            change = Decimal(str(received)) - Decimal(str(final_total))
            if change < 0:
                raise InsufficientCashError(
                    "Received amount does not cover the total",
                    details=f"short by {-change}",
                )
            session = PaymentSession(
                method="cash",
                started_at=self.clock(),
                state=PaymentState.AWAITING_CASH_CONFIRMATION,
            )
            self._open(session)
            return session

    def confirm_cash(self, order: Order) -> Order:
        with self._lock:
            if self._state is not PaymentState.AWAITING_CASH_CONFIRMATION:
                raise PaymentStateError(f"Cannot confirm cash payment from state {self._state.value}")
            self.confirmed_order = order
            self._finish(PaymentState.CONFIRMED)
        logger.info("payment_confirmed", extra={"order_code": order.order_code, "method": "cash"})
        self._notify_confirmed(order)
        return order

    def abandon(self) -> None:
        """Drop an unconfirmed cash session, e.g. when order submission failed."""
        with self._lock:
            if self._state is PaymentState.AWAITING_CASH_CONFIRMATION:
                self._session = None
                self._state = PaymentState.IDLE

    def begin_qr(self, order: Order) -> PaymentSession:
        with self._lock:
            self._ensure_no_open_session()
            started_at = self.clock()
            session = PaymentSession(
                method="qr",
                started_at=started_at,
                state=PaymentState.AWAITING_QR_PAYMENT,
                order_code=order.order_code,
                deadline=started_at + self.payment_window_seconds,
            )
            self._open(session)
            self._pending_order = order
            self._task = self.scheduler.call_every(self.poll_interval_seconds, self.tick)
        logger.info(
            "qr_payment_started",
            extra={"order_code": order.order_code, "window_seconds": self.payment_window_seconds},
        )
        return session

    def tick(self) -> PaymentState:
        with self._lock:
            session = self._session
            if self._state is not PaymentState.AWAITING_QR_PAYMENT or session is None:
                return self._state
            expired: PaymentSession | None = None
            if session.deadline is not None and self.clock() > session.deadline:
                expired = self._finish(PaymentState.EXPIRED)
        if expired is not None:
            logger.warning("qr_payment_expired", extra={"order_code": expired.order_code})
            if self.on_expired:
                self.on_expired(expired)
            return PaymentState.EXPIRED

        order_code = session.order_code or ""
        self.poll_count += 1
        try:
            detected = self.orders.has_transfer(order_code)
        except (ApiError, ValueError):
            logger.warning("qr_payment_poll_failed", extra={"order_code": order_code}, exc_info=True)
            return self._state

        if not detected:
            return self._state

        with self._lock:
            if self._session is not session:
                return self._state
            local = self._pending_order
            self._finish(PaymentState.CONFIRMED)
        order = self._fetch_canonical(order_code, local)
        with self._lock:
            self.confirmed_order = order
        logger.info("payment_confirmed", extra={"order_code": order.order_code, "method": "qr"})
        self._notify_confirmed(order)
        return PaymentState.CONFIRMED

    def cancel(self) -> bool:
        with self._lock:
            if self._state is not PaymentState.AWAITING_QR_PAYMENT:
                return False
            cancelled = self._finish(PaymentState.CANCELLED)
        logger.info("qr_payment_cancelled", extra={"order_code": cancelled.order_code})
        if self.on_cancelled:
            self.on_cancelled(cancelled)
        return True

    def close(self) -> None:
        """Teardown: never leaves a polling task behind."""
        if not self.cancel():
            with self._lock:
                self._cancel_task()
                self.abandon()

    def _ensure_no_open_session(self) -> None:
        if self._state.is_awaiting:
            raise PaymentSessionActiveError(f"A payment is already in progress ({self._state.value})")

    def _open(self, session: PaymentSession) -> None:
        self._cancel_task()
        self.confirmed_order = None
        self._pending_order = None
        self._session = session
        self._state = session.state

    def _finish(self, state: PaymentState) -> PaymentSession:
        self._cancel_task()
        if self._session is None:
            raise PaymentStateError("No payment session is open")
        session = replace(self._session, state=state)
        self._session = None
        self._pending_order = None
        self._state = state
        return session

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()

    def _fetch_canonical(self, order_code: str, local: Order | None) -> Order:
        try:
            return self.orders.get_order(order_code, fallback=local)
        except (ApiError, ValueError):
            logger.warning("order_refresh_failed", extra={"order_code": order_code}, exc_info=True)
            if local is not None:
                return local
            return Order(order_code=order_code, payment_method="qr")

    def _notify_confirmed(self, order: Order) -> None:
        if self.on_confirmed:
            self.on_confirmed(order)
