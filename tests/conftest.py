from __future__ import annotations

import sys
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = BASE_DIR / "src"

sys.path.insert(0, str(SRC_DIR))

from bookstore_pos.config import ClientConfig  # noqa: E402
from bookstore_pos.models import MemberInfo, Order, OrderDraft  # noqa: E402


@dataclass
class ManualTask:
    interval_seconds: float
    callback: Callable[[], Any]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler:
    """Scheduler whose ticks only run when the test calls :meth:`fire`."""

    tasks: list[ManualTask] = field(default_factory=list)

    def call_every(self, interval_seconds: float, callback: Callable[[], Any]) -> ManualTask:
        task = ManualTask(interval_seconds, callback)
        self.tasks.append(task)
        return task

    @property
    def armed(self) -> list[ManualTask]:
        return [task for task in self.tasks if not task.cancelled]

    def fire(self) -> None:
        for task in self.armed:
            task.callback()


@dataclass
class FakeClock:
    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeOrdersClient:
    create_response: Any = None
    create_error: Exception | None = None
    transfer_results: list[Any] = field(default_factory=list)
    canonical: dict[str, Any] | None = None
    get_error: Exception | None = None
    created: list[tuple[OrderDraft, str | None]] = field(default_factory=list)
    transfer_calls: list[str] = field(default_factory=list)
    get_calls: list[str] = field(default_factory=list)

    def create_order(self, draft: OrderDraft, idempotency_key: str | None = None) -> Any:
        self.created.append((draft, idempotency_key))
        if self.create_error is not None:
            raise self.create_error
        if self.create_response is not None:
            return self.create_response
        return {"data": {"orderCode": draft.order_code, "status": "pending"}}

    def has_transfer(self, order_code: str) -> bool:
        self.transfer_calls.append(order_code)
        result = self.transfer_results.pop(0) if self.transfer_results else False
        if isinstance(result, Exception):
            raise result
        return bool(result)

    def get_order(self, order_code: str, *, fallback: Order | None = None) -> Order:
        self.get_calls.append(order_code)
        if self.get_error is not None:
            raise self.get_error
        data = {"orderCode": order_code, "status": "paid", **(self.canonical or {})}
        merged = fallback.model_dump() if fallback else {}
        merged.update(
            order_code=data["orderCode"],
            status=data["status"],
        )
        if "finalAmount" in data:
            merged["final_amount"] = Decimal(str(data["finalAmount"]))
        return Order.model_validate(merged)


@dataclass
class FakeAccountsClient:
    members: dict[str, MemberInfo] = field(default_factory=dict)
    error: Exception | None = None
    calls: list[str] = field(default_factory=list)

    def find_by_phone(self, phone: str) -> MemberInfo | None:
        self.calls.append(phone)
        if self.error is not None:
            raise self.error
        return self.members.get(phone)


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(env_name="test", api_base_url="https://api.example.com")


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def orders() -> FakeOrdersClient:
    return FakeOrdersClient()


@pytest.fixture
def accounts() -> FakeAccountsClient:
    return FakeAccountsClient()
