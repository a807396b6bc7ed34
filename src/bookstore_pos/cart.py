from __future__ import annotations

from typing import Any, Iterator, Mapping

from .models import CartLineItem, Product


class CartLedger:
    """Line items of the sale in progress.

    Lines keep insertion order. A line never holds a quantity below 1: setting
    a quantity of 0 or less removes it.
    """

    def __init__(self) -> None:
        self._lines: list[CartLineItem] = []

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[CartLineItem]:
        return iter(self.lines)

    @property
    def lines(self) -> tuple[CartLineItem, ...]:
        return tuple(line.model_copy() for line in self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self._lines)

    def get(self, product_code: str) -> CartLineItem | None:
        line = self._find(product_code)
        return line.model_copy() if line is not None else None

    def add_item(self, product: Product | Mapping[str, Any]) -> CartLineItem:
        item = product if isinstance(product, Product) else Product.model_validate(product)
        existing = self._find(item.product_code)
        if existing is not None:
            existing.quantity += 1
            return existing.model_copy()
        line = CartLineItem.from_product(item)
        self._lines.append(line)
        return line.model_copy()

    def update_quantity(self, product_code: str, quantity: int) -> None:
        existing = self._find(product_code)
        if existing is None:
            return
        quantity = int(quantity)
        if quantity <= 0:
            self.remove_item(product_code)
            return
        existing.quantity = quantity

    def remove_item(self, product_code: str) -> None:
        self._lines = [line for line in self._lines if line.product_code != product_code]

    def clear(self) -> None:
        self._lines = []

    def _find(self, product_code: str) -> CartLineItem | None:
        for line in self._lines:
            if line.product_code == product_code:
                return line
        return None
