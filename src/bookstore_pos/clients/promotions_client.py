from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..models import Promotion
from ..normalizers import active_promotion_values, normalize_promotions
from .base import BaseClient


@dataclass
class PromotionsClient(BaseClient):
    def list_promotions(self) -> list[Promotion]:
        data = self._request("GET", "/promotions", module="promotions", operation="list_promotions")
        return normalize_promotions(data)

    def active_values(self, *, now: datetime | None = None) -> dict[str, Decimal]:
        return active_promotion_values(self.list_promotions(), now=now)
