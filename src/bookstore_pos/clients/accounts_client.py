from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from ..models import MemberInfo
from ..normalizers import normalize_member
from .base import BaseClient


@dataclass
class AccountsClient(BaseClient):
    def find_by_phone(self, phone: str) -> MemberInfo | None:
        data = self._request(
            "GET",
            f"/account/phone/{quote(phone, safe='')}",
            module="accounts",
            operation="find_by_phone",
        )
        return normalize_member(data, phone=phone)
