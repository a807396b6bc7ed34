from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from .exceptions import ApiError
from .models import MemberInfo

logger = logging.getLogger(__name__)

DEFAULT_GUEST_CUSTOMER_CODE = "KH_DEMO"


class PhoneLookup(Protocol):
    def find_by_phone(self, phone: str) -> MemberInfo | None: ...


@dataclass
class CustomerResolver:
    """Decides which customer code an order is booked under.

    Lookup failures are never surfaced: checkout falls back to the guest code
    rather than being blocked.
    """

    accounts: PhoneLookup
    guest_customer_code: str = DEFAULT_GUEST_CUSTOMER_CODE

    def resolve(self, member: MemberInfo | None = None, entered_phone: str | None = None) -> str:
        if member is not None and member.customer_code:
            return member.customer_code
        phone = (entered_phone or "").strip()
        if phone:
            found = self._safe_lookup(phone)
            if found is not None and found.customer_code:
                return found.customer_code
        return self.guest_customer_code

    def lookup_member(self, phone: str | None) -> MemberInfo | None:
        value = (phone or "").strip()
        if not value:
            return None
        return self._safe_lookup(value)

    def _safe_lookup(self, phone: str) -> MemberInfo | None:
        try:
            return self.accounts.find_by_phone(phone)
        except (ApiError, ValueError):
            logger.warning("customer_lookup_failed", exc_info=True)
            return None
