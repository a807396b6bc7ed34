from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from urllib.parse import urlencode, urlparse

from .config import ClientConfig


def build_qr_image_url(config: ClientConfig, amount: Decimal | int | str, description: str) -> str:
    """Bank-transfer QR image URL.

    ``description`` becomes the transfer memo, which is how an incoming
    transfer is matched back to the order, so it must be the order code.
    """
    if not description:
        raise ValueError("QR transfer description must not be empty")
    parsed = urlparse(config.qr_image_base_url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"Invalid QR image base URL: {config.qr_image_base_url!r}")
    whole_amount = int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    query = urlencode(
        {
            "acc": config.qr_account,
            "bank": config.qr_bank,
            "amount": max(0, whole_amount),
            "des": description,
        }
    )
    return f"{config.qr_image_base_url}?{query}"
