from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable

from dotenv import load_dotenv

ENV_PREFIX = "BOOKSTORE_POS"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class ClientConfig:
    env_name: str
    api_base_url: str
    connect_timeout_seconds: float = 5.0
    read_timeout_seconds: float = 30.0
    retries: int = 2
    retry_backoff_seconds: float = 0.3
    max_connections: int = 10
    verify_ssl: bool = True
    employee_code: str = "NV_MPOS1"
    guest_customer_code: str = "KH_DEMO"
    poll_interval_seconds: float = 3.0
    payment_window_seconds: float = 300.0
    qr_account: str = "VQRQADYBO0539"
    qr_bank: str = "MBBank"
    qr_image_base_url: str = "https://qr.sepay.vn/img"
    telemetry_enabled: bool = False


def _var(name: str) -> str:
    return f"{ENV_PREFIX}_{name}"


def _require(values: dict[str, str | None], required: Iterable[str]) -> None:
    missing = [key for key in required if not values.get(key)]
    if missing:
        raise ConfigError(f"Missing required config values: {', '.join(missing)}")


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected a number, got {raw!r}") from exc


def _read_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected an integer, got {raw!r}") from exc


def _read_str(name: str, default: str) -> str:
    return (os.getenv(name) or default).strip()


def _validate(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def load_config(env_file: str | None = None) -> ClientConfig:
    """Load config from environment with optional .env override."""
    load_dotenv(env_file)

    env_name = (os.getenv(_var("ENV")) or "dev").strip()
    env_key = env_name.upper()

    api_base_url = (
        (os.getenv(_var(f"API_BASE_URL_{env_key}")) or "").strip()
        or (os.getenv(_var("API_BASE_URL")) or "").strip()
    )

    timeout_name = _var("TIMEOUT_SECONDS")
    timeout_seconds = _read_float(timeout_name, "30")
    _validate(timeout_seconds > 0, f"Invalid {timeout_name}: expected > 0, got {timeout_seconds}")

    connect_name = _var("CONNECT_TIMEOUT_SECONDS")
    connect_timeout_seconds = _read_float(connect_name, str(min(timeout_seconds, 5.0)))
    _validate(
        connect_timeout_seconds > 0,
        f"Invalid {connect_name}: expected > 0, got {connect_timeout_seconds}",
    )

    read_name = _var("READ_TIMEOUT_SECONDS")
    read_timeout_seconds = _read_float(read_name, str(max(timeout_seconds, connect_timeout_seconds)))
    _validate(read_timeout_seconds > 0, f"Invalid {read_name}: expected > 0, got {read_timeout_seconds}")

    retries_name = _var("RETRIES")
    retries = _read_int(retries_name, "2")
    _validate(retries >= 0, f"Invalid {retries_name}: expected >= 0, got {retries}")

    backoff_name = _var("RETRY_BACKOFF_SECONDS")
    retry_backoff_seconds = _read_float(backoff_name, "0.3")
    _validate(
        retry_backoff_seconds >= 0,
        f"Invalid {backoff_name}: expected >= 0, got {retry_backoff_seconds}",
    )

    connections_name = _var("MAX_CONNECTIONS")
    max_connections = _read_int(connections_name, "10")
    _validate(max_connections >= 1, f"Invalid {connections_name}: expected >= 1, got {max_connections}")

    poll_name = _var("POLL_INTERVAL_SECONDS")
    poll_interval_seconds = _read_float(poll_name, "3")
    _validate(poll_interval_seconds > 0, f"Invalid {poll_name}: expected > 0, got {poll_interval_seconds}")

    window_name = _var("PAYMENT_WINDOW_SECONDS")
    payment_window_seconds = _read_float(window_name, "300")
    _validate(
        payment_window_seconds >= poll_interval_seconds,
        f"Invalid {window_name}: expected >= {poll_name}, got {payment_window_seconds}",
    )

    values = {_var("API_BASE_URL"): api_base_url}
    _require(values, [_var("API_BASE_URL")])

    return ClientConfig(
        env_name=env_name,
        api_base_url=api_base_url.rstrip("/"),
        connect_timeout_seconds=connect_timeout_seconds,
        read_timeout_seconds=read_timeout_seconds,
        retries=retries,
        retry_backoff_seconds=retry_backoff_seconds,
        max_connections=max_connections,
        verify_ssl=_coerce_bool(os.getenv(_var("VERIFY_SSL")), True),
        employee_code=_read_str(_var("EMPLOYEE_CODE"), "NV_MPOS1"),
        guest_customer_code=_read_str(_var("GUEST_CUSTOMER_CODE"), "KH_DEMO"),
        poll_interval_seconds=poll_interval_seconds,
        payment_window_seconds=payment_window_seconds,
        qr_account=_read_str(_var("QR_ACCOUNT"), "VQRQADYBO0539"),
        qr_bank=_read_str(_var("QR_BANK"), "MBBank"),
        qr_image_base_url=_read_str(_var("QR_IMAGE_BASE_URL"), "https://qr.sepay.vn/img").rstrip("/"),
        telemetry_enabled=_coerce_bool(os.getenv(_var("TELEMETRY_ENABLED")), False),
    )
