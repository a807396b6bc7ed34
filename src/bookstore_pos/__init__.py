from .cart import CartLedger
from .checkout import CheckoutController, QrCheckout
from .config import ClientConfig, ConfigError, load_config
from .customer_resolver import CustomerResolver
from .exceptions import (
    ApiError,
    CheckoutError,
    CheckoutInProgressError,
    CheckoutValidationError,
    InsufficientCashError,
    NotFoundError,
    OrderSubmissionError,
    PaymentSessionActiveError,
    PaymentStateError,
    TransportError,
)
from .http_client import HttpClient
from .models import CartLineItem, ManualDiscount, MemberInfo, Order, OrderDraft, Product, Promotion, RecentOrder
from .order_submitter import OrderSubmitter, SubmissionResult
from .payment_reconciler import PaymentReconciler, PaymentSession, PaymentState
from .pricing import PricingBreakdown, compute_breakdown
from .qr import build_qr_image_url
from .recent_order_store import RecentOrderStore
from .scheduling import RepeatingTimer, ThreadingScheduler
from .session import ApiSession
from .tracing import TraceContext

__all__ = [
    "ApiError",
    "ApiSession",
    "CartLedger",
    "CartLineItem",
    "CheckoutController",
    "CheckoutError",
    "CheckoutInProgressError",
    "CheckoutValidationError",
    "ClientConfig",
    "ConfigError",
    "CustomerResolver",
    "HttpClient",
    "InsufficientCashError",
    "ManualDiscount",
    "MemberInfo",
    "NotFoundError",
    "Order",
    "OrderDraft",
    "OrderSubmissionError",
    "OrderSubmitter",
    "PaymentReconciler",
    "PaymentSession",
    "PaymentSessionActiveError",
    "PaymentState",
    "PaymentStateError",
    "PricingBreakdown",
    "Product",
    "Promotion",
    "QrCheckout",
    "RecentOrder",
    "RecentOrderStore",
    "RepeatingTimer",
    "SubmissionResult",
    "ThreadingScheduler",
    "TraceContext",
    "TransportError",
    "build_qr_image_url",
    "compute_breakdown",
    "load_config",
]
