from .accounts_client import AccountsClient
from .orders_client import OrdersClient
from .promotions_client import PromotionsClient

__all__ = [
    "AccountsClient",
    "OrdersClient",
    "PromotionsClient",
]
