from __future__ import annotations

from dataclasses import dataclass

from .clients.accounts_client import AccountsClient
from .clients.orders_client import OrdersClient
from .clients.promotions_client import PromotionsClient
from .config import ClientConfig
from .http_client import HttpClient
from .tracing import TraceContext


@dataclass
class ApiSession:
    config: ClientConfig
    trace: TraceContext | None = None
    token: str | None = None
    terminal_id: str | None = None
    http: HttpClient | None = None

    def __post_init__(self) -> None:
        self.trace = self.trace or TraceContext()

    def _http(self) -> HttpClient:
        if self.http is None:
            self.http = HttpClient(config=self.config, trace=self.trace)
        return self.http

    def orders_client(self) -> OrdersClient:
        return OrdersClient(http=self._http(), access_token=self.token, terminal_id=self.terminal_id)

    def accounts_client(self) -> AccountsClient:
        return AccountsClient(http=self._http(), access_token=self.token, terminal_id=self.terminal_id)

    def promotions_client(self) -> PromotionsClient:
        return PromotionsClient(http=self._http(), access_token=self.token, terminal_id=self.terminal_id)

    def establish(self, token: str, terminal_id: str | None = None) -> None:
        self.token = token
        if terminal_id is not None:
            self.terminal_id = terminal_id

    def clear(self) -> None:
        self.token = None
        if self.http is not None and self.http.session is not None:
            self.http.session.close()
        self.http = None
