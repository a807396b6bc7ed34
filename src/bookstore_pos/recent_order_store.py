from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_data_dir
from pydantic import ValidationError

from .models import RecentOrder

logger = logging.getLogger(__name__)


@dataclass
class RecentOrderStore:
    """Summary of the last confirmed order, shared with companion screens.

    Written when a payment is confirmed, cleared at the start of the next
    successful checkout's write.
    """

    app_name: str = "bookstore-pos"
    filename: str = "recent_order.json"
    base_dir: Path | None = None

    def _path(self) -> Path:
        base = self.base_dir or Path(user_data_dir(self.app_name, "Bookstore"))
        base.mkdir(parents=True, exist_ok=True)
        return base / self.filename

    def save(self, recent: RecentOrder) -> None:
        self.clear()
        path = self._path()
        path.write_text(json.dumps(recent.model_dump(mode="json"), indent=2))

    def load(self) -> RecentOrder | None:
        path = self._path()
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text())
            return RecentOrder.model_validate(data)
        except (json.JSONDecodeError, ValidationError):
            logger.warning("recent_order_corrupt", extra={"path": str(path)})
            self.clear()
            return None

    def clear(self) -> None:
        path = self._path()
        if path.exists():
            path.unlink()
