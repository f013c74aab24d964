from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from .utils import as_iso, ensure_utc


@dataclass(frozen=True)
class Trade:
    """Canonical execution record.

    `id` is the dedup key: the same id always carries the same values, so
    sinks may upsert on it. A negative `quantity` is a sell.
    """

    id: str
    traded_at: datetime
    quantity: float
    price: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "traded_at", ensure_utc(self.traded_at))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "traded_at": as_iso(self.traded_at),
            "quantity": self.quantity,
            "price": self.price,
        }


@dataclass
class RunStats:
    pages: int = 0
    fetched: int = 0
    written: int = 0
    withheld: int = 0
