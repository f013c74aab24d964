from __future__ import annotations

from datetime import datetime
from typing import Any

from ..connector_base import Connector
from ..cursor import Cursor, TimestampCursor
from ..errors import ConversionError
from ..http_client import HttpClient, HttpConfig
from ..models import Trade
from ..utils import from_epoch

SIDES = {"buy": 1.0, "sell": -1.0}


class LiquidConnector(Connector):
    """Liquid executions by timestamp.

    The endpoint pages by whole seconds and cannot skip records within a
    second, so a full page at a single second is a boundary overflow.
    """

    base_url = "https://api.liquid.com"
    page_limit = 1000
    delay_seconds = 1.1

    @property
    def name(self) -> str:
        return "liquid"

    def __init__(
        self,
        start: datetime,
        end: datetime,
        product_id: str = "5",
        client: HttpClient | None = None,
        user_agent: str = "trade-ingestion/0.1",
    ):
        self.start = start
        self.end = end
        self.product_id = product_id
        self.client = client or HttpClient(HttpConfig(user_agent=user_agent))

    def start_cursor(self) -> Cursor:
        return TimestampCursor(self.start)

    def end_cursor(self) -> Cursor:
        return TimestampCursor(self.end)

    def should_continue(self, current: Cursor, end: Cursor) -> bool:
        return current <= end

    def fetch(self, cursor: Cursor, limit: int) -> list[Any]:
        return self.client.get_list(
            f"{self.base_url}/executions",
            params={"product_id": self.product_id, "timestamp": int(cursor.value.timestamp()), "limit": limit},
            headers={"X-Quoine-API-Version": "2", "Content-Type": "application/json"},
        )

    def convert(self, raw: Any) -> Trade:
        try:
            side = raw["taker_side"]
            if side not in SIDES:
                raise ConversionError(f"liquid: invalid taker_side {side!r} in {raw!r}")
            return Trade(
                id=str(raw["id"]),
                traded_at=from_epoch(int(raw["created_at"])),
                quantity=SIDES[side] * float(raw["quantity"]),
                price=float(raw["price"]),
            )
        except ConversionError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ConversionError(f"liquid: malformed execution {raw!r}: {e}") from e

    def key_of(self, trade: Trade) -> Cursor | None:
        return TimestampCursor(trade.traded_at)
