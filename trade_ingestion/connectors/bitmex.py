from __future__ import annotations

from datetime import datetime
from typing import Any

from ..connector_base import Connector
from ..cursor import Cursor, PaginatedCursor, TimestampCursor
from ..errors import ConversionError
from ..http_client import HttpClient, HttpConfig
from ..models import Trade
from ..utils import parse_iso


class BitmexConnector(Connector):
    """BitMEX public trades from a start time, ascending.

    The API takes a `start` offset next to `startTime`, so a page full of
    trades within one second is followed by paging further into that second.
    """

    base_url = "https://www.bitmex.com"
    page_limit = 500
    # Anonymous access allows 150 requests per 5 minutes.
    delay_seconds = 60 / 30
    supports_offset = True

    @property
    def name(self) -> str:
        return "bitmex"

    def __init__(
        self,
        start: datetime,
        end: datetime,
        symbol: str = "XBTUSD",
        client: HttpClient | None = None,
        user_agent: str = "trade-ingestion/0.1",
    ):
        self.start = start
        self.end = end
        self.symbol = symbol
        self.client = client or HttpClient(HttpConfig(user_agent=user_agent))

    def start_cursor(self) -> Cursor:
        return PaginatedCursor(TimestampCursor(self.start), 0)

    def end_cursor(self) -> Cursor:
        return PaginatedCursor(TimestampCursor(self.end), 0)

    def should_continue(self, current: Cursor, end: Cursor) -> bool:
        return current <= end

    def fetch(self, cursor: Cursor, limit: int) -> list[Any]:
        return self.client.get_list(
            f"{self.base_url}/api/v1/trade",
            params={
                "symbol": self.symbol,
                "startTime": cursor.inner.serialize(),
                "start": cursor.offset,
                "count": limit,
                "reverse": "false",
            },
        )

    def convert(self, raw: Any) -> Trade:
        try:
            price = float(raw["price"])
            if price <= 0:
                raise ConversionError(f"bitmex: non-positive price in {raw!r}")
            # size is in contracts (USD); quantity is in BTC.
            amount = float(raw["size"]) / price
            side = raw["side"]
            if side == "Buy":
                quantity = amount
            elif side == "Sell":
                quantity = -amount
            else:
                raise ConversionError(f"bitmex: invalid side {side!r} in {raw!r}")
            traded_at = parse_iso(str(raw["timestamp"]))
            if traded_at is None:
                raise ValueError("empty timestamp")
            return Trade(id=str(raw["trdMatchID"]), traded_at=traded_at, quantity=quantity, price=price)
        except ConversionError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ConversionError(f"bitmex: malformed trade {raw!r}: {e}") from e

    def key_of(self, trade: Trade) -> Cursor | None:
        return TimestampCursor(trade.traded_at)
