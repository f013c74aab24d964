from __future__ import annotations

from typing import Any, Sequence

from ..connector_base import Connector
from ..cursor import Cursor, OrdinalCursor
from ..errors import ConversionError
from ..http_client import HttpClient, HttpConfig
from ..models import Trade
from ..utils import parse_iso


class BitflyerConnector(Connector):
    """bitFlyer executions, paged backward by execution id.

    `before` is exclusive, so the id of the oldest trade of a page is exactly
    where the next page starts. Ids are unique, which makes page boundaries
    safe without any tie handling.
    """

    base_url = "https://api.bitflyer.com"
    page_limit = 500
    # 500 requests per minute, plus a margin.
    delay_seconds = 60 / 500 + 0.01

    @property
    def name(self) -> str:
        return "bitflyer"

    def __init__(
        self,
        start_id: int,
        end_id: int,
        product_code: str = "FX_BTC_JPY",
        client: HttpClient | None = None,
        user_agent: str = "trade-ingestion/0.1",
    ):
        self.start_id = start_id
        self.end_id = end_id
        self.product_code = product_code
        self.client = client or HttpClient(HttpConfig(user_agent=user_agent))

    def start_cursor(self) -> Cursor:
        return OrdinalCursor(self.start_id)

    def end_cursor(self) -> Cursor:
        return OrdinalCursor(self.end_id)

    def should_continue(self, current: Cursor, end: Cursor) -> bool:
        return current > end

    def fetch(self, cursor: Cursor, limit: int) -> list[Any]:
        return self.client.get_list(
            f"{self.base_url}/v1/executions",
            params={"product_code": self.product_code, "before": cursor.value, "count": limit},
        )

    def convert(self, raw: Any) -> Trade:
        try:
            size = float(raw["size"])
            # exec_date comes without an offset and is UTC.
            traded_at = parse_iso(str(raw["exec_date"]))
            if traded_at is None:
                raise ValueError("empty exec_date")
            return Trade(
                id=str(raw["id"]),
                traded_at=traded_at,
                quantity=size if raw["side"] == "BUY" else -size,
                price=float(raw["price"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConversionError(f"bitflyer: malformed execution {raw!r}: {e}") from e

    def next_cursor(self, current: Cursor, trades: Sequence[Trade]) -> Cursor:
        return OrdinalCursor(int(trades[-1].id))
