from __future__ import annotations

from .config import Settings
from .connector_base import Connector
from .connectors.bitflyer import BitflyerConnector
from .connectors.bitmex import BitmexConnector
from .connectors.liquid import LiquidConnector
from .http_client import HttpClient, HttpConfig


def build_connectors(settings: Settings) -> dict[str, Connector]:
    def client() -> HttpClient:
        # One session per connector; engines share nothing.
        return HttpClient(
            HttpConfig(
                user_agent=settings.http_user_agent,
                connect_timeout=settings.http_connect_timeout,
                read_timeout=settings.http_read_timeout,
            )
        )

    return {
        "bitflyer": BitflyerConnector(
            start_id=settings.bitflyer_start_id,
            end_id=settings.bitflyer_end_id,
            product_code=settings.bitflyer_product_code,
            client=client(),
        ),
        "liquid": LiquidConnector(
            start=settings.liquid_start,
            end=settings.liquid_end,
            product_id=settings.liquid_product_id,
            client=client(),
        ),
        "bitmex": BitmexConnector(
            start=settings.bitmex_start,
            end=settings.bitmex_end,
            symbol=settings.bitmex_symbol,
            client=client(),
        ),
    }


def schedule_minutes(settings: Settings) -> dict[str, int]:
    return {
        "bitflyer": settings.sched_bitflyer_minutes,
        "liquid": settings.sched_liquid_minutes,
        "bitmex": settings.sched_bitmex_minutes,
    }
