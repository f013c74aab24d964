from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone

from .utils import parse_iso

DEFAULT_USER_AGENT = "trade-ingestion/0.1"


def env(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v is not None else default


def _env_datetime(name: str, default: str) -> datetime:
    value = parse_iso(env(name, default) or default)
    if value is None:
        raise RuntimeError(f"{name} must be an ISO-8601 timestamp")
    return value


@dataclass(frozen=True)
class Settings:
    database_url: str | None = None
    log_level: str = "INFO"

    progress_dir: str = "./progress"

    http_user_agent: str = DEFAULT_USER_AGENT
    http_connect_timeout: float = 10.0
    http_read_timeout: float = 30.0

    # bitFlyer pages backward: start is the newest id, end the oldest.
    bitflyer_product_code: str = "FX_BTC_JPY"
    bitflyer_start_id: int = 764677430
    bitflyer_end_id: int = 764637994

    liquid_product_id: str = "5"
    liquid_start: datetime = datetime(2019, 1, 1, 1, 1, 1, tzinfo=timezone.utc)
    liquid_end: datetime = datetime(2019, 1, 1, 1, 3, 1, tzinfo=timezone.utc)

    bitmex_symbol: str = "XBTUSD"
    bitmex_start: datetime = datetime(2019, 1, 1, 1, 1, 1, tzinfo=timezone.utc)
    bitmex_end: datetime = datetime(2019, 1, 1, 1, 3, 1, tzinfo=timezone.utc)

    # Supervisor: pause between a failed run and the next attempt.
    retry_interval_sec: float = 5.0

    # Scheduler cadences (minutes)
    sched_bitflyer_minutes: int = 10
    sched_liquid_minutes: int = 10
    sched_bitmex_minutes: int = 10


def load_settings() -> Settings:
    return Settings(
        database_url=env("DATABASE_URL") or env("POSTGRES_DSN") or None,
        log_level=env("LOG_LEVEL", "INFO") or "INFO",
        progress_dir=env("PROGRESS_DIR", "./progress") or "./progress",
        http_user_agent=env("HTTP_USER_AGENT", DEFAULT_USER_AGENT) or DEFAULT_USER_AGENT,
        http_connect_timeout=float(env("HTTP_CONNECT_TIMEOUT", "10") or "10"),
        http_read_timeout=float(env("HTTP_READ_TIMEOUT", "30") or "30"),
        bitflyer_product_code=env("BITFLYER_PRODUCT_CODE", "FX_BTC_JPY") or "FX_BTC_JPY",
        bitflyer_start_id=int(env("BITFLYER_START_ID", "764677430") or "764677430"),
        bitflyer_end_id=int(env("BITFLYER_END_ID", "764637994") or "764637994"),
        liquid_product_id=env("LIQUID_PRODUCT_ID", "5") or "5",
        liquid_start=_env_datetime("LIQUID_START", "2019-01-01T01:01:01Z"),
        liquid_end=_env_datetime("LIQUID_END", "2019-01-01T01:03:01Z"),
        bitmex_symbol=env("BITMEX_SYMBOL", "XBTUSD") or "XBTUSD",
        bitmex_start=_env_datetime("BITMEX_START", "2019-01-01T01:01:01Z"),
        bitmex_end=_env_datetime("BITMEX_END", "2019-01-01T01:03:01Z"),
        retry_interval_sec=float(env("RETRY_INTERVAL_SEC", "5") or "5"),
        sched_bitflyer_minutes=int(env("SCHED_BITFLYER_MINUTES", "10") or "10"),
        sched_liquid_minutes=int(env("SCHED_LIQUID_MINUTES", "10") or "10"),
        sched_bitmex_minutes=int(env("SCHED_BITMEX_MINUTES", "10") or "10"),
    )
