from __future__ import annotations

import json
import logging
import sys
import threading
from typing import Any

from .utils import as_iso, now_utc


def configure_logging(level: str) -> None:
    # stdout carries the trade stream of StdoutWriter.
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stderr,
    )


def get_logger(name: str = "trade_ingestion") -> logging.Logger:
    return logging.getLogger(name)


def log_json(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Emit one JSON object per event.

    run-all interleaves one thread per source on the same handler, so every
    event carries its thread name.
    """
    payload = {
        "ts": as_iso(now_utc()),
        "level": logging.getLevelName(level),
        "thread": threading.current_thread().name,
        "event": event,
        **fields,
    }
    logger.log(level, json.dumps(payload, default=str, ensure_ascii=False))
