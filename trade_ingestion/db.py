from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

from .logging_utils import get_logger, log_json

# Prefer psycopg (v3), fall back to psycopg2.
_driver = None
try:
    import psycopg  # type: ignore
    _driver = "psycopg"
except ImportError:
    try:
        import psycopg2  # type: ignore
        _driver = "psycopg2"
    except ImportError:
        _driver = None


def _connect(dsn: str) -> Any:
    if _driver == "psycopg":
        return psycopg.connect(dsn)
    if _driver == "psycopg2":
        return psycopg2.connect(dsn)
    raise ImportError("Install psycopg[binary] or psycopg2-binary.")


def open_connection(dsn: str) -> Any:
    """Long-lived connection for writers and recorders that commit themselves."""
    return _connect(dsn)


@contextmanager
def connect(dsn: str) -> Iterator[Any]:
    conn = _connect(dsn)
    try:
        yield conn
        conn.commit()
    except Exception:
        rollback(conn)
        raise
    finally:
        conn.close()


def rollback(conn: Any) -> None:
    """Roll back the current transaction.

    A dropped connection cannot roll back; that is logged so the caller can
    still raise the error that got it here.
    """
    try:
        conn.rollback()
    except Exception as e:
        log_json(get_logger(__name__), logging.WARNING, "rollback_failed", error_type=type(e).__name__, error=str(e))


def close(conn: Any) -> None:
    try:
        conn.close()
    except Exception as e:
        log_json(get_logger(__name__), logging.WARNING, "close_failed", error_type=type(e).__name__, error=str(e))


def execute(conn: Any, sql: str, params: tuple = ()) -> None:
    with conn.cursor() as cur:
        cur.execute(sql, params)


def executemany(conn: Any, sql: str, rows: Sequence[tuple]) -> None:
    with conn.cursor() as cur:
        cur.executemany(sql, rows)


def fetchone(conn: Any, sql: str, params: tuple = ()) -> Optional[tuple]:
    with conn.cursor() as cur:
        cur.execute(sql, params)
        return cur.fetchone()


def fetchall(conn: Any, sql: str, params: tuple = ()) -> list[tuple]:
    with conn.cursor() as cur:
        cur.execute(sql, params)
        return cur.fetchall()
