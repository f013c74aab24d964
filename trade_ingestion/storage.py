from __future__ import annotations

import re
from typing import Any, Sequence

from .db import execute, executemany, rollback
from .errors import WriteError
from .models import Trade
from .writers import Writer

_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

SQL_CREATE = """
CREATE TABLE IF NOT EXISTS {table} (
  id VARCHAR(64) PRIMARY KEY,
  traded_at TIMESTAMPTZ NOT NULL,
  quantity DOUBLE PRECISION NOT NULL,
  price DOUBLE PRECISION NOT NULL
)
"""

SQL_INDEX = "CREATE INDEX IF NOT EXISTS ind_{table}_traded_at ON {table} (traded_at)"

SQL_UPSERT = """
INSERT INTO {table} (id, traded_at, quantity, price)
VALUES (%s, %s, %s, %s)
ON CONFLICT (id)
DO UPDATE SET
  traded_at = EXCLUDED.traded_at,
  quantity = EXCLUDED.quantity,
  price = EXCLUDED.price
"""


class PostgresWriter(Writer):
    """Upserts trades by id into one table per source.

    Each batch is committed before write() returns so it is durable before
    the engine records the next cursor.
    """

    def __init__(self, conn: Any, table: str):
        if not _TABLE_RE.match(table):
            raise ValueError(f"invalid table name: {table!r}")
        self.conn = conn
        self.table = table
        self._schema_ready = False

    def _ensure_table(self) -> None:
        if self._schema_ready:
            return
        execute(self.conn, SQL_CREATE.format(table=self.table))
        execute(self.conn, SQL_INDEX.format(table=self.table))
        self._schema_ready = True

    def write(self, trades: Sequence[Trade]) -> int:
        rows = [(t.id, t.traded_at, t.quantity, t.price) for t in trades]
        try:
            self._ensure_table()
            if rows:
                executemany(self.conn, SQL_UPSERT.format(table=self.table), rows)
            self.conn.commit()
        except Exception as e:
            rollback(self.conn)
            self._schema_ready = False
            raise WriteError(f"upsert into {self.table} failed: {e}") from e
        return len(rows)
