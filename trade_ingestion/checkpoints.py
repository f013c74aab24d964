from __future__ import annotations

from typing import Any

from .db import execute, fetchall, fetchone, rollback
from .errors import RecorderError
from .recorders import ProgressRecorder

SQL_CREATE = """
CREATE TABLE IF NOT EXISTS ingestion_checkpoints (
  connector_name TEXT PRIMARY KEY,
  last_cursor TEXT NOT NULL,
  updated_at_utc TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""

SQL_GET = """
SELECT last_cursor
FROM ingestion_checkpoints
WHERE connector_name = %s
"""

SQL_UPSERT = """
INSERT INTO ingestion_checkpoints (connector_name, last_cursor, updated_at_utc)
VALUES (%s, %s, now())
ON CONFLICT (connector_name)
DO UPDATE SET
  last_cursor = EXCLUDED.last_cursor,
  updated_at_utc = now()
"""

SQL_LIST = """
SELECT connector_name, last_cursor, updated_at_utc
FROM ingestion_checkpoints
ORDER BY connector_name
"""

SQL_LIST_ONE = """
SELECT connector_name, last_cursor, updated_at_utc
FROM ingestion_checkpoints
WHERE connector_name = %s
"""


def ensure_schema(conn: Any) -> None:
    execute(conn, SQL_CREATE)
    conn.commit()


def list_checkpoints(conn: Any, connector_name: str | None = None) -> list[tuple]:
    if connector_name:
        return fetchall(conn, SQL_LIST_ONE, (connector_name,))
    return fetchall(conn, SQL_LIST, ())


class PostgresRecorder(ProgressRecorder):
    """One row per connector in ingestion_checkpoints.

    The upsert is a single statement committed on its own, so a reader sees
    either the previous cursor or the new one.
    """

    def __init__(self, conn: Any, connector_name: str):
        self.conn = conn
        self.connector_name = connector_name

    def read(self) -> str:
        try:
            row = fetchone(self.conn, SQL_GET, (self.connector_name,))
        except Exception as e:
            rollback(self.conn)
            raise RecorderError(f"cannot read checkpoint for {self.connector_name}: {e}") from e
        if not row or row[0] is None:
            return ""
        return str(row[0])

    def out(self, serialized: str) -> None:
        try:
            execute(self.conn, SQL_UPSERT, (self.connector_name, serialized))
            self.conn.commit()
        except Exception as e:
            rollback(self.conn)
            raise RecorderError(f"cannot store checkpoint for {self.connector_name}: {e}") from e
