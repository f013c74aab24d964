from __future__ import annotations

import logging
import time
from typing import Callable, Sequence

from .connector_base import Connector
from .cursor import Cursor, CursorState, PaginatedCursor, parse_cursor
from .errors import (
    BoundaryOverflowError,
    ConversionError,
    EmptyPageError,
    StateParseError,
)
from .logging_utils import get_logger, log_json
from .models import RunStats, Trade
from .recorders import ProgressRecorder
from .writers import Writer


class Engine:
    """Fetch-convert-output loop for a single connector.

    Each iteration fetches one page at the current cursor, converts it, writes
    what can be written without losing records at the page boundary, then
    persists the next cursor. Any failure propagates out of run() before the
    cursor is persisted; retrying is the caller's business.
    """

    def __init__(
        self,
        connector: Connector,
        *,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ):
        if type(connector).key_of is Connector.key_of and type(connector).next_cursor is Connector.next_cursor:
            raise TypeError(f"{connector.name}: override key_of() or next_cursor()")
        self.connector = connector
        self.sleep = sleep
        self.logger = logger or get_logger(__name__)

    def initial_cursor(self, recorder: ProgressRecorder) -> Cursor:
        default = self.connector.start_cursor()
        saved = recorder.read()
        if not saved.strip():
            log_json(self.logger, logging.INFO, "no_progress_recorded", connector=self.connector.name, start=str(default))
            return default
        try:
            return parse_cursor(saved, default)
        except StateParseError as e:
            log_json(
                self.logger,
                logging.WARNING,
                "state_parse_failed",
                connector=self.connector.name,
                saved=saved,
                error=str(e),
                start=str(default),
            )
            return default

    def run(self, writer: Writer, recorder: ProgressRecorder) -> RunStats:
        c = self.connector
        state = CursorState(self.initial_cursor(recorder))
        end = c.end_cursor()
        stats = RunStats()
        log_json(self.logger, logging.INFO, "run_start", connector=c.name, start=str(state.current()), end=str(end))

        while c.should_continue(state.current(), end):
            current = state.current()

            raws = c.fetch(current, c.page_limit)
            if not raws:
                raise EmptyPageError(f"{c.name}: no data at {current}")

            trades = [self._convert(raw) for raw in raws]
            batch, next_cursor = self.resolve_page(current, trades)

            written = writer.write(batch)
            state.update(next_cursor)
            recorder.out(state.serialize())

            stats.pages += 1
            stats.fetched += len(trades)
            stats.written += written
            stats.withheld += len(trades) - len(batch)
            log_json(
                self.logger,
                logging.INFO,
                "page_written",
                connector=c.name,
                fetched=len(trades),
                written=written,
                cursor=str(next_cursor),
            )

            if next_cursor == current:
                raise EmptyPageError(f"{c.name}: no data past {current}")

            self.sleep(c.delay_seconds)

        log_json(self.logger, logging.INFO, "run_complete", connector=c.name, cursor=str(state.current()), stats=stats.__dict__)
        return stats

    def resolve_page(self, current: Cursor, trades: Sequence[Trade]) -> tuple[list[Trade], Cursor]:
        """Decide which trades of a page to write and where to resume.

        Returns (batch, next_cursor). Records sharing the last key of a full
        page may continue on the next page, so they are withheld and fetched
        again from that key.
        """
        c = self.connector
        last_key = c.key_of(trades[-1])
        if last_key is None:
            return list(trades), c.next_cursor(current, trades)

        run = 0
        for t in reversed(trades):
            if c.key_of(t) != last_key:
                break
            run += 1

        if len(trades) < c.page_limit:
            return list(trades), self._cursor_at(current, last_key, run)

        if run < len(trades):
            return list(trades[:-run]), self._cursor_at(current, last_key, 0)

        if not c.supports_offset:
            log_json(self.logger, logging.ERROR, "boundary_overflow", connector=c.name, key=str(last_key), limit=c.page_limit)
            raise BoundaryOverflowError(
                f"{c.name}: more than {c.page_limit} records at {last_key}"
            )
        return list(trades), self._cursor_at(current, last_key, run)

    def _cursor_at(self, current: Cursor, key: Cursor, consumed: int) -> Cursor:
        if not self.connector.supports_offset:
            return key
        base = current.offset if isinstance(current, PaginatedCursor) and current.inner == key else 0
        return PaginatedCursor(key, base + consumed)

    def _convert(self, raw: object) -> Trade:
        try:
            return self.connector.convert(raw)
        except ConversionError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ConversionError(f"{self.connector.name}: cannot convert {raw!r}: {e}") from e
