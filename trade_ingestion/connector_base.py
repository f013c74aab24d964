from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

from .cursor import Cursor
from .models import Trade


class Connector(ABC):
    """One paginated trade source, as seen by the engine.

    `page_limit` bounds every fetch and `delay_seconds` is slept after each
    successful iteration to stay inside the source's rate budget.
    """

    page_limit: int = 100
    delay_seconds: float = 0.0
    # Whether fetch() honours PaginatedCursor.offset at a fixed key.
    supports_offset: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def start_cursor(self) -> Cursor:
        """Where a run begins when no progress has been recorded."""
        ...

    @abstractmethod
    def end_cursor(self) -> Cursor:
        ...

    @abstractmethod
    def should_continue(self, current: Cursor, end: Cursor) -> bool:
        """Direction lives here: ascending sources compare <, descending >."""
        ...

    @abstractmethod
    def fetch(self, cursor: Cursor, limit: int) -> list[Any]:
        """Return at most `limit` raw records at `cursor`. Must NOT retry."""
        ...

    @abstractmethod
    def convert(self, raw: Any) -> Trade:
        ...

    def key_of(self, trade: Trade) -> Cursor | None:
        """Coarse-grained cursor key of a trade, or None when keys are unique.

        Sources returning a key get the page-boundary tie handling; for
        paginated sources this is the inner cursor.
        """
        return None

    def next_cursor(self, current: Cursor, trades: Sequence[Trade]) -> Cursor:
        """Position after a fully written page, for sources without a key.

        Required whenever key_of() is not overridden; Engine refuses such a
        connector at construction.
        """
        raise NotImplementedError(f"{self.name} must implement next_cursor() or key_of()")
