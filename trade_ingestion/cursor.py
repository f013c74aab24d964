"""Cursor variants: the ordered position markers that drive paging.

A cursor is one of three frozen values:

- ``OrdinalCursor``   an integer position, persisted as ``{"current":18}``
- ``TimestampCursor`` a UTC instant at second precision, persisted as
  ``2019-01-01T01:01:01Z``
- ``PaginatedCursor`` an inner ordinal/timestamp cursor plus an offset of
  records already consumed at that position, persisted as
  ``{"id":<inner>,"num":<offset>}``

Cursors of the same variant compare with the usual operators; paginated
cursors compare the inner cursor first and the offset second. Comparing
different variants raises ``TypeError``.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

from .errors import StateParseError
from .utils import as_iso, ensure_utc, parse_iso, stable_json_dumps


@dataclass(frozen=True, order=True)
class OrdinalCursor:
    value: int

    def to_json(self) -> Any:
        return {"current": self.value}

    def serialize(self) -> str:
        return stable_json_dumps(self.to_json())

    @classmethod
    def from_json(cls, obj: Any) -> "OrdinalCursor":
        if not isinstance(obj, dict) or "current" not in obj:
            raise StateParseError(f"expected an object with 'current', got {obj!r}")
        value = obj["current"]
        if isinstance(value, bool) or not isinstance(value, int):
            raise StateParseError(f"ordinal cursor must be an integer, got {value!r}")
        return cls(value)

    @classmethod
    def parse(cls, text: str) -> "OrdinalCursor":
        return cls.from_json(_loads(text))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True, order=True)
class TimestampCursor:
    value: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", ensure_utc(self.value).replace(microsecond=0))

    def to_json(self) -> Any:
        return as_iso(self.value)

    def serialize(self) -> str:
        return self.to_json()

    @classmethod
    def from_json(cls, obj: Any) -> "TimestampCursor":
        if not isinstance(obj, str) or not obj.strip():
            raise StateParseError(f"timestamp cursor must be an ISO-8601 string, got {obj!r}")
        try:
            dt = parse_iso(obj.strip())
        except (OverflowError, ValueError) as e:
            raise StateParseError(f"invalid timestamp cursor {obj!r}: {e}") from e
        return cls(dt)

    @classmethod
    def parse(cls, text: str) -> "TimestampCursor":
        return cls.from_json(text)

    def __str__(self) -> str:
        return self.serialize()


@dataclass(frozen=True, order=True)
class PaginatedCursor:
    inner: Union[OrdinalCursor, TimestampCursor]
    offset: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.inner, (OrdinalCursor, TimestampCursor)):
            raise TypeError(f"paginated cursor cannot wrap {type(self.inner).__name__}")
        if self.offset < 0:
            raise ValueError(f"offset must be non-negative, got {self.offset}")

    def to_json(self) -> Any:
        return {"id": self.inner.to_json(), "num": self.offset}

    def serialize(self) -> str:
        return stable_json_dumps(self.to_json())

    @classmethod
    def from_json(cls, obj: Any) -> "PaginatedCursor":
        if not isinstance(obj, dict) or "id" not in obj or "num" not in obj:
            raise StateParseError(f"expected an object with 'id' and 'num', got {obj!r}")
        num = obj["num"]
        if isinstance(num, bool) or not isinstance(num, int) or num < 0:
            raise StateParseError(f"offset must be a non-negative integer, got {num!r}")
        inner_obj = obj["id"]
        inner: Union[OrdinalCursor, TimestampCursor]
        if isinstance(inner_obj, str):
            inner = TimestampCursor.from_json(inner_obj)
        else:
            inner = OrdinalCursor.from_json(inner_obj)
        return cls(inner, num)

    @classmethod
    def parse(cls, text: str) -> "PaginatedCursor":
        return cls.from_json(_loads(text))

    def __str__(self) -> str:
        return f"{self.inner}+{self.offset}"


Cursor = Union[OrdinalCursor, TimestampCursor, PaginatedCursor]


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (RecursionError, TypeError, ValueError) as e:
        raise StateParseError(f"cursor is not valid JSON: {text!r}") from e


def parse_cursor(text: str, like: Cursor) -> Cursor:
    """Parse `text` as the same cursor variant as `like`."""
    return type(like).parse(text)


class CursorState:
    """Mutable holder for the position of one running engine."""

    def __init__(self, cursor: Cursor):
        self._current = cursor

    def current(self) -> Cursor:
        return self._current

    def update(self, new: Cursor) -> None:
        if type(new) is not type(self._current):
            raise TypeError(
                f"cannot replace {type(self._current).__name__} with {type(new).__name__}"
            )
        self._current = new

    def serialize(self) -> str:
        return self._current.serialize()

    @classmethod
    def parse(cls, text: str, like: Cursor) -> "CursorState":
        return cls(parse_cursor(text, like))
