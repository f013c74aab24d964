from __future__ import annotations

import json
import sys
from abc import ABC, abstractmethod
from typing import Sequence, TextIO

from .errors import WriteError
from .models import Trade


class Writer(ABC):
    @abstractmethod
    def write(self, trades: Sequence[Trade]) -> int:
        """Persist `trades` and return how many were written.

        The engine may hand over a batch that was already written before a
        crash, so implementations must treat a repeated id as an overwrite.
        """
        ...


class StdoutWriter(Writer):
    """One JSON object per trade per line."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdout

    def write(self, trades: Sequence[Trade]) -> int:
        try:
            for t in trades:
                self.stream.write(json.dumps(t.to_dict(), ensure_ascii=False) + "\n")
            self.stream.flush()
        except (OSError, ValueError) as e:
            raise WriteError(f"cannot write to stream: {e}") from e
        return len(trades)
