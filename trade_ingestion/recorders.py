from __future__ import annotations

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import RecorderError


class ProgressRecorder(ABC):
    @abstractmethod
    def read(self) -> str:
        """Return the last persisted cursor, or "" when nothing was recorded yet."""
        ...

    @abstractmethod
    def out(self, serialized: str) -> None:
        """Atomically replace the persisted cursor."""
        ...


class MemoryRecorder(ProgressRecorder):
    def __init__(self, value: str = ""):
        self.value = value

    def read(self) -> str:
        return self.value

    def out(self, serialized: str) -> None:
        self.value = serialized


class FileRecorder(ProgressRecorder):
    """Single-file progress slot.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a reader sees either the old or the new cursor.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except OSError as e:
            raise RecorderError(f"cannot read progress from {self.path}: {e}") from e

    def out(self, serialized: str) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(serialized)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise RecorderError(f"cannot write progress to {self.path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
