"""Keyed local stores for client state (timer snapshots)."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

import structlog

logger = structlog.get_logger()


class MemoryStore:
    """In-process store, used by tests and short-lived timers."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    def load(self, key: str) -> Optional[dict[str, Any]]:
        value = self._data.get(key)
        return dict(value) if value is not None else None

    def save(self, key: str, value: dict[str, Any]) -> None:
        self._data[key] = dict(value)

    def clear(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """
    Store backed by a single JSON object on disk.

    Writes go to a temporary file that replaces the original, so a crash
    mid-write leaves the previous content in place.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("local_store_unreadable", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise

    def load(self, key: str) -> Optional[dict[str, Any]]:
        value = self._read_all().get(key)
        return value if isinstance(value, dict) else None

    def save(self, key: str, value: dict[str, Any]) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def clear(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)
