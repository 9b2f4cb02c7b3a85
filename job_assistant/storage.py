"""Durable key/value stores: one JSON object per file, guarded by advisory locks."""
from __future__ import annotations

import fcntl
import json
import os
from pathlib import Path

from job_assistant.errors import PersistenceError
from job_assistant.log import get_logger

log = get_logger(__name__)


def _lock(f, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    try:
        op = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(f.fileno(), op)
    except (OSError, AttributeError):
        pass


def _unlock(f) -> None:
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except (OSError, AttributeError):
        pass


class JsonStore:
    """Maps string keys to serialized string values in a single JSON file.

    There is one writer at a time, so a read-modify-write without a
    transaction is enough.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                _lock(f, exclusive=False)
                raw = f.read()
                _unlock(f)
        except OSError as exc:
            raise PersistenceError(f"Cannot read {self.path.name}: {exc}") from exc
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupt store {self.path.name}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"Corrupt store {self.path.name}: not an object")
        return data

    def _write(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                _lock(f)
                json.dump(data, f, ensure_ascii=False)
                _unlock(f)
            os.replace(tmp, self.path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self.path.name}: {exc}") from exc

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._read().get(key, default)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)
        log.debug("Stored %s → %s", key, self.path.name)

    def delete(self, key: str) -> bool:
        data = self._read()
        if key not in data:
            return False
        del data[key]
        self._write(data)
        return True

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._read() if k.startswith(prefix)]
