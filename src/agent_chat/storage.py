"""Durable key-value slots used for the conversation snapshot."""

from __future__ import annotations

import json
import os
from pathlib import Path
import tempfile
import logging
from typing import Protocol

from .exceptions import PersistenceError, PersistenceFormatError

LOGGER = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """Minimal string key-value contract (a ``localStorage`` analogue)."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Volatile storage, used when persistence is disabled and in tests."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage:
    """Keep every slot in a single private JSON object on disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def _enforce_permissions(self, path: Path, mode: int = 0o600) -> None:
        """Best-effort POSIX permissions for a file or directory."""
        if os.name != "posix":
            return
        try:
            path.chmod(mode)
        except OSError as exc:
            LOGGER.warning("Unable to enforce %o permissions for %s: %s", mode, path, exc)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Unable to read {self.path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise PersistenceFormatError(f"{self.path} is not valid UTF-8.") from exc
        if not raw.strip():
            return {}
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceFormatError(f"{self.path} is not valid JSON.") from exc
        if not isinstance(payload, dict):
            raise PersistenceFormatError(f"{self.path} must hold a JSON object.")
        return {str(k): v for k, v in payload.items() if isinstance(v, str)}

    def _write_all(self, items: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._enforce_permissions(self.path.parent, 0o700)
            # Atomic replace.
            fd, temp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
        except OSError as exc:
            raise PersistenceError(f"Unable to write {self.path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(items, handle, ensure_ascii=False, sort_keys=True)
            os.replace(temp_name, self.path)
        except OSError as exc:
            Path(temp_name).unlink(missing_ok=True)
            raise PersistenceError(f"Unable to write {self.path}: {exc}") from exc
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        self._enforce_permissions(self.path)

    def get_item(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        try:
            items = self._read_all()
        except PersistenceFormatError:
            # Corrupt file: start over.
            items = {}
        items[key] = value
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        try:
            items = self._read_all()
        except PersistenceFormatError:
            self._write_all({})
            return
        if key not in items:
            return
        del items[key]
        self._write_all(items)
