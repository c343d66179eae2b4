"""Local key/value storage used for session identity and chat history.

Values are plain strings (callers serialize JSON themselves), so the same
contract works for the file-backed store used at runtime and the in-memory
store used by tests and ephemeral sessions.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

__all__ = ["LocalStorage", "JsonFileStorage", "MemoryStorage", "StorageError"]

LOGGER = logging.getLogger(__name__)


class StorageError(OSError):
    """Raised when the backing store cannot be read or written."""


@runtime_checkable
class LocalStorage(Protocol):
    """Minimal string key/value store."""

    def get_item(self, key: str) -> str | None:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class MemoryStorage:
    """Dictionary-backed storage; contents vanish with the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileStorage:
    """Storage persisted to a single JSON object on disk.

    Every write rewrites the whole file through a temporary sibling and an
    atomic replace. A file that is missing or not a JSON object reads as
    empty; the next write replaces it.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def get_item(self, key: str) -> str | None:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        items = self._read()
        items[key] = str(value)
        self._write(items)

    def remove_item(self, key: str) -> None:
        items = self._read()
        if key in items:
            del items[key]
            self._write(items)

    def _read(self) -> dict[str, Any]:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise StorageError(f"Unable to read {self._path}: {exc}") from exc
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Storage file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            LOGGER.warning("Storage file %s does not contain an object; ignoring", self._path)
            return {}
        return data

    def _write(self, items: dict[str, Any]) -> None:
        body = json.dumps(items, indent=2, sort_keys=True)
        tmp_path = self._path.with_suffix(".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(body, encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as exc:
            raise StorageError(f"Unable to write {self._path}: {exc}") from exc
