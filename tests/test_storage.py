"""Tests for the local key/value stores."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ventureagent.services.storage import JsonFileStorage, LocalStorage, MemoryStorage, StorageError


def test_memory_storage_roundtrip() -> None:
    storage = MemoryStorage({"a": "1"})

    storage.set_item("b", "2")
    storage.remove_item("a")
    storage.remove_item("missing")

    assert storage.get_item("a") is None
    assert storage.get_item("b") == "2"
    assert storage.keys() == ["b"]
    assert isinstance(storage, LocalStorage)


def test_json_file_storage_persists_between_instances(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "storage.json"
    JsonFileStorage(path).set_item("ai_session_id", "session-abc")

    reopened = JsonFileStorage(path)

    assert reopened.get_item("ai_session_id") == "session-abc"
    assert json.loads(path.read_text(encoding="utf-8")) == {"ai_session_id": "session-abc"}
    assert not path.with_suffix(".tmp").exists()


def test_json_file_storage_remove_item(tmp_path: Path) -> None:
    storage = JsonFileStorage(tmp_path / "storage.json")
    storage.set_item("keep", "1")
    storage.set_item("drop", "2")

    storage.remove_item("drop")

    assert storage.get_item("drop") is None
    assert storage.get_item("keep") == "1"


def test_json_file_storage_missing_file_reads_empty(tmp_path: Path) -> None:
    storage = JsonFileStorage(tmp_path / "absent.json")

    assert storage.get_item("anything") is None
    storage.remove_item("anything")
    assert not (tmp_path / "absent.json").exists()


@pytest.mark.parametrize("body", ["{not json", "[1, 2, 3]"])
def test_json_file_storage_ignores_unusable_file(tmp_path: Path, body: str) -> None:
    path = tmp_path / "storage.json"
    path.write_text(body, encoding="utf-8")
    storage = JsonFileStorage(path)

    assert storage.get_item("key") is None

    storage.set_item("key", "value")
    assert json.loads(path.read_text(encoding="utf-8")) == {"key": "value"}


def test_json_file_storage_non_string_values_read_as_missing(tmp_path: Path) -> None:
    path = tmp_path / "storage.json"
    path.write_text(json.dumps({"count": 3}), encoding="utf-8")

    assert JsonFileStorage(path).get_item("count") is None


def test_json_file_storage_raises_storage_error_when_unwritable(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")
    storage = JsonFileStorage(blocker / "storage.json")

    with pytest.raises(StorageError):
        storage.set_item("key", "value")
