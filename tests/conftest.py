"""Shared pytest fixtures."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from ventureagent.ai.ai_types import CurrentUser
from ventureagent.ai.tools import ToolContext
from ventureagent.services.storage import MemoryStorage


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("VENTUREAGENT_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("VENTUREAGENT_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture(autouse=True)
def _restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def user() -> CurrentUser:
    return CurrentUser(id="user-1", user_type="entrepreneur", email="founder@example.com")


@pytest.fixture
def tool_context() -> ToolContext:
    return ToolContext(user_id="user-1", user_type="entrepreneur", session_id="session-test")
