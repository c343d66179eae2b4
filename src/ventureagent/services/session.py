"""Per-profile conversation session identity."""

from __future__ import annotations

import logging
import uuid

from .storage import LocalStorage

__all__ = ["SESSION_KEY", "SessionIdentityProvider", "get_or_create_session_id", "new_session_id"]

LOGGER = logging.getLogger(__name__)
SESSION_KEY = "ai_session_id"


def new_session_id() -> str:
    return f"session-{uuid.uuid4().hex}"


def get_or_create_session_id(storage: LocalStorage | None, *, key: str = SESSION_KEY) -> str:
    """Return the stored session id, creating and persisting one on first use.

    When storage is missing or raises, a fresh id is returned for this call
    only; session continuity is lost but nothing is raised.
    """

    if storage is None:
        return new_session_id()
    try:
        existing = storage.get_item(key)
    except Exception as exc:
        LOGGER.warning("Session storage unavailable; using an ephemeral session id: %s", exc)
        return new_session_id()
    if existing and existing.strip():
        return existing

    session_id = new_session_id()
    try:
        storage.set_item(key, session_id)
    except Exception as exc:
        LOGGER.warning("Unable to persist session id: %s", exc)
    else:
        LOGGER.debug("Created conversation session %s", session_id)
    return session_id


class SessionIdentityProvider:
    """Binds a storage backend and key so transports can ask for the id."""

    def __init__(self, storage: LocalStorage | None, *, key: str = SESSION_KEY) -> None:
        self._storage = storage
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def get_or_create(self) -> str:
        return get_or_create_session_id(self._storage, key=self._key)

    def reset(self) -> None:
        """Forget the stored id so the next call starts a new session."""

        if self._storage is None:
            return
        try:
            self._storage.remove_item(self._key)
        except Exception as exc:
            LOGGER.warning("Unable to clear session id: %s", exc)
