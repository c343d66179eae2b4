"""Service layer helpers (settings, storage, session identity)."""

from .session import SessionIdentityProvider, get_or_create_session_id
from .settings import Settings, SettingsStore
from .storage import JsonFileStorage, LocalStorage, MemoryStorage, StorageError

__all__ = [
    "JsonFileStorage",
    "LocalStorage",
    "MemoryStorage",
    "SessionIdentityProvider",
    "Settings",
    "SettingsStore",
    "StorageError",
    "get_or_create_session_id",
]
