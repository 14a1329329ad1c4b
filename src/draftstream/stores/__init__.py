"""Store backends and selection from settings."""

from ..config import Settings
from ..store import TurnStore
from .http import HttpStore
from .memory import MemoryStore
from .sqlite import SqliteStore


def get_store(settings: Settings) -> TurnStore:
    """Return the store the settings point at.

    A remote store URL wins over the local SQLite file.
    """
    if settings.store_url:
        return HttpStore(settings.store_url, api_key=settings.api_key)
    return SqliteStore(settings.db_path)


__all__ = ["HttpStore", "MemoryStore", "SqliteStore", "get_store"]
