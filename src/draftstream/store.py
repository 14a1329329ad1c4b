"""Abstract base class for persistent turn stores."""

from abc import ABC, abstractmethod

from .core import ProjectMetadata, StoredTurnRecord


class TurnStore(ABC):
    """Durable home of a project's conversation and metadata.

    Each backend (memory, SQLite, remote HTTP API) implements this
    interface. Implementations raise :class:`~draftstream.errors.StoreError`
    for every failure so callers have one thing to catch.
    """

    name: str  # "memory", "sqlite", "http"

    @abstractmethod
    async def create_turn_record(self, conversation_id: str, record: StoredTurnRecord) -> StoredTurnRecord:
        """Append a record and return it with its store-assigned id."""
        ...

    @abstractmethod
    async def update_metadata(self, project_id: str, metadata: ProjectMetadata) -> None:
        """Overwrite the project's title and briefing."""
        ...

    @abstractmethod
    async def load_project(self, project_id: str) -> tuple[list[StoredTurnRecord], ProjectMetadata]:
        """Return the project's records in creation order and its metadata."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        return None
