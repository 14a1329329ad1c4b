"""Process-local store, mostly useful for tests and demos."""

import itertools
from datetime import datetime, timezone

from ..core import ProjectMetadata, StoredTurnRecord
from ..store import TurnStore


class MemoryStore(TurnStore):
    """Keeps records and metadata in dictionaries."""

    name = "memory"

    def __init__(self):
        self.records: dict[str, list[StoredTurnRecord]] = {}
        self.metadata: dict[str, ProjectMetadata] = {}
        self._ids = itertools.count(1)

    async def create_turn_record(self, conversation_id: str, record: StoredTurnRecord) -> StoredTurnRecord:
        stored = StoredTurnRecord(
            role=record.role,
            content=record.content,
            id=f"msg-{next(self._ids)}",
            created_at=record.created_at or datetime.now(timezone.utc),
        )
        self.records.setdefault(conversation_id, []).append(stored)
        return stored

    async def update_metadata(self, project_id: str, metadata: ProjectMetadata) -> None:
        self.metadata[project_id] = metadata.snapshot()

    async def load_project(self, project_id: str) -> tuple[list[StoredTurnRecord], ProjectMetadata]:
        records = list(self.records.get(project_id, []))
        metadata = self.metadata.get(project_id)
        return records, metadata.snapshot() if metadata else ProjectMetadata()
