"""Local SQLite store.

Schema:
- projects(id, title, briefing) with the briefing as a JSON object.
- turns(id, project_id, role, content, created_at) in insertion order.

Database calls are blocking, so each one runs in a worker thread.
"""

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from ..core import ProjectMetadata, StoredTurnRecord
from ..errors import StoreError
from ..store import TurnStore

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL DEFAULT '',
    briefing TEXT NOT NULL DEFAULT '{}'
);
CREATE TABLE IF NOT EXISTS turns (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS turns_project ON turns (project_id, id);
"""


class SqliteStore(TurnStore):
    """Store backed by a single SQLite file."""

    name = "sqlite"

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._initialized = False

    async def create_turn_record(self, conversation_id: str, record: StoredTurnRecord) -> StoredTurnRecord:
        created = record.created_at or datetime.now(timezone.utc)
        row_id = await self._run(self._insert_turn, conversation_id, record.role, record.content, created)
        return StoredTurnRecord(role=record.role, content=record.content, id=str(row_id), created_at=created)

    async def update_metadata(self, project_id: str, metadata: ProjectMetadata) -> None:
        await self._run(self._upsert_project, project_id, metadata.title, json.dumps(metadata.briefing))

    async def load_project(self, project_id: str) -> tuple[list[StoredTurnRecord], ProjectMetadata]:
        return await self._run(self._read_project, project_id)

    # ── Private helpers ──────────────────────────────────────────────

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"SQLite store {self.db_path}: {e}") from e

    def _connect(self) -> sqlite3.Connection:
        if not self._initialized:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        if not self._initialized:
            conn.executescript(SCHEMA)
            self._initialized = True
        return conn

    def _insert_turn(self, project_id: str, role: str, content: str, created: datetime) -> int:
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    "INSERT INTO turns (project_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                    (project_id, role, content, created.isoformat()),
                )
            return cur.lastrowid
        finally:
            conn.close()

    def _upsert_project(self, project_id: str, title: str, briefing: str) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO projects (id, title, briefing) VALUES (?, ?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET title = excluded.title, briefing = excluded.briefing",
                    (project_id, title, briefing),
                )
        finally:
            conn.close()

    def _read_project(self, project_id: str) -> tuple[list[StoredTurnRecord], ProjectMetadata]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT id, role, content, created_at FROM turns WHERE project_id = ? ORDER BY id",
                (project_id,),
            ).fetchall()
            project = conn.execute(
                "SELECT title, briefing FROM projects WHERE id = ?", (project_id,)
            ).fetchone()
        finally:
            conn.close()

        records = [
            StoredTurnRecord(
                role=role,
                content=content,
                id=str(row_id),
                created_at=_parse_timestamp(created_at),
            )
            for row_id, role, content, created_at in rows
        ]

        if project is None:
            return records, ProjectMetadata()
        title, briefing_json = project
        try:
            briefing = json.loads(briefing_json)
        except json.JSONDecodeError as e:
            logger.warning("Ignoring unreadable briefing for project %s: %s", project_id, e)
            briefing = {}
        return records, ProjectMetadata.from_dict({"title": title, "briefing": briefing})


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
