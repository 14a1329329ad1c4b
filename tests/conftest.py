"""Shared test fixtures for draftstream."""

import asyncio
from datetime import datetime, timezone

import pytest

from draftstream.config import Settings
from draftstream.core import ASSISTANT, USER, ProjectMetadata, StoredTurnRecord
from draftstream.errors import GenerationError, StoreError
from draftstream.generator import TextGenerator
from draftstream.stores.memory import MemoryStore


class ScriptedGenerator(TextGenerator):
    """Replays fixed fragments, optionally slowly or breaking off part way."""

    def __init__(self, fragments, delay: float = 0.0, fail_after: int | None = None):
        self.fragments = list(fragments)
        self.delay = delay
        self.fail_after = fail_after
        self.requests = []

    async def stream(self, request):
        self.requests.append(request)
        for i, fragment in enumerate(self.fragments):
            if self.fail_after is not None and i >= self.fail_after:
                raise GenerationError("connection reset")
            if self.delay:
                await asyncio.sleep(self.delay)
            yield fragment
        if self.fail_after is not None and self.fail_after >= len(self.fragments):
            raise GenerationError("connection reset")


class FlakyStore(MemoryStore):
    """MemoryStore that counts calls and can be told to fail or stall."""

    def __init__(self):
        super().__init__()
        self.delay = 0.0
        self.fail_writes = 0
        self.fail_metadata = 0
        self.write_calls = 0
        self.metadata_calls: list[ProjectMetadata] = []

    async def create_turn_record(self, conversation_id, record):
        self.write_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_writes:
            self.fail_writes -= 1
            raise StoreError("store unavailable")
        return await super().create_turn_record(conversation_id, record)

    async def update_metadata(self, project_id, metadata):
        self.metadata_calls.append(metadata.snapshot())
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_metadata:
            self.fail_metadata -= 1
            raise StoreError("store unavailable")
        await super().update_metadata(project_id, metadata)


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def scripted_generator():
    """Factory for generators that replay the given fragments."""
    return ScriptedGenerator


@pytest.fixture
def settings(tmp_path):
    return Settings(
        db_path=tmp_path / "draftstream.db",
        autosave_seconds=0.05,
        generation_timeout=1.0,
    )


@pytest.fixture
def seeded_store(store):
    """A store holding a short conversation for project "proj-1"."""
    created = datetime(2025, 2, 25, 14, 16, 5, tzinfo=timezone.utc)
    store.records["proj-1"] = [
        StoredTurnRecord(role=USER, content="Write a cold open on a night train", id="msg-a", created_at=created),
        StoredTurnRecord(
            role=ASSISTANT,
            content="INT. SLEEPER CAR - NIGHT\n\n<Thinking>Start with sound, then light.</Thinking>",
            id="msg-b",
            created_at=created,
        ),
        StoredTurnRecord(role=USER, content="Make it tenser", id="msg-c", created_at=created),
        StoredTurnRecord(
            role=ASSISTANT,
            content="The brakes scream. <think>short form from an older model</think>",
            id="msg-d",
            created_at=created,
        ),
    ]
    store.metadata["proj-1"] = ProjectMetadata.from_dict({
        "title": "Night Train",
        "briefing": {"genre": "Thriller", "logline": "A conductor hides a witness."},
    })
    return store
