"""One open project: conversation, generation, and persistence wired together."""

import logging
from typing import Callable

from .accumulator import TurnAccumulator
from .autosave import MetadataAutosave
from .config import Settings
from .conversation import Conversation
from .core import ProjectMetadata, Turn
from .generator import ACTIONS, GENERATE, GenerationRequest, TextGenerator
from .guard import PersistenceGuard
from .store import TurnStore

logger = logging.getLogger(__name__)


class ProjectSession:
    """The entry points a presentation layer drives for one project.

    ``submit``, ``toggle_reasoning_visible`` and ``flush_metadata`` are
    the operations a UI calls; the live :class:`Turn` objects in
    ``turns`` are what it renders. Everything runs on one event loop and
    one submission is handled at a time.
    """

    def __init__(
        self,
        project_id: str,
        store: TurnStore,
        generator: TextGenerator,
        settings: Settings | None = None,
    ):
        self.project_id = project_id
        self.store = store
        self.generator = generator
        self.settings = settings or Settings()
        self.conversation = Conversation(project_id)
        self.guard = PersistenceGuard(store, project_id)
        self.autosave = MetadataAutosave(ProjectMetadata(), self._save_metadata, self.settings.autosave_seconds)
        self._busy = False

    @property
    def metadata(self) -> ProjectMetadata:
        return self.autosave.metadata

    @property
    def turns(self) -> list[Turn]:
        return self.conversation.turns

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def unsaved(self) -> list[str]:
        """Ids of finished turns the store has not confirmed yet."""
        return [t.id for t in self.guard.uncommitted(self.conversation)]

    async def load(self) -> None:
        """Replace in-memory state with what the store holds."""
        records, metadata = await self.store.load_project(self.project_id)
        turns = self.conversation.hydrate(records)
        self.guard.mark_committed(t.id for t in turns)
        self.autosave.reset(metadata)

    async def submit(
        self,
        text: str,
        action: str = GENERATE,
        on_update: Callable[[Turn], None] | None = None,
    ) -> Turn | None:
        """Record the user's instruction and stream the assistant's reply.

        Returns the finalized assistant turn, or None when the input is
        blank or another submission is still running. Generation failures
        end up in the returned turn, not as exceptions.
        """
        if action not in ACTIONS:
            raise ValueError(f"Unknown action: {action!r}")
        if not text.strip() or self._busy:
            return None

        self._busy = True
        try:
            history = self.conversation.finalized()
            user_turn = self.conversation.open_user_turn(text)
            await self.guard.commit(user_turn)

            turn = self.conversation.open_assistant_turn()
            request = GenerationRequest.build(text, history, self.metadata, action)
            accumulator = TurnAccumulator(turn, dangling_open=self.settings.dangling_open, on_update=on_update)
            await accumulator.consume(self.generator.stream(request), timeout=self.settings.generation_timeout)
            await self.guard.commit(turn)
            return turn
        finally:
            self._busy = False

    def toggle_reasoning_visible(self, turn_id: str) -> bool:
        return self.conversation.toggle_reasoning_visible(turn_id)

    def update_metadata(self, title: str | None = None, **briefing) -> bool:
        return self.autosave.update(title=title, **briefing)

    async def flush_metadata(self) -> bool:
        return await self.autosave.flush()

    async def retry_unsaved(self) -> int:
        """Try again to store every unsaved turn; return how many succeeded."""
        stored = 0
        for turn in self.guard.uncommitted(self.conversation):
            if await self.guard.commit(turn):
                stored += 1
        if stored:
            logger.info("Stored %d previously unsaved turns for %s", stored, self.project_id)
        return stored

    async def close(self) -> None:
        await self.autosave.close()
        await self.generator.close()
        await self.store.close()

    # ── Private helpers ──────────────────────────────────────────────

    async def _save_metadata(self, metadata: ProjectMetadata) -> None:
        await self.store.update_metadata(self.project_id, metadata)
