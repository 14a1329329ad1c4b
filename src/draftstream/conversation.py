"""In-memory conversation history for one project."""

import itertools
import logging
from typing import Iterable, Iterator

from .core import ASSISTANT, USER, StoredTurnRecord, Turn
from .errors import ConversationError
from .records import record_to_turn

logger = logging.getLogger(__name__)


class Conversation:
    """Ordered, append-only list of turns.

    Turns keep the order in which they were opened regardless of when they
    finish. At most one turn is pending at a time.
    """

    def __init__(self, conversation_id: str):
        self.id = conversation_id
        self._turns: list[Turn] = []
        self._by_id: dict[str, Turn] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))

    @property
    def turns(self) -> list[Turn]:
        return list(self._turns)

    @property
    def pending(self) -> Turn | None:
        """The turn currently streaming, if any."""
        for turn in reversed(self._turns):
            if turn.pending:
                return turn
        return None

    def get(self, turn_id: str) -> Turn | None:
        return self._by_id.get(turn_id)

    def finalized(self) -> list[Turn]:
        return [t for t in self._turns if not t.pending]

    def open_user_turn(self, text: str) -> Turn:
        turn = Turn(id=self._new_id(), role=USER, response_text=text)
        self._append(turn)
        return turn

    def open_assistant_turn(self) -> Turn:
        """Append a pending assistant placeholder."""
        current = self.pending
        if current is not None:
            raise ConversationError(f"Turn {current.id} is still streaming")
        turn = Turn(id=self._new_id(), role=ASSISTANT, pending=True, reasoning_visible=True)
        self._append(turn)
        return turn

    def hydrate(self, records: Iterable[StoredTurnRecord]) -> list[Turn]:
        """Replace the history with turns rebuilt from stored records."""
        if self.pending is not None:
            raise ConversationError("Cannot reload while a turn is streaming")
        self._turns = []
        self._by_id = {}
        for record in records:
            turn_id = record.id if record.id is not None else self._new_id()
            self._append(record_to_turn(record, str(turn_id)))
        logger.info("Loaded %d turns into conversation %s", len(self._turns), self.id)
        return list(self._turns)

    def toggle_reasoning_visible(self, turn_id: str) -> bool:
        """Flip the reasoning display toggle and return the new value."""
        turn = self._by_id.get(turn_id)
        if turn is None:
            raise ConversationError(f"Unknown turn: {turn_id}")
        if turn.role != ASSISTANT:
            raise ConversationError(f"Turn {turn_id} has no reasoning")
        turn.reasoning_visible = not turn.reasoning_visible
        return turn.reasoning_visible

    # ── Private helpers ──────────────────────────────────────────────

    def _new_id(self) -> str:
        while True:
            turn_id = f"local-{next(self._ids)}"
            if turn_id not in self._by_id:
                return turn_id

    def _append(self, turn: Turn) -> None:
        if turn.id in self._by_id:
            raise ConversationError(f"Duplicate turn id: {turn.id}")
        self._turns.append(turn)
        self._by_id[turn.id] = turn
