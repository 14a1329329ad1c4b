"""Write each finalized turn to the store at most once."""

import asyncio
import logging
from typing import Iterable

from .core import Turn
from .errors import StoreError
from .records import turn_to_record
from .store import TurnStore

logger = logging.getLogger(__name__)


class PersistenceGuard:
    """Single chokepoint for all turn writes of one conversation.

    The ledger holds the ids of turns the store has confirmed. An id is
    added only after a successful write, so a failed write can be retried
    later and still lands exactly once. Concurrent commits of the same turn
    share the write already in flight.
    """

    def __init__(self, store: TurnStore, conversation_id: str):
        self.store = store
        self.conversation_id = conversation_id
        self._ledger: set[str] = set()
        self._in_flight: dict[str, asyncio.Future] = {}

    def is_committed(self, turn_id: str) -> bool:
        return turn_id in self._ledger

    def mark_committed(self, turn_ids: Iterable[str]) -> None:
        """Record turns already known to be stored, e.g. after a load."""
        self._ledger.update(turn_ids)

    def is_eligible(self, turn: Turn) -> bool:
        """True if ``turn`` is final and has something worth storing."""
        return not turn.pending and turn_to_record(turn) is not None

    def uncommitted(self, turns: Iterable[Turn]) -> list[Turn]:
        """Eligible turns the store has not confirmed yet."""
        return [t for t in turns if t.id not in self._ledger and self.is_eligible(t)]

    async def commit(self, turn: Turn) -> bool:
        """Store ``turn`` unless it already is. Return True once it is stored.

        Pending turns and turns with no content are never written. Store
        failures are logged and reported as False; they do not raise. Any
        other error propagates to this caller and to every caller waiting on
        the same write.
        """
        if turn.id in self._ledger:
            return True
        if turn.pending:
            logger.debug("Not committing pending turn %s", turn.id)
            return False

        in_flight = self._in_flight.get(turn.id)
        if in_flight is not None:
            return await asyncio.shield(in_flight)

        record = turn_to_record(turn)
        if record is None:
            logger.info("Skipping empty %s turn %s", turn.role, turn.id)
            return False

        future = asyncio.get_running_loop().create_future()
        self._in_flight[turn.id] = future
        try:
            await self.store.create_turn_record(self.conversation_id, record)
        except StoreError as e:
            logger.error("Failed to store turn %s: %s", turn.id, e)
            future.set_result(False)
        except Exception as e:
            future.set_exception(e)
            # Marked retrieved; waiters and this caller both re-raise it
            future.exception()
            raise
        else:
            self._ledger.add(turn.id)
            future.set_result(True)
        finally:
            if not future.done():
                future.cancel()
            del self._in_flight[turn.id]
        return future.result()
