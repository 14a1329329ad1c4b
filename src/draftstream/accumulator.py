"""Drive one assistant turn from a live fragment stream."""

import asyncio
import logging
from typing import AsyncIterable, Callable

from .core import ASSISTANT, Turn
from .segmenter import DANGLING_SPLIT, Segmenter

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Error processing request. Please try again."

IDLE = "idle"
STREAMING = "streaming"
FINALIZED = "finalized"


class TurnAccumulator:
    """Own a pending assistant turn until it is finalized.

    States: idle -> streaming -> finalized. Fragments are classified by a
    :class:`Segmenter` and copied onto the turn only when a channel
    actually changed. The turn ends either with a final segmentation pass
    (stream closed) or in the error state (stream failed, timed out or was
    cancelled). Finalizing twice is a no-op.
    """

    def __init__(
        self,
        turn: Turn,
        dangling_open: str = DANGLING_SPLIT,
        error_message: str = ERROR_MESSAGE,
        on_update: Callable[[Turn], None] | None = None,
    ):
        if turn.role != ASSISTANT or not turn.pending:
            raise ValueError("TurnAccumulator needs a pending assistant turn")
        self.turn = turn
        self.segmenter = Segmenter(dangling_open)
        self.error_message = error_message
        self.on_update = on_update
        self.state = IDLE

    @property
    def finalized(self) -> bool:
        return self.state == FINALIZED

    def feed(self, fragment: str) -> bool:
        """Add a fragment; return True if the visible turn changed."""
        if self.finalized:
            logger.warning("Dropping fragment for finalized turn %s", self.turn.id)
            return False
        self.state = STREAMING
        result = self.segmenter.feed(fragment)
        return self._publish(result.response, result.reasoning)

    def finish(self) -> bool:
        """Finalize after a clean end of stream. Return False if already final."""
        if self.finalized:
            return False
        result = self.segmenter.finalize()
        self._publish(result.response, result.reasoning, notify=False)
        self._close()
        logger.info(
            "Turn %s finished: %d response chars, %d reasoning chars",
            self.turn.id, len(self.turn.response_text), len(self.turn.reasoning_text),
        )
        return True

    def fail(self, reason: object = None) -> bool:
        """Finalize into the error state. Return False if already final."""
        if self.finalized:
            return False
        self.turn.partial_response = self.turn.response_text
        self.turn.response_text = self.error_message
        self.turn.error = self.error_message
        self._close()
        logger.warning("Turn %s failed: %s", self.turn.id, reason)
        return True

    async def consume(self, source: AsyncIterable[str], timeout: float | None = None) -> Turn:
        """Read ``source`` to the end and finalize the turn.

        Stream errors and timeouts finalize the turn in the error state and
        are not raised. Cancellation of the calling task also finalizes it
        and is then re-raised.
        """
        try:
            await asyncio.wait_for(self._drain(source), timeout)
        except asyncio.CancelledError:
            self.fail("cancelled")
            raise
        except asyncio.TimeoutError:
            self.fail(f"timed out after {timeout}s")
        except Exception as e:
            self.fail(e)
        else:
            self.finish()
        return self.turn

    # ── Private helpers ──────────────────────────────────────────────

    async def _drain(self, source: AsyncIterable[str]) -> None:
        async for fragment in source:
            if fragment:
                self.feed(fragment)

    def _publish(self, response: str, reasoning: str, notify: bool = True) -> bool:
        changed = False
        if response != self.turn.response_text:
            self.turn.response_text = response
            changed = True
        if reasoning != self.turn.reasoning_text:
            self.turn.reasoning_text = reasoning
            changed = True
        if changed and notify and self.on_update is not None:
            self.on_update(self.turn)
        return changed

    def _close(self) -> None:
        self.turn.pending = False
        self.turn.reasoning_visible = False
        self.state = FINALIZED
        if self.on_update is not None:
            self.on_update(self.turn)
