"""Debounced, last-write-wins persistence of project metadata."""

import asyncio
import logging
from typing import Awaitable, Callable

from .core import ProjectMetadata
from .errors import StoreError

logger = logging.getLogger(__name__)

SaveFn = Callable[[ProjectMetadata], Awaitable[None]]


class MetadataAutosave:
    """Coalesce bursts of metadata edits into single saves.

    Each change restarts a quiescence timer; when it runs out the current
    snapshot is saved once. ``flush()`` saves right away and drops the
    timer. Only one save runs at a time: a flush requested meanwhile waits
    for it and then, if anything changed in between, sends the newest
    snapshot once more.

    Must be used from within a running event loop.
    """

    def __init__(self, metadata: ProjectMetadata, save: SaveFn, window: float):
        self.metadata = metadata
        self.window = window
        self.last_error: str | None = None
        self._save = save
        self._version = 0
        self._saved_version = 0
        self._timer: asyncio.Task | None = None
        self._flush_task: asyncio.Task | None = None
        self._rerun = False

    @property
    def dirty(self) -> bool:
        """True while some change has not been confirmed by the store."""
        return self._version != self._saved_version

    @property
    def in_flight(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    @property
    def scheduled(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def update(self, title: str | None = None, **briefing) -> bool:
        """Apply edits; return True (and restart the timer) if anything changed."""
        changed = False
        if title is not None and title != self.metadata.title:
            self.metadata.title = title
            changed = True
        for key, value in briefing.items():
            if self.metadata.briefing.get(key) != value:
                self.metadata.briefing[key] = value
                changed = True
        if changed:
            self.mark_changed()
        return changed

    def mark_changed(self) -> None:
        """Record an edit made directly on ``self.metadata``."""
        self._version += 1
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._wait_and_save())

    def reset(self, metadata: ProjectMetadata) -> None:
        """Adopt freshly loaded metadata without scheduling a save."""
        self._cancel_timer()
        self.metadata = metadata
        self._saved_version = self._version
        self.last_error = None

    async def flush(self) -> bool:
        """Save the current snapshot now. Return True if the store accepted it."""
        self._cancel_timer()
        return await self._run_save()

    async def close(self) -> None:
        """Drop the pending timer and let a running save finish."""
        self._cancel_timer()
        if self.in_flight:
            await asyncio.shield(self._flush_task)

    # ── Private helpers ──────────────────────────────────────────────

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _wait_and_save(self) -> None:
        await asyncio.sleep(self.window)
        # From here on this task is the save itself, not a timer to cancel.
        self._timer = None
        if self.dirty:
            await self._run_save()

    async def _run_save(self) -> bool:
        if self.in_flight:
            self._rerun = True
            return await asyncio.shield(self._flush_task)
        self._flush_task = asyncio.get_running_loop().create_task(self._save_loop())
        return await asyncio.shield(self._flush_task)

    async def _save_loop(self) -> bool:
        ok = await self._save_once()
        while self._rerun:
            self._rerun = False
            if not self.dirty:
                break
            ok = await self._save_once()
        return ok

    async def _save_once(self) -> bool:
        version = self._version
        snapshot = self.metadata.snapshot()
        try:
            await self._save(snapshot)
        except StoreError as e:
            logger.error("Metadata save failed: %s", e)
            self.last_error = str(e)
            return False
        except Exception as e:
            # Saves also run from the timer task, where nobody awaits the result
            logger.exception("Unexpected error saving metadata")
            self.last_error = str(e) or type(e).__name__
            return False
        self._saved_version = max(self._saved_version, version)
        self.last_error = None
        logger.debug("Saved metadata version %d", version)
        return True
