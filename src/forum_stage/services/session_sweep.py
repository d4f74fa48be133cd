"""Background removal of expired sessions.

The worker runs one long-lived asyncio task that sweeps on a fixed interval,
independent of request traffic, until it is asked to stop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from forum_stage.core.errors import StorageUnavailable
from forum_stage.services.session_store import SessionStore

# Configure logger for this module
logger = logging.getLogger(__name__)


class SessionSweepWorker:
    """Periodically deletes expired sessions.

    Each cycle opens its own database session in a worker thread, so the sweep
    never shares a transaction with request handlers and only holds locks for
    the duration of its single delete statement.
    """

    def __init__(
        self,
        store: SessionStore,
        session_factory: Callable[[], Session],
        interval_seconds: float,
    ) -> None:
        self.store = store
        self.session_factory = session_factory
        self.interval_seconds = max(0.01, float(interval_seconds))
        self.last_removed = 0
        self.total_removed = 0
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if not self.running:
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Signal the loop to exit and wait for it."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def run_once(self) -> int:
        """Sweep expired sessions once and return the number removed."""
        removed = await asyncio.to_thread(self._sweep)
        self.last_removed = removed
        self.total_removed += removed
        if removed:
            logger.info("Session sweep removed %d expired sessions", removed)
        return removed

    def _sweep(self) -> int:
        db = self.session_factory()
        try:
            return self.store.sweep(db)
        finally:
            db.close()

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass
            if self._stopping.is_set():
                return

            try:
                await self.run_once()
            except StorageUnavailable as e:
                logger.warning("Session sweep failed: %s", e.__cause__ or e)
