"""Periodic pruning of the queue change log."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from pydantic import BaseModel

from classroom_jukebox.domain.shared.messages import LogTemplates
from classroom_jukebox.domain.shared.types import NonNegativeInt

if TYPE_CHECKING:
    from ...config.settings import CleanupSettings
    from ...domain.jukebox.repository import QueueRepository

logger = logging.getLogger(__name__)


class ChangeLogCleanupJob:
    """Deletes `queue_changes` rows once every feed consumer is long past them.

    Queue entries themselves are kept; they are the room's history.
    """

    def __init__(
        self,
        *,
        queue_repository: QueueRepository,
        settings: CleanupSettings,
    ) -> None:
        self._queue_repo = queue_repository
        self._settings = settings
        self._running = False
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        if self._running:
            logger.warning(LogTemplates.CLEANUP_ALREADY_RUNNING)
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(LogTemplates.CLEANUP_STARTED)

    async def stop(self) -> None:
        self._running = False

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info(LogTemplates.CLEANUP_STOPPED)

    async def _run_loop(self) -> None:
        interval_seconds = self._settings.cleanup_interval_minutes * 60

        while self._running:
            await self.run_cleanup()

            try:
                await asyncio.sleep(interval_seconds)
            except asyncio.CancelledError:
                break

    async def run_cleanup(self) -> CleanupStats:
        stats = CleanupStats()

        logger.debug(LogTemplates.CLEANUP_CYCLE_RUNNING)

        cutoff = datetime.now(tz=UTC) - timedelta(hours=self._settings.change_retention_hours)
        try:
            stats.changes_pruned = await self._queue_repo.prune_changes(cutoff)
        except Exception as e:
            logger.error(LogTemplates.CLEANUP_FAILED, e)
            stats.failed = True

        if stats.changes_pruned > 0:
            logger.info(LogTemplates.CLEANUP_COMPLETED, stats.changes_pruned)

        return stats

    @property
    def is_running(self) -> bool:
        return self._running


class CleanupStats(BaseModel):
    changes_pruned: NonNegativeInt = 0
    failed: bool = False
