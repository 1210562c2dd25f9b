"""Change feed that tails the `queue_changes` log table.

The repository appends one row per mutation inside the mutation's own
transaction; this feed reads new rows in `seq` order and hands them to the
handlers subscribed to each row's room. In-process commits call `notify()`
so delivery does not wait for the next poll.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from classroom_jukebox.application.interfaces.change_feed import ChangeFeed, ChangeHandler
from classroom_jukebox.domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ...config.settings import ChangeFeedSettings
    from ...domain.jukebox.entities import QueueChange
    from ...domain.jukebox.repository import QueueRepository

logger = logging.getLogger(__name__)


class SQLiteChangeFeed(ChangeFeed):
    def __init__(
        self,
        *,
        queue_repository: QueueRepository,
        settings: ChangeFeedSettings | None = None,
    ) -> None:
        self._queue_repo = queue_repository
        self._poll_interval = settings.poll_interval_seconds if settings else 0.5
        self._batch_size = settings.batch_size if settings else 500
        self._retry_delay = settings.retry_delay_seconds if settings else 2.0

        self._handlers: defaultdict[str, list[ChangeHandler]] = defaultdict(list)
        self._last_seq = 0
        self._wakeup = asyncio.Event()
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def last_seq(self) -> int:
        return self._last_seq

    @property
    def is_running(self) -> bool:
        return self._running

    def subscribe(self, room_id: str, handler: ChangeHandler) -> None:
        if handler not in self._handlers[room_id]:
            self._handlers[room_id].append(handler)
            logger.debug(LogTemplates.FEED_SUBSCRIBED, room_id)

    def unsubscribe(self, room_id: str, handler: ChangeHandler) -> None:
        handlers = self._handlers.get(room_id)
        if not handlers or handler not in handlers:
            return
        handlers.remove(handler)
        if not handlers:
            del self._handlers[room_id]
        logger.debug(LogTemplates.FEED_UNSUBSCRIBED, room_id)

    def notify(self) -> None:
        self._wakeup.set()

    async def start(self) -> None:
        if self._running:
            logger.warning(LogTemplates.FEED_ALREADY_RUNNING)
            return

        self._last_seq = await self._queue_repo.latest_seq()
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(LogTemplates.FEED_STARTED, self._last_seq)

    async def stop(self) -> None:
        self._running = False

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info(LogTemplates.FEED_STOPPED)

    async def poll_once(self) -> int:
        """Deliver every change recorded since the last one delivered.

        Returns:
            Number of changes read in this batch.
        """
        changes = await self._queue_repo.changes_since(self._last_seq, self._batch_size)
        for change in changes:
            await self._dispatch(change)
            self._last_seq = change.seq
        return len(changes)

    async def _dispatch(self, change: QueueChange) -> None:
        for handler in list(self._handlers.get(change.room_id, ())):
            try:
                await handler(change)
            except Exception:
                logger.exception(LogTemplates.FEED_HANDLER_FAILED, change.room_id, change.seq)

    async def _run_loop(self) -> None:
        while self._running:
            try:
                delivered = await self.poll_once()
            except Exception as e:
                logger.warning(LogTemplates.FEED_READ_FAILED, self._retry_delay, e)
                await asyncio.sleep(self._retry_delay)
                continue

            if delivered >= self._batch_size:
                continue

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self._poll_interval)
            except TimeoutError:
                pass
            self._wakeup.clear()
