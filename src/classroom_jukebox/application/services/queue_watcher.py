"""Queue Watcher - a disposable, per-room read projection.

The projection is folded from the change feed and periodically rebuilt from
the store. It is never written back; the store stays the source of truth.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from ...domain.jukebox.entities import QueueChange, QueueSnapshot
from ...domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ...domain.jukebox.repository import QueueRepository
    from ..interfaces.change_feed import ChangeFeed

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[QueueSnapshot], Awaitable[None]]


class QueueWatcher:
    """Keeps an up-to-date QueueSnapshot of one room and reports changes to listeners."""

    def __init__(
        self,
        room_id: str,
        *,
        queue_repository: QueueRepository,
        change_feed: ChangeFeed,
        poll_interval: float = 1.0,
    ) -> None:
        self._room_id = room_id
        self._queue_repo = queue_repository
        self._feed = change_feed
        self._poll_interval = poll_interval

        self._snapshot = QueueSnapshot(room_id=room_id)
        self._listeners: list[SnapshotListener] = []
        self._lock = asyncio.Lock()
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def room_id(self) -> str:
        return self._room_id

    @property
    def snapshot(self) -> QueueSnapshot:
        return self._snapshot

    @property
    def is_running(self) -> bool:
        return self._running

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def start(self) -> QueueSnapshot:
        if self._running:
            return self._snapshot

        # Subscribe before loading; changes queue up behind the lock and
        # anything the load already covers is dropped by its sequence number.
        async with self._lock:
            self._feed.subscribe(self._room_id, self._on_change)
            entries, last_seq = await self._queue_repo.list_active_at_seq(self._room_id)
            await self._replace(QueueSnapshot.from_entries(self._room_id, entries, last_seq=last_seq))

        self._running = True
        if self._poll_interval > 0:
            self._task = asyncio.create_task(self._reconcile_loop())

        logger.info(LogTemplates.WATCHER_STARTED, self._room_id, len(self._snapshot.entries))
        return self._snapshot

    async def stop(self) -> None:
        self._running = False
        self._feed.unsubscribe(self._room_id, self._on_change)

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info(LogTemplates.WATCHER_STOPPED, self._room_id)

    async def _on_change(self, change: QueueChange) -> None:
        async with self._lock:
            if self._snapshot.is_stale(change):
                known = self._snapshot.get(change.entry_id)
                logger.debug(
                    LogTemplates.WATCHER_STALE_CHANGE,
                    change.seq,
                    change.entry_id,
                    known.status.value if known else "?",
                    change.entry.status.value,
                )
                return
            await self._replace(self._snapshot.apply(change))

    async def reconcile(self) -> bool:
        """Rebuild the projection from the store.

        Returns:
            True if the rebuilt snapshot differs from the previous one.
        """
        async with self._lock:
            entries, last_seq = await self._queue_repo.list_active_at_seq(self._room_id)
            rebuilt = QueueSnapshot.from_entries(
                self._room_id, entries, last_seq=max(last_seq, self._snapshot.last_seq)
            )
            changed = await self._replace(rebuilt)

        if changed:
            logger.debug(LogTemplates.WATCHER_RECONCILED, self._room_id, rebuilt.state.value)
        return changed

    async def _replace(self, snapshot: QueueSnapshot) -> bool:
        previous = self._snapshot
        self._snapshot = snapshot
        if snapshot.now_playing == previous.now_playing and snapshot.upcoming == previous.upcoming:
            return False

        for listener in list(self._listeners):
            try:
                await listener(snapshot)
            except Exception:
                logger.exception(LogTemplates.WATCHER_LISTENER_FAILED, self._room_id)
        return True

    async def _reconcile_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                break

            try:
                await self.reconcile()
            except Exception as e:
                logger.warning(LogTemplates.WATCHER_RECONCILE_FAILED, self._room_id, e)
