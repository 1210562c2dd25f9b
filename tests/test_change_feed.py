"""
Tests for SQLiteChangeFeed and QueueWatcher.
"""

import asyncio
import logging
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import aiosqlite
import pytest

from classroom_jukebox.application.interfaces.change_feed import ChangeFeed
from classroom_jukebox.application.services.queue_watcher import QueueWatcher
from classroom_jukebox.config.settings import ChangeFeedSettings
from classroom_jukebox.domain.jukebox.entities import QueueChange
from classroom_jukebox.domain.jukebox.value_objects import ChangeType, EntryStatus
from classroom_jukebox.infrastructure.persistence.change_feed import SQLiteChangeFeed

AT = datetime(2026, 1, 5, 12, 0, tzinfo=UTC)


class Recorder:
    """Async handler that remembers what it received."""

    def __init__(self) -> None:
        self.received = []
        self.arrived = asyncio.Event()

    async def __call__(self, item) -> None:
        self.received.append(item)
        self.arrived.set()


async def _wait_for(predicate, timeout=2.0):
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


# =============================================================================
# SQLiteChangeFeed
# =============================================================================


class TestSQLiteChangeFeed:
    @pytest.mark.asyncio
    async def test_poll_once_delivers_per_room_in_order(self, queue_repository, make_entry):
        feed = SQLiteChangeFeed(queue_repository=queue_repository)
        r1, r2 = Recorder(), Recorder()
        feed.subscribe("R1", r1)
        feed.subscribe("R2", r2)

        first = await queue_repository.insert(make_entry(offset=0))
        await queue_repository.insert(make_entry(offset=1, room_id="R2"))
        await queue_repository.apply_transition(
            "R1", finish_id=None, finish_as=None, promote_id=first.id, at=AT
        )

        assert await feed.poll_once() == 3

        assert [c.change_type for c in r1.received] == [ChangeType.INSERT, ChangeType.UPDATE]
        assert r1.received[1].entry.status is EntryStatus.PLAYING
        assert [c.room_id for c in r2.received] == ["R2"]
        assert feed.last_seq == await queue_repository.latest_seq()
        assert await feed.poll_once() == 0

    @pytest.mark.asyncio
    async def test_subscribe_is_idempotent_and_unsubscribe_stops_delivery(
        self, queue_repository, make_entry
    ):
        feed = SQLiteChangeFeed(queue_repository=queue_repository)
        handler = Recorder()
        feed.subscribe("R1", handler)
        feed.subscribe("R1", handler)

        await queue_repository.insert(make_entry(offset=0))
        await feed.poll_once()
        assert len(handler.received) == 1

        feed.unsubscribe("R1", handler)
        feed.unsubscribe("R1", handler)
        await queue_repository.insert(make_entry(offset=1))
        await feed.poll_once()
        assert len(handler.received) == 1

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(
        self, queue_repository, make_entry, caplog
    ):
        feed = SQLiteChangeFeed(queue_repository=queue_repository)
        broken = AsyncMock(side_effect=RuntimeError("boom"))
        healthy = Recorder()
        feed.subscribe("R1", broken)
        feed.subscribe("R1", healthy)

        await queue_repository.insert(make_entry())
        with caplog.at_level(logging.ERROR):
            await feed.poll_once()

        assert len(healthy.received) == 1
        assert "handler failed" in caplog.text

    @pytest.mark.asyncio
    async def test_batches_respect_batch_size(self, queue_repository, make_entry):
        feed = SQLiteChangeFeed(
            queue_repository=queue_repository, settings=ChangeFeedSettings(batch_size=2)
        )
        for i in range(3):
            await queue_repository.insert(make_entry(offset=i))

        assert await feed.poll_once() == 2
        assert await feed.poll_once() == 1

    @pytest.mark.asyncio
    async def test_start_skips_existing_history(self, file_queue_repository, make_entry):
        repo = file_queue_repository
        await repo.insert(make_entry(offset=0))
        feed = SQLiteChangeFeed(queue_repository=repo)

        await feed.start()
        try:
            assert feed.is_running
            assert feed.last_seq == await repo.latest_seq()
        finally:
            await feed.stop()
        assert not feed.is_running

    @pytest.mark.asyncio
    async def test_notify_wakes_running_feed(self, file_queue_repository, make_entry):
        repo = file_queue_repository
        feed = SQLiteChangeFeed(
            queue_repository=repo, settings=ChangeFeedSettings(poll_interval_seconds=30.0)
        )
        repo.set_on_commit(feed.notify)
        handler = Recorder()
        feed.subscribe("R1", handler)

        await feed.start()
        try:
            await repo.insert(make_entry())
            async with asyncio.timeout(2.0):
                await handler.arrived.wait()
        finally:
            await feed.stop()

        assert handler.received[0].change_type is ChangeType.INSERT

    @pytest.mark.asyncio
    async def test_read_failure_is_retried(self, make_entry, caplog):
        change = QueueChange(
            seq=1, change_type=ChangeType.INSERT, room_id="R1", entry_id=1, entry=make_entry(1)
        )
        responses = [aiosqlite.OperationalError("disk I/O error"), [change]]

        async def changes_since(after_seq, limit=500):
            if responses:
                result = responses.pop(0)
                if isinstance(result, Exception):
                    raise result
                return result
            return []

        repo = MagicMock()
        repo.latest_seq = AsyncMock(return_value=0)
        repo.changes_since = AsyncMock(side_effect=changes_since)
        feed = SQLiteChangeFeed(
            queue_repository=repo,
            settings=ChangeFeedSettings(poll_interval_seconds=0.01, retry_delay_seconds=0.0),
        )
        handler = Recorder()
        feed.subscribe("R1", handler)

        with caplog.at_level(logging.WARNING):
            await feed.start()
            try:
                async with asyncio.timeout(2.0):
                    await handler.arrived.wait()
            finally:
                await feed.stop()

        assert handler.received == [change]
        assert "read failed" in caplog.text

    @pytest.mark.asyncio
    async def test_double_start_is_ignored(self, file_queue_repository):
        feed = SQLiteChangeFeed(queue_repository=file_queue_repository)
        await feed.start()
        try:
            await feed.start()
            assert feed.is_running
        finally:
            await feed.stop()


# =============================================================================
# QueueWatcher
# =============================================================================


class TestQueueWatcher:
    @pytest.fixture
    def fake_feed(self):
        return MagicMock(spec=ChangeFeed)

    @staticmethod
    def _handler(fake_feed):
        return fake_feed.subscribe.call_args.args[1]

    @pytest.mark.asyncio
    async def test_start_loads_snapshot_and_subscribes(
        self, queue_repository, fake_feed, make_entry
    ):
        first = await queue_repository.insert(make_entry(offset=0))
        await queue_repository.insert(make_entry(offset=1))
        await queue_repository.apply_transition(
            "R1", finish_id=None, finish_as=None, promote_id=first.id, at=AT
        )
        watcher = QueueWatcher(
            "R1", queue_repository=queue_repository, change_feed=fake_feed, poll_interval=0
        )

        snapshot = await watcher.start()

        assert watcher.is_running
        assert snapshot.now_playing.id == first.id
        assert len(snapshot.upcoming) == 1
        assert fake_feed.subscribe.call_args.args[0] == "R1"

        await watcher.stop()
        fake_feed.unsubscribe.assert_called_once()
        assert not watcher.is_running

    @pytest.mark.asyncio
    async def test_follows_feed_and_notifies_listeners(self, queue_repository, make_entry):
        feed = SQLiteChangeFeed(queue_repository=queue_repository)
        watcher = QueueWatcher(
            "R1", queue_repository=queue_repository, change_feed=feed, poll_interval=0
        )
        listener = Recorder()
        watcher.add_listener(listener)
        await watcher.start()

        first = await queue_repository.insert(make_entry(offset=0))
        second = await queue_repository.insert(make_entry(offset=1))
        await queue_repository.apply_transition(
            "R1", finish_id=None, finish_as=None, promote_id=first.id, at=AT
        )
        await feed.poll_once()

        assert watcher.snapshot.now_playing.id == first.id
        assert [e.id for e in watcher.snapshot.upcoming] == [second.id]
        assert len(listener.received) == 3
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_stale_change_does_not_regress_snapshot(
        self, queue_repository, fake_feed, make_entry
    ):
        first = await queue_repository.insert(make_entry(offset=0))
        await queue_repository.apply_transition(
            "R1", finish_id=None, finish_as=None, promote_id=first.id, at=AT
        )
        watcher = QueueWatcher(
            "R1", queue_repository=queue_repository, change_feed=fake_feed, poll_interval=0
        )
        listener = Recorder()
        watcher.add_listener(listener)
        await watcher.start()
        listener.received.clear()

        # A late-arriving insert for an entry we already know is playing.
        stale = QueueChange(
            seq=1, change_type=ChangeType.INSERT, room_id="R1", entry_id=first.id, entry=first
        )
        await self._handler(fake_feed)(stale)

        assert watcher.snapshot.now_playing.id == first.id
        assert listener.received == []
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_change_committed_before_load_is_ignored(
        self, queue_repository, fake_feed, make_entry
    ):
        x = await queue_repository.insert(make_entry(offset=0))
        y = await queue_repository.insert(make_entry(offset=1))
        await queue_repository.apply_transition(
            "R1", finish_id=None, finish_as=None, promote_id=x.id, at=AT
        )
        promoted_x = (await queue_repository.changes_since(0))[-1]
        await queue_repository.apply_transition(
            "R1", finish_id=x.id, finish_as=EntryStatus.PLAYED, promote_id=y.id, at=AT
        )
        watcher = QueueWatcher(
            "R1", queue_repository=queue_repository, change_feed=fake_feed, poll_interval=0
        )
        listener = Recorder()
        watcher.add_listener(listener)
        await watcher.start()
        listener.received.clear()

        # The feed delivers "x is playing" after the load already saw x finish.
        assert promoted_x.entry.status is EntryStatus.PLAYING
        await self._handler(fake_feed)(promoted_x)

        assert watcher.snapshot.now_playing.id == y.id
        assert watcher.snapshot.upcoming == []
        assert watcher.snapshot.last_seq == await queue_repository.latest_seq()
        assert listener.received == []
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_reconcile_repairs_missed_changes(
        self, queue_repository, fake_feed, make_entry
    ):
        watcher = QueueWatcher(
            "R1", queue_repository=queue_repository, change_feed=fake_feed, poll_interval=0
        )
        await watcher.start()
        assert watcher.snapshot.is_empty

        entry = await queue_repository.insert(make_entry())

        assert await watcher.reconcile() is True
        assert [e.id for e in watcher.snapshot.upcoming] == [entry.id]
        assert await watcher.reconcile() is False
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_reconcile_loop_runs_in_background(
        self, file_queue_repository, fake_feed, make_entry
    ):
        watcher = QueueWatcher(
            "R1", queue_repository=file_queue_repository, change_feed=fake_feed, poll_interval=0.02
        )
        await watcher.start()
        try:
            await file_queue_repository.insert(make_entry())
            await _wait_for(lambda: not watcher.snapshot.is_empty)
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_listener_failure_is_logged(
        self, queue_repository, fake_feed, make_entry, caplog
    ):
        watcher = QueueWatcher(
            "R1", queue_repository=queue_repository, change_feed=fake_feed, poll_interval=0
        )
        broken = AsyncMock(side_effect=RuntimeError("boom"))
        healthy = Recorder()
        watcher.add_listener(broken)
        watcher.add_listener(healthy)
        await watcher.start()

        await queue_repository.insert(make_entry())
        with caplog.at_level(logging.ERROR):
            await watcher.reconcile()

        assert len(healthy.received) == 1
        assert "listener failed" in caplog.text

        watcher.remove_listener(healthy)
        await queue_repository.insert(make_entry(offset=1))
        await watcher.reconcile()
        assert len(healthy.received) == 1
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_start_twice_returns_current_snapshot(self, queue_repository, fake_feed):
        watcher = QueueWatcher(
            "R1", queue_repository=queue_repository, change_feed=fake_feed, poll_interval=0
        )
        first = await watcher.start()
        second = await watcher.start()

        assert first is second
        assert fake_feed.subscribe.call_count == 1
        await watcher.stop()
