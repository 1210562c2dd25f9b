"""SQLite implementation of the queue repository.

Every write runs in one transaction together with its `queue_changes` row, so
the change feed never shows a change that was rolled back.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

import aiosqlite

from classroom_jukebox.domain.jukebox.entities import QueueChange, QueueEntry, RoomView
from classroom_jukebox.domain.jukebox.repository import QueueRepository
from classroom_jukebox.domain.jukebox.value_objects import ChangeType, EntryStatus
from classroom_jukebox.domain.shared.datetime_utils import UtcDateTime, from_iso, to_iso
from classroom_jukebox.domain.shared.exceptions import (
    BusinessRuleViolationError,
    ConcurrencyError,
)

if TYPE_CHECKING:
    from ..database import Database

logger = logging.getLogger(__name__)

_ENTRY = "QueueEntry"
_LOCK_MARKERS = ("locked", "busy")


class SQLiteQueueRepository(QueueRepository):
    def __init__(self, database: Database, on_commit: Callable[[], None] | None = None) -> None:
        self._db = database
        self._on_commit = on_commit

    def set_on_commit(self, callback: Callable[[], None] | None) -> None:
        self._on_commit = callback

    # ── Writes ──────────────────────────────────────────────────────

    @asynccontextmanager
    async def _write(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Transaction that maps lock and constraint failures to ConcurrencyError."""
        try:
            async with self._db.transaction() as conn:
                yield conn
        except aiosqlite.IntegrityError as exc:
            raise ConcurrencyError(_ENTRY, f"Constraint violated: {exc}") from exc
        except aiosqlite.OperationalError as exc:
            if any(marker in str(exc).lower() for marker in _LOCK_MARKERS):
                raise ConcurrencyError(_ENTRY, f"Database busy: {exc}") from exc
            raise

        if self._on_commit is not None:
            self._on_commit()

    async def insert(
        self,
        entry: QueueEntry,
        *,
        max_pending_per_user: int | None = None,
        reject_duplicates: bool = False,
        cooldown_seconds: float = 0,
    ) -> QueueEntry:
        cutoff = to_iso(entry.created_at - timedelta(seconds=max(cooldown_seconds, 0)))
        async with self._write() as conn:
            # Limits are checked by the INSERT itself so no concurrent
            # submission can slip in between a count and the write.
            cursor = await conn.execute(
                """
                INSERT INTO queue_entries (
                    room_id, submitted_by, query, media_ref, title, thumbnail,
                    status, created_at
                )
                SELECT ?, ?, ?, ?, ?, ?, 'queued', ?
                WHERE (
                    ? IS NULL OR (
                        SELECT COUNT(*) FROM queue_entries
                        WHERE room_id = ? AND submitted_by = ? AND status = 'queued'
                    ) < ?
                )
                AND (
                    ? = 0 OR NOT EXISTS (
                        SELECT 1 FROM queue_entries
                        WHERE room_id = ? AND media_ref = ? AND status IN ('queued', 'playing')
                    )
                )
                AND (
                    ? <= 0 OR NOT EXISTS (
                        SELECT 1 FROM queue_entries
                        WHERE room_id = ? AND submitted_by = ? AND created_at > ?
                    )
                )
                """,
                (
                    entry.room_id,
                    entry.submitted_by,
                    entry.query,
                    entry.media_ref,
                    entry.title,
                    entry.thumbnail,
                    to_iso(entry.created_at),
                    max_pending_per_user,
                    entry.room_id,
                    entry.submitted_by,
                    max_pending_per_user,
                    1 if reject_duplicates else 0,
                    entry.room_id,
                    entry.media_ref,
                    cooldown_seconds,
                    entry.room_id,
                    entry.submitted_by,
                    cutoff,
                ),
            )

            if cursor.rowcount != 1:
                raise BusinessRuleViolationError(
                    rule=await self._refused_rule(
                        conn, entry, reject_duplicates, cooldown_seconds, cutoff
                    )
                )

            stored = entry.model_copy(update={"id": cursor.lastrowid})
            await self._record_change(conn, ChangeType.INSERT, stored)

        return stored

    async def _refused_rule(
        self,
        conn: aiosqlite.Connection,
        entry: QueueEntry,
        reject_duplicates: bool,
        cooldown_seconds: float,
        cutoff: str | None,
    ) -> str:
        if reject_duplicates:
            cursor = await conn.execute(
                """
                SELECT 1 FROM queue_entries
                WHERE room_id = ? AND media_ref = ? AND status IN ('queued', 'playing')
                """,
                (entry.room_id, entry.media_ref),
            )
            if await cursor.fetchone() is not None:
                return "duplicate"
        if cooldown_seconds > 0:
            cursor = await conn.execute(
                """
                SELECT 1 FROM queue_entries
                WHERE room_id = ? AND submitted_by = ? AND created_at > ?
                """,
                (entry.room_id, entry.submitted_by, cutoff),
            )
            if await cursor.fetchone() is not None:
                return "cooldown"
        return "pending_limit"

    async def apply_transition(
        self,
        room_id: str,
        *,
        finish_id: int | None,
        finish_as: EntryStatus | None,
        promote_id: int | None,
        at: datetime,
    ) -> None:
        if finish_id is not None and finish_as not in EntryStatus.finished():
            raise ValueError(f"finish_as must be played or skipped, got {finish_as!r}")

        async with self._write() as conn:
            if finish_id is not None and finish_as is not None:
                finished = await self._fetch_returning(
                    conn,
                    """
                    UPDATE queue_entries SET status = ?, finished_at = ?
                    WHERE id = ? AND room_id = ? AND status = 'playing'
                    RETURNING *
                    """,
                    (finish_as.value, to_iso(at), finish_id, room_id),
                )
                if finished is None:
                    raise ConcurrencyError(_ENTRY, f"Entry {finish_id} is no longer playing")
                await self._record_change(conn, ChangeType.UPDATE, finished)

            if promote_id is not None:
                promoted = await self._fetch_returning(
                    conn,
                    """
                    UPDATE queue_entries SET status = 'playing', started_at = ?
                    WHERE id = ? AND room_id = ? AND status = 'queued'
                    RETURNING *
                    """,
                    (to_iso(at), promote_id, room_id),
                )
                if promoted is None:
                    raise ConcurrencyError(_ENTRY, f"Entry {promote_id} is no longer queued")
                await self._record_change(conn, ChangeType.UPDATE, promoted)

    async def delete_active(self, room_id: str, entry_id: int) -> QueueEntry:
        async with self._write() as conn:
            removed = await self._fetch_returning(
                conn,
                """
                DELETE FROM queue_entries
                WHERE id = ? AND room_id = ? AND status IN ('queued', 'playing')
                RETURNING *
                """,
                (entry_id, room_id),
            )
            if removed is None:
                raise ConcurrencyError(_ENTRY, f"Entry {entry_id} is no longer active")
            await self._record_change(conn, ChangeType.DELETE, removed)

        return removed

    async def _fetch_returning(
        self, conn: aiosqlite.Connection, sql: str, parameters: tuple[Any, ...]
    ) -> QueueEntry | None:
        cursor = await conn.execute(sql, parameters)
        rows = await cursor.fetchall()
        return self._row_to_entry(dict(rows[0])) if rows else None

    async def _record_change(
        self, conn: aiosqlite.Connection, change_type: ChangeType, entry: QueueEntry
    ) -> None:
        await conn.execute(
            """
            INSERT INTO queue_changes (room_id, change_type, entry_id, payload, occurred_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                entry.room_id,
                change_type.value,
                entry.id,
                entry.model_dump_json(),
                UtcDateTime.now().iso,
            ),
        )

    # ── Reads ───────────────────────────────────────────────────────

    async def get(self, entry_id: int) -> QueueEntry | None:
        row = await self._db.fetch_one("SELECT * FROM queue_entries WHERE id = ?", (entry_id,))
        return self._row_to_entry(row) if row else None

    async def get_room_view(self, room_id: str) -> RoomView:
        async with self._db.connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM queue_entries WHERE room_id = ? AND status = 'playing' LIMIT 1",
                (room_id,),
            )
            current = await cursor.fetchone()
            cursor = await conn.execute(
                """
                SELECT * FROM queue_entries
                WHERE room_id = ? AND status = 'queued'
                ORDER BY created_at ASC, id ASC
                LIMIT 1
                """,
                (room_id,),
            )
            next_queued = await cursor.fetchone()

        return RoomView(
            room_id=room_id,
            current=self._row_to_entry(dict(current)) if current else None,
            next_queued=self._row_to_entry(dict(next_queued)) if next_queued else None,
        )

    async def list_active(self, room_id: str) -> list[QueueEntry]:
        rows = await self._db.fetch_all(
            """
            SELECT * FROM queue_entries
            WHERE room_id = ? AND status IN ('queued', 'playing')
            ORDER BY created_at ASC, id ASC
            """,
            (room_id,),
        )
        return [self._row_to_entry(row) for row in rows]

    async def list_active_at_seq(self, room_id: str) -> tuple[list[QueueEntry], int]:
        async with self._db.connection() as conn:
            # One read transaction so the entries and the log head agree.
            await conn.execute("BEGIN")
            try:
                cursor = await conn.execute("SELECT MAX(seq) AS seq FROM queue_changes")
                head = await cursor.fetchone()
                cursor = await conn.execute(
                    """
                    SELECT * FROM queue_entries
                    WHERE room_id = ? AND status IN ('queued', 'playing')
                    ORDER BY created_at ASC, id ASC
                    """,
                    (room_id,),
                )
                rows = await cursor.fetchall()
            finally:
                await conn.rollback()

        last_seq = (head["seq"] or 0) if head else 0
        return [self._row_to_entry(dict(row)) for row in rows], last_seq

    async def list_history(self, room_id: str, limit: int) -> list[QueueEntry]:
        rows = await self._db.fetch_all(
            """
            SELECT * FROM queue_entries
            WHERE room_id = ? AND status IN ('played', 'skipped')
            ORDER BY finished_at DESC, id DESC
            LIMIT ?
            """,
            (room_id, limit),
        )
        return [self._row_to_entry(row) for row in rows]

    # ── Change log ──────────────────────────────────────────────────

    async def latest_seq(self) -> int:
        row = await self._db.fetch_one("SELECT MAX(seq) AS seq FROM queue_changes")
        return (row["seq"] or 0) if row else 0

    async def changes_since(self, after_seq: int, limit: int = 500) -> list[QueueChange]:
        rows = await self._db.fetch_all(
            "SELECT * FROM queue_changes WHERE seq > ? ORDER BY seq ASC LIMIT ?",
            (after_seq, limit),
        )
        return [self._row_to_change(row) for row in rows]

    async def prune_changes(self, older_than: datetime) -> int:
        cursor = await self._db.execute(
            "DELETE FROM queue_changes WHERE occurred_at < ?",
            (to_iso(older_than),),
        )
        return max(cursor.rowcount, 0)

    # ── Row mapping ─────────────────────────────────────────────────

    @staticmethod
    def _row_to_entry(row: dict[str, Any]) -> QueueEntry:
        return QueueEntry(
            id=row["id"],
            room_id=row["room_id"],
            submitted_by=row["submitted_by"],
            query=row["query"],
            media_ref=row["media_ref"],
            title=row["title"],
            thumbnail=row["thumbnail"],
            status=EntryStatus(row["status"]),
            created_at=UtcDateTime.from_iso(row["created_at"]).dt,
            started_at=from_iso(row["started_at"]),
            finished_at=from_iso(row["finished_at"]),
        )

    @staticmethod
    def _row_to_change(row: dict[str, Any]) -> QueueChange:
        return QueueChange(
            seq=row["seq"],
            change_type=ChangeType(row["change_type"]),
            room_id=row["room_id"],
            entry_id=row["entry_id"],
            entry=QueueEntry.model_validate_json(row["payload"]),
            occurred_at=UtcDateTime.from_iso(row["occurred_at"]).dt,
        )
