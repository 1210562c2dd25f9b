"""
Jukebox Domain Repository Interfaces

Abstract base classes defining the contracts for data persistence.
Implementations live in the infrastructure layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from classroom_jukebox.domain.jukebox.entities import QueueChange, QueueEntry, RoomView
from classroom_jukebox.domain.jukebox.value_objects import EntryStatus


class QueueRepository(ABC):
    """Abstract repository for queue entries.

    Every mutating method is a single conditional write: it either applies
    completely or raises ConcurrencyError and leaves the store untouched.
    Each successful mutation also records a QueueChange for the change feed.
    """

    @abstractmethod
    async def insert(
        self,
        entry: QueueEntry,
        *,
        max_pending_per_user: int | None = None,
        reject_duplicates: bool = False,
        cooldown_seconds: float = 0,
    ) -> QueueEntry:
        """Store a new queued entry.

        Args:
            entry: The entry to store; its id is ignored.
            max_pending_per_user: If set, refuse the insert when the submitter
                already has this many queued entries in the room.
            reject_duplicates: If True, refuse the insert when the same media
                reference is already active in the room.
            cooldown_seconds: If positive, refuse the insert when the submitter
                added an entry to the room within this many seconds before
                `entry.created_at`.

        Returns:
            The stored entry with its assigned id.

        Raises:
            BusinessRuleViolationError: If one of the limits refused the insert;
                `rule` is "pending_limit", "duplicate" or "cooldown".
            ConcurrencyError: If the database was busy.
        """
        ...

    @abstractmethod
    async def get(self, entry_id: int) -> QueueEntry | None:
        """Retrieve an entry by id, regardless of status."""
        ...

    @abstractmethod
    async def get_room_view(self, room_id: str) -> RoomView:
        """Read the playing entry and the earliest queued entry of a room."""
        ...

    @abstractmethod
    async def list_active(self, room_id: str) -> list[QueueEntry]:
        """Queued and playing entries of a room in FIFO order."""
        ...

    @abstractmethod
    async def list_active_at_seq(self, room_id: str) -> tuple[list[QueueEntry], int]:
        """Like list_active, plus the change-log head read in the same transaction.

        Every change with a sequence number at or below the returned head is
        already reflected in the returned entries.
        """
        ...

    @abstractmethod
    async def list_history(self, room_id: str, limit: int) -> list[QueueEntry]:
        """Finished entries of a room, most recently finished first."""
        ...

    @abstractmethod
    async def apply_transition(
        self,
        room_id: str,
        *,
        finish_id: int | None,
        finish_as: EntryStatus | None,
        promote_id: int | None,
        at: datetime,
    ) -> None:
        """Atomically finish the playing entry and/or promote a queued one.

        Both steps are conditional on the entry still being in the expected
        status. If either matches no row, nothing is written.

        Raises:
            ConcurrencyError: If the store changed since it was read.
        """
        ...

    @abstractmethod
    async def delete_active(self, room_id: str, entry_id: int) -> QueueEntry:
        """Hard-delete an entry that is still queued or playing.

        Returns:
            The entry as it was before deletion.

        Raises:
            ConcurrencyError: If the entry is no longer active.
        """
        ...

    @abstractmethod
    async def latest_seq(self) -> int:
        """Highest change-log sequence number, or 0 when the log is empty."""
        ...

    @abstractmethod
    async def changes_since(self, after_seq: int, limit: int = 500) -> list[QueueChange]:
        """Changes with a sequence number above `after_seq`, oldest first."""
        ...

    @abstractmethod
    async def prune_changes(self, older_than: datetime) -> int:
        """Delete change-log rows recorded before `older_than`.

        Returns:
            Number of rows deleted.
        """
        ...
