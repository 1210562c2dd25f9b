"""
Jukebox Domain Services

Pure transition planning for a room's queue. The coordinator reads a
RoomView, asks this service what should change, and hands the plan to the
repository as one conditional write.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from classroom_jukebox.domain.jukebox.entities import QueueEntry, RoomView
from classroom_jukebox.domain.jukebox.value_objects import EntryStatus
from classroom_jukebox.domain.shared.exceptions import EntityNotFoundError, InvalidOperationError
from classroom_jukebox.domain.shared.messages import ErrorMessages


@dataclass(frozen=True)
class TransitionPlan:
    """What one advance/skip/start will write.

    `finish` leaves `playing` as `finish_as`; `promote` enters `playing`.
    Either may be None; both None means nothing to do.
    """

    room_id: str
    finish: QueueEntry | None = None
    finish_as: EntryStatus = EntryStatus.PLAYED
    promote: QueueEntry | None = None

    @property
    def is_noop(self) -> bool:
        return self.finish is None and self.promote is None

    @property
    def finish_id(self) -> int | None:
        return self.finish.id if self.finish else None

    @property
    def promote_id(self) -> int | None:
        return self.promote.id if self.promote else None

    def finished_entry(self, at: datetime) -> QueueEntry | None:
        return self.finish.with_status(self.finish_as, at) if self.finish else None

    def promoted_entry(self, at: datetime) -> QueueEntry | None:
        return self.promote.with_status(EntryStatus.PLAYING, at) if self.promote else None


class QueueDomainService:
    """Domain service for queue transition rules."""

    @staticmethod
    def plan_advance(
        view: RoomView,
        *,
        finish_as: EntryStatus = EntryStatus.PLAYED,
        expected_current_id: int | None = None,
    ) -> TransitionPlan:
        """Finish whatever is playing and promote the earliest queued entry.

        When `expected_current_id` is given and a different entry is playing,
        someone else already moved the room on and the plan is empty.
        """
        if QueueDomainService.already_advanced(view, expected_current_id):
            return TransitionPlan(room_id=view.room_id)

        return TransitionPlan(
            room_id=view.room_id,
            finish=view.current,
            finish_as=finish_as,
            promote=view.next_queued,
        )

    @staticmethod
    def plan_start(view: RoomView) -> TransitionPlan:
        """Promote the earliest queued entry only if the room is idle."""
        if view.current is not None:
            return TransitionPlan(room_id=view.room_id)
        return TransitionPlan(room_id=view.room_id, promote=view.next_queued)

    @staticmethod
    def already_advanced(view: RoomView, expected_current_id: int | None) -> bool:
        """True when a different entry than the expected one is playing."""
        return (
            expected_current_id is not None
            and view.current is not None
            and view.current.id != expected_current_id
        )

    @staticmethod
    def ensure_in_room(entry: QueueEntry | None, room_id: str, entry_id: int) -> QueueEntry:
        """Return `entry` if it exists in `room_id`, else raise EntityNotFoundError."""
        if entry is None:
            raise EntityNotFoundError("QueueEntry", entry_id)
        if entry.room_id != room_id:
            raise EntityNotFoundError(
                "QueueEntry",
                entry_id,
                message=ErrorMessages.ENTRY_NOT_IN_ROOM.format(entry_id=entry_id, room_id=room_id),
            )
        return entry

    @staticmethod
    def ensure_active(entry: QueueEntry) -> None:
        """Only queued or playing entries may be removed."""
        if not entry.is_active:
            raise InvalidOperationError(
                operation="remove",
                current_state=entry.status.value,
                message=ErrorMessages.ENTRY_ALREADY_FINISHED.format(
                    entry_id=entry.id, status=entry.status.value
                ),
            )
