"""Core domain entities for the jukebox bounded context."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from classroom_jukebox.domain.jukebox.value_objects import ChangeType, EntryStatus, RoomState
from classroom_jukebox.domain.shared.datetime_utils import utcnow
from classroom_jukebox.domain.shared.exceptions import InvalidOperationError
from classroom_jukebox.domain.shared.messages import ErrorMessages
from classroom_jukebox.domain.shared.types import (
    ChangeSeq,
    EntryId,
    MediaRefStr,
    NonEmptyStr,
    NonNegativeInt,
    RoomIdStr,
    TrackTitleStr,
    UserIdStr,
    UtcDatetimeField,
)


class ResolvedTrack(BaseModel):
    """Playable reference returned by a track resolver.

    Title and thumbnail are optional because resolution may partially fail.
    """

    model_config = ConfigDict(frozen=True)

    media_ref: MediaRefStr
    title: TrackTitleStr | None = None
    thumbnail: str | None = None


class QueueEntry(BaseModel):
    """One song request and its lifecycle status within a room."""

    model_config = ConfigDict(frozen=True)

    id: EntryId | None = None
    room_id: RoomIdStr
    submitted_by: UserIdStr
    query: NonEmptyStr
    media_ref: MediaRefStr
    title: TrackTitleStr | None = None
    thumbnail: str | None = None
    status: EntryStatus = EntryStatus.QUEUED
    created_at: UtcDatetimeField = Field(default_factory=utcnow)
    started_at: UtcDatetimeField | None = None
    finished_at: UtcDatetimeField | None = None

    @classmethod
    def new(
        cls,
        *,
        room_id: str,
        submitted_by: str,
        query: str,
        track: ResolvedTrack,
        created_at: datetime | None = None,
    ) -> QueueEntry:
        """Build a not-yet-stored queued entry from a resolved track."""
        return cls(
            room_id=room_id,
            submitted_by=submitted_by,
            query=query,
            media_ref=track.media_ref,
            title=track.title,
            thumbnail=track.thumbnail,
            status=EntryStatus.QUEUED,
            created_at=created_at or utcnow(),
        )

    @property
    def display_title(self) -> str:
        return self.title or self.media_ref

    @property
    def sort_key(self) -> tuple[datetime, int]:
        """FIFO ordering key: creation time, then store id as tie-break."""
        return (self.created_at, self.id or 0)

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def was_submitted_by(self, user_id: str) -> bool:
        return self.submitted_by == user_id

    def with_status(self, target: EntryStatus, at: datetime | None = None) -> QueueEntry:
        """Return a copy moved to `target`, enforcing the one-way lifecycle."""
        if not self.status.can_transition_to(target):
            raise InvalidOperationError(
                operation=f"transition to {target.value}",
                current_state=self.status.value,
                message=ErrorMessages.INVALID_STATUS_TRANSITION.format(
                    current=self.status.value, target=target.value
                ),
            )

        moment = at or utcnow()
        update: dict[str, object] = {"status": target}
        if target is EntryStatus.PLAYING:
            update["started_at"] = moment
        else:
            update["finished_at"] = moment
        return self.model_copy(update=update)


class RoomView(BaseModel):
    """The two rows a transition needs: what is playing and what is next."""

    model_config = ConfigDict(frozen=True)

    room_id: RoomIdStr
    current: QueueEntry | None = None
    next_queued: QueueEntry | None = None

    @property
    def current_id(self) -> int | None:
        return self.current.id if self.current else None


class QueueChange(BaseModel):
    """A row-level change delivered on a room's change feed.

    For deletes, `entry` is the row as it was just before deletion.
    """

    model_config = ConfigDict(frozen=True)

    seq: ChangeSeq
    change_type: ChangeType
    room_id: RoomIdStr
    entry_id: EntryId
    entry: QueueEntry
    occurred_at: UtcDatetimeField = Field(default_factory=utcnow)


class QueueSnapshot(BaseModel):
    """Disposable read projection of one room's active queue.

    Built from the store or folded from change-feed events; never written back.
    """

    model_config = ConfigDict(frozen=True)

    room_id: RoomIdStr
    now_playing: QueueEntry | None = None
    upcoming: list[QueueEntry] = Field(default_factory=list)
    last_seq: NonNegativeInt = 0

    @classmethod
    def from_entries(
        cls, room_id: str, entries: list[QueueEntry], last_seq: int = 0
    ) -> QueueSnapshot:
        active = sorted(
            (e for e in entries if e.room_id == room_id and e.is_active),
            key=lambda e: e.sort_key,
        )
        playing = [e for e in active if e.status is EntryStatus.PLAYING]
        return cls(
            room_id=room_id,
            now_playing=playing[0] if playing else None,
            upcoming=[e for e in active if e.status is EntryStatus.QUEUED],
            last_seq=last_seq,
        )

    @property
    def entries(self) -> list[QueueEntry]:
        """Active entries in FIFO order (the consumer-facing queue listing)."""
        active = list(self.upcoming)
        if self.now_playing is not None:
            active.append(self.now_playing)
        return sorted(active, key=lambda e: e.sort_key)

    @property
    def state(self) -> RoomState:
        if self.now_playing is None:
            return RoomState.QUEUED_ONLY if self.upcoming else RoomState.EMPTY
        return RoomState.PLAYING_WITH_BACKLOG if self.upcoming else RoomState.PLAYING

    @property
    def is_empty(self) -> bool:
        return self.state is RoomState.EMPTY

    def get(self, entry_id: int) -> QueueEntry | None:
        return next((e for e in self.entries if e.id == entry_id), None)

    def is_stale(self, change: QueueChange) -> bool:
        """True when `change` is already reflected in this snapshot.

        That is the case for anything at or below `last_seq`, and for a change
        that would move a known entry's status backwards.
        """
        if change.room_id != self.room_id:
            return False
        if change.seq <= self.last_seq:
            return True
        if change.change_type is ChangeType.DELETE:
            return False
        known = self.get(change.entry_id)
        return known is not None and change.entry.status.rank < known.status.rank

    def apply(self, change: QueueChange) -> QueueSnapshot:
        """Fold one change into a new snapshot; other rooms and stale changes are ignored."""
        if change.room_id != self.room_id or self.is_stale(change):
            return self

        remaining = [e for e in self.entries if e.id != change.entry_id]
        if change.change_type is not ChangeType.DELETE and change.entry.is_active:
            remaining.append(change.entry)
        return QueueSnapshot.from_entries(
            self.room_id, remaining, last_seq=max(self.last_seq, change.seq)
        )
