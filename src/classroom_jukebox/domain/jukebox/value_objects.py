"""Immutable value objects for the jukebox bounded context."""

from __future__ import annotations

from enum import Enum


class EntryStatus(Enum):
    """Lifecycle status of a queue entry, with enforced transitions.

    State transitions:
    - QUEUED -> PLAYING (promoted by advance/start)
    - PLAYING -> PLAYED (advance)
    - PLAYING -> SKIPPED (skip)

    PLAYED and SKIPPED are terminal. Removal is a hard delete and is not a
    status.
    """

    QUEUED = "queued"
    PLAYING = "playing"
    PLAYED = "played"
    SKIPPED = "skipped"

    def can_transition_to(self, target: EntryStatus) -> bool:
        """Check if transition to target state is valid."""
        valid_transitions = {
            EntryStatus.QUEUED: {EntryStatus.PLAYING},
            EntryStatus.PLAYING: {EntryStatus.PLAYED, EntryStatus.SKIPPED},
            EntryStatus.PLAYED: set(),
            EntryStatus.SKIPPED: set(),
        }
        return target in valid_transitions[self]

    @property
    def rank(self) -> int:
        """Position along the lifecycle; statuses never move to a lower rank."""
        return 0 if self is EntryStatus.QUEUED else 1 if self is EntryStatus.PLAYING else 2

    @property
    def is_active(self) -> bool:
        """Queued or playing: still part of the room's visible queue."""
        return self in {EntryStatus.QUEUED, EntryStatus.PLAYING}

    @property
    def is_finished(self) -> bool:
        return self in {EntryStatus.PLAYED, EntryStatus.SKIPPED}

    @classmethod
    def active(cls) -> tuple[EntryStatus, ...]:
        return (cls.QUEUED, cls.PLAYING)

    @classmethod
    def finished(cls) -> tuple[EntryStatus, ...]:
        return (cls.PLAYED, cls.SKIPPED)


class RoomState(Enum):
    """Coordinator state of a single room, derived from its active entries."""

    EMPTY = "empty"
    QUEUED_ONLY = "queued_only"  # entries waiting, nothing started yet
    PLAYING = "playing"
    PLAYING_WITH_BACKLOG = "playing_with_backlog"

    @property
    def has_current(self) -> bool:
        return self in {RoomState.PLAYING, RoomState.PLAYING_WITH_BACKLOG}


class ChangeType(Enum):
    """Row-level change kinds delivered on the change feed."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
