"""
Jukebox Bounded Context

Domain logic for room queues: entries, their lifecycle, and transition rules.
"""

from classroom_jukebox.domain.jukebox.entities import (
    QueueChange,
    QueueEntry,
    QueueSnapshot,
    ResolvedTrack,
    RoomView,
)
from classroom_jukebox.domain.jukebox.repository import QueueRepository
from classroom_jukebox.domain.jukebox.services import QueueDomainService, TransitionPlan
from classroom_jukebox.domain.jukebox.value_objects import ChangeType, EntryStatus, RoomState

__all__ = [
    # Entities
    "QueueEntry",
    "ResolvedTrack",
    "RoomView",
    "QueueSnapshot",
    "QueueChange",
    # Value Objects
    "EntryStatus",
    "RoomState",
    "ChangeType",
    # Repository
    "QueueRepository",
    # Services
    "QueueDomainService",
    "TransitionPlan",
]
