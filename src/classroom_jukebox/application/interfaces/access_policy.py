"""Port interface for deciding who may remove entries and skip songs."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ...domain.jukebox.entities import QueueEntry


class AccessPolicy(ABC):
    """Capability checks applied by the coordinator before moderator actions."""

    @abstractmethod
    def can_remove(self, entry: "QueueEntry", requested_by: str) -> bool:
        """Whether `requested_by` may delete `entry` from its room's queue."""
        ...

    @abstractmethod
    def can_skip(self, room_id: str, requested_by: str) -> bool:
        """Whether `requested_by` may skip the song playing in `room_id`."""
        ...
