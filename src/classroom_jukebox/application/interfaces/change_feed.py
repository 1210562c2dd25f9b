"""Port interface for row-level queue change notifications."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ...domain.jukebox.entities import QueueChange

ChangeHandler = Callable[["QueueChange"], Awaitable[None]]


class ChangeFeed(ABC):
    """Delivers insert/update/delete events for queue entries, per room, in commit order."""

    @abstractmethod
    def subscribe(self, room_id: str, handler: ChangeHandler) -> None:
        ...

    @abstractmethod
    def unsubscribe(self, room_id: str, handler: ChangeHandler) -> None:
        ...

    @abstractmethod
    def notify(self) -> None:
        """Hint that a change was just committed so the feed can deliver it promptly."""
        ...

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...
