"""Query for retrieving a room's queue together with its recent history."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from classroom_jukebox.domain.jukebox.entities import QueueEntry, QueueSnapshot
from classroom_jukebox.domain.shared.types import HistoryLimit, RoomIdStr

if TYPE_CHECKING:
    from ...domain.jukebox.repository import QueueRepository


class GetQueueQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    room_id: RoomIdStr
    history_limit: HistoryLimit = 10


class QueueInfo(BaseModel):

    snapshot: QueueSnapshot
    history: list[QueueEntry] = Field(default_factory=list)

    @property
    def now_playing(self) -> QueueEntry | None:
        return self.snapshot.now_playing

    @property
    def upcoming(self) -> list[QueueEntry]:
        return self.snapshot.upcoming

    @property
    def length(self) -> int:
        return len(self.snapshot.upcoming)

    @property
    def is_empty(self) -> bool:
        return self.snapshot.is_empty


class GetQueueHandler:

    def __init__(self, *, queue_repository: QueueRepository) -> None:
        self._queue_repo = queue_repository

    async def handle(self, query: GetQueueQuery) -> QueueInfo:
        entries = await self._queue_repo.list_active(query.room_id)
        history = await self._queue_repo.list_history(query.room_id, query.history_limit)
        return QueueInfo(
            snapshot=QueueSnapshot.from_entries(query.room_id, entries),
            history=history,
        )
