"""DTOs for the queue coordinator."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from ...domain.jukebox.entities import QueueEntry


class AdvanceResult(BaseModel):
    """Outcome of advance/skip/start.

    `now_playing` is None when the room is empty afterwards; `changed` is
    False when the call was a no-op.
    """

    model_config = ConfigDict(frozen=True)

    room_id: str
    finished: QueueEntry | None = None
    now_playing: QueueEntry | None = None
    changed: bool = False

