"""SQLite repository implementations."""

from classroom_jukebox.infrastructure.persistence.repositories.queue_repository import (
    SQLiteQueueRepository,
)

__all__ = [
    "SQLiteQueueRepository",
]
