"""
Queries (CQRS Read Side)

Read-only projections of a room's queue.
"""

from classroom_jukebox.application.queries.get_queue import GetQueueHandler, GetQueueQuery, QueueInfo

__all__ = [
    "GetQueueQuery",
    "GetQueueHandler",
    "QueueInfo",
]
