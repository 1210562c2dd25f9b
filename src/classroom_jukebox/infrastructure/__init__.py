"""Infrastructure layer - external systems integration.

This layer contains implementations for:
- Persistence (SQLite store, change feed, cleanup)
- Track resolution (yt-dlp)
- Access control (moderator list)
"""

from classroom_jukebox.infrastructure.persistence.database import Database

__all__ = [
    "Database",
]
