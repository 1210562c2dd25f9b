"""Track resolution infrastructure - yt-dlp link lookup and search."""

from classroom_jukebox.infrastructure.resolver.ytdlp_resolver import (
    CacheEntry,
    YtDlpOpts,
    YtDlpTrackInfo,
    YtDlpTrackResolver,
)

__all__ = [
    "CacheEntry",
    "YtDlpOpts",
    "YtDlpTrackInfo",
    "YtDlpTrackResolver",
]
