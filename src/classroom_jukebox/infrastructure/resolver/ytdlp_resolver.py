"""TrackResolver implementation using yt-dlp for link resolution and search."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any, Final, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator
from yt_dlp import YoutubeDL

from classroom_jukebox.application.interfaces.track_resolver import TrackResolver
from classroom_jukebox.config.settings import ResolverSettings
from classroom_jukebox.domain.jukebox.entities import ResolvedTrack
from classroom_jukebox.domain.shared.exceptions import TrackNotFoundError
from classroom_jukebox.domain.shared.messages import LogTemplates
from classroom_jukebox.domain.shared.types import (
    HttpUrlStr,
    NonEmptyStr,
    NonNegativeFloat,
    PositiveInt,
)

logger = logging.getLogger(__name__)

CACHE_MAX_SIZE: Final[int] = 500
DEFAULT_RETRIES: Final[int] = 3
DEFAULT_SOCKET_TIMEOUT: Final[int] = 10
DEFAULT_SEARCH_LIMIT: Final[int] = 5
LOG_URL_TRUNCATE: Final[int] = 60
MAX_TITLE_LENGTH: Final[int] = 500


# ── Pydantic models for yt-dlp data ────────────────────────────────────


class YtDlpTrackInfo(BaseModel):
    """Trimmed yt-dlp extraction result for caching and track conversion.

    Extra fields from yt-dlp are silently ignored, keeping memory usage low.
    Before-validators coerce garbage from external yt-dlp data gracefully.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    webpage_url: HttpUrlStr | None = None
    url: NonEmptyStr | None = None
    id: NonEmptyStr | None = None
    title: NonEmptyStr | None = None
    thumbnail: HttpUrlStr | None = None

    @field_validator("webpage_url", "url", "id", "title", "thumbnail", mode="before")
    @classmethod
    def _coerce_empty_to_none(cls, v: Any) -> str | None:
        """Convert empty / whitespace-only / non-string values to None."""
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip()


class CacheEntry(BaseModel):
    """Cached yt-dlp extraction result with expiry timestamp."""

    model_config = ConfigDict(frozen=True)

    info: YtDlpTrackInfo | None = None
    cached_at: NonNegativeFloat


# ── yt-dlp option models ───────────────────────────────────────────────


class YtDlpOpts(BaseModel):
    """Typed yt-dlp configuration options passed to YoutubeDL."""

    model_config = ConfigDict(frozen=True)

    quiet: bool = True
    noprogress: bool = True
    noplaylist: bool = True
    default_search: NonEmptyStr = "ytsearch"
    retries: PositiveInt = DEFAULT_RETRIES
    socket_timeout: PositiveInt = DEFAULT_SOCKET_TIMEOUT
    format: NonEmptyStr | None = None
    skip_download: bool = True
    extract_flat: NonEmptyStr | bool = False


# ── Module-level state and patterns ────────────────────────────────────

_info_cache: dict[str, CacheEntry] = {}

URL_PATTERNS: Final[list[re.Pattern[str]]] = [
    re.compile(r"https?://"),
    re.compile(r"www\."),
]


class YtDlpTrackResolver(TrackResolver):

    def __init__(self, settings: ResolverSettings | None = None) -> None:
        self._settings = settings or ResolverSettings()
        self._cache_ttl = self._settings.cache_ttl_seconds
        self._base_opts = YtDlpOpts(
            format=self._settings.ytdlp_format,
            socket_timeout=self._settings.socket_timeout_seconds,
        )

    def _get_opts(self, **overrides: Any) -> YtDlpOpts:
        if overrides:
            return self._base_opts.model_copy(update=overrides)
        return self._base_opts

    def _info_to_track(self, info: YtDlpTrackInfo) -> ResolvedTrack | None:
        media_ref = info.webpage_url or info.url
        if not media_ref:
            logger.warning(LogTemplates.YTDLP_NO_URL_IN_INFO_DICT)
            return None

        try:
            return ResolvedTrack(
                media_ref=media_ref,
                title=info.title[:MAX_TITLE_LENGTH] if info.title else None,
                thumbnail=info.thumbnail,
            )
        except ValueError:
            logger.exception(LogTemplates.YTDLP_FAILED_INFO_TO_TRACK)
            return None

    @staticmethod
    def _parse_info(data: dict[str, Any]) -> YtDlpTrackInfo:
        return YtDlpTrackInfo.model_validate(data)

    def _extract_info_sync(self, url: str) -> YtDlpTrackInfo | None:
        now = time.time()
        cached = _info_cache.get(url)
        if cached is not None:
            if now - cached.cached_at < self._cache_ttl:
                logger.debug(LogTemplates.CACHE_HIT_URL, url[:LOG_URL_TRUNCATE])
                return cached.info
            _info_cache.pop(url, None)

        try:
            with YoutubeDL(params=cast(Any, self._get_opts().model_dump())) as ydl:
                data = ydl.extract_info(url, download=False)
                result = self._parse_info(dict(data)) if isinstance(data, dict) else None

                _info_cache[url] = CacheEntry(info=result, cached_at=now)

                if len(_info_cache) > CACHE_MAX_SIZE:
                    expired = [
                        k
                        for k, entry in _info_cache.items()
                        if now - entry.cached_at >= self._cache_ttl
                    ]
                    for k in expired:
                        _info_cache.pop(k, None)
                    if expired:
                        logger.debug(LogTemplates.CACHE_EXPIRED_CLEANED, len(expired))

                return result
        except Exception:
            logger.exception(LogTemplates.YTDLP_FAILED_EXTRACT_INFO, url)
            return None

    def _search_sync(self, query: str, limit: int = 1) -> list[YtDlpTrackInfo]:
        try:
            search_query = f"ytsearch{limit}:{query}"
            with YoutubeDL(params=cast(Any, self._get_opts().model_dump())) as ydl:
                data = ydl.extract_info(search_query, download=False)

                if not isinstance(data, dict):
                    return []

                entries = data.get("entries", [])
                if not isinstance(entries, list):
                    return []

                return [self._parse_info(dict(e)) for e in entries if e]
        except Exception:
            logger.exception(LogTemplates.YTDLP_FAILED_SEARCH, query)
            return []

    async def resolve(self, query: str) -> ResolvedTrack:
        """Resolve a link directly, or take the first search hit for free text.

        Raises:
            TrackNotFoundError: If yt-dlp returns nothing usable.
        """
        if self.is_url(query):
            info = await asyncio.to_thread(self._extract_info_sync, query)
        else:
            results = await asyncio.to_thread(self._search_sync, query, 1)
            info = results[0] if results else None

        track = self._info_to_track(info) if info else None
        if track is None:
            raise TrackNotFoundError(query)

        logger.debug(LogTemplates.YTDLP_RESOLVED, query, track.media_ref)
        return track

    async def search(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[ResolvedTrack]:
        results = await asyncio.to_thread(self._search_sync, query, limit)

        tracks: list[ResolvedTrack] = []
        for info in results:
            track = self._info_to_track(info)
            if track:
                tracks.append(track)
        return tracks

    def is_url(self, query: str) -> bool:
        return any(pattern.search(query) for pattern in URL_PATTERNS)
