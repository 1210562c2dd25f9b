"""Port interface for resolving song links and search queries to playable tracks."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from classroom_jukebox.domain.shared.types import NonEmptyStr, PositiveInt

if TYPE_CHECKING:
    from ...domain.jukebox.entities import ResolvedTrack


class TrackResolver(ABC):
    """Interface for turning a raw link or query into a playable reference."""

    @abstractmethod
    async def resolve(self, query: NonEmptyStr) -> "ResolvedTrack":
        """Resolve a query or URL to a playable track.

        Raises:
            TrackNotFoundError: If nothing playable matches the query.
        """
        ...

    @abstractmethod
    async def search(self, query: NonEmptyStr, limit: PositiveInt = 5) -> list["ResolvedTrack"]:
        """Search for tracks matching a query."""
        ...

    @abstractmethod
    def is_url(self, query: NonEmptyStr) -> bool:
        ...
