from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# ============================================================================
# Clock
# ============================================================================


class TickingClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 5, 9, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(seconds=1)
        return value


@pytest.fixture
def clock():
    return TickingClock()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def in_memory_database():
    """Create an in-memory SQLite database for testing."""
    from classroom_jukebox.infrastructure.persistence.database import Database

    db = Database(":memory:")
    await db.initialize()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def file_database(tmp_path):
    """File-backed database; needed wherever connections overlap in time.

    Shared-cache in-memory databases report SQLITE_LOCKED immediately
    instead of waiting on busy_timeout.
    """
    from classroom_jukebox.infrastructure.persistence.database import Database

    db = Database(f"sqlite:///{tmp_path / 'jukebox.db'}")
    await db.initialize()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def queue_repository(in_memory_database):
    """Create a queue repository with in-memory database."""
    from classroom_jukebox.infrastructure.persistence.repositories.queue_repository import (
        SQLiteQueueRepository,
    )

    return SQLiteQueueRepository(in_memory_database)


@pytest_asyncio.fixture
async def file_queue_repository(file_database):
    """Create a queue repository with a file-backed database."""
    from classroom_jukebox.infrastructure.persistence.repositories.queue_repository import (
        SQLiteQueueRepository,
    )

    return SQLiteQueueRepository(file_database)


# ============================================================================
# Port Fixtures
# ============================================================================


def _fake_track(query: str):
    from classroom_jukebox.domain.jukebox.entities import ResolvedTrack

    if query.startswith("http"):
        return ResolvedTrack(media_ref=query, title=f"Track at {query.rsplit('/', 1)[-1]}")
    slug = query.lower().replace(" ", "-")
    return ResolvedTrack(
        media_ref=f"https://www.youtube.com/watch?v={slug}",
        title=query.title(),
        thumbnail=f"https://i.ytimg.com/vi/{slug}/default.jpg",
    )


@pytest.fixture
def track_resolver():
    """Resolver mock that turns any query into a deterministic track."""
    from classroom_jukebox.application.interfaces.track_resolver import TrackResolver

    resolver = MagicMock(spec=TrackResolver)
    resolver.resolve = AsyncMock(side_effect=_fake_track)
    resolver.search = AsyncMock(
        side_effect=lambda query, limit=5: [_fake_track(f"{query} {i}") for i in range(limit)]
    )
    resolver.is_url = MagicMock(side_effect=lambda q: q.startswith("http"))
    return resolver


@pytest.fixture
def access_policy():
    """Open-room policy: everyone may skip and remove."""
    from classroom_jukebox.config.settings import AccessSettings
    from classroom_jukebox.infrastructure.access.moderator_policy import ModeratorAccessPolicy

    return ModeratorAccessPolicy(AccessSettings())


@pytest.fixture
def moderated_policy():
    """Only 'teacher' moderates; students may pull their own queued entries."""
    from classroom_jukebox.config.settings import AccessSettings
    from classroom_jukebox.infrastructure.access.moderator_policy import ModeratorAccessPolicy

    return ModeratorAccessPolicy(AccessSettings(moderator_ids=("teacher",)))


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def coordinator(queue_repository, track_resolver, access_policy, clock):
    from classroom_jukebox.application.services.queue_coordinator import QueueCoordinator

    return QueueCoordinator(
        queue_repository=queue_repository,
        track_resolver=track_resolver,
        access_policy=access_policy,
        clock=clock,
    )


@pytest.fixture
def make_entry():
    """Factory for unsaved or saved QueueEntry objects."""
    from classroom_jukebox.domain.jukebox.entities import QueueEntry
    from classroom_jukebox.domain.jukebox.value_objects import EntryStatus

    base = datetime(2026, 1, 5, 9, 0, 0, tzinfo=UTC)

    def _make(
        entry_id=None,
        *,
        room_id="R1",
        submitted_by="student-1",
        status=EntryStatus.QUEUED,
        offset=0,
        media_ref=None,
        title="Song",
    ):
        return QueueEntry(
            id=entry_id,
            room_id=room_id,
            submitted_by=submitted_by,
            query=title,
            media_ref=media_ref or f"https://youtu.be/{entry_id or offset}",
            title=title,
            status=status,
            created_at=base + timedelta(seconds=offset),
        )

    return _make
