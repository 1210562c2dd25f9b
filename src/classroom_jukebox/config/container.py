"""Dependency Injection Container

Manages the application's dependency graph, providing lazy initialization
and lifecycle management for the database, repository, change feed,
resolver and application services. Components are created on-demand and
cached for reuse throughout the application.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from ..application.interfaces.access_policy import AccessPolicy
    from ..application.interfaces.track_resolver import TrackResolver
    from ..application.queries.get_queue import GetQueueHandler
    from ..application.services.queue_coordinator import QueueCoordinator
    from ..application.services.queue_watcher import QueueWatcher
    from ..domain.jukebox.services import QueueDomainService
    from ..infrastructure.persistence.change_feed import SQLiteChangeFeed
    from ..infrastructure.persistence.cleanup import ChangeLogCleanupJob
    from ..infrastructure.persistence.database import Database
    from ..infrastructure.persistence.repositories.queue_repository import SQLiteQueueRepository
    from .settings import Settings


@dataclass
class Container:
    """Dependency injection container.

    This container manages all application dependencies and their lifecycle.
    Components are lazily initialized when first accessed.
    """

    settings: Settings

    # Persistence layer
    _database: Database | None = None
    _queue_repository: SQLiteQueueRepository | None = None
    _change_feed: SQLiteChangeFeed | None = None

    # Infrastructure adapters
    _track_resolver: TrackResolver | None = None
    _access_policy: AccessPolicy | None = None

    # Domain services
    _queue_domain_service: QueueDomainService | None = None

    # Application services
    _queue_coordinator: QueueCoordinator | None = None
    _watchers: dict[str, QueueWatcher] = field(default_factory=dict)

    # Query handlers
    _get_queue_handler: GetQueueHandler | None = None

    # Background jobs
    _cleanup_job: ChangeLogCleanupJob | None = None

    # === Database ===

    @property
    def database(self) -> Database:
        """Get the database connection manager."""
        if self._database is None:
            from ..infrastructure.persistence.database import Database

            self._database = Database(self.settings.database.url, settings=self.settings.database)
        return self._database

    # === Repositories ===

    @property
    def queue_repository(self) -> SQLiteQueueRepository:
        """Get the queue repository; its commits wake the change feed."""
        if self._queue_repository is None:
            from ..infrastructure.persistence.repositories.queue_repository import (
                SQLiteQueueRepository,
            )

            self._queue_repository = SQLiteQueueRepository(self.database)
            self._queue_repository.set_on_commit(self.change_feed.notify)
        return self._queue_repository

    @property
    def change_feed(self) -> SQLiteChangeFeed:
        """Get the change feed tailing the queue change log."""
        if self._change_feed is None:
            from ..infrastructure.persistence.change_feed import SQLiteChangeFeed
            from ..infrastructure.persistence.repositories.queue_repository import (
                SQLiteQueueRepository,
            )

            if self._queue_repository is None:
                self._queue_repository = SQLiteQueueRepository(self.database)
            self._change_feed = SQLiteChangeFeed(
                queue_repository=self._queue_repository,
                settings=self.settings.change_feed,
            )
            self._queue_repository.set_on_commit(self._change_feed.notify)
        return self._change_feed

    # === Infrastructure Adapters ===

    @property
    def track_resolver(self) -> TrackResolver:
        """Get the yt-dlp track resolver."""
        if self._track_resolver is None:
            from ..infrastructure.resolver.ytdlp_resolver import YtDlpTrackResolver

            self._track_resolver = YtDlpTrackResolver(self.settings.resolver)
        return self._track_resolver

    @property
    def access_policy(self) -> AccessPolicy:
        """Get the moderator access policy."""
        if self._access_policy is None:
            from ..infrastructure.access.moderator_policy import ModeratorAccessPolicy

            self._access_policy = ModeratorAccessPolicy(self.settings.access)
        return self._access_policy

    # === Domain Services ===

    @property
    def queue_domain_service(self) -> QueueDomainService:
        """Get the queue domain service."""
        if self._queue_domain_service is None:
            from ..domain.jukebox.services import QueueDomainService

            self._queue_domain_service = QueueDomainService()
        return self._queue_domain_service

    # === Application Services ===

    @property
    def queue_coordinator(self) -> QueueCoordinator:
        """Get the queue coordinator."""
        if self._queue_coordinator is None:
            from ..application.services.queue_coordinator import QueueCoordinator

            queue = self.settings.queue
            self._queue_coordinator = QueueCoordinator(
                queue_repository=self.queue_repository,
                track_resolver=self.track_resolver,
                access_policy=self.access_policy,
                queue_domain_service=self.queue_domain_service,
                resolve_timeout=self.settings.resolver.timeout_seconds,
                max_pending_per_user=queue.max_pending_per_user,
                reject_duplicates=queue.reject_duplicates,
                submit_cooldown_seconds=queue.submit_cooldown_seconds,
                history_limit=queue.history_limit,
                search_limit=self.settings.resolver.search_limit,
            )
        return self._queue_coordinator

    def watcher(self, room_id: str) -> QueueWatcher:
        """Get (or create) the queue watcher for a room."""
        if room_id not in self._watchers:
            from ..application.services.queue_watcher import QueueWatcher

            self._watchers[room_id] = QueueWatcher(
                room_id,
                queue_repository=self.queue_repository,
                change_feed=self.change_feed,
                poll_interval=self.settings.queue.poll_interval_seconds,
            )
        return self._watchers[room_id]

    # === Query Handlers ===

    @property
    def get_queue_handler(self) -> GetQueueHandler:
        """Get the get queue query handler."""
        if self._get_queue_handler is None:
            from ..application.queries.get_queue import GetQueueHandler

            self._get_queue_handler = GetQueueHandler(
                queue_repository=self.queue_repository,
            )
        return self._get_queue_handler

    # === Background Jobs ===

    @property
    def cleanup_job(self) -> ChangeLogCleanupJob:
        """Get the change-log cleanup job."""
        if self._cleanup_job is None:
            from ..infrastructure.persistence.cleanup import ChangeLogCleanupJob

            self._cleanup_job = ChangeLogCleanupJob(
                queue_repository=self.queue_repository,
                settings=self.settings.cleanup,
            )
        return self._cleanup_job

    # === Lifecycle ===

    async def initialize(self) -> None:
        """Initialize all async resources."""
        await self.database.initialize()

    async def shutdown(self) -> None:
        """Stop background work and close the database."""
        for room_id, watcher in list(self._watchers.items()):
            try:
                await watcher.stop()
            except Exception as exc:
                logger.warning("Failed stopping watcher for room %s: %r", room_id, exc)
        self._watchers.clear()

        if self._change_feed is not None and self._change_feed.is_running:
            await self._change_feed.stop()

        if self._cleanup_job is not None and self._cleanup_job.is_running:
            await self._cleanup_job.stop()

        if self._database is not None:
            await self._database.close()


def create_container(settings: Settings) -> Container:
    """Create a new dependency injection container."""
    return Container(settings)
