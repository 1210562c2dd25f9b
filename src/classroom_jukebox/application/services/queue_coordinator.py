"""Queue Coordinator - owns submission and playback transitions for every room.

The store is the only source of truth. Each transition is read, planned by
QueueDomainService, and written back as one conditional transaction; a
conflicting write is retried once against fresh state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING, TypeVar

from pydantic import ValidationError as PydanticValidationError

from ...domain.jukebox.entities import QueueEntry, QueueSnapshot, ResolvedTrack, RoomView
from ...domain.jukebox.services import QueueDomainService, TransitionPlan
from ...domain.jukebox.value_objects import EntryStatus
from ...domain.shared.datetime_utils import utcnow
from ...domain.shared.exceptions import (
    BusinessRuleViolationError,
    ConcurrencyError,
    CoordinationError,
    NotAuthorizedError,
    ResolverUnavailableError,
    SubmissionRejectedError,
    TrackNotFoundError,
)
from ...domain.shared.messages import ErrorMessages, LogTemplates
from .queue_models import AdvanceResult

if TYPE_CHECKING:
    from ...domain.jukebox.repository import QueueRepository
    from ..interfaces.access_policy import AccessPolicy
    from ..interfaces.track_resolver import TrackResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueueCoordinator:
    """Submits, advances, skips and removes queue entries per room."""

    def __init__(
        self,
        *,
        queue_repository: QueueRepository,
        track_resolver: TrackResolver,
        access_policy: AccessPolicy,
        queue_domain_service: QueueDomainService | None = None,
        resolve_timeout: float = 15.0,
        max_pending_per_user: int | None = None,
        reject_duplicates: bool = False,
        submit_cooldown_seconds: float = 0.0,
        history_limit: int = 10,
        search_limit: int = 5,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = queue_repository
        self._resolver = track_resolver
        self._access = access_policy
        self._rules = queue_domain_service or QueueDomainService()
        self._resolve_timeout = resolve_timeout
        self._max_pending_per_user = max_pending_per_user
        self._reject_duplicates = reject_duplicates
        self._submit_cooldown_seconds = submit_cooldown_seconds
        self._history_limit = history_limit
        self._search_limit = search_limit
        self._clock = clock

    # ── Submission ──────────────────────────────────────────────────

    async def submit(self, room_id: str, submitted_by: str, raw_link: str) -> QueueEntry:
        """Resolve `raw_link` and append it to the room's queue.

        Raises:
            SubmissionRejectedError: Blank input, no match, resolver timeout,
                an optional submission limit or the per-user cooldown.
                Nothing is written.
            CoordinationError: The database stayed busy after one retry.
        """
        room_id = (room_id or "").strip()
        submitted_by = (submitted_by or "").strip()
        query = (raw_link or "").strip()

        if not room_id:
            raise self._reject(ErrorMessages.EMPTY_ROOM_ID, "invalid_input", room_id, submitted_by, query)
        if not submitted_by:
            raise self._reject(ErrorMessages.EMPTY_USER_ID, "invalid_input", room_id, submitted_by, query)
        if not query:
            raise self._reject(ErrorMessages.EMPTY_LINK, "invalid_input", room_id, submitted_by, query)

        track = await self._resolve(room_id, submitted_by, query)

        try:
            entry = QueueEntry.new(
                room_id=room_id,
                submitted_by=submitted_by,
                query=query,
                track=track,
                created_at=self._clock(),
            )
        except PydanticValidationError as exc:
            raise self._reject(str(exc), "invalid_input", room_id, submitted_by, query) from exc

        try:
            stored = await self._with_retry(
                "submit",
                room_id,
                lambda: self._repo.insert(
                    entry,
                    max_pending_per_user=self._max_pending_per_user,
                    reject_duplicates=self._reject_duplicates,
                    cooldown_seconds=self._submit_cooldown_seconds,
                ),
            )
        except BusinessRuleViolationError as exc:
            if exc.rule == "duplicate":
                message = ErrorMessages.DUPLICATE_IN_QUEUE.format(title=entry.display_title)
            elif exc.rule == "cooldown":
                message = ErrorMessages.SUBMIT_COOLDOWN_ACTIVE.format(seconds=self._submit_cooldown_seconds)
            else:
                message = ErrorMessages.PENDING_LIMIT_REACHED.format(limit=self._max_pending_per_user)
            raise self._reject(message, exc.rule, room_id, submitted_by, query) from exc

        logger.info(LogTemplates.QUEUE_SUBMITTED, stored.id, stored.display_title, submitted_by, room_id)
        return stored

    async def _resolve(self, room_id: str, submitted_by: str, query: str) -> ResolvedTrack:
        try:
            async with asyncio.timeout(self._resolve_timeout):
                return await self._resolver.resolve(query)
        except TrackNotFoundError as exc:
            raise self._reject(
                ErrorMessages.TRACK_NOT_FOUND.format(query=query), "not_found", room_id, submitted_by, query
            ) from exc
        except TimeoutError as exc:
            raise self._reject(
                ErrorMessages.RESOLUTION_TIMEOUT.format(query=query), "timeout", room_id, submitted_by, query
            ) from exc
        except Exception as exc:
            logger.exception(LogTemplates.QUEUE_RESOLVE_FAILED, query, room_id)
            raise self._reject(
                ErrorMessages.RESOLUTION_FAILED.format(query=query, error=exc),
                "resolution_failed",
                room_id,
                submitted_by,
                query,
            ) from exc

    @staticmethod
    def _reject(
        message: str, reason: str, room_id: str, submitted_by: str, query: str
    ) -> SubmissionRejectedError:
        logger.info(LogTemplates.QUEUE_SUBMISSION_REJECTED, query, submitted_by, room_id, message)
        return SubmissionRejectedError(message, reason=reason)

    # ── Transitions ─────────────────────────────────────────────────

    async def advance(self, room_id: str, *, expected_current_id: int | None = None) -> AdvanceResult:
        """Mark the playing entry played and promote the earliest queued one.

        A no-op on an empty room. With `expected_current_id`, also a no-op
        when a different entry is already playing.
        """
        return await self._transition(
            "advance",
            room_id,
            lambda view: self._rules.plan_advance(view, expected_current_id=expected_current_id),
        )

    async def skip(self, room_id: str, requested_by: str) -> AdvanceResult:
        """Like advance, but the finished entry is recorded as skipped."""
        if not self._access.can_skip(room_id, requested_by):
            logger.warning(LogTemplates.QUEUE_ACCESS_DENIED, "skip", room_id, requested_by)
            raise NotAuthorizedError(operation=ErrorMessages.SKIP_NOT_ALLOWED, user_id=requested_by)
        return await self._transition(
            "skip",
            room_id,
            lambda view: self._rules.plan_advance(view, finish_as=EntryStatus.SKIPPED),
        )

    async def start(self, room_id: str) -> AdvanceResult:
        """Promote the earliest queued entry if nothing is playing yet."""
        return await self._transition("start", room_id, self._rules.plan_start)

    async def _transition(
        self,
        operation: str,
        room_id: str,
        plan_for: Callable[[RoomView], TransitionPlan],
    ) -> AdvanceResult:
        observed_id: int | None = None

        for attempt in range(2):
            view = await self._repo.get_room_view(room_id)

            # A retry only continues from the state the first attempt saw.
            if attempt and view.current_id != observed_id:
                logger.info(LogTemplates.QUEUE_ADVANCE_NOOP, room_id, view.current_id)
                return AdvanceResult(room_id=room_id, now_playing=view.current)

            plan = plan_for(view)
            if plan.is_noop:
                if view.current is None and view.next_queued is None:
                    logger.debug(LogTemplates.QUEUE_EMPTY, room_id)
                else:
                    logger.debug(LogTemplates.QUEUE_ADVANCE_NOOP, room_id, view.current_id)
                return AdvanceResult(room_id=room_id, now_playing=view.current)

            at = self._clock()
            try:
                await self._repo.apply_transition(
                    room_id,
                    finish_id=plan.finish_id,
                    finish_as=plan.finish_as if plan.finish else None,
                    promote_id=plan.promote_id,
                    at=at,
                )
            except ConcurrencyError as exc:
                if attempt:
                    logger.warning(LogTemplates.QUEUE_CONFLICT_GAVE_UP, operation, room_id, exc)
                    raise CoordinationError(operation, room_id) from exc
                logger.warning(LogTemplates.QUEUE_CONFLICT_RETRY, operation, room_id, exc)
                observed_id = view.current_id
                continue

            finished = plan.finished_entry(at)
            now_playing = plan.promoted_entry(at)
            if now_playing is None and plan.finish is None:
                now_playing = view.current

            logger.info(
                LogTemplates.QUEUE_ADVANCED,
                room_id,
                finished.id if finished else None,
                plan.finish_as.value if finished else "-",
                now_playing.id if now_playing else None,
            )
            return AdvanceResult(room_id=room_id, finished=finished, now_playing=now_playing, changed=True)

        raise CoordinationError(operation, room_id)

    # ── Removal ─────────────────────────────────────────────────────

    async def remove(self, room_id: str, entry_id: int, requested_by: str) -> QueueEntry:
        """Hard-delete a queued or playing entry.

        Raises:
            EntityNotFoundError: Unknown id, or an entry of another room.
            NotAuthorizedError: The access policy denies the removal.
            InvalidOperationError: The entry already finished.
            CoordinationError: The delete conflicted twice.
        """

        async def attempt() -> QueueEntry:
            entry = self._rules.ensure_in_room(await self._repo.get(entry_id), room_id, entry_id)
            if not self._access.can_remove(entry, requested_by):
                logger.warning(LogTemplates.QUEUE_ACCESS_DENIED, "remove", room_id, requested_by)
                raise NotAuthorizedError(
                    operation=ErrorMessages.REMOVE_NOT_ALLOWED, user_id=requested_by
                )
            self._rules.ensure_active(entry)
            return await self._repo.delete_active(room_id, entry_id)

        removed = await self._with_retry("remove", room_id, attempt)
        logger.info(LogTemplates.QUEUE_REMOVED, removed.id, removed.display_title, room_id, requested_by)
        return removed

    async def _with_retry(self, operation: str, room_id: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except ConcurrencyError as exc:
            logger.warning(LogTemplates.QUEUE_CONFLICT_RETRY, operation, room_id, exc)
        try:
            return await call()
        except ConcurrencyError as exc:
            logger.warning(LogTemplates.QUEUE_CONFLICT_GAVE_UP, operation, room_id, exc)
            raise CoordinationError(operation, room_id) from exc

    # ── Reads ───────────────────────────────────────────────────────

    async def list_queue(self, room_id: str) -> list[QueueEntry]:
        """Queued and playing entries in submission order."""
        return await self._repo.list_active(room_id)

    async def get_snapshot(self, room_id: str) -> QueueSnapshot:
        entries = await self._repo.list_active(room_id)
        return QueueSnapshot.from_entries(room_id, entries)

    async def get_history(self, room_id: str, limit: int | None = None) -> list[QueueEntry]:
        return await self._repo.list_history(room_id, limit or self._history_limit)

    async def search(self, query: str, limit: int | None = None) -> list[ResolvedTrack]:
        query = (query or "").strip()
        if not query:
            return []
        try:
            async with asyncio.timeout(self._resolve_timeout):
                return await self._resolver.search(query, limit or self._search_limit)
        except TimeoutError as exc:
            raise ResolverUnavailableError(query, ErrorMessages.RESOLUTION_TIMEOUT.format(query=query)) from exc
        except Exception as exc:
            logger.exception(LogTemplates.QUEUE_SEARCH_FAILED, query)
            raise ResolverUnavailableError(
                query, ErrorMessages.RESOLUTION_FAILED.format(query=query, error=exc)
            ) from exc
