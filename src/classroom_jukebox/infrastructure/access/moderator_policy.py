"""AccessPolicy driven by a configured moderator list."""

from __future__ import annotations

from typing import TYPE_CHECKING

from classroom_jukebox.application.interfaces.access_policy import AccessPolicy
from classroom_jukebox.domain.jukebox.value_objects import EntryStatus

if TYPE_CHECKING:
    from ...config.settings import AccessSettings
    from ...domain.jukebox.entities import QueueEntry


class ModeratorAccessPolicy(AccessPolicy):
    """Moderators may remove and skip anything.

    With no moderators configured and `open_room` set, every user may do
    both, which matches a classroom where everyone shares the controls.
    Submitters may additionally pull their own entry while it is still
    waiting, if `allow_self_removal` is set.
    """

    def __init__(self, settings: AccessSettings) -> None:
        self._moderators = frozenset(settings.moderator_ids)
        self._allow_self_removal = settings.allow_self_removal
        self._open_room = settings.open_room

    def is_moderator(self, user_id: str) -> bool:
        if not self._moderators:
            return self._open_room
        return user_id in self._moderators

    def can_remove(self, entry: QueueEntry, requested_by: str) -> bool:
        if self.is_moderator(requested_by):
            return True
        return (
            self._allow_self_removal
            and entry.was_submitted_by(requested_by)
            and entry.status is EntryStatus.QUEUED
        )

    def can_skip(self, room_id: str, requested_by: str) -> bool:
        return self.is_moderator(requested_by)
