"""Reusable Pydantic Annotated types for domain-wide validation.

Every constrained type used across the project is defined here once,
so models can simply annotate their fields::

    from classroom_jukebox.domain.shared.types import RoomIdStr, UserIdStr

    class MyModel(BaseModel):
        room_id: RoomIdStr
        submitted_by: UserIdStr
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from pydantic import AfterValidator, BeforeValidator, Field

# ── Numeric constraints ─────────────────────────────────────────────

NonNegativeInt = Annotated[int, Field(ge=0)]
"""Integer >= 0."""

PositiveInt = Annotated[int, Field(gt=0)]
"""Integer > 0."""

NonNegativeFloat = Annotated[float, Field(ge=0.0)]
"""Float >= 0.0."""

EntryId = Annotated[int, Field(gt=0)]
"""Store-assigned queue entry identifier."""

ChangeSeq = Annotated[int, Field(gt=0)]
"""Monotonic change-feed sequence number."""


# ── String constraints ──────────────────────────────────────────────

def _strip(v: object) -> object:
    return v.strip() if isinstance(v, str) else v


NonEmptyStr = Annotated[str, Field(min_length=1)]
"""String with at least one character."""

RoomIdStr = Annotated[str, BeforeValidator(_strip), Field(min_length=1, max_length=128)]
"""Room (class/group) identifier; surrounding whitespace is dropped."""

UserIdStr = Annotated[str, BeforeValidator(_strip), Field(min_length=1, max_length=128)]
"""User identifier; surrounding whitespace is dropped."""

MediaRefStr = Annotated[str, Field(min_length=1, max_length=2048)]
"""Opaque playable locator returned by a track resolver."""

TrackTitleStr = Annotated[str, Field(min_length=1, max_length=500)]
"""Track title: 1-500 characters."""

HttpUrlStr = Annotated[str, Field(pattern=r"^https?://")]
"""String that starts with http:// or https://."""


# ── Query constraints ───────────────────────────────────────────────

HistoryLimit = Annotated[int, Field(ge=1, le=100)]
"""Number of finished entries shown in a room's history: 1 … 100."""


# ── Datetime constraints ────────────────────────────────────────────

def _ensure_utc(v: datetime) -> datetime:
    """Validate that a datetime is timezone-aware and normalise to UTC."""
    if v.tzinfo is None:
        raise ValueError("datetime must be timezone-aware (UTC)")
    return v.astimezone(UTC)


UtcDatetimeField = Annotated[datetime, AfterValidator(_ensure_utc)]
"""Timezone-aware datetime, normalised to UTC on input."""
