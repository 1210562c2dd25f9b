"""Date/time helpers.

Goal: centralize all date/time serialization + parsing.

- Always store and operate on timezone-aware UTC datetimes.
- Store timestamps as fixed-width ISO strings so lexical order in SQLite
  matches chronological order.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from classroom_jukebox.domain.shared.messages import ErrorMessages


@dataclass(frozen=True, slots=True)
class UtcDateTime:
    """A tiny value-object wrapper around a timezone-aware UTC `datetime`."""

    dt: datetime

    def __post_init__(self) -> None:
        if self.dt.tzinfo is None:
            raise ValueError(ErrorMessages.TIMEZONE_REQUIRED_UTC_DATETIME)
        # Normalize to UTC
        object.__setattr__(self, "dt", self.dt.astimezone(UTC))

    # ---- Constructors ----

    @classmethod
    def now(cls) -> UtcDateTime:
        return cls(datetime.now(UTC))

    @classmethod
    def from_iso(cls, value: str) -> UtcDateTime:
        # Accepts: '...+00:00' or '...Z'
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return cls(datetime.fromisoformat(value))

    # ---- Computed fields / formats ----

    @property
    def iso(self) -> str:
        """ISO8601 with microseconds and explicit offset, always the same width."""
        return self.dt.isoformat(timespec="microseconds")

    @property
    def human_utc(self) -> str:
        return self.dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def utcnow() -> datetime:
    """Preferred replacement for `datetime.now(UTC)`.

    Returns a timezone-aware datetime in UTC.
    """
    return datetime.now(UTC)


def to_iso(value: datetime | None) -> str | None:
    return UtcDateTime(value).iso if value is not None else None


def from_iso(value: str | None) -> datetime | None:
    return UtcDateTime.from_iso(value).dt if value else None
