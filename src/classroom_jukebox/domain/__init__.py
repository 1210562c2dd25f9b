"""
Domain Layer

Contains pure business logic organized by bounded contexts:
- shared/: Cross-cutting types, messages and exceptions
- jukebox/: Queue entries, room state and transition rules
"""

from classroom_jukebox.domain.shared.exceptions import DomainError

__all__ = [
    "DomainError",
]
