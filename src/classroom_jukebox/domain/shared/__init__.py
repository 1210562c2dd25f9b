"""
Shared Domain Kernel

Contains types, messages and exceptions shared across all bounded contexts.
"""

from classroom_jukebox.domain.shared.exceptions import (
    BusinessRuleViolationError,
    ConcurrencyError,
    CoordinationError,
    DomainError,
    EntityNotFoundError,
    InvalidOperationError,
    NotAuthorizedError,
    ResolverUnavailableError,
    SubmissionRejectedError,
    TrackNotFoundError,
    ValidationError,
)

__all__ = [
    "DomainError",
    "ValidationError",
    "EntityNotFoundError",
    "BusinessRuleViolationError",
    "ConcurrencyError",
    "InvalidOperationError",
    "TrackNotFoundError",
    "SubmissionRejectedError",
    "CoordinationError",
    "NotAuthorizedError",
    "ResolverUnavailableError",
]
