"""Base exception classes for domain-level errors."""

from __future__ import annotations


class DomainError(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class ValidationError(DomainError):
    """Raised when domain validation fails."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field


class EntityNotFoundError(DomainError):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, identifier: str | int, message: str | None = None) -> None:
        msg = message or f"{entity_type} with id '{identifier}' not found"
        super().__init__(msg, code="ENTITY_NOT_FOUND")
        self.entity_type = entity_type
        self.identifier = identifier


class BusinessRuleViolationError(DomainError):
    """Raised when a business rule is violated."""

    def __init__(self, rule: str, message: str | None = None) -> None:
        msg = message or f"Business rule violated: {rule}"
        super().__init__(msg, code="BUSINESS_RULE_VIOLATION")
        self.rule = rule


class ConcurrencyError(DomainError):
    """Raised when a concurrent modification conflict occurs.

    Store adapters raise this for conditional updates that matched no row,
    constraint violations and busy/locked databases. It is always transient.
    """

    def __init__(self, entity_type: str, message: str | None = None) -> None:
        msg = message or f"Concurrent modification detected for {entity_type}"
        super().__init__(msg, code="CONCURRENCY_ERROR")
        self.entity_type = entity_type


class InvalidOperationError(DomainError):
    """Raised when an operation is invalid in the current state."""

    def __init__(self, operation: str, current_state: str, message: str | None = None) -> None:
        msg = message or f"Cannot perform '{operation}' in state '{current_state}'"
        super().__init__(msg, code="INVALID_OPERATION")
        self.operation = operation
        self.current_state = current_state


class TrackNotFoundError(DomainError):
    """Raised by a track resolver when a query has no playable match."""

    def __init__(self, query: str, message: str | None = None) -> None:
        msg = message or f"No track found for '{query}'"
        super().__init__(msg, code="TRACK_NOT_FOUND")
        self.query = query


class SubmissionRejectedError(DomainError):
    """Raised when a song request cannot be accepted.

    User-correctable: resolution failed, timed out, the input was malformed
    or an optional submission limit was hit. Nothing was written.
    """

    def __init__(self, message: str, reason: str = "rejected") -> None:
        super().__init__(message, code="SUBMISSION_REJECTED")
        self.reason = reason


class CoordinationError(DomainError):
    """Raised when a queue transition could not be applied after one retry.

    The caller should re-fetch room state rather than assume the transition
    happened.
    """

    def __init__(self, operation: str, room_id: str, message: str | None = None) -> None:
        msg = message or f"Could not apply '{operation}' to room '{room_id}'; refresh and retry"
        super().__init__(msg, code="COORDINATION_ERROR")
        self.operation = operation
        self.room_id = room_id


class NotAuthorizedError(DomainError):
    """Raised when a caller lacks the capability for an operation."""

    def __init__(self, operation: str, user_id: str, message: str | None = None) -> None:
        msg = message or f"User '{user_id}' is not allowed to {operation}"
        super().__init__(msg, code="NOT_AUTHORIZED")
        self.operation = operation
        self.user_id = user_id


class ResolverUnavailableError(DomainError):
    """Raised when the track resolver timed out or failed outside a submission."""

    def __init__(self, query: str, message: str) -> None:
        super().__init__(message, code="RESOLVER_UNAVAILABLE")
        self.query = query
