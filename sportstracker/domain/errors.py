"""
Typed domain errors for the sports tracker.

Callers distinguish specific failure modes (bad input vs. duplicate
username vs. unknown user) and map each to an appropriate user-facing
message instead of checking for None.
"""


class DomainError(Exception):
    """Base class for all domain-specific errors."""


class ValidationError(DomainError):
    """Input rejected before any mutation (negative penalty, empty name...)."""


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class ConflictError(DomainError):
    """The write would violate a uniqueness rule."""


class UsernameTaken(ConflictError):
    """A user with the same username (case-insensitive) already exists."""

    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(f"Username '{username}' is already taken")


class CoachAlreadyExists(ConflictError):
    """Only one coach may exist."""

    def __init__(self, coach_id: str) -> None:
        self.coach_id = coach_id
        super().__init__(f"A coach already exists (user {coach_id})")


# ---------------------------------------------------------------------------
# Lookups and permissions
# ---------------------------------------------------------------------------


class NotFoundError(DomainError):
    """Referenced record does not exist."""


class UserNotFound(NotFoundError):
    """User with the given ID does not exist."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class NotAuthorized(DomainError):
    """Action requires a logged-in user or the coach role."""


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class StorageError(DomainError):
    """A stored record could not be read, decoded or written."""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Storage failure for '{key}': {reason}")


class ExternalServiceError(DomainError):
    """A call to an external collaborator failed."""


class TipGenerationFailure(ExternalServiceError):
    """LLM provider returned an error, an empty reply, or timed out."""
