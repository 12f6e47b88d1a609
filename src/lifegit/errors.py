"""Error taxonomy shared by the storage layer and the domain managers."""

from __future__ import annotations

__all__ = [
    "CreationFailedError",
    "DeletionFailedError",
    "LifeGitError",
    "NotFoundError",
    "PersistenceError",
    "QueryFailedError",
    "UpdateFailedError",
    "ValidationError",
]


class LifeGitError(RuntimeError):
    """Base error raised by LifeGit components."""


class ValidationError(LifeGitError):
    """Raised when a record or request violates a domain rule."""


class NotFoundError(LifeGitError):
    """Raised when an entity cannot be located by identifier."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class PersistenceError(LifeGitError):
    """Base class for storage failures; always chained to the underlying cause."""

    action = "access"

    def __init__(self, entity: str, detail: str) -> None:
        super().__init__(f"Failed to {self.action} {entity}: {detail}")
        self.entity = entity
        self.detail = detail


class CreationFailedError(PersistenceError):
    action = "create"


class UpdateFailedError(PersistenceError):
    action = "update"


class DeletionFailedError(PersistenceError):
    action = "delete"


class QueryFailedError(PersistenceError):
    action = "query"
