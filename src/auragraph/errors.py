"""Error taxonomy for the social graph.

Callers branch on these types: ``InvalidArgument`` is rejected before reaching
storage and never retried, ``ConstraintViolation`` and ``NotFound`` are treated
as no-ops by follow/unfollow, ``TransientStorageError`` is retryable.
"""

from __future__ import annotations


class GraphError(Exception):
    """Base class for all social graph errors."""


class InvalidArgument(GraphError, ValueError):
    """Raised for self-edges, malformed user ids and bad parameters."""


class ConstraintViolation(GraphError):
    """Raised when a write violates a storage constraint."""


class DuplicateEdge(ConstraintViolation):
    """Raised when an edge for the ordered pair already exists."""

    def __init__(self, source_user_id: int, target_user_id: int) -> None:
        super().__init__(f"Edge already exists: {source_user_id} -> {target_user_id}")
        self.source_user_id = source_user_id
        self.target_user_id = target_user_id


class NotFound(GraphError):
    """Raised when a required edge does not exist."""


class TransientStorageError(GraphError):
    """Raised for connectivity, lock and timeout failures. Safe to retry."""
