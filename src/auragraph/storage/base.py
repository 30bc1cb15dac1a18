"""Abstract edge storage interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class EdgeStore(ABC):
    """Storage for directed user edges.

    Implementations perform one atomic statement per call, never retry, and
    raise ``TransientStorageError`` or ``ConstraintViolation`` instead of
    driver exceptions.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indexes. Idempotent."""

    @abstractmethod
    async def close(self) -> None:
        """Close all connections."""

    # --- Edge writes ---

    @abstractmethod
    async def insert_edge(self, edge: dict[str, Any]) -> dict[str, Any]:
        """Insert an edge. Raises DuplicateEdge if the pair exists."""

    @abstractmethod
    async def delete_edge(self, source_user_id: int, target_user_id: int) -> bool:
        """Delete an edge. Returns True if one was removed."""

    @abstractmethod
    async def record_interaction(
        self, source_user_id: int, target_user_id: int, delta: float, at: str
    ) -> dict[str, Any]:
        """Atomically add delta to the edge weight, creating the edge if absent."""

    @abstractmethod
    async def apply_weight_decay(self, factor: float, floor: float, at: str) -> int:
        """Scale weights above floor by factor. Returns the number of edges touched."""

    # --- Edge reads ---

    @abstractmethod
    async def get_edge(self, source_user_id: int, target_user_id: int) -> dict[str, Any] | None:
        """Get one directed edge."""

    @abstractmethod
    async def list_outgoing(
        self, source_user_id: int, *, limit: int = 50, offset: int = 0
    ) -> list[dict[str, Any]]:
        """Edges from a user, heaviest then newest first."""

    @abstractmethod
    async def list_incoming(
        self, target_user_id: int, *, limit: int = 50, offset: int = 0
    ) -> list[dict[str, Any]]:
        """Edges to a user, heaviest then newest first."""

    @abstractmethod
    async def outgoing_ids(self, source_user_id: int) -> set[int]:
        """All target ids of a user's outgoing edges."""

    @abstractmethod
    async def list_mutual(self, user_a: int, user_b: int) -> list[int]:
        """Ids followed by both users, ascending."""

    @abstractmethod
    async def list_mutual_followers(self, user_a: int, user_b: int) -> list[int]:
        """Ids following both users, ascending."""

    @abstractmethod
    async def second_degree_paths(
        self, user_id: int, *, first_degree_cap: int, fanout_cap: int
    ) -> list[dict[str, Any]]:
        """Two-hop paths ``user -> via -> candidate`` with both edge weights."""

    @abstractmethod
    async def popular_targets(
        self, *, exclude: set[int], limit: int = 20
    ) -> list[dict[str, Any]]:
        """Most-followed users outside ``exclude``."""

    @abstractmethod
    async def following_among(self, source_user_id: int, target_user_ids: list[int]) -> set[int]:
        """Subset of targets the source follows."""

    @abstractmethod
    async def count_following(self, user_id: int) -> int:
        """Count outgoing edges."""

    @abstractmethod
    async def count_followers(self, user_id: int) -> int:
        """Count incoming edges."""

    @abstractmethod
    async def count_edges(self) -> int:
        """Count all edges."""

    # --- Aggregate cache ---

    @abstractmethod
    async def get_aggregate(self, user_id: int) -> dict[str, Any] | None:
        """Cached counts for a user, if present."""

    @abstractmethod
    async def aggregate_generation(self, user_id: int) -> int:
        """Invalidation generation for a user, 0 if never invalidated."""

    @abstractmethod
    async def put_aggregate(self, aggregate: dict[str, Any], generation: int) -> bool:
        """Store counts unless the user was invalidated since ``generation`` was read."""

    @abstractmethod
    async def invalidate_aggregates(self, user_ids: list[int]) -> int:
        """Bump generations and drop cached counts. Returns the number of entries removed."""

    # --- Sequences ---

    @abstractmethod
    async def next_sequence(self, name: str) -> int:
        """Atomically increment and return a named counter, starting at 1."""

    # --- Admin ---

    @abstractmethod
    async def list_indexes(self) -> list[dict[str, Any]]:
        """Indexes on the edge table."""

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        """Graph statistics."""
