"""Social graph service: follows, interaction weights, mutuals and suggestions."""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime
from typing import Any

from auragraph.config import Config
from auragraph.errors import DuplicateEdge, InvalidArgument, NotFound
from auragraph.events.bus import EventBus
from auragraph.events.types import (
    DecayEvent,
    EdgeEvent,
    EventType,
    InteractionEvent,
    InvalidationEvent,
)
from auragraph.models.edge import Edge
from auragraph.models.relationship import Relationship, Suggestion, UserCounts
from auragraph.storage.base import EdgeStore

logger = logging.getLogger(__name__)

USER_ID_SEQUENCE = "user_id"


def _check_user_id(value: Any, name: str = "user_id") -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgument(f"{name} must be a positive integer, got {value!r}")
    return value


def _check_pair(source_user_id: Any, target_user_id: Any) -> tuple[int, int]:
    source = _check_user_id(source_user_id, "source_user_id")
    target = _check_user_id(target_user_id, "target_user_id")
    if source == target:
        raise InvalidArgument(f"User {source} cannot relate to themselves")
    return source, target


def _check_page(limit: int, offset: int) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise InvalidArgument(f"limit must be >= 1, got {limit!r}")
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        raise InvalidArgument(f"offset must be >= 0, got {offset!r}")


class SocialGraph:
    """Graph operations over an edge store.

    Validation happens here, before storage is touched. Transient storage
    errors propagate unchanged so callers can retry them.
    """

    def __init__(
        self, store: EdgeStore, event_bus: EventBus, config: Config | None = None
    ) -> None:
        self.store = store
        self.bus = event_bus
        self.config = config or Config()
        self.bus.on_edge_change(self._invalidate_aggregates)

    # --- Follow / unfollow ---

    async def follow(self, source_user_id: int, target_user_id: int) -> Edge:
        """Create the edge ``source -> target``. Following twice is a no-op."""
        source, target = _check_pair(source_user_id, target_user_id)
        edge = Edge(
            source_user_id=source,
            target_user_id=target,
            interaction_weight=self.config.initial_follow_weight,
        )
        try:
            await self.store.insert_edge(edge.to_storage())
        except DuplicateEdge:
            logger.debug("Already following: %s -> %s", source, target)
            existing = await self.store.get_edge(source, target)
            return Edge.from_row(existing) if existing else edge

        await self.bus.emit(
            EventType.EDGE_CREATED, EdgeEvent(source_user_id=source, target_user_id=target)
        )
        return edge

    async def unfollow(self, source_user_id: int, target_user_id: int) -> bool:
        """Remove the edge if present. Returns whether anything was removed."""
        source, target = _check_pair(source_user_id, target_user_id)
        removed = await self.store.delete_edge(source, target)
        if removed:
            await self.bus.emit(
                EventType.EDGE_DELETED, EdgeEvent(source_user_id=source, target_user_id=target)
            )
        else:
            logger.debug("Unfollow of absent edge: %s -> %s", source, target)
        return removed

    # --- Listings ---

    async def following(self, user_id: int, *, limit: int = 50, offset: int = 0) -> list[Edge]:
        _check_user_id(user_id)
        _check_page(limit, offset)
        rows = await self.store.list_outgoing(user_id, limit=limit, offset=offset)
        return [Edge.from_row(row) for row in rows]

    async def followers(self, user_id: int, *, limit: int = 50, offset: int = 0) -> list[Edge]:
        _check_user_id(user_id)
        _check_page(limit, offset)
        rows = await self.store.list_incoming(user_id, limit=limit, offset=offset)
        return [Edge.from_row(row) for row in rows]

    async def relationship(self, user_id: int, other_user_id: int) -> Relationship:
        a, b = _check_pair(user_id, other_user_id)
        outgoing = await self.store.get_edge(a, b)
        incoming = await self.store.get_edge(b, a)
        return Relationship(
            user_id=a,
            other_user_id=b,
            outgoing=Edge.from_row(outgoing) if outgoing else None,
            incoming=Edge.from_row(incoming) if incoming else None,
        )

    async def edge(self, source_user_id: int, target_user_id: int) -> Edge:
        """The edge ``source -> target``. Raises NotFound if absent."""
        source, target = _check_pair(source_user_id, target_user_id)
        row = await self.store.get_edge(source, target)
        if not row:
            raise NotFound(f"No edge {source} -> {target}")
        return Edge.from_row(row)

    async def mutual(self, user_a: int, user_b: int) -> list[int]:
        """Users followed by both ``user_a`` and ``user_b``."""
        _check_user_id(user_a, "user_a")
        _check_user_id(user_b, "user_b")
        return await self.store.list_mutual(user_a, user_b)

    async def mutual_followers(self, user_a: int, user_b: int) -> list[int]:
        """Users following both ``user_a`` and ``user_b``."""
        _check_user_id(user_a, "user_a")
        _check_user_id(user_b, "user_b")
        return await self.store.list_mutual_followers(user_a, user_b)

    async def bulk_check_following(
        self, source_user_id: int, target_user_ids: list[int]
    ) -> dict[int, bool]:
        source = _check_user_id(source_user_id, "source_user_id")
        targets = [_check_user_id(t, "target_user_id") for t in target_user_ids]
        followed = await self.store.following_among(source, targets)
        return {t: t in followed for t in targets}

    # --- Interactions ---

    async def record_interaction(
        self, source_user_id: int, target_user_id: int, delta: float
    ) -> Edge:
        """Atomically add ``delta`` to the edge weight, creating the edge if absent."""
        source, target = _check_pair(source_user_id, target_user_id)
        if (
            isinstance(delta, bool)
            or not isinstance(delta, int | float)
            or not math.isfinite(delta)
            or delta <= 0
        ):
            raise InvalidArgument(f"delta must be a positive finite number, got {delta!r}")

        now = datetime.now(UTC).isoformat()
        row = await self.store.record_interaction(source, target, float(delta), now)
        await self.bus.emit(
            EventType.INTERACTION_RECORDED,
            InteractionEvent(source_user_id=source, target_user_id=target, delta=float(delta)),
        )
        return Edge.from_row(row)

    async def record_event(
        self, source_user_id: int, target_user_id: int, interaction_type: str
    ) -> Edge:
        """Record a like, comment, message, share or mention."""
        delta = self.config.weight_for(interaction_type)
        if delta is None:
            valid = ", ".join(sorted(self.config.interaction_weights))
            raise InvalidArgument(
                f"Unknown interaction type {interaction_type!r}. Must be one of: {valid}"
            )
        return await self.record_interaction(source_user_id, target_user_id, delta)

    async def decay_weights(
        self, *, factor: float | None = None, floor: float | None = None
    ) -> int:
        """Scale every weight above ``floor`` by ``factor``. Administrative, run periodically."""
        factor = self.config.decay_factor if factor is None else factor
        floor = self.config.decay_floor if floor is None else floor
        if not 0 < factor <= 1:
            raise InvalidArgument(f"factor must be in (0, 1], got {factor!r}")
        if floor < 0:
            raise InvalidArgument(f"floor must be >= 0, got {floor!r}")

        touched = await self.store.apply_weight_decay(
            factor, floor, datetime.now(UTC).isoformat()
        )
        logger.info("Decayed %d edge weights (factor=%s, floor=%s)", touched, factor, floor)
        await self.bus.emit(EventType.WEIGHTS_DECAYED, DecayEvent(edges=touched, factor=factor))
        return touched

    # --- Suggestions ---

    async def suggest(self, user_id: int, *, limit: int = 20) -> list[Suggestion]:
        """Rank second-degree connections of ``user_id``.

        A candidate's score is the sum, over every ``user -> via -> candidate``
        path, of both edge weights. Ties fall back to the most recent
        interaction on any connecting edge, then to the lower user id. The
        user and everyone they already follow are never suggested.
        """
        _check_user_id(user_id)
        _check_page(limit, 0)

        excluded = await self.store.outgoing_ids(user_id)
        excluded.add(user_id)

        paths = await self.store.second_degree_paths(
            user_id,
            first_degree_cap=self.config.suggestion_first_degree_cap,
            fanout_cap=self.config.suggestion_fanout_cap,
        )

        candidates: dict[int, dict[str, Any]] = {}
        for path in paths:
            candidate_id = path["candidate_id"]
            if candidate_id in excluded:
                continue
            entry = candidates.setdefault(candidate_id, {"score": 0.0, "paths": [], "latest": ""})
            path_weight = path["first_weight"] + path["second_weight"]
            entry["score"] += path_weight
            entry["paths"].append((path_weight, path["via_user_id"]))
            entry["latest"] = max(entry["latest"], path["first_at"], path["second_at"])

        if not candidates:
            if self.config.suggestion_fallback_popular:
                return await self._popular_suggestions(excluded, limit)
            return []

        suggestions = []
        for candidate_id, entry in candidates.items():
            ranked_paths = sorted(entry["paths"], key=lambda p: (-p[0], p[1]))
            mutual_count = len(ranked_paths)
            suggestions.append(
                Suggestion(
                    user_id=candidate_id,
                    score=round(entry["score"], 9),
                    mutual_count=mutual_count,
                    via=[via for _, via in ranked_paths[:3]],
                    last_interaction_at=entry["latest"],
                    reason=(
                        f"{mutual_count} mutual connections"
                        if mutual_count > 1
                        else "Followed by someone you follow"
                    ),
                )
            )

        # Stable sorts, least significant key first
        suggestions.sort(key=lambda s: s.user_id)
        suggestions.sort(key=lambda s: s.last_interaction_at or "", reverse=True)
        suggestions.sort(key=lambda s: s.score, reverse=True)
        return suggestions[:limit]

    async def _popular_suggestions(self, excluded: set[int], limit: int) -> list[Suggestion]:
        rows = await self.store.popular_targets(exclude=excluded, limit=limit)
        return [
            Suggestion(
                user_id=row["user_id"],
                score=0.0,
                last_interaction_at=row["last_interaction_at"],
                reason=f"Popular: {row['followers_count']} followers",
            )
            for row in rows
        ]

    # --- Aggregates ---

    async def counts(self, user_id: int) -> UserCounts:
        """Follower/following counts, served from the aggregate cache when fresh."""
        _check_user_id(user_id)
        cached = await self.store.get_aggregate(user_id)
        if cached:
            return UserCounts(**cached)

        # Read before counting so an invalidation racing the counts voids the write
        generation = await self.store.aggregate_generation(user_id)
        counts = UserCounts(
            user_id=user_id,
            followers_count=await self.store.count_followers(user_id),
            following_count=await self.store.count_following(user_id),
            computed_at=datetime.now(UTC).isoformat(),
        )
        await self.store.put_aggregate(counts.model_dump(), generation)
        return counts

    async def _invalidate_aggregates(self, event_type: EventType, data: EdgeEvent) -> None:
        user_ids = [data["source_user_id"], data["target_user_id"]]
        removed = await self.store.invalidate_aggregates(user_ids)
        if removed:
            await self.bus.emit(
                EventType.AGGREGATES_INVALIDATED,
                InvalidationEvent(user_ids=user_ids, cause=str(event_type)),
            )

    # --- Admin ---

    async def allocate_user_id(self) -> int:
        """Next user id from the atomic ``user_id`` sequence."""
        return await self.store.next_sequence(USER_ID_SEQUENCE)

    async def stats(self) -> dict[str, Any]:
        return await self.store.get_stats()
