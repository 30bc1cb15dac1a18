"""FastMCP server: graph and admin tools, one status resource."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any, Literal, TypeVar

from fastmcp import FastMCP
from pydantic import Field

from auragraph.config import Config
from auragraph.core.graph import SocialGraph
from auragraph.core.retry import with_retry
from auragraph.errors import InvalidArgument, TransientStorageError
from auragraph.events.bus import EventBus
from auragraph.storage.sqlite_store import SQLiteEdgeStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _json(data: dict[str, Any]) -> str:
    return json.dumps(data, default=str)


def _ok(data: dict[str, Any]) -> str:
    """Return a versioned JSON success response."""
    return _json({**data, "_v": "1.0"})


def _err(msg: str, *, retryable: bool = False) -> str:
    """Return a versioned JSON error response."""
    return _json({"_v": "1.0", "error": msg, "retryable": retryable})


def _page(total: int, limit: int, offset: int, returned: int) -> dict[str, Any]:
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "hasMore": offset + returned < total,
    }


def create_server(db_path: str, config: Config | None = None) -> FastMCP:
    """Create the FastMCP server backed by the edge store at ``db_path``."""
    config = config or Config()
    mcp = FastMCP("auragraph", version="0.1.0")

    state: dict[str, Any] = {}
    _lock = asyncio.Lock()

    async def _init() -> SocialGraph:
        async with _lock:
            if "init_failed" in state:
                raise RuntimeError(f"auragraph init previously failed for {db_path}")
            if "graph" not in state:
                try:
                    store = SQLiteEdgeStore(Path(db_path), wal_mode=config.wal_mode)
                    await store.initialize()
                except Exception as e:
                    state["init_failed"] = True
                    logger.error("Failed to initialize database: %s", e)
                    raise RuntimeError(f"auragraph init failed: {db_path}") from e
                state["store"] = store
                state["graph"] = SocialGraph(store, EventBus(), config)
        return state["graph"]

    async def _call(operation: Callable[[], Awaitable[T]]) -> T:
        return await with_retry(
            operation, attempts=config.retry_attempts, base_delay=config.retry_base_delay
        )

    # ── sg_graph ──────────────────────────────────────────────

    @mcp.tool()
    async def sg_graph(
        action: Annotated[
            Literal[
                "follow",
                "unfollow",
                "followers",
                "following",
                "relationship",
                "mutual",
                "mutual_followers",
                "interact",
                "suggest",
                "counts",
            ],
            Field(description="Graph action to perform"),
        ],
        user_id: Annotated[
            int,
            Field(description="Acting or queried user ID", ge=1),
        ],
        target_id: Annotated[
            int | None,
            Field(description="Other user ID (follow, unfollow, relationship, mutual, interact)"),
        ] = None,
        interaction_type: Annotated[
            str | None,
            Field(description="like | comment | message | share | mention (interact)"),
        ] = None,
        limit: Annotated[
            int | None,
            Field(description="Page size (followers, following, suggest)", ge=1),
        ] = None,
        offset: Annotated[
            int,
            Field(description="Pagination offset (followers, following)", ge=0),
        ] = 0,
    ) -> str:
        """Follow, list, compare and rank users in the social graph.

Actions: follow/unfollow (idempotent), followers/following (paginated), relationship (both directions and strength), mutual (common follows), mutual_followers, interact (record a weighted interaction), suggest (ranked second-degree users), counts."""  # noqa: E501
        try:
            graph = await _init()
        except RuntimeError as e:
            return _err(str(e))
        page_size = config.clamp_limit(limit)

        try:
            if action in ("follow", "unfollow", "relationship", "mutual",
                          "mutual_followers", "interact") and target_id is None:
                return _err(f"target_id is required for {action}")

            if action == "follow":
                edge = await _call(lambda: graph.follow(user_id, target_id))
                return _ok({
                    "following": True,
                    "sourceUserId": user_id,
                    "targetUserId": target_id,
                    "since": edge.created_at,
                })

            if action == "unfollow":
                removed = await _call(lambda: graph.unfollow(user_id, target_id))
                return _ok({
                    "following": False,
                    "sourceUserId": user_id,
                    "targetUserId": target_id,
                    "removed": removed,
                })

            if action in ("followers", "following"):
                if action == "followers":
                    edges = await _call(
                        lambda: graph.followers(user_id, limit=page_size, offset=offset)
                    )
                    direction = "incoming"
                else:
                    edges = await _call(
                        lambda: graph.following(user_id, limit=page_size, offset=offset)
                    )
                    direction = "outgoing"
                counts = await _call(lambda: graph.counts(user_id))
                total = (
                    counts.followers_count if action == "followers" else counts.following_count
                )
                return _ok({
                    "items": [e.to_response(direction=direction) for e in edges],
                    "pagination": _page(total, page_size, offset, len(edges)),
                })

            if action == "relationship":
                rel = await _call(lambda: graph.relationship(user_id, target_id))
                return _ok(rel.to_response())

            if action == "mutual":
                ids = await _call(lambda: graph.mutual(user_id, target_id))
                return _ok({"count": len(ids), "userIds": ids})

            if action == "mutual_followers":
                ids = await _call(lambda: graph.mutual_followers(user_id, target_id))
                return _ok({"count": len(ids), "userIds": ids})

            if action == "interact":
                if not interaction_type:
                    return _err("interaction_type is required for interact")
                edge = await _call(
                    lambda: graph.record_event(user_id, target_id, interaction_type)
                )
                return _ok({
                    "sourceUserId": user_id,
                    "targetUserId": target_id,
                    "interactionType": interaction_type,
                    "weight": round(edge.interaction_weight, 4),
                    "recordedAt": edge.last_interaction_at,
                })

            if action == "suggest":
                suggest_limit = config.clamp_limit(limit, config.suggestion_limit_default)
                suggestions = await _call(lambda: graph.suggest(user_id, limit=suggest_limit))
                return _ok({
                    "count": len(suggestions),
                    "suggestions": [s.to_response() for s in suggestions],
                })

            if action == "counts":
                counts = await _call(lambda: graph.counts(user_id))
                return _ok({
                    "userId": user_id,
                    "followers": counts.followers_count,
                    "following": counts.following_count,
                })
        except InvalidArgument as e:
            return _err(str(e))
        except TransientStorageError as e:
            return _err(f"Storage unavailable: {e}", retryable=True)

        return _err(f"Unknown action: {action}")

    # ── sg_admin ──────────────────────────────────────────────

    @mcp.tool()
    async def sg_admin(
        action: Annotated[
            Literal["stats", "indexes", "decay"],
            Field(description="stats | indexes | decay"),
        ],
        factor: Annotated[
            float | None,
            Field(description="Decay multiplier in (0, 1] (decay)", gt=0.0, le=1.0),
        ] = None,
    ) -> str:
        """Graph statistics, index listing and periodic weight decay."""
        try:
            graph = await _init()
        except RuntimeError as e:
            return _err(str(e))

        try:
            if action == "stats":
                return _ok(await _call(graph.stats))
            if action == "indexes":
                indexes = await _call(graph.store.list_indexes)
                return _ok({"count": len(indexes), "indexes": indexes})
            if action == "decay":
                touched = await _call(lambda: graph.decay_weights(factor=factor))
                return _ok({"decayed": touched})
        except InvalidArgument as e:
            return _err(str(e))
        except TransientStorageError as e:
            return _err(f"Storage unavailable: {e}", retryable=True)

        return _err(f"Unknown action: {action}")

    # ── Resources ─────────────────────────────────────────────

    @mcp.resource("sg://status")
    async def sg_resource_status() -> str:
        """Graph overview."""
        try:
            graph = await _init()
        except RuntimeError as e:
            return _err(str(e))
        return _ok(await _call(graph.stats))

    return mcp
