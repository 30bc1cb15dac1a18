"""SQLite edge store with WAL mode and compound indexes."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from auragraph.errors import ConstraintViolation, DuplicateEdge, TransientStorageError
from auragraph.storage.base import EdgeStore

logger = logging.getLogger(__name__)

_EDGE_COLUMNS = (
    "source_user_id, target_user_id, interaction_weight,"
    " last_interaction_at, created_at, updated_at"
)


@contextmanager
def _storage_errors(pair: tuple[int, int] | None = None) -> Iterator[None]:
    """Translate driver exceptions into the graph error taxonomy."""
    try:
        yield
    except sqlite3.IntegrityError as e:
        if pair and "UNIQUE" in str(e):
            raise DuplicateEdge(*pair) from e
        raise ConstraintViolation(str(e)) from e
    except (sqlite3.DatabaseError, OSError) as e:
        raise TransientStorageError(str(e)) from e


class SQLiteEdgeStore(EdgeStore):
    """Edge store on a single aiosqlite connection.

    The connection runs in autocommit mode, so every statement is its own
    transaction and concurrent callers never share a pending write.
    """

    def __init__(self, db_path: Path, *, wal_mode: bool = True) -> None:
        self.db_path = db_path
        self.wal_mode = wal_mode
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Create database, tables and indexes."""
        with _storage_errors():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            if self._db is None:
                self._db = await aiosqlite.connect(str(self.db_path), isolation_level=None)
                self._db.row_factory = aiosqlite.Row

            if self.wal_mode:
                await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("PRAGMA busy_timeout=5000")

            await self._db.executescript(_load_sql("graph.sql"))
        logger.info("Initialized edge store at %s", self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Store not initialized. Call initialize() first.")
        return self._db

    # --- Edge writes ---

    async def insert_edge(self, edge: dict[str, Any]) -> dict[str, Any]:
        pair = (edge["source_user_id"], edge["target_user_id"])
        with _storage_errors(pair):
            await self.db.execute(
                f"""INSERT INTO edges ({_EDGE_COLUMNS})
                   VALUES (:source_user_id, :target_user_id, :interaction_weight,
                   :last_interaction_at, :created_at, :updated_at)""",
                edge,
            )
        return edge

    async def delete_edge(self, source_user_id: int, target_user_id: int) -> bool:
        with _storage_errors():
            cursor = await self.db.execute(
                "DELETE FROM edges WHERE source_user_id = ? AND target_user_id = ?",
                (source_user_id, target_user_id),
            )
        return cursor.rowcount > 0

    async def record_interaction(
        self, source_user_id: int, target_user_id: int, delta: float, at: str
    ) -> dict[str, Any]:
        with _storage_errors():
            cursor = await self.db.execute(
                f"""INSERT INTO edges ({_EDGE_COLUMNS})
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(source_user_id, target_user_id) DO UPDATE SET
                       interaction_weight = interaction_weight + excluded.interaction_weight,
                       last_interaction_at = excluded.last_interaction_at,
                       updated_at = excluded.updated_at
                   RETURNING {_EDGE_COLUMNS}""",
                (source_user_id, target_user_id, delta, at, at, at),
            )
            rows = await cursor.fetchall()
        return dict(rows[0])

    async def apply_weight_decay(self, factor: float, floor: float, at: str) -> int:
        with _storage_errors():
            cursor = await self.db.execute(
                """UPDATE edges
                   SET interaction_weight = MAX(?, interaction_weight * ?), updated_at = ?
                   WHERE interaction_weight > ?""",
                (floor, factor, at, floor),
            )
        return cursor.rowcount

    # --- Edge reads ---

    async def get_edge(self, source_user_id: int, target_user_id: int) -> dict[str, Any] | None:
        with _storage_errors():
            cursor = await self.db.execute(
                f"SELECT {_EDGE_COLUMNS} FROM edges"
                " WHERE source_user_id = ? AND target_user_id = ?",
                (source_user_id, target_user_id),
            )
            row = await cursor.fetchone()
        return dict(row) if row else None

    async def list_outgoing(
        self, source_user_id: int, *, limit: int = 50, offset: int = 0
    ) -> list[dict[str, Any]]:
        with _storage_errors():
            cursor = await self.db.execute(
                f"""SELECT {_EDGE_COLUMNS} FROM edges
                   WHERE source_user_id = ?
                   ORDER BY interaction_weight DESC, created_at DESC, target_user_id ASC
                   LIMIT ? OFFSET ?""",
                (source_user_id, limit, offset),
            )
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def list_incoming(
        self, target_user_id: int, *, limit: int = 50, offset: int = 0
    ) -> list[dict[str, Any]]:
        with _storage_errors():
            cursor = await self.db.execute(
                f"""SELECT {_EDGE_COLUMNS} FROM edges
                   WHERE target_user_id = ?
                   ORDER BY interaction_weight DESC, created_at DESC, source_user_id ASC
                   LIMIT ? OFFSET ?""",
                (target_user_id, limit, offset),
            )
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def outgoing_ids(self, source_user_id: int) -> set[int]:
        with _storage_errors():
            cursor = await self.db.execute(
                "SELECT target_user_id FROM edges WHERE source_user_id = ?",
                (source_user_id,),
            )
            rows = await cursor.fetchall()
        return {row[0] for row in rows}

    async def list_mutual(self, user_a: int, user_b: int) -> list[int]:
        with _storage_errors():
            cursor = await self.db.execute(
                """SELECT a.target_user_id FROM edges a
                   JOIN edges b ON b.target_user_id = a.target_user_id
                   WHERE a.source_user_id = ? AND b.source_user_id = ?
                   ORDER BY a.target_user_id""",
                (user_a, user_b),
            )
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def list_mutual_followers(self, user_a: int, user_b: int) -> list[int]:
        with _storage_errors():
            cursor = await self.db.execute(
                """SELECT a.source_user_id FROM edges a
                   JOIN edges b ON b.source_user_id = a.source_user_id
                   WHERE a.target_user_id = ? AND b.target_user_id = ?
                   ORDER BY a.source_user_id""",
                (user_a, user_b),
            )
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def second_degree_paths(
        self, user_id: int, *, first_degree_cap: int, fanout_cap: int
    ) -> list[dict[str, Any]]:
        # Both hops walk idx_edges_source_weight; the window caps fan-out per intermediate.
        with _storage_errors():
            cursor = await self.db.execute(
                """WITH first AS (
                       SELECT target_user_id AS via_user_id,
                              interaction_weight AS first_weight,
                              last_interaction_at AS first_at
                       FROM edges
                       WHERE source_user_id = ?
                       ORDER BY interaction_weight DESC, created_at DESC, target_user_id ASC
                       LIMIT ?
                   ),
                   hops AS (
                       SELECT f.via_user_id, f.first_weight, f.first_at,
                              e.target_user_id AS candidate_id,
                              e.interaction_weight AS second_weight,
                              e.last_interaction_at AS second_at,
                              ROW_NUMBER() OVER (
                                  PARTITION BY e.source_user_id
                                  ORDER BY e.interaction_weight DESC, e.created_at DESC,
                                           e.target_user_id ASC
                              ) AS hop_rank
                       FROM first f
                       JOIN edges e ON e.source_user_id = f.via_user_id
                   )
                   SELECT via_user_id, first_weight, first_at,
                          candidate_id, second_weight, second_at
                   FROM hops
                   WHERE hop_rank <= ?
                   ORDER BY via_user_id, hop_rank""",
                (user_id, first_degree_cap, fanout_cap),
            )
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def popular_targets(
        self, *, exclude: set[int], limit: int = 20
    ) -> list[dict[str, Any]]:
        params: list[Any] = []
        where = ""
        if exclude:
            placeholders = ",".join("?" * len(exclude))
            where = f"WHERE target_user_id NOT IN ({placeholders})"
            params.extend(sorted(exclude))
        params.append(limit)
        with _storage_errors():
            cursor = await self.db.execute(
                f"""SELECT target_user_id AS user_id, COUNT(*) AS followers_count,
                          MAX(last_interaction_at) AS last_interaction_at
                   FROM edges {where}
                   GROUP BY target_user_id
                   ORDER BY followers_count DESC, user_id ASC
                   LIMIT ?""",
                params,
            )
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def following_among(self, source_user_id: int, target_user_ids: list[int]) -> set[int]:
        if not target_user_ids:
            return set()
        placeholders = ",".join("?" * len(target_user_ids))
        with _storage_errors():
            cursor = await self.db.execute(
                f"""SELECT target_user_id FROM edges
                   WHERE source_user_id = ? AND target_user_id IN ({placeholders})""",
                [source_user_id, *target_user_ids],
            )
            rows = await cursor.fetchall()
        return {row[0] for row in rows}

    async def count_following(self, user_id: int) -> int:
        return await self._count("SELECT COUNT(*) FROM edges WHERE source_user_id = ?", user_id)

    async def count_followers(self, user_id: int) -> int:
        return await self._count("SELECT COUNT(*) FROM edges WHERE target_user_id = ?", user_id)

    async def count_edges(self) -> int:
        return await self._count("SELECT COUNT(*) FROM edges")

    async def _count(self, query: str, *params: Any) -> int:
        with _storage_errors():
            cursor = await self.db.execute(query, params)
            row = await cursor.fetchone()
        return row[0] if row else 0

    # --- Aggregate cache ---

    async def get_aggregate(self, user_id: int) -> dict[str, Any] | None:
        with _storage_errors():
            cursor = await self.db.execute(
                "SELECT * FROM user_graph_cache WHERE user_id = ?", (user_id,)
            )
            row = await cursor.fetchone()
        return dict(row) if row else None

    async def aggregate_generation(self, user_id: int) -> int:
        with _storage_errors():
            cursor = await self.db.execute(
                "SELECT generation FROM user_graph_generation WHERE user_id = ?", (user_id,)
            )
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def put_aggregate(self, aggregate: dict[str, Any], generation: int) -> bool:
        with _storage_errors():
            cursor = await self.db.execute(
                """INSERT INTO user_graph_cache
                   (user_id, followers_count, following_count, computed_at)
                   SELECT :user_id, :followers_count, :following_count, :computed_at
                   WHERE COALESCE(
                       (SELECT generation FROM user_graph_generation WHERE user_id = :user_id),
                       0
                   ) = :generation
                   ON CONFLICT(user_id) DO UPDATE SET
                       followers_count = excluded.followers_count,
                       following_count = excluded.following_count,
                       computed_at = excluded.computed_at""",
                {**aggregate, "generation": generation},
            )
        stored = cursor.rowcount > 0
        if not stored:
            logger.debug("Skipped stale aggregate for user %s", aggregate["user_id"])
        return stored

    async def invalidate_aggregates(self, user_ids: list[int]) -> int:
        if not user_ids:
            return 0
        placeholders = ",".join("?" * len(user_ids))
        with _storage_errors():
            await self.db.executemany(
                """INSERT INTO user_graph_generation (user_id, generation) VALUES (?, 1)
                   ON CONFLICT(user_id) DO UPDATE SET generation = generation + 1""",
                [(user_id,) for user_id in user_ids],
            )
            cursor = await self.db.execute(
                f"DELETE FROM user_graph_cache WHERE user_id IN ({placeholders})",
                user_ids,
            )
        return cursor.rowcount

    # --- Sequences ---

    async def next_sequence(self, name: str) -> int:
        with _storage_errors():
            cursor = await self.db.execute(
                """INSERT INTO counters (name, value) VALUES (?, 1)
                   ON CONFLICT(name) DO UPDATE SET value = value + 1
                   RETURNING value""",
                (name,),
            )
            rows = await cursor.fetchall()
        return rows[0][0]

    # --- Admin ---

    async def list_indexes(self) -> list[dict[str, Any]]:
        indexes = []
        with _storage_errors():
            cursor = await self.db.execute("PRAGMA index_list('edges')")
            for row in await cursor.fetchall():
                info = await self.db.execute(f"PRAGMA index_info('{row['name']}')")
                columns = [col["name"] for col in await info.fetchall()]
                indexes.append(
                    {"name": row["name"], "unique": bool(row["unique"]), "columns": columns}
                )
        return sorted(indexes, key=lambda idx: idx["name"])

    async def get_stats(self) -> dict[str, Any]:
        edge_count = await self.count_edges()
        user_count = await self._count(
            "SELECT COUNT(*) FROM (SELECT source_user_id FROM edges"
            " UNION SELECT target_user_id FROM edges)"
        )
        mutual_pairs = await self._count(
            """SELECT COUNT(*) FROM edges a
               JOIN edges b ON b.source_user_id = a.target_user_id
                           AND b.target_user_id = a.source_user_id
               WHERE a.source_user_id < a.target_user_id"""
        )
        cached = await self._count("SELECT COUNT(*) FROM user_graph_cache")

        return {
            "edges": edge_count,
            "users": user_count,
            "mutual_pairs": mutual_pairs,
            "avg_following_per_user": round(edge_count / user_count, 3) if user_count else 0.0,
            "cached_aggregates": cached,
            "db_path": str(self.db_path),
            "generated_at": datetime.now(UTC).isoformat(),
        }


# --- Helpers ---


def _load_sql(filename: str) -> str:
    """Load SQL file from the schema package."""
    schema_dir = Path(__file__).parent.parent / "schema"
    return (schema_dir / filename).read_text()
