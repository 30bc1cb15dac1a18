"""Command line interface: init, indexes, status, suggest, decay, demo, serve."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from auragraph.config import Config
from auragraph.core.graph import SocialGraph
from auragraph.errors import GraphError
from auragraph.events.bus import EventBus
from auragraph.storage.sqlite_store import SQLiteEdgeStore


def _load_config(path: str) -> Config:
    config = Config.load(Path(path).expanduser().resolve())
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return config


def _require_db(config: Config) -> None:
    if not config.db_path.exists():
        click.echo(
            f"Error: No database at {config.db_path}. Run 'auragraph init' first.", err=True
        )
        sys.exit(1)


async def _open_graph(config: Config) -> SocialGraph:
    store = SQLiteEdgeStore(config.db_path, wal_mode=config.wal_mode)
    await store.initialize()
    return SocialGraph(store, EventBus(), config)


@click.group()
@click.version_option(package_name="auragraph")
def main() -> None:
    """auragraph: weighted social graph edge store."""


@main.command()
@click.argument("path", type=click.Path(), default="~/.auragraph")
def init(path: str) -> None:
    """Create the database, tables and indexes."""
    config = _load_config(path)

    async def _init() -> list[dict]:
        store = SQLiteEdgeStore(config.db_path, wal_mode=config.wal_mode)
        try:
            await store.initialize()
            return await store.list_indexes()
        finally:
            await store.close()

    indexes = asyncio.run(_init())
    config.save()
    click.echo(f"Initialized graph at {config.home_path}")
    click.echo(f"Database: {config.db_path}")
    click.echo(f"Indexes on edges: {len(indexes)}")


@main.command()
@click.argument("path", type=click.Path(exists=True))
def indexes(path: str) -> None:
    """List indexes on the edge table."""
    config = _load_config(path)
    _require_db(config)

    async def _indexes() -> list[dict]:
        store = SQLiteEdgeStore(config.db_path, wal_mode=config.wal_mode)
        try:
            await store.initialize()
            return await store.list_indexes()
        finally:
            await store.close()

    table = Table(title="Indexes on edges")
    table.add_column("Name", no_wrap=True)
    table.add_column("Columns")
    table.add_column("Unique")
    for idx in asyncio.run(_indexes()):
        table.add_row(idx["name"], ", ".join(idx["columns"]), "yes" if idx["unique"] else "")
    Console().print(table)


@main.command()
@click.argument("path", type=click.Path(exists=True))
def status(path: str) -> None:
    """Show graph statistics."""
    config = _load_config(path)
    _require_db(config)

    async def _status() -> dict:
        graph = await _open_graph(config)
        try:
            return await graph.stats()
        finally:
            await graph.store.close()

    click.echo(json.dumps(asyncio.run(_status()), indent=2))


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.argument("user_id", type=int)
@click.option("--limit", default=10, show_default=True, help="Number of suggestions")
def suggest(path: str, user_id: int, limit: int) -> None:
    """Show ranked connection suggestions for a user."""
    config = _load_config(path)
    _require_db(config)

    async def _suggest() -> list:
        graph = await _open_graph(config)
        try:
            return await graph.suggest(user_id, limit=limit)
        finally:
            await graph.store.close()

    try:
        suggestions = asyncio.run(_suggest())
    except GraphError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if not suggestions:
        click.echo(f"No suggestions for user {user_id}")
        return

    table = Table(title=f"Suggestions for user {user_id}")
    table.add_column("User", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Mutual", justify="right")
    table.add_column("Via")
    table.add_column("Reason")
    for s in suggestions:
        table.add_row(
            str(s.user_id),
            f"{s.score:.3f}",
            str(s.mutual_count),
            ", ".join(str(v) for v in s.via),
            s.reason,
        )
    Console().print(table)


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--factor", type=float, default=None, help="Multiplier in (0, 1]")
@click.option("--floor", type=float, default=None, help="Weights at or below are untouched")
def decay(path: str, factor: float | None, floor: float | None) -> None:
    """Apply one round of interaction weight decay."""
    config = _load_config(path)
    _require_db(config)

    async def _decay() -> int:
        graph = await _open_graph(config)
        try:
            return await graph.decay_weights(factor=factor, floor=floor)
        finally:
            await graph.store.close()

    try:
        touched = asyncio.run(_decay())
    except GraphError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Decayed {touched} edge(s)")


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--users", default=8, show_default=True, help="Number of users to create")
def demo(path: str, users: int) -> None:
    """Seed a small sample graph and walk through the queries."""
    config = _load_config(path)
    _require_db(config)
    if users < 3:
        click.echo("Error: --users must be at least 3", err=True)
        sys.exit(1)

    console = Console()

    async def _demo() -> None:
        graph = await _open_graph(config)
        try:
            ids = [await graph.allocate_user_id() for _ in range(users)]
            console.print(
                Panel(
                    f"Allocated user ids {ids[0]}..{ids[-1]}\n"
                    "Each user follows the next two; the first user likes the second.",
                    title="auragraph demo",
                )
            )

            for i, uid in enumerate(ids):
                for step in (1, 2):
                    await graph.follow(uid, ids[(i + step) % len(ids)])
            for _ in range(3):
                await graph.record_event(ids[0], ids[1], "like")

            rel = await graph.relationship(ids[0], ids[1])
            console.print(
                f"  [green]✓[/green] {ids[0]} → {ids[1]}: strength={rel.strength}"
                f" weight={rel.weight:.3f}"
            )
            mutual = await graph.mutual(ids[0], ids[1])
            console.print(f"  [green]✓[/green] Mutual follows of {ids[0]} and {ids[1]}: {mutual}")
            suggestions = await graph.suggest(ids[0], limit=3)
            console.print(
                f"  [green]✓[/green] Suggestions for {ids[0]}: "
                + ", ".join(f"{s.user_id} ({s.score:.2f})" for s in suggestions)
            )
        finally:
            await graph.store.close()

    asyncio.run(_demo())


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--transport", type=click.Choice(["stdio"]), default="stdio")
def serve(path: str, transport: str) -> None:
    """Start the MCP server."""
    config = _load_config(path)
    _require_db(config)

    from auragraph.server import create_server

    server = create_server(str(config.db_path), config)
    server.run(transport=transport)  # type: ignore[arg-type]
