"""Shared test fixtures for auragraph."""

from __future__ import annotations

from pathlib import Path

import pytest

from auragraph.config import Config
from auragraph.core.graph import SocialGraph
from auragraph.events.bus import EventBus
from auragraph.storage.sqlite_store import SQLiteEdgeStore


@pytest.fixture
def tmp_db(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
async def store(tmp_db: Path) -> SQLiteEdgeStore:
    s = SQLiteEdgeStore(tmp_db)
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(home_path=tmp_path)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
async def graph(store: SQLiteEdgeStore, bus: EventBus, config: Config) -> SocialGraph:
    return SocialGraph(store, bus, config)
