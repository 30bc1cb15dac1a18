"""Tests for the FastMCP server."""

from __future__ import annotations

import json

import pytest
from fastmcp import Client

from auragraph.config import Config
from auragraph.server import create_server


def _data(result) -> dict:
    """Extract parsed JSON from CallToolResult."""
    return json.loads(result.content[0].text)


@pytest.fixture
async def client(tmp_path):
    server = create_server(str(tmp_path / "test.db"), Config(home_path=tmp_path))
    async with Client(server) as c:
        yield c


async def _graph(client: Client, args: dict) -> dict:
    return _data(await client.call_tool("sg_graph", args))


async def test_list_tools(client: Client):
    tools = await client.list_tools()
    assert {t.name for t in tools} == {"sg_graph", "sg_admin"}


async def test_follow_and_relationship(client: Client):
    data = await _graph(client, {"action": "follow", "user_id": 1, "target_id": 2})
    assert data["following"] is True
    assert data["_v"] == "1.0"

    data = await _graph(client, {"action": "relationship", "user_id": 1, "target_id": 2})
    assert data["following"] is True
    assert data["followedBy"] is False
    assert data["strength"] == "weak"


async def test_follow_twice_succeeds(client: Client):
    await _graph(client, {"action": "follow", "user_id": 1, "target_id": 2})
    data = await _graph(client, {"action": "follow", "user_id": 1, "target_id": 2})
    assert data["following"] is True
    assert "error" not in data


async def test_unfollow_absent_succeeds(client: Client):
    data = await _graph(client, {"action": "unfollow", "user_id": 1, "target_id": 2})
    assert data["following"] is False
    assert data["removed"] is False


async def test_self_follow_error(client: Client):
    data = await _graph(client, {"action": "follow", "user_id": 5, "target_id": 5})
    assert "themselves" in data["error"]
    assert data["retryable"] is False


async def test_missing_target(client: Client):
    data = await _graph(client, {"action": "follow", "user_id": 5})
    assert data["error"] == "target_id is required for follow"


async def test_followers_pagination(client: Client):
    for source in range(2, 7):
        await _graph(client, {"action": "follow", "user_id": source, "target_id": 1})

    data = await _graph(client, {"action": "followers", "user_id": 1, "limit": 3})
    assert len(data["items"]) == 3
    assert set(data["items"][0]) >= {"userId", "weight", "since"}
    assert data["pagination"] == {"total": 5, "limit": 3, "offset": 0, "hasMore": True}

    data = await _graph(client, {"action": "followers", "user_id": 1, "limit": 3, "offset": 3})
    assert len(data["items"]) == 2
    assert data["pagination"]["hasMore"] is False


async def test_following_list(client: Client):
    await _graph(client, {"action": "follow", "user_id": 1, "target_id": 2})
    data = await _graph(client, {"action": "following", "user_id": 1})
    assert [item["userId"] for item in data["items"]] == [2]


async def test_mutual(client: Client):
    for source, target in [(1, 3), (2, 3), (1, 4)]:
        await _graph(client, {"action": "follow", "user_id": source, "target_id": target})
    data = await _graph(client, {"action": "mutual", "user_id": 1, "target_id": 2})
    assert data["userIds"] == [3]


async def test_interact(client: Client):
    data = await _graph(
        client,
        {"action": "interact", "user_id": 1, "target_id": 2, "interaction_type": "comment"},
    )
    assert data["weight"] == pytest.approx(0.05)


async def test_interact_unknown_type(client: Client):
    data = await _graph(
        client,
        {"action": "interact", "user_id": 1, "target_id": 2, "interaction_type": "poke"},
    )
    assert "Unknown interaction type" in data["error"]


async def test_suggest(client: Client):
    for source, target in [(1, 2), (2, 3), (2, 4), (3, 4)]:
        await _graph(client, {"action": "follow", "user_id": source, "target_id": target})
    data = await _graph(client, {"action": "suggest", "user_id": 1})
    assert {s["userId"] for s in data["suggestions"]} == {3, 4}
    assert all("score" in s for s in data["suggestions"])


async def test_counts(client: Client):
    await _graph(client, {"action": "follow", "user_id": 1, "target_id": 2})
    data = await _graph(client, {"action": "counts", "user_id": 2})
    assert data["followers"] == 1
    assert data["following"] == 0


async def test_admin_stats_and_indexes(client: Client):
    await _graph(client, {"action": "follow", "user_id": 1, "target_id": 2})
    stats = _data(await client.call_tool("sg_admin", {"action": "stats"}))
    assert stats["edges"] == 1

    indexes = _data(await client.call_tool("sg_admin", {"action": "indexes"}))
    assert indexes["count"] == 7


async def test_admin_decay(client: Client):
    await _graph(
        client,
        {"action": "interact", "user_id": 1, "target_id": 2, "interaction_type": "message"},
    )
    data = _data(await client.call_tool("sg_admin", {"action": "decay", "factor": 0.5}))
    assert data["decayed"] == 1


async def test_suggest_limit_clamped(tmp_path):
    config = Config(home_path=tmp_path, pagination_max=2)
    server = create_server(str(tmp_path / "test.db"), config)
    async with Client(server) as c:
        for source, target in [(1, 2), (2, 3), (2, 4), (2, 5)]:
            await _graph(c, {"action": "follow", "user_id": source, "target_id": target})
        data = await _graph(c, {"action": "suggest", "user_id": 1, "limit": 50})
    assert data["count"] == 2


async def test_init_failure_returns_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    server = create_server(str(blocker / "test.db"), Config(home_path=tmp_path))
    async with Client(server) as c:
        first = await _graph(c, {"action": "counts", "user_id": 1})
        second = _data(await c.call_tool("sg_admin", {"action": "stats"}))
    assert "init failed" in first["error"]
    assert "previously failed" in second["error"]
    assert first["retryable"] is False
