"""Event types and payloads for the social graph."""

from enum import StrEnum
from typing import TypedDict


class EventType(StrEnum):
    EDGE_CREATED = "edge.created"
    EDGE_DELETED = "edge.deleted"
    INTERACTION_RECORDED = "edge.interaction"
    WEIGHTS_DECAYED = "edge.decayed"

    AGGREGATES_INVALIDATED = "cache.invalidated"


# Events that change a single edge and so both endpoints' aggregates
EDGE_MUTATIONS = frozenset(
    {EventType.EDGE_CREATED, EventType.EDGE_DELETED, EventType.INTERACTION_RECORDED}
)


class EdgeEvent(TypedDict):
    source_user_id: int
    target_user_id: int


class InteractionEvent(EdgeEvent):
    delta: float


class DecayEvent(TypedDict):
    edges: int
    factor: float


class InvalidationEvent(TypedDict):
    user_ids: list[int]
    cause: str
