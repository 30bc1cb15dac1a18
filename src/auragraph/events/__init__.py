"""auragraph event system."""

from auragraph.events.bus import EventBus
from auragraph.events.types import (
    EDGE_MUTATIONS,
    DecayEvent,
    EdgeEvent,
    EventType,
    InteractionEvent,
    InvalidationEvent,
)

__all__ = [
    "EDGE_MUTATIONS",
    "DecayEvent",
    "EdgeEvent",
    "EventBus",
    "EventType",
    "InteractionEvent",
    "InvalidationEvent",
]
