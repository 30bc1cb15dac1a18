"""Async event bus for graph mutations."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable, Coroutine, Mapping
from typing import Any

from auragraph.events.types import EDGE_MUTATIONS, EventType

logger = logging.getLogger(__name__)

Listener = Callable[[EventType, dict[str, Any]], Coroutine[Any, Any, None]]

_EDGE_KEYS = ("source_user_id", "target_user_id")


class EventBus:
    """In-process pub/sub for edge and cache events.

    Edge mutation events must name both endpoints. A failing listener is
    logged and never fails the emitter.
    """

    def __init__(self) -> None:
        self._listeners: dict[EventType, list[Listener]] = defaultdict(list)
        self._global_listeners: list[Listener] = []

    def on(self, event_type: EventType, listener: Listener) -> None:
        self._listeners[event_type].append(listener)

    def on_edge_change(self, listener: Listener) -> None:
        """Subscribe to every event that creates, removes or reweights an edge."""
        for event_type in sorted(EDGE_MUTATIONS):
            self.on(event_type, listener)

    def on_all(self, listener: Listener) -> None:
        self._global_listeners.append(listener)

    def off(self, event_type: EventType, listener: Listener) -> None:
        if listener in self._listeners[event_type]:
            self._listeners[event_type].remove(listener)

    async def emit(
        self, event_type: EventType, data: Mapping[str, Any] | None = None
    ) -> int:
        """Deliver an event in registration order. Returns how many listeners succeeded."""
        payload = dict(data or {})
        if event_type in EDGE_MUTATIONS:
            missing = [key for key in _EDGE_KEYS if key not in payload]
            if missing:
                raise ValueError(f"{event_type} payload is missing {', '.join(missing)}")

        listeners = self._listeners.get(event_type, []) + self._global_listeners
        delivered = 0
        for listener in listeners:
            try:
                await listener(event_type, payload)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Error in event listener for %s (%s -> %s)",
                    event_type,
                    payload.get("source_user_id"),
                    payload.get("target_user_id"),
                )
            else:
                delivered += 1
        return delivered

    def clear(self) -> None:
        self._listeners.clear()
        self._global_listeners.clear()
