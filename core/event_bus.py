"""Simple in-process event bus for task lifecycle events."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from typing import Any

EventHandler = Callable[[dict[str, Any]], None]

logger = logging.getLogger("tc.event_bus")


class EventBus:
    """Dispatches events to subscribers by event name.

    Workers emit from their own threads, so handlers run one at a time.
    A failing handler is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._lock = threading.RLock()

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Register a callback for an event."""
        with self._lock:
            self._handlers[event_name].append(handler)

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        """Emit an event to all subscribers."""
        with self._lock:
            for handler in list(self._handlers.get(event_name, [])):
                try:
                    handler(payload)
                except Exception:
                    logger.exception("Handler for '%s' event failed", event_name)
