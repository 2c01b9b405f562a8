"""
In-Memory Event Bus
===================

Mock implementation of EventBus for tests and local development.
Dispatches synchronously to subscribers and keeps every published envelope
in memory for verification.
"""

import logging
import threading
from typing import Callable, Dict, List

from .event_bus_interface import EventBus, make_envelope

logger = logging.getLogger(__name__)


class InMemoryEventBus(EventBus):
    def __init__(self):
        self.published: List[dict] = []
        self._subscribers: Dict[str, List[Callable]] = {}
        self._lock = threading.Lock()

    def publish(self, event_type: str, payload: dict) -> None:
        message = make_envelope(event_type, payload)
        with self._lock:
            self.published.append(message)
            handlers = list(self._subscribers.get(event_type, []))
        logger.info(f"[MEMORY BUS] Published event: {event_type}")

        for handler in handlers:
            try:
                handler(message)
            except Exception as e:
                logger.error(f"Handler error for {event_type}: {str(e)}")

    def subscribe(self, event_type: str, handler: Callable[[dict], None]) -> None:
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)

    def events_of_type(self, event_type: str) -> List[dict]:
        with self._lock:
            return [m for m in self.published if m["event_type"] == event_type]

    def clear(self) -> None:
        with self._lock:
            self.published.clear()
