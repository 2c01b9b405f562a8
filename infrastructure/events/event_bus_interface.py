from abc import ABC, abstractmethod
from typing import Callable

from django.utils import timezone


def make_envelope(event_type: str, payload: dict) -> dict:
    """The message every handler receives."""
    return {"event_type": event_type, "occurred_at": timezone.now().isoformat(), "payload": payload}


class EventBus(ABC):
    """
    Abstract event bus interface.

    Handlers receive the full envelope: ``{"event_type", "occurred_at", "payload"}``.
    Publishing must never raise into the caller; a lost notification is logged, not fatal.
    """

    @abstractmethod
    def publish(self, event_type: str, payload: dict) -> None:
        """Publish event to bus."""
        pass

    @abstractmethod
    def subscribe(self, event_type: str, handler: Callable[[dict], None]) -> None:
        """Subscribe to event type with handler function."""
        pass
