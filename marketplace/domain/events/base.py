import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from django.db import transaction
from django.utils import timezone

from infrastructure.events import EventBus, get_event_bus

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """
    Base class for all marketplace domain events.

    Events describe state transitions that already happened; they are published
    only once the surrounding transaction commits so observers never see a
    transition that was rolled back.
    """

    event_type: str
    occurred_at: datetime = field(default_factory=timezone.now)
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"event_type": self.event_type, "occurred_at": self.occurred_at.isoformat(), "payload": self.payload}

    def publish(self, event_bus: Optional[EventBus] = None) -> None:
        bus = event_bus or get_event_bus()
        try:
            bus.publish(self.event_type, self.payload)
        except Exception as e:
            logger.error(f"Failed to publish {self.event_type}: {e}")

    def publish_on_commit(self, event_bus: Optional[EventBus] = None) -> None:
        """Publish after the current transaction commits (immediately outside a transaction)."""
        transaction.on_commit(lambda: self.publish(event_bus))
