"""
Redis Event Bus
===============

Publishes marketplace domain events over Redis pub/sub, one channel per event
type (``<prefix>.<event_type>``). Observers in other processes subscribe and
call ``start_listening()`` to receive them on a background thread.
"""

import json
import logging
import threading
from collections import defaultdict
from typing import Callable, Optional

import redis
from django.conf import settings

from .event_bus_interface import EventBus, make_envelope

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_PREFIX = "events"


class RedisEventBus(EventBus):
    def __init__(self, redis_url: Optional[str] = None, channel_prefix: Optional[str] = None):
        self.redis_url = (
            redis_url
            or getattr(settings, "EVENT_BUS_REDIS_URL", None)
            or getattr(settings, "CELERY_BROKER_URL", "redis://localhost:6379/0")
        )
        self.channel_prefix = channel_prefix or getattr(settings, "EVENT_BUS_CHANNEL_PREFIX", DEFAULT_CHANNEL_PREFIX)
        # from_url does not connect; the first publish does
        self.redis_client = redis.from_url(self.redis_url)
        self._handlers = defaultdict(list)
        self._listener: Optional[threading.Thread] = None

    def channel_for(self, event_type: str) -> str:
        return f"{self.channel_prefix}.{event_type}"

    def publish(self, event_type: str, payload: dict) -> None:
        try:
            self.redis_client.publish(self.channel_for(event_type), json.dumps(make_envelope(event_type, payload)))
        except (redis.RedisError, ConnectionError, TypeError) as e:
            logger.error(f"Dropped event {event_type}: {e}")
            return
        logger.info(f"Published event: {event_type}")

    def subscribe(self, event_type: str, handler: Callable[[dict], None]) -> None:
        self._handlers[event_type].append(handler)
        logger.info(f"Registered handler for event: {event_type}")

    def start_listening(self) -> None:
        """Consume the subscribed channels on a daemon thread (idempotent)."""
        if self._listener is not None and self._listener.is_alive():
            return
        if not self._handlers:
            logger.warning("start_listening called without subscribers")
            return
        self._listener = threading.Thread(target=self._listen, name="redis-event-bus", daemon=True)
        self._listener.start()

    def _listen(self) -> None:
        channels = [self.channel_for(event_type) for event_type in self._handlers]
        pubsub = self.redis_client.pubsub(ignore_subscribe_messages=True)
        try:
            pubsub.subscribe(*channels)
            logger.info(f"Event bus listening on: {channels}")
            for message in pubsub.listen():
                self._dispatch(message.get("data"))
        except redis.RedisError as e:
            logger.error(f"Event bus listener stopped: {e}")
        finally:
            pubsub.close()

    def _dispatch(self, raw) -> None:
        try:
            envelope = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Undecodable event message: {e}")
            return

        event_type = envelope.get("event_type")
        for handler in self._handlers.get(event_type, []):
            try:
                handler(envelope)
            except Exception as e:
                logger.error(f"Handler error for {event_type}: {e}", exc_info=True)
