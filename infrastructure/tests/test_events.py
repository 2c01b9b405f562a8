"""
Event Bus Infrastructure Tests
==============================

Unit tests for the event bus abstraction and its backends.
"""

import json
from unittest.mock import MagicMock, patch

from django.test import SimpleTestCase, override_settings

from infrastructure.events import (
    EventBus,
    EventBusFactory,
    InMemoryEventBus,
    RedisEventBus,
    get_event_bus,
    reset_event_bus,
)


class EventBusInterfaceTest(SimpleTestCase):
    def test_interface_is_abstract(self):
        """EventBus should not be instantiable."""
        with self.assertRaises(TypeError):
            EventBus()


class InMemoryEventBusTest(SimpleTestCase):
    def setUp(self):
        self.bus = InMemoryEventBus()

    def test_publish_records_envelope(self):
        self.bus.publish("offer.created", {"offer_id": "abc"})

        self.assertEqual(len(self.bus.published), 1)
        envelope = self.bus.published[0]
        self.assertEqual(envelope["event_type"], "offer.created")
        self.assertEqual(envelope["payload"], {"offer_id": "abc"})
        self.assertIn("occurred_at", envelope)

    def test_subscribers_receive_envelope(self):
        received = []
        self.bus.subscribe("order.placed", received.append)

        self.bus.publish("order.placed", {"order_id": "1"})
        self.bus.publish("order.cancelled", {"order_id": "1"})

        self.assertEqual(len(received), 1)
        self.assertEqual(received[0]["payload"]["order_id"], "1")

    def test_failing_handler_does_not_break_publish(self):
        self.bus.subscribe("order.placed", MagicMock(side_effect=RuntimeError("boom")))
        after = MagicMock()
        self.bus.subscribe("order.placed", after)

        self.bus.publish("order.placed", {})

        after.assert_called_once()
        self.assertEqual(len(self.bus.published), 1)

    def test_events_of_type_and_clear(self):
        self.bus.publish("offer.created", {})
        self.bus.publish("offer.rejected", {"cascade": True})

        self.assertEqual(len(self.bus.events_of_type("offer.rejected")), 1)
        self.bus.clear()
        self.assertEqual(self.bus.published, [])


class RedisEventBusTest(SimpleTestCase):
    @patch("infrastructure.events.redis_event_bus.redis.from_url")
    def test_publish_to_channel(self, mock_from_url):
        client = MagicMock()
        mock_from_url.return_value = client

        RedisEventBus("redis://localhost:6379/1").publish("order.placed", {"order_id": "1"})

        channel, body = client.publish.call_args[0]
        self.assertEqual(channel, "events.order.placed")
        self.assertEqual(json.loads(body)["payload"], {"order_id": "1"})

    @patch("infrastructure.events.redis_event_bus.redis.from_url")
    def test_channel_prefix(self, mock_from_url):
        bus = RedisEventBus("redis://localhost:6379/1", channel_prefix="ridecycle")
        self.assertEqual(bus.channel_for("offer.created"), "ridecycle.offer.created")

    @patch("infrastructure.events.redis_event_bus.redis.from_url")
    def test_publish_errors_are_swallowed(self, mock_from_url):
        client = MagicMock()
        client.publish.side_effect = ConnectionError("redis down")
        mock_from_url.return_value = client

        # Must not raise into the caller
        RedisEventBus("redis://localhost:6379/1").publish("order.placed", {})

    @patch("infrastructure.events.redis_event_bus.redis.from_url")
    def test_dispatch_to_handlers(self, mock_from_url):
        bus = RedisEventBus("redis://localhost:6379/1")
        handler = MagicMock()
        bus.subscribe("offer.expired", handler)

        bus._dispatch('{"event_type": "offer.expired", "payload": {"offer_id": "x"}}')
        bus._dispatch("not json")
        bus._dispatch(None)

        handler.assert_called_once()
        self.assertEqual(handler.call_args[0][0]["payload"], {"offer_id": "x"})

    @patch("infrastructure.events.redis_event_bus.redis.from_url")
    def test_start_listening_without_subscribers(self, mock_from_url):
        bus = RedisEventBus("redis://localhost:6379/1")
        bus.start_listening()
        self.assertIsNone(bus._listener)


class EventBusFactoryTest(SimpleTestCase):
    def tearDown(self):
        reset_event_bus()

    def test_create_memory(self):
        self.assertIsInstance(EventBusFactory.create("memory"), InMemoryEventBus)

    @patch("infrastructure.events.redis_event_bus.redis.from_url")
    def test_create_redis(self, mock_from_url):
        self.assertIsInstance(EventBusFactory.create("redis"), RedisEventBus)

    def test_invalid_backend(self):
        with self.assertRaises(ValueError):
            EventBusFactory.create("kafka")

    def test_singleton_until_reset(self):
        bus = get_event_bus()
        self.assertIs(get_event_bus(), bus)

        reset_event_bus()
        self.assertIsNot(get_event_bus(), bus)

    @override_settings(INFRASTRUCTURE={"EVENT_BUS_BACKEND": "memory"})
    def test_backend_from_settings(self):
        reset_event_bus()
        self.assertIsInstance(get_event_bus(), InMemoryEventBus)
