"""
Tests for publishing finished games to Kafka.

The Kafka producer is replaced with a mock; no broker is needed.

Run with: python3 tests/test_events/test_game_events.py
"""

import json
import sys
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from aiokafka.errors import KafkaConnectionError, KafkaTimeoutError

from server.events import GameCompletedEvent, GameEventPublisher
from server.events.publisher import parse_brokers
from server.persistence import GameResultRecord


PRODUCER = "server.events.publisher.AIOKafkaProducer"


def make_record(**overrides) -> GameResultRecord:
    fields = dict(
        room_code="ABC234",
        player1_name="alice",
        player2_name="bob",
        winner=1,
        is_bot_game=False,
        duration_seconds=42,
        moves=7,
    )
    fields.update(overrides)
    return GameResultRecord(**fields)


def mock_producer() -> MagicMock:
    producer = MagicMock()
    producer.start = AsyncMock()
    producer.stop = AsyncMock()
    producer.send_and_wait = AsyncMock()
    return producer


class TestGameCompletedEvent(unittest.TestCase):

    def test_from_record(self):
        event = GameCompletedEvent.from_record(make_record(winner=0, player2_name=None))
        data = event.to_dict()

        self.assertEqual(data["type"], "game_completed")
        self.assertEqual(data["room_code"], "ABC234")
        self.assertEqual(data["player1_name"], "alice")
        self.assertEqual(data["player2_name"], "")
        self.assertEqual(data["winner"], 0)
        self.assertFalse(data["is_bot_game"])
        self.assertEqual(data["duration_seconds"], 42)
        self.assertTrue(data["timestamp"])
        self.assertNotIn("moves", data)

    def test_parse_brokers(self):
        self.assertEqual(parse_brokers(""), [])
        self.assertEqual(parse_brokers(None), [])
        self.assertEqual(parse_brokers("a:9092, b:9092,"), ["a:9092", "b:9092"])
        self.assertEqual(parse_brokers(["a:9092"]), ["a:9092"])


class TestPublisher(unittest.IsolatedAsyncioTestCase):

    async def test_no_brokers_means_disabled(self):
        publisher = GameEventPublisher(brokers="")

        with patch(PRODUCER) as factory:
            await publisher.start()

        factory.assert_not_called()
        self.assertFalse(publisher.enabled)
        self.assertFalse(await publisher.publish_game_completed(make_record()))

    async def test_unreachable_brokers_fall_back_to_disabled(self):
        producer = mock_producer()
        producer.start.side_effect = KafkaConnectionError("no brokers")
        publisher = GameEventPublisher(brokers="127.0.0.1:9094")

        with patch(PRODUCER, return_value=producer):
            await publisher.start()

        self.assertFalse(publisher.enabled)
        producer.stop.assert_awaited_once()
        self.assertFalse(await publisher.publish_game_completed(make_record()))
        producer.send_and_wait.assert_not_awaited()

    async def test_publish_is_keyed_by_room_code(self):
        producer = mock_producer()
        publisher = GameEventPublisher(brokers="k1:9092,k2:9092", topic="game-events")

        with patch(PRODUCER, return_value=producer) as factory:
            await publisher.start()

        options = factory.call_args.kwargs
        self.assertEqual(options["bootstrap_servers"], ["k1:9092", "k2:9092"])
        self.assertNotIn("security_protocol", options)
        self.assertTrue(publisher.enabled)

        self.assertTrue(await publisher.publish_game_completed(make_record(winner=2)))

        args, kwargs = producer.send_and_wait.call_args
        self.assertEqual(args, ("game-events",))
        self.assertEqual(kwargs["key"], "ABC234")
        self.assertEqual(kwargs["value"]["type"], "game_completed")
        self.assertEqual(kwargs["value"]["winner"], 2)

        value = options["value_serializer"](kwargs["value"])
        self.assertEqual(json.loads(value)["room_code"], "ABC234")
        self.assertEqual(options["key_serializer"]("ABC234"), b"ABC234")

        await publisher.stop()
        producer.stop.assert_awaited_once()
        self.assertFalse(publisher.enabled)

    async def test_publish_failure_is_not_raised(self):
        producer = mock_producer()
        producer.send_and_wait.side_effect = KafkaTimeoutError()
        publisher = GameEventPublisher(brokers="k1:9092")

        with patch(PRODUCER, return_value=producer):
            await publisher.start()

        self.assertFalse(await publisher.publish_game_completed(make_record()))
        self.assertTrue(publisher.enabled)

    async def test_credentials_enable_sasl(self):
        producer = mock_producer()
        publisher = GameEventPublisher(brokers="k1:9092", username="user", password="secret")

        with patch(PRODUCER, return_value=producer) as factory:
            await publisher.start()

        options = factory.call_args.kwargs
        self.assertEqual(options["security_protocol"], "SASL_SSL")
        self.assertEqual(options["sasl_mechanism"], "PLAIN")
        self.assertEqual(options["sasl_plain_username"], "user")
        self.assertEqual(options["sasl_plain_password"], "secret")
        self.assertIsNotNone(options["ssl_context"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
