"""
Publishes finished games to Kafka for downstream analytics.

Publishing is best effort. With no brokers configured, or when the
brokers cannot be reached at startup, the publisher stays disabled and
every publish is a no-op.
"""

import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError
from aiokafka.helpers import create_ssl_context

from server.config import settings
from server.persistence import GameResultRecord


logger = logging.getLogger(__name__)

GAME_COMPLETED = "game_completed"


@dataclass
class GameCompletedEvent:
    """Wire shape of one game_completed event."""
    room_code: str
    player1_name: str
    player2_name: str
    winner: int  # 1, 2, or 0 for a draw
    is_bot_game: bool
    duration_seconds: int
    timestamp: str
    type: str = GAME_COMPLETED

    @classmethod
    def from_record(cls, record: GameResultRecord) -> "GameCompletedEvent":
        return cls(
            room_code=record.room_code,
            player1_name=record.player1_name or "",
            player2_name=record.player2_name or "",
            winner=record.winner,
            is_bot_game=record.is_bot_game,
            duration_seconds=record.duration_seconds,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    def to_dict(self) -> dict:
        return asdict(self)


def parse_brokers(brokers: str | list[str] | None) -> list[str]:
    """Split a comma separated broker list, dropping blanks."""
    if not brokers:
        return []
    if isinstance(brokers, str):
        brokers = brokers.split(",")
    return [broker.strip() for broker in brokers if broker.strip()]


class GameEventPublisher:
    """
    Owns the Kafka producer for game events.

    start() and stop() follow the server's lifecycle. SASL credentials
    switch the connection to SASL_SSL with the PLAIN mechanism.
    """

    def __init__(
        self,
        brokers: str | list[str] | None = None,
        topic: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ):
        self.brokers = parse_brokers(settings.KAFKA_BROKERS if brokers is None else brokers)
        self.topic = topic or settings.KAFKA_TOPIC
        self.username = settings.KAFKA_USERNAME if username is None else username
        self.password = settings.KAFKA_PASSWORD if password is None else password

        self._producer: AIOKafkaProducer | None = None

    @property
    def enabled(self) -> bool:
        return self._producer is not None

    def _producer_options(self) -> dict:
        options = {
            "bootstrap_servers": self.brokers,
            "key_serializer": lambda key: key.encode("utf-8"),
            "value_serializer": lambda value: json.dumps(value).encode("utf-8"),
        }

        if self.username and self.password:
            options.update(
                security_protocol="SASL_SSL",
                sasl_mechanism="PLAIN",
                sasl_plain_username=self.username,
                sasl_plain_password=self.password,
                ssl_context=create_ssl_context(),
            )

        return options

    async def start(self) -> None:
        """Connect to the brokers, or stay disabled if that fails."""
        if not self.brokers:
            logger.info("No Kafka brokers configured; game events will not be published")
            return

        producer = AIOKafkaProducer(**self._producer_options())
        try:
            await producer.start()
        except KafkaError as e:
            logger.warning(f"Kafka connection failed: {e}")
            logger.warning("Game events will not be published to Kafka")
            await producer.stop()
            return

        self._producer = producer
        logger.info(f"Kafka producer connected, publishing to topic {self.topic}")

    async def stop(self) -> None:
        producer, self._producer = self._producer, None
        if producer is not None:
            await producer.stop()

    async def publish_game_completed(self, record: GameResultRecord) -> bool:
        """
        Publish one finished game, keyed by room code.

        Returns:
            True if the broker acknowledged the event
        """
        if self._producer is None:
            return False

        event = GameCompletedEvent.from_record(record)

        try:
            await self._producer.send_and_wait(
                self.topic, value=event.to_dict(), key=event.room_code
            )
        except KafkaError as e:
            logger.error(f"Error publishing game_completed for {event.room_code}: {e}")
            return False

        logger.debug(f"Published game_completed event for room {event.room_code}")
        return True
