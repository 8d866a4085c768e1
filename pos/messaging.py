"""
Message-bus producer for transactional e-mail notifications.

The e-mail service consumes these topics; this side only publishes a
JSON payload keyed by user id.  ``publish`` raises ``KafkaError`` (or
``asyncio.TimeoutError``) on failure so the calling service can classify
it; when no bootstrap servers are configured publishing is disabled and
messages are dropped with a warning.
"""
import asyncio
import json
import logging

from kafka import KafkaProducer
from kafka.errors import KafkaError

from pos.config import settings

logger = logging.getLogger(__name__)

PUBLISH_ERRORS = (KafkaError, asyncio.TimeoutError, OSError)


class EmailPublisher:
    def __init__(self, bootstrap_servers: str | None = None, send_timeout: float | None = None) -> None:
        self.bootstrap_servers = bootstrap_servers
        self.send_timeout = send_timeout if send_timeout is not None else settings.KAFKA_SEND_TIMEOUT
        self._producer: KafkaProducer | None = None

    async def start(self) -> None:
        if not self.bootstrap_servers:
            logger.warning("Kafka bootstrap servers not configured, e-mail publishing disabled")
            return
        self._producer = await asyncio.to_thread(
            KafkaProducer,
            bootstrap_servers=self.bootstrap_servers,
            value_serializer=lambda value: json.dumps(value).encode("utf-8"),
            key_serializer=lambda key: key.encode("utf-8") if key else None,
            acks="all",
        )
        logger.info("Kafka producer started: %s", self.bootstrap_servers)

    async def stop(self) -> None:
        if self._producer:
            producer, self._producer = self._producer, None
            await asyncio.to_thread(producer.close)
            logger.info("Kafka producer stopped")

    def _send(self, topic: str, key: str, message: dict) -> None:
        # send() may block up to max_block_ms waiting for metadata.
        future = self._producer.send(topic, key=key, value=message)
        future.get(timeout=self.send_timeout)

    async def publish(self, topic: str, key: str, message: dict) -> None:
        if self._producer is None:
            logger.warning("Dropping message for topic %s: publisher not started", topic)
            return
        await asyncio.to_thread(self._send, topic, key, message)
        logger.debug("Published message to %s key=%s", topic, key)
