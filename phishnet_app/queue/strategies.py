"""
Queue strategies for analytics events.
Allows switching between Redis Streams and an in-process deque.
"""

import asyncio
import json
import logging
import socket
from abc import ABC, abstractmethod
from collections import deque
from typing import Dict, List

from .models import AnalyticsEvent

logger = logging.getLogger(__name__)


class QueueStrategy(ABC):
    """
    Abstract base class for queue strategies.

    Request handlers publish, the analytics worker consumes; neither knows
    which backend is behind the interface.
    """

    @abstractmethod
    async def publish(self, queue_name: str, message: AnalyticsEvent) -> bool:
        """
        Publish a message to the queue.

        Returns:
            True if successful, False otherwise
        """

    @abstractmethod
    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: int = 1000
    ) -> List[AnalyticsEvent]:
        """
        Consume up to `batch_size` messages, waiting at most `block_time` ms.
        """

    @abstractmethod
    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        """Acknowledge messages (mark as processed)."""

    @abstractmethod
    async def get_queue_length(self, queue_name: str) -> int:
        """Number of messages still waiting in the queue."""

    async def consume_batch(self, queue_name: str, batch_size: int = 100, block_time: int = 1000) -> List[AnalyticsEvent]:
        return await self.consume(queue_name, batch_size, block_time)


class RedisStreamQueue(QueueStrategy):
    """
    Redis Streams implementation.

    1. Producer appends with XADD
    2. Worker reads with XREADGROUP (consumer group)
    3. Worker acknowledges with XACK only after the batch is applied

    Unacknowledged messages stay pending and can be reclaimed.
    """

    def __init__(self, redis_client, consumer_group: str = "analytics_workers"):
        self.redis = redis_client
        self.consumer_group = consumer_group
        self.consumer_name = f"worker-{socket.gethostname()}-{id(self)}"
        self._initialized_streams = set()

    async def _ensure_stream_exists(self, queue_name: str):
        if queue_name in self._initialized_streams:
            return

        try:
            # MKSTREAM creates the stream together with the group
            self.redis.xgroup_create(
                name=queue_name,
                groupname=self.consumer_group,
                id='0',
                mkstream=True
            )
            logger.info("✅ Created Redis stream: %s", queue_name)
        except Exception as e:
            if "BUSYGROUP" not in str(e):
                logger.warning("⚠️  Stream creation warning: %s", e)

        self._initialized_streams.add(queue_name)

    async def publish(self, queue_name: str, message: AnalyticsEvent) -> bool:
        try:
            await self._ensure_stream_exists(queue_name)
            self.redis.xadd(queue_name, {'data': message.model_dump_json()})
            return True
        except Exception as e:
            logger.error("❌ Redis publish error: %s", e)
            return False

    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: int = 1000
    ) -> List[AnalyticsEvent]:
        try:
            await self._ensure_stream_exists(queue_name)

            # '>' means "messages never delivered to other consumers"
            messages = self.redis.xreadgroup(
                groupname=self.consumer_group,
                consumername=self.consumer_name,
                streams={queue_name: '>'},
                count=batch_size,
                block=block_time
            )
        except Exception as e:
            logger.error("❌ Redis consume error: %s", e)
            return []

        events = []
        for _stream_name, stream_messages in messages or []:
            for message_id, message_data in stream_messages:
                try:
                    data = json.loads(message_data[b'data'].decode('utf-8'))
                    event = AnalyticsEvent(**data)
                    event.message_id = message_id.decode('utf-8')
                    events.append(event)
                except (KeyError, ValueError) as e:
                    logger.warning("⚠️  Failed to parse message %s: %s", message_id, e)

        return events

    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        if not message_ids:
            return True
        try:
            self.redis.xack(queue_name, self.consumer_group, *message_ids)
            return True
        except Exception as e:
            logger.error("❌ Redis ack error: %s", e)
            return False

    async def get_queue_length(self, queue_name: str) -> int:
        try:
            info = self.redis.xinfo_stream(queue_name)
            return info['length']
        except Exception:
            return 0


class InMemoryQueue(QueueStrategy):
    """
    In-memory queue using a deque per queue name.

    Not persistent and not shared between processes, so the API and the
    worker must run in the same process (tests, development).
    """

    def __init__(self):
        self._queues: Dict[str, deque] = {}

    def _get_queue(self, queue_name: str) -> deque:
        if queue_name not in self._queues:
            self._queues[queue_name] = deque()
        return self._queues[queue_name]

    async def publish(self, queue_name: str, message: AnalyticsEvent) -> bool:
        self._get_queue(queue_name).append(message)
        return True

    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: int = 1000
    ) -> List[AnalyticsEvent]:
        """Pop up to `batch_size` messages; waits once for block_time if empty."""
        queue = self._get_queue(queue_name)
        if not queue and block_time > 0:
            await asyncio.sleep(block_time / 1000)

        messages = []
        while queue and len(messages) < batch_size:
            messages.append(queue.popleft())
        return messages

    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        # Messages are removed on consume
        return True

    async def get_queue_length(self, queue_name: str) -> int:
        return len(self._get_queue(queue_name))

    def clear(self):
        self._queues.clear()
