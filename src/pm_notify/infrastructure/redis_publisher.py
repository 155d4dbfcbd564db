"""Redis pub/sub implementation of EventPublisherProtocol.

Channel = f"{EVENT_CHANNEL_PREFIX}:{topic}", message = JSON envelope.
Publishing happens after the database commit; a Redis failure is logged
and dropped, it never undoes or fails a committed trade or settlement.
"""

import json
import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config.settings import settings
from src.pm_common.redis_client import get_redis
from src.pm_notify.domain.events import Event

logger = logging.getLogger(__name__)


class RedisEventPublisher:
    def __init__(self, client: aioredis.Redis | None = None, prefix: str | None = None) -> None:
        self._client = client
        self._prefix = prefix if prefix is not None else settings.EVENT_CHANNEL_PREFIX

    async def _redis(self) -> aioredis.Redis:
        if self._client is None:
            self._client = await get_redis()
        return self._client

    def channel(self, topic: str) -> str:
        return f"{self._prefix}:{topic}" if self._prefix else topic

    async def publish(self, event: Event) -> None:
        try:
            client = await self._redis()
            await client.publish(self.channel(event.topic), json.dumps(event.to_message()))
        except (RedisError, OSError):
            logger.warning(
                "Event publish failed: topic=%s kind=%s", event.topic, event.kind.value,
                exc_info=True,
            )

    async def publish_many(self, events: list[Event]) -> None:
        if not events:
            return
        try:
            client = await self._redis()
            async with client.pipeline(transaction=False) as pipe:
                for event in events:
                    pipe.publish(self.channel(event.topic), json.dumps(event.to_message()))
                await pipe.execute()
        except (RedisError, OSError):
            logger.warning("Batch publish failed: %d events dropped", len(events), exc_info=True)
