"""Change publisher — Redis pub/sub relay in front of the local registry.

Redis pub/sub is fire-and-forget. If no one is listening, the message is
lost. That's fine here: notifications only tell clients to re-fetch, and
the database is always the source of truth.

With several server processes, each one runs a relay that subscribes to
the shared channel and fans messages out to its own WebSockets. If the
subscription drops, the relay resubscribes with backoff and, until it is
back, publish() delivers locally so this process's viewers still hear
about changes. Without Redis (single process, tests) publish() goes
straight to the registry.
"""

import asyncio
import json
from typing import Any, Optional

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from eventhub.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()

CHANNEL = "eventhub:registrations"
RELAY_MAX_RETRY_SECONDS = 30.0


class ChangePublisher:
    """Publishes change notifications to every connected viewer."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        redis_url: str = "",
        channel: str = CHANNEL,
        retry_seconds: float = 1.0,
    ):
        self.registry = registry
        self.redis_url = redis_url
        self.channel = channel
        self.retry_seconds = retry_seconds
        self._redis: Optional[aioredis.Redis] = None
        self._pubsub = None
        self._relay_task: Optional[asyncio.Task] = None
        self._relay_down = False

    @property
    def redis(self) -> Optional[aioredis.Redis]:
        """The live Redis connection, or None when running local-only."""
        return self._redis

    @property
    def relay_down(self) -> bool:
        """True while the relay has lost its subscription and is retrying."""
        return self._relay_down

    async def start(self) -> bool:
        """Connect to Redis and start the relay. Returns False if disabled.

        Raises if Redis is configured but unreachable; the caller decides
        whether that is fatal (the app just logs it and runs local-only).
        """
        if not self.redis_url:
            return False

        client = aioredis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        try:
            await client.ping()
            pubsub = client.pubsub()
            await pubsub.subscribe(self.channel)
        except Exception:
            await client.aclose()
            raise

        self._redis = client
        self._pubsub = pubsub
        self._relay_task = asyncio.create_task(self._relay())
        return True

    async def stop(self) -> None:
        """Stop the relay and close the Redis connection."""
        if self._relay_task:
            self._relay_task.cancel()
            try:
                await self._relay_task
            except asyncio.CancelledError:
                pass
            self._relay_task = None
        self._relay_down = False
        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self.channel)
            except RedisError as e:
                logger.warning("realtime.unsubscribe_failed", error=str(e))
            await self._pubsub.aclose()
            self._pubsub = None
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def publish(self, message: dict[str, Any]) -> None:
        """Publish a notification to all viewers in all processes.

        While the relay is reconnecting, messages sent through Redis would
        never reach this process's viewers, so they are fanned out locally.
        """
        if self._redis is not None and not self._relay_down:
            try:
                await self._redis.publish(self.channel, json.dumps(message))
                return
            except RedisError as e:
                logger.warning("realtime.redis_publish_failed", error=str(e))
        await self.registry.broadcast(message)

    async def _relay(self) -> None:
        """Forward channel messages to local viewers, resubscribing on loss."""
        delay = self.retry_seconds
        while True:
            try:
                if self._relay_down:
                    await self._pubsub.subscribe(self.channel)
                    self._relay_down = False
                    delay = self.retry_seconds
                    logger.info("realtime.relay_restored", channel=self.channel)
                await self._forward()
                return
            except RedisError as e:
                self._relay_down = True
                logger.warning("realtime.relay_lost", error=str(e), retry_in=delay)
                await asyncio.sleep(delay)
                delay = min(delay * 2, RELAY_MAX_RETRY_SECONDS)

    async def _forward(self) -> None:
        async for message in self._pubsub.listen():
            if message["type"] != "message":
                continue
            try:
                payload = json.loads(message["data"])
            except json.JSONDecodeError:
                logger.warning("realtime.bad_relay_message", data=message["data"])
                continue
            await self.registry.broadcast(payload)
