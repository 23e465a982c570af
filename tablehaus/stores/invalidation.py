"""Reservation-changed invalidation channels"""

import asyncio
from typing import Callable, List, Optional

import redis.asyncio as redis
import structlog

from tablehaus.stores.base import InvalidationChannel, Unsubscribe

logger = structlog.get_logger()


class _Subscribers:
    def __init__(self):
        self._callbacks: List[Callable[[], None]] = []

    def add(self, on_change: Callable[[], None]) -> Unsubscribe:
        self._callbacks.append(on_change)

        def unsubscribe() -> None:
            if on_change in self._callbacks:
                self._callbacks.remove(on_change)

        return unsubscribe

    def fire(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback()
            except Exception:
                logger.exception("Invalidation subscriber failed")

    def __len__(self) -> int:
        return len(self._callbacks)


class InProcessInvalidationChannel(InvalidationChannel):
    """Fan-out to subscribers living in the same process"""

    def __init__(self):
        self._subscribers = _Subscribers()

    def subscribe(self, on_change: Callable[[], None]) -> Unsubscribe:
        return self._subscribers.add(on_change)

    async def publish(self) -> None:
        self._subscribers.fire()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class RedisInvalidationChannel(InvalidationChannel):
    """
    Redis pub/sub channel shared by every API worker.

    Messages carry no meaningful payload; each one only tells subscribers to
    re-read availability.
    """

    def __init__(self, client: redis.Redis, channel: str):
        self.client = client
        self.channel = channel
        self._subscribers = _Subscribers()
        self._listener: Optional[asyncio.Task] = None

    def subscribe(self, on_change: Callable[[], None]) -> Unsubscribe:
        return self._subscribers.add(on_change)

    async def publish(self) -> None:
        await self.client.publish(self.channel, "changed")

    async def start(self) -> None:
        """Start relaying Redis messages to local subscribers"""
        if self._listener is None:
            self._listener = asyncio.create_task(self._listen())

    async def _listen(self) -> None:
        pubsub = self.client.pubsub()
        await pubsub.subscribe(self.channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") == "message":
                    self._subscribers.fire()
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()

    async def close(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await self.client.aclose()


def create_redis_channel(url: str, channel: str) -> RedisInvalidationChannel:
    """Build a Redis-backed channel from a connection URL"""
    client = redis.from_url(url, decode_responses=True)
    return RedisInvalidationChannel(client, channel)


invalidation_channel: InvalidationChannel = InProcessInvalidationChannel()


async def init_invalidation(backend: str, redis_url: str, channel: str) -> None:
    """Initialise the shared invalidation channel"""
    global invalidation_channel
    if backend == "redis":
        redis_channel = create_redis_channel(redis_url, channel)
        await redis_channel.start()
        invalidation_channel = redis_channel
    else:
        invalidation_channel = InProcessInvalidationChannel()
    logger.info("Invalidation channel ready", backend=backend)


async def close_invalidation() -> None:
    """Close the shared channel if it holds a connection"""
    if isinstance(invalidation_channel, RedisInvalidationChannel):
        await invalidation_channel.close()
