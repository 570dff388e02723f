"""Topic-scoped publish/subscribe with presence tracking.

Two implementations share one interface:

- `RedisRealtimeTransport`: Redis pub/sub channels per topic, presence kept in
  a Redis hash per topic with a TTL.
- `InMemoryRealtimeTransport`: in-process hub used when DEMO_MODE=true.

Usage:
    transport = get_realtime_transport()
    subscription = await transport.subscribe("room_abc", handler)
    await subscription.track({"key": "client-1", "user": "alice", "role": "viewer"})
    await transport.publish("room_abc", payload)
    await subscription.unsubscribe()
"""

from __future__ import annotations

import asyncio
from collections import defaultdict, deque
from collections.abc import Callable
from typing import Any, Protocol

import orjson
from loguru import logger
from redis.asyncio import Redis

from livecast.app_config import get_app_environ_config
from livecast.schemas.events import PresenceEvent, encode_event

MessageHandler = Callable[[bytes], None]


class TransportSubscription(Protocol):
    topic: str

    async def track(self, presence: dict[str, Any]) -> None: ...

    async def unsubscribe(self) -> None: ...


class RealtimeTransport(Protocol):
    async def subscribe(self, topic: str, handler: MessageHandler) -> TransportSubscription:
        """Subscribe and return once the subscribe handshake has completed."""
        ...

    async def publish(self, topic: str, payload: bytes) -> None: ...


def _presence_payload(presence: dict[str, Any], action: str) -> bytes:
    event = PresenceEvent(
        action=action,
        key=str(presence["key"]),
        user=str(presence.get("user") or "Guest"),
        role=str(presence.get("role") or "viewer"),
        origin=str(presence["key"]),
    )
    return encode_event(event)


# ==================== REDIS ====================


class RedisSubscription:
    def __init__(
        self,
        transport: RedisRealtimeTransport,
        topic: str,
        pubsub: Any,
        handler: MessageHandler,
    ):
        self.topic = topic
        self._transport = transport
        self._pubsub = pubsub
        self._handler = handler
        self._presence: dict[str, Any] | None = None
        self._listener: asyncio.Task | None = None
        self._closed = False

    def start(self) -> None:
        self._listener = asyncio.create_task(self._listen(), name=f"transport:{self.topic}")

    async def _listen(self) -> None:
        try:
            async for message in self._pubsub.listen():
                if self._closed:
                    break
                if message.get("type") != "message":
                    continue
                data = message.get("data")
                if isinstance(data, str):
                    data = data.encode()
                try:
                    self._handler(data)
                except Exception as exc:
                    logger.exception("Event handler failed on topic={}: {}", self.topic, exc)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Transport listener stopped for topic={}: {}", self.topic, exc)

    async def track(self, presence: dict[str, Any]) -> None:
        if "key" not in presence:
            raise ValueError("presence requires a 'key'")
        self._presence = presence
        await self._transport.track(self.topic, presence)

    async def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass

        try:
            await self._pubsub.unsubscribe(self._transport.channel_key(self.topic))
            await self._pubsub.aclose()
        except Exception as exc:
            logger.warning("Failed to close pubsub for topic={}: {}", self.topic, exc)

        if self._presence is not None:
            await self._transport.untrack(self.topic, self._presence)
            self._presence = None


class RedisRealtimeTransport:
    """Realtime transport backed by Redis pub/sub."""

    def __init__(
        self,
        redis_client: Redis,
        *,
        key_prefix: str = "livecast",
        presence_ttl: int = 60,
        handshake_timeout: float = 5.0,
    ):
        self._redis = redis_client
        self._key_prefix = key_prefix
        self._presence_ttl = int(presence_ttl)
        self._handshake_timeout = handshake_timeout

    def channel_key(self, topic: str) -> str:
        return f"{self._key_prefix}:rt:{topic}"

    def presence_key(self, topic: str) -> str:
        return f"{self._key_prefix}:presence:{topic}"

    async def subscribe(self, topic: str, handler: MessageHandler) -> RedisSubscription:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self.channel_key(topic))

        # Publishes are only seen once the SUBSCRIBE confirmation has arrived
        message = await pubsub.get_message(timeout=self._handshake_timeout)
        if message is None or message.get("type") != "subscribe":
            await pubsub.aclose()
            raise ConnectionError(f"Subscribe handshake for topic={topic} did not complete")

        subscription = RedisSubscription(self, topic, pubsub, handler)
        subscription.start()
        logger.debug("Subscribed to topic={}", topic)
        return subscription

    async def publish(self, topic: str, payload: bytes) -> None:
        await self._redis.publish(self.channel_key(topic), payload)

    async def track(self, topic: str, presence: dict[str, Any]) -> None:
        key = self.presence_key(topic)
        await self._redis.hset(key, str(presence["key"]), orjson.dumps(presence))
        await self._redis.expire(key, self._presence_ttl)
        await self.publish(topic, _presence_payload(presence, "join"))

    async def untrack(self, topic: str, presence: dict[str, Any]) -> None:
        try:
            await self._redis.hdel(self.presence_key(topic), str(presence["key"]))
            await self.publish(topic, _presence_payload(presence, "leave"))
        except Exception as exc:
            logger.warning("Failed to untrack presence on topic={}: {}", topic, exc)

    async def presence_count(self, topic: str) -> int:
        return int(await self._redis.hlen(self.presence_key(topic)))


# ==================== IN-MEMORY ====================


class InMemorySubscription:
    def __init__(self, hub: InMemoryRealtimeTransport, topic: str, handler: MessageHandler):
        self.topic = topic
        self.active = True
        self._hub = hub
        self._handler = handler
        self._presence: dict[str, Any] | None = None

    def deliver(self, payload: bytes) -> None:
        if not self.active:
            return
        try:
            self._handler(payload)
        except Exception as exc:
            logger.exception("Event handler failed on topic={}: {}", self.topic, exc)

    async def track(self, presence: dict[str, Any]) -> None:
        if "key" not in presence:
            raise ValueError("presence requires a 'key'")
        self._presence = presence
        self._hub.presence[self.topic][str(presence["key"])] = presence
        await self._hub.publish(self.topic, _presence_payload(presence, "join"))

    async def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        subscribers = self._hub.subscribers.get(self.topic, [])
        if self in subscribers:
            subscribers.remove(self)
        if self._presence is not None:
            self._hub.presence[self.topic].pop(str(self._presence["key"]), None)
            await self._hub.publish(self.topic, _presence_payload(self._presence, "leave"))
            self._presence = None


class InMemoryRealtimeTransport:
    """In-process hub. Delivery is scheduled on the running loop, never inline."""

    def __init__(self, history: int = 256) -> None:
        self.subscribers: dict[str, list[InMemorySubscription]] = defaultdict(list)
        self.presence: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        # Most recent publishes only
        self.published: deque[tuple[str, bytes]] = deque(maxlen=history)

    async def subscribe(self, topic: str, handler: MessageHandler) -> InMemorySubscription:
        subscription = InMemorySubscription(self, topic, handler)
        self.subscribers[topic].append(subscription)
        return subscription

    async def publish(self, topic: str, payload: bytes) -> None:
        self.published.append((topic, payload))
        loop = asyncio.get_running_loop()
        for subscription in list(self.subscribers.get(topic, [])):
            loop.call_soon(subscription.deliver, payload)

    def active_subscription_count(self) -> int:
        return sum(len(subs) for subs in self.subscribers.values())


_demo_transport: InMemoryRealtimeTransport | None = None


def get_realtime_transport() -> RealtimeTransport:
    """Return the transport selected by configuration."""
    global _demo_transport
    cfg = get_app_environ_config()

    if cfg.DEMO_MODE:
        if _demo_transport is None:
            logger.info("Realtime transport DEMO_MODE=true: using in-process hub")
            _demo_transport = InMemoryRealtimeTransport()
        return _demo_transport

    redis_client = Redis.from_url(cfg.REDIS_URL_TRANSPORT)
    return RedisRealtimeTransport(redis_client, presence_ttl=cfg.PRESENCE_TTL_SECONDS)
