"""Integration tests for the Redis realtime transport and send throttle.

Run with: pytest integration_tests/services/test_redis_transport_integration.py -v

Requires the REDIS_URL_TRANSPORT environment variable.
"""

import asyncio
from uuid import uuid4

import pytest
from redis.asyncio import Redis

from livecast.schemas import ChatEvent, EventSender, PresenceEvent, encode_event, parse_event
from livecast.services.integrations.realtime_transport import RedisRealtimeTransport
from livecast.shared.token_bucket import SendThrottle, TokenBucketConfig


async def wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.02)


@pytest.mark.integration
class TestRedisRealtimeTransportIntegration:
    """Integration tests for RedisRealtimeTransport against a real Redis."""

    async def test_publish_reaches_other_subscriber(self, redis_client: Redis, key_prefix: str):
        """Test an event published by one client arrives at another subscriber."""
        # Arrange
        transport = RedisRealtimeTransport(redis_client, key_prefix=key_prefix)
        received: list[bytes] = []
        subscription = await transport.subscribe("room_b1", received.append)
        event = ChatEvent(text="hi", sender=EventSender(username="bob"), origin="client-2")

        # Act
        await transport.publish("room_b1", encode_event(event))
        await wait_for(lambda: len(received) == 1)
        await subscription.unsubscribe()

        # Assert
        parsed = parse_event(received[0])
        assert isinstance(parsed, ChatEvent)
        assert parsed.text == "hi"

    async def test_track_and_unsubscribe_maintain_presence(self, redis_client: Redis, key_prefix: str):
        """Test presence is counted while tracked and removed on unsubscribe."""
        # Arrange
        transport = RedisRealtimeTransport(redis_client, key_prefix=key_prefix, presence_ttl=30)
        received: list[bytes] = []
        subscription = await transport.subscribe("room_b2", received.append)

        # Act
        await subscription.track({"key": "client-1", "user": "alice", "role": "viewer"})
        await wait_for(lambda: len(received) == 1)
        tracked_count = await transport.presence_count("room_b2")
        await subscription.unsubscribe()

        # Assert
        join = parse_event(received[0])
        assert isinstance(join, PresenceEvent)
        assert join.action == "join"
        assert tracked_count == 1
        assert await transport.presence_count("room_b2") == 0


@pytest.mark.integration
class TestSendThrottleIntegration:
    """Integration tests for SendThrottle against a real Redis."""

    async def test_bucket_exhausts_then_refills(self, redis_client: Redis):
        """Test the Lua token bucket rejects bursts and refills over time."""
        # Arrange
        now = [1000.0]
        throttle = SendThrottle(
            redis_client,
            TokenBucketConfig(capacity=2, refill_rate=1),
            now=lambda: now[0],
        )
        viewer_id = f"viewer-{uuid4().hex[:8]}"

        # Act
        first = await throttle.allow(viewer_id, "chat")
        second = await throttle.allow(viewer_id, "chat")
        third = await throttle.allow(viewer_id, "chat")
        now[0] += 1.5
        after_refill = await throttle.allow(viewer_id, "chat")

        # Assert
        assert (first, second, third) == (True, True, False)
        assert after_refill is True
