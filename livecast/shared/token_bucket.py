"""
Redis-backed token bucket used to throttle outbound viewer actions.

Configuration guidelines:
- Set `refill_rate` to the target average rate (tokens per second),
  e.g. 30 messages/minute -> `0.5`.
- `capacity` defines burst size.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from loguru import logger
from redis.asyncio import Redis

_LUA_SCRIPT = """
local tokens_key = KEYS[1]
local timestamp_key = KEYS[2]

local capacity = tonumber(ARGV[1])
local refill_rate = tonumber(ARGV[2])
local now = tonumber(ARGV[3])
local requested = tonumber(ARGV[4])

local stored_tokens = redis.call('GET', tokens_key)
local tokens = stored_tokens and tonumber(stored_tokens) or capacity

local stored_ts = redis.call('GET', timestamp_key)
local last_ts = stored_ts and tonumber(stored_ts) or now

local delta = now - last_ts
if delta < 0 then
    delta = 0
end

if delta > 0 and refill_rate > 0 then
    tokens = math.min(capacity, tokens + delta * refill_rate)
end

local allowed = 0
if tokens >= requested then
    allowed = 1
    tokens = tokens - requested
end

local ttl = math.ceil(capacity / refill_rate) + 1
redis.call('SET', tokens_key, tokens, 'EX', ttl)
redis.call('SET', timestamp_key, now, 'EX', ttl)

return {allowed, tostring(tokens)}
"""


@dataclass(frozen=True)
class TokenBucketConfig:
    """Validated token bucket parameters."""

    capacity: float
    refill_rate: float  # tokens per second

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "TokenBucketConfig":
        try:
            capacity = float(data["capacity"])
            refill_rate = float(data["refill_rate"])
        except KeyError as exc:
            raise ValueError(f"Missing token bucket parameter: {exc.args[0]}") from exc
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid token bucket parameters: {dict(data)}") from exc

        if capacity <= 0:
            raise ValueError(f"capacity must be > 0 (got {capacity})")
        if refill_rate <= 0:
            raise ValueError(f"refill_rate must be > 0 (got {refill_rate})")

        return TokenBucketConfig(capacity=capacity, refill_rate=refill_rate)


class TokenBucket:
    """
    Token bucket whose state lives in Redis.

    Refill and consume happen atomically in a Lua script, so every client
    sharing the Redis instance sees one bucket per label.
    """

    def __init__(
        self,
        label: str,
        config: TokenBucketConfig | Mapping[str, Any],
        redis_client: Redis,
        *,
        key_prefix: str = "livecast",
        now: Callable[[], float] | None = None,
    ) -> None:
        self.label = label or "default"
        self.config = config if isinstance(config, TokenBucketConfig) else TokenBucketConfig.from_dict(config)
        self._redis_client = redis_client
        self._clock = now or time.time

        prefix = f"{key_prefix}:tb:{{{self.label}}}"
        self._tokens_key = f"{prefix}:tokens"
        self._timestamp_key = f"{prefix}:ts"

    async def acquire(self, tokens: float = 1) -> bool:
        """Try to consume `tokens`. Returns True when enough tokens were available."""
        if tokens <= 0:
            raise ValueError("tokens must be > 0")

        try:
            allowed, _remaining = await self._run_script(tokens, float(self._clock()))
        except Exception as exc:
            # Throttling must not block viewer actions when Redis is down
            logger.error("Token bucket acquire failed: label={} error={}", self.label, exc)
            return True

        return bool(allowed)

    async def _run_script(self, tokens: float, now: float) -> tuple[int, float]:
        result = await self._redis_client.eval(
            _LUA_SCRIPT,
            2,
            self._tokens_key,
            self._timestamp_key,
            self.config.capacity,
            self.config.refill_rate,
            now,
            tokens,
        )

        if not isinstance(result, (list, tuple)) or len(result) != 2:
            raise ValueError(f"Unexpected Lua response: {result}")

        allowed_raw, remaining_raw = result
        return int(float(allowed_raw)), float(remaining_raw)


class SendThrottle:
    """Per viewer/action token buckets for chat and like sends."""

    def __init__(self, redis_client: Redis, config: TokenBucketConfig, *, now: Callable[[], float] | None = None):
        self._redis_client = redis_client
        self._config = config
        self._now = now
        self._buckets: dict[str, TokenBucket] = {}

    async def allow(self, viewer_id: str, action: str) -> bool:
        label = f"{viewer_id}:{action}"
        bucket = self._buckets.get(label)
        if bucket is None:
            bucket = TokenBucket(label, self._config, self._redis_client, now=self._now)
            self._buckets[label] = bucket
        return await bucket.acquire()
