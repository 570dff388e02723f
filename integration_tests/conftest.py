"""Pytest configuration for integration tests.

Integration tests talk to a real Redis instance and are excluded from the
unit test run. Set REDIS_URL_TRANSPORT to run them:

    REDIS_URL_TRANSPORT=redis://localhost:6379/15 pytest integration_tests -v
"""

import os
import warnings
from collections.abc import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from redis.asyncio import Redis

warnings.filterwarnings("ignore", category=DeprecationWarning)


@pytest.fixture(scope="session")
def redis_url() -> str:
    """Redis URL for integration tests; skips when it is not configured."""
    url = os.environ.get("REDIS_URL_TRANSPORT")
    if not url:
        pytest.skip("REDIS_URL_TRANSPORT environment variable required")
    return url


@pytest_asyncio.fixture(scope="function")
async def redis_client(redis_url: str) -> AsyncGenerator[Redis]:
    """Function-scoped client so each test owns its event loop connection."""
    client: Redis = Redis.from_url(redis_url)
    yield client
    await client.aclose()


@pytest.fixture
def key_prefix() -> str:
    """Unique key prefix so concurrent runs never share channels or buckets."""
    return f"livecast-it-{uuid4().hex[:8]}"
