"""
Pytest configuration and shared fixtures.

Redis is provided by fakeredis with Lua scripting enabled, so the
server-side scripts run exactly as they would against a real server.
"""

from collections.abc import AsyncGenerator
from typing import Any

import fakeredis
import pytest
import pytest_asyncio
from prometheus_client import CollectorRegistry

from jobqueue.config import Settings
from jobqueue.observability.metrics import MetricsCollector
from jobqueue.queue import Queue

TEST_PREFIX = "jqtest"
TEST_QUEUE = "test"
TEST_TOKEN = "worker-a"


@pytest.fixture
def fake_server() -> fakeredis.FakeServer:
    """Create an isolated fake Redis server per test."""
    return fakeredis.FakeServer()


@pytest_asyncio.fixture
async def redis_client(fake_server: fakeredis.FakeServer) -> AsyncGenerator[fakeredis.FakeAsyncRedis]:
    """Create an async client bound to the fake server."""
    client = fakeredis.FakeAsyncRedis(server=fake_server, decode_responses=True)

    yield client

    await client.aclose()


@pytest.fixture
def registry() -> CollectorRegistry:
    """Create an isolated Prometheus registry."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> MetricsCollector:
    """Create a metrics collector on the isolated registry."""
    return MetricsCollector(registry=registry)


@pytest_asyncio.fixture
async def queue(redis_client, metrics: MetricsCollector) -> AsyncGenerator[Queue]:
    """Create a queue and clear its keys afterwards."""
    queue = Queue(
        TEST_QUEUE,
        client=redis_client,
        token=TEST_TOKEN,
        prefix=TEST_PREFIX,
        metrics=metrics,
    )

    yield queue

    await queue.destroy()


@pytest.fixture
def make_queue(redis_client, metrics: MetricsCollector):
    """Factory for additional handles on the test queue with their own token."""

    def _make(token: str, **kwargs: Any) -> Queue:
        kwargs.setdefault("prefix", TEST_PREFIX)
        kwargs.setdefault("metrics", metrics)
        return Queue(TEST_QUEUE, client=redis_client, token=token, **kwargs)

    return _make


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        queue_prefix=TEST_PREFIX,
        queue_name=TEST_QUEUE,
        lock_ttl_ms=1000,
        log_level="DEBUG",
        log_format="console",
        worker_poll_interval_seconds=0.01,
        reaper_interval_seconds=0.01,
    )


@pytest.fixture
def sample_payload() -> dict[str, Any]:
    """Create a sample job payload."""
    return {"foo": "bar"}
