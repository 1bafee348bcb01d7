"""
Redis connection management.
Handles the shared async Redis client and store error translation.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from redis.asyncio import Redis
from redis.exceptions import RedisError

from jobqueue.config import get_settings
from jobqueue.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

# Global client instance
_client: Redis | None = None


def create_redis(redis_url: str | None = None) -> Redis:
    """
    Create a new async Redis client.

    Args:
        redis_url: Connection URL. Defaults to the configured URL.

    Returns:
        Redis: A client decoding responses to str.
    """
    settings = get_settings()
    return Redis.from_url(
        redis_url or settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_socket_timeout_seconds,
        socket_connect_timeout=settings.redis_socket_timeout_seconds,
    )


def get_redis() -> Redis:
    """
    Get or create the shared Redis client.

    Returns:
        Redis: The process-wide client instance.
    """
    global _client
    if _client is None:
        _client = create_redis()
    return _client


async def init_redis() -> Redis:
    """
    Initialize the shared client and verify the server is reachable.
    Should be called on process startup.

    Raises:
        StoreUnavailableError: If the server does not answer PING.
    """
    client = get_redis()
    with translate_errors("ping"):
        await client.ping()
    logger.info("Redis connection initialized")
    return client


async def close_redis() -> None:
    """
    Close the shared Redis client.
    Should be called on process shutdown.
    """
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        logger.info("Redis connection closed")


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """
    Convert Redis client errors into StoreUnavailableError.

    Args:
        operation: Name of the store operation, used in the error message.
    """
    try:
        yield
    except RedisError as e:
        raise StoreUnavailableError(f"Store operation {operation!r} failed: {e}") from e
