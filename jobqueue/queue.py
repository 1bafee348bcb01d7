"""
Queue handle.

A Queue owns a key namespace, a worker token used as the default lock
credential, and a reference to a shared Redis client it never closes.
"""

import logging
import os
from collections.abc import Iterable
from typing import Any
from uuid import uuid4

from redis.asyncio import Redis

from jobqueue.config import get_settings
from jobqueue.constants import ID_COUNTER_SUFFIX, KEY_SEPARATOR, JobStatus
from jobqueue.job import Job
from jobqueue.keys import KeyNamespace
from jobqueue.observability.metrics import MetricsCollector, get_metrics
from jobqueue.store import QueueScripts, get_redis, translate_errors

logger = logging.getLogger(__name__)


def generate_token() -> str:
    """Generate a worker identity token from hostname, PID and a random suffix."""
    return f"{os.uname().nodename}-{os.getpid()}-{uuid4().hex[:8]}"


def _validate_status_name(status: str) -> str:
    if not status:
        raise ValueError("Status name must not be empty")
    if KEY_SEPARATOR in status:
        raise ValueError(f"Status name must not contain {KEY_SEPARATOR!r}: {status!r}")
    # Job ids are numeric and the id counter lives under "id"
    if status.isdigit() or status == ID_COUNTER_SUFFIX:
        raise ValueError(f"Status name collides with job keys: {status!r}")
    return status


class Queue:
    """
    A named job queue backed by Redis.

    Recognized status sets default to every JobStatus; pass
    ``extra_statuses`` to add lifecycle states. A job is a member of at
    most one recognized set at a time.
    """

    def __init__(
        self,
        name: str | None = None,
        client: Redis | None = None,
        token: str | None = None,
        prefix: str | None = None,
        lock_ttl_ms: int | None = None,
        extra_statuses: Iterable[str] = (),
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the queue.

        Args:
            name: Queue name. Defaults to the configured queue name.
            client: Redis client. Defaults to the shared connection.
            token: Worker identity used when lock calls omit a token.
            prefix: Key prefix. Defaults to the configured prefix.
            lock_ttl_ms: Default lock TTL in milliseconds.
            extra_statuses: Additional status set names.
            metrics: Metrics collector. Defaults to the global collector.
        """
        settings = get_settings()

        self.name = name or settings.queue_name
        self.namespace = KeyNamespace(prefix or settings.queue_prefix, self.name)
        self.client = client if client is not None else get_redis()
        self._token = token or settings.worker_token or generate_token()
        self.lock_ttl_ms = settings.lock_ttl_ms if lock_ttl_ms is None else lock_ttl_ms
        if self.lock_ttl_ms <= 0:
            raise ValueError(f"Lock TTL must be positive, got {self.lock_ttl_ms}")

        statuses = [status.value for status in JobStatus]
        for status in extra_statuses:
            status = _validate_status_name(str(status))
            if status not in statuses:
                statuses.append(status)
        self._statuses = tuple(statuses)

        self.scripts = QueueScripts(self.client)
        self.metrics = metrics or get_metrics()

    def __repr__(self) -> str:
        return f"Queue(name={self.name!r}, prefix={self.namespace.prefix!r})"

    @property
    def token(self) -> str:
        """Default lock credential for this queue handle."""
        return self._token

    @property
    def statuses(self) -> tuple[str, ...]:
        """Recognized status set names."""
        return self._statuses

    def to_key(self, suffix: str) -> str:
        """Map a logical suffix to a key in this queue's namespace."""
        return self.namespace.to_key(suffix)

    def check_status(self, status: str) -> str:
        """
        Resolve a status name against the recognized sets.

        Raises:
            ValueError: If the queue does not recognize the status.
        """
        value = str(status)
        if value not in self._statuses:
            raise ValueError(
                f"Unknown status {value!r} for queue {self.name!r}; "
                f"expected one of {', '.join(self._statuses)}"
            )
        return value

    async def add(self, data: Any, enqueue: bool = True) -> Job:
        """
        Create and persist a new job.

        Args:
            data: JSON-serializable payload.
            enqueue: Also place the job in the waiting set.

        Returns:
            The created Job.
        """
        return await Job.create(self, data, enqueue=enqueue)

    async def get_job(self, job_id: str) -> Job:
        """Load a job by id. See Job.from_id."""
        return await Job.from_id(self, job_id)

    async def count(self, status: str) -> int:
        """Number of jobs in a status set."""
        key = self.namespace.status_key(self.check_status(status))
        with translate_errors("count"):
            return await self.client.scard(key)

    async def job_ids(self, status: str) -> set[str]:
        """Ids of the jobs in a status set."""
        key = self.namespace.status_key(self.check_status(status))
        with translate_errors("job_ids"):
            return set(await self.client.smembers(key))

    async def sample_ids(self, status: str, count: int) -> list[str]:
        """Up to ``count`` random ids from a status set."""
        key = self.namespace.status_key(self.check_status(status))
        with translate_errors("sample_ids"):
            return list(await self.client.srandmember(key, count))

    async def keys(self) -> list[str]:
        """
        List every key in this queue's namespace.

        Uses SCAN, so it is meant for tests and administrative tooling
        rather than the processing path.
        """
        with translate_errors("keys"):
            return [key async for key in self.client.scan_iter(match=self.namespace.pattern())]

    async def destroy(self) -> int:
        """
        Delete every key of this queue, including the id counter.

        Returns:
            Number of keys deleted.
        """
        keys = await self.keys()
        if not keys:
            return 0
        with translate_errors("destroy"):
            deleted = await self.client.delete(*keys)
        logger.info(
            "Destroyed queue keys",
            extra={"queue": self.name, "key_count": deleted},
        )
        return deleted
