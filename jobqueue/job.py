"""
Job record persistence, status transitions and the lock protocol.

A Job is a detached in-memory view of a record stored in Redis. Every
operation is a single command, a MULTI/EXEC transaction or a server-side
script, so callers never observe a partial read-then-write.

Lock protocol per job lock key:
- absent -> held(token) via acquire_lock (SET NX) or renew_lock (SET)
- held(token) -> absent via release_lock with the same token, or TTL expiry
- held(a) -> held(b) via renew_lock only
"""

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from jobqueue.constants import JobStatus
from jobqueue.errors import JobDeserializationError, JobNotFoundError
from jobqueue.store import translate_errors
from jobqueue.types.job import JobRecord, LockInfo, validate_payload

if TYPE_CHECKING:
    from jobqueue.queue import Queue

logger = logging.getLogger(__name__)


class Job:
    """A unit of work: id, opaque payload and the operations scoped to it."""

    def __init__(self, queue: "Queue", job_id: str, data: Any = None):
        self.queue = queue
        self.job_id = str(job_id)
        self.data = data

    def __repr__(self) -> str:
        return f"Job(queue={self.queue.name!r}, job_id={self.job_id!r})"

    @property
    def key(self) -> str:
        return self.queue.namespace.job_key(self.job_id)

    @property
    def lock_key(self) -> str:
        return self.queue.namespace.lock_key(self.job_id)

    def to_record(self) -> JobRecord:
        return JobRecord(job_id=self.job_id, data=self.data)

    # ------------------------------------------------------------------
    # Record persistence
    # ------------------------------------------------------------------

    @classmethod
    async def create(cls, queue: "Queue", data: Any, enqueue: bool = True) -> "Job":
        """
        Allocate an id and persist a new job record.

        The id comes from an atomic INCR on the queue's counter. The record
        and, when ``enqueue`` is set, the waiting set membership are written
        in one MULTI/EXEC transaction.

        Args:
            queue: The owning queue.
            data: JSON-serializable payload.
            enqueue: Also add the job to the waiting set.

        Returns:
            Job holding the payload exactly as it was persisted.

        Raises:
            ValueError: If the payload would not survive a JSON round trip.
            StoreUnavailableError: If a store operation fails.
        """
        client = queue.client
        namespace = queue.namespace

        # Checked before INCR so a rejected payload does not consume an id
        validate_payload(data)

        with translate_errors("create"):
            job_id = str(await client.incr(namespace.id_key()))

        payload = JobRecord(job_id=job_id, data=data).to_json()

        with translate_errors("create"):
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(namespace.job_key(job_id), payload)
                if enqueue:
                    pipe.sadd(namespace.status_key(JobStatus.WAITING), job_id)
                await pipe.execute()

        queue.metrics.record_job_created(queue.name)
        logger.debug(
            "Created job",
            extra={"queue": queue.name, "job_id": job_id, "enqueued": enqueue},
        )

        stored = JobRecord.model_validate_json(payload)
        return cls(queue, stored.job_id, stored.data)

    @classmethod
    async def from_id(cls, queue: "Queue", job_id: str) -> "Job":
        """
        Load a job record.

        Args:
            queue: The owning queue.
            job_id: The job id.

        Returns:
            The stored Job.

        Raises:
            JobNotFoundError: If no record exists for the id.
            JobDeserializationError: If the record cannot be decoded.
            StoreUnavailableError: If the store operation fails.
        """
        job_id = str(job_id)

        try:
            with translate_errors("from_id"):
                raw = await queue.client.get(queue.namespace.job_key(job_id))
        except UnicodeDecodeError as e:
            logger.warning(
                "Job record is not valid UTF-8",
                extra={"queue": queue.name, "job_id": job_id},
            )
            raise JobDeserializationError(job_id, "record is not valid UTF-8") from e

        if raw is None:
            raise JobNotFoundError(job_id)

        try:
            record = JobRecord.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "Corrupt job record",
                extra={"queue": queue.name, "job_id": job_id},
            )
            raise JobDeserializationError(job_id, str(e)) from e

        if record.job_id != job_id:
            raise JobDeserializationError(
                job_id, f"record holds job id {record.job_id!r}"
            )

        return cls(queue, record.job_id, record.data)

    async def remove(self) -> None:
        """
        Delete the job record.

        Idempotent. The lock key and status set memberships are left in
        place; the reaper clears set entries whose record is gone.
        """
        with translate_errors("remove"):
            deleted = await self.queue.client.delete(self.key)

        if deleted:
            self.queue.metrics.record_job_removed(self.queue.name)
        logger.debug(
            "Removed job",
            extra={"queue": self.queue.name, "job_id": self.job_id, "existed": bool(deleted)},
        )

    # ------------------------------------------------------------------
    # Status sets
    # ------------------------------------------------------------------

    async def move_to_set(self, status: str) -> None:
        """
        Atomically make ``status`` the only status set holding this job.

        Removes the id from every other recognized set and adds it to the
        target in a single server-side script. Repeating the call with the
        same status leaves membership unchanged.

        Raises:
            ValueError: If the queue does not recognize the status.
            StoreUnavailableError: If the script fails.
        """
        target = self.queue.check_status(status)
        namespace = self.queue.namespace
        keys = [namespace.status_key(target)] + [
            namespace.status_key(other)
            for other in self.queue.statuses
            if other != target
        ]

        with translate_errors("move_to_set"):
            await self.queue.scripts.move_to_set(keys=keys, args=[self.job_id])

        self.queue.metrics.record_status_transition(self.queue.name, target)
        logger.debug(
            "Moved job to status set",
            extra={"queue": self.queue.name, "job_id": self.job_id, "status": target},
        )

    async def is_in_set(self, status: str) -> bool:
        """Check whether the job is a member of a status set."""
        key = self.queue.namespace.status_key(self.queue.check_status(status))
        with translate_errors("is_in_set"):
            return bool(await self.queue.client.sismember(key, self.job_id))

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def _resolve_token(self, token: str | None) -> str:
        return self.queue.token if token is None else token

    def _resolve_ttl(self, ttl_ms: int | None) -> int:
        ttl = self.queue.lock_ttl_ms if ttl_ms is None else ttl_ms
        if ttl <= 0:
            raise ValueError(f"Lock TTL must be positive, got {ttl}")
        return ttl

    async def acquire_lock(self, token: str | None = None, ttl_ms: int | None = None) -> bool:
        """
        Claim the job lock if nobody holds it (SET NX PX).

        Fails when the key exists, including when it holds the caller's own
        token; an existing lock is left untouched.

        Args:
            token: Ownership credential. Defaults to the queue token.
            ttl_ms: Lock lifetime in milliseconds. Defaults to the queue TTL.

        Returns:
            True if the lock was newly acquired.
        """
        token = self._resolve_token(token)
        ttl = self._resolve_ttl(ttl_ms)

        with translate_errors("acquire_lock"):
            acquired = bool(
                await self.queue.client.set(self.lock_key, token, nx=True, px=ttl)
            )

        self.queue.metrics.record_lock_operation(self.queue.name, "acquire", acquired)
        return acquired

    async def renew_lock(self, token: str | None = None, ttl_ms: int | None = None) -> bool:
        """
        Write the token with a fresh TTL regardless of the current holder.

        Intended for heartbeats by the current holder; it takes an absent
        lock and overwrites a foreign one without checking ownership.

        Returns:
            True once the write succeeded.
        """
        token = self._resolve_token(token)
        ttl = self._resolve_ttl(ttl_ms)

        with translate_errors("renew_lock"):
            renewed = bool(await self.queue.client.set(self.lock_key, token, px=ttl))

        self.queue.metrics.record_lock_operation(self.queue.name, "renew", renewed)
        return renewed

    async def release_lock(self, token: str | None = None) -> bool:
        """
        Delete the lock only if it holds ``token`` (atomic compare-and-delete).

        Returns:
            True if the lock was held by the token and is now released;
            False if the key is absent or held by another token.
        """
        token = self._resolve_token(token)

        with translate_errors("release_lock"):
            released = await self.queue.scripts.release_lock(
                keys=[self.lock_key], args=[token]
            )

        released = int(released) == 1
        self.queue.metrics.record_lock_operation(self.queue.name, "release", released)
        if not released:
            logger.debug(
                "Lock not released, token mismatch or expired",
                extra={"queue": self.queue.name, "job_id": self.job_id},
            )
        return released

    async def get_lock(self) -> LockInfo | None:
        """
        Read the current lock holder and remaining TTL.

        Returns:
            LockInfo, or None if the job is unlocked.
        """
        with translate_errors("get_lock"):
            async with self.queue.client.pipeline(transaction=True) as pipe:
                pipe.get(self.lock_key)
                pipe.pttl(self.lock_key)
                token, ttl_ms = await pipe.execute()

        if token is None:
            return None
        return LockInfo(token=token, ttl_ms=ttl_ms)
