"""
Worker process for executing jobs.

The worker samples the waiting set, claims a job by acquiring its lock,
keeps the lock alive with a heartbeat while the handler runs, and settles
the job into the succeeded or failed set before releasing the lock.
"""

import asyncio
import logging
import signal
import time
from collections.abc import Awaitable, Callable
from typing import Any

from jobqueue.config import get_settings
from jobqueue.constants import SPAN_EXECUTE_JOB, JobStatus
from jobqueue.errors import (
    JobDeserializationError,
    JobNotFoundError,
    StoreUnavailableError,
)
from jobqueue.job import Job
from jobqueue.observability.logging import setup_logging
from jobqueue.observability.metrics import get_metrics
from jobqueue.observability.tracing import create_span, instrument_redis
from jobqueue.queue import Queue
from jobqueue.store import close_redis, init_redis

logger = logging.getLogger(__name__)

# Type alias for job handler functions
JobHandler = Callable[[Job], Awaitable[Any]]


class Worker:
    """
    Job worker that polls for and executes jobs.

    Features:
    - Exclusive claims through the job lock (SET NX)
    - Heartbeat renewing the lock for long-running jobs
    - Graceful shutdown on SIGTERM/SIGINT

    A handler that returns marks the job succeeded; one that raises marks
    it failed. Retry policy belongs to the caller.
    """

    def __init__(
        self,
        queue: Queue,
        handler: JobHandler,
        token: str | None = None,
        batch_size: int | None = None,
        poll_interval: float | None = None,
        heartbeat_interval: float | None = None,
    ):
        """
        Initialize the worker.

        Args:
            queue: The queue to consume.
            handler: Coroutine function executed for each claimed job.
            token: Lock credential. Defaults to the queue token.
            batch_size: Number of waiting ids sampled per poll.
            poll_interval: Seconds between polls when no job was claimed.
            heartbeat_interval: Seconds between lock renewals.
        """
        settings = get_settings()

        self.queue = queue
        self.handler = handler
        self.token = token or queue.token
        self.batch_size = batch_size or settings.worker_batch_size
        self.poll_interval = poll_interval or settings.worker_poll_interval_seconds
        self.heartbeat_interval = (
            heartbeat_interval
            or settings.worker_heartbeat_interval_seconds
            or queue.lock_ttl_ms / 2000.0
        )

        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run the polling loop until stop() is called."""
        logger.info(
            "Worker starting",
            extra={"queue": self.queue.name, "token": self.token},
        )

        self._running = True

        while self._running:
            try:
                processed = await self.run_once()

                if not processed:
                    await asyncio.sleep(self.poll_interval)

            except Exception as e:
                logger.exception(
                    f"Error in worker loop: {e}",
                    extra={"queue": self.queue.name, "token": self.token},
                )
                await asyncio.sleep(self.poll_interval)

        logger.info("Worker stopped", extra={"queue": self.queue.name, "token": self.token})

    async def stop(self) -> None:
        """Stop the worker after the current job settles."""
        logger.info("Worker stopping", extra={"queue": self.queue.name, "token": self.token})
        self._running = False

    async def run_once(self) -> bool:
        """
        Claim and execute at most one job.

        Returns:
            True if a job was executed.
        """
        job = await self._claim_next()
        if job is None:
            return False

        await self._execute_job(job)
        return True

    async def _claim_next(self) -> Job | None:
        """
        Claim a waiting job.

        The lock is taken first; membership is re-checked under the lock
        because the sampled id may have been settled by another worker.

        Returns:
            The claimed job, now in the active set, or None.
        """
        candidates = await self.queue.sample_ids(JobStatus.WAITING, self.batch_size)

        for job_id in candidates:
            probe = Job(self.queue, job_id)

            if not await probe.acquire_lock(self.token):
                continue

            if not await probe.is_in_set(JobStatus.WAITING):
                await probe.release_lock(self.token)
                continue

            try:
                job = await Job.from_id(self.queue, job_id)
            except JobNotFoundError:
                # Record removed while waiting; the reaper clears the entry
                await probe.release_lock(self.token)
                continue
            except JobDeserializationError:
                logger.error(
                    "Unreadable job record, marking failed",
                    extra={"queue": self.queue.name, "job_id": job_id},
                )
                await probe.move_to_set(JobStatus.FAILED)
                await probe.release_lock(self.token)
                continue

            await job.move_to_set(JobStatus.ACTIVE)

            logger.info(
                "Claimed job",
                extra={"queue": self.queue.name, "job_id": job_id, "token": self.token},
            )
            return job

        return None

    async def _execute_job(self, job: Job) -> None:
        """
        Execute a claimed job and settle it.

        Args:
            job: A job whose lock is held by this worker.
        """
        start_time = time.time()
        heartbeat = asyncio.create_task(self._heartbeat_loop(job))

        try:
            with create_span(SPAN_EXECUTE_JOB, queue=self.queue.name, job_id=job.job_id):
                await self.handler(job)
            status = JobStatus.SUCCEEDED
        except Exception as e:
            logger.warning(
                "Job failed",
                extra={"queue": self.queue.name, "job_id": job.job_id, "error": str(e)},
            )
            status = JobStatus.FAILED
        finally:
            heartbeat.cancel()
            try:
                await heartbeat
            except asyncio.CancelledError:
                pass

        duration = time.time() - start_time

        await job.move_to_set(status)
        released = await job.release_lock(self.token)

        if not released:
            logger.warning(
                "Lock was no longer held when settling job",
                extra={"queue": self.queue.name, "job_id": job.job_id},
            )

        self.queue.metrics.record_job_completed(
            queue=self.queue.name,
            status=status,
            duration_seconds=duration,
        )

        logger.info(
            "Job settled",
            extra={
                "queue": self.queue.name,
                "job_id": job.job_id,
                "status": status.value,
                "duration": f"{duration:.2f}s",
            },
        )

    async def _heartbeat_loop(self, job: Job) -> None:
        """
        Periodically renew the job lock while the handler runs.

        This keeps the reaper from treating the job as stalled.
        """
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await job.renew_lock(self.token)
                logger.debug(
                    "Renewed lock",
                    extra={"queue": self.queue.name, "job_id": job.job_id},
                )
            except StoreUnavailableError as e:
                logger.warning(
                    f"Failed to renew lock: {e}",
                    extra={"queue": self.queue.name, "job_id": job.job_id},
                )


async def run_worker(handler: JobHandler, queue_name: str | None = None) -> None:
    """
    Run a worker on the shared connection until SIGTERM/SIGINT.

    Args:
        handler: Coroutine function executed for each job.
        queue_name: Queue to consume. Defaults to the configured queue.
    """
    setup_logging()
    instrument_redis()

    settings = get_settings()
    if settings.prometheus_port:
        get_metrics().serve(settings.prometheus_port)

    client = await init_redis()

    worker = Worker(Queue(queue_name, client=client), handler)

    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(worker.stop())
        )

    try:
        await worker.start()
    finally:
        await close_redis()
