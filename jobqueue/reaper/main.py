"""
Reaper for stalled jobs and orphaned status set entries.

A worker that crashes leaves its job in the active set until the lock
key expires. The reaper returns such jobs to the waiting set. It also
drops status set entries whose job record has been removed, since
Job.remove leaves set membership untouched.
"""

import asyncio
import logging
import signal

from jobqueue.config import get_settings
from jobqueue.constants import SPAN_REAP, JobStatus
from jobqueue.observability.logging import setup_logging
from jobqueue.observability.metrics import get_metrics
from jobqueue.observability.tracing import create_span, instrument_redis
from jobqueue.queue import Queue
from jobqueue.store import close_redis, init_redis, translate_errors
from jobqueue.types.job import ReapResult

logger = logging.getLogger(__name__)


class Reaper:
    """
    Periodic cleanup pass over one queue.

    Each pass:
    1. Removes ids from every status set when the job record is gone
    2. Moves active jobs whose lock has expired back to waiting
    3. Records metrics for monitoring

    Both steps run as server-side scripts that re-check their condition,
    so a job claimed or renewed concurrently is never touched.
    """

    def __init__(self, queue: Queue, interval_seconds: float | None = None):
        """
        Initialize the reaper.

        Args:
            queue: The queue to clean.
            interval_seconds: Seconds between reaper runs.
        """
        settings = get_settings()
        self.queue = queue
        self.interval = interval_seconds or settings.reaper_interval_seconds
        self._running = False

    async def start(self) -> None:
        """Start the reaper loop."""
        logger.info(f"Reaper starting with interval {self.interval}s", extra={"queue": self.queue.name})
        self._running = True

        while self._running:
            try:
                result = await self.run_once()

                if result.total > 0:
                    logger.info(
                        f"Requeued {len(result.requeued)} stalled jobs, "
                        f"dropped {len(result.orphans)} orphaned entries",
                        extra={"queue": self.queue.name},
                    )

            except Exception as e:
                logger.exception(f"Error in reaper loop: {e}")

            await asyncio.sleep(self.interval)

        logger.info("Reaper stopped", extra={"queue": self.queue.name})

    async def stop(self) -> None:
        """Stop the reaper."""
        logger.info("Reaper stopping", extra={"queue": self.queue.name})
        self._running = False

    async def run_once(self) -> ReapResult:
        """
        Run a single reaper pass.

        Returns:
            The ids requeued and the orphaned entries removed.
        """
        result = ReapResult()

        with create_span(SPAN_REAP, queue=self.queue.name):
            result.orphans = await self._reap_orphans()
            result.requeued = await self._requeue_stalled()

        self.queue.metrics.record_reaped(
            self.queue.name,
            requeued=len(result.requeued),
            orphans=len(result.orphans),
        )
        return result

    async def _reap_orphans(self) -> list[str]:
        """Remove set entries whose job record no longer exists."""
        namespace = self.queue.namespace
        orphans: list[str] = []

        for status in self.queue.statuses:
            status_key = namespace.status_key(status)
            for job_id in sorted(await self.queue.job_ids(status)):
                with translate_errors("reap_orphan"):
                    removed = await self.queue.scripts.reap_orphan(
                        keys=[status_key, namespace.job_key(job_id)],
                        args=[job_id],
                    )
                if removed:
                    orphans.append(job_id)

        return orphans

    async def _requeue_stalled(self) -> list[str]:
        """Move active jobs without a lock back to the waiting set."""
        namespace = self.queue.namespace
        active_key = namespace.status_key(JobStatus.ACTIVE)
        waiting_key = namespace.status_key(JobStatus.WAITING)
        requeued: list[str] = []

        for job_id in sorted(await self.queue.job_ids(JobStatus.ACTIVE)):
            with translate_errors("requeue_stalled"):
                moved = await self.queue.scripts.requeue_stalled(
                    keys=[active_key, waiting_key, namespace.lock_key(job_id)],
                    args=[job_id],
                )
            if moved:
                logger.warning(
                    "Requeued stalled job",
                    extra={"queue": self.queue.name, "job_id": job_id},
                )
                requeued.append(job_id)

        return requeued


async def run_async() -> None:
    """Run the reaper asynchronously."""
    setup_logging()
    instrument_redis()

    settings = get_settings()
    if settings.prometheus_port:
        get_metrics().serve(settings.prometheus_port)

    client = await init_redis()

    reaper = Reaper(Queue(client=client))

    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: asyncio.create_task(reaper.stop())
        )

    try:
        await reaper.start()
    finally:
        await close_redis()


def run() -> None:
    """Run the reaper."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
