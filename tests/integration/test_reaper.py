"""
Integration tests for the reaper.
"""

import asyncio

from prometheus_client import CollectorRegistry

from jobqueue.constants import JobStatus
from jobqueue.job import Job
from jobqueue.queue import Queue
from jobqueue.reaper import Reaper
from jobqueue.worker import Worker


class TestReaperIntegration:
    """Integration tests for stalled job recovery and orphan cleanup."""

    async def test_requeues_stalled_job(self, queue: Queue):
        """Test an active job without a lock returns to waiting."""
        job = await queue.add({"message": "hello"})
        await job.move_to_set(JobStatus.ACTIVE)

        result = await Reaper(queue).run_once()

        assert result.requeued == [job.job_id]
        assert await job.is_in_set(JobStatus.WAITING) is True
        assert await job.is_in_set(JobStatus.ACTIVE) is False

    async def test_leaves_locked_job(self, queue: Queue):
        """Test an active job whose lock is alive is not touched."""
        job = await queue.add({"message": "hello"})
        await job.acquire_lock()
        await job.move_to_set(JobStatus.ACTIVE)

        result = await Reaper(queue).run_once()

        assert result.requeued == []
        assert await job.is_in_set(JobStatus.ACTIVE) is True

    async def test_removes_orphaned_entries(self, queue: Queue):
        """Test set entries of removed jobs are dropped."""
        kept = await queue.add({"n": 1})
        removed = await queue.add({"n": 2})
        await removed.move_to_set(JobStatus.SUCCEEDED)
        await removed.remove()

        result = await Reaper(queue).run_once()

        assert result.orphans == [removed.job_id]
        assert result.requeued == []
        assert await removed.is_in_set(JobStatus.SUCCEEDED) is False
        assert await kept.is_in_set(JobStatus.WAITING) is True

    async def test_orphan_in_active_is_not_requeued(self, queue: Queue):
        """Test a removed active job is dropped rather than requeued."""
        job = await queue.add({"n": 1})
        await job.move_to_set(JobStatus.ACTIVE)
        await job.remove()

        result = await Reaper(queue).run_once()

        assert result.orphans == [job.job_id]
        assert result.requeued == []
        assert await queue.count(JobStatus.WAITING) == 0

    async def test_records_metrics(self, queue: Queue, registry: CollectorRegistry):
        """Test reaped jobs are counted."""
        job = await queue.add({"n": 1})
        await job.move_to_set(JobStatus.ACTIVE)

        await Reaper(queue).run_once()

        assert registry.get_sample_value("jobs_requeued_total", {"queue": "test"}) == 1

    async def test_crashed_worker_job_is_recovered(self, queue: Queue, make_queue):
        """Test a job claimed by a crashed worker is processed by another after TTL expiry."""
        job = await queue.add({"message": "hello"})

        # Worker A claims the job and dies without renewing or releasing
        crashed = Job(make_queue("worker-crashed"), job.job_id)
        assert await crashed.acquire_lock(ttl_ms=50) is True
        await crashed.move_to_set(JobStatus.ACTIVE)

        reaper = Reaper(queue)
        assert (await reaper.run_once()).requeued == []

        await asyncio.sleep(0.15)
        assert (await reaper.run_once()).requeued == [job.job_id]

        processed: list[str] = []

        async def handler(claimed: Job) -> None:
            processed.append(claimed.job_id)

        assert await Worker(make_queue("worker-b"), handler).run_once() is True
        assert processed == [job.job_id]
        assert await job.is_in_set(JobStatus.SUCCEEDED) is True

    async def test_start_and_stop(self, queue: Queue):
        """Test the reaper loop runs passes until stopped."""
        job = await queue.add({"n": 1})
        await job.move_to_set(JobStatus.ACTIVE)

        reaper = Reaper(queue, interval_seconds=0.01)
        task = asyncio.create_task(reaper.start())

        for _ in range(100):
            if await job.is_in_set(JobStatus.WAITING):
                break
            await asyncio.sleep(0.01)

        await reaper.stop()
        await asyncio.wait_for(task, timeout=5)

        assert await job.is_in_set(JobStatus.WAITING) is True
