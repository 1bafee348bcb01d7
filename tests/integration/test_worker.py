"""
Integration tests for worker functionality.
"""

import asyncio

import fakeredis
import pytest

from jobqueue.constants import JobStatus
from jobqueue.job import Job
from jobqueue.queue import Queue
from jobqueue.worker import Worker


async def noop_handler(job: Job) -> None:
    return None


class TestWorkerIntegration:
    """Integration tests for worker job processing."""

    @pytest.mark.asyncio
    async def test_full_job_lifecycle_success(self, queue: Queue):
        """Test complete job lifecycle: add -> claim -> run -> succeeded."""
        seen: list[tuple[str, object, bool, bool]] = []

        async def handler(job: Job) -> None:
            lock = await job.get_lock()
            seen.append(
                (
                    job.job_id,
                    job.data,
                    await job.is_in_set(JobStatus.ACTIVE),
                    lock is not None and lock.is_held_by(queue.token),
                )
            )

        job = await queue.add({"message": "hello"})
        worker = Worker(queue, handler)

        processed = await worker.run_once()

        assert processed is True
        assert seen == [(job.job_id, {"message": "hello"}, True, True)]
        assert await job.is_in_set(JobStatus.SUCCEEDED) is True
        assert await job.is_in_set(JobStatus.ACTIVE) is False
        assert await job.is_in_set(JobStatus.WAITING) is False
        assert await job.get_lock() is None

    @pytest.mark.asyncio
    async def test_failing_handler_marks_failed(self, queue: Queue):
        """Test a raising handler settles the job as failed."""

        async def handler(job: Job) -> None:
            raise RuntimeError("boom")

        job = await queue.add({"message": "hello"})

        assert await Worker(queue, handler).run_once() is True

        assert await job.is_in_set(JobStatus.FAILED) is True
        assert await job.is_in_set(JobStatus.SUCCEEDED) is False
        assert await job.get_lock() is None

    async def test_empty_queue(self, queue: Queue):
        """Test polling an empty queue does nothing."""
        assert await Worker(queue, noop_handler).run_once() is False

    async def test_skips_locked_job(self, queue: Queue):
        """Test a job locked by another worker is not claimed."""
        job = await queue.add({"message": "hello"})
        assert await job.acquire_lock(token="worker-b") is True

        assert await Worker(queue, noop_handler).run_once() is False

        assert await job.is_in_set(JobStatus.WAITING) is True
        assert (await job.get_lock()).is_held_by("worker-b")

    async def test_skips_removed_record(self, queue: Queue):
        """Test a waiting id without a record is skipped and unlocked."""
        job = await queue.add({"message": "hello"})
        await job.remove()

        assert await Worker(queue, noop_handler).run_once() is False

        assert await job.get_lock() is None
        assert await job.is_in_set(JobStatus.WAITING) is True

    async def test_corrupt_record_marked_failed(self, queue: Queue, redis_client):
        """Test an unreadable record is moved to failed without running the handler."""
        calls: list[str] = []

        async def handler(job: Job) -> None:
            calls.append(job.job_id)

        job = await queue.add({"message": "hello"})
        await redis_client.set(job.key, "garbage")

        assert await Worker(queue, handler).run_once() is False

        assert calls == []
        assert await job.is_in_set(JobStatus.FAILED) is True
        assert await job.get_lock() is None

    async def test_undecodable_record_marked_failed(self, queue: Queue, fake_server: fakeredis.FakeServer):
        """Test a record that is not valid UTF-8 is failed and unlocked, not retried."""
        calls: list[str] = []

        async def handler(job: Job) -> None:
            calls.append(job.job_id)

        job = await queue.add({"message": "hello"})
        raw_client = fakeredis.FakeAsyncRedis(server=fake_server)
        await raw_client.set(job.key, b"\xff\xfe{bad")
        await raw_client.aclose()

        assert await Worker(queue, handler).run_once() is False

        assert calls == []
        assert await job.is_in_set(JobStatus.FAILED) is True
        assert await job.is_in_set(JobStatus.WAITING) is False
        assert await job.get_lock() is None

    async def test_two_workers_never_share_a_job(self, queue: Queue, make_queue):
        """Test concurrent workers process each job exactly once."""
        processed: list[str] = []

        async def handler(job: Job) -> None:
            processed.append(job.job_id)
            await asyncio.sleep(0.01)

        jobs = [await queue.add({"n": n}) for n in range(6)]
        workers = [
            Worker(make_queue(f"worker-{n}"), handler, batch_size=6)
            for n in range(3)
        ]

        for _ in range(6):
            await asyncio.gather(*(worker.run_once() for worker in workers))

        assert sorted(processed) == sorted(job.job_id for job in jobs)
        assert await queue.count(JobStatus.SUCCEEDED) == 6
        assert await queue.count(JobStatus.WAITING) == 0

    async def test_heartbeat_keeps_lock_alive(self, make_queue):
        """Test a job running longer than the TTL keeps its lock."""
        queue = make_queue("worker-hb", lock_ttl_ms=200)
        observed: list[bool] = []

        async def handler(job: Job) -> None:
            for _ in range(4):
                await asyncio.sleep(0.1)
                lock = await job.get_lock()
                observed.append(lock is not None and lock.is_held_by("worker-hb"))

        job = await queue.add({"message": "slow"})
        worker = Worker(queue, handler, heartbeat_interval=0.05)

        assert worker.heartbeat_interval == 0.05
        assert await worker.run_once() is True

        assert observed == [True, True, True, True]
        assert await job.is_in_set(JobStatus.SUCCEEDED) is True
        await queue.destroy()

    async def test_default_heartbeat_is_half_ttl(self, make_queue):
        """Test the heartbeat defaults to half the queue's lock TTL."""
        worker = Worker(make_queue("worker-x", lock_ttl_ms=3000), noop_handler)

        assert worker.heartbeat_interval == 1.5
        assert worker.token == "worker-x"

    async def test_start_and_stop(self, queue: Queue):
        """Test the polling loop drains jobs and stops gracefully."""
        done = asyncio.Event()
        processed: list[str] = []

        async def handler(job: Job) -> None:
            processed.append(job.job_id)
            if len(processed) == 3:
                done.set()

        for n in range(3):
            await queue.add({"n": n})

        worker = Worker(queue, handler, poll_interval=0.01)
        task = asyncio.create_task(worker.start())

        await asyncio.wait_for(done.wait(), timeout=5)
        await worker.stop()
        await asyncio.wait_for(task, timeout=5)

        assert worker.running is False
        assert len(processed) == 3
        assert await queue.count(JobStatus.SUCCEEDED) == 3
