"""
Error types raised by the job queue.

Lock contention is reported through boolean results and never raises.
"""


class JobQueueError(Exception):
    """Base class for job queue errors."""


class JobNotFoundError(JobQueueError):
    """No record exists for the requested job id."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class JobDeserializationError(JobQueueError):
    """The stored job record exists but cannot be decoded."""

    def __init__(self, job_id: str, reason: str | None = None):
        self.job_id = job_id
        message = f"Job {job_id} record is corrupt"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StoreUnavailableError(JobQueueError):
    """A store operation failed (connection, timeout or protocol error)."""
