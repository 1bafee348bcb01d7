"""
Type definitions for the job queue.
"""

from jobqueue.types.job import JobRecord, LockInfo, ReapResult, validate_payload

__all__ = [
    "JobRecord",
    "LockInfo",
    "ReapResult",
    "validate_payload",
]
