"""
Redis Job Queue

A distributed job queue where workers coordinate exclusively through Redis:
atomic job records, status sets, and token-owned expiring locks.
"""

__version__ = "1.0.0"

from jobqueue.job import Job  # noqa: E402
from jobqueue.queue import Queue  # noqa: E402

__all__ = ["Job", "Queue", "__version__"]
