"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job status sets.

    Each status is materialized as a Redis set of job ids. A job belongs
    to at most one of the sets a queue recognizes at any time.

    State transitions driven by the worker and reaper:
    - WAITING -> ACTIVE (lock acquired)
    - ACTIVE -> SUCCEEDED (handler returned)
    - ACTIVE -> FAILED (handler raised)
    - ACTIVE -> WAITING (lock expired - crash recovery)
    """

    WAITING = "waiting"
    ACTIVE = "active"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Key suffixes
LOCK_SUFFIX = "lock"
ID_COUNTER_SUFFIX = "id"
KEY_SEPARATOR = ":"

# Default values
DEFAULT_PREFIX = "jq"
DEFAULT_LOCK_TTL_MS = 5000

# Metrics names
METRIC_JOBS_CREATED = "jobs_created_total"
METRIC_JOBS_REMOVED = "jobs_removed_total"
METRIC_STATUS_TRANSITIONS = "job_status_transitions_total"
METRIC_LOCK_OPERATIONS = "job_lock_operations_total"
METRIC_JOB_DURATION = "job_duration_seconds"
METRIC_JOBS_REQUEUED = "jobs_requeued_total"
METRIC_ORPHANS_REAPED = "orphans_reaped_total"

# Trace span names
SPAN_EXECUTE_JOB = "execute_job"
SPAN_REAP = "reap"
