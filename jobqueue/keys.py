"""
Redis key namespace for a queue.

Layout (all keys share the ``<prefix>:<queue>`` namespace):
- ``<ns>:<job_id>``       -> JSON job record
- ``<ns>:<job_id>:lock``  -> lock token, with TTL
- ``<ns>:<status>``       -> set of job ids in that status
- ``<ns>:id``             -> job id counter
"""

from jobqueue.constants import ID_COUNTER_SUFFIX, KEY_SEPARATOR, LOCK_SUFFIX

# SCAN MATCH glob metacharacters; a name containing one would match other queues
GLOB_METACHARACTERS = frozenset("*?[]\\")


def _validate_segment(kind: str, value: str) -> str:
    if not value:
        raise ValueError(f"{kind} must not be empty")
    if KEY_SEPARATOR in value:
        raise ValueError(f"{kind} must not contain {KEY_SEPARATOR!r}: {value!r}")
    if GLOB_METACHARACTERS.intersection(value):
        raise ValueError(f"{kind} must not contain glob characters: {value!r}")
    return value


class KeyNamespace:
    """Maps logical suffixes of one queue to fully-qualified Redis keys."""

    def __init__(self, prefix: str, queue_name: str):
        self.prefix = _validate_segment("Key prefix", prefix)
        self.queue_name = _validate_segment("Queue name", queue_name)
        self._base = f"{self.prefix}{KEY_SEPARATOR}{self.queue_name}"

    def __repr__(self) -> str:
        return f"KeyNamespace({self.prefix!r}, {self.queue_name!r})"

    def to_key(self, suffix: str) -> str:
        """Qualify a suffix with this queue's namespace."""
        return f"{self._base}{KEY_SEPARATOR}{suffix}"

    def job_key(self, job_id: str) -> str:
        return self.to_key(job_id)

    def lock_key(self, job_id: str) -> str:
        return self.to_key(f"{job_id}{KEY_SEPARATOR}{LOCK_SUFFIX}")

    def status_key(self, status: str) -> str:
        return self.to_key(status)

    def id_key(self) -> str:
        return self.to_key(ID_COUNTER_SUFFIX)

    def pattern(self) -> str:
        """Glob pattern matching every key of this queue."""
        return self.to_key("*")
