"""
Prometheus metrics collection.
"""

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    start_http_server,
)

from jobqueue.constants import (
    METRIC_JOB_DURATION,
    METRIC_JOBS_CREATED,
    METRIC_JOBS_REMOVED,
    METRIC_JOBS_REQUEUED,
    METRIC_LOCK_OPERATIONS,
    METRIC_ORPHANS_REAPED,
    METRIC_STATUS_TRANSITIONS,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the job queue.

    Collects metrics for:
    - Job creation and removal
    - Status set transitions
    - Lock operations and their outcomes
    - Job execution duration
    - Reaper activity
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.jobs_created = Counter(
            METRIC_JOBS_CREATED,
            "Total number of jobs created",
            ["queue"],
            registry=self._registry,
        )

        self.jobs_removed = Counter(
            METRIC_JOBS_REMOVED,
            "Total number of job records removed",
            ["queue"],
            registry=self._registry,
        )

        self.status_transitions = Counter(
            METRIC_STATUS_TRANSITIONS,
            "Total number of status set transitions",
            ["queue", "status"],
            registry=self._registry,
        )

        # outcome is "ok" or "contended"
        self.lock_operations = Counter(
            METRIC_LOCK_OPERATIONS,
            "Total number of lock operations",
            ["queue", "operation", "outcome"],
            registry=self._registry,
        )

        self.job_duration = Histogram(
            METRIC_JOB_DURATION,
            "Job execution duration in seconds",
            ["queue", "status"],
            buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )

        self.jobs_requeued = Counter(
            METRIC_JOBS_REQUEUED,
            "Total number of stalled jobs returned to waiting",
            ["queue"],
            registry=self._registry,
        )

        self.orphans_reaped = Counter(
            METRIC_ORPHANS_REAPED,
            "Total number of status set entries without a job record",
            ["queue"],
            registry=self._registry,
        )

    def record_job_created(self, queue: str) -> None:
        """Record a job creation."""
        self.jobs_created.labels(queue=queue).inc()

    def record_job_removed(self, queue: str) -> None:
        """Record a job record deletion."""
        self.jobs_removed.labels(queue=queue).inc()

    def record_status_transition(self, queue: str, status: str) -> None:
        """Record a move into a status set."""
        self.status_transitions.labels(queue=queue, status=status).inc()

    def record_lock_operation(self, queue: str, operation: str, success: bool) -> None:
        """Record an acquire, renew or release attempt."""
        self.lock_operations.labels(
            queue=queue,
            operation=operation,
            outcome="ok" if success else "contended",
        ).inc()

    def record_job_completed(
        self,
        queue: str,
        status: str,
        duration_seconds: float,
    ) -> None:
        """Record a job execution finishing."""
        self.job_duration.labels(queue=queue, status=status).observe(duration_seconds)

    def record_reaped(self, queue: str, requeued: int, orphans: int) -> None:
        """Record the outcome of a reaper pass."""
        if requeued:
            self.jobs_requeued.labels(queue=queue).inc(requeued)
        if orphans:
            self.orphans_reaped.labels(queue=queue).inc(orphans)

    def serve(self, port: int) -> None:
        """Expose this collector's registry over HTTP for Prometheus to scrape."""
        start_http_server(port, registry=self._registry)


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
