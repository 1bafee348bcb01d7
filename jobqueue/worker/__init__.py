"""
Worker module.
Contains the worker that claims, executes and settles jobs.
"""

from jobqueue.worker.main import JobHandler, Worker, run_worker

__all__ = ["Worker", "JobHandler", "run_worker"]
