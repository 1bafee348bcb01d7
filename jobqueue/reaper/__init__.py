"""
Reaper module.
Contains the reaper for stalled jobs and orphaned status set entries.
"""

from jobqueue.reaper.main import Reaper, run

__all__ = ["Reaper", "run"]
