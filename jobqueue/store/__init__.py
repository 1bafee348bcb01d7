"""
Store module.
Contains the Redis connection, server-side scripts and error translation.
"""

from jobqueue.store.connection import (
    close_redis,
    create_redis,
    get_redis,
    init_redis,
    translate_errors,
)
from jobqueue.store.scripts import QueueScripts

__all__ = [
    "create_redis",
    "get_redis",
    "init_redis",
    "close_redis",
    "translate_errors",
    "QueueScripts",
]
