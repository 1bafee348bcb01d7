"""
Job-related type definitions.
"""

import math
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def validate_payload(value: Any, path: str = "data") -> Any:
    """
    Check that a payload survives a JSON round trip unchanged.

    Accepts None, bool, int, finite float, str, lists (tuples are stored
    as lists) and dicts with str keys.

    Raises:
        ValueError: On any other type, a non-str key or a NaN/infinite float.
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"{path} holds a non-finite float: {value!r}")
        return value
    if isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            validate_payload(item, f"{path}[{index}]")
        return value
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError(f"{path} has a non-str key: {key!r}")
            validate_payload(item, f"{path}[{key!r}]")
        return value
    raise ValueError(f"{path} is not JSON data: {type(value).__name__}")


class JobRecord(BaseModel):
    """
    Persisted job record.

    Serialized as ``{"jobId": ..., "data": ...}`` under the job key.
    The payload is opaque but restricted to plain JSON values.
    """

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    data: Any = None

    @field_validator("data")
    @classmethod
    def _check_data(cls, value: Any) -> Any:
        return validate_payload(value)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


@dataclass
class LockInfo:
    """Snapshot of a job's lock key."""

    token: str
    ttl_ms: int

    def is_held_by(self, token: str) -> bool:
        """Check whether the lock is currently owned by the given token."""
        return self.token == token


@dataclass
class ReapResult:
    """Outcome of one reaper pass."""

    requeued: list[str] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.requeued) + len(self.orphans)
