"""Events streamed by write and verify jobs.

A job yields exactly one JobStarted (unless it fails before the total is
known), any number of JobProgress and JobWarning events, and always ends
with a single JobFinished.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class JobStarted:
    total: int


@dataclass(frozen=True)
class JobProgress:
    done: int
    total: int
    throughput: float


@dataclass(frozen=True)
class JobWarning:
    """Non-fatal problem in a best-effort step (unmount, partition re-read)."""

    message: str


@dataclass(frozen=True)
class JobFinished:
    """Terminal event; error is None on success."""

    error: str | None = None


JobEvent = JobStarted | JobProgress | JobWarning | JobFinished

__all__ = ["JobEvent", "JobFinished", "JobProgress", "JobStarted", "JobWarning"]
