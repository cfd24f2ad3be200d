"""Per-file job state machine.

    PENDING ──> CACHE_HIT ──> DONE
       │
       ├──────> PARSING ────> DONE
       │           └────────> FAILED
       └──────> FAILED            (cancelled before starting)

DONE and FAILED are terminal. Every transition produces a JobEvent for
the progress reporter.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from ..exceptions import ErrorCode
from ..scanning.models import SourceUnit


class JobState(Enum):
    PENDING = "pending"
    CACHE_HIT = "cache_hit"
    PARSING = "parsing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.DONE, JobState.FAILED)


TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.PENDING: frozenset({JobState.CACHE_HIT, JobState.PARSING, JobState.FAILED}),
    JobState.CACHE_HIT: frozenset({JobState.DONE, JobState.FAILED}),
    JobState.PARSING: frozenset({JobState.DONE, JobState.FAILED}),
    JobState.DONE: frozenset(),
    JobState.FAILED: frozenset(),
}


@dataclass(frozen=True)
class JobEvent:
    """A state transition of one job."""

    job_id: int
    path: str
    previous: JobState
    new: JobState
    reason: Optional[str] = None


class ProgressReporter(Protocol):
    """Receives job events. Must not block; exceptions are ignored."""

    def __call__(self, event: JobEvent) -> None: ...


@dataclass
class Job:
    """One source file's trip through the scheduler.

    Mutated only by the scheduler, under its lock.
    """

    id: int
    path: str
    state: JobState = JobState.PENDING
    unit: Optional[SourceUnit] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    started_at: Optional[float] = None
    from_cache: bool = False

    def can_move_to(self, new: JobState) -> bool:
        return new in TRANSITIONS[self.state]
