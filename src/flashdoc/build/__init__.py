"""Concurrent, cache-aware parse scheduling."""

from .jobs import TRANSITIONS, Job, JobEvent, JobState, ProgressReporter
from .scheduler import CANCELLED, BuildScheduler, BuildSummary

__all__ = [
    "TRANSITIONS",
    "Job",
    "JobEvent",
    "JobState",
    "ProgressReporter",
    "CANCELLED",
    "BuildScheduler",
    "BuildSummary",
]
