"""Scheduler package for recurring sync cycles."""

from .job_scheduler import SyncScheduler, SchedulerError

__all__ = [
    "SyncScheduler",
    "SchedulerError"
]
