"""Interval scheduling.

Architecture::

    job.py         IntervalJob (action, interval, name, vendor)
    deadline.py    next_deadline() grid arithmetic
    scheduler.py   IntervalScheduler (wait → acquire → run → release loop)
"""

from .deadline import next_deadline
from .job import IntervalJob
from .scheduler import IntervalScheduler, SchedulerStats

__all__ = [
    "IntervalJob",
    "IntervalScheduler",
    "SchedulerStats",
    "next_deadline",
]
