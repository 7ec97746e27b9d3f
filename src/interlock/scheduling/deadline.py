"""Deadline arithmetic for the interval loop.

Deadlines sit on a fixed grid anchored at the first deadline
(``start + interval``).  A slow action or a suspended process never shifts
the grid; windows that passed while busy are dropped, not replayed.

    grid:      t0+i   t0+2i   t0+3i   t0+4i
                 │       │       │       │
    tick:        ├──action──────────┤    │
                 │       │ (missed)│     │
    next:                                ▲ first grid point not in the past
"""

from __future__ import annotations

import math


def next_deadline(previous: float, interval: float, now: float) -> tuple[float, int]:
    """Return the next deadline after ``previous`` and how many windows were dropped.

    The result is ``previous + k * interval`` for the smallest ``k >= 1``
    that is not before ``now``.

    >>> next_deadline(10.0, 1.0, 10.2)
    (11.0, 0)
    >>> next_deadline(10.0, 1.0, 12.5)
    (13.0, 2)
    """
    if interval <= 0:
        raise ValueError("interval must be positive")

    deadline = previous + interval
    if deadline >= now:
        return deadline, 0

    missed = math.ceil((now - deadline) / interval)
    return deadline + missed * interval, missed
