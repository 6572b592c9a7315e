"""
Clock helpers.

``utcnow()`` stamps run records; ``Stopwatch`` measures wall-clock phases
(aggregation, ranking, whole execution) with ``time.perf_counter``.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

TIMING_LOG_FORMAT = "%Y-%m-%d %H:%M:%S"


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def local_timestamp(when: datetime | None = None) -> str:
    """Format ``when`` (default: now, local time) for the timing log."""
    return (when or datetime.now()).strftime(TIMING_LOG_FORMAT)


class Stopwatch:
    """Context manager recording elapsed wall-clock seconds.

    Usage::

        with Stopwatch() as sw:
            do_work()
        print(sw.elapsed)
    """

    def __init__(self) -> None:
        self._start: float | None = None
        self._stop: float | None = None

    def __enter__(self) -> "Stopwatch":
        self._start = time.perf_counter()
        self._stop = None
        return self

    def __exit__(self, *exc_info) -> None:
        self._stop = time.perf_counter()

    @property
    def elapsed(self) -> float:
        """Seconds since entry; frozen once the block exits."""
        if self._start is None:
            return 0.0
        end = self._stop if self._stop is not None else time.perf_counter()
        return end - self._start
