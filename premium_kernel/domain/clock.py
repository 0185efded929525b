"""
Clock -- Externally driven time cursor.

Responsibility:
    Provides the injectable "current time" the settlement ledger works
    against.  Domain, engine, and service code never call
    ``datetime.now()``; the embedder moves the cursor between batches of
    operations.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - The cursor is never None.
    - Only the embedder moves the cursor; nothing in the kernel advances it
      as a side effect.

Failure modes:
    - MissingReferenceError when a None time is supplied.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from premium_kernel.domain.cadence import advance_months
from premium_kernel.exceptions import MissingReferenceError


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Services that need the current time receive a Clock instance via
        constructor injection.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...


class CursorClock(Clock):
    """
    Clock whose time is set explicitly by the caller.

    Contract:
        ``now()`` returns the same value on repeated calls until
        ``set_time()`` or ``advance()`` is called.  The cursor may be moved
        backwards; consumers must not assume monotonic time.
    """

    def __init__(self, start: datetime):
        if start is None:
            raise MissingReferenceError("current_time")
        self._current = start

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        """Set the cursor to a specific time."""
        if time is None:
            raise MissingReferenceError("current_time")
        self._current = time

    def advance(self, *, months: int = 0, days: int = 0, seconds: int = 0) -> datetime:
        """Move the cursor forward and return the new time."""
        moved = advance_months(self._current, months) if months else self._current
        self._current = moved + timedelta(days=days, seconds=seconds)
        return self._current


class FixedClock(Clock):
    """Clock pinned to a single instant.  Cannot be moved."""

    def __init__(self, fixed_time: datetime):
        if fixed_time is None:
            raise MissingReferenceError("current_time")
        self._fixed = fixed_time

    def now(self) -> datetime:
        return self._fixed
