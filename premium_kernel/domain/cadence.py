"""
Billing cadence and calendar-month arithmetic.

Responsibility:
    Defines the four supported premium cadences and the month stepping
    used to advance a contract's due schedule.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - A cadence is always one of 1, 3, 6 or 12 months.
    - Month stepping clamps to the last day of shorter months
      (Jan 31 + 1 month = Feb 28/29) and is applied step by step from the
      previous due time, so a clamped day is carried forward.

Failure modes:
    - InvalidCadenceError from ``BillingCadence.parse`` on unsupported input.
"""

from __future__ import annotations

from datetime import datetime
from enum import IntEnum

from dateutil.relativedelta import relativedelta

from premium_kernel.exceptions import InvalidCadenceError


class BillingCadence(IntEnum):
    """Months between successive premium charges."""

    MONTHLY = 1
    QUARTERLY = 3
    SEMI_ANNUAL = 6
    ANNUAL = 12

    @property
    def months(self) -> int:
        return int(self.value)

    @property
    def charges_per_year(self) -> int:
        """How many premiums fall due in a calendar year."""
        return 12 // self.value

    @classmethod
    def parse(cls, value: BillingCadence | str | int) -> BillingCadence:
        """
        Coerce a member, a member name or a month count to a cadence.

        Names are matched case-insensitively; ``"semi-annual"`` and
        ``"semi_annual"`` are equivalent.  ``bool`` is rejected even though
        it is an ``int`` subclass.

        Raises:
            InvalidCadenceError: if ``value`` names no supported cadence.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidCadenceError(value)
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidCadenceError(value) from None
        if isinstance(value, str):
            key = value.strip().upper().replace("-", "_")
            if key in cls.__members__:
                return cls.__members__[key]
        raise InvalidCadenceError(value)


def advance_months(ts: datetime, months: int) -> datetime:
    """Return ``ts`` moved by ``months`` calendar months."""
    return ts + relativedelta(months=months)
