"""
Pure domain layer.

Data types and validation for the premium ledger with NO dependencies on:
- Persistence
- Wall-clock time
- I/O
"""

from premium_kernel.domain.cadence import BillingCadence, advance_months
from premium_kernel.domain.clock import Clock, CursorClock, FixedClock
from premium_kernel.domain.contracts import ContractGroup, ContractRecord
from premium_kernel.domain.ledger import (
    LedgerEntry,
    LedgerEntrySnapshot,
    PaymentHistory,
    PaymentRecord,
)
from premium_kernel.domain.validation import (
    require_positive_amount,
    require_premium,
    require_reference,
)

__all__ = [
    "BillingCadence",
    "Clock",
    "ContractGroup",
    "ContractRecord",
    "CursorClock",
    "FixedClock",
    "LedgerEntry",
    "LedgerEntrySnapshot",
    "PaymentHistory",
    "PaymentRecord",
    "advance_months",
    "require_positive_amount",
    "require_premium",
    "require_reference",
]
