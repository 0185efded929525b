"""
Module: premium_engines.accrual
Responsibility:
    Advance a ledger entry's due schedule up to a given time, adding one
    premium to the outstanding balance for every billing cycle that fell
    due on or before that time.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import premium_kernel (domain types, logging) and sibling engine
    modules such as premium_engines.tracer.  MUST NOT import
    premium_services.

Invariants enforced:
    - After ``accrue(entry, now)``, ``entry.next_due_time > now``.
    - ``next_due_time`` only moves forward, one cadence step per charged
      cycle; the loop count equals the number of missed cycles.
    - When ``now < entry.next_due_time`` the entry is left untouched.
    - Purity: no clock access; ``now`` is always supplied by the caller.

Failure modes:
    - MissingReferenceError if ``now`` is None.

Usage:
    from premium_engines.accrual import accrue
    from premium_kernel.domain import BillingCadence, LedgerEntry

    entry = LedgerEntry(premium=100, cadence=BillingCadence.MONTHLY,
                        next_due_time=datetime(2024, 1, 1))
    result = accrue(entry, datetime(2024, 3, 1))
    # result.cycles_charged == 3, entry.outstanding_balance == 300
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from premium_engines.tracer import traced_engine
from premium_kernel.domain.cadence import advance_months
from premium_kernel.domain.contracts import ContractGroup, ContractRecord
from premium_kernel.domain.ledger import LedgerEntry
from premium_kernel.domain.validation import require_reference
from premium_kernel.logging_config import get_logger

logger = get_logger("engines.accrual")


@dataclass(frozen=True)
class AccrualResult:
    """
    Outcome of accruing one ledger entry.

    Guarantees:
        - ``balance_after - balance_before == amount_charged``.
        - ``amount_charged == cycles_charged * premium``.
    """

    owner_id: str
    cycles_charged: int
    amount_charged: int
    balance_before: int
    balance_after: int
    due_before: datetime
    due_after: datetime

    @property
    def charged(self) -> bool:
        return self.cycles_charged > 0


@traced_engine("accrual", "1.0", fingerprint_fields=("now",))
def accrue(entry: LedgerEntry, now: datetime) -> AccrualResult:
    """
    Charge every premium that fell due on or before ``now``.

    Args:
        entry: Ledger entry to advance (mutated in place).
        now: The caller's current time.

    Returns:
        AccrualResult describing what was charged.
    """
    require_reference(now, "now")

    balance_before = entry.outstanding_balance
    due_before = entry.next_due_time
    cycles = 0

    while entry.next_due_time <= now:
        entry.outstanding_balance += entry.premium
        entry.next_due_time = advance_months(entry.next_due_time, entry.cadence.months)
        cycles += 1

    result = AccrualResult(
        owner_id=entry.owner_id,
        cycles_charged=cycles,
        amount_charged=entry.outstanding_balance - balance_before,
        balance_before=balance_before,
        balance_after=entry.outstanding_balance,
        due_before=due_before,
        due_after=entry.next_due_time,
    )

    if cycles:
        logger.info("accrual_charged", extra={
            "owner_id": entry.owner_id,
            "cycles_charged": cycles,
            "amount_charged": result.amount_charged,
            "balance_after": result.balance_after,
            "next_due_time": entry.next_due_time,
        })

    return result


def accrue_one(contract: ContractRecord, now: datetime) -> AccrualResult:
    """Accrue a single contract's ledger entry."""
    return accrue(contract.entry, now)


def accrue_group(group: ContractGroup, now: datetime) -> tuple[AccrualResult, ...]:
    """
    Accrue every active child of a group independently.

    Children are visited in insertion order; there is no cross-child
    interaction.  Inactive children are not billed.
    """
    results = tuple(accrue(child.entry, now) for child in group.active_children())
    logger.debug("accrual_group_completed", extra={
        "group_id": group.group_id,
        "children_accrued": len(results),
        "amount_charged": sum(r.amount_charged for r in results),
    })
    return results
