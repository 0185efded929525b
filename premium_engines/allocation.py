"""
Module: premium_engines.allocation
Responsibility:
    Distribute one incoming payment across an ordered group of ledger
    entries: clear outstanding debt first, then prepay future premiums
    round-robin, allowing a final partial premium.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import premium_kernel (domain types, logging) and sibling engine
    modules such as premium_engines.tracer.  MUST NOT import
    premium_services.

Invariants enforced:
    - Conservation: ``consumed + unallocated == amount``.
    - For a non-empty entry sequence ``unallocated == 0``; every pass of
      the prepayment phase consumes at least ``min(amount, premium)``.
    - Debt first: no entry is prepaid while an entry visited earlier in
      the debt phase still carries debt that the amount could cover.
    - Order: entries are visited strictly in the caller's order.  When
      the amount runs out during debt clearance, later entries are left
      untouched.
    - Integral arithmetic only; no rounding is ever needed.

Failure modes:
    - InvalidAmountError if ``amount`` is not a positive integer.  This is
      checked before any entry is touched; once started, allocation runs
      to completion and cannot fail.

Audit relevance:
    ``AllocationResult.lines`` records how much of the payment cleared
    debt and how much prepaid each entry, so the effect of a group payment
    can be explained entry by entry.

Usage:
    from premium_engines.allocation import AllocationEngine

    engine = AllocationEngine()
    result = engine.allocate(175, [entry_a, entry_b])
    # result.consumed == 175, result.unallocated == 0
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from premium_engines.tracer import traced_engine
from premium_kernel.domain.ledger import LedgerEntry
from premium_kernel.domain.validation import require_positive_amount
from premium_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


@dataclass(frozen=True)
class AllocationLine:
    """
    What one entry received from an allocation.

    Guarantees:
        - ``balance_after == balance_before - debt_cleared - prepaid``.
    """

    position: int
    owner_id: str
    debt_cleared: int
    prepaid: int
    balance_before: int
    balance_after: int

    @property
    def allocated(self) -> int:
        return self.debt_cleared + self.prepaid


@dataclass(frozen=True)
class AllocationResult:
    """
    Complete allocation result.

    Guarantees:
        - ``consumed + unallocated == requested``.
        - ``lines`` has one line per input entry, in input order.
    """

    requested: int
    consumed: int
    unallocated: int
    lines: tuple[AllocationLine, ...]

    @property
    def is_fully_allocated(self) -> bool:
        return self.unallocated == 0

    @property
    def debt_cleared(self) -> int:
        return sum(line.debt_cleared for line in self.lines)

    @property
    def prepaid(self) -> int:
        return sum(line.prepaid for line in self.lines)


class AllocationEngine:
    """
    Allocate a payment across an ordered sequence of ledger entries.

    Contract:
        Mutates the given entries' ``outstanding_balance`` in place and
        returns a frozen summary.  No I/O.
    Guarantees:
        - Phase 1 (debt clearance) visits entries in order, skipping entries
          without debt, and stops at the first entry it cannot fully clear.
        - Phase 2 (prepayment) runs only with amount left after phase 1 and
          charges one premium per entry per pass; the first entry whose
          premium exceeds the remaining amount takes the remainder.
    Non-goals:
        - Does not decide which entries are eligible or in which order;
          the caller (settlement ledger) supplies both.
        - Does not record payments.
    """

    @traced_engine("allocation", "1.0", fingerprint_fields=("amount",))
    def allocate(self, amount: int, entries: Sequence[LedgerEntry]) -> AllocationResult:
        """
        Allocate ``amount`` to ``entries``.

        Args:
            amount: Positive integer amount to distribute.
            entries: Entries in allocation order.

        Returns:
            AllocationResult with the per-entry breakdown.
        """
        require_positive_amount(amount)

        logger.info("allocation_started", extra={
            "amount": amount,
            "entry_count": len(entries),
        })

        if not entries:
            logger.warning("allocation_no_entries", extra={"amount": amount})
            return AllocationResult(
                requested=amount,
                consumed=0,
                unallocated=amount,
                lines=(),
            )

        balances_before = [e.outstanding_balance for e in entries]
        debt_cleared = [0] * len(entries)
        prepaid = [0] * len(entries)

        remaining = self._clear_debt(amount, entries, debt_cleared)
        if remaining > 0:
            remaining = self._prepay(remaining, entries, prepaid)

        lines = tuple(
            AllocationLine(
                position=i,
                owner_id=entry.owner_id,
                debt_cleared=debt_cleared[i],
                prepaid=prepaid[i],
                balance_before=balances_before[i],
                balance_after=entry.outstanding_balance,
            )
            for i, entry in enumerate(entries)
        )
        consumed = amount - remaining

        assert consumed + remaining == amount, (
            f"Allocation conservation violated: {consumed} + {remaining} != {amount}"
        )

        logger.info("allocation_completed", extra={
            "amount": amount,
            "consumed": consumed,
            "unallocated": remaining,
            "debt_cleared": sum(debt_cleared),
            "prepaid": sum(prepaid),
            "entries_touched": sum(1 for line in lines if line.allocated),
        })

        return AllocationResult(
            requested=amount,
            consumed=consumed,
            unallocated=remaining,
            lines=lines,
        )

    def _clear_debt(
        self,
        amount: int,
        entries: Sequence[LedgerEntry],
        cleared: list[int],
    ) -> int:
        """Phase 1: settle positive balances in order; return what is left."""
        for i, entry in enumerate(entries):
            debt = entry.outstanding_balance
            if debt <= 0:
                continue
            if amount >= debt:
                entry.outstanding_balance = 0
                cleared[i] += debt
                amount -= debt
            else:
                entry.outstanding_balance = debt - amount
                cleared[i] += amount
                amount = 0
                break
        return amount

    def _prepay(
        self,
        amount: int,
        entries: Sequence[LedgerEntry],
        prepaid: list[int],
    ) -> int:
        """Phase 2: prepay one premium per entry per pass; return what is left."""
        while amount > 0:
            paid_this_pass = 0
            for i, entry in enumerate(entries):
                if amount >= entry.premium:
                    share = entry.premium
                else:
                    share = amount
                entry.outstanding_balance -= share
                prepaid[i] += share
                amount -= share
                paid_this_pass += share
                if amount == 0:
                    break
            # No progress in a full pass means nothing can take the rest.
            if paid_this_pass == 0:
                break
        return amount


_default_engine = AllocationEngine()


def allocate(amount: int, entries: Sequence[LedgerEntry]) -> AllocationResult:
    """Module-level convenience wrapper around ``AllocationEngine.allocate``."""
    return _default_engine.allocate(amount, entries)
