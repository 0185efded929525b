"""
premium_kernel.domain.ledger -- Billing state and payment facts.

Responsibility:
    Define the per-contract billing record (``LedgerEntry``), the immutable
    payment fact (``PaymentRecord``) and the ordered per-owner payment
    history (``PaymentHistory``).

Architecture position:
    Kernel > Domain -- pure data with construction-time validation.
    ``LedgerEntry`` is deliberately mutable: the accrual and allocation
    engines update it in place.  Everything else is immutable.

Invariants enforced:
    - ``premium`` is a positive integer; ``cadence`` is a BillingCadence.
    - ``next_due_time`` never moves backwards (only the accrual engine
      advances it, one cadence step at a time).
    - ``outstanding_balance`` may be negative (prepaid credit).
    - Payment records are totally ordered by ``(timestamp, sequence)``;
      ``sequence`` is an insertion counter, so records sharing a
      timestamp keep insertion order.

Failure modes:
    - InvalidPremiumError / InvalidCadenceError / MissingReferenceError
      from ``LedgerEntry.__post_init__``.
    - InvalidAmountError / MissingReferenceError from
      ``PaymentRecord.__post_init__``.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from premium_kernel.domain.cadence import BillingCadence
from premium_kernel.domain.validation import (
    require_positive_amount,
    require_premium,
    require_reference,
)
from premium_kernel.exceptions import InvalidArgumentError


@dataclass(frozen=True)
class LedgerEntrySnapshot:
    """Read-only copy of a ledger entry handed out by accessors."""

    owner_id: str
    premium: int
    cadence: BillingCadence
    next_due_time: datetime
    outstanding_balance: int


@dataclass
class LedgerEntry:
    """
    One contract's billing state.

    Contract:
        Owned by exactly one contract.  Mutated only by the accrual and
        allocation engines (and the single-contract payment path of the
        settlement ledger).
    Guarantees:
        - ``premium > 0`` and ``cadence`` is a supported cadence, both
          re-checked by ``reprice`` / ``change_cadence``.
    Non-goals:
        - Does not know about groups or activity; that is the contract
          record's concern.
    """

    premium: int
    cadence: BillingCadence
    next_due_time: datetime
    outstanding_balance: int = 0
    owner_id: str = ""

    def __post_init__(self) -> None:
        require_premium(self.premium)
        self.cadence = BillingCadence.parse(self.cadence)
        require_reference(self.next_due_time, "next_due_time")
        if isinstance(self.outstanding_balance, bool) or not isinstance(
            self.outstanding_balance, int
        ):
            raise InvalidArgumentError(
                f"outstanding_balance must be an integer, got {self.outstanding_balance!r}"
            )

    def __setattr__(self, name: str, value: Any) -> None:
        # The due date only ever moves forward once the entry exists.
        if name == "next_due_time" and name in self.__dict__:
            require_reference(value, "next_due_time")
            if value < self.next_due_time:
                raise InvalidArgumentError(
                    f"next_due_time cannot move back from {self.next_due_time} to {value}"
                )
        super().__setattr__(name, value)

    @property
    def is_in_debt(self) -> bool:
        return self.outstanding_balance > 0

    @property
    def has_credit(self) -> bool:
        return self.outstanding_balance < 0

    def reprice(self, premium: int) -> None:
        """Change the premium charged from the next cycle on."""
        self.premium = require_premium(premium)

    def change_cadence(self, cadence: BillingCadence | str | int) -> None:
        """Change how often the premium falls due from the next cycle on."""
        self.cadence = BillingCadence.parse(cadence)

    def snapshot(self) -> LedgerEntrySnapshot:
        return LedgerEntrySnapshot(
            owner_id=self.owner_id,
            premium=self.premium,
            cadence=self.cadence,
            next_due_time=self.next_due_time,
            outstanding_balance=self.outstanding_balance,
        )


@dataclass(frozen=True, order=True)
class PaymentRecord:
    """
    An immutable timestamped payment.

    Ordering compares ``(timestamp, sequence)`` only; ``amount`` does not
    take part, so two payments at the same instant sort by insertion.
    """

    timestamp: datetime
    sequence: int
    amount: int = field(compare=False)

    def __post_init__(self) -> None:
        require_reference(self.timestamp, "timestamp")
        require_positive_amount(self.amount)


class PaymentHistory:
    """Ordered payment history of one contract or group."""

    def __init__(self, owner_id: str):
        self.owner_id = owner_id
        self._records: list[PaymentRecord] = []

    def record(self, payment: PaymentRecord) -> PaymentRecord:
        """Insert ``payment`` keeping ``(timestamp, sequence)`` order."""
        bisect.insort(self._records, payment)
        return payment

    @property
    def records(self) -> tuple[PaymentRecord, ...]:
        return tuple(self._records)

    @property
    def total_paid(self) -> int:
        return sum(p.amount for p in self._records)

    @property
    def last_payment(self) -> PaymentRecord | None:
        return self._records[-1] if self._records else None

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(tuple(self._records))

    def __repr__(self) -> str:
        return f"PaymentHistory(owner_id={self.owner_id!r}, payments={len(self._records)})"
