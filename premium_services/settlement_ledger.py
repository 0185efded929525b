"""
SettlementLedger -- premium billing and payment settlement orchestrator.

Responsibility:
    Owns every contract's ledger entry, the contract groups, and all
    payment histories of one simulated insurance company.  Exposes the
    batch operation "charge all", the payment operations "pay one" and
    "pay group", group membership and deactivation, and read accessors.

Architecture position:
    Services -- imperative shell around the pure engines.
    Calls premium_engines.accrual for charging and
    premium_engines.allocation for group payments.  Constructed once per
    company and discarded with it; there is no module-level instance.

Invariants enforced:
    - Every public entry point validates identities and amounts before any
      balance is touched; a failing call leaves the ledger unchanged.
    - Only active contracts are charged or paid.  A group is charged and
      paid through its active children only, in child insertion order.
    - A contract belongs to at most one group.  Once grouped it is no
      longer a top-level contract; ``charge_all`` reaches it through its
      group.  Its entry and history are kept.
    - A payment record is written only for a positive amount: the stated
      amount for a single contract, the consumed amount for a group.
    - The ledger never reads the wall clock; time comes from the injected
      cursor.

Failure modes:
    - InvalidArgumentError subclasses: missing/unknown ids, non-positive
      amounts, invalid premium or cadence, duplicate ids, wrong kind of
      target.
    - InvalidStateError subclasses: inactive contract or group, group with
      no eligible children, contract already grouped.

Concurrency:
    Not thread-safe.  ``locked()`` returns a view that serializes every
    call through one re-entrant lock for embedders that need shared access.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Any, NoReturn

from premium_config.schema import LedgerSettings
from premium_engines.accrual import AccrualResult, accrue, accrue_group, accrue_one
from premium_engines.allocation import AllocationEngine, AllocationResult
from premium_kernel.domain.cadence import BillingCadence
from premium_kernel.domain.clock import Clock, CursorClock
from premium_kernel.domain.contracts import ContractGroup, ContractRecord
from premium_kernel.domain.ledger import (
    LedgerEntry,
    LedgerEntrySnapshot,
    PaymentHistory,
    PaymentRecord,
)
from premium_kernel.domain.validation import require_positive_amount, require_reference
from premium_kernel.exceptions import (
    AlreadyGroupedError,
    ContractAlreadyExistsError,
    ContractInactiveError,
    ContractNotFoundError,
    GroupHasNoEligibleChildrenError,
    GroupInactiveError,
    GroupPaymentTargetError,
    InvalidArgumentError,
    NotAGroupError,
)
from premium_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.settlement")


@dataclass(frozen=True)
class SettlementReceipt:
    """
    Outcome of a payment.

    Guarantees:
        - ``consumed + unallocated == requested``.
        - ``record`` is None exactly when ``consumed == 0``.
    """

    owner_id: str
    requested: int
    consumed: int
    unallocated: int
    record: PaymentRecord | None
    allocation: AllocationResult | None = None


class SettlementLedger:
    """
    In-memory settlement ledger of one insurance company.

    Contract:
        Identities are caller-chosen strings, unique across contracts and
        groups.  All amounts are positive integers.  Mutations happen in
        place and run to completion synchronously.

    Guarantees:
        - ``charge_all`` accrues every active top-level contract and every
          active child of every active group.
        - ``pay_one`` subtracts the full stated amount, letting the balance
          go negative.
        - ``pay_group`` clears debt then prepays across active children and
          records the consumed amount once, against the group.
        - Payment histories are kept in (time, insertion) order.

    Non-goals:
        - Does NOT validate policy holders, vehicles, or eligibility for a
          contract; the contract-management layer does that before
          registering.
        - Does NOT pay out claims.
        - Does NOT persist anything.
    """

    def __init__(
        self,
        clock: Clock | datetime,
        settings: LedgerSettings | None = None,
        allocation_engine: AllocationEngine | None = None,
    ):
        if isinstance(clock, datetime) or clock is None:
            clock = CursorClock(clock)
        self._clock = clock
        self._settings = settings or LedgerSettings()
        self._allocation = allocation_engine or AllocationEngine()

        # Every single contract, grouped or not.
        self._contracts: dict[str, ContractRecord] = {}
        self._groups: dict[str, ContractGroup] = {}
        # Insertion-ordered ids of ungrouped contracts and groups.
        self._top_level: dict[str, None] = {}
        self._group_of: dict[str, str] = {}
        self._histories: dict[str, PaymentHistory] = {}
        self._sequence = itertools.count()
        # Shared by every view returned from locked().
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Time cursor
    # ------------------------------------------------------------------

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def current_time(self) -> datetime:
        return self._clock.now()

    def set_current_time(self, time: datetime) -> None:
        """Move the time cursor.  Requires a settable clock."""
        require_reference(time, "current_time")
        if not isinstance(self._clock, CursorClock):
            self._reject(InvalidArgumentError(
                f"{type(self._clock).__name__} cannot be moved by the ledger"
            ))
        self._clock.set_time(time)

    # ------------------------------------------------------------------
    # Registration and membership
    # ------------------------------------------------------------------

    def register_contract(
        self,
        contract_id: str,
        premium: int,
        cadence: BillingCadence | str | int,
        next_due_time: datetime | None = None,
        outstanding_balance: int = 0,
    ) -> LedgerEntrySnapshot:
        """
        Register a contract that has passed eligibility checks upstream.

        The first premium falls due at ``next_due_time`` (default: the
        current time).  When ``charge_on_registration`` is enabled the
        contract is charged immediately, so a contract starting now owes
        its first premium at once.

        Raises:
            MissingReferenceError: ``contract_id`` is None or empty.
            ContractAlreadyExistsError: the id is taken.
            InvalidPremiumError / InvalidCadenceError: bad billing terms.
        """
        require_reference(contract_id, "contract_id")
        self._require_unused(contract_id)

        entry = LedgerEntry(
            premium=premium,
            cadence=cadence,
            next_due_time=next_due_time or self.current_time,
            outstanding_balance=outstanding_balance,
            owner_id=contract_id,
        )
        record = ContractRecord(contract_id=contract_id, entry=entry)

        with LogContext.bind(contract_id=contract_id):
            if self._settings.charge_on_registration:
                accrue(entry, self.current_time)

            self._contracts[contract_id] = record
            self._top_level[contract_id] = None

            logger.info("contract_registered", extra={
                "premium": entry.premium,
                "cadence": entry.cadence.name,
                "next_due_time": entry.next_due_time,
                "outstanding_balance": entry.outstanding_balance,
            })
        return entry.snapshot()

    def register_group(self, group_id: str) -> None:
        """Register an empty master contract group."""
        require_reference(group_id, "group_id")
        self._require_unused(group_id)

        self._groups[group_id] = ContractGroup(group_id=group_id)
        self._top_level[group_id] = None
        logger.info("group_registered", extra={"group_id": group_id})

    def add_to_group(self, group_id: str, contract_id: str) -> None:
        """
        Move a top-level contract under a group.

        Both must be active.  The contract keeps its ledger entry and
        payment history; it stops being a top-level contract.

        Raises:
            NotAGroupError: ``group_id`` names a plain contract.
            InvalidArgumentError: ``contract_id`` names a group.
            ContractInactiveError / GroupInactiveError: either is inactive.
            AlreadyGroupedError: the contract already belongs to a group.
        """
        require_reference(group_id, "group_id")
        require_reference(contract_id, "contract_id")
        group = self._get_group(group_id)
        if contract_id in self._groups:
            self._reject(InvalidArgumentError(f"Group {contract_id} cannot be nested in a group"))
        contract = self._get_contract(contract_id)

        if not contract.is_active:
            self._reject(ContractInactiveError(contract_id))
        if not group.is_active:
            self._reject(GroupInactiveError(group_id))
        if contract_id in self._group_of:
            self._reject(AlreadyGroupedError(contract_id, self._group_of[contract_id]))

        del self._top_level[contract_id]
        group.add_child(contract)
        self._group_of[contract_id] = group_id

        logger.info("contract_grouped", extra={
            "group_id": group_id,
            "child_contract_id": contract_id,
            "child_count": len(group.children),
        })

    def deactivate(self, owner_id: str) -> None:
        """
        Deactivate a contract or a group (idempotent).

        Deactivating a group deactivates every child first.
        """
        require_reference(owner_id, "owner_id")
        if owner_id in self._groups:
            group = self._groups[owner_id]
            group.deactivate()
            logger.info("group_deactivated", extra={
                "group_id": owner_id,
                "children_deactivated": len(group.children),
            })
            return
        self._get_contract(owner_id).deactivate()
        logger.info("contract_deactivated", extra={"deactivated_id": owner_id})

    # ------------------------------------------------------------------
    # Charging
    # ------------------------------------------------------------------

    def charge_all(self, now: datetime | None = None) -> tuple[AccrualResult, ...]:
        """
        Accrue premiums on every active contract up to ``now``.

        ``now`` defaults to the current time cursor.
        """
        now = now if now is not None else self.current_time
        results: list[AccrualResult] = []
        for owner_id in self._top_level:
            if not self.is_active(owner_id):
                continue
            results.extend(self._charge(owner_id, now))

        logger.info("charge_all_completed", extra={
            "now": now,
            "entries_accrued": len(results),
            "amount_charged": sum(r.amount_charged for r in results),
        })
        return tuple(results)

    def charge(self, owner_id: str, now: datetime | None = None) -> tuple[AccrualResult, ...]:
        """Accrue one active contract, or every active child of a group."""
        require_reference(owner_id, "owner_id")
        self._require_known(owner_id)
        now = now if now is not None else self.current_time
        if not self.is_active(owner_id):
            if owner_id in self._groups:
                self._reject(GroupInactiveError(owner_id))
            self._reject(ContractInactiveError(owner_id))
        return self._charge(owner_id, now)

    def _charge(self, owner_id: str, now: datetime) -> tuple[AccrualResult, ...]:
        if owner_id in self._groups:
            return accrue_group(self._groups[owner_id], now)
        return (accrue_one(self._contracts[owner_id], now),)

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def pay_one(self, contract_id: str, amount: int) -> SettlementReceipt:
        """
        Apply a payment to a single contract.

        The full amount is subtracted from the balance with no phasing;
        the balance may go negative (credit).

        Raises:
            MissingReferenceError / ContractNotFoundError: bad id.
            InvalidAmountError: ``amount`` is not a positive integer.
            GroupPaymentTargetError: ``contract_id`` names a group.
            ContractInactiveError: the contract is inactive.
        """
        require_reference(contract_id, "contract_id")
        require_positive_amount(amount)
        if contract_id in self._groups:
            self._reject(GroupPaymentTargetError(contract_id))
        contract = self._get_contract(contract_id)

        with LogContext.bind(contract_id=contract_id):
            if not contract.is_active:
                self._reject(ContractInactiveError(contract_id))

            contract.entry.outstanding_balance -= amount
            record = self._record_payment(contract_id, amount)

            logger.info("payment_applied", extra={
                "amount": amount,
                "balance_after": contract.entry.outstanding_balance,
            })
        return SettlementReceipt(
            owner_id=contract_id,
            requested=amount,
            consumed=amount,
            unallocated=0,
            record=record,
        )

    def pay_group(self, group_id: str, amount: int) -> SettlementReceipt:
        """
        Allocate a payment across a group's active children.

        Debt is cleared first, in child insertion order, then future
        premiums are prepaid.  One payment record for the consumed amount
        is written against the group.

        Raises:
            MissingReferenceError / ContractNotFoundError: bad id.
            InvalidAmountError: ``amount`` is not a positive integer.
            NotAGroupError: ``group_id`` names a plain contract.
            GroupInactiveError: the group is inactive.
            GroupHasNoEligibleChildrenError: the group has no active child.
        """
        require_reference(group_id, "group_id")
        require_positive_amount(amount)
        group = self._get_group(group_id)

        with LogContext.bind(group_id=group_id):
            if not group.is_active:
                self._reject(GroupInactiveError(group_id))
            eligible = group.active_children()
            if not eligible:
                self._reject(GroupHasNoEligibleChildrenError(group_id))

            allocation = self._allocation.allocate(
                amount, [child.entry for child in eligible]
            )
            record = None
            if allocation.consumed > 0:
                record = self._record_payment(group_id, allocation.consumed)

            if allocation.unallocated:
                logger.warning("group_payment_unallocated", extra={
                    "amount": amount,
                    "unallocated": allocation.unallocated,
                })
            logger.info("group_payment_applied", extra={
                "amount": amount,
                "consumed": allocation.consumed,
                "children_paid": len(eligible),
            })
        return SettlementReceipt(
            owner_id=group_id,
            requested=amount,
            consumed=allocation.consumed,
            unallocated=allocation.unallocated,
            record=record,
            allocation=allocation,
        )

    def _record_payment(self, owner_id: str, amount: int) -> PaymentRecord:
        record = PaymentRecord(
            timestamp=self.current_time,
            sequence=next(self._sequence),
            amount=amount,
        )
        history = self._histories.get(owner_id)
        if history is None:
            history = self._histories[owner_id] = PaymentHistory(owner_id)
        return history.record(record)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def is_active(self, owner_id: str) -> bool:
        """Activity of a contract, or the derived activity of a group."""
        require_reference(owner_id, "owner_id")
        if owner_id in self._groups:
            return self._groups[owner_id].is_active
        return self._get_contract(owner_id).is_active

    def is_group(self, owner_id: str) -> bool:
        require_reference(owner_id, "owner_id")
        self._require_known(owner_id)
        return owner_id in self._groups

    def balance(self, owner_id: str) -> int:
        """Outstanding balance; for a group, the sum over all its children."""
        require_reference(owner_id, "owner_id")
        if owner_id in self._groups:
            return self._groups[owner_id].outstanding_balance
        return self._get_contract(owner_id).entry.outstanding_balance

    def entry(self, contract_id: str) -> LedgerEntrySnapshot:
        """Snapshot of a single contract's ledger entry."""
        require_reference(contract_id, "contract_id")
        if contract_id in self._groups:
            self._reject(InvalidArgumentError(f"Group {contract_id} has no ledger entry of its own"))
        return self._get_contract(contract_id).entry.snapshot()

    def children(self, group_id: str) -> tuple[str, ...]:
        """Child contract ids of a group, in insertion order."""
        require_reference(group_id, "group_id")
        return tuple(c.contract_id for c in self._get_group(group_id).children)

    def group_of(self, contract_id: str) -> str | None:
        require_reference(contract_id, "contract_id")
        self._get_contract(contract_id)
        return self._group_of.get(contract_id)

    def contracts(self) -> tuple[str, ...]:
        """Top-level contract and group ids, in registration order."""
        return tuple(self._top_level)

    def payment_history(self, owner_id: str) -> tuple[PaymentRecord, ...]:
        """Payments recorded against a contract or group, oldest first."""
        require_reference(owner_id, "owner_id")
        self._require_known(owner_id)
        history = self._histories.get(owner_id)
        return history.records if history is not None else ()

    def payment_histories(self) -> Mapping[str, tuple[PaymentRecord, ...]]:
        """Read-only view of every non-empty payment history."""
        return MappingProxyType(
            {owner_id: h.records for owner_id, h in self._histories.items()}
        )

    # ------------------------------------------------------------------
    # Concurrency
    # ------------------------------------------------------------------

    def locked(self) -> SynchronizedLedger:
        """
        Return a view that serializes every call through the ledger's lock.

        All views of one ledger share that single lock, so separately
        obtained views exclude each other.
        """
        return SynchronizedLedger(self)

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def _require_unused(self, owner_id: str) -> None:
        if owner_id in self._contracts or owner_id in self._groups:
            self._reject(ContractAlreadyExistsError(owner_id))

    def _require_known(self, owner_id: str) -> None:
        if owner_id not in self._contracts and owner_id not in self._groups:
            self._reject(ContractNotFoundError(owner_id))

    def _get_contract(self, contract_id: str) -> ContractRecord:
        contract = self._contracts.get(contract_id)
        if contract is None:
            self._reject(ContractNotFoundError(contract_id))
        return contract

    def _get_group(self, group_id: str) -> ContractGroup:
        group = self._groups.get(group_id)
        if group is None:
            if group_id in self._contracts:
                self._reject(NotAGroupError(group_id))
            self._reject(ContractNotFoundError(group_id))
        return group

    @staticmethod
    def _reject(error: Exception) -> NoReturn:
        logger.warning("settlement_rejected", extra={
            "error_code": getattr(error, "code", type(error).__name__),
            "reason": str(error),
        })
        raise error


class SynchronizedLedger:
    """
    Serialized view of a SettlementLedger.

    Every public method call on the view runs under the ledger's single
    re-entrant lock, shared with every other view of the same ledger.
    Returned values are the ledger's own (immutable) results.  The live
    ``clock`` is not handed out; use ``current_time`` and
    ``set_current_time``.
    """

    _UNGUARDED = frozenset({"clock"})

    def __init__(self, ledger: SettlementLedger):
        self._ledger = ledger
        self._lock = ledger._lock

    @property
    def ledger(self) -> SettlementLedger:
        return self._ledger

    @property
    def lock(self) -> threading.RLock:
        """The ledger-wide lock; hold it to run several calls atomically."""
        return self._lock

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._UNGUARDED:
            raise AttributeError(f"{name} is not available through a locked view")
        attr = getattr(self._ledger, name)
        if not callable(attr):
            with self._lock:
                return getattr(self._ledger, name)
        return self._wrap(attr)

    def _wrap(self, method: Callable) -> Callable:
        def call(*args: Any, **kwargs: Any) -> Any:
            with self._lock:
                return method(*args, **kwargs)

        call.__name__ = method.__name__
        call.__doc__ = method.__doc__
        return call
