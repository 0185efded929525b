"""
premium_kernel.domain.contracts -- Contract and contract-group records.

Responsibility:
    Hold each contract's activity flag next to its ledger entry, and model
    a master contract group that owns an insertion-ordered set of child
    contracts.

Architecture position:
    Kernel > Domain -- pure in-memory state, no I/O.  Owned by the
    settlement ledger; engines only ever see the ledger entries.

Invariants enforced:
    - Activity is one-way: Active -> Inactive.  ``deactivate`` is
      idempotent.
    - A group's activity is derived: active iff it has no children and was
      never deactivated, or at least one child is active.  Reading it never
      mutates state.
    - Deactivating a group forces every child inactive before the group's
      own flag is cleared.
    - The group -> child edge is stored once (on the group); children hold
      no reference to their group.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from premium_kernel.domain.ledger import LedgerEntry


@dataclass
class ContractRecord:
    """A single contract with its own ledger entry."""

    contract_id: str
    entry: LedgerEntry
    _active: bool = field(default=True, repr=False)

    @property
    def is_active(self) -> bool:
        return self._active

    def deactivate(self) -> None:
        self._active = False


@dataclass
class ContractGroup:
    """
    A master contract whose billing is the union of its children's.

    Contract:
        Carries no ledger entry of its own.  Children are kept in insertion
        order, which is the order the allocation engine visits them in.
    """

    group_id: str
    _children: dict[str, ContractRecord] = field(default_factory=dict, repr=False)
    _active: bool = field(default=True, repr=False)

    def add_child(self, child: ContractRecord) -> None:
        self._children[child.contract_id] = child

    @property
    def children(self) -> tuple[ContractRecord, ...]:
        return tuple(self._children.values())

    def active_children(self) -> tuple[ContractRecord, ...]:
        return tuple(c for c in self._children.values() if c.is_active)

    def __contains__(self, contract_id: object) -> bool:
        return contract_id in self._children

    @property
    def is_active(self) -> bool:
        if not self._children:
            return self._active
        return any(c.is_active for c in self._children.values())

    def deactivate(self) -> None:
        for child in self._children.values():
            child.deactivate()
        self._active = False

    @property
    def outstanding_balance(self) -> int:
        return sum(c.entry.outstanding_balance for c in self._children.values())
