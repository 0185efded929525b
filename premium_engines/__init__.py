"""
Module: premium_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the billing
    engines.  This is the canonical import surface for the service layer.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import premium_kernel.domain (and sibling engine modules).
    MUST NOT import premium_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``; the current time is
      always passed in by the caller.
    - Integer-only arithmetic for monetary amounts.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via the ``@traced_engine`` decorator
    (see ``premium_engines.tracer``), emitting PREMIUM_ENGINE_TRACE log
    records that include engine name, version, input fingerprint, and
    duration.
"""

from premium_engines.accrual import (
    AccrualResult,
    accrue,
    accrue_group,
    accrue_one,
)
from premium_engines.allocation import (
    AllocationEngine,
    AllocationLine,
    AllocationResult,
    allocate,
)
from premium_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "AccrualResult",
    "AllocationEngine",
    "AllocationLine",
    "AllocationResult",
    "accrue",
    "accrue_group",
    "accrue_one",
    "allocate",
    "compute_input_fingerprint",
    "traced_engine",
]
