"""
Lightweight domain validation helpers.

Pure checks with no I/O. Used at every public boundary of the ledger so
that a bad request is rejected before any balance is touched.
"""

from __future__ import annotations

from typing import Any

from premium_kernel.exceptions import (
    InvalidAmountError,
    InvalidPremiumError,
    MissingReferenceError,
)


def _is_plain_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def require_positive_amount(value: Any, name: str = "amount") -> int:
    """Return ``value`` if it is an integer > 0; raise InvalidAmountError otherwise."""
    if not _is_plain_int(value) or value <= 0:
        raise InvalidAmountError(value, field=name)
    return value


def require_premium(value: Any) -> int:
    """Return ``value`` if it is a valid premium; raise InvalidPremiumError otherwise."""
    if not _is_plain_int(value) or value <= 0:
        raise InvalidPremiumError(value)
    return value


def require_reference(value: Any, name: str) -> Any:
    """Reject None and empty strings as identities or timestamps."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingReferenceError(name)
    return value
