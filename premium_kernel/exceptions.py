"""
Typed Exception Hierarchy for the Premium Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the settlement ledger must be able to tell "you asked for
something malformed" apart from "you asked for something the ledger cannot
do right now" without parsing message strings.

Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        ledger.pay_group("MASTER-1", 500)
    except GroupHasNoEligibleChildrenError as e:
        log.warning(f"Group {e.group_id} has nothing to allocate to")
    except InvalidStateError as e:
        api_response(code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PremiumLedgerError (base)
    |
    +-- InvalidArgumentError
    |   +-- InvalidAmountError
    |   +-- InvalidPremiumError
    |   +-- InvalidCadenceError
    |   +-- MissingReferenceError
    |   +-- ContractNotFoundError
    |   +-- ContractAlreadyExistsError
    |   +-- NotAGroupError
    |   +-- GroupPaymentTargetError
    |
    +-- InvalidStateError
        +-- ContractInactiveError
        +-- GroupInactiveError
        +-- GroupHasNoEligibleChildrenError
        +-- AlreadyGroupedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                         | When Raised
-----------|------------------------------|-----------------------------------
Argument   | INVALID_AMOUNT               | Amount is not a positive integer
           | INVALID_PREMIUM              | Premium is not a positive integer
           | INVALID_CADENCE              | Cadence is not 1, 3, 6 or 12 months
           | MISSING_REFERENCE            | Required id / timestamp is None
           | CONTRACT_NOT_FOUND           | Unknown contract or group id
           | CONTRACT_ALREADY_EXISTS      | Duplicate contract or group id
           | NOT_A_GROUP                  | Group operation on a plain contract
           | GROUP_PAYMENT_TARGET         | Single payment aimed at a group
-----------|------------------------------|-----------------------------------
State      | CONTRACT_INACTIVE            | Operation on an inactive contract
           | GROUP_INACTIVE               | Operation on an inactive group
           | GROUP_NO_ELIGIBLE_CHILDREN   | Group has no (active) children
           | ALREADY_GROUPED              | Contract already belongs to a group

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Argument errors are programming or input mistakes. They are never
   retried; the caller fixes the request.

2. State errors describe the ledger, not the request. No retry happens in
   the kernel; an embedder may retry after changing state.

3. Every failure aborts its operation before any balance is touched.
"""


class PremiumLedgerError(Exception):
    """
    Base exception for all premium kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "PREMIUM_LEDGER_ERROR"


# Argument errors


class InvalidArgumentError(PremiumLedgerError):
    """A local precondition was violated by the caller."""

    code: str = "INVALID_ARGUMENT"


class InvalidAmountError(InvalidArgumentError):
    """Monetary amount must be a positive integer."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object, field: str = "amount"):
        self.amount = amount
        self.field = field
        super().__init__(f"{field} must be a positive integer, got {amount!r}")


class InvalidPremiumError(InvalidArgumentError):
    """Premium must be a positive integer."""

    code: str = "INVALID_PREMIUM"

    def __init__(self, premium: object):
        self.premium = premium
        super().__init__(f"Premium must be a positive integer, got {premium!r}")


class InvalidCadenceError(InvalidArgumentError):
    """Billing cadence is not one of the supported month counts."""

    code: str = "INVALID_CADENCE"

    def __init__(self, cadence: object):
        self.cadence = cadence
        super().__init__(
            f"Unsupported billing cadence {cadence!r}; "
            "expected MONTHLY, QUARTERLY, SEMI_ANNUAL or ANNUAL"
        )


class MissingReferenceError(InvalidArgumentError):
    """A required identity or timestamp was None or empty."""

    code: str = "MISSING_REFERENCE"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} must not be None or empty")


class ContractNotFoundError(InvalidArgumentError):
    """No contract or group is registered under the given id."""

    code: str = "CONTRACT_NOT_FOUND"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Contract not found: {contract_id}")


class ContractAlreadyExistsError(InvalidArgumentError):
    """A contract or group with the given id is already registered."""

    code: str = "CONTRACT_ALREADY_EXISTS"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Contract already exists: {contract_id}")


class NotAGroupError(InvalidArgumentError):
    """A group operation was requested on a plain contract."""

    code: str = "NOT_A_GROUP"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"{contract_id} is not a contract group")


class GroupPaymentTargetError(InvalidArgumentError):
    """A single-contract payment was aimed at a group."""

    code: str = "GROUP_PAYMENT_TARGET"

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(
            f"{group_id} is a contract group; use pay_group to allocate across it"
        )


# State errors


class InvalidStateError(PremiumLedgerError):
    """The operation is not allowed in the current ledger state."""

    code: str = "INVALID_STATE"


class ContractInactiveError(InvalidStateError):
    """Contract has been deactivated."""

    code: str = "CONTRACT_INACTIVE"

    def __init__(self, contract_id: str):
        self.contract_id = contract_id
        super().__init__(f"Contract {contract_id} is inactive")


class GroupInactiveError(InvalidStateError):
    """Group is inactive (deactivated, or every child is inactive)."""

    code: str = "GROUP_INACTIVE"

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Contract group {group_id} is inactive")


class GroupHasNoEligibleChildrenError(InvalidStateError):
    """Group has no children that can receive an allocation."""

    code: str = "GROUP_NO_ELIGIBLE_CHILDREN"

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Contract group {group_id} has no eligible children")


class AlreadyGroupedError(InvalidStateError):
    """Contract already belongs to a group."""

    code: str = "ALREADY_GROUPED"

    def __init__(self, contract_id: str, group_id: str):
        self.contract_id = contract_id
        self.group_id = group_id
        super().__init__(f"Contract {contract_id} already belongs to group {group_id}")

