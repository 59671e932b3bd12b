"""
Core types and pure functions for the lending platform.

This module provides the foundational data structures shared by every component:
1. Constants: reserved accounts, default bounds, basis-point scale
2. Enums: LoanStatus, ProposalState, ErrorCategory
3. Exceptions: LoanHubError and the domain-specific error taxonomy
4. Immutable records: Loan, FundingRecord, Proposal, VoteRecord, VoterDetails
5. OperationResult: the tagged success-or-error value every operation returns
6. Audit records: StateChange and Transaction

Nothing in this module mutates component state. Mutation happens only inside
a Chain unit of work (see chain.py).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved null account. Never a valid participant, borrower, admin or target.
NULL_ACCOUNT = "SP000000000000000000002Q6VF78"

# Rates are expressed in basis points: 10000 bp = 100%.
BASIS_POINTS = 10_000

# Loan Registry bounds
MIN_LOAN_AMOUNT = 100
MAX_LOAN_AMOUNT = 1_000_000_000
MIN_INTEREST_RATE = 100
MAX_INTEREST_RATE = 2_000
MIN_DURATION = 43_200
MAX_DURATION = 525_600

# Pooled Fund Ledger bounds (per call)
MIN_DEPOSIT = 100
MAX_DEPOSIT = 1_000_000_000

# Governance
MIN_PROPOSAL_THRESHOLD = 1_000_000
VOTING_PERIOD = 1_440
QUORUM_BPS = 5_000

# Type aliases
AccountId = str
LoanId = int
ProposalId = int


def validate_account(account: Any) -> bool:
    """Return True if ``account`` can act as a participant."""
    return isinstance(account, str) and bool(account.strip()) and account != NULL_ACCOUNT


def total_owed(amount: int, interest_rate: int) -> int:
    """Principal plus simple interest, floored: amount + amount * rate / 10000."""
    return amount + (amount * interest_rate) // BASIS_POINTS


# ============================================================================
# ENUMS
# ============================================================================

class LoanStatus(str, Enum):
    """Lifecycle status of a loan. REPAID and DEFAULTED are terminal."""
    PENDING = "pending"
    ACTIVE = "active"
    REPAID = "repaid"
    DEFAULTED = "defaulted"

    @property
    def is_terminal(self) -> bool:
        return self in (LoanStatus.REPAID, LoanStatus.DEFAULTED)


class ProposalState(str, Enum):
    """
    Observable state of a proposal.

    OPEN: inside its voting window and not executed
    PASSED: window closed, quorum reached and majority in favour, not yet executed
    FAILED: window closed without quorum or majority (terminal)
    EXECUTED: executed exactly once (terminal)
    """
    OPEN = "open"
    PASSED = "passed"
    FAILED = "failed"
    EXECUTED = "executed"


class ErrorCategory(Enum):
    """Classification of every domain error."""
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    STATE_CONFLICT = "state_conflict"
    AVAILABILITY = "availability"
    RESOURCE = "resource"
    EXTERNAL = "external"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LoanHubError(Exception):
    """
    Base exception for all domain errors.

    Components raise these internally; the Chain converts them into a
    failed OperationResult after rolling back the unit of work, so no
    domain error crosses a component boundary uncontrolled.
    """
    category: ErrorCategory = ErrorCategory.VALIDATION
    retryable: bool = False

    @property
    def kind(self) -> str:
        return type(self).__name__


class NotAuthorized(LoanHubError):
    """Raised when the caller lacks the privilege an operation requires."""
    category = ErrorCategory.AUTHORIZATION


class InvalidAmount(LoanHubError):
    """Raised when an amount is out of bounds or otherwise unacceptable."""


class InvalidDuration(LoanHubError):
    """Raised when a loan duration is out of bounds."""


class InvalidInterestRate(LoanHubError):
    """Raised when a loan interest rate is out of bounds."""


class InvalidStatus(LoanHubError):
    """Raised when a status transition is not permitted."""


class ZeroAddress(LoanHubError):
    """Raised when the reserved null account is supplied as a participant."""


class InvalidRecipient(LoanHubError):
    """Raised when a transfer recipient is not acceptable."""


class InvalidContract(LoanHubError):
    """Raised when a target component is unknown or unusable."""


class UnsupportedOperation(InvalidContract):
    """Raised when a component does not implement the requested parameter update."""


class InvalidParameter(LoanHubError):
    """Raised when a risk-parameter update would produce inconsistent bounds."""


class NullContract(ZeroAddress, InvalidContract):
    """Raised when the null account is given where a component is expected."""


class LoanNotFound(LoanHubError):
    category = ErrorCategory.NOT_FOUND


class ProposalNotFound(LoanHubError):
    category = ErrorCategory.NOT_FOUND


class StateConflict(LoanHubError):
    """Raised when an operation is not valid in the current state."""
    category = ErrorCategory.STATE_CONFLICT


class LoanNotActive(StateConflict):
    pass


class LoanNotPending(StateConflict):
    pass


class LoanNotFunded(StateConflict):
    pass


class LoanNotClosed(StateConflict):
    pass


class LoanClosed(InvalidStatus, StateConflict):
    """Raised when a transition out of a terminal status is attempted."""
    category = ErrorCategory.STATE_CONFLICT


class ContractsAlreadyLinked(StateConflict):
    pass


class AlreadyFunded(StateConflict):
    pass


class AlreadyVoted(StateConflict):
    pass


class VotingClosed(StateConflict):
    pass


class ProposalInactive(StateConflict):
    pass


class QuorumNotMet(StateConflict):
    """Raised when a proposal lacks quorum or a favourable majority."""


class Paused(LoanHubError):
    category = ErrorCategory.AVAILABILITY
    retryable = True


class InsufficientBalance(LoanHubError):
    category = ErrorCategory.RESOURCE
    retryable = True


class TransferFailed(LoanHubError):
    """Raised when the value-transfer capability refuses a transfer."""
    category = ErrorCategory.EXTERNAL


class CollateralRejected(LoanHubError):
    """Raised when the collateral component refuses a parameter update."""
    category = ErrorCategory.EXTERNAL


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Loan:
    """
    Terms of record for a single loan.

    Instances are immutable; every change produces a new Loan via
    dataclasses.replace() and is written back through the Registry.
    """
    loan_id: LoanId
    borrower: AccountId
    amount: int
    interest_rate: int
    duration: int
    start_height: int
    deadline_height: int
    status: LoanStatus = LoanStatus.PENDING
    total_repaid: int = 0
    ledger_ref: Optional[AccountId] = None
    collateral_ref: Optional[AccountId] = None

    def __post_init__(self):
        if self.deadline_height != self.start_height + self.duration:
            raise ValueError(
                f"deadline_height {self.deadline_height} != start {self.start_height} + duration {self.duration}"
            )
        if not isinstance(self.status, LoanStatus):
            object.__setattr__(self, 'status', LoanStatus(self.status))
        if self.total_repaid < 0 or self.total_repaid > self.total_owed:
            raise ValueError(f"total_repaid {self.total_repaid} outside [0, {self.total_owed}]")

    @property
    def total_owed(self) -> int:
        return total_owed(self.amount, self.interest_rate)

    @property
    def is_linked(self) -> bool:
        return self.ledger_ref is not None or self.collateral_ref is not None


@dataclass(frozen=True, slots=True)
class FundingRecord:
    """Funding progress of one loan. ``funded`` is true iff total_funded == principal."""
    total_funded: int = 0
    funded: bool = False


@dataclass(frozen=True, slots=True)
class Proposal:
    proposal_id: ProposalId
    proposer: AccountId
    description: str
    target_component: AccountId
    target_operation: str
    parameter: int
    start_height: int
    end_height: int
    votes_for: int = 0
    votes_against: int = 0
    executed: bool = False

    @property
    def total_votes(self) -> int:
        return self.votes_for + self.votes_against


@dataclass(frozen=True, slots=True)
class VoteRecord:
    in_favor: bool
    tokens: int


@dataclass(frozen=True, slots=True)
class VoterDetails:
    voted: bool
    tokens: int = 0
    in_favor: Optional[bool] = None


# ============================================================================
# OPERATION RESULT
# ============================================================================

@dataclass(frozen=True, slots=True)
class OperationResult:
    """
    Tagged outcome of a public operation.

    Exactly one of ``value`` (on success) or ``error`` (on failure) is
    meaningful. ``unwrap()`` re-raises the error, which is how a component
    propagates a downstream failure into its own unit of work.
    """
    operation: str
    value: Any = None
    error: Optional[LoanHubError] = None

    @classmethod
    def success(cls, operation: str, value: Any = True) -> OperationResult:
        return cls(operation=operation, value=value)

    @classmethod
    def failure(cls, operation: str, error: LoanHubError) -> OperationResult:
        return cls(operation=operation, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> Optional[str]:
        return None if self.error is None else self.error.kind

    def is_error(self, error_type: type) -> bool:
        """True if this result failed with ``error_type`` (or a subclass)."""
        return isinstance(self.error, error_type)

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        if self.ok:
            return f"Ok({self.operation}: {self.value!r})"
        return f"Err({self.operation}: {self.error_kind}: {self.error})"


# ============================================================================
# AUDIT RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class StateChange:
    """
    Record of a single table write, used for rollback and the audit trail.

    ``old`` is None when the key did not exist before the write.
    """
    table: str
    key: Any
    old: Any
    new: Any


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of one committed operation.

    Attributes:
        sequence_number: Monotonic position in the chain's log
        height: Chain height at execution
        operation: Qualified operation name, e.g. "pool.fund_loan"
        state_changes: Every table write made by the operation, in order
        chain_name: Name of the chain that executed this
    """
    sequence_number: int
    height: int
    operation: str
    state_changes: Tuple[StateChange, ...]
    chain_name: str
    tables: frozenset = field(default=None)

    def __post_init__(self):
        if not self.state_changes:
            raise ValueError("Transaction must have state_changes")
        if self.tables is None:
            object.__setattr__(
                self, 'tables',
                frozenset(sc.table for sc in self.state_changes)
            )

    def changes_for(self, table: str) -> Dict[Any, Tuple[Any, Any]]:
        """Map key -> (first old value, last new value) for one table."""
        changes: Dict[Any, Tuple[Any, Any]] = {}
        for sc in self.state_changes:
            if sc.table != table:
                continue
            if sc.key in changes:
                changes[sc.key] = (changes[sc.key][0], sc.new)
            else:
                changes[sc.key] = (sc.old, sc.new)
        return changes

    def __repr__(self) -> str:
        return (
            f"Transaction(#{self.sequence_number} h={self.height} {self.operation}, "
            f"{len(self.state_changes)} changes)"
        )
