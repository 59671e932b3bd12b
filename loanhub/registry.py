"""
registry.py - Loan Registry

Source of truth for loan terms and lifecycle status.

State machine:
    PENDING -> ACTIVE -> {REPAID, DEFAULTED}
    PENDING -> {REPAID, DEFAULTED}   (privileged close of an unfunded loan)

Nothing leaves a terminal status. The Registry never calls other components;
the Pooled Fund Ledger and the Governance Controller call into it as
authorized operators.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, List, Optional

from .chain import Chain, Component, atomic_operation, read_operation
from .config import RegistryLimits
from .core import (
    AccountId, Loan, LoanId, LoanStatus,
    ContractsAlreadyLinked, InvalidAmount, InvalidContract, InvalidDuration, InvalidInterestRate,
    InvalidParameter, InvalidStatus, LoanClosed, LoanNotActive, LoanNotFound,
    LoanNotPending, NotAuthorized, UnsupportedOperation, ZeroAddress,
    validate_account,
)


# Governance operation name -> RegistryLimits field
PARAMETER_FIELDS: Dict[str, str] = {
    "set-min-loan-amount": "min_amount",
    "set-max-loan-amount": "max_amount",
    "set-min-interest-rate": "min_interest_rate",
    "set-max-interest-rate": "max_interest_rate",
    "set-min-duration": "min_duration",
    "set-max-duration": "max_duration",
}

_ALLOWED_TRANSITIONS = {
    LoanStatus.PENDING: {LoanStatus.ACTIVE, LoanStatus.REPAID, LoanStatus.DEFAULTED},
    LoanStatus.ACTIVE: {LoanStatus.REPAID, LoanStatus.DEFAULTED},
}


class LoanRegistry(Component):
    """
    Loan lifecycle and terms of record.

    Tables:
        loans: loan_id -> Loan
        counters: "last_loan_id" -> int
        operators: component_id -> bool (privileged callers besides the admin)
        limits: "current" -> RegistryLimits

    Example:
        registry = LoanRegistry(chain, "registry", admin="ops")
        loan_id = registry.create_loan("alice", "alice", 1000, 500, 43200).unwrap()
        registry.get_loan_details(loan_id).value.status   # LoanStatus.PENDING
    """

    def __init__(
        self,
        chain: Chain,
        component_id: AccountId,
        admin: AccountId,
        limits: Optional[RegistryLimits] = None,
    ):
        super().__init__(chain, component_id, admin)
        self._loans = self._table("loans")
        self._counters = self._table("counters", {"last_loan_id": 0})
        self._operators = self._table("operators")
        self._limits = self._table("limits", {"current": limits or RegistryLimits()})

    @property
    def limits(self) -> RegistryLimits:
        return self._limits["current"]

    def is_operator(self, account: AccountId) -> bool:
        return bool(self._operators.get(account, False))

    def is_privileged(self, caller: AccountId) -> bool:
        return self.is_admin(caller) or self.is_operator(caller)

    def _require_privileged(self, caller: AccountId) -> None:
        if not self.is_privileged(caller):
            raise NotAuthorized(f"{caller} may not change loans in {self.component_id}")

    def _load(self, loan_id: LoanId) -> Loan:
        loan = self._loans.get(loan_id)
        if loan is None:
            raise LoanNotFound(f"Loan {loan_id} not found")
        return loan

    def is_overdue(self, loan: Loan) -> bool:
        """Active and past its deadline. Advisory only; changes nothing."""
        return loan.status is LoanStatus.ACTIVE and self.chain.height > loan.deadline_height

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    @atomic_operation
    def create_loan(
        self,
        caller: AccountId,
        borrower: AccountId,
        amount: int,
        interest_rate: int,
        duration: int,
    ) -> LoanId:
        """
        Register a new Pending loan.

        Returns:
            The new loan id (monotonic, starting at 1)

        Raises:
            Paused, ZeroAddress, InvalidAmount, InvalidInterestRate, InvalidDuration
        """
        self._require_not_paused()
        if not validate_account(borrower):
            raise ZeroAddress(f"Invalid borrower {borrower!r}")
        limits = self.limits
        if not limits.min_amount <= amount <= limits.max_amount:
            raise InvalidAmount(
                f"Loan amount {amount} outside [{limits.min_amount}, {limits.max_amount}]"
            )
        if not limits.min_interest_rate <= interest_rate <= limits.max_interest_rate:
            raise InvalidInterestRate(
                f"Interest rate {interest_rate} outside "
                f"[{limits.min_interest_rate}, {limits.max_interest_rate}]"
            )
        if not limits.min_duration <= duration <= limits.max_duration:
            raise InvalidDuration(
                f"Duration {duration} outside [{limits.min_duration}, {limits.max_duration}]"
            )

        loan_id = self._counters["last_loan_id"] + 1
        start = self.chain.height
        self._loans.put(loan_id, Loan(
            loan_id=loan_id,
            borrower=borrower,
            amount=amount,
            interest_rate=interest_rate,
            duration=duration,
            start_height=start,
            deadline_height=start + duration,
        ))
        self._counters.put("last_loan_id", loan_id)
        return loan_id

    @atomic_operation
    def update_loan_status(self, caller: AccountId, loan_id: LoanId, new_status) -> bool:
        self._require_privileged(caller)
        self._require_not_paused()
        loan = self._load(loan_id)
        try:
            status = LoanStatus(new_status)
        except ValueError:
            raise InvalidStatus(f"Unknown loan status {new_status!r}") from None
        if status is LoanStatus.PENDING:
            raise InvalidStatus("A loan cannot be moved back to pending")
        if loan.status.is_terminal:
            raise LoanClosed(f"Loan {loan_id} is already {loan.status.value}")
        if status not in _ALLOWED_TRANSITIONS[loan.status]:
            raise InvalidStatus(f"Loan {loan_id}: {loan.status.value} -> {status.value} not permitted")

        self._loans.put(loan_id, replace(loan, status=status))
        return True

    @atomic_operation
    def record_repayment(self, caller: AccountId, loan_id: LoanId, amount: int) -> bool:
        """
        Add to the loan's terms-of-record repaid counter.

        Independent of the Pooled Fund Ledger's settled total; it does not
        move value or change status.
        """
        self._require_not_paused()
        loan = self._load(loan_id)
        if loan.status is not LoanStatus.ACTIVE:
            raise LoanNotActive(f"Loan {loan_id} is {loan.status.value}")
        if amount <= 0 or loan.total_repaid + amount > loan.total_owed:
            raise InvalidAmount(
                f"Repayment {amount} invalid: repaid {loan.total_repaid} of {loan.total_owed}"
            )
        self._loans.put(loan_id, replace(loan, total_repaid=loan.total_repaid + amount))
        return True

    @atomic_operation
    def set_loan_contracts(
        self,
        caller: AccountId,
        loan_id: LoanId,
        ledger_ref: Optional[AccountId],
        collateral_ref: Optional[AccountId],
    ) -> bool:
        self._require_admin(caller)
        loan = self._load(loan_id)
        if loan.status is not LoanStatus.PENDING:
            raise LoanNotPending(f"Loan {loan_id} is {loan.status.value}")
        for ref in (ledger_ref, collateral_ref):
            if ref is not None and not validate_account(ref):
                raise ZeroAddress(f"Invalid component reference {ref!r}")
        if ledger_ref is None and collateral_ref is None:
            raise InvalidContract(f"Loan {loan_id} needs at least one component reference")
        if loan.is_linked:
            raise ContractsAlreadyLinked(f"Loan {loan_id} is already linked")

        self._loans.put(loan_id, replace(loan, ledger_ref=ledger_ref, collateral_ref=collateral_ref))
        return True

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    @atomic_operation
    def set_operator(self, caller: AccountId, component_id: AccountId, enabled: bool) -> bool:
        """Grant or revoke privileged status for another component."""
        self._require_admin(caller)
        if not validate_account(component_id):
            raise ZeroAddress(f"Invalid operator {component_id!r}")
        self._operators.put(component_id, bool(enabled))
        return bool(enabled)

    @atomic_operation
    def set_parameter(self, caller: AccountId, operation: str, value: int) -> bool:
        """Apply a risk-parameter update, typically from an executed proposal."""
        self._require_privileged(caller)
        self._require_not_paused()
        field_name = PARAMETER_FIELDS.get(operation)
        if field_name is None:
            raise UnsupportedOperation(f"{self.component_id} does not support {operation!r}")
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise InvalidParameter(f"{operation} requires a positive integer, got {value!r}")
        try:
            limits = self.limits.with_value(field_name, value)
        except ValueError as exc:
            raise InvalidParameter(str(exc)) from None
        self._limits.put("current", limits)
        return True

    # ========================================================================
    # QUERIES
    # ========================================================================

    @read_operation
    def get_loan_details(self, loan_id: LoanId) -> Loan:
        return self._load(loan_id)

    @read_operation
    def is_loan_overdue(self, loan_id: LoanId) -> bool:
        return self.is_overdue(self._load(loan_id))

    @read_operation
    def overdue_loans(self) -> List[LoanId]:
        return [loan_id for loan_id, loan in sorted(self._loans.items()) if self.is_overdue(loan)]

    @read_operation
    def get_loan_count(self) -> int:
        return self._counters["last_loan_id"]

    @read_operation
    def get_limits(self) -> RegistryLimits:
        return self.limits
