"""
pool.py - Pooled Fund Ledger

Custodies lender funds, escrows per-loan funding and settles repayments
pro rata to each lender's contribution.

Value flow (all through the ValueTransfer capability, last in each operation):
    deposit:              lender   -> pool account
    withdraw:             pool     -> lender
    fund_loan (full):     pool     -> borrower   (principal disbursement)
    distribute_repayment: payer    -> pool account (transfer_from, payer's allowance)

Conservation (checked by verify_conservation):
    asset balance of pool account
        == total_pooled
        == sum(available) + sum(escrow of undisbursed loans) + sum(unallocated)
"""

from __future__ import annotations
from dataclasses import replace
from typing import Any, Dict, List, Optional

from .capabilities import ValueTransfer
from .chain import Chain, Component, atomic_operation, read_operation
from .config import PoolLimits
from .core import (
    AccountId, FundingRecord, Loan, LoanId, LoanStatus,
    AlreadyFunded, InsufficientBalance, InvalidAmount, LoanNotActive,
    LoanNotClosed, LoanNotFunded, LoanNotPending, TransferFailed, ZeroAddress,
    validate_account,
)
from .registry import LoanRegistry


class PooledFundLedger(Component):
    """
    Lender balances, loan escrow and proportional settlement.

    The ledger is a registry operator: it reads loan terms and moves loans to
    ACTIVE (on full funding) and REPAID (once settled repayments reach the
    amount owed).

    Tables:
        balances: lender -> available amount
        funding: loan_id -> FundingRecord
        contributions: (lender, loan_id) -> amount committed
        lenders: loan_id -> sorted tuple of contributing lenders
        settled: loan_id -> repayments settled through this ledger
        unallocated: loan_id -> truncation dust kept by the pool
        totals: "pooled" -> value custodied by the pool account
    """

    def __init__(
        self,
        chain: Chain,
        component_id: AccountId,
        admin: AccountId,
        registry: LoanRegistry,
        asset: ValueTransfer,
        limits: Optional[PoolLimits] = None,
        pool_account: Optional[AccountId] = None,
    ):
        super().__init__(chain, component_id, admin)
        self.registry = registry
        self.asset = asset
        self.limits = limits or PoolLimits()
        self.pool_account = pool_account or component_id
        if not validate_account(self.pool_account):
            raise ValueError(f"Invalid pool account {self.pool_account!r}")
        self._balances = self._table("balances")
        self._funding = self._table("funding")
        self._contributions = self._table("contributions")
        self._lenders = self._table("lenders")
        self._settled = self._table("settled")
        self._unallocated = self._table("unallocated")
        self._totals = self._table("totals", {"pooled": 0})

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _check_amount(self, amount: int) -> None:
        if not self.limits.min_deposit <= amount <= self.limits.max_deposit:
            raise InvalidAmount(
                f"Amount {amount} outside [{self.limits.min_deposit}, {self.limits.max_deposit}]"
            )

    def _check_account(self, account: AccountId) -> None:
        if not validate_account(account):
            raise ZeroAddress(f"Invalid account {account!r}")

    def _loan(self, loan_id: LoanId) -> Loan:
        return self.registry.get_loan_details(loan_id).unwrap()

    def _credit(self, account: AccountId, amount: int) -> None:
        self._balances.put(account, self._balances.get(account, 0) + amount)

    def _adjust_pooled(self, delta: int) -> None:
        self._totals.put("pooled", self._totals["pooled"] + delta)

    def _transfer(self, amount: int, sender: AccountId, recipient: AccountId, memo: str) -> None:
        self._settle_transfer(self.asset.transfer(sender, amount, sender, recipient, memo), memo)

    def _pull(self, amount: int, owner: AccountId, memo: str) -> None:
        """Collect from ``owner`` against the allowance it granted the pool account."""
        self._settle_transfer(
            self.asset.transfer_from(self.pool_account, amount, owner, self.pool_account), memo
        )

    @staticmethod
    def _settle_transfer(result, memo: str) -> None:
        if not result.ok:
            raise TransferFailed(f"{memo}: {result.error_kind}: {result.error}") from result.error

    # ========================================================================
    # LENDER FUNDS
    # ========================================================================

    @atomic_operation
    def deposit(self, caller: AccountId, amount: int) -> bool:
        self._require_not_paused()
        self._check_account(caller)
        self._check_amount(amount)
        self._credit(caller, amount)
        self._adjust_pooled(amount)
        self._transfer(amount, caller, self.pool_account, f"deposit by {caller}")
        return True

    @atomic_operation
    def withdraw(self, caller: AccountId, amount: int) -> bool:
        self._require_not_paused()
        self._check_account(caller)
        self._check_amount(amount)
        available = self._balances.get(caller, 0)
        if available < amount:
            raise InsufficientBalance(f"{caller} has {available} available, requested {amount}")
        self._balances.put(caller, available - amount)
        self._adjust_pooled(-amount)
        self._transfer(amount, self.pool_account, caller, f"withdrawal by {caller}")
        return True

    # ========================================================================
    # FUNDING
    # ========================================================================

    @atomic_operation
    def fund_loan(self, lender: AccountId, loan_id: LoanId, amount: int) -> bool:
        """
        Commit part of the lender's available balance to a Pending loan.

        Contributions accumulate per (lender, loan). The loan is activated and
        its principal disbursed to the borrower in the same operation that
        brings total funding up to the principal. A contribution below
        min_deposit is accepted only when it exactly closes the remainder.

        Raises:
            Paused, ZeroAddress, InvalidAmount, LoanNotFound, LoanNotPending,
            AlreadyFunded, InsufficientBalance, TransferFailed
        """
        self._require_not_paused()
        self._check_account(lender)
        if not 0 < amount <= self.limits.max_deposit:
            raise InvalidAmount(f"Amount {amount} outside (0, {self.limits.max_deposit}]")
        loan = self._loan(loan_id)
        if loan.status is not LoanStatus.PENDING:
            raise LoanNotPending(f"Loan {loan_id} is {loan.status.value}")
        record = self._funding.get(loan_id, FundingRecord())
        if record.funded:
            raise AlreadyFunded(f"Loan {loan_id} is already funded")
        available = self._balances.get(lender, 0)
        if available < amount:
            raise InsufficientBalance(f"{lender} has {available} available, needs {amount}")
        remaining = loan.amount - record.total_funded
        if amount > remaining:
            raise InvalidAmount(f"Loan {loan_id} needs {remaining} more, offered {amount}")
        if amount < self.limits.min_deposit and amount != remaining:
            raise InvalidAmount(
                f"Amount {amount} below minimum {self.limits.min_deposit} and leaves {remaining - amount} unfunded"
            )

        self._balances.put(lender, available - amount)
        key = (lender, loan_id)
        self._contributions.put(key, self._contributions.get(key, 0) + amount)
        lenders = self._lenders.get(loan_id, ())
        if lender not in lenders:
            self._lenders.put(loan_id, tuple(sorted(lenders + (lender,))))

        total = record.total_funded + amount
        fully_funded = total == loan.amount
        self._funding.put(loan_id, FundingRecord(total_funded=total, funded=fully_funded))

        if fully_funded:
            self.registry.update_loan_status(self.component_id, loan_id, LoanStatus.ACTIVE).unwrap()
            self._adjust_pooled(-loan.amount)
            self._transfer(loan.amount, self.pool_account, loan.borrower, f"disbursement of loan {loan_id}")
        return True

    @atomic_operation
    def release_escrow(self, lender: AccountId, loan_id: LoanId) -> int:
        """
        Return a lender's contribution to a loan that was closed before it
        was fully funded. The escrow never left the pool, so no value moves.
        """
        self._require_not_paused()
        loan = self._loan(loan_id)
        if not loan.status.is_terminal:
            raise LoanNotClosed(f"Loan {loan_id} is {loan.status.value}")
        record = self._funding.get(loan_id, FundingRecord())
        if record.funded:
            raise AlreadyFunded(f"Loan {loan_id} was funded and disbursed")
        key = (lender, loan_id)
        amount = self._contributions.get(key, 0)
        if amount <= 0:
            raise InvalidAmount(f"{lender} has nothing escrowed in loan {loan_id}")

        self._contributions.put(key, 0)
        self._funding.put(loan_id, replace(record, total_funded=record.total_funded - amount))
        self._credit(lender, amount)
        return amount

    # ========================================================================
    # SETTLEMENT
    # ========================================================================

    @atomic_operation
    def distribute_repayment(
        self,
        caller: AccountId,
        loan_id: LoanId,
        repayment_amount: int,
        payer: Optional[AccountId] = None,
    ) -> bool:
        """
        Settle a repayment across the loan's lenders.

        Each lender is credited repayment * contribution // total_funded, in
        account order. The truncation remainder stays in the pool as the
        loan's unallocated balance. The loan becomes REPAID once the settled
        total reaches the amount owed.

        Args:
            caller: Must be the ledger administrator
            loan_id: Active, funded loan
            repayment_amount: Amount paid in
            payer: Account the repayment is pulled from (default: borrower).
                It must have approved the pool account for at least
                ``repayment_amount`` on the asset.
        """
        self._require_admin(caller)
        self._require_not_paused()
        if repayment_amount <= 0:
            raise InvalidAmount(f"Repayment must be positive, got {repayment_amount}")
        loan = self._loan(loan_id)
        if loan.status is not LoanStatus.ACTIVE:
            raise LoanNotActive(f"Loan {loan_id} is {loan.status.value}")
        record = self._funding.get(loan_id)
        if record is None or record.total_funded <= 0:
            raise LoanNotFunded(f"Loan {loan_id} has no funding")
        payer = loan.borrower if payer is None else payer
        self._check_account(payer)

        distributed = 0
        for lender in self._lenders.get(loan_id, ()):
            contribution = self._contributions.get((lender, loan_id), 0)
            if contribution <= 0:
                continue
            share = repayment_amount * contribution // record.total_funded
            self._credit(lender, share)
            distributed += share

        dust = repayment_amount - distributed
        if dust:
            self._unallocated.put(loan_id, self._unallocated.get(loan_id, 0) + dust)
        self._adjust_pooled(repayment_amount)

        settled = self._settled.get(loan_id, 0) + repayment_amount
        self._settled.put(loan_id, settled)
        if settled >= loan.total_owed:
            self.registry.update_loan_status(self.component_id, loan_id, LoanStatus.REPAID).unwrap()

        self._pull(repayment_amount, payer, f"repayment of loan {loan_id}")
        return True

    # ========================================================================
    # QUERIES
    # ========================================================================

    @read_operation
    def get_lender_balance(self, lender: AccountId) -> int:
        return self._balances.get(lender, 0)

    @read_operation
    def get_loan_funding(self, loan_id: LoanId) -> FundingRecord:
        self._loan(loan_id)
        return self._funding.get(loan_id, FundingRecord())

    @read_operation
    def get_contribution(self, lender: AccountId, loan_id: LoanId) -> int:
        return self._contributions.get((lender, loan_id), 0)

    @read_operation
    def get_lenders(self, loan_id: LoanId) -> List[AccountId]:
        self._loan(loan_id)
        return [
            lender for lender in self._lenders.get(loan_id, ())
            if self._contributions.get((lender, loan_id), 0) > 0
        ]

    @read_operation
    def get_total_pooled(self) -> int:
        return self._totals["pooled"]

    @read_operation
    def get_settled_total(self, loan_id: LoanId) -> int:
        self._loan(loan_id)
        return self._settled.get(loan_id, 0)

    @read_operation
    def get_unallocated(self, loan_id: LoanId) -> int:
        self._loan(loan_id)
        return self._unallocated.get(loan_id, 0)

    def verify_conservation(self) -> Dict[str, Any]:
        """
        Verify that the pool's books agree with the value it custodies.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every total agrees
            - 'total_pooled': recorded custody total
            - 'custodied': asset balance of the pool account
            - 'available', 'escrow', 'unallocated': components of the total
            - 'discrepancies': list of human-readable mismatches

        Example:
            result = pool.verify_conservation()
            assert result['valid'], result['discrepancies']
        """
        available = sum(v for _, v in sorted(self._balances.items()))
        escrow = sum(r.total_funded for _, r in sorted(self._funding.items()) if not r.funded)
        unallocated = sum(v for _, v in sorted(self._unallocated.items()))
        pooled = self._totals["pooled"]
        custodied = self.asset.get_balance(self.pool_account)

        discrepancies: List[str] = []
        if available + escrow + unallocated != pooled:
            discrepancies.append(
                f"available {available} + escrow {escrow} + unallocated {unallocated} != pooled {pooled}"
            )
        if custodied != pooled:
            discrepancies.append(f"pool account holds {custodied}, books say {pooled}")
        for loan_id, record in sorted(self._funding.items()):
            committed = sum(
                self._contributions.get((lender, loan_id), 0)
                for lender in self._lenders.get(loan_id, ())
            )
            if committed != record.total_funded:
                discrepancies.append(
                    f"loan {loan_id}: contributions {committed} != total_funded {record.total_funded}"
                )

        return {
            'valid': not discrepancies,
            'total_pooled': pooled,
            'custodied': custodied,
            'available': available,
            'escrow': escrow,
            'unallocated': unallocated,
            'discrepancies': discrepancies,
        }
