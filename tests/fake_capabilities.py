"""
fake_capabilities.py - Test doubles for external collaborators

Provides ValueTransfer and CollateralComponent implementations that fail on
demand, for testing that components roll back cleanly when a collaborator
refuses.
"""

from __future__ import annotations
from typing import Iterable, List, Optional, Tuple

from loanhub import Chain, InsufficientBalance, OperationResult, ValueTransfer


class FailingTransfer:
    """
    ValueTransfer that refuses every transfer.

    Example:
        platform = build_platform(asset=FailingTransfer())
        platform.pool.deposit("alice", 500).error_kind   # 'TransferFailed'
    """

    def __init__(self):
        self.attempts: List[Tuple[int, str, str]] = []

    def transfer(self, caller: str, amount: int, sender: str, recipient: str,
                 memo: Optional[str] = None) -> OperationResult:
        self.attempts.append((amount, sender, recipient))
        return OperationResult.failure("fake.transfer", InsufficientBalance("transfers disabled"))

    def transfer_from(self, caller: str, amount: int, owner: str, recipient: str) -> OperationResult:
        self.attempts.append((amount, owner, recipient))
        return OperationResult.failure("fake.transfer_from", InsufficientBalance("transfers disabled"))

    def get_balance(self, account: str) -> int:
        return 0


class BlockingTransfer:
    """Delegates to a real ValueTransfer, refusing any transfer touching a blocked account."""

    def __init__(self, inner: ValueTransfer, blocked: Iterable[str] = ()):
        self.inner = inner
        self.blocked = set(blocked)

    def _blocked(self, sender: str, recipient: str) -> Optional[OperationResult]:
        if sender in self.blocked or recipient in self.blocked:
            return OperationResult.failure(
                "fake.transfer", InsufficientBalance(f"{sender} -> {recipient} blocked")
            )
        return None

    def transfer(self, caller: str, amount: int, sender: str, recipient: str,
                 memo: Optional[str] = None) -> OperationResult:
        refused = self._blocked(sender, recipient)
        if refused is not None:
            return refused
        return self.inner.transfer(caller, amount, sender, recipient, memo)

    def transfer_from(self, caller: str, amount: int, owner: str, recipient: str) -> OperationResult:
        refused = self._blocked(owner, recipient)
        if refused is not None:
            return refused
        return self.inner.transfer_from(caller, amount, owner, recipient)

    def get_balance(self, account: str) -> int:
        return self.inner.get_balance(account)


class RejectingCollateral:
    """CollateralComponent that refuses every parameter update."""

    def __init__(self, chain: Chain, component_id: str = "bad-collateral"):
        self.component_id = component_id
        self.calls: List[Tuple[str, int]] = []
        chain.register_component(self)

    def apply_parameter(self, operation: str, value: int) -> bool:
        self.calls.append((operation, value))
        return False
