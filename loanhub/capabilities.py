"""
capabilities.py - External collaborator interfaces and in-memory implementations

The core components consume three collaborators they do not own:

- ValueTransfer: moves the settlement asset between accounts
- TokenBalances: reports governance-token balances and supply
- CollateralComponent: accepts numeric risk-parameter updates

Classes:
- TokenLedger: simple fungible-token ledger implementing both ValueTransfer
  and TokenBalances, journaled on the Chain so its balances roll back with
  the operation that moved them
- CollateralStub: records parameter updates for a named set of operations
"""

from __future__ import annotations
from typing import Dict, FrozenSet, Iterable, Optional, Protocol, runtime_checkable

from .chain import Chain, Component, atomic_operation
from .core import (
    AccountId, OperationResult,
    InsufficientBalance, InvalidAmount, InvalidRecipient, NotAuthorized, ZeroAddress,
    validate_account,
)


# Mint cap per call for TokenLedger (100M whole tokens at 6 decimals).
MAX_MINT = 100_000_000_000_000

DEFAULT_COLLATERAL_OPERATIONS = frozenset({
    "set-collateral-ratio",
    "set-liquidation-threshold",
    "set-liquidation-penalty",
})


@runtime_checkable
class ValueTransfer(Protocol):
    """
    Opaque value-transfer capability used by the Pooled Fund Ledger.

    transfer() moves the caller's own balance; transfer_from() spends an
    allowance the owner granted to the caller. Both must be all-or-nothing:
    a failed result means no balance moved.
    """

    def transfer(
        self,
        caller: AccountId,
        amount: int,
        sender: AccountId,
        recipient: AccountId,
        memo: Optional[str] = None,
    ) -> OperationResult:
        ...

    def transfer_from(
        self,
        caller: AccountId,
        amount: int,
        owner: AccountId,
        recipient: AccountId,
    ) -> OperationResult:
        ...

    def get_balance(self, account: AccountId) -> int:
        ...


@runtime_checkable
class TokenBalances(Protocol):
    """Read-only view of the governance token used for voting weight."""

    def get_balance(self, account: AccountId) -> int:
        ...

    def total_supply(self) -> int:
        ...


@runtime_checkable
class CollateralComponent(Protocol):
    """Parameter-update boundary of the collateral manager."""

    component_id: AccountId

    def apply_parameter(self, operation: str, value: int) -> bool:
        ...


class TokenLedger(Component):
    """
    Fungible-token ledger.

    Serves as the settlement asset (ValueTransfer) or as the governance
    token (TokenBalances). Supply changes only through mint/burn by the
    administrator; transfers conserve supply.

    Example:
        asset = TokenLedger(chain, "stx", admin="ops", name="Stacks", symbol="STX")
        asset.mint("ops", 5000, "alice")
        asset.transfer("alice", 1000, "alice", "pool")
    """

    def __init__(
        self,
        chain: Chain,
        component_id: AccountId,
        admin: AccountId,
        name: str,
        symbol: str,
        decimals: int = 6,
        token_uri: Optional[str] = None,
        max_mint: int = MAX_MINT,
        initial_balances: Optional[Dict[AccountId, int]] = None,
    ):
        super().__init__(chain, component_id, admin)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.token_uri = token_uri
        self.max_mint = max_mint
        initial_balances = dict(initial_balances or {})
        for account, amount in initial_balances.items():
            if not validate_account(account) or amount < 0:
                raise ValueError(f"Invalid initial balance {account!r}: {amount}")
        self._balances = self._table("balances", initial_balances)
        self._allowances = self._table("allowances")
        self._supply = self._table("supply", {"total": sum(initial_balances.values())})

    # ========================================================================
    # READS
    # ========================================================================

    def get_balance(self, account: AccountId) -> int:
        return self._balances.get(account, 0)

    def total_supply(self) -> int:
        return self._supply["total"]

    def get_allowance(self, owner: AccountId, spender: AccountId) -> int:
        return self._allowances.get((owner, spender), 0)

    def holders(self) -> Dict[AccountId, int]:
        return {account: amount for account, amount in self._balances.items() if amount}

    def verify_conservation(self) -> Dict[str, object]:
        """
        Check that balances sum to the recorded supply.

        Returns:
            Dict with 'valid', 'supply' and 'balances_total'
        """
        balances_total = sum(self._balances.get(a, 0) for a in sorted(self._balances.keys()))
        return {
            'valid': balances_total == self.total_supply(),
            'supply': self.total_supply(),
            'balances_total': balances_total,
        }

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def _move(self, amount: int, sender: AccountId, recipient: AccountId) -> None:
        if amount <= 0:
            raise InvalidAmount(f"Transfer amount must be positive, got {amount}")
        if not validate_account(sender):
            raise ZeroAddress(f"Invalid sender {sender!r}")
        if not validate_account(recipient) or recipient == sender:
            raise InvalidRecipient(f"Invalid recipient {recipient!r}")
        balance = self.get_balance(sender)
        if balance < amount:
            raise InsufficientBalance(f"{sender} holds {balance} {self.symbol}, needs {amount}")
        self._balances.put(sender, balance - amount)
        self._balances.put(recipient, self.get_balance(recipient) + amount)

    @atomic_operation
    def transfer(
        self,
        caller: AccountId,
        amount: int,
        sender: AccountId,
        recipient: AccountId,
        memo: Optional[str] = None,
    ) -> bool:
        """Move ``caller``'s own tokens. Spending someone else's goes through transfer_from."""
        self._require_not_paused()
        if caller != sender:
            raise NotAuthorized(f"{caller} cannot transfer tokens held by {sender}")
        self._move(amount, sender, recipient)
        return True

    @atomic_operation
    def transfer_from(self, caller: AccountId, amount: int, owner: AccountId, recipient: AccountId) -> bool:
        """Spend part of ``owner``'s allowance to ``caller``."""
        self._require_not_paused()
        allowance = self.get_allowance(owner, caller)
        if allowance < amount:
            raise InsufficientBalance(f"Allowance {allowance} of {caller} from {owner} below {amount}")
        self._move(amount, owner, recipient)
        self._allowances.put((owner, caller), allowance - amount)
        return True

    @atomic_operation
    def approve(self, caller: AccountId, spender: AccountId, amount: int) -> bool:
        self._require_not_paused()
        if not validate_account(spender):
            raise InvalidRecipient(f"Invalid spender {spender!r}")
        if amount <= 0:
            raise InvalidAmount(f"Allowance must be positive, got {amount}")
        self._allowances.put((caller, spender), amount)
        return True

    @atomic_operation
    def mint(self, caller: AccountId, amount: int, recipient: AccountId) -> bool:
        self._require_admin(caller)
        if amount <= 0 or amount > self.max_mint:
            raise InvalidAmount(f"Mint amount must be in (0, {self.max_mint}], got {amount}")
        if not validate_account(recipient):
            raise InvalidRecipient(f"Invalid recipient {recipient!r}")
        self._balances.put(recipient, self.get_balance(recipient) + amount)
        self._supply.put("total", self.total_supply() + amount)
        return True

    @atomic_operation
    def burn(self, caller: AccountId, amount: int, owner: AccountId) -> bool:
        self._require_admin(caller)
        if amount <= 0:
            raise InvalidAmount(f"Burn amount must be positive, got {amount}")
        if not validate_account(owner):
            raise ZeroAddress(f"Invalid owner {owner!r}")
        balance = self.get_balance(owner)
        if balance < amount:
            raise InsufficientBalance(f"{owner} holds {balance} {self.symbol}, cannot burn {amount}")
        self._balances.put(owner, balance - amount)
        self._supply.put("total", self.total_supply() - amount)
        return True

    def __repr__(self) -> str:
        return f"TokenLedger({self.symbol}, supply={self.total_supply()})"


class CollateralStub:
    """
    Stand-in for the collateral manager's parameter surface.

    Accepts numeric updates for a fixed set of operation names and refuses
    anything else (unknown operation or non-positive value) by returning
    False. Values are kept in a journaled table, so an update made inside
    an operation that later fails is discarded with it.
    """

    def __init__(
        self,
        chain: Chain,
        component_id: AccountId,
        operations: Iterable[str] = DEFAULT_COLLATERAL_OPERATIONS,
    ):
        if not validate_account(component_id):
            raise ValueError(f"Invalid component id {component_id!r}")
        self.chain = chain
        self.component_id = component_id
        self.operations: FrozenSet[str] = frozenset(operations)
        self._parameters = chain.table(f"{component_id}.parameters")
        chain.register_component(self)

    def apply_parameter(self, operation: str, value: int) -> bool:
        if operation not in self.operations or value <= 0:
            return False
        self._parameters.put(operation, value)
        return True

    def get_parameter(self, operation: str) -> Optional[int]:
        return self._parameters.get(operation)

    def __repr__(self) -> str:
        return f"CollateralStub({self.component_id}, {len(self._parameters)} parameters)"
