"""
platform.py - Wire a complete lending platform on one Chain

build_platform() creates the settlement asset, the governance token, the
three core components and the collateral stub, then grants the Pooled Fund
Ledger and the Governance Controller operator rights on the Loan Registry.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .capabilities import CollateralStub, TokenLedger, ValueTransfer
from .chain import Chain
from .config import GovernanceSettings, PoolLimits, RegistryLimits
from .core import AccountId
from .governance import GovernanceController
from .pool import PooledFundLedger
from .registry import LoanRegistry


ASSET_ID = "asset"
TOKEN_ID = "mhl-token"
REGISTRY_ID = "registry"
POOL_ID = "pool"
GOVERNANCE_ID = "governance"
COLLATERAL_ID = "collateral"

TOKEN_NAME = "MicroloanHub Token"
TOKEN_SYMBOL = "MHL"
TOKEN_DECIMALS = 6
TOKEN_URI = "https://microloanhub.org/tokens/mhl-token.json"


@dataclass
class Platform:
    """Handles to every component of one wired platform."""
    chain: Chain
    admin: AccountId
    asset: Any
    token: TokenLedger
    registry: LoanRegistry
    pool: PooledFundLedger
    governance: GovernanceController
    collateral: CollateralStub

    def verify_conservation(self) -> Dict[str, Any]:
        return self.pool.verify_conservation()


def build_platform(
    admin: AccountId = "admin",
    chain: Optional[Chain] = None,
    *,
    initial_height: int = 0,
    verbose: bool = True,
    asset: Optional[ValueTransfer] = None,
    registry_limits: Optional[RegistryLimits] = None,
    pool_limits: Optional[PoolLimits] = None,
    governance_settings: Optional[GovernanceSettings] = None,
) -> Platform:
    """
    Build and wire a platform.

    Args:
        admin: Administrator of every component
        chain: Existing chain to bind to (default: a new Chain)
        initial_height: Starting height when a new chain is created
        verbose: Print applied/rejected operations when a new chain is created
        asset: Value-transfer capability (default: a TokenLedger "STX" on the chain)
        registry_limits, pool_limits, governance_settings: Component settings

    Example:
        platform = build_platform("ops", initial_height=1000, verbose=False)
        platform.asset.mint("ops", 5000, "alice")
        platform.pool.deposit("alice", 2000)
    """
    if chain is None:
        chain = Chain("main", initial_height=initial_height, verbose=verbose)
    if asset is None:
        asset = TokenLedger(chain, ASSET_ID, admin, name="Stacks", symbol="STX")
    token = TokenLedger(
        chain, TOKEN_ID, admin,
        name=TOKEN_NAME,
        symbol=TOKEN_SYMBOL,
        decimals=TOKEN_DECIMALS,
        token_uri=TOKEN_URI,
    )
    registry = LoanRegistry(chain, REGISTRY_ID, admin, limits=registry_limits)
    pool = PooledFundLedger(chain, POOL_ID, admin, registry, asset, limits=pool_limits)
    collateral = CollateralStub(chain, COLLATERAL_ID)
    governance = GovernanceController(
        chain, GOVERNANCE_ID, admin, token,
        settings=governance_settings,
        registry_id=REGISTRY_ID,
        collateral_id=COLLATERAL_ID,
    )

    registry.set_operator(admin, POOL_ID, True).unwrap()
    registry.set_operator(admin, GOVERNANCE_ID, True).unwrap()

    return Platform(
        chain=chain,
        admin=admin,
        asset=asset,
        token=token,
        registry=registry,
        pool=pool,
        governance=governance,
        collateral=collateral,
    )
