"""
conftest.py - Shared pytest fixtures for loanhub tests

Provides common fixtures used across unit, functional and conformance tests:
- A bare chain for component-level tests
- A fully wired platform (asset, token, registry, pool, governance, collateral)
- Funded lenders, a pending loan, token holders for governance
"""

import pytest

from loanhub import Chain, LoanRegistry, build_platform

from tests.platform_helpers import (
    ADMIN, START_HEIGHT,
    approve_repayments, create_loan, fund_lender, give_tokens,
)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def chain():
    """Fresh quiet chain at height 1000."""
    return Chain("test", initial_height=START_HEIGHT, verbose=False)


@pytest.fixture
def registry(chain):
    return LoanRegistry(chain, "registry", ADMIN)


@pytest.fixture
def platform():
    """Fully wired platform with no balances."""
    return build_platform(ADMIN, initial_height=START_HEIGHT, verbose=False)


@pytest.fixture
def funded_platform(platform):
    """Platform where alice and bob each have 1000 available in the pool."""
    fund_lender(platform, "alice", 1000)
    fund_lender(platform, "bob", 1000)
    return platform


@pytest.fixture
def pending_loan(funded_platform):
    """Pending loan: carol borrows 1000 at 500bp (owed 1050) and lets the pool collect repayments."""
    loan_id = create_loan(funded_platform)
    approve_repayments(funded_platform, "carol")
    return loan_id


@pytest.fixture
def active_loan(funded_platform, pending_loan):
    """The pending loan fully funded 500/500 by alice and bob."""
    funded_platform.pool.fund_loan("alice", pending_loan, 500).unwrap()
    funded_platform.pool.fund_loan("bob", pending_loan, 500).unwrap()
    return pending_loan


@pytest.fixture
def token_holders(platform):
    """Token supply of 10M: whale 4M, orca 4M, minnow 2M."""
    give_tokens(platform, {"whale": 4_000_000, "orca": 4_000_000, "minnow": 2_000_000})
    return platform
