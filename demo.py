#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: A Loan from Deposit to Repayment

Walks one loan through the whole platform. Each step builds on the previous
one. Press Enter to advance.

WHAT YOU'LL SEE:
  1-3:  Setup       - Wiring the platform, minting the asset, lender deposits
  4-6:  Lending     - Creating a loan, partial and full funding, rejections
  7-8:  Settlement  - Pro-rata repayment, Repaid transition, withdrawals
  9:    Governance  - Proposal, vote, quorum-gated parameter change
  10:   Audit       - Transaction log and conservation check

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from loanhub import LoanStatus, Platform, build_platform


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    admin: str = "ops"
    start_height: int = 1000

    # Lenders and their deposits
    alice_deposit: int = 6000
    bob_deposit: int = 4000

    # Loan terms
    principal: int = 5000
    interest_rate: int = 800        # bp, owed = 5400
    duration: int = 43_200

    # Governance
    whale_tokens: int = 6_000_000
    orca_tokens: int = 4_000_000
    new_max_rate: int = 1500


CONFIG = DemoConfig()
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def show_pool(p: Platform, *lenders: str):
    for lender in lenders:
        print(f"  {lender:<8} available: {p.pool.get_lender_balance(lender).value:>7}")
    print(f"  {'pool':<8} custodied: {p.pool.get_total_pooled().value:>7}")


# ============================================================================
# STEPS
# ============================================================================

def step_01_platform() -> Platform:
    step_header(1, "Wire the Platform",
        "One Chain hosts every component; each operation is one unit of work.")
    p = build_platform(CONFIG.admin, initial_height=CONFIG.start_height)
    print(f"\nComponents: {p.chain.list_components()}")
    print(f"Height:     {p.chain.height}")
    return p


def step_02_mint(p: Platform):
    step_header(2, "Mint the Settlement Asset",
        "Lenders need asset before they can deposit.")
    p.asset.mint(CONFIG.admin, CONFIG.alice_deposit, "alice")
    p.asset.mint(CONFIG.admin, CONFIG.bob_deposit, "bob")


def step_03_deposit(p: Platform):
    step_header(3, "Deposit into the Pool",
        "Deposits move asset into the pool account and credit available balances.")
    p.pool.deposit("alice", CONFIG.alice_deposit)
    p.pool.deposit("bob", CONFIG.bob_deposit)
    show_pool(p, "alice", "bob")


def step_04_create_loan(p: Platform) -> int:
    step_header(4, "Create a Loan",
        "Loans start PENDING; out-of-bounds terms are rejected, not raised.")
    p.registry.create_loan("carol", "carol", 50, CONFIG.interest_rate, CONFIG.duration)
    loan_id = p.registry.create_loan(
        "carol", "carol", CONFIG.principal, CONFIG.interest_rate, CONFIG.duration
    ).unwrap()
    loan = p.registry.get_loan_details(loan_id).value
    print(f"\nLoan {loan_id}: {loan.amount} at {loan.interest_rate}bp, owed {loan.total_owed}, "
          f"deadline {loan.deadline_height}, {loan.status.value}")
    return loan_id


def step_05_partial_funding(p: Platform, loan_id: int):
    step_header(5, "Partial Funding",
        "Funding accumulates; the loan stays PENDING until fully funded.")
    p.pool.fund_loan("alice", loan_id, 3000)
    p.pool.fund_loan("bob", loan_id, 2500)     # exceeds the remaining 2000
    funding = p.pool.get_loan_funding(loan_id).value
    print(f"\nFunded {funding.total_funded} of {CONFIG.principal}")


def step_06_full_funding(p: Platform, loan_id: int):
    step_header(6, "Full Funding",
        "The last contribution activates the loan and disburses the principal.")
    p.pool.fund_loan("bob", loan_id, 2000)
    print(f"\nStatus: {p.registry.get_loan_details(loan_id).value.status.value}")
    print(f"carol holds {p.asset.get_balance('carol')} STX")


def step_07_repayment(p: Platform, loan_id: int):
    step_header(7, "Settle Repayments",
        "carol approves the pool; each repayment is split 60% alice, 40% bob.")
    p.asset.mint(CONFIG.admin, 400, "carol")
    p.asset.approve("carol", p.pool.pool_account, 5400)
    for installment in (2700, 2700):
        p.chain.advance(7200)
        p.pool.distribute_repayment(CONFIG.admin, loan_id, installment)
        show_pool(p, "alice", "bob")
    status = p.registry.get_loan_details(loan_id).value.status
    assert status is LoanStatus.REPAID
    print(f"\nStatus: {status.value}")


def step_08_withdraw(p: Platform):
    step_header(8, "Withdraw",
        "Lenders take principal plus interest back out of the pool.")
    p.pool.withdraw("alice", p.pool.get_lender_balance("alice").value)
    p.pool.withdraw("bob", p.pool.get_lender_balance("bob").value)
    print(f"\nalice holds {p.asset.get_balance('alice')} STX, bob holds {p.asset.get_balance('bob')} STX")


def step_09_governance(p: Platform):
    step_header(9, "Governance",
        "Token holders lower the maximum interest rate.")
    p.token.mint(CONFIG.admin, CONFIG.whale_tokens, "whale")
    p.token.mint(CONFIG.admin, CONFIG.orca_tokens, "orca")
    gov = p.governance
    pid = gov.create_proposal("whale", "Cap rates", "registry",
                              "set-max-interest-rate", CONFIG.new_max_rate).unwrap()
    gov.vote("whale", pid, True, CONFIG.whale_tokens)
    gov.vote("orca", pid, False, CONFIG.orca_tokens)
    gov.execute_proposal(pid)                  # window still open
    p.chain.advance(1440)
    gov.execute_proposal(pid)
    print(f"\nMax interest rate is now {p.registry.limits.max_interest_rate}bp")


def step_10_audit(p: Platform):
    step_header(10, "Audit",
        "Every committed operation is one Transaction; the books match custody.")
    for tx in p.chain.transaction_log[-6:]:
        print(f"  {tx}")
    report = p.verify_conservation()
    print(f"\nConservation valid: {report['valid']} "
          f"(pooled {report['total_pooled']}, custodied {report['custodied']})")


def main():
    print("=" * 70)
    print("       LOANHUB - INTERACTIVE TUTORIAL")
    print("=" * 70)
    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    wait_for_enter()

    p = step_01_platform()
    wait_for_enter()
    step_02_mint(p)
    wait_for_enter()
    step_03_deposit(p)
    wait_for_enter()
    loan_id = step_04_create_loan(p)
    wait_for_enter()
    step_05_partial_funding(p, loan_id)
    wait_for_enter()
    step_06_full_funding(p, loan_id)
    wait_for_enter()
    step_07_repayment(p, loan_id)
    wait_for_enter()
    step_08_withdraw(p)
    wait_for_enter()
    step_09_governance(p)
    wait_for_enter()
    step_10_audit(p)


if __name__ == "__main__":
    main()
