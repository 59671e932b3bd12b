"""
Pool Conservation Conformance Tests

INVARIANT: After every operation, accepted or rejected:

    asset_balance(pool account)
        = total_pooled
        = Σ available + Σ escrow(undisbursed loans) + Σ unallocated

and for every loan, Σ contributions = total_funded ≤ principal.
The settlement asset itself conserves supply across transfers.
"""

from hypothesis import given, note, settings
from hypothesis import strategies as st

from loanhub import LoanStatus
from tests.conformance.platform_actions import (
    ADMIN, LENDERS, action_sequences, apply_action, new_platform,
)


class TestConservationProperties:

    @given(action_sequences)
    @settings(max_examples=75, deadline=None)
    def test_books_match_custody(self, sequence):
        """
        PROPERTY: Conservation holds after each step of any operation sequence.
        """
        platform = new_platform()
        supply = platform.asset.total_supply()

        for action in sequence:
            result = apply_action(platform, action)
            note(f"{action} -> {result!r}")
            report = platform.verify_conservation()
            assert report['valid'], report['discrepancies']
            assert platform.asset.total_supply() == supply

    @given(action_sequences)
    @settings(max_examples=50, deadline=None)
    def test_funding_never_exceeds_principal(self, sequence):
        platform = new_platform()
        for action in sequence:
            apply_action(platform, action)

        count = platform.registry.get_loan_count().value
        for loan_id in range(1, count + 1):
            loan = platform.registry.get_loan_details(loan_id).value
            funding = platform.pool.get_loan_funding(loan_id).value
            assert funding.total_funded <= loan.amount
            assert funding.funded == (funding.total_funded == loan.amount)
            if funding.funded:
                assert loan.status is not LoanStatus.PENDING


class TestSettlementProperties:

    @given(
        st.lists(st.integers(min_value=100, max_value=10_000), min_size=1, max_size=3),
        st.integers(min_value=1, max_value=50_000),
    )
    @settings(max_examples=100, deadline=None)
    def test_shares_plus_dust_equal_repayment(self, contributions, repayment):
        """
        PROPERTY: Σ credited shares + unallocated dust = repayment, and each
        share is repayment * contribution // total_funded.
        """
        platform = new_platform()
        principal = sum(contributions)
        loan_id = platform.registry.create_loan("carol", "carol", principal, 100, 43_200).unwrap()
        for lender, amount in zip(LENDERS, contributions):
            platform.pool.deposit(lender, amount).unwrap()
            platform.pool.fund_loan(lender, loan_id, amount).unwrap()

        platform.asset.mint(ADMIN, repayment, "carol").unwrap()
        platform.pool.distribute_repayment(ADMIN, loan_id, repayment).unwrap()

        credited = 0
        for lender, amount in zip(LENDERS, contributions):
            share = platform.pool.get_lender_balance(lender).value
            assert share == repayment * amount // principal
            credited += share
        assert credited + platform.pool.get_unallocated(loan_id).value == repayment
