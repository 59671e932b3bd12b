"""
Loan Status Conformance Tests

INVARIANTS:
    1. Every loan created with in-bounds terms starts PENDING with
       deadline = start + duration and nothing repaid.
    2. Status only moves forward along PENDING → ACTIVE → {REPAID, DEFAULTED}
       (or PENDING → {REPAID, DEFAULTED}); a terminal status never changes.
"""

from hypothesis import given, note, settings
from hypothesis import strategies as st

from loanhub import Chain, LoanRegistry, LoanStatus
from tests.conformance.platform_actions import (
    action_sequences, apply_action, loan_statuses, new_platform,
)


_RANK = {
    LoanStatus.PENDING: 0,
    LoanStatus.ACTIVE: 1,
    LoanStatus.REPAID: 2,
    LoanStatus.DEFAULTED: 2,
}


class TestLoanTerms:

    @given(
        st.integers(min_value=100, max_value=1_000_000_000),
        st.integers(min_value=100, max_value=2_000),
        st.integers(min_value=43_200, max_value=525_600),
        st.integers(min_value=0, max_value=10_000_000),
    )
    @settings(max_examples=100, deadline=None)
    def test_valid_terms_always_accepted(self, amount, rate, duration, height):
        chain = Chain("terms", initial_height=height, verbose=False)
        registry = LoanRegistry(chain, "registry", "admin")

        loan_id = registry.create_loan("carol", "carol", amount, rate, duration).unwrap()
        loan = registry.get_loan_details(loan_id).value
        assert loan.status is LoanStatus.PENDING
        assert loan.start_height == height
        assert loan.deadline_height == height + duration
        assert loan.total_repaid == 0


class TestMonotonicStatus:

    @given(action_sequences)
    @settings(max_examples=75, deadline=None)
    def test_status_never_moves_backwards(self, sequence):
        platform = new_platform()
        previous = {}

        for action in sequence:
            result = apply_action(platform, action)
            note(f"{action} -> {result!r}")
            current = loan_statuses(platform)
            for loan_id, status in previous.items():
                if status.is_terminal:
                    assert current[loan_id] is status
                else:
                    assert _RANK[current[loan_id]] >= _RANK[status]
            previous = current
