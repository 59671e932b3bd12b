"""
Atomicity Conformance Tests

INVARIANT: Operations are all-or-nothing.

    ∀ operation O:
        O rejected ⟹ every table (all components, the asset included)
                      is unchanged and nothing is logged
        O accepted ⟹ exactly one Transaction is appended to the log

Cross-component effects (registry status, asset transfers) roll back with
the operation that caused them.
"""

from hypothesis import given, note, settings

from loanhub import Chain, LoanStatus, TokenLedger, TransferFailed, build_platform
from tests.conformance.platform_actions import (
    ADMIN, action_sequences, apply_action, new_platform,
)
from tests.fake_capabilities import BlockingTransfer


class TestAtomicityProperties:

    @given(action_sequences)
    @settings(max_examples=75, deadline=None)
    def test_rejected_operations_change_nothing(self, sequence):
        platform = new_platform()
        chain = platform.chain

        for action in sequence:
            before = chain.snapshot()
            logged = len(chain.transaction_log)

            result = apply_action(platform, action)
            note(f"{action} -> {result!r}")
            if result is None:
                continue
            if result.ok:
                assert len(chain.transaction_log) == logged + 1
                assert chain.transaction_log[-1].height == chain.height
            else:
                assert chain.snapshot() == before
                assert len(chain.transaction_log) == logged
            assert not chain.in_operation


class TestCrossComponentRollback:

    def test_failed_disbursement_restores_every_component(self):
        chain = Chain("test", initial_height=1000, verbose=False)
        stx = TokenLedger(chain, "asset", ADMIN, name="Stacks", symbol="STX")
        platform = build_platform(ADMIN, chain, asset=BlockingTransfer(stx, blocked={"carol"}))
        stx.mint(ADMIN, 2000, "alice").unwrap()
        platform.pool.deposit("alice", 2000).unwrap()
        loan_id = platform.registry.create_loan("carol", "carol", 1000, 500, 43_200).unwrap()
        platform.pool.fund_loan("alice", loan_id, 400).unwrap()

        before = chain.snapshot()
        result = platform.pool.fund_loan("alice", loan_id, 600)

        assert result.is_error(TransferFailed)
        assert chain.snapshot() == before
        assert platform.registry.get_loan_details(loan_id).value.status is LoanStatus.PENDING
