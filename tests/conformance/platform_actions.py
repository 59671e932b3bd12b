"""
platform_actions.py - Random operation sequences for property-based tests

An action is a plain tuple; apply_action() runs it against a platform and
returns the OperationResult (None for height changes). Amounts deliberately
straddle the bounds so sequences mix accepted and rejected operations.
"""

from hypothesis import strategies as st

from loanhub import LoanStatus, Platform, build_platform


ADMIN = "admin"
LENDERS = ["alice", "bob", "erin"]
BORROWER = "carol"

lenders = st.sampled_from(LENDERS)
loan_ids = st.integers(min_value=1, max_value=6)
amounts = st.integers(min_value=0, max_value=20_000)

actions = st.one_of(
    st.tuples(st.just("deposit"), lenders, amounts),
    st.tuples(st.just("withdraw"), lenders, amounts),
    st.tuples(
        st.just("create"),
        st.integers(min_value=50, max_value=5_000),
        st.sampled_from([0, 100, 500, 2_000, 2_500]),
    ),
    st.tuples(st.just("fund"), lenders, loan_ids, st.integers(min_value=0, max_value=5_000)),
    st.tuples(st.just("repay"), loan_ids, st.integers(min_value=0, max_value=3_000)),
    st.tuples(st.just("close"), loan_ids, st.sampled_from(list(LoanStatus))),
    st.tuples(st.just("release"), lenders, loan_ids),
    st.tuples(st.just("advance"), st.integers(min_value=0, max_value=50_000)),
    st.tuples(st.just("pause"), st.sampled_from(["pool", "registry"]), st.booleans()),
)

action_sequences = st.lists(actions, min_size=1, max_size=40)


def new_platform() -> Platform:
    """Quiet platform; lenders and the borrower hold asset, the borrower has approved the pool."""
    platform = build_platform(ADMIN, initial_height=1000, verbose=False)
    for account in LENDERS:
        platform.asset.mint(ADMIN, 100_000, account).unwrap()
    platform.asset.mint(ADMIN, 10_000, BORROWER).unwrap()
    platform.asset.approve(BORROWER, platform.pool.pool_account, 10**9).unwrap()
    return platform


def apply_action(platform: Platform, action):
    kind, *args = action
    pool, registry = platform.pool, platform.registry
    if kind == "deposit":
        return pool.deposit(*args)
    if kind == "withdraw":
        return pool.withdraw(*args)
    if kind == "create":
        amount, rate = args
        return registry.create_loan(BORROWER, BORROWER, amount, rate, 43_200)
    if kind == "fund":
        return pool.fund_loan(*args)
    if kind == "repay":
        loan_id, amount = args
        return pool.distribute_repayment(ADMIN, loan_id, amount)
    if kind == "close":
        return registry.update_loan_status(ADMIN, *args)
    if kind == "release":
        return pool.release_escrow(*args)
    if kind == "advance":
        platform.chain.advance(args[0])
        return None
    if kind == "pause":
        component, paused = args
        return platform.chain.get_component(component).set_paused(ADMIN, paused)
    raise ValueError(f"Unknown action {kind}")


def loan_statuses(platform: Platform) -> dict:
    count = platform.registry.get_loan_count().value
    return {
        loan_id: platform.registry.get_loan_details(loan_id).value.status
        for loan_id in range(1, count + 1)
    }
