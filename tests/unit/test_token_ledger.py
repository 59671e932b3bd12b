"""
test_token_ledger.py - Unit tests for the in-memory collaborators

Tests:
- TokenLedger: metadata, mint/burn, transfer, allowances, pause, conservation
- CollateralStub: accepted and refused parameter updates
- Protocol conformance of both
"""

import pytest

from loanhub import (
    MAX_MINT, NULL_ACCOUNT, CollateralComponent, CollateralStub,
    InsufficientBalance, InvalidAmount, InvalidRecipient, LoanHubError,
    NotAuthorized, Paused, TokenBalances, TokenLedger, ValueTransfer, ZeroAddress,
)
from loanhub.platform import TOKEN_URI
from tests.platform_helpers import ADMIN


@pytest.fixture
def token(chain):
    return TokenLedger(
        chain, "mhl", ADMIN,
        name="MicroloanHub Token", symbol="MHL", token_uri=TOKEN_URI,
        initial_balances={"alice": 1000},
    )


class TestMetadata:

    def test_fields(self, token):
        assert token.name == "MicroloanHub Token"
        assert token.symbol == "MHL"
        assert token.decimals == 6
        assert token.token_uri == "https://microloanhub.org/tokens/mhl-token.json"

    def test_initial_balances(self, token):
        assert token.get_balance("alice") == 1000
        assert token.get_balance("bob") == 0
        assert token.total_supply() == 1000

    def test_invalid_initial_balance(self, chain):
        with pytest.raises(ValueError):
            TokenLedger(chain, "bad", ADMIN, "Bad", "BAD", initial_balances={NULL_ACCOUNT: 5})

    def test_protocols(self, chain, token):
        assert isinstance(token, ValueTransfer)
        assert isinstance(token, TokenBalances)
        assert isinstance(CollateralStub(chain, "collateral"), CollateralComponent)


class TestMintBurn:

    def test_mint(self, token):
        assert token.mint(ADMIN, 500, "bob").ok
        assert token.get_balance("bob") == 500
        assert token.total_supply() == 1500

    def test_mint_admin_only(self, token):
        assert token.mint("alice", 500, "alice").is_error(NotAuthorized)

    def test_mint_cap(self, token):
        assert token.mint(ADMIN, MAX_MINT, "bob").ok
        assert token.mint(ADMIN, MAX_MINT + 1, "bob").is_error(InvalidAmount)

    def test_mint_to_null(self, token):
        assert token.mint(ADMIN, 500, NULL_ACCOUNT).is_error(InvalidRecipient)

    def test_burn(self, token):
        assert token.burn(ADMIN, 400, "alice").ok
        assert token.get_balance("alice") == 600
        assert token.total_supply() == 600

    def test_burn_more_than_held(self, token):
        assert token.burn(ADMIN, 1001, "alice").is_error(InsufficientBalance)


class TestTransfer:

    def test_transfer(self, token):
        assert token.transfer("alice", 300, "alice", "bob", "rent").ok
        assert token.get_balance("alice") == 700
        assert token.get_balance("bob") == 300

    def test_insufficient(self, token):
        result = token.transfer("alice", 1001, "alice", "bob")
        assert result.is_error(InsufficientBalance)
        assert token.get_balance("alice") == 1000

    @pytest.mark.parametrize("amount", [0, -1])
    def test_non_positive(self, token, amount):
        assert token.transfer("alice", amount, "alice", "bob").is_error(InvalidAmount)

    def test_to_self_or_null(self, token):
        assert token.transfer("alice", 1, "alice", "alice").is_error(InvalidRecipient)
        assert token.transfer("alice", 1, "alice", NULL_ACCOUNT).is_error(InvalidRecipient)

    def test_from_null(self, token):
        assert token.transfer(NULL_ACCOUNT, 1, NULL_ACCOUNT, "bob").is_error(ZeroAddress)

    def test_paused(self, token):
        token.set_paused(ADMIN, True)
        assert token.transfer("alice", 1, "alice", "bob").is_error(Paused)

    @pytest.mark.parametrize("caller", ["mallory", "bob", ADMIN])
    def test_only_holder_can_transfer(self, token, caller):
        result = token.transfer(caller, 1000, "alice", caller)
        assert result.is_error(NotAuthorized)
        assert token.get_balance("alice") == 1000
        assert token.get_balance(caller) == 0

    def test_conservation(self, token):
        token.transfer("alice", 250, "alice", "bob")
        token.mint(ADMIN, 75, "carol")
        token.burn(ADMIN, 25, "bob")
        result = token.verify_conservation()
        assert result['valid']
        assert result['supply'] == 1050


class TestAllowances:

    def test_approve_and_spend(self, token):
        token.approve("alice", "bob", 400).unwrap()
        assert token.get_allowance("alice", "bob") == 400
        assert token.transfer_from("bob", 150, "alice", "carol").ok
        assert token.get_allowance("alice", "bob") == 250
        assert token.get_balance("carol") == 150

    def test_spend_beyond_allowance(self, token):
        token.approve("alice", "bob", 100)
        assert token.transfer_from("bob", 101, "alice", "bob").is_error(InsufficientBalance)
        assert token.get_balance("alice") == 1000

    def test_spend_without_approval(self, token):
        assert token.transfer_from("mallory", 1, "alice", "mallory").is_error(InsufficientBalance)
        assert token.get_balance("alice") == 1000

    def test_approve_null_spender(self, token):
        assert token.approve("alice", NULL_ACCOUNT, 100).is_error(InvalidRecipient)


class TestCollateralStub:

    def test_unknown_operation_refused(self, chain):
        stub = CollateralStub(chain, "collateral")
        assert stub.apply_parameter("set-moon-phase", 3) is False

    def test_non_positive_value_refused(self, chain):
        stub = CollateralStub(chain, "collateral")
        assert stub.apply_parameter("set-collateral-ratio", 0) is False

    def test_update_requires_an_operation(self, chain):
        stub = CollateralStub(chain, "collateral")
        with pytest.raises(LoanHubError, match="outside of an operation"):
            stub.apply_parameter("set-collateral-ratio", 15_000)
        assert stub.get_parameter("set-collateral-ratio") is None

    def test_custom_operation_set(self, chain):
        stub = CollateralStub(chain, "collateral", operations={"set-haircut"})
        assert stub.operations == frozenset({"set-haircut"})
