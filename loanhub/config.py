"""
config.py - Component settings

Frozen dataclasses grouping the tunable constants of each component.
Defaults come from loanhub.core; every instance validates itself on
construction so a component can never be built with inconsistent bounds.

Usage:
    limits = RegistryLimits(max_interest_rate=1500)
    registry = LoanRegistry(chain, "registry", admin="ops", limits=limits)

    settings = GovernanceSettings.from_mapping({"voting_period": 720})
"""

from __future__ import annotations
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping

from .core import (
    BASIS_POINTS,
    MIN_LOAN_AMOUNT, MAX_LOAN_AMOUNT,
    MIN_INTEREST_RATE, MAX_INTEREST_RATE,
    MIN_DURATION, MAX_DURATION,
    MIN_DEPOSIT, MAX_DEPOSIT,
    MIN_PROPOSAL_THRESHOLD, VOTING_PERIOD, QUORUM_BPS,
)


def _require_range(name: str, low: int, high: int) -> None:
    if not isinstance(low, int) or not isinstance(high, int):
        raise ValueError(f"{name} bounds must be integers, got {low!r}, {high!r}")
    if low <= 0:
        raise ValueError(f"{name} minimum must be positive, got {low}")
    if low > high:
        raise ValueError(f"{name} minimum {low} exceeds maximum {high}")


class _FromMapping:
    """Build a settings object from a plain mapping, ignoring unknown keys."""

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]):
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in values.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class RegistryLimits(_FromMapping):
    """Bounds applied by the Loan Registry when a loan is created."""
    min_amount: int = MIN_LOAN_AMOUNT
    max_amount: int = MAX_LOAN_AMOUNT
    min_interest_rate: int = MIN_INTEREST_RATE
    max_interest_rate: int = MAX_INTEREST_RATE
    min_duration: int = MIN_DURATION
    max_duration: int = MAX_DURATION

    def __post_init__(self):
        _require_range("amount", self.min_amount, self.max_amount)
        _require_range("interest_rate", self.min_interest_rate, self.max_interest_rate)
        _require_range("duration", self.min_duration, self.max_duration)

    def with_value(self, name: str, value: int) -> RegistryLimits:
        """Return a copy with one field changed (re-validated)."""
        return replace(self, **{name: value})


@dataclass(frozen=True)
class PoolLimits(_FromMapping):
    """Per-call bounds applied by the Pooled Fund Ledger."""
    min_deposit: int = MIN_DEPOSIT
    max_deposit: int = MAX_DEPOSIT

    def __post_init__(self):
        _require_range("deposit", self.min_deposit, self.max_deposit)


@dataclass(frozen=True)
class GovernanceSettings(_FromMapping):
    """
    Governance Controller settings.

    Attributes:
        min_proposal_threshold: Token balance required to create a proposal
        voting_period: Length of the voting window in heights
        quorum_bps: Fraction of token supply (in bp) that must vote
        lock_voting_weight: When True, tokens committed to other open
            proposals are not available as voting weight
    """
    min_proposal_threshold: int = MIN_PROPOSAL_THRESHOLD
    voting_period: int = VOTING_PERIOD
    quorum_bps: int = QUORUM_BPS
    lock_voting_weight: bool = False

    def __post_init__(self):
        if self.min_proposal_threshold < 0:
            raise ValueError("min_proposal_threshold must be non-negative")
        if self.voting_period <= 0:
            raise ValueError("voting_period must be positive")
        if not 0 < self.quorum_bps <= BASIS_POINTS:
            raise ValueError(f"quorum_bps must be in (0, {BASIS_POINTS}], got {self.quorum_bps}")

    def quorum_required(self, token_supply: int) -> int:
        return (token_supply * self.quorum_bps) // BASIS_POINTS
