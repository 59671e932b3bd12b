"""
loanhub - Peer-to-peer lending platform core

Loan issuance, pooled-fund settlement and token-weighted governance, hosted
on a serial Chain that runs every operation as one atomic unit of work.

Usage:
    from loanhub import build_platform, LoanStatus

    p = build_platform("ops", initial_height=1000)
    p.asset.mint("ops", 2000, "lender")
    p.pool.deposit("lender", 2000)

    loan_id = p.registry.create_loan("alice", "alice", 1000, 500, 43200).unwrap()
    p.pool.fund_loan("lender", loan_id, 1000)
    assert p.registry.get_loan_details(loan_id).value.status is LoanStatus.ACTIVE

    # Rejections come back as results, never as exceptions
    result = p.pool.fund_loan("lender", loan_id, 500)
    result.error_kind   # 'LoanNotPending'
"""

# Core types
from .core import (
    NULL_ACCOUNT,
    BASIS_POINTS,
    AccountId,
    LoanId,
    ProposalId,
    validate_account,
    total_owed,
    LoanStatus,
    ProposalState,
    ErrorCategory,
    Loan,
    FundingRecord,
    Proposal,
    VoteRecord,
    VoterDetails,
    OperationResult,
    StateChange,
    Transaction,
    LoanHubError,
    NotAuthorized,
    InvalidAmount,
    InvalidDuration,
    InvalidInterestRate,
    InvalidStatus,
    ZeroAddress,
    InvalidRecipient,
    InvalidContract,
    UnsupportedOperation,
    InvalidParameter,
    NullContract,
    LoanNotFound,
    ProposalNotFound,
    StateConflict,
    LoanNotActive,
    LoanNotPending,
    LoanNotFunded,
    LoanNotClosed,
    LoanClosed,
    ContractsAlreadyLinked,
    AlreadyFunded,
    AlreadyVoted,
    VotingClosed,
    ProposalInactive,
    QuorumNotMet,
    Paused,
    InsufficientBalance,
    TransferFailed,
    CollateralRejected,
)

# Settings
from .config import RegistryLimits, PoolLimits, GovernanceSettings

# Host
from .chain import Chain, Component, Table, atomic_operation, read_operation

# Collaborators
from .capabilities import (
    ValueTransfer,
    TokenBalances,
    CollateralComponent,
    TokenLedger,
    CollateralStub,
    MAX_MINT,
)

# Components
from .registry import LoanRegistry, PARAMETER_FIELDS
from .pool import PooledFundLedger
from .governance import GovernanceController

# Wiring
from .platform import Platform, build_platform

__all__ = [
    # Core
    'NULL_ACCOUNT', 'BASIS_POINTS', 'AccountId', 'LoanId', 'ProposalId',
    'validate_account', 'total_owed',
    'LoanStatus', 'ProposalState', 'ErrorCategory',
    'Loan', 'FundingRecord', 'Proposal', 'VoteRecord', 'VoterDetails',
    'OperationResult', 'StateChange', 'Transaction',
    # Errors
    'LoanHubError', 'NotAuthorized', 'InvalidAmount', 'InvalidDuration',
    'InvalidInterestRate', 'InvalidStatus', 'ZeroAddress', 'InvalidRecipient',
    'InvalidContract', 'UnsupportedOperation', 'InvalidParameter', 'NullContract',
    'LoanNotFound', 'ProposalNotFound', 'StateConflict', 'LoanNotActive',
    'LoanNotPending', 'LoanNotFunded', 'LoanNotClosed', 'LoanClosed',
    'ContractsAlreadyLinked', 'AlreadyFunded', 'AlreadyVoted', 'VotingClosed',
    'ProposalInactive', 'QuorumNotMet', 'Paused', 'InsufficientBalance',
    'TransferFailed', 'CollateralRejected',
    # Settings
    'RegistryLimits', 'PoolLimits', 'GovernanceSettings',
    # Host
    'Chain', 'Component', 'Table', 'atomic_operation', 'read_operation',
    # Collaborators
    'ValueTransfer', 'TokenBalances', 'CollateralComponent',
    'TokenLedger', 'CollateralStub', 'MAX_MINT',
    # Components
    'LoanRegistry', 'PARAMETER_FIELDS', 'PooledFundLedger', 'GovernanceController',
    # Wiring
    'Platform', 'build_platform',
]

__version__ = '1.0.0'
