"""
governance.py - Governance Controller

Token-weighted proposals that change risk parameters of the Loan Registry
or the collateral component.

Lifecycle:
    create_proposal -> vote (while height < end_height) -> execute_proposal

A proposal executes at most once, and only after its window closes with
quorum (votes_for + votes_against >= supply * quorum_bps // 10000) and a
strict majority in favour. Execution dispatches exactly one parameter
update; if that update fails the proposal stays unexecuted.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Optional, Tuple

from .capabilities import TokenBalances
from .chain import Chain, Component, atomic_operation, read_operation
from .config import GovernanceSettings
from .core import (
    AccountId, Proposal, ProposalId, ProposalState, VoteRecord, VoterDetails,
    AlreadyVoted, CollateralRejected, InsufficientBalance, InvalidAmount,
    InvalidContract, NullContract, ProposalInactive, ProposalNotFound,
    QuorumNotMet, VotingClosed, ZeroAddress,
    validate_account,
)


class GovernanceController(Component):
    """
    Proposal lifecycle, weighted voting and quorum-gated execution.

    Voting weight is checked against the voter's token balance when the vote
    is cast and is not escrowed, so one balance can back votes on several
    open proposals. Set GovernanceSettings.lock_voting_weight to count only
    the balance not already committed to other open proposals.

    Tables:
        proposals: proposal_id -> Proposal
        votes: (proposal_id, voter) -> VoteRecord
        ballots: voter -> tuple of proposal ids voted on
        counters: "last_proposal_id" -> int
        targets: "registry" / "collateral" -> component id

    Example:
        gov = GovernanceController(chain, "governance", admin="ops", token=mhl,
                                   registry_id="registry")
        pid = gov.create_proposal("whale", "Cap rates", "registry",
                                  "set-max-interest-rate", 1500).unwrap()
        gov.vote("whale", pid, True, 6_000_000)
        chain.advance(1440)
        gov.execute_proposal(pid)
    """

    def __init__(
        self,
        chain: Chain,
        component_id: AccountId,
        admin: AccountId,
        token: TokenBalances,
        settings: Optional[GovernanceSettings] = None,
        registry_id: Optional[AccountId] = None,
        collateral_id: Optional[AccountId] = None,
    ):
        super().__init__(chain, component_id, admin)
        self.token = token
        self.settings = settings or GovernanceSettings()
        self._proposals = self._table("proposals")
        self._votes = self._table("votes")
        self._ballots = self._table("ballots")
        self._counters = self._table("counters", {"last_proposal_id": 0})
        self._targets = self._table("targets", {"registry": registry_id, "collateral": collateral_id})

    def _load(self, proposal_id: ProposalId) -> Proposal:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise ProposalNotFound(f"Proposal {proposal_id} not found")
        return proposal

    def _state(self, proposal: Proposal) -> ProposalState:
        if proposal.executed:
            return ProposalState.EXECUTED
        if self.chain.height < proposal.end_height:
            return ProposalState.OPEN
        quorum = self.settings.quorum_required(self.token.total_supply())
        if proposal.total_votes >= quorum and proposal.votes_for > proposal.votes_against:
            return ProposalState.PASSED
        return ProposalState.FAILED

    def _committed_elsewhere(self, voter: AccountId, proposal_id: ProposalId) -> int:
        committed = 0
        for other_id in self._ballots.get(voter, ()):
            if other_id == proposal_id:
                continue
            if self._state(self._proposals[other_id]) is ProposalState.OPEN:
                committed += self._votes[(other_id, voter)].tokens
        return committed

    # ========================================================================
    # PROPOSALS
    # ========================================================================

    @atomic_operation
    def create_proposal(
        self,
        caller: AccountId,
        description: str,
        target_component: AccountId,
        target_operation: str,
        parameter: int,
    ) -> ProposalId:
        self._require_not_paused()
        if not validate_account(target_component):
            raise NullContract(f"Invalid target component {target_component!r}")
        balance = self.token.get_balance(caller)
        if balance < self.settings.min_proposal_threshold:
            raise InsufficientBalance(
                f"{caller} holds {balance} tokens, {self.settings.min_proposal_threshold} required"
            )

        proposal_id = self._counters["last_proposal_id"] + 1
        start = self.chain.height
        self._proposals.put(proposal_id, Proposal(
            proposal_id=proposal_id,
            proposer=caller,
            description=description,
            target_component=target_component,
            target_operation=target_operation,
            parameter=parameter,
            start_height=start,
            end_height=start + self.settings.voting_period,
        ))
        self._counters.put("last_proposal_id", proposal_id)
        return proposal_id

    @atomic_operation
    def vote(self, caller: AccountId, proposal_id: ProposalId, in_favor: bool, tokens: int) -> bool:
        self._require_not_paused()
        if tokens <= 0:
            raise InvalidAmount(f"Vote weight must be positive, got {tokens}")
        proposal = self._load(proposal_id)
        if self.chain.height >= proposal.end_height:
            raise VotingClosed(f"Voting on proposal {proposal_id} closed at {proposal.end_height}")
        if proposal.executed:
            raise ProposalInactive(f"Proposal {proposal_id} already executed")
        if (proposal_id, caller) in self._votes:
            raise AlreadyVoted(f"{caller} already voted on proposal {proposal_id}")
        weight = self.token.get_balance(caller)
        if self.settings.lock_voting_weight:
            weight -= self._committed_elsewhere(caller, proposal_id)
        if weight < tokens:
            raise InsufficientBalance(f"{caller} can vote with {weight} tokens, offered {tokens}")

        self._votes.put((proposal_id, caller), VoteRecord(in_favor=bool(in_favor), tokens=tokens))
        self._ballots.put(caller, self._ballots.get(caller, ()) + (proposal_id,))
        if in_favor:
            proposal = replace(proposal, votes_for=proposal.votes_for + tokens)
        else:
            proposal = replace(proposal, votes_against=proposal.votes_against + tokens)
        self._proposals.put(proposal_id, proposal)
        return True

    @atomic_operation
    def execute_proposal(self, proposal_id: ProposalId) -> bool:
        """
        Execute a passed proposal.

        Raises:
            Paused, ProposalNotFound, VotingClosed (window still open),
            ProposalInactive (already executed), QuorumNotMet (no quorum or
            no majority), InvalidContract, CollateralRejected, or whatever
            the Registry's set_parameter rejects with
        """
        self._require_not_paused()
        proposal = self._load(proposal_id)
        if self.chain.height < proposal.end_height:
            raise VotingClosed(f"Voting on proposal {proposal_id} runs until {proposal.end_height}")
        if proposal.executed:
            raise ProposalInactive(f"Proposal {proposal_id} already executed")
        quorum = self.settings.quorum_required(self.token.total_supply())
        if proposal.total_votes < quorum:
            raise QuorumNotMet(f"Proposal {proposal_id}: {proposal.total_votes} votes, quorum {quorum}")
        if proposal.votes_for <= proposal.votes_against:
            raise QuorumNotMet(
                f"Proposal {proposal_id}: {proposal.votes_for} for, {proposal.votes_against} against"
            )

        self._proposals.put(proposal_id, replace(proposal, executed=True))
        self._dispatch(proposal)
        return True

    def _dispatch(self, proposal: Proposal) -> None:
        target = proposal.target_component
        component = self.chain.get_component(target)
        if component is None:
            raise InvalidContract(f"Unknown component {target}")
        if target == self._targets["registry"]:
            component.set_parameter(
                self.component_id, proposal.target_operation, proposal.parameter
            ).unwrap()
        elif target == self._targets["collateral"]:
            if not component.apply_parameter(proposal.target_operation, proposal.parameter):
                raise CollateralRejected(
                    f"{target} refused {proposal.target_operation}={proposal.parameter}"
                )
        else:
            raise InvalidContract(f"{target} is not a governed component")

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    @atomic_operation
    def set_targets(self, caller: AccountId, registry_id: AccountId, collateral_id: AccountId) -> bool:
        self._require_admin(caller)
        for target in (registry_id, collateral_id):
            if not validate_account(target):
                raise ZeroAddress(f"Invalid target component {target!r}")
        self._targets.put("registry", registry_id)
        self._targets.put("collateral", collateral_id)
        return True

    def get_targets(self) -> Tuple[Optional[AccountId], Optional[AccountId]]:
        return self._targets["registry"], self._targets["collateral"]

    # ========================================================================
    # QUERIES
    # ========================================================================

    @read_operation
    def get_proposal(self, proposal_id: ProposalId) -> Proposal:
        return self._load(proposal_id)

    @read_operation
    def get_voter_details(self, proposal_id: ProposalId, voter: AccountId) -> VoterDetails:
        self._load(proposal_id)
        record = self._votes.get((proposal_id, voter))
        if record is None:
            return VoterDetails(voted=False)
        return VoterDetails(voted=True, tokens=record.tokens, in_favor=record.in_favor)

    @read_operation
    def get_proposal_count(self) -> int:
        return self._counters["last_proposal_id"]

    @read_operation
    def proposal_state(self, proposal_id: ProposalId) -> ProposalState:
        return self._state(self._load(proposal_id))
