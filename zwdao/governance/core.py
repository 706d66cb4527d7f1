"""
Governance Core

Orchestrates the proposal lifecycle across the two ledgers:
  - submit / vote / finalize proposals
  - quorum-gated approval, executed in the same call
  - vote delegation and proposal staking
  - milestone payouts for executed impact proposals

The core is the only principal the token and the treasury accept for
their privileged operations. It passes its own identity as ``caller``
on every cross-ledger call.
"""

import copy
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..constants import (
    GOVERNANCE_PROPOSER_REWARD,
    GOVERNANCE_QUORUM_MAX,
    GOVERNANCE_QUORUM_THRESHOLD,
    GOVERNANCE_REJECT_ON_FAILED_QUORUM,
    GOVERNANCE_VOTING_PERIOD,
)
from ..exceptions import (
    AlreadyVotedError,
    ConfigurationError,
    DAOException,
    ExecutionEngineNotConfiguredError,
    ExecutionFailedError,
    InsufficientQuorumError,
    InvalidAmountError,
    InvalidQuorumError,
    InvalidRewardError,
    InvalidVotingPeriodError,
    NotAuthorizedError,
    ProposalExpiredError,
    ProposalNotActiveError,
    ProposalNotFoundError,
    StakingNotConfiguredError,
    SubmissionNotConfiguredError,
    TokenNotConfiguredError,
    TreasuryNotConfiguredError,
    VotingMechanismNotConfiguredError,
    VotingNotEndedError,
)
from ..logger import get_logger
from ..tokens import GovernanceToken
from ..treasury import Treasury, TreasuryReleaseEvent
from .proposals import Proposal, ProposalStatus, ProposalType, validate_submission
from .voting import Delegation, DelegationBook, VoteRecord, quorum_reached

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  CONFIGURATION STATE
# ══════════════════════════════════════════════════════════════════════

@dataclass
class GovernanceParameters:
    """Tunable governance parameters, mutated only through owner setters."""
    quorum_threshold: int = GOVERNANCE_QUORUM_THRESHOLD
    voting_period: int = GOVERNANCE_VOTING_PERIOD
    proposer_reward: int = GOVERNANCE_PROPOSER_REWARD
    reject_on_failed_quorum: bool = GOVERNANCE_REJECT_ON_FAILED_QUORUM

    def validate(self):
        _check_quorum(self.quorum_threshold)
        _check_voting_period(self.voting_period)
        _check_reward(self.proposer_reward)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quorumThreshold": self.quorum_threshold,
            "votingPeriod": self.voting_period,
            "proposerReward": self.proposer_reward,
            "rejectOnFailedQuorum": self.reject_on_failed_quorum,
        }


@dataclass
class PeerRegistry:
    """
    Peer components and identities.

    Treasury and token are held as objects because the core calls them;
    the remaining peers are identities the core only checks for.
    """
    treasury: Optional[Treasury] = None
    governance_token: Optional[GovernanceToken] = None
    execution_engine: Optional[str] = None
    staking_vault: Optional[str] = None
    rewards_distributor: Optional[str] = None
    proposal_submission: Optional[str] = None
    voting_mechanism: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "treasury": self.treasury.identity if self.treasury else None,
            "governanceToken": self.governance_token.identity if self.governance_token else None,
            "executionEngine": self.execution_engine,
            "stakingVault": self.staking_vault,
            "rewardsDistributor": self.rewards_distributor,
            "proposalSubmission": self.proposal_submission,
            "votingMechanism": self.voting_mechanism,
        }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_quorum(value: int):
    if not _is_int(value) or value <= 0 or value > GOVERNANCE_QUORUM_MAX:
        raise InvalidQuorumError(f"Quorum threshold must be in (0, {GOVERNANCE_QUORUM_MAX}], got {value!r}")


def _check_voting_period(value: int):
    if not _is_int(value) or value <= 0:
        raise InvalidVotingPeriodError(f"Voting period must be a positive block count, got {value!r}")


def _check_reward(value: int):
    if not _is_int(value) or value < 0:
        raise InvalidRewardError(f"Proposer reward must be a non-negative integer, got {value!r}")


# ══════════════════════════════════════════════════════════════════════
#  FINALIZATION RESULT
# ══════════════════════════════════════════════════════════════════════

@dataclass
class FinalizeResult:
    """Outcome of finalize_proposal."""
    proposal_id: int
    status: ProposalStatus
    votes_for: int
    votes_against: int
    total_supply: int
    quorum_threshold: int
    block: int
    released: int = 0
    reward: int = 0
    events: List[Any] = field(default_factory=list)

    @property
    def quorum_reached(self) -> bool:
        return quorum_reached(
            self.votes_for, self.votes_against, self.quorum_threshold, self.total_supply
        )

    @property
    def executed(self) -> bool:
        return self.status == ProposalStatus.EXECUTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "status": self.status.name,
            "votesFor": self.votes_for,
            "votesAgainst": self.votes_against,
            "totalSupply": self.total_supply,
            "quorumThreshold": self.quorum_threshold,
            "quorumReached": self.quorum_reached,
            "released": self.released,
            "reward": self.reward,
            "block": self.block,
            "events": [e.to_dict() for e in self.events],
        }


# ══════════════════════════════════════════════════════════════════════
#  GOVERNANCE CORE
# ══════════════════════════════════════════════════════════════════════

class GovernanceCore:
    """
    DAO governance orchestrator.

    Responsibilities:
        - Own proposals, votes, delegations and stakes
        - Read voting power from the governance token
        - Finalize by quorum and execute approved proposals
        - Release treasury funds and mint proposer rewards as the
          single authorized principal of both ledgers
    """

    def __init__(
        self,
        owner: str,
        identity: str = "zwdao.governance-core",
        get_block_height_fn: Optional[Callable[[], int]] = None,
        parameters: Optional[GovernanceParameters] = None,
    ):
        """
        Args:
            owner:               Deployer identity, the only caller of admin setters
            identity:            This component's principal, passed to the ledgers
            get_block_height_fn: Callable() → int  (current block height)
            parameters:          Initial governance parameters
        """
        if not owner:
            raise ConfigurationError("Governance owner cannot be empty")

        self.owner = owner
        self.identity = identity
        self._get_block_height = get_block_height_fn or (lambda: 0)

        self.params = replace(parameters) if parameters else GovernanceParameters()
        self.params.validate()
        self.peers = PeerRegistry()

        self._proposals: Dict[int, Proposal] = {}
        self._next_id = 0
        self._votes: Dict[Tuple[int, str], VoteRecord] = {}
        self._stakes: Dict[Tuple[int, str], int] = {}
        self._delegations = DelegationBook()
        self._execution_log: List[Dict[str, Any]] = []

    # ── Helpers ───────────────────────────────────────────────────────

    @property
    def current_height(self) -> int:
        return self._get_block_height()

    def bind_block_height(self, get_block_height_fn: Callable[[], int]):
        """Replace the block height source (used when a node adopts the core)."""
        self._get_block_height = get_block_height_fn

    def _require_owner(self, caller: str):
        if caller != self.owner:
            raise NotAuthorizedError(f"{caller} is not the governance owner")

    def _require_proposal(self, proposal_id: int) -> Proposal:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal #{proposal_id} not found")
        return proposal

    def _require_token(self) -> GovernanceToken:
        if self.peers.governance_token is None:
            raise TokenNotConfiguredError("Governance token not configured")
        return self.peers.governance_token

    def _require_treasury(self) -> Treasury:
        if self.peers.treasury is None:
            raise TreasuryNotConfiguredError("Treasury not configured")
        return self.peers.treasury

    # ── Administration ────────────────────────────────────────────────

    def set_quorum_threshold(self, caller: str, threshold: int):
        self._require_owner(caller)
        _check_quorum(threshold)
        old = self.params.quorum_threshold
        self.params.quorum_threshold = threshold
        logger.info(f"Parameter 'quorum_threshold' changed: {old} → {threshold}")

    def set_voting_period(self, caller: str, period: int):
        """Applies to proposals submitted afterwards; open windows keep their end block."""
        self._require_owner(caller)
        _check_voting_period(period)
        old = self.params.voting_period
        self.params.voting_period = period
        logger.info(f"Parameter 'voting_period' changed: {old} → {period}")

    def set_proposer_reward(self, caller: str, reward: int):
        self._require_owner(caller)
        _check_reward(reward)
        old = self.params.proposer_reward
        self.params.proposer_reward = reward
        logger.info(f"Parameter 'proposer_reward' changed: {old} → {reward}")

    def set_reject_on_failed_quorum(self, caller: str, enabled: bool):
        self._require_owner(caller)
        self.params.reject_on_failed_quorum = bool(enabled)
        logger.info(f"Parameter 'reject_on_failed_quorum' changed → {bool(enabled)}")

    def _set_peer(self, caller: str, name: str, value: Any):
        self._require_owner(caller)
        setattr(self.peers, name, value)
        shown = getattr(value, "identity", value)
        logger.info(f"Peer '{name}' set to {shown}")

    def set_treasury(self, caller: str, treasury: Treasury):
        self._set_peer(caller, "treasury", treasury)

    def set_governance_token(self, caller: str, token: GovernanceToken):
        self._set_peer(caller, "governance_token", token)

    def set_execution_engine(self, caller: str, identity: str):
        self._set_peer(caller, "execution_engine", identity)

    def set_staking_vault(self, caller: str, identity: str):
        self._set_peer(caller, "staking_vault", identity)

    def set_rewards_distributor(self, caller: str, identity: str):
        self._set_peer(caller, "rewards_distributor", identity)

    def set_proposal_submission(self, caller: str, identity: str):
        self._set_peer(caller, "proposal_submission", identity)

    def set_voting_mechanism(self, caller: str, identity: str):
        self._set_peer(caller, "voting_mechanism", identity)

    # ── Submit ────────────────────────────────────────────────────────

    def submit_proposal(
        self,
        caller: str,
        description: str,
        budget: int,
        proposal_type: Union[ProposalType, int, str],
        impact_metric: str,
        milestones: Sequence[int],
    ) -> int:
        """
        Create an ACTIVE proposal and return its id.

        The voting window is [height, height + voting_period], using the
        voting period in force now.
        """
        if self.peers.proposal_submission is None:
            raise SubmissionNotConfiguredError("Proposal submission not configured")

        ptype, parsed_milestones = validate_submission(
            budget, proposal_type, impact_metric, milestones
        )

        height = self.current_height
        proposal_id = self._next_id
        proposal = Proposal(
            id=proposal_id,
            proposer=caller,
            description=description,
            budget=budget,
            proposal_type=ptype,
            impact_metric=impact_metric,
            milestones=parsed_milestones,
            start_block=height,
            end_block=height + self.params.voting_period,
        )
        self._proposals[proposal_id] = proposal
        self._next_id += 1

        logger.info(
            f"Proposal #{proposal_id} submitted by {caller}: {ptype.name} "
            f"budget={budget} voting until block {proposal.end_block}"
        )
        return proposal_id

    # ── Vote ──────────────────────────────────────────────────────────

    def vote_on_proposal(self, caller: str, proposal_id: int, support: bool) -> VoteRecord:
        """
        Cast a balance-weighted vote.

        A zero balance is a valid vote with zero weight. The weight is
        read once and never re-evaluated.
        """
        proposal = self._require_proposal(proposal_id)
        if self.peers.voting_mechanism is None:
            raise VotingMechanismNotConfiguredError("Voting mechanism not configured")
        token = self._require_token()

        if not proposal.is_votable:
            raise ProposalNotActiveError(
                f"Proposal #{proposal_id} is not votable (status={proposal.status.name})"
            )
        height = self.current_height
        if height > proposal.end_block:
            raise ProposalExpiredError(
                f"Voting for proposal #{proposal_id} ended at block {proposal.end_block}"
            )
        key = (proposal_id, caller)
        if key in self._votes:
            raise AlreadyVotedError(f"{caller} has already voted on proposal #{proposal_id}")

        weight = token.balance_of(caller)
        record = VoteRecord(
            proposal_id=proposal_id,
            voter=caller,
            support=bool(support),
            weight=weight,
            block=height,
        )
        self._votes[key] = record
        if record.support:
            proposal.votes_for += weight
        else:
            proposal.votes_against += weight

        logger.info(
            f"Vote: {caller} → {'FOR' if record.support else 'AGAINST'} "
            f"on proposal #{proposal_id} (weight={weight})"
        )
        return record

    # ── Finalize ──────────────────────────────────────────────────────

    def finalize_proposal(self, caller: str, proposal_id: int) -> FinalizeResult:
        """
        Decide a proposal after its voting window.

        Outcomes:
            quorum failed           → REJECTED (or InsufficientQuorumError
                                      with the proposal left ACTIVE when
                                      reject_on_failed_quorum is off)
            quorum met, for > against → APPROVED → EXECUTED
            quorum met otherwise    → REJECTED
        """
        proposal = self._require_proposal(proposal_id)
        token = self._require_token()
        self._require_treasury()
        if self.peers.execution_engine is None:
            raise ExecutionEngineNotConfiguredError("Execution engine not configured")

        if not proposal.is_votable:
            raise ProposalNotActiveError(
                f"Proposal #{proposal_id} already finalized (status={proposal.status.name})"
            )
        height = self.current_height
        if height <= proposal.end_block:
            raise VotingNotEndedError(
                f"Proposal #{proposal_id} cannot be finalized before block {proposal.end_block + 1}"
            )

        supply = token.total_supply
        result = FinalizeResult(
            proposal_id=proposal_id,
            status=proposal.status,
            votes_for=proposal.votes_for,
            votes_against=proposal.votes_against,
            total_supply=supply,
            quorum_threshold=self.params.quorum_threshold,
            block=height,
        )

        if not result.quorum_reached:
            logger.warning(
                f"Proposal #{proposal_id}: quorum not reached "
                f"({proposal.total_votes}/{supply}, threshold={self.params.quorum_threshold}%)"
            )
            if not self.params.reject_on_failed_quorum:
                raise InsufficientQuorumError(
                    f"Proposal #{proposal_id}: {proposal.total_votes} votes below "
                    f"{self.params.quorum_threshold}% of supply {supply}"
                )
            proposal.mark_rejected(height, "Quorum not reached")
        elif proposal.votes_for > proposal.votes_against:
            self._execute(proposal, result, caller)
        else:
            proposal.mark_rejected(
                height, f"For {proposal.votes_for} ≤ against {proposal.votes_against}"
            )

        result.status = proposal.status
        return result

    def _execute(self, proposal: Proposal, result: FinalizeResult, caller: str):
        """
        Approve and execute *proposal* atomically.

        Any ledger rejection restores both ledgers and the proposal, then
        surfaces as ExecutionFailedError carrying the ledger's error.
        """
        token = self.peers.governance_token
        treasury = self.peers.treasury
        token_snapshot = token.snapshot()
        treasury_snapshot = treasury.snapshot()
        proposal_snapshot = proposal.lifecycle_snapshot()

        try:
            proposal.mark_approved(result.block)

            if proposal.proposal_type == ProposalType.FUNDING:
                event = treasury.release_funds(
                    proposal.id, proposal.budget, proposal.proposer, self.identity
                )
                result.released = event.amount
                result.events.append(event)

            reward = self.params.proposer_reward
            if reward > 0 and self.peers.rewards_distributor is not None:
                event = token.mint(reward, proposal.proposer, self.identity)
                result.reward = reward
                result.events.append(event)

            proposal.mark_executed(result.block)
        except DAOException as e:
            token.restore(token_snapshot)
            treasury.restore(treasury_snapshot)
            proposal.restore_lifecycle(proposal_snapshot)
            result.released = 0
            result.reward = 0
            result.events = []
            logger.warning(
                f"Proposal #{proposal.id}: execution failed, state restored ({e.code.name}: {e})"
            )
            raise ExecutionFailedError(
                f"Execution of proposal #{proposal.id} failed: {e}", cause=e
            ) from e

        self._execution_log.append({
            "proposalId": proposal.id,
            "proposalType": proposal.proposal_type.name,
            "finalizedBy": caller,
            "released": result.released,
            "reward": result.reward,
            "block": result.block,
        })
        logger.info(
            f"Proposal #{proposal.id} EXECUTED: {proposal.proposal_type.name} "
            f"released={result.released} reward={result.reward}"
        )

    # ── Milestones ────────────────────────────────────────────────────

    def release_milestone(
        self,
        caller: str,
        proposal_id: int,
        milestone_index: int,
    ) -> TreasuryReleaseEvent:
        """
        Pay one milestone tranche of an executed impact proposal to its proposer.

        Callable by the execution engine or the owner. The treasury keys
        the release by (proposal_id, milestone_index), so each tranche is
        paid at most once.
        """
        proposal = self._require_proposal(proposal_id)
        if caller != self.owner:
            if self.peers.execution_engine is None:
                raise ExecutionEngineNotConfiguredError("Execution engine not configured")
            if caller != self.peers.execution_engine:
                raise NotAuthorizedError(f"{caller} may not release milestones")
        treasury = self._require_treasury()

        if proposal.status != ProposalStatus.EXECUTED or proposal.proposal_type != ProposalType.IMPACT:
            raise ProposalNotActiveError(
                f"Proposal #{proposal_id} has no releasable milestones "
                f"(status={proposal.status.name}, type={proposal.proposal_type.name})"
            )
        amount = proposal.milestone_amount(milestone_index)
        return treasury.release_milestone(
            proposal_id, milestone_index, amount, proposal.proposer, self.identity
        )

    # ── Delegation ────────────────────────────────────────────────────

    def delegate_vote(self, caller: str, delegate: str) -> Delegation:
        """Record caller → delegate. Delegation does not change vote weight."""
        return self._delegations.delegate(caller, delegate, self.current_height)

    def undelegate(self, caller: str) -> Optional[Delegation]:
        return self._delegations.undelegate(caller)

    def get_delegate(self, account: str) -> Optional[str]:
        return self._delegations.get_delegate(account)

    def resolve_delegate(self, account: str) -> str:
        return self._delegations.resolve(account)

    def get_delegators(self, account: str) -> List[str]:
        return self._delegations.get_delegators(account)

    # ── Staking ───────────────────────────────────────────────────────

    def stake_for_proposal(self, caller: str, proposal_id: int, amount: int) -> int:
        """Record caller's support stake, replacing any earlier one."""
        self._require_proposal(proposal_id)
        if self.peers.staking_vault is None:
            raise StakingNotConfiguredError("Staking vault not configured")
        if not _is_int(amount) or amount <= 0:
            raise InvalidAmountError(f"Stake amount must be a positive integer, got {amount!r}")

        self._stakes[(proposal_id, caller)] = amount
        logger.info(f"Stake: {caller} staked {amount} on proposal #{proposal_id}")
        return amount

    # ── Queries ───────────────────────────────────────────────────────

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        return self._proposals.get(proposal_id)

    def get_quorum_threshold(self) -> int:
        return self.params.quorum_threshold

    def get_voting_period(self) -> int:
        return self.params.voting_period

    def get_proposer_reward(self) -> int:
        return self.params.proposer_reward

    def get_vote(self, proposal_id: int, account: str) -> Optional[VoteRecord]:
        return self._votes.get((proposal_id, account))

    def has_voted(self, proposal_id: int, account: str) -> bool:
        return (proposal_id, account) in self._votes

    def get_votes(self, proposal_id: int) -> List[VoteRecord]:
        return [v for (pid, _), v in sorted(self._votes.items()) if pid == proposal_id]

    def get_stake(self, proposal_id: int, account: str) -> int:
        return self._stakes.get((proposal_id, account), 0)

    def get_total_staked(self, proposal_id: int) -> int:
        return sum(amt for (pid, _), amt in self._stakes.items() if pid == proposal_id)

    def get_balance(self, account: str) -> int:
        token = self.peers.governance_token
        return token.balance_of(account) if token else 0

    def get_total_supply(self) -> int:
        token = self.peers.governance_token
        return token.total_supply if token else 0

    def quorum_reached(self, proposal_id: int) -> bool:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            return False
        return quorum_reached(
            proposal.votes_for,
            proposal.votes_against,
            self.params.quorum_threshold,
            self.get_total_supply(),
        )

    @property
    def proposal_count(self) -> int:
        return self._next_id

    @property
    def execution_log(self) -> List[Dict[str, Any]]:
        return list(self._execution_log)

    def proposals(self) -> List[Proposal]:
        return [self._proposals[pid] for pid in sorted(self._proposals)]

    def stakes(self) -> List[Tuple[Tuple[int, str], int]]:
        return sorted(self._stakes.items())

    def delegations(self) -> List[Tuple[str, Delegation]]:
        return self._delegations.items()

    # ── Snapshot / restore ────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        """Capture core state. Peer ledgers snapshot themselves."""
        return {
            "proposals": copy.deepcopy(self._proposals),
            "next_id": self._next_id,
            "votes": dict(self._votes),
            "stakes": dict(self._stakes),
            "delegations": self._delegations.snapshot(),
            "execution_log": list(self._execution_log),
            "params": replace(self.params),
            "peers": replace(self.peers),
        }

    def restore(self, snapshot: Dict[str, Any]):
        self._proposals = copy.deepcopy(snapshot["proposals"])
        self._next_id = snapshot["next_id"]
        self._votes = dict(snapshot["votes"])
        self._stakes = dict(snapshot["stakes"])
        self._delegations.restore(snapshot["delegations"])
        self._execution_log = list(snapshot["execution_log"])
        self.params = replace(snapshot["params"])
        self.peers = replace(snapshot["peers"])

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "owner": self.owner,
            "parameters": self.params.to_dict(),
            "peers": self.peers.to_dict(),
            "proposalCount": self._next_id,
            "proposals": [p.to_dict() for p in self.proposals()],
            "votes": len(self._votes),
            "delegations": len(self._delegations),
            "executionLog": self._execution_log,
        }

    def __repr__(self) -> str:
        return (
            f"<GovernanceCore proposals={self._next_id} "
            f"votes={len(self._votes)} delegations={len(self._delegations)}>"
        )
