"""
Governance Proposals

Defines proposal types, lifecycle states, and the Proposal dataclass
that tracks an individual proposal from submission to execution.

Lifecycle:
    ACTIVE ──▶ APPROVED ──▶ EXECUTED
       │
       └─────▶ REJECTED
"""

import hashlib
import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..exceptions import (
    InvalidBudgetError,
    InvalidImpactMetricError,
    InvalidMilestoneError,
    InvalidProposalTypeError,
    ProposalNotActiveError,
)
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ProposalType(IntEnum):
    """Category of proposal; decides what execution releases."""
    FUNDING = 1       # Lump-sum treasury release to the proposer
    GOVERNANCE = 2    # Parameter / policy decision, no funds move
    IMPACT = 3        # Budget paid out per milestone

    @classmethod
    def parse(cls, value: Union["ProposalType", int, str]) -> "ProposalType":
        """Accept an enum member, its integer value, or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise InvalidProposalTypeError(f"Unknown proposal type: {value!r}")
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise InvalidProposalTypeError(f"Unknown proposal type: {value!r}")
        raise InvalidProposalTypeError(f"Unknown proposal type: {value!r}")


class ProposalStatus(IntEnum):
    """Lifecycle stage."""
    ACTIVE = 0          # Voting open until end_block
    APPROVED = 1        # Quorum met, majority for; execution pending
    EXECUTED = 2        # Funds / rewards released
    REJECTED = 3        # Majority against, or quorum failed


# Valid forward transitions
_VALID_TRANSITIONS: Dict[ProposalStatus, set] = {
    ProposalStatus.ACTIVE:    {ProposalStatus.APPROVED, ProposalStatus.REJECTED},
    ProposalStatus.APPROVED:  {ProposalStatus.EXECUTED},
    # Terminal states, no further transitions
    ProposalStatus.EXECUTED:  set(),
    ProposalStatus.REJECTED:  set(),
}


# ══════════════════════════════════════════════════════════════════════
#  SUBMISSION VALIDATION
# ══════════════════════════════════════════════════════════════════════

def validate_submission(
    budget: int,
    proposal_type: Union[ProposalType, int, str],
    impact_metric: str,
    milestones: Sequence[int],
) -> Tuple[ProposalType, Tuple[int, ...]]:
    """
    Check submission arguments in order: budget, type, metric, milestones.

    Returns:
        (parsed proposal type, milestones as a tuple)
    """
    if isinstance(budget, bool) or not isinstance(budget, int) or budget <= 0:
        raise InvalidBudgetError(f"Budget must be a positive integer, got {budget!r}")

    ptype = ProposalType.parse(proposal_type)

    if not isinstance(impact_metric, str) or not impact_metric:
        raise InvalidImpactMetricError("Impact metric cannot be empty")

    if isinstance(milestones, (str, bytes)) or not milestones:
        raise InvalidMilestoneError("At least one milestone is required")
    parsed = tuple(milestones)
    for m in parsed:
        if isinstance(m, bool) or not isinstance(m, int) or m <= 0:
            raise InvalidMilestoneError(f"Milestones must be positive integers, got {m!r}")

    return ptype, parsed


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal:
    """
    Governance proposal.

    Fields:
        id:                 Unique monotonic identifier
        proposer:           Account that submitted the proposal
        description:        Free-form rationale
        budget:             Requested funds in token minor units
        proposal_type:      Category (ProposalType enum)
        impact_metric:      Measurable outcome the proposal commits to
        milestones:         Relative milestone weights (positive ints)
        start_block:        Height at submission
        end_block:          Last height at which votes are accepted
        votes_for:          Accumulated weight in favour
        votes_against:      Accumulated weight against
        status:             Current lifecycle stage
        finalized_at_block: Height at which the outcome was decided
    """
    id: int
    proposer: str
    description: str
    budget: int
    proposal_type: ProposalType
    impact_metric: str
    milestones: Tuple[int, ...]
    start_block: int
    end_block: int
    votes_for: int = 0
    votes_against: int = 0
    status: ProposalStatus = ProposalStatus.ACTIVE
    finalized_at_block: Optional[int] = None
    _history: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    def __post_init__(self):
        self._record_transition(ProposalStatus.ACTIVE, "submitted", self.start_block)

    # ── Properties ────────────────────────────────────────────────────

    @property
    def proposal_hash(self) -> str:
        """Deterministic content hash over the canonical JSON field list."""
        payload = json.dumps([
            self.id,
            self.proposer,
            self.description,
            self.budget,
            self.proposal_type.value,
            self.impact_metric,
            list(self.milestones),
            self.start_block,
        ], separators=(",", ":")).encode()
        return hashlib.blake2b(payload, digest_size=32).hexdigest()

    @property
    def total_votes(self) -> int:
        return self.votes_for + self.votes_against

    @property
    def is_terminal(self) -> bool:
        return self.status in (ProposalStatus.EXECUTED, ProposalStatus.REJECTED)

    @property
    def is_votable(self) -> bool:
        return self.status == ProposalStatus.ACTIVE

    @property
    def milestone_count(self) -> int:
        return len(self.milestones)

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    def milestone_amount(self, index: int) -> int:
        """
        Budget share for milestone *index*.

        Shares are proportional to the milestone weights, rounded down;
        the last milestone also receives the rounding remainder so that
        the tranches always sum to the budget.
        """
        if index < 0 or index >= len(self.milestones):
            raise InvalidMilestoneError(
                f"Milestone {index} out of range for proposal #{self.id} "
                f"({len(self.milestones)} milestones)"
            )
        weight_total = sum(self.milestones)
        if index == len(self.milestones) - 1:
            paid_before = sum(
                self.budget * w // weight_total for w in self.milestones[:-1]
            )
            return self.budget - paid_before
        return self.budget * self.milestones[index] // weight_total

    # ── State transitions ─────────────────────────────────────────────

    def _record_transition(self, new_status: ProposalStatus, reason: str, block: int):
        self._history.append({
            "from": self.status.name if self._history else "INIT",
            "to": new_status.name,
            "reason": reason,
            "block": block,
        })

    def transition_to(self, new_status: ProposalStatus, block: int, reason: str = ""):
        """
        Advance proposal to *new_status*.

        Raises ProposalNotActiveError on invalid transitions.
        """
        allowed = _VALID_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise ProposalNotActiveError(
                f"Cannot transition from {self.status.name} → {new_status.name}. "
                f"Allowed: {[s.name for s in allowed]}"
            )
        old = self.status
        self._record_transition(new_status, reason, block)
        self.status = new_status
        logger.info(
            f"Proposal #{self.id} ({self.proposal_type.name.lower()}): "
            f"{old.name} → {new_status.name} | {reason}"
        )

    def mark_approved(self, block: int):
        """ACTIVE → APPROVED after a passing tally."""
        self.transition_to(ProposalStatus.APPROVED, block, "Quorum met, majority for")
        self.finalized_at_block = block

    def mark_executed(self, block: int):
        """APPROVED → EXECUTED."""
        self.transition_to(ProposalStatus.EXECUTED, block, "Executed")

    def mark_rejected(self, block: int, reason: str = "Majority against"):
        """ACTIVE → REJECTED."""
        self.transition_to(ProposalStatus.REJECTED, block, reason)
        self.finalized_at_block = block

    def lifecycle_snapshot(self) -> Tuple[ProposalStatus, Optional[int], List[Dict[str, Any]]]:
        return self.status, self.finalized_at_block, list(self._history)

    def restore_lifecycle(self, snapshot: Tuple[ProposalStatus, Optional[int], List[Dict[str, Any]]]):
        """Undo transitions in place, for holders of this object."""
        self.status, self.finalized_at_block, history = snapshot
        self._history = list(history)

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "proposer": self.proposer,
            "description": self.description,
            "budget": self.budget,
            "proposalType": self.proposal_type.name,
            "impactMetric": self.impact_metric,
            "milestones": list(self.milestones),
            "startBlock": self.start_block,
            "endBlock": self.end_block,
            "votesFor": self.votes_for,
            "votesAgainst": self.votes_against,
            "status": self.status.name,
            "proposalHash": self.proposal_hash,
            "finalizedAtBlock": self.finalized_at_block,
            "history": self.history,
        }
