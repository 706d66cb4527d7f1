"""
Balance-Weighted Voting

Implements:
  - 1 ZWD minor unit = 1 vote, weight snapshotted at vote time
  - Vote directions: For / Against
  - Quorum check: (for + against) * 100 ≥ threshold * total supply
  - Delegation book with a single outgoing delegation per account
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..exceptions import DelegationLoopError, InvalidDelegateError
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class VoteRecord:
    """An individual vote. Created once per (proposal, voter), never mutated."""
    proposal_id: int
    voter: str
    support: bool
    weight: int
    block: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "support": self.support,
            "weight": self.weight,
            "block": self.block,
        }


def quorum_reached(
    votes_for: int,
    votes_against: int,
    quorum_threshold: int,
    total_supply: int,
) -> bool:
    """
    Integer quorum test, free of rounding.

    Args:
        votes_for:        Weight cast in favour
        votes_against:    Weight cast against
        quorum_threshold: Required participation, percent of supply (1-100)
        total_supply:     Token supply at finalization
    """
    return (votes_for + votes_against) * 100 >= quorum_threshold * total_supply


# ══════════════════════════════════════════════════════════════════════
#  DELEGATION
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Delegation:
    """Delegation from delegator → delegate."""
    delegator: str
    delegate: str
    block: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delegator": self.delegator,
            "delegate": self.delegate,
            "block": self.block,
        }


class DelegationBook:
    """
    Delegation table: delegator → Delegation.

    The loop guard rejects delegating to an account that already
    delegates onward. Every cycle-closing edit targets such an account,
    so the table stays acyclic and resolve() always terminates.
    """

    def __init__(self):
        self._delegations: Dict[str, Delegation] = {}

    def delegate(self, delegator: str, delegate: str, block: int = 0) -> Delegation:
        if not delegate or delegate == delegator:
            raise InvalidDelegateError(f"{delegator} cannot delegate to {delegate!r}")
        if delegate in self._delegations:
            raise DelegationLoopError(
                f"{delegate} already delegates to {self._delegations[delegate].delegate}"
            )
        record = Delegation(delegator=delegator, delegate=delegate, block=block)
        self._delegations[delegator] = record
        logger.info(f"Delegation: {delegator} → {delegate}")
        return record

    def undelegate(self, delegator: str) -> Optional[Delegation]:
        removed = self._delegations.pop(delegator, None)
        if removed is not None:
            logger.info(f"Delegation removed: {delegator} -/→ {removed.delegate}")
        return removed

    def get_delegate(self, delegator: str) -> Optional[str]:
        record = self._delegations.get(delegator)
        return record.delegate if record else None

    def resolve(self, account: str) -> str:
        """Follow the chain to its final delegate (the account itself if none)."""
        seen = {account}
        current = account
        while current in self._delegations:
            nxt = self._delegations[current].delegate
            if nxt in seen:
                # Unreachable while the loop guard holds
                raise DelegationLoopError(f"Delegation cycle through {nxt}")
            seen.add(nxt)
            current = nxt
        return current

    def get_delegators(self, delegate: str) -> List[str]:
        """Accounts delegating directly to *delegate*, sorted."""
        return sorted(
            d.delegator for d in self._delegations.values() if d.delegate == delegate
        )

    def __contains__(self, delegator: str) -> bool:
        return delegator in self._delegations

    def __len__(self) -> int:
        return len(self._delegations)

    def items(self):
        return sorted(self._delegations.items())

    # ── Snapshot / restore ────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Delegation]:
        return dict(self._delegations)

    def restore(self, snapshot: Dict[str, Delegation]):
        self._delegations = dict(snapshot)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "delegations": [d.to_dict() for _, d in self.items()],
        }
