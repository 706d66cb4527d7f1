"""
ZWDAO Governance

Provides:
  - ProposalType / ProposalStatus / Proposal           (proposals.py)
  - VoteRecord / DelegationBook / quorum_reached       (voting.py)
  - GovernanceCore / GovernanceParameters / FinalizeResult (core.py)
"""

from .proposals import (
    Proposal,
    ProposalStatus,
    ProposalType,
    validate_submission,
)
from .voting import (
    Delegation,
    DelegationBook,
    VoteRecord,
    quorum_reached,
)
from .core import (
    FinalizeResult,
    GovernanceCore,
    GovernanceParameters,
    PeerRegistry,
)

__all__ = [
    # Proposals
    "Proposal",
    "ProposalStatus",
    "ProposalType",
    "validate_submission",
    # Voting
    "Delegation",
    "DelegationBook",
    "VoteRecord",
    "quorum_reached",
    # Core
    "FinalizeResult",
    "GovernanceCore",
    "GovernanceParameters",
    "PeerRegistry",
]
