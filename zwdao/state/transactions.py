"""
ZWDAO Transaction Types

Defines the transaction envelope for every state-changing DAO operation.
Transactions are applied one at a time, in submission order, by
DAOStateManager.process_transaction().

Transaction Types:
  - SUBMIT_PROPOSAL:              Create a proposal
  - VOTE:                         Cast a balance-weighted vote
  - FINALIZE_PROPOSAL:            Close voting, approve/execute or reject
  - DELEGATE / UNDELEGATE:        Manage the sender's outgoing delegation
  - STAKE:                        Record a support stake on a proposal
  - RELEASE_MILESTONE:            Pay one tranche of an executed impact proposal
  - DEPOSIT:                      Fund the treasury
  - TRANSFER / BURN:              Governance token holder operations
  - EMERGENCY_WITHDRAW:           Treasury owner escape hatch
  - SET_QUORUM_THRESHOLD,
    SET_VOTING_PERIOD,
    SET_PROPOSER_REWARD,
    SET_REJECT_ON_FAILED_QUORUM,
    SET_PEER:                     Owner-only configuration
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Tuple

from ..exceptions import InvalidTransactionError


# ---------------------------------------------------------------------------
# DAO Operation Types
# ---------------------------------------------------------------------------

class DAOOpType(IntEnum):
    """All DAO operation types. Values are part of the wire format."""
    SUBMIT_PROPOSAL = 1
    VOTE = 2
    FINALIZE_PROPOSAL = 3
    DELEGATE = 4
    UNDELEGATE = 5
    STAKE = 6
    RELEASE_MILESTONE = 7
    DEPOSIT = 8
    TRANSFER = 9
    BURN = 10
    EMERGENCY_WITHDRAW = 11
    SET_QUORUM_THRESHOLD = 12
    SET_VOTING_PERIOD = 13
    SET_PROPOSER_REWARD = 14
    SET_REJECT_ON_FAILED_QUORUM = 15
    SET_PEER = 16


# Identity-only peers settable by transaction. Treasury and token are
# wired when the state manager is built.
SETTABLE_PEERS = (
    "execution_engine",
    "staking_vault",
    "rewards_distributor",
    "proposal_submission",
    "voting_mechanism",
)

_REQUIRED_PARAMS: Dict[DAOOpType, Tuple[str, ...]] = {
    DAOOpType.SUBMIT_PROPOSAL: ("description", "budget", "proposal_type", "impact_metric", "milestones"),
    DAOOpType.VOTE: ("proposal_id", "support"),
    DAOOpType.FINALIZE_PROPOSAL: ("proposal_id",),
    DAOOpType.DELEGATE: ("delegate",),
    DAOOpType.UNDELEGATE: (),
    DAOOpType.STAKE: ("proposal_id", "amount"),
    DAOOpType.RELEASE_MILESTONE: ("proposal_id", "milestone_index"),
    DAOOpType.DEPOSIT: ("amount",),
    DAOOpType.TRANSFER: ("recipient", "amount"),
    DAOOpType.BURN: ("amount",),
    DAOOpType.EMERGENCY_WITHDRAW: ("amount", "recipient"),
    DAOOpType.SET_QUORUM_THRESHOLD: ("threshold",),
    DAOOpType.SET_VOTING_PERIOD: ("period",),
    DAOOpType.SET_PROPOSER_REWARD: ("reward",),
    DAOOpType.SET_REJECT_ON_FAILED_QUORUM: ("enabled",),
    DAOOpType.SET_PEER: ("peer", "identity"),
}

# Params that must arrive as booleans
_BOOL_PARAMS: Dict[DAOOpType, str] = {
    DAOOpType.VOTE: "support",
    DAOOpType.SET_REJECT_ON_FAILED_QUORUM: "enabled",
}


# ---------------------------------------------------------------------------
# DAO Transaction
# ---------------------------------------------------------------------------

@dataclass
class DAOTransaction:
    """
    Envelope for a single DAO operation.

    The sender is the caller identity for every check the operation
    performs. Signature verification happens before a transaction
    reaches this layer.
    """
    op_type: DAOOpType
    sender: str                         # caller identity
    params: Dict[str, Any] = field(default_factory=dict)

    # --- Computed after execution ---
    success: bool = False
    result: Any = None
    error: str = ""

    # -- Hashing ------------------------------------------------------------

    def tx_hash(self) -> str:
        """Deterministic transaction hash."""
        return hashlib.blake2b(self._canonical_bytes(), digest_size=32).hexdigest()

    def _canonical_bytes(self) -> bytes:
        params_json = json.dumps(self.params, sort_keys=True, default=str).encode("utf-8")
        parts = [
            int(self.op_type).to_bytes(1, "big"),
            self.sender.encode("utf-8"),
            params_json,
        ]
        return b"".join(parts)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op_type": int(self.op_type),
            "sender": self.sender,
            "params": self.params,
            "tx_hash": self.tx_hash(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DAOTransaction:
        """Deserialize; op_type may be the integer value or the member name."""
        raw_op = data["op_type"]
        try:
            op_type = DAOOpType[raw_op.upper()] if isinstance(raw_op, str) else DAOOpType(raw_op)
        except (KeyError, ValueError):
            raise InvalidTransactionError(f"Unknown operation type: {raw_op!r}")
        return cls(
            op_type=op_type,
            sender=data["sender"],
            params=dict(data.get("params") or {}),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, default=str)

    @classmethod
    def from_json(cls, raw: str) -> DAOTransaction:
        return cls.from_dict(json.loads(raw))

    # -- Validation ---------------------------------------------------------

    def validate_basic(self) -> bool:
        """
        Structural validation (no state access needed).

        Raises:
            InvalidTransactionError: with specific reason
        """
        if not self.sender or not isinstance(self.sender, str):
            raise InvalidTransactionError("Missing sender identity")
        if not isinstance(self.op_type, DAOOpType):
            raise InvalidTransactionError(f"Unknown operation type: {self.op_type!r}")
        if not isinstance(self.params, dict):
            raise InvalidTransactionError("Params must be a mapping")

        for key in _REQUIRED_PARAMS[self.op_type]:
            if key not in self.params:
                raise InvalidTransactionError(f"{self.op_type.name} missing param: {key}")

        flag = _BOOL_PARAMS.get(self.op_type)
        if flag is not None and not isinstance(self.params[flag], bool):
            raise InvalidTransactionError(
                f"{self.op_type.name}: {flag} must be a boolean, got {self.params[flag]!r}"
            )

        if self.op_type == DAOOpType.SET_PEER and self.params["peer"] not in SETTABLE_PEERS:
            raise InvalidTransactionError(
                f"SET_PEER: unknown peer {self.params['peer']!r}, expected one of {SETTABLE_PEERS}"
            )
        return True

    def __repr__(self) -> str:
        return (f"DAOTransaction(op={self.op_type.name}, sender={self.sender}, "
                f"hash={self.tx_hash()[:12]}...)")
