"""
ZWDAO State Manager

Wires the governance core, the treasury and the governance token into
one node and applies DAOTransactions to them deterministically.

Responsibilities:
  - Owns the three components and their cross-authorization
  - Supplies the current block height to the governance core
  - Applies transactions all-or-nothing and tags every outcome
  - Computes a state root for block commitment
  - Provides a read-only query interface

Usage:

    mgr = DAOStateManager.from_config(load_config())
    mgr.begin_block(height)
    for tx in txs:
        result = mgr.process_transaction(tx)
    state_root = mgr.finalize_block()
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Callable, Dict, List, Optional

from ..config import DAOConfig
from ..exceptions import (
    DAOException,
    ErrorCategory,
    ErrorCode,
    InvalidTransactionError,
)
from ..governance import GovernanceCore, GovernanceParameters, Proposal
from ..tokens import GovernanceToken
from ..treasury import Treasury
from .transactions import DAOOpType, DAOTransaction

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Transaction execution result
# ---------------------------------------------------------------------------

class TxResult:
    """Tagged result of a single transaction: a value or an error code."""

    __slots__ = ("success", "value", "error_code", "error", "block_height", "tx_hash")

    def __init__(
        self,
        success: bool = True,
        value: Any = None,
        error_code: Optional[ErrorCode] = None,
        error: str = "",
        block_height: int = 0,
        tx_hash: str = "",
    ):
        self.success = success
        self.value = value
        self.error_code = error_code
        self.error = error
        self.block_height = block_height
        self.tx_hash = tx_hash

    @classmethod
    def failure(cls, exc: DAOException, block_height: int, tx_hash: str = "") -> TxResult:
        return cls(
            success=False,
            error_code=exc.code,
            error=str(exc),
            block_height=block_height,
            tx_hash=tx_hash,
        )

    @property
    def category(self) -> Optional[ErrorCategory]:
        return self.error_code.category if self.error_code is not None else None

    def to_dict(self) -> Dict[str, Any]:
        value = self.value.to_dict() if hasattr(self.value, "to_dict") else self.value
        return {
            "success": self.success,
            "value": value,
            "errorCode": self.error_code.name if self.error_code is not None else None,
            "category": self.category.name if self.category is not None else None,
            "error": self.error,
            "blockHeight": self.block_height,
            "txHash": self.tx_hash,
        }

    def __repr__(self) -> str:
        if self.success:
            return f"TxResult(ok, value={self.value!r})"
        return f"TxResult({self.error_code.name}: {self.error})"


# ---------------------------------------------------------------------------
# DAO State Manager
# ---------------------------------------------------------------------------

class DAOStateManager:
    """
    Single-ledger DAO node.

    Every mutation goes through process_transaction(); a failed
    transaction restores the full pre-transaction snapshot so that no
    partial effect survives.
    """

    instance: Optional[DAOStateManager] = None

    def __init__(
        self,
        owner: str,
        core: Optional[GovernanceCore] = None,
        token: Optional[GovernanceToken] = None,
        treasury: Optional[Treasury] = None,
    ) -> None:
        self.owner = owner
        self._current_block_height: int = 0

        self.core = core or GovernanceCore(owner)
        self.core.bind_block_height(self._block_height)
        self.token = token or GovernanceToken(owner)
        self.treasury = treasury or Treasury(owner)

        # Cross-authorization: the core is the only privileged caller of both ledgers
        self.token.set_dao_core(owner, self.core.identity)
        self.treasury.set_dao_core(owner, self.core.identity)
        self.core.set_governance_token(owner, self.token)
        self.core.set_treasury(owner, self.treasury)

        # --- Block-level tracking ---
        self._block_txs: List[DAOTransaction] = []
        self._block_results: List[TxResult] = []
        self._snapshot: Optional[Dict[str, Any]] = None

        self._handlers: Dict[DAOOpType, Callable[[DAOTransaction], Any]] = {
            DAOOpType.SUBMIT_PROPOSAL: self._op_submit_proposal,
            DAOOpType.VOTE: self._op_vote,
            DAOOpType.FINALIZE_PROPOSAL: self._op_finalize_proposal,
            DAOOpType.DELEGATE: self._op_delegate,
            DAOOpType.UNDELEGATE: self._op_undelegate,
            DAOOpType.STAKE: self._op_stake,
            DAOOpType.RELEASE_MILESTONE: self._op_release_milestone,
            DAOOpType.DEPOSIT: self._op_deposit,
            DAOOpType.TRANSFER: self._op_transfer,
            DAOOpType.BURN: self._op_burn,
            DAOOpType.EMERGENCY_WITHDRAW: self._op_emergency_withdraw,
            DAOOpType.SET_QUORUM_THRESHOLD: self._op_set_quorum_threshold,
            DAOOpType.SET_VOTING_PERIOD: self._op_set_voting_period,
            DAOOpType.SET_PROPOSER_REWARD: self._op_set_proposer_reward,
            DAOOpType.SET_REJECT_ON_FAILED_QUORUM: self._op_set_reject_on_failed_quorum,
            DAOOpType.SET_PEER: self._op_set_peer,
        }

    def _block_height(self) -> int:
        return self._current_block_height

    @classmethod
    def from_config(cls, cfg: DAOConfig) -> DAOStateManager:
        """Build and wire a node from a validated configuration."""
        cfg.validate()
        gov = cfg.governance
        core = GovernanceCore(
            cfg.owner,
            identity=gov.identity,
            parameters=GovernanceParameters(
                quorum_threshold=gov.quorum_threshold,
                voting_period=gov.voting_period,
                proposer_reward=gov.proposer_reward,
                reject_on_failed_quorum=gov.reject_on_failed_quorum,
            ),
        )
        token = GovernanceToken(
            cfg.owner,
            identity=cfg.token.identity,
            name=cfg.token.name,
            symbol=cfg.token.symbol,
            decimals=cfg.token.decimals,
            max_supply=cfg.token.max_supply,
            allocations=cfg.token.allocations,
        )
        treasury = Treasury(
            cfg.owner,
            identity=cfg.treasury.identity,
            initial_balance=cfg.treasury.initial_balance,
        )
        mgr = cls(cfg.owner, core=core, token=token, treasury=treasury)
        for name, identity in gov.peers().items():
            if identity:
                getattr(core, f"set_{name}")(cfg.owner, identity)
        logger.info(
            "DAO node initialized: owner=%s core=%s token=%s treasury=%s",
            cfg.owner, core.identity, token.identity, treasury.identity,
        )
        return mgr

    @classmethod
    def get_instance(cls, cfg: Optional[DAOConfig] = None) -> DAOStateManager:
        """Get or create the singleton instance."""
        if cls.instance is None:
            cls.instance = cls.from_config(cfg or DAOConfig())
        return cls.instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton (for testing)."""
        cls.instance = None

    # =====================================================================
    #  Block lifecycle
    # =====================================================================

    @property
    def block_height(self) -> int:
        return self._current_block_height

    def begin_block(self, block_height: int) -> None:
        """
        Start processing a block at *block_height*.

        Heights never move backwards. A snapshot is taken so that
        revert_block() can undo the whole block.
        """
        if block_height < self._current_block_height:
            raise ValueError(
                f"Block height {block_height} < current height {self._current_block_height}"
            )
        self.take_snapshot()
        self._current_block_height = block_height
        self._block_txs = []
        self._block_results = []

    def finalize_block(self) -> str:
        """
        Called after all transactions in a block are processed.

        Returns:
            The DAO state root hash for this block.
        """
        state_root = self.compute_state_root()
        failed = sum(1 for r in self._block_results if not r.success)
        logger.debug(
            "Block %d finalized: %d txs (%d failed), state_root=%s",
            self._current_block_height,
            len(self._block_txs),
            failed,
            state_root[:16],
        )
        return state_root

    def revert_block(self) -> None:
        """Undo every transaction applied since begin_block()."""
        if self._snapshot is not None:
            self._restore_snapshot(self._snapshot)
            self._snapshot = None
            self._block_txs = []
            self._block_results = []
            logger.warning(
                "Block %d reverted, DAO state restored",
                self._current_block_height,
            )

    # =====================================================================
    #  Transaction processing
    # =====================================================================

    def process_transaction(self, tx: DAOTransaction) -> TxResult:
        """
        Apply a single transaction all-or-nothing.

        Domain failures come back as a TxResult carrying the ErrorCode;
        they never raise. State is restored on any failure.
        """
        height = self._current_block_height

        # 1. Structural validation
        try:
            tx.validate_basic()
        except InvalidTransactionError as e:
            result = TxResult.failure(e, height)
            self._record(tx, result)
            return result

        tx_hash = tx.tx_hash()
        snapshot = self._capture()

        # 2. Execute
        try:
            value = self._handlers[tx.op_type](tx)
            result = TxResult(success=True, value=value, block_height=height, tx_hash=tx_hash)
        except DAOException as e:
            self._restore_snapshot(snapshot)
            result = TxResult.failure(e, height, tx_hash)
            logger.debug("DAO op %s rejected: %s (%s)", tx.op_type.name, e.code.name, e)
        except Exception as e:
            self._restore_snapshot(snapshot)
            logger.error("DAO op %s failed: %s", tx.op_type.name, e, exc_info=True)
            result = TxResult(
                success=False,
                error_code=ErrorCode.INTERNAL,
                error=f"{type(e).__name__}: {e}",
                block_height=height,
                tx_hash=tx_hash,
            )

        self._record(tx, result)
        return result

    def _record(self, tx: DAOTransaction, result: TxResult) -> None:
        tx.success = result.success
        tx.result = result.value
        tx.error = result.error
        self._block_txs.append(tx)
        self._block_results.append(result)

    # =====================================================================
    #  Operation handlers
    # =====================================================================

    def _op_submit_proposal(self, tx: DAOTransaction) -> int:
        p = tx.params
        return self.core.submit_proposal(
            tx.sender,
            p["description"],
            p["budget"],
            p["proposal_type"],
            p["impact_metric"],
            p["milestones"],
        )

    def _op_vote(self, tx: DAOTransaction):
        return self.core.vote_on_proposal(tx.sender, tx.params["proposal_id"], tx.params["support"])

    def _op_finalize_proposal(self, tx: DAOTransaction):
        return self.core.finalize_proposal(tx.sender, tx.params["proposal_id"])

    def _op_delegate(self, tx: DAOTransaction):
        return self.core.delegate_vote(tx.sender, tx.params["delegate"])

    def _op_undelegate(self, tx: DAOTransaction):
        return self.core.undelegate(tx.sender)

    def _op_stake(self, tx: DAOTransaction) -> int:
        return self.core.stake_for_proposal(tx.sender, tx.params["proposal_id"], tx.params["amount"])

    def _op_release_milestone(self, tx: DAOTransaction):
        return self.core.release_milestone(
            tx.sender, tx.params["proposal_id"], tx.params["milestone_index"]
        )

    def _op_deposit(self, tx: DAOTransaction):
        return self.treasury.deposit(tx.sender, tx.params["amount"])

    def _op_transfer(self, tx: DAOTransaction):
        return self.token.transfer(tx.params["amount"], tx.sender, tx.params["recipient"])

    def _op_burn(self, tx: DAOTransaction):
        return self.token.burn(tx.params["amount"], tx.sender)

    def _op_emergency_withdraw(self, tx: DAOTransaction):
        return self.treasury.emergency_withdraw(
            tx.sender, tx.params["amount"], tx.params["recipient"]
        )

    def _op_set_quorum_threshold(self, tx: DAOTransaction) -> None:
        self.core.set_quorum_threshold(tx.sender, tx.params["threshold"])

    def _op_set_voting_period(self, tx: DAOTransaction) -> None:
        self.core.set_voting_period(tx.sender, tx.params["period"])

    def _op_set_proposer_reward(self, tx: DAOTransaction) -> None:
        self.core.set_proposer_reward(tx.sender, tx.params["reward"])

    def _op_set_reject_on_failed_quorum(self, tx: DAOTransaction) -> None:
        self.core.set_reject_on_failed_quorum(tx.sender, tx.params["enabled"])

    def _op_set_peer(self, tx: DAOTransaction) -> None:
        setter = getattr(self.core, f"set_{tx.params['peer']}")
        setter(tx.sender, tx.params["identity"])

    # =====================================================================
    #  State root computation
    # =====================================================================

    def compute_state_root(self) -> str:
        """
        Compute a deterministic hash of the entire DAO state.

        Returns:
            64-char hex string (blake2b-256)
        """
        hasher = hashlib.blake2b(digest_size=32)

        # 1. Token balances (sorted by account) and supply
        for account, balance in sorted(self.token.holders().items()):
            hasher.update(f"bal:{account}:{balance}".encode())
        hasher.update(f"supply:{self.token.total_supply}:{self.token.max_supply}".encode())

        # 2. Treasury balance and release records
        hasher.update(
            f"treasury:{self.treasury.balance}:{self.treasury.get_total_released()}".encode()
        )
        for pid, amount in sorted(self.treasury.to_dict()["releasedByProposal"].items()):
            hasher.update(f"released:{pid}:{amount}".encode())
        for rec in self.treasury.to_dict()["milestoneReleases"]:
            hasher.update(f"milestone:{rec['proposalId']}:{rec['milestone']}:{rec['amount']}".encode())

        # 3. Proposals (sorted by id)
        for proposal in self.core.proposals():
            proposal_hash = hashlib.blake2b(
                (f"{proposal.proposal_hash}:{proposal.status.name}:"
                 f"{proposal.votes_for}:{proposal.votes_against}").encode(),
                digest_size=16,
            ).digest()
            hasher.update(proposal_hash)

        # 4. Votes, stakes, delegations
        for proposal in self.core.proposals():
            for vote in self.core.get_votes(proposal.id):
                hasher.update(f"vote:{vote.proposal_id}:{vote.voter}:{int(vote.support)}:{vote.weight}".encode())
        for (pid, staker), amount in self.core.stakes():
            hasher.update(f"stake:{pid}:{staker}:{amount}".encode())
        for delegator, record in self.core.delegations():
            hasher.update(f"delegate:{delegator}:{record.delegate}".encode())

        # 5. Parameters and peers
        params = self.core.params
        hasher.update(
            (f"params:{params.quorum_threshold}:{params.voting_period}:"
             f"{params.proposer_reward}:{int(params.reject_on_failed_quorum)}").encode()
        )
        for name, identity in sorted(self.core.peers.to_dict().items()):
            hasher.update(f"peer:{name}:{identity}".encode())

        # 6. Block metadata
        hasher.update(self._current_block_height.to_bytes(8, "big"))

        return hasher.hexdigest()

    # =====================================================================
    #  Snapshot / restore (for revert)
    # =====================================================================

    def _capture(self) -> Dict[str, Any]:
        return {
            "core": self.core.snapshot(),
            "token": self.token.snapshot(),
            "treasury": self.treasury.snapshot(),
            "block_height": self._current_block_height,
        }

    def take_snapshot(self) -> Dict[str, Any]:
        """Capture current state for potential block revert."""
        snapshot = self._capture()
        self._snapshot = snapshot
        return snapshot

    def _restore_snapshot(self, snapshot: Dict[str, Any]) -> None:
        self.core.restore(snapshot["core"])
        self.token.restore(snapshot["token"])
        self.treasury.restore(snapshot["treasury"])
        self._current_block_height = snapshot["block_height"]

    # =====================================================================
    #  Query interface (read-only)
    # =====================================================================

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        return self.core.get_proposal(proposal_id)

    def get_quorum_threshold(self) -> int:
        return self.core.get_quorum_threshold()

    def get_voting_period(self) -> int:
        return self.core.get_voting_period()

    def get_balance(self, account: str) -> int:
        return self.token.balance_of(account)

    def get_total_supply(self) -> int:
        return self.token.total_supply

    def get_total_released(self) -> int:
        return self.treasury.get_total_released()

    def get_released_for_proposal(self, proposal_id: int) -> int:
        return self.treasury.get_released_for_proposal(proposal_id)

    def get_milestone_release(self, proposal_id: int, milestone_index: int) -> int:
        return self.treasury.get_milestone_release(proposal_id, milestone_index)

    @property
    def block_results(self) -> List[TxResult]:
        return list(self._block_results)

    def get_stats(self) -> Dict[str, Any]:
        """DAO-wide statistics."""
        return {
            "proposals": self.core.proposal_count,
            "total_supply": self.token.total_supply,
            "treasury_balance": self.treasury.balance,
            "total_released": self.treasury.get_total_released(),
            "block_height": self._current_block_height,
            "block_txs": len(self._block_txs),
        }
