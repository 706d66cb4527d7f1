"""
DAO Treasury

Pooled fund custody with proposal-scoped release accounting:
  - deposit             : public funding
  - release_funds       : DAO core only, cumulative per proposal
  - release_milestone   : DAO core only, at most once per (proposal, milestone)
  - emergency_withdraw  : owner-only escape hatch, bypasses the DAO core path
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import (
    AlreadyReleasedError,
    ConfigurationError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidRecipientError,
    NotAuthorizedError,
    PeerNotConfiguredError,
)
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TreasuryDepositEvent:
    depositor: str
    amount: int
    balance: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Deposit",
            "from": self.depositor,
            "amount": self.amount,
            "balance": self.balance,
        }


@dataclass(frozen=True)
class TreasuryReleaseEvent:
    """Funds released for an approved proposal (milestone is None for lump sums)."""
    proposal_id: int
    recipient: str
    amount: int
    milestone_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Release",
            "proposalId": self.proposal_id,
            "milestone": self.milestone_index,
            "to": self.recipient,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class TreasuryWithdrawEvent:
    recipient: str
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "EmergencyWithdraw",
            "to": self.recipient,
            "amount": self.amount,
        }


# ══════════════════════════════════════════════════════════════════════
#  TREASURY
# ══════════════════════════════════════════════════════════════════════

class Treasury:
    """
    Treasury ledger holding a single pooled balance.

    Release records:
        _released:            proposal_id → cumulative amount (never decreases)
        _milestone_releases:  (proposal_id, milestone_index) → amount, written once
        _total_released:      global cumulative amount
    """

    def __init__(
        self,
        owner: str,
        identity: str = "zwdao.treasury",
        initial_balance: int = 0,
    ):
        if not owner:
            raise ConfigurationError("Treasury owner cannot be empty")
        if initial_balance < 0:
            raise ConfigurationError("Initial treasury balance cannot be negative")

        self.owner = owner
        self.identity = identity
        self._dao_core: Optional[str] = None
        self._balance = initial_balance
        self._total_released = 0
        self._released: Dict[int, int] = {}
        self._milestone_releases: Dict[Tuple[int, int], int] = {}
        self._events: List[Any] = []

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def balance(self) -> int:
        return self._balance

    @property
    def dao_core(self) -> Optional[str]:
        return self._dao_core

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    def get_total_released(self) -> int:
        return self._total_released

    def get_released_for_proposal(self, proposal_id: int) -> int:
        return self._released.get(proposal_id, 0)

    def get_milestone_release(self, proposal_id: int, milestone_index: int) -> int:
        return self._milestone_releases.get((proposal_id, milestone_index), 0)

    def is_milestone_released(self, proposal_id: int, milestone_index: int) -> bool:
        return (proposal_id, milestone_index) in self._milestone_releases

    # ── Guards ────────────────────────────────────────────────────────

    def _require_dao_core(self, caller: str):
        if self._dao_core is None:
            raise PeerNotConfiguredError("Treasury has no DAO core configured")
        if caller != self._dao_core:
            raise NotAuthorizedError(f"{caller} is not authorized to release treasury funds")

    def _check_payout(self, amount: int, recipient: str):
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(f"Release amount must be a positive integer, got {amount!r}")
        if recipient == self.identity:
            raise InvalidRecipientError("Treasury cannot release funds to itself")
        if self._balance < amount:
            raise InsufficientBalanceError(
                f"Treasury balance {self._balance} < release amount {amount}"
            )

    # ── Administration ────────────────────────────────────────────────

    def set_dao_core(self, caller: str, core_identity: str):
        if caller != self.owner:
            raise NotAuthorizedError(f"{caller} is not the treasury owner")
        self._dao_core = core_identity
        logger.info(f"Treasury: DAO core set to {core_identity}")

    # ── Funding ───────────────────────────────────────────────────────

    def deposit(self, caller: str, amount: int) -> TreasuryDepositEvent:
        """Anyone may fund the treasury."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(f"Deposit amount must be a positive integer, got {amount!r}")

        self._balance += amount
        event = TreasuryDepositEvent(depositor=caller, amount=amount, balance=self._balance)
        self._events.append(event)
        logger.debug(f"Treasury deposit: {caller} +{amount} (balance={self._balance})")
        return event

    # ── Privileged releases ───────────────────────────────────────────

    def release_funds(
        self,
        proposal_id: int,
        amount: int,
        recipient: str,
        caller: str,
    ) -> TreasuryReleaseEvent:
        """Release *amount* for *proposal_id*. Cumulative per proposal."""
        self._require_dao_core(caller)
        self._check_payout(amount, recipient)

        self._balance -= amount
        self._released[proposal_id] = self._released.get(proposal_id, 0) + amount
        self._total_released += amount

        event = TreasuryReleaseEvent(
            proposal_id=proposal_id,
            recipient=recipient,
            amount=amount,
        )
        self._events.append(event)
        logger.info(
            f"Treasury release: proposal #{proposal_id} {amount} → {recipient} "
            f"(balance={self._balance})"
        )
        return event

    def release_milestone(
        self,
        proposal_id: int,
        milestone_index: int,
        amount: int,
        recipient: str,
        caller: str,
    ) -> TreasuryReleaseEvent:
        """
        Release one milestone tranche.

        The (proposal_id, milestone_index) key is an idempotency key: a
        second release fails AlreadyReleased whatever the amount, so
        upstream retries cannot pay a milestone twice.
        """
        self._require_dao_core(caller)
        key = (proposal_id, milestone_index)
        if key in self._milestone_releases:
            raise AlreadyReleasedError(
                f"Milestone {milestone_index} of proposal #{proposal_id} already released"
            )
        self._check_payout(amount, recipient)

        self._balance -= amount
        self._milestone_releases[key] = amount
        self._released[proposal_id] = self._released.get(proposal_id, 0) + amount
        self._total_released += amount

        event = TreasuryReleaseEvent(
            proposal_id=proposal_id,
            recipient=recipient,
            amount=amount,
            milestone_index=milestone_index,
        )
        self._events.append(event)
        logger.info(
            f"Treasury milestone release: proposal #{proposal_id} "
            f"milestone {milestone_index} {amount} → {recipient}"
        )
        return event

    def emergency_withdraw(self, caller: str, amount: int, recipient: str) -> TreasuryWithdrawEvent:
        """Owner-only withdrawal. Not counted as a proposal release."""
        if caller != self.owner:
            raise NotAuthorizedError(f"{caller} is not the treasury owner")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(f"Withdraw amount must be a positive integer, got {amount!r}")
        if self._balance < amount:
            raise InsufficientBalanceError(
                f"Treasury balance {self._balance} < withdraw amount {amount}"
            )

        self._balance -= amount
        event = TreasuryWithdrawEvent(recipient=recipient, amount=amount)
        self._events.append(event)
        logger.warning(f"EMERGENCY WITHDRAW: {amount} → {recipient} (balance={self._balance})")
        return event

    # ── Snapshot / restore ────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        return {
            "dao_core": self._dao_core,
            "balance": self._balance,
            "total_released": self._total_released,
            "released": dict(self._released),
            "milestone_releases": dict(self._milestone_releases),
            "events": list(self._events),
        }

    def restore(self, snapshot: Dict[str, Any]):
        self._dao_core = snapshot["dao_core"]
        self._balance = snapshot["balance"]
        self._total_released = snapshot["total_released"]
        self._released = dict(snapshot["released"])
        self._milestone_releases = dict(snapshot["milestone_releases"])
        self._events = list(snapshot["events"])

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "owner": self.owner,
            "daoCore": self._dao_core,
            "balance": self._balance,
            "totalReleased": self._total_released,
            "releasedByProposal": dict(self._released),
            "milestoneReleases": [
                {"proposalId": pid, "milestone": idx, "amount": amt}
                for (pid, idx), amt in sorted(self._milestone_releases.items())
            ],
        }

    def __repr__(self) -> str:
        return f"<Treasury balance={self._balance} released={self._total_released}>"
