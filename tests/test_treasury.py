"""
Treasury Test Suite

Coverage:
  - deposits
  - release_funds check order and cumulative accounting
  - release_milestone idempotency per (proposal, milestone)
  - emergency_withdraw
  - snapshot / restore
"""

import pytest

from zwdao.exceptions import (
    AlreadyReleasedError,
    ConfigurationError,
    ErrorCode,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidRecipientError,
    NotAuthorizedError,
    PeerNotConfiguredError,
)
from zwdao.treasury import Treasury, TreasuryReleaseEvent, TreasuryWithdrawEvent


OWNER = "zwdao.owner"
CORE = "zwdao.governance-core"
ALICE = "acct:alice"
BOB = "acct:bob"


def make_treasury(balance: int = 10_000, with_core: bool = True) -> Treasury:
    treasury = Treasury(OWNER, initial_balance=balance)
    if with_core:
        treasury.set_dao_core(OWNER, CORE)
    return treasury


class TestTreasuryDeploy:
    """Construction and administration."""

    def test_initial_state(self):
        treasury = make_treasury(with_core=False)
        assert treasury.balance == 10_000
        assert treasury.dao_core is None
        assert treasury.get_total_released() == 0

    def test_negative_initial_balance(self):
        with pytest.raises(ConfigurationError):
            Treasury(OWNER, initial_balance=-1)

    def test_empty_owner(self):
        with pytest.raises(ConfigurationError):
            Treasury("")

    def test_only_owner_sets_core(self):
        treasury = make_treasury(with_core=False)
        with pytest.raises(NotAuthorizedError):
            treasury.set_dao_core(ALICE, CORE)
        treasury.set_dao_core(OWNER, CORE)
        assert treasury.dao_core == CORE


class TestTreasuryDeposit:
    """deposit(caller, amount)."""

    def test_anyone_can_deposit(self):
        treasury = make_treasury(balance=0)
        event = treasury.deposit(ALICE, 250)
        assert treasury.balance == 250
        assert event.balance == 250
        assert event.to_dict()["event"] == "Deposit"

    @pytest.mark.parametrize("amount", [0, -1, True, 2.5])
    def test_invalid_deposit(self, amount):
        treasury = make_treasury()
        with pytest.raises(InvalidAmountError):
            treasury.deposit(ALICE, amount)
        assert treasury.balance == 10_000


class TestReleaseFunds:
    """release_funds(proposal_id, amount, recipient, caller)."""

    def test_release(self):
        treasury = make_treasury()
        event = treasury.release_funds(0, 4_000, ALICE, CORE)
        assert isinstance(event, TreasuryReleaseEvent)
        assert event.milestone_index is None
        assert treasury.balance == 6_000
        assert treasury.get_released_for_proposal(0) == 4_000
        assert treasury.get_total_released() == 4_000

    def test_release_is_cumulative_per_proposal(self):
        treasury = make_treasury()
        treasury.release_funds(3, 100, ALICE, CORE)
        treasury.release_funds(3, 200, ALICE, CORE)
        treasury.release_funds(4, 50, BOB, CORE)
        assert treasury.get_released_for_proposal(3) == 300
        assert treasury.get_released_for_proposal(4) == 50
        assert treasury.get_total_released() == 350

    def test_release_entire_balance(self):
        treasury = make_treasury(balance=500)
        treasury.release_funds(0, 500, ALICE, CORE)
        assert treasury.balance == 0

    def test_core_not_configured(self):
        treasury = make_treasury(with_core=False)
        with pytest.raises(PeerNotConfiguredError):
            treasury.release_funds(0, 1, ALICE, CORE)

    def test_unauthorized_caller(self):
        treasury = make_treasury()
        with pytest.raises(NotAuthorizedError):
            treasury.release_funds(0, 1, ALICE, OWNER)

    def test_authorization_checked_before_amount(self):
        treasury = make_treasury()
        with pytest.raises(NotAuthorizedError):
            treasury.release_funds(0, 0, ALICE, ALICE)

    def test_amount_checked_before_recipient(self):
        treasury = make_treasury()
        with pytest.raises(InvalidAmountError):
            treasury.release_funds(0, 0, treasury.identity, CORE)

    def test_release_to_treasury_itself(self):
        treasury = make_treasury()
        with pytest.raises(InvalidRecipientError):
            treasury.release_funds(0, 1, treasury.identity, CORE)

    def test_insufficient_balance(self):
        treasury = make_treasury(balance=100)
        with pytest.raises(InsufficientBalanceError) as exc:
            treasury.release_funds(0, 101, ALICE, CORE)
        assert exc.value.code == ErrorCode.INSUFFICIENT_BALANCE
        assert treasury.balance == 100
        assert treasury.get_released_for_proposal(0) == 0
        assert treasury.events == []


class TestReleaseMilestone:
    """release_milestone(proposal_id, milestone_index, amount, recipient, caller)."""

    def test_release_and_record(self):
        treasury = make_treasury()
        event = treasury.release_milestone(1, 0, 3_000, ALICE, CORE)
        assert event.milestone_index == 0
        assert treasury.get_milestone_release(1, 0) == 3_000
        assert treasury.is_milestone_released(1, 0)
        assert treasury.get_released_for_proposal(1) == 3_000
        assert treasury.balance == 7_000

    def test_second_release_of_same_milestone_rejected(self):
        """The recorded amount is kept even if the retry carries another amount."""
        treasury = make_treasury()
        treasury.release_milestone(1, 0, 3_000, ALICE, CORE)
        with pytest.raises(AlreadyReleasedError):
            treasury.release_milestone(1, 0, 1_000, ALICE, CORE)
        assert treasury.get_milestone_release(1, 0) == 3_000
        assert treasury.balance == 7_000

    def test_already_released_checked_before_amount(self):
        treasury = make_treasury()
        treasury.release_milestone(1, 0, 10, ALICE, CORE)
        with pytest.raises(AlreadyReleasedError):
            treasury.release_milestone(1, 0, 0, ALICE, CORE)

    def test_authorization_checked_before_already_released(self):
        treasury = make_treasury()
        treasury.release_milestone(1, 0, 10, ALICE, CORE)
        with pytest.raises(NotAuthorizedError):
            treasury.release_milestone(1, 0, 10, ALICE, BOB)

    def test_other_milestones_and_proposals_independent(self):
        treasury = make_treasury()
        treasury.release_milestone(1, 0, 10, ALICE, CORE)
        treasury.release_milestone(1, 1, 20, ALICE, CORE)
        treasury.release_milestone(2, 0, 30, BOB, CORE)
        assert treasury.get_released_for_proposal(1) == 30
        assert treasury.get_total_released() == 60
        assert not treasury.is_milestone_released(2, 1)

    def test_failed_payout_does_not_mark_released(self):
        treasury = make_treasury(balance=5)
        with pytest.raises(InsufficientBalanceError):
            treasury.release_milestone(1, 0, 6, ALICE, CORE)
        assert not treasury.is_milestone_released(1, 0)
        treasury.deposit(BOB, 1)
        treasury.release_milestone(1, 0, 6, ALICE, CORE)
        assert treasury.balance == 0


class TestEmergencyWithdraw:
    """emergency_withdraw(caller, amount, recipient)."""

    def test_owner_withdraws(self):
        treasury = make_treasury()
        event = treasury.emergency_withdraw(OWNER, 1_000, BOB)
        assert isinstance(event, TreasuryWithdrawEvent)
        assert treasury.balance == 9_000
        assert treasury.get_total_released() == 0

    def test_core_cannot_withdraw(self):
        treasury = make_treasury()
        with pytest.raises(NotAuthorizedError):
            treasury.emergency_withdraw(CORE, 1, BOB)

    def test_withdraw_more_than_balance(self):
        treasury = make_treasury(balance=10)
        with pytest.raises(InsufficientBalanceError):
            treasury.emergency_withdraw(OWNER, 11, BOB)


class TestTreasuryState:
    """Snapshot, restore and serialization."""

    def test_snapshot_restore(self):
        treasury = make_treasury()
        snap = treasury.snapshot()
        treasury.release_funds(0, 100, ALICE, CORE)
        treasury.release_milestone(1, 0, 100, ALICE, CORE)
        treasury.restore(snap)
        assert treasury.balance == 10_000
        assert treasury.get_total_released() == 0
        assert not treasury.is_milestone_released(1, 0)
        assert treasury.events == []

    def test_to_dict(self):
        treasury = make_treasury()
        treasury.release_milestone(2, 1, 5, ALICE, CORE)
        treasury.release_milestone(1, 0, 7, ALICE, CORE)
        d = treasury.to_dict()
        assert d["balance"] == 9_988
        assert d["totalReleased"] == 12
        assert [(m["proposalId"], m["milestone"]) for m in d["milestoneReleases"]] == [(1, 0), (2, 1)]
