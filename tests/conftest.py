"""
Shared fixtures for the ZWDAO test suite.

File logging is switched off before any zwdao module is imported, so
test runs do not write logs/zwdao.log.
"""

import os
import sys

os.environ.setdefault("LOG_FILE_OUTPUT", "False")

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from types import SimpleNamespace

import pytest

from zwdao.governance import GovernanceCore, GovernanceParameters
from zwdao.state import DAOStateManager
from zwdao.tokens import GovernanceToken
from zwdao.treasury import Treasury


DEFAULT_OWNER = "zwdao.owner"
DEFAULT_PEERS = {
    "execution_engine": "zwdao.execution-engine",
    "staking_vault": "zwdao.staking-vault",
    "rewards_distributor": "zwdao.rewards-distributor",
    "proposal_submission": "zwdao.proposal-submission",
    "voting_mechanism": "zwdao.voting-mechanism",
}


class BlockClock:
    """Mutable block height source handed to the governance core."""

    def __init__(self, height: int = 0):
        self.height = height

    def __call__(self) -> int:
        return self.height

    def advance(self, blocks: int = 1) -> int:
        self.height += blocks
        return self.height


def build_dao(
    allocations=None,
    treasury_balance=10_000,
    quorum_threshold=50,
    voting_period=10,
    proposer_reward=0,
    reject_on_failed_quorum=True,
    max_supply=None,
    peers=None,
    wire_ledgers=True,
    start_height=100,
    owner=DEFAULT_OWNER,
):
    """
    Build a core, token and treasury wired together.

    peers: identity-only peers to set on the core (defaults to all of them;
    pass {} for none).
    """
    clock = BlockClock(start_height)
    core = GovernanceCore(
        owner,
        get_block_height_fn=clock,
        parameters=GovernanceParameters(
            quorum_threshold=quorum_threshold,
            voting_period=voting_period,
            proposer_reward=proposer_reward,
            reject_on_failed_quorum=reject_on_failed_quorum,
        ),
    )
    token_kwargs = {}
    if max_supply is not None:
        token_kwargs["max_supply"] = max_supply
    token = GovernanceToken(owner, allocations=allocations or {}, **token_kwargs)
    treasury = Treasury(owner, initial_balance=treasury_balance)

    token.set_dao_core(owner, core.identity)
    treasury.set_dao_core(owner, core.identity)
    if wire_ledgers:
        core.set_governance_token(owner, token)
        core.set_treasury(owner, treasury)
    for name, identity in (DEFAULT_PEERS if peers is None else peers).items():
        getattr(core, f"set_{name}")(owner, identity)

    return SimpleNamespace(
        core=core, token=token, treasury=treasury, clock=clock, owner=owner,
    )


@pytest.fixture
def make_dao():
    """Factory fixture: make_dao(**overrides) → namespace(core, token, treasury, clock)."""
    return build_dao


@pytest.fixture
def fresh_state_manager():
    """Isolate the DAOStateManager singleton per test."""
    DAOStateManager.reset_instance()
    yield
    DAOStateManager.reset_instance()
