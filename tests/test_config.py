"""
Configuration Loader Tests

Covers:
  - section defaults and from_dict parsing
  - ZWDAO_* environment overrides
  - from_file / load_config resolution
  - validation failures
"""

import os
import textwrap
from unittest.mock import patch

import pytest

from zwdao.config import (
    DAOConfig,
    GovernanceConfig,
    TokenConfig,
    TreasuryConfig,
    load_config,
)
from zwdao.constants import GOVERNANCE_QUORUM_THRESHOLD, GOVERNANCE_VOTING_PERIOD, TOKEN_MAX_SUPPLY
from zwdao.exceptions import ConfigurationError, ErrorCode
from zwdao.state import DAOStateManager


@pytest.fixture
def sample_toml_content():
    return textwrap.dedent("""\
        owner = "dao.multisig"

        [governance]
        identity = "dao.core"
        quorum_threshold = 30
        voting_period = 200
        proposer_reward = 15
        reject_on_failed_quorum = false

        [governance.peers]
        execution_engine = "dao.engine"
        proposal_submission = "dao.submission"
        voting_mechanism = "dao.voting"

        [token]
        identity = "dao.token"
        max_supply = 1000000

        [token.allocations]
        "acct:alice" = 400000
        "acct:bob" = 100000

        [treasury]
        identity = "dao.treasury"
        initial_balance = 25000
    """)


@pytest.fixture
def toml_file(tmp_path, sample_toml_content):
    """Write sample TOML to a temp file."""
    path = tmp_path / "config.toml"
    path.write_text(sample_toml_content)
    return str(path)


class TestGovernanceConfig:
    """[governance] section."""

    def test_defaults(self):
        cfg = GovernanceConfig()
        assert cfg.quorum_threshold == GOVERNANCE_QUORUM_THRESHOLD == 50
        assert cfg.voting_period == GOVERNANCE_VOTING_PERIOD
        assert cfg.reject_on_failed_quorum is True
        assert all(v is None for v in cfg.peers().values())

    def test_from_dict_reads_peers_table(self):
        cfg = GovernanceConfig.from_dict({
            "quorum_threshold": 10,
            "peers": {"staking_vault": "vault"},
        })
        assert cfg.quorum_threshold == 10
        assert cfg.staking_vault == "vault"
        assert cfg.execution_engine is None

    def test_env_override(self):
        cfg = GovernanceConfig()
        with patch.dict(os.environ, {
            "ZWDAO_QUORUM_THRESHOLD": "67",
            "ZWDAO_VOTING_PERIOD": "12",
            "ZWDAO_PROPOSER_REWARD": "3",
            "ZWDAO_REJECT_ON_FAILED_QUORUM": "false",
        }):
            cfg.apply_env()
        assert cfg.quorum_threshold == 67
        assert cfg.voting_period == 12
        assert cfg.proposer_reward == 3
        assert cfg.reject_on_failed_quorum is False

    def test_env_bad_integer(self):
        cfg = GovernanceConfig()
        with patch.dict(os.environ, {"ZWDAO_VOTING_PERIOD": "ten"}):
            with pytest.raises(ConfigurationError, match="must be an integer"):
                cfg.apply_env()

    def test_env_bad_bool(self):
        cfg = GovernanceConfig()
        with patch.dict(os.environ, {"ZWDAO_REJECT_ON_FAILED_QUORUM": "maybe"}):
            with pytest.raises(ConfigurationError, match="True/False"):
                cfg.apply_env()

    @pytest.mark.parametrize("field,value,match", [
        ("quorum_threshold", 0, "quorum_threshold"),
        ("quorum_threshold", 101, "quorum_threshold"),
        ("voting_period", 0, "voting_period"),
        ("proposer_reward", -1, "proposer_reward"),
    ])
    def test_validate(self, field, value, match):
        cfg = GovernanceConfig()
        setattr(cfg, field, value)
        with pytest.raises(ConfigurationError, match=match):
            cfg.validate()


    @pytest.mark.parametrize("data,match", [
        ({"quorum_threshold": "50"}, "quorum_threshold must be an integer"),
        ({"voting_period": 10.5}, "voting_period must be an integer"),
        ({"proposer_reward": True}, "proposer_reward must be an integer"),
        ({"reject_on_failed_quorum": "yes"}, "true or false"),
    ])
    def test_validate_rejects_wrong_types(self, data, match):
        cfg = GovernanceConfig.from_dict(data)
        with pytest.raises(ConfigurationError, match=match):
            cfg.validate()


class TestTokenAndTreasuryConfig:
    """[token] and [treasury] sections."""

    def test_token_defaults(self):
        cfg = TokenConfig()
        assert cfg.symbol == "ZWD"
        assert cfg.max_supply == TOKEN_MAX_SUPPLY
        assert cfg.allocations == {}

    def test_token_env_override(self):
        cfg = TokenConfig()
        with patch.dict(os.environ, {"ZWDAO_MAX_SUPPLY": "500"}):
            cfg.apply_env()
        assert cfg.max_supply == 500

    def test_allocations_over_cap(self):
        cfg = TokenConfig(max_supply=10, allocations={"a": 6, "b": 5})
        with pytest.raises(ConfigurationError, match="exceed max_supply"):
            cfg.validate()

    def test_bad_decimals(self):
        with pytest.raises(ConfigurationError, match="decimals"):
            TokenConfig(decimals=30).validate()

    def test_treasury_negative_balance(self):
        with pytest.raises(ConfigurationError):
            TreasuryConfig(initial_balance=-5).validate()

    def test_quoted_numbers_rejected(self):
        with pytest.raises(ConfigurationError, match="max_supply must be an integer"):
            TokenConfig.from_dict({"max_supply": "1000"}).validate()
        with pytest.raises(ConfigurationError, match="allocation for acct:alice"):
            TokenConfig.from_dict({"allocations": {"acct:alice": "5"}}).validate()
        with pytest.raises(ConfigurationError, match="initial_balance must be an integer"):
            TreasuryConfig.from_dict({"initial_balance": "25000"}).validate()


class TestDAOConfig:
    """Unified DAOConfig."""

    def test_from_file(self, toml_file):
        cfg = DAOConfig.from_file(toml_file)
        assert cfg.owner == "dao.multisig"
        assert cfg.governance.identity == "dao.core"
        assert cfg.governance.quorum_threshold == 30
        assert cfg.governance.reject_on_failed_quorum is False
        assert cfg.governance.execution_engine == "dao.engine"
        assert cfg.governance.staking_vault is None
        assert cfg.token.allocations == {"acct:alice": 400000, "acct:bob": 100000}
        assert cfg.treasury.initial_balance == 25000

    def test_from_file_missing(self, tmp_path):
        """Missing file returns defaults."""
        cfg = DAOConfig.from_file(str(tmp_path / "nonexistent.toml"))
        assert cfg.owner == "zwdao.owner"
        assert cfg.governance.quorum_threshold == 50

    def test_from_file_env_override(self, toml_file):
        with patch.dict(os.environ, {"ZWDAO_OWNER": "dao.new-owner", "ZWDAO_QUORUM_THRESHOLD": "90"}):
            cfg = DAOConfig.from_file(toml_file)
        assert cfg.owner == "dao.new-owner"
        assert cfg.governance.quorum_threshold == 90

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("owner = \n[governance")
        with pytest.raises(ConfigurationError, match="Invalid TOML") as exc:
            DAOConfig.from_file(str(path))
        assert exc.value.code == ErrorCode.INVALID_CONFIGURATION

    def test_validate_success(self, toml_file):
        assert DAOConfig.from_file(toml_file).validate() is True

    def test_validate_duplicate_identities(self):
        cfg = DAOConfig()
        cfg.token.identity = cfg.treasury.identity
        with pytest.raises(ConfigurationError, match="distinct"):
            cfg.validate()

    def test_validate_empty_owner(self):
        cfg = DAOConfig(owner="")
        with pytest.raises(ValueError, match="owner"):
            cfg.validate()

    def test_to_dict(self, toml_file):
        d = DAOConfig.from_file(toml_file).to_dict()
        assert d["owner"] == "dao.multisig"
        assert d["governance"]["peers"]["voting_mechanism"] == "dao.voting"
        assert d["token"]["max_supply"] == 1000000
        assert d["treasury"]["identity"] == "dao.treasury"

    def test_load_config_explicit_path(self, toml_file):
        assert load_config(toml_file).governance.voting_period == 200

    def test_load_config_env_path(self, toml_file):
        with patch.dict(os.environ, {"ZWDAO_CONFIG": toml_file}):
            cfg = load_config()
        assert cfg.owner == "dao.multisig"

    def test_state_manager_from_file(self, toml_file):
        mgr = DAOStateManager.from_config(DAOConfig.from_file(toml_file))
        assert mgr.core.identity == "dao.core"
        assert mgr.token.dao_core == "dao.core"
        assert mgr.treasury.dao_core == "dao.core"
        assert mgr.treasury.balance == 25000
        assert mgr.get_balance("acct:alice") == 400000
        assert mgr.core.peers.execution_engine == "dao.engine"
        assert mgr.core.get_proposer_reward() == 15
