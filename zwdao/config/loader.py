"""
ZWDAO TOML Configuration Loader

Loads config.toml at startup with environment variable overrides.
Every section is a dataclass with from_dict / apply_env / validate.

Environment variable mapping:
    owner                         → ZWDAO_OWNER
    [governance] quorum_threshold → ZWDAO_QUORUM_THRESHOLD
    [governance] voting_period    → ZWDAO_VOTING_PERIOD
    [governance] proposer_reward  → ZWDAO_PROPOSER_REWARD
    [governance] reject_on_failed_quorum → ZWDAO_REJECT_ON_FAILED_QUORUM
    [token] max_supply            → ZWDAO_MAX_SUPPLY
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ..constants import (
    GOVERNANCE_PROPOSER_REWARD,
    GOVERNANCE_QUORUM_MAX,
    GOVERNANCE_QUORUM_THRESHOLD,
    GOVERNANCE_REJECT_ON_FAILED_QUORUM,
    GOVERNANCE_VOTING_PERIOD,
    TOKEN_DECIMALS,
    TOKEN_MAX_SUPPLY,
    TOKEN_NAME,
    TOKEN_SYMBOL,
    parse_bool,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_OWNER = "zwdao.owner"


def _env_bool(value: str) -> bool:
    parsed = parse_bool(value)
    if not isinstance(parsed, bool):
        raise ConfigurationError(f"Expected True/False, got {value!r}")
    return parsed


def _env_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _require_int(name: str, value: Any):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


# ---------------------------------------------------------------------------
# Section dataclasses: mirror every [section] of config.example.toml
# ---------------------------------------------------------------------------

@dataclass
class GovernanceConfig:
    """[governance] section."""
    identity: str = "zwdao.governance-core"
    quorum_threshold: int = GOVERNANCE_QUORUM_THRESHOLD
    voting_period: int = GOVERNANCE_VOTING_PERIOD
    proposer_reward: int = GOVERNANCE_PROPOSER_REWARD
    reject_on_failed_quorum: bool = GOVERNANCE_REJECT_ON_FAILED_QUORUM
    # Peer identities; unset peers disable the operations that need them
    execution_engine: Optional[str] = None
    staking_vault: Optional[str] = None
    rewards_distributor: Optional[str] = None
    proposal_submission: Optional[str] = None
    voting_mechanism: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernanceConfig":
        peers = data.get("peers", {})
        return cls(
            identity=data.get("identity", "zwdao.governance-core"),
            quorum_threshold=data.get("quorum_threshold", GOVERNANCE_QUORUM_THRESHOLD),
            voting_period=data.get("voting_period", GOVERNANCE_VOTING_PERIOD),
            proposer_reward=data.get("proposer_reward", GOVERNANCE_PROPOSER_REWARD),
            reject_on_failed_quorum=data.get(
                "reject_on_failed_quorum", GOVERNANCE_REJECT_ON_FAILED_QUORUM
            ),
            execution_engine=peers.get("execution_engine"),
            staking_vault=peers.get("staking_vault"),
            rewards_distributor=peers.get("rewards_distributor"),
            proposal_submission=peers.get("proposal_submission"),
            voting_mechanism=peers.get("voting_mechanism"),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("ZWDAO_QUORUM_THRESHOLD"):
            self.quorum_threshold = _env_int("ZWDAO_QUORUM_THRESHOLD", v)
        if v := os.environ.get("ZWDAO_VOTING_PERIOD"):
            self.voting_period = _env_int("ZWDAO_VOTING_PERIOD", v)
        if v := os.environ.get("ZWDAO_PROPOSER_REWARD"):
            self.proposer_reward = _env_int("ZWDAO_PROPOSER_REWARD", v)
        if v := os.environ.get("ZWDAO_REJECT_ON_FAILED_QUORUM"):
            self.reject_on_failed_quorum = _env_bool(v)

    def validate(self) -> None:
        for name in ("quorum_threshold", "voting_period", "proposer_reward"):
            _require_int(name, getattr(self, name))
        if not isinstance(self.reject_on_failed_quorum, bool):
            raise ConfigurationError(
                f"reject_on_failed_quorum must be true or false, got {self.reject_on_failed_quorum!r}"
            )
        if not 0 < self.quorum_threshold <= GOVERNANCE_QUORUM_MAX:
            raise ConfigurationError(
                f"quorum_threshold must be in (0, {GOVERNANCE_QUORUM_MAX}], got {self.quorum_threshold}"
            )
        if self.voting_period <= 0:
            raise ConfigurationError(f"voting_period must be > 0, got {self.voting_period}")
        if self.proposer_reward < 0:
            raise ConfigurationError(f"proposer_reward must be >= 0, got {self.proposer_reward}")

    def peers(self) -> Dict[str, Optional[str]]:
        return {
            "execution_engine": self.execution_engine,
            "staking_vault": self.staking_vault,
            "rewards_distributor": self.rewards_distributor,
            "proposal_submission": self.proposal_submission,
            "voting_mechanism": self.voting_mechanism,
        }


@dataclass
class TokenConfig:
    """[token] section. Allocations come from [token.allocations]."""
    identity: str = "zwdao.governance-token"
    name: str = TOKEN_NAME
    symbol: str = TOKEN_SYMBOL
    decimals: int = TOKEN_DECIMALS
    max_supply: int = TOKEN_MAX_SUPPLY
    allocations: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenConfig":
        return cls(
            identity=data.get("identity", "zwdao.governance-token"),
            name=data.get("name", TOKEN_NAME),
            symbol=data.get("symbol", TOKEN_SYMBOL),
            decimals=data.get("decimals", TOKEN_DECIMALS),
            max_supply=data.get("max_supply", TOKEN_MAX_SUPPLY),
            allocations=dict(data.get("allocations", {})),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("ZWDAO_MAX_SUPPLY"):
            self.max_supply = _env_int("ZWDAO_MAX_SUPPLY", v)

    def validate(self) -> None:
        for name in ("max_supply", "decimals"):
            _require_int(name, getattr(self, name))
        for holder, amount in self.allocations.items():
            _require_int(f"allocation for {holder}", amount)
        if self.max_supply <= 0:
            raise ConfigurationError("max_supply must be > 0")
        if not 0 <= self.decimals <= 18:
            raise ConfigurationError(f"decimals must be 0-18, got {self.decimals}")
        allocated = sum(self.allocations.values())
        if allocated > self.max_supply:
            raise ConfigurationError(
                f"Token allocations {allocated} exceed max_supply {self.max_supply}"
            )


@dataclass
class TreasuryConfig:
    """[treasury] section."""
    identity: str = "zwdao.treasury"
    initial_balance: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TreasuryConfig":
        return cls(
            identity=data.get("identity", "zwdao.treasury"),
            initial_balance=data.get("initial_balance", 0),
        )

    def validate(self) -> None:
        _require_int("initial_balance", self.initial_balance)
        if self.initial_balance < 0:
            raise ConfigurationError("treasury initial_balance must be >= 0")


# -----------------------------------------------------------------------
# Top-level config
# -----------------------------------------------------------------------

@dataclass
class DAOConfig:
    """
    Unified DAO configuration.

    Loads every section of config.toml and applies environment variable
    overrides. DAOStateManager.from_config() builds a wired node from it.
    """
    owner: str = DEFAULT_OWNER
    governance: GovernanceConfig = field(default_factory=GovernanceConfig)
    token: TokenConfig = field(default_factory=TokenConfig)
    treasury: TreasuryConfig = field(default_factory=TreasuryConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DAOConfig":
        """Create DAOConfig from a parsed TOML dict."""
        return cls(
            owner=data.get("owner", DEFAULT_OWNER),
            governance=GovernanceConfig.from_dict(data.get("governance", {})),
            token=TokenConfig.from_dict(data.get("token", {})),
            treasury=TreasuryConfig.from_dict(data.get("treasury", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "DAOConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults (with env overrides).
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            try:
                raw = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        if v := os.environ.get("ZWDAO_OWNER"):
            self.owner = v
        self.governance.apply_env()
        self.token.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Raises:
            ConfigurationError: on invalid config
        """
        if not self.owner:
            raise ConfigurationError("owner must be set")
        identities = [self.governance.identity, self.token.identity, self.treasury.identity]
        if len(set(identities)) != len(identities):
            raise ConfigurationError(f"Component identities must be distinct: {identities}")
        self.governance.validate()
        self.token.validate()
        self.treasury.validate()
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics)."""
        return {
            "owner": self.owner,
            "governance": {
                "identity": self.governance.identity,
                "quorum_threshold": self.governance.quorum_threshold,
                "voting_period": self.governance.voting_period,
                "proposer_reward": self.governance.proposer_reward,
                "reject_on_failed_quorum": self.governance.reject_on_failed_quorum,
                "peers": self.governance.peers(),
            },
            "token": {
                "identity": self.token.identity,
                "name": self.token.name,
                "symbol": self.token.symbol,
                "decimals": self.token.decimals,
                "max_supply": self.token.max_supply,
                "allocations": dict(self.token.allocations),
            },
            "treasury": {
                "identity": self.treasury.identity,
                "initial_balance": self.treasury.initial_balance,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> DAOConfig:
    """
    Load DAO configuration.

    Resolution order:
        1. Explicit *path* argument
        2. ZWDAO_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("ZWDAO_CONFIG", "config.toml")

    return DAOConfig.from_file(path)
