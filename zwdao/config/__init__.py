"""
ZWDAO Configuration

Loads config.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    DAOConfig,
    GovernanceConfig,
    TokenConfig,
    TreasuryConfig,
    load_config,
)

__all__ = [
    "DAOConfig",
    "GovernanceConfig",
    "TokenConfig",
    "TreasuryConfig",
    "load_config",
]
