"""
ZWD Governance Token

Provides:
  - GovernanceToken   : capped-supply token ledger; balances are voting power
  - Token*Event       : transfer / mint / burn event records
"""

from .governance_token import (
    GovernanceToken,
    TokenBurnEvent,
    TokenMintEvent,
    TokenTransferEvent,
)

__all__ = [
    "GovernanceToken",
    "TokenBurnEvent",
    "TokenMintEvent",
    "TokenTransferEvent",
]
