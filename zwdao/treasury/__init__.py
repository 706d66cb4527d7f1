"""
DAO Treasury

Provides:
  - Treasury              : pooled fund custody, DAO-core-gated releases
  - Treasury*Event        : deposit / release / emergency withdraw records
"""

from .treasury import (
    Treasury,
    TreasuryDepositEvent,
    TreasuryReleaseEvent,
    TreasuryWithdrawEvent,
)

__all__ = [
    "Treasury",
    "TreasuryDepositEvent",
    "TreasuryReleaseEvent",
    "TreasuryWithdrawEvent",
]
