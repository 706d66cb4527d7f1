"""
ZWDAO State Layer

Provides:
  - DAOOpType / DAOTransaction     (transactions.py)
  - DAOStateManager / TxResult     (state_manager.py)
  - process_dao_transactions       (block_processor.py)
"""

from .transactions import SETTABLE_PEERS, DAOOpType, DAOTransaction
from .state_manager import DAOStateManager, TxResult
from .block_processor import process_dao_transactions, validate_dao_state_root

__all__ = [
    "SETTABLE_PEERS",
    "DAOOpType",
    "DAOTransaction",
    "DAOStateManager",
    "TxResult",
    "process_dao_transactions",
    "validate_dao_state_root",
]
