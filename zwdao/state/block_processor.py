"""
ZWDAO Block Processor

Applies the DAO transactions of one block, in order, and produces the
DAO state root committed to that block.

  - A rejected transaction is recorded and the block continues
  - An unexpected error reverts the whole block
  - Deterministic: identical inputs → identical state root
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .state_manager import DAOStateManager, TxResult
from .transactions import DAOTransaction

logger = logging.getLogger(__name__)


def process_dao_transactions(
    block_height: int,
    dao_txs: List[DAOTransaction],
    state_manager: Optional[DAOStateManager] = None,
) -> Tuple[bool, str, str, List[TxResult]]:
    """
    Process all DAO transactions in a block.

    Args:
        block_height: Height of the block being processed
        dao_txs: DAO transactions in block order
        state_manager: Optional state manager (uses singleton if None)

    Returns:
        Tuple of (success, error_message, dao_state_root, per-tx results)
    """
    mgr = state_manager or DAOStateManager.get_instance()

    try:
        mgr.begin_block(block_height)
    except ValueError as e:
        return False, str(e), "", []

    results: List[TxResult] = []
    failed = 0
    for i, tx in enumerate(dao_txs):
        try:
            result = mgr.process_transaction(tx)
        except Exception as e:
            # Critical failure: block is invalid
            mgr.revert_block()
            return False, f"Critical DAO error at tx {i}: {e}", "", results
        results.append(result)
        if not result.success:
            failed += 1
            logger.debug(
                "DAO tx %d failed (non-critical): %s %s",
                i, result.error_code.name, result.error,
            )

    state_root = mgr.finalize_block()

    if failed:
        logger.info(
            "Block %d: %d/%d DAO txs failed (non-critical)",
            block_height, failed, len(dao_txs),
        )

    return True, "", state_root, results


def validate_dao_state_root(
    block_height: int,
    dao_txs: List[DAOTransaction],
    expected_state_root: str,
    state_manager: Optional[DAOStateManager] = None,
) -> Tuple[bool, str]:
    """
    Validate that replaying DAO transactions produces the expected state root.

    Returns:
        Tuple of (is_valid, error_message)
    """
    success, error, computed_root, _ = process_dao_transactions(
        block_height, dao_txs, state_manager,
    )

    if not success:
        return False, f"DAO processing failed: {error}"

    if computed_root != expected_state_root:
        return False, (
            f"DAO state root mismatch at block {block_height}: "
            f"expected {expected_state_root[:16]}..., "
            f"computed {computed_root[:16]}..."
        )

    return True, ""
