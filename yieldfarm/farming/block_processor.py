"""
Yield Farming Block Processor

Applies the farming calls admitted into a block, in order, and commits the
resulting ledger state root.

  - A failing call is recorded and the block continues (the call itself
    has no effect)
  - An unexpected error outside call execution reverts the whole block
  - Identical call sequences produce identical state roots
"""

from __future__ import annotations

from typing import Any, List, Tuple

from ..logger import get_logger
from .calls import FarmingCall
from .ledger import FarmingLedger

logger = get_logger(__name__)


def process_farming_calls(
    block_height: int,
    calls: List[FarmingCall],
    ledger: FarmingLedger,
) -> Tuple[bool, str, str]:
    """
    Process all farming calls in a block.

    Args:
        block_height: Height of the block being processed
        calls: Calls in block order
        ledger: Ledger to apply them to

    Returns:
        Tuple of (success, error_message, state_root)
    """
    ledger.take_snapshot()

    try:
        ledger.begin_block(block_height)
    except ValueError as e:
        return False, str(e), ""

    failed_calls = []
    for i, call in enumerate(calls):
        try:
            result = ledger.process_call(call)
        except Exception as e:
            ledger.revert_block()
            return False, f"Critical farming error at call {i}: {e}", ""

        if not result.success:
            failed_calls.append((i, call.call_hash(), result.error))
            logger.debug("Farming call %d failed (non-critical): %s", i, result.error)

    state_root = ledger.finalize_block()

    if failed_calls:
        logger.info(
            "Block %d: %d/%d farming calls failed",
            block_height, len(failed_calls), len(calls),
        )

    return True, "", state_root


def validate_farming_state_root(
    block_height: int,
    calls: List[FarmingCall],
    ledger: FarmingLedger,
    expected_state_root: str,
) -> Tuple[bool, str]:
    """
    Re-execute a block's calls and compare against the committed state root.

    The ledger is reverted when the roots disagree.

    Returns:
        Tuple of (valid, error_message)
    """
    success, error, state_root = process_farming_calls(block_height, calls, ledger)
    if not success:
        return False, error

    if state_root != expected_state_root:
        ledger.revert_block()
        return False, (
            f"Farming state root mismatch at block {block_height}: "
            f"expected {expected_state_root[:16]}..., got {state_root[:16]}..."
        )

    return True, ""


def extract_farming_calls(block: Any) -> List[FarmingCall]:
    """Pull the farming calls out of a block's transaction list."""
    return [
        tx for tx in getattr(block, "transactions", None) or []
        if isinstance(tx, FarmingCall)
    ]
