"""
Sustainable Yield Farming Ledger

Components:
  - Farmer / Pool / StakerPosition records and the FarmingError hierarchy
  - Call envelope (public function names → operation types)
  - Rewards calculator (linear APY prorated per block)
  - FarmingLedger (the only place ledger state changes)
  - Block processor (ordered call execution and state root commitment)
"""

from .types import (
    Farmer,
    Pool,
    PoolStatus,
    StakerPosition,
    FarmingErrorCode,
    FarmingError,
    NotOwnerError,
    InsufficientStakeError,
    NotFoundError,
    PoolShutdownError,
    AlreadyExistsError,
    FarmerInactiveError,
    InvalidParamsError,
)
from .calls import (
    FarmingOpType,
    FarmingCall,
    CALL_SIGNATURES,
    PUBLIC_FUNCTIONS,
)
from .config import (
    LedgerConfig,
    load_config,
)
from .rewards import RewardsCalculator
from .ledger import (
    FarmingExecResult,
    FarmingLedger,
)
from .block_processor import (
    process_farming_calls,
    validate_farming_state_root,
    extract_farming_calls,
)

__all__ = [
    # Records
    "Farmer", "Pool", "PoolStatus", "StakerPosition",
    # Errors
    "FarmingErrorCode", "FarmingError", "NotOwnerError", "InsufficientStakeError",
    "NotFoundError", "PoolShutdownError", "AlreadyExistsError",
    "FarmerInactiveError", "InvalidParamsError",
    # Calls
    "FarmingOpType", "FarmingCall", "CALL_SIGNATURES", "PUBLIC_FUNCTIONS",
    # Configuration
    "LedgerConfig", "load_config",
    # Ledger
    "RewardsCalculator", "FarmingExecResult", "FarmingLedger",
    # Block processing
    "process_farming_calls", "validate_farming_state_root", "extract_farming_calls",
]
