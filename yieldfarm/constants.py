"""
Yield Farming Ledger Constants

Environment-backed logging settings and the protocol values that govern
reward accrual.
"""
from decimal import Decimal
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

DEFAULT_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
DEFAULT_LOG_DATE_FORMAT = '%Y-%m-%dT%H:%M:%S'


def _setting(key: str, default: str) -> str:
    # dotenv_values yields None for keys declared without a value
    value = _config.get(key)
    return default if value is None else value


def _flag(key: str, default: bool) -> bool:
    value = _config.get(key)
    if value is None or not value.strip():
        return default
    return value.strip().casefold() in {"true", "1", "yes", "on"}


LOG_LEVEL = _setting('LOG_LEVEL', 'INFO')
LOG_FORMAT = _setting('LOG_FORMAT', DEFAULT_LOG_FORMAT)
LOG_DATE_FORMAT = _setting('LOG_DATE_FORMAT', DEFAULT_LOG_DATE_FORMAT)
LOG_CONSOLE_HIGHLIGHTING = _flag('LOG_CONSOLE_HIGHLIGHTING', True)
LOG_FILE_OUTPUT = _flag('LOG_FILE_OUTPUT', False)

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# WARNING: THE PROTOCOL VALUES BELOW DEFINE HOW REWARDS ACCRUE. CHANGING THEM ON A
# LEDGER THAT ALREADY HOLDS POSITIONS CHANGES EVERY OUTSTANDING REWARD.

# ==================================================================================
# POOL PARAMETERS
# ==================================================================================
MIN_POOL_STAKE = Decimal(1_000_000)  # Floor for a pool's minimum stake (1 token in micro-units)
MAX_AMOUNT = 2**128 - 1  # Largest stake or minimum stake accepted in one call
MAX_APY = 1_000_000  # 10,000% in basis points


# ==================================================================================
# ACCRUAL CLOCK
# ==================================================================================
BLOCKS_PER_DAY = 144  # ~10 minute blocks
DAYS_PER_YEAR = 365
BLOCKS_PER_YEAR = BLOCKS_PER_DAY * DAYS_PER_YEAR  # 52,560


# ==================================================================================
# REWARD ARITHMETIC
# ==================================================================================
BASIS_POINTS = 10_000  # APY is quoted in basis points (1000 = 10%)
REWARD_QUANTUM = Decimal("0.000001")  # Rewards are rounded down to this resolution
DECIMAL_PRECISION = 78  # Significant digits for ledger arithmetic, above any bounded balance
