"""
Yield Farming Reward Accrual

Linear APY accrual prorated per block:

    reward = staked * apy * elapsed_blocks / (BASIS_POINTS * blocks_per_year)

rounded down to REWARD_QUANTUM. There is no compounding; settled rewards do
not earn further rewards.
"""

from decimal import Context, Decimal, ROUND_DOWN, localcontext

from ..constants import BASIS_POINTS, BLOCKS_PER_YEAR, DECIMAL_PRECISION, REWARD_QUANTUM
from .types import ZERO, Pool, StakerPosition

# Balance and reward arithmetic runs under this context. With amounts and APY
# bounded at the call boundary no intermediate value reaches its precision.
LEDGER_CONTEXT = Context(prec=DECIMAL_PRECISION, rounding=ROUND_DOWN)


class RewardsCalculator:
    """Computes pending rewards for staker positions."""

    def __init__(
        self,
        blocks_per_year: int = BLOCKS_PER_YEAR,
        quantum: Decimal = REWARD_QUANTUM,
    ):
        if blocks_per_year <= 0:
            raise ValueError("blocks_per_year must be positive")
        self.blocks_per_year = blocks_per_year
        self.quantum = quantum

    def accrued(self, staked: Decimal, apy: int, elapsed_blocks: int) -> Decimal:
        """
        Reward earned by `staked` over `elapsed_blocks` at `apy` basis points.

        Returns zero for a non-positive stake, APY or elapsed span.
        """
        if staked <= 0 or apy <= 0 or elapsed_blocks <= 0:
            return ZERO

        with localcontext(LEDGER_CONTEXT):
            reward = (
                staked * apy * elapsed_blocks
                / (Decimal(BASIS_POINTS) * self.blocks_per_year)
            )
            return reward.quantize(self.quantum, ROUND_DOWN)

    def pending(self, position: StakerPosition, pool: Pool, current_height: int) -> Decimal:
        """Rewards accrued since the position's last claim, not including settled rewards."""
        elapsed = pool.accrual_height(current_height) - position.last_claim_height
        return self.accrued(position.staked_amount, pool.apy, elapsed)

    def total(self, position: StakerPosition, pool: Pool, current_height: int) -> Decimal:
        """Settled plus pending rewards: what a claim at `current_height` would pay."""
        with localcontext(LEDGER_CONTEXT):
            return position.rewards + self.pending(position, pool, current_height)

    def annual_reward(self, staked: Decimal, apy: int) -> Decimal:
        """Reward for one full year of blocks."""
        return self.accrued(staked, apy, self.blocks_per_year)
