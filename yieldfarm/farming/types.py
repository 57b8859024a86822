"""
Yield Farming Ledger Types and Errors

Records held by the ledger (farmers, pools, staker positions) and the error
hierarchy raised by call handlers.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

ZERO = Decimal("0")


class FarmingErrorCode(str, Enum):
    """Failure codes reported back to callers. Values are part of the public surface."""
    NOT_OWNER = "err-not-owner"
    INSUFFICIENT_STAKE = "err-insufficient-stake"
    NOT_FOUND = "err-not-found"
    POOL_SHUTDOWN = "err-pool-shutdown"
    ALREADY_EXISTS = "err-already-exists"
    FARMER_INACTIVE = "err-farmer-inactive"
    INVALID_PARAMS = "err-invalid-params"
    INTERNAL = "err-internal"


class FarmingError(Exception):
    """Base exception for ledger calls."""
    code: FarmingErrorCode = FarmingErrorCode.INVALID_PARAMS

    def __init__(self, message: str = ""):
        super().__init__(message or self.code.value)


class NotOwnerError(FarmingError):
    """Raised when an owner-restricted call comes from anyone else."""
    code = FarmingErrorCode.NOT_OWNER

    def __init__(self, caller: str):
        self.caller = caller
        super().__init__(f"{caller} is not the contract owner")


class InsufficientStakeError(FarmingError):
    """Raised when an amount is below the required minimum."""
    code = FarmingErrorCode.INSUFFICIENT_STAKE

    def __init__(self, required: Decimal, actual: Decimal):
        self.required = required
        self.actual = actual
        super().__init__(f"Insufficient stake: {actual} units (required: {required} units)")


class NotFoundError(FarmingError):
    """Raised for operations on an unregistered farmer, pool or position."""
    code = FarmingErrorCode.NOT_FOUND


class PoolShutdownError(FarmingError):
    """Raised when a pool that has been shut down is asked to change."""
    code = FarmingErrorCode.POOL_SHUTDOWN


class AlreadyExistsError(FarmingError):
    code = FarmingErrorCode.ALREADY_EXISTS


class FarmerInactiveError(FarmingError):
    code = FarmingErrorCode.FARMER_INACTIVE


class InvalidParamsError(FarmingError):
    code = FarmingErrorCode.INVALID_PARAMS


class PoolStatus(Enum):
    """Pool lifecycle. SHUTDOWN is terminal."""
    ACTIVE = "active"
    SHUTDOWN = "shutdown"


@dataclass
class Farmer:
    """
    A registered farm backing one or more pools.

    Attributes:
        id: Farmer id
        address: Address that registered the farmer
        total_land: Farmed area in acres
        crop_type: Crop grown on the land
        yield_estimate: Expected harvest in bushels
        active: Cleared on deactivation, records are never deleted
    """
    id: int
    address: str
    total_land: int
    crop_type: str
    yield_estimate: int = 0
    active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "active": self.active,
            "totalLand": self.total_land,
            "cropType": self.crop_type,
            "yieldEstimate": self.yield_estimate,
        }


@dataclass
class Pool:
    """
    A staking pool tied to one farmer, paying a fixed APY.

    Attributes:
        id: Pool id
        farmer_id: Farmer backing the pool
        apy: Annual percentage yield in basis points
        min_stake: Smallest amount accepted per stake call
        total_staked: Sum of all positions' staked amounts
        created_height: Block height at creation
        end_height: Height of the emergency shutdown, None while active
    """
    id: int
    farmer_id: int
    apy: int
    min_stake: Decimal
    total_staked: Decimal = ZERO
    created_height: int = 0
    end_height: Optional[int] = None

    @property
    def status(self) -> PoolStatus:
        return PoolStatus.ACTIVE if self.end_height is None else PoolStatus.SHUTDOWN

    @property
    def is_active(self) -> bool:
        return self.status == PoolStatus.ACTIVE

    def accrual_height(self, current_height: int) -> int:
        """Height up to which rewards accrue: frozen at the end height once shut down."""
        if self.end_height is None:
            return current_height
        return min(current_height, self.end_height)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "farmerId": self.farmer_id,
            "apy": self.apy,
            "minStake": str(self.min_stake),
            "totalStaked": str(self.total_staked),
            "createdHeight": self.created_height,
            "endHeight": self.end_height,
            "status": self.status.value,
        }


@dataclass
class StakerPosition:
    """
    One staker's deposit and reward state within one pool.

    `rewards` holds amounts already settled (on top-ups and unstakes);
    rewards since `last_claim_height` are computed on demand. `pool_id` is
    None only on the cross-pool aggregate built by get_yield_farmer().
    """
    staker: str
    pool_id: Optional[int]
    staked_amount: Decimal = ZERO
    rewards: Decimal = ZERO
    last_claim_height: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "poolId": self.pool_id,
            "stakedAmount": str(self.staked_amount),
            "rewards": str(self.rewards),
            "lastClaimHeight": self.last_claim_height,
        }
