"""
Yield Farming Ledger

Owns farmer registrations, pool configuration, staker positions and reward
accrual. Every state change goes through process_call(); each call either
applies completely or leaves the ledger untouched.

Usage in block processing:

    ledger = FarmingLedger(LedgerConfig(owner=OWNER))
    ledger.begin_block(block_height)
    for call in block_calls:
        result = ledger.process_call(call)
    state_root = ledger.finalize_block()

Block height is supplied from outside and never decreases. The ledger does
not read wall-clock time.
"""

from __future__ import annotations

import hashlib
from dataclasses import replace
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..constants import MAX_AMOUNT, MAX_APY
from ..logger import get_logger
from .calls import FarmingCall, FarmingOpType
from .config import LedgerConfig
from .rewards import LEDGER_CONTEXT, RewardsCalculator
from .types import (
    ZERO,
    AlreadyExistsError,
    Farmer,
    FarmerInactiveError,
    FarmingError,
    FarmingErrorCode,
    InsufficientStakeError,
    InvalidParamsError,
    NotFoundError,
    NotOwnerError,
    Pool,
    PoolShutdownError,
    StakerPosition,
)

logger = get_logger(__name__)

TransferFn = Callable[[str, Decimal], None]


# ---------------------------------------------------------------------------
# Call execution result
# ---------------------------------------------------------------------------

class FarmingExecResult:
    """Result of executing a single ledger call."""

    __slots__ = ("success", "data", "error", "message")

    def __init__(
        self,
        success: bool = True,
        data: Optional[Dict[str, Any]] = None,
        error: str = "",
        message: str = "",
    ):
        self.success = success
        self.data = data or {}
        self.error = error
        self.message = message

    @classmethod
    def failure(cls, code: FarmingErrorCode, message: str = "") -> FarmingExecResult:
        return cls(success=False, error=code.value, message=message or code.value)

    def __repr__(self) -> str:
        if self.success:
            return f"FarmingExecResult(success=True, data={self.data})"
        return f"FarmingExecResult(success=False, error={self.error!r})"


# ---------------------------------------------------------------------------
# Parameter coercion
# ---------------------------------------------------------------------------

def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidParamsError(f"{name} must be an integer")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise InvalidParamsError(f"{name} must be an integer") from None
    if not number.is_finite() or number != number.to_integral_value():
        raise InvalidParamsError(f"{name} must be an integer")
    return int(number)


def _as_units(value: Any, name: str) -> Decimal:
    """Whole token units (the smallest denomination), held as Decimal for reward math."""
    units = _as_int(value, name)
    if abs(units) > MAX_AMOUNT:
        raise InvalidParamsError(f"{name} exceeds {MAX_AMOUNT}")
    return Decimal(units)


# ---------------------------------------------------------------------------
# Farming Ledger
# ---------------------------------------------------------------------------

class FarmingLedger:
    """
    Staking ledger for farm-backed yield pools.

    Args:
        config: Ledger configuration; must name the owner
        transfer_fn: Pays claimed rewards out, called as transfer_fn(recipient, amount).
            Raising from it fails the claim and rolls the call back.
    """

    def __init__(self, config: LedgerConfig, transfer_fn: Optional[TransferFn] = None):
        config.validate()
        self.config = config
        self.rewards = RewardsCalculator(config.blocks_per_year, config.reward_quantum)
        self._transfer_fn = transfer_fn

        self._farmers: Dict[int, Farmer] = {}
        self._pools: Dict[int, Pool] = {}
        self._positions: Dict[Tuple[str, int], StakerPosition] = {}

        self._block_height: int = 0
        self._block_calls: List[FarmingCall] = []
        self._snapshot: Optional[Dict[str, Any]] = None

        self._total_claimed: Decimal = ZERO

    @property
    def owner(self) -> str:
        return self.config.owner

    @property
    def block_height(self) -> int:
        return self._block_height

    # =====================================================================
    #  Block lifecycle
    # =====================================================================

    def begin_block(self, block_height: int) -> None:
        """Advance the accrual clock to `block_height` and reset per-block tracking."""
        if block_height < self._block_height:
            raise ValueError(
                f"Block height cannot decrease: {block_height} < {self._block_height}"
            )
        self._block_height = block_height
        self._block_calls = []

    def finalize_block(self) -> str:
        """Returns the ledger state root for the current block."""
        state_root = self.compute_state_root()
        logger.debug(
            "Block %d finalized: %d farming calls, state_root=%s",
            self._block_height, len(self._block_calls), state_root[:16],
        )
        return state_root

    def revert_block(self) -> None:
        """Restore the state and block height captured by the last take_snapshot()."""
        if self._snapshot is not None:
            reverted_height = self._block_height
            self._restore_snapshot(self._snapshot)
            self._snapshot = None
            logger.warning(
                "Block %d reverted, ledger restored to height %d",
                reverted_height, self._block_height,
            )

    # =====================================================================
    #  Call processing
    # =====================================================================

    def process_call(self, call: FarmingCall) -> FarmingExecResult:
        """
        Execute a single call.

        This is the ONLY entry point for ledger mutations. Handlers finish
        every check (and the reward transfer) before their first write, so a
        failed call leaves the ledger exactly as it was.
        """
        try:
            call.validate_basic()
        except ValueError as e:
            result = FarmingExecResult.failure(FarmingErrorCode.INVALID_PARAMS, str(e))
            return self._record(call, result)

        try:
            with localcontext(LEDGER_CONTEXT):
                result = self._execute_op(call)
        except FarmingError as e:
            logger.debug("%s rejected for %s: %s", call.op_type.name, call.sender, e)
            result = FarmingExecResult.failure(e.code, str(e))
        except Exception as e:
            logger.error("%s failed for %s: %s", call.op_type.name, call.sender, e)
            result = FarmingExecResult.failure(FarmingErrorCode.INTERNAL, str(e))

        return self._record(call, result)

    def call_public(self, name: str, args: Sequence[Any], sender: str) -> FarmingExecResult:
        """Execute a public function by name with positional arguments."""
        try:
            call = FarmingCall.from_public(name, args, sender)
        except ValueError as e:
            return FarmingExecResult.failure(FarmingErrorCode.INVALID_PARAMS, str(e))
        return self.process_call(call)

    def _record(self, call: FarmingCall, result: FarmingExecResult) -> FarmingExecResult:
        call.success = result.success
        call.result = result.data
        call.error = result.error
        self._block_calls.append(call)
        return result

    def _execute_op(self, call: FarmingCall) -> FarmingExecResult:
        handlers = {
            FarmingOpType.REGISTER_FARMER: self._op_register_farmer,
            FarmingOpType.UPDATE_YIELD_ESTIMATE: self._op_update_yield_estimate,
            FarmingOpType.DEACTIVATE_FARMER: self._op_deactivate_farmer,
            FarmingOpType.CREATE_POOL: self._op_create_pool,
            FarmingOpType.STAKE_TOKENS: self._op_stake_tokens,
            FarmingOpType.UNSTAKE_TOKENS: self._op_unstake_tokens,
            FarmingOpType.CLAIM_REWARDS: self._op_claim_rewards,
            FarmingOpType.EMERGENCY_SHUTDOWN: self._op_emergency_shutdown,
        }
        handler = handlers.get(call.op_type)
        if handler is None:
            raise InvalidParamsError(f"Unknown op type: {call.op_type}")
        return handler(call)

    # =====================================================================
    #  Guards
    # =====================================================================

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise NotOwnerError(caller)

    def _require_farmer(self, farmer_id: int) -> Farmer:
        farmer = self._farmers.get(farmer_id)
        if farmer is None:
            raise NotFoundError(f"Farmer {farmer_id} not found")
        return farmer

    def _require_pool(self, pool_id: int) -> Pool:
        pool = self._pools.get(pool_id)
        if pool is None:
            raise NotFoundError(f"Pool {pool_id} not found")
        return pool

    def _require_position(self, staker: str, pool_id: int) -> StakerPosition:
        position = self._positions.get((staker, pool_id))
        if position is None:
            raise NotFoundError(f"No position for {staker} in pool {pool_id}")
        return position

    def _settle(self, position: StakerPosition, pool: Pool) -> None:
        """Move pending rewards into the position and restart accrual from now."""
        position.rewards += self.rewards.pending(position, pool, self._block_height)
        position.last_claim_height = max(
            position.last_claim_height, pool.accrual_height(self._block_height)
        )

    # =====================================================================
    #  Operation handlers
    # =====================================================================

    def _op_register_farmer(self, call: FarmingCall) -> FarmingExecResult:
        self._require_owner(call.sender)
        p = call.params
        farmer_id = _as_int(p["farmer_id"], "farmer_id")
        total_land = _as_int(p["total_land"], "total_land")
        crop_type = str(p["crop_type"]).strip()

        if farmer_id in self._farmers:
            raise AlreadyExistsError(f"Farmer {farmer_id} already registered")
        if total_land < 0:
            raise InvalidParamsError("total_land cannot be negative")
        if not crop_type:
            raise InvalidParamsError("crop_type cannot be empty")

        self._farmers[farmer_id] = Farmer(
            id=farmer_id,
            address=call.sender,
            total_land=total_land,
            crop_type=crop_type,
        )
        logger.info(
            "Farmer registered: %d (%d acres of %s)", farmer_id, total_land, crop_type
        )
        return FarmingExecResult(data={"farmer_id": farmer_id})

    def _op_update_yield_estimate(self, call: FarmingCall) -> FarmingExecResult:
        self._require_owner(call.sender)
        farmer = self._require_farmer(_as_int(call.params["farmer_id"], "farmer_id"))
        estimate = _as_int(call.params["estimate"], "estimate")
        if estimate < 0:
            raise InvalidParamsError("estimate cannot be negative")

        farmer.yield_estimate = estimate
        logger.info("Yield estimate for farmer %d set to %d bushels", farmer.id, estimate)
        return FarmingExecResult(data={"farmer_id": farmer.id, "yield_estimate": estimate})

    def _op_deactivate_farmer(self, call: FarmingCall) -> FarmingExecResult:
        self._require_owner(call.sender)
        farmer = self._require_farmer(_as_int(call.params["farmer_id"], "farmer_id"))

        farmer.active = False
        logger.info("Farmer deactivated: %d", farmer.id)
        return FarmingExecResult(data={"farmer_id": farmer.id, "active": False})

    def _op_create_pool(self, call: FarmingCall) -> FarmingExecResult:
        self._require_owner(call.sender)
        p = call.params
        pool_id = _as_int(p["pool_id"], "pool_id")
        farmer_id = _as_int(p["farmer_id"], "farmer_id")
        apy = _as_int(p["apy"], "apy")
        min_stake = _as_units(p["min_stake"], "min_stake")

        if pool_id in self._pools:
            raise AlreadyExistsError(f"Pool {pool_id} already exists")
        if not 0 <= apy <= MAX_APY:
            raise InvalidParamsError(f"apy must be between 0 and {MAX_APY} basis points")
        if min_stake < self.config.min_pool_stake:
            raise InsufficientStakeError(required=self.config.min_pool_stake, actual=min_stake)

        # Pools may be set up before their farmer registers; a deactivated farmer is refused
        farmer = self._farmers.get(farmer_id)
        if farmer is not None and not farmer.active:
            raise FarmerInactiveError(f"Farmer {farmer_id} is inactive")

        self._pools[pool_id] = Pool(
            id=pool_id,
            farmer_id=farmer_id,
            apy=apy,
            min_stake=min_stake,
            created_height=self._block_height,
        )
        logger.info(
            "Pool created: %d for farmer %d (apy=%d bps, min stake %s units)",
            pool_id, farmer_id, apy, min_stake,
        )
        return FarmingExecResult(data={"pool_id": pool_id})

    def _op_stake_tokens(self, call: FarmingCall) -> FarmingExecResult:
        pool = self._require_pool(_as_int(call.params["pool_id"], "pool_id"))
        amount = _as_units(call.params["amount"], "amount")

        if not pool.is_active:
            raise PoolShutdownError(f"Pool {pool.id} was shut down at height {pool.end_height}")
        if amount < pool.min_stake:
            raise InsufficientStakeError(required=pool.min_stake, actual=amount)

        key = (call.sender, pool.id)
        position = self._positions.get(key)
        if position is None:
            position = StakerPosition(
                staker=call.sender,
                pool_id=pool.id,
                last_claim_height=self._block_height,
            )
            self._positions[key] = position
        else:
            self._settle(position, pool)

        position.staked_amount += amount
        pool.total_staked += amount
        logger.info(
            "Stake: %s staked %s units in pool %d (position %s, pool total %s)",
            call.sender, amount, pool.id, position.staked_amount, pool.total_staked,
        )
        return FarmingExecResult(data={
            "pool_id": pool.id,
            "staked_amount": str(position.staked_amount),
            "total_staked": str(pool.total_staked),
        })

    def _op_unstake_tokens(self, call: FarmingCall) -> FarmingExecResult:
        pool = self._require_pool(_as_int(call.params["pool_id"], "pool_id"))
        amount = _as_units(call.params["amount"], "amount")
        position = self._require_position(call.sender, pool.id)

        if amount <= 0:
            raise InvalidParamsError("Unstake amount must be positive")
        if amount > position.staked_amount:
            raise InsufficientStakeError(required=amount, actual=position.staked_amount)

        self._settle(position, pool)
        position.staked_amount -= amount
        pool.total_staked -= amount
        logger.info(
            "Unstake: %s withdrew %s units from pool %d (pool total %s)",
            call.sender, amount, pool.id, pool.total_staked,
        )
        return FarmingExecResult(data={
            "pool_id": pool.id,
            "staked_amount": str(position.staked_amount),
            "total_staked": str(pool.total_staked),
        })

    def _op_claim_rewards(self, call: FarmingCall) -> FarmingExecResult:
        pool_id = _as_int(call.params["pool_id"], "pool_id")
        position = self._require_position(call.sender, pool_id)
        pool = self._require_pool(pool_id)

        amount = self.rewards.total(position, pool, self._block_height)
        if amount > 0 and self._transfer_fn is not None:
            self._transfer_fn(call.sender, amount)

        position.rewards = ZERO
        position.last_claim_height = self._block_height
        self._total_claimed += amount
        logger.info(
            "Claim: %s claimed %s units from pool %d at height %d",
            call.sender, amount, pool_id, self._block_height,
        )
        return FarmingExecResult(data={"pool_id": pool_id, "claimed": str(amount)})

    def _op_emergency_shutdown(self, call: FarmingCall) -> FarmingExecResult:
        self._require_owner(call.sender)
        pool = self._require_pool(_as_int(call.params["pool_id"], "pool_id"))

        if not pool.is_active:
            raise PoolShutdownError(f"Pool {pool.id} was already shut down at height {pool.end_height}")

        pool.end_height = self._block_height
        logger.warning("Pool %d shut down at height %d", pool.id, pool.end_height)
        return FarmingExecResult(data={"pool_id": pool.id, "end_height": pool.end_height})

    # =====================================================================
    #  Query interface (read-only)
    # =====================================================================

    def get_farmer(self, farmer_id: int) -> Optional[Farmer]:
        return self._farmers.get(farmer_id)

    def get_pool(self, pool_id: int) -> Optional[Pool]:
        return self._pools.get(pool_id)

    def get_position(self, staker: str, pool_id: int) -> Optional[StakerPosition]:
        return self._positions.get((staker, pool_id))

    def get_yield_farmer(self, staker: str, pool_id: Optional[int] = None) -> Optional[StakerPosition]:
        """
        Staker state, for one pool or aggregated over all of the staker's pools.

        The aggregate has `pool_id=None`, summed stake and settled rewards,
        and the latest claim height.
        """
        if pool_id is not None:
            return self.get_position(staker, pool_id)

        positions = [pos for (addr, _), pos in self._positions.items() if addr == staker]
        if not positions:
            return None
        if len(positions) == 1:
            return positions[0]
        with localcontext(LEDGER_CONTEXT):
            return StakerPosition(
                staker=staker,
                pool_id=None,
                staked_amount=sum((pos.staked_amount for pos in positions), ZERO),
                rewards=sum((pos.rewards for pos in positions), ZERO),
                last_claim_height=max(pos.last_claim_height for pos in positions),
            )

    def calculate_rewards(self, staker: str, pool_id: int) -> Decimal:
        """Rewards a claim would pay right now; zero for an unknown position or pool."""
        position = self._positions.get((staker, pool_id))
        pool = self._pools.get(pool_id)
        if position is None or pool is None:
            return ZERO
        return self.rewards.total(position, pool, self._block_height)

    def call_read_only(self, name: str, args: Sequence[Any]) -> Any:
        """
        Run a read-only public function.

        Record views are returned as dicts, None for unknown ids.
        """
        if name == "get-farmer":
            farmer = self.get_farmer(_as_int(args[0], "farmer_id"))
            return farmer.to_dict() if farmer else None
        if name == "get-pool":
            pool = self.get_pool(_as_int(args[0], "pool_id"))
            return pool.to_dict() if pool else None
        if name == "get-yield-farmer":
            pool_id = _as_int(args[1], "pool_id") if len(args) > 1 else None
            position = self.get_yield_farmer(args[0], pool_id)
            return position.to_dict() if position else None
        if name == "calculate-rewards":
            return self.calculate_rewards(args[0], _as_int(args[1], "pool_id"))
        raise ValueError(f"Unknown read-only function: {name}")

    @property
    def farmer_count(self) -> int:
        return len(self._farmers)

    @property
    def pool_count(self) -> int:
        return len(self._pools)

    @property
    def block_calls(self) -> List[FarmingCall]:
        return list(self._block_calls)

    def get_stats(self) -> Dict[str, Any]:
        with localcontext(LEDGER_CONTEXT):
            total_staked = sum((p.total_staked for p in self._pools.values()), ZERO)
        return {
            "farmers": self.farmer_count,
            "active_farmers": sum(1 for f in self._farmers.values() if f.active),
            "pools": self.pool_count,
            "active_pools": sum(1 for p in self._pools.values() if p.is_active),
            "positions": len(self._positions),
            "total_staked": str(total_staked),
            "total_claimed": str(self._total_claimed),
            "block_height": self._block_height,
        }

    # =====================================================================
    #  State root
    # =====================================================================

    def compute_state_root(self) -> str:
        """
        Deterministic blake2b-256 hash of the whole ledger state.

        Returns:
            64-char hex string
        """
        hasher = hashlib.blake2b(digest_size=32)

        for farmer_id in sorted(self._farmers):
            f = self._farmers[farmer_id]
            hasher.update(hashlib.blake2b(
                f"farmer:{f.id}:{f.address}:{f.active}:{f.total_land}:{f.crop_type}:{f.yield_estimate}".encode(),
                digest_size=16,
            ).digest())

        for pool_id in sorted(self._pools):
            p = self._pools[pool_id]
            hasher.update(hashlib.blake2b(
                (f"pool:{p.id}:{p.farmer_id}:{p.apy}:{p.min_stake}:{p.total_staked}:"
                 f"{p.created_height}:{p.end_height}").encode(),
                digest_size=16,
            ).digest())

        for key in sorted(self._positions):
            pos = self._positions[key]
            hasher.update(hashlib.blake2b(
                (f"position:{pos.staker}:{pos.pool_id}:{pos.staked_amount}:"
                 f"{pos.rewards}:{pos.last_claim_height}").encode(),
                digest_size=16,
            ).digest())

        hasher.update(self._block_height.to_bytes(8, "big"))
        return hasher.hexdigest()

    # =====================================================================
    #  Snapshot / restore
    # =====================================================================

    def take_snapshot(self) -> Dict[str, Any]:
        """Capture current state, including the block clock, for a later revert_block()."""
        self._snapshot = {
            "farmers": {k: replace(v) for k, v in self._farmers.items()},
            "pools": {k: replace(v) for k, v in self._pools.items()},
            "positions": {k: replace(v) for k, v in self._positions.items()},
            "total_claimed": self._total_claimed,
            "block_height": self._block_height,
            "block_calls": list(self._block_calls),
        }
        return self._snapshot

    def _restore_snapshot(self, snapshot: Dict[str, Any]) -> None:
        self._farmers = snapshot["farmers"]
        self._pools = snapshot["pools"]
        self._positions = snapshot["positions"]
        self._total_claimed = snapshot["total_claimed"]
        self._block_height = snapshot["block_height"]
        self._block_calls = snapshot["block_calls"]
