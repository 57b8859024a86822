"""
Yield Farming Call Envelope

Defines the envelope for every state-changing ledger call admitted into a
block. Calls are executed in block order by FarmingLedger.process_call().

Public functions (kebab-case names, positional arguments):
  - register-farmer(farmer-id, total-land, crop-type)
  - update-yield-estimate(farmer-id, estimate)
  - deactivate-farmer(farmer-id)
  - create-pool(pool-id, farmer-id, apy, min-stake)
  - stake-tokens(pool-id, amount)
  - unstake-tokens(pool-id, amount)
  - claim-rewards(pool-id)
  - emergency-shutdown(pool-id)
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Sequence, Tuple


class FarmingOpType(IntEnum):
    """All ledger operation types. Values are part of the call hash."""
    REGISTER_FARMER = 1
    UPDATE_YIELD_ESTIMATE = 2
    DEACTIVATE_FARMER = 3
    CREATE_POOL = 4
    STAKE_TOKENS = 5
    UNSTAKE_TOKENS = 6
    CLAIM_REWARDS = 7
    EMERGENCY_SHUTDOWN = 8


# Ordered parameter names per operation. Positional public arguments bind in this order.
CALL_SIGNATURES: Dict[FarmingOpType, Tuple[str, ...]] = {
    FarmingOpType.REGISTER_FARMER: ("farmer_id", "total_land", "crop_type"),
    FarmingOpType.UPDATE_YIELD_ESTIMATE: ("farmer_id", "estimate"),
    FarmingOpType.DEACTIVATE_FARMER: ("farmer_id",),
    FarmingOpType.CREATE_POOL: ("pool_id", "farmer_id", "apy", "min_stake"),
    FarmingOpType.STAKE_TOKENS: ("pool_id", "amount"),
    FarmingOpType.UNSTAKE_TOKENS: ("pool_id", "amount"),
    FarmingOpType.CLAIM_REWARDS: ("pool_id",),
    FarmingOpType.EMERGENCY_SHUTDOWN: ("pool_id",),
}

PUBLIC_FUNCTIONS: Dict[str, FarmingOpType] = {
    op.name.lower().replace("_", "-"): op for op in FarmingOpType
}


@dataclass
class FarmingCall:
    """
    A single state-changing call against the ledger.

    Fields other than the execution outcome feed the call hash.
    """
    op_type: FarmingOpType
    sender: str
    params: Dict[str, Any]

    # --- Filled in after execution ---
    success: bool = False
    result: Dict[str, Any] = field(default_factory=dict)
    error: str = ""

    @classmethod
    def from_public(cls, name: str, args: Sequence[Any], sender: str) -> FarmingCall:
        """
        Build a call from a public function name and positional arguments.

        Raises:
            ValueError: unknown function or wrong argument count
        """
        op_type = PUBLIC_FUNCTIONS.get(name)
        if op_type is None:
            raise ValueError(f"Unknown public function: {name}")

        names = CALL_SIGNATURES[op_type]
        if len(args) != len(names):
            raise ValueError(
                f"{name} expects {len(names)} arguments, got {len(args)}"
            )
        return cls(op_type=op_type, sender=sender, params=dict(zip(names, args)))

    @property
    def function_name(self) -> str:
        return self.op_type.name.lower().replace("_", "-")

    def args(self) -> List[Any]:
        """Positional arguments in public-function order."""
        return [self.params.get(name) for name in CALL_SIGNATURES[self.op_type]]

    # -- Hashing ------------------------------------------------------------

    def call_hash(self) -> str:
        """Deterministic call hash."""
        return hashlib.blake2b(self._canonical_bytes(), digest_size=32).hexdigest()

    def _canonical_bytes(self) -> bytes:
        params_json = json.dumps(self.params, sort_keys=True, default=str).encode("utf-8")
        return b"".join([
            int(self.op_type).to_bytes(1, "big"),
            self.sender.encode("utf-8"),
            params_json,
        ])

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op_type": int(self.op_type),
            "sender": self.sender,
            "params": self.params,
            "call_hash": self.call_hash(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FarmingCall:
        return cls(
            op_type=FarmingOpType(data["op_type"]),
            sender=data["sender"],
            params=data["params"],
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, default=str)

    @classmethod
    def from_json(cls, raw: str) -> FarmingCall:
        return cls.from_dict(json.loads(raw))

    # -- Validation ---------------------------------------------------------

    def validate_basic(self) -> bool:
        """
        Structural validation (no ledger state needed).

        Raises:
            ValueError: with specific reason
        """
        if not self.sender:
            raise ValueError("Missing sender address")
        if self.op_type not in CALL_SIGNATURES:
            raise ValueError(f"Unknown operation type: {self.op_type}")

        for key in CALL_SIGNATURES[self.op_type]:
            if self.params.get(key) is None:
                raise ValueError(f"{self.op_type.name} missing param: {key}")
        return True

    def __repr__(self) -> str:
        return (f"FarmingCall(op={self.op_type.name}, sender={self.sender[:16]}..., "
                f"hash={self.call_hash()[:12]}...)")
