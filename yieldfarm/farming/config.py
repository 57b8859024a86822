"""
Yield Farming Ledger Configuration

Loaded from the [ledger] section of config.toml, with environment variable
overrides:

    [ledger] owner            → YIELDFARM_OWNER
    [ledger] min_pool_stake   → YIELDFARM_MIN_POOL_STAKE
    [ledger] blocks_per_year  → YIELDFARM_BLOCKS_PER_YEAR
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import BLOCKS_PER_YEAR, MIN_POOL_STAKE, REWARD_QUANTUM
from ..exceptions import ConfigurationError


@dataclass
class LedgerConfig:
    """
    Ledger configuration.

    The owner address is the only identity allowed to register farmers,
    create pools and shut them down.
    """

    # Contract owner address (required)
    owner: str = ""

    # Floor for a pool's minimum stake
    min_pool_stake: Decimal = MIN_POOL_STAKE

    # Accrual clock used to prorate APY per block
    blocks_per_year: int = BLOCKS_PER_YEAR

    # Rewards are rounded down to this resolution
    reward_quantum: Decimal = REWARD_QUANTUM

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> LedgerConfig:
        try:
            return cls(
                owner=data.get("owner", ""),
                min_pool_stake=Decimal(str(data.get("min_pool_stake", MIN_POOL_STAKE))),
                blocks_per_year=int(data.get("blocks_per_year", BLOCKS_PER_YEAR)),
                reward_quantum=Decimal(str(data.get("reward_quantum", REWARD_QUANTUM))),
            )
        except (InvalidOperation, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid [ledger] configuration: {e}") from e

    @classmethod
    def from_file(cls, config_path: str) -> LedgerConfig:
        """
        Load configuration from a TOML file.

        A missing file yields the defaults (environment overrides still apply).
        """
        path = Path(config_path)

        if path.exists():
            try:
                with open(path, "rb") as f:
                    config_data = tomli.load(f)
            except (tomli.TOMLDecodeError, OSError) as e:
                raise ConfigurationError(f"Cannot read {path}: {e}") from e
            config = cls.from_dict(config_data.get("ledger", {}))
        else:
            config = cls()

        config.apply_env()
        return config

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("YIELDFARM_OWNER"):
            self.owner = v
        try:
            if v := os.environ.get("YIELDFARM_MIN_POOL_STAKE"):
                self.min_pool_stake = Decimal(v)
            if v := os.environ.get("YIELDFARM_BLOCKS_PER_YEAR"):
                self.blocks_per_year = int(v)
        except (InvalidOperation, ValueError) as e:
            raise ConfigurationError(f"Invalid environment override: {e}") from e

    def validate(self) -> bool:
        """
        Validate configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not self.owner:
            raise ConfigurationError("owner is required")
        if self.min_pool_stake <= 0:
            raise ConfigurationError("min_pool_stake must be positive")
        if self.blocks_per_year <= 0:
            raise ConfigurationError("blocks_per_year must be positive")
        if self.reward_quantum <= 0:
            raise ConfigurationError("reward_quantum must be positive")
        return True


def load_config(path: Optional[str] = None) -> LedgerConfig:
    """
    Load ledger configuration.

    Resolution order:
        1. Explicit *path* argument
        2. YIELDFARM_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("YIELDFARM_CONFIG", "config.toml")

    return LedgerConfig.from_file(path)
