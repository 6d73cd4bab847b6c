"""
Kami TOML Configuration Loader

Loads all sections of config.toml with environment variable overrides.
Every section is a dataclass with from_dict / apply_env.

Environment variable mapping:
    [staking] epoch_length_blocks → KAMI_EPOCH_LENGTH_BLOCKS
    [staking] epoch_rates         → KAMI_EPOCH_RATES (comma separated)
    [fees] max_bps                → KAMI_FEE_MAX_BPS
    ...
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..chain import ChainContext
from ..constants import (
    DEFAULT_BLOCK_TIME_SECONDS,
    DEFAULT_EPOCH_LENGTH_BLOCKS,
    DEFAULT_EPOCH_RATES,
    DEFAULT_FLOOR_FEE_BPS,
    DEFAULT_GENESIS_TIMESTAMP,
    DEFAULT_MAX_FEE_BPS,
    DEFAULT_TOKEN_CAP,
    DEFAULT_TOKEN_DECIMALS,
    DEFAULT_VESTING_WINDOW_SECONDS,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Subsection dataclasses, one per [section] of config.toml
# ---------------------------------------------------------------------------


# -- Tokens -------------------------------------------------------------

@dataclass
class TokenConfig:
    """[token.stake] / [token.reward]."""
    name: str = "Kami Token"
    symbol: str = "KAMI"
    decimals: int = DEFAULT_TOKEN_DECIMALS
    cap: int = DEFAULT_TOKEN_CAP

    @classmethod
    def from_dict(cls, data: Dict[str, Any], **defaults) -> "TokenConfig":
        base = cls(**defaults)
        return cls(
            name=data.get("name", base.name),
            symbol=data.get("symbol", base.symbol),
            decimals=data.get("decimals", base.decimals),
            cap=data.get("cap", base.cap),
        )

    def apply_env(self, prefix: str) -> None:
        if v := os.environ.get(f"{prefix}_CAP"):
            self.cap = int(v)


@dataclass
class TokenSectionConfig:
    """[token] section."""
    stake: TokenConfig = field(
        default_factory=lambda: TokenConfig(name="Kami LP Token", symbol="KLP")
    )
    reward: TokenConfig = field(default_factory=TokenConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenSectionConfig":
        return cls(
            stake=TokenConfig.from_dict(data.get("stake", {}), name="Kami LP Token", symbol="KLP"),
            reward=TokenConfig.from_dict(data.get("reward", {})),
        )

    def apply_env(self) -> None:
        self.stake.apply_env("KAMI_STAKE_TOKEN")
        self.reward.apply_env("KAMI_REWARD_TOKEN")


# -- Staking ------------------------------------------------------------

@dataclass
class StakingSectionConfig:
    """[staking] section."""
    epoch_length_blocks: int = DEFAULT_EPOCH_LENGTH_BLOCKS
    epoch_rates: List[int] = field(default_factory=lambda: list(DEFAULT_EPOCH_RATES))
    tail_policy: str = "hold"
    deposit_clock_policy: str = "reset"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StakingSectionConfig":
        return cls(
            epoch_length_blocks=data.get("epoch_length_blocks", DEFAULT_EPOCH_LENGTH_BLOCKS),
            epoch_rates=list(data.get("epoch_rates", DEFAULT_EPOCH_RATES)),
            tail_policy=data.get("tail_policy", "hold"),
            deposit_clock_policy=data.get("deposit_clock_policy", "reset"),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("KAMI_EPOCH_LENGTH_BLOCKS"):
            self.epoch_length_blocks = int(v)
        if v := os.environ.get("KAMI_EPOCH_RATES"):
            self.epoch_rates = [int(r.strip()) for r in v.split(",") if r.strip()]
        if v := os.environ.get("KAMI_TAIL_POLICY"):
            self.tail_policy = v.lower()
        if v := os.environ.get("KAMI_DEPOSIT_CLOCK_POLICY"):
            self.deposit_clock_policy = v.lower()


# -- Fees ---------------------------------------------------------------

@dataclass
class FeeSectionConfig:
    """[fees] section."""
    curve: str = "linear"
    max_bps: int = DEFAULT_MAX_FEE_BPS
    floor_bps: int = DEFAULT_FLOOR_FEE_BPS
    vesting_window_seconds: int = DEFAULT_VESTING_WINDOW_SECONDS
    # [[elapsed_seconds, bps], ...] for the stepped curve
    steps: List[List[int]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeeSectionConfig":
        return cls(
            curve=data.get("curve", "linear"),
            max_bps=data.get("max_bps", DEFAULT_MAX_FEE_BPS),
            floor_bps=data.get("floor_bps", DEFAULT_FLOOR_FEE_BPS),
            vesting_window_seconds=data.get("vesting_window_seconds", DEFAULT_VESTING_WINDOW_SECONDS),
            steps=[list(s) for s in data.get("steps", [])],
        )

    def apply_env(self) -> None:
        if v := os.environ.get("KAMI_FEE_CURVE"):
            self.curve = v.lower()
        if v := os.environ.get("KAMI_FEE_MAX_BPS"):
            self.max_bps = int(v)
        if v := os.environ.get("KAMI_FEE_FLOOR_BPS"):
            self.floor_bps = int(v)
        if v := os.environ.get("KAMI_FEE_VESTING_WINDOW"):
            self.vesting_window_seconds = int(v)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "curve": self.curve,
            "max_bps": self.max_bps,
            "floor_bps": self.floor_bps,
            "vesting_window_seconds": self.vesting_window_seconds,
            "steps": [list(s) for s in self.steps],
        }


# -- Chain --------------------------------------------------------------

@dataclass
class ChainSectionConfig:
    """[chain] section."""
    block_time: int = DEFAULT_BLOCK_TIME_SECONDS
    genesis_timestamp: int = DEFAULT_GENESIS_TIMESTAMP

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChainSectionConfig":
        return cls(
            block_time=data.get("block_time", DEFAULT_BLOCK_TIME_SECONDS),
            genesis_timestamp=data.get("genesis_timestamp", DEFAULT_GENESIS_TIMESTAMP),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("KAMI_BLOCK_TIME"):
            self.block_time = int(v)

    def create_context(self) -> ChainContext:
        return ChainContext(
            block_number=0,
            timestamp=self.genesis_timestamp,
            block_time=self.block_time,
        )


# -----------------------------------------------------------------------
# Top-level unified config
# -----------------------------------------------------------------------

@dataclass
class KamiConfig:
    """
    Unified configuration.

    Loads every section of config.toml and applies environment variable
    overrides.
    """
    token: TokenSectionConfig = field(default_factory=TokenSectionConfig)
    staking: StakingSectionConfig = field(default_factory=StakingSectionConfig)
    fees: FeeSectionConfig = field(default_factory=FeeSectionConfig)
    chain: ChainSectionConfig = field(default_factory=ChainSectionConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KamiConfig":
        """Create KamiConfig from a parsed TOML dict."""
        return cls(
            token=TokenSectionConfig.from_dict(data.get("token", {})),
            staking=StakingSectionConfig.from_dict(data.get("staking", {})),
            fees=FeeSectionConfig.from_dict(data.get("fees", {})),
            chain=ChainSectionConfig.from_dict(data.get("chain", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "KamiConfig":
        """
        Load configuration from a TOML file.

        Args:
            config_path: Path to config.toml

        Returns:
            KamiConfig instance
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            try:
                raw = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.token.apply_env()
        self.staking.apply_env()
        self.fees.apply_env()
        self.chain.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Returns:
            True if all valid

        Raises:
            ConfigurationError: on invalid config
        """
        # Lazy import: staking modules carry the parameter rules
        from ..staking.accountant import DepositClockPolicy
        from ..staking.emission import EmissionSchedule, TailPolicy
        from ..staking.fees import FeeSchedule

        for label, token in (("stake", self.token.stake), ("reward", self.token.reward)):
            if token.cap < 0:
                raise ConfigurationError(f"token.{label}.cap cannot be negative")
            if not token.symbol:
                raise ConfigurationError(f"token.{label}.symbol cannot be empty")

        try:
            tail = TailPolicy(self.staking.tail_policy)
            DepositClockPolicy(self.staking.deposit_clock_policy)
            FeeSchedule.from_config(self.fees)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        EmissionSchedule(
            epoch_length_blocks=self.staking.epoch_length_blocks,
            epoch_rates=tuple(self.staking.epoch_rates),
            tail_policy=tail,
        )

        if self.chain.block_time < 0:
            raise ConfigurationError("chain.block_time cannot be negative")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "token": {
                "stake": {
                    "name": self.token.stake.name,
                    "symbol": self.token.stake.symbol,
                    "decimals": self.token.stake.decimals,
                    "cap": self.token.stake.cap,
                },
                "reward": {
                    "name": self.token.reward.name,
                    "symbol": self.token.reward.symbol,
                    "decimals": self.token.reward.decimals,
                    "cap": self.token.reward.cap,
                },
            },
            "staking": {
                "epoch_length_blocks": self.staking.epoch_length_blocks,
                "epoch_rates": list(self.staking.epoch_rates),
                "tail_policy": self.staking.tail_policy,
                "deposit_clock_policy": self.staking.deposit_clock_policy,
            },
            "fees": self.fees.to_dict(),
            "chain": {
                "block_time": self.chain.block_time,
                "genesis_timestamp": self.chain.genesis_timestamp,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> KamiConfig:
    """
    Load configuration.

    Resolution order:
        1. Explicit *path* argument
        2. KAMI_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("KAMI_CONFIG", "config.toml")

    return KamiConfig.from_file(path)
