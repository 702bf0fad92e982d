"""
DAO Mirror TOML Configuration Loader

Loads the [dao] and [harness] sections of daomirror.toml with environment
variable overrides (dataclass + from_dict + from_file).

Environment variable mapping:
    [dao] start_time            → DAOMIRROR_START_TIME
    [dao] epoch_period          → DAOMIRROR_EPOCH_PERIOD
    [dao] min_campaign_period   → DAOMIRROR_MIN_CAMPAIGN_PERIOD
    [harness] num_runs          → DAOMIRROR_NUM_RUNS
    [harness] seed              → DAOMIRROR_SEED
    ...
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    BPS,
    DEFAULT_EPOCH_PERIOD,
    DEFAULT_MIN_CAMPAIGN_PERIOD,
    DEFAULT_NETWORK_FEE_BPS,
    DEFAULT_NUM_RUNS,
    DEFAULT_NUM_STAKERS,
    DEFAULT_REBATE_BPS,
    DEFAULT_REWARD_BPS,
    DEFAULT_STAKER_TOKENS,
    DEFAULT_TIME_STEP,
    MAX_NETWORK_FEE_BPS,
)
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class DaoConfig:
    """[dao] section: protocol deployment parameters."""
    start_time: int = 0
    epoch_period: int = DEFAULT_EPOCH_PERIOD
    min_campaign_period: int = DEFAULT_MIN_CAMPAIGN_PERIOD
    network_fee_bps: int = DEFAULT_NETWORK_FEE_BPS
    reward_bps: int = DEFAULT_REWARD_BPS
    rebate_bps: int = DEFAULT_REBATE_BPS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DaoConfig":
        return cls(
            start_time=int(data.get("start_time", 0)),
            epoch_period=int(data.get("epoch_period", DEFAULT_EPOCH_PERIOD)),
            min_campaign_period=int(data.get("min_campaign_period", DEFAULT_MIN_CAMPAIGN_PERIOD)),
            network_fee_bps=int(data.get("network_fee_bps", DEFAULT_NETWORK_FEE_BPS)),
            reward_bps=int(data.get("reward_bps", DEFAULT_REWARD_BPS)),
            rebate_bps=int(data.get("rebate_bps", DEFAULT_REBATE_BPS)),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("DAOMIRROR_START_TIME"):
            self.start_time = int(v)
        if v := os.environ.get("DAOMIRROR_EPOCH_PERIOD"):
            self.epoch_period = int(v)
        if v := os.environ.get("DAOMIRROR_MIN_CAMPAIGN_PERIOD"):
            self.min_campaign_period = int(v)

    def validate(self) -> None:
        if self.epoch_period <= 0:
            raise ConfigurationError("epoch_period must be positive")
        if not 0 < self.min_campaign_period < self.epoch_period:
            raise ConfigurationError("min_campaign_period must be in (0, epoch_period)")
        if not 0 <= self.network_fee_bps < MAX_NETWORK_FEE_BPS:
            raise ConfigurationError(f"network_fee_bps must be below {MAX_NETWORK_FEE_BPS}")
        if self.reward_bps < 0 or self.rebate_bps < 0 or self.reward_bps + self.rebate_bps > BPS:
            raise ConfigurationError("reward_bps + rebate_bps must be within [0, BPS]")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time,
            "epoch_period": self.epoch_period,
            "min_campaign_period": self.min_campaign_period,
            "network_fee_bps": self.network_fee_bps,
            "reward_bps": self.reward_bps,
            "rebate_bps": self.rebate_bps,
        }


@dataclass
class HarnessConfig:
    """[harness] section: run length, pacing and participants."""
    num_runs: int = DEFAULT_NUM_RUNS
    time_step: int = DEFAULT_TIME_STEP
    num_stakers: int = DEFAULT_NUM_STAKERS
    staker_tokens: int = DEFAULT_STAKER_TOKENS
    seed: Optional[int] = None
    check_invariants: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HarnessConfig":
        seed = data.get("seed")
        return cls(
            num_runs=int(data.get("num_runs", DEFAULT_NUM_RUNS)),
            time_step=int(data.get("time_step", DEFAULT_TIME_STEP)),
            num_stakers=int(data.get("num_stakers", DEFAULT_NUM_STAKERS)),
            staker_tokens=int(data.get("staker_tokens", DEFAULT_STAKER_TOKENS)),
            seed=int(seed) if seed is not None else None,
            check_invariants=bool(data.get("check_invariants", True)),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("DAOMIRROR_NUM_RUNS"):
            self.num_runs = int(v)
        if v := os.environ.get("DAOMIRROR_TIME_STEP"):
            self.time_step = int(v)
        if v := os.environ.get("DAOMIRROR_NUM_STAKERS"):
            self.num_stakers = int(v)
        if v := os.environ.get("DAOMIRROR_SEED"):
            self.seed = int(v)

    def validate(self) -> None:
        if self.num_runs < 0:
            raise ConfigurationError("num_runs must be non-negative")
        if self.time_step <= 0:
            raise ConfigurationError("time_step must be positive")
        if self.num_stakers < 1:
            raise ConfigurationError("num_stakers must be at least 1")
        if self.staker_tokens <= 0:
            raise ConfigurationError("staker_tokens must be positive")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "num_runs": self.num_runs,
            "time_step": self.time_step,
            "num_stakers": self.num_stakers,
            "staker_tokens": str(self.staker_tokens),
            "seed": self.seed,
            "check_invariants": self.check_invariants,
        }


@dataclass
class SimulationConfig:
    """Top-level configuration."""
    dao: DaoConfig = field(default_factory=DaoConfig)
    harness: HarnessConfig = field(default_factory=HarnessConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        return cls(
            dao=DaoConfig.from_dict(data.get("dao", {})),
            harness=HarnessConfig.from_dict(data.get("harness", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "SimulationConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults.
        """
        path = Path(config_path)
        if not path.exists():
            logger.debug(f"Config file {path} not found, using defaults")
            return cls()

        with open(path, "rb") as f:
            try:
                data = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e
        return cls.from_dict(data)

    def apply_env(self) -> None:
        self.dao.apply_env()
        self.harness.apply_env()

    def validate(self) -> None:
        self.dao.validate()
        self.harness.validate()
        if self.harness.time_step >= self.dao.epoch_period:
            raise ConfigurationError(
                f"time_step ({self.harness.time_step}) must be shorter than "
                f"epoch_period ({self.dao.epoch_period})"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {"dao": self.dao.to_dict(), "harness": self.harness.to_dict()}


def load_config(config_path: Optional[str] = None) -> SimulationConfig:
    """Load TOML (if present), apply environment overrides, validate."""
    config = SimulationConfig.from_file(config_path) if config_path else SimulationConfig()
    config.apply_env()
    config.validate()
    return config
