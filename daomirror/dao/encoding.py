"""Packed reward/rebate encoding for FeeBRR campaign options."""

from dataclasses import dataclass
from typing import Any, Dict

from ..constants import BPS, POWER_128, UINT256_MAX
from ..exceptions import InvalidOptionsError


@dataclass(frozen=True)
class BRRData:
    """Reward / rebate / burn split in basis points."""
    reward_bps: int
    rebate_bps: int

    @property
    def burn_bps(self) -> int:
        return BPS - self.reward_bps - self.rebate_bps

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rewardInBps": self.reward_bps,
            "rebateInBps": self.rebate_bps,
            "burnInBps": self.burn_bps,
        }


def pack_brr(reward_bps: int, rebate_bps: int) -> int:
    """``rebate * 2^128 + reward``."""
    if not (0 <= reward_bps < POWER_128 and 0 <= rebate_bps < POWER_128):
        raise InvalidOptionsError(
            f"reward/rebate out of range: reward={reward_bps} rebate={rebate_bps}"
        )
    if reward_bps + rebate_bps > BPS:
        raise InvalidOptionsError(
            f"reward + rebate exceeds {BPS} bps: {reward_bps} + {rebate_bps}"
        )
    return rebate_bps * POWER_128 + reward_bps


def unpack_brr(value: int) -> BRRData:
    """Inverse of ``pack_brr``; rejects values whose split exceeds 100%."""
    if not (0 <= value <= UINT256_MAX):
        raise InvalidOptionsError(f"packed BRR value out of uint256 range: {value}")
    rebate_bps = value // POWER_128
    reward_bps = value - rebate_bps * POWER_128
    if reward_bps + rebate_bps > BPS:
        raise InvalidOptionsError(
            f"rebate + reward can't be bigger than BPS: {reward_bps} + {rebate_bps}"
        )
    return BRRData(reward_bps=reward_bps, rebate_bps=rebate_bps)
