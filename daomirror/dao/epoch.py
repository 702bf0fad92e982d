"""
Epoch Clock

Maps simulated wall-clock timestamps to epoch indices. Both the oracle and the
mirror must agree on this mapping; every other check depends on it.
"""

from dataclasses import dataclass
from typing import Optional

from ..exceptions import ConfigurationError, PreGenesisTimeError

# Returned instead of a negative index for timestamps before the first epoch
PRE_GENESIS = None


def epoch_of(timestamp: int, start_time: int, epoch_period: int) -> Optional[int]:
    """Epoch index of *timestamp*, or ``PRE_GENESIS`` if it precedes *start_time*."""
    if epoch_period <= 0:
        raise ConfigurationError(f"epoch period must be positive, got {epoch_period}")
    if timestamp < start_time:
        return PRE_GENESIS
    return (timestamp - start_time) // epoch_period


@dataclass(frozen=True)
class EpochClock:
    """Epoch arithmetic bound to one protocol deployment."""
    start_time: int
    epoch_period: int

    def __post_init__(self):
        if self.epoch_period <= 0:
            raise ConfigurationError(
                f"epoch period must be positive, got {self.epoch_period}"
            )

    def epoch_of(self, timestamp: int) -> Optional[int]:
        return epoch_of(timestamp, self.start_time, self.epoch_period)

    def require_epoch(self, timestamp: int) -> int:
        """Like ``epoch_of`` but raises ``PreGenesisTimeError`` before genesis."""
        epoch = self.epoch_of(timestamp)
        if epoch is PRE_GENESIS:
            raise PreGenesisTimeError(timestamp, self.start_time)
        return epoch

    def epoch_start(self, epoch: int) -> int:
        """First second of *epoch*."""
        return self.start_time + epoch * self.epoch_period

    def epoch_end(self, epoch: int) -> int:
        """Last second of *epoch*."""
        return self.epoch_start(epoch + 1) - 1
