"""
Winning Option Resolver

Post-window resolution of campaigns and the lazily pulled parameter cache.

Resolution rules, all in exact integer arithmetic:
  - no voting power in the epoch → no winner
  - quorum: ``total * PRECISION < min_percentage * denom`` → no winner
  - a strict, unique maximum among options 1..N is required; ties → no winner

``c_in_precision`` and ``t_in_precision`` are stored and encoded with the
campaign but take no part in choosing the winner.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..logger import get_logger
from ..constants import NO_WINNING_OPTION, PRECISION
from ..exceptions import CampaignNotActiveError, CampaignNotEndedError
from .campaigns import Campaign, CampaignRegistry, CampaignType
from .encoding import BRRData, pack_brr, unpack_brr
from .epoch import EpochClock
from .tally import VoteTally

logger = get_logger(__name__)

__all__ = [
    "BRRData",
    "CachedParameters",
    "WinningOption",
    "WinningOptionResolver",
    "compute_winning_option",
    "pack_brr",
    "unpack_brr",
]


@dataclass(frozen=True)
class WinningOption:
    """Outcome of a campaign; ``option_id == 0`` means no winner."""
    option_id: int
    value: int
    campaign_type: CampaignType

    @property
    def has_winner(self) -> bool:
        return self.option_id != NO_WINNING_OPTION

    def as_tuple(self) -> Tuple[int, int, CampaignType]:
        return self.option_id, self.value, self.campaign_type

    def to_dict(self) -> Dict[str, Any]:
        return {
            "optionID": self.option_id,
            "value": str(self.value),
            "campaignType": self.campaign_type.name,
        }


@dataclass
class CachedParameters:
    """Latest network fee and BRR split known to the protocol cache."""
    network_fee_bps: int
    reward_bps: int
    rebate_bps: int

    @property
    def burn_bps(self) -> int:
        return self.brr().burn_bps

    def brr(self) -> BRRData:
        return BRRData(reward_bps=self.reward_bps, rebate_bps=self.rebate_bps)

    def to_dict(self) -> Dict[str, Any]:
        return {"networkFeeBps": self.network_fee_bps, **self.brr().to_dict()}


def compute_winning_option(
    campaign: Campaign,
    total_votes: int,
    vote_per_option: List[int],
    total_voting_power: int,
) -> Tuple[int, int]:
    """Pure resolution of one campaign; returns ``(option_id, value)``."""
    no_winner = (NO_WINNING_OPTION, 0)
    if total_voting_power == 0:
        return no_winner

    if total_votes * PRECISION < campaign.min_percentage_in_precision * total_voting_power:
        return no_winner

    winning_option = NO_WINNING_OPTION
    max_voted = 0
    for index, count in enumerate(vote_per_option):
        if count > max_voted:
            winning_option = index + 1
            max_voted = count
        elif count == max_voted:
            winning_option = NO_WINNING_OPTION
    if winning_option == NO_WINNING_OPTION:
        return no_winner

    return winning_option, campaign.option_value(winning_option)


class WinningOptionResolver:
    """
    Resolves ended campaigns and serves/pulls cached fee parameters.

    The first resolution of a campaign is stored; later calls return it
    unchanged even if tallies or stakes moved since.
    """

    def __init__(
        self,
        registry: CampaignRegistry,
        tally: VoteTally,
        total_voting_power: Callable[[int], int],
        clock: EpochClock,
        cache: CachedParameters,
    ):
        self.registry = registry
        self.tally = tally
        self.clock = clock
        self.cache = cache
        self._total_voting_power = total_voting_power
        self._results: Dict[int, WinningOption] = {}

    # ── Resolution ────────────────────────────────────────────────────

    def resolve(self, campaign_id: int, now: int) -> WinningOption:
        stored = self._results.get(campaign_id)
        if stored is not None:
            return stored

        campaign = self.registry.get(campaign_id)
        if campaign.cancelled:
            raise CampaignNotActiveError(f"Campaign #{campaign_id} was cancelled")
        if not campaign.has_ended(now):
            raise CampaignNotEndedError(
                f"Campaign #{campaign_id} ends at {campaign.end_timestamp}, now {now}"
            )

        data = self.tally.vote_data(campaign_id)
        option_id, value = compute_winning_option(
            campaign,
            data.total_votes,
            data.vote_per_option,
            self._total_voting_power(campaign.epoch),
        )
        result = WinningOption(option_id=option_id, value=value, campaign_type=campaign.campaign_type)
        self._results[campaign_id] = result
        campaign.resolved = True

        logger.info(f"campaign ID={campaign_id} optionID={option_id} value={value}")
        return result

    def resolve_epoch(self, epoch: int, now: int) -> Dict[int, WinningOption]:
        return {cid: self.resolve(cid, now) for cid in self.registry.list_for_epoch(epoch)}

    def stored_result(self, campaign_id: int) -> Optional[WinningOption]:
        return self._results.get(campaign_id)

    # ── Latest parameters ─────────────────────────────────────────────

    def _previous_epoch_winner(self, campaign_id: Optional[int], now: int) -> Optional[WinningOption]:
        if campaign_id is None:
            return None
        result = self.resolve(campaign_id, now)
        return result if result.has_winner else None

    def latest_network_fee(self, now: int) -> int:
        """Previous epoch's winning fee if any, else the cached fee. Never mutates the cache."""
        epoch = self.clock.require_epoch(now)
        if epoch == 0:
            return self.cache.network_fee_bps
        winner = self._previous_epoch_winner(self.registry.network_fee_campaign(epoch - 1), now)
        return winner.value if winner else self.cache.network_fee_bps

    def latest_brr(self, now: int) -> BRRData:
        """Previous epoch's winning BRR split if any, else the cached split."""
        epoch = self.clock.require_epoch(now)
        if epoch == 0:
            return self.cache.brr()
        winner = self._previous_epoch_winner(self.registry.brr_campaign(epoch - 1), now)
        return unpack_brr(winner.value) if winner else self.cache.brr()

    def pull_network_fee(self, now: int) -> int:
        fee = self.latest_network_fee(now)
        if fee != self.cache.network_fee_bps:
            logger.info(f"change network fee to {fee}")
        self.cache.network_fee_bps = fee
        return fee

    def pull_brr(self, now: int) -> BRRData:
        brr = self.latest_brr(now)
        if brr != self.cache.brr():
            logger.info(
                f"change brr data to rewardBps={brr.reward_bps} rebateBps={brr.rebate_bps}"
            )
        self.cache.reward_bps = brr.reward_bps
        self.cache.rebate_bps = brr.rebate_bps
        return brr

    def __repr__(self) -> str:
        return f"<WinningOptionResolver resolved={len(self._results)}>"
