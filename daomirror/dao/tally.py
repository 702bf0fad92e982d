"""
Vote Tally

Per-campaign vote counters with an explicit attribution record per
(campaign, representative, epoch). A retroactive delta is applied against that
record, so it always hits the option the representative actually chose and
can never take a vote below zero.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..logger import get_logger
from ..exceptions import (
    CampaignNotActiveError,
    DuplicateVoteError,
    InvalidVoteOptionError,
)
from .campaigns import Campaign
from .staking import RetroactiveDelta

logger = get_logger(__name__)


@dataclass
class CampaignVoteData:
    """Total and per-option weight; ``vote_per_option[i]`` is option ``i + 1``."""
    total_votes: int = 0
    vote_per_option: List[int] = field(default_factory=list)

    def copy(self) -> "CampaignVoteData":
        return CampaignVoteData(self.total_votes, list(self.vote_per_option))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalVoteCount": str(self.total_votes),
            "voteCounts": [str(v) for v in self.vote_per_option],
        }


@dataclass
class VoteAttribution:
    """Which option a representative chose and how much weight is still counted."""
    campaign_id: int
    representative: str
    epoch: int
    option: int
    weight: int


class VoteTally:
    """
    Vote counters, attributions and epoch vote points.

    Epoch vote points are the sum of the weights of every vote cast in an
    epoch; a withdrawal delta removes ``number_of_votes * delta`` from them.
    """

    def __init__(self):
        self._vote_data: Dict[int, CampaignVoteData] = {}
        self._attributions: Dict[Tuple[int, str, int], VoteAttribution] = {}
        self._number_votes: Dict[Tuple[str, int], int] = {}
        self._epoch_points: Dict[int, int] = {}

    def open_campaign(self, campaign: Campaign) -> None:
        self._vote_data[campaign.campaign_id] = CampaignVoteData(
            total_votes=0, vote_per_option=[0] * campaign.option_count
        )

    def _data(self, campaign: Campaign) -> CampaignVoteData:
        if campaign.campaign_id not in self._vote_data:
            self.open_campaign(campaign)
        return self._vote_data[campaign.campaign_id]

    # ── Casting ───────────────────────────────────────────────────────

    def cast_vote(
        self,
        campaign: Campaign,
        option: int,
        representative: str,
        weight: int,
        epoch: int,
        now: int,
    ) -> VoteAttribution:
        if not campaign.is_active(now):
            raise CampaignNotActiveError(
                f"vote: campaign #{campaign.campaign_id} not active at {now}"
            )
        if not 1 <= option <= campaign.option_count:
            raise InvalidVoteOptionError(
                f"vote: invalid option {option} for campaign #{campaign.campaign_id}"
            )
        key = (campaign.campaign_id, representative, epoch)
        if key in self._attributions:
            raise DuplicateVoteError(
                f"{representative} has already voted on campaign #{campaign.campaign_id}"
            )

        data = self._data(campaign)
        data.total_votes += weight
        data.vote_per_option[option - 1] += weight

        attribution = VoteAttribution(
            campaign_id=campaign.campaign_id,
            representative=representative,
            epoch=epoch,
            option=option,
            weight=weight,
        )
        self._attributions[key] = attribution
        self._number_votes[(representative, epoch)] = self.number_of_votes(representative, epoch) + 1
        self._epoch_points[epoch] = self.epoch_vote_points(epoch) + weight

        logger.info(
            f"Vote: {representative} → option {option} on campaign #{campaign.campaign_id} "
            f"(weight={weight})"
        )
        return attribution

    # ── Retroactive adjustment ────────────────────────────────────────

    def apply_retroactive_delta(
        self,
        campaign: Campaign,
        representative: str,
        epoch: int,
        delta: int,
        now: int,
    ) -> int:
        """Remove up to *delta* from the representative's counted vote; returns the amount removed."""
        attribution = self._attributions.get((campaign.campaign_id, representative, epoch))
        if attribution is None or campaign.has_ended(now):
            return 0

        applied = min(delta, attribution.weight)
        if applied <= 0:
            return 0
        data = self._data(campaign)
        data.total_votes -= applied
        data.vote_per_option[attribution.option - 1] -= applied
        attribution.weight -= applied

        logger.debug(
            f"Retroactive delta: campaign #{campaign.campaign_id}, option "
            f"{attribution.option} -{applied} ({representative})"
        )
        return applied

    def apply_withdrawal(self, delta: RetroactiveDelta, campaigns: Iterable[Campaign], now: int) -> int:
        """Apply *delta* to the epoch points and to every campaign in *campaigns*."""
        votes = self.number_of_votes(delta.representative, delta.epoch)
        if votes == 0:
            return 0
        self._epoch_points[delta.epoch] = self.epoch_vote_points(delta.epoch) - votes * delta.amount

        applied = 0
        for campaign in campaigns:
            applied += self.apply_retroactive_delta(
                campaign, delta.representative, delta.epoch, delta.amount, now
            )
        return applied

    # ── Queries ───────────────────────────────────────────────────────

    def vote_data(self, campaign_id: int) -> CampaignVoteData:
        data = self._vote_data.get(campaign_id)
        return data.copy() if data else CampaignVoteData()

    def total(self, campaign_id: int) -> int:
        return self.vote_data(campaign_id).total_votes

    def option_weights(self, campaign_id: int) -> List[int]:
        return self.vote_data(campaign_id).vote_per_option

    def attribution(self, campaign_id: int, representative: str, epoch: int) -> Optional[VoteAttribution]:
        return self._attributions.get((campaign_id, representative, epoch))

    def has_voted(self, campaign_id: int, representative: str, epoch: int) -> bool:
        return (campaign_id, representative, epoch) in self._attributions

    def number_of_votes(self, representative: str, epoch: int) -> int:
        return self._number_votes.get((representative, epoch), 0)

    def epoch_vote_points(self, epoch: int) -> int:
        return self._epoch_points.get(epoch, 0)

    def campaign_ids(self) -> List[int]:
        return list(self._vote_data)

    def __repr__(self) -> str:
        return f"<VoteTally campaigns={len(self._vote_data)} votes={len(self._attributions)}>"
