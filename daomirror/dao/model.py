"""
Reference Model

Composition root of the mirror: one consistent state machine over the stake
ledger, campaign registry, vote tally and resolver. Every operation takes the
simulated time of the call; the epoch is derived from it.
"""

from typing import Any, Dict, List, Optional, Sequence

from ..logger import get_logger
from ..config import DaoConfig
from ..exceptions import InvariantViolationError
from .campaigns import Campaign, CampaignRegistry
from .encoding import BRRData
from .epoch import EpochClock
from .resolver import CachedParameters, WinningOption, WinningOptionResolver
from .staking import RetroactiveDelta, StakeLedger, normalize_address
from .tally import CampaignVoteData, VoteTally

logger = get_logger(__name__)


class ReferenceModel:
    """
    Off-chain mirror of the governance protocol.

    Operations raise a ``ModelError`` subclass on rejection and leave state
    untouched in that case.
    """

    def __init__(self, config: Optional[DaoConfig] = None):
        self.config = config or DaoConfig()
        self.clock = EpochClock(self.config.start_time, self.config.epoch_period)
        self.ledger = StakeLedger()
        self.registry = CampaignRegistry(self.clock, self.config.min_campaign_period)
        self.tally = VoteTally()
        self.cache = CachedParameters(
            network_fee_bps=self.config.network_fee_bps,
            reward_bps=self.config.reward_bps,
            rebate_bps=self.config.rebate_bps,
        )
        self.resolver = WinningOptionResolver(
            self.registry,
            self.tally,
            self.ledger.epoch_aggregate,
            self.clock,
            self.cache,
        )

    def epoch_at(self, now: int) -> int:
        return self.clock.require_epoch(now)

    # ── Staking operations ────────────────────────────────────────────

    def fund(self, staker: str, amount: int) -> None:
        self.ledger.fund(staker, amount)

    def deposit(self, staker: str, amount: int, now: int) -> None:
        self.ledger.deposit(staker, amount, self.epoch_at(now))

    def withdraw(self, staker: str, amount: int, now: int) -> Optional[RetroactiveDelta]:
        """Withdraw and, if current-epoch power was lost, adjust this epoch's votes."""
        epoch = self.epoch_at(now)
        delta = self.ledger.withdraw(staker, amount, epoch)
        if delta is not None:
            applied = self.tally.apply_withdrawal(
                delta, self.registry.campaigns_for_epoch(epoch), now
            )
            if applied:
                logger.debug(
                    f"handle withdrawal: {delta.representative} lost {delta.amount} "
                    f"in epoch {epoch}, {applied} removed from tallies"
                )
        return delta

    def delegate(self, staker: str, representative: str, now: int) -> None:
        self.ledger.delegate(staker, representative, self.epoch_at(now))

    # ── Campaign operations ───────────────────────────────────────────

    def submit_campaign(
        self,
        campaign_type: int,
        start_timestamp: int,
        end_timestamp: int,
        min_percentage_in_precision: int,
        c_in_precision: int,
        t_in_precision: int,
        options: Sequence[int],
        now: int,
        link: bytes = b"",
    ) -> int:
        campaign = self.registry.create(
            campaign_type,
            start_timestamp,
            end_timestamp,
            min_percentage_in_precision,
            c_in_precision,
            t_in_precision,
            options,
            now,
            link=link,
        )
        self.tally.open_campaign(campaign)
        return campaign.campaign_id

    def cancel_campaign(self, campaign_id: int, now: int) -> None:
        self.registry.cancel(campaign_id, now)

    def vote(self, campaign_id: int, option: int, staker: str, now: int) -> int:
        """Cast *staker*'s full voting power for *option*; returns the weight counted."""
        epoch = self.epoch_at(now)
        campaign = self.registry.get(campaign_id)
        voter = normalize_address(staker)
        weight = self.ledger.voting_power(voter, epoch)
        self.tally.cast_vote(campaign, option, voter, weight, epoch, now)
        return weight

    # ── Resolution and cache ──────────────────────────────────────────

    def resolve(self, campaign_id: int, now: int) -> WinningOption:
        return self.resolver.resolve(campaign_id, now)

    def resolve_epoch(self, epoch: int, now: int) -> Dict[int, WinningOption]:
        return self.resolver.resolve_epoch(epoch, now)

    def pull_network_fee(self, now: int) -> int:
        return self.resolver.pull_network_fee(now)

    def pull_brr(self, now: int) -> BRRData:
        return self.resolver.pull_brr(now)

    # ── Queries (mirroring the oracle) ────────────────────────────────

    def stake_of(self, staker: str, epoch: int) -> int:
        return self.ledger.stake_at(staker, epoch)

    def delegated_stake_of(self, staker: str, epoch: int) -> int:
        return self.ledger.delegated_stake_at(staker, epoch)

    def representative_of(self, staker: str, epoch: int) -> str:
        return self.ledger.representative_at(staker, epoch)

    def latest_stake(self, staker: str) -> int:
        return self.ledger.latest_stake(staker)

    def latest_representative(self, staker: str) -> str:
        return self.ledger.latest_representative(staker)

    def balance_of(self, staker: str) -> int:
        return self.ledger.balance_of(staker)

    def voting_power(self, staker: str, epoch: int) -> int:
        return self.ledger.voting_power(staker, epoch)

    def get_campaign(self, campaign_id: int) -> Campaign:
        return self.registry.get(campaign_id)

    def list_campaigns(self, epoch: int) -> List[int]:
        return self.registry.list_for_epoch(epoch)

    def winning_option(self, campaign_id: int, now: int) -> WinningOption:
        return self.resolver.resolve(campaign_id, now)

    def latest_network_fee(self, now: int) -> int:
        return self.resolver.latest_network_fee(now)

    def latest_brr(self, now: int) -> BRRData:
        return self.resolver.latest_brr(now)

    @property
    def cached_parameters(self) -> CachedParameters:
        return self.cache

    def total_epoch_voting_power(self, epoch: int) -> int:
        return self.ledger.epoch_aggregate(epoch)

    def total_epoch_points(self, epoch: int) -> int:
        return self.tally.epoch_vote_points(epoch)

    def campaign_vote_tally(self, campaign_id: int) -> CampaignVoteData:
        self.registry.get(campaign_id)
        return self.tally.vote_data(campaign_id)

    # ── Invariants ────────────────────────────────────────────────────

    def invariant_violations(self, epoch: int) -> List[str]:
        violations = []
        staked = sum(self.ledger.stake_at(s, epoch) for s in self.ledger.stakers())
        aggregate = self.ledger.epoch_aggregate(epoch)
        if staked != aggregate:
            violations.append(f"epoch {epoch} aggregate {aggregate} != sum of stakes {staked}")

        for campaign_id in self.tally.campaign_ids():
            data = self.tally.vote_data(campaign_id)
            if sum(data.vote_per_option) != data.total_votes:
                violations.append(
                    f"campaign #{campaign_id} option sum {sum(data.vote_per_option)} "
                    f"!= total {data.total_votes}"
                )
            if any(v < 0 for v in data.vote_per_option):
                violations.append(f"campaign #{campaign_id} has a negative option weight")

        if self.tally.epoch_vote_points(epoch) < 0:
            violations.append(f"epoch {epoch} vote points are negative")
        return violations

    def check_invariants(self, epoch: int) -> None:
        violations = self.invariant_violations(epoch)
        if violations:
            raise InvariantViolationError(violations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "stakers": self.ledger.to_dict(),
            "campaigns": {
                cid: self.registry.get(cid).to_dict() for cid in self.tally.campaign_ids()
            },
            "cache": self.cache.to_dict(),
        }

    def __repr__(self) -> str:
        return (
            f"<ReferenceModel stakers={len(self.ledger.stakers())} "
            f"campaigns={len(self.registry)}>"
        )
