"""
Operation Generators

Pick the next operation kind for an iteration and synthesize its parameters,
including deliberately invalid parameter sets so that rejection paths are
compared as well. Generators read state from the mirror; while a run is
passing, the mirror and the oracle agree on everything they look at.
"""

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from eth_utils import to_checksum_address

from ..config import DaoConfig
from ..constants import (
    BPS,
    DEFAULT_LINK,
    MAX_CAMPAIGN_OPTIONS,
    MAX_EPOCH_CAMPAIGNS,
    MAX_NETWORK_FEE_BPS,
    MIN_CAMPAIGN_OPTIONS,
    POWER_128,
    PRECISION,
)
from ..dao import CampaignType, ReferenceModel, pack_brr

# Share of generated actions that are deliberately invalid
INVALID_RATE = 0.15


class Operation(Enum):
    DEPOSIT = "deposit"
    DELEGATE = "delegate"
    WITHDRAW = "withdraw"
    CREATE_CAMPAIGN = "submitNewCampaign"
    CANCEL_CAMPAIGN = "cancelCampaign"
    VOTE = "vote"
    NO_ACTION = "noAction"


# Relative weights (deposit, delegate, withdraw, create, cancel, vote, no-op)
_WARMUP_WEIGHTS = (40, 15, 5, 20, 2, 15, 3)
_STEADY_WEIGHTS = (15, 15, 15, 15, 5, 30, 5)
_OPERATION_ORDER = (
    Operation.DEPOSIT,
    Operation.DELEGATE,
    Operation.WITHDRAW,
    Operation.CREATE_CAMPAIGN,
    Operation.CANCEL_CAMPAIGN,
    Operation.VOTE,
    Operation.NO_ACTION,
)


def next_operation(rng: random.Random, loop: int, num_runs: int) -> Operation:
    """Deposit-heavy during the first tenth of the run so there is stake to vote with."""
    weights = _WARMUP_WEIGHTS if loop < max(1, num_runs // 10) else _STEADY_WEIGHTS
    return rng.choices(_OPERATION_ORDER, weights=weights, k=1)[0]


def make_stakers(count: int) -> List[str]:
    """Deterministic checksummed staker addresses."""
    return [to_checksum_address(f"0x{i + 1:040x}") for i in range(count)]


@dataclass
class CampaignParams:
    campaign_type: int
    start_timestamp: int
    end_timestamp: int
    min_percentage_in_precision: int
    c_in_precision: int
    t_in_precision: int
    options: List[int]
    link: bytes = DEFAULT_LINK


@dataclass
class Action:
    """One generated operation and whether the protocol must accept it."""
    operation: Operation
    is_valid: bool
    msg: str
    staker: Optional[str] = None
    amount: int = 0
    representative: Optional[str] = None
    campaign_id: int = 0
    option: int = 0
    campaign: Optional[CampaignParams] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class StakingActionGenerator:
    """Deposit / withdraw / delegate parameter synthesis."""

    def __init__(self, rng: random.Random, view: ReferenceModel, stakers: Sequence[str]):
        self.rng = rng
        self.view = view
        self.stakers = list(stakers)

    def gen_deposit(self) -> Action:
        staker = self.rng.choice(self.stakers)
        balance = self.view.balance_of(staker)
        if balance == 0 or self.rng.random() < INVALID_RATE:
            if self.rng.random() < 0.5:
                return Action(Operation.DEPOSIT, False, "invalid deposit: zero amount", staker=staker)
            amount = balance + self.rng.randint(1, balance + 1)
            return Action(
                Operation.DEPOSIT, False, "invalid deposit: amount exceeds balance",
                staker=staker, amount=amount,
            )
        amount = self.rng.randint(1, max(1, balance // 4))
        return Action(Operation.DEPOSIT, True, "valid deposit", staker=staker, amount=amount)

    def gen_withdraw(self, now: int) -> Action:
        staker = self.rng.choice(self.stakers)
        current = self.view.stake_of(staker, self.view.epoch_at(now))
        if current == 0 or self.rng.random() < INVALID_RATE:
            if self.rng.random() < 0.5:
                return Action(Operation.WITHDRAW, False, "invalid withdraw: zero amount", staker=staker)
            amount = current + self.rng.randint(1, current + 1)
            return Action(
                Operation.WITHDRAW, False, "invalid withdraw: amount exceeds stake",
                staker=staker, amount=amount,
            )
        if self.rng.random() < 0.2:
            amount = current
        else:
            amount = self.rng.randint(1, current)
        return Action(Operation.WITHDRAW, True, "valid withdraw", staker=staker, amount=amount)

    def gen_delegate(self) -> Action:
        staker = self.rng.choice(self.stakers)
        representative = self.rng.choice(self.stakers)
        msg = "delegate to self" if staker == representative else "delegate to other staker"
        return Action(
            Operation.DELEGATE, True, msg, staker=staker, representative=representative,
        )


class DaoActionGenerator:
    """Campaign submission / cancellation / vote parameter synthesis."""

    def __init__(
        self,
        rng: random.Random,
        view: ReferenceModel,
        stakers: Sequence[str],
        config: DaoConfig,
    ):
        self.rng = rng
        self.view = view
        self.stakers = list(stakers)
        self.config = config
        self.clock = view.clock

    # ── Submission ────────────────────────────────────────────────────

    def _window(self, epoch: int, now: int):
        first = max(now, self.clock.epoch_start(epoch))
        last = self.clock.epoch_end(epoch)
        min_period = self.config.min_campaign_period
        if last - first < min_period:
            return None
        start = self.rng.randint(first, last - min_period)
        end = self.rng.randint(start + min_period, last)
        return start, end

    def _options(self, campaign_type: CampaignType, count: int) -> List[int]:
        options = []
        for _ in range(count):
            if campaign_type == CampaignType.GENERAL:
                options.append(self.rng.randint(1, 10 ** 6))
            elif campaign_type == CampaignType.NETWORK_FEE:
                options.append(self.rng.randint(0, MAX_NETWORK_FEE_BPS - 1))
            else:
                reward = self.rng.randint(0, BPS)
                rebate = self.rng.randint(0, BPS - reward)
                options.append(pack_brr(reward, rebate))
        return options

    def _formula(self):
        quorum = self.rng.choice([0, self.rng.randint(1, PRECISION // 5)])
        c = self.rng.choice([0, self.rng.randint(1, PRECISION // 2)])
        t = self.rng.choice([0, self.rng.randint(1, PRECISION)])
        return quorum, c, t

    def _open_slots(self, epoch: int) -> List[CampaignType]:
        registry = self.view.registry
        if len(registry.list_for_epoch(epoch)) >= MAX_EPOCH_CAMPAIGNS:
            return []
        types = [CampaignType.GENERAL]
        if registry.network_fee_campaign(epoch) is None:
            types.append(CampaignType.NETWORK_FEE)
        if registry.brr_campaign(epoch) is None:
            types.append(CampaignType.FEE_BRR)
        return types

    def gen_submit_campaign(self, now: int) -> Optional[Action]:
        current = self.view.epoch_at(now)
        if self.rng.random() < INVALID_RATE:
            return self._gen_invalid_campaign(now, current)

        candidates = []
        for epoch in (current, current + 1):
            window = self._window(epoch, now)
            types = self._open_slots(epoch)
            if window and types:
                candidates.append((window, types))
        if not candidates:
            return None

        (start, end), types = self.rng.choice(candidates)
        campaign_type = self.rng.choice(types)
        count = self.rng.randint(MIN_CAMPAIGN_OPTIONS, MAX_CAMPAIGN_OPTIONS)
        quorum, c, t = self._formula()
        params = CampaignParams(
            campaign_type=int(campaign_type),
            start_timestamp=start,
            end_timestamp=end,
            min_percentage_in_precision=quorum,
            c_in_precision=c,
            t_in_precision=t,
            options=self._options(campaign_type, count),
        )
        return Action(
            Operation.CREATE_CAMPAIGN, True,
            f"valid {campaign_type.name} campaign with {count} options",
            campaign=params,
        )

    def _gen_invalid_campaign(self, now: int, current: int) -> Action:
        min_period = self.config.min_campaign_period
        next_start = self.clock.epoch_start(current + 1)
        quorum, c, t = self._formula()
        params = CampaignParams(
            campaign_type=int(CampaignType.GENERAL),
            start_timestamp=next_start,
            end_timestamp=next_start + min_period,
            min_percentage_in_precision=quorum,
            c_in_precision=c,
            t_in_precision=t,
            options=self._options(CampaignType.GENERAL, MIN_CAMPAIGN_OPTIONS),
        )

        case = self.rng.randrange(9)
        if case == 0:
            msg = "validateParams: can't start in the past"
            params.start_timestamp = now - self.rng.randint(1, min_period)
            params.end_timestamp = params.start_timestamp + min_period
        elif case == 1:
            msg = "validateParams: campaign duration is low"
            params.end_timestamp = params.start_timestamp + min_period - 1
        elif case == 2:
            msg = "validateParams: start & end not same epoch"
            params.start_timestamp = max(now, next_start - min_period)
            params.end_timestamp = next_start + min_period
        elif case == 3:
            msg = "validateParams: only for current or next epochs"
            params.start_timestamp = self.clock.epoch_start(current + 2)
            params.end_timestamp = params.start_timestamp + min_period
        elif case == 4:
            msg = "validateParams: invalid number of options"
            count = self.rng.choice([0, 1, MAX_CAMPAIGN_OPTIONS + 1])
            params.options = self._options(CampaignType.GENERAL, count)
        elif case == 5:
            msg = "validateParams: network fee must be smaller then BPS / 2"
            params.campaign_type = int(CampaignType.NETWORK_FEE)
            params.options = [self.rng.randint(MAX_NETWORK_FEE_BPS, BPS), 10]
        elif case == 6:
            msg = "validateParams: rebate + reward can't be bigger than BPS"
            params.campaign_type = int(CampaignType.FEE_BRR)
            reward = self.rng.randint(1, BPS)
            rebate = BPS - reward + 1
            params.options = [rebate * POWER_128 + reward, pack_brr(0, 0)]
        elif case == 7:
            msg = "validateParams: min percentage is high"
            params.min_percentage_in_precision = PRECISION + self.rng.randint(1, PRECISION)
        else:
            msg = "validateParams: c or t is too big"
            if self.rng.random() < 0.5:
                params.c_in_precision = POWER_128
            else:
                params.t_in_precision = POWER_128

        return Action(Operation.CREATE_CAMPAIGN, False, msg, campaign=params)

    # ── Cancellation ──────────────────────────────────────────────────

    def gen_cancel_campaign(self, now: int) -> Optional[Action]:
        current = self.view.epoch_at(now)
        registry = self.view.registry
        candidates = registry.campaigns_for_epoch(current) + registry.campaigns_for_epoch(current + 1)
        if not candidates:
            return None

        if self.rng.random() < INVALID_RATE:
            unknown = registry.next_campaign_id + self.rng.randint(0, 5)
            return Action(
                Operation.CANCEL_CAMPAIGN, False, "cancelCampaign: campaignID doesn't exist",
                campaign_id=unknown,
            )

        campaign = self.rng.choice(candidates)
        if now < campaign.start_timestamp:
            return Action(
                Operation.CANCEL_CAMPAIGN, True, "valid cancel",
                campaign_id=campaign.campaign_id,
            )
        return Action(
            Operation.CANCEL_CAMPAIGN, False, "cancelCampaign: campaign already started",
            campaign_id=campaign.campaign_id,
        )

    # ── Voting ────────────────────────────────────────────────────────

    def gen_vote(self, now: int) -> Optional[Action]:
        current = self.view.epoch_at(now)
        active = [c for c in self.view.registry.campaigns_for_epoch(current) if c.is_active(now)]
        if not active:
            return None

        campaign = self.rng.choice(active)
        cid = campaign.campaign_id
        voted = [s for s in self.stakers if self.view.tally.has_voted(cid, s, current)]
        fresh = [s for s in self.stakers if s not in voted]

        if not fresh or self.rng.random() < INVALID_RATE:
            case = self.rng.randrange(3) if voted else self.rng.randrange(2)
            staker = self.rng.choice(fresh or self.stakers)
            if case == 0:
                option = self.rng.choice([0, campaign.option_count + 1])
                return Action(
                    Operation.VOTE, False, "vote: invalid option",
                    staker=staker, campaign_id=cid, option=option,
                )
            if case == 1:
                unknown = self.view.registry.next_campaign_id + self.rng.randint(0, 5)
                return Action(
                    Operation.VOTE, False, "vote: campaign doesn't exist",
                    staker=staker, campaign_id=unknown, option=1,
                )
            return Action(
                Operation.VOTE, False, "vote: already voted",
                staker=self.rng.choice(voted), campaign_id=cid,
                option=self.rng.randint(1, campaign.option_count),
            )

        return Action(
            Operation.VOTE, True, "valid vote",
            staker=self.rng.choice(fresh), campaign_id=cid,
            option=self.rng.randint(1, campaign.option_count),
        )
