"""
Winning option resolution and parameter cache tests

Coverage:
  - quorum boundary, strict maximum and tie rule
  - c/t parameters stay out of resolution
  - BRR packing
  - idempotent resolution and cancelled / unfinished campaigns
  - latest_* views versus explicit cache pulls
"""

import sys
import os

import pytest
from eth_utils import to_checksum_address

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from daomirror.config import DaoConfig
from daomirror.constants import BPS, POWER_128, PRECISION
from daomirror.dao import (
    BRRData,
    Campaign,
    CampaignType,
    ReferenceModel,
    compute_winning_option,
    pack_brr,
    unpack_brr,
)
from daomirror.exceptions import (
    CampaignNotActiveError,
    CampaignNotEndedError,
    InvalidOptionsError,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = to_checksum_address("0x" + "a1" * 20)
BOB = to_checksum_address("0x" + "b2" * 20)
CAROL = to_checksum_address("0x" + "c3" * 20)

HALF = PRECISION // 2


def make_campaign(options=(10, 20, 30), min_pct=HALF, c=0, t=0, ctype=CampaignType.GENERAL):
    return Campaign(
        campaign_id=1,
        campaign_type=ctype,
        start_timestamp=0,
        end_timestamp=100,
        epoch=0,
        min_percentage_in_precision=min_pct,
        c_in_precision=c,
        t_in_precision=t,
        options=tuple(options),
    )


def make_model():
    """ALICE 1000, BOB 3000, CAROL 0 staked from epoch 1."""
    model = ReferenceModel(DaoConfig(start_time=0, epoch_period=500, min_campaign_period=50))
    for staker in (ALICE, BOB, CAROL):
        model.fund(staker, 10_000)
    model.deposit(ALICE, 1000, now=10)
    model.deposit(BOB, 3000, now=10)
    return model


# ══════════════════════════════════════════════════════════════════════
#  PURE RESOLUTION
# ══════════════════════════════════════════════════════════════════════

class TestQuorum:

    def test_below_quorum_no_winner(self):
        campaign = make_campaign()
        assert compute_winning_option(campaign, 499, [499, 0, 0], 1000) == (0, 0)

    def test_at_quorum_uses_max_rule(self):
        campaign = make_campaign()
        assert compute_winning_option(campaign, 500, [100, 400, 0], 1000) == (2, 20)

    def test_zero_voting_power_no_winner(self):
        campaign = make_campaign(min_pct=0)
        assert compute_winning_option(campaign, 0, [0, 0, 0], 0) == (0, 0)

    def test_zero_quorum(self):
        campaign = make_campaign(min_pct=0)
        assert compute_winning_option(campaign, 1, [0, 0, 1], 1000) == (3, 30)


class TestMaximum:

    def test_tie_no_winner(self):
        campaign = make_campaign()
        assert compute_winning_option(campaign, 700, [300, 300, 100], 1000) == (0, 0)

    def test_tie_below_max_does_not_matter(self):
        campaign = make_campaign()
        assert compute_winning_option(campaign, 700, [100, 500, 100], 1000) == (2, 20)

    def test_no_votes_no_winner(self):
        campaign = make_campaign(min_pct=0)
        assert compute_winning_option(campaign, 0, [0, 0, 0], 1000) == (0, 0)


class TestFormulaParameters:

    def test_c_does_not_block_strict_maximum(self):
        campaign = make_campaign(options=(7, 9), c=6 * PRECISION // 10, t=0)
        assert compute_winning_option(campaign, 1000, [550, 450], 1000) == (1, 7)

    def test_c_and_t_do_not_change_winner(self):
        plain = make_campaign(min_pct=0)
        weighted = make_campaign(min_pct=0, c=PRECISION // 10, t=PRECISION)
        votes = [340, 330, 330]
        assert compute_winning_option(plain, 1000, votes, 1000) == (1, 10)
        assert compute_winning_option(weighted, 1000, votes, 1000) == (1, 10)

    def test_c_and_t_do_not_rescue_tie(self):
        campaign = make_campaign(min_pct=0, c=PRECISION, t=PRECISION)
        assert compute_winning_option(campaign, 600, [300, 300, 0], 1000) == (0, 0)


BRR_SPLITS = [
    (0, 0),
    (0, BPS),
    (BPS, 0),
    (1, 1),
    (3000, 2000),
    (5000, 5000),
    (BPS - 1, 1),
    (1234, 8765),
    (9999, 0),
]


class TestBRREncoding:

    @pytest.mark.parametrize("reward,rebate", BRR_SPLITS)
    def test_pack_unpack(self, reward, rebate):
        brr = unpack_brr(pack_brr(reward, rebate))
        assert brr.reward_bps == reward
        assert brr.rebate_bps == rebate
        assert brr.burn_bps == BPS - reward - rebate
        assert pack_brr(brr.reward_bps, brr.rebate_bps) == pack_brr(reward, rebate)

    def test_pack(self):
        assert pack_brr(3000, 2000) == 2000 * 2 ** 128 + 3000

    def test_unpack(self):
        brr = unpack_brr(2000 * POWER_128 + 3000)
        assert brr == BRRData(reward_bps=3000, rebate_bps=2000)
        assert brr.burn_bps == 5000

    def test_full_reward(self):
        brr = unpack_brr(pack_brr(BPS, 0))
        assert brr.reward_bps == BPS
        assert brr.burn_bps == 0

    def test_pack_over_bps_raises(self):
        with pytest.raises(InvalidOptionsError, match="exceeds"):
            pack_brr(6000, 4001)

    def test_unpack_over_bps_raises(self):
        with pytest.raises(InvalidOptionsError, match="BPS"):
            unpack_brr(1 * POWER_128 + BPS)

    def test_unpack_out_of_range_raises(self):
        with pytest.raises(InvalidOptionsError, match="uint256"):
            unpack_brr(2 ** 256)


# ══════════════════════════════════════════════════════════════════════
#  RESOLVER THROUGH THE MODEL
# ══════════════════════════════════════════════════════════════════════

class TestResolve:

    def test_resolve_network_fee(self):
        model = make_model()
        cid = model.submit_campaign(CampaignType.NETWORK_FEE, 510, 900, 0, 0, 0, [50, 60, 70], now=20)
        model.vote(cid, 2, ALICE, now=600)
        model.vote(cid, 3, BOB, now=600)
        result = model.winning_option(cid, now=1000)
        assert result.as_tuple() == (3, 70, CampaignType.NETWORK_FEE)
        assert result.has_winner

    def test_resolve_is_idempotent(self):
        model = make_model()
        cid = model.submit_campaign(CampaignType.GENERAL, 510, 900, HALF, 0, 0, [1, 2], now=20)
        model.vote(cid, 1, BOB, now=600)
        first = model.resolve(cid, now=950)
        # Stakes moving after resolution cannot change the stored result
        model.withdraw(BOB, 3000, now=1200)
        second = model.resolve(cid, now=1300)
        assert first == second
        assert model.get_campaign(cid).resolved

    def test_resolve_before_end_raises(self):
        model = make_model()
        cid = model.submit_campaign(CampaignType.GENERAL, 510, 900, 0, 0, 0, [1, 2], now=20)
        with pytest.raises(CampaignNotEndedError):
            model.resolve(cid, now=899)

    def test_resolve_cancelled_raises(self):
        model = make_model()
        cid = model.submit_campaign(CampaignType.GENERAL, 510, 900, 0, 0, 0, [1, 2], now=20)
        model.cancel_campaign(cid, now=30)
        with pytest.raises(CampaignNotActiveError):
            model.resolve(cid, now=1000)

    def test_resolve_epoch(self):
        model = make_model()
        a = model.submit_campaign(CampaignType.GENERAL, 510, 900, 0, 0, 0, [1, 2], now=20)
        b = model.submit_campaign(CampaignType.GENERAL, 510, 700, 0, 0, 0, [5, 6], now=20)
        model.vote(a, 2, ALICE, now=600)
        results = model.resolve_epoch(1, now=1000)
        assert set(results) == {a, b}
        assert results[a].value == 2
        assert not results[b].has_winner


class TestParameterCache:

    def test_network_fee_lags_until_pull(self):
        model = make_model()
        cid = model.submit_campaign(CampaignType.NETWORK_FEE, 510, 900, 0, 0, 0, [50, 60], now=20)
        model.vote(cid, 2, BOB, now=600)

        # Same epoch as the campaign: previous epoch has no campaign
        assert model.latest_network_fee(now=950) == 25
        # Next epoch: the winner shows through, the cache is untouched
        assert model.latest_network_fee(now=1000) == 60
        assert model.cached_parameters.network_fee_bps == 25

        assert model.pull_network_fee(now=1000) == 60
        assert model.cached_parameters.network_fee_bps == 60
        # Epochs without a campaign fall back to the pulled value
        assert model.latest_network_fee(now=1600) == 60

    def test_no_winner_keeps_cache(self):
        model = make_model()
        cid = model.submit_campaign(CampaignType.NETWORK_FEE, 510, 900, HALF, 0, 0, [50, 60], now=20)
        # 1000 of 4000 voting power is below the 50% quorum
        model.vote(cid, 1, ALICE, now=600)
        assert not model.winning_option(cid, now=1000).has_winner
        assert model.latest_network_fee(now=1000) == 25
        assert model.pull_network_fee(now=1000) == 25

    def test_brr_pull(self):
        model = make_model()
        options = [pack_brr(4000, 1000), pack_brr(1000, 4000)]
        cid = model.submit_campaign(CampaignType.FEE_BRR, 510, 900, 0, 0, 0, options, now=20)
        model.vote(cid, 2, BOB, now=600)

        assert model.latest_brr(now=950) == BRRData(3000, 2000)
        latest = model.latest_brr(now=1000)
        assert (latest.reward_bps, latest.rebate_bps, latest.burn_bps) == (1000, 4000, 5000)
        assert model.cached_parameters.reward_bps == 3000

        model.pull_brr(now=1000)
        assert model.cached_parameters.brr() == BRRData(1000, 4000)

