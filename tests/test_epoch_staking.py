"""
Epoch clock and stake ledger tests

Coverage:
  - epoch_of / EpochClock arithmetic and the pre-genesis sentinel
  - Timeline backward-nearest lookup and current-epoch adjustment
  - deposit / delegate take effect next epoch
  - withdraw cuts current-epoch stake and reports a retroactive delta
  - epoch aggregate equals the sum of stakes
"""

import sys
import os

import pytest
from eth_utils import to_checksum_address

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from daomirror.dao.epoch import PRE_GENESIS, EpochClock, epoch_of
from daomirror.dao.staking import (
    RetroactiveDelta,
    StakeLedger,
    Timeline,
    normalize_address,
)
from daomirror.exceptions import (
    ConfigurationError,
    InsufficientStakeError,
    InvalidAmountError,
    InvalidStakerError,
    PreGenesisTimeError,
)


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ALICE = to_checksum_address("0x" + "a1" * 20)
BOB = to_checksum_address("0x" + "b2" * 20)
CAROL = to_checksum_address("0x" + "c3" * 20)


def funded_ledger(*stakers, amount=10_000):
    ledger = StakeLedger()
    for staker in stakers:
        ledger.fund(staker, amount)
    return ledger


# ══════════════════════════════════════════════════════════════════════
#  EPOCH CLOCK
# ══════════════════════════════════════════════════════════════════════

class TestEpochOf:

    def test_first_epoch(self):
        assert epoch_of(0, 0, 500) == 0
        assert epoch_of(499, 0, 500) == 0

    def test_boundary(self):
        assert epoch_of(500, 0, 500) == 1
        assert epoch_of(1234, 100, 500) == 2

    def test_pre_genesis(self):
        assert epoch_of(99, 100, 500) is PRE_GENESIS

    def test_zero_period_raises(self):
        with pytest.raises(ConfigurationError, match="positive"):
            epoch_of(10, 0, 0)


class TestEpochClock:

    def test_epoch_window(self):
        clock = EpochClock(start_time=100, epoch_period=500)
        assert clock.epoch_start(0) == 100
        assert clock.epoch_end(0) == 599
        assert clock.epoch_start(1) == 600
        assert clock.epoch_of(clock.epoch_end(3)) == 3

    def test_require_epoch_pre_genesis(self):
        clock = EpochClock(start_time=100, epoch_period=500)
        with pytest.raises(PreGenesisTimeError, match="before genesis"):
            clock.require_epoch(50)

    def test_invalid_period(self):
        with pytest.raises(ConfigurationError):
            EpochClock(start_time=0, epoch_period=-1)


# ══════════════════════════════════════════════════════════════════════
#  TIMELINE
# ══════════════════════════════════════════════════════════════════════

class TestTimeline:

    def test_default_before_first_entry(self):
        t = Timeline()
        t.set(2, 100)
        assert t.at(0) == 0
        assert t.at(1) == 0

    def test_backward_nearest(self):
        t = Timeline()
        t.set(2, 100)
        t.set(5, 40)
        assert t.at(2) == 100
        assert t.at(4) == 100
        assert t.at(5) == 40
        assert t.at(99) == 40
        assert t.latest() == 40

    def test_adjust_current_keeps_future(self):
        t = Timeline()
        t.set(2, 100)
        t.adjust_current(2, -40)
        assert t.at(2) == 60
        assert t.at(3) == 100
        assert t.at(10) == 100

    def test_non_numeric_default(self):
        t = Timeline(default=ALICE)
        assert t.at(7) == ALICE
        t.set(3, BOB)
        assert t.at(2) == ALICE
        assert t.at(3) == BOB


# ══════════════════════════════════════════════════════════════════════
#  STAKE LEDGER
# ══════════════════════════════════════════════════════════════════════

class TestAddresses:

    def test_normalize_lowercase(self):
        assert normalize_address(ALICE.lower()) == ALICE

    def test_invalid_address_raises(self):
        with pytest.raises(InvalidStakerError):
            normalize_address("not-an-address")

    def test_deposit_invalid_address_raises(self):
        ledger = StakeLedger()
        with pytest.raises(InvalidStakerError):
            ledger.deposit("0x1234", 10, 0)


class TestDeposit:

    def test_deposit_visible_next_epoch(self):
        ledger = funded_ledger(ALICE)
        ledger.deposit(ALICE, 1000, 0)
        assert ledger.stake_at(ALICE, 0) == 0
        assert ledger.stake_at(ALICE, 1) == 1000
        assert ledger.stake_at(ALICE, 7) == 1000
        assert ledger.balance_of(ALICE) == 9000

    def test_deposit_updates_aggregate(self):
        ledger = funded_ledger(ALICE, BOB)
        ledger.deposit(ALICE, 1000, 0)
        ledger.deposit(BOB, 500, 0)
        assert ledger.epoch_aggregate(0) == 0
        assert ledger.epoch_aggregate(1) == 1500

    def test_deposit_zero_raises(self):
        ledger = funded_ledger(ALICE)
        with pytest.raises(InvalidAmountError, match="positive"):
            ledger.deposit(ALICE, 0, 0)

    def test_deposit_exceeds_balance_raises(self):
        ledger = funded_ledger(ALICE, amount=100)
        with pytest.raises(InvalidAmountError, match="exceeds balance"):
            ledger.deposit(ALICE, 101, 0)
        assert ledger.balance_of(ALICE) == 100
        assert ledger.stake_at(ALICE, 1) == 0

    def test_rejected_deposit_by_unknown_staker_leaves_no_account(self):
        ledger = funded_ledger(ALICE)
        with pytest.raises(InvalidAmountError, match="exceeds balance"):
            ledger.deposit(BOB, 10, 0)
        assert ledger.stakers() == [ALICE]

    def test_deposit_to_delegated_staker(self):
        ledger = funded_ledger(ALICE)
        ledger.delegate(ALICE, BOB, 0)
        ledger.deposit(ALICE, 1000, 0)
        assert ledger.delegated_stake_at(BOB, 1) == 1000
        assert ledger.voting_power(BOB, 1) == 1000
        assert ledger.voting_power(ALICE, 1) == 0


class TestDelegate:

    def test_delegate_effective_next_epoch(self):
        ledger = funded_ledger(ALICE)
        ledger.deposit(ALICE, 1000, 0)
        ledger.delegate(ALICE, BOB, 1)
        assert ledger.representative_at(ALICE, 1) == ALICE
        assert ledger.representative_at(ALICE, 2) == BOB
        assert ledger.delegated_stake_at(BOB, 1) == 0
        assert ledger.delegated_stake_at(BOB, 2) == 1000

    def test_voting_power_moves_with_delegation(self):
        ledger = funded_ledger(ALICE, BOB)
        ledger.deposit(ALICE, 1000, 0)
        ledger.deposit(BOB, 200, 0)
        ledger.delegate(ALICE, BOB, 1)
        assert ledger.voting_power(ALICE, 1) == 1000
        assert ledger.voting_power(BOB, 1) == 200
        assert ledger.voting_power(ALICE, 2) == 0
        assert ledger.voting_power(BOB, 2) == 1200

    def test_redelegate(self):
        ledger = funded_ledger(ALICE)
        ledger.deposit(ALICE, 1000, 0)
        ledger.delegate(ALICE, BOB, 1)
        ledger.delegate(ALICE, CAROL, 2)
        assert ledger.delegated_stake_at(BOB, 2) == 1000
        assert ledger.delegated_stake_at(BOB, 3) == 0
        assert ledger.delegated_stake_at(CAROL, 3) == 1000

    def test_delegate_back_to_self(self):
        ledger = funded_ledger(ALICE)
        ledger.deposit(ALICE, 1000, 0)
        ledger.delegate(ALICE, BOB, 1)
        ledger.delegate(ALICE, ALICE, 2)
        assert ledger.delegated_stake_at(BOB, 3) == 0
        assert ledger.voting_power(ALICE, 3) == 1000

    def test_delegate_same_representative_is_noop(self):
        ledger = funded_ledger(ALICE)
        ledger.deposit(ALICE, 1000, 0)
        ledger.delegate(ALICE, BOB, 0)
        ledger.delegate(ALICE, BOB, 0)
        assert ledger.delegated_stake_at(BOB, 1) == 1000


class TestWithdraw:

    def test_withdraw_reduces_current_epoch(self):
        ledger = funded_ledger(ALICE)
        ledger.deposit(ALICE, 1000, 0)
        delta = ledger.withdraw(ALICE, 300, 1)
        assert delta == RetroactiveDelta(representative=ALICE, amount=300, epoch=1)
        assert ledger.stake_at(ALICE, 1) == 700
        assert ledger.stake_at(ALICE, 2) == 700
        assert ledger.epoch_aggregate(1) == 700
        assert ledger.balance_of(ALICE) == 9300

    def test_withdraw_covered_by_same_epoch_deposit(self):
        ledger = funded_ledger(ALICE)
        ledger.deposit(ALICE, 1000, 0)
        ledger.deposit(ALICE, 500, 1)
        delta = ledger.withdraw(ALICE, 400, 1)
        assert delta is None
        assert ledger.stake_at(ALICE, 1) == 1000
        assert ledger.stake_at(ALICE, 2) == 1100

    def test_withdraw_partly_covered(self):
        ledger = funded_ledger(ALICE)
        ledger.deposit(ALICE, 1000, 0)
        ledger.deposit(ALICE, 500, 1)
        delta = ledger.withdraw(ALICE, 800, 1)
        assert delta.amount == 300
        assert ledger.stake_at(ALICE, 1) == 700
        assert ledger.stake_at(ALICE, 2) == 700

    def test_withdraw_exceeds_stake_raises(self):
        ledger = funded_ledger(ALICE)
        ledger.deposit(ALICE, 1000, 0)
        with pytest.raises(InsufficientStakeError) as exc_info:
            ledger.withdraw(ALICE, 1001, 1)
        assert exc_info.value.requested == 1001
        assert exc_info.value.available == 1000

    def test_same_epoch_deposit_not_withdrawable(self):
        ledger = funded_ledger(ALICE)
        ledger.deposit(ALICE, 1000, 0)
        with pytest.raises(InsufficientStakeError) as exc_info:
            ledger.withdraw(ALICE, 500, 0)
        assert exc_info.value.available == 0
        assert ledger.stake_at(ALICE, 1) == 1000
        assert ledger.balance_of(ALICE) == 9000

    def test_withdraw_limited_to_current_epoch_stake(self):
        ledger = funded_ledger(ALICE)
        ledger.deposit(ALICE, 1000, 0)
        ledger.deposit(ALICE, 500, 1)
        with pytest.raises(InsufficientStakeError) as exc_info:
            ledger.withdraw(ALICE, 1001, 1)
        assert exc_info.value.available == 1000
        assert ledger.stake_at(ALICE, 2) == 1500

    def test_rejected_withdraw_by_unknown_staker_leaves_no_account(self):
        ledger = funded_ledger(ALICE)
        with pytest.raises(InsufficientStakeError):
            ledger.withdraw(BOB, 10, 0)
        assert ledger.stakers() == [ALICE]

    def test_withdraw_zero_raises(self):
        ledger = funded_ledger(ALICE)
        with pytest.raises(InvalidAmountError):
            ledger.withdraw(ALICE, 0, 0)

    def test_withdraw_delegated_stake_hits_representative(self):
        ledger = funded_ledger(ALICE)
        ledger.delegate(ALICE, BOB, 0)
        ledger.deposit(ALICE, 1000, 0)
        delta = ledger.withdraw(ALICE, 200, 1)
        assert delta == RetroactiveDelta(representative=BOB, amount=200, epoch=1)
        assert ledger.delegated_stake_at(BOB, 1) == 800
        assert ledger.delegated_stake_at(BOB, 2) == 800
        assert ledger.voting_power(BOB, 1) == 800

    def test_withdraw_after_redelegation(self):
        ledger = funded_ledger(ALICE)
        ledger.deposit(ALICE, 1000, 0)
        ledger.delegate(ALICE, BOB, 1)
        delta = ledger.withdraw(ALICE, 100, 1)
        # ALICE stays self-represented this epoch; BOB takes over next epoch
        assert delta.representative == ALICE
        assert ledger.voting_power(ALICE, 1) == 900
        assert ledger.delegated_stake_at(BOB, 2) == 900

    def test_aggregate_equals_sum_of_stakes(self):
        ledger = funded_ledger(ALICE, BOB, CAROL)
        ledger.deposit(ALICE, 1000, 0)
        ledger.deposit(BOB, 2000, 0)
        ledger.delegate(CAROL, ALICE, 0)
        ledger.deposit(CAROL, 700, 1)
        ledger.withdraw(BOB, 1500, 1)
        ledger.withdraw(ALICE, 10, 2)
        for epoch in range(4):
            staked = sum(ledger.stake_at(s, epoch) for s in ledger.stakers())
            assert ledger.epoch_aggregate(epoch) == staked
