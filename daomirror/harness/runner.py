"""
Differential Runner

Drives the oracle and the mirror through the same randomized operation
sequence and diffs every observable after each step:

    per iteration
        advance simulated time by ``time_step``
        if the epoch changed:
            resolve and compare every campaign of the closing epoch,
            compare and pull the fee / BRR caches, then continue
        otherwise:
            generate an operation, apply it to the oracle, apply it to the
            mirror, compare acceptance, then compare the touched views

Any disagreement raises ``ModelDriftError`` (acceptance) or ``MismatchError``
(values) and stops the run.
"""

import random
from typing import Any, Callable, Optional, Sequence, Tuple

from ..logger import get_logger
from ..config import SimulationConfig
from ..dao import CampaignType, ReferenceModel
from ..exceptions import MismatchError, ModelDriftError, ModelError, OracleRejection
from .generators import (
    Action,
    DaoActionGenerator,
    Operation,
    StakingActionGenerator,
    make_stakers,
    next_operation,
)
from .oracle import GovernanceOracle
from .score import Scoreboard

logger = get_logger(__name__)


class DifferentialRunner:
    """Randomized differential test of a ``GovernanceOracle`` against a ``ReferenceModel``."""

    def __init__(
        self,
        oracle: GovernanceOracle,
        config: Optional[SimulationConfig] = None,
        model: Optional[ReferenceModel] = None,
        stakers: Optional[Sequence[str]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config or SimulationConfig()
        self.config.validate()
        self.oracle = oracle
        self.model = model or ReferenceModel(self.config.dao)
        self.stakers = list(stakers) if stakers else make_stakers(self.config.harness.num_stakers)
        self.rng = rng or random.Random(self.config.harness.seed)
        self.staking = StakingActionGenerator(self.rng, self.model, self.stakers)
        self.dao = DaoActionGenerator(self.rng, self.model, self.stakers, self.config.dao)
        self.score = Scoreboard()
        self.now = self.config.dao.start_time
        self.current_epoch = self.model.epoch_at(self.now)
        self._funded = False
        self._handlers = {
            Operation.DEPOSIT: self.deposit,
            Operation.DELEGATE: self.delegate,
            Operation.WITHDRAW: self.withdraw,
            Operation.CREATE_CAMPAIGN: self.submit_campaign,
            Operation.CANCEL_CAMPAIGN: self.cancel_campaign,
            Operation.VOTE: self.vote,
            Operation.NO_ACTION: self.no_action,
        }

    # ── Comparison helpers ────────────────────────────────────────────

    @staticmethod
    def assert_equal(what: str, expected: Any, actual: Any) -> None:
        if expected != actual:
            logger.error(f"MISMATCH {what}: oracle={expected!r} mirror={actual!r}")
            raise MismatchError(what, expected, actual)

    def _apply(
        self,
        action: Action,
        oracle_fn: Callable[[], Any],
        model_fn: Callable[[], Any],
    ) -> Tuple[Any, Any]:
        """Apply to oracle then mirror; both must accept or both must reject."""
        oracle_result = model_result = None
        oracle_error: Optional[OracleRejection] = None
        model_error: Optional[ModelError] = None
        try:
            oracle_result = oracle_fn()
        except OracleRejection as e:
            oracle_error = e
        try:
            model_result = model_fn()
        except ModelError as e:
            model_error = e

        oracle_ok = oracle_error is None
        model_ok = model_error is None
        name = action.operation.value
        if oracle_ok != model_ok:
            mirror = "accepted" if model_ok else f"rejected ({model_error.kind}: {model_error})"
            oracle = "accepted" if oracle_ok else f"rejected ({oracle_error})"
            raise ModelDriftError(f"{name}: oracle {oracle}, mirror {mirror} [{action.msg}]")
        if oracle_ok != action.is_valid:
            expected = "acceptance" if action.is_valid else "rejection"
            got = "accepted" if oracle_ok else f"rejected ({model_error.kind})"
            raise ModelDriftError(f"{name}: expected {expected}, both {got} [{action.msg}]")

        if not model_ok:
            logger.info(f"{name} rejected as expected ({model_error.kind}): {action.msg}")
        self.score.record(name, action.is_valid)
        return oracle_result, model_result

    def assert_campaign_vote_data(self, campaign_id: int) -> None:
        total, per_option = self.oracle.campaign_vote_tally(campaign_id)
        data = self.model.campaign_vote_tally(campaign_id)
        self.assert_equal(f"campaign #{campaign_id} total votes", total, data.total_votes)
        self.assert_equal(
            f"campaign #{campaign_id} votes per option", list(per_option), data.vote_per_option
        )

    def assert_epoch_vote_data(self, epoch: int) -> None:
        for campaign_id in self.oracle.list_campaigns(epoch):
            self.assert_campaign_vote_data(campaign_id)
        self.assert_equal(
            f"epoch {epoch} total points",
            self.oracle.total_epoch_points(epoch),
            self.model.total_epoch_points(epoch),
        )
        self.assert_equal(
            f"epoch {epoch} total voting power",
            self.oracle.total_epoch_voting_power(epoch),
            self.model.total_epoch_voting_power(epoch),
        )

    def assert_staker(self, staker: str, epoch: int) -> None:
        for e in (epoch, epoch + 1):
            self.assert_equal(
                f"stake of {staker} at epoch {e}",
                self.oracle.stake_of(staker, e),
                self.model.stake_of(staker, e),
            )
            self.assert_equal(
                f"representative of {staker} at epoch {e}",
                self.oracle.representative_of(staker, e),
                self.model.representative_of(staker, e),
            )
        self.assert_equal(
            f"balance of {staker}", self.oracle.balance_of(staker), self.model.balance_of(staker)
        )

    # ── Setup and loop ────────────────────────────────────────────────

    def setup(self) -> None:
        """Distribute tokens to every staker on both sides."""
        tokens = self.config.harness.staker_tokens
        for staker in self.stakers:
            self.oracle.fund(staker, tokens)
            self.model.fund(staker, tokens)
            self.assert_equal(
                f"balance of {staker}", self.oracle.balance_of(staker), self.model.balance_of(staker)
            )
        self._funded = True
        logger.info(f"Funded {len(self.stakers)} stakers with {tokens} each")

    def run(self, num_runs: Optional[int] = None) -> Scoreboard:
        if not self._funded:
            self.setup()
        runs = self.config.harness.num_runs if num_runs is None else num_runs
        for loop in range(runs):
            self.step(loop, runs)
        logger.info(f"Run complete: {self.score.operations} operations, epoch {self.current_epoch}")
        return self.score

    def step(self, loop: int, num_runs: int) -> Optional[Operation]:
        """One iteration; returns the operation applied, or None at an epoch boundary."""
        now = self.now + self.config.harness.time_step
        next_epoch = self.model.epoch_at(now)
        self.now = now
        if next_epoch != self.current_epoch:
            self.check_winning_campaigns(now, self.current_epoch)
            self.current_epoch = next_epoch
            return None

        operation = next_operation(self.rng, loop, num_runs)
        self._handlers[operation](now, self.current_epoch)
        if self.config.harness.check_invariants:
            self.model.check_invariants(self.current_epoch)
        return operation

    # ── Operations ────────────────────────────────────────────────────

    def deposit(self, now: int, epoch: int) -> None:
        action = self.staking.gen_deposit()
        logger.info(f"Deposit: staker {action.staker}, amount: {action.amount} ({action.msg})")
        self._apply(
            action,
            lambda: self.oracle.deposit(action.staker, action.amount, now),
            lambda: self.model.deposit(action.staker, action.amount, now),
        )
        if action.is_valid:
            self.assert_staker(action.staker, epoch)
            self.assert_epoch_vote_data(epoch)

    def delegate(self, now: int, epoch: int) -> None:
        action = self.staking.gen_delegate()
        logger.info(f"Delegate: staker {action.staker}, address: {action.representative}")
        self._apply(
            action,
            lambda: self.oracle.delegate(action.staker, action.representative, now),
            lambda: self.model.delegate(action.staker, action.representative, now),
        )
        self.assert_staker(action.staker, epoch)
        self.assert_epoch_vote_data(epoch)

    def withdraw(self, now: int, epoch: int) -> None:
        action = self.staking.gen_withdraw(now)
        logger.info(f"Withdrawal: staker {action.staker}, amount: {action.amount} ({action.msg})")
        self._apply(
            action,
            lambda: self.oracle.withdraw(action.staker, action.amount, now),
            lambda: self.model.withdraw(action.staker, action.amount, now),
        )
        if action.is_valid:
            self.assert_staker(action.staker, epoch)
            self.assert_epoch_vote_data(epoch)

    def submit_campaign(self, now: int, epoch: int) -> None:
        action = self.dao.gen_submit_campaign(now)
        if action is None:
            return
        params = action.campaign
        logger.info(f"SubmitCampaign: {action.msg}")
        oracle_id, model_id = self._apply(
            action,
            lambda: self.oracle.submit_campaign(
                self.stakers[0],
                params.campaign_type,
                params.start_timestamp,
                params.end_timestamp,
                params.min_percentage_in_precision,
                params.c_in_precision,
                params.t_in_precision,
                params.options,
                params.link,
                now,
            ),
            lambda: self.model.submit_campaign(
                params.campaign_type,
                params.start_timestamp,
                params.end_timestamp,
                params.min_percentage_in_precision,
                params.c_in_precision,
                params.t_in_precision,
                params.options,
                now,
                link=params.link,
            ),
        )
        if action.is_valid:
            self.assert_equal("new campaign id", oracle_id, model_id)
            campaign_epoch = self.model.get_campaign(model_id).epoch
            self.assert_equal(
                f"campaign list for epoch {campaign_epoch}",
                sorted(self.oracle.list_campaigns(campaign_epoch)),
                sorted(self.model.list_campaigns(campaign_epoch)),
            )

    def cancel_campaign(self, now: int, epoch: int) -> None:
        action = self.dao.gen_cancel_campaign(now)
        if action is None:
            return
        logger.info(f"CancelCampaign: campaign #{action.campaign_id} ({action.msg})")
        self._apply(
            action,
            lambda: self.oracle.cancel_campaign(self.stakers[0], action.campaign_id, now),
            lambda: self.model.cancel_campaign(action.campaign_id, now),
        )
        if action.is_valid:
            campaign_epoch = self.model.get_campaign(action.campaign_id).epoch
            self.assert_equal(
                f"campaign list for epoch {campaign_epoch}",
                sorted(self.oracle.list_campaigns(campaign_epoch)),
                sorted(self.model.list_campaigns(campaign_epoch)),
            )

    def vote(self, now: int, epoch: int) -> None:
        action = self.dao.gen_vote(now)
        if action is None:
            # nothing to vote on, submit a campaign in this iteration instead
            self.submit_campaign(now, epoch)
            return
        logger.info(
            f"Vote: staker {action.staker}, campaign #{action.campaign_id}, "
            f"option {action.option} ({action.msg})"
        )
        self._apply(
            action,
            lambda: self.oracle.vote(action.staker, action.campaign_id, action.option, now),
            lambda: self.model.vote(action.campaign_id, action.option, action.staker, now),
        )
        if action.is_valid:
            self.assert_campaign_vote_data(action.campaign_id)
            self.assert_epoch_vote_data(epoch)

    def no_action(self, now: int, epoch: int) -> None:
        logger.info("NoAction: do nothing for this iteration")
        self.score.record(Operation.NO_ACTION.value, True)

    # ── Epoch boundary ────────────────────────────────────────────────

    def check_winning_campaigns(self, now: int, epoch: int) -> None:
        """Resolve every campaign of *epoch* on both sides, compare, and pull caches."""
        campaign_ids = self.oracle.list_campaigns(epoch)
        self.assert_equal(
            f"campaign list for epoch {epoch}",
            sorted(campaign_ids),
            sorted(self.model.list_campaigns(epoch)),
        )
        if not campaign_ids:
            logger.info(f"No campaign to check for epoch {epoch}")
            return

        for campaign_id in campaign_ids:
            expected = self.oracle.winning_option(campaign_id, now)
            result = self.model.winning_option(campaign_id, now)
            self.assert_equal(
                f"campaign #{campaign_id} winning option",
                tuple(expected),
                (result.option_id, result.value),
            )

            if result.campaign_type == CampaignType.NETWORK_FEE:
                self.assert_equal(
                    "latest network fee",
                    self.oracle.latest_network_fee(now),
                    self.model.latest_network_fee(now),
                )
                if result.has_winner:
                    self.assert_equal(
                        "pulled network fee",
                        self.oracle.pull_network_fee(now),
                        self.model.pull_network_fee(now),
                    )

            if result.campaign_type == CampaignType.FEE_BRR:
                brr = self.model.latest_brr(now)
                self.assert_equal(
                    "latest brr",
                    tuple(self.oracle.latest_brr(now)),
                    (brr.reward_bps, brr.rebate_bps, brr.burn_bps),
                )
                if result.has_winner:
                    pulled = self.model.pull_brr(now)
                    self.assert_equal(
                        "pulled brr",
                        tuple(self.oracle.pull_brr(now)),
                        (pulled.reward_bps, pulled.rebate_bps, pulled.burn_bps),
                    )

            self.score.record("successCampaign", result.has_winner)
