"""
Authoritative Oracle Interface

The harness drives the authoritative protocol through ``GovernanceOracle``.
Every operation carries the caller and the simulated block time; an oracle
signals rejection by raising ``OracleRejection``. Query results are taken as
ground truth.

``LocalOracle`` implements the interface in-process on top of a private
``ReferenceModel``. It is used for dry runs of the generators and runner, and
as the base for fault-injection tests.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from ..config import DaoConfig
from ..dao import ReferenceModel
from ..exceptions import ModelError, OracleRejection

T = TypeVar("T")


class GovernanceOracle(ABC):
    """Operations and queries exposed by the authoritative system."""

    # ── Setup ─────────────────────────────────────────────────────────

    @abstractmethod
    def fund(self, staker: str, amount: int) -> None:
        """Give *staker* tokens (and staking allowance) before the run."""

    # ── Operations ────────────────────────────────────────────────────

    @abstractmethod
    def deposit(self, caller: str, amount: int, now: int) -> None: ...

    @abstractmethod
    def withdraw(self, caller: str, amount: int, now: int) -> None: ...

    @abstractmethod
    def delegate(self, caller: str, representative: str, now: int) -> None: ...

    @abstractmethod
    def submit_campaign(
        self,
        caller: str,
        campaign_type: int,
        start_timestamp: int,
        end_timestamp: int,
        min_percentage_in_precision: int,
        c_in_precision: int,
        t_in_precision: int,
        options: Sequence[int],
        link: bytes,
        now: int,
    ) -> int: ...

    @abstractmethod
    def cancel_campaign(self, caller: str, campaign_id: int, now: int) -> None: ...

    @abstractmethod
    def vote(self, caller: str, campaign_id: int, option: int, now: int) -> None: ...

    @abstractmethod
    def pull_network_fee(self, now: int) -> int:
        """Read the latest network fee and store it in the protocol cache."""

    @abstractmethod
    def pull_brr(self, now: int) -> Tuple[int, int, int]:
        """Read the latest (reward, rebate, burn) and store it in the protocol cache."""

    # ── Queries ───────────────────────────────────────────────────────

    @abstractmethod
    def stake_of(self, staker: str, epoch: int) -> int: ...

    @abstractmethod
    def delegated_stake_of(self, staker: str, epoch: int) -> int: ...

    @abstractmethod
    def representative_of(self, staker: str, epoch: int) -> str: ...

    @abstractmethod
    def balance_of(self, staker: str) -> int: ...

    @abstractmethod
    def list_campaigns(self, epoch: int) -> List[int]: ...

    @abstractmethod
    def winning_option(self, campaign_id: int, now: int) -> Tuple[int, int]: ...

    @abstractmethod
    def latest_network_fee(self, now: int) -> int: ...

    @abstractmethod
    def latest_brr(self, now: int) -> Tuple[int, int, int]: ...

    @abstractmethod
    def total_epoch_voting_power(self, epoch: int) -> int: ...

    @abstractmethod
    def total_epoch_points(self, epoch: int) -> int: ...

    @abstractmethod
    def campaign_vote_tally(self, campaign_id: int) -> Tuple[int, List[int]]: ...


class LocalOracle(GovernanceOracle):
    """In-process oracle backed by its own ``ReferenceModel``."""

    def __init__(self, config: Optional[DaoConfig] = None):
        self.model = ReferenceModel(config)

    @staticmethod
    def _call(fn: Callable[..., T], *args, **kwargs) -> T:
        try:
            return fn(*args, **kwargs)
        except ModelError as e:
            raise OracleRejection(f"{e.kind}: {e}") from e

    def fund(self, staker: str, amount: int) -> None:
        self._call(self.model.fund, staker, amount)

    def deposit(self, caller: str, amount: int, now: int) -> None:
        self._call(self.model.deposit, caller, amount, now)

    def withdraw(self, caller: str, amount: int, now: int) -> None:
        self._call(self.model.withdraw, caller, amount, now)

    def delegate(self, caller: str, representative: str, now: int) -> None:
        self._call(self.model.delegate, caller, representative, now)

    def submit_campaign(
        self,
        caller: str,
        campaign_type: int,
        start_timestamp: int,
        end_timestamp: int,
        min_percentage_in_precision: int,
        c_in_precision: int,
        t_in_precision: int,
        options: Sequence[int],
        link: bytes,
        now: int,
    ) -> int:
        return self._call(
            self.model.submit_campaign,
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

    def cancel_campaign(self, caller: str, campaign_id: int, now: int) -> None:
        self._call(self.model.cancel_campaign, campaign_id, now)

    def vote(self, caller: str, campaign_id: int, option: int, now: int) -> None:
        self._call(self.model.vote, campaign_id, option, caller, now)

    def pull_network_fee(self, now: int) -> int:
        return self._call(self.model.pull_network_fee, now)

    def pull_brr(self, now: int) -> Tuple[int, int, int]:
        brr = self._call(self.model.pull_brr, now)
        return brr.reward_bps, brr.rebate_bps, brr.burn_bps

    def stake_of(self, staker: str, epoch: int) -> int:
        return self._call(self.model.stake_of, staker, epoch)

    def delegated_stake_of(self, staker: str, epoch: int) -> int:
        return self._call(self.model.delegated_stake_of, staker, epoch)

    def representative_of(self, staker: str, epoch: int) -> str:
        return self._call(self.model.representative_of, staker, epoch)

    def balance_of(self, staker: str) -> int:
        return self._call(self.model.balance_of, staker)

    def list_campaigns(self, epoch: int) -> List[int]:
        return self.model.list_campaigns(epoch)

    def winning_option(self, campaign_id: int, now: int) -> Tuple[int, int]:
        result = self._call(self.model.winning_option, campaign_id, now)
        return result.option_id, result.value

    def latest_network_fee(self, now: int) -> int:
        return self._call(self.model.latest_network_fee, now)

    def latest_brr(self, now: int) -> Tuple[int, int, int]:
        brr = self._call(self.model.latest_brr, now)
        return brr.reward_bps, brr.rebate_bps, brr.burn_bps

    def total_epoch_voting_power(self, epoch: int) -> int:
        return self.model.total_epoch_voting_power(epoch)

    def total_epoch_points(self, epoch: int) -> int:
        return self.model.total_epoch_points(epoch)

    def campaign_vote_tally(self, campaign_id: int) -> Tuple[int, List[int]]:
        data = self._call(self.model.campaign_vote_tally, campaign_id)
        return data.total_votes, data.vote_per_option

    def __repr__(self) -> str:
        return f"<LocalOracle {self.model!r}>"
