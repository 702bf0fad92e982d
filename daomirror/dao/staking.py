"""
Stake Ledger

Per-staker stake, delegated stake and representative, each kept as a sparse
epoch timeline. Deposits and delegation changes take effect from the next
epoch; a withdrawal takes effect immediately when it cuts into stake that is
already in force this epoch, and then reports a retroactive delta for the
vote tally.
"""

from bisect import bisect_right, insort
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from eth_utils import is_address, to_checksum_address

from ..logger import get_logger
from ..exceptions import (
    InsufficientStakeError,
    InvalidAmountError,
    InvalidStakerError,
)

logger = get_logger(__name__)


def normalize_address(address: str) -> str:
    """Checksummed form of *address*; raises ``InvalidStakerError`` if malformed."""
    if not isinstance(address, str) or not is_address(address):
        raise InvalidStakerError(f"Invalid staker address: {address!r}")
    return to_checksum_address(address)


# ══════════════════════════════════════════════════════════════════════
#  SPARSE TIMELINE
# ══════════════════════════════════════════════════════════════════════

class Timeline:
    """
    Sorted ``epoch -> value`` mapping with backward-nearest lookup.

    An epoch without an explicit entry inherits the value of the latest
    explicit entry before it, or *default* when there is none.
    """

    def __init__(self, default: Any = 0):
        self.default = default
        self._epochs: List[int] = []
        self._values: Dict[int, Any] = {}

    def at(self, epoch: int) -> Any:
        idx = bisect_right(self._epochs, epoch)
        if idx == 0:
            return self.default
        return self._values[self._epochs[idx - 1]]

    def latest(self) -> Any:
        if not self._epochs:
            return self.default
        return self._values[self._epochs[-1]]

    def set(self, epoch: int, value: Any) -> None:
        if epoch not in self._values:
            insort(self._epochs, epoch)
        self._values[epoch] = value

    def pin(self, epoch: int) -> None:
        """Make the inherited value at *epoch* explicit."""
        if epoch not in self._values:
            self.set(epoch, self.at(epoch))

    def add(self, epoch: int, delta: int) -> int:
        value = self.at(epoch) + delta
        self.set(epoch, value)
        return value

    def adjust_current(self, epoch: int, delta: int) -> int:
        """Change *epoch* only; later epochs keep their current values."""
        self.pin(epoch + 1)
        return self.add(epoch, delta)

    def items(self) -> Iterator:
        for epoch in self._epochs:
            yield epoch, self._values[epoch]

    def __len__(self) -> int:
        return len(self._epochs)

    def __repr__(self) -> str:
        return f"<Timeline default={self.default!r} entries={dict(self.items())}>"


# ══════════════════════════════════════════════════════════════════════
#  LEDGER DATA
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RetroactiveDelta:
    """Voting power lost this epoch by *representative* through a withdrawal."""
    representative: str
    amount: int
    epoch: int


@dataclass
class StakerAccount:
    """
    Ledger entry for one address.

    Fields:
        address:         Checksummed address
        balance:         Token balance outside the staking contract
        stake:           Own stake by epoch
        delegated:       Stake delegated *to* this address by epoch
        representative:  Representative by epoch (defaults to self)
    """
    address: str
    balance: int = 0
    stake: Timeline = field(default_factory=Timeline)
    delegated: Timeline = field(default_factory=Timeline)
    representative: Timeline = field(init=False)

    def __post_init__(self):
        self.representative = Timeline(default=self.address)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "balance": str(self.balance),
            "stake": {e: str(v) for e, v in self.stake.items()},
            "delegated": {e: str(v) for e, v in self.delegated.items()},
            "representative": dict(self.representative.items()),
        }


# ══════════════════════════════════════════════════════════════════════
#  STAKE LEDGER
# ══════════════════════════════════════════════════════════════════════

class StakeLedger:
    """
    Staking and delegation accounting.

    Responsibilities:
        - Token balances needed to validate deposits
        - Epoch-scoped stake, delegated stake and representative timelines
        - Epoch aggregate (sum of all stakes) used as the quorum denominator
        - Retroactive deltas for withdrawals that cut into current-epoch stake
    """

    def __init__(self):
        self._accounts: Dict[str, StakerAccount] = {}
        self._aggregate = Timeline()

    def _account(self, address: str) -> StakerAccount:
        account = self._accounts.get(address)
        if account is None:
            account = StakerAccount(address=address)
            self._accounts[address] = account
        return account

    def _peek(self, staker: str) -> Optional[StakerAccount]:
        return self._accounts.get(normalize_address(staker))

    # ── Mutations ─────────────────────────────────────────────────────

    def fund(self, staker: str, amount: int) -> None:
        """Credit token balance (initial distribution)."""
        if amount <= 0:
            raise InvalidAmountError(f"Funding amount must be positive, got {amount}")
        account = self._account(normalize_address(staker))
        account.balance += amount

    def deposit(self, staker: str, amount: int, epoch: int) -> None:
        """Stake *amount*; visible from ``epoch + 1``."""
        address = normalize_address(staker)
        if amount <= 0:
            raise InvalidAmountError(f"Deposit amount must be positive, got {amount}")
        balance = self.balance_of(address)
        if balance < amount:
            raise InvalidAmountError(
                f"Deposit of {amount} exceeds balance {balance} of {address}"
            )
        account = self._account(address)

        account.balance -= amount
        next_epoch = epoch + 1
        account.stake.add(next_epoch, amount)
        representative = account.representative.at(next_epoch)
        if representative != address:
            self._account(representative).delegated.add(next_epoch, amount)
        self._aggregate.add(next_epoch, amount)

        logger.debug(f"Deposit: {address} +{amount} from epoch {next_epoch}")

    def withdraw(self, staker: str, amount: int, epoch: int) -> Optional[RetroactiveDelta]:
        """
        Unstake *amount*, at most the stake in force for *epoch*.

        The next-epoch stake drops by *amount*. The current-epoch stake drops
        only as far as needed to stay at or below the remaining stake; that
        drop, if any, is returned as a ``RetroactiveDelta`` for the
        representative in force this epoch.
        """
        address = normalize_address(staker)
        if amount <= 0:
            raise InvalidAmountError(f"Withdrawal amount must be positive, got {amount}")
        current = self.stake_at(address, epoch)
        if amount > current:
            raise InsufficientStakeError(requested=amount, available=current)

        account = self._account(address)
        next_epoch = epoch + 1
        remaining = account.stake.at(next_epoch) - amount
        account.stake.set(next_epoch, remaining)
        latest_representative = account.representative.at(next_epoch)
        if latest_representative != address:
            self._account(latest_representative).delegated.add(next_epoch, -amount)
        self._aggregate.add(next_epoch, -amount)
        account.balance += amount

        reduction = current - min(current, remaining)
        if reduction == 0:
            logger.debug(f"Withdrawal: {address} -{amount} from epoch {next_epoch}")
            return None

        account.stake.adjust_current(epoch, -reduction)
        self._aggregate.adjust_current(epoch, -reduction)
        representative = account.representative.at(epoch)
        if representative != address:
            self._account(representative).delegated.adjust_current(epoch, -reduction)

        logger.debug(
            f"Withdrawal: {address} -{amount}, epoch {epoch} stake reduced by "
            f"{reduction} (representative {representative})"
        )
        return RetroactiveDelta(representative=representative, amount=reduction, epoch=epoch)

    def delegate(self, staker: str, new_representative: str, epoch: int) -> None:
        """Point *staker*'s stake at *new_representative* from ``epoch + 1``."""
        address = normalize_address(staker)
        new_representative = normalize_address(new_representative)
        account = self._account(address)
        next_epoch = epoch + 1
        current = account.representative.at(next_epoch)
        if current == new_representative:
            return

        stake = account.stake.at(next_epoch)
        if current != address:
            self._account(current).delegated.add(next_epoch, -stake)
        account.representative.set(next_epoch, new_representative)
        if new_representative != address:
            self._account(new_representative).delegated.add(next_epoch, stake)

        logger.debug(
            f"Delegate: {address} {current} → {new_representative} from epoch {next_epoch}"
        )

    # ── Queries ───────────────────────────────────────────────────────

    def stake_at(self, staker: str, epoch: int) -> int:
        account = self._peek(staker)
        return account.stake.at(epoch) if account else 0

    def delegated_stake_at(self, staker: str, epoch: int) -> int:
        account = self._peek(staker)
        return account.delegated.at(epoch) if account else 0

    def representative_at(self, staker: str, epoch: int) -> str:
        account = self._peek(staker)
        if account is None:
            return normalize_address(staker)
        return account.representative.at(epoch)

    def latest_stake(self, staker: str) -> int:
        """Stake in force from the next epoch on."""
        account = self._peek(staker)
        return account.stake.latest() if account else 0

    def latest_representative(self, staker: str) -> str:
        account = self._peek(staker)
        if account is None:
            return normalize_address(staker)
        return account.representative.latest()

    def balance_of(self, staker: str) -> int:
        account = self._peek(staker)
        return account.balance if account else 0

    def voting_power(self, staker: str, epoch: int) -> int:
        """Own stake if self-represented, plus stake delegated to *staker*."""
        account = self._peek(staker)
        if account is None:
            return 0
        own = account.stake.at(epoch) if account.representative.at(epoch) == account.address else 0
        return own + account.delegated.at(epoch)

    def epoch_aggregate(self, epoch: int) -> int:
        return self._aggregate.at(epoch)

    def stakers(self) -> List[str]:
        return list(self._accounts)

    def to_dict(self) -> Dict[str, Any]:
        return {address: account.to_dict() for address, account in self._accounts.items()}

    def __repr__(self) -> str:
        return f"<StakeLedger stakers={len(self._accounts)}>"
