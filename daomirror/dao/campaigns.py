"""
Campaign Registry

Campaign types, lifecycle, and the submission rules the protocol enforces:
window inside one epoch (current or next), minimum duration, option count and
per-type option ranges, formula bounds, and per-epoch campaign limits.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..logger import get_logger
from ..constants import (
    MAX_CAMPAIGN_OPTIONS,
    MAX_EPOCH_CAMPAIGNS,
    MAX_NETWORK_FEE_BPS,
    MIN_CAMPAIGN_OPTIONS,
    POWER_128,
    PRECISION,
)
from ..exceptions import (
    EpochCampaignLimitError,
    InvalidCampaignTypeError,
    InvalidFormulaError,
    InvalidOptionsError,
    InvalidWindowError,
    NotCancellableError,
    UnknownCampaignError,
)
from .encoding import unpack_brr
from .epoch import EpochClock

logger = get_logger(__name__)


class CampaignType(IntEnum):
    """What a winning option affects."""
    GENERAL = 0        # Signal only
    NETWORK_FEE = 1    # Option value is the network fee in bps
    FEE_BRR = 2        # Option value is a packed reward/rebate split


class CampaignStatus(Enum):
    OPEN = "open"            # Before start; cancellable
    ACTIVE = "active"        # start <= now < end; votable
    ENDED = "ended"          # Window closed, not yet resolved
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


@dataclass
class Campaign:
    """
    A time-boxed vote.

    Fields:
        campaign_id:                 Monotonic identifier, starting at 1
        campaign_type:               CampaignType
        start_timestamp:             First second of the voting window
        end_timestamp:               Window end (exclusive)
        epoch:                       Epoch owning the window
        min_percentage_in_precision: Quorum as a PRECISION fixed-point fraction
        c_in_precision:              Formula parameter c, stored as submitted
        t_in_precision:              Formula parameter t, stored as submitted
        options:                     Option values, option i is options[i - 1]
        link:                        Opaque description link
    """
    campaign_id: int
    campaign_type: CampaignType
    start_timestamp: int
    end_timestamp: int
    epoch: int
    min_percentage_in_precision: int
    c_in_precision: int
    t_in_precision: int
    options: Tuple[int, ...]
    link: bytes = b""
    cancelled: bool = False
    resolved: bool = False

    @property
    def option_count(self) -> int:
        return len(self.options)

    def is_active(self, now: int) -> bool:
        return not self.cancelled and self.start_timestamp <= now < self.end_timestamp

    def has_ended(self, now: int) -> bool:
        return now >= self.end_timestamp

    def status(self, now: int) -> CampaignStatus:
        if self.cancelled:
            return CampaignStatus.CANCELLED
        if self.resolved:
            return CampaignStatus.RESOLVED
        if now < self.start_timestamp:
            return CampaignStatus.OPEN
        if now < self.end_timestamp:
            return CampaignStatus.ACTIVE
        return CampaignStatus.ENDED

    def option_value(self, option_id: int) -> int:
        return self.options[option_id - 1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "campaignID": self.campaign_id,
            "campaignType": self.campaign_type.name,
            "startTimestamp": self.start_timestamp,
            "endTimestamp": self.end_timestamp,
            "epoch": self.epoch,
            "minPercentageInPrecision": str(self.min_percentage_in_precision),
            "cInPrecision": str(self.c_in_precision),
            "tInPrecision": str(self.t_in_precision),
            "options": [str(o) for o in self.options],
            "link": self.link.hex(),
            "cancelled": self.cancelled,
            "resolved": self.resolved,
        }


class CampaignRegistry:
    """
    Campaign lifecycle (create / cancel) and per-epoch indexes.

    At most one live NetworkFee and one live FeeBRR campaign exist per epoch;
    cancelling frees the slot.
    """

    def __init__(self, clock: EpochClock, min_campaign_period: int):
        self.clock = clock
        self.min_campaign_period = min_campaign_period
        self._campaigns: Dict[int, Campaign] = {}
        self._epoch_campaigns: Dict[int, List[int]] = {}
        self._network_fee_campaigns: Dict[int, int] = {}
        self._brr_campaigns: Dict[int, int] = {}
        self._next_id = 1

    # ── Validation ────────────────────────────────────────────────────

    def _validate_window(self, start: int, end: int, now: int) -> int:
        if start < now:
            raise InvalidWindowError("validateParams: can't start in the past")
        if end <= start or end - start < self.min_campaign_period:
            raise InvalidWindowError("validateParams: campaign duration is low")
        start_epoch = self.clock.require_epoch(start)
        if self.clock.epoch_of(end) != start_epoch:
            raise InvalidWindowError("validateParams: start & end not same epoch")
        if start_epoch > self.clock.require_epoch(now) + 1:
            raise InvalidWindowError("validateParams: only for current or next epochs")
        return start_epoch

    @staticmethod
    def _validate_options(campaign_type: CampaignType, options: Sequence[int]) -> None:
        if not (MIN_CAMPAIGN_OPTIONS <= len(options) <= MAX_CAMPAIGN_OPTIONS):
            raise InvalidOptionsError(
                f"validateParams: invalid number of options ({len(options)})"
            )
        for value in options:
            if campaign_type == CampaignType.GENERAL:
                if value <= 0:
                    raise InvalidOptionsError("validateParams: general campaign option is 0")
            elif campaign_type == CampaignType.NETWORK_FEE:
                if not (0 <= value < MAX_NETWORK_FEE_BPS):
                    raise InvalidOptionsError(
                        "validateParams: network fee must be smaller then BPS / 2"
                    )
            else:
                unpack_brr(value)

    @staticmethod
    def _validate_formula(min_percentage: int, c_in_precision: int, t_in_precision: int) -> None:
        if not (0 <= min_percentage <= PRECISION):
            raise InvalidFormulaError("validateParams: min percentage is high")
        if not (0 <= c_in_precision < POWER_128 and 0 <= t_in_precision < POWER_128):
            raise InvalidFormulaError("validateParams: c or t is too big")

    # ── Lifecycle ─────────────────────────────────────────────────────

    def create(
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
    ) -> Campaign:
        """Validate and register a campaign; all checks run before any mutation."""
        epoch = self._validate_window(start_timestamp, end_timestamp, now)

        try:
            ctype = CampaignType(campaign_type)
        except ValueError:
            raise InvalidCampaignTypeError(f"Unknown campaign type: {campaign_type}")

        options = tuple(int(o) for o in options)
        self._validate_options(ctype, options)
        self._validate_formula(min_percentage_in_precision, c_in_precision, t_in_precision)

        if len(self._epoch_campaigns.get(epoch, [])) >= MAX_EPOCH_CAMPAIGNS:
            raise EpochCampaignLimitError("submitNewCampaign: too many campaigns")
        if ctype == CampaignType.NETWORK_FEE and epoch in self._network_fee_campaigns:
            raise EpochCampaignLimitError(
                "submitNewCampaign: alr had network fee for this epoch"
            )
        if ctype == CampaignType.FEE_BRR and epoch in self._brr_campaigns:
            raise EpochCampaignLimitError("submitNewCampaign: alr had brr for this epoch")

        campaign = Campaign(
            campaign_id=self._next_id,
            campaign_type=ctype,
            start_timestamp=start_timestamp,
            end_timestamp=end_timestamp,
            epoch=epoch,
            min_percentage_in_precision=min_percentage_in_precision,
            c_in_precision=c_in_precision,
            t_in_precision=t_in_precision,
            options=options,
            link=bytes(link),
        )
        self._next_id += 1
        self._campaigns[campaign.campaign_id] = campaign
        self._epoch_campaigns.setdefault(epoch, []).append(campaign.campaign_id)
        if ctype == CampaignType.NETWORK_FEE:
            self._network_fee_campaigns[epoch] = campaign.campaign_id
        elif ctype == CampaignType.FEE_BRR:
            self._brr_campaigns[epoch] = campaign.campaign_id

        logger.info(
            f"Campaign #{campaign.campaign_id} created: {ctype.name}, epoch {epoch}, "
            f"window [{start_timestamp}, {end_timestamp}), {len(options)} options"
        )
        return campaign

    def cancel(self, campaign_id: int, now: int) -> Campaign:
        """Tombstone a campaign that has not started yet."""
        campaign = self.get(campaign_id)
        if campaign.cancelled or campaign.resolved:
            raise NotCancellableError(f"Campaign #{campaign_id} is already {campaign.status(now).value}")
        if now >= campaign.start_timestamp:
            raise NotCancellableError("cancelCampaign: campaign already started")

        campaign.cancelled = True
        self._epoch_campaigns[campaign.epoch].remove(campaign_id)
        if self._network_fee_campaigns.get(campaign.epoch) == campaign_id:
            del self._network_fee_campaigns[campaign.epoch]
        if self._brr_campaigns.get(campaign.epoch) == campaign_id:
            del self._brr_campaigns[campaign.epoch]

        logger.info(f"Campaign #{campaign_id} cancelled")
        return campaign

    # ── Queries ───────────────────────────────────────────────────────

    def get(self, campaign_id: int) -> Campaign:
        campaign = self._campaigns.get(campaign_id)
        if campaign is None:
            raise UnknownCampaignError(campaign_id)
        return campaign

    def exists(self, campaign_id: int) -> bool:
        return campaign_id in self._campaigns

    def list_for_epoch(self, epoch: int) -> List[int]:
        """Live campaign ids owned by *epoch*, in creation order."""
        return list(self._epoch_campaigns.get(epoch, []))

    def campaigns_for_epoch(self, epoch: int) -> List[Campaign]:
        return [self._campaigns[cid] for cid in self._epoch_campaigns.get(epoch, [])]

    def network_fee_campaign(self, epoch: int) -> Optional[int]:
        return self._network_fee_campaigns.get(epoch)

    def brr_campaign(self, epoch: int) -> Optional[int]:
        return self._brr_campaigns.get(epoch)

    @property
    def next_campaign_id(self) -> int:
        return self._next_id

    def __len__(self) -> int:
        return len(self._campaigns)

    def __repr__(self) -> str:
        return f"<CampaignRegistry campaigns={len(self._campaigns)}>"
