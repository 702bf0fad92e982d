"""
DAO reference model

Provides:
  - EpochClock / epoch_of                         (epoch.py)
  - StakeLedger / Timeline / RetroactiveDelta     (staking.py)
  - Campaign / CampaignType / CampaignRegistry    (campaigns.py)
  - VoteTally / CampaignVoteData / VoteAttribution (tally.py)
  - WinningOptionResolver / CachedParameters      (resolver.py)
  - ReferenceModel                                (model.py)
"""

from .epoch import PRE_GENESIS, EpochClock, epoch_of
from .staking import (
    RetroactiveDelta,
    StakeLedger,
    StakerAccount,
    Timeline,
    normalize_address,
)
from .campaigns import (
    Campaign,
    CampaignRegistry,
    CampaignStatus,
    CampaignType,
)
from .tally import (
    CampaignVoteData,
    VoteAttribution,
    VoteTally,
)
from .encoding import BRRData, pack_brr, unpack_brr
from .resolver import (
    CachedParameters,
    WinningOption,
    WinningOptionResolver,
    compute_winning_option,
)
from .model import ReferenceModel

__all__ = [
    # Epochs
    "PRE_GENESIS",
    "EpochClock",
    "epoch_of",
    # Staking
    "RetroactiveDelta",
    "StakeLedger",
    "StakerAccount",
    "Timeline",
    "normalize_address",
    # Campaigns
    "Campaign",
    "CampaignRegistry",
    "CampaignStatus",
    "CampaignType",
    # Tally
    "CampaignVoteData",
    "VoteAttribution",
    "VoteTally",
    # Resolution
    "BRRData",
    "CachedParameters",
    "WinningOption",
    "WinningOptionResolver",
    "compute_winning_option",
    "pack_brr",
    "unpack_brr",
    # Composition root
    "ReferenceModel",
]
