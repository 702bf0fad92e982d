"""
DAO Mirror Exceptions

Every rejection the reference model can produce is a ``ModelError`` with a
stable ``kind``. The harness compares rejection (oracle failed / model failed),
never messages, so ``kind`` exists for scoring and logs only.
"""

from typing import List


class DAOMirrorException(Exception):
    """Base exception for DAO Mirror."""
    pass


class ConfigurationError(DAOMirrorException):
    """Configuration error."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  MODEL ERRORS (local, recoverable)
# ══════════════════════════════════════════════════════════════════════

class ModelError(DAOMirrorException):
    """An operation the protocol rejects."""
    kind = "ModelError"


class InvalidAmountError(ModelError):
    """Amount is zero, negative, or exceeds the staker's token balance."""
    kind = "InvalidAmount"


class InsufficientStakeError(ModelError):
    """Withdrawal exceeds the withdrawable stake."""
    kind = "InsufficientStake"

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stake: requested {requested}, available {available}"
        )


class InvalidStakerError(ModelError):
    """Staker or representative is not a valid address."""
    kind = "InvalidStaker"


class InvalidWindowError(ModelError):
    """Campaign time window is rejected."""
    kind = "InvalidWindow"


class InvalidOptionsError(ModelError):
    """Campaign option list is rejected."""
    kind = "InvalidOptions"


class InvalidCampaignTypeError(ModelError):
    kind = "InvalidCampaignType"


class InvalidFormulaError(ModelError):
    """Quorum or formula parameters are out of range."""
    kind = "InvalidFormula"


class EpochCampaignLimitError(ModelError):
    """Epoch already holds the maximum campaigns, or one of this type."""
    kind = "EpochCampaignLimit"


class UnknownCampaignError(ModelError):
    kind = "UnknownCampaign"

    def __init__(self, campaign_id: int):
        self.campaign_id = campaign_id
        super().__init__(f"Campaign #{campaign_id} does not exist")


class NotCancellableError(ModelError):
    kind = "NotCancellable"


class CampaignNotActiveError(ModelError):
    kind = "CampaignNotActive"


class CampaignNotEndedError(ModelError):
    kind = "CampaignNotEnded"


class InvalidVoteOptionError(ModelError):
    kind = "InvalidVoteOption"


class DuplicateVoteError(ModelError):
    kind = "DuplicateVote"


class PreGenesisTimeError(ModelError):
    """Timestamp precedes the first epoch."""
    kind = "PreGenesisTime"

    def __init__(self, timestamp: int, start_time: int):
        self.timestamp = timestamp
        self.start_time = start_time
        super().__init__(
            f"Timestamp {timestamp} is before genesis ({start_time})"
        )


# ══════════════════════════════════════════════════════════════════════
#  INTERNAL CONSISTENCY
# ══════════════════════════════════════════════════════════════════════

class InvariantViolationError(DAOMirrorException):
    """Raised when model state violates one or more invariants."""

    def __init__(self, violations: List[str]):
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")


# ══════════════════════════════════════════════════════════════════════
#  HARNESS
# ══════════════════════════════════════════════════════════════════════

class HarnessError(DAOMirrorException):
    """Base harness exception."""
    pass


class OracleRejection(HarnessError):
    """The authoritative system rejected an operation."""
    pass


class MismatchError(HarnessError):
    """Oracle and mirror disagree on a queried value."""

    def __init__(self, what: str, expected, actual):
        self.what = what
        self.expected = expected
        self.actual = actual
        super().__init__(f"{what}: oracle={expected!r} mirror={actual!r}")


class ModelDriftError(HarnessError):
    """Oracle and mirror disagree on whether an operation is valid."""
    pass
