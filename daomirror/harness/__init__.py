"""
Differential harness

Provides:
  - GovernanceOracle / LocalOracle                        (oracle.py)
  - Operation / Action / next_operation / generators      (generators.py)
  - Scoreboard                                            (score.py)
  - DifferentialRunner                                    (runner.py)
"""

from .oracle import GovernanceOracle, LocalOracle
from .generators import (
    Action,
    CampaignParams,
    DaoActionGenerator,
    Operation,
    StakingActionGenerator,
    make_stakers,
    next_operation,
)
from .score import Scoreboard, ScoreCount
from .runner import DifferentialRunner

__all__ = [
    # Oracle
    "GovernanceOracle",
    "LocalOracle",
    # Generators
    "Action",
    "CampaignParams",
    "DaoActionGenerator",
    "Operation",
    "StakingActionGenerator",
    "make_stakers",
    "next_operation",
    # Scoring
    "Scoreboard",
    "ScoreCount",
    # Runner
    "DifferentialRunner",
]
