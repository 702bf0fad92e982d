"""
DAO Mirror Configuration

Loads daomirror.toml; environment variables override TOML values.
"""

from .loader import (
    DaoConfig,
    HarnessConfig,
    SimulationConfig,
    load_config,
)

__all__ = [
    "DaoConfig",
    "HarnessConfig",
    "SimulationConfig",
    "load_config",
]
