"""
Configuration loader tests

Coverage:
  - defaults, from_dict and TOML files
  - DAOMIRROR_* environment overrides
  - validation errors
"""

import sys
import os

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from daomirror.config import DaoConfig, HarnessConfig, SimulationConfig, load_config
from daomirror.constants import (
    DEFAULT_EPOCH_PERIOD,
    DEFAULT_NETWORK_FEE_BPS,
    DEFAULT_NUM_RUNS,
)
from daomirror.exceptions import ConfigurationError


SAMPLE_TOML = """
[dao]
start_time = 100
epoch_period = 1000
min_campaign_period = 20
network_fee_bps = 30

[harness]
num_runs = 250
seed = 7
check_invariants = false
"""


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "DAOMIRROR_START_TIME",
        "DAOMIRROR_EPOCH_PERIOD",
        "DAOMIRROR_MIN_CAMPAIGN_PERIOD",
        "DAOMIRROR_NUM_RUNS",
        "DAOMIRROR_TIME_STEP",
        "DAOMIRROR_NUM_STAKERS",
        "DAOMIRROR_SEED",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:

    def test_defaults(self):
        config = SimulationConfig()
        assert config.dao.epoch_period == DEFAULT_EPOCH_PERIOD
        assert config.dao.network_fee_bps == DEFAULT_NETWORK_FEE_BPS
        assert config.harness.num_runs == DEFAULT_NUM_RUNS
        assert config.harness.seed is None
        config.validate()

    def test_from_dict_partial(self):
        config = SimulationConfig.from_dict({"dao": {"epoch_period": 800}})
        assert config.dao.epoch_period == 800
        assert config.harness.num_runs == DEFAULT_NUM_RUNS

    def test_to_dict(self):
        data = SimulationConfig().to_dict()
        assert set(data) == {"dao", "harness"}
        assert data["dao"]["epoch_period"] == DEFAULT_EPOCH_PERIOD


class TestFromFile:

    def test_load_toml(self, tmp_path):
        path = tmp_path / "daomirror.toml"
        path.write_text(SAMPLE_TOML)
        config = SimulationConfig.from_file(str(path))
        assert config.dao.start_time == 100
        assert config.dao.epoch_period == 1000
        assert config.dao.min_campaign_period == 20
        assert config.harness.num_runs == 250
        assert config.harness.seed == 7
        assert config.harness.check_invariants is False

    def test_missing_file_gives_defaults(self, tmp_path):
        config = SimulationConfig.from_file(str(tmp_path / "absent.toml"))
        assert config.dao.epoch_period == DEFAULT_EPOCH_PERIOD

    def test_invalid_toml_raises(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[dao\nepoch_period = ")
        with pytest.raises(ConfigurationError, match="Invalid TOML"):
            SimulationConfig.from_file(str(path))


class TestEnvironment:

    def test_env_overrides_file(self, tmp_path, clean_env):
        path = tmp_path / "daomirror.toml"
        path.write_text(SAMPLE_TOML)
        clean_env.setenv("DAOMIRROR_EPOCH_PERIOD", "600")
        clean_env.setenv("DAOMIRROR_SEED", "99")
        config = load_config(str(path))
        assert config.dao.epoch_period == 600
        assert config.harness.seed == 99
        assert config.harness.num_runs == 250

    def test_load_without_file(self, clean_env):
        clean_env.setenv("DAOMIRROR_NUM_RUNS", "12")
        config = load_config()
        assert config.harness.num_runs == 12


class TestValidation:

    def test_min_period_must_fit_epoch(self):
        with pytest.raises(ConfigurationError, match="min_campaign_period"):
            DaoConfig(epoch_period=100, min_campaign_period=100).validate()

    def test_network_fee_limit(self):
        with pytest.raises(ConfigurationError, match="network_fee_bps"):
            DaoConfig(network_fee_bps=5000).validate()

    def test_brr_limit(self):
        with pytest.raises(ConfigurationError, match="reward_bps"):
            DaoConfig(reward_bps=6000, rebate_bps=4001).validate()

    def test_bad_epoch_period(self):
        with pytest.raises(ConfigurationError, match="epoch_period"):
            DaoConfig(epoch_period=0).validate()

    def test_time_step_shorter_than_epoch(self):
        config = SimulationConfig(
            dao=DaoConfig(epoch_period=500, min_campaign_period=50),
            harness=HarnessConfig(time_step=500),
        )
        with pytest.raises(ConfigurationError, match="time_step"):
            config.validate()
        config.harness.time_step = 499
        config.validate()

    def test_harness_limits(self):
        with pytest.raises(ConfigurationError, match="time_step"):
            HarnessConfig(time_step=0).validate()
        with pytest.raises(ConfigurationError, match="num_stakers"):
            HarnessConfig(num_stakers=0).validate()

    def test_load_config_validates(self, tmp_path, clean_env):
        path = tmp_path / "bad.toml"
        path.write_text("[harness]\nnum_runs = -1\n")
        with pytest.raises(ConfigurationError, match="num_runs"):
            load_config(str(path))
