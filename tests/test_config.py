"""
Tests for configuration loading and validation.
"""

import os

import pytest
import yaml

from shift_engine.runs_core import config_loader
from shift_engine.runs_core.config_loader import get_config, load_config, reload_config
from shift_engine.runs_core.level import PisteShape, Rank, SpecialFeature, Weather

DEFAULT_PATH = os.path.join(
    os.path.dirname(os.path.dirname(__file__)), "shift_engine", "run_config.yaml"
)


@pytest.fixture
def raw_config():
    with open(DEFAULT_PATH, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def write_config(tmp_path):
    def _write(data):
        path = tmp_path / "run_config.yaml"
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f)
        return str(path)
    return _write


class TestLoadConfig:
    """Test the shipped configuration."""

    def test_default_loads(self):
        config = load_config()
        assert config.generation.max_attempts == 10
        assert config.generation.groom_rate < config.generation.peak_groom_rate

    def test_all_ranks_present(self):
        config = load_config()
        assert set(config.ranks) == set(Rank)

    def test_ranks_escalate(self):
        """Harder ranks have more steep zones and narrower pistes."""
        config = load_config()
        envs = [config.envelope(r) for r in (Rank.GREEN, Rank.BLUE, Rank.RED, Rank.BLACK)]
        zones = [e.steep_zone_count for e in envs]
        assert zones == sorted(zones)
        widths = [e.piste_width_range[1] for e in envs]
        assert widths == sorted(widths, reverse=True)

    def test_typed_values(self):
        config = load_config()
        green = config.envelope(Rank.GREEN)
        assert green.shapes == (PisteShape.GENTLE_CURVE, PisteShape.FUNNEL)
        assert green.weather_pool == (Weather.CLEAR,)
        assert SpecialFeature.HALFPIPE in green.park.feature_combos[0].features

    def test_only_green_has_parks(self):
        config = load_config()
        assert config.envelope(Rank.GREEN).park is not None
        for rank in (Rank.BLUE, Rank.RED, Rank.BLACK):
            assert config.envelope(rank).park is None
            assert config.envelope(rank).park_chance == 0.0

    def test_winch_ranks(self):
        config = load_config()
        assert not config.envelope(Rank.BLUE).has_winch
        assert config.envelope(Rank.RED).has_winch
        assert config.envelope(Rank.BLACK).has_avalanche

    def test_cached_config(self):
        assert get_config() is get_config()

    def test_reload_config(self):
        reloaded = reload_config()
        assert get_config() is reloaded
        assert config_loader._cached_config is reloaded

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_round_trip_through_tmp_file(self, raw_config, write_config):
        assert load_config(write_config(raw_config)) == load_config()


class TestConfigValidation:
    """Test rejection of inconsistent configurations."""

    def test_missing_rank(self, raw_config, write_config):
        del raw_config["ranks"]["black"]
        with pytest.raises(ValueError, match="Missing rank"):
            load_config(write_config(raw_config))

    def test_unknown_rank(self, raw_config, write_config):
        raw_config["ranks"]["double_black"] = raw_config["ranks"]["black"]
        with pytest.raises(ValueError, match="Unknown rank"):
            load_config(write_config(raw_config))

    def test_inverted_range(self, raw_config, write_config):
        raw_config["ranks"]["blue"]["width_range"] = [42, 30]
        with pytest.raises(ValueError, match="inverted"):
            load_config(write_config(raw_config))

    def test_bad_range_length(self, raw_config, write_config):
        raw_config["ranks"]["red"]["height_range"] = [45]
        with pytest.raises(ValueError, match="2 values"):
            load_config(write_config(raw_config))

    def test_bad_probability(self, raw_config, write_config):
        raw_config["ranks"]["black"]["night_chance"] = 1.5
        with pytest.raises(ValueError, match="probability"):
            load_config(write_config(raw_config))

    def test_coverage_above_100(self, raw_config, write_config):
        raw_config["ranks"]["green"]["coverage_range"] = [90, 110]
        with pytest.raises(ValueError):
            load_config(write_config(raw_config))

    def test_park_outside_rank(self, raw_config, write_config):
        raw_config["ranks"]["green"]["park"]["height_range"] = [30, 60]
        with pytest.raises(ValueError, match="must lie within"):
            load_config(write_config(raw_config))

    def test_duplicate_alphabet(self, raw_config, write_config):
        raw_config["seeds"]["code_alphabet"] = "0" * 32
        with pytest.raises(ValueError, match="code_alphabet"):
            load_config(write_config(raw_config))

    def test_peak_rate_below_nominal(self, raw_config, write_config):
        raw_config["generation"]["peak_groom_rate"] = 1.0
        with pytest.raises(ValueError, match="groom rates"):
            load_config(write_config(raw_config))

    def test_unknown_shape(self, raw_config, write_config):
        raw_config["ranks"]["red"]["shapes"] = ["corkscrew"]
        with pytest.raises(ValueError):
            load_config(write_config(raw_config))
