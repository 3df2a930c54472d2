"""
Shared fixtures: a factory for hand-built levels that validate cleanly.
"""

import dataclasses

import pytest

from shift_engine.runs_core.config_loader import load_config
from shift_engine.runs_core.generator import compute_time_limit
from shift_engine.runs_core.level import (
    LevelDescriptor,
    PisteShape,
    PisteVariation,
    Rank,
    Weather,
)


@pytest.fixture
def base_config():
    return load_config()


@pytest.fixture
def make_level(base_config):
    """
    Build a regular level by hand.

    Defaults describe a valid 30x40 green gentle-curve piste with no hazards
    or objectives; keyword arguments override fields. The time limit is
    recomputed unless given explicitly.
    """
    def _make(**overrides):
        fields = dict(
            id=100,
            seed=12345,
            rank=Rank.GREEN,
            difficulty="green",
            name_key="rank_green",
            name="Le Pré Fleuri",
            task_key="dailyRun_levelTask",
            width=30,
            height=40,
            piste_shape=PisteShape.GENTLE_CURVE,
            piste_width=0.65,
            piste_variation=PisteVariation(),
            target_coverage=80,
            time_limit=0,
            is_night=False,
            weather=Weather.CLEAR,
            has_winch=False,
        )
        fields.update(overrides)
        level = LevelDescriptor(**fields)
        if "time_limit" not in overrides:
            level = dataclasses.replace(level, time_limit=compute_time_limit(level, base_config))
        return level

    return _make
