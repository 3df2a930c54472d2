"""
Tests for the bonus objective evaluator.
"""

import copy

import pytest

from shift_engine.runs_core.errors import InvalidParameterError
from shift_engine.runs_core.level import BonusObjective, ObjectiveKind
from shift_engine.runs_core.objectives import (
    UNKNOWN_LABEL,
    _RULES,
    EvalResult,
    RunStatistics,
    evaluate_all,
    evaluate_objective,
    get_label,
)


BASELINE = dict(
    fuel_used=0.0,
    restart_count=0,
    time_used=0.0,
    winch_use_count=0,
    paths_visited=0,
    total_paths=0,
    groom_quality=0.0,
)


def _stats(**overrides):
    return RunStatistics(**dict(BASELINE, **overrides))


def _telemetry(**overrides):
    """Complete camelCase statistics mapping, as sent by the game scene."""
    data = {
        "fuelUsed": 0, "restartCount": 0, "timeUsed": 0, "winchUseCount": 0,
        "pathsVisited": 0, "totalPaths": 0, "groomQuality": 0,
    }
    data.update(overrides)
    return data


class TestEvaluateObjective:
    """Test pass/fail comparisons per objective kind."""

    def test_exploration_partial(self):
        """Three of five paths against a target of three is met."""
        obj = BonusObjective.of(ObjectiveKind.EXPLORATION, 3, total=5)
        stats = _stats(paths_visited=3, total_paths=5)
        assert evaluate_objective(obj, stats)
        assert get_label(obj, stats) == "Paths: 3/5"

    @pytest.mark.parametrize("kind,target,field,value,expected", [
        (ObjectiveKind.EXPLORATION, 2, "paths_visited", 1, False),
        (ObjectiveKind.EXPLORATION, 2, "paths_visited", 2, True),
        (ObjectiveKind.PRECISION_GROOMING, 70, "groom_quality", 69.9, False),
        (ObjectiveKind.PRECISION_GROOMING, 70, "groom_quality", 70, True),
        (ObjectiveKind.PIPE_MASTERY, 80, "groom_quality", 85, True),
        (ObjectiveKind.FUEL_EFFICIENCY, 50, "fuel_used", 50, True),
        (ObjectiveKind.FUEL_EFFICIENCY, 50, "fuel_used", 50.5, False),
        (ObjectiveKind.FLAWLESS, 0, "restart_count", 0, True),
        (ObjectiveKind.FLAWLESS, 0, "restart_count", 1, False),
        (ObjectiveKind.SPEED_RUN, 180, "time_used", 180, True),
        (ObjectiveKind.SPEED_RUN, 180, "time_used", 181, False),
        (ObjectiveKind.WINCH_MASTERY, 3, "winch_use_count", 2, False),
        (ObjectiveKind.WINCH_MASTERY, 3, "winch_use_count", 3, True),
    ])
    def test_comparisons(self, kind, target, field, value, expected):
        obj = BonusObjective.of(kind, target)
        assert evaluate_objective(obj, _stats(**{field: value})) is expected

    def test_flawless_without_target(self):
        """A flawless objective needs no explicit target."""
        obj = {"type": "flawless"}
        assert evaluate_objective(obj, _telemetry(restartCount=0))
        assert not evaluate_objective(obj, _telemetry(restartCount=2))

    def test_mapping_inputs(self):
        """Plain mappings with camelCase keys are accepted."""
        obj = {"type": "exploration", "requiredPaths": 2, "totalPaths": 4}
        stats = _telemetry(pathsVisited=2, totalPaths=4, unrelated="ignored")
        assert evaluate_objective(obj, stats)
        assert get_label(obj, stats) == "Paths: 2/4"

    def test_elapsed_seconds_alias(self):
        obj = BonusObjective.of(ObjectiveKind.SPEED_RUN, 120)
        stats = _telemetry(elapsedSeconds=95.5)
        del stats["timeUsed"]
        assert evaluate_objective(obj, stats)

    def test_unknown_kind_is_unmet(self, caplog):
        obj = BonusObjective(kind="backflip", target=1)
        with caplog.at_level("WARNING", logger="shift_engine.runs_core.objectives"):
            assert not evaluate_objective(obj, _stats())
        assert "backflip" in caplog.text

    @pytest.mark.parametrize("objective", [
        {"type": "fuel_efficiency"},
        {"type": "fuel_efficiency", "target": "fifty"},
        {"type": "winch_mastery", "target": True},
        42,
        None,
    ])
    def test_malformed_is_unmet(self, objective):
        assert not evaluate_objective(objective, _stats(fuel_used=10))

    def test_bad_stats_type(self):
        obj = BonusObjective.of(ObjectiveKind.FLAWLESS, 0)
        with pytest.raises(TypeError):
            evaluate_objective(obj, "fast")


class TestRunStatistics:
    """Test that incomplete or non-numeric telemetry is rejected."""

    def test_complete_mapping(self):
        stats = RunStatistics.from_mapping(_telemetry(fuelUsed=42.5, restartCount=1))
        assert stats == _stats(fuel_used=42.5, restart_count=1)

    def test_missing_field_rejected(self):
        """Absent telemetry must not pass fuel, speed or flawless goals."""
        objectives = [
            BonusObjective.of(ObjectiveKind.FUEL_EFFICIENCY, 50),
            BonusObjective.of(ObjectiveKind.SPEED_RUN, 120),
            BonusObjective.of(ObjectiveKind.FLAWLESS, 0),
        ]
        with pytest.raises(InvalidParameterError, match="fuel_used"):
            evaluate_all(objectives, {"fuel": 95, "elapsed": 600, "restarts": 4})

    def test_empty_mapping_rejected(self):
        obj = BonusObjective.of(ObjectiveKind.FUEL_EFFICIENCY, 50)
        with pytest.raises(InvalidParameterError):
            evaluate_objective(obj, {})

    def test_none_value_counts_as_missing(self):
        with pytest.raises(InvalidParameterError, match="groom_quality"):
            RunStatistics.from_mapping(_telemetry(groomQuality=None))

    @pytest.mark.parametrize("value", ["42", True, None, [1]])
    def test_non_numeric_value_rejected(self, value):
        """A bad value rejects the whole batch before any objective is scored."""
        objectives = [
            BonusObjective.of(ObjectiveKind.EXPLORATION, 1, total=2),
            BonusObjective.of(ObjectiveKind.FUEL_EFFICIENCY, 50),
        ]
        stats = _telemetry(pathsVisited=2)
        stats["fuelUsed"] = value
        with pytest.raises(InvalidParameterError):
            evaluate_all(objectives, stats)

    def test_direct_construction_checked(self):
        with pytest.raises(InvalidParameterError, match="time_used"):
            _stats(time_used="fast")

    def test_rejection_is_value_error(self):
        """Callers catching ValueError also catch bad telemetry."""
        with pytest.raises(ValueError):
            RunStatistics.from_mapping({"pathsVisited": 1})


class TestLabels:
    """Test progress and summary labels."""

    def test_fuel_progress(self):
        obj = BonusObjective.of(ObjectiveKind.FUEL_EFFICIENCY, 50)
        assert get_label(obj, _stats(fuel_used=42.3)) == "Fuel: 42% / ≤50%"

    def test_speed_progress(self):
        obj = BonusObjective.of(ObjectiveKind.SPEED_RUN, 180)
        assert get_label(obj, _stats(time_used=125)) == "Time: 2:05 / ≤3:00"

    def test_winch_progress(self):
        obj = BonusObjective.of(ObjectiveKind.WINCH_MASTERY, 4)
        assert get_label(obj, _stats(winch_use_count=1)) == "Winch: 1/4"

    def test_precision_progress(self):
        obj = BonusObjective.of(ObjectiveKind.PRECISION_GROOMING, 70)
        assert get_label(obj, _stats(groom_quality=64.6)) == "Precision: 65% / 70%"

    def test_flawless_progress(self):
        obj = BonusObjective.of(ObjectiveKind.FLAWLESS, 0)
        assert get_label(obj, _stats(restart_count=2)) == "First try: 2 restarts"

    @pytest.mark.parametrize("obj,expected", [
        (BonusObjective.of(ObjectiveKind.FUEL_EFFICIENCY, 50), "Fuel ≤50%"),
        (BonusObjective.of(ObjectiveKind.SPEED_RUN, 150), "Time ≤2:30"),
        (BonusObjective.of(ObjectiveKind.FLAWLESS, 0), "First try"),
        (BonusObjective.of(ObjectiveKind.WINCH_MASTERY, 3), "Winch ×3"),
        (BonusObjective.of(ObjectiveKind.PIPE_MASTERY, 80), "Pipe mastery ≥80%"),
        (BonusObjective.of(ObjectiveKind.EXPLORATION, 2, total=3), "Paths: 2/3"),
    ])
    def test_summary_labels(self, obj, expected):
        """Without statistics the label describes the goal."""
        assert get_label(obj) == expected

    def test_unknown_label(self):
        assert get_label({"type": "teleport", "target": 1}) == UNKNOWN_LABEL


class TestEvaluateAll:
    """Test batch evaluation."""

    def test_order_preserved(self):
        objectives = [
            BonusObjective.of(ObjectiveKind.FLAWLESS, 0),
            BonusObjective.of(ObjectiveKind.FUEL_EFFICIENCY, 30),
            BonusObjective.of(ObjectiveKind.EXPLORATION, 1, total=2),
        ]
        results = evaluate_all(objectives, _stats(fuel_used=40, paths_visited=1))
        assert [r.objective for r in results] == objectives
        assert [r.met for r in results] == [True, False, True]
        assert all(isinstance(r, EvalResult) for r in results)

    def test_unknown_does_not_abort_batch(self, caplog):
        objectives = [
            {"type": "fuel_efficiency", "target": 60},
            {"type": "moonwalk", "target": 1},
            {"type": "speed_run", "target": 200},
        ]
        with caplog.at_level("WARNING"):
            results = evaluate_all(objectives, _telemetry(fuelUsed=55, timeUsed=210))
        assert [r.met for r in results] == [True, False, False]
        assert results[1].label == UNKNOWN_LABEL
        assert "moonwalk" in caplog.text

    def test_idempotent(self):
        """Two calls with the same inputs give the same results."""
        objectives = [
            BonusObjective.of(ObjectiveKind.WINCH_MASTERY, 2),
            {"type": "speed_run", "target": 150},
            {"type": "teleport", "target": 1},
            {"kind": "exploration", "requiredPaths": 1, "totalPaths": 2},
        ]
        stats = _telemetry(winchUseCount=3, timeUsed=151, pathsVisited=1)
        first = evaluate_all(objectives, stats)
        second = evaluate_all(objectives, stats)
        assert first == second
        assert [r.met for r in first] == [True, False, False, True]
        assert [r.label for r in first] == [
            "Winch: 3/2", "Time: 2:31 / ≤2:30", UNKNOWN_LABEL, "Paths: 1/2",
        ]

    def test_inputs_not_mutated(self):
        objectives = [{"type": "exploration", "target": 2, "total": 3}]
        stats = _telemetry(pathsVisited=3)
        before = (copy.deepcopy(objectives), copy.deepcopy(stats))
        evaluate_all(objectives, stats)
        assert (objectives, stats) == before

    def test_empty(self):
        assert evaluate_all([], _stats()) == []

    def test_every_kind_has_a_rule(self):
        assert set(_RULES) == set(ObjectiveKind)
