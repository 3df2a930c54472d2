"""
Bonus Objective Evaluator
=========================

Pure scoring of a finished run against a level's bonus objectives.

Objectives and statistics may be passed as dataclasses or as plain mappings
(snake_case or camelCase keys). Inputs are never mutated. Statistics are
checked once, up front: a missing or non-numeric field rejects the call.
Unknown or malformed objectives are reported as unmet with a generic label;
the rest of the batch is still evaluated.
"""

from __future__ import annotations

import dataclasses
import logging
import numbers
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from shift_engine.runs_core.errors import InvalidParameterError
from shift_engine.runs_core.level import BonusObjective, ObjectiveKind

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "Unknown objective"

_STAT_ALIASES = {
    "fuelUsed": "fuel_used",
    "restartCount": "restart_count",
    "timeUsed": "time_used",
    "elapsedSeconds": "time_used",
    "winchUseCount": "winch_use_count",
    "pathsVisited": "paths_visited",
    "totalPaths": "total_paths",
    "groomQuality": "groom_quality",
}


@dataclass(frozen=True)
class RunStatistics:
    """
    Telemetry of one finished run, supplied by the game scene.

    Every field is required. A missing value is rejected rather than read as
    zero, since zero would satisfy the fuel, speed and flawless objectives.
    """
    fuel_used: float        # Percent of the tank
    restart_count: int
    time_used: float        # Seconds
    winch_use_count: int
    paths_visited: int
    total_paths: int
    groom_quality: float    # Percent

    def __post_init__(self):
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InvalidParameterError(
                    f"Run statistic {f.name} must be a number, got {value!r}"
                )

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> "RunStatistics":
        """
        Build from a mapping with snake_case or camelCase keys.

        Unknown keys are ignored.

        Raises:
            InvalidParameterError: If a field is missing, None or not a number.
        """
        names = [f.name for f in dataclasses.fields(RunStatistics)]
        values: Dict[str, Any] = {}
        for key, value in data.items():
            name = _STAT_ALIASES.get(key, key)
            if name in names and value is not None:
                values[name] = value
        missing = [name for name in names if name not in values]
        if missing:
            raise InvalidParameterError(f"Missing run statistics: {', '.join(missing)}")
        return RunStatistics(**values)


@dataclass(frozen=True)
class EvalResult:
    """Verdict for one objective; ``objective`` is the caller's original value."""
    objective: Any
    met: bool
    label: str


def _format_time(seconds: float) -> str:
    m = int(seconds // 60)
    s = int(seconds) % 60
    return f"{m}:{s:02d}"


def _pct(value: float) -> str:
    return f"{value:.0f}%"


@dataclass(frozen=True)
class _Rule:
    met: Callable[[float, BonusObjective, RunStatistics], bool]
    progress: Callable[[float, BonusObjective, RunStatistics], str]
    summary: Callable[[float, BonusObjective], str]


def _exploration_total(obj: BonusObjective, stats: Optional[RunStatistics]) -> Any:
    if obj.total is not None:
        return obj.total
    if stats is not None and stats.total_paths:
        return stats.total_paths
    return "?"


_RULES: Dict[ObjectiveKind, _Rule] = {
    ObjectiveKind.EXPLORATION: _Rule(
        met=lambda t, o, s: s.paths_visited >= t,
        progress=lambda t, o, s: f"Paths: {s.paths_visited}/{_exploration_total(o, s)}",
        summary=lambda t, o: f"Paths: {t:g}/{_exploration_total(o, None)}",
    ),
    ObjectiveKind.PRECISION_GROOMING: _Rule(
        met=lambda t, o, s: s.groom_quality >= t,
        progress=lambda t, o, s: f"Precision: {_pct(s.groom_quality)} / {_pct(t)}",
        summary=lambda t, o: f"Precision ≥{_pct(t)}",
    ),
    ObjectiveKind.PIPE_MASTERY: _Rule(
        met=lambda t, o, s: s.groom_quality >= t,
        progress=lambda t, o, s: f"Pipe mastery: {_pct(s.groom_quality)} / {_pct(t)}",
        summary=lambda t, o: f"Pipe mastery ≥{_pct(t)}",
    ),
    ObjectiveKind.FUEL_EFFICIENCY: _Rule(
        met=lambda t, o, s: s.fuel_used <= t,
        progress=lambda t, o, s: f"Fuel: {_pct(s.fuel_used)} / ≤{_pct(t)}",
        summary=lambda t, o: f"Fuel ≤{_pct(t)}",
    ),
    ObjectiveKind.FLAWLESS: _Rule(
        met=lambda t, o, s: s.restart_count == 0,
        progress=lambda t, o, s: f"First try: {s.restart_count} restarts",
        summary=lambda t, o: "First try",
    ),
    ObjectiveKind.SPEED_RUN: _Rule(
        met=lambda t, o, s: s.time_used <= t,
        progress=lambda t, o, s: f"Time: {_format_time(s.time_used)} / ≤{_format_time(t)}",
        summary=lambda t, o: f"Time ≤{_format_time(t)}",
    ),
    ObjectiveKind.WINCH_MASTERY: _Rule(
        met=lambda t, o, s: s.winch_use_count >= t,
        progress=lambda t, o, s: f"Winch: {s.winch_use_count}/{t:g}",
        summary=lambda t, o: f"Winch ×{t:g}",
    ),
}

_missing = [k.value for k in ObjectiveKind if k not in _RULES]
if _missing:
    raise RuntimeError(f"No evaluation rule for objective kinds: {_missing}")


def _as_objective(objective: Any) -> Optional[BonusObjective]:
    if isinstance(objective, BonusObjective):
        return objective
    if isinstance(objective, Mapping):
        return BonusObjective.from_mapping(objective)
    return None


def _as_stats(stats: Any) -> RunStatistics:
    if isinstance(stats, RunStatistics):
        return stats
    if isinstance(stats, Mapping):
        return RunStatistics.from_mapping(stats)
    if dataclasses.is_dataclass(stats) and not isinstance(stats, type):
        return RunStatistics.from_mapping(dataclasses.asdict(stats))
    raise TypeError(f"Run statistics must be a mapping or dataclass, got {type(stats).__name__}")


def _resolve(objective: Any):
    """
    Returns:
        (rule, threshold, BonusObjective), or None for unknown/malformed input.
    """
    obj = _as_objective(objective)
    if obj is None or obj.known_kind is None:
        return None
    kind = obj.known_kind
    target = obj.target
    if kind == ObjectiveKind.FLAWLESS and target is None:
        target = 0
    if isinstance(target, bool) or not isinstance(target, numbers.Real):
        return None
    return _RULES[kind], float(target), obj


def _flag(objective: Any) -> None:
    logger.warning("Unknown or malformed bonus objective: %r", objective)


def evaluate_objective(objective: Any, stats: Any) -> bool:
    """
    Check one objective against run statistics.

    Args:
        objective: BonusObjective or mapping.
        stats: RunStatistics, dataclass or mapping.

    Returns:
        True if met; False if unmet, unknown or malformed.

    Raises:
        InvalidParameterError: If a statistic is missing or not a number.
    """
    run = _as_stats(stats)
    resolved = _resolve(objective)
    if resolved is None:
        _flag(objective)
        return False
    rule, target, obj = resolved
    return bool(rule.met(target, obj, run))


def get_label(objective: Any, stats: Any = None) -> str:
    """
    Display label for an objective.

    With statistics, the label shows live progress ("Paths: 3/5"); without,
    it summarizes the goal ("Fuel ≤50%").
    """
    resolved = _resolve(objective)
    if resolved is None:
        _flag(objective)
        return UNKNOWN_LABEL
    rule, target, obj = resolved
    if stats is None:
        return rule.summary(target, obj)
    return rule.progress(target, obj, _as_stats(stats))


def evaluate_all(objectives: Sequence[Any], stats: Any) -> List[EvalResult]:
    """
    Evaluate every objective of a level, preserving input order.

    Args:
        objectives: Objectives as BonusObjective instances or mappings.
        stats: Run statistics.

    Returns:
        One EvalResult per objective, in the same order.

    Raises:
        InvalidParameterError: If a statistic is missing or not a number;
            no objective is evaluated in that case.
    """
    run = _as_stats(stats)
    results = []
    for objective in objectives:
        resolved = _resolve(objective)
        if resolved is None:
            _flag(objective)
            results.append(EvalResult(objective=objective, met=False, label=UNKNOWN_LABEL))
            continue
        rule, target, obj = resolved
        results.append(EvalResult(
            objective=objective,
            met=bool(rule.met(target, obj, run)),
            label=rule.progress(target, obj, run),
        ))
    return results
