"""
Level Validation
================

Validity predicate for generated levels. ``validate_level`` returns a list of
human-readable issues; an empty list means the level is playable.

Checks, in order:
    1. Envelope bounds (dimensions, coverage, time limit, rank-governed flags)
    2. Geometry (piste width, halfpipe width, groomable area, spawn, winch)
    3. Solvability (reachable share, access lanes, slalom gates, time budget)
    4. Bonus objective satisfiability
"""

from __future__ import annotations

import math
from typing import List, Optional, Tuple

from shift_engine.runs_core.config_loader import GenerationConfig, RankEnvelope, RunConfig, get_config
from shift_engine.runs_core.level import LevelDescriptor, ObjectiveKind, SpecialFeature
from shift_engine.runs_core.terrain import TerrainSkeleton, build_skeleton, piste_row_range


def required_tiles(target_coverage: float, groomable: int) -> int:
    """Tiles the player must groom to reach the target coverage."""
    return int(math.ceil(target_coverage / 100.0 * groomable))


def _in_range(value: float, bounds: Tuple[float, float]) -> bool:
    return bounds[0] <= value <= bounds[1]


def _check_envelope(level: LevelDescriptor, env: RankEnvelope, issues: List[str]) -> None:
    """Numeric fields against the rank (or park) envelope."""
    if level.width <= 0 or level.height <= 0 or level.area <= 0:
        issues.append(f"Degenerate level dimensions {level.width}x{level.height}")
    if not 0 < level.target_coverage <= 100:
        issues.append(f"Target coverage {level.target_coverage}% outside (0, 100]")
    if level.time_limit <= 0:
        issues.append(f"Time limit must be positive, got {level.time_limit}")

    if level.is_park:
        park = env.park
        if park is None:
            issues.append(f"Rank {env.rank.value} has no park variant")
            return
        width_range, height_range = park.width_range, park.height_range
        piste_range, shapes, coverage_range = park.piste_width_range, park.shapes, park.coverage_range
    else:
        width_range, height_range = env.width_range, env.height_range
        piste_range, shapes, coverage_range = env.piste_width_range, env.shapes, env.coverage_range

    if not _in_range(level.width, width_range):
        issues.append(f"Width {level.width} outside {width_range}")
    if not _in_range(level.height, height_range):
        issues.append(f"Height {level.height} outside {height_range}")
    if not _in_range(level.piste_width, piste_range):
        issues.append(f"Piste width {level.piste_width:.3f} outside {piste_range}")
    if level.piste_shape not in shapes:
        issues.append(f"Piste shape {level.piste_shape.value} not allowed for {env.rank.value}")
    if not _in_range(level.target_coverage, coverage_range):
        issues.append(f"Target coverage {level.target_coverage}% outside {coverage_range}")
    if not _in_range(level.time_limit, env.time_range):
        issues.append(f"Time limit {level.time_limit}s outside {env.time_range}")

    if level.is_park:
        return

    if level.weather not in env.weather_pool:
        issues.append(f"Weather {level.weather.value} not allowed for {env.rank.value}")
    if level.is_night and env.night_chance <= 0:
        issues.append(f"Night levels not allowed for {env.rank.value}")
    if len(level.steep_zones) != env.steep_zone_count:
        issues.append(
            f"Expected {env.steep_zone_count} steep zones, got {len(level.steep_zones)}"
        )
    for zone in level.steep_zones:
        if not _in_range(zone.slope, env.slope_range):
            issues.append(f"Steep zone slope {zone.slope} outside {env.slope_range}")
    if level.has_winch != env.has_winch:
        issues.append(f"Winch flag {level.has_winch} does not match rank {env.rank.value}")


def _check_geometry(
    level: LevelDescriptor,
    skeleton: TerrainSkeleton,
    gen: GenerationConfig,
    issues: List[str],
) -> None:
    """Piste shape constraints the groomer and features need."""
    rows = list(piste_row_range(level.height, gen))

    for y in rows:
        if skeleton.rows[y].width < gen.min_piste_width:
            issues.append(
                f"Piste too narrow at row {y}: {skeleton.rows[y].width} tiles "
                f"(min {gen.min_piste_width})"
            )
            break

    if level.has_feature(SpecialFeature.HALFPIPE):
        for y in rows:
            if skeleton.rows[y].width < gen.min_halfpipe_width:
                issues.append(
                    f"Halfpipe too narrow at row {y}: {skeleton.rows[y].width} tiles "
                    f"(min {gen.min_halfpipe_width})"
                )
                break

    groomable = skeleton.groomable_count
    if groomable < gen.min_usable_tiles:
        issues.append(f"Insufficient groomable area: {groomable} tiles (min {gen.min_usable_tiles})")

    if level.has_winch and level.steep_zones and not level.winch_anchors:
        issues.append("Winch enabled but no anchors placed")

    sx, sy = skeleton.spawn
    if not skeleton.groomable[sy, sx]:
        issues.append("Spawn point is not on piste")


def _check_solvability(
    level: LevelDescriptor,
    skeleton: TerrainSkeleton,
    gen: GenerationConfig,
    issues: List[str],
) -> None:
    """Connectivity from spawn and the time budget."""
    groomable = skeleton.groomable_count
    if groomable == 0:
        return

    share = skeleton.reachable_share
    if share < level.target_coverage:
        issues.append(
            f"Only {share:.1f}% of groomable piste reachable from spawn "
            f"(target {level.target_coverage}%, {skeleton.isolated_regions()} isolated regions)"
        )

    for i, lane in enumerate(skeleton.lane_masks):
        if not (lane & skeleton.reachable).any():
            issues.append(f"Access path {i} is not reachable from spawn")

    for i, (gate, (gx, gy)) in enumerate(zip(level.slalom_gates, skeleton.gate_tiles)):
        if not skeleton.is_reachable(gx, gy):
            issues.append(f"Slalom gate {i} at ({gx}, {gy}) is not reachable")
        elif skeleton.rows[gy].width < gate.width:
            issues.append(
                f"Slalom gate {i} needs {gate.width} tiles, row {gy} has {skeleton.rows[gy].width}"
            )

    needed = required_tiles(level.target_coverage, groomable)
    if level.time_limit * gen.groom_rate < needed:
        issues.append(
            f"Time limit {level.time_limit}s too short for {needed} tiles "
            f"at {gen.groom_rate:g} tiles/s"
        )


def _check_objectives(
    level: LevelDescriptor,
    skeleton: TerrainSkeleton,
    gen: GenerationConfig,
    issues: List[str],
) -> None:
    """Each bonus objective must be achievable on this level."""
    if len(level.bonus_objectives) > gen.max_objectives:
        issues.append(
            f"{len(level.bonus_objectives)} bonus objectives (max {gen.max_objectives})"
        )

    for obj in level.bonus_objectives:
        kind = obj.known_kind
        target = obj.target
        if kind is None:
            issues.append(f"Unknown bonus objective kind: {obj.kind!r}")
            continue
        if kind != ObjectiveKind.FLAWLESS and target is None:
            issues.append(f"Bonus objective {kind.value} has no target")
            continue

        if kind == ObjectiveKind.EXPLORATION:
            total = obj.total
            if total is None or total > len(level.access_paths):
                issues.append(
                    f"Exploration needs {total} paths, level has {len(level.access_paths)}"
                )
            elif not 1 <= target <= total:
                issues.append(f"Exploration target {target} outside [1, {total}]")
        elif kind in (ObjectiveKind.PRECISION_GROOMING, ObjectiveKind.PIPE_MASTERY,
                      ObjectiveKind.FUEL_EFFICIENCY):
            if not 0 < target <= 100:
                issues.append(f"{kind.value} target {target}% outside (0, 100]")
            if kind == ObjectiveKind.PIPE_MASTERY and not level.has_feature(SpecialFeature.HALFPIPE):
                issues.append("Pipe mastery objective on a level without a halfpipe")
        elif kind == ObjectiveKind.FLAWLESS:
            if target not in (None, 0):
                issues.append(f"Flawless target must be 0 restarts, got {target}")
        elif kind == ObjectiveKind.SPEED_RUN:
            fastest = required_tiles(level.target_coverage, skeleton.groomable_count) / gen.peak_groom_rate
            if not fastest <= target <= level.time_limit:
                issues.append(
                    f"Speed run target {target}s outside [{fastest:.0f}, {level.time_limit}]"
                )
        elif kind == ObjectiveKind.WINCH_MASTERY:
            if not level.has_winch or not level.winch_anchors:
                issues.append("Winch mastery objective on a level without winch anchors")
            elif target < 1:
                issues.append(f"Winch mastery target {target} must be at least 1")


def validate_level(
    level: LevelDescriptor,
    config: Optional[RunConfig] = None,
    skeleton: Optional[TerrainSkeleton] = None,
) -> List[str]:
    """
    Check a level against its rank envelope and the solvability rules.

    Args:
        level: Candidate level.
        config: Run configuration. Uses default if None.
        skeleton: Pre-built terrain skeleton; built from the level if None.

    Returns:
        List of issue descriptions (empty = valid).
    """
    if config is None:
        config = get_config()
    gen = config.generation
    issues: List[str] = []

    _check_envelope(level, config.envelope(level.rank), issues)
    if level.width <= 0 or level.height <= 0:
        return issues

    if skeleton is None:
        skeleton = build_skeleton(level, config)

    _check_geometry(level, skeleton, gen, issues)
    _check_solvability(level, skeleton, gen, issues)
    _check_objectives(level, skeleton, gen, issues)
    return issues
