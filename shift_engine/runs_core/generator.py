"""
Level Generator
===============

Generate -> validate -> retry loop producing a playable level from a seed
and a rank. Generation is a pure function of (seed, rank, config).

The level variant (regular or park) is rolled once from the requested seed.
Retries walk a deterministic seed chain and skip seeds whose own variant roll
differs, so the returned ``used_seed`` regenerates the exact same level.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from shift_engine.runs_core.config_loader import ParkEnvelope, RankEnvelope, RunConfig, get_config
from shift_engine.runs_core.errors import GenerationExhaustedError
from shift_engine.runs_core.level import (
    AccessPath,
    BonusObjective,
    LevelDescriptor,
    ObjectiveKind,
    ObstacleType,
    PisteVariation,
    Rank,
    SlalomGate,
    SpecialFeature,
    SteepZone,
    Variant,
    Weather,
    WildlifeSpawn,
    WinchAnchor,
)
from shift_engine.runs_core.naming import pick_briefing, piste_name
from shift_engine.runs_core.rng import SeededRNG, derive_seed, next_attempt_seed, validate_seed
from shift_engine.runs_core.terrain import build_skeleton, compute_piste_rows, estimate_piste_tiles
from shift_engine.runs_core.validation import required_tiles, validate_level

logger = logging.getLogger(__name__)

TASK_KEY = "dailyRun_levelTask"


@dataclass(frozen=True)
class GenerationResult:
    """
    Outcome of ``generate_valid_level``.

    Use the static constructors rather than instantiating directly.
    """
    ok: bool
    rank: Rank
    requested_seed: int
    variant: Variant
    attempts: int
    level: Optional[LevelDescriptor] = None
    used_seed: Optional[int] = None
    issues: Tuple[str, ...] = ()

    @staticmethod
    def success(
        rank: Rank,
        requested_seed: int,
        variant: Variant,
        attempts: int,
        level: LevelDescriptor,
        used_seed: int,
    ) -> "GenerationResult":
        return GenerationResult(
            ok=True,
            rank=rank,
            requested_seed=requested_seed,
            variant=variant,
            attempts=attempts,
            level=level,
            used_seed=used_seed,
        )

    @staticmethod
    def exhausted(
        rank: Rank,
        requested_seed: int,
        variant: Variant,
        attempts: int,
        issues: Tuple[str, ...],
    ) -> "GenerationResult":
        return GenerationResult(
            ok=False,
            rank=rank,
            requested_seed=requested_seed,
            variant=variant,
            attempts=attempts,
            issues=tuple(issues),
        )

    def unwrap(self) -> Tuple[LevelDescriptor, int]:
        """
        Returns:
            (level, used_seed) for a successful result.

        Raises:
            GenerationExhaustedError: If no valid level was found.
        """
        if not self.ok:
            raise GenerationExhaustedError(self)
        return self.level, self.used_seed


def roll_variant(seed: int, rank: Union[Rank, str], config: Optional[RunConfig] = None) -> Variant:
    """
    Decide whether a seed produces the park variant of a rank.

    Uses the seed's ``"variant"`` sub-stream, so the roll does not depend on
    any other draw made during generation.
    """
    if config is None:
        config = get_config()
    env = config.envelope(Rank.parse(rank))
    if env.park_chance <= 0:
        return Variant.REGULAR
    rng = SeededRNG(derive_seed(validate_seed(seed), "variant"))
    return Variant.PARK if rng.chance(env.park_chance) else Variant.REGULAR


def _steep_zones(rng: SeededRNG, env: RankEnvelope) -> Tuple[SteepZone, ...]:
    """Steep bands spread with random gaps over 15%-85% of the height."""
    count = env.steep_zone_count
    if count == 0:
        return ()

    usable = 0.70
    min_gap = 0.08
    heights = [rng.real_in_range(0.08, 0.18) for _ in range(count)]
    slack = max(0.0, usable - sum(heights) - min_gap * (count - 1))
    weights = [rng.real_in_range(0.1, 1.0) for _ in range(count + 1)]
    weight_sum = sum(weights)

    zones = []
    y = 0.15
    for i in range(count):
        y += weights[i] / weight_sum * slack + (min_gap if i > 0 else 0.0)
        start = y
        end = min(start + heights[i], 0.85)
        slope = rng.integer_in_range(env.slope_range[0], env.slope_range[1])
        zones.append(SteepZone(start_y=start, end_y=end, slope=slope))
        y = end
    return tuple(zones)


def _winch_anchors(
    rng: SeededRNG, zones: Tuple[SteepZone, ...], threshold: int
) -> Tuple[WinchAnchor, ...]:
    dangerous = [z for z in zones if z.slope >= threshold]
    if not dangerous:
        count = rng.integer_in_range(1, 2)
        return tuple(WinchAnchor(y=rng.real_in_range(0.2, 0.7)) for _ in range(count))
    # One anchor just above each dangerous zone
    return tuple(WinchAnchor(y=max(0.05, z.start_y - 0.05)) for z in dangerous)


def _access_paths(
    rng: SeededRNG, zones: Tuple[SteepZone, ...], threshold: int
) -> Tuple[AccessPath, ...]:
    """Bypass roads around dangerous zones, alternating sides."""
    paths = []
    for i, zone in enumerate(z for z in zones if z.slope >= threshold):
        margin = rng.real_in_range(0.03, 0.08)
        paths.append(AccessPath(
            start_y=max(0.05, zone.start_y - margin),
            end_y=min(0.95, zone.end_y + margin),
            side="left" if i % 2 == 0 else "right",
        ))
    return tuple(paths)


def _obstacle_types(rng: SeededRNG, rank: Rank, env: RankEnvelope) -> Tuple[ObstacleType, ...]:
    types = [ObstacleType.TREES]
    if rank != Rank.GREEN:
        types.append(ObstacleType.ROCKS)
    if env.pylons_chance > 0 and rng.chance(env.pylons_chance):
        types.append(ObstacleType.PYLONS)
    return tuple(types)


def _wildlife(rng: SeededRNG, config: RunConfig) -> Tuple[WildlifeSpawn, ...]:
    wl = config.wildlife
    species_count = rng.integer_in_range(*wl.species_count)
    species = rng.shuffle(wl.species)[:species_count]
    return tuple(
        WildlifeSpawn(species=s, count=rng.integer_in_range(*wl.per_species))
        for s in species
    )


def _slalom_gates(rng: SeededRNG, env: RankEnvelope) -> Tuple[SlalomGate, ...]:
    """Gates spread evenly over 15%-80% of the height, alternating sides."""
    if env.slalom_chance <= 0 or not rng.chance(env.slalom_chance):
        return ()
    count = rng.integer_in_range(*env.slalom_count)
    if count <= 0:
        return ()
    side = rng.sign()
    span = 0.80 - 0.15
    gates = []
    for i in range(count):
        y = 0.15 + span * (i + 0.5) / count + rng.real_in_range(-0.02, 0.02)
        gates.append(SlalomGate(y=y, offset=0.5 * side, width=env.slalom_width))
        side = -side
    return tuple(gates)


def compute_time_limit(level: LevelDescriptor, config: Optional[RunConfig] = None) -> int:
    """
    Time limit in seconds for a level.

    Required tiles at the conservative groom rate, scaled by the rank's slack
    factor, plus allowances for steep zones, night and storms. Rounded up to
    the time step, floored by the area rule, then clamped into the rank's
    time range.
    """
    if config is None:
        config = get_config()
    env = config.envelope(level.rank)
    gen = config.generation

    rows = compute_piste_rows(
        level.width, level.height, level.piste_shape, level.piste_width, level.piste_variation
    )
    tiles = estimate_piste_tiles(rows, level.height, gen)
    seconds = required_tiles(level.target_coverage, tiles) / gen.groom_rate * env.time_slack
    seconds += len(level.steep_zones) * gen.steep_zone_seconds
    if level.is_night:
        seconds += gen.night_seconds
    if level.weather == Weather.STORM:
        seconds += gen.storm_seconds

    step = gen.time_step
    limit = int(math.ceil(seconds / step)) * step
    area_floor = int(math.ceil(max(tiles / gen.area_floor_tiles * step, gen.min_time_limit) / step)) * step
    limit = max(limit, area_floor)
    return max(env.time_range[0], min(env.time_range[1], limit))


def _regular_objectives(
    rng: SeededRNG, level: LevelDescriptor, config: RunConfig
) -> Tuple[BonusObjective, ...]:
    rules = config.objectives
    objectives: List[BonusObjective] = []

    if rng.chance(rules.fuel_efficiency.chance):
        objectives.append(BonusObjective.of(
            ObjectiveKind.FUEL_EFFICIENCY, rng.integer_in_range(*rules.fuel_efficiency.target_range)
        ))
    if rng.chance(rules.flawless.chance):
        objectives.append(BonusObjective.of(ObjectiveKind.FLAWLESS, 0))
    if rng.chance(rules.speed_run.chance):
        target = rng.integer_in_range(*rules.speed_run.target_range)
        objectives.append(BonusObjective.of(ObjectiveKind.SPEED_RUN, min(target, level.time_limit)))
    if level.has_winch and rng.chance(rules.winch_mastery.chance):
        objectives.append(BonusObjective.of(
            ObjectiveKind.WINCH_MASTERY, rng.integer_in_range(*rules.winch_mastery.target_range)
        ))
    if level.rank != Rank.GREEN and rng.chance(rules.precision_grooming.chance):
        objectives.append(BonusObjective.of(
            ObjectiveKind.PRECISION_GROOMING,
            rng.integer_in_range(*rules.precision_grooming.target_range),
        ))
    if level.access_paths and rng.chance(rules.exploration.chance):
        total = len(level.access_paths)
        objectives.append(BonusObjective.of(
            ObjectiveKind.EXPLORATION, rng.integer_in_range(1, total), total=total
        ))

    return tuple(objectives[:config.generation.max_objectives])


def _generate_regular(
    seed: int, rank: Rank, env: RankEnvelope, config: RunConfig
) -> LevelDescriptor:
    rng = SeededRNG(seed, config)
    threshold = config.generation.slide_slope_threshold

    width = rng.integer_in_range(*env.width_range)
    height = rng.integer_in_range(*env.height_range)
    piste_width = rng.real_in_range(*env.piste_width_range)
    shape = rng.pick(env.shapes)
    variation = PisteVariation(
        freq_offset=rng.real_in_range(-0.5, 0.5),
        amp_scale=rng.real_in_range(0.7, 1.3),
        phase=rng.real_in_range(0, 2 * math.pi),
        width_phase=rng.real_in_range(0, 2 * math.pi),
    )
    weather = rng.pick(env.weather_pool)
    is_night = env.night_chance > 0 and rng.chance(env.night_chance)
    coverage = rng.integer_in_range(*env.coverage_range)

    zones = _steep_zones(rng, env)
    anchors = _winch_anchors(rng, zones, threshold) if env.has_winch else ()
    paths = _access_paths(rng, zones, threshold)
    obstacles = _obstacle_types(rng, rank, env)
    wildlife = _wildlife(rng, config)
    dangerous = env.dangerous_boundaries_chance > 0 and rng.chance(env.dangerous_boundaries_chance)
    gates = _slalom_gates(rng, env)
    hazards = ("avalanche",) if env.has_avalanche else ()
    speaker, dialogue = pick_briefing(rank.value, len(zones), hazards, is_night, weather)

    level = LevelDescriptor(
        id=config.generation.level_id_base + seed % 1000,
        seed=seed,
        rank=rank,
        difficulty=rank.value,
        name_key=f"rank_{rank.value}",
        name=piste_name(rng.fork("name"), rank),
        task_key=TASK_KEY,
        width=width,
        height=height,
        piste_shape=shape,
        piste_width=piste_width,
        piste_variation=variation,
        target_coverage=coverage,
        time_limit=0,
        is_night=is_night,
        weather=weather,
        has_winch=env.has_winch,
        obstacle_density=env.obstacle_density,
        obstacles=obstacles,
        steep_zones=zones,
        winch_anchors=anchors,
        access_paths=paths,
        hazards=hazards,
        has_dangerous_boundaries=dangerous,
        slalom_gates=gates,
        wildlife=wildlife,
        intro_speaker=speaker,
        intro_dialogue=dialogue,
    )
    level = dataclasses.replace(level, time_limit=compute_time_limit(level, config))
    return dataclasses.replace(level, bonus_objectives=_regular_objectives(rng, level, config))


def _generate_park(
    seed: int, rank: Rank, park: ParkEnvelope, config: RunConfig
) -> LevelDescriptor:
    rng = SeededRNG(seed, config)

    width = rng.integer_in_range(*park.width_range)
    height = rng.integer_in_range(*park.height_range)
    piste_width = rng.real_in_range(*park.piste_width_range)
    shape = rng.pick(park.shapes)
    variation = PisteVariation(
        freq_offset=rng.real_in_range(-0.3, 0.3),
        amp_scale=rng.real_in_range(0.5, 0.8),
        phase=rng.real_in_range(0, 2 * math.pi),
        width_phase=rng.real_in_range(0, 2 * math.pi),
    )
    combo = rng.weighted_pick(park.feature_combos, [c.weight for c in park.feature_combos])
    coverage = rng.integer_in_range(*park.coverage_range)
    wildlife = _wildlife(rng, config)

    objectives = [BonusObjective.of(
        ObjectiveKind.PRECISION_GROOMING, rng.integer_in_range(*park.precision_range)
    )]
    if SpecialFeature.HALFPIPE in combo.features:
        objectives.append(BonusObjective.of(
            ObjectiveKind.PIPE_MASTERY, rng.integer_in_range(*park.pipe_range)
        ))
    speaker, dialogue = pick_briefing(Variant.PARK.value, 0, (), False, Weather.CLEAR)

    level = LevelDescriptor(
        id=config.generation.level_id_base + seed % 1000,
        seed=seed,
        rank=rank,
        difficulty=Variant.PARK.value,
        name_key="rank_park",
        name=piste_name(rng.fork("name"), rank, is_park=True),
        task_key=TASK_KEY,
        width=width,
        height=height,
        piste_shape=shape,
        piste_width=piste_width,
        piste_variation=variation,
        target_coverage=coverage,
        time_limit=0,
        is_night=False,
        weather=Weather.CLEAR,
        has_winch=False,
        special_features=combo.features,
        wildlife=wildlife,
        bonus_objectives=tuple(objectives[:config.generation.max_objectives]),
        intro_speaker=speaker,
        intro_dialogue=dialogue,
    )
    return dataclasses.replace(level, time_limit=compute_time_limit(level, config))


def generate_candidate(
    seed: int,
    rank: Union[Rank, str],
    variant: Optional[Variant] = None,
    config: Optional[RunConfig] = None,
) -> LevelDescriptor:
    """
    Sample one candidate level from the rank envelope, without validation.

    Args:
        seed: Candidate seed.
        rank: Difficulty rank.
        variant: Variant to build. Rolled from the seed if None.
        config: Run configuration. Uses default if None.

    Returns:
        Candidate LevelDescriptor.
    """
    if config is None:
        config = get_config()
    seed = validate_seed(seed)
    rank = Rank.parse(rank)
    env = config.envelope(rank)
    if variant is None:
        variant = roll_variant(seed, rank, config)

    if variant == Variant.PARK:
        if env.park is None:
            raise ValueError(f"Rank {rank.value} has no park variant")
        return _generate_park(seed, rank, env.park, config)
    return _generate_regular(seed, rank, env, config)


def _next_chain_seed(
    seed: int, rank: Rank, variant: Variant, config: RunConfig
) -> Optional[int]:
    """Next seed of the retry chain whose own variant roll matches, or None."""
    candidate = next_attempt_seed(seed)
    for _ in range(config.generation.max_variant_skips):
        if roll_variant(candidate, rank, config) == variant:
            return candidate
        candidate = next_attempt_seed(candidate)
    return None


def generate_valid_level(
    seed: int,
    rank: Union[Rank, str],
    config: Optional[RunConfig] = None,
) -> GenerationResult:
    """
    Generate a validated level, retrying along the seed chain.

    Args:
        seed: Requested seed.
        rank: Difficulty rank (Rank or its name).
        config: Run configuration. Uses default if None.

    Returns:
        GenerationResult; ``ok`` is False when every attempt failed.

    Raises:
        InvalidParameterError: For an invalid seed or unknown rank.
    """
    if config is None:
        config = get_config()
    seed = validate_seed(seed)
    rank = Rank.parse(rank)
    max_attempts = config.generation.max_attempts

    variant = roll_variant(seed, rank, config)
    candidate_seed: Optional[int] = seed
    issues: List[str] = []
    attempts = 0

    while attempts < max_attempts and candidate_seed is not None:
        attempts += 1
        level = generate_candidate(candidate_seed, rank, variant, config)
        issues = validate_level(level, config, build_skeleton(level, config))
        if not issues:
            logger.debug(
                "%s seed %d: valid %s level from seed %d after %d attempt(s)",
                rank.value, seed, variant.value, candidate_seed, attempts,
            )
            return GenerationResult.success(rank, seed, variant, attempts, level, candidate_seed)

        logger.debug(
            "%s seed %d: attempt %d/%d with seed %d rejected: %s",
            rank.value, seed, attempts, max_attempts, candidate_seed, "; ".join(issues),
        )
        candidate_seed = _next_chain_seed(candidate_seed, rank, variant, config)

    if candidate_seed is None:
        issues.append(f"No {variant.value} seed within {config.generation.max_variant_skips} chain steps")

    logger.warning(
        "Generation exhausted for %s seed %d after %d attempt(s): %s",
        rank.value, seed, attempts, "; ".join(issues),
    )
    return GenerationResult.exhausted(rank, seed, variant, attempts, tuple(issues))
