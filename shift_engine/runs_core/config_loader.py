"""
Configuration Loader
====================

Loads and validates run_config.yaml, providing typed access to the rank
envelopes and generation constants.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from shift_engine.runs_core.level import PisteShape, Rank, SpecialFeature, Weather

IntRange = Tuple[int, int]
FloatRange = Tuple[float, float]


@dataclass(frozen=True)
class SeedConfig:
    """Seed domain and shareable code settings."""
    code_alphabet: str
    min_code_length: int
    daily_salt: str
    rank_multiplier: int
    rank_step: int


@dataclass(frozen=True)
class GenerationConfig:
    """Retry bounds, tile model and time budget constants."""
    max_attempts: int
    max_variant_skips: int
    level_id_base: int
    groom_rate: float            # Conservative groomed tiles per second
    peak_groom_rate: float       # Best-case groomed tiles per second
    min_piste_width: int
    min_halfpipe_width: int
    min_usable_tiles: int
    slide_slope_threshold: int
    piste_top_margin: int        # Rows above the piste that are never groomable
    piste_bottom_margin: int
    spawn_row_fraction: float
    spawn_row_margin: int
    access_lane_width: int
    obstacle_cluster_tiles: int  # Piste tiles per obstacle cluster at density 1.0
    time_step: int
    min_time_limit: int
    area_floor_tiles: int
    steep_zone_seconds: int
    night_seconds: int
    storm_seconds: int
    max_objectives: int


@dataclass(frozen=True)
class ObjectiveRule:
    """Draw probability and target range for one generated objective kind."""
    chance: float
    target_range: IntRange = (0, 0)


@dataclass(frozen=True)
class ObjectiveRules:
    fuel_efficiency: ObjectiveRule
    flawless: ObjectiveRule
    speed_run: ObjectiveRule
    winch_mastery: ObjectiveRule
    precision_grooming: ObjectiveRule
    exploration: ObjectiveRule


@dataclass(frozen=True)
class WildlifeConfig:
    species: Tuple[str, ...]
    species_count: IntRange
    per_species: IntRange


@dataclass(frozen=True)
class FeatureCombo:
    weight: float
    features: Tuple[SpecialFeature, ...]


@dataclass(frozen=True)
class ParkEnvelope:
    """Ranges for the terrain-park variant of a rank."""
    chance: float
    width_range: IntRange
    height_range: IntRange
    piste_width_range: FloatRange
    shapes: Tuple[PisteShape, ...]
    coverage_range: IntRange
    precision_range: IntRange
    pipe_range: IntRange
    feature_combos: Tuple[FeatureCombo, ...]


@dataclass(frozen=True)
class RankEnvelope:
    """Parameter envelope for one difficulty rank."""
    rank: Rank
    width_range: IntRange
    height_range: IntRange
    piste_width_range: FloatRange
    shapes: Tuple[PisteShape, ...]
    steep_zone_count: int
    slope_range: IntRange
    has_winch: bool
    has_avalanche: bool
    weather_pool: Tuple[Weather, ...]
    night_chance: float
    coverage_range: IntRange
    time_range: IntRange
    time_slack: float
    obstacle_density: float
    slalom_chance: float
    slalom_count: IntRange
    slalom_width: int
    dangerous_boundaries_chance: float
    pylons_chance: float
    park: Optional[ParkEnvelope] = None

    @property
    def park_chance(self) -> float:
        return self.park.chance if self.park is not None else 0.0


@dataclass(frozen=True)
class RunConfig:
    """
    Complete engine configuration loaded from YAML.

    All values are immutable so that generation stays a pure function of
    (seed, rank, config).
    """
    seeds: SeedConfig
    generation: GenerationConfig
    objectives: ObjectiveRules
    wildlife: WildlifeConfig
    ranks: Dict[Rank, RankEnvelope]

    def envelope(self, rank: Rank) -> RankEnvelope:
        """Get the envelope for a rank."""
        try:
            return self.ranks[rank]
        except KeyError:
            raise ValueError(f"No envelope configured for rank: {rank}") from None


def _parse_int_range(data: List, name: str) -> IntRange:
    if len(data) != 2:
        raise ValueError(f"{name} must have 2 values [min, max], got {data}")
    return (int(data[0]), int(data[1]))


def _parse_float_range(data: List, name: str) -> FloatRange:
    if len(data) != 2:
        raise ValueError(f"{name} must have 2 values [min, max], got {data}")
    return (float(data[0]), float(data[1]))


def _parse_shapes(data: List) -> Tuple[PisteShape, ...]:
    return tuple(PisteShape(str(s)) for s in data)


def _parse_park(data: dict) -> ParkEnvelope:
    """Parse the park sub-envelope of a rank."""
    combos = tuple(
        FeatureCombo(
            weight=float(c["weight"]),
            features=tuple(SpecialFeature(str(f)) for f in c["features"]),
        )
        for c in data["feature_combos"]
    )
    return ParkEnvelope(
        chance=float(data["chance"]),
        width_range=_parse_int_range(data["width_range"], "park.width_range"),
        height_range=_parse_int_range(data["height_range"], "park.height_range"),
        piste_width_range=_parse_float_range(data["piste_width_range"], "park.piste_width_range"),
        shapes=_parse_shapes(data["shapes"]),
        coverage_range=_parse_int_range(data["coverage_range"], "park.coverage_range"),
        precision_range=_parse_int_range(data["precision_range"], "park.precision_range"),
        pipe_range=_parse_int_range(data["pipe_range"], "park.pipe_range"),
        feature_combos=combos,
    )


def _parse_rank(rank: Rank, data: dict) -> RankEnvelope:
    """Parse a single rank envelope from YAML."""
    park_data = data.get("park")
    return RankEnvelope(
        rank=rank,
        width_range=_parse_int_range(data["width_range"], f"{rank.value}.width_range"),
        height_range=_parse_int_range(data["height_range"], f"{rank.value}.height_range"),
        piste_width_range=_parse_float_range(
            data["piste_width_range"], f"{rank.value}.piste_width_range"
        ),
        shapes=_parse_shapes(data["shapes"]),
        steep_zone_count=int(data.get("steep_zone_count", 0)),
        slope_range=_parse_int_range(data.get("slope_range", [0, 0]), f"{rank.value}.slope_range"),
        has_winch=bool(data.get("has_winch", False)),
        has_avalanche=bool(data.get("has_avalanche", False)),
        weather_pool=tuple(Weather(str(w)) for w in data.get("weather_pool", ["clear"])),
        night_chance=float(data.get("night_chance", 0.0)),
        coverage_range=_parse_int_range(data["coverage_range"], f"{rank.value}.coverage_range"),
        time_range=_parse_int_range(data["time_range"], f"{rank.value}.time_range"),
        time_slack=float(data.get("time_slack", 1.5)),
        obstacle_density=float(data.get("obstacle_density", 0.0)),
        slalom_chance=float(data.get("slalom_chance", 0.0)),
        slalom_count=_parse_int_range(data.get("slalom_count", [0, 0]), f"{rank.value}.slalom_count"),
        slalom_width=int(data.get("slalom_width", 5)),
        dangerous_boundaries_chance=float(data.get("dangerous_boundaries_chance", 0.0)),
        pylons_chance=float(data.get("pylons_chance", 0.0)),
        park=_parse_park(park_data) if park_data else None,
    )


def _parse_objective_rule(data: Optional[dict]) -> ObjectiveRule:
    data = data or {}
    return ObjectiveRule(
        chance=float(data.get("chance", 0.0)),
        target_range=_parse_int_range(data.get("range", [0, 0]), "objective range"),
    )


def _check_range(value: Tuple, name: str) -> None:
    if value[0] > value[1]:
        raise ValueError(f"{name} is inverted: {value}")


def _check_nested(inner: Tuple, outer: Tuple, name: str) -> None:
    if inner[0] < outer[0] or inner[1] > outer[1]:
        raise ValueError(f"{name} {inner} must lie within {outer}")


def _check_probability(value: float, name: str) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be a probability in [0, 1], got {value}")


def _validate_config(config: RunConfig) -> None:
    """Validate configuration consistency."""
    missing = [r.value for r in Rank if r not in config.ranks]
    if missing:
        raise ValueError(f"Missing rank envelopes: {missing}")

    alphabet = config.seeds.code_alphabet
    if len(alphabet) != 32 or len(set(alphabet)) != 32:
        raise ValueError(f"code_alphabet must have 32 unique characters, got {alphabet!r}")
    if alphabet != alphabet.upper():
        raise ValueError("code_alphabet must be upper case")

    gen = config.generation
    if gen.max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {gen.max_attempts}")
    if gen.groom_rate <= 0 or gen.peak_groom_rate < gen.groom_rate:
        raise ValueError("groom rates must be positive with peak_groom_rate >= groom_rate")

    for rank, env in config.ranks.items():
        name = rank.value
        for attr in ("width_range", "height_range", "piste_width_range", "slope_range",
                     "coverage_range", "time_range", "slalom_count"):
            _check_range(getattr(env, attr), f"{name}.{attr}")
        for attr in ("night_chance", "slalom_chance", "dangerous_boundaries_chance",
                     "pylons_chance"):
            _check_probability(getattr(env, attr), f"{name}.{attr}")
        if env.width_range[0] <= 0 or env.height_range[0] <= 0:
            raise ValueError(f"{name} dimensions must be positive")
        if env.coverage_range[0] <= 0 or env.coverage_range[1] > 100:
            raise ValueError(f"{name}.coverage_range must lie in (0, 100]")
        if env.time_range[0] <= 0:
            raise ValueError(f"{name}.time_range must be positive")
        if not env.shapes or not env.weather_pool:
            raise ValueError(f"{name} needs at least one shape and one weather type")
        if env.park is not None:
            park = env.park
            _check_probability(park.chance, f"{name}.park.chance")
            _check_nested(park.width_range, env.width_range, f"{name}.park.width_range")
            _check_nested(park.height_range, env.height_range, f"{name}.park.height_range")
            _check_nested(park.coverage_range, env.coverage_range, f"{name}.park.coverage_range")
            if not park.feature_combos:
                raise ValueError(f"{name}.park needs at least one feature combo")

    for kind in ("fuel_efficiency", "flawless", "speed_run", "winch_mastery",
                 "precision_grooming", "exploration"):
        _check_probability(getattr(config.objectives, kind).chance, f"objectives.{kind}.chance")


def load_config(config_path: Optional[str] = None) -> RunConfig:
    """
    Load and validate run configuration from YAML.

    Args:
        config_path: Path to run_config.yaml. If None, uses default location.

    Returns:
        Validated RunConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config validation fails.
    """
    if config_path is None:
        config_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "run_config.yaml"
        )

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    seeds_data = raw["seeds"]
    seeds = SeedConfig(
        code_alphabet=str(seeds_data["code_alphabet"]),
        min_code_length=int(seeds_data.get("min_code_length", 4)),
        daily_salt=str(seeds_data.get("daily_salt", "")),
        rank_multiplier=int(seeds_data.get("rank_multiplier", 31)),
        rank_step=int(seeds_data.get("rank_step", 7919)),
    )

    gen_data = raw["generation"]
    generation = GenerationConfig(
        max_attempts=int(gen_data["max_attempts"]),
        max_variant_skips=int(gen_data.get("max_variant_skips", 64)),
        level_id_base=int(gen_data.get("level_id_base", 100)),
        groom_rate=float(gen_data["groom_rate"]),
        peak_groom_rate=float(gen_data["peak_groom_rate"]),
        min_piste_width=int(gen_data.get("min_piste_width", 4)),
        min_halfpipe_width=int(gen_data.get("min_halfpipe_width", 9)),
        min_usable_tiles=int(gen_data.get("min_usable_tiles", 20)),
        slide_slope_threshold=int(gen_data.get("slide_slope_threshold", 30)),
        piste_top_margin=int(gen_data.get("piste_top_margin", 3)),
        piste_bottom_margin=int(gen_data.get("piste_bottom_margin", 2)),
        spawn_row_fraction=float(gen_data.get("spawn_row_fraction", 0.9)),
        spawn_row_margin=int(gen_data.get("spawn_row_margin", 8)),
        access_lane_width=int(gen_data.get("access_lane_width", 3)),
        obstacle_cluster_tiles=int(gen_data.get("obstacle_cluster_tiles", 60)),
        time_step=int(gen_data.get("time_step", 30)),
        min_time_limit=int(gen_data.get("min_time_limit", 60)),
        area_floor_tiles=int(gen_data.get("area_floor_tiles", 500)),
        steep_zone_seconds=int(gen_data.get("steep_zone_seconds", 20)),
        night_seconds=int(gen_data.get("night_seconds", 30)),
        storm_seconds=int(gen_data.get("storm_seconds", 30)),
        max_objectives=int(gen_data.get("max_objectives", 3)),
    )

    obj_data = raw.get("objectives", {})
    objectives = ObjectiveRules(
        fuel_efficiency=_parse_objective_rule(obj_data.get("fuel_efficiency")),
        flawless=_parse_objective_rule(obj_data.get("flawless")),
        speed_run=_parse_objective_rule(obj_data.get("speed_run")),
        winch_mastery=_parse_objective_rule(obj_data.get("winch_mastery")),
        precision_grooming=_parse_objective_rule(obj_data.get("precision_grooming")),
        exploration=_parse_objective_rule(obj_data.get("exploration")),
    )

    wildlife_data = raw.get("wildlife", {})
    wildlife = WildlifeConfig(
        species=tuple(str(s) for s in wildlife_data.get("species", ["bunny"])),
        species_count=_parse_int_range(wildlife_data.get("species_count", [1, 1]), "wildlife.species_count"),
        per_species=_parse_int_range(wildlife_data.get("per_species", [1, 1]), "wildlife.per_species"),
    )

    ranks: Dict[Rank, RankEnvelope] = {}
    for name, rank_data in raw["ranks"].items():
        try:
            rank = Rank(str(name))
        except ValueError:
            raise ValueError(f"Unknown rank in config: {name}") from None
        ranks[rank] = _parse_rank(rank, rank_data)

    config = RunConfig(
        seeds=seeds,
        generation=generation,
        objectives=objectives,
        wildlife=wildlife,
        ranks=ranks,
    )

    _validate_config(config)
    return config


# Module-level singleton for convenience
_cached_config: Optional[RunConfig] = None


def get_config() -> RunConfig:
    """Get the cached run configuration, loading if necessary."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reload_config(config_path: Optional[str] = None) -> RunConfig:
    """Reload the configuration (useful for testing)."""
    global _cached_config
    _cached_config = load_config(config_path)
    return _cached_config
