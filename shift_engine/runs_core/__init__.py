"""
Runs Core - Level generation engine for daily and random runs.

Main exports:
- generate_valid_level: Generate -> validate -> retry, returns a GenerationResult
- RunContext: Owns the active session and the daily completion ledger
- evaluate_all: Score a finished run against a level's bonus objectives
- SeededRNG: Deterministic random stream, seed helpers and seed codes
- RunConfig: Configuration loaded from run_config.yaml
"""

from shift_engine.runs_core.config_loader import RunConfig, get_config, load_config, reload_config
from shift_engine.runs_core.errors import (
    GenerationExhaustedError,
    InvalidParameterError,
    ShiftEngineError,
)
from shift_engine.runs_core.level import (
    RANKS,
    BonusObjective,
    LevelDescriptor,
    ObjectiveKind,
    Rank,
    Variant,
    Weather,
)
from shift_engine.runs_core.rng import (
    SeededRNG,
    code_to_seed,
    daily_seed,
    derive_seed,
    next_attempt_seed,
    random_seed,
    rank_seed,
    seed_to_code,
)
from shift_engine.runs_core.generator import (
    GenerationResult,
    compute_time_limit,
    generate_candidate,
    generate_valid_level,
    roll_variant,
)
from shift_engine.runs_core.validation import validate_level
from shift_engine.runs_core.terrain import TerrainSkeleton, build_skeleton
from shift_engine.runs_core.objectives import (
    EvalResult,
    RunStatistics,
    evaluate_all,
    evaluate_objective,
    get_label,
)
from shift_engine.runs_core.session import (
    CompletionLedger,
    RunContext,
    RunMode,
    Session,
    build_share_text,
    build_share_url,
    parse_share_query,
)

__all__ = [
    "RunConfig",
    "get_config",
    "load_config",
    "reload_config",
    "ShiftEngineError",
    "InvalidParameterError",
    "GenerationExhaustedError",
    "RANKS",
    "Rank",
    "Variant",
    "Weather",
    "ObjectiveKind",
    "BonusObjective",
    "LevelDescriptor",
    "SeededRNG",
    "derive_seed",
    "daily_seed",
    "random_seed",
    "rank_seed",
    "next_attempt_seed",
    "seed_to_code",
    "code_to_seed",
    "GenerationResult",
    "roll_variant",
    "generate_candidate",
    "compute_time_limit",
    "generate_valid_level",
    "validate_level",
    "TerrainSkeleton",
    "build_skeleton",
    "RunStatistics",
    "EvalResult",
    "evaluate_objective",
    "get_label",
    "evaluate_all",
    "RunMode",
    "Session",
    "CompletionLedger",
    "RunContext",
    "build_share_text",
    "build_share_url",
    "parse_share_query",
]
