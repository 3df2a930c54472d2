"""
Level Viewer
============

Print a generated level's parameters and an ASCII map of its terrain
skeleton. Handy for eyeballing shapes, steep bands and bypass roads.

Usage:
    python -m tools.view_level --rank red --seed 12345
    python -m tools.view_level --rank black --code 3FAVFQF
    python -m tools.view_level --rank green --daily

Legend:
    .  groomable piste        !  groomable but unreachable
    o  obstacle               ^  impassable steep band
    =  access road            S  spawn    G  slalom gate
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from shift_engine.runs_core.config_loader import RunConfig, get_config, load_config
from shift_engine.runs_core.errors import ShiftEngineError
from shift_engine.runs_core.generator import generate_valid_level
from shift_engine.runs_core.level import RANKS, LevelDescriptor, Rank
from shift_engine.runs_core.objectives import get_label
from shift_engine.runs_core.rng import code_to_seed, daily_seed, random_seed, rank_seed, seed_to_code
from shift_engine.runs_core.terrain import build_skeleton, render_ascii


def describe_level(level: LevelDescriptor, config: Optional[RunConfig] = None) -> str:
    """Multi-line summary of a level's parameters."""
    if config is None:
        config = get_config()
    lines = [
        f"{level.name}  ({level.difficulty}, seed {seed_to_code(level.seed, config)})",
        f"  size:      {level.width}x{level.height}, {level.piste_shape.value} "
        f"piste at {level.piste_width:.0%} width",
        f"  goal:      {level.target_coverage}% in {level.time_limit}s",
        f"  weather:   {level.weather.value}{', night' if level.is_night else ''}",
    ]
    if level.steep_zones:
        zones = ", ".join(f"{z.slope}°@{z.start_y:.2f}-{z.end_y:.2f}" for z in level.steep_zones)
        lines.append(f"  steep:     {zones}{' (winch)' if level.has_winch else ''}")
    if level.access_paths:
        lines.append(f"  roads:     {', '.join(p.side for p in level.access_paths)}")
    if level.slalom_gates:
        lines.append(f"  slalom:    {len(level.slalom_gates)} gates")
    if level.special_features:
        lines.append(f"  features:  {', '.join(f.value for f in level.special_features)}")
    if level.hazards:
        lines.append(f"  hazards:   {', '.join(level.hazards)}")
    for obj in level.bonus_objectives:
        lines.append(f"  bonus:     {get_label(obj)}")
    lines.append(f"  briefing:  {level.intro_speaker}")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Preview a generated level")
    parser.add_argument(
        "--rank",
        choices=[r.value for r in RANKS],
        default="green",
        help="Difficulty rank"
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--seed", type=int, default=None, help="Base seed")
    source.add_argument("--code", type=str, default=None, help="Shared seed code (used seed)")
    source.add_argument("--daily", action="store_true", help="Today's daily seed")
    parser.add_argument("--config", type=str, default=None, help="Path to run_config.yaml")
    parser.add_argument("--no-map", action="store_true", help="Skip the ASCII map")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    config = load_config(args.config) if args.config else get_config()
    rank = Rank.parse(args.rank)

    try:
        if args.code is not None:
            seed = code_to_seed(args.code, config)
        elif args.daily:
            seed = rank_seed(daily_seed(config=config), rank, config)
        else:
            base = args.seed if args.seed is not None else random_seed()
            seed = rank_seed(base, rank, config)
        level, used_seed = generate_valid_level(seed, rank, config).unwrap()
    except ShiftEngineError as e:
        print(f"Error: {e}")
        return 1

    print(describe_level(level, config))
    if used_seed != seed:
        print(f"  (requested {seed_to_code(seed, config)}, retried to {seed_to_code(used_seed, config)})")
    if not args.no_map:
        print()
        print(render_ascii(build_skeleton(level, config)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
