"""
Generation Audit Harness
========================

Generates a level for every seed of the fixed seed bank at each rank and
reports how healthy generation is: retry counts, exhaustion, park share and
the spread of coverage targets and time limits.

Usage:
    python -m shift_engine.evaluation.run_audit --ranks green blue --output audit.json
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from shift_engine.runs_core.config_loader import RunConfig, get_config, load_config
from shift_engine.runs_core.level import RANKS, Rank, Variant
from shift_engine.runs_core.generator import generate_valid_level
from shift_engine.runs_core.rng import rank_seed, seed_to_code


@dataclass
class AuditResult:
    """Result for a single base seed at one rank."""
    base_seed: int
    rank: Rank
    requested_seed: int
    ok: bool
    attempts: int
    variant: Variant
    elapsed_time: float
    used_seed: Optional[int] = None
    target_coverage: Optional[int] = None
    time_limit: Optional[int] = None
    objective_count: int = 0
    issues: List[str] = field(default_factory=list)


@dataclass
class RankSummary:
    """Aggregate statistics for one rank."""
    rank: Rank
    levels: int
    exhausted: int
    park_share: float
    mean_attempts: float
    std_attempts: float
    max_attempts: int
    mean_coverage: float
    mean_time_limit: float
    std_time_limit: float
    median_time_limit: float


@dataclass
class AuditSummary:
    """Summary of the audit across all ranks."""
    ranks: Dict[Rank, RankSummary]
    total_time: float
    results: List[AuditResult]

    @property
    def exhausted(self) -> int:
        return sum(s.exhausted for s in self.ranks.values())


def load_seed_bank(path: Optional[str] = None) -> List[int]:
    """
    Load the audit seed bank.

    Args:
        path: Path to seed_bank.json. Uses default if None.

    Returns:
        List of base seeds.
    """
    if path is None:
        path = os.path.join(os.path.dirname(__file__), "seed_bank.json")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return [int(s) for s in data["seeds"]]


def audit_single_seed(
    base_seed: int,
    rank: Rank,
    config: RunConfig,
    verbose: bool = False,
) -> AuditResult:
    """
    Generate one level the way a session would and record the outcome.

    Args:
        base_seed: Base seed from the seed bank.
        rank: Rank to generate.
        config: Run configuration.
        verbose: If True, print one line for this seed.

    Returns:
        AuditResult for this seed.
    """
    requested = rank_seed(base_seed, rank, config)
    start_time = time.time()
    gen = generate_valid_level(requested, rank, config)
    elapsed = time.time() - start_time

    result = AuditResult(
        base_seed=base_seed,
        rank=rank,
        requested_seed=requested,
        ok=gen.ok,
        attempts=gen.attempts,
        variant=gen.variant,
        elapsed_time=elapsed,
        issues=list(gen.issues),
    )
    if gen.ok:
        result.used_seed = gen.used_seed
        result.target_coverage = gen.level.target_coverage
        result.time_limit = gen.level.time_limit
        result.objective_count = len(gen.level.bonus_objectives)

    if verbose:
        if gen.ok:
            print(f"  {rank.value:<5} base {base_seed}: {seed_to_code(gen.used_seed, config)} "
                  f"{gen.variant.value}, attempts={gen.attempts}, "
                  f"coverage={result.target_coverage}%, time={result.time_limit}s")
        else:
            print(f"  {rank.value:<5} base {base_seed}: EXHAUSTED after {gen.attempts} attempts")

    return result


def summarize_rank(rank: Rank, results: Sequence[AuditResult]) -> RankSummary:
    """Aggregate the results of one rank."""
    ok = [r for r in results if r.ok]
    attempts = [r.attempts for r in results] or [0]
    coverage = [r.target_coverage for r in ok] or [0]
    times = [r.time_limit for r in ok] or [0]
    parks = sum(1 for r in ok if r.variant == Variant.PARK)

    return RankSummary(
        rank=rank,
        levels=len(results),
        exhausted=len(results) - len(ok),
        park_share=parks / len(ok) if ok else 0.0,
        mean_attempts=float(np.mean(attempts)),
        std_attempts=float(np.std(attempts)),
        max_attempts=int(max(attempts)),
        mean_coverage=float(np.mean(coverage)),
        mean_time_limit=float(np.mean(times)),
        std_time_limit=float(np.std(times)),
        median_time_limit=float(np.median(times)),
    )


def audit_ranks(
    seeds: Optional[List[int]] = None,
    ranks: Optional[Sequence[Rank]] = None,
    config: Optional[RunConfig] = None,
    verbose: bool = True,
) -> AuditSummary:
    """
    Audit generation for every seed of the seed bank at each rank.

    Args:
        seeds: Base seeds. Uses seed_bank.json if None.
        ranks: Ranks to audit. All ranks if None.
        config: Run configuration. Uses default if None.
        verbose: If True, print progress.

    Returns:
        AuditSummary with per-rank statistics.
    """
    if seeds is None:
        seeds = load_seed_bank()
    if ranks is None:
        ranks = RANKS
    if config is None:
        config = get_config()

    if verbose:
        print(f"Auditing {len(seeds)} seeds x {len(ranks)} ranks...")

    results: List[AuditResult] = []
    per_rank: Dict[Rank, RankSummary] = {}
    total_start = time.time()

    for rank in ranks:
        rank = Rank.parse(rank)
        if verbose:
            print(f"[{rank.value}]")
        rank_results = [audit_single_seed(s, rank, config, verbose=verbose) for s in seeds]
        results.extend(rank_results)
        per_rank[rank] = summarize_rank(rank, rank_results)

    summary = AuditSummary(ranks=per_rank, total_time=time.time() - total_start, results=results)

    if verbose:
        print()
        print("=" * 64)
        print("GENERATION AUDIT SUMMARY")
        print("=" * 64)
        print(f"{'rank':<6} {'levels':>6} {'exh':>4} {'park':>6} {'att':>11} "
              f"{'cover':>6} {'time':>13}")
        for s in per_rank.values():
            print(f"{s.rank.value:<6} {s.levels:>6} {s.exhausted:>4} {s.park_share:>6.0%} "
                  f"{s.mean_attempts:>5.2f}±{s.std_attempts:<4.2f} {s.mean_coverage:>5.1f}% "
                  f"{s.mean_time_limit:>6.0f}±{s.std_time_limit:<5.0f}s")
        print(f"Total time: {summary.total_time:.2f}s")
        print("=" * 64)

    return summary


def save_results(summary: AuditSummary, output_path: str) -> None:
    """Save audit results to JSON."""
    data = {
        "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
        "total_time": summary.total_time,
        "exhausted": summary.exhausted,
        "ranks": {
            rank.value: {
                "levels": s.levels,
                "exhausted": s.exhausted,
                "park_share": s.park_share,
                "mean_attempts": s.mean_attempts,
                "std_attempts": s.std_attempts,
                "max_attempts": s.max_attempts,
                "mean_coverage": s.mean_coverage,
                "mean_time_limit": s.mean_time_limit,
                "std_time_limit": s.std_time_limit,
                "median_time_limit": s.median_time_limit,
            }
            for rank, s in summary.ranks.items()
        },
        "results": [
            {
                "base_seed": r.base_seed,
                "rank": r.rank.value,
                "requested_seed": r.requested_seed,
                "used_seed": r.used_seed,
                "ok": r.ok,
                "attempts": r.attempts,
                "variant": r.variant.value,
                "target_coverage": r.target_coverage,
                "time_limit": r.time_limit,
                "objective_count": r.objective_count,
                "elapsed_time": r.elapsed_time,
                "issues": r.issues,
            }
            for r in summary.results
        ],
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)

    print(f"Results saved to {output_path}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Audit level generation over the seed bank")
    parser.add_argument(
        "--ranks",
        nargs="+",
        choices=[r.value for r in RANKS],
        default=None,
        help="Ranks to audit (all if not specified)"
    )
    parser.add_argument(
        "--seeds",
        type=str,
        default=None,
        help="Path to seed bank JSON (uses default if not specified)"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to run_config.yaml (uses default if not specified)"
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Path to save results JSON"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce output verbosity"
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for the engine"
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = load_config(args.config) if args.config else get_config()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}")
        return 1

    seeds = load_seed_bank(args.seeds) if args.seeds else None
    ranks = [Rank.parse(r) for r in args.ranks] if args.ranks else None

    summary = audit_ranks(seeds=seeds, ranks=ranks, config=config, verbose=not args.quiet)

    if args.output:
        save_results(summary, args.output)

    return 0 if summary.exhausted == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
