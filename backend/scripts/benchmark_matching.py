#!/usr/bin/env python3
"""Benchmark the team formation engine on seeded synthetic candidate pools."""

from __future__ import annotations

import argparse
import json
import random
import statistics
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence


@dataclass
class BenchmarkResult:
    count: int
    durations: List[float]

    @property
    def runs(self) -> int:
        return len(self.durations)

    @property
    def average(self) -> float:
        return statistics.fmean(self.durations) if self.durations else float("nan")

    @property
    def minimum(self) -> float:
        return min(self.durations) if self.durations else float("nan")

    @property
    def maximum(self) -> float:
        return max(self.durations) if self.durations else float("nan")


def _ensure_package_on_path() -> None:
    """Ensure the backend/casematch package is importable when running the script directly."""
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))


_ensure_package_on_path()

from casematch.enums import (  # noqa: E402
    AvailabilityLevel,
    CompositionPreference,
    EducationGroup,
    ExperienceLevel,
    WorkStyle,
)
from casematch.logging_config import configure_logging  # noqa: E402
from casematch.schemas import ALLOWED_TEAM_SIZES, Candidate  # noqa: E402
from casematch.services.matching import run_matching  # noqa: E402


SKILLS = [
    "Strategy & Structuring", "Market Research", "Financial Modelling",
    "Storytelling", "Data Analysis", "Slide Design", "Pitching",
]
ROLES = ["Lead", "Researcher", "Analyst", "Presenter", "Designer"]
TOPICS = ["Consulting", "Tech", "Health", "Energy", "Finance", "Social Impact"]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Measure execution time of the team formation engine on a synthetic pool.",
    )
    parser.add_argument("--count", type=int, default=200, help="Number of synthetic candidates (default: 200).")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for the synthetic pool (default: 42).")
    parser.add_argument("--runs", type=int, default=3, help="Number of executions (default: 3).")
    parser.add_argument(
        "--max-rounds",
        type=int,
        default=None,
        help="Round cap per partition (default: MATCH_MAX_ROUNDS or 10).",
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress engine logs and per-run details.")
    return parser.parse_args(argv)


def synthetic_pool(count: int, seed: int) -> List[Candidate]:
    rng = random.Random(seed)
    pool: List[Candidate] = []
    for index in range(count):
        pool.append(
            Candidate(
                id=f"cand-{index:05d}",
                name=f"Candidate {index}",
                email=f"candidate{index}@example.com",
                declared_team_size=rng.choice(ALLOWED_TEAM_SIZES),
                # Most applicants have no composition restriction.
                composition_preference=rng.choices(
                    list(CompositionPreference), weights=[1, 1, 6],
                )[0],
                education_group=rng.choice(list(EducationGroup)),
                experience_level=rng.choice(list(ExperienceLevel)),
                availability_level=rng.choice(list(AvailabilityLevel)),
                skills=rng.sample(SKILLS, k=rng.randint(1, 3)),
                roles=rng.sample(ROLES, k=rng.randint(1, 2)),
                topic_preferences=rng.sample(TOPICS, k=rng.randint(1, 3)),
                work_style=rng.choice(list(WorkStyle)),
            )
        )
    return pool


def benchmark(count: int, seed: int, runs: int, max_rounds: Optional[int], quiet: bool):
    pool = synthetic_pool(count, seed)
    durations: List[float] = []
    result = None
    for index in range(max(1, runs)):
        start = time.perf_counter()
        result = run_matching(pool, max_rounds=max_rounds)
        duration = time.perf_counter() - start
        durations.append(duration)
        if not quiet:
            print(
                f"  - run {index + 1}: {duration:.3f}s teams={result.statistics.teams_formed} "
                f"unmatched={result.statistics.unmatched_count}",
            )
    return BenchmarkResult(count=count, durations=durations), result


def print_summary(item: BenchmarkResult, result) -> None:
    header = f"{'Candidates':>10}  {'Runs':>4}  {'Avg(s)':>10}  {'Min(s)':>10}  {'Max(s)':>10}"
    print("\n" + header)
    print("-" * len(header))
    print(f"{item.count:>10}  {item.runs:>4}  {item.average:>10.3f}  {item.minimum:>10.3f}  {item.maximum:>10.3f}")
    if result is not None:
        print("\nStatistics:")
        print(json.dumps(result.statistics.model_dump(mode="json"), indent=2))
        if result.warnings:
            print("\nWarnings:")
            for warning in result.warnings:
                print(f"  - {warning}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    if args.count < 0 or args.runs < 1:
        print("Error: --count must be >= 0 and --runs >= 1", file=sys.stderr)
        return 2
    configure_logging("WARNING" if args.quiet else None)

    try:
        item, result = benchmark(args.count, args.seed, args.runs, args.max_rounds, args.quiet)
    except Exception as exc:
        print(f"Benchmark failed: {exc}", file=sys.stderr)
        return 1

    print_summary(item, result)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
