from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ...enums import CompositionPreference
from ...schemas import Candidate, RoundRecord, Team
from .builder import build_teams_for_bucket
from .config import resolve_max_rounds

logger = logging.getLogger(__name__)

STOP_POOL_EMPTY = 'pool_empty'
STOP_INSUFFICIENT = 'insufficient_pool'
STOP_NO_PROGRESS = 'no_progress'
STOP_ROUND_CAP = 'round_cap'


@dataclass
class PartitionOutcome:
    partition: CompositionPreference
    teams: List[Team] = field(default_factory=list)
    unmatched: List[Candidate] = field(default_factory=list)
    history: List[RoundRecord] = field(default_factory=list)
    violations: List[str] = field(default_factory=list)
    stop_reason: Optional[str] = None

    @property
    def rounds(self) -> int:
        return len(self.history)


def _bucket_sort_key(candidate: Candidate):
    return (-candidate.experience_level.rank, -candidate.availability_level.rank)


def bucket_by_size(pool: Sequence[Candidate]) -> Dict[int, List[Candidate]]:
    """Group by declared size, largest size first, each bucket in anchor order.

    The sort is stable, so ties keep pool order.
    """
    buckets: Dict[int, List[Candidate]] = {}
    for candidate in pool:
        buckets.setdefault(candidate.declared_team_size, []).append(candidate)
    return {size: sorted(buckets[size], key=_bucket_sort_key) for size in sorted(buckets, reverse=True)}


def bucket_capacity(buckets: Dict[int, List[Candidate]]) -> Dict[int, int]:
    """Complete teams formable per size from same-size candidates only."""
    return {size: len(members) // size for size, members in buckets.items()}


def run_round(
    pool: Sequence[Candidate],
    *,
    partition: CompositionPreference,
    round_index: int,
    weights: Optional[Dict[str, float]] = None,
    strict: Optional[bool] = None,
    violations: Optional[List[str]] = None,
) -> tuple[List[Team], List[Candidate], RoundRecord]:
    """One pass of bucketing and team building over ``pool``.

    The remainder keeps the order of ``pool`` so later rounds and re-runs see
    the same ordering context.
    """
    buckets = bucket_by_size(pool)
    capacity = bucket_capacity(buckets)
    teams: List[Team] = []
    violations = [] if violations is None else violations
    violations_before = len(violations)
    for size, bucket in buckets.items():
        if capacity[size] == 0:
            continue
        formed, _ = build_teams_for_bucket(
            bucket,
            size,
            weights,
            id_prefix=f'{partition.value}-r{round_index}-s{size}',
            partition=partition,
            round_index=round_index,
            strict=strict,
            violations=violations,
        )
        teams.extend(formed)
    placed = {cid for team in teams for cid in team.member_ids}
    remainder = [candidate for candidate in pool if candidate.id not in placed]
    matched = len(pool) - len(remainder)
    record = RoundRecord(
        partition=partition,
        round_index=round_index,
        pool_size=len(pool),
        bucket_capacity=capacity,
        teams_formed=len(teams),
        candidates_matched=matched,
        remaining=len(remainder),
        efficiency=matched / len(pool) if pool else 0.0,
        invariant_violations=len(violations) - violations_before,
    )
    return teams, remainder, record


def run_rounds(
    pool: Sequence[Candidate],
    partition: CompositionPreference,
    *,
    weights: Optional[Dict[str, float]] = None,
    max_rounds: Optional[int] = None,
    strict: Optional[bool] = None,
) -> PartitionOutcome:
    """Run rounds over a single composition partition until nothing more can form."""
    start = time.perf_counter()
    cap = resolve_max_rounds(max_rounds)
    outcome = PartitionOutcome(partition=partition)
    remaining: List[Candidate] = list(pool)
    for round_index in range(1, cap + 1):
        if not remaining:
            outcome.stop_reason = STOP_POOL_EMPTY
            break
        if not any(bucket_capacity(bucket_by_size(remaining)).values()):
            outcome.stop_reason = STOP_INSUFFICIENT
            break
        teams, remaining, record = run_round(
            remaining,
            partition=partition,
            round_index=round_index,
            weights=weights,
            strict=strict,
            violations=outcome.violations,
        )
        outcome.teams.extend(teams)
        outcome.history.append(record)
        logger.debug(
            'matching.round partition=%s round=%d pool=%d teams=%d matched=%d remaining=%d',
            partition.value, round_index, record.pool_size, record.teams_formed,
            record.candidates_matched, record.remaining,
        )
        if not teams:
            outcome.stop_reason = STOP_NO_PROGRESS
            break
    else:
        outcome.stop_reason = STOP_POOL_EMPTY if not remaining else STOP_ROUND_CAP
    outcome.unmatched = remaining
    logger.info(
        'matching.partition partition=%s candidates=%d teams=%d unmatched=%d rounds=%d stop=%s duration=%.3fs',
        partition.value, len(pool), len(outcome.teams), len(outcome.unmatched),
        outcome.rounds, outcome.stop_reason, time.perf_counter() - start,
    )
    return outcome
