from __future__ import annotations

import logging
import time
from typing import Dict, Iterable, List, Optional

from ...schemas import Candidate, MatchingResult, PartitionSummary, RoundRecord, Team
from .config import resolve_max_rounds, resolve_weights
from .metrics import compute_statistics, summarize_rounds
from .partition import match_partitions
from .unmatched import analyze_unmatched
from .validation import collect_warnings, reconcile_unmatched, validate_candidates, validate_teams

logger = logging.getLogger(__name__)


def run_matching(
    candidates: Iterable[Candidate],
    *,
    weights: Optional[Dict[str, float]] = None,
    max_rounds: Optional[int] = None,
    strict: Optional[bool] = None,
) -> MatchingResult:
    """Form teams from ``candidates`` and return teams, leftovers and statistics.

    The input is never mutated and no state is kept between calls. Raises
    :class:`MalformedCandidateError` before any matching when the pool is not
    clean, and ``ValueError`` for unknown weight keys.
    """
    start = time.perf_counter()
    pool = validate_candidates(candidates)
    resolved_weights = resolve_weights(weights)
    cap = resolve_max_rounds(max_rounds)

    outcomes = match_partitions(pool, weights=resolved_weights, max_rounds=cap, strict=strict)
    formed: List[Team] = []
    reported_unmatched: List[Candidate] = []
    history: List[RoundRecord] = []
    build_violations: List[str] = []
    for outcome in outcomes:
        formed.extend(outcome.teams)
        build_violations.extend(outcome.violations)
        reported_unmatched.extend(outcome.unmatched)
        history.extend(outcome.history)

    teams, rejected, errors = validate_teams(formed, strict=strict)
    for team in rejected:
        reported_unmatched.extend(team.members)
    unmatched = reconcile_unmatched(pool, teams, reported_unmatched)

    unmatched_ids = {candidate.id for candidate in unmatched}
    partition_summary: Dict[str, PartitionSummary] = {}
    for outcome in outcomes:
        partition_teams = [team for team in teams if team.partition == outcome.partition]
        members = [candidate for candidate in pool if candidate.composition_preference == outcome.partition]
        left = sum(1 for candidate in members if candidate.id in unmatched_ids)
        partition_summary[outcome.partition.value] = PartitionSummary(
            candidates=len(members),
            teams=len(partition_teams),
            matched=len(members) - left,
            unmatched=left,
            rounds=outcome.rounds,
            stop_reason=outcome.stop_reason,
        )

    statistics = compute_statistics(
        len(pool),
        teams,
        len(unmatched),
        invariant_violations=len(build_violations) + len(errors),
        partition_summary=partition_summary,
    )
    result = MatchingResult(
        teams=teams,
        unmatched=unmatched,
        statistics=statistics,
        rounds=history,
        round_summary=summarize_rounds(history),
        warnings=collect_warnings(pool),
        unmatched_report=analyze_unmatched(pool, teams, unmatched, resolved_weights),
    )
    logger.info(
        'matching.run candidates=%d teams=%d unmatched=%d efficiency=%.3f violations=%d duration=%.3fs',
        statistics.total_candidates, statistics.teams_formed, statistics.unmatched_count,
        statistics.matching_efficiency, statistics.invariant_violations, time.perf_counter() - start,
    )
    return result
