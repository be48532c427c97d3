from __future__ import annotations

from collections import Counter
from typing import Dict, List, Optional, Sequence

from ...schemas import MatchingStatistics, PartitionSummary, RoundRecord, RoundSummary, Team


def compute_statistics(
    total_candidates: int,
    teams: Sequence[Team],
    unmatched_count: int,
    *,
    invariant_violations: int = 0,
    partition_summary: Optional[Dict[str, PartitionSummary]] = None,
) -> MatchingStatistics:
    """Aggregate the summary block for a finished run.

    Efficiency is a fraction in ``[0, 1]``: ``(total - unmatched) / total``.
    """
    matched = sum(len(team.members) for team in teams)
    size_distribution: Counter = Counter(team.team_size for team in teams)
    topic_distribution: Counter = Counter()
    for team in teams:
        topic_distribution.update(team.common_topics)
    return MatchingStatistics(
        total_candidates=total_candidates,
        teams_formed=len(teams),
        matched_candidates=matched,
        unmatched_count=unmatched_count,
        average_team_size=matched / len(teams) if teams else 0.0,
        matching_efficiency=(total_candidates - unmatched_count) / total_candidates if total_candidates else 0.0,
        average_compatibility=(
            sum(team.compatibility_score for team in teams) / len(teams) if teams else 0.0
        ),
        team_size_distribution=dict(sorted(size_distribution.items())),
        topic_distribution=dict(sorted(topic_distribution.items(), key=lambda item: (-item[1], item[0]))),
        invariant_violations=invariant_violations,
        partition_summary=partition_summary or {},
    )


def summarize_rounds(history: List[RoundRecord]) -> RoundSummary:
    if not history:
        return RoundSummary()
    best = history[0]
    worst = history[0]
    for record in history[1:]:
        if record.efficiency > best.efficiency:
            best = record
        if record.efficiency < worst.efficiency:
            worst = record
    return RoundSummary(
        total_rounds=len(history),
        average_round_efficiency=sum(record.efficiency for record in history) / len(history),
        best_round=best,
        worst_round=worst,
    )
