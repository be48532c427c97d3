from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence

from ...enums import CompositionPreference, UnmatchedCategory
from ...schemas import (
    Candidate,
    PotentialMatch,
    Team,
    UnmatchedAnalysis,
    UnmatchedCandidateStats,
    UnmatchedReason,
    UnmatchedReport,
)
from .scoring import availability_compatible, composition_compatible, pair_score, passes_hard_gates

logger = logging.getLogger(__name__)

POTENTIAL_MATCH_LIMIT = 5


def _candidate_stats(
    candidate: Candidate,
    pool: Sequence[Candidate],
    unmatched: Sequence[Candidate],
) -> UnmatchedCandidateStats:
    """Count peers per gate. Only peers sharing the composition preference can ever join."""
    size = candidate.declared_team_size
    others = [other for other in pool if other.id != candidate.id]
    partition_peers = [other for other in others if other.composition_preference == candidate.composition_preference]
    return UnmatchedCandidateStats(
        total_candidates=len(others),
        same_team_size=sum(1 for other in partition_peers if other.declared_team_size == size),
        compatible_composition=sum(1 for other in partition_peers if composition_compatible(candidate, other)),
        eligible_peers=sum(1 for other in partition_peers if passes_hard_gates([candidate], other, size)),
        unmatched_eligible_peers=sum(
            1 for other in unmatched
            if other.id != candidate.id
            and other.composition_preference == candidate.composition_preference
            and passes_hard_gates([candidate], other, size)
        ),
        availability_compatible=sum(
            1 for other in others if availability_compatible(candidate.availability_level, other.availability_level)
        ),
    )


def _popular_team_size(teams: Sequence[Team]) -> int:
    sizes = Counter(team.team_size for team in teams)
    if not sizes:
        return 4
    return sorted(sizes.items(), key=lambda item: (-item[1], -item[0]))[0][0]


def _reasons(candidate: Candidate, stats: UnmatchedCandidateStats, teams: Sequence[Team]) -> List[UnmatchedReason]:
    size = candidate.declared_team_size
    needed = size - 1
    reasons: List[UnmatchedReason] = []
    if stats.total_candidates < needed:
        reasons.append(UnmatchedReason(
            category=UnmatchedCategory.insufficient_candidates,
            severity='critical',
            description=f"Only {stats.total_candidates} other candidates in the pool, {needed} teammates needed",
            suggestions=['Run matching again once more candidates have joined', 'Consider a smaller team size'],
        ))
    if stats.same_team_size < needed:
        popular = _popular_team_size(teams)
        suggestions = ['Be flexible with the declared team size']
        if popular != size:
            suggestions.insert(0, f"Consider team size {popular}, the most common size among formed teams")
        reasons.append(UnmatchedReason(
            category=UnmatchedCategory.team_size,
            severity='critical',
            description=(
                f"Only {stats.same_team_size} peers with the same composition preference declared team size {size}, "
                f"{needed} needed"
            ),
            suggestions=suggestions,
        ))
    if stats.compatible_composition == 0:
        suggestions = ['Wait for more candidates with a compatible preference']
        if candidate.composition_preference != CompositionPreference.either:
            suggestions.insert(0, "Consider the 'either' composition preference for more flexibility")
        reasons.append(UnmatchedReason(
            category=UnmatchedCategory.team_preference,
            severity='critical',
            description=(
                f"No peer is compatible with composition preference {candidate.composition_preference.value} "
                f"as a {candidate.education_group.value} candidate"
            ),
            suggestions=suggestions,
        ))
    if reasons:
        return reasons

    if stats.eligible_peers < needed:
        reasons.append(UnmatchedReason(
            category=UnmatchedCategory.team_preference,
            severity='high',
            description=(
                f"Only {stats.eligible_peers} peers pass both the team size and composition gates, {needed} needed"
            ),
            suggestions=["Consider the 'either' composition preference or another team size"],
        ))
    else:
        reasons.append(UnmatchedReason(
            category=UnmatchedCategory.placement,
            severity='medium',
            description=(
                f"{stats.eligible_peers} eligible peers existed but only {stats.unmatched_eligible_peers} "
                "remained unmatched, too few to complete a team"
            ),
            suggestions=['Run matching again once more candidates have joined'],
        ))
    return reasons


def _blocking_issues(candidate: Candidate, other: Candidate) -> List[str]:
    issues: List[str] = []
    if candidate.declared_team_size != other.declared_team_size:
        issues.append(f"team size mismatch ({candidate.declared_team_size} vs {other.declared_team_size})")
    if candidate.composition_preference != other.composition_preference:
        issues.append(
            f"different composition preference ({candidate.composition_preference.value} "
            f"vs {other.composition_preference.value})"
        )
    if not composition_compatible(candidate, other):
        issues.append(
            f"composition incompatible ({candidate.education_group.value} vs {other.education_group.value})"
        )
    if not availability_compatible(candidate.availability_level, other.availability_level):
        issues.append(
            f"availability mismatch ({candidate.availability_level.value} vs {other.availability_level.value})"
        )
    if not candidate.topic_preferences & other.topic_preferences:
        issues.append('no shared topics')
    return issues


def _potential_matches(
    candidate: Candidate,
    unmatched: Sequence[Candidate],
    weights: Optional[Dict[str, float]],
) -> List[PotentialMatch]:
    matches: List[PotentialMatch] = []
    for other in unmatched:
        if other.id == candidate.id:
            continue
        score = None
        if other.composition_preference == candidate.composition_preference:
            score = pair_score(candidate, other, candidate.declared_team_size, weights)
        matches.append(PotentialMatch(
            candidate_id=other.id,
            compatibility_score=score,
            blocking_issues=_blocking_issues(candidate, other),
        ))
    # Stable: equal scores keep unmatched order, rejected pairings last.
    matches.sort(key=lambda match: (match.compatibility_score is None, -(match.compatibility_score or 0.0)))
    return matches[:POTENTIAL_MATCH_LIMIT]


def analyze_unmatched(
    pool: Sequence[Candidate],
    teams: Sequence[Team],
    unmatched: Sequence[Candidate],
    weights: Optional[Dict[str, float]] = None,
) -> UnmatchedReport:
    """Explain, per unmatched candidate, why no team could take them.

    Every analysis carries at least one reason. The report never changes
    matching decisions.
    """
    analyses: List[UnmatchedAnalysis] = []
    reason_counts: Counter = Counter()
    for candidate in unmatched:
        stats = _candidate_stats(candidate, pool, unmatched)
        reasons = _reasons(candidate, stats, teams)
        reason_counts.update(reason.category.value for reason in reasons)
        analyses.append(UnmatchedAnalysis(
            candidate_id=candidate.id,
            reasons=reasons,
            statistics=stats,
            potential_matches=_potential_matches(candidate, unmatched, weights),
        ))
    breakdown = dict(sorted(reason_counts.items(), key=lambda item: (-item[1], item[0])))
    common_issues = [
        f"{category.replace('_', ' ')}: {count} candidates affected"
        for category, count in breakdown.items() if count > 1
    ]
    logger.debug('matching.unmatched analysed=%d reasons=%s', len(analyses), breakdown)
    return UnmatchedReport(
        total_unmatched=len(unmatched),
        analyses=analyses,
        reason_breakdown=breakdown,
        common_issues=common_issues,
    )
