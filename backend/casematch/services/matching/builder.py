from __future__ import annotations

import logging
import time
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from ...enums import CompositionPreference
from ...schemas import Candidate, Team
from .scoring import pair_score, score_candidate
from .config import strict_invariants
from .validation import InvariantViolation, team_errors

logger = logging.getLogger(__name__)


def create_team(
    members: Sequence[Candidate],
    target_size: int,
    weights: Optional[Dict[str, float]] = None,
    *,
    team_id: str,
    partition: Optional[CompositionPreference] = None,
    round_index: int = 1,
) -> Team:
    """Build the Team value for an accepted member list.

    The compatibility score is recomputed pairwise over the final members
    instead of reusing the greedy selection scores.
    """
    members = tuple(members)
    errors = team_errors(members, target_size)
    if errors:
        raise InvariantViolation(f"team {team_id}: " + '; '.join(errors))

    pair_scores: List[float] = []
    for i, first in enumerate(members):
        for second in members[i + 1:]:
            value = pair_score(first, second, target_size, weights)
            if value is None:
                raise InvariantViolation(f"team {team_id}: pair {first.id}/{second.id} rejected by hard gates")
            pair_scores.append(value)
    compatibility = sum(pair_scores) / len(pair_scores) if pair_scores else 0.0

    topic_counts: Counter = Counter()
    for member in members:
        topic_counts.update(member.topic_preferences)
    common_topics = tuple(
        topic for topic, count in sorted(topic_counts.items(), key=lambda item: (-item[1], item[0])) if count >= 2
    )
    average_experience = sum(member.experience_level.rank for member in members) / len(members)
    size_matches = sum(1 for member in members if member.declared_team_size == len(members))

    return Team(
        id=team_id,
        members=members,
        team_size=target_size,
        compatibility_score=compatibility,
        common_topics=common_topics,
        average_experience=average_experience,
        partition=partition,
        round_index=round_index,
        preferred_team_size_match=size_matches / len(members) * 100.0,
    )


def _grow_team(
    bucket: Sequence[Candidate],
    anchor: int,
    available: List[int],
    target_size: int,
    weights: Optional[Dict[str, float]],
) -> Optional[List[int]]:
    """Greedily extend ``anchor`` with the best scoring available indices."""
    chosen = [anchor]
    pool = [index for index in available if index != anchor]
    while len(chosen) < target_size:
        members = [bucket[index] for index in chosen]
        best_index: Optional[int] = None
        best_score: Optional[float] = None
        for index in pool:
            score = score_candidate(members, bucket[index], target_size, weights)
            if score is None:
                continue
            if best_score is None or score > best_score:
                best_score = score
                best_index = index
        if best_index is None:
            return None
        chosen.append(best_index)
        pool.remove(best_index)
        logger.debug(
            'matching.builder add candidate=%s score=%.1f members=%d/%d',
            bucket[best_index].id, best_score, len(chosen), target_size,
        )
    return chosen


def build_teams_for_bucket(
    bucket: Sequence[Candidate],
    target_size: int,
    weights: Optional[Dict[str, float]] = None,
    *,
    id_prefix: str = 'team',
    partition: Optional[CompositionPreference] = None,
    round_index: int = 1,
    strict: Optional[bool] = None,
    violations: Optional[List[str]] = None,
) -> Tuple[List[Team], List[Candidate]]:
    """Form as many ``target_size`` teams as possible from a pre-sorted bucket.

    Ownership is tracked with indices into ``bucket``; the bucket itself is
    never modified. Anchors whose attempt fails are set aside for this round
    and returned with the leftovers, in bucket order.

    A selection that fails the team invariants raises :class:`InvariantViolation`
    in strict mode. Otherwise it is logged, appended to ``violations`` and its
    members are set aside as leftovers.
    """
    strict = strict_invariants() if strict is None else strict
    start = time.perf_counter()
    available: List[int] = list(range(len(bucket)))
    set_aside: List[int] = []
    teams: List[Team] = []
    while len(available) >= target_size:
        anchor = available[0]
        chosen = _grow_team(bucket, anchor, available, target_size, weights)
        if chosen is None:
            logger.debug('matching.builder anchor=%s size=%d attempt aborted', bucket[anchor].id, target_size)
            available.remove(anchor)
            set_aside.append(anchor)
            continue
        consumed = set(chosen)
        try:
            team = create_team(
                [bucket[index] for index in chosen],
                target_size,
                weights,
                team_id=f'{id_prefix}-{len(teams) + 1}',
                partition=partition,
                round_index=round_index,
            )
        except InvariantViolation as exc:
            if strict:
                raise
            logger.error('matching.invariant_violation %s', exc)
            if violations is not None:
                violations.append(str(exc))
            set_aside.extend(chosen)
            available = [index for index in available if index not in consumed]
            continue
        teams.append(team)
        available = [index for index in available if index not in consumed]
    leftover_indices = sorted(available + set_aside)
    leftovers = [bucket[index] for index in leftover_indices]
    logger.debug(
        'matching.builder size=%d bucket=%d teams=%d leftovers=%d duration=%.3fs',
        target_size, len(bucket), len(teams), len(leftovers), time.perf_counter() - start,
    )
    return teams, leftovers
