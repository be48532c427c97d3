from __future__ import annotations

from typing import Dict, Iterable, Optional, Sequence

from ...enums import AvailabilityLevel, CompositionPreference, EducationGroup
from ...schemas import Candidate
from .config import weight_defaults

# Opposite education group barred by each exclusive composition preference.
_EXCLUDED_GROUP = {
    CompositionPreference.group_a_only: EducationGroup.group_b,
    CompositionPreference.group_b_only: EducationGroup.group_a,
}


def composition_compatible(a: Candidate, b: Candidate) -> bool:
    """Both directions: neither side excludes the other's education group."""
    if _EXCLUDED_GROUP.get(a.composition_preference) == b.education_group:
        return False
    if _EXCLUDED_GROUP.get(b.composition_preference) == a.education_group:
        return False
    return True


def availability_compatible(a: AvailabilityLevel, b: AvailabilityLevel) -> bool:
    return abs(a.rank - b.rank) <= 1


def passes_hard_gates(members: Sequence[Candidate], candidate: Candidate, target_size: int) -> bool:
    if candidate.declared_team_size != target_size:
        return False
    return all(composition_compatible(member, candidate) for member in members)


def score_candidate(
    members: Sequence[Candidate],
    candidate: Candidate,
    target_size: int,
    weights: Optional[Dict[str, float]] = None,
) -> Optional[float]:
    """Score ``candidate`` against a partial team.

    Returns ``None`` when a hard gate rejects the pairing. Any other value,
    including zero or a negative total under custom weights, is an acceptable
    pairing whose only use is ranking against other candidates for the same
    partial team.
    """
    if not passes_hard_gates(members, candidate, target_size):
        return None
    defaults = weight_defaults()
    weights = weights or defaults

    def w(key: str) -> float:
        return float(weights.get(key, defaults[key]))

    score = 0.0
    if any(member.experience_level == candidate.experience_level for member in members):
        score += w('experience_repeat')
    else:
        score += w('experience_new')

    team_topics = _union(member.topic_preferences for member in members)
    shared_topics = len(candidate.topic_preferences & team_topics)
    score += min(w('topic_cap'), shared_topics * w('topic'))

    team_skills = _union(member.skills for member in members)
    score += len(candidate.skills - team_skills) * w('skill')

    if any(availability_compatible(member.availability_level, candidate.availability_level) for member in members):
        score += w('availability')

    team_roles = _union(member.roles for member in members)
    score += len(candidate.roles - team_roles) * w('role')

    if any(member.work_style == candidate.work_style for member in members):
        score += w('work_style')
    return score


def pair_score(a: Candidate, b: Candidate, target_size: int, weights: Optional[Dict[str, float]] = None) -> Optional[float]:
    return score_candidate([a], b, target_size, weights)


def _union(sets: Iterable[frozenset]) -> frozenset:
    merged: set = set()
    for item in sets:
        merged.update(item)
    return frozenset(merged)
