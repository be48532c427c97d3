from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ...enums import CompositionPreference, EducationGroup
from ...schemas import ALLOWED_TEAM_SIZES, Candidate, Team
from .config import strict_invariants
from .scoring import composition_compatible

logger = logging.getLogger(__name__)


class InvariantViolation(RuntimeError):
    """A formed team breaks a hard gate. Always a programming defect."""


class MalformedCandidateError(ValueError):
    """The candidate pool handed to the engine is not clean input."""


def team_errors(members: Sequence[Candidate], team_size: int) -> List[str]:
    """Return every hard-gate breach for a prospective or formed team."""
    errors: List[str] = []
    if len(members) != team_size:
        errors.append(f"expected {team_size} members, got {len(members)}")
    ids = [member.id for member in members]
    duplicates = sorted(cid for cid, count in Counter(ids).items() if count > 1)
    if duplicates:
        errors.append(f"duplicate members: {', '.join(duplicates)}")
    for member in members:
        if member.declared_team_size != team_size:
            errors.append(
                f"member {member.id} declared size {member.declared_team_size}, team size is {team_size}"
            )
    for i, first in enumerate(members):
        for second in members[i + 1:]:
            if not composition_compatible(first, second):
                errors.append(
                    f"members {first.id} ({first.composition_preference.value}/{first.education_group.value}) and "
                    f"{second.id} ({second.composition_preference.value}/{second.education_group.value}) "
                    "break the composition gate"
                )
    return errors


def validate_candidates(candidates: Iterable[Any]) -> List[Candidate]:
    """Fail fast on a pool that cannot be matched. Returns a private list copy."""
    pool: List[Candidate] = []
    seen: Set[str] = set()
    for index, item in enumerate(candidates):
        if not isinstance(item, Candidate):
            raise MalformedCandidateError(f"item {index} is {type(item).__name__}, expected Candidate")
        if item.id in seen:
            raise MalformedCandidateError(f"duplicate candidate id {item.id!r} at position {index}")
        if item.declared_team_size not in ALLOWED_TEAM_SIZES:
            raise MalformedCandidateError(
                f"candidate {item.id!r} declared unsupported team size {item.declared_team_size}"
            )
        seen.add(item.id)
        pool.append(item)
    return pool


def validate_teams(
    teams: Sequence[Team],
    *,
    strict: Optional[bool] = None,
) -> Tuple[List[Team], List[Team], List[str]]:
    """Re-verify hard gates for every formed team.

    Returns ``(valid_teams, rejected_teams, errors)``. A team is rejected when
    its members break the size or composition gate, or when one of its members
    already sits in an earlier valid team. In strict mode the first breach
    raises :class:`InvariantViolation` instead.
    """
    strict = strict_invariants() if strict is None else strict
    valid: List[Team] = []
    rejected: List[Team] = []
    errors: List[str] = []
    placed: Set[str] = set()
    for team in teams:
        problems = team_errors(team.members, team.team_size)
        reused = sorted(set(team.member_ids) & placed)
        if reused:
            problems.append(f"members already placed in another team: {', '.join(reused)}")
        if not problems:
            valid.append(team)
            placed.update(team.member_ids)
            continue
        message = f"team {team.id}: " + '; '.join(problems)
        if strict:
            raise InvariantViolation(message)
        logger.error('matching.invariant_violation %s', message)
        rejected.append(team)
        errors.append(message)
    return valid, rejected, errors


def reconcile_unmatched(
    candidates: Sequence[Candidate],
    teams: Sequence[Team],
    reported_unmatched: Sequence[Candidate],
) -> List[Candidate]:
    """Rebuild the unmatched list as input order minus placed ids.

    Any disagreement with the list the rounds reported is logged, since it
    means a candidate was dropped or duplicated upstream.
    """
    placed = {cid for team in teams for cid in team.member_ids}
    unmatched = [candidate for candidate in candidates if candidate.id not in placed]
    expected_ids = {candidate.id for candidate in unmatched}
    reported_ids = [candidate.id for candidate in reported_unmatched]
    if len(reported_ids) != len(set(reported_ids)) or set(reported_ids) != expected_ids:
        missing = sorted(expected_ids - set(reported_ids))
        unexpected = sorted(set(reported_ids) - expected_ids)
        logger.error(
            'matching.conservation_mismatch missing=%s unexpected=%s reported=%d expected=%d',
            missing, unexpected, len(reported_ids), len(expected_ids),
        )
    return unmatched


def check_conservation(candidates: Sequence[Candidate], teams: Sequence[Team], unmatched: Sequence[Candidate]) -> Dict[str, Any]:
    """Check that every candidate sits in exactly one team or in the unmatched list."""
    occurrences: Counter = Counter()
    for team in teams:
        occurrences.update(team.member_ids)
    occurrences.update(candidate.id for candidate in unmatched)
    expected = {candidate.id for candidate in candidates}
    missing = expected - set(occurrences)
    duplicated = {cid for cid, count in occurrences.items() if count > 1}
    unexpected = set(occurrences) - expected
    return {
        'complete': not missing and not duplicated and not unexpected,
        'missing': missing,
        'duplicated': duplicated,
        'unexpected': unexpected,
        'placed_count': sum(len(team.members) for team in teams),
        'unmatched_count': len(unmatched),
    }


def collect_warnings(candidates: Sequence[Candidate]) -> List[str]:
    """Data-quality warnings. They never change matching decisions."""
    warnings: List[str] = []
    if not candidates:
        return warnings
    blank_names = sum(1 for candidate in candidates if not candidate.name.strip())
    blank_emails = sum(1 for candidate in candidates if not candidate.email.strip())
    if blank_names:
        warnings.append(f"{blank_names} candidates have missing names")
    if blank_emails:
        warnings.append(f"{blank_emails} candidates have missing emails")
    groups = {candidate.education_group for candidate in candidates}
    if EducationGroup.group_a not in groups:
        warnings.append('No group_a candidates found')
    if EducationGroup.group_b not in groups:
        warnings.append('No group_b candidates found')

    buckets: Counter = Counter(
        (candidate.composition_preference, candidate.declared_team_size) for candidate in candidates
    )
    for preference in CompositionPreference:
        for size in sorted(ALLOWED_TEAM_SIZES, reverse=True):
            count = buckets.get((preference, size), 0)
            if count and count % size:
                warnings.append(
                    f"{preference.value} candidates declaring size {size}: {count} is not a multiple of {size}, "
                    f"at least {count % size} will stay unmatched"
                )
    return warnings
