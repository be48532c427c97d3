from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import (
    AvailabilityLevel,
    CompositionPreference,
    EducationGroup,
    ExperienceLevel,
    UnmatchedCategory,
    WorkStyle,
)

ALLOWED_TEAM_SIZES: Tuple[int, ...] = (2, 3, 4)
MAX_SKILLS = 3
MAX_ROLES = 2
MAX_TOPICS = 3


def _clean_labels(value: Any, *, field: str, limit: int) -> FrozenSet[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = [value]
    labels = {str(item).strip() for item in value if item is not None and str(item).strip()}
    if len(labels) > limit:
        raise ValueError(f"{field} accepts at most {limit} entries, got {len(labels)}")
    return frozenset(labels)


class Candidate(BaseModel):
    """A validated applicant awaiting placement. Instances are immutable."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ''
    email: str = ''
    phone: Optional[str] = None
    institution: Optional[str] = None

    declared_team_size: int
    composition_preference: CompositionPreference
    education_group: EducationGroup
    experience_level: ExperienceLevel
    availability_level: AvailabilityLevel
    skills: FrozenSet[str] = frozenset()
    roles: FrozenSet[str] = frozenset()
    topic_preferences: FrozenSet[str] = frozenset()
    work_style: WorkStyle

    @field_validator('id')
    @classmethod
    def _id_not_blank(cls, value: str) -> str:
        value = str(value).strip()
        if not value:
            raise ValueError('id must not be blank')
        return value

    @field_validator('declared_team_size')
    @classmethod
    def _team_size_allowed(cls, value: int) -> int:
        if value not in ALLOWED_TEAM_SIZES:
            allowed = ', '.join(str(size) for size in ALLOWED_TEAM_SIZES)
            raise ValueError(f"declared_team_size must be one of: {allowed}")
        return value

    @field_validator('composition_preference', mode='before')
    @classmethod
    def _norm_composition(cls, value):
        return CompositionPreference.normalize(value)

    @field_validator('education_group', mode='before')
    @classmethod
    def _norm_education(cls, value):
        return EducationGroup.normalize(value)

    @field_validator('experience_level', mode='before')
    @classmethod
    def _norm_experience(cls, value):
        return ExperienceLevel.normalize(value)

    @field_validator('availability_level', mode='before')
    @classmethod
    def _norm_availability(cls, value):
        return AvailabilityLevel.normalize(value)

    @field_validator('work_style', mode='before')
    @classmethod
    def _norm_work_style(cls, value):
        return WorkStyle.normalize(value)

    @field_validator('skills', mode='before')
    @classmethod
    def _norm_skills(cls, value):
        return _clean_labels(value, field='skills', limit=MAX_SKILLS)

    @field_validator('roles', mode='before')
    @classmethod
    def _norm_roles(cls, value):
        return _clean_labels(value, field='roles', limit=MAX_ROLES)

    @field_validator('topic_preferences', mode='before')
    @classmethod
    def _norm_topics(cls, value):
        return _clean_labels(value, field='topic_preferences', limit=MAX_TOPICS)


class Team(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    members: Tuple[Candidate, ...]
    team_size: int
    compatibility_score: float
    common_topics: Tuple[str, ...] = ()
    average_experience: float
    partition: Optional[CompositionPreference] = None
    round_index: int = 1
    preferred_team_size_match: float = 100.0

    @property
    def member_ids(self) -> List[str]:
        return [member.id for member in self.members]


class RoundRecord(BaseModel):
    partition: CompositionPreference
    round_index: int
    pool_size: int
    bucket_capacity: Dict[int, int] = Field(default_factory=dict)
    teams_formed: int = 0
    candidates_matched: int = 0
    remaining: int = 0
    efficiency: float = 0.0
    invariant_violations: int = 0


class PartitionSummary(BaseModel):
    candidates: int = 0
    teams: int = 0
    matched: int = 0
    unmatched: int = 0
    rounds: int = 0
    stop_reason: Optional[str] = None


class MatchingStatistics(BaseModel):
    total_candidates: int = 0
    teams_formed: int = 0
    matched_candidates: int = 0
    unmatched_count: int = 0
    average_team_size: float = 0.0
    matching_efficiency: float = 0.0
    average_compatibility: float = 0.0
    team_size_distribution: Dict[int, int] = Field(default_factory=dict)
    topic_distribution: Dict[str, int] = Field(default_factory=dict)
    invariant_violations: int = 0
    partition_summary: Dict[str, PartitionSummary] = Field(default_factory=dict)


class RoundSummary(BaseModel):
    total_rounds: int = 0
    average_round_efficiency: float = 0.0
    best_round: Optional[RoundRecord] = None
    worst_round: Optional[RoundRecord] = None


class PotentialMatch(BaseModel):
    candidate_id: str
    compatibility_score: Optional[float] = None
    blocking_issues: List[str] = Field(default_factory=list)


class UnmatchedReason(BaseModel):
    category: UnmatchedCategory
    severity: str
    description: str
    suggestions: List[str] = Field(default_factory=list)


class UnmatchedCandidateStats(BaseModel):
    total_candidates: int = 0
    same_team_size: int = 0
    compatible_composition: int = 0
    eligible_peers: int = 0
    unmatched_eligible_peers: int = 0
    availability_compatible: int = 0


class UnmatchedAnalysis(BaseModel):
    candidate_id: str
    reasons: List[UnmatchedReason] = Field(default_factory=list)
    statistics: UnmatchedCandidateStats = Field(default_factory=UnmatchedCandidateStats)
    potential_matches: List[PotentialMatch] = Field(default_factory=list)


class UnmatchedReport(BaseModel):
    total_unmatched: int = 0
    analyses: List[UnmatchedAnalysis] = Field(default_factory=list)
    reason_breakdown: Dict[str, int] = Field(default_factory=dict)
    common_issues: List[str] = Field(default_factory=list)


class MatchingResult(BaseModel):
    teams: List[Team] = Field(default_factory=list)
    unmatched: List[Candidate] = Field(default_factory=list)
    statistics: MatchingStatistics = Field(default_factory=MatchingStatistics)
    rounds: List[RoundRecord] = Field(default_factory=list)
    round_summary: RoundSummary = Field(default_factory=RoundSummary)
    warnings: List[str] = Field(default_factory=list)
    unmatched_report: UnmatchedReport = Field(default_factory=UnmatchedReport)


class MatchingRequest(BaseModel):
    candidates: List[Candidate]
    weights: Optional[Dict[str, float]] = None
    max_rounds: Optional[int] = Field(default=None, ge=1)
