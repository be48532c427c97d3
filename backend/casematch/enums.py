from enum import Enum


class _NormalizingEnum(str, Enum):
    """String enum accepting case-insensitive input with dashes or spaces."""

    @classmethod
    def normalize(cls, value):
        if isinstance(value, cls):
            return value
        if value is None:
            raise ValueError(f"{cls._field_name()} is required")
        normalized = str(value).strip().lower().replace('-', '_').replace(' ', '_')
        try:
            return cls(normalized)
        except ValueError as exc:  # noqa: BLE001
            allowed = ', '.join(member.value for member in cls)
            raise ValueError(f"{cls._field_name()} must be one of: {allowed}") from exc

    @classmethod
    def _field_name(cls) -> str:
        name = cls.__name__
        return ''.join(f'_{ch.lower()}' if ch.isupper() else ch for ch in name).lstrip('_')


class CompositionPreference(_NormalizingEnum):
    group_a_only = 'group_a_only'
    group_b_only = 'group_b_only'
    either = 'either'


class EducationGroup(_NormalizingEnum):
    group_a = 'group_a'
    group_b = 'group_b'


class ExperienceLevel(_NormalizingEnum):
    none = 'none'
    participated_1_2 = 'participated_1_2'
    participated_3_plus = 'participated_3_plus'
    finalist_winner = 'finalist_winner'

    @property
    def rank(self) -> int:
        return _EXPERIENCE_RANKS[self]


class AvailabilityLevel(_NormalizingEnum):
    low = 'low'
    medium = 'medium'
    high = 'high'

    @property
    def rank(self) -> int:
        return _AVAILABILITY_RANKS[self]


class WorkStyle(_NormalizingEnum):
    structured = 'structured'
    flexible = 'flexible'
    combination = 'combination'


class UnmatchedCategory(str, Enum):
    team_size = 'team_size'
    team_preference = 'team_preference'
    insufficient_candidates = 'insufficient_candidates'
    placement = 'placement'


_EXPERIENCE_RANKS = {level: index for index, level in enumerate(ExperienceLevel)}
_AVAILABILITY_RANKS = {level: index for index, level in enumerate(AvailabilityLevel)}
