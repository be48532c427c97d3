from __future__ import annotations

from .builder import build_teams_for_bucket, create_team
from .config import max_rounds, resolve_max_rounds, resolve_weights, strict_invariants, weight_defaults
from .engine import run_matching
from .metrics import compute_statistics, summarize_rounds
from .partition import match_partitions, partition_by_composition
from .rounds import PartitionOutcome, bucket_by_size, bucket_capacity, run_round, run_rounds
from .scoring import availability_compatible, composition_compatible, pair_score, score_candidate
from .unmatched import analyze_unmatched
from .validation import (
    InvariantViolation,
    MalformedCandidateError,
    check_conservation,
    collect_warnings,
    reconcile_unmatched,
    validate_candidates,
    validate_teams,
)

__all__ = [
    'run_matching',
    'match_partitions',
    'partition_by_composition',
    'run_rounds',
    'run_round',
    'bucket_by_size',
    'bucket_capacity',
    'PartitionOutcome',
    'build_teams_for_bucket',
    'create_team',
    'score_candidate',
    'pair_score',
    'composition_compatible',
    'availability_compatible',
    'compute_statistics',
    'summarize_rounds',
    'analyze_unmatched',
    'validate_candidates',
    'validate_teams',
    'reconcile_unmatched',
    'check_conservation',
    'collect_warnings',
    'InvariantViolation',
    'MalformedCandidateError',
    'weight_defaults',
    'max_rounds',
    'resolve_weights',
    'resolve_max_rounds',
    'strict_invariants',
]
