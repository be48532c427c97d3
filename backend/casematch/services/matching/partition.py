from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from ...enums import CompositionPreference
from ...schemas import Candidate
from .rounds import PartitionOutcome, run_rounds

logger = logging.getLogger(__name__)


def partition_by_composition(candidates: Sequence[Candidate]) -> Dict[CompositionPreference, List[Candidate]]:
    """Split the pool by composition preference, keeping input order per partition.

    Partitions are returned in enum order and empty partitions are omitted.
    """
    partitions: Dict[CompositionPreference, List[Candidate]] = {preference: [] for preference in CompositionPreference}
    for candidate in candidates:
        partitions[candidate.composition_preference].append(candidate)
    return {preference: members for preference, members in partitions.items() if members}


def match_partitions(
    candidates: Sequence[Candidate],
    *,
    weights: Optional[Dict[str, float]] = None,
    max_rounds: Optional[int] = None,
    strict: Optional[bool] = None,
) -> List[PartitionOutcome]:
    """Run an independent round engine per partition."""
    partitions = partition_by_composition(candidates)
    logger.debug(
        'matching.partitions %s',
        ' '.join(f'{preference.value}={len(members)}' for preference, members in partitions.items()),
    )
    return [
        run_rounds(members, preference, weights=weights, max_rounds=max_rounds, strict=strict)
        for preference, members in partitions.items()
    ]
