import asyncio
import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from ..schemas import ALLOWED_TEAM_SIZES, MatchingRequest, MatchingResult
from ..services.matching import MalformedCandidateError, max_rounds, run_matching, weight_defaults

logger = logging.getLogger('matching')

# Main matching router (mounted under /matching in main.py)
router = APIRouter()


@router.get('/config')
async def matching_config() -> Dict[str, Any]:
    return {
        'weights': weight_defaults(),
        'max_rounds': max_rounds(),
        'allowed_team_sizes': list(ALLOWED_TEAM_SIZES),
    }


@router.post('/teams', response_model=MatchingResult)
async def form_teams(payload: MatchingRequest) -> MatchingResult:
    logger.info('matching.request candidates=%d max_rounds=%s', len(payload.candidates), payload.max_rounds)
    try:
        # CPU-bound and synchronous; keep the event loop free.
        return await asyncio.to_thread(
            run_matching,
            payload.candidates,
            weights=payload.weights,
            max_rounds=payload.max_rounds,
        )
    except (MalformedCandidateError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
