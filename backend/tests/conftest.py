import os
import sys
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

# Ensure the backend directory is on PYTHONPATH when pytest is run from repo root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Ensure test env
os.environ.setdefault("ALLOWED_ORIGINS", "*")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("MATCH_STRICT_INVARIANTS", "1")

# Import app AFTER env vars
from casematch.main import app  # noqa: E402
from casematch.schemas import Candidate  # noqa: E402


_DEFAULTS = {
    'name': 'Test Candidate',
    'declared_team_size': 4,
    'composition_preference': 'either',
    'education_group': 'group_a',
    'experience_level': 'none',
    'availability_level': 'medium',
    'skills': ['Strategy & Structuring', 'Market Research', 'Storytelling'],
    'roles': ['Researcher'],
    'topic_preferences': ['Consulting'],
    'work_style': 'flexible',
}


def build_candidate(cid: str, **overrides) -> Candidate:
    data = dict(_DEFAULTS)
    data['email'] = f'{cid}@example.com'
    data.update(overrides)
    return Candidate(id=cid, **data)


@pytest.fixture
def make_candidate():
    return build_candidate


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
