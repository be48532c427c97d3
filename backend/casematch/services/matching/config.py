from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

_ENV_PATH = Path(__file__).resolve().parents[2] / '.env'
if _ENV_PATH.exists():
    load_dotenv(dotenv_path=_ENV_PATH, override=False)

_TRUE_VALUES = {"1", "true", "yes", "on"}

ROUND_CAP_LIMIT = 50


def _float_env(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError):
        return float(default)


def _int_env(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return int(default)


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in _TRUE_VALUES


@lru_cache(maxsize=1)
def _weight_defaults() -> Dict[str, float]:
    return {
        "experience_new": _float_env("MATCH_W_EXPERIENCE_NEW", "25"),
        "experience_repeat": _float_env("MATCH_W_EXPERIENCE_REPEAT", "5"),
        "topic": _float_env("MATCH_W_TOPIC", "15"),
        "topic_cap": _float_env("MATCH_W_TOPIC_CAP", "45"),
        "skill": _float_env("MATCH_W_SKILL", "10"),
        "availability": _float_env("MATCH_W_AVAILABILITY", "20"),
        "role": _float_env("MATCH_W_ROLE", "8"),
        "work_style": _float_env("MATCH_W_WORK_STYLE", "5"),
    }


def weight_defaults() -> Dict[str, float]:
    """Return default soft-score weights sourced from the environment.

    Callers get a fresh copy; the cached mapping is never handed out.
    """
    return dict(_weight_defaults())


@lru_cache(maxsize=1)
def max_rounds() -> int:
    """Round cap per partition (default: 10)."""
    return max(1, min(ROUND_CAP_LIMIT, _int_env("MATCH_MAX_ROUNDS", "10")))


def strict_invariants() -> bool:
    """Raise instead of recovering when a formed team breaks a hard gate (default: disabled)."""
    return _bool_env("MATCH_STRICT_INVARIANTS", False)


def resolve_weights(overrides: Optional[Mapping[str, float]] = None) -> Dict[str, float]:
    weights = dict(weight_defaults())
    if not overrides:
        return weights
    unknown = sorted(set(overrides) - set(weights))
    if unknown:
        raise ValueError(f"unknown weight keys: {', '.join(unknown)}")
    for key, value in overrides.items():
        weights[key] = float(value)
    return weights


def resolve_max_rounds(value: Optional[int] = None) -> int:
    if value is None:
        return max_rounds()
    return max(1, min(ROUND_CAP_LIMIT, int(value)))
