# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Centralized configuration for environment variables and tunables."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

from data.transport import BASE_URL, DEFAULT_TIMEOUT
from scoring.curve import PP_CURVE, WEIGHT_DECAY

BASE_URL_ENV = "SCORESABER_API_URL"
CACHE_DIR_ENV = "OUROBOROS_CACHE_DIR"
REQUEST_DELAY_ENV = "OUROBOROS_REQUEST_DELAY"
TIMEOUT_ENV = "OUROBOROS_TIMEOUT"

DEFAULT_CACHE_DIR = Path(__file__).resolve().parent / "data" / "cache"


class StalenessSettings(BaseModel):
    """How long, and by what test, cached bodies stay usable."""
    leaderboard_info_max_age: float = Field(default=72 * 3600, gt=0,
                                            description="Seconds")
    score_digest_digits: int = Field(default=9, ge=1, le=18)


class ScoringSettings(BaseModel):
    weight_decay: float = Field(default=WEIGHT_DECAY, gt=0, le=1)
    points_curve: tuple[tuple[float, float], ...] = PP_CURVE
    snipe_floor_position: int = Field(default=32, ge=1,
                                      description="1-based rank of the reference play")
    suggestion_accuracy_cutoff: float = Field(default=2.0, gt=0)
    suggestion_accuracy_exponent: float = Field(default=0.5, gt=0)
    suggestion_position_base: float = Field(default=1.05, gt=1)
    suggestion_contribution_decay: float = Field(default=0.955, gt=0, le=1)


class Settings(BaseModel):
    base_url: str = BASE_URL
    cache_dir: Path = DEFAULT_CACHE_DIR
    request_delay: float = Field(default=0.0, ge=0)
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    staleness: StalenessSettings = Field(default_factory=StalenessSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def load_settings(**overrides) -> Settings:
    """Build :class:`Settings` from the environment, then apply *overrides*.

    Overrides whose value is ``None`` are ignored so CLI flags can be passed
    straight through.
    """
    values = {
        "base_url": os.environ.get(BASE_URL_ENV, "").strip() or BASE_URL,
        "cache_dir": os.environ.get(CACHE_DIR_ENV, "").strip() or DEFAULT_CACHE_DIR,
        "request_delay": _env_float(REQUEST_DELAY_ENV, 0.0),
        "timeout": _env_float(TIMEOUT_ENV, DEFAULT_TIMEOUT),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**values)
