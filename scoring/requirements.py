# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Stepping-stone slices of a player's plays.

Each requirement slice walks a threshold from an easy value towards a strict
one, in steps that get finer as the threshold tightens, until more than
``min_count`` plays fall on the wrong side of it.  The result is the set of
plays worth improving next and the threshold that describes it, e.g. "all
plays under 94.5% accuracy".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from operator import attrgetter
from typing import Callable, Sequence

from models import Leaderboard, PlayerScore, StarRange, leaderboard_key

MIN_SLICE_COUNT = 10


@dataclass
class RequirementSlice:
    threshold: float
    scores: list[PlayerScore] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Step tables
# ---------------------------------------------------------------------------

def accuracy_step(threshold: float) -> float:
    if threshold < 92:
        return 1.0
    if threshold < 95:
        return 0.5
    if threshold < 97:
        return 0.25
    if threshold < 98:
        return 0.2
    if threshold < 100:
        return 0.1
    return 0.0


def relative_rank_step(threshold: float) -> float:
    if threshold > 30:
        return 5.0
    if threshold > 10:
        return 2.0
    if threshold > 5:
        return 1.0
    if threshold > 2:
        return 0.5
    if threshold > 0.1:
        return 0.1
    return 0.0


def rank_step(threshold: int) -> int:
    if threshold > 1000:
        return 500
    if threshold > 300:
        return 100
    if threshold > 200:
        return 50
    if threshold > 100:
        return 25
    if threshold > 50:
        return 10
    if threshold > 10:
        return 5
    return 1


# ---------------------------------------------------------------------------
# Slices
# ---------------------------------------------------------------------------

def _walk(scores: Sequence[PlayerScore],
          value: Callable[[PlayerScore], float],
          start: float,
          step: Callable[[float], float],
          tightening: int,
          in_bounds: Callable[[float], bool],
          min_count: int) -> RequirementSlice:
    """Shared threshold walk.

    *tightening* is ``+1`` for "at most" thresholds that rise (accuracy) and
    ``-1`` for "at least" thresholds that fall (rank, relative rank).
    """
    def selected(threshold: float) -> list[PlayerScore]:
        if tightening > 0:
            return [s for s in scores if value(s) <= threshold]
        return [s for s in scores if value(s) >= threshold]

    threshold = start
    lowest = 0.0
    chosen: list[PlayerScore] = []
    while len(chosen) <= min_count and in_bounds(threshold):
        previous = len(chosen)
        chosen = selected(threshold)
        if len(chosen) > previous:
            lowest = threshold
        delta = step(threshold)
        if delta == 0:
            break
        threshold += tightening * delta

    chosen = selected(threshold)
    chosen.sort(key=value, reverse=tightening < 0)
    return RequirementSlice(threshold=lowest + tightening * step(lowest), scores=chosen)


def accuracy_requirement(scores: Sequence[PlayerScore], min_count: int = MIN_SLICE_COUNT,
                         use_relative: bool = False) -> RequirementSlice:
    """Plays below an accuracy threshold, worst first.

    With *use_relative*, each play's ``relative_accuracy`` is used instead;
    plays without one are ignored.
    """
    if use_relative:
        scores = [s for s in scores if s.relative_accuracy is not None]
        value = attrgetter("relative_accuracy")
    else:
        value = attrgetter("accuracy")
    return _walk(scores, value, 75.0, accuracy_step, +1,
                 lambda t: t < 99.9, min_count)


def rank_requirement(scores: Sequence[PlayerScore],
                     min_count: int = MIN_SLICE_COUNT) -> RequirementSlice:
    """Plays ranked below a leaderboard position, worst first."""
    return _walk(scores, lambda s: s.score.rank, 3000, rank_step, -1,
                 lambda t: t > 1, min_count)


def relative_rank_requirement(scores: Sequence[PlayerScore],
                              min_count: int = MIN_SLICE_COUNT) -> RequirementSlice:
    """Plays below a relative-rank percentile, worst first."""
    return _walk(scores, lambda s: s.relative_rank, 55.0, relative_rank_step, -1,
                 lambda t: t >= 0.1, min_count)


# ---------------------------------------------------------------------------
# Simple selections
# ---------------------------------------------------------------------------

def scores_in_star_range(scores: Sequence[PlayerScore],
                         star_range: StarRange) -> list[PlayerScore]:
    return [s for s in scores if star_range.contains(s.leaderboard.stars)]


def best_plays(scores: Sequence[PlayerScore]) -> list[PlayerScore]:
    return sorted(scores, key=lambda s: s.score.pp, reverse=True)


def oldest_plays(scores: Sequence[PlayerScore], count: int = 20) -> list[PlayerScore]:
    """The *count* plays set longest ago; plays without a timestamp sort first."""
    epoch = datetime.min.replace(tzinfo=timezone.utc)

    def when(s: PlayerScore) -> datetime:
        ts = s.score.time_set
        if ts is None:
            return epoch
        return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)

    return sorted(scores, key=when)[:count]


def non_full_combo(scores: Sequence[PlayerScore]) -> list[PlayerScore]:
    return [s for s in scores if not s.score.full_combo]


def not_played(maps: Sequence[Leaderboard],
               scores: Sequence[PlayerScore]) -> list[Leaderboard]:
    """Maps in *maps* the player has no score on, easiest first."""
    played = {leaderboard_key(s.leaderboard) for s in scores}
    return [m for m in reversed(maps) if leaderboard_key(m) not in played]
