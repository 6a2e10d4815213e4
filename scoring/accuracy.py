# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Accuracy aggregates over sets of plays."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from models import PlayerScore, Score

if TYPE_CHECKING:
    from data.scoresaber_api import ScoreSaberClient

logger = logging.getLogger(__name__)

RELATIVE_ACCURACY_SAMPLE = 12


def average_accuracy(scores: Sequence[PlayerScore]) -> float:
    """Mean accuracy of *scores*, or 0 for an empty sequence."""
    if not scores:
        return 0.0
    return sum(s.accuracy for s in scores) / len(scores)


def average_accuracy_at_stars(stars: float, scores: Sequence[PlayerScore]) -> float:
    """Estimate a player's accuracy on maps of a given difficulty.

    Each play is weighted by ``1 / (3 * d + 1 / 1.2) - 0.2`` where ``d`` is
    its distance in stars from *stars*; plays more than about 1.4 stars away
    get no weight.  Returns 0 when the total weight is below 1, i.e. when too
    few nearby plays exist for a meaningful estimate.
    """
    total = 0.0
    weights = 0.0
    for score in scores:
        distance = abs(score.leaderboard.stars - stars)
        weight = max(1 / (3 * distance + 1 / 1.2) - 0.2, 0.0)
        total += score.accuracy * weight
        weights += weight
    return total / weights if weights >= 1 else 0.0


def relative_accuracy(player_score: PlayerScore, top_scores: Sequence[Score]) -> float:
    """A play's accuracy as a percentage of the map's top-score average.

    Only the scores ranked at or above the play (at most
    :data:`RELATIVE_ACCURACY_SAMPLE`) are averaged.
    """
    max_score = player_score.leaderboard.max_score
    sample_size = min(RELATIVE_ACCURACY_SAMPLE, max(player_score.score.rank, 1))
    sample = list(top_scores)[:sample_size]
    if not sample or max_score <= 0:
        return 0.0
    average = sum(s.base_score / max_score * 100 for s in sample) / len(sample)
    return player_score.accuracy / average * 100 if average > 0 else 0.0


def with_relative_accuracy(player_score: PlayerScore,
                           top_scores: Sequence[Score]) -> PlayerScore:
    """Copy of *player_score* carrying its relative accuracy."""
    return player_score.model_copy(
        update={"relative_accuracy": relative_accuracy(player_score, top_scores)}
    )


def fill_relative_accuracy(client: ScoreSaberClient,
                           scores: Sequence[PlayerScore]) -> list[PlayerScore]:
    """Copies of *scores* with ``relative_accuracy`` set.

    Fetches the top ``min(12, rank)`` scores of every map played, one
    leaderboard request per play.
    """
    logger.info("Computing relative accuracy over %d plays", len(scores))
    filled = []
    for score in scores:
        sample_size = min(RELATIVE_ACCURACY_SAMPLE, max(score.score.rank, 1))
        top = client.get_leaderboard_scores(score.leaderboard.id, sample_size)
        filled.append(with_relative_accuracy(score, top))
    return filled
