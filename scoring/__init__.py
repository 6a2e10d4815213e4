# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Derived scoring over ScoreSaber records.

Pure functions over records obtained from
:class:`data.scoresaber_api.ScoreSaberClient`, plus the snipe and suggestion
workflows that drive the client.
"""

from scoring.accuracy import (
    average_accuracy,
    average_accuracy_at_stars,
    fill_relative_accuracy,
    relative_accuracy,
    with_relative_accuracy,
)
from scoring.curve import (
    PP_CURVE,
    WEIGHT_DECAY,
    interpolate_curve,
    weighted_sum,
    weighted_total,
)
from scoring.sniping import (
    SnipeTarget,
    already_beaten,
    find_snipes,
    get_sniped_plays,
    index_by_leaderboard,
    pp_gain,
    reference_pp_floor,
    snipe_time,
)
from scoring.suggest import (
    ScoredMap,
    accuracy_factor,
    position_factor,
    score_maps,
    suggest_maps,
)

__all__ = [
    "PP_CURVE",
    "WEIGHT_DECAY",
    "ScoredMap",
    "SnipeTarget",
    "accuracy_factor",
    "already_beaten",
    "average_accuracy",
    "average_accuracy_at_stars",
    "fill_relative_accuracy",
    "find_snipes",
    "get_sniped_plays",
    "index_by_leaderboard",
    "interpolate_curve",
    "position_factor",
    "pp_gain",
    "reference_pp_floor",
    "relative_accuracy",
    "with_relative_accuracy",
    "score_maps",
    "snipe_time",
    "suggest_maps",
    "weighted_sum",
    "weighted_total",
]
