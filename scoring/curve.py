# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Points curve interpolation and weighted point totals.

ScoreSaber converts a play's accuracy into a share of the map's point value
through a piecewise-linear curve, and a player's total is the sum of their
plays' points, each weighted by ``decay ** position`` in descending order.
"""

from __future__ import annotations

from bisect import bisect_left
from typing import Sequence

from models import PlayerScore

WEIGHT_DECAY = 0.965

# (accuracy fraction, points multiplier), strictly increasing in accuracy.
PP_CURVE: tuple[tuple[float, float], ...] = (
    (0.0, 0.0),
    (0.45, 0.015),
    (0.5, 0.03),
    (0.55, 0.06),
    (0.6, 0.105),
    (0.65, 0.15),
    (0.7, 0.22),
    (0.75, 0.3),
    (0.8, 0.42),
    (0.86, 0.6),
    (0.9, 0.78),
    (0.925, 0.905),
    (0.945, 1.015),
    (0.95, 1.046),
    (0.96, 1.115),
    (0.97, 1.2),
    (0.98, 1.29),
    (0.99, 1.39),
    (1.0, 1.5),
)


def validate_curve(curve: Sequence[tuple[float, float]]) -> None:
    """Raise ``ValueError`` unless *curve* is non-empty and strictly increasing."""
    if not curve:
        raise ValueError("Points curve has no control points")
    for (x0, _), (x1, _) in zip(curve, curve[1:]):
        if x1 <= x0:
            raise ValueError(f"Points curve is not strictly increasing at {x1}")


def interpolate_curve(accuracy: float,
                      curve: Sequence[tuple[float, float]] = PP_CURVE) -> float:
    """Return the curve multiplier for *accuracy* (a percentage, 0-100).

    Values outside the table are clamped to the nearest end point, and a
    value that lands on a control point returns that point's multiplier.
    """
    validate_curve(curve)
    x = accuracy / 100
    xs = [point[0] for point in curve]
    if x <= xs[0]:
        return curve[0][1]
    if x >= xs[-1]:
        return curve[-1][1]

    i = bisect_left(xs, x)
    x1, y1 = curve[i]
    if x == x1:
        return y1
    x0, y0 = curve[i - 1]
    t = (x - x0) / (x1 - x0)
    return y0 + (y1 - y0) * t


def weighted_sum(points: Sequence[float], decay: float = WEIGHT_DECAY) -> float:
    """Sum *points* weighting the i-th (0-based) by ``decay ** i``.

    The order given is the order weighted; sort descending first to get a
    player's total.
    """
    return sum(p * decay ** i for i, p in enumerate(points))


def weighted_total(scores: Sequence[PlayerScore], decay: float = WEIGHT_DECAY) -> float:
    """A player's weighted point total over *scores*, in any order."""
    return weighted_sum(sorted((s.pp for s in scores), reverse=True), decay)
