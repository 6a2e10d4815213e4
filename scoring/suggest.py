# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Map suggestions from the plays of similarly ranked players.

Every peer play whose accuracy is close to the target accuracy votes for its
map.  A vote is worth more the higher the play sits in the peer's top list
and the closer its accuracy is to the target.  Votes for one map are summed
with diminishing returns, so a map needs broad support to rank highly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

from models import Leaderboard, Player, PlayerScore, leaderboard_key
from scoring.accuracy import average_accuracy

if TYPE_CHECKING:
    from config import ScoringSettings
    from data.scoresaber_api import ScoreSaberClient

logger = logging.getLogger(__name__)

ACCURACY_CUTOFF = 2.0
ACCURACY_EXPONENT = 0.5
POSITION_BASE = 1.05
CONTRIBUTION_DECAY = 0.955
PEER_TOP_N = 50
SUGGESTION_COUNT = 100
ALREADY_BEAT_MARGIN = 0.5
RANK_WINDOW_FACTOR = 1.2


@dataclass
class ScoredMap:
    leaderboard: Leaderboard
    contributions: list[float] = field(default_factory=list)
    score: float = 0.0

    @property
    def count(self) -> int:
        return len(self.contributions)


def position_factor(position: int, base: float = POSITION_BASE) -> float:
    """Weight of the play at 0-based *position* in a peer's top list."""
    return base ** -position


def accuracy_factor(delta: float, cutoff: float = ACCURACY_CUTOFF,
                    exponent: float = ACCURACY_EXPONENT) -> float:
    """1 for an exact accuracy match, falling to 0 at *cutoff* points away."""
    return 1 - (abs(delta) / cutoff) ** exponent


def score_maps(peer_scores: Sequence[Sequence[PlayerScore]], target_accuracy: float,
               cutoff: float = ACCURACY_CUTOFF, exponent: float = ACCURACY_EXPONENT,
               position_base: float = POSITION_BASE,
               contribution_decay: float = CONTRIBUTION_DECAY) -> list[ScoredMap]:
    """Rank maps by how strongly the peers' plays recommend them.

    Args:
        peer_scores: One list of plays per peer, best first.
        target_accuracy: The accuracy the suggestions should suit.

    Returns:
        Scored maps, best first.  Ties keep first-seen order.
    """
    maps: dict[int, ScoredMap] = {}
    for plays in peer_scores:
        for position, play in enumerate(plays):
            delta = abs(play.accuracy - target_accuracy)
            if delta > cutoff:
                continue
            key = leaderboard_key(play.leaderboard)
            scored = maps.get(key)
            if scored is None:
                scored = maps[key] = ScoredMap(play.leaderboard)
            scored.contributions.append(
                position_factor(position, position_base)
                * accuracy_factor(delta, cutoff, exponent)
            )

    for scored in maps.values():
        scored.contributions.sort(reverse=True)
        scored.score = sum(c * contribution_decay ** j
                           for j, c in enumerate(scored.contributions))
    return sorted(maps.values(), key=lambda m: m.score, reverse=True)


def suggest_maps(client: ScoreSaberClient, player: Player, offset: float = 0.0,
                 count: int = SUGGESTION_COUNT,
                 remove_already_beat: bool = True) -> tuple[float, list[Leaderboard]]:
    """Suggest maps for *player* based on their rank neighbours' top plays.

    Args:
        client: API client.
        player: Who the suggestions are for.
        offset: Added to the player's top-50 average to form the target.
        count: Number of maps to return.
        remove_already_beat: Drop maps the player already has a play on
            at or above ``target - 0.5``.

    Returns:
        ``(target_accuracy, maps)``.
    """
    settings: ScoringSettings = client.settings.scoring
    own_scores = client.get_player_scores(player)
    target = average_accuracy(own_scores[:PEER_TOP_N]) + offset
    logger.info("Suggesting maps for %s at %.2f%% accuracy", player.name, target)

    rank_from = max(int(player.rank / RANK_WINDOW_FACTOR), 1)
    rank_to = max(int(player.rank * RANK_WINDOW_FACTOR), rank_from)
    peers = [p for p in client.get_players_by_rank(rank_from, rank_to)
             if p.id != player.id]
    peer_scores = [client.get_player_scores(p, PEER_TOP_N) for p in peers]

    scored = score_maps(
        peer_scores, target,
        cutoff=settings.suggestion_accuracy_cutoff,
        exponent=settings.suggestion_accuracy_exponent,
        position_base=settings.suggestion_position_base,
        contribution_decay=settings.suggestion_contribution_decay,
    )
    maps = [m.leaderboard for m in scored]
    if remove_already_beat:
        beaten = {leaderboard_key(s.leaderboard) for s in own_scores
                  if s.accuracy > target - ALREADY_BEAT_MARGIN}
        maps = [m for m in maps if leaderboard_key(m) not in beaten]
    return target, maps[:count]
