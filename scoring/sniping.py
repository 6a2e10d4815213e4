# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Who-beat-whom comparisons between two players' plays.

A play by the *sniped* player counts as already beaten when the *reference*
player (the sniper) has a score on the same leaderboard that is strictly
higher, or that is a perfect score.  Everything else is a snipe target.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

from models import Player, PlayerScore, leaderboard_key
from scoring.accuracy import average_accuracy
from scoring.curve import WEIGHT_DECAY, weighted_sum

if TYPE_CHECKING:
    from data.scoresaber_api import ScoreSaberClient

logger = logging.getLogger(__name__)

SNIPE_FLOOR_POSITION = 32
SNIPE_TOP_N = 50
RANK_WINDOW_FACTOR = 1.2
MIN_RANKED_PLAYS = 100


# ---------------------------------------------------------------------------
# Pure comparisons
# ---------------------------------------------------------------------------

def index_by_leaderboard(scores: Sequence[PlayerScore]) -> dict[int, PlayerScore]:
    """Map leaderboard id to play.  The first play per leaderboard wins."""
    index: dict[int, PlayerScore] = {}
    for score in scores:
        index.setdefault(leaderboard_key(score.leaderboard), score)
    return index


def already_beaten(sniped: PlayerScore, reference: PlayerScore | None) -> bool:
    """Return ``True`` if *reference* beats *sniped* on the same leaderboard."""
    if reference is None:
        return False
    if leaderboard_key(reference.leaderboard) != leaderboard_key(sniped.leaderboard):
        return False
    return (reference.score.base_score > sniped.score.base_score
            or reference.score.base_score == reference.leaderboard.max_score)


def reference_pp_floor(reference_scores: Sequence[PlayerScore],
                       position: int = SNIPE_FLOOR_POSITION) -> float | None:
    """Point value of the reference player's *position*-th best play.

    Plays worth less than this would not raise the reference player's total
    noticeably.  ``None`` if they have fewer plays than *position*.
    """
    ordered = sorted((s.pp for s in reference_scores), reverse=True)
    if len(ordered) < position:
        return None
    return ordered[position - 1]


def find_snipes(sniped_scores: Sequence[PlayerScore],
                reference_scores: Sequence[PlayerScore],
                played_by_both: bool = False,
                pp_floor: float | None = None) -> list[PlayerScore]:
    """The sniped player's plays the reference player has not beaten.

    Args:
        sniped_scores: Plays to check, best first.
        reference_scores: All of the reference player's plays.
        played_by_both: Keep only leaderboards the reference player has a
            score on.
        pp_floor: Stop scanning at the first play worth less than this.

    Returns:
        The unbeaten plays, in input order.
    """
    reference = index_by_leaderboard(reference_scores)
    snipes: list[PlayerScore] = []
    for play in sniped_scores:
        if pp_floor is not None and play.pp < pp_floor:
            break
        mine = reference.get(leaderboard_key(play.leaderboard))
        if already_beaten(play, mine):
            continue
        if played_by_both and mine is None:
            continue
        snipes.append(play)
    return snipes


def pp_gain(snipes: Sequence[PlayerScore], reference_scores: Sequence[PlayerScore],
            decay: float = WEIGHT_DECAY) -> float:
    """Weighted points the reference player would gain by matching *snipes*.

    Each sniped play is assumed to be matched at the sniped play's point
    value.  Where the reference already has a play on that map, only the
    better of the two counts.
    """
    best: dict[int, float] = {}
    for score in reference_scores:
        key = leaderboard_key(score.leaderboard)
        best[key] = max(best.get(key, 0.0), score.pp)
    current = weighted_sum(sorted(best.values(), reverse=True), decay)
    for play in snipes:
        key = leaderboard_key(play.leaderboard)
        best[key] = max(best.get(key, 0.0), play.pp)
    improved = weighted_sum(sorted(best.values(), reverse=True), decay)
    return improved - current


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------

@dataclass
class SnipeTarget:
    player: Player
    plays: list[PlayerScore] = field(default_factory=list)
    pp_gain: float = 0.0


def get_sniped_plays(client: ScoreSaberClient, sniped: Player, sniper: Player,
                     sniper_scores: Sequence[PlayerScore] | None = None,
                     top_n: int = SNIPE_TOP_N, weight_by_pp: bool = True,
                     played_by_both: bool = False) -> list[PlayerScore]:
    """The sniped player's top plays that *sniper* has not beaten yet."""
    logger.debug("Comparing %s's top %d plays against %s", sniped.name, top_n, sniper.name)
    sniped_scores = client.get_player_scores(sniped, top_n)
    if sniper_scores is None:
        sniper_scores = client.get_player_scores(sniper)
    floor = None
    if weight_by_pp:
        floor = reference_pp_floor(sniper_scores,
                                   client.settings.scoring.snipe_floor_position)
    return find_snipes(sniped_scores, sniper_scores,
                       played_by_both=played_by_both, pp_floor=floor)


def snipe_time(client: ScoreSaberClient, sniper: Player, local: bool = False,
               count: int = 10, front_page: bool = False) -> list[SnipeTarget]:
    """Find players near *sniper* in rank and accuracy with unbeaten plays.

    Candidates are ranked between ``rank / 1.2`` and ``rank * 1.2`` (country
    rank when *local*), have at least 100 ranked plays, and average within
    half a percent of the sniper's top-50 accuracy.  They are visited from the
    lowest ranked up.

    Args:
        client: API client.
        sniper: The player looking for targets.
        local: Restrict to the sniper's country.
        count: Stop after this many targets with at least one play (0 for
            no limit).
        front_page: Compare every top play rather than only those worth more
            than the sniper's floor.
    """
    rank = sniper.country_rank if local else sniper.rank
    if rank <= 0:
        raise ValueError(f"{sniper.name} has no {'country ' if local else ''}rank")
    countries = sniper.country if local else ""
    rank_from = max(int(rank / RANK_WINDOW_FACTOR), 1)
    rank_to = int(rank * RANK_WINDOW_FACTOR)

    sniper_scores = client.get_player_scores(sniper)
    target_accuracy = average_accuracy(sniper_scores[:SNIPE_TOP_N])
    logger.info("Looking for snipe targets for %s between ranks %d and %d",
                sniper.name, rank_from, rank_to)

    candidates = client.get_filtered_players(
        rank_from, rank_to,
        min_accuracy=target_accuracy - 0.5,
        max_accuracy=target_accuracy + 0.5,
        countries=countries,
    )
    candidates = [p for p in candidates
                  if p.score_stats.ranked_play_count >= MIN_RANKED_PLAYS]

    targets: list[SnipeTarget] = []
    for player in reversed(candidates):
        if player.id == sniper.id:
            continue
        plays = get_sniped_plays(client, player, sniper, sniper_scores,
                                 weight_by_pp=not front_page)
        if not plays:
            logger.debug("No unbeaten plays for %s", player.name)
            continue
        gain = pp_gain(plays, sniper_scores, client.settings.scoring.weight_decay)
        targets.append(SnipeTarget(player, plays, gain))
        if 0 < count <= len(targets):
            break
    return targets
