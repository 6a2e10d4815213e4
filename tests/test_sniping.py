# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0", "pytest>=7.0"]
# ///
"""Tests for snipe comparisons and the snipe-time workflow.

Validates:
  1. A play is beaten by a strictly higher score or a perfect score only
  2. find_snipes keeps input order, stops at the point floor and can require
     that both players played the map
  3. The point floor is the reference player's N-th best play
  4. pp_gain counts only improvements over the reference player's plays
  5. snipe_time filters by rank window, accuracy and play count, skips the
     sniper, and visits the lowest ranked candidates first
"""

import sys
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from conftest import FakeTransport, paged_route, play_json, player_json
from models import Player
from scoring.sniping import (
    already_beaten,
    find_snipes,
    get_sniped_plays,
    index_by_leaderboard,
    pp_gain,
    reference_pp_floor,
    snipe_time,
)


# ---------------------------------------------------------------------------
# Pure comparisons
# ---------------------------------------------------------------------------

class TestAlreadyBeaten:
    def test_higher_score_beats(self, make_play):
        assert already_beaten(make_play(1, 5, 94.0), make_play(2, 5, 94.5))

    def test_lower_score_does_not(self, make_play):
        assert not already_beaten(make_play(1, 5, 94.0), make_play(2, 5, 93.0))

    def test_equal_score_does_not(self, make_play):
        assert not already_beaten(make_play(1, 5, 94.0), make_play(2, 5, 94.0))

    def test_perfect_score_beats(self, make_play):
        assert already_beaten(make_play(1, 5, 100.0), make_play(2, 5, 100.0))

    def test_max_score_reference_beats_any_score(self, make_play):
        perfect = make_play(2, 5, 100.0)
        for accuracy in (50.0, 99.9, 100.0):
            assert already_beaten(make_play(1, 5, accuracy), perfect)

    def test_other_leaderboard_does_not(self, make_play):
        assert not already_beaten(make_play(1, 5, 94.0), make_play(2, 6, 99.0))

    def test_missing_reference(self, make_play):
        assert not already_beaten(make_play(1, 5, 94.0), None)


class TestFindSnipes:
    def test_keeps_unbeaten_in_order(self, make_play):
        sniped = [make_play(1, 1, 96.0, pp=500), make_play(2, 2, 94.0, pp=450),
                  make_play(3, 3, 95.0, pp=400)]
        reference = [make_play(10, 2, 95.0), make_play(11, 1, 95.0)]
        assert [s.leaderboard.id for s in find_snipes(sniped, reference)] == [1, 3]

    def test_played_by_both(self, make_play):
        sniped = [make_play(1, 1, 96.0), make_play(3, 3, 95.0)]
        reference = [make_play(11, 1, 95.0)]
        result = find_snipes(sniped, reference, played_by_both=True)
        assert [s.leaderboard.id for s in result] == [1]

    def test_stops_at_floor(self, make_play):
        sniped = [make_play(1, 1, 96.0, pp=500), make_play(2, 2, 96.0, pp=300),
                  make_play(3, 3, 96.0, pp=450)]
        result = find_snipes(sniped, [], pp_floor=400)
        assert [s.leaderboard.id for s in result] == [1]

    def test_index_first_play_wins(self, make_play):
        index = index_by_leaderboard([make_play(1, 7, 90.0), make_play(2, 7, 95.0)])
        assert index[7].score.id == 1


class TestFloorAndGain:
    def test_floor_position(self, make_play):
        plays = [make_play(i, i, 90.0, pp=float(100 - i)) for i in range(40)]
        assert reference_pp_floor(plays, 32) == 69.0

    def test_floor_needs_enough_plays(self, make_play):
        plays = [make_play(i, i, 90.0, pp=10.0) for i in range(5)]
        assert reference_pp_floor(plays, 32) is None

    def test_gain_for_new_map(self, make_play):
        reference = [make_play(1, 1, 95.0, pp=300), make_play(2, 2, 95.0, pp=200)]
        snipes = [make_play(3, 3, 96.0, pp=250)]
        assert pp_gain(snipes, reference, 0.5) == pytest.approx(475 - 400)

    def test_gain_for_improved_map(self, make_play):
        reference = [make_play(1, 1, 95.0, pp=300), make_play(2, 2, 95.0, pp=200)]
        snipes = [make_play(3, 2, 96.0, pp=250)]
        assert pp_gain(snipes, reference, 0.5) == pytest.approx(425 - 400)

    def test_no_gain_when_worse(self, make_play):
        reference = [make_play(1, 1, 95.0, pp=300)]
        snipes = [make_play(3, 1, 96.0, pp=250)]
        assert pp_gain(snipes, reference) == 0.0


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------

def _plays(player_id, specs):
    """Plays from ``(leaderboard_id, accuracy, pp)`` tuples, best first."""
    return [play_json(player_id * 1000 + k, lb, acc, pp=pp)
            for k, (lb, acc, pp) in enumerate(specs)]


SNIPER_ID = 1100


@pytest.fixture
def league():
    """A 150-player roster around a sniper ranked 100th."""
    roster = [player_json(1000 + rank, rank=rank, country_rank=rank)
              for rank in range(1, 151)]
    roster[114] = player_json(1115, rank=115, country_rank=115, ranked_play_count=50)
    routes = {"players": paged_route("players", roster, 50)}

    scores = {pid: _plays(pid, [(500 + pid, 90.0, 300.0)]) for pid in range(1001, 1151)}
    scores[SNIPER_ID] = _plays(SNIPER_ID, [(i, 95.0, 400.0 - i) for i in range(1, 41)])
    # Unbeaten on map 1, beaten on map 2, unplayed map 100, then below the floor.
    scores[1110] = _plays(1110, [(1, 96.0, 500.0), (2, 94.0, 450.0),
                                 (100, 95.0, 380.0), (101, 95.0, 100.0)])
    # Everything already beaten.
    scores[1090] = _plays(1090, [(3, 94.6, 450.0), (4, 94.9, 440.0)])
    # In the accuracy window but with too few ranked plays.
    scores[1115] = _plays(1115, [(5, 95.0, 450.0), (6, 95.2, 400.0)])
    for pid, plays in scores.items():
        routes[f"player/{pid}/scores"] = paged_route("playerScores", plays, 100)
    return FakeTransport(routes)


@pytest.fixture
def sniper():
    return Player.model_validate(player_json(SNIPER_ID, rank=100, country_rank=100))


class TestGetSnipedPlays:
    def test_weighted_by_pp(self, make_client, league, sniper):
        target = Player.model_validate(player_json(1110, rank=110))
        plays = get_sniped_plays(make_client(league), target, sniper)
        assert [p.leaderboard.id for p in plays] == [1, 100]

    def test_all_plays(self, make_client, league, sniper):
        target = Player.model_validate(player_json(1110, rank=110))
        plays = get_sniped_plays(make_client(league), target, sniper, weight_by_pp=False)
        assert [p.leaderboard.id for p in plays] == [1, 100, 101]

    def test_played_by_both(self, make_client, league, sniper):
        target = Player.model_validate(player_json(1110, rank=110))
        plays = get_sniped_plays(make_client(league), target, sniper, played_by_both=True)
        assert [p.leaderboard.id for p in plays] == [1]


class TestSnipeTime:
    def test_finds_nearby_targets(self, make_client, league, sniper):
        targets = snipe_time(make_client(league), sniper)
        assert [t.player.id for t in targets] == [1110]
        assert [p.leaderboard.id for p in targets[0].plays] == [1, 100]
        assert targets[0].pp_gain > 0

    def test_only_window_pages_requested(self, make_client, league, sniper):
        snipe_time(make_client(league), sniper)
        pages = sorted({q.param_dict()["page"] for q in league.calls_for("players")})
        assert pages == ["2", "3"]

    def test_sniper_not_compared_with_self(self, make_client, league, sniper):
        snipe_time(make_client(league), sniper)
        sniper_fetches = league.calls_for(f"player/{SNIPER_ID}/scores")
        # Fetched once for the sniper's own plays; later calls hit memory.
        assert len(sniper_fetches) == 1

    def test_front_page(self, make_client, league, sniper):
        targets = snipe_time(make_client(league), sniper, front_page=True)
        assert [p.leaderboard.id for p in targets[0].plays] == [1, 100, 101]

    def test_unranked_sniper_rejected(self, make_client, league):
        nobody = Player.model_validate(player_json(1, rank=0, country_rank=0))
        with pytest.raises(ValueError):
            snipe_time(make_client(league), nobody)
