# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0", "pytest>=7.0"]
# ///
"""Shared fixtures: record builders and an in-memory ScoreSaber stand-in."""

import json
import math
import sys
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from config import Settings
from data.cache import DiskCache, TieredCache
from data.query import Query
from data.scoresaber_api import ScoreSaberClient
from data.staleness import StalenessPolicy
from models import Leaderboard, Player, PlayerScore


# ---------------------------------------------------------------------------
# JSON builders (camelCase, as the API sends them)
# ---------------------------------------------------------------------------

def leaderboard_json(id, stars=8.0, max_score=1_000_000, plays=100, ranked=True,
                     song_name=None, difficulty=9, song_hash=None):
    return {
        "id": id,
        "songHash": song_hash or f"HASH{id:06d}",
        "songName": song_name or f"Song {id}",
        "songSubName": "",
        "songAuthorName": "Artist",
        "levelAuthorName": "Mapper",
        "difficulty": {
            "leaderboardId": id,
            "difficulty": difficulty,
            "gameMode": "SoloStandard",
            "difficultyRaw": "_ExpertPlus_SoloStandard",
        },
        "maxScore": max_score,
        "ranked": ranked,
        "stars": stars,
        "plays": plays,
        "maxPP": None,
    }


def score_json(id, base_score, rank=1, pp=0.0, full_combo=False,
               time_set="2024-01-01T00:00:00.000Z"):
    return {
        "id": id,
        "rank": rank,
        "baseScore": base_score,
        "modifiedScore": base_score,
        "pp": pp,
        "weight": 1.0,
        "modifiers": "",
        "multiplier": 1,
        "fullCombo": full_combo,
        "timeSet": time_set,
    }


def player_json(id, rank=1, country="SE", country_rank=None, pp=10_000.0,
                total_score=123_456_789_012, ranked_play_count=500,
                average_ranked_accuracy=95.0, name=None):
    return {
        "id": str(id),
        "name": name or f"Player {id}",
        "country": country,
        "pp": pp,
        "rank": rank,
        "countryRank": country_rank if country_rank is not None else rank,
        "role": None,
        "badges": None,
        "scoreStats": {
            "totalScore": total_score,
            "totalRankedScore": total_score // 2,
            "averageRankedAccuracy": average_ranked_accuracy,
            "totalPlayCount": ranked_play_count + 20,
            "rankedPlayCount": ranked_play_count,
            "replaysWatched": 0,
        },
    }


def play_json(score_id, leaderboard_id, accuracy, pp=0.0, rank=1, plays=100,
              stars=8.0, max_score=1_000_000, ranked=True, full_combo=False,
              time_set="2024-01-01T00:00:00.000Z"):
    base = round(max_score * accuracy / 100)
    return {
        "score": score_json(score_id, base, rank=rank, pp=pp, full_combo=full_combo,
                            time_set=time_set),
        "leaderboard": leaderboard_json(leaderboard_id, stars=stars, max_score=max_score,
                                        plays=plays, ranked=ranked),
    }


def paged_body(items_key, items, page, items_per_page, total=None):
    """Slice *items* into the envelope a paged endpoint returns."""
    start = (page - 1) * items_per_page
    return json.dumps({
        items_key: items[start:start + items_per_page],
        "metadata": {
            "total": len(items) if total is None else total,
            "page": page,
            "itemsPerPage": items_per_page,
        },
    })


# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------

class FakeTransport:
    """Serves canned bodies keyed by canonical query and records every call.

    ``routes`` maps a path to either a body, an exception instance, or a
    callable ``(query) -> body``.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls: list[Query] = []

    @property
    def call_count(self):
        return len(self.calls)

    def calls_for(self, path):
        return [q for q in self.calls if q.path == path]

    def fetch(self, query):
        self.calls.append(query)
        handler = self.routes.get(query.canonical(), self.routes.get(query.path))
        if handler is None:
            raise AssertionError(f"Unexpected request: {query}")
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(query)
        return handler


def paged_route(items_key, items, items_per_page, total=None):
    """A route callable serving *items* by the ``page`` parameter."""
    def handler(query):
        page = int(query.param_dict().get("page", 1))
        return paged_body(items_key, items, page, items_per_page, total)
    return handler


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def settings(tmp_path):
    return Settings(cache_dir=tmp_path / "cache")


@pytest.fixture
def make_client(settings):
    """Build a client over a FakeTransport; the cache lives in tmp_path."""
    def factory(transport, clock=None):
        kwargs = {"clock": clock} if clock is not None else {}
        policy = StalenessPolicy(
            transport,
            leaderboard_info_max_age=settings.staleness.leaderboard_info_max_age,
            **kwargs,
        )
        cache = TieredCache(DiskCache(settings.cache_dir), transport, policy)
        return ScoreSaberClient(cache, settings)
    return factory


@pytest.fixture
def make_play():
    """Build a PlayerScore at a given accuracy (percent)."""
    def factory(score_id, leaderboard_id, accuracy, **kwargs):
        return PlayerScore.model_validate(
            play_json(score_id, leaderboard_id, accuracy, **kwargs))
    return factory


@pytest.fixture
def make_leaderboard():
    def factory(id, **kwargs):
        return Leaderboard.model_validate(leaderboard_json(id, **kwargs))
    return factory


@pytest.fixture
def make_player():
    def factory(id, **kwargs):
        return Player.model_validate(player_json(id, **kwargs))
    return factory


def pages_needed(count, per_page):
    return math.ceil(count / per_page)
