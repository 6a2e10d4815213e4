# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Typed client for the ScoreSaber API (scoresaber.com/api).

Every call is routed through a :class:`~data.cache.TieredCache`, so a query
is sent over the network at most once per run, and only when the disk copy
is missing or stale.  Paged collections are joined with
:func:`data.pages.conjoin`.

Usage::

    from config import load_settings
    from data.scoresaber_api import ScoreSaberClient

    client = ScoreSaberClient.from_settings(load_settings())
    player = client.get_player_info(76561198000000000)
    top = client.get_player_scores(player, count=50)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Hashable

from pydantic import BaseModel

from config import Settings
from data.cache import DiskCache, TieredCache
from data.pages import UNBOUNDED, Page, conjoin, fetch_page_range
from data.query import Query
from data.staleness import Category, StalenessPolicy, categorize, score_digest
from data.transport import Transport
from models import (
    GLITCHED_LEADERBOARDS,
    Leaderboard,
    LeaderboardCollection,
    Player,
    PlayerCollection,
    PlayerScore,
    PlayerScoreCollection,
    Score,
    ScoreCollection,
    StarRange,
    leaderboard_key,
    parse_body,
    parse_int,
    player_key,
    player_score_key,
    score_key,
)
from scoring.accuracy import average_accuracy

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PLAYERS_PER_PAGE = 50
PLAYER_SCORES_LIMIT = 100  # largest page the API serves
LEADERBOARD_SCORES_DEFAULT = 12
STAR_DIFFICULTY_CATEGORY = 3
SORT_DESCENDING = 0
TOP_PLAYS = 50


# ---------------------------------------------------------------------------
# Record kinds
# ---------------------------------------------------------------------------

class RecordKind(str, Enum):
    LEADERBOARDS = "leaderboards"
    LEADERBOARD_SCORES = "leaderboard_scores"
    PLAYERS = "players"
    PLAYER_SCORES = "player_scores"


@dataclass(frozen=True)
class _KindSpec:
    path: str
    path_params: tuple[str, ...]
    collection: type[BaseModel]
    items_attr: str
    key: Callable[[Any], Hashable]


_KINDS: dict[RecordKind, _KindSpec] = {
    RecordKind.LEADERBOARDS: _KindSpec(
        "leaderboards", (), LeaderboardCollection, "leaderboards", leaderboard_key),
    RecordKind.LEADERBOARD_SCORES: _KindSpec(
        "leaderboard/by-id/{leaderboard_id}/scores", ("leaderboard_id",),
        ScoreCollection, "scores", score_key),
    RecordKind.PLAYERS: _KindSpec(
        "players", (), PlayerCollection, "players", player_key),
    RecordKind.PLAYER_SCORES: _KindSpec(
        "player/{player_id}/scores", ("player_id",),
        PlayerScoreCollection, "player_scores", player_score_key),
}


_CATEGORY_MODELS: dict[Category, type[BaseModel]] = {
    Category.LEADERBOARDS: LeaderboardCollection,
    Category.LEADERBOARD_INFO: Leaderboard,
    Category.LEADERBOARD_SCORES: ScoreCollection,
    Category.PLAYERS: PlayerCollection,
    Category.PLAYER_INFO: Player,
    Category.PLAYER_SCORES: PlayerScoreCollection,
}


def decoder_for(query: Query) -> Callable[[str], Any]:
    """The parser a response to *query* must pass before it is cached."""
    category = categorize(query)
    if category is Category.PLAYER_COUNT:
        return lambda body: parse_int(body, str(query))
    model = _CATEGORY_MODELS[category]
    return lambda body: parse_body(body, model, str(query))


def _blank_to_none(value: str | None) -> str | None:
    return value or None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ScoreSaberClient:
    """Retrieval façade over a tiered cache.

    Args:
        cache: The cache manager every request goes through.
        settings: Staleness and scoring tunables.
    """

    def __init__(self, cache: TieredCache, settings: Settings | None = None) -> None:
        self.cache = cache
        self.settings = settings or Settings()

    @classmethod
    def from_settings(cls, settings: Settings) -> ScoreSaberClient:
        """Wire transport, policy, disk and memory tiers from *settings*."""
        transport = Transport(base_url=settings.base_url,
                              timeout=settings.timeout,
                              request_delay=settings.request_delay)
        policy = StalenessPolicy(
            transport,
            leaderboard_info_max_age=settings.staleness.leaderboard_info_max_age,
        )
        cache = TieredCache(DiskCache(settings.cache_dir), transport, policy)
        return cls(cache, settings)

    def renew_cache(self) -> int:
        """Refetch every cached response, validating each before it is kept."""
        return self.cache.renew_all(decoder_for)

    # -- generic paged retrieval -------------------------------------------

    def fetch_page(self, kind: RecordKind, filters: dict[str, Any], page: int,
                   *, digest: str | None = None) -> Page:
        """Fetch one page of *kind* through the cache."""
        shape = _KINDS[kind]
        path = shape.path.format(**{name: filters[name] for name in shape.path_params})
        params = {k: v for k, v in filters.items() if k not in shape.path_params}
        params["page"] = page
        query = Query.build(path, params)

        collection = self.cache.get(
            query, lambda body: parse_body(body, shape.collection, str(query)),
            digest=digest,
        )
        items = getattr(collection, shape.items_attr)
        meta = collection.metadata
        return Page(items=items, total=meta.total,
                    items_per_page=meta.items_per_page or len(items), page=page)

    def fetch_records(self, kind: RecordKind, filters: dict[str, Any],
                      desired_count: int = UNBOUNDED,
                      *, digest: str | None = None) -> list:
        """Return up to *desired_count* records of *kind* matching *filters*.

        Args:
            kind: Which collection to page through.
            filters: Path parameters (``leaderboard_id``, ``player_id``) and
                query parameters.  ``None`` values are left out.
            desired_count: Number of records, or :data:`UNBOUNDED`.
            digest: Score digest, for :attr:`RecordKind.PLAYER_SCORES`.

        Raises:
            TransportError: If any page fetch fails.
            DeserializationError: If any page body is malformed.
            PageConsistencyError: If the pages run out early.
        """
        shape = _KINDS[kind]
        return conjoin(
            desired_count,
            lambda page: self.fetch_page(kind, filters, page, digest=digest),
            key=shape.key,
        )

    # -- leaderboards ------------------------------------------------------

    def get_leaderboards(self, min_star: float | None = None,
                         max_star: float | None = None,
                         count: int = UNBOUNDED, ranked: bool = True,
                         sort: int = SORT_DESCENDING) -> list[Leaderboard]:
        """Ranked leaderboards between *min_star* and *max_star*, hardest first."""
        filters = {
            "ranked": ranked,
            "category": STAR_DIFFICULTY_CATEGORY,
            "minStar": min_star,
            "maxStar": max_star,
            "sort": sort,
            "withMetadata": True,
        }
        return self.fetch_records(RecordKind.LEADERBOARDS, filters, count)

    def get_leaderboards_by_stars(self, star_range: StarRange) -> list[Leaderboard]:
        """All ranked maps in *star_range*, fetched one star band at a time.

        Bands are cached separately, so a change in one band only invalidates
        that band.  Known glitched maps are left out.
        """
        logger.info("Retrieving ranked leaderboards for %s stars", star_range.name)
        maps: dict[int, Leaderboard] = {}
        for low, high in star_range.bands():
            for leaderboard in self.get_leaderboards(low, high):
                if leaderboard.id in GLITCHED_LEADERBOARDS:
                    continue
                maps.setdefault(leaderboard_key(leaderboard), leaderboard)
        return list(maps.values())

    def get_leaderboard_info(self, leaderboard_id: int) -> Leaderboard:
        query = Query.build(f"leaderboard/by-id/{leaderboard_id}/info")
        return self.cache.get(query, lambda body: parse_body(body, Leaderboard, str(query)))

    def get_leaderboard_scores(self, leaderboard_id: int,
                               count: int = LEADERBOARD_SCORES_DEFAULT,
                               countries: str = "",
                               search: str = "") -> list[Score]:
        """The top *count* scores on a leaderboard."""
        filters = {
            "leaderboard_id": leaderboard_id,
            "countries": _blank_to_none(countries),
            "search": _blank_to_none(search),
        }
        return self.fetch_records(RecordKind.LEADERBOARD_SCORES, filters, count)

    # -- players -----------------------------------------------------------

    def get_players(self, count: int = UNBOUNDED, countries: str = "",
                    search: str = "") -> list[Player]:
        """The global (or country) roster in rank order."""
        filters = {
            "countries": _blank_to_none(countries),
            "search": _blank_to_none(search),
        }
        return self.fetch_records(RecordKind.PLAYERS, filters, count)

    def get_players_by_rank(self, rank_from: int, rank_to: int,
                            countries: str = "") -> list[Player]:
        """Players ranked *rank_from* through *rank_to*, inclusive.

        Ranks are country ranks when *countries* is given.  Only the pages
        holding those ranks are requested.
        """
        if rank_from < 1 or rank_to < rank_from:
            raise ValueError(f"Invalid rank window {rank_from}..{rank_to}")
        filters = {"countries": _blank_to_none(countries)}
        first = math.ceil(rank_from / PLAYERS_PER_PAGE)
        last = math.ceil(rank_to / PLAYERS_PER_PAGE)
        players = fetch_page_range(
            lambda page: self.fetch_page(RecordKind.PLAYERS, filters, page),
            first, last,
        )

        def rank_of(player: Player) -> int:
            return player.country_rank if countries else player.rank

        unique: dict[int, Player] = {}
        for player in players:
            if rank_from <= rank_of(player) <= rank_to:
                unique.setdefault(player_key(player), player)
        return list(unique.values())

    def get_player_count(self, countries: str = "", search: str = "") -> int:
        query = Query.build("players/count", {
            "countries": _blank_to_none(countries),
            "search": _blank_to_none(search),
        })
        return self.cache.get(query, lambda body: parse_int(body, str(query)))

    def get_player_info(self, player_id: int, full: bool = True) -> Player:
        query = Query.build(f"player/{player_id}/{'full' if full else 'basic'}")
        return self.cache.get(query, lambda body: parse_body(body, Player, str(query)))

    def get_player_scores(self, player: Player, count: int = UNBOUNDED,
                          ranked_only: bool = True) -> list[PlayerScore]:
        """A player's plays, best first.

        The disk copy is reused as long as the player's score digest has not
        changed since it was written.

        Args:
            player: The player, with ``score_stats`` populated (a full profile
                or a roster entry).  Without them there is no digest to
                compare against and the history is always refetched.
            count: Number of plays, or :data:`UNBOUNDED` for all of them.
            ranked_only: Drop plays on unranked maps.
        """
        digest = None
        if "score_stats" in player.model_fields_set:
            digest = score_digest(player.score_stats.total_score,
                                  self.settings.staleness.score_digest_digits)
        else:
            logger.debug("No score stats for player %s, not reusing cached plays",
                         player.id)
        filters = {
            "player_id": player.id,
            "limit": PLAYER_SCORES_LIMIT,
            "sort": "top",
        }
        scores = self.fetch_records(RecordKind.PLAYER_SCORES, filters, count,
                                    digest=digest)
        if ranked_only:
            scores = [s for s in scores if s.leaderboard.ranked]
        return scores

    def get_filtered_players(self, rank_from: int, rank_to: int,
                             min_accuracy: float = 0.0, countries: str = "",
                             compute_accuracy: bool = True,
                             max_accuracy: float | None = None) -> list[Player]:
        """Players in a rank window whose average accuracy is in bounds.

        With *compute_accuracy*, each player's average is recomputed from
        their top plays instead of taken from the profile.
        """
        players = self.get_players_by_rank(rank_from, rank_to, countries)
        if compute_accuracy:
            players = [self.with_top_play_accuracy(p) for p in players]
        upper = max_accuracy if max_accuracy is not None else float("inf")
        return [p for p in players
                if min_accuracy <= p.score_stats.average_ranked_accuracy <= upper]

    def with_top_play_accuracy(self, player: Player, top_n: int = TOP_PLAYS) -> Player:
        """Copy of *player* whose average accuracy covers their top plays only."""
        scores = self.get_player_scores(player, top_n)
        stats = player.score_stats.model_copy(
            update={"average_ranked_accuracy": average_accuracy(scores)})
        return player.model_copy(update={"score_stats": stats})
