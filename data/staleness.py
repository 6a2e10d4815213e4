# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Freshness rules for cached ScoreSaber responses.

Each query belongs to a :class:`Category`, and each category has its own
test for whether a body read back from disk may still be used:

=====================  ==================================================
Category               Fresh when
=====================  ==================================================
``leaderboards``       a probe of the same directory reports the same total
``leaderboard_info``   the entry is younger than the configured horizon
``player_scores``      the player's score digest is unchanged
everything else        never (written for reference, always refetched)
=====================  ==================================================

``player_count`` answers are not written to disk at all.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from data.query import Query
from data.transport import Transport

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

class Category(str, Enum):
    LEADERBOARDS = "leaderboards"
    LEADERBOARD_INFO = "leaderboard_info"
    LEADERBOARD_SCORES = "leaderboard_scores"
    PLAYERS = "players"
    PLAYER_COUNT = "player_count"
    PLAYER_INFO = "player_info"
    PLAYER_SCORES = "player_scores"


def categorize(query: Query) -> Category:
    """Resolve the category of *query* from its path.

    Raises:
        ValueError: For paths outside the supported API surface.
    """
    parts = [p for p in query.path.split("/") if p]
    head = parts[0] if parts else ""
    if head == "leaderboards":
        return Category.LEADERBOARDS
    if head == "leaderboard":
        if parts[-1] == "scores":
            return Category.LEADERBOARD_SCORES
        if parts[-1] == "info":
            return Category.LEADERBOARD_INFO
    if head == "players":
        if parts[-1] == "count":
            return Category.PLAYER_COUNT
        return Category.PLAYERS
    if head == "player":
        if parts[-1] == "scores":
            return Category.PLAYER_SCORES
        if parts[-1] in ("basic", "full"):
            return Category.PLAYER_INFO
    raise ValueError(f"Unknown query path: {query.path!r}")


# ---------------------------------------------------------------------------
# Cache entries
# ---------------------------------------------------------------------------

@dataclass
class CacheEntry:
    """A response body as held by the disk cache.

    Attributes:
        query: The query the body answers.
        body: Response text exactly as received.
        category: Category the query resolved to.
        created: UNIX timestamp of the write.
        digest: Score digest recorded at write time (score histories only).
    """

    query: Query
    body: str
    category: Category
    created: float
    digest: str | None = None


def score_digest(total_score: int, digits: int = 9) -> str:
    """Return the low-order *digits* decimal digits of *total_score*.

    Any new play changes a player's running score total, so a matching digest
    means the cached score history is still complete.
    """
    return f"{abs(int(total_score)) % 10 ** digits:0{digits}d}"


def embedded_total(body: str) -> int | None:
    """Return ``metadata.total`` from a paged body, or ``None`` if absent."""
    try:
        total = json.loads(body)["metadata"]["total"]
    except (json.JSONDecodeError, KeyError, TypeError):
        return None
    return total if isinstance(total, int) else None


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------

class StalenessPolicy:
    """Decides whether a cached entry can be served.

    Args:
        transport: Used for the directory total probes.
        leaderboard_info_max_age: Age horizon in seconds for leaderboard info.
        clock: Source of the current time, for tests.
    """

    def __init__(self, transport: Transport,
                 leaderboard_info_max_age: float = 72 * 3600,
                 clock: Callable[[], float] = time.time) -> None:
        self._transport = transport
        self.leaderboard_info_max_age = leaderboard_info_max_age
        self._clock = clock
        self._probes: dict[Query, str] = {}
        self.probe_fetches = 0

    def now(self) -> float:
        return self._clock()

    def persists(self, category: Category) -> bool:
        return category is not Category.PLAYER_COUNT

    def is_fresh(self, entry: CacheEntry, digest: str | None = None) -> bool:
        """Return ``True`` if *entry* may be served without a refetch."""
        category = entry.category
        if category is Category.LEADERBOARDS:
            cached = embedded_total(entry.body)
            if cached is None:
                return False
            current = self.probe_total(entry.query)
            logger.debug("Directory %s: cached total %s, remote total %s",
                         entry.query, cached, current)
            return cached == current
        if category is Category.LEADERBOARD_INFO:
            return self._clock() - entry.created < self.leaderboard_info_max_age
        if category is Category.PLAYER_SCORES:
            return digest is not None and entry.digest == digest
        return False

    # -- probes ------------------------------------------------------------

    @staticmethod
    def probe_query(query: Query) -> Query:
        """The first page of the directory *query* belongs to."""
        return query.with_params(page=1)

    def probe_total(self, query: Query) -> int | None:
        """Fetch (once per run) the declared total for *query*'s directory.

        Raises:
            TransportError: If the probe request fails.
        """
        probe = self.probe_query(query)
        body = self._probes.get(probe)
        if body is None:
            body = self._transport.fetch(probe)
            self.probe_fetches += 1
            self._probes[probe] = body
        return embedded_total(body)

    def take_probe(self, query: Query) -> str | None:
        """Return the probe body if *query* was itself fetched as a probe."""
        return self._probes.get(query)
