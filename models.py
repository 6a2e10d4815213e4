# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Data models for ScoreSaber leaderboards, players and scores."""

from __future__ import annotations

import json
from datetime import datetime
from enum import IntEnum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    model_validator,
)
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class DeserializationError(Exception):
    """A response body is not valid JSON or does not have the expected shape."""

    def __init__(self, message: str, query: str | None = None):
        self.query = query
        super().__init__(message)


# ---------------------------------------------------------------------------
# Enums and tables
# ---------------------------------------------------------------------------

class DifficultyLevel(IntEnum):
    EASY = 1
    NORMAL = 3
    HARD = 5
    EXPERT = 7
    EXPERT_PLUS = 9


DIFFICULTY_NAMES: dict[int, str] = {
    DifficultyLevel.EASY: "Easy",
    DifficultyLevel.NORMAL: "Normal",
    DifficultyLevel.HARD: "Hard",
    DifficultyLevel.EXPERT: "Expert",
    DifficultyLevel.EXPERT_PLUS: "ExpertPlus",
}

# Leaderboards whose published max score is wrong.
MAX_SCORE_CORRECTIONS: dict[int, int] = {
    9025: 181355, 9028: 141795, 9023: 324875, 9007: 476675,
    11909: 340515, 59409: 320275, 59096: 424235, 18691: 237475,
    18728: 438955, 4022: 262315, 3231: 374555, 2720: 468395,
    40892: 249435, 2900: 531875, 2895: 651475, 29546: 227355,
    50328: 526355, 50288: 824435, 8270: 176755, 30818: 383755,
    41481: 605475, 58412: 721395, 58409: 597195, 21670: 254035,
    21628: 357075, 17020: 449995, 6004: 516235, 40338: 311995,
    23871: 594435,
}

# Ranked maps that cannot be played properly and are left out of directories.
GLITCHED_LEADERBOARDS: frozenset[int] = frozenset({2656, 2874, 6085})


# ---------------------------------------------------------------------------
# Base model
# ---------------------------------------------------------------------------

class ApiModel(BaseModel):
    """Base for models parsed from ScoreSaber's camelCase JSON.

    Unknown fields are ignored, and ``null`` values fall back to the field
    default.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


# ---------------------------------------------------------------------------
# Leaderboards
# ---------------------------------------------------------------------------

class Difficulty(ApiModel):
    leaderboard_id: int = 0
    difficulty: int = 0
    game_mode: str = "SoloStandard"
    difficulty_raw: str = ""


class Leaderboard(ApiModel):
    """A ranked (or unranked) map difficulty on ScoreSaber."""
    id: int
    song_hash: str = ""
    song_name: str = ""
    song_sub_name: str = ""
    song_author_name: str = ""
    level_author_name: str = ""
    difficulty: Difficulty = Field(default_factory=Difficulty)
    max_score: int = Field(default=0, ge=0)
    created_date: Optional[datetime] = None
    ranked_date: Optional[datetime] = None
    qualified_date: Optional[datetime] = None
    loved_date: Optional[datetime] = None
    ranked: bool = False
    qualified: bool = False
    loved: bool = False
    max_pp: float = -1.0
    stars: float = Field(default=0.0, ge=0.0)
    positive_modifiers: bool = False
    plays: int = Field(default=0, ge=0)
    daily_plays: int = Field(default=0, ge=0)
    cover_image: str = ""

    @model_validator(mode="after")
    def correct_max_score(self) -> Leaderboard:
        corrected = MAX_SCORE_CORRECTIONS.get(self.id)
        if corrected is not None:
            self.max_score = corrected
        return self

    @computed_field
    @property
    def difficulty_name(self) -> str:
        return DIFFICULTY_NAMES.get(self.difficulty.difficulty, "Unknown")

    @computed_field
    @property
    def beatmap_name(self) -> str:
        return f"{self.song_name} ({self.difficulty_name})"


def leaderboard_key(leaderboard: Leaderboard) -> int:
    """Identity of a leaderboard: two instances with the same id are one map."""
    return leaderboard.id


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------

class Badge(ApiModel):
    description: str = ""
    image: str = ""


class ScoreStats(ApiModel):
    total_score: int = 0
    total_ranked_score: int = 0
    average_ranked_accuracy: float = 0.0
    total_play_count: int = 0
    ranked_play_count: int = 0
    replays_watched: int = 0


class Player(ApiModel):
    """A ScoreSaber profile, either from a roster page or a player lookup."""
    id: int
    name: str = ""
    profile_picture: str = ""
    country: str = ""
    pp: float = 0.0
    rank: int = 0
    country_rank: int = 0
    role: Optional[str] = None
    badges: list[Badge] = Field(default_factory=list)
    histories: str = ""
    score_stats: ScoreStats = Field(default_factory=ScoreStats)
    permissions: int = 0
    banned: bool = False
    inactive: bool = False


def player_key(player: Player) -> int:
    """Identity of a player: two instances with the same id are one player."""
    return player.id


class LeaderboardPlayer(ApiModel):
    id: int = 0
    name: str = ""
    profile_picture: str = ""
    country: str = ""
    permissions: int = 0
    role: Optional[str] = None


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------

class Score(ApiModel):
    """A single play on a leaderboard."""
    id: int = 0
    leaderboard_player_info: Optional[LeaderboardPlayer] = None
    rank: int = Field(default=0, ge=0)
    base_score: int = Field(default=0, ge=0)
    modified_score: int = 0
    pp: float = 0.0
    weight: float = 0.0
    modifiers: str = ""
    multiplier: float = 1.0
    bad_cuts: int = 0
    missed_notes: int = 0
    max_combo: int = 0
    full_combo: bool = False
    hmd: int = 0
    time_set: Optional[datetime] = None
    has_replay: bool = False


def score_key(score: Score) -> int:
    return score.id


def player_score_metrics(base_score: int, max_score: int,
                         rank: int, plays: int) -> tuple[float, float]:
    """Return ``(accuracy, relative_rank)`` as percentages.

    Accuracy is the raw score over the map's max score.  Relative rank is
    ``(rank - 1) / plays``, so the top play on any map is 0.  Either value
    is 0 when its denominator is not positive.
    """
    accuracy = base_score / max_score * 100 if max_score > 0 else 0.0
    relative_rank = (rank - 1) / plays * 100 if plays > 0 else 0.0
    return accuracy, relative_rank


class PlayerScore(ApiModel):
    """A player's score together with the leaderboard it was set on.

    ``accuracy`` and ``relative_rank`` are recomputed whenever an instance is
    built, so values carried in the input are never trusted.
    """
    score: Score
    leaderboard: Leaderboard
    accuracy: float = 0.0
    relative_rank: float = 0.0
    relative_accuracy: Optional[float] = None

    @model_validator(mode="after")
    def derive_metrics(self) -> PlayerScore:
        self.accuracy, self.relative_rank = player_score_metrics(
            self.score.base_score,
            self.leaderboard.max_score,
            self.score.rank,
            self.leaderboard.plays,
        )
        return self

    @property
    def pp(self) -> float:
        return self.score.pp


def player_score_key(player_score: PlayerScore) -> int:
    return player_score.score.id


# ---------------------------------------------------------------------------
# Page envelopes
# ---------------------------------------------------------------------------

class Metadata(ApiModel):
    total: int = Field(default=0, ge=0)
    page: int = 1
    items_per_page: int = Field(default=0, ge=0)


class LeaderboardCollection(ApiModel):
    leaderboards: list[Leaderboard] = Field(default_factory=list)
    metadata: Metadata = Field(default_factory=Metadata)


class ScoreCollection(ApiModel):
    scores: list[Score] = Field(default_factory=list)
    metadata: Metadata = Field(default_factory=Metadata)


class PlayerCollection(ApiModel):
    players: list[Player] = Field(default_factory=list)
    metadata: Metadata = Field(default_factory=Metadata)


class PlayerScoreCollection(ApiModel):
    player_scores: list[PlayerScore] = Field(default_factory=list)
    metadata: Metadata = Field(default_factory=Metadata)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_body(body: str, model: type[BaseModel], query: str | None = None) -> Any:
    """Parse a JSON response body into *model*.

    Raises:
        DeserializationError: If the body is not JSON or does not validate.
    """
    try:
        return model.model_validate(json.loads(body))
    except json.JSONDecodeError as exc:
        raise DeserializationError(
            f"Malformed JSON for {query or model.__name__}: {exc}", query=query,
        ) from exc
    except ValidationError as exc:
        raise DeserializationError(
            f"Unexpected shape for {query or model.__name__}: {exc}", query=query,
        ) from exc


def parse_int(body: str, query: str | None = None) -> int:
    """Parse a bare integer body such as the player-count endpoint returns."""
    try:
        value = json.loads(body)
    except json.JSONDecodeError as exc:
        raise DeserializationError(f"Malformed JSON for {query}: {exc}", query=query) from exc
    if isinstance(value, bool) or not isinstance(value, int):
        raise DeserializationError(f"Expected an integer for {query}, got {value!r}", query=query)
    return value


# ---------------------------------------------------------------------------
# Star ranges
# ---------------------------------------------------------------------------

OPEN_STAR_THRESHOLD = 11
MAX_STARS = 20


class StarRange(BaseModel):
    """A band of star difficulties, e.g. ``"8-9"`` or ``"11+"``.

    Ranges starting at 11 stars or more are open ended and extend to
    :data:`MAX_STARS`.
    """
    model_config = ConfigDict(frozen=True)

    min_stars: int = Field(ge=0)
    max_stars: int = Field(ge=0)

    @model_validator(mode="after")
    def open_high_ranges(self) -> StarRange:
        if self.min_stars >= OPEN_STAR_THRESHOLD:
            object.__setattr__(self, "max_stars", MAX_STARS)
        if self.max_stars <= self.min_stars:
            raise ValueError(
                f"max_stars ({self.max_stars}) must exceed min_stars ({self.min_stars})"
            )
        return self

    @property
    def name(self) -> str:
        if self.min_stars >= OPEN_STAR_THRESHOLD:
            return f"{self.min_stars}+"
        return f"{self.min_stars}-{self.max_stars}"

    def bands(self) -> list[tuple[int, int]]:
        """One-star ``(low, high)`` bands covering the range, hardest first."""
        return [(low, low + 1) for low in range(self.max_stars - 1, self.min_stars - 1, -1)]

    def contains(self, stars: float) -> bool:
        return self.min_stars <= stars < self.max_stars
