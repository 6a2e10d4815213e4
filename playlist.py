# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Beat Saber ``.bplist`` playlist output.

Turns an ordered sequence of leaderboards (or plays, which carry their
leaderboard) into the JSON playlist format read by the in-game playlist
managers.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable

from models import Leaderboard, PlayerScore

logger = logging.getLogger(__name__)

PLAYLIST_AUTHOR = "Ouroboros"
PLAYLIST_SUFFIX = ".bplist"

_UNSAFE_FILENAME = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def _characteristic(leaderboard: Leaderboard) -> str:
    mode = leaderboard.difficulty.game_mode
    return mode[len("Solo"):] if mode.startswith("Solo") else mode or "Standard"


def _song_entry(leaderboard: Leaderboard) -> dict[str, Any]:
    return {
        "hash": leaderboard.song_hash,
        "songName": leaderboard.song_name,
        "difficulties": [
            {
                "characteristic": _characteristic(leaderboard),
                "name": leaderboard.difficulty_name,
            }
        ],
    }


def build_playlist(title: str, records: Iterable[Leaderboard | PlayerScore],
                   author: str = PLAYLIST_AUTHOR) -> dict[str, Any]:
    """Build a playlist document, keeping the order of *records*."""
    songs = []
    for record in records:
        leaderboard = record.leaderboard if isinstance(record, PlayerScore) else record
        songs.append(_song_entry(leaderboard))
    return {
        "playlistTitle": title,
        "playlistAuthor": author,
        "image": "",
        "songs": songs,
    }


def playlist_filename(title: str) -> str:
    """A filesystem-safe file name for a playlist titled *title*."""
    cleaned = _UNSAFE_FILENAME.sub("_", title).strip(" .")
    return f"{cleaned or 'playlist'}{PLAYLIST_SUFFIX}"


def write_playlist(directory: str | Path, title: str,
                   records: Iterable[Leaderboard | PlayerScore],
                   author: str = PLAYLIST_AUTHOR) -> Path:
    """Write a playlist into *directory* and return its path."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    playlist = build_playlist(title, records, author)
    path = directory / playlist_filename(title)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(playlist, f, indent=2, ensure_ascii=False)
    logger.info("Wrote playlist %s (%d songs)", path, len(playlist["songs"]))
    return path
