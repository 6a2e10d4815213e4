# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "pydantic>=2.0",
# ]
# ///
"""Generate ScoreSaber practice playlists from the command line.

Usage:
    uv run ouroboros.py ranked --min-star 8 --max-star 10
    uv run ouroboros.py top-plays --player 76561198000000000 --count 20
    uv run ouroboros.py snipe --sniper 76561198000000000 --target 76561198000000001
    uv run ouroboros.py snipe-time --player 76561198000000000 --local
    uv run ouroboros.py suggest --player 76561198000000000 --offset 0.5
    uv run ouroboros.py requirements --player 76561198000000000 --min-star 6 --max-star 9 --relative-acc
    uv run ouroboros.py renew-cache
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from config import load_settings
from data.pages import UNBOUNDED, PageConsistencyError
from data.scoresaber_api import ScoreSaberClient
from data.transport import TransportError
from models import DeserializationError, StarRange
from playlist import write_playlist
from scoring import (
    fill_relative_accuracy,
    get_sniped_plays,
    interpolate_curve,
    snipe_time,
    suggest_maps,
    weighted_total,
)
from scoring.requirements import (
    accuracy_requirement,
    best_plays,
    non_full_combo,
    not_played,
    oldest_plays,
    rank_requirement,
    relative_rank_requirement,
    scores_in_star_range,
)

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = Path("playlists")
NOT_PLAYED_LIMIT = 20


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_ranked(client: ScoreSaberClient, args: argparse.Namespace) -> int:
    stars = StarRange(min_stars=args.min_star, max_stars=args.max_star)
    maps = client.get_leaderboards_by_stars(stars)
    print(f"{len(maps)} ranked maps in {stars.name} stars")
    write_playlist(args.output_dir, f"{stars.name} ranked", maps)
    return 0


def cmd_top_plays(client: ScoreSaberClient, args: argparse.Namespace) -> int:
    scoring = client.settings.scoring
    player = client.get_player_info(args.player)
    scores = client.get_player_scores(player, args.count)
    for i, play in enumerate(scores, 1):
        factor = interpolate_curve(play.accuracy, scoring.points_curve)
        print(f"{i:>4}. {play.leaderboard.beatmap_name:<50} "
              f"{play.accuracy:6.2f}%  x{factor:.3f}  {play.pp:8.2f}pp")
    total = weighted_total(scores, scoring.weight_decay)
    print(f"Weighted total over {len(scores)} plays: {total:.2f}pp")
    write_playlist(args.output_dir, f"{player.name} top plays", scores)
    return 0


def cmd_snipe(client: ScoreSaberClient, args: argparse.Namespace) -> int:
    sniper = client.get_player_info(args.sniper)
    target = client.get_player_info(args.target)
    plays = get_sniped_plays(client, target, sniper, top_n=args.top,
                             weight_by_pp=not args.all_plays,
                             played_by_both=args.played_by_both)
    print(f"{len(plays)} of {target.name}'s plays left to snipe")
    write_playlist(args.output_dir, f"Snipe {target.name}", plays)
    return 0


def cmd_snipe_time(client: ScoreSaberClient, args: argparse.Namespace) -> int:
    sniper = client.get_player_info(args.player)
    targets = snipe_time(client, sniper, local=args.local, count=args.count,
                         front_page=args.front_page)
    if not targets:
        print("No players with unbeaten plays found within criteria")
        return 0
    width = len(str(max(t.player.country_rank if args.local else t.player.rank
                        for t in targets)))
    for target in targets:
        rank = target.player.country_rank if args.local else target.player.rank
        title = (f"(#{rank:0{width}d}/{target.player.score_stats.average_ranked_accuracy:05.2f}%) "
                 f"{target.player.name} ({target.pp_gain:.2f}pp)")
        print(title)
        write_playlist(args.output_dir / "Sniping", title, target.plays)
    return 0


def cmd_suggest(client: ScoreSaberClient, args: argparse.Namespace) -> int:
    player = client.get_player_info(args.player)
    target, maps = suggest_maps(client, player, offset=args.offset, count=args.count,
                                remove_already_beat=not args.keep_beaten)
    title = f"Top {len(maps)} maps for {player.name} @ {target:05.2f}%"
    print(title)
    write_playlist(args.output_dir, title, maps)
    return 0


def cmd_requirements(client: ScoreSaberClient, args: argparse.Namespace) -> int:
    player = client.get_player_info(args.player)
    scores = client.get_player_scores(player, UNBOUNDED)
    stars = StarRange(min_stars=args.min_star, max_stars=args.max_star)
    out = args.output_dir / "Requirements"
    for low, high in reversed(stars.bands()):
        band = StarRange(min_stars=low, max_stars=high)
        maps = client.get_leaderboards_by_stars(band)
        band_ids = {m.id for m in maps}
        band_scores = [s for s in scores_in_star_range(scores, band)
                       if s.leaderboard.id in band_ids]
        if not band_scores:
            logger.info("No plays in %s stars, skipping", band.name)
            continue

        unplayed = not_played(maps, band_scores)
        unfinished = non_full_combo(band_scores)
        write_playlist(out, f"{band.name} not played", unplayed)
        write_playlist(out, f"{band.name} non FC", unfinished)
        if args.require_fc and unfinished:
            print(f"{band.name}: {len(unfinished)} plays without a full combo")
            continue
        if args.require_played and len(unplayed) > NOT_PLAYED_LIMIT:
            print(f"{band.name}: {len(unplayed)} maps not played")
            continue

        write_playlist(out, f"{band.name} best plays", best_plays(band_scores))
        write_playlist(out, f"{band.name} oldest", oldest_plays(band_scores))

        acc = accuracy_requirement(band_scores)
        write_playlist(out, f"{band.name} acc under {acc.threshold:05.2f}", acc.scores)
        if args.relative_acc:
            rel_acc = accuracy_requirement(fill_relative_accuracy(client, band_scores),
                                           use_relative=True)
            write_playlist(out, f"{band.name} relative acc under {rel_acc.threshold:05.2f}",
                           rel_acc.scores)
        rank = rank_requirement(band_scores)
        write_playlist(out, f"{band.name} rank over {rank.threshold:.0f}", rank.scores)
        rel = relative_rank_requirement(band_scores)
        write_playlist(out, f"{band.name} relative rank over {rel.threshold:04.1f}", rel.scores)
        print(f"{band.name}: {len(band_scores)} plays, {len(maps)} maps")
    return 0


def cmd_renew_cache(client: ScoreSaberClient, args: argparse.Namespace) -> int:
    print(f"Renewed {client.renew_cache()} cached responses")
    return 0


def cmd_clear_cache(client: ScoreSaberClient, args: argparse.Namespace) -> int:
    print(f"Removed {client.cache.clear()} cached responses")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate ScoreSaber practice playlists."
    )
    parser.add_argument(
        "--cache-dir", type=Path, default=None,
        help="Response cache directory (default: $OUROBOROS_CACHE_DIR or data/cache).",
    )
    parser.add_argument(
        "--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR,
        help="Where playlists are written.",
    )
    parser.add_argument(
        "--delay", type=float, default=None, metavar="SECONDS",
        help="Pause after every API request.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Log cache and request activity.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("ranked", help="All ranked maps in a star range.")
    p.add_argument("--min-star", type=int, required=True)
    p.add_argument("--max-star", type=int, required=True)
    p.set_defaults(func=cmd_ranked)

    p = sub.add_parser("top-plays", help="A player's best plays.")
    p.add_argument("--player", type=int, required=True)
    p.add_argument("--count", type=int, default=50)
    p.set_defaults(func=cmd_top_plays)

    p = sub.add_parser("snipe", help="Plays of one player another has not beaten.")
    p.add_argument("--sniper", type=int, required=True)
    p.add_argument("--target", type=int, required=True)
    p.add_argument("--top", type=int, default=50, help="How many of the target's plays to compare.")
    p.add_argument("--all-plays", action="store_true",
                   help="Do not stop at plays worth less than the sniper's floor.")
    p.add_argument("--played-by-both", action="store_true")
    p.set_defaults(func=cmd_snipe)

    p = sub.add_parser("snipe-time", help="Snipe playlists for players near you.")
    p.add_argument("--player", type=int, required=True)
    p.add_argument("--local", action="store_true", help="Only players from your country.")
    p.add_argument("--count", type=int, default=10)
    p.add_argument("--front-page", action="store_true")
    p.set_defaults(func=cmd_snipe_time)

    p = sub.add_parser("suggest", help="Maps suited to your accuracy.")
    p.add_argument("--player", type=int, required=True)
    p.add_argument("--offset", type=float, default=0.0)
    p.add_argument("--count", type=int, default=100)
    p.add_argument("--keep-beaten", action="store_true")
    p.set_defaults(func=cmd_suggest)

    p = sub.add_parser("requirements", help="Improvement playlists per star band.")
    p.add_argument("--player", type=int, required=True)
    p.add_argument("--min-star", type=int, required=True)
    p.add_argument("--max-star", type=int, required=True)
    p.add_argument("--require-fc", action="store_true",
                   help="Stop at the non-FC list for bands with plays lacking a full combo.")
    p.add_argument("--require-played", action="store_true",
                   help="Stop at the not-played list for bands with more than "
                        f"{NOT_PLAYED_LIMIT} unplayed maps.")
    p.add_argument("--relative-acc", action="store_true",
                   help="Also slice plays by accuracy relative to each map's top scores.")
    p.set_defaults(func=cmd_requirements)

    p = sub.add_parser("renew-cache", help="Refetch everything in the cache.")
    p.set_defaults(func=cmd_renew_cache)

    p = sub.add_parser("clear-cache", help="Delete the cache directory.")
    p.set_defaults(func=cmd_clear_cache)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        settings = load_settings(cache_dir=args.cache_dir, request_delay=args.delay)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    client = ScoreSaberClient.from_settings(settings)

    try:
        return args.func(client, args)
    except (TransportError, DeserializationError, PageConsistencyError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
