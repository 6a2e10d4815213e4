# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0", "pytest>=7.0"]
# ///
"""Tests for the command-line entry point.

Validates:
  1. Subcommands parse and dispatch, writing playlists to --output-dir
  2. Global options reach the settings
  3. Transport and data errors become exit code 1 with a message on stderr
  4. Invalid environment configuration is reported, not raised
"""

import json
import sys
from pathlib import Path
from unittest.mock import patch

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from conftest import (
    FakeTransport,
    leaderboard_json,
    paged_body,
    paged_route,
    play_json,
    player_json,
    score_json,
)
from data.transport import TransportServiceUnavailableError
from ouroboros import build_parser, main


@pytest.fixture
def run(make_client, tmp_path):
    """Run main() against a FakeTransport; returns (exit code, transport)."""
    def runner(argv, routes):
        transport = FakeTransport(routes)
        client = make_client(transport)
        with patch("ouroboros.ScoreSaberClient.from_settings", return_value=client):
            code = main(["--output-dir", str(tmp_path / "out")] + argv)
        return code, transport
    return runner


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_global_options(self):
        args = build_parser().parse_args(["--cache-dir", "/tmp/c", "--delay", "0.5", "-v",
                                          "ranked", "--min-star", "8", "--max-star", "9"])
        assert args.cache_dir == Path("/tmp/c")
        assert args.delay == 0.5
        assert args.verbose is True
        assert args.command == "ranked"

    def test_snipe_flags(self):
        args = build_parser().parse_args(["snipe", "--sniper", "1", "--target", "2",
                                          "--all-plays", "--played-by-both"])
        assert args.all_plays and args.played_by_both
        assert args.top == 50

    def test_settings_receive_overrides(self, tmp_path):
        with patch("ouroboros.ScoreSaberClient.from_settings") as from_settings:
            from_settings.return_value.cache.clear.return_value = 0
            assert main(["--cache-dir", str(tmp_path / "c"), "--delay", "2",
                         "clear-cache"]) == 0
        settings = from_settings.call_args[0][0]
        assert settings.cache_dir == tmp_path / "c"
        assert settings.request_delay == 2.0


class TestCommands:
    def test_ranked_writes_playlist(self, run, tmp_path, capsys):
        maps = [leaderboard_json(i, stars=8.5) for i in range(1, 4)]
        code, _ = run(["ranked", "--min-star", "8", "--max-star", "9"],
                      {"leaderboards": paged_route("leaderboards", maps, 14)})
        assert code == 0
        assert "3 ranked maps in 8-9 stars" in capsys.readouterr().out
        doc = json.loads((tmp_path / "out" / "8-9 ranked.bplist").read_text(encoding="utf-8"))
        assert len(doc["songs"]) == 3

    def test_top_plays(self, run, tmp_path, capsys):
        plays = [play_json(i, i, 95.0, pp=300.0 - i) for i in range(1, 6)]
        code, _ = run(["top-plays", "--player", "7", "--count", "3"], {
            "player/7/full": json.dumps(player_json(7, name="Seven")),
            "player/7/scores": paged_route("playerScores", plays, 100),
        })
        assert code == 0
        out = capsys.readouterr().out
        assert "Weighted total over 3 plays" in out
        assert (tmp_path / "out" / "Seven top plays.bplist").exists()

    def test_snipe(self, run, tmp_path, capsys):
        code, _ = run(["snipe", "--sniper", "1", "--target", "2", "--all-plays"], {
            "player/1/full": json.dumps(player_json(1, name="Sniper")),
            "player/2/full": json.dumps(player_json(2, name="Target")),
            "player/1/scores": paged_body("playerScores", [play_json(10, 5, 95.0)], 1, 100),
            "player/2/scores": paged_body("playerScores", [play_json(20, 5, 96.0),
                                                           play_json(21, 6, 90.0)], 1, 100),
        })
        assert code == 0
        assert "2 of Target's plays left to snipe" in capsys.readouterr().out
        assert (tmp_path / "out" / "Snipe Target.bplist").exists()

    def test_clear_cache(self, run, settings, capsys):
        settings.cache_dir.mkdir(parents=True)
        code, _ = run(["clear-cache"], {})
        assert code == 0
        assert "Removed 0 cached responses" in capsys.readouterr().out
        assert not settings.cache_dir.exists()

    def test_renew_cache_empty(self, run, capsys):
        code, transport = run(["renew-cache"], {})
        assert code == 0
        assert transport.call_count == 0


class TestRequirements:
    # (leaderboard id, play accuracy, accuracy of the map's top scores)
    PLAYS = [(1, 90.0, 91.0), (2, 95.0, 99.0), (3, 98.0, 99.0)]

    def routes(self, full_combo=True, extra_maps=0):
        plays = [play_json(10 + lb, lb, acc, pp=300.0 - lb, rank=20, stars=8.5,
                           full_combo=full_combo)
                 for lb, acc, _ in self.PLAYS]
        maps = [leaderboard_json(lb, stars=8.5) for lb in range(1, 4 + extra_maps)]
        routes = {
            "player/7/full": json.dumps(player_json(7, name="Seven")),
            "player/7/scores": paged_route("playerScores", plays, 100),
            "leaderboards": paged_route("leaderboards", maps, 14),
        }
        for lb, _, top in self.PLAYS:
            top_scores = [score_json(100 * lb + i, round(top * 10_000), rank=i)
                          for i in range(1, 13)]
            routes[f"leaderboard/by-id/{lb}/scores"] = paged_route("scores", top_scores, 12)
        return routes

    def _songs(self, out, prefix):
        [path] = (out / "Requirements").glob(f"{prefix}*")
        return [s["hash"] for s in json.loads(path.read_text(encoding="utf-8"))["songs"]]

    def test_relative_accuracy_playlist(self, run, tmp_path):
        code, transport = run(["requirements", "--player", "7", "--min-star", "8",
                               "--max-star", "9", "--relative-acc"], self.routes())
        assert code == 0
        out = tmp_path / "out"
        assert self._songs(out, "8-9 acc under") == ["HASH000001", "HASH000002", "HASH000003"]
        # Map 1 is hard for everyone, so the 90% play ranks above the 95% one.
        assert self._songs(out, "8-9 relative acc under") == [
            "HASH000002", "HASH000001", "HASH000003"]
        for lb, _, _ in self.PLAYS:
            assert len(transport.calls_for(f"leaderboard/by-id/{lb}/scores")) == 1

    def test_relative_accuracy_off_by_default(self, run, tmp_path):
        code, transport = run(["requirements", "--player", "7", "--min-star", "8",
                               "--max-star", "9"], self.routes())
        assert code == 0
        assert not list((tmp_path / "out" / "Requirements").glob("8-9 relative acc*"))
        assert not transport.calls_for("leaderboard/by-id/1/scores")

    def test_require_fc_stops_at_non_fc_list(self, run, tmp_path, capsys):
        code, _ = run(["requirements", "--player", "7", "--min-star", "8",
                       "--max-star", "9", "--require-fc"], self.routes(full_combo=False))
        assert code == 0
        assert "3 plays without a full combo" in capsys.readouterr().out
        out = tmp_path / "out"
        assert len(self._songs(out, "8-9 non FC")) == 3
        assert not list((out / "Requirements").glob("8-9 acc under*"))

    def test_require_played_stops_at_not_played_list(self, run, tmp_path, capsys):
        code, _ = run(["requirements", "--player", "7", "--min-star", "8",
                       "--max-star", "9", "--require-played"], self.routes(extra_maps=21))
        assert code == 0
        assert "21 maps not played" in capsys.readouterr().out
        out = tmp_path / "out"
        assert len(self._songs(out, "8-9 not played")) == 21
        assert not list((out / "Requirements").glob("8-9 acc under*"))

    def test_gates_pass_when_band_is_complete(self, run, tmp_path):
        code, _ = run(["requirements", "--player", "7", "--min-star", "8",
                       "--max-star", "9", "--require-fc", "--require-played"],
                      self.routes(extra_maps=20))
        assert code == 0
        assert len(self._songs(tmp_path / "out", "8-9 acc under")) == 3


class TestErrors:
    def test_transport_error_exit_code(self, run, capsys):
        code, _ = run(["top-plays", "--player", "7"],
                      {"player/7/full": TransportServiceUnavailableError("Server error (503)")})
        assert code == 1
        assert "Server error (503)" in capsys.readouterr().err

    def test_malformed_body_exit_code(self, run, capsys):
        code, _ = run(["top-plays", "--player", "7"], {"player/7/full": "<html>"})
        assert code == 1
        assert "Error:" in capsys.readouterr().err

    def test_invalid_star_range(self, run, capsys):
        code, transport = run(["ranked", "--min-star", "9", "--max-star", "8"], {})
        assert code == 1
        assert transport.call_count == 0

    def test_bad_environment(self, monkeypatch, capsys):
        monkeypatch.setenv("OUROBOROS_REQUEST_DELAY", "soon")
        assert main(["clear-cache"]) == 1
        assert "OUROBOROS_REQUEST_DELAY" in capsys.readouterr().err
