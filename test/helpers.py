from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from records.partition import key_of, partition_of
from srcom.client import FetchError

NOW = 1_760_000_000
HOUR = 3600
CUTOFF = NOW - 24 * HOUR


def iso(epoch: int) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def make_run(
    run_id: str,
    primary_t: Optional[float],
    verified: Optional[int],
    *,
    game: str = "g1",
    category: str = "c1",
    level: Optional[str] = None,
    values: Optional[Dict[str, str]] = None,
    players: tuple = ("alice",),
) -> Dict[str, Any]:
    run: Dict[str, Any] = {
        "id": run_id,
        "weblink": f"https://www.speedrun.com/run/{run_id}",
        "game": {"data": {"id": game, "names": {"international": f"Game {game}"},
                          "assets": {"cover-tiny": {"uri": f"http://img/{game}/cover?v=1"}}}},
        "category": {"data": {"id": category, "name": f"Cat {category}"}},
        "level": {"data": {"id": level, "name": f"Level {level}"}} if level else {"data": []},
        "values": dict(values or {}),
        "players": {"data": [{"id": p, "names": {"international": p},
                              "weblink": f"https://www.speedrun.com/user/{p}"} for p in players]},
        "status": {"status": "verified"},
        "times": {},
    }
    if primary_t is not None:
        run["times"]["primary_t"] = primary_t
    if verified is not None:
        run["status"]["verify-date"] = iso(verified)
    return run


def board(*runs: dict) -> List[dict]:
    """Ranked leaderboard entries, fastest first."""
    ranked = sorted(runs, key=lambda r: r["times"].get("primary_t", float("inf")))
    return [{"place": i + 1, "run": r} for i, r in enumerate(ranked)]


class FakeClient:
    """In-memory stand-in for SpeedrunClient."""

    def __init__(self, feed: Optional[List[dict]] = None,
                 boards: Optional[Dict[str, List[dict]]] = None,
                 runs: Optional[Dict[str, dict]] = None,
                 variables: Optional[Dict[str, list]] = None):
        self.feed = list(feed or [])
        self.boards = dict(boards or {})
        self.runs = dict(runs or {})
        self.variables = dict(variables or {})
        self.fail_offsets: set = set()
        self.fail_boards: set = set()
        self.fail_runs: set = set()
        self.calls: List[tuple] = []

    def add_board(self, *runs: dict) -> str:
        key = key_of(partition_of(runs[0]))
        self.boards[key] = board(*runs)
        for r in runs:
            self.runs.setdefault(r["id"], r)
        return key

    def runs_page(self, offset: int, max_: int = 200) -> list:
        self.calls.append(("runs_page", offset, max_))
        if offset in self.fail_offsets:
            raise FetchError("runs", "HTTP 503", 503)
        return self.feed[offset:offset + max_]

    def leaderboard(self, partition, top: int) -> list:
        key = key_of(partition)
        self.calls.append(("leaderboard", key, top))
        if key in self.fail_boards:
            raise FetchError(key, "HTTP 500", 500)
        return self.boards.get(key, [])[:top]

    def run(self, run_id: str, embed: bool = False) -> dict:
        self.calls.append(("run", run_id, embed))
        if run_id in self.fail_runs or run_id not in self.runs:
            raise FetchError(run_id, "HTTP 404", 404)
        return self.runs[run_id]

    def category_variables(self, category_id: str) -> list:
        self.calls.append(("variables", category_id))
        return self.variables.get(category_id, [])

    def count(self, kind: str) -> int:
        return sum(1 for c in self.calls if c[0] == kind)
