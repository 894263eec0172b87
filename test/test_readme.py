from __future__ import annotations

from pathlib import Path

from report.readme import (
    END_MARKER,
    START_MARKER,
    esc,
    format_pretty_et,
    format_seconds,
    render_live,
    render_section,
    splice_block,
    update_readme,
)

from helpers import HOUR, NOW


def _row(rid: str, epoch: int, **extra) -> dict:
    row = {
        "run_id": rid, "verified_epoch": epoch, "game": "Game", "game_cover": "",
        "category": "Any%", "level": "", "subcats": "", "primary_t": 75.4,
        "players": "alice", "weblink": f"https://www.speedrun.com/run/{rid}",
    }
    row.update(extra)
    return row


def test_format_seconds() -> None:
    assert format_seconds(75.4) == "1:15"
    assert format_seconds(3599.6) == "1:00:00"
    assert format_seconds(3725) == "1:02:05"
    assert format_seconds(-1) == "?"
    assert format_seconds(None) == "?"


def test_format_pretty_et_uses_eastern_time() -> None:
    assert format_pretty_et(1736960400) == "Jan 15, 2025 12:00 PM EST"
    assert format_pretty_et(1752595200) == "Jul 15, 2025 12:00 PM EDT"


def test_escape_covers_table_breakers() -> None:
    assert esc('a|b<c>&"d\'\n') == "a&#124;b&lt;c&gt;&amp;&quot;d&#39; "


def test_section_filters_by_cutoff_and_renders_cells() -> None:
    rows = [
        _row("new", NOW - 10, subcats="Players: 1P, Glitches: No", game_cover="https://img/cover.png",
             players_data=[{"name": "bob", "image": "https://img/u.png", "weblink": "https://u/bob"}]),
        _row("old", NOW - 2 * HOUR),
    ]
    lines = render_section("Past hour", rows, NOW - HOUR)
    body = [ln for ln in lines if ln.startswith("| <sub>") and "When (ET)" not in ln]

    assert lines[0] == "### Past hour"
    assert len(body) == 1
    assert '<span title="Players: 1P, Glitches: No">Players: 1P, Glitch…</span>' in body[0]
    assert '<a href="https://u/bob"><img src="https://img/u.png"' in body[0]
    assert '<img src="https://img/cover.png"' in body[0]
    assert '<a href="https://www.speedrun.com/run/new">link</a>' in body[0]
    assert "<sub>1:15</sub>" in body[0]


def test_empty_section_has_none_row() -> None:
    lines = render_section("Past hour", [_row("old", NOW - 2 * HOUR)], NOW - HOUR)
    assert "| <sub>—</sub> | <em>None</em> |  |  |  |  |  |  |" in lines


def test_render_live_has_both_windows() -> None:
    md = render_live([_row("r", NOW - 2 * HOUR)], NOW)
    assert md.startswith("## 🏁 Live #1 Records")
    hour, day = md.split("### Past 24 hours")
    assert "<em>None</em>" in hour
    assert "run/r" in day


def test_splice_block_keeps_outside_text() -> None:
    text = f"intro\n{START_MARKER}\nold line\n{END_MARKER}\noutro\n"
    out = splice_block(text, "new 1\nnew 2")
    assert out == f"intro\n{START_MARKER}\nnew 1\nnew 2\n{END_MARKER}\noutro\n"


def test_update_readme(tmp_path: Path) -> None:
    readme = tmp_path / "README.md"
    assert update_readme(str(readme), "x") is False
    readme.write_text(f"{START_MARKER}\n{END_MARKER}\n", encoding="utf-8")
    assert update_readme(str(readme), "table") is True
    assert readme.read_text(encoding="utf-8") == f"{START_MARKER}\ntable\n{END_MARKER}\n"
