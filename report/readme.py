# report/readme.py
# Render the record log as README sections and splice them between markers.
# Run: py -m report.readme --data-dir data --readme README.md

from __future__ import annotations

import argparse
import json
import os
import time
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from dateutil import tz

ET = tz.gettz("America/New_York")
START_MARKER = "<!-- WR-LIVE:START -->"
END_MARKER   = "<!-- WR-LIVE:END -->"
SUBCAT_MAX   = 20

_ESCAPES = {
    "&": "&amp;", "<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&#39;", "|": "&#124;",
    "\n": " ", "\r": " ", "\t": " ",
}


def esc(s) -> str:
    return "".join(_ESCAPES.get(c, c) for c in str(s or ""))


def format_seconds(sec) -> str:
    if not isinstance(sec, (int, float)) or sec < 0:
        return "?"
    total = int(sec + 0.5)
    h, m, s = total // 3600, (total % 3600) // 60, total % 60
    return f"{h}:{m:02d}:{s:02d}" if h > 0 else f"{m}:{s:02d}"


def format_pretty_et(epoch: int) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).astimezone(ET).strftime("%b %d, %Y %I:%M %p %Z")


def _sub(s) -> str:
    return f"<sub>{esc(s)}</sub>"


def _subcat_cell(s: str, max_chars: int = SUBCAT_MAX) -> str:
    s = s or ""
    shown = s if len(s) <= max_chars else s[:max_chars - 1] + "…"
    return f'<sub><span title="{esc(s)}">{esc(shown)}</span></sub>'


def _game_cell(name: str, cover: str) -> str:
    img = (f'<img src="{esc(cover)}" alt="" width="60" '
           f'style="display:block; margin:0 auto 4px auto;"/>') if cover else ""
    return f'<div style="text-align:center;">{img}<br/>{_sub(name)}</div>'


def _runners_cell(players_data, fallback: str) -> str:
    if not isinstance(players_data, list) or not players_data:
        return _sub(fallback)
    cells = []
    for p in players_data:
        if not isinstance(p, dict):
            continue
        name, img, link = p.get("name") or "unknown", p.get("image") or "", p.get("weblink") or ""
        avatar = ""
        if img:
            avatar = (f'<img src="{esc(img)}" alt="" width="40" '
                      f'style="display:block; margin:0 auto 4px auto; border-radius:50%;"/>')
            if link:
                avatar = f'<a href="{esc(link)}">{avatar}</a>'
        cells.append(f'<div style="text-align:center;">{avatar}<br/>{_sub(name)}</div>')
    return ('<div style="display:flex; gap:6px; justify-content:center; align-items:flex-start;">'
            + "".join(cells) + "</div>")


def render_section(title: str, records: Iterable[dict], cutoff: int) -> List[str]:
    lines = [f"### {title}", ""]
    lines.append("| <sub>When (ET)</sub> | <sub>Game</sub> | <sub>Category</sub> | <sub>Subcategory</sub> "
                 "| <sub>Level</sub> | <sub>Time</sub> | <sub>Runner(s)</sub> | <sub>Link</sub> |")
    lines.append("|---|---|---|---|---|---:|---|---|")
    printed = 0
    for r in records:
        v = int(r.get("verified_epoch") or 0)
        if v < cutoff:
            continue
        link = r.get("weblink") or ""
        link_cell = f'<sub><a href="{esc(link)}">link</a></sub>' if link else "<sub>&nbsp;</sub>"
        lines.append("| " + " | ".join([
            _sub(format_pretty_et(v)),
            _game_cell(r.get("game") or "", r.get("game_cover") or ""),
            _sub(r.get("category")),
            _subcat_cell(r.get("subcats") or ""),
            _sub(r.get("level")),
            _sub(format_seconds(r.get("primary_t", -1))),
            _runners_cell(r.get("players_data"), r.get("players") or ""),
            link_cell,
        ]) + " |")
        printed += 1
    if printed == 0:
        lines.append("| <sub>—</sub> | <em>None</em> |  |  |  |  |  |  |")
    lines.append("")
    return lines


def render_live(records: List[dict], now: int) -> str:
    lines = ["## 🏁 Live #1 Records", "", "_Updated hourly via GitHub Actions._", ""]
    lines += render_section("Past hour", records, now - 3600)
    lines += render_section("Past 24 hours", records, now - 24 * 3600)
    return "\n".join(lines)


def splice_block(text: str, content: str, start: str = START_MARKER, end: str = END_MARKER) -> str:
    """Replace everything between the marker lines; markers and outside text are kept."""
    out = []
    in_block = False
    for line in text.splitlines():
        if line == start:
            out.append(line)
            out.extend(content.splitlines())
            in_block = True
            continue
        if line == end:
            in_block = False
            out.append(line)
            continue
        if not in_block:
            out.append(line)
    return "\n".join(out) + ("\n" if text.endswith("\n") else "")


def update_readme(path: str, content: str, start: str = START_MARKER, end: str = END_MARKER) -> bool:
    """Splice content into the README file. False when the file is missing."""
    if not os.path.exists(path):
        return False
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    with open(path, "w", encoding="utf-8") as f:
        f.write(splice_block(text, content, start, end))
    return True


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Render data/wrs.json into README sections.")
    ap.add_argument("--data-dir", default=os.getenv("DATA_DIR", "data"))
    ap.add_argument("--readme", default=None, help="README to splice into (default: print).")
    a = ap.parse_args(argv)

    path = os.path.join(a.data_dir, "wrs.json")
    records = []
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            records = json.load(f)
    md = render_live(records, int(time.time()))
    if a.readme:
        ok = update_readme(a.readme, md)
        print(f"[readme] {'updated' if ok else 'missing'} {a.readme}")
    else:
        print(md)


if __name__ == "__main__":
    main()
