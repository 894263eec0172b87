# report/current.py
# Stateless companion report: runs verified in the last N days that still hold
# #1 on their leaderboard right now. No persisted state, no history rebuild.

from __future__ import annotations

import logging
import time
from typing import List, Optional

from records.oracle import SnapshotOracle
from records.partition import partition_of
from report.readme import format_seconds
from srcom.client import FetchError
from srcom.payload import extract_id_and_name, players_compact, primary_time, verify_epoch

PAGE_SIZE = 200

logger = logging.getLogger(__name__)


def collect_current(client, days: int = 7, limit: int = 50, now: Optional[int] = None,
                    oracle: Optional[SnapshotOracle] = None, page_size: int = PAGE_SIZE,
                    throttle: float = 0.0, sleep=time.sleep) -> List[dict]:
    """Up to `limit` rows, newest verification first."""
    if limit <= 0:
        return []
    now = int(time.time()) if now is None else now
    cutoff = now - days * 24 * 3600
    oracle = oracle or SnapshotOracle(client)
    rows: List[dict] = []
    offset = 0

    while len(rows) < limit:
        try:
            page = client.runs_page(offset, page_size)
        except FetchError as ex:
            logger.debug("runs page failed (offset=%d): %s", offset, ex)
            break
        if not page:
            break

        stop = False
        for run in page:
            if len(rows) >= limit:
                break
            if not isinstance(run, dict):
                continue
            vtime, iso = verify_epoch(run)
            if vtime is None:
                continue
            if vtime < cutoff:
                stop = True
                break
            partition = partition_of(run)
            if partition is None or not oracle.is_current_record(run.get("id"), partition):
                continue

            game_id, game_name = extract_id_and_name(run.get("game"))
            cat_id, cat_name = extract_id_and_name(run.get("category"))
            level_id, level_name = extract_id_and_name(run.get("level"))
            pt = primary_time(run)
            rows.append({
                "verify_date": iso,
                "game": game_name or game_id,
                "category": cat_name or cat_id,
                "level": (level_name or level_id) if level_id else "",
                "primary_t": pt if pt is not None else -1,
                "players": players_compact(run),
                "weblink": run.get("weblink") or "",
            })
            if throttle > 0:
                sleep(throttle)

        if stop:
            break
        offset += len(page)
        if len(page) < page_size:
            break
    return rows


def render_current(rows: List[dict], days: int) -> str:
    lines = [f"### Current #1 records verified in the last {days} days", ""]
    if not rows:
        lines.append(f"_No current #1 records found in the last {days} days (or API throttled)._ ")
        return "\n".join(lines) + "\n"
    lines.append("| Verified (UTC) | Game | Category | Level | Time | Runner(s) | Link |")
    lines.append("|---|---|---|---|---:|---|---|")
    for r in rows:
        cells = [r["verify_date"], r["game"], r["category"], r["level"],
                 format_seconds(r["primary_t"]), r["players"], r["weblink"]]
        lines.append("| " + " | ".join(str(c).replace("|", "&#124;") for c in cells) + " |")
    lines.append("")
    lines.append("_Last updated: via GitHub Actions UTC_")
    return "\n".join(lines) + "\n"
