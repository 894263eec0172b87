# records/events.py
# Persisted record event rows, built from a fully embedded run payload.

from __future__ import annotations

import logging
from typing import List, Optional

from records.partition import run_values
from srcom.client import FetchError
from srcom.payload import (
    extract_id_and_name,
    game_cover,
    players_compact,
    players_data,
    primary_time,
    verify_epoch,
)

logger = logging.getLogger(__name__)

RECORD_FIELDS = (
    "run_id", "verified_epoch", "verified_iso", "game", "game_cover", "category",
    "level", "subcats", "primary_t", "players", "players_data", "weblink",
)


def build_record(run: dict, labels=None) -> Optional[dict]:
    """Record event for `run`, or None when the payload lacks id/game/category/date."""
    run_id = run.get("id")
    if not isinstance(run_id, str) or not run_id:
        return None
    epoch, iso = verify_epoch(run)
    if epoch is None:
        return None

    game_id, game_name = extract_id_and_name(run.get("game"))
    cat_id, cat_name = extract_id_and_name(run.get("category"))
    level_id, level_name = extract_id_and_name(run.get("level"))
    if not game_id or not cat_id:
        return None

    pt = primary_time(run)
    weblink = run.get("weblink")
    rec = {
        "run_id": run_id,
        "verified_epoch": epoch,
        "verified_iso": iso,
        "game": game_name or game_id,
        "game_cover": game_cover(run),
        "category": cat_name or cat_id,
        "level": (level_name or level_id) if level_id else "",
        "subcats": labels.format(cat_id, run_values(run)) if labels else "",
        "primary_t": pt if pt is not None else -1,
        "players": players_compact(run),
        "weblink": weblink if isinstance(weblink, str) else "",
    }
    pdata = players_data(run)
    if pdata:
        rec["players_data"] = pdata
    return rec


def enrich_players(records: List[dict], client, cutoff: int,
                   log: logging.Logger = logger) -> int:
    """Backfill players_data on in-window rows saved before avatars existed."""
    enriched = 0
    for rec in records:
        if not isinstance(rec, dict) or "players_data" in rec:
            continue
        if int(rec.get("verified_epoch") or 0) < cutoff:
            continue
        run_id = rec.get("run_id")
        if not run_id:
            continue
        try:
            run = client.run(run_id, embed=True)
        except FetchError as ex:
            log.debug("players backfill failed for %s: %s", run_id, ex)
            continue
        pdata = players_data(run)
        if pdata:
            rec["players_data"] = pdata
            enriched += 1
    return enriched
