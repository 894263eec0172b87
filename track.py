#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Live #1 record tracker → data/wrs.json + README section (GitHub Actions friendly)

Each run reads only the newest slice of the verified-runs feed (down to the
previous high-water mark minus a 24h overlap), finds runs that currently hold
#1 on their leaderboard, rebuilds that leaderboard's recent record chain from
its top-200, and merges new record events into a pruned, newest-first log.

Networking hardening:
- Strict per-request timeout and bounded retries (429/5xx/network only)
- A failed feed page stops the scan; a failed leaderboard or run lookup
  only skips that leaderboard or run
- State files are written once, at the end (atomic replace)

CLI: --data-dir, --out, --readme, --config, --no-enrich, --timeout/--retries/--backoff
"""

import argparse
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone

from records.state import StateError
from records.tracker import RecordTracker, load_settings
from report.readme import END_MARKER, START_MARKER, render_live, update_readme
from srcom.client import SpeedrunClient

# ==================== CONFIG ====================
DATA_DIR      = os.getenv("DATA_DIR", "data")
CONFIG_PATH   = os.path.join("config", "tracker.yaml")
STATUS_NAME   = "status.json"

# HTTP defaults (overridable via CLI/env)
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "60"))
MAX_RETRIES     = int(os.getenv("MAX_RETRIES", "5"))
RETRY_BACKOFF   = float(os.getenv("RETRY_BACKOFF", "0.2"))


def debug_enabled(value=None) -> bool:
    """DEBUG=0/false/no silences debug output; anything else (or unset) keeps it."""
    v = os.getenv("DEBUG") if value is None else value
    if v is None:
        return True
    return v.strip().lower() not in ("0", "false", "no")


def setup_logging(debug: bool) -> logging.Logger:
    handler = logging.StreamHandler(sys.stderr)
    fmt = logging.Formatter("%(asctime)sZ [dbg] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    fmt.converter = time.gmtime
    handler.setFormatter(fmt)
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if debug else logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return logging.getLogger("track")


def _utc(epoch: float) -> str:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ==================== MAIN ====================
def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="speedrun.com live #1 record tracker")
    parser.add_argument("--data-dir", default=DATA_DIR, help="State directory (default: $DATA_DIR or ./data).")
    parser.add_argument("--config", default=CONFIG_PATH, help="Tracker settings YAML (optional).")
    parser.add_argument("--out", default=None, help="Write README markdown here instead of stdout.")
    parser.add_argument("--readme", default=None,
                        help=f"Splice markdown into this README between {START_MARKER} / {END_MARKER}.")
    parser.add_argument("--no-enrich", action="store_true",
                        help="Skip backfilling avatars on already-saved records.")
    parser.add_argument("--timeout", type=int, default=None, help="Per-request timeout seconds (default from env/60).")
    parser.add_argument("--retries", type=int, default=None, help="Max retries per request (default from env/5).")
    parser.add_argument("--backoff", type=float, default=None, help="Retry backoff seconds multiplier (env/0.2).")
    args = parser.parse_args(argv)

    timeout = max(3, args.timeout) if args.timeout is not None else REQUEST_TIMEOUT
    retries = max(0, args.retries) if args.retries is not None else MAX_RETRIES
    backoff = max(0.0, args.backoff) if args.backoff is not None else RETRY_BACKOFF

    log = setup_logging(debug_enabled())
    settings = load_settings(args.config)
    if args.no_enrich:
        settings["enrich_players"] = False

    start_ts = time.time()
    client = SpeedrunClient(timeout=timeout, retries=retries, backoff=backoff)
    tracker = RecordTracker(client, args.data_dir, settings, logger=log)
    log.debug("Start. data_dir=%s settings=%s", args.data_dir, settings)

    try:
        summary = tracker.run()
    except StateError as ex:
        print(f"[track] fatal: {ex}", file=sys.stderr)
        return 1

    md = render_live(summary["records"], summary["now"])
    if args.readme:
        if update_readme(args.readme, md):
            print(f"[track] README updated: {args.readme}")
        else:
            print(f"[track] README not found: {args.readme}", file=sys.stderr)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(md)
        print(f"[track] markdown written to {args.out}")
    elif not args.readme:
        print(md)

    end_ts = time.time()
    status = {
        "started_utc": _utc(start_ts),
        "ended_utc": _utc(end_ts),
        "stop_reason": summary["stop_reason"],
        "new_records_this_run": summary["new_records"],
        "total_records": summary["total_records"],
        "last_seen_epoch": summary["last_seen_after"],
        "errors": summary["errors"],
        "stats": {k: summary[k] for k in ("pages", "runs_seen", "runs_checked",
                                          "keys_processed", "rank1_lookups", "enriched")},
        "limits": {
            "retention_hours": settings["retention_hours"],
            "overlap_hours": settings["overlap_hours"],
            "page_size": settings["page_size"],
            "snapshot_depth": settings["snapshot_depth"],
            "timeout_s": timeout,
            "retries": retries,
            "backoff": backoff,
        },
    }
    try:
        with open(os.path.join(args.data_dir, STATUS_NAME), "w", encoding="utf-8") as f:
            json.dump(status, f, ensure_ascii=False, indent=2)
    except OSError as ex:
        print(f"[track] could not write status: {ex}", file=sys.stderr)

    print(f"[track] new={summary['new_records']} total={summary['total_records']} "
          f"stop={summary['stop_reason']} | {end_ts - start_ts:.2f}s", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
