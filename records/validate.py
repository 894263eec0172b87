import argparse
import os
import sys
import time
from typing import List

from records.state import StateError, load_state
from records.tracker import load_settings


def check_log(records: List[dict], last_seen: int, cutoff: int) -> List[str]:
    """
    Invariant violations in a persisted record log (empty list when clean).

    Events may be newer than last_seen_epoch: the mark follows the feed pages,
    while rebuilt history comes from leaderboard snapshots read afterwards.
    """
    errors = []
    if last_seen < 0:
        errors.append(f"last_seen_epoch={last_seen} is negative")
    seen = set()
    prev = None
    for i, r in enumerate(records):
        rid = r.get("run_id")
        if not rid:
            errors.append(f"row {i} has no run_id")
        elif rid in seen:
            errors.append(f"duplicate run_id {rid}")
        seen.add(rid)

        v = r.get("verified_epoch")
        if not isinstance(v, int):
            errors.append(f"row {i} ({rid}) has no verified_epoch")
            continue
        if v < cutoff:
            errors.append(f"row {i} ({rid}) is outside the retention window")
        if prev is not None and v > prev:
            errors.append(f"row {i} ({rid}) breaks newest-first order")
        prev = v
    return errors


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument("--data-dir", default=os.getenv("DATA_DIR", "data"))
    parser.add_argument("--config", default=os.path.join("config", "tracker.yaml"))
    parser.add_argument("--retention-hours", type=int, default=None,
                        help="Override retention_hours from the tracker settings.")
    args = parser.parse_args(argv)

    retention = args.retention_hours
    if retention is None:
        retention = load_settings(args.config)["retention_hours"]

    try:
        last_seen, records = load_state(args.data_dir)
    except StateError as ex:
        print(f"::error::{ex}")
        return 1

    cutoff = int(time.time()) - int(retention * 3600)
    errors = check_log(records, last_seen, cutoff)
    if errors:
        for e in errors:
            print(f"::error::{e}")
        return 1

    print(f"::notice::Validation passed: {len(records)} records, last_seen_epoch={last_seen}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
