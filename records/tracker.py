# records/tracker.py
# One invocation: load state -> prune + seed ledger -> (enrich) -> scan ->
# merge/sort -> save. State files are written once, at the very end.

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import yaml

from records.chain import EPS, SNAPSHOT_DEPTH, RecordChainReconstructor
from records.events import enrich_players
from records.labels import SubcategoryLabels
from records.ledger import DedupLedger
from records.oracle import SnapshotOracle
from records.scan import OVERLAP_SEC, PAGE_SIZE, FeedScanner
from records.state import load_state, merge_records, prune_records, save_state

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "retention_hours": 24,
    "overlap_hours": OVERLAP_SEC // 3600,
    "page_size": PAGE_SIZE,
    "snapshot_depth": SNAPSHOT_DEPTH,
    "epsilon": EPS,
    "throttle_s": 0.002,
    "enrich_players": True,
}


POSITIVE_KEYS = ("retention_hours", "page_size", "snapshot_depth")


def load_settings(path: str = "config/tracker.yaml") -> Dict[str, Any]:
    """
    Defaults overlaid with whatever valid keys the YAML file provides.
    Booleans must be real YAML booleans; page size, snapshot depth and the
    retention window must be positive, everything else non-negative.
    """
    settings = dict(DEFAULT_SETTINGS)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return settings
    except (OSError, yaml.YAMLError) as ex:
        logger.warning("ignoring unreadable settings file %s: %s", path, ex)
        return settings
    if not isinstance(data, dict):
        return settings
    for k, default in DEFAULT_SETTINGS.items():
        v = data.get(k)
        if v is None:
            continue
        if isinstance(default, bool):
            if isinstance(v, bool):
                settings[k] = v
            continue
        if isinstance(v, bool):
            continue
        try:
            v = type(default)(v)
        except (TypeError, ValueError):
            continue
        if v > 0 or (v == 0 and k not in POSITIVE_KEYS):
            settings[k] = v
    return settings


class RecordTracker:
    def __init__(self, client, data_dir, settings: Optional[Dict[str, Any]] = None,
                 logger: logging.Logger = logger, clock=time.time, sleep=time.sleep):
        self.client = client
        self.data_dir = data_dir
        self.settings = {**DEFAULT_SETTINGS, **(settings or {})}
        self.log = logger
        self._clock = clock
        self._sleep = sleep

    def run(self) -> Dict[str, Any]:
        s = self.settings
        now = int(self._clock())
        cutoff = now - int(s["retention_hours"] * 3600)
        errors: list = []

        last_seen, log = load_state(self.data_dir)
        log = prune_records(log, cutoff)
        ledger = DedupLedger.from_records(log)
        self.log.debug("Loaded state: last_seen_epoch=%d", last_seen)
        self.log.debug("Loaded wrs.json (post-prune): %d entries", len(log))

        enriched = 0
        if s["enrich_players"]:
            enriched = enrich_players(log, self.client, cutoff, self.log)

        oracle = SnapshotOracle(self.client, self.log)
        labels = SubcategoryLabels(self.client, self.log)
        reconstructor = RecordChainReconstructor(
            self.client, oracle, ledger, labels,
            depth=int(s["snapshot_depth"]), eps=float(s["epsilon"]),
            throttle=float(s["throttle_s"]), errors=errors,
            logger=self.log, sleep=self._sleep,
        )
        scanner = FeedScanner(
            self.client, oracle, reconstructor, ledger,
            page_size=int(s["page_size"]), overlap=int(s["overlap_hours"] * 3600),
            throttle=float(s["throttle_s"]), errors=errors,
            logger=self.log, sleep=self._sleep,
        )
        result = scanner.scan(last_seen, cutoff)

        merged = merge_records(log, result["records"], cutoff)
        new_last_seen = max(last_seen, result["new_last_seen"])
        save_state(self.data_dir, new_last_seen, merged)
        self.log.debug("After scan: wrs.json entries=%d new_last_seen=%d", len(merged), new_last_seen)

        return {
            "now": now,
            "cutoff": cutoff,
            "last_seen_before": last_seen,
            "last_seen_after": new_last_seen,
            "stop_reason": result["stop_reason"],
            "pages": result["pages"],
            "runs_seen": result["runs_seen"],
            "runs_checked": result["runs_checked"],
            "keys_processed": result["keys_processed"],
            "rank1_lookups": oracle.lookups,
            "new_records": len(result["records"]),
            "enriched": enriched,
            "total_records": len(merged),
            "records": merged,
            "errors": errors,
        }
