# records/scan.py
# Walk the verified-runs feed newest-first, spot runs that currently hold #1
# on their leaderboard, and rebuild each such leaderboard's record chain once.
#
# States: PAGINATING -> PAGINATING | STOPPED(reason)
#   floor-reached  a run older than scan_floor was seen
#   empty-page     the feed returned no runs
#   exhausted      the feed returned a short page
#   fetch-failed   a page could not be fetched or decoded

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional

from records.ledger import DedupLedger
from records.partition import key_of, partition_of
from srcom.client import FetchError
from srcom.payload import verify_epoch

PAGE_SIZE   = 200
OVERLAP_SEC = 24 * 3600

PAGINATING = "paginating"
STOPPED    = "stopped"

logger = logging.getLogger(__name__)


def scan_floor(last_seen: int, prune_cutoff: int, overlap: int = OVERLAP_SEC) -> int:
    """Oldest verify time the scan still looks at."""
    base = last_seen if last_seen > 0 else prune_cutoff
    return max(0, base - overlap)


class FeedScanner:
    def __init__(self, client, oracle, reconstructor, ledger: DedupLedger,
                 page_size: int = PAGE_SIZE, overlap: int = OVERLAP_SEC,
                 throttle: float = 0.0, errors: Optional[list] = None,
                 logger: logging.Logger = logger, sleep=time.sleep):
        self.client = client
        self.oracle = oracle
        self.reconstructor = reconstructor
        self.ledger = ledger
        self.page_size = page_size
        self.overlap = overlap
        self.throttle = throttle
        self.errors = errors if errors is not None else []
        self.log = logger
        self._sleep = sleep

        self.state = PAGINATING
        self.stop_reason: Optional[str] = None
        self.processed = DedupLedger()
        self.stats: Dict[str, int] = {
            "pages": 0, "runs_seen": 0, "runs_checked": 0, "keys_processed": 0,
        }

    def _stop(self, reason: str) -> None:
        self.state = STOPPED
        self.stop_reason = reason

    def scan(self, last_seen: int, prune_cutoff: int) -> Dict:
        """
        Run the scan to completion.

        Returns {"new_last_seen", "records", "stop_reason", **stats}. The
        high-water mark only moves forward; records are the new events found.
        """
        floor = scan_floor(last_seen, prune_cutoff, self.overlap)
        new_last_seen = last_seen
        records: List[dict] = []
        offset = 0

        while self.state == PAGINATING:
            self.stats["pages"] += 1
            self.log.debug("Runs page: offset=%d max=%d scan_floor=%d prune_cutoff=%d last_seen=%d",
                           offset, self.page_size, floor, prune_cutoff, last_seen)
            try:
                page = self.client.runs_page(offset, self.page_size)
            except FetchError as ex:
                self.errors.append({"source": "runs feed", "error": f"page offset={offset}: {ex}"})
                self.log.debug("Failed to fetch runs page (offset=%d). Stopping.", offset)
                self._stop("fetch-failed")
                break
            if not page:
                self.log.debug("Runs page empty (offset=%d). Stopping.", offset)
                self._stop("empty-page")
                break

            for run in page:
                if not isinstance(run, dict):
                    continue
                vtime, _ = verify_epoch(run)
                if vtime is None:
                    continue

                self.stats["runs_seen"] += 1
                new_last_seen = max(new_last_seen, vtime)

                if vtime < floor:
                    self._stop("floor-reached")
                    break
                if vtime < prune_cutoff:
                    continue
                records.extend(self._check_run(run, prune_cutoff))

            if self.state == STOPPED:
                self.log.debug("Stopping scan: reached scan_floor (oldest run < scan_floor)")
                break
            offset += len(page)
            if len(page) < self.page_size:
                self._stop("exhausted")

        self.log.debug("Scan complete: pages=%d seen=%d checked=%d keys_processed=%d new_last_seen=%d",
                       self.stats["pages"], self.stats["runs_seen"], self.stats["runs_checked"],
                       self.stats["keys_processed"], new_last_seen)
        return {
            "new_last_seen": new_last_seen,
            "records": records,
            "stop_reason": self.stop_reason,
            **self.stats,
        }

    def _check_run(self, run: dict, prune_cutoff: int) -> List[dict]:
        self.stats["runs_checked"] += 1
        if self.throttle > 0 and self.stats["runs_checked"] % 40 == 0:
            self._sleep(self.throttle)

        run_id = run.get("id")
        if not isinstance(run_id, str) or run_id in self.ledger:
            return []
        partition = partition_of(run)
        if partition is None:
            return []
        if not self.oracle.is_current_record(run_id, partition):
            return []

        key = key_of(partition)
        if not self.processed.add(key):
            return []
        self.stats["keys_processed"] += 1
        self.log.debug("New current WR detected; backfilling history for key: %s", key)
        return self.reconstructor.rebuild(partition, prune_cutoff)
