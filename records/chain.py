# records/chain.py
# Record history reconstruction for one leaderboard.
#
# The API only exposes the board as it stands now, so the current top-N is
# used as a proxy for every run that was ever good enough to still be visible:
# replay those runs in verification order and keep each one that beat (or
# tied) the running best. A record that has since dropped below rank N and was
# never seen live by an earlier run cannot be recovered this way.

from __future__ import annotations

import logging
import time
from typing import Iterable, List, Optional, Tuple

from records.events import build_record
from records.partition import Partition, key_of
from srcom.client import FetchError
from srcom.payload import primary_time, verify_epoch

SNAPSHOT_DEPTH = 200
EPS = 1e-6

logger = logging.getLogger(__name__)


# ------------------------------- pure steps --------------------------------- #

def collect_infos(entries: Iterable[dict]) -> List[dict]:
    """
    Snapshot entries -> [{"run_id", "primary_t", "verified_epoch"}].
    Runs without a usable time are dropped; a missing verify date is kept as
    None so it can be backfilled.
    """
    infos = []
    for entry in entries:
        run = entry.get("run") if isinstance(entry, dict) else None
        if not isinstance(run, dict):
            continue
        rid = run.get("id")
        if not isinstance(rid, str) or not rid:
            continue
        pt = primary_time(run)
        if pt is None:
            continue
        epoch, _ = verify_epoch(run)
        infos.append({"run_id": rid, "primary_t": pt, "verified_epoch": epoch})
    return infos


def find_baseline(infos: Iterable[dict], cutoff: int) -> Optional[float]:
    """Best time among runs verified strictly before the window; None if none."""
    before = [i["primary_t"] for i in infos
              if i.get("verified_epoch") is not None and i["verified_epoch"] < cutoff]
    return min(before) if before else None


def window_candidates(infos: Iterable[dict], cutoff: int) -> List[dict]:
    """In-window runs in replay order (verify time, then run id)."""
    cands = [i for i in infos
             if i.get("verified_epoch") is not None and i["verified_epoch"] >= cutoff]
    cands.sort(key=lambda i: (i["verified_epoch"], i["run_id"]))
    return cands


def replay_chain(candidates: Iterable[dict], baseline: Optional[float],
                 eps: float = EPS) -> List[Tuple[dict, str]]:
    """
    Walk candidates in order and return (info, kind) for every run that set
    or tied the running best. kind is "seed", "improvement" or "tie".
    Ties never lower the running best.
    """
    chain = []
    best = baseline
    for info in candidates:
        t = info["primary_t"]
        if best is None:
            best = t
            chain.append((info, "seed"))
        elif t < best - eps:
            best = t
            chain.append((info, "improvement"))
        elif abs(t - best) <= eps:
            chain.append((info, "tie"))
    return chain


# ------------------------------ reconstructor ------------------------------- #

class RecordChainReconstructor:
    def __init__(self, client, oracle, ledger, labels=None,
                 depth: int = SNAPSHOT_DEPTH, eps: float = EPS,
                 throttle: float = 0.0, errors: Optional[list] = None,
                 logger: logging.Logger = logger, sleep=time.sleep):
        self.client = client
        self.oracle = oracle
        self.ledger = ledger
        self.labels = labels
        self.depth = depth
        self.eps = eps
        self.throttle = throttle
        self.errors = errors if errors is not None else []
        self.log = logger
        self._sleep = sleep

    def _pause(self) -> None:
        if self.throttle > 0:
            self._sleep(self.throttle)

    def backfill_dates(self, infos: List[dict]) -> None:
        """Resolve missing verify dates one run at a time; failures stay None."""
        for info in infos:
            if info["verified_epoch"] is not None:
                continue
            try:
                run = self.client.run(info["run_id"], embed=False)
            except FetchError as ex:
                self.errors.append({"source": info["run_id"], "error": f"detail lookup: {ex}"})
                continue
            info["verified_epoch"], _ = verify_epoch(run)
            self._pause()

    def rebuild(self, partition: Partition, cutoff: int) -> List[dict]:
        """New record events for `partition` verified at or after `cutoff`."""
        key = key_of(partition)
        try:
            entries = self.oracle.top_n(partition, self.depth)
        except FetchError as ex:
            self.errors.append({"source": key, "error": f"snapshot: {ex}"})
            self.log.debug("snapshot failed for %s: %s", key, ex)
            return []

        infos = collect_infos(entries)
        if not infos:
            return []
        self.backfill_dates(infos)

        baseline = find_baseline(infos, cutoff)
        chain = replay_chain(window_candidates(infos, cutoff), baseline, self.eps)
        self.log.debug("chain for %s: baseline=%s candidates=%d qualifying=%d",
                       key, baseline, len(infos), len(chain))

        added = []
        for info, kind in chain:
            rid = info["run_id"]
            if rid in self.ledger:
                continue
            try:
                run = self.client.run(rid, embed=True)
            except FetchError as ex:
                self.errors.append({"source": rid, "error": f"detail lookup: {ex}"})
                continue
            rec = build_record(run, self.labels)
            self._pause()
            if rec is None or rec["verified_epoch"] < cutoff:
                continue
            if not self.ledger.add(rid):
                continue
            self.log.debug("record %s (%s) %.3fs on %s", rid, kind, info["primary_t"], key)
            added.append(rec)
        return added
