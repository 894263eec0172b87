# records/oracle.py
# Present-tense leaderboard lookups. rank1 answers are memoised per canonical
# partition key for the lifetime of one run; top_n is never cached.

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from records.partition import Partition, key_of
from srcom.client import FetchError

logger = logging.getLogger(__name__)


class SnapshotOracle:
    def __init__(self, client, logger: logging.Logger = logger):
        self.client = client
        self.log = logger
        self._rank1: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.lookups = 0

    def rank1(self, partition: Partition) -> Optional[str]:
        """Id of the run currently ranked #1, or None when unknown."""
        key = key_of(partition)
        with self._lock:
            cached = self._rank1.get(key)
        if cached is not None:
            return cached

        try:
            entries = self.client.leaderboard(partition, top=1)
        except FetchError as ex:
            self.log.debug("rank-1 lookup failed for %s: %s", key, ex)
            return None
        self.lookups += 1

        top_id = None
        if entries and isinstance(entries[0], dict):
            run = entries[0].get("run")
            if isinstance(run, dict) and isinstance(run.get("id"), str):
                top_id = run["id"]
        if top_id is None:
            return None
        with self._lock:
            self._rank1[key] = top_id
        return top_id

    def is_current_record(self, run_id: Optional[str], partition: Partition) -> bool:
        if not run_id:
            return False
        return self.rank1(partition) == run_id

    def top_n(self, partition: Partition, n: int) -> List[dict]:
        """Up to n ranked entries as seen now. Raises FetchError on failure."""
        entries = self.client.leaderboard(partition, top=n)
        return [e for e in entries if isinstance(e, dict)]
