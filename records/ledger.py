"""
Grow-only id sets.

DedupLedger holds every run id already written to the record log: it is
seeded from persisted state at startup and only grows during a run. The same
class backs the run-scoped "partition processed this run" set.
"""

from __future__ import annotations

import threading
from typing import Iterable


class DedupLedger:
    def __init__(self, ids: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._seen: set[str] = set()
        self.seed(ids)

    def seed(self, ids: Iterable[str]) -> None:
        with self._lock:
            self._seen.update(i for i in ids if isinstance(i, str) and i)

    def add(self, item: str) -> bool:
        """Record an id. Returns False if it was already present."""
        with self._lock:
            if item in self._seen:
                return False
            self._seen.add(item)
            return True

    def __contains__(self, item: object) -> bool:
        with self._lock:
            return item in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "DedupLedger":
        return cls(r.get("run_id") for r in records if isinstance(r, dict))
