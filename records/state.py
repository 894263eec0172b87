# records/state.py
# Persisted state: data/state.json (high-water mark) and data/wrs.json
# (record log, newest first). Both files are rewritten once per run via a
# temp file + replace, so an interrupted run leaves the previous state intact.

from __future__ import annotations

import json
import os
from itertools import chain
from pathlib import Path
from typing import Iterable, List, Tuple

STATE_FILE = "state.json"
LOG_FILE   = "wrs.json"


class StateError(Exception):
    """The data directory cannot be read or written."""


def _read_json(path: Path):
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError:
        # a corrupt file is treated as absent; the next save rewrites it
        return None
    except OSError as ex:
        raise StateError(f"cannot read {path}: {ex}") from ex


def _write_json(path: Path, obj) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(obj, f, ensure_ascii=False, indent=2)
            f.write("\n")
        os.replace(tmp, path)
    except OSError as ex:
        raise StateError(f"cannot write {path}: {ex}") from ex


def ensure_data_dir(data_dir) -> Path:
    d = Path(data_dir)
    try:
        d.mkdir(parents=True, exist_ok=True)
    except OSError as ex:
        raise StateError(f"cannot create {d}: {ex}") from ex
    if not d.is_dir():
        raise StateError(f"{d} is not a directory")
    return d


def load_state(data_dir) -> Tuple[int, List[dict]]:
    """(last_seen_epoch, record log). Missing or corrupt files load as empty."""
    d = ensure_data_dir(data_dir)

    state = _read_json(d / STATE_FILE)
    last_seen = 0
    if isinstance(state, dict):
        try:
            last_seen = max(0, int(state.get("last_seen_epoch", 0)))
        except (TypeError, ValueError):
            last_seen = 0

    log = _read_json(d / LOG_FILE)
    if not isinstance(log, list):
        log = []
    return last_seen, [r for r in log if isinstance(r, dict)]


def save_state(data_dir, last_seen: int, records: List[dict]) -> None:
    d = ensure_data_dir(data_dir)
    _write_json(d / LOG_FILE, records)
    _write_json(d / STATE_FILE, {"last_seen_epoch": int(last_seen)})


def _epoch(rec: dict) -> int:
    try:
        return int(rec.get("verified_epoch") or 0)
    except (TypeError, ValueError):
        return 0


def prune_records(records: Iterable[dict], cutoff: int) -> List[dict]:
    """Drop rows verified before `cutoff` (and anything that isn't a row)."""
    return [r for r in records if isinstance(r, dict) and _epoch(r) >= cutoff]


def sort_newest_first(records: Iterable[dict]) -> List[dict]:
    # stable: rows sharing a verify time keep their relative order
    return sorted(records, key=_epoch, reverse=True)


def merge_records(existing: Iterable[dict], new: Iterable[dict], cutoff: int) -> List[dict]:
    """
    Prune, then keep the first row per run id (existing rows win over new
    ones), sorted newest first. Existing rows are never edited.
    """
    out = []
    seen = set()
    for rec in chain(prune_records(existing, cutoff), prune_records(new, cutoff)):
        rid = rec.get("run_id")
        if not rid or rid in seen:
            continue
        seen.add(rid)
        out.append(rec)
    return sort_newest_first(out)
