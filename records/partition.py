# records/partition.py
# A partition is one leaderboard: (game, category, level-or-None, {variable: value}).

from __future__ import annotations

from typing import Dict, Mapping, Optional, Tuple

from srcom.payload import extract_id_and_name

Partition = Tuple[str, str, Optional[str], Dict[str, str]]


def partition_key(game: Optional[str], category: Optional[str], level: Optional[str],
                  values: Optional[Mapping[str, str]] = None) -> str:
    """
    Stable identity string: game|category|level|name1=value1&name2=value2&
    Filter pairs are sorted by name so retrieval order never matters.
    """
    head = f"{game or ''}|{category or ''}|{level or ''}|"
    pairs = sorted((k, v) for k, v in (values or {}).items()
                   if isinstance(k, str) and isinstance(v, str))
    return head + "".join(f"{k}={v}&" for k, v in pairs)


def key_of(partition: Partition) -> str:
    game, category, level, values = partition
    return partition_key(game, category, level, values)


def run_values(run: dict) -> Dict[str, str]:
    values = run.get("values")
    if not isinstance(values, dict):
        return {}
    return {k: v for k, v in values.items() if isinstance(k, str) and isinstance(v, str)}


def partition_of(run: dict) -> Optional[Partition]:
    """Resolve the leaderboard a run belongs to; None without game or category."""
    game, _ = extract_id_and_name(run.get("game"))
    category, _ = extract_id_and_name(run.get("category"))
    level, _ = extract_id_and_name(run.get("level"))
    if not game or not category:
        return None
    return game, category, level or None, run_values(run)
