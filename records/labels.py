# records/labels.py
# Human-readable subcategory labels ("Players: 1P, Glitch: No") from a run's
# variable filters. One variables lookup per category per run.

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Tuple

from srcom.client import FetchError

logger = logging.getLogger(__name__)

# var_id -> (var_name, {value_id: label})
VarMap = Dict[str, Tuple[str, Dict[str, str]]]


def parse_variables(data: list) -> VarMap:
    out: VarMap = {}
    for var in data or []:
        if not isinstance(var, dict) or not isinstance(var.get("id"), str):
            continue
        var_id = var["id"]
        var_name = var.get("name") if isinstance(var.get("name"), str) else var_id
        labels: Dict[str, str] = {}
        values = var.get("values")
        inner = values.get("values") if isinstance(values, dict) else None
        if isinstance(inner, dict):
            for value_id, entry in inner.items():
                label = entry.get("label") if isinstance(entry, dict) else None
                labels[value_id] = label if isinstance(label, str) else value_id
        out[var_id] = (var_name, labels)
    return out


class SubcategoryLabels:
    def __init__(self, client, logger: logging.Logger = logger):
        self.client = client
        self.log = logger
        self._cache: Dict[str, VarMap] = {}

    def variables(self, category_id: str) -> VarMap:
        if category_id in self._cache:
            return self._cache[category_id]
        self.log.debug("Fetch category variables: cat_id=%s", category_id)
        try:
            vars_ = parse_variables(self.client.category_variables(category_id))
        except FetchError as ex:
            self.log.debug("category variables lookup failed (%s): %s", category_id, ex)
            vars_ = {}
        self._cache[category_id] = vars_
        return vars_

    def format(self, category_id: Optional[str], values: Optional[Mapping[str, str]]) -> str:
        if not category_id or not values:
            return ""
        vars_ = self.variables(category_id)
        if not vars_:
            return ""
        parts = []
        for var_id, value_id in values.items():
            var_name, labels = vars_.get(var_id, (var_id, {}))
            parts.append(f"{var_name}: {labels.get(value_id, value_id)}")
        return ", ".join(parts)
