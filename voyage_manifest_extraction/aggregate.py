"""
Voyage aggregation: one record per voyage from standardized rows.

Rows without a usable voyage number are dropped. A row that already carries a
positive passenger count is a summary of its own voyage and is never merged.
All other rows are keyed by voyage number, date and ports, where a missing
date or port is unknown rather than a value of its own. Keys that do not
conflict merge into one voyage. A key that fits two voyages which conflict
with each other is ambiguous and stays separate, so the grouping does not
depend on the order rows arrive in.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel

from .schema import GROUPING_FIELDS, SHARED_FIELDS, VoyageRecord, is_missing, parse_count

Key = Tuple[Optional[str], ...]
Indexed = Tuple[int, Mapping[str, Any]]


@dataclass
class _Group:
    voyage: str
    rows: List[Indexed] = field(default_factory=list)
    summary_count: Optional[int] = None

    @property
    def first_seen(self) -> int:
        return self.rows[0][0]

    def to_record(self) -> VoyageRecord:
        known: Dict[str, Optional[str]] = {name: None for name in SHARED_FIELDS}
        for _, row in self.rows:
            for name in SHARED_FIELDS:
                if known[name] is None:
                    known[name] = _clean(row.get(name))
        count = self.summary_count if self.summary_count is not None else len(self.rows)
        return VoyageRecord(NOMOR_VOYAGE=self.voyage, JUMLAH_PENUMPANG=count, **known)


def _clean(value: Any) -> Optional[str]:
    if is_missing(value):
        return None
    return str(value).strip()


def _as_mapping(row: Any) -> Mapping[str, Any]:
    if isinstance(row, BaseModel):
        return row.model_dump()
    if isinstance(row, Mapping):
        return row
    raise TypeError(f"Cannot aggregate row of type {type(row).__name__}")


def _key(row: Mapping[str, Any]) -> Key:
    return tuple(_clean(row.get(name)) for name in GROUPING_FIELDS)


def _conflicts(a: Key, b: Key) -> bool:
    return any(x is not None and y is not None and x != y for x, y in zip(a, b))


def _components(keys: List[Key]) -> List[List[Key]]:
    """Connected components of the keys under "does not conflict"."""
    remaining = list(keys)
    components: List[List[Key]] = []
    while remaining:
        component = [remaining.pop(0)]
        frontier = list(component)
        while frontier:
            current = frontier.pop()
            linked = [key for key in remaining if not _conflicts(current, key)]
            remaining = [key for key in remaining if key not in linked]
            component.extend(linked)
            frontier.extend(linked)
        components.append(component)
    return components


def _is_ambiguous(key: Key, keys: List[Key]) -> bool:
    neighbours = [other for other in keys if other != key and not _conflicts(key, other)]
    return any(_conflicts(a, b) for a, b in combinations(neighbours, 2))


def _resolve(keys: List[Key]) -> List[List[Key]]:
    """
    Split the distinct keys of one voyage number into sets that form one voyage each.

    A component without internal conflicts merges whole. Otherwise its
    ambiguous keys are set apart and the rest is resolved again; a conflicting
    component always has at least one ambiguous key, so this terminates.
    """
    merged: List[List[Key]] = []
    for component in _components(keys):
        if not any(_conflicts(a, b) for a, b in combinations(component, 2)):
            merged.append(component)
            continue
        ambiguous = [key for key in component if _is_ambiguous(key, component)]
        merged.extend([key] for key in ambiguous)
        merged.extend(_resolve([key for key in component if key not in ambiguous]))
    return merged


def aggregate_voyages(rows: Iterable[Any]) -> List[VoyageRecord]:
    """Group standardized rows into voyage records, in first-seen order."""
    groups: List[_Group] = []
    keyed: Dict[str, Dict[Key, List[Indexed]]] = {}

    for index, raw in enumerate(rows):
        row = _as_mapping(raw)
        voyage = _clean(row.get("NOMOR_VOYAGE"))
        if voyage is None:
            continue

        count = parse_count(row.get("JUMLAH_PENUMPANG"))
        if count is not None and count > 0:
            groups.append(_Group(voyage=voyage, rows=[(index, row)], summary_count=count))
            continue

        keyed.setdefault(voyage, {}).setdefault(_key(row), []).append((index, row))

    for voyage, by_key in keyed.items():
        for keys in _resolve(list(by_key)):
            members = sorted((item for key in keys for item in by_key[key]), key=lambda item: item[0])
            groups.append(_Group(voyage=voyage, rows=members))

    groups.sort(key=lambda group: group.first_seen)
    return [group.to_record() for group in groups]
